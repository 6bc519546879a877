# Copyright (C) 2026 The Sealproof developers
#
# This file is part of Sealproof.
#
# It is subject to the license terms in the LICENSE file found in the top-level
# directory of this distribution.
#
# No part of Sealproof, including this file, may be copied, modified,
# propagated, or distributed except according to the terms contained in the
# LICENSE file.

import argparse
import os
import socket

import appdirs
import socks

import sealproof
import sealproof.cmds

from sealproof.calendar import CalendarUpgrader, DEFAULT_WHITELIST, DEFAULT_TIMEOUT
from sealproof.confirm import ConfirmationResolver
from sealproof.explorer import MempoolExplorer, RpcExplorer
from sealproof.scheduler import DEFAULT_INTERVAL, DEFAULT_INITIAL_DELAY
from sealproof.service import ProofService
from sealproof.store import ProofStore

DEFAULT_STORE_PATH = os.path.join(appdirs.user_data_dir('sealproof'), 'proofs.json')


def make_common_options_arg_parser():
    parser = argparse.ArgumentParser(description="Tamper-evidence proofs for sealed packages.")
    parser.add_argument('--version', action='version', version='v%s' % sealproof.__version__)

    parser.add_argument("-q", "--quiet", action="count", default=0,
                        help="Be more quiet.")
    parser.add_argument("-v", "--verbose", action="count", default=0,
                        help="Be more verbose. Both -v and -q may be used multiple times.")

    parser.add_argument("--store", action="store", type=str,
                        dest='store_path',
                        default=DEFAULT_STORE_PATH,
                        help="Location of the proof store. Default: %(default)s")

    whitelist_group = parser.add_mutually_exclusive_group()
    whitelist_group.add_argument('-l', '--whitelist', metavar='URL', action='append', type=str,
                                 default=[],
                                 help='Whitelist a remote calendar. If no whitelist is specified, %s is whitelisted by default.' % DEFAULT_WHITELIST)
    whitelist_group.add_argument('--no-remote-calendars', dest='whitelist', action='store_const',
                                 const=None,
                                 default=[],
                                 help='Prevent any remote calendar from being contacted.')

    parser.add_argument('-c', '--calendar', metavar='URL', dest='calendar_urls', action='append', type=str,
                        default=[],
                        help='Override the calendars recorded in the proofs. May be specified multiple times.')

    parser.add_argument("--timeout", type=int, default=DEFAULT_TIMEOUT,
                        help="Timeout before giving up on a calendar or block explorer. "
                             "Default: %(default)d")

    explorer_group = parser.add_mutually_exclusive_group()
    explorer_group.add_argument("--explorer-url", dest="explorer_url", type=str,
                                default=None,
                                help="Block explorer API used to look up block times. Default: %s" % MempoolExplorer.DEFAULT_URL)
    explorer_group.add_argument("--bitcoin-node", dest="bitcoin_node", type=str,
                                help="Look up block times from a Bitcoin node at this URL instead of "
                                     "a block explorer")

    btc_net_group = parser.add_mutually_exclusive_group()
    btc_net_group.add_argument('--btc-testnet', dest='btc_net', action='store_const',
                               const='testnet', default='mainnet',
                               help='Use Bitcoin testnet rather than mainnet')
    btc_net_group.add_argument('--btc-regtest', dest='btc_net', action='store_const',
                               const='regtest',
                               help='Use Bitcoin regtest rather than mainnet')

    parser.add_argument("--socks5-proxy", type=str,
                        help="Route all traffic through a socks5 proxy, "
                              "including DNS queries. The default port is 1080. "
                              "Format: domain[:port] (e.g. localhost:9050)")

    return parser


def handle_common_options(args, parser):
    args.parser = parser
    args.verbosity = args.verbose - args.quiet

    args.store_path = os.path.normpath(os.path.expanduser(args.store_path))

    if args.whitelist is not None and not args.whitelist:
        args.whitelist = DEFAULT_WHITELIST

    if args.socks5_proxy is not None:
        e = args.socks5_proxy.split(':')
        s5_hostname = e[0]
        if len(e) > 1:
            if e[1].isdigit():
                s5_port = int(e[1])
            else:
                args.parser.error("SOCKS5 proxy port must be an integer; got %s" % e[1])
        else:
            s5_port = 1080

        socks.set_default_proxy(socks.SOCKS5,
                                s5_hostname,
                                s5_port)

        # Monkey patch socket to use SOCKS5 proxy
        socket.socket = socks.socksocket

        # This should prevent DNS leaks
        def create_connection(address, timeout=None, source_address=None):
            sock = socks.socksocket()
            if timeout is not None:
                sock.settimeout(timeout)
            sock.connect(address)
            return sock
        socket.create_connection = create_connection

    if args.bitcoin_node is None and args.explorer_url is None:
        try:
            args.explorer_url = MempoolExplorer.NETWORK_URLS[args.btc_net]
        except KeyError:
            args.parser.error("No default block explorer for %s; use --explorer-url or --bitcoin-node" % args.btc_net)

    def setup_service():
        """Create the proof service from the command line options"""
        if args.bitcoin_node is not None:
            explorer = RpcExplorer(service_url=args.bitcoin_node, network=args.btc_net, timeout=args.timeout)
        else:
            explorer = MempoolExplorer(args.explorer_url, timeout=args.timeout)

        upgrader = CalendarUpgrader(calendar_urls=args.calendar_urls,
                                    whitelist=args.whitelist,
                                    timeout=args.timeout)

        return ProofService(ProofStore(args.store_path),
                            upgrader=upgrader,
                            resolver=ConfirmationResolver(explorer),
                            interval=getattr(args, 'interval', DEFAULT_INTERVAL),
                            initial_delay=getattr(args, 'initial_delay', DEFAULT_INITIAL_DELAY))

    args.setup_service = setup_service

    return args


def parse_sealproof_args(raw_args):
    parser = make_common_options_arg_parser()

    subparsers = parser.add_subparsers(title='Subcommands',
                                       description='All operations are done through subcommands:')

    # ----- run -----
    parser_run = subparsers.add_parser('run',
                                       help='Reconcile pending proofs periodically until interrupted')
    parser_run.add_argument("--interval", type=int, default=DEFAULT_INTERVAL,
                            help="Seconds between reconciliation sweeps. Default: %(default)d")
    parser_run.add_argument("--initial-delay", dest="initial_delay", type=int, default=DEFAULT_INITIAL_DELAY,
                            help="Seconds to wait before the first sweep. Default: %(default)d")

    # ----- sweep -----
    parser_sweep = subparsers.add_parser('sweep', aliases=['s'],
                                         help='Reconcile pending proofs once')

    # ----- list -----
    parser_list = subparsers.add_parser('list', aliases=['l'],
                                        help='List proofs')

    # ----- show -----
    parser_show = subparsers.add_parser('show',
                                        help='Show a proof as JSON')
    parser_show.add_argument('item_id', metavar='ITEM_ID', type=str,
                             help='Item id')

    # ----- info -----
    parser_info = subparsers.add_parser('info', aliases=['i'],
                                        help="Show the commitment tree of a proof")
    parser_info.add_argument('item_id', metavar='ITEM_ID', type=str,
                             help='Item id')

    # ----- reconcile -----
    parser_reconcile = subparsers.add_parser('reconcile',
                                             help='Fill in unreadable fields of an extraction batch '
                                                  'from the batch majority')
    parser_reconcile.add_argument('file', metavar='FILE', type=argparse.FileType('r'),
                                  nargs='?', default='-',
                                  help='JSON array of extracted items. Default: stdin')

    # ----- delete -----
    parser_delete = subparsers.add_parser('delete',
                                          help='Delete a proof')
    parser_delete.add_argument('item_id', metavar='ITEM_ID', type=str,
                               help='Item id')

    parser_run.set_defaults(cmd_func=sealproof.cmds.run_command)
    parser_sweep.set_defaults(cmd_func=sealproof.cmds.sweep_command)
    parser_list.set_defaults(cmd_func=sealproof.cmds.list_command)
    parser_show.set_defaults(cmd_func=sealproof.cmds.show_command)
    parser_info.set_defaults(cmd_func=sealproof.cmds.info_command)
    parser_reconcile.set_defaults(cmd_func=sealproof.cmds.reconcile_command)
    parser_delete.set_defaults(cmd_func=sealproof.cmds.delete_command)

    args = parser.parse_args(raw_args)
    args = handle_common_options(args, parser)

    return args
