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

"""Block time lookups

Bitcoin block header attestations only record the block height, so the time
of the block has to be looked up elsewhere: either a block explorer's REST
API, or a Bitcoin node.
"""

import binascii
import json
import logging
import urllib.request

import bitcoin
import bitcoin.rpc

from bitcoin.core import b2lx, lx

import sealproof


class BlockLookupError(Exception):
    """Block time couldn't be looked up"""


class MempoolExplorer:
    """mempool.space style block explorer"""

    DEFAULT_URL = 'https://mempool.space/api'

    NETWORK_URLS = {'mainnet': DEFAULT_URL,
                    'testnet': 'https://mempool.space/testnet/api'}

    MAX_RESPONSE_SIZE = 100000

    def __init__(self, url=DEFAULT_URL, timeout=10, user_agent=None):
        if not isinstance(url, str):
            raise TypeError("URL must be a string")
        self.url = url.rstrip('/')
        self.timeout = timeout

        if user_agent is None:
            user_agent = "Sealproof/%s" % sealproof.__version__
        self.request_headers = {"User-Agent": user_agent}

    def _get(self, path):
        req = urllib.request.Request(self.url + path, headers=self.request_headers)
        try:
            with urllib.request.urlopen(req, timeout=self.timeout) as resp:
                if resp.status != 200:
                    raise BlockLookupError("Unknown response from explorer: %d" % resp.status)

                resp_bytes = resp.read(self.MAX_RESPONSE_SIZE + 1)
                if len(resp_bytes) > self.MAX_RESPONSE_SIZE:
                    raise BlockLookupError("Explorer response exceeded size limit")
                return resp_bytes

        # HTTPError, URLError and timeouts are all OSError's
        except OSError as exp:
            raise BlockLookupError("%s%s: %s" % (self.url, path, exp))

    def get_block_hash(self, height):
        resp_bytes = self._get('/block-height/%d' % height)

        try:
            blockhash = lx(resp_bytes.decode('utf8').strip())
        except (UnicodeDecodeError, binascii.Error, ValueError):
            raise BlockLookupError("Explorer returned an invalid block hash for block %d" % height)

        if len(blockhash) != 32:
            raise BlockLookupError("Explorer returned an invalid block hash for block %d" % height)

        return blockhash

    def get_block_time(self, height):
        """Get the unix time of the block at height

        Raises BlockLookupError on failure.
        """
        blockhash = self.get_block_hash(height)
        logging.debug("Block %d hash: %s" % (height, b2lx(blockhash)))

        try:
            block = json.loads(self._get('/block/%s' % b2lx(blockhash)).decode('utf8'))
        except (UnicodeDecodeError, ValueError) as exp:
            raise BlockLookupError("Explorer returned invalid JSON for block %d: %s" % (height, exp))

        block_time = block.get('timestamp') if isinstance(block, dict) else None
        if not isinstance(block_time, int) or isinstance(block_time, bool):
            raise BlockLookupError("Explorer did not return a timestamp for block %d" % height)

        return block_time


class RpcExplorer:
    """Look up block times from a Bitcoin node over JSON-RPC"""

    def __init__(self, service_url=None, network='mainnet', timeout=10):
        self.service_url = service_url
        self.network = network
        self.timeout = timeout
        self._proxy = None

    @property
    def proxy(self):
        if self._proxy is None:
            bitcoin.SelectParams(self.network)

            try:
                self._proxy = bitcoin.rpc.Proxy(service_url=self.service_url, timeout=self.timeout)
            except Exception as exp:
                raise BlockLookupError("Could not connect to Bitcoin node: %s" % exp)

        return self._proxy

    def get_block_time(self, height):
        """Get the unix time of the block at height

        Raises BlockLookupError on failure.
        """
        proxy = self.proxy
        try:
            blockhash = proxy.getblockhash(height)
            logging.debug("Block %d hash: %s" % (height, b2lx(blockhash)))

            return proxy.getblockheader(blockhash).nTime

        except IndexError:
            raise BlockLookupError("Bitcoin block height %d not found" % height)
        except (bitcoin.rpc.JSONRPCError, OSError, ValueError) as exp:
            raise BlockLookupError("Could not get block %d from Bitcoin node: %s" % (height, exp))
