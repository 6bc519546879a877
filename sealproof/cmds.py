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

import json
import logging
import signal
import sys
import threading

from bitcoin.core import b2x
from opentimestamps.core.serialize import BadMagicError, DeserializationError

from sealproof.attestation import extract_attestations, pending_attestations
from sealproof.proof import candidate_from_json, candidate_to_json
from sealproof.service import PersistenceError, ProofNotFoundError
from sealproof.store import ProofStoreError
from sealproof.tree import decode


def get_proof(service, item_id):
    try:
        return service.get_proof(item_id)
    except (ProofNotFoundError, ProofStoreError) as exp:
        logging.error("%s" % exp)
        sys.exit(1)


def run_command(args):
    service = args.setup_service()

    stop_event = threading.Event()

    def handle_signal(signum, frame):
        logging.info("Got signal %d, shutting down" % signum)
        stop_event.set()
    signal.signal(signal.SIGTERM, handle_signal)

    service.start()
    try:
        while not stop_event.wait(1):
            if not service.scheduler.is_running:
                logging.error("Reconciliation thread died")
                sys.exit(1)
    except KeyboardInterrupt:
        logging.info("Interrupted, shutting down")

    if not service.stop(timeout=args.timeout * 2):
        logging.warning("Sweep still running at shutdown")


def sweep_command(args):
    service = args.setup_service()

    try:
        changed = service.run_reconciliation_sweep()
    except ProofStoreError as exp:
        logging.error("%s" % exp)
        sys.exit(1)

    logging.info("%d proof(s) changed" % changed)


def list_command(args):
    service = args.setup_service()

    try:
        data = service.list_proofs()
    except ProofStoreError as exp:
        logging.error("%s" % exp)
        sys.exit(1)

    for proof in data['proofs']:
        print("%s %s %s" % (proof.item_id, proof.state,
                            proof.confirmation_time_display if proof.confirmation_time_display is not None else '-'))

    logging.debug("Last updated: %s" % data['lastUpdated'])


def show_command(args):
    service = args.setup_service()
    proof = get_proof(service, args.item_id)
    print(json.dumps(proof.to_json(), indent=2))


def info_command(args):
    service = args.setup_service()
    proof = get_proof(service, args.item_id)

    if not proof.envelope:
        logging.error("Proof %s has no commitment envelope" % proof.item_id)
        sys.exit(1)

    try:
        envelope = proof.envelope_bytes
    except ValueError:
        logging.error("Commitment envelope of %s is not hex" % proof.item_id)
        sys.exit(1)

    try:
        tree = decode(envelope)
    except BadMagicError:
        logging.error("Error! Commitment envelope of %s is not a timestamp." % proof.item_id)
        sys.exit(1)
    except DeserializationError as exp:
        logging.error("Invalid commitment envelope for %s: %s" % (proof.item_id, exp))
        sys.exit(1)

    print("Item: %s" % proof.item_id)
    print("State: %s" % proof.state)
    print("File %s hash: %s" % (tree.file_hash_op.HASHLIB_NAME, b2x(tree.file_digest)))

    print("Timestamp:")
    print(tree.str_tree(), end='')

    attestations = extract_attestations(tree)
    if attestations:
        print("Bitcoin attestation(s): %s" % ', '.join('block %d' % att.block_index for att in attestations))
    else:
        print("Pending: %s" % ', '.join(sorted(set(att.uri for index, att in pending_attestations(tree)))))


def reconcile_command(args):
    service = args.setup_service()

    try:
        items = json.load(args.file)
    except ValueError as exp:
        logging.error("Invalid JSON in %r: %s" % (args.file.name, exp))
        sys.exit(1)

    if not isinstance(items, list):
        logging.error("Expected a JSON array of items in %r" % args.file.name)
        sys.exit(1)

    try:
        candidates = [candidate_from_json(item) for item in items]
    except AttributeError:
        logging.error("Expected JSON objects in %r" % args.file.name)
        sys.exit(1)

    reconciled = service.reconcile_fields(candidates)
    print(json.dumps([candidate_to_json(candidate) for candidate in reconciled], indent=2))


def delete_command(args):
    service = args.setup_service()

    try:
        service.delete_proof(args.item_id)
    except ProofNotFoundError as exp:
        logging.error("%s" % exp)
        sys.exit(1)
    except (ProofStoreError, PersistenceError) as exp:
        logging.error("%s" % exp)
        sys.exit(1)
