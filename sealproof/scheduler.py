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

"""Periodic reconciliation of pending proofs

A sweep upgrades every pending proof's commitment from the calendars, looks
for a Bitcoin attestation in the result, and confirms the proofs that have
one. All changes of a sweep are written back in a single save.
"""

import logging
import threading
import time

from opentimestamps.core.serialize import DeserializationError

from sealproof.attestation import extract_attestations
from sealproof.proof import now_iso
from sealproof.tree import decode

DEFAULT_INTERVAL = 60
DEFAULT_INITIAL_DELAY = 5


class ProofUpdate:
    """Change to a single proof computed during a sweep

    old_envelope is the envelope the change was computed from; confirmation
    is None if only the envelope changed.
    """
    __slots__ = ['item_id', 'old_envelope', 'envelope', 'confirmation']

    def __init__(self, item_id, old_envelope, envelope, confirmation=None):
        self.item_id = item_id
        self.old_envelope = old_envelope
        self.envelope = envelope
        self.confirmation = confirmation

    def __repr__(self):
        return 'ProofUpdate(%r, confirmation=%r)' % (self.item_id, self.confirmation)

    def apply(self, proof, now=None):
        if self.confirmation is not None:
            proof.confirm(self.confirmation, self.envelope, now)
        else:
            proof.envelope = self.envelope
            proof.touch(now)


def reconcile_proof(proof, upgrader, resolver):
    """Compute the update for a pending proof

    Returns a ProofUpdate, or None if nothing changed. Raises DecodeError if
    the proof's envelope is malformed.
    """
    envelope = proof.envelope_bytes

    new_envelope, changed = upgrader.upgrade(envelope)
    if changed:
        logging.info("Timestamp upgraded for %s" % proof.item_id)

    tree = decode(new_envelope)
    attestations = extract_attestations(tree)

    if attestations:
        logging.info("Found Bitcoin attestation for %s: block %d" % (proof.item_id, attestations[0].block_index))
        confirmation = resolver.resolve(attestations[0])
        return ProofUpdate(proof.item_id, proof.envelope, tree.encode().hex(), confirmation)

    elif changed:
        return ProofUpdate(proof.item_id, proof.envelope, new_envelope.hex())

    else:
        return None


def run_sweep(store, upgrader, resolver):
    """Reconcile all pending proofs in store

    Proofs are processed one at a time; a proof that fails is logged and
    skipped for this sweep only. Updates are applied in one save, and only to
    proofs that are still pending with the envelope the update was computed
    from. Returns the number of proofs changed.
    """
    data = store.load()
    pending = [proof for proof in data['proofs']
               if proof.is_pending and proof.envelope and proof.content_hash]

    if not pending:
        return 0

    logging.info("Checking %d pending timestamp(s)..." % len(pending))

    updates = []
    for proof in pending:
        try:
            update = reconcile_proof(proof, upgrader, resolver)
        except DeserializationError as exp:
            logging.error("Invalid commitment envelope for %s: %s" % (proof.item_id, exp))
            continue
        except Exception as exp:
            logging.error("Error reconciling %s: %r" % (proof.item_id, exp))
            continue

        if update is not None:
            updates.append(update)

    if not updates:
        return 0

    with store.lock:
        data = store.load()
        proofs_by_id = {proof.item_id: proof for proof in data['proofs']}

        now = now_iso()
        applied = 0
        for update in updates:
            proof = proofs_by_id.get(update.item_id)
            if proof is None or not proof.is_pending or proof.envelope != update.old_envelope:
                logging.info("Proof %s changed during sweep; leaving it for the next one" % update.item_id)
                continue

            update.apply(proof, now)
            applied += 1

            if update.confirmation is not None:
                logging.info("%s confirmed at block %d" % (proof.item_id, proof.confirmation_block))

        if not applied:
            return 0

        data['lastUpdated'] = now
        if not store.save(data):
            logging.error("Failed to save proofs; changes will be recomputed next sweep")
            return 0

    logging.info("Proofs data saved.")
    return applied


class ReconciliationScheduler:
    """Run reconciliation sweeps on a background thread

    Sweeps never overlap: a tick that comes due while a sweep is still
    running is skipped.
    """

    def __init__(self, store, upgrader, resolver,
                 interval=DEFAULT_INTERVAL, initial_delay=DEFAULT_INITIAL_DELAY):
        self.store = store
        self.upgrader = upgrader
        self.resolver = resolver
        self.interval = interval
        self.initial_delay = initial_delay

        self._stop_event = threading.Event()
        self._sweep_lock = threading.Lock()
        self._thread = None

    @property
    def is_running(self):
        return self._thread is not None and self._thread.is_alive()

    def run_sweep(self, blocking=True):
        """Run one sweep now

        Safe to call while the scheduler is running. With blocking=False,
        returns None immediately if a sweep is already in progress.
        """
        if not self._sweep_lock.acquire(blocking=blocking):
            logging.info("Previous sweep still running; skipping")
            return None

        try:
            return run_sweep(self.store, self.upgrader, self.resolver)
        finally:
            self._sweep_lock.release()

    def _tick(self):
        try:
            self.run_sweep(blocking=False)
        except Exception as exp:
            logging.error("Error checking pending timestamps: %r" % exp)

    def _run(self):
        next_run = time.monotonic() + self.initial_delay
        while not self._stop_event.wait(max(0, next_run - time.monotonic())):
            self._tick()

            next_run += self.interval
            now = time.monotonic()
            if next_run <= now:
                missed = int((now - next_run) // self.interval) + 1
                logging.info("Sweep overran; skipping %d tick(s)" % missed)
                next_run += missed * self.interval

    def start(self):
        if self.is_running:
            raise RuntimeError("Scheduler already running")

        logging.info("Starting timestamp verification job (interval: %ds)" % self.interval)
        self._stop_event.clear()
        self._thread = threading.Thread(target=self._run, name='sealproof-reconciliation', daemon=True)
        self._thread.start()

    def stop(self, timeout=None):
        """Stop the scheduler

        A sweep in progress is allowed to finish; its save is atomic, so
        stopping never leaves a partially written store. Returns True if the
        thread has stopped.
        """
        self._stop_event.set()
        if self._thread is None:
            return True

        self._thread.join(timeout)
        return not self._thread.is_alive()
