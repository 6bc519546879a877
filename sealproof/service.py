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

"""Operations exposed to the request handling layer"""

import logging

import sealproof.consensus

from sealproof.calendar import CalendarUpgrader
from sealproof.confirm import ConfirmationResolver
from sealproof.explorer import MempoolExplorer
from sealproof.proof import Proof, CONFIRMED, UNKNOWN, now_iso
from sealproof.scheduler import ReconciliationScheduler, DEFAULT_INTERVAL, DEFAULT_INITIAL_DELAY


class PersistenceError(Exception):
    """The proof store couldn't be written"""


class ProofNotFoundError(KeyError):
    def __init__(self, item_id):
        super().__init__(item_id)
        self.item_id = item_id

    def __str__(self):
        return "Proof %r not found" % self.item_id


def check_proof(proof, existing=None):
    """Check a new or updated proof against the proof invariants

    Raises ValueError if the proof is invalid, or isn't a valid successor of
    existing.
    """
    if existing is not None:
        if existing.content_hash and proof.content_hash != existing.content_hash:
            raise ValueError("contentHash of %s can't be changed once set" % proof.item_id)

        if existing.state == CONFIRMED and proof.state != CONFIRMED:
            raise ValueError("%s is already confirmed" % proof.item_id)

    if proof.state == CONFIRMED:
        if proof.confirmation_block is None or proof.confirmation_time_display is None:
            raise ValueError("Confirmed proof %s needs confirmationBlock and confirmationTimeDisplay" % proof.item_id)

    elif (proof.confirmation_block is not None or
          proof.confirmation_time is not None or
          proof.confirmation_time_display is not None):
        raise ValueError("Pending proof %s can't have confirmation fields" % proof.item_id)

    if proof.envelope:
        try:
            bytes.fromhex(proof.envelope)
        except (TypeError, ValueError):
            raise ValueError("commitmentEnvelope of %s isn't hex" % proof.item_id)


def find_proof(data, item_id):
    """Index of item_id in data['proofs'], or -1"""
    for i, proof in enumerate(data['proofs']):
        if proof.item_id == item_id:
            return i
    return -1


class ProofService:
    """Proof creation, lookup and reconciliation

    Request-path operations raise PersistenceError when the store can't be
    written, ProofNotFoundError for unknown items, and ValueError for invalid
    input.
    """

    def __init__(self, store, upgrader=None, resolver=None,
                 interval=DEFAULT_INTERVAL, initial_delay=DEFAULT_INITIAL_DELAY):
        self.store = store
        self.upgrader = upgrader if upgrader is not None else CalendarUpgrader()
        self.resolver = resolver if resolver is not None else ConfirmationResolver(MempoolExplorer())
        self.scheduler = ReconciliationScheduler(store, self.upgrader, self.resolver,
                                                 interval=interval, initial_delay=initial_delay)

    def _save(self, data, now):
        data['lastUpdated'] = now
        if not self.store.save(data):
            raise PersistenceError("Failed to save proofs to %r" % self.store.path)

    def create_or_update_proof(self, fields, sealed_by=None):
        """Create a proof, or update the proof with the same itemId

        fields uses the JSON keys of the store. On update, fields not given
        keep their stored values, and createdAt and sealedBy are never
        replaced. sealed_by is the packer the request's credential belongs
        to.
        """
        fields = Proof.normalize(fields)
        item_id = fields.get('itemId')
        if not item_id:
            raise ValueError("itemId is required")

        now = now_iso()
        with self.store.lock:
            data = self.store.load()
            index = find_proof(data, item_id)

            if index >= 0:
                existing = data['proofs'][index]
                obj = existing.to_json()
                obj.update(fields)
                proof = Proof.from_json(obj)

                proof.created_at = existing.created_at
                if existing.sealed_by:
                    proof.sealed_by = existing.sealed_by
                elif sealed_by is not None:
                    proof.sealed_by = sealed_by

            else:
                existing = None
                proof = Proof.from_json(fields)
                proof.sealed_by = sealed_by
                proof.created_at = now
                if not proof.sealed_at:
                    proof.sealed_at = now

            check_proof(proof, existing)

            if (proof.sealed_by and proof.packer not in ('Unknown', UNKNOWN) and
                    proof.packer != proof.sealed_by):
                logging.warning("Packer mismatch for %s: detected %r, but sealed by %r" %
                                (item_id, proof.packer, proof.sealed_by))

            proof.updated_at = now
            if existing is not None:
                data['proofs'][index] = proof
            else:
                data['proofs'].append(proof)

            self._save(data, now)

        logging.info("%s proof %s" % ("Updated" if existing is not None else "Created", item_id))
        return proof

    def update_proof(self, item_id, updates):
        """Update fields of an existing proof"""
        now = now_iso()
        with self.store.lock:
            data = self.store.load()
            index = find_proof(data, item_id)
            if index < 0:
                raise ProofNotFoundError(item_id)

            existing = data['proofs'][index]
            obj = existing.to_json()
            obj.update(Proof.normalize(dict(updates, itemId=item_id)))
            proof = Proof.from_json(obj)
            proof.created_at = existing.created_at

            check_proof(proof, existing)

            proof.updated_at = now
            data['proofs'][index] = proof
            self._save(data, now)

        return proof

    def get_proof(self, item_id):
        data = self.store.load()
        index = find_proof(data, item_id)
        if index < 0:
            raise ProofNotFoundError(item_id)
        return data['proofs'][index]

    def list_proofs(self):
        return self.store.load()

    def delete_proof(self, item_id):
        """Delete a proof, returning it"""
        with self.store.lock:
            data = self.store.load()
            index = find_proof(data, item_id)
            if index < 0:
                raise ProofNotFoundError(item_id)

            proof = data['proofs'].pop(index)
            self._save(data, now_iso())

        logging.info("Deleted proof %s" % item_id)
        return proof

    def reconcile_fields(self, candidates):
        return sealproof.consensus.reconcile_fields(candidates)

    def run_reconciliation_sweep(self):
        """Run a sweep now; returns the number of proofs changed"""
        return self.scheduler.run_sweep()

    def start(self):
        self.scheduler.start()

    def stop(self, timeout=None):
        return self.scheduler.stop(timeout)
