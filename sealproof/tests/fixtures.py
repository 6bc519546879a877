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

"""Commitment envelopes shared by the tests"""

from opentimestamps.core.notary import BitcoinBlockHeaderAttestation, PendingAttestation
from opentimestamps.core.op import OpAppend, OpSHA256
from opentimestamps.core.serialize import BytesSerializationContext
from opentimestamps.core.timestamp import Timestamp, DetachedTimestampFile

from sealproof.proof import Proof
from sealproof.tree import AttestationTree

DIGEST = bytes(range(32))
CONTENT_HASH = DIGEST.hex()

CALENDAR_URL = 'https://alice.btc.calendar.opentimestamps.org'
BLOCK_HEIGHT = 800000
BLOCK_TIME = 1700000000
BLOCK_TIME_ISO = '2023-11-14T22:13:20.000Z'


def serialize_timestamp(timestamp):
    ctx = BytesSerializationContext()
    DetachedTimestampFile(OpSHA256(), timestamp).serialize(ctx)
    return ctx.getbytes()


def pending_timestamp(digest=DIGEST, uri=CALENDAR_URL):
    t = Timestamp(digest)
    t1 = t.ops.add(OpAppend(b'\x01'))
    t1.attestations.add(PendingAttestation(uri))
    return t


def commitment(digest=DIGEST):
    """Message the calendar of pending_timestamp() committed to"""
    return digest + b'\x01'


def upgraded_stamp(msg, height=BLOCK_HEIGHT):
    """What a calendar returns once msg is anchored in block height"""
    stamp = Timestamp(msg)
    s1 = stamp.ops.add(OpSHA256())
    s1.attestations.add(BitcoinBlockHeaderAttestation(height))
    return stamp


def complete_timestamp(digest=DIGEST, height=BLOCK_HEIGHT):
    t = pending_timestamp(digest)
    t.ops[OpAppend(b'\x01')].merge(upgraded_stamp(commitment(digest), height))
    return t


PENDING_ENVELOPE = serialize_timestamp(pending_timestamp())
COMPLETE_ENVELOPE = serialize_timestamp(complete_timestamp())


def chain_envelope(length):
    """Envelope whose attestation sits at the end of a chain of length ops"""
    tree = AttestationTree(OpSHA256(), DIGEST)
    index = 0
    for i in range(length):
        op = OpSHA256()
        child = tree.add_node(op(tree.nodes[index].msg))
        tree.nodes[index].edges.append((op, child))
        index = child
    tree.nodes[index].attestations.append(BitcoinBlockHeaderAttestation(length))
    return tree.encode()


def pending_proof(item_id='B1', envelope=PENDING_ENVELOPE, **kwargs):
    kwargs.setdefault('content_hash', CONTENT_HASH)
    kwargs.setdefault('created_at', '2024-01-01T00:00:00.000Z')
    kwargs.setdefault('updated_at', '2024-01-01T00:00:00.000Z')
    return Proof(item_id, envelope=envelope.hex(), **kwargs)
