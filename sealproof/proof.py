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

"""Proof records and extraction candidates"""

import collections
import time

PENDING = 'pending'
CONFIRMED = 'confirmed'
STATES = (PENDING, CONFIRMED)

UNKNOWN = 'UNKNOWN'


def iso_timestamp(t):
    """ISO-8601 UTC form of a unix time, with milliseconds"""
    whole, millis = divmod(int(round(t * 1000)), 1000)
    return time.strftime('%Y-%m-%dT%H:%M:%S', time.gmtime(whole)) + '.%03dZ' % millis


def now_iso():
    return iso_timestamp(time.time())


class Proof:
    """Tamper-evidence proof for a single item

    envelope is the hex-encoded commitment envelope. Once state is CONFIRMED
    the confirmation fields are set; confirmation_time stays None if the
    block time couldn't be determined.
    """

    # (attribute, JSON key)
    FIELDS = (('item_id', 'itemId'),
              ('content_hash', 'contentHash'),
              ('envelope', 'commitmentEnvelope'),
              ('state', 'state'),
              ('confirmation_block', 'confirmationBlock'),
              ('confirmation_time', 'confirmationTime'),
              ('confirmation_time_display', 'confirmationTimeDisplay'),
              ('version', 'version'),
              ('packer', 'packer'),
              ('sealed_by', 'sealedBy'),
              ('sealed_at', 'sealedAt'),
              ('image_url', 'imageUrl'),
              ('created_at', 'createdAt'),
              ('updated_at', 'updatedAt'))

    # Keys written by the older bag sealing service
    LEGACY_FIELDS = (('item_id', 'bagId'),
                     ('content_hash', 'hash'),
                     ('envelope', 'otsData'),
                     ('state', 'status'),
                     ('confirmation_block', 'blockHeight'),
                     ('confirmation_time', 'blockTime'),
                     ('confirmation_time_display', 'blockTimeFormatted'),
                     ('sealed_at', 'date'))

    __slots__ = [attr for attr, key in FIELDS] + ['extra']

    def __init__(self, item_id, content_hash=None, envelope=None, state=PENDING,
                 confirmation_block=None, confirmation_time=None, confirmation_time_display=None,
                 version='Unknown', packer='Unknown', sealed_by=None, sealed_at=None,
                 image_url=None, created_at=None, updated_at=None, extra=None):
        if not item_id:
            raise ValueError("itemId is required")
        if state not in STATES:
            raise ValueError("Unknown proof state %r" % state)

        self.item_id = item_id
        self.content_hash = content_hash
        self.envelope = envelope
        self.state = state
        self.confirmation_block = confirmation_block
        self.confirmation_time = confirmation_time
        self.confirmation_time_display = confirmation_time_display
        self.version = version
        self.packer = packer
        self.sealed_by = sealed_by
        self.sealed_at = sealed_at
        self.image_url = image_url
        self.created_at = created_at
        self.updated_at = updated_at
        self.extra = dict(extra) if extra else {}

    def __eq__(self, other):
        if isinstance(other, Proof):
            return self.to_json() == other.to_json()
        else:
            return NotImplemented

    def __repr__(self):
        return 'Proof(%r, state=%r)' % (self.item_id, self.state)

    @property
    def is_pending(self):
        return self.state == PENDING

    @property
    def envelope_bytes(self):
        """Commitment envelope as bytes

        Raises ValueError if the stored envelope isn't valid hex.
        """
        return bytes.fromhex(self.envelope)

    def copy(self):
        return Proof.from_json(self.to_json())

    def touch(self, now=None):
        self.updated_at = now if now is not None else now_iso()

    def confirm(self, confirmation, envelope, now=None):
        """Move to CONFIRMED with the given confirmation and envelope"""
        self.state = CONFIRMED
        self.confirmation_block = confirmation.block
        self.confirmation_time = confirmation.time
        self.confirmation_time_display = confirmation.display
        self.envelope = envelope
        self.touch(now)

    def to_json(self):
        r = dict(self.extra)
        for attr, key in self.FIELDS:
            r[key] = getattr(self, attr)
        return r

    @classmethod
    def normalize(cls, obj):
        """Rename legacy keys of a proof document to the current ones

        Current keys win over legacy ones when both are given.
        """
        obj = dict(obj)

        keys = dict(cls.FIELDS)
        for attr, legacy_key in cls.LEGACY_FIELDS:
            if legacy_key in obj:
                obj.setdefault(keys[attr], obj.pop(legacy_key))

        if obj.get('state') == 'verified':
            obj['state'] = CONFIRMED
        if isinstance(obj.get('confirmationBlock'), str):
            obj['confirmationBlock'] = int(obj['confirmationBlock'])

        return obj

    @classmethod
    def from_json(cls, obj):
        obj = cls.normalize(obj)

        kwargs = {}
        for attr, key in cls.FIELDS:
            if key in obj:
                kwargs[attr] = obj.pop(key)

        kwargs.setdefault('item_id', None)
        if kwargs.get('state') is None:
            kwargs['state'] = PENDING

        return cls(extra=obj, **kwargs)


ExtractionCandidate = collections.namedtuple('ExtractionCandidate', ['item_id', 'version', 'packer'])
ExtractionCandidate.__new__.__defaults__ = (UNKNOWN, UNKNOWN)
ExtractionCandidate.__doc__ = """Item detected in one extraction batch

Fields that couldn't be read are UNKNOWN.
"""


def candidate_from_json(obj):
    item_id = obj.get('itemId', obj.get('bagId'))
    return ExtractionCandidate(item_id,
                               obj.get('version') or UNKNOWN,
                               obj.get('packer') or UNKNOWN)


def candidate_to_json(candidate):
    return {'itemId': candidate.item_id,
            'version': candidate.version,
            'packer': candidate.packer}
