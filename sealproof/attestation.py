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

"""Ledger attestations in a decoded commitment tree"""

import collections

from opentimestamps.core.notary import BitcoinBlockHeaderAttestation, PendingAttestation

Attestation = collections.namedtuple('Attestation', ['block_index', 'block_time'])
Attestation.__new__.__defaults__ = (None,)
Attestation.__doc__ = """Evidence that a commitment was anchored in a block

block_time is the block's unix time when known; Bitcoin block header
attestations only record the height.
"""


def extract_attestations(tree):
    """Collect the Bitcoin block attestations of a tree

    Returned in pre-order: the attestations of a node come before those of
    its children, and children are visited in their stored order. An empty
    list means the commitment hasn't been anchored yet.
    """
    attestations = []
    for index in tree.walk():
        for attestation in tree.nodes[index].attestations:
            if attestation.__class__ == BitcoinBlockHeaderAttestation:
                attestations.append(Attestation(attestation.height))
    return attestations


def is_complete(tree):
    """Determine if the tree is anchored and can be confirmed"""
    for index in tree.walk():
        for attestation in tree.nodes[index].attestations:
            if attestation.__class__ == BitcoinBlockHeaderAttestation:
                return True
    return False


def pending_attestations(tree):
    """Iterate over (node index, PendingAttestation) pairs in pre-order"""
    for index in tree.walk():
        for attestation in tree.nodes[index].attestations:
            if attestation.__class__ == PendingAttestation:
                yield (index, attestation)
