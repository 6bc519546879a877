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

"""Turning attestations into displayable confirmations"""

import logging
import time

from sealproof.proof import iso_timestamp


def display_timestamp(block_time):
    """Locale formatted form of a unix time"""
    return time.strftime('%c %Z', time.localtime(block_time))


class Confirmation:
    """Resolved confirmation of a proof

    time is None when the block time couldn't be determined; display then
    reads 'Block #<n> (time unknown)' and degraded is set.
    """
    __slots__ = ['block', 'time', 'display', 'degraded']

    def __init__(self, block, time, display, degraded=False):
        self.block = block
        self.time = time
        self.display = display
        self.degraded = degraded

    def __eq__(self, other):
        if isinstance(other, Confirmation):
            return (self.block == other.block and
                    self.time == other.time and
                    self.display == other.display and
                    self.degraded == other.degraded)
        else:
            return NotImplemented

    def __repr__(self):
        return 'Confirmation(%r, %r, %r, degraded=%r)' % (self.block, self.time, self.display, self.degraded)


class ConfirmationResolver:
    """Resolve attestations, looking up missing block times with explorer

    explorer may be None, in which case attestations without a block time
    always resolve degraded.
    """

    def __init__(self, explorer=None):
        self.explorer = explorer

    def degraded(self, block_index):
        return Confirmation(block_index, None, 'Block #%d (time unknown)' % block_index, degraded=True)

    def resolve(self, attestation):
        """Resolve an attestation to a Confirmation

        Never raises: if the block time can't be found the confirmation is
        degraded instead.
        """
        block_index = attestation.block_index
        block_time = attestation.block_time

        if block_time is None and self.explorer is not None:
            try:
                block_time = self.explorer.get_block_time(block_index)
            except Exception as exp:
                logging.info("Could not fetch time of block %d: %s" % (block_index, exp))

        if block_time is None:
            return self.degraded(block_index)

        try:
            return Confirmation(block_index, iso_timestamp(block_time), display_timestamp(block_time))
        except (OverflowError, OSError, ValueError, TypeError) as exp:
            logging.info("Block %d has an invalid time %r: %s" % (block_index, block_time, exp))
            return self.degraded(block_index)
