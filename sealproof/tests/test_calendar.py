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

import unittest
import unittest.mock
import urllib.error

from opentimestamps.calendar import CommitmentNotFoundError
from opentimestamps.core.notary import PendingAttestation
from opentimestamps.core.serialize import DeserializationError
from opentimestamps.core.timestamp import Timestamp

from sealproof.calendar import CalendarUpgrader
from sealproof.tree import decode

from sealproof.tests.fixtures import (CALENDAR_URL, COMPLETE_ENVELOPE, DIGEST, PENDING_ENVELOPE,
                                      commitment, pending_timestamp, serialize_timestamp, upgraded_stamp)


def calendar_factory(**kwargs):
    calendar = unittest.mock.Mock()
    calendar.get_timestamp.configure_mock(**kwargs)
    return unittest.mock.Mock(return_value=calendar), calendar


class Test_CalendarUpgrader(unittest.TestCase):
    def test_upgrade(self):
        """Pending commitment upgraded with the calendar's attestation"""
        factory, calendar = calendar_factory(return_value=upgraded_stamp(commitment()))
        upgrader = CalendarUpgrader(calendar_factory=factory, timeout=7)

        envelope, changed = upgrader.upgrade(PENDING_ENVELOPE)

        self.assertTrue(changed)
        self.assertEqual(envelope, COMPLETE_ENVELOPE)
        factory.assert_called_once_with(CALENDAR_URL)
        calendar.get_timestamp.assert_called_once_with(commitment(), timeout=7)

    def test_not_yet_anchored(self):
        """Calendar without a block attestation yet leaves the envelope alone"""
        error = CommitmentNotFoundError('Pending confirmation in Bitcoin blockchain')
        factory, calendar = calendar_factory(side_effect=error)

        self.assertEqual(CalendarUpgrader(calendar_factory=factory).upgrade(PENDING_ENVELOPE),
                         (PENDING_ENVELOPE, False))

    def test_calendar_errors(self):
        """Calendar failures are treated as nothing new"""
        for error in (urllib.error.URLError('down'),
                      TimeoutError(),
                      DeserializationError('bad timestamp'),
                      Exception('Unknown response from calendar: 500')):
            factory, calendar = calendar_factory(side_effect=error)

            self.assertEqual(CalendarUpgrader(calendar_factory=factory).upgrade(PENDING_ENVELOPE),
                             (PENDING_ENVELOPE, False))

    def test_nothing_new(self):
        """A stamp with no new attestations isn't a change"""
        stamp = Timestamp(commitment())
        stamp.attestations.add(PendingAttestation(CALENDAR_URL))
        factory, calendar = calendar_factory(return_value=stamp)

        self.assertEqual(CalendarUpgrader(calendar_factory=factory).upgrade(PENDING_ENVELOPE),
                         (PENDING_ENVELOPE, False))

    def test_complete(self):
        """Complete envelopes don't contact any calendar"""
        factory, calendar = calendar_factory()

        self.assertEqual(CalendarUpgrader(calendar_factory=factory).upgrade(COMPLETE_ENVELOPE),
                         (COMPLETE_ENVELOPE, False))
        self.assertFalse(factory.called)

    def test_not_whitelisted(self):
        """Calendars outside the whitelist aren't contacted"""
        envelope = serialize_timestamp(pending_timestamp(uri='https://calendar.example.com'))
        factory, calendar = calendar_factory(return_value=upgraded_stamp(commitment()))

        with self.assertLogs(level='WARNING'):
            self.assertEqual(CalendarUpgrader(calendar_factory=factory).upgrade(envelope),
                             (envelope, False))
        self.assertFalse(factory.called)

    def test_remote_calendars_disabled(self):
        factory, calendar = calendar_factory(return_value=upgraded_stamp(commitment()))

        self.assertEqual(CalendarUpgrader(whitelist=None, calendar_factory=factory).upgrade(PENDING_ENVELOPE),
                         (PENDING_ENVELOPE, False))
        self.assertFalse(factory.called)

    def test_calendar_override(self):
        """Explicit calendars replace the recorded ones, whitelist or not"""
        envelope = serialize_timestamp(pending_timestamp(uri='https://calendar.example.com'))
        factory, calendar = calendar_factory(return_value=upgraded_stamp(commitment()))

        upgrader = CalendarUpgrader(calendar_urls=['http://localhost:14788'],
                                    whitelist=None, calendar_factory=factory)
        envelope, changed = upgrader.upgrade(envelope)

        self.assertTrue(changed)
        factory.assert_called_once_with('http://localhost:14788')

    def test_malformed(self):
        """Malformed envelopes raise"""
        factory, calendar = calendar_factory()
        with self.assertRaises(DeserializationError):
            CalendarUpgrader(calendar_factory=factory).upgrade(b'\xde\xad\xbe\xef')

    def test_input_unchanged(self):
        factory, calendar = calendar_factory(return_value=upgraded_stamp(commitment()))
        envelope = bytes(PENDING_ENVELOPE)

        CalendarUpgrader(calendar_factory=factory).upgrade(envelope)

        self.assertEqual(envelope, PENDING_ENVELOPE)
        self.assertEqual(decode(envelope).file_digest, DIGEST)


if __name__ == '__main__':
    unittest.main()
