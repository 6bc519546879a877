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

from sealproof.consensus import most_frequent, reconcile_fields
from sealproof.proof import ExtractionCandidate, UNKNOWN, candidate_from_json


class Test_most_frequent(unittest.TestCase):
    def test_empty(self):
        self.assertIsNone(most_frequent([]))

    def test_majority(self):
        self.assertEqual(most_frequent(['a', 'b', 'b', 'c']), 'b')

    def test_ties(self):
        """Ties go to the first value encountered"""
        self.assertEqual(most_frequent(['b', 'a', 'a', 'b']), 'b')
        self.assertEqual(most_frequent(['a', 'b', 'b', 'a']), 'a')
        self.assertEqual(most_frequent(['c', 'a', 'b']), 'c')


class Test_reconcile_fields(unittest.TestCase):
    def test_fill_unknown_version(self):
        """Unknown version is filled in from the majority"""
        candidates = [ExtractionCandidate('A', 'v1.9.0', 'alice'),
                      ExtractionCandidate('B', UNKNOWN, 'alice'),
                      ExtractionCandidate('C', 'v1.9.0', 'alice'),
                      ExtractionCandidate('D', 'v1.8.0', 'alice')]

        reconciled = reconcile_fields(candidates)

        self.assertEqual([c.version for c in reconciled], ['v1.9.0', 'v1.9.0', 'v1.9.0', 'v1.8.0'])
        self.assertEqual([c.item_id for c in reconciled], ['A', 'B', 'C', 'D'])

        # input is left alone
        self.assertEqual(candidates[1].version, UNKNOWN)

    def test_fields_independent(self):
        """Each field gets its own majority"""
        candidates = [ExtractionCandidate('A', 'v2', UNKNOWN),
                      ExtractionCandidate('B', UNKNOWN, 'bob'),
                      ExtractionCandidate('C', 'v2', 'carol'),
                      ExtractionCandidate('D', UNKNOWN, 'bob')]

        self.assertEqual(reconcile_fields(candidates),
                         [ExtractionCandidate('A', 'v2', 'bob'),
                          ExtractionCandidate('B', 'v2', 'bob'),
                          ExtractionCandidate('C', 'v2', 'carol'),
                          ExtractionCandidate('D', 'v2', 'bob')])

    def test_all_unknown(self):
        """With no concrete values the field stays UNKNOWN"""
        candidates = [ExtractionCandidate('A'), ExtractionCandidate('B')]
        self.assertEqual(reconcile_fields(candidates), candidates)

    def test_empty(self):
        self.assertEqual(reconcile_fields([]), [])

    def test_tie(self):
        """Tied majorities resolve to the first value in the batch"""
        candidates = [ExtractionCandidate('A', 'v1.8.0'),
                      ExtractionCandidate('B', 'v1.9.0'),
                      ExtractionCandidate('C', UNKNOWN)]

        self.assertEqual(reconcile_fields(candidates)[2].version, 'v1.8.0')

    def test_idempotent(self):
        candidates = [ExtractionCandidate('A', 'v1', UNKNOWN),
                      ExtractionCandidate('B', UNKNOWN, 'alice'),
                      ExtractionCandidate('C', 'v2', 'alice')]

        once = reconcile_fields(candidates)
        self.assertEqual(reconcile_fields(once), once)

    def test_from_json(self):
        """Missing and empty fields read as UNKNOWN"""
        self.assertEqual(candidate_from_json({'bagId': 'A', 'version': ''}),
                         ExtractionCandidate('A', UNKNOWN, UNKNOWN))
        self.assertEqual(candidate_from_json({'itemId': 'A', 'version': 'v1', 'packer': 'alice'}),
                         ExtractionCandidate('A', 'v1', 'alice'))


if __name__ == '__main__':
    unittest.main()
