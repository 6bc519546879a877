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

"""Majority-consensus reconciliation of extracted fields

Bags photographed together were nearly always sealed in the same session, so
a field the vision model couldn't read on one bag is filled in with the value
most of the other bags in the batch agree on.
"""

import collections

from sealproof.proof import UNKNOWN

RECONCILED_FIELDS = ('version', 'packer')


def most_frequent(values):
    """Most frequent value, or None if there are none

    Ties go to the value encountered first.
    """
    # Counter keeps insertion order and most_common() sorts stably.
    most_common = collections.Counter(values).most_common(1)
    if not most_common:
        return None
    return most_common[0][0]


def reconcile_fields(candidates):
    """Replace UNKNOWN fields with the batch majority

    Each of RECONCILED_FIELDS is handled independently. Concrete values are
    never altered, and if a field has no concrete value anywhere in the batch
    it stays UNKNOWN. Returns a new list.
    """
    candidates = list(candidates)

    replacements = {}
    for field in RECONCILED_FIELDS:
        majority = most_frequent(getattr(candidate, field) for candidate in candidates
                                 if getattr(candidate, field) and getattr(candidate, field) != UNKNOWN)
        if majority is not None:
            replacements[field] = majority

    reconciled = []
    for candidate in candidates:
        changes = {field: value for field, value in replacements.items()
                   if getattr(candidate, field) == UNKNOWN}
        reconciled.append(candidate._replace(**changes) if changes else candidate)
    return reconciled
