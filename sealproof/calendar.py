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

"""Upgrading pending commitments from remote calendars"""

import logging

import opentimestamps.calendar

from bitcoin.core import b2x
from opentimestamps.calendar import CommitmentNotFoundError, UrlWhitelist
from opentimestamps.core.serialize import DeserializationError

import sealproof

from sealproof.attestation import is_complete, pending_attestations
from sealproof.tree import decode

DEFAULT_WHITELIST = ['https://*.calendar.opentimestamps.org', 'https://*.calendar.eternitywall.com']

DEFAULT_TIMEOUT = 10


def remote_calendar(calendar_uri):
    """Create a remote calendar with User-Agent set appropriately"""
    return opentimestamps.calendar.RemoteCalendar(calendar_uri,
                                                  user_agent="Sealproof/%s" % sealproof.__version__)


def get_attestations(stamp):
    return set(attest for msg, attest in stamp.all_attestations())


class CalendarUpgrader:
    """Ask remote calendars for more complete commitments

    calendar_urls, if given, overrides the calendars recorded in the pending
    attestations themselves. Otherwise only calendars matching whitelist are
    contacted; whitelist=None disables remote calendars entirely.
    """

    def __init__(self, calendar_urls=(), whitelist=DEFAULT_WHITELIST, timeout=DEFAULT_TIMEOUT,
                 calendar_factory=remote_calendar):
        self.calendar_urls = list(calendar_urls)

        if whitelist is None or isinstance(whitelist, UrlWhitelist):
            self.whitelist = whitelist
        else:
            self.whitelist = UrlWhitelist(whitelist)

        self.timeout = timeout
        self.calendar_factory = calendar_factory

    def calendars_for(self, attestation):
        if self.calendar_urls:
            return self.calendar_urls

        elif self.whitelist is None:
            logging.warning("Ignoring attestation from calendar %s: Remote calendars disabled" % attestation.uri)
            return []

        elif attestation.uri in self.whitelist:
            return [attestation.uri]

        else:
            logging.warning("Ignoring attestation from calendar %s: Calendar not in whitelist" % attestation.uri)
            return []

    def fetch(self, calendar_url, commitment):
        """Get the calendar's timestamp for commitment

        Returns None if the calendar doesn't have anything for us, which
        includes the calendar being unreachable.
        """
        logging.debug("Checking calendar %s for %s" % (calendar_url, b2x(commitment)))
        calendar = self.calendar_factory(calendar_url)

        try:
            return calendar.get_timestamp(commitment, timeout=self.timeout)

        except CommitmentNotFoundError as exp:
            logging.debug("Calendar %s: %s" % (calendar_url, exp.reason))

        # URLError and timeouts
        except OSError as exp:
            logging.debug("Calendar %s unreachable: %s" % (calendar_url, exp))

        except DeserializationError as exp:
            logging.warning("Calendar %s returned an invalid timestamp: %s" % (calendar_url, exp))

        # python-opentimestamps raises bare Exception's for unexpected
        # response codes and oversized responses.
        except Exception as exp:
            logging.info("Calendar %s: %s" % (calendar_url, exp))

        return None

    def upgrade(self, envelope):
        """Attempt to upgrade a commitment envelope

        Returns (new_envelope, changed). When nothing new was found, either
        because the calendars had nothing or couldn't be reached,
        new_envelope is the envelope passed in and changed is False.

        Raises DecodeError if envelope is malformed.
        """
        tree = decode(envelope)
        if is_complete(tree):
            return envelope, False

        upgraded = tree.copy()
        existing_attestations = set()
        for node in upgraded.nodes:
            existing_attestations.update(node.attestations)

        changed = False
        for index, attestation in list(pending_attestations(upgraded)):
            commitment = upgraded.nodes[index].msg

            for calendar_url in self.calendars_for(attestation):
                upgraded_stamp = self.fetch(calendar_url, commitment)
                if upgraded_stamp is None:
                    continue

                new_attestations = get_attestations(upgraded_stamp).difference(existing_attestations)
                if new_attestations:
                    logging.info("Got %d new attestation(s) from %s" % (len(new_attestations), calendar_url))
                    for att in new_attestations:
                        logging.debug("    %r" % att)

                    existing_attestations.update(new_attestations)
                    upgraded.merge_timestamp(index, upgraded_stamp)
                    changed = True

        if not changed:
            return envelope, False

        return upgraded.encode(), True
