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

"""Persistent store of proofs

All proofs live in a single JSON document:

    {"proofs": [...], "lastUpdated": "2024-01-01T00:00:00.000Z"}

Writers do load -> mutate -> save of the whole document. Within a process
they serialise on ProofStore.lock; separate processes sharing one file can
still lose each other's updates.
"""

import json
import logging
import os
import tempfile
import threading

from sealproof.proof import Proof


class ProofStoreError(Exception):
    """The store document couldn't be read"""


class ProofStore:
    """Proofs stored in a JSON file"""

    def __init__(self, path):
        self.path = path
        self.lock = threading.RLock()

    def load(self):
        """Load all proofs

        Returns {'proofs': [Proof, ...], 'lastUpdated': str or None}. A
        missing file is an empty store; a corrupt one raises ProofStoreError.
        """
        try:
            with open(self.path, 'r', encoding='utf8') as fd:
                doc = json.load(fd)
        except FileNotFoundError:
            return {'proofs': [], 'lastUpdated': None}
        except (OSError, ValueError) as exp:
            raise ProofStoreError("Could not read proof store %r: %s" % (self.path, exp))

        try:
            proofs = [Proof.from_json(obj) for obj in doc.get('proofs', [])]
        except (AttributeError, TypeError, ValueError) as exp:
            raise ProofStoreError("Invalid proof in store %r: %s" % (self.path, exp))

        return {'proofs': proofs, 'lastUpdated': doc.get('lastUpdated')}

    def save(self, data):
        """Replace the whole document

        The new document is written to a temporary file that is then renamed
        over the old one, so readers see either the old or the new document,
        never a partial one. Returns True on success, False on failure.
        """
        doc = {'proofs': [proof.to_json() for proof in data['proofs']],
               'lastUpdated': data.get('lastUpdated')}

        dirname = os.path.dirname(os.path.abspath(self.path))
        tmp_path = None
        try:
            os.makedirs(dirname, exist_ok=True)
            with tempfile.NamedTemporaryFile('w', encoding='utf8', dir=dirname,
                                             prefix='.proofs-', suffix='.tmp', delete=False) as fd:
                tmp_path = fd.name
                json.dump(doc, fd, indent=2)
                fd.flush()
                os.fsync(fd.fileno())

            os.replace(tmp_path, self.path)
            return True

        except (OSError, TypeError, ValueError) as exp:
            logging.error("Error saving proofs to %r: %s" % (self.path, exp))
            if tmp_path is not None:
                try:
                    os.unlink(tmp_path)
                except FileNotFoundError:
                    pass
            return False
