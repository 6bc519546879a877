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

"""Commitment envelope codec

A commitment envelope is an OpenTimestamps detached timestamp file. The
timestamp proper is a tree: each node is a message, the edges are operations
acting on those messages, and attestations hang off the nodes. Rather than
nesting Timestamp objects the tree is decoded into an arena of nodes indexed
by position, so that every walk over it can use an explicit work stack.
Adversarial envelopes therefore can't exhaust the Python stack, however deep
they are.
"""

import binascii

from bitcoin.core import b2lx

from opentimestamps.core.notary import TimeAttestation, BitcoinBlockHeaderAttestation
from opentimestamps.core.op import Op, CryptOp, MsgValueError
from opentimestamps.core.serialize import (BytesSerializationContext, BytesDeserializationContext,
                                           DeserializationError, RecursionLimitError,
                                           UnsupportedMajorVersion)
from opentimestamps.core.timestamp import DetachedTimestampFile

DecodeError = DeserializationError

MAX_DEPTH = 256
"""Maximum nesting depth accepted while decoding

Same limit python-opentimestamps applies; calendars never produce trees
anywhere near this deep.
"""


def _attestation_sort_key(attestation):
    ctx = BytesSerializationContext()
    attestation.serialize(ctx)
    return ctx.getbytes()


class Node:
    """A message in the commitment tree"""
    __slots__ = ['msg', 'attestations', 'edges']

    def __init__(self, msg, attestations=None, edges=None):
        self.msg = msg
        self.attestations = attestations if attestations is not None else []
        self.edges = edges if edges is not None else []

    def __eq__(self, other):
        if isinstance(other, Node):
            return (self.msg == other.msg and
                    self.attestations == other.attestations and
                    self.edges == other.edges)
        else:
            return NotImplemented

    def __repr__(self):
        return 'Node(<%s>, %r, %r)' % (binascii.hexlify(self.msg).decode('utf8'),
                                        self.attestations, self.edges)

    def child(self, op):
        """Index of the node reached through op, or None"""
        for edge_op, index in self.edges:
            if edge_op == op:
                return index
        return None


class AttestationTree:
    """Decoded commitment envelope

    nodes[0] is the root, whose message is the digest of the sealed content.
    Attestations and edges keep the order they were decoded in, which is what
    makes encode() the exact inverse of decode().
    """

    def __init__(self, file_hash_op, file_digest):
        if len(file_digest) != file_hash_op.DIGEST_LENGTH:
            raise ValueError("File digest length and file_hash_op digest length differ")

        self.file_hash_op = file_hash_op
        self.nodes = [Node(bytes(file_digest))]

    @property
    def root(self):
        return self.nodes[0]

    @property
    def file_digest(self):
        return self.nodes[0].msg

    def __eq__(self, other):
        """Structural equality

        Trees are equal if they have the same messages, attestations and ops
        in the same order, wherever their nodes sit in the arena.
        """
        if not isinstance(other, AttestationTree):
            return NotImplemented

        if self.file_hash_op != other.file_hash_op:
            return False

        stack = [(0, 0)]
        while stack:
            index, other_index = stack.pop()
            node = self.nodes[index]
            other_node = other.nodes[other_index]

            if (node.msg != other_node.msg or
                    node.attestations != other_node.attestations or
                    len(node.edges) != len(other_node.edges)):
                return False

            for (op, child), (other_op, other_child) in zip(node.edges, other_node.edges):
                if op != other_op:
                    return False
                stack.append((child, other_child))

        return True

    def __repr__(self):
        return 'AttestationTree(<%s:%s>, %d nodes)' % (str(self.file_hash_op),
                                                       binascii.hexlify(self.file_digest).decode('utf8'),
                                                       len(self.nodes))

    def add_node(self, msg):
        self.nodes.append(Node(msg))
        return len(self.nodes) - 1

    def copy(self):
        """Copy the tree; the copy can be modified independently"""
        new = AttestationTree(self.file_hash_op, self.file_digest)
        new.nodes = [Node(node.msg, list(node.attestations), list(node.edges))
                     for node in self.nodes]
        return new

    def walk(self):
        """Iterate over node indexes in pre-order

        Children are visited in their stored order.
        """
        stack = [0]
        while stack:
            index = stack.pop()
            yield index

            stack.extend(child for op, child in reversed(self.nodes[index].edges))

    def merge_timestamp(self, index, timestamp):
        """Merge a python-opentimestamps Timestamp into the node at index

        The timestamp must be for the same message as the node. Operations
        already present are followed rather than duplicated, and attestations
        already present aren't added twice.
        """
        if timestamp.msg != self.nodes[index].msg:
            raise ValueError("Can't merge timestamps for different messages together")

        work = [(index, timestamp)]
        while work:
            index, stamp = work.pop()
            node = self.nodes[index]

            for attestation in sorted(stamp.attestations, key=_attestation_sort_key):
                if attestation not in node.attestations:
                    node.attestations.append(attestation)

            for op, op_stamp in stamp.ops.items():
                child = node.child(op)
                if child is None:
                    child = self.add_node(op_stamp.msg)
                    node.edges.append((op, child))

                elif self.nodes[child].msg != op_stamp.msg:
                    raise ValueError("Can't merge timestamps for different messages together")

                work.append((child, op_stamp))

    @classmethod
    def from_timestamp(cls, file_hash_op, timestamp):
        """Build a tree from a python-opentimestamps Timestamp"""
        self = cls(file_hash_op, timestamp.msg)
        self.merge_timestamp(0, timestamp)
        return self

    def _read_nodes(self, ctx, max_depth):
        # Each entry is a node whose item list is still open. The 0xff prefix
        # says another item follows the current one; once a node's final
        # item has been read it is popped before its last child (if any) is
        # pushed.
        stack = [(0, 0)]
        while stack:
            index, depth = stack[-1]
            node = self.nodes[index]

            tag = ctx.read_bytes(1)
            if tag == b'\xff':
                tag = ctx.read_bytes(1)
            else:
                stack.pop()

            if tag == b'\x00':
                node.attestations.append(TimeAttestation.deserialize(ctx))

            else:
                op = Op.deserialize_from_tag(ctx, tag)

                try:
                    result = op(node.msg)
                except MsgValueError as exp:
                    raise DeserializationError("Invalid timestamp; message invalid for op %r: %r" % (op, exp))

                if depth + 1 >= max_depth:
                    raise RecursionLimitError("Reached timestamp recursion depth limit while deserializing")

                child = self.add_node(result)
                node.edges.append((op, child))
                stack.append((child, depth + 1))

    def _write_nodes(self, ctx):
        # Work items are either ('node', index) to be expanded, or an
        # attestation/op to be written out.
        work = [('node', 0)]
        while work:
            kind, item = work.pop()

            if kind == 'attestation':
                ctx.write_bytes(b'\x00')
                item.serialize(ctx)

            elif kind == 'op':
                item.serialize(ctx)

            elif kind == 'more':
                ctx.write_bytes(b'\xff')

            else:
                node = self.nodes[item]
                if not node.attestations and not node.edges:
                    raise ValueError("An empty timestamp can't be serialized")

                expanded = []
                for attestation in node.attestations:
                    expanded.append([('attestation', attestation)])
                for op, child in node.edges:
                    expanded.append([('op', op), ('node', child)])

                for entry in expanded[:-1]:
                    entry.insert(0, ('more', None))

                for entry in reversed(expanded):
                    work.extend(reversed(entry))

    def encode(self):
        """Serialize to detached timestamp file bytes"""
        ctx = BytesSerializationContext()
        ctx.write_bytes(DetachedTimestampFile.HEADER_MAGIC)
        ctx.write_varuint(DetachedTimestampFile.MAJOR_VERSION)

        self.file_hash_op.serialize(ctx)
        ctx.write_bytes(self.file_digest)

        self._write_nodes(ctx)
        return ctx.getbytes()

    def str_tree(self):
        """Render the tree for humans"""
        lines = []
        work = [('node', 0, 0)]
        while work:
            kind, item, indent = work.pop()

            if kind == 'line':
                lines.append(" "*indent + item)
                continue

            node = self.nodes[item]
            for attestation in node.attestations:
                lines.append(" "*indent + "verify %s" % str(attestation))
                if attestation.__class__ == BitcoinBlockHeaderAttestation:
                    lines.append(" "*indent + "# Bitcoin block merkle root " + b2lx(node.msg))

            # A single op continues at the same indent; branches are indented.
            if len(node.edges) > 1:
                for op, child in reversed(node.edges):
                    work.append(('node', child, indent + 4))
                    work.append(('line', " -> %s" % str(op), indent))

            elif node.edges:
                op, child = node.edges[0]
                work.append(('node', child, indent))
                work.append(('line', str(op), indent))

        return "\n".join(lines) + "\n"


def decode(envelope, max_depth=MAX_DEPTH):
    """Decode commitment envelope bytes

    Raises DecodeError if the bytes aren't a well-formed detached timestamp
    file.
    """
    if not isinstance(envelope, bytes):
        raise TypeError("Expected envelope to be bytes; got %r" % envelope.__class__)

    ctx = BytesDeserializationContext(envelope)
    ctx.assert_magic(DetachedTimestampFile.HEADER_MAGIC)

    major = ctx.read_varuint()
    if major != DetachedTimestampFile.MAJOR_VERSION:
        raise UnsupportedMajorVersion("Version %d detached timestamp files are not supported" % major)

    file_hash_op = CryptOp.deserialize(ctx)
    file_digest = ctx.read_bytes(file_hash_op.DIGEST_LENGTH)

    tree = AttestationTree(file_hash_op, file_digest)
    tree._read_nodes(ctx, max_depth)

    ctx.assert_eof()
    return tree


def encode(tree):
    return tree.encode()
