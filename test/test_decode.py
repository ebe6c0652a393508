#!/usr/bin/env python

import struct
from unittest import TestCase

import hippo_bson
from hippo_bson import (BSONObject, ConversionOptions, CorruptDocument,
                        DecodeError, MaxDepthExceeded, TypeMap)
from hippo_bson.element_types import ELEMENT_TYPES
from hippo_bson.reader import BSONReader, _readers


def bson_document(*elements):
    body = b"".join(elements)
    return struct.pack("<i", len(body) + 5) + body + b"\x00"


class TestRoundtrip(TestCase):
    def test_tree(self):
        value = {
            "int": 42,
            "long": 2 ** 40,
            "float": 0.5,
            "str": "text",
            "true": True,
            "none": None,
            "doc": {"nested": {"deeper": [1, 2, {"x": "y"}]}},
            "list": ["a", 1, None, []],
        }
        self.assertEqual(hippo_bson.decode(hippo_bson.encode(value)), value)

    def test_loads_dumps(self):
        self.assertEqual(hippo_bson.loads(hippo_bson.dumps({"a": [1, 2]})), {"a": [1, 2]})


class TestTypeMaps(TestCase):
    def test_object_documents(self):
        options = ConversionOptions(document_type=TypeMap.OBJECT)
        doc = hippo_bson.decode(hippo_bson.encode({"a": {"b": 1}, "l": [1, 2]}), options)
        self.assertIsInstance(doc, BSONObject)
        self.assertIsInstance(doc.a, BSONObject)
        self.assertEqual(doc.a.b, 1)
        self.assertEqual(doc.l, [1, 2])

    def test_object_arrays(self):
        options = ConversionOptions(array_type=TypeMap.OBJECT)
        doc = hippo_bson.decode(hippo_bson.encode({"l": ["x", "y"]}), options)
        self.assertIsInstance(doc, dict)
        self.assertIsInstance(doc["l"], BSONObject)
        self.assertEqual(doc["l"]["0"], "x")
        self.assertEqual(doc["l"]["1"], "y")


class TestCorruption(TestCase):
    def assertCorrupt(self, data):
        with self.assertRaises(CorruptDocument):
            hippo_bson.decode(data)

    def test_empty(self):
        self.assertCorrupt(b"")

    def test_truncated(self):
        self.assertCorrupt(hippo_bson.encode({"a": 1})[:-3])

    def test_length_too_small(self):
        self.assertCorrupt(b'\x04\x00\x00\x00\x00')

    def test_missing_terminator(self):
        self.assertCorrupt(b'\x05\x00\x00\x00\x01')

    def test_unknown_type(self):
        self.assertCorrupt(b'\x08\x00\x00\x00\x20a\x00\x00')

    def test_string_length_overrun(self):
        self.assertCorrupt(b'\x0e\x00\x00\x00\x02s\x00\x40\x00\x00\x00a\x00\x00')

    def test_element_overrun(self):
        self.assertCorrupt(b'\x0a\x00\x00\x00\x10a\x00\x01\x00\x00')

    def test_trailing_bytes(self):
        self.assertCorrupt(hippo_bson.encode({"a": 1}) + b"\x01\x02")

    def test_nested_corruption(self):
        inner = b'\x05\x00\x00\x00\x01'
        self.assertCorrupt(bson_document(b"\x03d\x00" + inner))

    def test_offset_reported(self):
        with self.assertRaises(CorruptDocument) as ctx:
            hippo_bson.decode(b'\x05\x00\x00\x00\x01')
        self.assertEqual(ctx.exception.offset, 4)
        self.assertIsInstance(ctx.exception, DecodeError)


class TestSkippedTypes(TestCase):
    def test_deprecated_and_unsupported_elements_dropped(self):
        data = bson_document(
            b"\x10a\x00" + struct.pack("<i", 1),
            b"\x06undefined\x00",
            b"\x0esymbol\x00" + struct.pack("<i", 4) + b"sym\x00",
            b"\x0cpointer\x00" + struct.pack("<i", 5) + b"coll\x00" + b"\x01" * 12,
            b"\x13decimal\x00" + b"\x00" * 16,
            b"\x02b\x00" + struct.pack("<i", 2) + b"x\x00",
        )
        self.assertEqual(hippo_bson.decode(data), {"a": 1, "b": "x"})

    def test_skipped_elements_still_checked(self):
        with self.assertRaises(CorruptDocument):
            hippo_bson.decode(bson_document(b"\x13decimal\x00" + b"\x00" * 8))


class TestDecodeBehaviour(TestCase):
    def test_first_duplicate_wins(self):
        data = bson_document(
            b"\x10k\x00" + struct.pack("<i", 1),
            b"\x10k\x00" + struct.pack("<i", 2),
        )
        self.assertEqual(hippo_bson.decode(data), {"k": 1})

    def test_multiple_documents(self):
        data = hippo_bson.encode({"n": 1}) + hippo_bson.encode({"n": 2})
        self.assertEqual(hippo_bson.decode(data), {"n": 2})
        self.assertEqual(hippo_bson.decode_all(data), [{"n": 1}, {"n": 2}])

    def test_reader(self):
        first, second = hippo_bson.encode({"n": 1}), hippo_bson.encode({"n": 2})
        reader = BSONReader(first + second)
        self.assertEqual(reader.read(), first)
        self.assertEqual(reader.offset, len(first))
        self.assertEqual(reader.read(), second)
        self.assertIsNone(reader.read())

    def test_depth(self):
        value = {}
        for _ in range(5):
            value = {"a": value}
        data = hippo_bson.encode(value)
        hippo_bson.decode(data, ConversionOptions(max_depth=6))
        with self.assertRaises(MaxDepthExceeded):
            hippo_bson.decode(data, ConversionOptions(max_depth=5))

    def test_every_element_type_is_readable(self):
        self.assertEqual(set(_readers), set(ELEMENT_TYPES))
