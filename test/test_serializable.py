#!/usr/bin/env python

from types import SimpleNamespace
from unittest import TestCase

import hippo_bson
from hippo_bson import (BSONObject, CallbackError, ConversionOptions,
                        PCLASS_KEY, Persistable, Serializable, TypeMap,
                        UnsupportedType)


class Point(Serializable):
    def __init__(self, x, y):
        self.x = x
        self.y = y

    def bson_serialize(self):
        return {"x": self.x, "y": self.y}


class Pair(Serializable):
    def bson_serialize(self):
        return {0: "first", 1: "second"}


class Stored(Persistable):
    def __init__(self, name):
        self.name = name

    def bson_serialize(self):
        return {"name": self.name}


class Tagged(Persistable):
    def bson_serialize(self):
        return {PCLASS_KEY: "custom", "a": 1}


class ReturnsList(Serializable):
    def bson_serialize(self):
        return [1, 2]


class Broken(Serializable):
    def bson_serialize(self):
        raise RuntimeError("boom")


class Account(BSONObject):
    def __init__(self, balance):
        super().__init__()
        self.__balance = balance
        self.owner = "me"


class Ledger(BSONObject):
    def __init__(self, private, public):
        super().__init__()
        self.__balance = private
        self.balance = public


class TestSerializable(TestCase):
    def test_nested(self):
        data = hippo_bson.encode({"p": Point(1, 2)})
        self.assertEqual(hippo_bson.decode(data), {"p": {"x": 1, "y": 2}})

    def test_root(self):
        self.assertEqual(hippo_bson.decode(hippo_bson.encode(Point(3, 4))), {"x": 3, "y": 4})

    def test_packed_result_is_an_array(self):
        data = hippo_bson.encode({"p": Pair()})
        self.assertEqual(data[4], 0x04)
        self.assertEqual(hippo_bson.decode(data), {"p": ["first", "second"]})

    def test_non_mapping_result(self):
        with self.assertRaises(CallbackError):
            hippo_bson.encode({"p": ReturnsList()})

    def test_raising_hook(self):
        with self.assertRaises(CallbackError) as ctx:
            hippo_bson.encode({"p": Broken()})
        self.assertIsInstance(ctx.exception.__cause__, RuntimeError)


class TestPersistable(TestCase):
    def test_class_name_added(self):
        doc = hippo_bson.decode(hippo_bson.encode({"s": Stored("n")}))
        self.assertEqual(doc["s"], {"name": "n",
                                    PCLASS_KEY: f"{Stored.__module__}.{Stored.__qualname__}"})

    def test_existing_class_name_kept(self):
        doc = hippo_bson.decode(hippo_bson.encode({"t": Tagged()}))
        self.assertEqual(doc["t"], {PCLASS_KEY: "custom", "a": 1})


class TestObjects(TestCase):
    def test_private_names_unmangled(self):
        doc = hippo_bson.decode(hippo_bson.encode({"acct": Account(10)}))
        self.assertEqual(doc["acct"], {"balance": 10, "owner": "me"})

    def test_namespace_is_a_document(self):
        value = SimpleNamespace(**{"0": "a", "1": "b"})
        data = hippo_bson.encode({"ns": value})
        self.assertEqual(data[4], 0x03)
        self.assertEqual(hippo_bson.decode(data), {"ns": {"0": "a", "1": "b"}})

    def test_root_object(self):
        self.assertEqual(hippo_bson.decode(hippo_bson.encode(BSONObject(a=1))), {"a": 1})

    def test_non_string_attribute(self):
        value = SimpleNamespace()
        value.__dict__[1] = "x"
        with self.assertRaises(UnsupportedType):
            hippo_bson.encode({"ns": value})

    def test_unmangled_name_clash(self):
        with self.assertRaises(UnsupportedType) as ctx:
            hippo_bson.encode({"l": Ledger(10, 99)})
        self.assertEqual(ctx.exception.key, "balance")

    def test_library_prefixes_kept(self):
        options = ConversionOptions(document_type=TypeMap.OBJECT)
        source = {"_object__x": 1, "_BSONObject__y": 2, "_SimpleNamespace__z": 3}
        decoded = hippo_bson.decode(hippo_bson.encode(source), options)
        self.assertEqual(hippo_bson.decode(hippo_bson.encode(decoded)), source)

    def test_field_shadowing_a_method(self):
        options = ConversionOptions(document_type=TypeMap.OBJECT)
        decoded = hippo_bson.decode(hippo_bson.encode({"to_dict": 1}), options)
        self.assertEqual(decoded["to_dict"], 1)
        self.assertEqual(vars(decoded), {"to_dict": 1})
        self.assertEqual(hippo_bson.decode(hippo_bson.encode(decoded)), {"to_dict": 1})
