#!/usr/bin/env python

from unittest import TestCase

import hippo_bson
from hippo_bson import BSONObject, ObjectId
from hippo_bson.write_result import WriteResult


class TestWriteResult(TestCase):
    def test_empty(self):
        result = WriteResult()
        self.assertTrue(result.is_acknowledged())
        self.assertFalse(result.has_errors())
        self.assertEqual(result.upserted_ids, {})
        self.assertEqual(result.write_errors, [])
        self.assertIsNone(result.write_concern_error)

    def test_counters(self):
        result = WriteResult(n_inserted=2, n_matched=3, n_modified=1, n_removed=4,
                             n_upserted=0, acknowledged=False)
        self.assertEqual((result.n_inserted, result.n_matched, result.n_modified,
                          result.n_removed, result.n_upserted), (2, 3, 1, 4, 0))
        self.assertFalse(result.is_acknowledged())

    def test_upserted_ids(self):
        oid = ObjectId()
        upserted = hippo_bson.encode({"0": {"index": 0, "_id": oid},
                                      "1": {"index": 3, "_id": 7}})
        result = WriteResult(n_upserted=2, upserted=upserted)
        self.assertEqual(result.upserted_ids, {0: oid, 3: 7})
        self.assertFalse(result.has_errors())

    def test_write_errors(self):
        errors = hippo_bson.encode({"0": {"index": 1, "code": 11000, "errmsg": "duplicate key"}})
        result = WriteResult(write_errors=errors)
        self.assertTrue(result.has_errors())
        self.assertEqual(len(result.write_errors), 1)
        error = result.write_errors[0]
        self.assertEqual((error.index, error.code, error.message), (1, 11000, "duplicate key"))
        self.assertIsNone(error.info)

    def test_write_concern_error(self):
        errors = hippo_bson.encode({"0": {"code": 64, "errmsg": "waiting for replication timed out",
                                          "info": {"wtimeout": True}}})
        result = WriteResult(write_concern_errors=errors)
        self.assertTrue(result.has_errors())
        concern = result.write_concern_error
        self.assertEqual(concern.code, 64)
        self.assertEqual(concern.message, "waiting for replication timed out")
        self.assertEqual(concern.info, BSONObject(wtimeout=True))
