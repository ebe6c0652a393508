#!/usr/bin/python -OOOO
# vim: set fileencoding=utf8 shiftwidth=4 tabstop=4 textwidth=80 foldmethod=marker :
# Copyright (c) 2010, Kou Man Tong. All rights reserved.
# For licensing, see LICENSE file included in the package.
"""
Write acknowledgement reporting.

A server acknowledgement carries up to three sub-documents: the upserted ids,
the write errors and the write concern errors, each a document keyed "0",
"1", ... whose values are records. They are decoded with
WRITE_RESULT_OPTIONS, so every record comes back as a BSONObject.
"""
from typing import Any, Dict, List, Optional

from hippo_bson.decoder import Decoder
from hippo_bson.options import WRITE_RESULT_OPTIONS
from hippo_bson.types import BSONObject


def _records(data: Optional[bytes]) -> List[BSONObject]:
    if not data:
        return []
    root = Decoder(data, WRITE_RESULT_OPTIONS).convert()
    return [record for record in vars(root).values() if isinstance(record, BSONObject)]


class WriteError:
    def __init__(self, message: Optional[str]=None, code: Optional[int]=None,
                 index: Optional[int]=None, info: Any=None):
        self.message = message
        self.code = code
        self.index = index
        self.info = info

    @classmethod
    def from_record(cls, record: BSONObject) -> "WriteError":
        fields = vars(record)
        return cls(fields.get("errmsg"), fields.get("code"),
                   fields.get("index"), fields.get("info"))

    def __repr__(self) -> str:
        return f"WriteError(index={self.index!r}, code={self.code!r}, message={self.message!r})"


class WriteConcernError:
    def __init__(self, message: Optional[str]=None, code: Optional[int]=None, info: Any=None):
        self.message = message
        self.code = code
        self.info = info

    @classmethod
    def from_record(cls, record: BSONObject) -> "WriteConcernError":
        fields = vars(record)
        return cls(fields.get("errmsg"), fields.get("code"), fields.get("info"))

    def __repr__(self) -> str:
        return f"WriteConcernError(code={self.code!r}, message={self.message!r})"


class WriteResult:
    """
    Counters of a bulk write plus the decoded upserted ids and errors.

    upserted, write_errors and write_concern_errors are the raw BSON
    sub-documents of the acknowledgement; any of them may be empty.
    """

    def __init__(self, n_inserted: int=0, n_matched: int=0, n_modified: int=0,
                 n_removed: int=0, n_upserted: int=0,
                 upserted: Optional[bytes]=None,
                 write_errors: Optional[bytes]=None,
                 write_concern_errors: Optional[bytes]=None,
                 acknowledged: bool=True):
        self.n_inserted = n_inserted
        self.n_matched = n_matched
        self.n_modified = n_modified
        self.n_removed = n_removed
        self.n_upserted = n_upserted
        self.acknowledged = acknowledged

        self.upserted_ids: Dict[int, Any] = {}
        for record in _records(upserted):
            fields = vars(record)
            self.upserted_ids[fields.get("index")] = fields.get("_id")

        self.write_errors = [WriteError.from_record(record)
                             for record in _records(write_errors)]

        concern_errors = _records(write_concern_errors)
        self.write_concern_error: Optional[WriteConcernError] = None
        if concern_errors:
            self.write_concern_error = WriteConcernError.from_record(concern_errors[0])

    def is_acknowledged(self) -> bool:
        return self.acknowledged

    def has_errors(self) -> bool:
        return bool(self.write_errors) or self.write_concern_error is not None
