#!/usr/bin/python -OOOO
# vim: set fileencoding=utf8 shiftwidth=4 tabstop=4 textwidth=80 foldmethod=marker :
# Copyright (c) 2010, Kou Man Tong. All rights reserved.
# For licensing, see LICENSE file included in the package.
"""
Streaming BSON reader.

BSONReader splits a buffer of concatenated documents; iter_elements() walks
the elements of one document and yields (element_type, key, payload). Every
standard element type is understood, whether or not the decoder has a use
for it, and anything malformed raises CorruptDocument.
"""
import struct
from typing import Any, Callable, Dict, Iterator, Optional, Tuple

from hippo_bson.element_types import (BSON_ARRAY, BSON_BINARY, BSON_BOOLEAN,
                                      BSON_CODE, BSON_CODE_W_SCOPE, BSON_DATETIME,
                                      BSON_DBPOINTER, BSON_DECIMAL128, BSON_DOCUMENT,
                                      BSON_DOUBLE, BSON_INT32, BSON_INT64,
                                      BSON_MAX_KEY, BSON_MIN_KEY, BSON_NULL,
                                      BSON_OBJECT_ID, BSON_REGEX, BSON_STRING,
                                      BSON_SYMBOL, BSON_TIMESTAMP, BSON_UNDEFINED)
from hippo_bson.errors import CorruptDocument
from hippo_bson.types import OLD_BINARY_SUBTYPE

Element = Tuple[int, str, Any]
PayloadReader = Callable[[bytes, int, int], Tuple[Any, int]]

_INT32 = struct.Struct("<i")
_INT64 = struct.Struct("<q")
_DOUBLE = struct.Struct("<d")
_TIMESTAMP = struct.Struct("<II")
_BINARY_HEADER = struct.Struct("<iB")

# Smallest document: int32 length plus the trailing NUL.
MIN_DOCUMENT_SIZE = 5

_readers: Dict[int, PayloadReader] = {}


def _reader(*element_types: int) -> Callable[[PayloadReader], PayloadReader]:
    def register(fun: PayloadReader) -> PayloadReader:
        for element_type in element_types:
            _readers[element_type] = fun
        return fun
    return register


def _require(position: int, size: int, end: int) -> None:
    if size < 0 or position + size > end:
        raise CorruptDocument("unexpected end of document", position)


def _decode_utf8(raw: bytes, position: int) -> str:
    try:
        return raw.decode("utf-8")
    except UnicodeDecodeError:
        raise CorruptDocument("invalid UTF-8 string", position) from None


def _read_cstring(data: bytes, position: int, end: int) -> Tuple[str, int]:
    try:
        nul = data.index(0, position, end)
    except ValueError:
        raise CorruptDocument("unterminated cstring", position) from None
    return _decode_utf8(data[position:nul], position), nul + 1


def _read_fixed(data: bytes, position: int, end: int, layout: struct.Struct) -> Tuple[Any, int]:
    _require(position, layout.size, end)
    return layout.unpack_from(data, position)[0], position + layout.size


@_reader(BSON_DOUBLE)
def _read_double(data: bytes, position: int, end: int) -> Tuple[float, int]:
    return _read_fixed(data, position, end, _DOUBLE)


@_reader(BSON_STRING, BSON_CODE, BSON_SYMBOL)
def _read_string(data: bytes, position: int, end: int) -> Tuple[str, int]:
    length, position = _read_fixed(data, position, end, _INT32)
    if length < 1:
        raise CorruptDocument("invalid string length", position)
    _require(position, length, end)
    if data[position + length - 1] != 0:
        raise CorruptDocument("string is not NUL terminated", position)
    # Explicit length: embedded NULs belong to the string.
    return _decode_utf8(data[position:position + length - 1], position), position + length


@_reader(BSON_DOCUMENT, BSON_ARRAY)
def _read_subdocument(data: bytes, position: int, end: int) -> Tuple[bytes, int]:
    length, _ = _read_fixed(data, position, end, _INT32)
    if length < MIN_DOCUMENT_SIZE:
        raise CorruptDocument("invalid document length", position)
    _require(position, length, end)
    if data[position + length - 1] != 0:
        raise CorruptDocument("document is not NUL terminated", position)
    return data[position:position + length], position + length


@_reader(BSON_BINARY)
def _read_binary(data: bytes, position: int, end: int) -> Tuple[Tuple[int, bytes], int]:
    _require(position, _BINARY_HEADER.size, end)
    length, subtype = _BINARY_HEADER.unpack_from(data, position)
    position += _BINARY_HEADER.size
    _require(position, length, end)
    if subtype == OLD_BINARY_SUBTYPE:
        inner_length, _ = _read_fixed(data, position, end, _INT32)
        if inner_length != length - 4:
            raise CorruptDocument("invalid binary (subtype 2) length", position)
        return (subtype, data[position + 4:position + length]), position + length
    return (subtype, data[position:position + length]), position + length


@_reader(BSON_UNDEFINED, BSON_NULL, BSON_MIN_KEY, BSON_MAX_KEY)
def _read_empty(data: bytes, position: int, end: int) -> Tuple[None, int]:
    return None, position


@_reader(BSON_OBJECT_ID)
def _read_object_id(data: bytes, position: int, end: int) -> Tuple[bytes, int]:
    _require(position, 12, end)
    return data[position:position + 12], position + 12


@_reader(BSON_BOOLEAN)
def _read_boolean(data: bytes, position: int, end: int) -> Tuple[bool, int]:
    _require(position, 1, end)
    value = data[position]
    if value not in (0, 1):
        raise CorruptDocument("invalid boolean value", position)
    return value == 1, position + 1


@_reader(BSON_DATETIME, BSON_INT64)
def _read_int64(data: bytes, position: int, end: int) -> Tuple[int, int]:
    return _read_fixed(data, position, end, _INT64)


@_reader(BSON_REGEX)
def _read_regex(data: bytes, position: int, end: int) -> Tuple[Tuple[str, str], int]:
    pattern, position = _read_cstring(data, position, end)
    flags, position = _read_cstring(data, position, end)
    return (pattern, flags), position


@_reader(BSON_DBPOINTER)
def _read_dbpointer(data: bytes, position: int, end: int) -> Tuple[Tuple[str, bytes], int]:
    collection, position = _read_string(data, position, end)
    oid, position = _read_object_id(data, position, end)
    return (collection, oid), position


@_reader(BSON_CODE_W_SCOPE)
def _read_code_w_scope(data: bytes, position: int, end: int) -> Tuple[Tuple[str, bytes], int]:
    start = position
    length, position = _read_fixed(data, position, end, _INT32)
    # int32 + empty string (5 bytes) + empty document (5 bytes)
    if length < 14:
        raise CorruptDocument("invalid code with scope length", start)
    _require(start, length, end)
    scope_end = start + length
    code, position = _read_string(data, position, scope_end)
    scope, position = _read_subdocument(data, position, scope_end)
    if position != scope_end:
        raise CorruptDocument("code with scope length mismatch", start)
    return (code, scope), position


@_reader(BSON_INT32)
def _read_int32(data: bytes, position: int, end: int) -> Tuple[int, int]:
    return _read_fixed(data, position, end, _INT32)


@_reader(BSON_TIMESTAMP)
def _read_timestamp(data: bytes, position: int, end: int) -> Tuple[Tuple[int, int], int]:
    _require(position, _TIMESTAMP.size, end)
    increment, timestamp = _TIMESTAMP.unpack_from(data, position)
    return (timestamp, increment), position + _TIMESTAMP.size


@_reader(BSON_DECIMAL128)
def _read_decimal128(data: bytes, position: int, end: int) -> Tuple[bytes, int]:
    _require(position, 16, end)
    return data[position:position + 16], position + 16


def iter_elements(document: bytes) -> Iterator[Element]:
    """
    Yields (element_type, key, payload) for each element of a document whose
    framing (length prefix and trailing NUL) has already been checked.
    """
    end = len(document) - 1
    position = 4
    while position < end:
        element_type = document[position]
        key, position = _read_cstring(document, position + 1, end)
        read = _readers.get(element_type)
        if read is None:
            raise CorruptDocument(f"unknown element type 0x{element_type:02x}", position)
        payload, position = read(document, position, end)
        yield element_type, key, payload
    if position != end:
        raise CorruptDocument("element runs past end of document", position)


class BSONReader:
    """
    Reads the documents of a buffer that holds one or more BSON documents
    back to back.
    """

    def __init__(self, data: bytes):
        self._data = bytes(data)
        self._offset = 0

    @property
    def offset(self) -> int:
        return self._offset

    def read(self) -> Optional[bytes]:
        """
        Returns the next document, or None once the buffer is exhausted.
        """
        data, offset = self._data, self._offset
        remaining = len(data) - offset
        if remaining <= 0:
            return None
        if remaining < MIN_DOCUMENT_SIZE:
            raise CorruptDocument("truncated document", offset)
        length = _INT32.unpack_from(data, offset)[0]
        if length < MIN_DOCUMENT_SIZE or length > remaining:
            raise CorruptDocument("invalid document length", offset)
        if data[offset + length - 1] != 0:
            raise CorruptDocument("missing null-terminator in document", offset + length - 1)
        self._offset = offset + length
        return data[offset:offset + length]

    def __iter__(self) -> Iterator[bytes]:
        while True:
            document = self.read()
            if document is None:
                return
            yield document
