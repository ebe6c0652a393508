#!/usr/bin/python -OOOO
# vim: set fileencoding=utf8 shiftwidth=4 tabstop=4 textwidth=80 foldmethod=marker :
# Copyright (c) 2010, Kou Man Tong. All rights reserved.
# For licensing, see LICENSE file included in the package.
"""
BSON element type bytes, shared by the reader and the decoder.
"""

BSON_DOUBLE = 0x01
BSON_STRING = 0x02
BSON_DOCUMENT = 0x03
BSON_ARRAY = 0x04
BSON_BINARY = 0x05
BSON_UNDEFINED = 0x06
BSON_OBJECT_ID = 0x07
BSON_BOOLEAN = 0x08
BSON_DATETIME = 0x09
BSON_NULL = 0x0A
BSON_REGEX = 0x0B
BSON_DBPOINTER = 0x0C
BSON_CODE = 0x0D
BSON_SYMBOL = 0x0E
BSON_CODE_W_SCOPE = 0x0F
BSON_INT32 = 0x10
BSON_TIMESTAMP = 0x11
BSON_INT64 = 0x12
BSON_DECIMAL128 = 0x13
BSON_MIN_KEY = 0xFF
BSON_MAX_KEY = 0x7F

ELEMENT_TYPES = {
    BSON_DOUBLE: "double",
    BSON_STRING: "string",
    BSON_DOCUMENT: "document",
    BSON_ARRAY: "array",
    BSON_BINARY: "binary",
    BSON_UNDEFINED: "undefined",
    BSON_OBJECT_ID: "object_id",
    BSON_BOOLEAN: "boolean",
    BSON_DATETIME: "UTCdatetime",
    BSON_NULL: "none",
    BSON_REGEX: "regex",
    BSON_DBPOINTER: "dbpointer",
    BSON_CODE: "code",
    BSON_SYMBOL: "symbol",
    BSON_CODE_W_SCOPE: "code_w_scope",
    BSON_INT32: "int32",
    BSON_TIMESTAMP: "timestamp",
    BSON_INT64: "int64",
    BSON_DECIMAL128: "decimal128",
    BSON_MIN_KEY: "min_key",
    BSON_MAX_KEY: "max_key",
}
