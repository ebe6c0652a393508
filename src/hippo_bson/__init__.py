#!/usr/bin/python -OOOO
# vim: set fileencoding=utf8 shiftwidth=4 tabstop=4 textwidth=80 foldmethod=marker :
# Copyright (c) 2010, Kou Man Tong. All rights reserved.
# For licensing, see LICENSE file included in the package.
"""
BSON serialization and deserialization for document databases.
Specifications taken from: http://bsonspec.org/#/specification

Python values map onto BSON as follows:

    None                     <-> null
    bool                     <-> boolean
    int                      <-> int32 or int64, whichever is smallest
    float                    <-> double
    str                      <-> string
    dict / list              <-> document / array
    BSONObject               <-> document or array (with TypeMap.OBJECT)
    Binary, ObjectId, Regex, Timestamp, UTCDateTime, Javascript,
    MinKey, MaxKey           <-> their BSON counterparts

bytes, UUID, datetime and Decimal are accepted when encoding and come back as
Binary, Binary, UTCDateTime and float. The deprecated undefined, DBPointer
and symbol types, and decimal128, are skipped when decoding.
"""

from typing import Any, List, Optional, Tuple, Union

from hippo_bson.codec import EncodeContext, OnUnknown, encode_document
from hippo_bson.decoder import Decoder
from hippo_bson.errors import (BSONError, CallbackError, CorruptDocument,
                               DecodeError, EncodeError, MaxDepthExceeded,
                               MissingTimezoneWarning, UnsupportedType)
from hippo_bson.options import (DEFAULT_CONVERSION_OPTIONS,
                                WRITE_RESULT_OPTIONS, ConversionOptions,
                                TypeMap)
from hippo_bson.types import (BINARY_SUBTYPE, FUNCTION_SUBTYPE, MD5_SUBTYPE,
                              OLD_BINARY_SUBTYPE, OLD_UUID_SUBTYPE,
                              PCLASS_KEY, USER_DEFINED_SUBTYPE, UUID_SUBTYPE,
                              Binary, BSONObject, BSONType, Javascript,
                              MaxKey, MinKey, ObjectId, Persistable, Regex,
                              Serializable, Timestamp, UTCDateTime)

__all__ = [
    "encode", "decode", "decode_all", "dumps", "loads",
    "ConversionOptions", "TypeMap", "DEFAULT_CONVERSION_OPTIONS", "WRITE_RESULT_OPTIONS",
    "BSONType", "Binary", "Javascript", "ObjectId", "Regex", "Timestamp",
    "UTCDateTime", "MinKey", "MaxKey", "BSONObject", "Serializable", "Persistable",
    "PCLASS_KEY", "BINARY_SUBTYPE", "FUNCTION_SUBTYPE", "OLD_BINARY_SUBTYPE",
    "OLD_UUID_SUBTYPE", "UUID_SUBTYPE", "MD5_SUBTYPE", "USER_DEFINED_SUBTYPE",
    "BSONError", "EncodeError", "UnsupportedType", "CallbackError", "DecodeError",
    "CorruptDocument", "MaxDepthExceeded", "MissingTimezoneWarning",
]


def encode(value: Any, options: Optional[ConversionOptions]=None,
           on_unknown: OnUnknown=None) -> Union[bytes, Tuple[bytes, Optional[ObjectId]]]:
    """
    Given a mapping, sequence, object or Serializable, outputs a BSON document.

    on_unknown is an optional function called with any value the encoder has
    no mapping for; whatever it returns is encoded in its place.

    With options.return_generated_id the result is a (bytes, ObjectId) pair,
    the id being None when the document already had an "_id".
    """
    options = options or DEFAULT_CONVERSION_OPTIONS
    context = EncodeContext(options, on_unknown)
    data = encode_document(value, context, top_level=True)
    if options.return_generated_id:
        return data, context.generated_id
    return data


def decode(data: bytes, options: Optional[ConversionOptions]=None) -> Any:
    """
    Given BSON bytes, outputs a dict (or a BSONObject, per
    options.document_type). If data holds several documents back to back,
    the last one is returned.
    """
    return Decoder(data, options or DEFAULT_CONVERSION_OPTIONS).convert()


def decode_all(data: bytes, options: Optional[ConversionOptions]=None) -> List[Any]:
    """
        Given BSON bytes holding any number of documents, outputs all of them.
    """
    return Decoder(data, options or DEFAULT_CONVERSION_OPTIONS).convert_all()


def dumps(obj: Any, on_unknown: OnUnknown=None) -> bytes:
    return encode_document(obj, EncodeContext(on_unknown=on_unknown), top_level=True)


def loads(data: bytes) -> Any:
    return decode(data)
