#!/usr/bin/python -OOOO
# vim: set fileencoding=utf8 shiftwidth=4 tabstop=4 textwidth=80 foldmethod=marker :
# Copyright (c) 2010, Kou Man Tong. All rights reserved.
# Copyright (c) 2015, Ayun Park. All rights reserved.
# For licensing, see LICENSE file included in the package.
"""
Encoder: turns Python values into BSON documents.
"""
import logging
import struct
from datetime import datetime
from decimal import Decimal
from io import BytesIO
from types import SimpleNamespace
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union
from uuid import UUID

from hippo_bson.errors import CallbackError, MaxDepthExceeded, UnsupportedType
from hippo_bson.options import DEFAULT_CONVERSION_OPTIONS, ConversionOptions
from hippo_bson.types import (OLD_BINARY_SUBTYPE, PCLASS_KEY, UUID_SUBTYPE,
                              Binary, BSONObject, BSONType, Javascript,
                              MaxKey, MinKey, ObjectId, Persistable, Regex,
                              Serializable, Timestamp, UTCDateTime,
                              is_object_shaped)

logger = logging.getLogger(__name__)

Key = Union[str, bytes, int]
Items = List[Tuple[Key, Any]]
OnUnknown = Optional[Callable[[Any], Any]]

INT32_MIN = -0x80000000
INT32_MAX = 0x7FFFFFFF
INT64_MIN = -0x8000000000000000
INT64_MAX = 0x7FFFFFFFFFFFFFFF


class EncodeContext:
    """
    Mutable state of one encode traversal, kept apart from the options.

    add_missing_id starts out as the option value and is switched off as soon
    as the root document turns out to have an "_id" of its own.
    """

    def __init__(self, options: ConversionOptions=DEFAULT_CONVERSION_OPTIONS,
                 on_unknown: OnUnknown=None):
        self.options = options
        self.on_unknown = on_unknown
        self.depth = 0
        self.add_missing_id = options.add_missing_id
        self.generated_id: Optional[ObjectId] = None


def encode_string(value: str, name: Key="") -> bytes:
    try:
        bvalue = value.encode("utf-8")
    except UnicodeEncodeError as e:
        raise UnsupportedType(name, value, "string is not valid UTF-8") from e
    length = len(bvalue)
    return struct.pack(f"<i{length}sb", length + 1, bvalue, 0)


def encode_cstring(value: Key) -> bytes:
    if isinstance(value, bytes):
        try:
            value.decode("utf-8")
        except UnicodeDecodeError as e:
            raise UnsupportedType(value, value, "key is not valid UTF-8") from e
        bvalue = value
    elif isinstance(value, str):
        try:
            bvalue = value.encode("utf-8")
        except UnicodeEncodeError as e:
            raise UnsupportedType(value, value, "key is not valid UTF-8") from e
    elif isinstance(value, int) and not isinstance(value, bool):
        bvalue = str(value).encode("ascii")
    else:
        raise UnsupportedType(value, value, "keys must be str, bytes or int")
    if b"\x00" in bvalue:
        # A NUL byte is used to delimit our string, accepting one would cause
        # our string to terminate early.
        raise UnsupportedType(value, value, "keys may not include NUL bytes")
    return bvalue + b"\x00"


def encode_binary(value: bytes, binary_subtype: int=0) -> bytes:
    length = len(value)
    if binary_subtype == OLD_BINARY_SUBTYPE:
        return struct.pack("<iBi", length + 4, binary_subtype, length) + value
    return struct.pack("<iB", length, binary_subtype) + value


def encode_double(value: float) -> bytes:
    return struct.pack("<d", value)


def encode_double_element(name: Key, value: float) -> bytes:
    return b"\x01" + encode_cstring(name) + encode_double(value)


def encode_string_element(name: Key, value: str) -> bytes:
    return b"\x02" + encode_cstring(name) + encode_string(value, name)


def encode_binary_element(name: Key, value: bytes, binary_subtype: int=0) -> bytes:
    return b"\x05" + encode_cstring(name) + encode_binary(value, binary_subtype=binary_subtype)


def encode_object_id_element(name: Key, value: ObjectId) -> bytes:
    return b"\x07" + encode_cstring(name) + value.binary


def encode_boolean_element(name: Key, value: bool) -> bytes:
    return b"\x08" + encode_cstring(name) + struct.pack("<b", value)


def encode_utc_datetime_element(name: Key, value: UTCDateTime) -> bytes:
    return b"\x09" + encode_cstring(name) + struct.pack("<q", value.milliseconds)


def encode_none_element(name: Key) -> bytes:
    return b"\x0a" + encode_cstring(name)


def encode_regex_element(name: Key, value: Regex) -> bytes:
    return b"\x0b" + encode_cstring(name) + \
           encode_cstring(value.pattern) + encode_cstring(value.flags)


def encode_int32_element(name: Key, value: int) -> bytes:
    return b"\x10" + encode_cstring(name) + struct.pack("<i", value)


def encode_timestamp_element(name: Key, value: Timestamp) -> bytes:
    # The increment comes first on the wire.
    return b"\x11" + encode_cstring(name) + \
           struct.pack("<II", value.increment, value.timestamp)


def encode_int64_element(name: Key, value: int) -> bytes:
    return b"\x12" + encode_cstring(name) + struct.pack("<q", value)


def encode_code_element(name: Key, value: Javascript, context: EncodeContext) -> bytes:
    if value.scope is None:
        return b"\x0d" + encode_cstring(name) + encode_string(value.code, name)
    code_w_scope = encode_string(value.code, name) + encode_document(value.scope, context)
    return b"\x0f" + encode_cstring(name) + \
           struct.pack("<i", len(code_w_scope) + 4) + code_w_scope


def _encode_binary_type(name: Key, value: Binary, context: EncodeContext) -> bytes:
    return encode_binary_element(name, value.data, binary_subtype=value.subtype)


def _encode_object_id(name: Key, value: ObjectId, context: EncodeContext) -> bytes:
    return encode_object_id_element(name, value)


def _encode_regex(name: Key, value: Regex, context: EncodeContext) -> bytes:
    return encode_regex_element(name, value)


def _encode_timestamp(name: Key, value: Timestamp, context: EncodeContext) -> bytes:
    return encode_timestamp_element(name, value)


def _encode_utc_datetime(name: Key, value: UTCDateTime, context: EncodeContext) -> bytes:
    return encode_utc_datetime_element(name, value)


def _encode_min_key(name: Key, value: MinKey, context: EncodeContext) -> bytes:
    return b"\xff" + encode_cstring(name)


def _encode_max_key(name: Key, value: MaxKey, context: EncodeContext) -> bytes:
    return b"\x7f" + encode_cstring(name)


_EXTENDED_ENCODERS: Dict[type, Callable[[Key, Any, EncodeContext], bytes]] = {
    Binary: _encode_binary_type,
    Javascript: encode_code_element,
    MaxKey: _encode_max_key,
    MinKey: _encode_min_key,
    ObjectId: _encode_object_id,
    Regex: _encode_regex,
    Timestamp: _encode_timestamp,
    UTCDateTime: _encode_utc_datetime,
}


def _encode_extended(name: Key, value: BSONType, context: EncodeContext) -> bytes:
    func = _EXTENDED_ENCODERS.get(type(value))
    if func is None:
        for base, candidate in _EXTENDED_ENCODERS.items():
            if isinstance(value, base):
                func = candidate
                break
        else:
            raise UnsupportedType(name, value)
    return func(name, value, context)


def _is_packed_array(keys: List[Any]) -> bool:
    for idx, key in enumerate(keys):
        if isinstance(key, bool) or not isinstance(key, int) or key != idx:
            return False
    return True


def _serialize_object(value: Serializable) -> Mapping[Any, Any]:
    try:
        properties = value.bson_serialize()
    except Exception as e:
        raise CallbackError(f"{type(value).__name__}.bson_serialize() raised {e!r}") from e
    if not isinstance(properties, Mapping):
        raise CallbackError(f"Expected bson_serialize() to return a mapping, "
                            f"but {type(properties).__name__} given")
    if isinstance(value, Persistable) and PCLASS_KEY not in properties:
        cls = type(value)
        properties = dict(properties)
        properties[PCLASS_KEY] = f"{cls.__module__}.{cls.__qualname__}"
    return properties


_UNMANGLE_SKIP = (object, BSONObject, SimpleNamespace)


def _unmangled_items(value: Any) -> Items:
    """
    Attribute names of object-shaped values, with Python's private-name
    prefix (_ClassName__) stripped for every user class in the value's MRO.
    The library's own bases are left out, so decoded fields such as
    "_BSONObject__x" keep their names.
    """
    prefixes = []
    for cls in type(value).__mro__:
        if cls in _UNMANGLE_SKIP:
            continue
        stripped = cls.__name__.lstrip("_")
        if stripped:
            prefixes.append(f"_{stripped}__")
    items: Items = []
    seen = set()
    for key, item in vars(value).items():
        if not isinstance(key, str):
            raise UnsupportedType(key, item, "malformed attribute name")
        for prefix in prefixes:
            if key.startswith(prefix) and len(key) > len(prefix):
                key = key[len(prefix):]
                break
        if key in seen:
            raise UnsupportedType(key, item, "attribute name clashes with another attribute")
        seen.add(key)
        items.append((key, item))
    return items


def is_container(value: Any) -> bool:
    return isinstance(value, (Mapping, list, tuple, Serializable)) or is_object_shaped(value)


def container_items(value: Any) -> Tuple[bool, Items]:
    """
    Returns whether value encodes as a BSON array, and its (key, value) pairs.

    A mapping is an array only when its keys, in iteration order, are exactly
    0, 1, ..., n-1. Lists and tuples are always arrays, object-shaped values
    never.
    """
    if isinstance(value, Serializable):
        value = _serialize_object(value)
    if isinstance(value, Mapping):
        items = list(value.items())
        return bool(items) and _is_packed_array([k for k, _ in items]), items
    if isinstance(value, (list, tuple)):
        return True, list(enumerate(value))
    if is_object_shaped(value):
        return False, _unmangled_items(value)
    raise UnsupportedType("", value)


def _encode_elements(items: Items, context: EncodeContext, top_level: bool=False) -> bytes:
    if context.depth >= context.options.max_depth:
        raise MaxDepthExceeded(context.options.max_depth)
    buf = BytesIO()
    context.depth += 1
    for name, value in items:
        if top_level and context.add_missing_id and name in ("_id", b"_id"):
            context.add_missing_id = False
        encode_value(name, value, buf, context)
    context.depth -= 1

    if top_level and context.add_missing_id:
        oid = ObjectId()
        buf.write(encode_object_id_element("_id", oid))
        logger.debug("Added generated _id %s to document", oid)
        if context.options.return_generated_id:
            context.generated_id = oid

    e_list = buf.getvalue()
    e_list_length = len(e_list)
    return struct.pack(f"<i{e_list_length}sb",
                       e_list_length + 4 + 1, e_list, 0)


def encode_document(value: Any, context: EncodeContext, top_level: bool=False) -> bytes:
    """
    Encodes a container as a standalone document. At the top level the root
    may receive a generated "_id" (see EncodeContext).
    """
    if not is_container(value):
        raise UnsupportedType("", value, "a document must be a mapping, a sequence or an object")
    is_array, items = container_items(value)
    return _encode_elements(items, context, top_level=top_level and not is_array)


def encode_document_element(name: Key, value: Any, context: EncodeContext) -> bytes:
    is_array, items = container_items(value)
    element_type = b"\x04" if is_array else b"\x03"
    return element_type + encode_cstring(name) + _encode_elements(items, context)


def encode_value(name: Key, value: Any, buf: BytesIO, context: EncodeContext,
                 substituted: bool=False) -> None:
    if value is None:
        buf.write(encode_none_element(name))
    elif isinstance(value, bool):
        buf.write(encode_boolean_element(name, value))
    elif isinstance(value, int):
        if INT32_MIN <= value <= INT32_MAX:
            buf.write(encode_int32_element(name, value))
        elif INT64_MIN <= value <= INT64_MAX:
            buf.write(encode_int64_element(name, value))
        else:
            raise UnsupportedType(name, value, "BSON can only handle up to 8-byte ints")
    elif isinstance(value, float):
        buf.write(encode_double_element(name, value))
    elif isinstance(value, str):
        buf.write(encode_string_element(name, value))
    elif isinstance(value, BSONType):
        buf.write(_encode_extended(name, value, context))
    elif isinstance(value, (bytes, bytearray, memoryview)):
        buf.write(encode_binary_element(name, bytes(value)))
    elif isinstance(value, UUID):
        buf.write(encode_binary_element(name, value.bytes, binary_subtype=UUID_SUBTYPE))
    elif isinstance(value, datetime):
        buf.write(encode_utc_datetime_element(name, UTCDateTime.from_datetime(value)))
    elif isinstance(value, Decimal):
        buf.write(encode_double_element(name, float(value)))
    elif is_container(value):
        buf.write(encode_document_element(name, value, context))
    elif context.on_unknown is not None and not substituted:
        # The replacement is not passed back to on_unknown.
        encode_value(name, context.on_unknown(value), buf, context, substituted=True)
    else:
        raise UnsupportedType(name, value)
