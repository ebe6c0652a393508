#!/usr/bin/python -OOOO
# vim: set fileencoding=utf8 shiftwidth=4 tabstop=4 textwidth=80 foldmethod=marker :
# Copyright (c) 2010, Kou Man Tong. All rights reserved.
# For licensing, see LICENSE file included in the package.
"""
BSON-specific value types, the object-shaped document container and the
Serializable/Persistable capabilities.
"""
import calendar
import os
import struct
import threading
import time
import warnings
from abc import ABCMeta, abstractmethod
from datetime import datetime, timedelta, timezone
from random import SystemRandom
from types import SimpleNamespace
from typing import Any, Dict, Iterator, Mapping, Optional, Union

from hippo_bson.errors import MissingTimezoneWarning

BINARY_SUBTYPE = 0
FUNCTION_SUBTYPE = 1
OLD_BINARY_SUBTYPE = 2
OLD_UUID_SUBTYPE = 3
UUID_SUBTYPE = 4
MD5_SUBTYPE = 5
USER_DEFINED_SUBTYPE = 0x80

PCLASS_KEY = "__pclass"

_UINT32_UPPERBOUND = 2 ** 32
_INT64_MIN = -2 ** 63
_INT64_MAX = 2 ** 63 - 1
_MAX_COUNTER_VALUE = 0xFFFFFF

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)


class BSONType:
    """Base class of the values that only exist in BSON."""
    __slots__ = ()


class Binary(BSONType):
    __slots__ = ("data", "subtype")

    def __init__(self, data: bytes, subtype: int=BINARY_SUBTYPE):
        if not isinstance(data, (bytes, bytearray, memoryview)):
            raise TypeError(f"data must be bytes, not {type(data)}")
        if not isinstance(subtype, int) or not 0 <= subtype < 256:
            raise ValueError("subtype must be contained in [0, 256)")
        self.data = bytes(data)
        self.subtype = subtype

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Binary):
            return self.subtype == other.subtype and self.data == other.data
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.subtype, self.data))

    def __repr__(self) -> str:
        return f"Binary({self.data!r}, {self.subtype})"


class Javascript(BSONType):
    """
    JavaScript code, optionally with a scope document.

    The scope may be a mapping, a list or an object-shaped value; a scope of
    None means plain code.
    """
    __slots__ = ("code", "scope")

    def __init__(self, code: str, scope: Any=None):
        if not isinstance(code, str):
            raise TypeError(f"code must be str, not {type(code)}")
        if scope is not None and not (isinstance(scope, (Mapping, list, tuple)) or is_object_shaped(scope)):
            raise TypeError(f"scope must be a document, not {type(scope)}")
        self.code = code
        self.scope = scope

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Javascript):
            return self.code == other.code and self.scope == other.scope
        return NotImplemented

    __hash__ = None  # type: ignore

    def __repr__(self) -> str:
        if self.scope is None:
            return f"Javascript({self.code!r})"
        return f"Javascript({self.code!r}, {self.scope!r})"


class ObjectId(BSONType):
    """
    A 12-byte document identifier.

    Generated ids are laid out as a 4-byte big-endian count of seconds since
    the epoch, 5 random bytes chosen once per process and a 3-byte counter
    starting at a random value.
    """
    _pid = os.getpid()
    _inc = SystemRandom().randint(0, _MAX_COUNTER_VALUE)
    _inc_lock = threading.Lock()
    _random_bytes = os.urandom(5)

    __slots__ = ("__id",)

    def __init__(self, oid: Union[None, bytes, str, "ObjectId"]=None):
        if oid is None:
            self.__id = self._generate()
        elif isinstance(oid, ObjectId):
            self.__id = oid.binary
        elif isinstance(oid, (bytes, bytearray, memoryview)) and len(oid) == 12:
            self.__id = bytes(oid)
        elif isinstance(oid, str) and len(oid) == 24:
            try:
                self.__id = bytes.fromhex(oid)
            except ValueError:
                raise ValueError(f"{oid!r} is not a valid ObjectId hex string") from None
        else:
            raise ValueError(f"{oid!r} is not a valid ObjectId, it must be 12 bytes or 24 hex digits")

    @classmethod
    def _random(cls) -> bytes:
        pid = os.getpid()
        if pid != cls._pid:
            cls._pid = pid
            cls._random_bytes = os.urandom(5)
        return cls._random_bytes

    @classmethod
    def _generate(cls) -> bytes:
        oid = struct.pack(">I", int(time.time()) & 0xFFFFFFFF)
        oid += cls._random()
        with cls._inc_lock:
            oid += struct.pack(">I", cls._inc)[1:4]
            cls._inc = (cls._inc + 1) % (_MAX_COUNTER_VALUE + 1)
        return oid

    @property
    def binary(self) -> bytes:
        return self.__id

    @property
    def generation_time(self) -> datetime:
        seconds = struct.unpack(">I", self.__id[0:4])[0]
        return datetime.fromtimestamp(seconds, tz=timezone.utc)

    def __str__(self) -> str:
        return self.__id.hex()

    def __repr__(self) -> str:
        return f"ObjectId('{self}')"

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, ObjectId):
            return self.__id == other.binary
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.__id)


class Regex(BSONType):
    __slots__ = ("pattern", "flags")

    def __init__(self, pattern: str, flags: str=""):
        if not isinstance(pattern, str) or not isinstance(flags, str):
            raise TypeError("pattern and flags must be str")
        self.pattern = pattern
        self.flags = flags

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Regex):
            return self.pattern == other.pattern and self.flags == other.flags
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.pattern, self.flags))

    def __repr__(self) -> str:
        return f"Regex({self.pattern!r}, {self.flags!r})"


class Timestamp(BSONType):
    """Internal replication timestamp: seconds since the epoch plus an ordinal."""
    __slots__ = ("timestamp", "increment")

    def __init__(self, timestamp: int, increment: int):
        if not isinstance(timestamp, int) or not isinstance(increment, int):
            raise TypeError("timestamp and increment must be int")
        if not 0 <= timestamp < _UINT32_UPPERBOUND:
            raise ValueError("timestamp must be contained in [0, 2**32)")
        if not 0 <= increment < _UINT32_UPPERBOUND:
            raise ValueError("increment must be contained in [0, 2**32)")
        self.timestamp = timestamp
        self.increment = increment

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, Timestamp):
            return (self.timestamp, self.increment) == (other.timestamp, other.increment)
        return NotImplemented

    def __lt__(self, other: Any) -> bool:
        if isinstance(other, Timestamp):
            return (self.timestamp, self.increment) < (other.timestamp, other.increment)
        return NotImplemented

    def __hash__(self) -> int:
        return hash((self.timestamp, self.increment))

    def __repr__(self) -> str:
        return f"Timestamp({self.timestamp}, {self.increment})"


class UTCDateTime(BSONType):
    __slots__ = ("milliseconds",)

    def __init__(self, milliseconds: int):
        if not isinstance(milliseconds, int) or isinstance(milliseconds, bool):
            raise TypeError("milliseconds must be int")
        if not _INT64_MIN <= milliseconds <= _INT64_MAX:
            raise ValueError("milliseconds must fit in a signed 64-bit integer")
        self.milliseconds = milliseconds

    @classmethod
    def from_datetime(cls, value: datetime) -> "UTCDateTime":
        """
        Naive datetimes are taken to be UTC, with a MissingTimezoneWarning.
        """
        if value.tzinfo is None:
            warnings.warn(MissingTimezoneWarning(), None, 4)
        return cls(int(round(calendar.timegm(value.utctimetuple()) * 1000 +
                             (value.microsecond / 1000.0))))

    def to_datetime(self) -> datetime:
        return EPOCH + timedelta(milliseconds=self.milliseconds)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, UTCDateTime):
            return self.milliseconds == other.milliseconds
        return NotImplemented

    def __lt__(self, other: Any) -> bool:
        if isinstance(other, UTCDateTime):
            return self.milliseconds < other.milliseconds
        return NotImplemented

    def __hash__(self) -> int:
        return hash(self.milliseconds)

    def __repr__(self) -> str:
        return f"UTCDateTime({self.milliseconds})"


class MinKey(BSONType):
    """Compares lower than every other BSON value. There is one instance."""
    __slots__ = ()
    _instance = None

    def __new__(cls) -> "MinKey":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MinKey()"


class MaxKey(BSONType):
    """Compares higher than every other BSON value. There is one instance."""
    __slots__ = ()
    _instance = None

    def __new__(cls) -> "MaxKey":
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "MaxKey()"


class BSONObject:
    """
    Attribute-style document, the object-shaped counterpart of a dict.

    Fields live in the instance __dict__, so keys that are not identifiers
    (array indexes, for one) are reachable through obj["0"] or vars(obj).
    A field can shadow a method of the same name: a decoded "to_dict" field
    hides to_dict(). vars(obj) and obj[key] always reach the fields, and the
    codec itself only uses those.
    """

    def __init__(self, fields: Optional[Mapping[str, Any]]=None, **kwargs: Any):
        if fields:
            self.__dict__.update(fields)
        self.__dict__.update(kwargs)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)

    def __getitem__(self, key: str) -> Any:
        return self.__dict__[key]

    def __contains__(self, key: object) -> bool:
        return key in self.__dict__

    def __iter__(self) -> Iterator[str]:
        return iter(self.__dict__)

    def __len__(self) -> int:
        return len(self.__dict__)

    def __eq__(self, other: Any) -> bool:
        if isinstance(other, BSONObject):
            return vars(self) == vars(other)
        return NotImplemented

    __hash__ = None  # type: ignore

    def __repr__(self) -> str:
        return f"BSONObject({self.__dict__!r})"


def is_object_shaped(value: Any) -> bool:
    return isinstance(value, (BSONObject, SimpleNamespace))


class Serializable(metaclass=ABCMeta):
    """
    A value that supplies its own document representation.

    bson_serialize() is called synchronously while encoding; it must return a
    mapping and must not encode anything itself.
    """

    @abstractmethod
    def bson_serialize(self) -> Mapping[Any, Any]:
        pass


class Persistable(Serializable):
    """A Serializable whose documents also record its class name under __pclass."""
