#!/usr/bin/python -OOOO
# vim: set fileencoding=utf8 shiftwidth=4 tabstop=4 textwidth=80 foldmethod=marker :
# Copyright (c) 2010, Kou Man Tong. All rights reserved.
# For licensing, see LICENSE file included in the package.
"""
Exceptions and warnings raised by the codec.
"""
from typing import Any, Optional


class BSONError(ValueError):
    """Base class for all codec errors."""


class EncodeError(BSONError):
    pass


class UnsupportedType(EncodeError):
    """A value (or key) with no BSON representation was given to the encoder."""

    def __init__(self, key: Any, value: Any, reason: Optional[str]=None):
        message = f"Unable to serialize: key '{key!r}' value: {value!r} type: {type(value)}"
        if reason:
            message = f"{message} ({reason})"
        super().__init__(message)
        self.key = key
        self.value = value


class CallbackError(EncodeError):
    """A bson_serialize() hook raised or returned something other than a mapping."""


class DecodeError(BSONError):
    pass


class CorruptDocument(DecodeError):
    def __init__(self, message: str, offset: Optional[int]=None):
        if offset is not None:
            message = f"{message} at offset {offset}"
        super().__init__(message)
        self.offset = offset


class MaxDepthExceeded(BSONError):
    def __init__(self, max_depth: int):
        super().__init__(f"Maximum nesting depth of {max_depth} exceeded")
        self.max_depth = max_depth


class MissingTimezoneWarning(RuntimeWarning):
    def __init__(self, *args: object):
        if len(args) < 1:
            args = ("Input datetime object has no tzinfo, assuming UTC.",)
        super().__init__(*args)
