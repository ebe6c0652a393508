#!/usr/bin/python -OOOO
# vim: set fileencoding=utf8 shiftwidth=4 tabstop=4 textwidth=80 foldmethod=marker :
# Copyright (c) 2010, Kou Man Tong. All rights reserved.
# For licensing, see LICENSE file included in the package.
"""
Options controlling how values are encoded and how decoded documents are
shaped.
"""
from enum import Enum
from typing import Any, NamedTuple

DEFAULT_MAX_DEPTH = 100


class TypeMap(Enum):
    # dict for documents, list for arrays
    NATIVE = "native"
    # BSONObject for both
    OBJECT = "object"


class ConversionOptions(NamedTuple):
    """
    add_missing_id: append a generated ObjectId under "_id" to a root document
        that has no "_id" field.
    return_generated_id: make encode() also return the id it generated.
    document_type: shape of decoded documents, at every depth including the
        root.
    array_type: shape of decoded arrays.
    max_depth: nesting ceiling for both directions.
    """
    add_missing_id: bool = False
    return_generated_id: bool = False
    document_type: TypeMap = TypeMap.NATIVE
    array_type: TypeMap = TypeMap.NATIVE
    max_depth: int = DEFAULT_MAX_DEPTH

    def with_options(self, **kwargs: Any) -> "ConversionOptions":
        return self._replace(**kwargs)


DEFAULT_CONVERSION_OPTIONS = ConversionOptions()

# Acknowledgement sub-documents are read as objects, their record lists as lists.
WRITE_RESULT_OPTIONS = ConversionOptions(document_type=TypeMap.OBJECT,
                                         array_type=TypeMap.NATIVE)
