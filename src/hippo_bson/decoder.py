#!/usr/bin/python -OOOO
# vim: set fileencoding=utf8 shiftwidth=4 tabstop=4 textwidth=80 foldmethod=marker :
# Copyright (c) 2010, Kou Man Tong. All rights reserved.
# For licensing, see LICENSE file included in the package.
"""
Decoder: turns BSON documents into Python values.

Each element is handed to the visitor registered for its type byte; the
visitor returns the converted value and the decoder files it under the
element's key. Element types without a visitor (undefined, DBPointer, symbol,
decimal128) are skipped.
"""
import logging
from typing import Any, Callable, Dict, List

from hippo_bson.element_types import (BSON_ARRAY, BSON_BINARY, BSON_BOOLEAN,
                                      BSON_CODE, BSON_CODE_W_SCOPE, BSON_DATETIME,
                                      BSON_DOCUMENT, BSON_DOUBLE, BSON_INT32,
                                      BSON_INT64, BSON_MAX_KEY, BSON_MIN_KEY,
                                      BSON_NULL, BSON_OBJECT_ID, BSON_REGEX,
                                      BSON_STRING, BSON_TIMESTAMP, ELEMENT_TYPES)
from hippo_bson.errors import CorruptDocument, MaxDepthExceeded
from hippo_bson.options import (DEFAULT_CONVERSION_OPTIONS,
                                ConversionOptions, TypeMap)
from hippo_bson.reader import BSONReader, iter_elements
from hippo_bson.types import (Binary, BSONObject, Javascript, MaxKey, MinKey,
                              ObjectId, Regex, Timestamp, UTCDateTime)

logger = logging.getLogger(__name__)

Accumulator = Dict[str, Any]
Visitor = Callable[["Decoder", Any], Any]

_visitors: Dict[int, Visitor] = {}


def _visitor(*element_types: int) -> Callable[[Visitor], Visitor]:
    def register(fun: Visitor) -> Visitor:
        for element_type in element_types:
            _visitors[element_type] = fun
        return fun
    return register


@_visitor(BSON_DOUBLE, BSON_STRING, BSON_BOOLEAN, BSON_INT32, BSON_INT64)
def _visit_scalar(decoder: "Decoder", payload: Any) -> Any:
    return payload


@_visitor(BSON_NULL)
def _visit_null(decoder: "Decoder", payload: None) -> None:
    return None


@_visitor(BSON_DOCUMENT)
def _visit_document(decoder: "Decoder", payload: bytes) -> Any:
    return decoder.nested(payload).convert()


@_visitor(BSON_ARRAY)
def _visit_array(decoder: "Decoder", payload: bytes) -> Any:
    return decoder.nested(payload).convert_array()


@_visitor(BSON_BINARY)
def _visit_binary(decoder: "Decoder", payload: Any) -> Binary:
    subtype, data = payload
    return Binary(data, subtype)


@_visitor(BSON_OBJECT_ID)
def _visit_object_id(decoder: "Decoder", payload: bytes) -> ObjectId:
    return ObjectId(payload)


@_visitor(BSON_DATETIME)
def _visit_date_time(decoder: "Decoder", payload: int) -> UTCDateTime:
    return UTCDateTime(payload)


@_visitor(BSON_REGEX)
def _visit_regex(decoder: "Decoder", payload: Any) -> Regex:
    pattern, flags = payload
    return Regex(pattern, flags)


@_visitor(BSON_CODE)
def _visit_code(decoder: "Decoder", payload: str) -> Javascript:
    return Javascript(payload)


@_visitor(BSON_CODE_W_SCOPE)
def _visit_code_w_scope(decoder: "Decoder", payload: Any) -> Javascript:
    code, scope = payload
    return Javascript(code, decoder.nested(scope).convert())


@_visitor(BSON_TIMESTAMP)
def _visit_timestamp(decoder: "Decoder", payload: Any) -> Timestamp:
    timestamp, increment = payload
    return Timestamp(timestamp, increment)


@_visitor(BSON_MIN_KEY)
def _visit_min_key(decoder: "Decoder", payload: None) -> MinKey:
    return MinKey()


@_visitor(BSON_MAX_KEY)
def _visit_max_key(decoder: "Decoder", payload: None) -> MaxKey:
    return MaxKey()


class Decoder:
    """
    Converts one BSON byte range. Nested documents and arrays each get a
    Decoder of their own, bound to their slice of the buffer.
    """

    def __init__(self, data: bytes, options: ConversionOptions=DEFAULT_CONVERSION_OPTIONS,
                 depth: int=0):
        if depth >= options.max_depth:
            raise MaxDepthExceeded(options.max_depth)
        self.data = data
        self.options = options
        self.depth = depth

    def nested(self, data: bytes) -> "Decoder":
        return Decoder(data, self.options, self.depth + 1)

    def _convert_document(self, document: bytes) -> Accumulator:
        accumulator: Accumulator = {}
        for element_type, key, payload in iter_elements(document):
            visit = _visitors.get(element_type)
            if visit is None:
                logger.debug("Skipping %s element %r", ELEMENT_TYPES[element_type], key)
                continue
            value = visit(self, payload)
            # The first of several equal keys wins.
            if key not in accumulator:
                accumulator[key] = value
        return accumulator

    def _accumulate(self) -> List[Accumulator]:
        try:
            documents = [self._convert_document(document)
                         for document in BSONReader(self.data)]
            if not documents:
                raise CorruptDocument("could not read document from reader", 0)
        except CorruptDocument as e:
            if self.depth == 0:
                logger.debug("Failed to decode BSON: %s", e)
            raise
        return documents

    def _wrap_document(self, accumulator: Accumulator) -> Any:
        if self.options.document_type is TypeMap.OBJECT:
            return BSONObject(accumulator)
        return accumulator

    def convert(self) -> Any:
        """
        Decodes the range as a document. When the range holds several
        documents, the last one is returned.
        """
        return self._wrap_document(self._accumulate()[-1])

    def convert_array(self) -> Any:
        accumulator = self._accumulate()[-1]
        if self.options.array_type is TypeMap.OBJECT:
            return BSONObject(accumulator)
        return list(accumulator.values())

    def convert_all(self) -> List[Any]:
        return [self._wrap_document(accumulator) for accumulator in self._accumulate()]
