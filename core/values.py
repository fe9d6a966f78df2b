from __future__ import annotations

import math
from collections.abc import Mapping, Sequence, Set
from decimal import Decimal
from enum import Enum
from fractions import Fraction
from typing import Any


class ValueKind(str, Enum):
    NULL = "null"
    BOOL = "bool"
    NUMBER = "number"
    STRING = "string"
    BYTES = "bytes"
    SEQUENCE = "sequence"
    MAPPING = "mapping"
    SET = "set"
    OTHER = "other"


def value_kind(value: Any) -> ValueKind:
    if value is None:
        return ValueKind.NULL
    # bool is an int subclass, so it has to be checked first
    if isinstance(value, bool):
        return ValueKind.BOOL
    if isinstance(value, (int, float, Decimal, Fraction)):
        return ValueKind.NUMBER
    if isinstance(value, str):
        return ValueKind.STRING
    if isinstance(value, (bytes, bytearray, memoryview)):
        return ValueKind.BYTES
    if isinstance(value, Mapping):
        return ValueKind.MAPPING
    if isinstance(value, Set):
        return ValueKind.SET
    if isinstance(value, Sequence):
        return ValueKind.SEQUENCE
    return ValueKind.OTHER


_MISSING = object()


def _numbers_equal(left: Any, right: Any) -> bool:
    for number in (left, right):
        if isinstance(number, float) and math.isnan(number):
            return False
        if isinstance(number, Decimal) and number.is_nan():
            return False
    return left == right


def deep_equal(left: Any, right: Any) -> bool:
    """Compare two attribute values structurally.

    Values of different kinds never match. Sequences match element by element
    in order, mappings match on keys and values regardless of insertion order.
    Mapping keys and set members follow the same kind rules, so ``{1: "a"}``
    does not match ``{True: "a"}``.
    """

    kind = value_kind(left)
    if kind is not value_kind(right):
        return False

    if kind is ValueKind.NULL:
        return True
    if kind is ValueKind.NUMBER:
        return _numbers_equal(left, right)
    if kind is ValueKind.BYTES:
        return bytes(left) == bytes(right)
    if kind is ValueKind.SEQUENCE:
        if len(left) != len(right):
            return False
        return all(deep_equal(a, b) for a, b in zip(left, right))
    if kind is ValueKind.MAPPING:
        if len(left) != len(right):
            return False
        right_keys = {key: key for key in right}
        for key, value in left.items():
            match = right_keys.get(key, _MISSING)
            if match is _MISSING or not deep_equal(key, match):
                return False
            if not deep_equal(value, right[match]):
                return False
        return True
    if kind is ValueKind.SET:
        if len(left) != len(right):
            return False
        right_members = {member: member for member in right}
        for member in left:
            match = right_members.get(member, _MISSING)
            if match is _MISSING or not deep_equal(member, match):
                return False
        return True
    return left == right
