"""
Canonical serialization and stable hashing utilities
Ensures every service renders the same logical value to the same bytes
"""

import re
import hmac
import json
import math
import hashlib
import logging
from decimal import Decimal
from collections.abc import Mapping
from typing import Any, Dict, List, Union

from pydantic import BaseModel

logger = logging.getLogger(__name__)

CanonicalValue = Union[None, bool, int, float, str, List["CanonicalValue"], Dict[str, "CanonicalValue"]]

# Largest integer an IEEE-754 double holds exactly
MAX_SAFE_INTEGER = 2 ** 53 - 1

_LONE_SURROGATE = re.compile("[\ud800-\udfff]")


class _Absent:
    """Marker for a map entry that is not set (as opposed to an explicit null)"""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return "ABSENT"

    def __bool__(self) -> bool:
        return False


ABSENT = _Absent()


class CanonicalizationError(ValueError):
    """Raised when a value cannot be given a canonical form"""
    pass


class UnsupportedValueError(CanonicalizationError):
    """Raised when input contains a type outside the canonical value model"""

    def __init__(self, path: str, value: Any, reason: str = ""):
        self.path = path
        self.value_type = type(value).__name__
        detail = reason or f"unsupported type {self.value_type}"
        super().__init__(f"unsupported value in canonical JSON serialization at {path}: {detail}")


def to_canonical_value(value: Any, path: str = "$") -> CanonicalValue:
    """
    Convert validated data into the canonical value model

    Rules:
    - Map entries whose value is ABSENT are dropped; explicit None is kept
    - Pydantic model fields left unset with a None value count as absent
    - Map keys are sorted by code point (equal to UTF-8 byte order)
    - Arrays and tuples keep their order
    - Anything else is rejected, never coerced

    Args:
        value: Data to convert
        path: Location of ``value`` inside the root structure, used in errors

    Returns:
        Plain nested structure with key-sorted dicts

    Raises:
        UnsupportedValueError: If any element is outside the value model
    """
    if value is None or isinstance(value, (bool, str)):
        return value

    if isinstance(value, int):
        if abs(value) > MAX_SAFE_INTEGER:
            raise UnsupportedValueError(path, value, "integer outside the safe range")
        return value

    if isinstance(value, float):
        if not math.isfinite(value):
            raise UnsupportedValueError(path, value, "non-finite number")
        return value

    if isinstance(value, BaseModel):
        return _canonicalize_entries(_model_entries(value), path)

    if isinstance(value, Mapping):
        return _canonicalize_entries(value.items(), path)

    if isinstance(value, (list, tuple)):
        return [to_canonical_value(item, f"{path}[{index}]") for index, item in enumerate(value)]

    raise UnsupportedValueError(path, value)


def _model_entries(model: BaseModel) -> List[tuple]:
    entries = []
    for name, field in type(model).model_fields.items():
        entry_value = getattr(model, name)
        if entry_value is None and name not in model.model_fields_set:
            continue
        key = field.serialization_alias or field.alias or name
        entries.append((key, entry_value))

    if model.model_extra:
        entries.extend(model.model_extra.items())

    return entries


def _canonicalize_entries(entries, path: str) -> Dict[str, CanonicalValue]:
    present = []
    for key, entry_value in entries:
        if not isinstance(key, str):
            raise UnsupportedValueError(path, key, f"map key must be a string, got {type(key).__name__}")
        if entry_value is ABSENT:
            continue
        present.append((key, entry_value))

    present.sort(key=lambda item: item[0])

    return {key: to_canonical_value(entry_value, f"{path}.{key}") for key, entry_value in present}


def format_number(value: Union[int, float]) -> str:
    """
    Render a number the way ECMAScript Number::toString does

    Integral values print as integers (``1.0`` -> ``1``), fractions use the
    shortest round-trip digits, exponents appear below 1e-6 and from 1e21.
    """
    if isinstance(value, bool):
        raise UnsupportedValueError("$", value, "boolean is not a number")

    if isinstance(value, int):
        return str(value)

    if value == 0:
        return "0"

    if value.is_integer() and abs(value) < 1e21:
        return str(int(value))

    sign = "-" if value < 0 else ""
    _, digit_tuple, exponent = Decimal(repr(abs(value))).normalize().as_tuple()
    digits = "".join(str(digit) for digit in digit_tuple)
    k = len(digits)
    n = exponent + k

    if k <= n <= 21:
        body = digits + "0" * (n - k)
    elif 0 < n <= 21:
        body = f"{digits[:n]}.{digits[n:]}"
    elif -6 < n <= 0:
        body = "0." + "0" * (-n) + digits
    else:
        e = n - 1
        mantissa = digits if k == 1 else f"{digits[0]}.{digits[1:]}"
        body = f"{mantissa}e{'+' if e >= 0 else '-'}{abs(e)}"

    return sign + body


def _encode_string(value: str) -> str:
    encoded = json.dumps(value, ensure_ascii=False)
    return _LONE_SURROGATE.sub(lambda match: f"\\u{ord(match.group()):04x}", encoded)


def _render(value: CanonicalValue, parts: List[str]) -> None:
    if value is None:
        parts.append("null")
    elif value is True:
        parts.append("true")
    elif value is False:
        parts.append("false")
    elif isinstance(value, (int, float)):
        parts.append(format_number(value))
    elif isinstance(value, str):
        parts.append(_encode_string(value))
    elif isinstance(value, list):
        parts.append("[")
        for index, item in enumerate(value):
            if index:
                parts.append(",")
            _render(item, parts)
        parts.append("]")
    else:
        parts.append("{")
        for index, (key, item) in enumerate(value.items()):
            if index:
                parts.append(",")
            parts.append(_encode_string(key))
            parts.append(":")
            _render(item, parts)
        parts.append("}")


def canonical_json(data: Any) -> str:
    """
    Convert data to its canonical JSON text

    Args:
        data: Validated data (plain structures or pydantic models)

    Returns:
        Compact canonical JSON string

    Raises:
        UnsupportedValueError: If data contains values outside the model
    """
    canonical_data = to_canonical_value(data)
    parts: List[str] = []
    _render(canonical_data, parts)
    return "".join(parts)


def canonical_bytes(data: Any) -> bytes:
    """Canonical JSON text encoded as UTF-8"""
    return canonical_json(data).encode("utf-8")


def stable_hash(data: str) -> str:
    """
    Generate stable SHA-256 hash of canonical data

    Args:
        data: Canonical string data to hash

    Returns:
        Lowercase hexadecimal SHA-256 hash
    """
    if not isinstance(data, str):
        raise TypeError(f"Data must be string, got {type(data).__name__}")

    return hashlib.sha256(data.encode("utf-8")).hexdigest()


def canonical_hash(data: Any) -> str:
    return stable_hash(canonical_json(data))


def verify_canonical_hash(original_data: Any, expected_hash: str) -> bool:
    """
    Verify that data canonicalizes to the expected hash

    A mismatch returns False; input outside the value model still raises.
    """
    computed_hash = canonical_hash(original_data)
    if not isinstance(expected_hash, str) or not expected_hash.isascii():
        logger.warning(f"Canonical hash mismatch: expected hash {expected_hash!r} is not hex text")
        return False
    matches = hmac.compare_digest(computed_hash, expected_hash.strip().lower())
    if not matches:
        logger.warning(f"Canonical hash mismatch: expected {expected_hash}, computed {computed_hash}")
    return matches
