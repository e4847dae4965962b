"""Conversion of driver-native values to plain Python values.

Query results leave the core as rows of ``str``, ``int``, ``float``,
``bool``, ``None``, nested ``dict`` and ``list`` only. Everything else a
driver can hand back (ObjectId, datetime, Decimal, Decimal128, bytes,
Binary, UUID, timedelta, ...) is converted here.
"""

import datetime
import decimal
import uuid
from typing import Any, Dict, Mapping

from bson import Decimal128, ObjectId

_PLAIN_SCALARS = (str, bool, int, float, type(None))


def to_plain(value: Any) -> Any:
    """Convert ``value`` to a plain, JSON-compatible Python value.

    - ObjectId, UUID -> ``str``
    - datetime, date, time -> ISO 8601 string
    - timedelta -> ``str`` (``"1:02:03"``)
    - Decimal, Decimal128 -> ``str`` (no precision lost)
    - bytes, bytearray, bson Binary -> lowercase hex string
    - mappings and sequences -> converted recursively
    - anything else -> ``str(value)``
    """
    if isinstance(value, _PLAIN_SCALARS):
        return value
    if isinstance(value, Mapping):
        return {str(k): to_plain(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set, frozenset)):
        return [to_plain(item) for item in value]
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value).hex()
    if isinstance(value, (datetime.datetime, datetime.date, datetime.time)):
        return value.isoformat()
    if isinstance(value, datetime.timedelta):
        return str(value)
    if isinstance(value, (decimal.Decimal, Decimal128)):
        return str(value)
    if isinstance(value, (ObjectId, uuid.UUID)):
        return str(value)
    return str(value)


def plain_row(row: Mapping[str, Any]) -> Dict[str, Any]:
    """Convert every value of a result row with :func:`to_plain`."""
    return {str(key): to_plain(value) for key, value in row.items()}


def type_name(value: Any) -> str:
    """Descriptor used for sampled document fields."""
    if value is None:
        return "null"
    return type(value).__name__
