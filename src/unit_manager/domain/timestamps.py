"""
Bus timestamp decoding.

systemd exposes time values on the bus in microseconds, even when the
corresponding unit file settings are expressed in seconds.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Optional

from .errors import MalformedTimestampError

EPOCH = datetime(1970, 1, 1, tzinfo=timezone.utc)

_INTEGER = re.compile(r"[+-]?[0-9]+")
_TYPE_TAG = re.compile(r"^@\S ")


def strip_type_tag(value: str) -> str:
    """
    Remove a leading ``@<type-char><space>`` marker from a bus value.

    Values whose literal form would be ambiguous are printed with their
    type, e.g. ``@t 1700000000000000`` for an unsigned 64-bit integer.
    Untagged values are returned unchanged.
    """
    if _TYPE_TAG.match(value):
        return value[3:]
    return value


def decode_usec_timestamp(value: str, unit: Optional[str] = None) -> datetime:
    """
    Convert a decimal count of microseconds since the epoch to a UTC datetime.

    Args:
        value: Base-10 integer string, e.g. ``"1700000000123456"``
        unit: Unit the value belongs to, reported on failure

    Returns:
        Timezone-aware UTC datetime keeping microsecond precision

    Raises:
        MalformedTimestampError: If value is not a base-10 integer
    """
    if not _INTEGER.fullmatch(value):
        raise MalformedTimestampError(value, unit=unit)
    try:
        return EPOCH + timedelta(microseconds=int(value))
    except OverflowError as e:
        raise MalformedTimestampError(value, unit=unit) from e

