"""
Unit Manager Domain Layer

Value objects, error taxonomy and pure functions shared by all layers.
"""

from .errors import (
    BusError,
    DisconnectedError,
    JobFailedError,
    JobSubmissionError,
    MalformedTimestampError,
    MissingChannelError,
    PropertyLookupError,
    UnitManagerError,
)
from .timestamps import decode_usec_timestamp, strip_type_tag
from .value_objects import (
    JOB_DONE,
    JOB_MODE_REPLACE,
    ActiveState,
    ChangeBatch,
    JobVerb,
    UnitFileChange,
    UnitStatus,
)

__all__ = [
    "BusError",
    "DisconnectedError",
    "JobFailedError",
    "JobSubmissionError",
    "MalformedTimestampError",
    "MissingChannelError",
    "PropertyLookupError",
    "UnitManagerError",
    "decode_usec_timestamp",
    "strip_type_tag",
    "JOB_DONE",
    "JOB_MODE_REPLACE",
    "ActiveState",
    "ChangeBatch",
    "JobVerb",
    "UnitFileChange",
    "UnitStatus",
]
