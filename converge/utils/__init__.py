"""Shared helpers."""

from converge.utils.serialization import (
    JSONEncoderWithUUID,
    from_json,
    parse_datetime,
    to_json,
    to_record,
    utc_now,
)

__all__ = [
    "JSONEncoderWithUUID",
    "from_json",
    "parse_datetime",
    "to_json",
    "to_record",
    "utc_now",
]
