"""Serialization utilities for durable state records.

Durable state values are stored as JSON. Records may be plain mappings,
dataclasses or pydantic models; datetimes travel as ISO strings.
"""

import dataclasses
import json
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, Optional, Union
from uuid import UUID

from pydantic import BaseModel


def utc_now() -> datetime:
    """Return timezone-aware UTC datetime."""
    return datetime.now(timezone.utc)


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse a datetime value from various formats.

    Handles ISO strings with a "Z" suffix or an offset, datetime objects
    (naive values are taken as UTC) and None.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        if value.endswith("Z"):
            value = value[:-1] + "+00:00"
        dt = datetime.fromisoformat(value)
    else:
        return None
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


class JSONEncoderWithUUID(json.JSONEncoder):
    """JSON encoder that handles UUID, datetime, Enum, dataclass and pydantic values."""

    def default(self, obj: Any) -> Any:
        if isinstance(obj, UUID):
            return str(obj)
        if isinstance(obj, datetime):
            return obj.isoformat()
        if isinstance(obj, Enum):
            return obj.value
        if isinstance(obj, BaseModel):
            return obj.model_dump(mode="json")
        if dataclasses.is_dataclass(obj) and not isinstance(obj, type):
            return dataclasses.asdict(obj)
        return super().default(obj)


def to_json(data: Any) -> str:
    """Convert Python object to JSON string."""
    return json.dumps(data, cls=JSONEncoderWithUUID, sort_keys=True)


def from_json(json_str: Optional[Union[str, bytes, Dict, list]]) -> Any:
    """Convert JSON string to Python object.

    Already-parsed values are returned unchanged.
    """
    if json_str is None:
        return None
    if isinstance(json_str, (dict, list)):
        return json_str
    return json.loads(json_str)


def to_record(value: Any) -> Dict[str, Any]:
    """Normalize a value into a JSON-compatible mapping."""
    record = from_json(to_json(value))
    if not isinstance(record, dict):
        raise TypeError(f"durable state records must be mappings, got {type(value).__name__}")
    return record


__all__ = [
    "utc_now",
    "parse_datetime",
    "JSONEncoderWithUUID",
    "to_json",
    "from_json",
    "to_record",
]
