"""
Make audit metadata safe for the JSON column
"""
from datetime import date, datetime
from enum import Enum
from typing import Any

from pydantic import BaseModel

from storeclock.utils.datetime_utils import iso_8601_utc


def sanitize_for_json(value: Any) -> Any:
    """
    Recursively convert values for audit_logs.meta_json: datetimes to UTC
    ISO-8601, dates to isoformat, enums to their value, models to dicts.
    Anything else unknown becomes str().
    """
    if value is None or isinstance(value, (str, int, float, bool)):
        return value
    if isinstance(value, datetime):
        return iso_8601_utc(value)
    if isinstance(value, date):
        return value.isoformat()
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, BaseModel):
        return sanitize_for_json(value.model_dump())
    if isinstance(value, dict):
        return {str(k): sanitize_for_json(v) for k, v in value.items()}
    if isinstance(value, (list, tuple, set)):
        return [sanitize_for_json(item) for item in value]
    return str(value)
