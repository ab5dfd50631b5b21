"""JSON serialization utilities."""

from __future__ import annotations

import datetime
import decimal
from enum import Enum


def json_default(obj: object) -> object:
    """JSON serializer for objects not serializable by default json code."""
    if isinstance(obj, (datetime.date, datetime.datetime)):
        return obj.isoformat()
    if isinstance(obj, Enum):
        return obj.value
    if isinstance(obj, decimal.Decimal):
        if obj == obj.to_integral_value():
            return int(obj)
        return float(obj)
    if isinstance(obj, (set, frozenset, tuple)):
        return list(obj)
    return str(obj)


def format_size(size: int) -> str:
    kb = 1024.0
    mb = kb * 1024.0
    gb = mb * 1024.0
    if size > gb:
        return f"{size / gb:.2f} GB"
    if size > mb:
        return f"{size / mb:.2f} MB"
    if size > kb:
        return f"{size / kb:.2f} KB"
    return f"{size} B"
