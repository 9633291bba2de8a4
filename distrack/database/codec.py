"""
Wire Codec
JSON encoding that keeps datetimes typed across the WebSocket boundary
"""

import json
from datetime import datetime
from typing import Any

DATE_TAG = '$date'


def to_wire(value: Any) -> Any:
    if isinstance(value, datetime):
        return {DATE_TAG: value.isoformat()}
    if isinstance(value, dict):
        return {k: to_wire(v) for k, v in value.items()}
    if isinstance(value, (list, tuple)):
        return [to_wire(v) for v in value]
    return value


def from_wire(value: Any) -> Any:
    if isinstance(value, dict):
        if len(value) == 1 and DATE_TAG in value:
            return datetime.fromisoformat(value[DATE_TAG])
        return {k: from_wire(v) for k, v in value.items()}
    if isinstance(value, list):
        return [from_wire(v) for v in value]
    return value


def dumps(payload: Any) -> str:
    return json.dumps(to_wire(payload), default=str)


def loads(message: str) -> Any:
    return from_wire(json.loads(message))
