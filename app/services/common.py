from __future__ import annotations

import uuid


def coerce_uuid(value: str | uuid.UUID) -> uuid.UUID:
    if isinstance(value, uuid.UUID):
        return value
    return uuid.UUID(str(value))


def safe_div(num: float, den: float) -> float:
    if den <= 0:
        return 0.0
    return num / den


def clamp(value: float, low: float, high: float) -> float:
    return max(low, min(high, value))
