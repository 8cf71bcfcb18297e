"\"\"\"Identifier validation shared by the loader and the flow controller.\"\"\""

from __future__ import annotations

import math
from typing import Any

from .errors import InvalidInput


def coerce_id(value: Any, name: str) -> int:
    """Return ``value`` as a positive int or raise :class:`InvalidInput`."""
    if isinstance(value, bool):
        raise InvalidInput(f"{name} must be a positive integer, got {value!r}")
    if isinstance(value, int):
        number = value
    elif isinstance(value, float):
        if not math.isfinite(value) or not value.is_integer():
            raise InvalidInput(f"{name} must be a positive integer, got {value!r}")
        number = int(value)
    elif isinstance(value, str) and value.strip().isascii() and value.strip().isdigit():
        number = int(value.strip())
    else:
        raise InvalidInput(f"{name} must be a positive integer, got {value!r}")
    if number <= 0:
        raise InvalidInput(f"{name} must be a positive integer, got {value!r}")
    return number


def validate_ids(candidate_id: Any, offer_id: Any) -> tuple[int, int]:
    return coerce_id(candidate_id, "candidate_id"), coerce_id(offer_id, "offer_id")
