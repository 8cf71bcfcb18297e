"\"\"\"Security violation bookkeeping.\"\"\""

from __future__ import annotations

from collections import Counter
from enum import Enum
from typing import Callable, Iterator, Mapping

import structlog

DEFAULT_MAX_VIOLATIONS = 5

ViolationListener = Callable[[str, int], object]


class ViolationPolicy(str, Enum):
    """What happens once the violation total reaches the configured maximum."""

    ANNOTATE = "annotate"
    TERMINATE = "terminate"


class ViolationRecord(Mapping[str, int]):
    """Monotonic mapping from violation type to its cumulative count."""

    def __init__(self, initial: Mapping[str, int] | None = None):
        self._counts: dict[str, int] = {}
        for kind, count in (initial or {}).items():
            self.update(kind, count)

    def __getitem__(self, kind: str) -> int:
        return self._counts[kind]

    def __iter__(self) -> Iterator[str]:
        return iter(self._counts)

    def __len__(self) -> int:
        return len(self._counts)

    def update(self, kind: str, count: int) -> int:
        """Record a cumulative count; lower counts never shrink the record."""
        current = self._counts.get(kind, 0)
        self._counts[kind] = max(current, int(count))
        return self._counts[kind]

    @property
    def total(self) -> int:
        return sum(self._counts.values())

    def exceeds(self, maximum: int) -> bool:
        return self.total >= maximum

    def as_dict(self) -> dict[str, int]:
        return dict(self._counts)


class ViolationMonitor:
    """Count raw monitored events and forward cumulative counts to a listener.

    The monitor stands in for whatever detects focus loss, tab switches or
    clipboard use on the client side.
    """

    def __init__(self, listener: ViolationListener | None = None):
        self._listener = listener
        self._counter: Counter[str] = Counter()
        self._logger = structlog.get_logger(__name__)

    def attach(self, listener: ViolationListener) -> None:
        self._listener = listener

    def record(self, kind: str) -> int:
        self._counter[kind] += 1
        count = self._counter[kind]
        self._logger.warning("violation.detected", kind=kind, count=count)
        if self._listener is not None:
            self._listener(kind, count)
        return count

    def counts(self) -> dict[str, int]:
        return dict(self._counter)
