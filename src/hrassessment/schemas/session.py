from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, ConfigDict, Field

from .question import Option


class Stage(str, Enum):
    """Externally visible stage of a test session."""

    LOADING = "loading"
    ERROR = "error"
    IN_PROGRESS = "in_progress"
    SUBMITTING = "submitting"
    COMPLETED = "completed"
    TIMED_OUT = "timed_out"

    @property
    def terminal(self) -> bool:
        return self in (Stage.COMPLETED, Stage.TIMED_OUT)


class Lifecycle(str, Enum):
    """Question-set lifecycle guarding duplicate loads."""

    UNINITIALIZED = "uninitialized"
    LOADING = "loading"
    READY = "ready"


class SessionState(BaseModel):
    """Read-only snapshot of a running session."""

    stage: Stage
    current_index: int = 0
    question_count: int = 0
    answers: tuple[Option | None, ...] = ()
    time_remaining: int = 0
    violations: dict[str, int] = Field(default_factory=dict)
    total_score: int | None = None
    error: str | None = None

    model_config = ConfigDict(frozen=True)

    @property
    def answered_count(self) -> int:
        return sum(1 for answer in self.answers if answer is not None)

    @property
    def progress_percent(self) -> float:
        if not self.question_count or not self.current_index:
            return 0.0
        return self.current_index / self.question_count * 100
