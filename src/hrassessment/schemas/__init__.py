"\"\"\"Pydantic schema definitions for assessment data structures.\"\"\""

from __future__ import annotations

from .question import Option, Question
from .session import Lifecycle, SessionState, Stage
from .submission import (
    AnswerRecord,
    ScoreSubmission,
    SubmissionAck,
    TestResponse,
    TraitScores,
)

__all__ = [
    "AnswerRecord",
    "Lifecycle",
    "Option",
    "Question",
    "ScoreSubmission",
    "SessionState",
    "Stage",
    "SubmissionAck",
    "TestResponse",
    "TraitScores",
]
