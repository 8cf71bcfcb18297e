"\"\"\"Core assessment engine components.\"\"\""

from __future__ import annotations

# NOTE: keep imports explicit for export clarity.
from .answers import AnswerTracker
from .errors import (
    AssessmentError,
    EmptyResult,
    InvalidInput,
    InvalidOption,
    LoadError,
    NoSelection,
    SubmitError,
)
from .flow import FlowSettings, QuestionSource, SubmissionService, TestFlowController
from .timer import CountdownTimer, format_remaining
from .validation import validate_ids
from .violations import ViolationMonitor, ViolationPolicy, ViolationRecord

__all__ = [
    "AnswerTracker",
    "AssessmentError",
    "CountdownTimer",
    "EmptyResult",
    "FlowSettings",
    "InvalidInput",
    "InvalidOption",
    "LoadError",
    "NoSelection",
    "QuestionSource",
    "SubmissionService",
    "SubmitError",
    "TestFlowController",
    "ViolationMonitor",
    "ViolationPolicy",
    "ViolationRecord",
    "format_remaining",
    "validate_ids",
]
