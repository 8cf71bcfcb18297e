"\"\"\"Error taxonomy for the assessment flow.\"\"\""

from __future__ import annotations


class AssessmentError(Exception):
    """Base class for every error raised by the assessment engine."""


class InvalidInput(AssessmentError, ValueError):
    """Raised when candidate or offer identifiers are not positive integers."""


class LoadError(AssessmentError):
    """Raised when the question set cannot be fetched."""

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.message} (status {self.status})"


class EmptyResult(LoadError):
    """Raised when the remote service answers with no usable questions."""


class NoSelection(AssessmentError):
    """Raised when advancing past a question that has no selected option."""

    def __init__(self, index: int):
        super().__init__(f"No option selected for question {index}")
        self.index = index


class InvalidOption(AssessmentError, ValueError):
    """Raised when an option does not belong to the targeted question."""


class SubmitError(AssessmentError):
    """Raised when the score submission is rejected or cannot be delivered."""

    def __init__(self, message: str, *, status: int | None = None):
        super().__init__(message)
        self.status = status
        self.message = message

    def __str__(self) -> str:
        if self.status is None:
            return self.message
        return f"{self.message} (status {self.status})"
