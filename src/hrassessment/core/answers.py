"\"\"\"Per-question answer slots and cursor navigation.\"\"\""

from __future__ import annotations

from typing import Sequence

from ..schemas import Option, Question
from .errors import InvalidOption


class AnswerTracker:
    """Hold the selected option for each question and the navigation cursor.

    ``staged`` mirrors the selection shown for the question under the cursor;
    it is committed into the slot whenever the cursor moves away.
    """

    def __init__(self, questions: Sequence[Question]):
        if not questions:
            raise ValueError("AnswerTracker requires at least one question")
        self._questions = tuple(questions)
        self._answers: list[Option | None] = [None] * len(self._questions)
        self._cursor = 0
        self._staged: Option | None = None

    def __len__(self) -> int:
        return len(self._questions)

    @property
    def cursor(self) -> int:
        return self._cursor

    @property
    def staged(self) -> Option | None:
        return self._staged

    @property
    def answers(self) -> tuple[Option | None, ...]:
        return tuple(self._answers)

    @property
    def answered_count(self) -> int:
        return sum(1 for answer in self._answers if answer is not None)

    def in_range(self, index: int) -> bool:
        return 0 <= index < len(self._questions)

    def select(self, index: int, option: Option) -> None:
        if not self.in_range(index):
            raise InvalidOption(f"Question index {index} is out of range")
        if not self._questions[index].owns(option):
            raise InvalidOption(
                f"Option {option.text!r} does not belong to question {index}"
            )
        self._answers[index] = option
        if index == self._cursor:
            self._staged = option

    def get(self, index: int) -> Option | None:
        if not self.in_range(index):
            return None
        return self._answers[index]

    def is_answered(self, index: int) -> bool:
        return self.get(index) is not None

    def commit(self) -> None:
        if self._staged is not None:
            self._answers[self._cursor] = self._staged

    def navigate(self, from_index: int, to_index: int) -> bool:
        """Commit the staged selection at ``from_index`` and move the cursor.

        Only the question under the cursor has a staged selection, so nothing is
        committed when ``from_index`` is elsewhere. Returns False, without touching
        anything, when ``to_index`` is out of range.
        """
        if not self.in_range(to_index):
            return False
        if self._staged is not None and from_index == self._cursor:
            self._answers[from_index] = self._staged
        self._cursor = to_index
        self._staged = self._answers[to_index]
        return True

    def total_score(self) -> int:
        return sum(answer.score for answer in self._answers if answer is not None)
