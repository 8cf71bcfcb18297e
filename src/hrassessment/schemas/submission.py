from __future__ import annotations

from typing import Any

from pydantic import BaseModel, ConfigDict, Field

from .question import Question


class AnswerRecord(BaseModel):
    """Selected option for one question, as stored by the scoring service."""

    question_index: int
    selected_option_index: int
    score: int

    model_config = ConfigDict(extra="forbid")


class ScoreSubmission(BaseModel):
    """Body of the ``/store-score`` request."""

    candidat_id: int
    offre_id: int
    score_total: int
    questions: list[Question]
    answers: list[AnswerRecord] = Field(default_factory=list)
    violations: dict[str, int] = Field(default_factory=dict)

    model_config = ConfigDict(extra="forbid")

    def to_payload(self) -> dict[str, Any]:
        payload: dict[str, Any] = {
            "candidat_id": self.candidat_id,
            "offre_id": self.offre_id,
            "score_total": self.score_total,
            "questions": [question.to_payload() for question in self.questions],
            "answers": [answer.model_dump() for answer in self.answers],
        }
        if self.violations:
            payload["violations"] = dict(self.violations)
        return payload


class SubmissionAck(BaseModel):
    """Acknowledgement returned by the scoring service."""

    message: str | None = None

    model_config = ConfigDict(extra="allow")


class TraitScores(BaseModel):
    """Per-trait aggregates computed by the scoring service."""

    total: float = 0.0
    ouverture: float = 0.0
    conscience: float = 0.0
    extraversion: float = 0.0
    agreabilite: float = 0.0
    stabilite: float = 0.0

    model_config = ConfigDict(extra="allow")


class TestResponse(BaseModel):
    """Stored test as returned to recruiters."""

    __test__ = False

    candidat_id: int
    offre_id: int
    questions: list[Question] = Field(default_factory=list)
    answers: list[AnswerRecord] = Field(default_factory=list)
    scores: TraitScores = Field(default_factory=TraitScores)
    completed_at: str | None = None

    model_config = ConfigDict(extra="allow")

    def answer_for(self, question_index: int) -> AnswerRecord | None:
        for answer in self.answers:
            if answer.question_index == question_index:
                return answer
        return None
