"\"\"\"Score submission and background reconciliation.\"\"\""

from __future__ import annotations

import asyncio
from typing import Literal, Mapping, Protocol, Sequence

import structlog
from tenacity import (
    AsyncRetrying,
    RetryError,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from .core.errors import SubmitError
from .core.validation import validate_ids
from .schemas import AnswerRecord, Option, Question, ScoreSubmission, SubmissionAck

OptionResolution = Literal["identity", "value"]


class ScoreSink(Protocol):
    async def store_score(self, submission: ScoreSubmission) -> SubmissionAck:
        ...


def resolve_option_index(
    question: Question,
    option: Option,
    resolution: OptionResolution = "identity",
) -> int:
    """Return the position of ``option`` inside ``question``.

    ``identity`` trusts the index stamped at load time. ``value`` matches on
    (text, score); the first match wins and no match yields 0, so two options
    sharing text and score both resolve to the first one.
    """
    if resolution == "identity" and question.owns(option):
        return option.index
    for position, candidate in enumerate(question.options):
        if candidate.text == option.text and candidate.score == option.score:
            return position
    return 0


def build_answer_records(
    questions: Sequence[Question],
    answers: Sequence[Option | None],
    resolution: OptionResolution = "identity",
) -> list[AnswerRecord]:
    records: list[AnswerRecord] = []
    for position, (question, answer) in enumerate(zip(questions, answers)):
        if answer is None:
            continue
        records.append(
            AnswerRecord(
                question_index=position,
                selected_option_index=resolve_option_index(question, answer, resolution),
                score=answer.score,
            )
        )
    return records


class ResultSubmitter:
    """Post completed answer sets to the scoring service.

    ``submit`` and ``send`` make a single attempt. Failed payloads can be handed to
    ``resubmit_in_background``, which retries with exponential backoff and keeps
    anything still undelivered in ``pending``.
    """

    def __init__(
        self,
        sink: ScoreSink,
        *,
        resolution: OptionResolution = "identity",
        retry_attempts: int = 3,
        retry_wait_min: float = 1.0,
        retry_wait_max: float = 10.0,
    ) -> None:
        self._sink = sink
        self._resolution = resolution
        self._retry_attempts = retry_attempts
        self._retry_wait_min = retry_wait_min
        self._retry_wait_max = retry_wait_max
        self._background: set[asyncio.Task[SubmissionAck | None]] = set()
        self._pending: list[ScoreSubmission] = []
        self._logger = structlog.get_logger(__name__)

    @property
    def resolution(self) -> OptionResolution:
        return self._resolution

    @property
    def pending(self) -> list[ScoreSubmission]:
        return list(self._pending)

    def build(
        self,
        candidate_id: int,
        offer_id: int,
        score: int,
        questions: Sequence[Question],
        answers: Sequence[Option | None],
        violations: Mapping[str, int] | None = None,
    ) -> ScoreSubmission:
        candidate, offer = validate_ids(candidate_id, offer_id)
        return ScoreSubmission(
            candidat_id=candidate,
            offre_id=offer,
            score_total=score,
            questions=list(questions),
            answers=build_answer_records(questions, answers, self._resolution),
            violations=dict(violations or {}),
        )

    async def submit(
        self,
        candidate_id: int,
        offer_id: int,
        score: int,
        questions: Sequence[Question],
        answers: Sequence[Option | None],
        violations: Mapping[str, int] | None = None,
    ) -> SubmissionAck:
        submission = self.build(candidate_id, offer_id, score, questions, answers, violations)
        return await self.send(submission)

    async def send(self, submission: ScoreSubmission) -> SubmissionAck:
        self._logger.info(
            "submission.sending",
            candidate_id=submission.candidat_id,
            offer_id=submission.offre_id,
            score_total=submission.score_total,
            answer_count=len(submission.answers),
        )
        ack = await self._sink.store_score(submission)
        self._logger.info("submission.stored", candidate_id=submission.candidat_id)
        return ack

    def resubmit_in_background(self, submission: ScoreSubmission) -> asyncio.Task[SubmissionAck | None]:
        task = asyncio.get_running_loop().create_task(self._retry(submission))
        self._background.add(task)
        task.add_done_callback(self._background.discard)
        return task

    async def drain(self) -> None:
        """Wait for every background resubmission to settle."""
        if self._background:
            await asyncio.gather(*list(self._background), return_exceptions=True)

    async def _retry(self, submission: ScoreSubmission) -> SubmissionAck | None:
        retrying = AsyncRetrying(
            stop=stop_after_attempt(self._retry_attempts),
            wait=wait_exponential(min=self._retry_wait_min, max=self._retry_wait_max),
            retry=retry_if_exception_type(SubmitError),
        )
        try:
            async for attempt in retrying:
                with attempt:
                    return await self.send(submission)
        except RetryError as exc:
            self._pending.append(submission)
            self._logger.error(
                "submission.retry_exhausted",
                candidate_id=submission.candidat_id,
                offer_id=submission.offre_id,
                attempts=self._retry_attempts,
                error=str(exc.last_attempt.exception()),
            )
        return None
