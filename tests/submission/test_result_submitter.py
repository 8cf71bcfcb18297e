from __future__ import annotations

import asyncio

import pytest

from hrassessment.core import SubmitError
from hrassessment.schemas import Question, ScoreSubmission, SubmissionAck
from hrassessment.submission import (
    ResultSubmitter,
    build_answer_records,
    resolve_option_index,
)


def duplicate_question() -> Question:
    return Question.model_validate(
        {
            "trait": "agreabilite",
            "question": "I trust people easily.",
            "options": [
                {"text": "Agree", "score": 2},
                {"text": "Agree", "score": 2},
                {"text": "Disagree", "score": 0},
            ],
        }
    )


class FlakySink:
    def __init__(self, failures: int):
        self.failures = failures
        self.calls = 0

    async def store_score(self, submission: ScoreSubmission) -> SubmissionAck:
        self.calls += 1
        if self.calls <= self.failures:
            raise SubmitError("unavailable", status=503)
        return SubmissionAck(message="ok")


def test_value_resolution_maps_duplicates_to_first_match():
    question = duplicate_question()

    assert resolve_option_index(question, question.options[0], "value") == 0
    assert resolve_option_index(question, question.options[1], "value") == 0


def test_identity_resolution_keeps_stable_index():
    question = duplicate_question()

    assert resolve_option_index(question, question.options[1]) == 1
    assert resolve_option_index(question, question.options[2]) == 2


def test_unknown_option_defaults_to_zero():
    question = duplicate_question()
    stranger = Question.model_validate(
        {"trait": "x", "question": "?", "options": [{"text": "Maybe", "score": 1}]}
    ).options[0]

    assert resolve_option_index(question, stranger, "value") == 0
    assert resolve_option_index(question, stranger) == 0


def test_build_answer_records_skips_unanswered():
    questions = [duplicate_question(), duplicate_question(), duplicate_question()]
    answers = [questions[0].options[1], None, questions[2].options[2]]

    records = build_answer_records(questions, answers)

    assert [record.model_dump() for record in records] == [
        {"question_index": 0, "selected_option_index": 1, "score": 2},
        {"question_index": 2, "selected_option_index": 2, "score": 0},
    ]


def test_background_resubmission_retries_until_stored():
    sink = FlakySink(failures=2)
    submitter = ResultSubmitter(sink, retry_attempts=3, retry_wait_min=0, retry_wait_max=0)
    question = duplicate_question()
    submission = submitter.build(1, 2, 2, [question], [question.options[0]])

    async def scenario():
        task = submitter.resubmit_in_background(submission)
        await submitter.drain()
        return task.result()

    ack = asyncio.run(scenario())

    assert ack.message == "ok"
    assert sink.calls == 3
    assert submitter.pending == []


def test_exhausted_resubmission_is_kept_pending():
    sink = FlakySink(failures=10)
    submitter = ResultSubmitter(sink, retry_attempts=2, retry_wait_min=0, retry_wait_max=0)
    question = duplicate_question()
    submission = submitter.build(1, 2, 0, [question], [question.options[2]])

    async def scenario():
        submitter.resubmit_in_background(submission)
        await submitter.drain()

    asyncio.run(scenario())

    assert sink.calls == 2
    assert submitter.pending == [submission]


def test_violations_only_sent_when_recorded():
    submitter = ResultSubmitter(FlakySink(failures=0))
    question = duplicate_question()

    clean = submitter.build(1, 2, 2, [question], [question.options[0]])
    flagged = submitter.build(1, 2, 2, [question], [question.options[0]], {"copy": 2})

    assert "violations" not in clean.to_payload()
    assert flagged.to_payload()["violations"] == {"copy": 2}


def test_submit_posts_once_and_surfaces_failure():
    question = duplicate_question()
    stored = ResultSubmitter(FlakySink(failures=0), resolution="value")
    rejected_sink = FlakySink(failures=1)
    rejected = ResultSubmitter(rejected_sink)

    ack = asyncio.run(stored.submit(3, 4, 2, [question], [question.options[1]]))

    assert ack.message == "ok"
    with pytest.raises(SubmitError):
        asyncio.run(rejected.submit(3, 4, 2, [question], [question.options[1]]))
    assert rejected_sink.calls == 1
    assert rejected.pending == []
