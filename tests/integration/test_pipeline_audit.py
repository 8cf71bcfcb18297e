from __future__ import annotations

import asyncio
import json
from pathlib import Path
from typing import Any

from dependency_injector import providers

from hrassessment.container import create_container
from hrassessment.core import TestFlowController, ViolationMonitor
from hrassessment.pipeline import AuditLogger
from hrassessment.schemas import Question, ScoreSubmission, Stage, SubmissionAck


class DummyService:
    def __init__(self) -> None:
        self.submissions: list[ScoreSubmission] = []

    async def fetch_questions(self, candidate_id: Any, offer_id: Any) -> list[Question]:
        return [
            Question.model_validate(
                {
                    "trait": "stabilite",
                    "question": "I stay calm under pressure.",
                    "options": [{"text": "No", "score": 0}, {"text": "Yes", "score": 4}],
                }
            )
        ]

    async def store_score(self, submission: ScoreSubmission) -> SubmissionAck:
        self.submissions.append(submission)
        return SubmissionAck(message="ok")

    async def aclose(self) -> None:
        return None


def test_pipeline_writes_audit_log(tmp_path: Path) -> None:
    audit_path = tmp_path / "audit.jsonl"
    service = DummyService()
    container = create_container(
        settings={"flow": {"submit_failure_delay": 0, "complete_notify_delay": 0}}
    )
    container.api_client.override(providers.Object(service))
    completions: list[str] = []

    async def driver(controller: TestFlowController) -> None:
        await controller.wait_for(Stage.IN_PROGRESS)
        monitor = ViolationMonitor(controller.report_violation)
        monitor.record("tab_switch")
        await controller.select(controller.current_question.options[1])
        await controller.advance()

    state = asyncio.run(
        container.pipeline().run(
            candidate_id=11,
            offer_id=22,
            driver=driver,
            on_complete=lambda: completions.append("done"),
            audit_logger=AuditLogger(audit_path),
        )
    )

    assert state.stage is Stage.COMPLETED
    assert state.total_score == 4
    assert completions == ["done"]
    assert service.submissions[0].violations == {"tab_switch": 1}

    audit_entry = json.loads(audit_path.read_text(encoding="utf-8").strip().splitlines()[0])
    assert audit_entry["candidate_id"] == 11
    assert audit_entry["answers"] == [{"question_index": 0, "selected_option_index": 1, "score": 4}]
    assert audit_entry["violations"] == {"tab_switch": 1}
    assert audit_entry["app_version"]
