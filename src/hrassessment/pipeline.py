"\"\"\"Assessment session assembly and execution.\"\"\""

from __future__ import annotations

import json
from pathlib import Path
from typing import Any, Awaitable, Callable

import pendulum
import structlog

from .core import TestFlowController
from .schemas import SessionState, Stage
from .submission import ResultSubmitter, build_answer_records
from . import __version__

SessionDriver = Callable[[TestFlowController], Awaitable[Any]]
ControllerFactory = Callable[..., TestFlowController]


class AssessmentPipeline:
    """End-to-end session orchestrator.

    The driver is whatever front-end feeds user actions into the controller;
    the pipeline owns start-up, teardown and the audit record.
    """

    def __init__(
        self,
        *,
        controller_factory: ControllerFactory,
        submitter: ResultSubmitter,
    ) -> None:
        self._controller_factory = controller_factory
        self._submitter = submitter
        self._logger = structlog.get_logger(__name__)

    async def run(
        self,
        *,
        candidate_id: Any,
        offer_id: Any,
        driver: SessionDriver,
        on_complete: Callable[[], Any] | None = None,
        audit_logger: "AuditLogger | None" = None,
        wait_for_retries: bool = False,
    ) -> SessionState:
        controller = self._controller_factory(candidate_id, offer_id, on_complete=on_complete)
        await controller.start()
        try:
            await driver(controller)
            if controller.stage in (Stage.SUBMITTING, Stage.COMPLETED, Stage.TIMED_OUT):
                await controller.join()
        finally:
            await controller.close()

        if wait_for_retries:
            await self._submitter.drain()

        state = controller.state
        self._logger.info(
            "session.finished",
            stage=state.stage.value,
            score_total=state.total_score,
            answered=state.answered_count,
            violations=state.violations,
        )
        if audit_logger:
            audit_logger.append(self._audit_record(controller, state))
        return state

    def _audit_record(self, controller: TestFlowController, state: SessionState) -> dict[str, Any]:
        answers = build_answer_records(
            controller.questions, state.answers, self._submitter.resolution
        )
        candidate_id, offer_id = controller.identifiers
        return {
            "candidate_id": candidate_id,
            "offer_id": offer_id,
            "stage": state.stage.value,
            "score_total": state.total_score,
            "answers": [answer.model_dump() for answer in answers],
            "question_count": state.question_count,
            "time_remaining": state.time_remaining,
            "violations": state.violations,
            "error": state.error,
            "pending_resubmissions": len(self._submitter.pending),
            "timestamp": pendulum.now().to_iso8601_string(),
            "app_version": __version__,
        }


class AuditLogger:
    """Append-only audit logger writing JSON lines."""

    def __init__(self, path: Path):
        self._path = path
        self._path.parent.mkdir(parents=True, exist_ok=True)

    def append(self, record: dict) -> None:
        with self._path.open("a", encoding="utf-8") as handle:
            handle.write(json.dumps(record, ensure_ascii=False))
            handle.write("\n")
