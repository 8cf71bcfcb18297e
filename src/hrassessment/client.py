"""HTTP client for the remote test-generation and scoring service."""

from __future__ import annotations

from typing import Any

import httpx
import structlog
from pydantic import ValidationError

from .core.errors import EmptyResult, LoadError, SubmitError
from .core.validation import validate_ids
from .schemas import Question, ScoreSubmission, SubmissionAck, TestResponse

DEFAULT_BASE_URL = "http://127.0.0.1:8000/api"
MAX_ERROR_TEXT = 500


class AssessmentAPIClient:
    """Async client for ``/generate-test``, ``/store-score`` and ``/test-responses``.

    Nothing is cached: every call goes to the network, so retries are safe.
    """

    def __init__(
        self,
        base_url: str = DEFAULT_BASE_URL,
        *,
        token: str | None = None,
        timeout: float = 10.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Content-Type": "application/json", "Accept": "application/json"}
        if token:
            headers["Authorization"] = f"Bearer {token}"
        self._client = httpx.AsyncClient(
            base_url=base_url,
            headers=headers,
            timeout=timeout,
            transport=transport,
        )
        self._logger = structlog.get_logger(__name__)

    async def __aenter__(self) -> "AssessmentAPIClient":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.aclose()

    async def aclose(self) -> None:
        await self._client.aclose()

    async def fetch_questions(self, candidate_id: Any, offer_id: Any) -> list[Question]:
        candidate, offer = validate_ids(candidate_id, offer_id)
        self._logger.info("loader.request", candidate_id=candidate, offer_id=offer)
        try:
            response = await self._client.post(
                "/generate-test",
                json={"candidat_id": candidate, "offre_id": offer},
            )
        except httpx.HTTPError as exc:
            self._logger.warning("loader.request_failed", error=str(exc))
            raise LoadError(f"Question request failed: {exc}") from exc

        if not response.is_success:
            self._logger.warning(
                "loader.bad_status", status=response.status_code, body=response.text[:MAX_ERROR_TEXT]
            )
            raise LoadError(_error_message(response), status=response.status_code)

        try:
            data = response.json()
        except ValueError as exc:
            raise EmptyResult("Response body is not valid JSON", status=response.status_code) from exc

        raw_questions = data.get("questions") if isinstance(data, dict) else None
        if not isinstance(raw_questions, list) or not raw_questions:
            raise EmptyResult("No questions returned", status=response.status_code)

        try:
            questions = [Question.model_validate(item) for item in raw_questions]
        except ValidationError as exc:
            self._logger.warning("loader.malformed_question", errors=exc.errors())
            raise EmptyResult(f"Malformed question payload: {exc}", status=response.status_code) from exc

        self._logger.info("loader.loaded", question_count=len(questions))
        return questions

    async def store_score(self, submission: ScoreSubmission) -> SubmissionAck:
        try:
            response = await self._client.post("/store-score", json=submission.to_payload())
        except httpx.HTTPError as exc:
            self._logger.warning("submission.request_failed", error=str(exc))
            raise SubmitError(f"Score request failed: {exc}") from exc

        if not response.is_success:
            raise SubmitError(_error_message(response), status=response.status_code)

        if not response.content:
            return SubmissionAck()
        try:
            body = response.json()
        except ValueError:
            return SubmissionAck(message=response.text)
        if isinstance(body, dict):
            return SubmissionAck.model_validate(body)
        return SubmissionAck(message=str(body))

    async def fetch_test_response(self, candidate_id: Any, offer_id: Any) -> TestResponse | None:
        """Return the stored test of a candidate for an offer, or None if absent."""
        candidate, offer = validate_ids(candidate_id, offer_id)
        try:
            response = await self._client.get(f"/test-responses/{candidate}/{offer}")
        except httpx.HTTPError as exc:
            raise LoadError(f"Test response request failed: {exc}") from exc
        if response.status_code == 404:
            return None
        if not response.is_success:
            raise LoadError(_error_message(response), status=response.status_code)
        try:
            return TestResponse.model_validate(response.json())
        except (ValueError, ValidationError) as exc:
            raise EmptyResult(f"Malformed test response: {exc}", status=response.status_code) from exc


def _error_message(response: httpx.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:MAX_ERROR_TEXT] or response.reason_phrase or f"HTTP {response.status_code}"
    if isinstance(body, dict):
        for key in ("error", "message", "detail"):
            if body.get(key):
                return str(body[key])[:MAX_ERROR_TEXT]
    return f"HTTP {response.status_code}"
