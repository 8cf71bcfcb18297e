"\"\"\"Test flow controller: the session state machine.\"\"\""

from __future__ import annotations

import asyncio
import inspect
from dataclasses import dataclass
from typing import Any, Callable, Mapping, Protocol, Sequence

import structlog

from ..schemas import Lifecycle, Option, Question, ScoreSubmission, SessionState, Stage, SubmissionAck
from .answers import AnswerTracker
from .errors import AssessmentError, EmptyResult, LoadError, NoSelection, SubmitError
from .timer import DEFAULT_DURATION_SECONDS, CountdownTimer
from .validation import validate_ids
from .violations import DEFAULT_MAX_VIOLATIONS, ViolationPolicy, ViolationRecord

NO_SELECTION_MESSAGE = "Please select an answer."
LOAD_FAILED_MESSAGE = "Unable to load the test questions. Please try again."
VIOLATION_LIMIT_MESSAGE = "Too many security violations."

StageListener = Callable[[SessionState], Any]
CompletionCallback = Callable[[], Any]
TimerFactory = Callable[..., CountdownTimer]


class QuestionSource(Protocol):
    async def fetch_questions(self, candidate_id: Any, offer_id: Any) -> list[Question]:
        ...


class SubmissionService(Protocol):
    def build(
        self,
        candidate_id: int,
        offer_id: int,
        score: int,
        questions: Sequence[Question],
        answers: Sequence[Option | None],
        violations: Mapping[str, int] | None = None,
    ) -> ScoreSubmission:
        ...

    async def send(self, submission: ScoreSubmission) -> SubmissionAck:
        ...

    def resubmit_in_background(self, submission: ScoreSubmission) -> Any:
        ...


@dataclass(slots=True)
class FlowSettings:
    """Timing and policy knobs for a test session."""

    duration_seconds: int = DEFAULT_DURATION_SECONDS
    submit_failure_delay: float = 2.0
    complete_notify_delay: float = 3.0
    max_violations: int = DEFAULT_MAX_VIOLATIONS
    violation_policy: ViolationPolicy = ViolationPolicy.ANNOTATE


@dataclass(slots=True)
class _Event:
    kind: str
    payload: tuple[Any, ...] = ()
    reply: asyncio.Future[Any] | None = None


_STOP = _Event("stop")


class TestFlowController:
    """Drive one timed questionnaire session for a (candidate, offer) pair.

    Every mutation (user command, timer tick, violation report, network result)
    is posted to a single queue and applied by one actor task, one event at a
    time. Handlers never await, so the first terminal transition processed wins
    and later events find a terminal stage and do nothing.
    """

    __test__ = False

    def __init__(
        self,
        candidate_id: Any,
        offer_id: Any,
        *,
        source: QuestionSource,
        submitter: SubmissionService,
        settings: FlowSettings | None = None,
        on_complete: CompletionCallback | None = None,
        timer_factory: TimerFactory = CountdownTimer,
    ) -> None:
        self._raw_ids = (candidate_id, offer_id)
        self._candidate_id: int | None = None
        self._offer_id: int | None = None
        self._source = source
        self._submitter = submitter
        self._settings = settings or FlowSettings()
        self._completion_callback = on_complete
        self._timer_factory = timer_factory

        self._stage = Stage.LOADING
        self._lifecycle = Lifecycle.UNINITIALIZED
        self._questions: tuple[Question, ...] = ()
        self._tracker: AnswerTracker | None = None
        self._timer: CountdownTimer | None = None
        self._time_remaining = self._settings.duration_seconds
        self._violations = ViolationRecord()
        self._total_score: int | None = None
        self._error: str | None = None
        self._last_exception: AssessmentError | None = None
        self._notified = False

        self._queue: asyncio.Queue[_Event] = asyncio.Queue()
        self._actor: asyncio.Task[None] | None = None
        self._tasks: set[asyncio.Task[Any]] = set()
        self._listeners: list[StageListener] = []
        self._waiters: list[tuple[frozenset[Stage], asyncio.Future[Stage]]] = []
        self._settled = asyncio.Event()
        self._closed = False
        self._logger = structlog.get_logger(__name__)

    @property
    def stage(self) -> Stage:
        return self._stage

    @property
    def lifecycle(self) -> Lifecycle:
        return self._lifecycle

    @property
    def identifiers(self) -> tuple[Any, Any]:
        if self._candidate_id is None:
            return self._raw_ids
        return self._candidate_id, self._offer_id

    @property
    def questions(self) -> tuple[Question, ...]:
        return self._questions

    @property
    def current_question(self) -> Question | None:
        if self._tracker is None:
            return None
        return self._questions[self._tracker.cursor]

    @property
    def last_exception(self) -> AssessmentError | None:
        return self._last_exception

    @property
    def violations(self) -> dict[str, int]:
        return self._violations.as_dict()

    @property
    def state(self) -> SessionState:
        tracker = self._tracker
        return SessionState(
            stage=self._stage,
            current_index=tracker.cursor if tracker else 0,
            question_count=len(self._questions),
            answers=tracker.answers if tracker else (),
            time_remaining=self._time_remaining,
            violations=self._violations.as_dict(),
            total_score=self._total_score,
            error=self._error,
        )

    def subscribe(self, listener: StageListener) -> Callable[[], None]:
        """Call ``listener`` with a fresh snapshot on every stage change."""
        self._listeners.append(listener)

        def unsubscribe() -> None:
            if listener in self._listeners:
                self._listeners.remove(listener)

        return unsubscribe

    async def start(self) -> None:
        """Validate identifiers and begin loading questions.

        Raises :class:`InvalidInput` immediately, before any request, when an
        identifier is not a positive integer.
        """
        if self._actor is not None:
            raise RuntimeError("Controller already started")
        self._candidate_id, self._offer_id = validate_ids(*self._raw_ids)
        self._logger = self._logger.bind(candidate_id=self._candidate_id, offer_id=self._offer_id)
        self._actor = asyncio.get_running_loop().create_task(self._run())
        await self._call("load")

    async def retry(self) -> bool:
        return await self._call("load")

    async def select(self, option: Option, index: int | None = None) -> bool:
        return await self._call("select", option, index)

    async def advance(self) -> bool:
        return await self._call("advance")

    async def retreat(self) -> bool:
        return await self._call("retreat")

    async def jump(self, index: int) -> bool:
        return await self._call("jump", index)

    def report_violation(self, kind: str, count: int) -> None:
        """Inbound hook for the violation monitor."""
        self._post("violation", kind, count)

    async def wait_for(self, *stages: Stage) -> Stage:
        if self._stage in stages:
            return self._stage
        future: asyncio.Future[Stage] = asyncio.get_running_loop().create_future()
        self._waiters.append((frozenset(stages), future))
        return await future

    async def join(self) -> Stage:
        """Wait for a terminal stage and, on completion, for the completion callback."""
        await self.wait_for(Stage.COMPLETED, Stage.TIMED_OUT)
        await self._settled.wait()
        return self._stage

    async def close(self) -> None:
        """Stop the timer, cancel in-flight work and shut the actor down."""
        if self._closed:
            return
        self._closed = True
        if self._timer is not None:
            self._timer.stop()
        for task in list(self._tasks):
            task.cancel()
        if self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)
        if self._actor is not None:
            self._queue.put_nowait(_STOP)
            await self._actor
        for _, future in self._waiters:
            if not future.done():
                future.cancel()
        self._waiters.clear()
        self._settled.set()
        self._logger.info("flow.closed", stage=self._stage.value)

    async def _call(self, kind: str, *payload: Any) -> Any:
        if self._actor is None:
            raise RuntimeError("Controller not started")
        if self._closed:
            return False
        future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
        self._queue.put_nowait(_Event(kind, payload, future))
        return await future

    def _post(self, kind: str, *payload: Any) -> None:
        if self._closed:
            return
        self._queue.put_nowait(_Event(kind, payload))

    async def _run(self) -> None:
        while True:
            event = await self._queue.get()
            if event is _STOP:
                break
            handler = getattr(self, f"_on_{event.kind}")
            try:
                result = handler(*event.payload)
            except AssessmentError as exc:
                if event.reply is not None and not event.reply.done():
                    event.reply.set_exception(exc)
                else:
                    self._logger.warning("flow.event_rejected", kind=event.kind, error=str(exc))
                continue
            except Exception as exc:  # noqa: BLE001
                self._logger.exception("flow.event_failed", kind=event.kind)
                if event.reply is not None and not event.reply.done():
                    event.reply.set_exception(exc)
                continue
            if event.reply is not None and not event.reply.done():
                event.reply.set_result(result)

    def _spawn(self, coro: Any) -> asyncio.Task[Any]:
        task = asyncio.ensure_future(coro)
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _later(self, delay: float, kind: str) -> None:
        async def fire() -> None:
            await asyncio.sleep(delay)
            self._post(kind)

        self._spawn(fire())

    def _enter(self, stage: Stage, **details: Any) -> None:
        previous = self._stage
        self._stage = stage
        self._logger.info("flow.stage_changed", from_stage=previous.value, to_stage=stage.value, **details)
        if stage.terminal and self._timer is not None:
            self._timer.stop()
        if stage is Stage.TIMED_OUT:
            self._settled.set()

        remaining = []
        for stages, future in self._waiters:
            if stage in stages and not future.done():
                future.set_result(stage)
            elif not future.done():
                remaining.append((stages, future))
        self._waiters = remaining

        snapshot = self.state
        for listener in list(self._listeners):
            try:
                listener(snapshot)
            except Exception:  # noqa: BLE001
                self._logger.exception("flow.listener_failed", stage=stage.value)

    def _on_load(self) -> bool:
        if self._lifecycle is not Lifecycle.UNINITIALIZED:
            self._logger.debug("flow.load_skipped", lifecycle=self._lifecycle.value)
            return False
        if self._stage not in (Stage.LOADING, Stage.ERROR):
            return False
        self._lifecycle = Lifecycle.LOADING
        self._error = None
        if self._stage is not Stage.LOADING:
            self._enter(Stage.LOADING)
        self._spawn(self._load())
        return True

    async def _load(self) -> None:
        try:
            questions = await self._source.fetch_questions(self._candidate_id, self._offer_id)
        except AssessmentError as exc:
            self._post("load_failed", exc)
        except Exception as exc:  # noqa: BLE001
            self._post("load_failed", LoadError(str(exc)))
        else:
            self._post("loaded", list(questions))

    def _on_loaded(self, questions: list[Question]) -> None:
        if self._stage is not Stage.LOADING:
            return
        if not questions:
            self._on_load_failed(EmptyResult("No questions returned"))
            return
        self._questions = tuple(questions)
        self._tracker = AnswerTracker(self._questions)
        self._lifecycle = Lifecycle.READY
        self._time_remaining = self._settings.duration_seconds
        self._timer = self._timer_factory(
            self._settings.duration_seconds,
            on_tick=lambda remaining: self._post("tick", remaining),
            on_expire=lambda: self._post("expire"),
        )
        self._enter(Stage.IN_PROGRESS, question_count=len(self._questions))
        self._timer.start()

    def _on_load_failed(self, exc: AssessmentError) -> None:
        if self._stage is not Stage.LOADING:
            return
        self._lifecycle = Lifecycle.UNINITIALIZED
        self._last_exception = exc
        self._error = LOAD_FAILED_MESSAGE
        self._enter(Stage.ERROR, error=str(exc), status=getattr(exc, "status", None))

    def _active_tracker(self) -> AnswerTracker | None:
        if self._stage is not Stage.IN_PROGRESS:
            return None
        return self._tracker

    def _on_select(self, option: Option, index: int | None) -> bool:
        tracker = self._active_tracker()
        if tracker is None:
            return False
        tracker.select(tracker.cursor if index is None else index, option)
        self._error = None
        return True

    def _on_advance(self) -> bool:
        tracker = self._active_tracker()
        if tracker is None:
            return False
        cursor = tracker.cursor
        tracker.commit()
        if not tracker.is_answered(cursor):
            self._error = NO_SELECTION_MESSAGE
            raise NoSelection(cursor)
        self._error = None
        if cursor < len(tracker) - 1:
            return tracker.navigate(cursor, cursor + 1)
        self._finish_answering(tracker)
        return True

    def _on_retreat(self) -> bool:
        tracker = self._active_tracker()
        if tracker is None or tracker.cursor == 0:
            return False
        self._error = None
        return tracker.navigate(tracker.cursor, tracker.cursor - 1)

    def _on_jump(self, index: int) -> bool:
        tracker = self._active_tracker()
        if tracker is None:
            return False
        moved = tracker.navigate(tracker.cursor, index)
        if moved:
            self._error = None
        return moved

    def _on_tick(self, remaining: int) -> None:
        if self._stage is Stage.IN_PROGRESS:
            self._time_remaining = min(self._time_remaining, remaining)

    def _on_expire(self) -> None:
        if self._stage is not Stage.IN_PROGRESS:
            return
        self._time_remaining = 0
        self._enter(Stage.TIMED_OUT, reason="timer_expired")

    def _on_violation(self, kind: str, count: int) -> None:
        if self._stage.terminal:
            return
        current = self._violations.update(kind, count)
        self._logger.warning("flow.violation", kind=kind, count=current, total=self._violations.total)
        if (
            self._settings.violation_policy is ViolationPolicy.TERMINATE
            and self._stage is Stage.IN_PROGRESS
            and self._violations.exceeds(self._settings.max_violations)
        ):
            self._error = VIOLATION_LIMIT_MESSAGE
            self._enter(Stage.TIMED_OUT, reason="violation_limit", violations=self._violations.as_dict())

    def _finish_answering(self, tracker: AnswerTracker) -> None:
        answers = tracker.answers
        self._total_score = tracker.total_score()
        submission = self._submitter.build(
            self._candidate_id,
            self._offer_id,
            self._total_score,
            self._questions,
            answers,
            self._violations.as_dict(),
        )
        self._enter(Stage.SUBMITTING, score_total=self._total_score)
        if self._timer is not None:
            self._timer.stop()
        self._spawn(self._submit(submission))

    async def _submit(self, submission: ScoreSubmission) -> None:
        try:
            ack = await self._submitter.send(submission)
        except SubmitError as exc:
            self._post("submit_failed", exc, submission)
        except Exception as exc:  # noqa: BLE001
            self._post("submit_failed", SubmitError(str(exc)), submission)
        else:
            self._post("submitted", ack)

    def _on_submitted(self, ack: SubmissionAck) -> None:
        if self._stage is not Stage.SUBMITTING:
            return
        self._enter(Stage.COMPLETED, score_total=self._total_score)
        self._later(self._settings.complete_notify_delay, "notify")

    def _on_submit_failed(self, exc: SubmitError, submission: ScoreSubmission) -> None:
        if self._stage is not Stage.SUBMITTING:
            return
        self._last_exception = exc
        self._error = f"Score could not be stored: {exc}"
        self._logger.error("flow.submit_failed", error=str(exc), status=exc.status)
        self._submitter.resubmit_in_background(submission)
        self._later(self._settings.submit_failure_delay, "finalize")

    def _on_finalize(self) -> None:
        if self._stage is not Stage.SUBMITTING:
            return
        self._enter(Stage.COMPLETED, score_total=self._total_score, stored=False)
        self._later(self._settings.complete_notify_delay, "notify")

    def _on_notify(self) -> None:
        if self._notified or self._stage is not Stage.COMPLETED:
            return
        self._notified = True
        self._logger.info("flow.completion_notified")
        result = None
        try:
            if self._completion_callback is not None:
                result = self._completion_callback()
        except Exception:  # noqa: BLE001
            self._logger.exception("flow.on_complete_failed")
        if inspect.isawaitable(result):
            self._spawn(self._await_completion(result))
        else:
            self._settled.set()

    async def _await_completion(self, result: Any) -> None:
        try:
            await result
        except Exception:  # noqa: BLE001
            self._logger.exception("flow.on_complete_failed")
        finally:
            self._settled.set()
