"""
Staged analysis pipeline and per-session workflow state.

A session holds at most one current run. ``submit`` validates synchronously,
then schedules the run on the running event loop and returns a handle right
away. While a run is ``running`` two things happen concurrently:

* the stage pointer advances one stage per ``stage_interval`` seconds, which
  gives every run a minimum perceived duration;
* the scoring engine computes the score pair.

The run succeeds once both are finished. A scoring failure ends the run
immediately without waiting for the remaining stages. ``reset`` is the only
way to cancel and discards the run entirely.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import time
import uuid
from collections.abc import Awaitable, Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from functools import partial

from .classifier import classify
from .errors import (
    EngineError,
    EngineUnavailable,
    RejectionReason,
    ScoringTimeout,
    SubmissionRejected,
)
from .explanations import explain
from .models import (
    PIPELINE_STAGES,
    AnalysisResult,
    AnalysisRun,
    RunError,
    RunStatus,
    ScorePair,
    Stage,
    Submission,
    SubmissionKind,
)
from .scoring import ScoringEngine
from .validator import validate

logger = logging.getLogger(__name__)

StageCallback = Callable[[AnalysisRun, Stage], Awaitable[None] | None]
RunCallback = Callable[[AnalysisRun], Awaitable[None] | None]


@dataclass
class AnalysisSession:
    """Per-caller context: the current run plus the last validation warning."""

    session_id: str
    run: AnalysisRun | None = None
    warning: str | None = None
    rejection: RejectionReason | None = None

    @property
    def state(self) -> RunStatus:
        if self.run is None:
            return RunStatus.IDLE
        return self.run.status

    @property
    def is_busy(self) -> bool:
        return self.run is not None and not self.run.is_terminal


@dataclass(frozen=True)
class RunHandle:
    run_id: str
    session_id: str


@dataclass
class _Subscription:
    on_stage_change: StageCallback | None = None
    on_complete: RunCallback | None = None
    on_error: RunCallback | None = None


@dataclass
class AnalysisOrchestrator:
    engine: ScoringEngine
    stages: Sequence[Stage] = PIPELINE_STAGES
    stage_interval: float = 0.75
    max_run_seconds: float = 30.0
    _runs: dict[str, AnalysisRun] = field(default_factory=dict, init=False, repr=False)
    _tasks: dict[str, asyncio.Task] = field(default_factory=dict, init=False, repr=False)
    _subscriptions: dict[str, list[_Subscription]] = field(default_factory=dict, init=False, repr=False)
    _callback_tasks: set[asyncio.Task] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        if not self.stages:
            raise ValueError("The pipeline needs at least one stage")
        if [stage.ordinal for stage in self.stages] != list(range(len(self.stages))):
            raise ValueError("Stage ordinals must be 0..N-1 in pipeline order")

    # Public API -----------------------------------------------------
    def submit(self, session: AnalysisSession, submission: Submission) -> RunHandle:
        """
        Validate and start analysing ``submission`` for ``session``.

        Must be called from a running event loop. A rejected submission leaves
        the session's current run untouched, records the warning and re-raises
        ``SubmissionRejected``. An accepted one supersedes any previous run.
        """
        try:
            validate(submission)
        except SubmissionRejected as exc:
            session.warning = exc.message
            session.rejection = exc.reason
            logger.info("Session %s: submission rejected (%s)", session.session_id, exc.reason.value)
            raise

        loop = asyncio.get_running_loop()
        self._discard(session)
        session.warning = None
        session.rejection = None

        run = AnalysisRun(
            id=f"run_{uuid.uuid4().hex[:12]}",
            session_id=session.session_id,
            kind=SubmissionKind(submission.kind),
            submission=submission,
            status=RunStatus.VALIDATING,
            stage_count=len(self.stages),
        )
        self._runs[run.id] = run
        session.run = run
        run.status = RunStatus.RUNNING

        task = loop.create_task(self._execute(run))
        self._tasks[run.id] = task
        task.add_done_callback(lambda _task, run_id=run.id: self._tasks.pop(run_id, None))

        logger.info("[%s] New %s analysis for session %s", run.id, run.kind.value, session.session_id)
        return RunHandle(run_id=run.id, session_id=session.session_id)

    def subscribe(
        self,
        handle: RunHandle | str,
        on_stage_change: StageCallback | None = None,
        on_complete: RunCallback | None = None,
        on_error: RunCallback | None = None,
    ) -> None:
        run_id = _run_id(handle)
        run = self._runs.get(run_id)
        if run is None:
            raise KeyError(run_id)
        subscription = _Subscription(on_stage_change, on_complete, on_error)
        if run.is_terminal:
            self._deliver_terminal(run, [subscription])
            return
        self._subscriptions.setdefault(run_id, []).append(subscription)

    def get_status(self, handle: RunHandle | str) -> AnalysisRun | None:
        run = self._runs.get(_run_id(handle))
        if run is None:
            return None
        return _snapshot(run)

    def reset(self, session: AnalysisSession) -> None:
        """Discard the session's run, warning and error and return it to idle."""
        self._discard(session)
        session.warning = None
        session.rejection = None

    async def wait(self, handle: RunHandle | str) -> AnalysisRun | None:
        """Wait until the run is terminal or discarded, then return its status."""
        task = self._tasks.get(_run_id(handle))
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        return self.get_status(handle)

    async def drain_callbacks(self) -> None:
        """Wait for coroutine subscribers that are still running."""
        while True:
            pending = [task for task in self._callback_tasks if not task.done()]
            if not pending:
                return
            await asyncio.gather(*pending, return_exceptions=True)

    async def shutdown(self) -> None:
        tasks = list(self._tasks.values())
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        await self.drain_callbacks()
        self._runs.clear()
        self._subscriptions.clear()

    @property
    def active_runs(self) -> int:
        return sum(1 for run in self._runs.values() if not run.is_terminal)

    def stage_for(self, run: AnalysisRun) -> Stage:
        return self.stages[run.current_stage_index]

    # Pipeline -------------------------------------------------------
    async def _execute(self, run: AnalysisRun) -> None:
        started = time.monotonic()
        submission = run.submission
        self._notify_stage(run)
        try:
            scores = await asyncio.wait_for(
                self._run_stages(run, submission),
                timeout=self.max_run_seconds,
            )
        except asyncio.TimeoutError:
            self._fail(run, ScoringTimeout(f"Analysis did not finish within {self.max_run_seconds:g}s"), started)
        except EngineError as exc:
            self._fail(run, exc, started)
        except asyncio.CancelledError:
            run.submission = None
            logger.info("[%s] Run cancelled", run.id)
            raise
        except Exception as exc:
            logger.error("[%s] Unexpected scoring failure: %s", run.id, exc, exc_info=True)
            self._fail(run, EngineUnavailable(f"Scoring engine failed: {exc}"), started)
        else:
            self._succeed(run, scores, started)

    async def _run_stages(self, run: AnalysisRun, submission: Submission) -> ScorePair:
        ticker = asyncio.ensure_future(self._advance_stages(run))
        scoring = asyncio.ensure_future(self.engine.score(submission))
        try:
            # Returns early only if scoring raises; otherwise waits for the last stage too.
            await asyncio.wait({ticker, scoring}, return_when=asyncio.FIRST_EXCEPTION)
            return scoring.result()
        finally:
            for task in (ticker, scoring):
                if not task.done():
                    task.cancel()
            await asyncio.gather(ticker, scoring, return_exceptions=True)

    async def _advance_stages(self, run: AnalysisRun) -> None:
        for stage in self.stages[1:]:
            await asyncio.sleep(self.stage_interval)
            if stage.ordinal > run.current_stage_index:
                run.current_stage_index = stage.ordinal
                self._notify_stage(run)

    def _succeed(self, run: AnalysisRun, scores: ScorePair, started: float) -> None:
        risk = classify(scores.fake_score)
        run.result = AnalysisResult(
            fake_score=scores.fake_score,
            real_score=scores.real_score,
            risk=risk,
            verdict=risk.headline,
            explanations=list(explain(risk)),
        )
        run.current_stage_index = len(self.stages) - 1
        self._finish(run, RunStatus.SUCCEEDED, started)
        logger.info(
            "[%s] Analysis completed. Fake: %d/100, risk: %s, time: %.2fs",
            run.id, scores.fake_score, risk.value, run.processing_time,
        )
        self._deliver_terminal(run, self._subscriptions.pop(run.id, []))

    def _fail(self, run: AnalysisRun, exc: EngineError, started: float) -> None:
        run.error = RunError(code=exc.code, message=exc.message)
        self._finish(run, RunStatus.FAILED, started)
        logger.error("[%s] Analysis failed (%s): %s", run.id, exc.code.value, exc.message)
        self._deliver_terminal(run, self._subscriptions.pop(run.id, []))

    @staticmethod
    def _finish(run: AnalysisRun, status: RunStatus, started: float) -> None:
        run.status = status
        run.submission = None
        run.completed_at = datetime.now(timezone.utc)
        run.processing_time = round(time.monotonic() - started, 2)

    # Notifications --------------------------------------------------
    def _notify_stage(self, run: AnalysisRun) -> None:
        subscriptions = self._subscriptions.get(run.id)
        if not subscriptions:
            return
        snapshot = _snapshot(run)
        stage = self.stages[run.current_stage_index]
        for subscription in subscriptions:
            if subscription.on_stage_change:
                self._invoke(subscription.on_stage_change, snapshot, stage)

    def _deliver_terminal(self, run: AnalysisRun, subscriptions: list[_Subscription]) -> None:
        snapshot = _snapshot(run)
        for subscription in subscriptions:
            callback = subscription.on_complete if run.status is RunStatus.SUCCEEDED else subscription.on_error
            if callback:
                self._invoke(callback, snapshot)

    def _invoke(self, callback: Callable[..., Awaitable[None] | None], *args: object) -> None:
        try:
            result = callback(*args)
            if inspect.isawaitable(result):
                task = asyncio.ensure_future(result)
                self._callback_tasks.add(task)
                task.add_done_callback(partial(self._callback_done, callback))
        except Exception:
            # A broken subscriber must not change the outcome of the run.
            logger.exception("Run subscriber %r raised", callback)

    def _callback_done(self, callback: Callable[..., object], task: asyncio.Task) -> None:
        self._callback_tasks.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error("Run subscriber %r raised", callback, exc_info=exc)

    def _discard(self, session: AnalysisSession) -> None:
        run = session.run
        session.run = None
        if run is None:
            return
        task = self._tasks.pop(run.id, None)
        if task is not None and not task.done():
            task.cancel()
            logger.info("[%s] Run discarded while %s", run.id, run.status.value)
        run.submission = None
        self._runs.pop(run.id, None)
        self._subscriptions.pop(run.id, None)


def _run_id(handle: RunHandle | str) -> str:
    return handle.run_id if isinstance(handle, RunHandle) else handle


def _snapshot(run: AnalysisRun) -> AnalysisRun:
    return run.model_copy(update={"submission": None}, deep=True)
