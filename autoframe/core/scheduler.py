"""Generation scheduler.

Decides on every tick whether to fire a generation, defer it or skip it, and
applies the outcome of each attempt to the schedule state.

The decision is a pure function of the state and the current time
(``decide``); ``ScheduleController`` applies its result and runs attempts;
``ScheduleRunner`` drives the controller from asyncio timers.

States:
    IDLE       not running
    SCHEDULED  running, waiting for ``next_due_at``
    IN_FLIGHT  an attempt is executing
    BACKOFF    running, waiting for ``backoff_until`` after a quota error

A scheduled tick that is due always moves ``next_due_at`` one interval ahead
(the interval is wall-clock periodic). It then fires unless, in order: an
attempt is in flight, a backoff is active, Gemini spacing is not yet
satisfied (``next_due_at`` is moved to the earliest allowed time), or the
inputs are unchanged since the last success.

A manual "fire now" skips the due/interval check and the unchanged check but
honours in-flight, backoff and spacing the same way.

Examples:
    >>> controller = ScheduleController(orchestrator, context, clock=clock)
    >>> controller.start()
    >>> action = await controller.tick()

Tests:
    - tests/unit/test_scheduler.py
    - tests/unit/test_runner.py
"""

from __future__ import annotations

import asyncio
import logging
import math
import time
from collections.abc import Callable
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Any

from autoframe.config import INTERVAL_OPTIONS, ProviderMode, ProviderType, Settings
from autoframe.core.context import GenerationContext
from autoframe.core.errors import (
    DEFAULT_RETRY_DELAY_SECONDS,
    ClassifiedError,
    ErrorKind,
)
from autoframe.core.orchestrator import ProviderOrchestrator
from autoframe.core.spacing import SpacingTracker, mode_uses_primary
from autoframe.schemas import AttemptResult, GenerationRequest, ScheduleStatus

logger = logging.getLogger(__name__)

Clock = Callable[[], int]
Sink = Callable[[AttemptResult], Any]


def wall_clock_ms() -> int:
    """Current wall-clock time in epoch milliseconds."""
    return int(time.time() * 1000)


def _fmt(ts: int | None) -> str:
    if ts is None:
        return "-"
    return datetime.fromtimestamp(ts / 1000, tz=timezone.utc).strftime("%H:%M:%S")


class Phase(str, Enum):
    """Scheduler phase, derived from the state."""

    IDLE = "idle"
    SCHEDULED = "scheduled"
    IN_FLIGHT = "in_flight"
    BACKOFF = "backoff"


class SkipReason(str, Enum):
    NOT_RUNNING = "not_running"
    IN_FLIGHT = "in_flight"
    BACKOFF = "backoff"
    UNCHANGED = "unchanged"


class DeferReason(str, Enum):
    NOT_DUE = "not_due"
    SPACING = "spacing"


@dataclass
class ScheduleState:
    """Scheduler state. Mutated only by ``ScheduleController``.

    Attributes:
        running: Whether scheduled generation is enabled
        interval_ms: Tick interval (one of INTERVAL_OPTIONS)
        next_due_at: Next scheduled fire time (epoch ms)
        backoff_until: Quota backoff deadline (epoch ms)
        in_flight: An attempt is executing
        skip_if_unchanged: Skip scheduled fires when inputs are unchanged
        last_fingerprint: Fingerprint of the last successful attempt
        last_error: Message of the last failure, until the next success
        provider_mode: Provider mode used for attempts
        epoch: Bumped on stop/reset; stale completions are discarded
        last_provider_used: Provider of the last applied success
        last_success_at: Completion time of the last applied success (epoch ms)
    """

    running: bool = False
    interval_ms: int = 60_000
    next_due_at: int | None = None
    backoff_until: int | None = None
    in_flight: bool = False
    skip_if_unchanged: bool = True
    last_fingerprint: str | None = None
    last_error: str | None = None
    provider_mode: ProviderMode = ProviderMode.AUTO
    epoch: int = 0
    last_provider_used: ProviderType | None = None
    last_success_at: int | None = None

    def phase(self, now: int) -> Phase:
        if self.in_flight:
            return Phase.IN_FLIGHT
        if not self.running:
            return Phase.IDLE
        if self.backoff_until is not None and now < self.backoff_until:
            return Phase.BACKOFF
        return Phase.SCHEDULED


@dataclass(frozen=True)
class Skip:
    """Do not fire on this tick."""

    reason: SkipReason
    next_due_at: int | None


@dataclass(frozen=True)
class Defer:
    """Not yet; wake again at ``next_wake``."""

    reason: DeferReason
    next_wake: int


@dataclass(frozen=True)
class Fire:
    """Start an attempt with ``request``."""

    request: GenerationRequest
    fingerprint: str
    next_due_at: int | None
    epoch: int
    manual: bool = False


Action = Skip | Defer | Fire


def decide(
    state: ScheduleState,
    now: int,
    *,
    request: GenerationRequest,
    fingerprint: str,
    primary_ready_at: int,
    manual: bool = False,
) -> Action:
    """Decide what a tick does. Pure: reads ``state``, never mutates it.

    Args:
        state: Current schedule state.
        now: Current time (epoch ms).
        request: Request that would be sent if the tick fires.
        fingerprint: Fingerprint of the current inputs.
        primary_ready_at: Earliest time Gemini may be called again.
        manual: True for a "fire now" request.

    Returns:
        Skip, Defer or Fire.
    """
    if manual:
        next_due = state.next_due_at
    else:
        if not state.running:
            return Skip(SkipReason.NOT_RUNNING, state.next_due_at)
        if state.next_due_at is not None and now < state.next_due_at:
            return Defer(DeferReason.NOT_DUE, state.next_due_at)
        next_due = now + state.interval_ms

    if state.in_flight:
        return Skip(SkipReason.IN_FLIGHT, next_due)
    if state.backoff_until is not None and now < state.backoff_until:
        return Skip(SkipReason.BACKOFF, next_due)
    if mode_uses_primary(state.provider_mode) and now < primary_ready_at:
        return Defer(DeferReason.SPACING, primary_ready_at)
    if not manual and state.skip_if_unchanged and fingerprint == state.last_fingerprint:
        return Skip(SkipReason.UNCHANGED, next_due)

    return Fire(
        request=request,
        fingerprint=fingerprint,
        next_due_at=next_due,
        epoch=state.epoch,
        manual=manual,
    )


class ScheduleController:
    """Owns the schedule state and applies tick decisions and attempt outcomes.

    Attempt failures never propagate out of the controller: they are logged
    and kept in ``state.last_error``.

    Attributes:
        state: The schedule state
        context: Generation inputs read on every tick
        spacing: Gemini spacing tracker
        sink: Receives every successful result (e.g. the preview buffer)
    """

    def __init__(
        self,
        orchestrator: ProviderOrchestrator,
        context: GenerationContext | None = None,
        spacing: SpacingTracker | None = None,
        clock: Clock = wall_clock_ms,
        sink: Sink | None = None,
        interval_ms: int = 60_000,
        skip_if_unchanged: bool = True,
        provider_mode: ProviderMode = ProviderMode.AUTO,
        default_retry_delay: int = DEFAULT_RETRY_DELAY_SECONDS,
    ) -> None:
        if interval_ms not in INTERVAL_OPTIONS:
            raise ValueError(f"interval_ms must be one of: {INTERVAL_OPTIONS}")
        self.orchestrator = orchestrator
        self.context = context or GenerationContext()
        self.spacing = spacing or SpacingTracker()
        self.clock = clock
        self.sink = sink
        self.default_retry_delay = default_retry_delay
        self.state = ScheduleState(
            interval_ms=interval_ms,
            skip_if_unchanged=skip_if_unchanged,
            provider_mode=provider_mode,
        )
        self._listeners: list[Callable[[], None]] = []

    @classmethod
    def from_settings(
        cls,
        settings: Settings,
        orchestrator: ProviderOrchestrator,
        **kwargs: Any,
    ) -> ScheduleController:
        return cls(
            orchestrator,
            interval_ms=settings.INTERVAL_MS,
            skip_if_unchanged=settings.SKIP_IF_UNCHANGED,
            provider_mode=settings.PROVIDER_MODE,
            default_retry_delay=settings.DEFAULT_RETRY_DELAY_SECONDS,
            **kwargs,
        )

    # Change notification (the runner re-plans its sleep)

    def add_listener(self, callback: Callable[[], None]) -> None:
        self._listeners.append(callback)

    def _notify(self) -> None:
        for callback in self._listeners:
            callback()

    # Controls

    def start(self) -> None:
        """Enable scheduling; the first run is one interval away."""
        if self.state.running:
            return
        now = self.clock()
        self.state.running = True
        self.state.next_due_at = now + self.state.interval_ms
        logger.info(
            f"Scheduler started: every {self.state.interval_ms // 1000}s, "
            f"next run at {_fmt(self.state.next_due_at)}"
        )
        self._notify()

    def stop(self) -> None:
        """Disable scheduling. An attempt in flight is left to finish."""
        if not self.state.running:
            return
        self.state.running = False
        self.state.next_due_at = None
        self.state.epoch += 1
        logger.info("Scheduler stopped")
        self._notify()

    def reset(self) -> None:
        """Forget fingerprint, error and backoff; results in flight are discarded."""
        self.state.epoch += 1
        self.state.last_fingerprint = None
        self.state.last_error = None
        self.state.backoff_until = None
        if self.state.running:
            self.state.next_due_at = self.clock() + self.state.interval_ms
        logger.info("Scheduler reset")
        self._notify()

    def set_interval(self, interval_ms: int) -> None:
        if interval_ms not in INTERVAL_OPTIONS:
            raise ValueError(f"interval_ms must be one of: {INTERVAL_OPTIONS}")
        self.state.interval_ms = interval_ms
        if self.state.running:
            self.state.next_due_at = self.clock() + interval_ms
        self._notify()

    def set_skip_if_unchanged(self, value: bool) -> None:
        self.state.skip_if_unchanged = value
        self._notify()

    def set_provider_mode(self, mode: ProviderMode) -> None:
        self.state.provider_mode = mode
        self._notify()

    def primary_ready_at(self, now: int) -> int:
        return self.spacing.earliest_allowed(ProviderType.GEMINI, now)

    def next_wake(self) -> int | None:
        """When the runner should tick next, or None while idle."""
        if not self.state.running:
            return None
        if self.state.next_due_at is None:
            return self.clock()
        return self.state.next_due_at

    # Tick evaluation

    def evaluate(self, manual: bool = False) -> Action:
        """Decide and apply a tick. On Fire, ``in_flight`` is set before returning."""
        now = self.clock()
        state = self.state
        action = decide(
            state,
            now,
            request=self.context.build_request(state.provider_mode),
            fingerprint=self.context.fingerprint(),
            primary_ready_at=self.primary_ready_at(now),
            manual=manual,
        )

        if isinstance(action, Fire):
            state.next_due_at = action.next_due_at
            state.in_flight = True
            logger.info(
                f"Generating ({'manual' if manual else 'scheduled'}, "
                f"mode={state.provider_mode.value})"
            )
        elif isinstance(action, Skip):
            if state.running:
                state.next_due_at = action.next_due_at
            logger.debug(f"Tick skipped: {action.reason.value}")
        elif action.reason == DeferReason.SPACING:
            if state.running:
                state.next_due_at = action.next_wake
            logger.debug(f"Gemini spacing: next run at {_fmt(action.next_wake)}")

        return action

    async def complete(self, fire: Fire) -> AttemptResult | None:
        """Run the attempt for ``fire`` and apply its outcome.

        Returns:
            The result on success, None on failure. Never raises for attempt
            failures; ``in_flight`` is cleared on every path.
        """
        try:
            result = await self.orchestrator.attempt(fire.request)
        except ClassifiedError as error:
            self._on_failure(fire, error)
            return None
        except Exception as e:
            logger.exception(f"Unexpected generation failure: {e}")
            self._on_failure(fire, ClassifiedError(ErrorKind.UNKNOWN, str(e) or type(e).__name__))
            return None
        else:
            self._on_success(fire, result)
            return result
        finally:
            self.state.in_flight = False
            self._notify()

    def _on_success(self, fire: Fire, result: AttemptResult) -> None:
        now = self.clock()
        state = self.state
        if result.provider_used == ProviderType.GEMINI:
            self.spacing.record_attempt(ProviderType.GEMINI, now)

        if fire.epoch != state.epoch:
            logger.info("Discarding result that completed after the scheduler was stopped")
            return

        state.last_fingerprint = fire.fingerprint
        state.last_error = None
        state.backoff_until = None
        state.last_provider_used = result.provider_used
        state.last_success_at = now
        if state.running:
            state.next_due_at = now + state.interval_ms
        logger.info(
            f"Image generated by {result.provider_used.value}; "
            f"next run at {_fmt(state.next_due_at)}"
        )

        if self.sink is not None:
            try:
                self.sink(result)
            except Exception:
                logger.exception("Result sink failed")

    def _on_failure(self, fire: Fire, error: ClassifiedError) -> None:
        now = self.clock()
        state = self.state
        if fire.epoch != state.epoch:
            logger.info(f"Discarding failure after scheduler stop: {error.message}")
            return

        state.last_error = error.message
        if error.kind == ErrorKind.QUOTA_EXCEEDED:
            delay = error.retry_delay_seconds
            if delay is None:
                delay = self.default_retry_delay
            state.backoff_until = now + delay * 1000
            logger.warning(f"Rate limited; resuming at {_fmt(state.backoff_until)} ({delay}s)")
        else:
            logger.error(f"Generation failed ({error.kind.value}): {error.message}")

    async def tick(self) -> Action:
        """Evaluate a scheduled tick and, if it fires, run the attempt to completion."""
        action = self.evaluate()
        if isinstance(action, Fire):
            await self.complete(action)
        return action

    async def fire_now(self) -> Action:
        """Manual generation: bypasses the interval, honours in-flight/backoff/spacing."""
        action = self.evaluate(manual=True)
        if isinstance(action, Fire):
            await self.complete(action)
        return action

    async def generate_direct(self, request: GenerationRequest) -> AttemptResult:
        """Run a caller-supplied request outside the schedule.

        Shares the in-flight flag and the Gemini spacing with scheduled
        attempts, but leaves fingerprint, error and backoff untouched.

        Raises:
            ClassifiedError: ``quotaExceeded`` (429) while another attempt is
                in flight or Gemini spacing has not elapsed, with the wait in
                ``retry_delay_seconds``; otherwise whatever the attempt raised.
        """
        self.orchestrator.validate(request)
        now = self.clock()
        if self.state.in_flight:
            raise ClassifiedError(
                ErrorKind.QUOTA_EXCEEDED,
                "A generation is already in progress",
                http_status=429,
            )
        ready_at = self.primary_ready_at(now)
        if mode_uses_primary(request.provider_mode) and now < ready_at:
            wait = math.ceil((ready_at - now) / 1000)
            raise ClassifiedError(
                ErrorKind.QUOTA_EXCEEDED,
                f"Gemini was called recently; retry in {wait}s",
                retry_delay_seconds=wait,
                http_status=429,
            )

        self.state.in_flight = True
        self._notify()
        try:
            result = await self.orchestrator.attempt(request)
        finally:
            self.state.in_flight = False
            self._notify()

        if result.provider_used == ProviderType.GEMINI:
            self.spacing.record_attempt(ProviderType.GEMINI, self.clock())
        return result

    def status(self, now: int | None = None) -> ScheduleStatus:
        """Snapshot for display, including the countdown."""
        now = self.clock() if now is None else now
        state = self.state
        rate_limited = state.backoff_until is not None and now < state.backoff_until

        seconds_left: int | None = None
        if rate_limited:
            seconds_left = max(0, math.ceil((state.backoff_until - now) / 1000))
        elif state.running and state.next_due_at is not None:
            seconds_left = max(0, math.ceil((state.next_due_at - now) / 1000))

        primary_ready_at = self.primary_ready_at(now)
        return ScheduleStatus(
            phase=state.phase(now).value,
            running=state.running,
            interval_ms=state.interval_ms,
            provider_mode=state.provider_mode,
            skip_if_unchanged=state.skip_if_unchanged,
            in_flight=state.in_flight,
            next_due_at=state.next_due_at,
            backoff_until=state.backoff_until,
            seconds_left=seconds_left,
            rate_limited=rate_limited,
            resume_at=state.backoff_until if rate_limited else None,
            primary_ready_at=primary_ready_at if primary_ready_at > now else None,
            last_error=state.last_error,
            last_provider_used=state.last_provider_used,
            last_success_at=state.last_success_at,
        )


@dataclass
class ScheduleRunner:
    """Drives a controller from asyncio timers.

    A periodic loop sleeps until the controller's next wake time (woken early
    whenever the state changes) and an independent one-shot ``kick`` timer can
    request an extra evaluation. Both go through the same controller, so the
    in-flight flag keeps them from overlapping. Attempts run as tasks so the
    timers are never blocked by a slow provider.

    ``start_schedule`` arms the kick for the first due time. It fires the
    first run on its own when the loop is not running (or is still asleep on
    a stale wake time); when both come due together only one attempt starts.
    """

    controller: ScheduleController
    _task: asyncio.Task | None = field(default=None, init=False, repr=False)
    _wakeup: asyncio.Event = field(default_factory=asyncio.Event, init=False, repr=False)
    _kick_handle: asyncio.TimerHandle | None = field(default=None, init=False, repr=False)
    _attempts: set[asyncio.Task] = field(default_factory=set, init=False, repr=False)

    def __post_init__(self) -> None:
        self.controller.add_listener(self._wakeup.set)

    @property
    def is_running(self) -> bool:
        return self._task is not None and not self._task.done()

    def start(self) -> None:
        if self.is_running:
            return
        self._task = asyncio.get_running_loop().create_task(self._run())

    async def stop(self, cancel_attempts: bool = True) -> None:
        """Stop the timers. Attempts in flight are cancelled unless told otherwise."""
        if self._kick_handle is not None:
            self._kick_handle.cancel()
            self._kick_handle = None
        if self._task is not None:
            self._task.cancel()
            try:
                await self._task
            except asyncio.CancelledError:
                pass
            self._task = None
        if cancel_attempts:
            for task in list(self._attempts):
                task.cancel()
            if self._attempts:
                await asyncio.gather(*self._attempts, return_exceptions=True)

    @property
    def kick_pending(self) -> bool:
        return self._kick_handle is not None

    def start_schedule(self) -> None:
        """Enable scheduling and arm the first-run kick one interval out."""
        if self.controller.state.running:
            return
        self.controller.start()
        self.kick(self.controller.state.interval_ms)

    def kick(self, delay_ms: int = 0) -> None:
        """Schedule a one-shot tick evaluation after ``delay_ms``."""
        if self._kick_handle is not None:
            self._kick_handle.cancel()
        loop = asyncio.get_running_loop()
        self._kick_handle = loop.call_later(max(0, delay_ms) / 1000, self._on_kick)

    def _on_kick(self) -> None:
        self._kick_handle = None
        self._dispatch(self.controller.evaluate())

    def fire_now(self) -> Action:
        """Manual fire without waiting for the attempt to finish."""
        return self._dispatch(self.controller.evaluate(manual=True))

    def _dispatch(self, action: Action) -> Action:
        if isinstance(action, Fire):
            task = asyncio.get_running_loop().create_task(self.controller.complete(action))
            self._attempts.add(task)
            task.add_done_callback(self._attempts.discard)
        return action

    async def wait_idle(self) -> None:
        """Wait for attempts in flight to finish."""
        if self._attempts:
            await asyncio.gather(*list(self._attempts), return_exceptions=True)

    async def _run(self) -> None:
        while True:
            self._wakeup.clear()
            wake_at = self.controller.next_wake()
            if wake_at is None:
                await self._wakeup.wait()
                continue

            delay = (wake_at - self.controller.clock()) / 1000
            if delay > 0:
                try:
                    await asyncio.wait_for(self._wakeup.wait(), timeout=delay)
                    continue
                except asyncio.TimeoutError:
                    pass

            self._dispatch(self.controller.evaluate())
