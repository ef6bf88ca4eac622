"""Completion trigger scheduling (debounce and minimum edit size)."""

import asyncio
import logging
import unicodedata
from collections.abc import Awaitable, Callable
from dataclasses import dataclass, field
from typing import Any

from qodecore.config.models import TriggerConfig
from qodecore.domain.entities import CancellationToken, EditEvent, Trigger, TriggerState

logger = logging.getLogger(__name__)

DispatchCallback = Callable[[Trigger], Awaitable[None]]


@dataclass
class _ContextState:
    """Scheduling state of one completion context."""

    state: TriggerState = TriggerState.IDLE
    char_count: int = 0
    burst_started_at: float | None = None
    payload: dict[str, Any] = field(default_factory=dict)
    timer: asyncio.Task[None] | None = None
    in_flight: asyncio.Task[None] | None = None
    cancellation: CancellationToken | None = None
    last_outcome: TriggerState | None = None


def is_punctuation(char: str) -> bool:
    """Check if a character is Unicode punctuation."""
    return unicodedata.category(char).startswith("P")


class TriggerScheduler:
    """Decides when edits should fire a completion request.

    Per context the state moves IDLE -> PENDING -> DISPATCHED ->
    COMPLETED or CANCELLED -> IDLE. Typed characters are counted per burst;
    deletions and punctuation reset the count, and a burst older than the
    typing interval starts over. Once the count reaches the threshold, a
    quiet timer is (re)started and the request fires when it expires.

    Any edit cancels the request in flight for its context, since the
    completion would no longer match the text.
    """

    def __init__(self, config: TriggerConfig, dispatch: DispatchCallback) -> None:
        """Initialize the scheduler.

        Args:
            config: Trigger settings.
            dispatch: Called with a Trigger when a request should fire. It
                runs as a task that is cancelled when superseded.
        """
        self._config = config
        self._dispatch = dispatch
        self._contexts: dict[str, _ContextState] = {}
        self._stop_event = asyncio.Event()

    @property
    def is_running(self) -> bool:
        """Check if the scheduler accepts edits."""
        return not self._stop_event.is_set()

    def state(self, context_id: str) -> TriggerState:
        """Current state of a context."""
        ctx = self._contexts.get(context_id)
        return ctx.state if ctx else TriggerState.IDLE

    def last_outcome(self, context_id: str) -> TriggerState | None:
        """How the last dispatched request of a context ended."""
        ctx = self._contexts.get(context_id)
        return ctx.last_outcome if ctx else None

    async def on_edit(self, event: EditEvent) -> None:
        """Handle an edit reported by the editor.

        Args:
            event: The edit.
        """
        if not self.is_running:
            logger.debug("TriggerScheduler stopped, ignoring edit")
            return

        ctx = self._contexts.setdefault(event.context_id, _ContextState())
        self._cancel_in_flight(ctx)
        now = asyncio.get_running_loop().time()

        if not self._counts_towards_trigger(event):
            ctx.char_count = 0
            ctx.burst_started_at = now
            await self._cancel_timer(ctx)
            ctx.state = TriggerState.IDLE
            return

        typing_interval = self._config.typing_interval_ms / 1000
        if ctx.burst_started_at is None or now - ctx.burst_started_at > typing_interval:
            ctx.char_count = event.chars_added
            ctx.burst_started_at = now
        else:
            ctx.char_count += event.chars_added

        if ctx.char_count < self._config.char_threshold:
            if ctx.timer is None:
                ctx.state = TriggerState.IDLE
            return

        ctx.payload = event.payload
        await self._cancel_timer(ctx)
        ctx.timer = asyncio.create_task(self._fire_after_quiet(event.context_id, ctx))
        ctx.state = TriggerState.PENDING
        logger.debug(
            "Completion pending for %s (%d chars)", event.context_id, ctx.char_count
        )

    async def trigger_now(
        self,
        context_id: str,
        payload: dict[str, Any] | None = None,
    ) -> Trigger:
        """Dispatch a request immediately, bypassing the debounce.

        Args:
            context_id: Completion context.
            payload: Data forwarded to the dispatch callback.

        Returns:
            The dispatched trigger.
        """
        ctx = self._contexts.setdefault(context_id, _ContextState())
        self._cancel_in_flight(ctx)
        await self._cancel_timer(ctx)
        if payload is not None:
            ctx.payload = payload
        return self._start_dispatch(context_id, ctx, manual=True)

    async def cancel(self, context_id: str) -> None:
        """Cancel pending and in-flight work for a context."""
        ctx = self._contexts.get(context_id)
        if ctx is None:
            return
        self._cancel_in_flight(ctx)
        await self._cancel_timer(ctx)
        ctx.char_count = 0
        ctx.state = TriggerState.IDLE

    async def stop(self) -> None:
        """Cancel everything and stop accepting edits."""
        logger.info("Stopping TriggerScheduler")
        self._stop_event.set()
        for context_id in list(self._contexts):
            await self.cancel(context_id)

    def _counts_towards_trigger(self, event: EditEvent) -> bool:
        if not event.is_insertion:
            return False
        if event.inserted_text and is_punctuation(event.inserted_text[-1]):
            return False
        return True

    async def _fire_after_quiet(self, context_id: str, ctx: _ContextState) -> None:
        try:
            await asyncio.sleep(self._config.quiet_interval_ms / 1000)
        except asyncio.CancelledError:
            logger.debug("Quiet timer cancelled for %s", context_id)
            raise
        finally:
            if ctx.timer is asyncio.current_task():
                ctx.timer = None

        if ctx.char_count >= self._config.char_threshold:
            self._start_dispatch(context_id, ctx, manual=False)
        else:
            ctx.state = TriggerState.IDLE

    def _start_dispatch(
        self,
        context_id: str,
        ctx: _ContextState,
        *,
        manual: bool,
    ) -> Trigger:
        trigger = Trigger(context_id=context_id, manual=manual, payload=dict(ctx.payload))
        ctx.cancellation = trigger.cancellation
        ctx.state = TriggerState.DISPATCHED
        ctx.in_flight = asyncio.create_task(self._run_dispatch(ctx, trigger))
        logger.debug("Dispatching completion for %s (manual=%s)", context_id, manual)
        return trigger

    async def _run_dispatch(self, ctx: _ContextState, trigger: Trigger) -> None:
        task = asyncio.current_task()
        outcome = TriggerState.COMPLETED
        try:
            await self._dispatch(trigger)
        except asyncio.CancelledError:
            outcome = TriggerState.CANCELLED
            raise
        except Exception:
            logger.exception("Completion dispatch failed for %s", trigger.context_id)
        finally:
            if trigger.cancellation.is_cancelled:
                outcome = TriggerState.CANCELLED
            # A superseding edit already moved the context on.
            if ctx.in_flight is task:
                ctx.in_flight = None
                ctx.cancellation = None
                ctx.last_outcome = outcome
                ctx.state = TriggerState.IDLE

    def _cancel_in_flight(self, ctx: _ContextState) -> None:
        if ctx.in_flight is None:
            return
        if ctx.cancellation is not None:
            ctx.cancellation.cancel()
        ctx.in_flight.cancel()
        ctx.in_flight = None
        ctx.cancellation = None
        ctx.last_outcome = TriggerState.CANCELLED
        ctx.state = TriggerState.IDLE
        logger.debug("Cancelled in-flight completion")

    async def _cancel_timer(self, ctx: _ContextState) -> None:
        task = ctx.timer
        if task is None:
            return
        ctx.timer = None
        task.cancel()
        try:
            await task  # Let cancellation propagate and finish cleanup
        except asyncio.CancelledError:
            pass
