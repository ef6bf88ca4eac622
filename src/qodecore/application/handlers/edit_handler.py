"""Editor edit handler."""

import logging
from typing import Any

from qodecore.application.services.request_orchestrator import RequestOrchestrator
from qodecore.config.models import TriggerConfig
from qodecore.domain.entities import (
    ChangeCacheEntry,
    CompletionTrigger,
    Done,
    EditEvent,
    StreamError,
    TokenChunk,
    Trigger,
)
from qodecore.domain.services import CompletionSink
from qodecore.infrastructure.events import TriggerScheduler

logger = logging.getLogger(__name__)


class EditHandler:
    """Connects editor edits to completion requests.

    Each edit is recorded in the change cache and passed to the trigger
    scheduler. When the scheduler fires, the handler runs a completion
    through the orchestrator and hands the result to the sink.

    The edit payload must carry ``document`` (an EditorDocument) and
    ``cursor`` (a CursorPosition); ``open_documents`` and ``instructions``
    are optional.
    """

    def __init__(
        self,
        orchestrator: RequestOrchestrator,
        trigger_config: TriggerConfig,
        sink: CompletionSink,
    ) -> None:
        """Initialize the handler.

        Args:
            orchestrator: Runs completion requests.
            trigger_config: Debounce settings.
            sink: Receives progress, completions and errors.
        """
        self._orchestrator = orchestrator
        self._sink = sink
        self._scheduler = TriggerScheduler(trigger_config, self._handle_trigger)

    @property
    def scheduler(self) -> TriggerScheduler:
        """Trigger scheduler used by this handler."""
        return self._scheduler

    async def on_edit(self, event: EditEvent) -> None:
        """Handle an edit reported by the editor.

        Args:
            event: The edit.
        """
        self._orchestrator.change_cache.add(
            ChangeCacheEntry(
                path=event.path,
                line_number=event.line_number,
                snippet=event.line_text,
            )
        )
        await self._scheduler.on_edit(event)

    async def trigger_now(self, context_id: str, payload: dict[str, Any]) -> Trigger:
        """Request a completion immediately (manual trigger)."""
        return await self._scheduler.trigger_now(context_id, payload)

    async def stop(self) -> None:
        """Cancel pending work and stop handling edits."""
        await self._scheduler.stop()

    async def _handle_trigger(self, trigger: Trigger) -> None:
        payload = trigger.payload
        if "document" not in payload or "cursor" not in payload:
            logger.warning("Trigger for %s has no document or cursor", trigger.context_id)
            return

        document = payload["document"]
        request = CompletionTrigger(
            context_id=trigger.context_id,
            document=document,
            cursor=payload["cursor"],
            open_documents=tuple(payload.get("open_documents", ())),
            instructions=payload.get("instructions"),
            cancellation=trigger.cancellation,
        )

        self._sink.show_progress(trigger.context_id)
        try:
            parts: list[str] = []
            async for event in self._orchestrator.complete(request):
                if isinstance(event, TokenChunk):
                    parts.append(event.text)
                elif isinstance(event, Done):
                    text = self._orchestrator.finalize_completion(
                        "".join(parts), document.path
                    )
                    if text.strip():
                        self._sink.insert_completion(trigger.context_id, text)
                    else:
                        logger.debug("Empty completion for %s", trigger.context_id)
                elif isinstance(event, StreamError):
                    logger.warning(
                        "Completion failed for %s: %s (%s)",
                        trigger.context_id,
                        event.message,
                        event.kind.value,
                    )
                    self._sink.report_error(trigger.context_id, event.message)
        finally:
            self._sink.hide_progress(trigger.context_id)
