"""Request orchestration for code completion and chat."""

import asyncio
import logging
from collections.abc import AsyncIterator, Mapping
from dataclasses import dataclass
from pathlib import Path

import httpx

from qodecore.config.models import Config, ProviderConfig, ProviderID
from qodecore.domain.entities import (
    CancellationToken,
    ChatTurn,
    CompletionTrigger,
    ConnectionReason,
    ContextWindow,
    Done,
    ErrorKind,
    HistoryEntry,
    LLMRequest,
    RequestType,
    Role,
    StreamError,
    StreamEvent,
    TemplateKind,
    TokenChunk,
)
from qodecore.domain.exceptions import (
    ContextUnavailableError,
    HistoryEntryOversizedError,
    TemplateInvalidError,
)
from qodecore.domain.services import (
    ContextCollector,
    LanguageRegistry,
    ProviderAdapter,
    extract_code,
    render,
    templates_from_config,
    validate_template,
)
from qodecore.infrastructure.llm import (
    ProviderConnectionError,
    ProviderNotFoundError,
    SystemPromptKind,
    SystemPromptRenderer,
    TemplateRegistry,
    create_provider,
)
from qodecore.infrastructure.persistence import (
    ChangeCache,
    ChatSerializer,
    HistoryStore,
)

logger = logging.getLogger(__name__)

RETRYABLE_REASONS = frozenset(
    {
        ConnectionReason.TIMEOUT,
        ConnectionReason.REFUSED,
        ConnectionReason.RATE_LIMITED,
    }
)

HISTORY_OVERSIZED_MESSAGE = "Token limit exceeded, start a new chat?"


@dataclass
class _InFlight:
    """Request running for one context id."""

    token: CancellationToken
    user_entry: HistoryEntry | None = None


class RequestOrchestrator:
    """Runs completion and chat requests end to end.

    For each request it collects context, renders the template, sends the
    request through the provider adapter and streams the events back.
    Only one request per context id is in flight; starting a new one
    cancels the previous one.

    Chat requests keep the conversation in the history store: the user
    turn is added before dispatch and the assistant turn after ``Done``.
    A cancelled chat request leaves the history as it was before.
    """

    def __init__(
        self,
        config: Config,
        providers: Mapping[ProviderID, ProviderAdapter],
        history: HistoryStore,
        change_cache: ChangeCache,
        collector: ContextCollector,
        templates: TemplateRegistry,
        languages: LanguageRegistry,
        system_prompts: SystemPromptRenderer,
        serializer: ChatSerializer | None = None,
    ) -> None:
        """Initialize the orchestrator.

        Args:
            config: Application configuration.
            providers: Adapter per provider id.
            history: Chat history.
            change_cache: Recent edits, used as completion context.
            collector: Context collector.
            templates: Prompt template registry.
            languages: Language table.
            system_prompts: System prompt renderer.
            serializer: Chat history file serializer.
        """
        self._config = config
        self._providers = providers
        self._history = history
        self._change_cache = change_cache
        self._collector = collector
        self._templates = templates
        self._languages = languages
        self._system_prompts = system_prompts
        self._serializer = serializer or ChatSerializer()
        self._in_flight: dict[str, _InFlight] = {}

    @classmethod
    def from_config(cls, config: Config, client: httpx.AsyncClient) -> "RequestOrchestrator":
        """Build an orchestrator and its collaborators from configuration.

        Raises:
            TemplateInvalidError: If a user-defined template is invalid.
        """
        debug_llm_messages = bool(config.logging and config.logging.debug_llm_messages)
        provider_configs = [config.completion, config.chat]
        if config.completion_preset is not None:
            provider_configs.append(config.completion_preset.provider)

        providers: dict[ProviderID, ProviderAdapter] = {}
        for provider_config in provider_configs:
            if provider_config.provider not in providers:
                providers[provider_config.provider] = create_provider(
                    provider_config.provider,
                    client,
                    config.timeouts,
                    debug_llm_messages=debug_llm_messages,
                )

        languages = LanguageRegistry.with_custom_lines(config.languages)
        custom_templates = templates_from_config(config.templates.custom)
        return cls(
            config=config,
            providers=providers,
            history=HistoryStore(config.history.token_limit),
            change_cache=ChangeCache(config.history.changes_cache_size),
            collector=ContextCollector(config.context, languages),
            templates=TemplateRegistry(list(custom_templates.values())),
            languages=languages,
            system_prompts=SystemPromptRenderer(config.prompts),
        )

    @property
    def history(self) -> HistoryStore:
        """Chat history store."""
        return self._history

    @property
    def change_cache(self) -> ChangeCache:
        """Recent edits cache."""
        return self._change_cache

    # ------------------------------------------------------------------
    # Code completion
    # ------------------------------------------------------------------

    async def complete(self, trigger: CompletionTrigger) -> AsyncIterator[StreamEvent]:
        """Run a code completion request.

        Args:
            trigger: Completion request from the editor.

        Yields:
            Stream events. Nothing is yielded when the request is cancelled.
        """
        token = trigger.cancellation
        self._begin(trigger.context_id, token)
        try:
            path = trigger.document.path
            language = self._languages.detect_from_path(path)
            provider_config, template_name = self._completion_target(language)

            try:
                template = self._templates.get_template(template_name)
            except KeyError as e:
                yield StreamError(ErrorKind.TEMPLATE_INVALID, str(e.args[0]))
                return

            context = self._collect_context(trigger)
            system_kind = (
                SystemPromptKind.COMPLETION
                if template.kind is TemplateKind.FIM
                else SystemPromptKind.NON_FIM
            )
            system_prompt = self._system_prompts.render(
                system_kind, language=language, file_path=path
            )

            try:
                prompt = render(
                    template,
                    context,
                    trigger.instructions or self._config.prompts.instructions,
                    language=language,
                    system_prompt=system_prompt,
                )
            except TemplateInvalidError as e:
                logger.error("%s", e)
                yield StreamError(ErrorKind.TEMPLATE_INVALID, str(e))
                return

            request = LLMRequest(
                prompt=prompt,
                provider_config=provider_config,
                request_type=RequestType.CODE_COMPLETION,
                cancellation=token,
            )
            async for event in self._dispatch(request):
                yield event
        finally:
            self._end(trigger.context_id, token)

    def finalize_completion(self, text: str, file_path: str) -> str:
        """Turn raw completion text into text ready for insertion.

        Chat-shaped models answer with prose and code fences; their answers
        are reduced to code when ``smart_process_instruct_text`` is on.

        Args:
            text: Concatenated completion chunks.
            file_path: File the completion is for.

        Returns:
            Text to insert.
        """
        language = self._languages.detect_from_path(file_path)
        _, template_name = self._completion_target(language)
        try:
            template = self._templates.get_template(template_name)
        except KeyError:
            return text
        if template.kind is TemplateKind.CHAT and self._config.prompts.smart_process_instruct_text:
            return extract_code(text, file_path, self._languages)
        return text

    def _completion_target(self, language: str) -> tuple[ProviderConfig, str]:
        preset = self._config.completion_preset
        if preset is not None and language and language in preset.languages:
            return preset.provider, preset.template or self._config.templates.completion
        return self._config.completion, self._config.templates.completion

    def _collect_context(self, trigger: CompletionTrigger) -> ContextWindow:
        try:
            return self._collector.collect(
                trigger.document,
                trigger.cursor,
                trigger.open_documents,
                change_cache=self._change_cache,
            )
        except ContextUnavailableError as e:
            logger.warning("Context unavailable, continuing without it: %s", e)
            return ContextWindow.empty()

    # ------------------------------------------------------------------
    # Chat
    # ------------------------------------------------------------------

    async def chat(self, turn: ChatTurn) -> AsyncIterator[StreamEvent]:
        """Run a chat request.

        Args:
            turn: User message.

        Yields:
            Stream events. Nothing is yielded when the request is cancelled.
        """
        token = turn.cancellation
        in_flight = self._begin(turn.conversation_id, token)
        snapshot = self._history.snapshot()
        try:
            try:
                template = self._templates.get_template(self._config.templates.chat)
                validate_template(template)
            except KeyError as e:
                yield StreamError(ErrorKind.TEMPLATE_INVALID, str(e.args[0]))
                return
            except TemplateInvalidError as e:
                yield StreamError(ErrorKind.TEMPLATE_INVALID, str(e))
                return

            user_entry = HistoryEntry.from_text(Role.USER, self._user_message(turn))
            try:
                self._history.append(user_entry)
            except HistoryEntryOversizedError as e:
                logger.warning("%s", e)
                yield StreamError(ErrorKind.HISTORY_OVERSIZED, HISTORY_OVERSIZED_MESSAGE)
                return
            # Undone on cancellation, by us or by a request superseding us.
            in_flight.user_entry = user_entry

            file_path = turn.linked_documents[0].path if turn.linked_documents else ""
            language = self._languages.detect_from_path(file_path) if file_path else ""
            prompt = render(
                template,
                None,
                language=language,
                system_prompt=self._system_prompts.render(
                    SystemPromptKind.CHAT, language=language, file_path=file_path
                ),
                history=self._history.entries(),
            )
            request = LLMRequest(
                prompt=prompt,
                provider_config=self._config.chat,
                request_type=RequestType.CHAT,
                cancellation=token,
            )

            parts: list[str] = []
            async for event in self._dispatch(request):
                if isinstance(event, TokenChunk):
                    parts.append(event.text)
                    yield event
                elif isinstance(event, Done):
                    in_flight.user_entry = None
                    yield self._record_answer("".join(parts), event)
                    return
                else:
                    # The user turn stays; the partial answer is dropped.
                    in_flight.user_entry = None
                    yield event
                    return
        finally:
            if in_flight.user_entry is not None:
                self._rollback(in_flight.user_entry, snapshot)
                in_flight.user_entry = None
            self._end(turn.conversation_id, token)

    def _user_message(self, turn: ChatTurn) -> str:
        parts = [turn.text]
        for document in turn.linked_documents:
            parts.append(f"File: {document.path}\n```\n{document.content}\n```")
        return "\n\n".join(parts)

    def _record_answer(self, text: str, done: Done) -> StreamEvent:
        try:
            self._history.append(HistoryEntry.from_text(Role.ASSISTANT, text))
        except HistoryEntryOversizedError as e:
            logger.warning("%s", e)
            return StreamError(ErrorKind.HISTORY_OVERSIZED, HISTORY_OVERSIZED_MESSAGE)
        return done

    def _rollback(self, user_entry: HistoryEntry, snapshot: tuple[HistoryEntry, ...]) -> None:
        entries = self._history.entries()
        if entries and entries[-1] is user_entry:
            # Also brings back entries our turn evicted.
            self._history.restore(snapshot)
            logger.debug("Chat request cancelled, history restored")
        elif self._history.remove(user_entry):
            logger.debug("Chat request cancelled, user turn removed")

    def new_chat(self) -> None:
        """Start a new conversation."""
        self._history.clear()
        logger.info("Chat history cleared")

    def save_chat(self, path: str | Path) -> None:
        """Save the conversation to a JSON file."""
        self._serializer.save(self._history.entries(), path)

    def load_chat(self, path: str | Path) -> list[HistoryEntry]:
        """Replace the conversation with one loaded from a JSON file.

        Raises:
            ChatHistoryParseError: If the file is invalid. The current
                conversation is kept in that case.
        """
        return self._serializer.load_into(self._history, path)

    # ------------------------------------------------------------------
    # Shared
    # ------------------------------------------------------------------

    def cancel(self, context_id: str) -> None:
        """Cancel the request in flight for a context, if any."""
        in_flight = self._in_flight.get(context_id)
        if in_flight is not None:
            in_flight.token.cancel()
            logger.debug("Cancelled request for %s", context_id)

    async def list_models(self, role: str) -> list[str]:
        """List models of the completion or chat provider.

        Args:
            role: ``"completion"`` or ``"chat"``.

        Raises:
            ValueError: If the role is unknown.
            ModelListingUnsupportedError: If the provider cannot list models.
            ProviderConnectionError: If the provider cannot be reached.
        """
        if role == "completion":
            config = self._config.completion
        elif role == "chat":
            config = self._config.chat
        else:
            raise ValueError(f"Unknown role: {role} (expected completion or chat)")
        return await self._provider(config.provider).list_models(config)

    def _provider(self, provider_id: ProviderID) -> ProviderAdapter:
        try:
            return self._providers[provider_id]
        except KeyError:
            raise ProviderNotFoundError(
                f"No adapter configured for provider: {provider_id.value}"
            ) from None

    def _begin(self, context_id: str, token: CancellationToken) -> _InFlight:
        previous = self._in_flight.get(context_id)
        if previous is not None:
            if previous.token is token:
                return previous
            previous.token.cancel()
            # Drop the superseded turn before the new request snapshots history.
            if previous.user_entry is not None:
                self._history.remove(previous.user_entry)
                previous.user_entry = None
            logger.debug("Superseded request for %s", context_id)
        in_flight = _InFlight(token)
        self._in_flight[context_id] = in_flight
        return in_flight

    def _end(self, context_id: str, token: CancellationToken) -> None:
        in_flight = self._in_flight.get(context_id)
        if in_flight is not None and in_flight.token is token:
            del self._in_flight[context_id]

    async def _dispatch(self, request: LLMRequest) -> AsyncIterator[StreamEvent]:
        """Send a request, retrying delivery failures before any output.

        ``retry.max_attempts`` is the total number of attempts. Only
        timeouts, refused connections and rate limits are retried, and only
        while no chunk has been delivered.
        """
        token = request.cancellation
        if token.is_cancelled:
            return

        try:
            adapter = self._provider(request.provider_config.provider)
        except ProviderNotFoundError as e:
            yield StreamError(ErrorKind.CONNECTION, str(e), reason=ConnectionReason.REFUSED)
            return
        payload = adapter.build_request(request)

        retry = self._config.retry
        attempts = max(1, retry.max_attempts)
        for attempt in range(1, attempts + 1):
            delivered = False
            try:
                async for event in adapter.send_and_stream(payload, token):
                    if isinstance(event, TokenChunk):
                        delivered = True
                    yield event
                return
            except ProviderConnectionError as e:
                retryable = (
                    e.reason in RETRYABLE_REASONS
                    and not delivered
                    and attempt < attempts
                    and not token.is_cancelled
                )
                if not retryable:
                    logger.warning("Request failed: %s", e)
                    yield StreamError(ErrorKind.CONNECTION, str(e), reason=e.reason)
                    return

                delay = retry.backoff_seconds * attempt
                logger.info(
                    "Request failed (%s), retrying in %.1fs (attempt %d/%d)",
                    e.reason.value,
                    delay,
                    attempt + 1,
                    attempts,
                )
                try:
                    await asyncio.wait_for(token.wait(), timeout=delay)
                except asyncio.TimeoutError:
                    continue
                # Cancelled while waiting to retry.
                return
