"""アプリケーションのエントリポイント"""

import argparse
import asyncio
import logging
import signal
import sys
from collections.abc import AsyncIterator
from datetime import datetime, timezone
from pathlib import Path

import httpx

from qodecore.application.services import RequestOrchestrator
from qodecore.config import Config, ConfigError, LoggingConfig, load_config
from qodecore.domain.entities import (
    ChatTurn,
    CompletionTrigger,
    CursorPosition,
    Done,
    OpenDocument,
    StreamError,
    StreamEvent,
    TokenChunk,
)
from qodecore.domain.exceptions import TemplateInvalidError
from qodecore.infrastructure.llm import LLMError
from qodecore.infrastructure.persistence import PersistenceError

# Default logging for early startup
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    stream=sys.stderr,
)
logger = logging.getLogger(__name__)


def configure_logging(config: LoggingConfig | None) -> None:
    """Configure logging based on config.

    Args:
        config: Logging configuration. If None, uses defaults.
    """
    if config is None:
        return

    root_logger = logging.getLogger()

    level = getattr(logging, config.level.upper(), logging.INFO)
    root_logger.setLevel(level)

    if root_logger.handlers:
        formatter = logging.Formatter(config.format)
        for handler in root_logger.handlers:
            handler.setFormatter(formatter)

    if config.loggers:
        for logger_name, logger_level in config.loggers.items():
            individual_logger = logging.getLogger(logger_name)
            individual_level = getattr(logging, logger_level.upper(), logging.INFO)
            individual_logger.setLevel(individual_level)
            logger.debug(
                "Set logger '%s' to level %s", logger_name, logger_level.upper()
            )


class FileDocument:
    """A document read from disk."""

    def __init__(self, path: Path) -> None:
        self._path = path

    @property
    def path(self) -> str:
        return str(self._path)

    def read_text(self) -> str:
        return self._path.read_text(encoding="utf-8")


def build_parser() -> argparse.ArgumentParser:
    """Build the command line parser."""
    parser = argparse.ArgumentParser(
        prog="qodecore",
        description="Code completion and chat against a configured LLM provider.",
    )
    parser.add_argument(
        "--config",
        type=Path,
        default=Path("config.yaml"),
        help="Configuration file (default: config.yaml)",
    )
    subparsers = parser.add_subparsers(dest="command", required=True)

    chat = subparsers.add_parser("chat", help="Send a chat message")
    chat.add_argument("message", help="Message text")
    chat.add_argument(
        "--history",
        type=Path,
        help="Chat history file, loaded before and saved after the turn",
    )
    chat.add_argument(
        "--file",
        type=Path,
        action="append",
        default=[],
        help="File to attach to the message (repeatable)",
    )

    complete = subparsers.add_parser("complete", help="Complete code at a position")
    complete.add_argument("file", type=Path, help="Source file")
    complete.add_argument("line", type=int, help="Line (0-based)")
    complete.add_argument("column", type=int, help="Column (0-based)")
    complete.add_argument("--instructions", help="Extra instructions")

    models = subparsers.add_parser("models", help="List models of a provider")
    models.add_argument("role", choices=["completion", "chat"])
    return parser


async def _print_events(events: AsyncIterator[StreamEvent]) -> bool:
    ok = True
    async for event in events:
        if isinstance(event, TokenChunk):
            sys.stdout.write(event.text)
            sys.stdout.flush()
        elif isinstance(event, Done):
            sys.stdout.write("\n")
            logger.debug("Finished (%s)", event.finish_reason)
        elif isinstance(event, StreamError):
            sys.stdout.write("\n")
            logger.error("Request failed (%s): %s", event.kind.value, event.message)
            ok = False
    return ok


async def _run_chat(orchestrator: RequestOrchestrator, args: argparse.Namespace) -> bool:
    if args.history is not None and args.history.exists():
        orchestrator.load_chat(args.history)

    now = datetime.now(timezone.utc)
    linked = tuple(
        OpenDocument(path=str(path), content=path.read_text(encoding="utf-8"), focused_at=now)
        for path in args.file
    )
    turn = ChatTurn(conversation_id="cli", text=args.message, linked_documents=linked)
    ok = await _print_events(orchestrator.chat(turn))

    if args.history is not None:
        orchestrator.save_chat(args.history)
    return ok


async def _run_complete(
    orchestrator: RequestOrchestrator, args: argparse.Namespace
) -> bool:
    document = FileDocument(args.file)
    trigger = CompletionTrigger(
        context_id="cli",
        document=document,
        cursor=CursorPosition(line=args.line, column=args.column),
        instructions=args.instructions,
    )
    parts: list[str] = []
    ok = True
    async for event in orchestrator.complete(trigger):
        if isinstance(event, TokenChunk):
            parts.append(event.text)
        elif isinstance(event, Done):
            print(orchestrator.finalize_completion("".join(parts), document.path))
        elif isinstance(event, StreamError):
            logger.error("Completion failed (%s): %s", event.kind.value, event.message)
            ok = False
    return ok


async def run_command(config: Config, args: argparse.Namespace) -> bool:
    """Run one command against the configured providers.

    Returns:
        True if the command succeeded.
    """
    timeout = httpx.Timeout(
        connect=config.timeouts.connect_seconds,
        read=config.timeouts.idle_seconds,
        write=config.timeouts.idle_seconds,
        pool=config.timeouts.connect_seconds,
    )
    async with httpx.AsyncClient(timeout=timeout) as client:
        orchestrator = RequestOrchestrator.from_config(config, client)

        loop = asyncio.get_running_loop()

        def shutdown_handler() -> None:
            logger.info("Received shutdown signal, cancelling...")
            orchestrator.cancel("cli")

        loop.add_signal_handler(signal.SIGINT, shutdown_handler)
        loop.add_signal_handler(signal.SIGTERM, shutdown_handler)

        if args.command == "chat":
            return await _run_chat(orchestrator, args)
        if args.command == "complete":
            return await _run_complete(orchestrator, args)

        for model in await orchestrator.list_models(args.role):
            print(model)
        return True


async def main(argv: list[str] | None = None) -> None:
    """アプリケーションを起動する"""
    args = build_parser().parse_args(argv)

    if not args.config.exists():
        logger.error("%s not found", args.config)
        sys.exit(1)

    try:
        config = load_config(args.config)
    except ConfigError as e:
        logger.error("Failed to load config: %s", e)
        sys.exit(1)

    configure_logging(config.logging)

    try:
        ok = await run_command(config, args)
    except (LLMError, PersistenceError, TemplateInvalidError, OSError) as e:
        logger.error("%s", e)
        sys.exit(1)

    if not ok:
        sys.exit(1)


def run() -> None:
    """Run the async main function."""
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    run()
