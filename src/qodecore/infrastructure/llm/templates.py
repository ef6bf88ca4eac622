"""Jinja2 template utilities for system prompts."""

import logging
from enum import Enum

from jinja2 import Environment, PackageLoader, Template, TemplateError

from qodecore.config.models import PromptsConfig
from qodecore.domain.exceptions import TemplateInvalidError

logger = logging.getLogger(__name__)


class SystemPromptKind(Enum):
    """Which system prompt a request uses."""

    COMPLETION = "completion_system"
    NON_FIM = "non_fim_system"
    CHAT = "chat_system"


def create_jinja_env() -> Environment:
    """Create Jinja2 environment for system prompt templates.

    Creates a configured Jinja2 environment that loads templates from
    the qodecore.infrastructure.llm package's templates directory.

    Returns:
        Configured Jinja2 environment.
    """
    return Environment(
        loader=PackageLoader("qodecore.infrastructure.llm", "templates"),
        # Prompts are plain text for the model, not HTML.
        autoescape=False,
        trim_blocks=True,
        lstrip_blocks=True,
    )


class SystemPromptRenderer:
    """Renders system prompts from configured or built-in templates.

    Configured prompts are Jinja2 source strings and may use the
    ``language`` and ``file_path`` variables like the built-in ones.
    """

    def __init__(self, config: PromptsConfig) -> None:
        """Initialize the renderer.

        Args:
            config: Prompt configuration.

        Raises:
            TemplateInvalidError: If a configured prompt is not valid Jinja2.
        """
        self._config = config
        self._jinja_env = create_jinja_env()
        self._templates: dict[SystemPromptKind, Template] = {}
        for kind in SystemPromptKind:
            source = getattr(config, kind.value)
            if source is None:
                self._templates[kind] = self._jinja_env.get_template(f"{kind.value}.j2")
                continue
            try:
                self._templates[kind] = self._jinja_env.from_string(source)
            except TemplateError as e:
                raise TemplateInvalidError(f"prompts.{kind.value}", [str(e)]) from e

    def render(
        self,
        kind: SystemPromptKind,
        *,
        language: str = "",
        file_path: str = "",
    ) -> str:
        """Render a system prompt.

        Args:
            kind: Prompt to render.
            language: Canonical language name.
            file_path: Active file path.

        Returns:
            Rendered prompt, or an empty string when system prompts are
            disabled.
        """
        if not self._config.use_system_prompt:
            return ""
        return (
            self._templates[kind]
            .render(language=language, file_path=file_path)
            .strip()
        )
