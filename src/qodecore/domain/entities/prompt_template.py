"""Prompt template entities."""

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

from qodecore.config.models import ProviderID


class TemplateKind(Enum):
    """How a template talks to the model."""

    FIM = "fim"
    CHAT = "chat"


class Placeholder(Enum):
    """Placeholders recognized in template text."""

    INSTRUCTIONS = "QODE_INSTRUCTIONS"
    PREFIX = "QODE_PREFIX"
    SUFFIX = "QODE_SUFFIX"
    LANGUAGE = "QODE_LANGUAGE"

    @property
    def token(self) -> str:
        """Literal form as written in templates."""
        return "{{" + self.value + "}}"


@dataclass(frozen=True)
class PromptTemplate:
    """Prompt template for one model family.

    Attributes:
        name: Display name used in configuration.
        kind: FIM or chat.
        user_template: Prompt (FIM) or user message (chat) text.
        system_template: System prompt text. None uses the configured prompt.
        suffix_template: Separate suffix field for providers with native FIM.
        body_template: JSON object merged into the request body.
        stop_words: Stop sequences sent with the request.
        providers: Providers the template is meant for. Empty means any.
    """

    name: str
    kind: TemplateKind
    user_template: str = ""
    system_template: str | None = None
    suffix_template: str | None = None
    body_template: dict[str, Any] | None = None
    stop_words: tuple[str, ...] = ()
    providers: tuple[ProviderID, ...] = ()

    def supports(self, provider: ProviderID) -> bool:
        """Check if the template is meant for a provider."""
        return not self.providers or provider in self.providers


@dataclass(frozen=True)
class RenderedPrompt:
    """Provider-independent prompt produced by the template engine.

    Attributes:
        kind: Template kind the prompt was rendered from.
        system: System prompt.
        prompt: FIM prompt text (FIM templates only).
        suffix: Separate suffix for native FIM endpoints.
        messages: Chat messages in OpenAI form, oldest first.
        body: Extra request body fields from a JSON body template.
        stop_words: Stop sequences.
    """

    kind: TemplateKind
    system: str = ""
    prompt: str = ""
    suffix: str | None = None
    messages: tuple[dict[str, str], ...] = ()
    body: dict[str, Any] = field(default_factory=dict)
    stop_words: tuple[str, ...] = ()
