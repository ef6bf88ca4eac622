"""LLM integration."""

from qodecore.infrastructure.llm.exceptions import (
    LLMError,
    ModelListingUnsupportedError,
    ProviderConnectionError,
    ProviderNotFoundError,
)
from qodecore.infrastructure.llm.prompt_templates import (
    BUILTIN_TEMPLATES,
    TemplateRegistry,
    get_template,
    templates_for_provider,
)
from qodecore.infrastructure.llm.providers import BaseProvider, create_provider
from qodecore.infrastructure.llm.templates import (
    SystemPromptKind,
    SystemPromptRenderer,
    create_jinja_env,
)

__all__ = [
    "BUILTIN_TEMPLATES",
    "BaseProvider",
    "LLMError",
    "ModelListingUnsupportedError",
    "ProviderConnectionError",
    "ProviderNotFoundError",
    "SystemPromptKind",
    "SystemPromptRenderer",
    "TemplateRegistry",
    "create_jinja_env",
    "create_provider",
    "get_template",
    "templates_for_provider",
]
