"""Domain services."""

from qodecore.domain.services.code_extractor import extract_code
from qodecore.domain.services.context_collector import (
    ContextCollector,
    find_copyright_header_end,
)
from qodecore.domain.services.languages import (
    BUILTIN_LANGUAGES,
    LanguageParseError,
    LanguageRegistry,
    parse_language_line,
)
from qodecore.domain.services.protocols import (
    CompletionSink,
    EditorDocument,
    ProviderAdapter,
)
from qodecore.domain.services.template_engine import (
    render,
    substitute,
    template_from_config,
    templates_from_config,
    validate_template,
)

__all__ = [
    "BUILTIN_LANGUAGES",
    "CompletionSink",
    "ContextCollector",
    "EditorDocument",
    "LanguageParseError",
    "LanguageRegistry",
    "ProviderAdapter",
    "extract_code",
    "find_copyright_header_end",
    "parse_language_line",
    "render",
    "substitute",
    "template_from_config",
    "templates_from_config",
    "validate_template",
]
