"""Programming language table.

Maps file extensions and model-reported code fence names to canonical
language names. Users can declare extra languages with one line per
language: ``name,comment_prefix,model names,extensions`` where the last
two fields are space separated lists, e.g. ``rust,//,rust rs,rs``.
"""

import logging
from collections.abc import Iterable
from pathlib import PurePath

from qodecore.domain.entities import Language

logger = logging.getLogger(__name__)

DEFAULT_COMMENT_PREFIX = "//"

BUILTIN_LANGUAGES: tuple[Language, ...] = (
    Language("python", "#", ("python", "py"), ("py",)),
    Language("lua", "--", ("lua",), ("lua",)),
    Language("js", "//", ("js", "javascript"), ("js", "jsx")),
    Language("ts", "//", ("ts", "typescript"), ("ts", "tsx")),
    Language("c-like", "//", ("c", "c++", "cpp"), ("c", "h", "cpp", "hpp")),
    Language("java", "//", ("java",), ("java",)),
    Language("c#", "//", ("cs", "csharp"), ("cs",)),
    Language("php", "//", ("php",), ("php",)),
    Language("ruby", "#", ("rb", "ruby"), ("rb",)),
    Language("go", "//", ("go",), ("go",)),
    Language("swift", "//", ("swift",), ("swift",)),
    Language("kotlin", "//", ("kt", "kotlin"), ("kt", "kotlin")),
    Language("scala", "//", ("scala",), ("scala",)),
    Language("r", "#", ("r",), ("r",)),
    Language("shell", "#", ("shell", "bash", "sh"), ("sh", "bash")),
    Language("perl", "#", ("pl", "perl"), ("pl",)),
    Language("hs", "--", ("hs", "haskell"), ("hs",)),
    Language("qml", "//", ("qml",), ("qml",)),
)


class LanguageParseError(ValueError):
    """A custom language line is malformed."""


def parse_language_line(line: str) -> Language:
    """Parse one custom language declaration.

    Args:
        line: Declaration such as ``rust,//,rust rs,rs``.

    Returns:
        Parsed language.

    Raises:
        LanguageParseError: If the line does not have four fields or
            lacks a name.
    """
    parts = [part.strip() for part in line.split(",")]
    if len(parts) != 4:
        raise LanguageParseError(
            f"Expected 'name,comment,model names,extensions', got: {line!r}"
        )

    name, comment_prefix, model_names, extensions = parts
    if not name:
        raise LanguageParseError(f"Language name is empty: {line!r}")

    return Language(
        name=name.lower(),
        comment_prefix=comment_prefix or DEFAULT_COMMENT_PREFIX,
        model_names=tuple(n.lower() for n in model_names.split()),
        extensions=tuple(e.lower().lstrip(".") for e in extensions.split()),
    )


class LanguageRegistry:
    """Lookup tables over built-in and user-declared languages.

    Later registrations win on extension or model name collisions.
    """

    def __init__(self, languages: Iterable[Language] = BUILTIN_LANGUAGES) -> None:
        self._by_name: dict[str, Language] = {}
        self._by_extension: dict[str, Language] = {}
        self._by_model_name: dict[str, Language] = {}
        for language in languages:
            self.register(language)

    @classmethod
    def with_custom_lines(cls, lines: Iterable[str]) -> "LanguageRegistry":
        """Create a registry of built-ins plus parsed custom declarations.

        Malformed lines are skipped with a warning.
        """
        registry = cls()
        for line in lines:
            if not line.strip():
                continue
            try:
                registry.register(parse_language_line(line))
            except LanguageParseError as e:
                logger.warning("Skipping custom language: %s", e)
        return registry

    def register(self, language: Language) -> None:
        """Add a language, overriding earlier entries on collision."""
        for extension in language.extensions:
            previous = self._by_extension.get(extension)
            if previous is not None and previous.name != language.name:
                logger.info(
                    "Extension '%s' now maps to '%s' (was '%s')",
                    extension,
                    language.name,
                    previous.name,
                )
            self._by_extension[extension] = language
        for model_name in language.model_names:
            self._by_model_name[model_name] = language
        self._by_name[language.name] = language

    def detect_from_extension(self, extension: str) -> str:
        """Canonical language for an extension, or "" when unknown."""
        language = self._by_extension.get(extension.lower().lstrip("."))
        return language.name if language else ""

    def detect_from_path(self, path: str) -> str:
        """Canonical language for a file path, or "" when unknown."""
        return self.detect_from_extension(PurePath(path).suffix)

    def detect_from_model_name(self, name: str) -> str:
        """Canonical language for a code fence name, or "" when unknown."""
        language = self._by_model_name.get(name.strip().lower())
        return language.name if language else ""

    def comment_prefix(self, name: str) -> str:
        """Line comment prefix of a language (``//`` when unknown)."""
        language = self._by_name.get(name)
        return language.comment_prefix if language else DEFAULT_COMMENT_PREFIX

    def get(self, name: str) -> Language | None:
        """Get a language by canonical name."""
        return self._by_name.get(name)
