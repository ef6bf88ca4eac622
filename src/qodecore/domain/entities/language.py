"""Programming language entity."""

from dataclasses import dataclass


@dataclass(frozen=True)
class Language:
    """Programming language properties.

    Attributes:
        name: Canonical language name inserted into templates.
        comment_prefix: Line comment prefix.
        model_names: Names models use for the language in code fences.
        extensions: File extensions without the dot.
    """

    name: str
    comment_prefix: str
    model_names: tuple[str, ...] = ()
    extensions: tuple[str, ...] = ()
