"""Prompt template rendering.

Placeholders (``{{QODE_PREFIX}}`` and friends) are replaced in a single
regex pass, so text inserted for one placeholder is never scanned again.
A literal ``{{QODE_SUFFIX}}`` typed by the user in the prefix therefore
reaches the model unchanged.
"""

import re
from collections.abc import Iterable, Iterator, Mapping, Sequence
from typing import Any

from qodecore.config.models import CustomTemplateConfig
from qodecore.domain.entities import (
    ContextWindow,
    HistoryEntry,
    Placeholder,
    PromptTemplate,
    RenderedPrompt,
    TemplateKind,
)
from qodecore.domain.exceptions import TemplateInvalidError

PLACEHOLDER_PATTERN = re.compile(r"\{\{(QODE_[A-Z_]+)\}\}")

CURSOR_MARKER = "<cursor>"

_KNOWN_PLACEHOLDERS = {placeholder.value: placeholder for placeholder in Placeholder}


def substitute(text: str, values: Mapping[Placeholder, str]) -> str:
    """Replace placeholders in one pass.

    Placeholders missing from ``values`` are replaced with an empty string.
    Unknown ``QODE_*`` names are left as they are; ``validate_template``
    rejects them before rendering.

    Args:
        text: Template text.
        values: Placeholder values.

    Returns:
        Substituted text.
    """

    def replace(match: re.Match[str]) -> str:
        placeholder = _KNOWN_PLACEHOLDERS.get(match.group(1))
        if placeholder is None:
            return match.group(0)
        return values.get(placeholder, "")

    return PLACEHOLDER_PATTERN.sub(replace, text)


def substitute_body(body: Any, values: Mapping[Placeholder, str]) -> Any:
    """Substitute placeholders in the string leaves of a JSON value.

    Keys, numbers and booleans are kept as they are.
    """
    if isinstance(body, str):
        return substitute(body, values)
    if isinstance(body, dict):
        return {key: substitute_body(value, values) for key, value in body.items()}
    if isinstance(body, list):
        return [substitute_body(item, values) for item in body]
    return body


def _iter_strings(value: Any) -> Iterator[str]:
    if isinstance(value, str):
        yield value
    elif isinstance(value, dict):
        for item in value.values():
            yield from _iter_strings(item)
    elif isinstance(value, list):
        for item in value:
            yield from _iter_strings(item)


def template_texts(template: PromptTemplate) -> list[str]:
    """All text fields of a template that may hold placeholders."""
    texts = [template.user_template]
    if template.system_template is not None:
        texts.append(template.system_template)
    if template.suffix_template is not None:
        texts.append(template.suffix_template)
    if template.body_template is not None:
        texts.extend(_iter_strings(template.body_template))
    return texts


def used_placeholders(template: PromptTemplate) -> set[Placeholder]:
    """Known placeholders referenced anywhere in a template."""
    found = set()
    for text in template_texts(template):
        for name in PLACEHOLDER_PATTERN.findall(text):
            if name in _KNOWN_PLACEHOLDERS:
                found.add(_KNOWN_PLACEHOLDERS[name])
    return found


def validate_template(template: PromptTemplate) -> None:
    """Check a template before it is used for a request.

    Args:
        template: Template to check.

    Raises:
        TemplateInvalidError: If the template references an unknown
            placeholder, or is a FIM template without both the prefix and
            the suffix placeholder.
    """
    problems: list[str] = []

    unknown = sorted(
        {
            name
            for text in template_texts(template)
            for name in PLACEHOLDER_PATTERN.findall(text)
            if name not in _KNOWN_PLACEHOLDERS
        }
    )
    for name in unknown:
        problems.append(f"unknown placeholder {{{{{name}}}}}")

    if template.kind is TemplateKind.FIM:
        used = used_placeholders(template)
        for required in (Placeholder.PREFIX, Placeholder.SUFFIX):
            if required not in used:
                problems.append(f"FIM template must contain {required.token}")

    if problems:
        raise TemplateInvalidError(template.name, problems)


def build_code_context_message(
    context: ContextWindow,
    instructions: str,
    language: str = "",
) -> str:
    """Build the user message for chat models doing code completion.

    The code around the cursor is sent as one fenced block with a cursor
    marker, followed by the instructions.
    """
    parts = [
        "Here is the code context with the insertion point marked as "
        f"{CURSOR_MARKER}:",
        f"```{language}\n{context.prefix}{CURSOR_MARKER}{context.suffix}\n```",
    ]
    if instructions:
        parts.append(instructions)
    return "\n\n".join(parts)


def build_system_prompt(system: str, context: ContextWindow | None) -> str:
    """Append file information and open file contents to a system prompt."""
    parts = [system] if system else []
    if context is not None:
        if context.file_context:
            parts.append(context.file_context)
        for path, content in context.open_files_context:
            parts.append(f"File: {path}\n```\n{content}\n```")
    return "\n\n".join(parts)


def render(
    template: PromptTemplate,
    context: ContextWindow | None,
    instructions: str = "",
    *,
    language: str = "",
    system_prompt: str = "",
    history: Sequence[HistoryEntry] = (),
) -> RenderedPrompt:
    """Render a template into a provider-independent prompt.

    Args:
        template: Template to render.
        context: Collected editor context. None for plain chat turns, where
            the conversation is carried entirely by ``history``.
        instructions: User instructions for ``{{QODE_INSTRUCTIONS}}``.
        language: Canonical language name for ``{{QODE_LANGUAGE}}``.
        system_prompt: System prompt used when the template has none.
        history: Earlier conversation turns, oldest first.

    Returns:
        Rendered prompt.

    Raises:
        TemplateInvalidError: If the template fails validation.
    """
    validate_template(template)

    window = context or ContextWindow.empty()
    values = {
        Placeholder.PREFIX: window.prefix,
        Placeholder.SUFFIX: window.suffix,
        Placeholder.INSTRUCTIONS: instructions,
        Placeholder.LANGUAGE: language,
    }

    if template.system_template is not None:
        system = substitute(template.system_template, values)
    else:
        system = system_prompt
    system = build_system_prompt(system, context)

    body = substitute_body(template.body_template or {}, values)

    if template.kind is TemplateKind.FIM:
        return RenderedPrompt(
            kind=TemplateKind.FIM,
            system=system,
            prompt=substitute(template.user_template, values),
            suffix=(
                substitute(template.suffix_template, values)
                if template.suffix_template is not None
                else None
            ),
            body=body,
            stop_words=template.stop_words,
        )

    messages = [entry.to_message() for entry in history]
    if context is not None:
        used = used_placeholders(template)
        if Placeholder.PREFIX in used or Placeholder.SUFFIX in used:
            user_message = substitute(template.user_template, values)
        else:
            user_message = build_code_context_message(context, instructions, language)
        messages.append({"role": "user", "content": user_message})

    return RenderedPrompt(
        kind=TemplateKind.CHAT,
        system=system,
        messages=tuple(messages),
        body=body,
        stop_words=template.stop_words,
    )


def template_from_config(config: CustomTemplateConfig) -> PromptTemplate:
    """Create a template from a user-defined configuration entry.

    Raises:
        TemplateInvalidError: If the kind is unknown or the template fails
            validation.
    """
    try:
        kind = TemplateKind(config.kind.lower())
    except ValueError as e:
        raise TemplateInvalidError(
            config.name, [f"unknown kind '{config.kind}' (expected fim or chat)"]
        ) from e

    template = PromptTemplate(
        name=config.name,
        kind=kind,
        user_template=config.user_template,
        system_template=config.system_template,
        suffix_template=config.suffix_template,
        body_template=config.body_template,
        stop_words=tuple(config.stop_words),
    )
    validate_template(template)
    return template


def templates_from_config(
    configs: Iterable[CustomTemplateConfig],
) -> dict[str, PromptTemplate]:
    """Create templates for every user-defined entry, keyed by name."""
    return {config.name: template_from_config(config) for config in configs}
