"""Tests for the prompt template engine."""

import pytest

from qodecore.config.models import CustomTemplateConfig
from qodecore.domain.entities import (
    ContextWindow,
    HistoryEntry,
    Placeholder,
    PromptTemplate,
    Role,
    TemplateKind,
)
from qodecore.domain.exceptions import TemplateInvalidError
from qodecore.domain.services import (
    render,
    substitute,
    template_from_config,
    templates_from_config,
    validate_template,
)

FIM = PromptTemplate(
    name="Test FIM",
    kind=TemplateKind.FIM,
    user_template="<PRE>{{QODE_PREFIX}}<SUF>{{QODE_SUFFIX}}<MID>",
    stop_words=("<EOT>",),
)

CHAT = PromptTemplate(name="Test Chat", kind=TemplateKind.CHAT)


@pytest.fixture
def context() -> ContextWindow:
    """Create a small code context."""
    return ContextWindow(prefix="foo(", suffix=")")


class TestSubstitute:
    """Tests for substitute."""

    def test_replaces_known_placeholders(self) -> None:
        """Test that every occurrence is replaced."""
        result = substitute(
            "{{QODE_PREFIX}}|{{QODE_SUFFIX}}|{{QODE_PREFIX}}",
            {Placeholder.PREFIX: "a", Placeholder.SUFFIX: "b"},
        )

        assert result == "a|b|a"

    def test_values_are_not_rescanned(self) -> None:
        """Test that placeholder text inside a value reaches the output as is."""
        result = substitute(
            "{{QODE_PREFIX}}<SUF>{{QODE_SUFFIX}}",
            {Placeholder.PREFIX: "x = '{{QODE_SUFFIX}}'", Placeholder.SUFFIX: "END"},
        )

        assert result == "x = '{{QODE_SUFFIX}}'<SUF>END"

    def test_missing_value_is_empty(self) -> None:
        """Test that a placeholder without a value becomes empty."""
        assert substitute("[{{QODE_INSTRUCTIONS}}]", {}) == "[]"

    def test_unknown_placeholder_left_alone(self) -> None:
        """Test that unknown QODE names are not touched."""
        assert substitute("{{QODE_OTHER}}", {}) == "{{QODE_OTHER}}"


class TestValidateTemplate:
    """Tests for validate_template."""

    def test_valid_fim(self) -> None:
        """Test that a complete FIM template passes."""
        validate_template(FIM)

    def test_fim_with_separate_suffix(self) -> None:
        """Test that the suffix may live in suffix_template."""
        template = PromptTemplate(
            name="Native",
            kind=TemplateKind.FIM,
            user_template="{{QODE_PREFIX}}",
            suffix_template="{{QODE_SUFFIX}}",
        )

        validate_template(template)

    def test_fim_without_suffix(self) -> None:
        """Test that a FIM template lacking the suffix placeholder fails."""
        template = PromptTemplate(
            name="Broken", kind=TemplateKind.FIM, user_template="{{QODE_PREFIX}}"
        )

        with pytest.raises(TemplateInvalidError) as exc_info:
            validate_template(template)

        assert exc_info.value.template_name == "Broken"
        assert exc_info.value.problems == ["FIM template must contain {{QODE_SUFFIX}}"]

    def test_unknown_placeholder(self) -> None:
        """Test that unknown placeholders are rejected."""
        template = PromptTemplate(
            name="Typo", kind=TemplateKind.CHAT, user_template="{{QODE_PREFX}}"
        )

        with pytest.raises(TemplateInvalidError) as exc_info:
            validate_template(template)

        assert "unknown placeholder {{QODE_PREFX}}" in exc_info.value.problems

    def test_chat_needs_no_placeholders(self) -> None:
        """Test that a chat template may have no placeholders."""
        validate_template(CHAT)


class TestRenderFim:
    """Tests for rendering FIM templates."""

    def test_fim_prompt(self, context: ContextWindow) -> None:
        """Test the FIM prompt text and stop words."""
        prompt = render(FIM, context)

        assert prompt.kind is TemplateKind.FIM
        assert prompt.prompt == "<PRE>foo(<SUF>)<MID>"
        assert prompt.suffix is None
        assert prompt.stop_words == ("<EOT>",)

    def test_native_suffix(self, context: ContextWindow) -> None:
        """Test that suffix_template fills the separate suffix field."""
        template = PromptTemplate(
            name="Native",
            kind=TemplateKind.FIM,
            user_template="{{QODE_PREFIX}}",
            suffix_template="{{QODE_SUFFIX}}",
        )

        prompt = render(template, context)

        assert prompt.prompt == "foo("
        assert prompt.suffix == ")"

    def test_body_template(self, context: ContextWindow) -> None:
        """Test that body templates are substituted in string leaves only."""
        template = PromptTemplate(
            name="Body",
            kind=TemplateKind.FIM,
            body_template={
                "input_prefix": "{{QODE_PREFIX}}",
                "extra": [{"text": "{{QODE_SUFFIX}}"}, 3],
                "cache_prompt": True,
            },
        )

        prompt = render(template, context)

        assert prompt.body == {
            "input_prefix": "foo(",
            "extra": [{"text": ")"}, 3],
            "cache_prompt": True,
        }

    def test_invalid_template_raises(self, context: ContextWindow) -> None:
        """Test that rendering validates first."""
        template = PromptTemplate(name="Broken", kind=TemplateKind.FIM)

        with pytest.raises(TemplateInvalidError):
            render(template, context)

    def test_system_prompt(self, context: ContextWindow) -> None:
        """Test that the configured system prompt is used."""
        prompt = render(FIM, context, system_prompt="Complete code.")

        assert prompt.system == "Complete code."


class TestRenderChat:
    """Tests for rendering chat templates."""

    def test_synthetic_code_message(self, context: ContextWindow) -> None:
        """Test the user message built for chat models doing completion."""
        prompt = render(CHAT, context, "complete", language="python")

        assert prompt.kind is TemplateKind.CHAT
        assert prompt.messages == (
            {
                "role": "user",
                "content": (
                    "Here is the code context with the insertion point marked as "
                    "<cursor>:\n\n```python\nfoo(<cursor>)\n```\n\ncomplete"
                ),
            },
        )

    def test_chat_template_with_placeholders(self, context: ContextWindow) -> None:
        """Test that a chat template using PREFIX/SUFFIX is substituted."""
        template = PromptTemplate(
            name="Qwen",
            kind=TemplateKind.CHAT,
            user_template="<|fim_prefix|>{{QODE_PREFIX}}<|fim_suffix|>{{QODE_SUFFIX}}",
        )

        prompt = render(template, context)

        assert prompt.messages[-1]["content"] == "<|fim_prefix|>foo(<|fim_suffix|>)"

    def test_history_without_context(self) -> None:
        """Test that a plain chat turn is carried by the history alone."""
        history = [
            HistoryEntry.from_text(Role.USER, "hi"),
            HistoryEntry.from_text(Role.ASSISTANT, "hello"),
            HistoryEntry.from_text(Role.USER, "explain"),
        ]

        prompt = render(CHAT, None, system_prompt="Be brief.", history=history)

        assert prompt.system == "Be brief."
        assert [m["role"] for m in prompt.messages] == ["user", "assistant", "user"]
        assert prompt.messages[-1]["content"] == "explain"

    def test_open_files_in_system_prompt(self) -> None:
        """Test that file info and open files are appended to the system prompt."""
        context = ContextWindow(
            prefix="x",
            file_context="Language: python filepath: /a.py",
            open_files_context=(("/b.py", "b = 1"),),
        )

        prompt = render(CHAT, context, system_prompt="Sys")

        assert prompt.system == (
            "Sys\n\nLanguage: python filepath: /a.py\n\nFile: /b.py\n```\nb = 1\n```"
        )

    def test_template_system_overrides_configured(self, context: ContextWindow) -> None:
        """Test that a template's own system text wins."""
        template = PromptTemplate(
            name="Own",
            kind=TemplateKind.CHAT,
            system_template="You write {{QODE_LANGUAGE}}.",
        )

        prompt = render(template, context, language="go", system_prompt="ignored")

        assert prompt.system == "You write go."


class TestTemplateFromConfig:
    """Tests for user-defined templates."""

    def test_creates_template(self) -> None:
        """Test that a configuration entry becomes a template."""
        config = CustomTemplateConfig(
            name="Mine",
            kind="FIM",
            user_template="{{QODE_PREFIX}}<fill>{{QODE_SUFFIX}}",
            stop_words=("<end>",),
        )

        template = template_from_config(config)

        assert template.kind is TemplateKind.FIM
        assert template.stop_words == ("<end>",)

    def test_unknown_kind(self) -> None:
        """Test that an unknown kind is rejected."""
        config = CustomTemplateConfig(name="Mine", kind="completion")

        with pytest.raises(TemplateInvalidError) as exc_info:
            template_from_config(config)

        assert "unknown kind" in exc_info.value.problems[0]

    def test_invalid_custom_template(self) -> None:
        """Test that user templates are validated."""
        config = CustomTemplateConfig(name="Mine", kind="fim", user_template="x")

        with pytest.raises(TemplateInvalidError):
            template_from_config(config)

    def test_keyed_by_name(self) -> None:
        """Test that templates_from_config keys templates by name."""
        configs = [
            CustomTemplateConfig(name="A", kind="chat"),
            CustomTemplateConfig(name="B", kind="chat"),
        ]

        assert list(templates_from_config(configs)) == ["A", "B"]
