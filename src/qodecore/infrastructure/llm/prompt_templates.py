"""Built-in prompt template catalog."""

from qodecore.config.models import ProviderID
from qodecore.domain.entities import Placeholder, PromptTemplate, TemplateKind

_PREFIX = Placeholder.PREFIX.token
_SUFFIX = Placeholder.SUFFIX.token

_OPENAI_STYLE = (
    ProviderID.OPENAI,
    ProviderID.OPENAI_COMPATIBLE,
    ProviderID.OPENROUTER,
    ProviderID.LM_STUDIO,
    ProviderID.LLAMA_CPP,
    ProviderID.LITELLM,
)

BUILTIN_TEMPLATES: tuple[PromptTemplate, ...] = (
    PromptTemplate(
        name="Ollama FIM",
        kind=TemplateKind.FIM,
        user_template=_PREFIX,
        suffix_template=_SUFFIX,
        providers=(ProviderID.OLLAMA,),
    ),
    PromptTemplate(
        name="Ollama Chat",
        kind=TemplateKind.CHAT,
        providers=(ProviderID.OLLAMA,),
    ),
    PromptTemplate(
        name="CodeLlama FIM",
        kind=TemplateKind.FIM,
        user_template=f"<PRE> {_PREFIX} <SUF>{_SUFFIX} <MID>",
        stop_words=("<EOT>", "<PRE>", "<SUF", "<MID>"),
        providers=(ProviderID.OLLAMA,),
    ),
    PromptTemplate(
        name="StarCoder2 FIM",
        kind=TemplateKind.FIM,
        user_template=f"<fim_prefix>{_PREFIX}<fim_suffix>{_SUFFIX}<fim_middle>",
        stop_words=(
            "<|endoftext|>",
            "<file_sep>",
            "<fim_prefix>",
            "<fim_suffix>",
            "<fim_middle>",
        ),
        providers=(ProviderID.OLLAMA,),
    ),
    PromptTemplate(
        name="DeepSeekCoder FIM",
        kind=TemplateKind.FIM,
        user_template=f"<｜fim▁begin｜>{_PREFIX}<｜fim▁hole｜>{_SUFFIX}<｜fim▁end｜>",
        providers=(ProviderID.OLLAMA,),
    ),
    PromptTemplate(
        name="Qwen3 Coder FIM",
        kind=TemplateKind.CHAT,
        user_template=f"<|fim_prefix|>{_PREFIX}<|fim_suffix|>{_SUFFIX}<|fim_middle|>",
        stop_words=("<|im_end|>",),
        providers=(
            ProviderID.OLLAMA,
            ProviderID.LM_STUDIO,
            ProviderID.OPENROUTER,
            ProviderID.OPENAI_COMPATIBLE,
            ProviderID.LLAMA_CPP,
        ),
    ),
    PromptTemplate(
        name="llama.cpp FIM",
        kind=TemplateKind.FIM,
        user_template=_PREFIX,
        suffix_template=_SUFFIX,
        providers=(ProviderID.LLAMA_CPP,),
    ),
    PromptTemplate(
        name="Mistral AI FIM",
        kind=TemplateKind.FIM,
        user_template=_PREFIX,
        suffix_template=_SUFFIX,
        providers=(ProviderID.MISTRAL_AI, ProviderID.CODESTRAL),
    ),
    PromptTemplate(
        name="Mistral AI Chat",
        kind=TemplateKind.CHAT,
        providers=(ProviderID.MISTRAL_AI, ProviderID.CODESTRAL),
    ),
    PromptTemplate(
        name="OpenAI Compatible",
        kind=TemplateKind.CHAT,
        providers=_OPENAI_STYLE,
    ),
    PromptTemplate(
        name="Claude",
        kind=TemplateKind.CHAT,
        providers=(ProviderID.CLAUDE,),
    ),
    PromptTemplate(
        name="Google AI",
        kind=TemplateKind.CHAT,
        providers=(ProviderID.GOOGLE_AI,),
    ),
)


class TemplateRegistry:
    """Built-in templates plus user-defined ones.

    User templates with a built-in name replace the built-in.
    """

    def __init__(self, custom: tuple[PromptTemplate, ...] | list[PromptTemplate] = ()) -> None:
        self._templates = {template.name: template for template in BUILTIN_TEMPLATES}
        for template in custom:
            self._templates[template.name] = template

    def get_template(self, name: str) -> PromptTemplate:
        """Get a template by name.

        Raises:
            KeyError: If no template has the name.
        """
        try:
            return self._templates[name]
        except KeyError:
            raise KeyError(f"Unknown prompt template: {name}") from None

    def templates_for_provider(
        self,
        provider: ProviderID,
        kind: TemplateKind | None = None,
    ) -> list[PromptTemplate]:
        """List templates meant for a provider, optionally of one kind."""
        return [
            template
            for template in self._templates.values()
            if template.supports(provider) and (kind is None or template.kind is kind)
        ]

    def names(self) -> list[str]:
        """Names of all known templates."""
        return list(self._templates)


def get_template(name: str) -> PromptTemplate:
    """Get a built-in template by name.

    Raises:
        KeyError: If no built-in template has the name.
    """
    return TemplateRegistry().get_template(name)


def templates_for_provider(
    provider: ProviderID,
    kind: TemplateKind | None = None,
) -> list[PromptTemplate]:
    """List built-in templates meant for a provider."""
    return TemplateRegistry().templates_for_provider(provider, kind)
