"""YAML設定ファイルの読み込みと環境変数展開"""

import dataclasses
import os
import re
from pathlib import Path
from typing import Any

import yaml

from qodecore.config.models import (
    Config,
    ContextConfig,
    CustomTemplateConfig,
    HistoryConfig,
    LoggingConfig,
    PromptsConfig,
    ProviderConfig,
    ProviderID,
    ProviderPresetConfig,
    RetryConfig,
    SamplingConfig,
    TemplateSelection,
    TimeoutConfig,
    TriggerConfig,
)


class ConfigError(Exception):
    """設定関連の基底例外"""


class ConfigValidationError(ConfigError):
    """設定値のバリデーションエラー"""


class EnvironmentVariableError(ConfigError):
    """環境変数が見つからないエラー"""


# 環境変数パターン: ${VAR_NAME}
ENV_VAR_PATTERN = re.compile(r"\$\{([^}]+)\}")

# url 省略時のデフォルト
DEFAULT_PROVIDER_URLS: dict[ProviderID, str] = {
    ProviderID.OLLAMA: "http://localhost:11434",
    ProviderID.LLAMA_CPP: "http://localhost:8080",
    ProviderID.LM_STUDIO: "http://localhost:1234",
    ProviderID.OPENAI: "https://api.openai.com",
    ProviderID.OPENAI_COMPATIBLE: "http://localhost:8000",
    ProviderID.OPENROUTER: "https://openrouter.ai/api",
    ProviderID.CLAUDE: "https://api.anthropic.com",
    ProviderID.GOOGLE_AI: "https://generativelanguage.googleapis.com/v1beta",
    ProviderID.MISTRAL_AI: "https://api.mistral.ai",
    ProviderID.CODESTRAL: "https://codestral.mistral.ai",
    ProviderID.LITELLM: "",
}


def expand_env_vars(value: str) -> str:
    """文字列中の ${VAR_NAME} を環境変数の値に置換する

    Args:
        value: 置換対象の文字列

    Returns:
        環境変数が展開された文字列

    Raises:
        EnvironmentVariableError: 環境変数が未設定
    """
    if not value:
        return value

    def replace_var(match: re.Match[str]) -> str:
        var_name = match.group(1)
        env_value = os.environ.get(var_name)
        if env_value is None:
            raise EnvironmentVariableError(
                f"Environment variable '{var_name}' is not set"
            )
        return env_value

    return ENV_VAR_PATTERN.sub(replace_var, value)


def _expand_recursive(data: Any) -> Any:
    """データ構造を再帰的に走査し、文字列中の環境変数を展開する"""
    if isinstance(data, dict):
        return {key: _expand_recursive(value) for key, value in data.items()}
    elif isinstance(data, list):
        return [_expand_recursive(item) for item in data]
    elif isinstance(data, str):
        return expand_env_vars(data)
    else:
        return data


def _validate_required_field(data: dict[str, Any], field: str, parent: str = "") -> Any:
    """必須フィールドの存在を検証する

    Args:
        data: 検証対象のdict
        field: フィールド名
        parent: 親フィールド名（エラーメッセージ用）

    Returns:
        フィールドの値

    Raises:
        ConfigValidationError: フィールドが存在しない
    """
    if field not in data or data[field] is None:
        full_path = f"{parent}.{field}" if parent else field
        raise ConfigValidationError(f"Required field '{full_path}' is missing")
    return data[field]


def _build_section(cls: type, data: dict[str, Any] | None, parent: str) -> Any:
    """フラットな設定セクションをデータクラスに変換する

    未知のキーはタイプミスとみなしてエラーにする。
    """
    if data is None:
        return cls()
    if not isinstance(data, dict):
        raise ConfigValidationError(f"Section '{parent}' must be a mapping")

    known = {f.name for f in dataclasses.fields(cls)}
    unknown = sorted(set(data) - known)
    if unknown:
        raise ConfigValidationError(
            f"Unknown field(s) in '{parent}': {', '.join(unknown)}"
        )
    return cls(**data)


def _parse_provider_id(value: str, parent: str) -> ProviderID:
    try:
        return ProviderID(str(value).lower())
    except ValueError:
        supported = ", ".join(p.value for p in ProviderID)
        raise ConfigValidationError(
            f"Unsupported provider '{value}' in '{parent}' (supported: {supported})"
        ) from None


def _parse_provider(data: dict[str, Any], parent: str) -> ProviderConfig:
    """プロバイダ設定を読み込む"""
    provider_id = _parse_provider_id(
        _validate_required_field(data, "provider", parent), parent
    )
    sampling = _build_section(SamplingConfig, data.get("sampling"), f"{parent}.sampling")

    return ProviderConfig(
        provider=provider_id,
        url=str(data.get("url") or DEFAULT_PROVIDER_URLS[provider_id]).rstrip("/"),
        model=_validate_required_field(data, "model", parent),
        api_key=data.get("api_key") or None,
        streaming=bool(data.get("streaming", True)),
        sampling=sampling,
        context_window_tokens=int(data.get("context_window_tokens", 2048)),
        idle_suspend=str(data.get("idle_suspend", "5m")),
    )


def _parse_templates(data: dict[str, Any] | None) -> TemplateSelection:
    if not data:
        return TemplateSelection()

    custom: list[CustomTemplateConfig] = []
    for index, item in enumerate(data.get("custom") or []):
        parent = f"templates.custom[{index}]"
        custom.append(
            CustomTemplateConfig(
                name=_validate_required_field(item, "name", parent),
                kind=_validate_required_field(item, "kind", parent),
                user_template=item.get("user_template", ""),
                system_template=item.get("system_template"),
                suffix_template=item.get("suffix_template"),
                body_template=item.get("body_template"),
                stop_words=tuple(item.get("stop_words") or ()),
            )
        )

    defaults = TemplateSelection()
    return TemplateSelection(
        completion=data.get("completion", defaults.completion),
        chat=data.get("chat", defaults.chat),
        custom=tuple(custom),
    )


def load_config(path: str | Path) -> Config:
    """設定ファイルを読み込む

    Args:
        path: config.yaml のパス

    Returns:
        Config オブジェクト

    Raises:
        FileNotFoundError: ファイルが存在しない
        ConfigValidationError: 必須項目が欠落
        EnvironmentVariableError: 環境変数が未設定
        yaml.YAMLError: YAML構文エラー
    """
    path = Path(path)

    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path, encoding="utf-8") as f:
        raw_data = yaml.safe_load(f) or {}

    # 環境変数を展開
    data = _expand_recursive(raw_data)

    # 必須セクションの検証
    providers_data = _validate_required_field(data, "providers")
    completion = _parse_provider(
        _validate_required_field(providers_data, "completion", "providers"),
        "providers.completion",
    )
    chat = _parse_provider(
        _validate_required_field(providers_data, "chat", "providers"),
        "providers.chat",
    )

    # 言語別プリセット (optional)
    preset: ProviderPresetConfig | None = None
    preset_data = providers_data.get("completion_preset")
    if preset_data:
        preset = ProviderPresetConfig(
            provider=_parse_provider(preset_data, "providers.completion_preset"),
            languages=tuple(
                lang.lower()
                for lang in _validate_required_field(
                    preset_data, "languages", "providers.completion_preset"
                )
            ),
            template=preset_data.get("template"),
        )

    languages = data.get("languages") or []
    if not isinstance(languages, list):
        raise ConfigValidationError("Field 'languages' must be a list of strings")

    # LoggingConfig (optional)
    logging_config: LoggingConfig | None = None
    logging_data = data.get("logging")
    if logging_data:
        logging_config = LoggingConfig(
            level=logging_data.get("level", "INFO"),
            format=logging_data.get(
                "format", "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
            ),
            loggers=logging_data.get("loggers"),
            debug_llm_messages=logging_data.get("debug_llm_messages", False),
        )

    return Config(
        completion=completion,
        chat=chat,
        completion_preset=preset,
        templates=_parse_templates(data.get("templates")),
        context=_build_section(ContextConfig, data.get("context"), "context"),
        trigger=_build_section(TriggerConfig, data.get("trigger"), "trigger"),
        history=_build_section(HistoryConfig, data.get("history"), "history"),
        timeouts=_build_section(TimeoutConfig, data.get("timeouts"), "timeouts"),
        retry=_build_section(RetryConfig, data.get("retry"), "retry"),
        prompts=_build_section(PromptsConfig, data.get("prompts"), "prompts"),
        languages=tuple(str(line) for line in languages),
        logging=logging_config,
    )
