"""設定データクラス"""

from dataclasses import dataclass, field
from enum import Enum


class ProviderID(Enum):
    """サポートするLLMプロバイダ"""

    OLLAMA = "ollama"
    LLAMA_CPP = "llama_cpp"
    LM_STUDIO = "lm_studio"
    OPENAI = "openai"
    OPENAI_COMPATIBLE = "openai_compatible"
    OPENROUTER = "openrouter"
    CLAUDE = "claude"
    GOOGLE_AI = "google_ai"
    MISTRAL_AI = "mistral_ai"
    CODESTRAL = "codestral"
    LITELLM = "litellm"


@dataclass(frozen=True)
class SamplingConfig:
    """サンプリングパラメータ

    None のフィールドは未設定として扱い、リクエストに含めない。
    """

    temperature: float | None = 0.2
    top_p: float | None = None
    top_k: int | None = None
    max_tokens: int | None = 50
    presence_penalty: float | None = None
    frequency_penalty: float | None = None


@dataclass(frozen=True)
class ProviderConfig:
    """プロバイダ接続設定（リクエストごとのスナップショット）

    Attributes:
        provider: プロバイダID
        url: エンドポイントのベースURL
        model: モデル名
        api_key: APIキー（任意）
        streaming: ストリーミング応答を使うか
        sampling: サンプリングパラメータ
        context_window_tokens: コンテキストウィンドウ（トークン数）
        idle_suspend: ローカル推論サーバのアイドル停止時間（"-1" で無効）
    """

    provider: ProviderID
    url: str
    model: str
    api_key: str | None = field(default=None, repr=False)
    streaming: bool = True
    sampling: SamplingConfig = field(default_factory=SamplingConfig)
    context_window_tokens: int = 2048
    idle_suspend: str = "5m"


@dataclass(frozen=True)
class ProviderPresetConfig:
    """特定言語向けのプロバイダ切り替え設定"""

    provider: ProviderConfig
    languages: tuple[str, ...] = ()
    template: str | None = None


@dataclass(frozen=True)
class CustomTemplateConfig:
    """ユーザー定義のプロンプトテンプレート"""

    name: str
    kind: str
    user_template: str = ""
    system_template: str | None = None
    suffix_template: str | None = None
    body_template: dict | None = None
    stop_words: tuple[str, ...] = ()


@dataclass(frozen=True)
class TemplateSelection:
    """用途ごとに使うテンプレート名"""

    completion: str = "Ollama FIM"
    chat: str = "Ollama Chat"
    custom: tuple[CustomTemplateConfig, ...] = ()


@dataclass(frozen=True)
class ContextConfig:
    """コンテキスト収集設定"""

    max_prefix_chars: int = 16000
    max_suffix_chars: int = 8000
    lines_before: int = 50
    lines_after: int = 30
    read_full_file: bool = False
    include_open_files: bool = False
    max_file_chars: int = 4000
    max_open_files_chars: int = 12000
    skip_copyright_header: bool = True
    use_file_path: bool = True
    use_changes_cache: bool = True


@dataclass(frozen=True)
class TriggerConfig:
    """自動補完のトリガー設定"""

    quiet_interval_ms: int = 500
    char_threshold: int = 1
    typing_interval_ms: int = 2000


@dataclass(frozen=True)
class HistoryConfig:
    """履歴設定"""

    token_limit: int = 20000
    changes_cache_size: int = 20


@dataclass(frozen=True)
class TimeoutConfig:
    """タイムアウト設定（秒）"""

    connect_seconds: float = 10.0
    idle_seconds: float = 60.0


@dataclass(frozen=True)
class RetryConfig:
    """接続エラー時の再試行設定"""

    max_attempts: int = 1
    backoff_seconds: float = 0.5


@dataclass(frozen=True)
class PromptsConfig:
    """システムプロンプト（Jinja2テンプレート）"""

    completion_system: str | None = None
    non_fim_system: str | None = None
    chat_system: str | None = None
    use_system_prompt: bool = True
    smart_process_instruct_text: bool = True
    instructions: str = "Complete the code at the cursor position."


@dataclass
class LoggingConfig:
    """ログ設定"""

    level: str = "INFO"
    format: str = "%(asctime)s - %(name)s - %(levelname)s - %(message)s"
    loggers: dict[str, str] | None = None
    debug_llm_messages: bool = False


@dataclass
class Config:
    """アプリケーション設定"""

    completion: ProviderConfig
    chat: ProviderConfig
    completion_preset: ProviderPresetConfig | None = None
    templates: TemplateSelection = field(default_factory=TemplateSelection)
    context: ContextConfig = field(default_factory=ContextConfig)
    trigger: TriggerConfig = field(default_factory=TriggerConfig)
    history: HistoryConfig = field(default_factory=HistoryConfig)
    timeouts: TimeoutConfig = field(default_factory=TimeoutConfig)
    retry: RetryConfig = field(default_factory=RetryConfig)
    prompts: PromptsConfig = field(default_factory=PromptsConfig)
    languages: tuple[str, ...] = ()
    logging: LoggingConfig | None = None
