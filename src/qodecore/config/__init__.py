"""設定管理モジュール"""

from qodecore.config.loader import (
    ConfigError,
    ConfigValidationError,
    EnvironmentVariableError,
    expand_env_vars,
    load_config,
)
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

__all__ = [
    "Config",
    "ConfigError",
    "ConfigValidationError",
    "ContextConfig",
    "CustomTemplateConfig",
    "EnvironmentVariableError",
    "HistoryConfig",
    "LoggingConfig",
    "PromptsConfig",
    "ProviderConfig",
    "ProviderID",
    "ProviderPresetConfig",
    "RetryConfig",
    "SamplingConfig",
    "TemplateSelection",
    "TimeoutConfig",
    "TriggerConfig",
    "expand_env_vars",
    "load_config",
]
