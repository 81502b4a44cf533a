"""配置管理模块。

支持从环境变量、.env 以及 config.yaml 加载配置，优先级从高到低：
构造参数 > 环境变量 > .env > config.yaml > secrets 目录。
"""

import os
import warnings
from pathlib import Path
from typing import Any, Dict, Optional

import yaml
from pydantic import Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


def _load_config_from_yaml() -> Dict[str, Any]:
    """从 config.yaml 加载配置（若存在）。"""
    candidates = []
    explicit = os.getenv("LLM_CORE_CONFIG_FILE")
    if explicit:
        candidates.append(Path(explicit).expanduser())
    candidates.extend([
        Path.cwd() / "config.yaml",
        Path(__file__).resolve().parents[2] / "config.yaml",
    ])

    seen: set[Path] = set()
    for path in candidates:
        if not path or path in seen:
            continue
        seen.add(path)
        try:
            if path.exists():
                data = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
                if isinstance(data, dict):
                    return data
                warnings.warn(f"Config file {path} is not a mapping, ignored")
        except (OSError, yaml.YAMLError) as exc:
            warnings.warn(f"Failed to read config file {path}: {exc}")
    return {}


class Settings(BaseSettings):
    """配置设置（使用 Pydantic）。"""

    # ---- Provider 选择 ----
    default_provider: str = Field(
        default="openai",
        description="默认使用的 Provider 名称：openai、anthropic、gemini",
    )

    # OpenAI 兼容接口（LM Studio / vLLM / OpenAI）
    openai_api_key: Optional[str] = Field(default=None, description="OpenAI 兼容接口密钥，本地部署可为空")
    openai_base_url: str = Field(
        default="http://localhost:12340",
        description="OpenAI 兼容接口基础URL（不含 /v1）",
    )
    openai_model: Optional[str] = Field(default=None, description="OpenAI 兼容接口默认模型")

    # Anthropic
    anthropic_api_key: Optional[str] = Field(default=None, description="Anthropic API 密钥")
    anthropic_base_url: str = Field(
        default="https://api.anthropic.com",
        description="Anthropic API 基础URL",
    )
    anthropic_version: str = Field(default="2023-06-01", description="anthropic-version 请求头")

    # Gemini
    gemini_api_key: Optional[str] = Field(default=None, description="Google AI API 密钥")
    gemini_base_url: str = Field(
        default="https://generativelanguage.googleapis.com/v1beta",
        description="Gemini API 基础URL",
    )

    http_timeout: float = Field(default=60.0, ge=1.0, description="HTTP 超时时间（秒）")
    log_dir: str = Field(default="logs", description="日志目录")
    log_level: str = Field(default="INFO", description="日志级别")
    log_redact_content: bool = Field(default=False, description="是否脱敏日志内容")

    model_config = SettingsConfigDict(
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )

    @staticmethod
    def _config_source() -> Dict[str, Any]:
        return _load_config_from_yaml()

    @field_validator("openai_api_key", "anthropic_api_key", "gemini_api_key")
    @classmethod
    def validate_api_key(cls, v: Optional[str]) -> Optional[str]:
        if v and len(v) < 10:
            raise ValueError("API key seems too short")
        return v

    @field_validator("log_level")
    @classmethod
    def validate_log_level(cls, v: str) -> str:
        level = v.upper()
        if level not in {"DEBUG", "INFO", "WARNING", "ERROR", "CRITICAL"}:
            raise ValueError(f"Unknown log level: {v}")
        return level

    @classmethod
    def settings_customise_sources(
        cls,
        settings_cls,
        init_settings,
        env_settings,
        dotenv_settings,
        file_secret_settings,
    ):
        return (
            init_settings,
            env_settings,
            dotenv_settings,
            cls._config_source,
            file_secret_settings,
        )


settings = Settings()
