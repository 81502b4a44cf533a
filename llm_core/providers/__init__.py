"""LLM Provider 集成层。

该包下的模块负责：
- 定义 Provider 方言接口与 DTO 基类 (base)。
- 维护 Provider 端点、认证与参数范围配置 (registry)。
- 提供各厂商的线协议方言 (openai_compat、anthropic、gemini)。
- 通用协议适配器 (adapter) 与流式解码 (streaming)。
"""

from typing import Any, Literal, Optional

import httpx

from llm_core.config.settings import settings
from llm_core.providers.adapter import ProtocolAdapter
from llm_core.providers.anthropic import AnthropicDialect
from llm_core.providers.base import ProviderDialect
from llm_core.providers.gemini import GeminiDialect
from llm_core.providers.openai_compat import OpenAICompatDialect
from llm_core.providers.registry import get_provider_config

DIALECTS = {
    "openai": OpenAICompatDialect,
    "anthropic": AnthropicDialect,
    "gemini": GeminiDialect,
}


def create_provider(
    name: Optional[str] = None,
    *,
    model: Optional[str] = None,
    api_key: Optional[str] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    **kwargs: Any,
) -> ProtocolAdapter:
    """根据名称创建适配器实例，默认取配置中的 provider。

    api_key / base_url / 超时缺省时从 settings 读取；其余关键字参数
    原样传给 ProtocolAdapter。
    """

    provider_name = (name or getattr(settings, "default_provider", "openai")).lower()
    config = get_provider_config(provider_name)
    dialect: ProviderDialect = DIALECTS[config.name]()

    if provider_name == "anthropic":
        kwargs.setdefault("base_url", settings.anthropic_base_url)
        kwargs.setdefault("api_version", settings.anthropic_version)
        api_key = api_key or settings.anthropic_api_key
    elif provider_name == "gemini":
        kwargs.setdefault("base_url", settings.gemini_base_url)
        api_key = api_key or settings.gemini_api_key
    else:
        kwargs.setdefault("base_url", settings.openai_base_url)
        api_key = api_key or settings.openai_api_key
        model = model or settings.openai_model
    kwargs.setdefault("timeout", settings.http_timeout)

    return ProtocolAdapter(
        config,
        dialect,
        model=model,
        api_key=api_key,
        http_client=http_client,
        **kwargs,
    )


DefaultProviderName = Literal["openai", "anthropic", "gemini"]
