"""Provider 配置表。

三个 Provider 共用同一个 ProtocolAdapter，差异全部集中在这里：

- 端点模板（chat / stream / models，可含 {model} 占位符）；
- 认证方式（Bearer 头、x-api-key 头、?key= 查询参数）；
- API 版本头；
- 采样参数取值范围与默认值。

新增一个 OpenAI 兼容的厂商时，通常只需要在这里加一条配置。"""

from dataclasses import dataclass, field
from typing import Literal, Mapping, Optional

from llm_core.domain.models import SamplingParams


AuthScheme = Literal["bearer", "x-api-key", "query-key"]


@dataclass(frozen=True)
class ProviderConfig:
    """某个 Provider 的整体配置。"""

    name: str
    base_url: str
    chat_path: str
    stream_path: str
    models_path: str
    auth: AuthScheme
    stream_query: Mapping[str, str] = field(default_factory=dict)
    requires_api_key: bool = True
    api_version_header: Optional[str] = None
    api_version: Optional[str] = None
    max_temperature: float = 2.0
    # -1 在 OpenAI 兼容接口（LM Studio）里表示不限制生成长度
    allow_unlimited_tokens: bool = False
    default_model: Optional[str] = None
    default_sampling: SamplingParams = field(default_factory=SamplingParams)

    def url(self, path: str, model: str, base_url: Optional[str] = None) -> str:
        base = (base_url or self.base_url).rstrip("/")
        return f"{base}/{path.format(model=model).lstrip('/')}"


# OpenAI 兼容的 chat/completions 接口，默认指向本地 LM Studio
OPENAI_CONFIG = ProviderConfig(
    name="openai",
    base_url="http://localhost:12340",
    chat_path="/v1/chat/completions",
    stream_path="/v1/chat/completions",
    models_path="/v1/models",
    auth="bearer",
    requires_api_key=False,
    max_temperature=2.0,
    allow_unlimited_tokens=True,
    default_sampling=SamplingParams(temperature=0.7, stream=False),
)

ANTHROPIC_CONFIG = ProviderConfig(
    name="anthropic",
    base_url="https://api.anthropic.com",
    chat_path="/v1/messages",
    stream_path="/v1/messages",
    models_path="/v1/models",
    auth="x-api-key",
    api_version_header="anthropic-version",
    api_version="2023-06-01",
    max_temperature=1.0,
    default_model="claude-3-opus-20240229",
    default_sampling=SamplingParams(temperature=0.7, top_p=1.0, max_tokens=1024, stream=False),
)

GEMINI_CONFIG = ProviderConfig(
    name="gemini",
    base_url="https://generativelanguage.googleapis.com/v1beta",
    chat_path="/models/{model}:generateContent",
    stream_path="/models/{model}:streamGenerateContent",
    models_path="/models",
    stream_query={"alt": "sse"},
    auth="query-key",
    max_temperature=2.0,
    default_model="gemini-2.5-pro-exp-03-25",
    default_sampling=SamplingParams(temperature=0.35, top_k=1, top_p=1.0, max_tokens=65536),
)


PROVIDER_REGISTRY: Mapping[str, ProviderConfig] = {
    "openai": OPENAI_CONFIG,
    "anthropic": ANTHROPIC_CONFIG,
    "gemini": GEMINI_CONFIG,
}


def get_provider_config(name: str) -> ProviderConfig:
    """根据名称获取 ProviderConfig，名称不区分大小写。"""

    key = name.lower()
    for k, cfg in PROVIDER_REGISTRY.items():
        if k.lower() == key:
            return cfg
    raise KeyError(f"Unknown provider: {name!r}")
