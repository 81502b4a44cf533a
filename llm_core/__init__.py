"""llm_core 顶层包。

该包为多个大模型厂商的 HTTP API 提供会话式客户端：
OpenAI 兼容 chat/completions、Anthropic Messages、Google Gemini。
包括配置加载、领域模型、会话历史缓冲区、通用协议适配器与流式解码。
"""

from llm_core.domain.conversation import ConversationBuffer
from llm_core.domain.models import ModelDescriptor, SamplingParams, Turn
from llm_core.providers import create_provider
from llm_core.providers.adapter import ProtocolAdapter

__all__ = [
    "ConversationBuffer",
    "ModelDescriptor",
    "ProtocolAdapter",
    "SamplingParams",
    "Turn",
    "create_provider",
]
