"""Anthropic Messages API 方言。

- URL: {base_url}/v1/messages
- 认证: x-api-key: <api_key>，另需 anthropic-version 头
- system 指令放在独立的 system 字段，不出现在 messages 中
- 消息内容拆分为带类型的内容块：[{"type": "text", "text": "..."}]

流式响应按事件下发，文本增量位于 content_block_delta 事件的 delta.text。
"""

from typing import Any, Dict, List, Optional, Sequence, Union

from llm_core.domain.models import (
    ChatChoice,
    ChatResult,
    ChatUsage,
    ContentPart,
    ModelDescriptor,
    SamplingParams,
    Turn,
)
from llm_core.providers.base import WireModel, parse_wire, split_system

# Messages API 要求必须提供 max_tokens
DEFAULT_MAX_TOKENS = 1024


class AnthropicContentPart(WireModel):
    type: str = "text"
    text: Optional[str] = None


class AnthropicMessage(WireModel):
    role: str
    content: List[AnthropicContentPart]


class AnthropicRequest(WireModel):
    model: str
    messages: List[AnthropicMessage]
    system: Optional[str] = None
    max_tokens: int
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    stream: bool = False


class AnthropicTokenUsage(WireModel):
    input_tokens: int = 0
    output_tokens: int = 0


class AnthropicResponse(WireModel):
    id: Optional[str] = None
    type: Optional[str] = None
    role: Optional[str] = None
    model: Optional[str] = None
    content: List[AnthropicContentPart] = []
    stop_reason: Optional[str] = None
    stop_sequence: Optional[str] = None
    usage: Optional[AnthropicTokenUsage] = None


class AnthropicDelta(WireModel):
    type: Optional[str] = None
    text: Optional[str] = None


class AnthropicStreamEvent(WireModel):
    type: str
    index: Optional[int] = None
    delta: Optional[AnthropicDelta] = None


class AnthropicModelInfo(WireModel):
    # 新版接口返回 id/display_name/created_at，旧版返回 name/description 等
    id: Optional[str] = None
    name: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    context_window: Optional[int] = None
    max_tokens: Optional[int] = None
    created: Optional[Union[int, str]] = None
    created_at: Optional[str] = None
    supports_tool_use: Optional[bool] = None


class AnthropicModelsListResponse(WireModel):
    data: List[AnthropicModelInfo] = []
    models: List[AnthropicModelInfo] = []


class AnthropicDialect:
    name = "anthropic"

    def build_payload(self, model: str, turns: Sequence[Turn], sampling: SamplingParams) -> Dict[str, Any]:
        system, rest = split_system(turns)
        request = AnthropicRequest(
            model=model,
            messages=[self._turn_to_wire(t) for t in rest],
            system=system or None,
            max_tokens=sampling.max_tokens or DEFAULT_MAX_TOKENS,
            temperature=sampling.temperature,
            top_p=sampling.top_p,
            top_k=sampling.top_k,
            stream=bool(sampling.stream),
        )
        return request.to_wire()

    def parse_response(self, data: Any, model: str) -> ChatResult:
        resp = parse_wire(AnthropicResponse, data, self.name)
        choices: list[ChatChoice] = []
        if resp.content:
            parts = tuple(ContentPart(text=p.text or "", type=p.type) for p in resp.content)
            choices.append(ChatChoice(index=0, message=Turn.assistant(parts), finish_reason=resp.stop_reason))
        usage = None
        if resp.usage is not None:
            usage = ChatUsage(
                prompt_tokens=resp.usage.input_tokens,
                completion_tokens=resp.usage.output_tokens,
                total_tokens=resp.usage.input_tokens + resp.usage.output_tokens,
            )
        return ChatResult(
            provider=self.name,
            model=resp.model or model,
            id=resp.id,
            choices=choices,
            usage=usage,
            raw=data,
        )

    def extract_delta(self, data: Any) -> Optional[str]:
        event = parse_wire(AnthropicStreamEvent, data, self.name)
        if event.type != "content_block_delta" or event.delta is None:
            return None
        return event.delta.text or None

    def parse_models(self, data: Any) -> List[ModelDescriptor]:
        resp = parse_wire(AnthropicModelsListResponse, data, self.name)
        result: List[ModelDescriptor] = []
        for m in resp.data or resp.models:
            name = m.id or m.name
            if not name:
                continue
            capabilities = ("tool_use",) if m.supports_tool_use else ()
            created = m.created_at or (str(m.created) if m.created is not None else None)
            result.append(
                ModelDescriptor(
                    name=name,
                    display_name=m.display_name,
                    description=m.description,
                    context_window=m.context_window,
                    max_output_tokens=m.max_tokens,
                    capabilities=capabilities,
                    created=created,
                )
            )
        return result

    @staticmethod
    def _turn_to_wire(turn: Turn) -> AnthropicMessage:
        return AnthropicMessage(
            role=turn.role,
            content=[AnthropicContentPart(type=p.type, text=p.text) for p in turn.parts],
        )
