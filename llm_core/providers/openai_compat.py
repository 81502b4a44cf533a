"""OpenAI 兼容 chat/completions 方言。

适用于 OpenAI、LM Studio、vLLM 等实现了同一协议的服务：
- URL: {base_url}/v1/chat/completions
- 认证: Authorization: Bearer <api_key>（本地部署可不传）

system 指令以 role="system" 的消息放在 messages 首位发送。
"""

from typing import Any, Dict, List, Optional, Sequence

from llm_core.domain.models import ChatChoice, ChatResult, ChatUsage, ModelDescriptor, SamplingParams, Turn
from llm_core.providers.base import WireModel, parse_wire


class OpenAIMessage(WireModel):
    role: Optional[str] = None
    content: Optional[str] = None


class ChatCompletionRequest(WireModel):
    model: str
    messages: List[OpenAIMessage]
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    max_tokens: Optional[int] = None
    stream: bool = False


class ChatCompletionChoice(WireModel):
    index: int = 0
    message: Optional[OpenAIMessage] = None
    # 流式片段里增量放在 delta；部分本地服务仍放在 message
    delta: Optional[OpenAIMessage] = None
    finish_reason: Optional[str] = None


class ChatCompletionUsage(WireModel):
    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


class ChatCompletionResponse(WireModel):
    id: Optional[str] = None
    object: Optional[str] = None
    created: Optional[int] = None
    model: Optional[str] = None
    choices: List[ChatCompletionChoice] = []
    usage: Optional[ChatCompletionUsage] = None
    system_fingerprint: Optional[str] = None


class OpenAIModelInfo(WireModel):
    id: str
    object: Optional[str] = None
    created: Optional[int] = None
    owned_by: Optional[str] = None


class OpenAIModelsListResponse(WireModel):
    data: List[OpenAIModelInfo] = []


class OpenAICompatDialect:
    name = "openai"

    def build_payload(self, model: str, turns: Sequence[Turn], sampling: SamplingParams) -> Dict[str, Any]:
        request = ChatCompletionRequest(
            model=model,
            messages=[OpenAIMessage(role=t.role, content=t.text) for t in turns],
            temperature=sampling.temperature,
            top_p=sampling.top_p,
            max_tokens=sampling.max_tokens,
            stream=bool(sampling.stream),
        )
        return request.to_wire()

    def parse_response(self, data: Any, model: str) -> ChatResult:
        resp = parse_wire(ChatCompletionResponse, data, self.name)
        choices: list[ChatChoice] = []
        for i, ch in enumerate(resp.choices):
            msg = ch.message
            turn = None
            if msg is not None and msg.content is not None:
                turn = Turn.assistant(msg.content)
            choices.append(ChatChoice(index=i, message=turn, finish_reason=ch.finish_reason))
        usage = None
        if resp.usage is not None:
            usage = ChatUsage(
                prompt_tokens=resp.usage.prompt_tokens,
                completion_tokens=resp.usage.completion_tokens,
                total_tokens=resp.usage.total_tokens,
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
        chunk = parse_wire(ChatCompletionResponse, data, self.name)
        if not chunk.choices:
            return None
        first = chunk.choices[0]
        for msg in (first.delta, first.message):
            if msg is not None and msg.content:
                return msg.content
        return None

    def parse_models(self, data: Any) -> List[ModelDescriptor]:
        resp = parse_wire(OpenAIModelsListResponse, data, self.name)
        return [
            ModelDescriptor(
                name=m.id,
                description=f"owned by {m.owned_by}" if m.owned_by else None,
                created=str(m.created) if m.created is not None else None,
            )
            for m in resp.data
        ]
