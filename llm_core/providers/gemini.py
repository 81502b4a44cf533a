"""Google Gemini generateContent 方言。

- URL: {base_url}/models/{model}:generateContent
- 流式: {base_url}/models/{model}:streamGenerateContent?alt=sse
- 认证: API Key 通过 ?key= 查询参数传递，而不是请求头
- 字段名使用 camelCase（topK、maxOutputTokens、systemInstruction ...）
- 助手角色在线上叫 "model"，本地统一映射为 "assistant"
"""

from typing import Any, Dict, List, Optional, Sequence

from pydantic import ConfigDict
from pydantic.alias_generators import to_camel

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


class GeminiWireModel(WireModel):
    model_config = ConfigDict(
        extra="ignore",
        populate_by_name=True,
        alias_generator=to_camel,
        protected_namespaces=(),
    )


class GeminiPart(GeminiWireModel):
    text: Optional[str] = None


class GeminiContent(GeminiWireModel):
    role: Optional[str] = None
    parts: List[GeminiPart] = []


class GeminiGenerationConfig(GeminiWireModel):
    temperature: Optional[float] = None
    top_k: Optional[int] = None
    top_p: Optional[float] = None
    max_output_tokens: Optional[int] = None


class GeminiApiRequest(GeminiWireModel):
    contents: List[GeminiContent]
    system_instruction: Optional[GeminiContent] = None
    generation_config: Optional[GeminiGenerationConfig] = None


class GeminiCandidate(GeminiWireModel):
    content: Optional[GeminiContent] = None
    finish_reason: Optional[str] = None
    index: Optional[int] = None


class GeminiUsageMetadata(GeminiWireModel):
    prompt_token_count: int = 0
    candidates_token_count: int = 0
    total_token_count: int = 0


class GeminiApiResponse(GeminiWireModel):
    candidates: List[GeminiCandidate] = []
    usage_metadata: Optional[GeminiUsageMetadata] = None
    model_version: Optional[str] = None
    response_id: Optional[str] = None


class GeminiModelInfo(GeminiWireModel):
    name: str
    version: Optional[str] = None
    display_name: Optional[str] = None
    description: Optional[str] = None
    input_token_limit: Optional[int] = None
    output_token_limit: Optional[int] = None
    supported_generation_methods: List[str] = []
    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None


class GeminiModelsListResponse(GeminiWireModel):
    models: List[GeminiModelInfo] = []
    next_page_token: Optional[str] = None


_TO_WIRE_ROLE = {"user": "user", "assistant": "model"}


class GeminiDialect:
    name = "gemini"

    def build_payload(self, model: str, turns: Sequence[Turn], sampling: SamplingParams) -> Dict[str, Any]:
        system, rest = split_system(turns)
        request = GeminiApiRequest(
            contents=[
                GeminiContent(role=_TO_WIRE_ROLE[t.role], parts=[GeminiPart(text=p.text) for p in t.parts])
                for t in rest
            ],
            system_instruction=GeminiContent(parts=[GeminiPart(text=system)]) if system else None,
            generation_config=GeminiGenerationConfig(
                temperature=sampling.temperature,
                top_k=sampling.top_k,
                top_p=sampling.top_p,
                max_output_tokens=sampling.max_tokens,
            ),
        )
        return request.to_wire()

    def parse_response(self, data: Any, model: str) -> ChatResult:
        resp = parse_wire(GeminiApiResponse, data, self.name)
        choices: list[ChatChoice] = []
        for i, cand in enumerate(resp.candidates):
            turn = None
            if cand.content is not None and cand.content.parts:
                turn = Turn.assistant(tuple(ContentPart(text=p.text or "") for p in cand.content.parts))
            choices.append(ChatChoice(index=i, message=turn, finish_reason=cand.finish_reason))
        usage = None
        if resp.usage_metadata is not None:
            usage = ChatUsage(
                prompt_tokens=resp.usage_metadata.prompt_token_count,
                completion_tokens=resp.usage_metadata.candidates_token_count,
                total_tokens=resp.usage_metadata.total_token_count,
            )
        return ChatResult(
            provider=self.name,
            model=resp.model_version or model,
            id=resp.response_id,
            choices=choices,
            usage=usage,
            raw=data,
        )

    def extract_delta(self, data: Any) -> Optional[str]:
        chunk = parse_wire(GeminiApiResponse, data, self.name)
        if not chunk.candidates or chunk.candidates[0].content is None:
            return None
        text = "".join(p.text or "" for p in chunk.candidates[0].content.parts)
        return text or None

    def parse_models(self, data: Any) -> List[ModelDescriptor]:
        resp = parse_wire(GeminiModelsListResponse, data, self.name)
        return [
            ModelDescriptor(
                name=m.name,
                display_name=m.display_name,
                description=m.description,
                context_window=m.input_token_limit,
                max_output_tokens=m.output_token_limit,
                capabilities=tuple(m.supported_generation_methods),
            )
            for m in resp.models
        ]
