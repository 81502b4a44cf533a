"""Provider 方言接口。

ProtocolAdapter 不直接依赖任何厂商的字段名，而是依赖此协议：

- 每个厂商实现一个 Dialect（如 AnthropicDialect）。
- 负责：把 Turn 序列 + 采样参数转换成请求 JSON，并把响应 JSON
  （完整响应、流式片段、模型列表）解析为统一的领域模型。

线协议对象（请求/响应 DTO）统一使用 pydantic 模型：写出时按别名输出并
省略 None 字段，读取时忽略未知字段。
"""

from typing import Any, Dict, List, Optional, Protocol, Sequence, Type, TypeVar

from pydantic import BaseModel, ConfigDict, ValidationError

from llm_core.domain.exceptions import MalformedResponseError
from llm_core.domain.models import ChatResult, ModelDescriptor, SamplingParams, Turn


class WireModel(BaseModel):
    """所有请求/响应 DTO 的基类。"""

    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    def to_wire(self) -> Dict[str, Any]:
        return self.model_dump(by_alias=True, exclude_none=True)


W = TypeVar("W", bound=BaseModel)


def parse_wire(model_cls: Type[W], data: Any, provider: str) -> W:
    """把已解码的 JSON 校验为 DTO，结构不符时统一抛 MalformedResponseError。"""

    try:
        return model_cls.model_validate(data)
    except ValidationError as e:
        raise MalformedResponseError(
            message=f"{provider} response does not match {model_cls.__name__}: {e.error_count()} error(s)",
            provider=provider,
        ) from e


def split_system(turns: Sequence[Turn]) -> tuple[Optional[str], List[Turn]]:
    """拆出 system 指令，供把 system 作为独立字段发送的厂商使用。"""

    system: Optional[str] = None
    rest: List[Turn] = []
    for t in turns:
        if t.role == "system":
            system = t.text
        else:
            rest.append(t)
    return system, rest


class ProviderDialect(Protocol):
    """Provider 方言协议。

    实现者需要提供：
    - name: Provider 名称，用于日志/错误信息。
    - build_payload: 构造请求体 JSON（dict）。
    - parse_response: 把完整响应解析为 ChatResult。
    - extract_delta: 从单个流式片段中取出增量文本，没有内容时返回 None。
    - parse_models: 解析模型列表响应。

    parse_* / extract_delta 在结构不符时抛 MalformedResponseError。
    """

    name: str

    def build_payload(self, model: str, turns: Sequence[Turn], sampling: SamplingParams) -> Dict[str, Any]:
        ...

    def parse_response(self, data: Any, model: str) -> ChatResult:
        ...

    def extract_delta(self, data: Any) -> Optional[str]:
        ...

    def parse_models(self, data: Any) -> List[ModelDescriptor]:
        ...
