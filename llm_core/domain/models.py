"""统一的对话与结果数据模型。

本模块定义了各 Provider 之间共享的标准数据结构：

- Turn: 一条对话消息（system/user/assistant），创建后不可修改。
- SamplingParams: 采样参数，支持“调用级覆盖 > 实例默认值”的合并。
- ChatResult: 从 Provider 响应解析后的统一结果。
- ModelDescriptor: 模型列表接口返回的静态元数据。

Provider 适配层（providers/*）负责在各家 API 的 JSON 和这些模型之间做转换，
这里不关心任何厂商字段名。
"""

from dataclasses import dataclass, field, fields, replace
from typing import List, Literal, Optional, Tuple, Union

from llm_core.domain.exceptions import InvalidArgumentError


# 会话中允许出现的角色；厂商自有角色（如 Gemini 的 "model"）由适配层映射
Role = Literal["system", "user", "assistant"]
ROLES: Tuple[str, ...] = ("system", "user", "assistant")


@dataclass(frozen=True)
class ContentPart:
    """带类型的内容块，目前只有 "text" 类型携带文本。"""

    text: str
    type: str = "text"


Content = Union[str, Tuple[ContentPart, ...]]


@dataclass(frozen=True)
class Turn:
    """一轮对话消息。

    - role: 消息角色，创建后不可修改。
    - content: 纯文本，或按顺序排列的 ContentPart 元组
      （Anthropic / Gemini 的响应会拆成多个内容块）。

    Turn 是不可变值：需要修改内容时构造一个新的 Turn 替换旧的，
    回滚逻辑依赖对象身份（is）而不是值相等。
    """

    role: Role
    content: Content

    def __post_init__(self) -> None:
        if self.role not in ROLES:
            raise InvalidArgumentError(f"unknown role: {self.role!r}")
        if isinstance(self.content, list):
            object.__setattr__(self, "content", tuple(self.content))

    @property
    def parts(self) -> Tuple[ContentPart, ...]:
        if isinstance(self.content, str):
            return (ContentPart(text=self.content),)
        return self.content

    @property
    def text(self) -> str:
        """文本内容；多个内容块时用换行拼接所有带文本的块。"""

        if isinstance(self.content, str):
            return self.content
        return "\n".join(p.text for p in self.content if p.type == "text" and p.text is not None)

    @classmethod
    def system(cls, text: str) -> "Turn":
        return cls(role="system", content=text)

    @classmethod
    def user(cls, text: str) -> "Turn":
        return cls(role="user", content=text)

    @classmethod
    def assistant(cls, content: Content) -> "Turn":
        return cls(role="assistant", content=content)


@dataclass(frozen=True)
class SamplingParams:
    """采样参数。所有字段可选，None 表示“交给实例默认值/服务端默认值”。"""

    temperature: Optional[float] = None
    top_p: Optional[float] = None
    top_k: Optional[int] = None
    max_tokens: Optional[int] = None
    stream: Optional[bool] = None

    def merged(self, override: Optional["SamplingParams"]) -> "SamplingParams":
        """返回新的参数对象：override 中非 None 的字段覆盖 self。"""

        if override is None:
            return self
        changes = {
            f.name: getattr(override, f.name)
            for f in fields(override)
            if getattr(override, f.name) is not None
        }
        return replace(self, **changes)


@dataclass
class ChatUsage:
    """Provider 返回的 token 统计信息（统一格式）。"""

    prompt_tokens: int = 0
    completion_tokens: int = 0
    total_tokens: int = 0


@dataclass
class ChatChoice:
    """单个候选回答（目前只使用 index=0 的一条）。

    message 为 None 表示该候选没有任何内容块。
    """

    index: int
    message: Optional[Turn]
    finish_reason: Optional[str] = None


@dataclass
class ChatResult:
    """一次对话调用的解析结果。

    - provider: Provider 名（如 "anthropic"）。
    - model: 服务端实际使用的模型名（缺失时为请求的模型名）。
    - id: 响应 ID（部分厂商不返回）。
    - choices: 一个或多个候选回答。
    - usage: token 使用统计。
    - raw: 原始响应 JSON，用于调试或日志记录。
    """

    provider: str
    model: str
    choices: List[ChatChoice]
    id: Optional[str] = None
    usage: Optional[ChatUsage] = None
    raw: Optional[dict] = None


@dataclass(frozen=True)
class ModelDescriptor:
    """模型列表中的一项，只读元数据，不参与会话状态。"""

    name: str
    display_name: Optional[str] = None
    description: Optional[str] = None
    context_window: Optional[int] = None
    max_output_tokens: Optional[int] = None
    capabilities: Tuple[str, ...] = field(default_factory=tuple)
    created: Optional[str] = None
