"""会话历史缓冲区。

ConversationBuffer 是单个适配器实例独占的有序 Turn 序列，也是每次请求
发送给 Provider 的唯一数据来源。

一次对话交换的结果用 Ok / Err 表示，由纯函数 next_turns 计算出下一个
缓冲区状态，再由 ConversationBuffer.settle 一次性替换，失败路径的回滚
不依赖 try/except 里的零散 remove 调用。
"""

from dataclasses import dataclass
from typing import Iterable, Iterator, List, Optional, Sequence, Tuple, Union

from .exceptions import BusinessError, InvalidArgumentError
from .models import ChatResult, Turn


@dataclass(frozen=True)
class Ok:
    """交换成功：reply 为要提交的 assistant Turn。"""

    reply: Turn
    result: Optional[ChatResult] = None

    @property
    def text(self) -> str:
        return self.reply.text


@dataclass(frozen=True)
class Err:
    """交换失败。

    rollback 为 True 表示可以确认请求没有被服务端接收（网络错误、非 2xx、
    取消），此时乐观追加的 user Turn 需要撤回；否则保留 user Turn。
    """

    error: BusinessError
    rollback: bool


Outcome = Union[Ok, Err]


def next_turns(turns: Sequence[Turn], pending: Turn, outcome: Outcome) -> Tuple[Turn, ...]:
    """根据交换结果计算下一个缓冲区状态（纯函数，不修改入参）。

    撤回只在 pending 仍是最后一个元素时发生，否则保持原样。
    """

    current = tuple(turns)
    if isinstance(outcome, Ok):
        return current + (outcome.reply,)
    if outcome.rollback and current and current[-1] is pending:
        return current[:-1]
    return current


class ConversationBuffer:
    """有序、可变的会话历史。

    不变量：
    - 至多一个 system Turn，存在时位于第 0 位；
    - 追加顺序即时间顺序；
    - 不提供并发保护，一个缓冲区只能被一个调用方串行使用。
    """

    def __init__(self, turns: Optional[Iterable[Turn]] = None):
        self._turns: List[Turn] = []
        if turns:
            self.replace(turns)

    def __len__(self) -> int:
        return len(self._turns)

    def __iter__(self) -> Iterator[Turn]:
        return iter(self.snapshot())

    @property
    def system_instruction(self) -> Optional[str]:
        if self._turns and self._turns[0].role == "system":
            return self._turns[0].text
        return None

    def set_system_instruction(self, text: Optional[str]) -> None:
        """移除已有的 system Turn，text 非空时在第 0 位插入新的。"""

        self._turns = [t for t in self._turns if t.role != "system"]
        if text:
            self._turns.insert(0, Turn.system(text))

    def append_user(self, text: str) -> Turn:
        turn = Turn.user(text)
        self._turns.append(turn)
        return turn

    def append_assistant(self, turn: Turn) -> None:
        if turn.role != "assistant":
            raise InvalidArgumentError(f"expected an assistant turn, got {turn.role!r}")
        self._turns.append(turn)

    def snapshot(self) -> Tuple[Turn, ...]:
        """返回当前历史的副本，之后对缓冲区的修改不会影响它。"""

        return tuple(self._turns)

    def clear(self, keep_system: bool = True) -> None:
        if keep_system:
            self._turns = [t for t in self._turns if t.role == "system"]
        else:
            self._turns = []

    def remove_by_identity(self, turn: Turn) -> bool:
        """撤回指定的 Turn 实例；仅当它仍是最后一个元素时才移除。"""

        if self._turns and self._turns[-1] is turn:
            self._turns.pop()
            return True
        return False

    def replace(self, turns: Iterable[Turn]) -> None:
        """整体替换历史记录，system Turn 会被移到最前面。"""

        items = list(turns)
        systems = [t for t in items if t.role == "system"]
        if len(systems) > 1:
            raise InvalidArgumentError("history may contain at most one system turn")
        self._turns = systems + [t for t in items if t.role != "system"]

    def settle(self, pending: Turn, outcome: Outcome) -> str:
        """应用一次交换结果。

        Ok 时提交 assistant Turn 并返回其文本；Err 时按需撤回 pending，
        然后抛出 outcome.error。
        """

        if isinstance(outcome, Ok) and outcome.reply.role != "assistant":
            raise InvalidArgumentError(f"expected an assistant turn, got {outcome.reply.role!r}")
        self._turns = list(next_turns(self._turns, pending, outcome))
        if isinstance(outcome, Err):
            raise outcome.error
        return outcome.text
