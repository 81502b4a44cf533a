"""流式响应解码。

服务端以 SSE 形式逐行下发：每个事件行以 "data:" 开头，
以 "data: [DONE]" 结束（Anthropic / Gemini 不发送结束标记，直接关闭流）。

解码器对帧格式保持宽容：空行、非 data 行、无法解析的 JSON、
不带文本的片段都会被跳过，不会中断整个流。
"""

import asyncio
import inspect
import json
import logging
from typing import Any, AsyncIterable, Awaitable, Callable, Optional, Union

from llm_core.domain.exceptions import MalformedResponseError, RequestCancelled
from llm_core.infrastructure.logging.logger import logger

DATA_PREFIX = "data:"
DONE_SENTINEL = "[DONE]"

ChunkCallback = Callable[[str], Union[None, Awaitable[None]]]


def parse_data_line(line: str) -> Optional[str]:
    """取出 data 行的负载；非 data 行返回 None。"""

    if not line or not line.startswith(DATA_PREFIX):
        return None
    return line[len(DATA_PREFIX):].strip()


async def decode_event_stream(
    lines: AsyncIterable[str],
    extract_delta: Callable[[Any], Optional[str]],
    on_chunk: ChunkCallback,
    *,
    cancel: Optional[asyncio.Event] = None,
) -> str:
    """逐行消费事件流，回调每个文本增量，返回拼接后的完整文本。

    on_chunk 可以是普通函数，也可以是协程函数。
    """

    pieces: list[str] = []
    async for line in lines:
        if cancel is not None and cancel.is_set():
            raise RequestCancelled()
        data_str = parse_data_line(line)
        if not data_str:
            continue
        if data_str == DONE_SENTINEL:
            break
        try:
            payload = json.loads(data_str)
            delta = extract_delta(payload)
        except (json.JSONDecodeError, MalformedResponseError):
            logger.log(logging.DEBUG, "Skipped stream frame", extra={"extra": {"frame": data_str[:200]}})
            continue
        if not delta:
            continue
        result = on_chunk(delta)
        if inspect.isawaitable(result):
            await result
        pieces.append(delta)
    return "".join(pieces)
