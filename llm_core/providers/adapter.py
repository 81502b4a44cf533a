"""通用协议适配器。

三个 Provider 共用同一套“追加 → 构造请求 → 发送 → 解析 → 提交回复”流程，
厂商差异由 ProviderConfig（端点、认证、参数范围）和 ProviderDialect
（线协议映射）提供。

一次 send_turn 的状态流转：Idle → Sending → Succeeded | Failed。

1. 校验入参、凭据与采样参数（失败时缓冲区不变）。
2. 乐观追加 user Turn。
3. 用完整快照 + 合并后的采样参数构造请求并发送。
4. 网络错误 / 非 2xx / 取消：撤回 user Turn（仅当它仍是最后一条），再抛出。
5. 响应无法解析（MalformedResponseError）或没有内容（EmptyResponseError）：
   请求已被服务端接收，保留 user Turn，不追加 assistant Turn。
6. 成功：追加 assistant Turn 并返回其文本。

同一个实例不支持并发调用；需要并行会话时请使用多个实例。
"""

import asyncio
import logging
import time
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Optional, Tuple
from uuid import uuid4

import httpx

from llm_core.domain.conversation import ConversationBuffer, Err, Ok, Outcome
from llm_core.domain.exceptions import (
    ApiError,
    EmptyResponseError,
    InvalidArgumentError,
    MalformedResponseError,
    NetworkError,
    RateLimitError,
    RequestCancelled,
    TransportError,
    UnauthenticatedError,
)
from llm_core.domain.models import ChatResult, ModelDescriptor, SamplingParams, Turn
from llm_core.infrastructure.http import HttpClientHandle
from llm_core.infrastructure.logging.logger import logger
from llm_core.providers.base import ProviderDialect
from llm_core.providers.registry import ProviderConfig
from llm_core.providers.streaming import ChunkCallback, decode_event_stream


class ProtocolAdapter:
    """单个会话的 Provider 客户端。

    Args:
        config: Provider 配置（见 registry）。
        dialect: Provider 方言。
        model: 模型名，缺省时使用 config.default_model。
        api_key: API 密钥；requires_api_key 的 Provider 在调用前校验。
        base_url: 覆盖 config.base_url（私有部署 / 代理）。
        api_version: 覆盖 config.api_version。
        http_client: 外部传入的 httpx.AsyncClient；为 None 时内部创建并负责关闭。
        leave_open: 仅在传入 http_client 时生效，False 表示由适配器负责关闭它。
        timeout: 内部创建客户端时使用的超时时间（秒）。
        sampling: 实例级采样默认值，覆盖 config.default_sampling 中的同名字段。
    """

    def __init__(
        self,
        config: ProviderConfig,
        dialect: ProviderDialect,
        *,
        model: Optional[str] = None,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        api_version: Optional[str] = None,
        http_client: Optional[httpx.AsyncClient] = None,
        leave_open: bool = True,
        timeout: Optional[float] = None,
        sampling: Optional[SamplingParams] = None,
    ):
        model = model or config.default_model
        if not model or not model.strip():
            raise InvalidArgumentError("model name must not be empty", provider=config.name)
        self._config = config
        self._dialect = dialect
        self.model = model
        self._api_key = api_key
        self._base_url = base_url or config.base_url
        self._api_version = api_version or config.api_version
        if http_client is not None:
            self._http = HttpClientHandle.borrow(http_client, leave_open=leave_open)
        else:
            self._http = HttpClientHandle.create(timeout=timeout)
        self.default_sampling = config.default_sampling.merged(sampling)
        self._buffer = ConversationBuffer()
        self.last_result: Optional[ChatResult] = None

    @property
    def name(self) -> str:
        return self._config.name

    @property
    def owns_http_client(self) -> bool:
        return self._http.owned

    # ---- 会话历史 ----

    def set_system_instruction(self, text: Optional[str]) -> None:
        self._buffer.set_system_instruction(text)

    @property
    def system_instruction(self) -> Optional[str]:
        return self._buffer.system_instruction

    def history(self) -> Tuple[Turn, ...]:
        return self._buffer.snapshot()

    def set_history(self, turns: Iterable[Turn]) -> None:
        self._buffer.replace(turns)

    def clear_history(self, keep_system: bool = True) -> None:
        self._buffer.clear(keep_system=keep_system)

    # ---- 非流式 ----

    async def send_turn(
        self,
        user_text: str,
        sampling: Optional[SamplingParams] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> str:
        """发送一条用户消息并返回助手回复文本。"""

        params = self._prepare(user_text, sampling, stream=False)
        self._check_cancel(cancel)
        log_ctx = self._log_ctx(stream=False)
        start_time = time.time()

        user_turn = self._buffer.append_user(user_text)
        self._log(logging.INFO, "Sending turn", log_ctx, history_len=len(self._buffer))
        try:
            outcome = await self._exchange(self._buffer.snapshot(), params, cancel)
        except asyncio.CancelledError:
            self._buffer.remove_by_identity(user_turn)
            self._log(logging.WARNING, "Task cancelled, rolled back user turn", log_ctx)
            raise
        self._report(outcome, log_ctx, start_time)
        return self._buffer.settle(user_turn, outcome)

    # ---- 流式 ----

    async def send_turn_stream(
        self,
        user_text: str,
        on_chunk: ChunkCallback,
        sampling: Optional[SamplingParams] = None,
        *,
        cancel: Optional[asyncio.Event] = None,
    ) -> str:
        """以流式方式发送用户消息。

        每收到一段增量文本就调用 on_chunk，流结束后把完整文本作为一条
        assistant Turn 提交到历史中，并返回该文本。
        """

        params = self._prepare(user_text, sampling, stream=True)
        self._check_cancel(cancel)
        log_ctx = self._log_ctx(stream=True)
        start_time = time.time()

        user_turn = self._buffer.append_user(user_text)
        self._log(logging.INFO, "Sending turn", log_ctx, history_len=len(self._buffer))
        try:
            outcome = await self._exchange_stream(self._buffer.snapshot(), params, on_chunk, cancel)
        except asyncio.CancelledError:
            self._buffer.remove_by_identity(user_turn)
            self._log(logging.WARNING, "Task cancelled, rolled back user turn", log_ctx)
            raise
        self._report(outcome, log_ctx, start_time)
        return self._buffer.settle(user_turn, outcome)

    # ---- 模型列表 ----

    async def list_models(self, *, cancel: Optional[asyncio.Event] = None) -> List[ModelDescriptor]:
        """查询可用模型列表；Provider 未返回任何模型时得到空列表。"""

        self._require_credentials()
        url = self._config.url(self._config.models_path, self.model, self._base_url)
        self._check_cancel(cancel)
        try:
            resp = await self._http.client.get(url, headers=self._headers(), params=self._query())
        except httpx.RequestError as e:
            raise self._network_error(e) from e
        self._check_cancel(cancel)
        self._raise_for_status(resp)
        data = self._decode_json(resp)
        self._check_cancel(cancel)
        return self._dialect.parse_models(data)

    # ---- 资源管理 ----

    async def aclose(self) -> None:
        """释放 HTTP 客户端（仅当它由本实例持有时）。"""

        await self._http.aclose()

    async def __aenter__(self) -> "ProtocolAdapter":
        return self

    async def __aexit__(self, *exc: Any) -> None:
        await self.aclose()

    # ---- 交换 ----

    async def _exchange(
        self,
        turns: Tuple[Turn, ...],
        params: SamplingParams,
        cancel: Optional[asyncio.Event],
    ) -> Outcome:
        payload = self._dialect.build_payload(self.model, turns, params)
        url = self._config.url(self._config.chat_path, self.model, self._base_url)
        try:
            self._check_cancel(cancel)
            resp = await self._http.client.post(url, json=payload, headers=self._headers(), params=self._query())
            self._check_cancel(cancel)
            self._raise_for_status(resp)
        except httpx.RequestError as e:
            return Err(self._network_error(e), rollback=True)
        except (TransportError, RequestCancelled) as e:
            return Err(e, rollback=True)

        try:
            data = self._decode_json(resp)
            self._check_cancel(cancel)
            result = self._dialect.parse_response(data, self.model)
            self._check_cancel(cancel)
        except RequestCancelled as e:
            return Err(e, rollback=True)
        except MalformedResponseError as e:
            return Err(e, rollback=False)

        self.last_result = result
        reply = result.choices[0].message if result.choices else None
        if reply is None or not reply.parts:
            empty = EmptyResponseError(
                message=f"{self.name} response did not contain any content",
                raw=result.raw,
                provider=self.name,
            )
            return Err(empty, rollback=False)
        return Ok(reply=reply, result=result)

    async def _exchange_stream(
        self,
        turns: Tuple[Turn, ...],
        params: SamplingParams,
        on_chunk: ChunkCallback,
        cancel: Optional[asyncio.Event],
    ) -> Outcome:
        payload = self._dialect.build_payload(self.model, turns, params)
        url = self._config.url(self._config.stream_path, self.model, self._base_url)
        query = {**self._config.stream_query, **self._query()}
        # 收到 2xx 响应头后即视为请求已被接收，之后的网络错误不再撤回 user Turn
        acknowledged = False
        try:
            self._check_cancel(cancel)
            async with self._http.client.stream(
                "POST", url, json=payload, headers=self._headers(), params=query
            ) as resp:
                self._check_cancel(cancel)
                if not resp.is_success:
                    await resp.aread()
                    self._raise_for_status(resp)
                acknowledged = True
                text = await decode_event_stream(
                    resp.aiter_lines(),
                    self._dialect.extract_delta,
                    on_chunk,
                    cancel=cancel,
                )
        except httpx.RequestError as e:
            return Err(self._network_error(e), rollback=not acknowledged)
        except (TransportError, RequestCancelled) as e:
            return Err(e, rollback=True)

        if not text:
            self._log(logging.WARNING, "Stream finished without text", self._log_ctx(stream=True))
        return Ok(reply=Turn.assistant(text))

    # ---- 辅助方法 ----

    def _prepare(self, user_text: str, sampling: Optional[SamplingParams], stream: bool) -> SamplingParams:
        """发送前的全部校验，任何失败都发生在修改缓冲区之前。"""

        if not isinstance(user_text, str) or not user_text.strip():
            raise InvalidArgumentError("user message must not be empty", provider=self.name)
        self._require_credentials()
        params = replace(self.default_sampling.merged(sampling), stream=stream)
        self._validate_sampling(params)
        return params

    def _require_credentials(self) -> None:
        if self._config.requires_api_key and not (self._api_key and self._api_key.strip()):
            raise UnauthenticatedError(
                message=f"{self.name.upper()}_API_KEY not set",
                provider=self.name,
            )

    def _validate_sampling(self, params: SamplingParams) -> None:
        cfg = self._config
        if params.temperature is not None and not 0 <= params.temperature <= cfg.max_temperature:
            raise InvalidArgumentError(
                f"temperature must be within [0, {cfg.max_temperature}], got {params.temperature}",
                provider=self.name,
            )
        if params.top_p is not None and not 0 <= params.top_p <= 1:
            raise InvalidArgumentError(f"top_p must be within [0, 1], got {params.top_p}", provider=self.name)
        if params.top_k is not None and params.top_k < 1:
            raise InvalidArgumentError(f"top_k must be >= 1, got {params.top_k}", provider=self.name)
        if params.max_tokens is not None and params.max_tokens < 1:
            if not (cfg.allow_unlimited_tokens and params.max_tokens == -1):
                raise InvalidArgumentError(
                    f"max_tokens must be >= 1, got {params.max_tokens}",
                    provider=self.name,
                )

    def _headers(self) -> Dict[str, str]:
        headers = {"Content-Type": "application/json"}
        if self._api_key:
            if self._config.auth == "bearer":
                headers["Authorization"] = f"Bearer {self._api_key}"
            elif self._config.auth == "x-api-key":
                headers["x-api-key"] = self._api_key
        if self._config.api_version_header and self._api_version:
            headers[self._config.api_version_header] = self._api_version
        return headers

    def _query(self) -> Dict[str, str]:
        if self._config.auth == "query-key" and self._api_key:
            return {"key": self._api_key}
        return {}

    def _raise_for_status(self, resp: httpx.Response) -> None:
        if resp.status_code == 429:
            raise RateLimitError(
                code="RATE_LIMIT",
                message=f"{self.name} rate limit",
                http_status=429,
                provider=self.name,
            )
        if not resp.is_success:
            raise ApiError(
                code="API_ERROR",
                message=resp.text,
                http_status=resp.status_code,
                provider=self.name,
            )

    def _decode_json(self, resp: httpx.Response) -> Any:
        try:
            return resp.json()
        except ValueError as e:
            raise MalformedResponseError(
                message=f"{self.name} response is not valid JSON: {e}",
                body=resp.text[:500],
                provider=self.name,
            ) from e

    def _network_error(self, exc: httpx.RequestError) -> NetworkError:
        error = NetworkError(code="NETWORK_ERROR", message=str(exc) or type(exc).__name__, provider=self.name)
        error.__cause__ = exc
        return error

    @staticmethod
    def _check_cancel(cancel: Optional[asyncio.Event]) -> None:
        if cancel is not None and cancel.is_set():
            raise RequestCancelled()

    def _log_ctx(self, stream: bool) -> Dict[str, Any]:
        return {
            "trace_id": f"tr-{uuid4().hex}",
            "provider": self.name,
            "model": self.model,
            "stream": stream,
        }

    def _report(self, outcome: Outcome, log_ctx: Dict[str, Any], start_time: float) -> None:
        elapsed = round(time.time() - start_time, 2)
        if isinstance(outcome, Ok):
            usage = outcome.result.usage if outcome.result else None
            self._log(
                logging.INFO,
                "Committed assistant turn",
                log_ctx,
                elapsed_seconds=elapsed,
                total_tokens=usage.total_tokens if usage else None,
            )
        elif outcome.rollback:
            self._log(
                logging.WARNING,
                "Rolled back user turn",
                log_ctx,
                elapsed_seconds=elapsed,
                code=outcome.error.code,
                http_status=outcome.error.http_status,
            )
        else:
            self._log(
                logging.WARNING,
                "Kept unanswered user turn",
                log_ctx,
                elapsed_seconds=elapsed,
                code=outcome.error.code,
            )

    @staticmethod
    def _log(level: int, message: str, log_ctx: Dict[str, Any], **fields: Any) -> None:
        payload = dict(log_ctx)
        payload.update(fields)
        logger.log(level, message, extra={"extra": payload})
