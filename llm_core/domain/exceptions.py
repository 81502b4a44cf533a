"""统一业务异常模型。

所有跨模块抛出的业务级错误都继承自 BusinessError，
调用方可以只捕获 BusinessError，也可以按子类区分处理：

- InvalidArgumentError: 入参非法（空文本、空模型名、采样参数越界）。
- UnauthenticatedError: 发请求前就发现凭据缺失。
- TransportError: 请求没有成功送达（网络错误、非 2xx）。
- RequestCancelled: 调用方的取消信号被观察到。
- MalformedResponseError: 响应体无法解析为预期结构。
- EmptyResponseError: 响应结构合法，但没有可用的候选/内容。
"""

from typing import Any, Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误码（如 "NETWORK_ERROR"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时可用的状态码，默认 400。
        extra: 其他补充字段（例如 provider、model 等）。
    """

    def __init__(self, code: str, message: str, http_status: int = 400, **extra: Any):
        self.code = code
        self.message = message
        self.http_status = http_status
        self.extra = extra
        super().__init__(message)


class InvalidArgumentError(BusinessError):
    """参数或配置校验失败。"""

    def __init__(self, message: str, **extra: Any):
        super().__init__(code="INVALID_ARGUMENT", message=message, **extra)


class UnauthenticatedError(BusinessError):
    """API Key 缺失或为空，调用前直接失败，不发起网络请求。"""

    def __init__(self, message: str, **extra: Any):
        super().__init__(code="MISSING_API_KEY", message=message, http_status=401, **extra)


class TransportError(BusinessError):
    """请求未被服务端成功接收：网络错误或非 2xx 状态码。"""


class NetworkError(TransportError):
    """网络层错误，例如连接失败、超时等。"""


class ApiError(TransportError):
    """第三方 API 返回非 2xx/429 错误时抛出。"""


class RateLimitError(TransportError):
    """Provider 限流错误（HTTP 429）。本库不做重试，交给调用方处理。"""


class RequestCancelled(BusinessError):
    """调用方通过取消信号中止了本次请求。"""

    def __init__(self, message: str = "request cancelled", **extra: Any):
        super().__init__(code="CANCELLED", message=message, http_status=499, **extra)


class MalformedResponseError(BusinessError):
    """响应体不是 JSON，或与 Provider 的响应结构不匹配。"""

    def __init__(self, message: str, body: Optional[str] = None, **extra: Any):
        super().__init__(code="MALFORMED_RESPONSE", message=message, http_status=502, **extra)
        self.body = body


class EmptyResponseError(BusinessError):
    """响应结构合法，但没有候选回答或内容为空。"""

    def __init__(self, message: str, raw: Optional[dict] = None, **extra: Any):
        super().__init__(code="EMPTY_RESPONSE", message=message, http_status=502, **extra)
        self.raw = raw
