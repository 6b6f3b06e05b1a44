"""统一业务异常模型。

所有跨模块抛出的错误都继承自 BusinessError，API 层据此统一
渲染为 ``{"error": message, "kind": code}`` 的非 2xx 响应。
"""

from typing import Optional


class BusinessError(Exception):
    """业务异常基类。

    Attributes:
        code: 机器可读错误类别（如 "UNKNOWN_TOOL"）。
        message: 用户可读错误信息。
        http_status: 映射到 HTTP 时使用的状态码。
        extra: 其他补充字段（例如 call_id、tool_name、rounds 等）。
    """

    default_code = "BUSINESS_ERROR"
    default_status = 400

    def __init__(
        self,
        code: Optional[str] = None,
        message: str = "",
        http_status: Optional[int] = None,
        **extra,
    ):
        self.code = code or self.default_code
        self.message = message
        self.http_status = http_status or self.default_status
        self.extra = extra
        super().__init__(message)

    def to_dict(self) -> dict:
        payload = {"error": self.message, "kind": self.code}
        payload.update({k: v for k, v in self.extra.items() if v is not None})
        return payload


class ValidationError(BusinessError):
    """参数或配置校验失败，请求在进入循环前即被拒绝。"""

    default_code = "VALIDATION_ERROR"
    default_status = 400


class UnknownAgentError(BusinessError):
    default_code = "UNKNOWN_AGENT"
    default_status = 404


class UnknownToolError(BusinessError):
    """模型请求了注册表中不存在的工具。"""

    default_code = "UNKNOWN_TOOL"
    default_status = 502

    def __init__(self, tool_name: str, call_id: Optional[str] = None, **extra):
        super().__init__(
            message=f"Tool '{tool_name}' is not registered",
            tool_name=tool_name,
            call_id=call_id,
            **extra,
        )
        self.tool_name = tool_name
        self.call_id = call_id


class ToolExecutionError(BusinessError):
    """工具自身执行失败（不可恢复）。"""

    default_code = "TOOL_EXECUTION_ERROR"
    default_status = 502

    def __init__(self, tool_name: str, call_id: str, cause: BaseException, **extra):
        super().__init__(
            message=f"Tool '{tool_name}' (call {call_id}) failed: {cause}",
            tool_name=tool_name,
            call_id=call_id,
            cause=type(cause).__name__,
            **extra,
        )
        self.tool_name = tool_name
        self.call_id = call_id
        self.__cause__ = cause


class InvocationError(BusinessError):
    """模型后端调用失败。由上层决定是否重试。"""

    default_code = "INVOCATION_ERROR"
    default_status = 502


class NetworkError(InvocationError):
    """网络层错误，例如连接失败。"""

    default_code = "NETWORK_ERROR"


class ApiError(InvocationError):
    """第三方 API 返回非 2xx/429 错误，或响应无法解析时抛出。"""

    default_code = "API_ERROR"


class RateLimitError(InvocationError):
    """Provider 限流错误。"""

    default_code = "RATE_LIMIT"
    default_status = 429


class InvocationTimeout(InvocationError):
    default_code = "INVOCATION_TIMEOUT"
    default_status = 504


class LoopLimitExceeded(BusinessError):
    """模型持续请求工具，超过了往返轮数上限。"""

    default_code = "LOOP_LIMIT_EXCEEDED"
    default_status = 508


class LoopCancelled(BusinessError):
    default_code = "CANCELLED"
    default_status = 499
