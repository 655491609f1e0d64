from dataclasses import dataclass
import math

from pydantic import BaseModel, Field

from .asyncsse import Message
from .errors import SSEError


class RetryPolicy(BaseModel):
    # 最大重连次数，None 表示无限重试
    max_attempts: int | None = Field(None, ge=1)
    # 退避倍率，1.0 即固定间隔
    backoff_factor: float = Field(1.0, ge=1.0)
    # 重连间隔上限（毫秒）
    max_interval: int | None = Field(None, ge=0)

    def exhausted(self, attempt: int) -> bool:
        return self.max_attempts is not None and attempt > self.max_attempts

    def delay(self, interval: int, attempt: int) -> float:
        """第 attempt 次重连前要等的秒数，interval 为当前的 retry（毫秒）"""
        try:
            millis = interval * self.backoff_factor ** max(attempt - 1, 0)
        except OverflowError:
            millis = math.inf if interval else 0.0
        if self.max_interval is not None:
            millis = min(millis, self.max_interval)
        return millis / 1000


class StreamConfig(BaseModel):
    # SSE 端点
    url: str = "http://127.0.0.1:8080/events"
    # 从哪条消息之后开始接收
    last_event_id: str | None = None
    # 初始重连间隔（毫秒），服务端的 retry 字段会覆盖它
    retry: int = Field(3000, ge=0)
    # 额外的请求头，Cache-Control 和 Accept 总是会被覆盖
    headers: dict[str, str] = {}
    # 查询参数，值需要事先编码好
    params: dict[str, str | int | float | bool] = {}
    retry_policy: RetryPolicy = RetryPolicy()
    # 视为连接成功的状态码
    ok_status_codes: list[int] = [200, 307]
    # 每次从响应体读取的最大字节数
    chunk_size: int = Field(1024, gt=0)
    # 建立连接的超时（秒），读取本身不设超时
    connect_timeout: float | None = Field(None, gt=0.0)
    # 服务端正常关闭连接时是否也重连
    reconnect_on_eof: bool = False


@dataclass(frozen=True)
class Received:
    message: Message


@dataclass(frozen=True)
class EndOfStream:
    pass


@dataclass(frozen=True)
class StreamFailure:
    error: SSEError


PullResult = Received | EndOfStream | StreamFailure
