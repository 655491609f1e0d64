import asyncio
from collections.abc import Iterable, Mapping
import logging
from typing import Any, Self

import aiohttp
from yarl import URL

from .asyncsse import Message, parse_sse_message
from .errors import (
    InvalidStreamURL,
    MidStreamReadError,
    NonSuccessStatus,
    RetriesExhausted,
    SSEError,
    StreamEnded,
    TransportConnectError,
)
from .models import (
    EndOfStream,
    PullResult,
    Received,
    RetryPolicy,
    StreamConfig,
    StreamFailure,
)
from .utils import build_url, locked, rewind_to_boundary, split_record

logger = logging.getLogger(__name__)

_FORCED_HEADERS = {
    "Cache-Control": "no-cache",
    "Accept": "text/event-stream",
}
_RESUME_HEADER = "Last-Event-ID"


def _merge_headers(headers: Mapping[str, str] | None) -> dict[str, str]:
    reserved = {k.lower() for k in _FORCED_HEADERS} | {_RESUME_HEADER.lower()}
    merged = {k: v for k, v in (headers or {}).items() if k.lower() not in reserved}
    merged.update(_FORCED_HEADERS)
    return merged


class StreamClient:
    """
    一个 SSE 订阅，底下可以换过任意多条 HTTP 连接

    读取失败时等待 retry 毫秒后带着 Last-Event-ID 重连，缓冲区回退到最后一个完整记录的边界后继续读
    """

    def __init__(
        self,
        url: str | URL,
        *,
        last_event_id: str | None = None,
        retry: int = 3000,
        headers: Mapping[str, str] | None = None,
        params: Mapping[str, Any] | None = None,
        retry_policy: RetryPolicy | None = None,
        session: aiohttp.ClientSession | None = None,
        logger: logging.Logger = logger,
        ok_status_codes: Iterable[int] = (200, 307),
        chunk_size: int = 1024,
        connect_timeout: float | None = None,
        reconnect_on_eof: bool = False,
    ):
        self._logger = logger
        self._base_url = url
        self._params = dict(params or {})
        # 配置错误直接抛出去，重试也没用
        self._url = build_url(self._base_url, self._params)
        self._base_headers = _merge_headers(headers)
        self._last_event_id = last_event_id or None
        self._retry = retry
        self._policy = retry_policy or RetryPolicy()

        self._session = session
        self._owns_session = session is None
        self._timeout = aiohttp.ClientTimeout(total=None, sock_connect=connect_timeout)
        self._ok_status_codes = frozenset(ok_status_codes)
        self._chunk_size = chunk_size
        self._reconnect_on_eof = reconnect_on_eof

        self._lock = asyncio.Lock()
        self._buffer = b""
        self._response: aiohttp.ClientResponse | None = None
        self._started = False
        self._healthy = True
        self._finished = False
        self._last_error: SSEError | None = None

    @classmethod
    async def open(cls, url: str | URL, **kwargs) -> Self:
        """构造并立即连接，连接失败不会抛异常，而是在之后的 pull 中体现"""
        client = cls(url, **kwargs)
        await client.connect()
        return client

    @classmethod
    def from_config(cls, config: StreamConfig, **kwargs) -> Self:
        return cls(
            config.url,
            last_event_id=config.last_event_id,
            retry=config.retry,
            headers=config.headers,
            params=config.params,
            retry_policy=config.retry_policy,
            ok_status_codes=config.ok_status_codes,
            chunk_size=config.chunk_size,
            connect_timeout=config.connect_timeout,
            reconnect_on_eof=config.reconnect_on_eof,
            **kwargs,
        )

    @property
    def url(self) -> URL:
        return self._url

    @property
    def last_event_id(self) -> str | None:
        return self._last_event_id

    @property
    def retry(self) -> int:
        return self._retry

    @property
    def healthy(self) -> bool:
        return self._healthy

    @property
    def last_error(self) -> SSEError | None:
        return self._last_error

    @property
    def headers(self) -> dict[str, str]:
        """下一次连接会发送的请求头"""
        headers = dict(self._base_headers)
        if self._last_event_id is not None:
            headers[_RESUME_HEADER] = self._last_event_id
        return headers

    def _fail(self, error: SSEError) -> bool:
        self._healthy = False
        self._last_error = error
        return False

    def _close_response(self):
        if self._response is not None:
            self._response.close()
            self._response = None

    async def connect(self) -> bool:
        self._started = True
        self._close_response()
        headers = self.headers
        self._url = build_url(self._base_url, self._params)
        self._logger.info("connecting to %s", self._url)
        self._logger.debug("headers: %s", headers)

        if self._session is None:
            self._session = aiohttp.ClientSession(timeout=self._timeout)
        try:
            resp = await self._session.get(
                self._url, headers=headers, timeout=self._timeout
            )
        except aiohttp.InvalidURL as e:
            raise InvalidStreamURL(f"malformed url {self._url}: {e}") from e
        except (aiohttp.ClientError, OSError) as e:
            self._logger.warning("failed to connect to %s: %r", self._url, e)
            return self._fail(TransportConnectError(str(e) or type(e).__name__))

        if resp.status not in self._ok_status_codes:
            self._logger.warning("Unexpected status code in SSE request: %s", resp.status)
            resp.close()
            return self._fail(NonSuccessStatus(resp.status))

        self._logger.info("connected, status %s", resp.status)
        self._response = resp
        self._healthy = True
        self._last_error = None
        return True

    async def _read(self) -> bytes:
        try:
            return await self._response.content.read(self._chunk_size)
        except (aiohttp.ClientError, OSError) as e:
            raise MidStreamReadError(str(e) or type(e).__name__) from e

    async def _reconnect(self) -> StreamFailure | None:
        """按重试策略重连，成功返回 None"""
        # 半截记录丢掉，服务端会根据 Last-Event-ID 重发
        self._buffer = rewind_to_boundary(self._buffer)
        attempt = 0
        while True:
            attempt += 1
            if self._policy.exhausted(attempt):
                error = RetriesExhausted(attempt - 1)
                error.__cause__ = self._last_error
                self._fail(error)
                return StreamFailure(error)
            delay = self._policy.delay(self._retry, attempt)
            self._logger.info("retry after %.3fs (attempt %d)", delay, attempt)
            await asyncio.sleep(delay)
            if await self.connect():
                return None
            if isinstance(self._last_error, NonSuccessStatus):
                return StreamFailure(self._last_error)

    def _end_of_input(self) -> PullResult:
        if self._buffer.strip():
            # 最后一段没有分隔符的内容也当作一条记录
            record, self._buffer = self._buffer, b""
            return Received(self._accept(record))
        self._logger.info("stream closed by server")
        self._close_response()
        self._finished = True
        self._healthy = False
        return EndOfStream()

    def _accept(self, record: bytes) -> Message:
        text = record.decode("utf-8", errors="replace")
        self._logger.debug("receive record: %r", text)
        message = parse_sse_message(text, self._logger)
        if message.has_retry:
            self._retry = message.retry
        if message.has_id:
            # 空 id 表示清除，之后重连不再带 Last-Event-ID
            self._last_event_id = message.id or None
        return message

    @locked
    async def pull(self) -> PullResult:
        if self._finished:
            return EndOfStream()
        if not self._started:
            await self.connect()
        if not self._healthy:
            return StreamFailure(self._last_error)

        while (parts := split_record(self._buffer)) is None:
            try:
                chunk = await self._read()
            except MidStreamReadError as e:
                self._logger.warning("IO error: %s", e)
            else:
                if chunk:
                    self._buffer += chunk
                    continue
                if not self._reconnect_on_eof:
                    return self._end_of_input()
                self._logger.info("stream closed by server, reconnecting")
            if (failure := await self._reconnect()) is not None:
                return failure

        record, self._buffer = parts
        return Received(self._accept(record))

    async def next_message(self) -> Message:
        match await self.pull():
            case Received(message):
                return message
            case StreamFailure(error):
                raise error
        raise StreamEnded("server closed the stream")

    def __aiter__(self):
        return self

    async def __anext__(self) -> Message:
        match await self.pull():
            case Received(message):
                return message
            case StreamFailure(error):
                self._logger.warning("stop iterating: %s", error)
        raise StopAsyncIteration

    async def close(self):
        self._close_response()
        self._finished = True
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def __aenter__(self) -> Self:
        if not self._started:
            await self.connect()
        return self

    async def __aexit__(self, *exc_info):
        await self.close()
