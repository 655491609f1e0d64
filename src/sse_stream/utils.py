from collections.abc import Awaitable, Callable, Mapping
import functools
from typing import Any, Concatenate, ParamSpec, Protocol, TypeVar

from yarl import URL

from .errors import InvalidStreamURL

DELIMITER = b"\n\n"

###### From Meloland/melobot by @aicorein, modified ######
#: 泛型 T，无约束
T = TypeVar("T")
#: :obj:`~typing.ParamSpec` 泛型 P，无约束
P = ParamSpec("P")


class HasLock(Protocol):
    @property
    def _lock(self) -> Any: ...


S = TypeVar("S", bound=HasLock)


def locked(
    func: Callable[Concatenate[S, P], Awaitable[T]],
) -> Callable[Concatenate[S, P], Awaitable[T]]:
    """锁装饰器，锁的是实例自己的 ``_lock``，不同实例之间互不影响"""

    @functools.wraps(func)
    async def wrapped_func(self: S, *args: P.args, **kwargs: P.kwargs) -> T:
        async with self._lock:
            return await func(self, *args, **kwargs)

    return wrapped_func


##### melobot end ######


def split_record(buffer: bytes) -> tuple[bytes, bytes] | None:
    """在第一个分隔符处切开，返回 (记录, 剩余部分)；还没有完整记录时返回 None"""
    head, sep, tail = buffer.partition(DELIMITER)
    if not sep:
        return None
    return head, tail


def rewind_to_boundary(buffer: bytes) -> bytes:
    """回退到最后一个分隔符（含），之后的半截记录丢弃"""
    head, sep, _ = buffer.rpartition(DELIMITER)
    return head + sep


def build_url(base: str | URL, params: Mapping[str, Any] | None = None) -> URL:
    """拼接查询参数，不做任何转义"""
    text = str(base)
    try:
        url = URL(text, encoded=True)
    except ValueError as e:
        raise InvalidStreamURL(f"malformed url {text!r}: {e}") from e
    if not url.is_absolute() or url.scheme not in ("http", "https"):
        raise InvalidStreamURL(f"not an absolute http(s) url: {text!r}")
    if params:
        # handle boolean
        query = "&".join(
            f"{k}={str(v).lower() if isinstance(v, bool) else v}"
            for k, v in params.items()
        )
        if text.endswith(("?", "&")):
            text += query
        else:
            text += ("&" if url.query_string else "?") + query
        url = URL(text, encoded=True)
    return url
