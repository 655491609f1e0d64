import asyncio

import pytest


class FakeContent:
    def __init__(self, chunks):
        self._chunks = list(chunks)

    async def read(self, n=-1):
        if not self._chunks:
            return b""
        chunk = self._chunks.pop(0)
        if isinstance(chunk, BaseException):
            raise chunk
        return chunk


class FakeResponse:
    def __init__(self, *chunks, status=200):
        self.status = status
        self.content = FakeContent(chunks)
        self.closed = False

    def close(self):
        self.closed = True


class FakeSession:
    """Stands in for aiohttp.ClientSession; each get() hands out the next scripted response."""

    def __init__(self, *responses):
        self._responses = list(responses)
        self.requests: list[tuple[str, dict[str, str]]] = []
        self.closed = False

    async def get(self, url, *, headers=None, **kwargs):
        self.requests.append((str(url), dict(headers or {})))
        response = self._responses.pop(0)
        if isinstance(response, BaseException):
            raise response
        return response

    async def close(self):
        self.closed = True


@pytest.fixture
def sleeps(monkeypatch):
    delays: list[float] = []
    real_sleep = asyncio.sleep

    async def fake_sleep(delay, *args, **kwargs):
        delays.append(delay)
        await real_sleep(0)

    monkeypatch.setattr(asyncio, "sleep", fake_sleep)
    return delays
