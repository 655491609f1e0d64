from aiohttp import web
from aiohttp.test_utils import TestServer
import pytest

from sse_stream import Message, NonSuccessStatus, StreamClient


@pytest.fixture
async def stream_server():
    seen: list[dict[str, str]] = []

    async def events(request: web.Request):
        seen.append(dict(request.headers))
        if request.query.get("missing"):
            return web.Response(status=404)
        if len(seen) > 2:
            return web.Response(status=204)

        resp = web.StreamResponse(headers={"Content-Type": "text/event-stream"})
        await resp.prepare(request)
        if len(seen) == 1:
            await resp.write(b"id: 1\ndata: one\n\ndata: par")
            # 模拟中途断连
            request.transport.close()
        else:
            await resp.write(b"event: put\ndata: two\n\n")
            await resp.write_eof()
        return resp

    app = web.Application()
    app.router.add_get("/events", events)
    server = TestServer(app)
    await server.start_server()
    yield server, seen
    await server.close()


async def test_resume_after_disconnect(stream_server):
    server, seen = stream_server
    async with StreamClient(
        server.make_url("/events"), retry=0, reconnect_on_eof=True
    ) as client:
        messages = [message async for message in client]

    assert messages == [Message(data="one", id="1"), Message(event="put", data="two")]
    assert isinstance(client.last_error, NonSuccessStatus)
    assert seen[0]["Accept"] == "text/event-stream"
    assert seen[0]["Cache-Control"] == "no-cache"
    assert "Last-Event-ID" not in seen[0]
    assert seen[1]["Last-Event-ID"] == "1"


async def test_missing_resource(stream_server):
    server, _ = stream_server
    client = await StreamClient.open(server.make_url("/events"), params={"missing": 1})
    try:
        assert not client.healthy
        assert client.last_error.status == 404
        assert [message async for message in client] == []
    finally:
        await client.close()
        await client.close()
