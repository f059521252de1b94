"""
Tests for the aiohttp-backed fetcher against a local test server.
"""

import gzip

import pytest
from aiohttp import web
from aiohttp.test_utils import TestServer

from offlinecache.core.config.models import NetworkConfig
from offlinecache.core.exceptions import ErrorCode, NetworkError
from offlinecache.http import Request
from offlinecache.network import AiohttpFetcher


def build_app(seen):
    async def page(request):
        seen.append(dict(request.headers))
        return web.Response(text="hello", content_type="text/html")

    async def missing(request):
        return web.Response(status=404, text="gone")

    app = web.Application()
    app.router.add_get('/page', page)
    app.router.add_get('/missing', missing)
    return app


@pytest.mark.asyncio
async def test_fetch_returns_full_response():
    seen = []
    server = TestServer(build_app(seen))
    await server.start_server()
    fetcher = AiohttpFetcher(NetworkConfig(user_agent="offlinecache-tests"))
    try:
        response = await fetcher.fetch(Request(url=str(server.make_url('/page'))))
    finally:
        await fetcher.close()
        await server.close()

    assert response.status == 200
    assert response.body == b"hello"
    assert response.content_type.startswith("text/html")
    assert response.url.endswith("/page")
    assert seen[0]['User-Agent'] == "offlinecache-tests"


@pytest.mark.asyncio
async def test_non_ok_status_is_returned_not_raised():
    server = TestServer(build_app([]))
    await server.start_server()
    fetcher = AiohttpFetcher()
    try:
        response = await fetcher.fetch(Request(url=str(server.make_url('/missing'))))
    finally:
        await fetcher.close()
        await server.close()

    assert response.status == 404
    assert not response.ok


@pytest.mark.asyncio
async def test_range_header_not_forwarded():
    seen = []
    server = TestServer(build_app(seen))
    await server.start_server()
    fetcher = AiohttpFetcher()
    try:
        await fetcher.fetch(Request(
            url=str(server.make_url('/page')),
            headers={'Range': 'bytes=0-1', 'Accept': 'text/html'},
        ))
    finally:
        await fetcher.close()
        await server.close()

    assert 'Range' not in seen[0]
    assert seen[0]['Accept'] == 'text/html'


@pytest.mark.asyncio
async def test_connection_failure_raises_network_error():
    server = TestServer(build_app([]))
    await server.start_server()
    url = str(server.make_url('/page'))
    await server.close()

    fetcher = AiohttpFetcher()
    try:
        with pytest.raises(NetworkError) as exc_info:
            await fetcher.fetch(Request(url=url))
    finally:
        await fetcher.close()

    assert exc_info.value.error_code == ErrorCode.NETWORK_CONNECTION_FAILED
    assert exc_info.value.url == url


@pytest.mark.asyncio
async def test_close_is_idempotent():
    fetcher = AiohttpFetcher()
    await fetcher.close()
    await fetcher.close()


@pytest.mark.asyncio
async def test_decoded_body_gets_matching_headers():
    payload = b"body{color:red}" * 100

    async def styles(request):
        return web.Response(
            body=gzip.compress(payload),
            headers={'Content-Encoding': 'gzip', 'Content-Type': 'text/css'},
        )

    app = web.Application()
    app.router.add_get('/style.css', styles)
    server = TestServer(app)
    await server.start_server()
    fetcher = AiohttpFetcher()
    try:
        response = await fetcher.fetch(Request(url=str(server.make_url('/style.css'))))
    finally:
        await fetcher.close()
        await server.close()

    assert response.body == payload
    assert 'content-encoding' not in response.headers
    assert 'transfer-encoding' not in response.headers
    assert response.content_length == len(payload)
    assert response.content_type == 'text/css'
