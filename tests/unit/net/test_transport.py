import asyncio

import httpx
import pytest

from netbridge.base.exceptions import InvalidUrlError, TransportConfigError
from netbridge.net.transport import HttpTransport, parse_target_url, resolve_proxy, validate_proxy_url


class TestResolveProxy:
    def test_explicit_proxy_wins_over_environment(self):
        env = {"HTTP_PROXY": "http://env-proxy:8080"}
        assert resolve_proxy("http://explicit:3128", env) == "http://explicit:3128"

    def test_explicit_empty_string_disables_proxy(self):
        env = {"HTTP_PROXY": "http://env-proxy:8080"}
        assert resolve_proxy("", env) is None

    def test_http_proxy_checked_before_https_proxy(self):
        env = {"HTTP_PROXY": "http://first:1", "HTTPS_PROXY": "http://second:2"}
        assert resolve_proxy(None, env) == "http://first:1"

    def test_empty_http_proxy_falls_through_to_https_proxy(self):
        env = {"HTTP_PROXY": "", "HTTPS_PROXY": "http://second:2"}
        assert resolve_proxy(None, env) == "http://second:2"

    def test_no_proxy_anywhere(self):
        assert resolve_proxy(None, {}) is None


class TestValidateProxyUrl:
    def test_accepts_http_proxy(self):
        url = validate_proxy_url("http://127.0.0.1:7890")
        assert url.host == "127.0.0.1"
        assert url.port == 7890

    @pytest.mark.parametrize("proxy", ["not a proxy", "ftp://proxy:21", "http://"])
    def test_rejects_malformed_proxy(self, proxy):
        with pytest.raises(TransportConfigError):
            validate_proxy_url(proxy)


@pytest.mark.asyncio
async def test_build_sets_connect_timeout():
    transport = HttpTransport(timeout=480, connect_timeout=300)
    client = transport.build()
    try:
        assert client.timeout.connect == 300
    finally:
        await client.aclose()


@pytest.mark.asyncio
async def test_send_cuts_off_a_trickling_response():
    # Every byte arrives well inside a per-read timeout; only the total deadline stops it.
    async def trickle(reader, writer):
        await reader.read(1024)
        try:
            writer.write(b"HTTP/1.1 200 OK\r\nContent-Length: 6\r\n\r\n")
            for byte in b"abcdef":
                await asyncio.sleep(0.5)
                if writer.is_closing():
                    break
                writer.write(bytes([byte]))
                await writer.drain()
        except ConnectionError:
            pass
        finally:
            writer.close()

    server = await asyncio.start_server(trickle, "127.0.0.1", 0)
    port = server.sockets[0].getsockname()[1]
    transport = HttpTransport(timeout=1.0, connect_timeout=1.0)
    try:
        loop = asyncio.get_running_loop()
        started = loop.time()
        async with transport.build() as client:
            with pytest.raises(httpx.TimeoutException):
                await transport.send(client, "GET", f"http://127.0.0.1:{port}/")
        assert loop.time() - started < 2.5
    finally:
        server.close()
        await server.wait_closed()


@pytest.mark.asyncio
async def test_send_returns_complete_response_within_deadline():
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(201, request=request, text="done")

    transport = HttpTransport(timeout=5, connect_timeout=5, transport=httpx.MockTransport(_handler))
    async with transport.build() as client:
        resp = await transport.send(client, "PUT", "https://example.com/item", json={"a": 1})
    assert resp.status_code == 201
    assert resp.text == "done"


def test_build_with_malformed_proxy_raises():
    transport = HttpTransport(timeout=10, connect_timeout=5)
    with pytest.raises(TransportConfigError):
        transport.build(proxy="::::")


@pytest.mark.asyncio
async def test_build_uses_injected_transport():
    def _handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, request=request, text="mocked")

    transport = HttpTransport(timeout=10, connect_timeout=5, transport=httpx.MockTransport(_handler))
    async with transport.build() as client:
        resp = await client.get("https://example.com/")
    assert resp.text == "mocked"


@pytest.mark.parametrize("url", ["http://[::1", "ftp://files.example.com/x", "/relative/path", "https://"])
def test_parse_target_url_rejects_unusable_urls(url):
    with pytest.raises(InvalidUrlError):
        parse_target_url(url)


def test_parse_target_url_accepts_http_and_https():
    assert parse_target_url("https://catbox.moe/user/api.php").host == "catbox.moe"
    assert parse_target_url("http://127.0.0.1:8080/up").port == 8080
