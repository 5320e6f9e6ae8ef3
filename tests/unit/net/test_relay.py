import asyncio
import json

import httpx
import pytest

from netbridge.base.exceptions import InvalidHeaderError, RelayError, UnsupportedMethodError
from netbridge.net.relay import HttpMethod, RequestDescription, RequestRelay, normalize_payload, split_control_headers
from netbridge.net.transport import HttpTransport


class RecordingHandler:
    def __init__(self, status: int = 200, text: str = '{"ok": true}'):
        self.status = status
        self.text = text
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        request.read()
        self.requests.append(request)
        return httpx.Response(self.status, request=request, text=self.text)


def make_relay(handler) -> RequestRelay:
    return RequestRelay(HttpTransport(timeout=5, connect_timeout=5, transport=httpx.MockTransport(handler)))


@pytest.mark.parametrize("method", ["PATCH", "HEAD", "OPTIONS", "get", ""])
def test_unsupported_method_rejected_before_io(method):
    handler = RecordingHandler()
    with pytest.raises(UnsupportedMethodError):
        RequestDescription.create(method=method, url="https://api.example.com/x")
    assert handler.requests == []


def test_split_control_headers_is_case_insensitive():
    headers, force = split_control_headers({"X-Use-Multipart": "true", "Accept": "application/json"})
    assert force is True
    assert headers == {"Accept": "application/json"}


def test_split_control_headers_strips_flag_even_when_false():
    headers, force = split_control_headers({"x-use-multipart": "false"})
    assert force is False
    assert headers == {}


@pytest.mark.asyncio
async def test_non_json_body_is_wrapped():
    handler = RecordingHandler(status=200, text="<html>hello</html>")
    relay = make_relay(handler)

    result = await relay.relay(RequestDescription.create("GET", "https://api.example.com/page"))

    assert result.status == 200
    assert result.payload == {"raw_response": "<html>hello</html>", "status": 200}
    assert result.to_dict() == {"status": 200, "data": result.payload}


@pytest.mark.asyncio
async def test_json_body_is_parsed_and_error_status_passed_through():
    handler = RecordingHandler(status=422, text='{"detail": "bad prompt"}')
    relay = make_relay(handler)

    result = await relay.relay(RequestDescription.create("POST", "https://api.example.com/gen", body={"p": "x"}))

    assert result.status == 422
    assert result.payload == {"detail": "bad prompt"}


@pytest.mark.asyncio
async def test_post_sends_json_body():
    handler = RecordingHandler()
    relay = make_relay(handler)

    await relay.relay(RequestDescription.create("POST", "https://api.example.com/gen", body={"prompt": "cat", "n": 2}))

    sent = handler.requests[0]
    assert sent.method == "POST"
    assert sent.headers["content-type"] == "application/json"
    assert json.loads(sent.content) == {"prompt": "cat", "n": 2}


@pytest.mark.asyncio
async def test_get_never_carries_a_body():
    handler = RecordingHandler()
    relay = make_relay(handler)

    await relay.relay(RequestDescription.create("GET", "https://api.example.com/q", body={"ignored": True}))

    assert handler.requests[0].content == b""


@pytest.mark.asyncio
async def test_multipart_flag_encodes_fields_and_is_not_forwarded():
    handler = RecordingHandler()
    relay = make_relay(handler)

    req = RequestDescription.create(
        "POST",
        "https://api.example.com/form",
        headers={"X-Use-Multipart": "true", "X-Client": "desk"},
        body={"a": "1", "b": 2},
    )
    await relay.relay(req)

    sent = handler.requests[0]
    assert sent.headers["content-type"].startswith("multipart/form-data; boundary=")
    assert "x-use-multipart" not in sent.headers
    assert sent.headers["x-client"] == "desk"
    body = sent.content.decode()
    assert 'Content-Disposition: form-data; name="a"\r\n\r\n1\r\n' in body
    assert 'Content-Disposition: form-data; name="b"\r\n\r\n2\r\n' in body
    assert "filename" not in body


@pytest.mark.asyncio
async def test_multipart_with_non_object_body_falls_back_to_json():
    handler = RecordingHandler()
    relay = make_relay(handler)

    req = RequestDescription.create(
        "PUT", "https://api.example.com/list", headers={"x-use-multipart": "true"}, body=[1, 2, 3]
    )
    await relay.relay(req)

    sent = handler.requests[0]
    assert sent.headers["content-type"] == "application/json"
    assert json.loads(sent.content) == [1, 2, 3]


@pytest.mark.asyncio
async def test_bearer_token_overrides_authorization_header():
    handler = RecordingHandler()
    relay = make_relay(handler)

    req = RequestDescription.create(
        "DELETE", "https://api.example.com/job/1", headers={"authorization": "Basic abc"}, token="tok-123"
    )
    await relay.relay(req)

    sent = handler.requests[0]
    assert sent.headers.get_list("authorization") == ["Bearer tok-123"]


@pytest.mark.asyncio
async def test_network_failure_surfaces_as_relay_error():
    def _refuse(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("connection refused", request=request)

    relay = make_relay(_refuse)

    with pytest.raises(RelayError, match="connection refused"):
        await relay.relay(RequestDescription.create("GET", "https://down.example.com/"))


@pytest.mark.asyncio
async def test_relay_sends_exactly_once_on_server_error():
    handler = RecordingHandler(status=503, text="unavailable")
    relay = make_relay(handler)

    result = await relay.relay(RequestDescription.create("GET", "https://api.example.com/"))

    assert len(handler.requests) == 1
    assert result.payload == {"raw_response": "unavailable", "status": 503}


def test_normalize_empty_body():
    assert normalize_payload(204, "") == {"raw_response": "", "status": 204}


def test_method_enum_values():
    assert [m.value for m in HttpMethod] == ["GET", "POST", "PUT", "DELETE"]


@pytest.mark.asyncio
@pytest.mark.parametrize("text", ["NaN", "Infinity", "-Infinity", '{"score": NaN}'])
async def test_non_standard_json_constants_are_wrapped(text):
    handler = RecordingHandler(status=200, text=text)
    relay = make_relay(handler)

    result = await relay.relay(RequestDescription.create("GET", "https://api.example.com/score"))

    assert result.payload == {"raw_response": text, "status": 200}


@pytest.mark.asyncio
async def test_multipart_values_are_compact_json():
    handler = RecordingHandler()
    relay = make_relay(handler)

    req = RequestDescription.create(
        "POST",
        "https://api.example.com/form",
        headers={"x-use-multipart": "true"},
        body={"cfg": {"a": 1, "b": [1, 2]}, "flag": True},
    )
    await relay.relay(req)

    body = handler.requests[0].content.decode()
    assert 'name="cfg"\r\n\r\n{"a":1,"b":[1,2]}\r\n' in body
    assert 'name="flag"\r\n\r\ntrue\r\n' in body


@pytest.mark.asyncio
async def test_non_ascii_header_rejected_before_io():
    handler = RecordingHandler()
    relay = make_relay(handler)

    with pytest.raises(InvalidHeaderError, match="X-Name"):
        await relay.relay(RequestDescription.create("GET", "https://api.example.com/", headers={"X-Name": "café"}))
    assert handler.requests == []


@pytest.mark.asyncio
async def test_stalled_upstream_hits_total_timeout():
    async def _stall(request: httpx.Request) -> httpx.Response:
        await asyncio.sleep(5)
        return httpx.Response(200, request=request, text="too late")

    relay = RequestRelay(HttpTransport(timeout=0.2, connect_timeout=0.2, transport=httpx.MockTransport(_stall)))

    with pytest.raises(RelayError, match="within 0.2s"):
        await relay.relay(RequestDescription.create("GET", "https://slow.example.com/"))
