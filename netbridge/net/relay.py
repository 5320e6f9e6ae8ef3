"""
netbridge/net/relay.py
Request Relay: forward an arbitrary request described by the frontend.

The webview cannot make cross-origin calls, so it hands us
{method, url, headers?, body?, token?} and gets back {status, data}.

Rules:
    - Only GET/POST/PUT/DELETE. Anything else is rejected before I/O.
    - Header `x-use-multipart: true` (any case) is a control flag, never
      forwarded. It switches a JSON-object body to multipart form fields.
    - A bearer token overrides any caller-supplied Authorization header.
    - Exactly one attempt. No retry, no cache.
    - A non-JSON upstream body is wrapped, never an error.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

import httpx

from netbridge.base.exceptions import InvalidHeaderError, RelayError, UnsupportedMethodError
from netbridge.net.transport import HttpTransport

logger = logging.getLogger(__name__)

MULTIPART_FLAG_HEADER = "x-use-multipart"


class HttpMethod(str, Enum):
    GET = "GET"
    POST = "POST"
    PUT = "PUT"
    DELETE = "DELETE"

    @classmethod
    def parse(cls, value: str) -> "HttpMethod":
        try:
            return cls(value)
        except ValueError:
            raise UnsupportedMethodError(value) from None


def split_control_headers(headers: Optional[Mapping[str, str]]) -> Tuple[Dict[str, str], bool]:
    """
    Strip the multipart flag from a header set.

    Returns (forwardable headers, force_multipart).
    """
    forwarded: Dict[str, str] = {}
    force_multipart = False
    for key, value in (headers or {}).items():
        if key.lower() == MULTIPART_FLAG_HEADER:
            force_multipart = force_multipart or str(value).strip().lower() == "true"
            continue
        forwarded[key] = value
    return forwarded, force_multipart


@dataclass
class RequestDescription:
    """A validated, declarative outbound request."""
    method: HttpMethod
    url: str
    headers: Dict[str, str] = field(default_factory=dict)
    body: Any = None
    bearer_token: Optional[str] = None
    force_multipart: bool = False

    @classmethod
    def create(
        cls,
        method: str,
        url: str,
        headers: Optional[Mapping[str, str]] = None,
        body: Any = None,
        token: Optional[str] = None,
    ) -> "RequestDescription":
        """
        Build from the raw command payload.

        Raises:
            UnsupportedMethodError: for any verb outside GET/POST/PUT/DELETE.
        """
        verb = HttpMethod.parse(method)
        forwarded, force_multipart = split_control_headers(headers)
        return cls(
            method=verb,
            url=url,
            headers=forwarded,
            body=body,
            bearer_token=token or None,
            force_multipart=force_multipart,
        )


@dataclass
class RelayResult:
    status: int
    payload: Any

    def to_dict(self) -> Dict[str, Any]:
        return {"status": self.status, "data": self.payload}


def _reject_constant(token: str) -> Any:
    # NaN / Infinity: accepted by the json module, not valid JSON.
    raise ValueError(f"non-JSON constant {token}")


def normalize_payload(status: int, text: str) -> Any:
    """Parse `text` as JSON; wrap it as {raw_response, status} when it isn't."""
    try:
        return json.loads(text, parse_constant=_reject_constant)
    except ValueError:
        logger.info(f"[Relay] Non-JSON response ({status}): {text[:500]}")
        return {"raw_response": text, "status": status}


def multipart_fields(body: Mapping[str, Any]) -> List[Tuple[str, Tuple[None, str]]]:
    """
    One text part per JSON key.

    A (None, value) tuple makes httpx emit a plain form field (no filename)
    while still forcing multipart/form-data encoding.
    """
    fields = []
    for key, value in body.items():
        text = value if isinstance(value, str) else json.dumps(value, ensure_ascii=False, separators=(",", ":"))
        fields.append((key, (None, text)))
    return fields


class RequestRelay:
    """Executes RequestDescriptions through a freshly built client."""

    def __init__(self, transport: HttpTransport):
        self.transport = transport

    def _request_kwargs(self, req: RequestDescription) -> Dict[str, Any]:
        headers = dict(req.headers)

        if req.bearer_token:
            for key in [k for k in headers if k.lower() == "authorization"]:
                del headers[key]
            headers["Authorization"] = f"Bearer {req.bearer_token}"

        kwargs: Dict[str, Any] = {}
        if req.method is not HttpMethod.GET and req.body is not None:
            if req.force_multipart and isinstance(req.body, dict):
                # The boundary is generated by httpx; a caller Content-Type would break it.
                for key in [k for k in headers if k.lower() == "content-type"]:
                    del headers[key]
                kwargs["files"] = multipart_fields(req.body)
            else:
                kwargs["json"] = req.body

        for key, value in headers.items():
            if not (key.isascii() and str(value).isascii()):
                raise InvalidHeaderError(key)

        kwargs["headers"] = headers
        return kwargs

    async def relay(self, req: RequestDescription) -> RelayResult:
        """
        Send `req` once and normalize the response.

        Raises:
            InvalidHeaderError: a header name or value is not ASCII.
            RelayError: connect refused, DNS, timeout, TLS and other network failures.
        """
        kwargs = self._request_kwargs(req)
        logger.info(f"[Relay] {req.method.value} {req.url}")

        try:
            async with self.transport.build() as client:
                response = await self.transport.send(client, req.method.value, req.url, **kwargs)
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.warning(f"[Relay] {req.method.value} {req.url} failed: {e!r}")
            raise RelayError(f"Request to {req.url} failed: {e}") from e

        text = response.text
        logger.debug(f"[Relay] {req.method.value} {req.url} -> {response.status_code} ({len(text)} chars)")
        return RelayResult(status=response.status_code, payload=normalize_payload(response.status_code, text))
