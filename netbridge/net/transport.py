"""
netbridge/net/transport.py
HTTP client builder shared by the relay, the uploader and the downloader.

Every outbound call builds its own short-lived httpx.AsyncClient from an
HttpTransport, so concurrent commands share nothing but this immutable
configuration. Clients never read proxy settings from the environment on
their own (trust_env=False); the upload boundary resolves HTTP_PROXY /
HTTPS_PROXY explicitly with resolve_proxy() and passes the result in.
"""

from __future__ import annotations

import asyncio
import logging
import os
from dataclasses import dataclass
from typing import Any, Mapping, Optional

import httpx

from netbridge.base.exceptions import InvalidUrlError, TransportConfigError

logger = logging.getLogger(__name__)

PROXY_SCHEMES = ("http", "https", "socks5", "socks5h")

# Checked in this order; the first non-empty value wins.
PROXY_ENV_VARS = ("HTTP_PROXY", "HTTPS_PROXY")


def validate_proxy_url(proxy: str) -> httpx.URL:
    """
    Parse a proxy URL or raise TransportConfigError.

    httpx only complains about a bad proxy once a request is routed through
    it; we want the failure at build time, before anything is sent.
    """
    try:
        url = httpx.URL(proxy)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise TransportConfigError(f"Proxy configuration failed: {proxy!r} is not a valid URL ({e})") from e

    if url.scheme not in PROXY_SCHEMES:
        raise TransportConfigError(
            f"Proxy configuration failed: unsupported proxy scheme {url.scheme!r} in {proxy!r}"
        )
    if not url.host:
        raise TransportConfigError(f"Proxy configuration failed: missing host in {proxy!r}")
    return url


def resolve_proxy(explicit: Optional[str], environ: Optional[Mapping[str, str]] = None) -> Optional[str]:
    """
    Pick the proxy for an upload.

    An explicit value always wins, and an explicit empty string means "no
    proxy" without looking at the environment. Otherwise HTTP_PROXY then
    HTTPS_PROXY are consulted.
    """
    if explicit is not None:
        explicit = explicit.strip()
        return explicit or None

    env = os.environ if environ is None else environ
    for name in PROXY_ENV_VARS:
        value = (env.get(name) or "").strip()
        if value:
            logger.info(f"[Transport] Using {name}: {value}")
            return value
    return None


def parse_target_url(url: str) -> httpx.URL:
    """Parse an absolute http(s) URL or raise InvalidUrlError before anything is sent."""
    try:
        parsed = httpx.URL(url)
    except (httpx.InvalidURL, TypeError, ValueError) as e:
        raise InvalidUrlError(f"Invalid URL {url!r}: {e}") from e

    if parsed.scheme not in ("http", "https") or not parsed.host:
        raise InvalidUrlError(f"Invalid URL {url!r}: expected an absolute http(s) URL")
    return parsed


@dataclass(frozen=True)
class HttpTransport:
    """
    Client factory with a total-request timeout and a connect timeout.

    `transport` lets tests (or an embedding app) swap the network layer,
    e.g. httpx.MockTransport; it is passed straight to httpx.
    """
    timeout: float
    connect_timeout: float
    transport: Optional[httpx.AsyncBaseTransport] = None

    def build(self, proxy: Optional[str] = None) -> httpx.AsyncClient:
        """
        Build a fresh AsyncClient.

        Raises:
            TransportConfigError: if `proxy` is malformed.
        """
        if proxy:
            validate_proxy_url(proxy)
            logger.info(f"[Transport] Routing through proxy: {proxy}")

        try:
            return httpx.AsyncClient(
                timeout=httpx.Timeout(self.timeout, connect=self.connect_timeout),
                proxy=proxy or None,
                transport=self.transport,
                trust_env=False,
            )
        except (ValueError, TypeError, ImportError, httpx.InvalidURL) as e:
            raise TransportConfigError(f"Failed to create HTTP client: {e}") from e

    async def send(self, client: httpx.AsyncClient, method: str, url: str, **kwargs: Any) -> httpx.Response:
        """
        Issue one request and read the whole body within `timeout` seconds.

        httpx applies its timeouts per read/write, so a server trickling
        bytes would never trip them; the deadline here covers the request
        end to end. Expiry is raised as httpx.ReadTimeout, so callers treat
        it like any other transport failure.
        """
        try:
            return await asyncio.wait_for(client.request(method, url, **kwargs), self.timeout)
        except asyncio.TimeoutError:
            raise httpx.ReadTimeout(f"No complete response from {url} within {self.timeout}s") from None
