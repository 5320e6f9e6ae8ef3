"""
netbridge/net/uploader.py
Resilient Uploader: push a local file to a third-party host as multipart.

Failure semantics:
    - Local preconditions (missing file, not a regular file, unreadable file,
      bad proxy or upload URL) raise immediately and are never retried.
    - Transport failures (the total-request deadline included) and non-2xx
      statuses are retried, up to a fixed number of attempts with a fixed
      delay between them.
    - A 2xx whose body cannot be interpreted per the chosen ResponseFormat
      is terminal: it is reported as a failed outcome, not retried.
    - Nothing remote-side is ever raised; it ends up in UploadOutcome.error.
"""

from __future__ import annotations

import asyncio
import json
import logging
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Optional

import httpx

from netbridge.base.exceptions import InvalidFileError, InvalidResponseFormatError, LocalIOError
from netbridge.net.transport import HttpTransport, parse_target_url

logger = logging.getLogger(__name__)

DEFAULT_MIME_TYPE = "application/octet-stream"

MIME_TYPES: Dict[str, str] = {
    "mp4": "video/mp4",
    "webm": "video/webm",
    "mov": "video/quicktime",
    "avi": "video/x-msvideo",
    "png": "image/png",
    "jpg": "image/jpeg",
    "jpeg": "image/jpeg",
    "gif": "image/gif",
    "webp": "image/webp",
}

# Companion form field some image hosts (catbox and clones) require
REQTYPE_FIELDS = {"reqtype": "fileupload"}


class ResponseFormat(str, Enum):
    """How a successful upload response carries the hosted URL."""
    URL_TEXT = "url"   # body is the URL itself
    JSON = "json"      # body is JSON with a top-level "url" or "data" string

    @classmethod
    def parse(cls, value: Optional[str]) -> "ResponseFormat":
        if value is None or value == "":
            return cls.URL_TEXT
        try:
            return cls(value.lower())
        except ValueError:
            raise InvalidResponseFormatError(
                f"Unknown response format {value!r} (expected 'url' or 'json')"
            ) from None


def guess_mime_type(path: Path) -> str:
    return MIME_TYPES.get(path.suffix.lower().lstrip("."), DEFAULT_MIME_TYPE)


@dataclass
class UploadRequest:
    file_path: str
    upload_url: str
    field_name: str
    response_format: ResponseFormat = ResponseFormat.URL_TEXT
    # Already resolved by the caller (see transport.resolve_proxy)
    proxy_url: Optional[str] = None


@dataclass
class UploadOutcome:
    success: bool
    url: Optional[str] = None
    error: Optional[str] = None

    @classmethod
    def uploaded(cls, url: str) -> "UploadOutcome":
        return cls(success=True, url=url)

    @classmethod
    def failed(cls, error: str) -> "UploadOutcome":
        return cls(success=False, error=error)

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "url": self.url, "error": self.error}


def _interpret_url_text(text: str) -> UploadOutcome:
    if text.startswith("https://") or text.startswith("http://"):
        return UploadOutcome.uploaded(text.strip())
    return UploadOutcome.failed(text)


def _interpret_json(text: str) -> UploadOutcome:
    try:
        payload = json.loads(text)
    except ValueError:
        return UploadOutcome.failed(f"Upload response is not valid JSON: {text}")

    if isinstance(payload, dict):
        for key in ("url", "data"):
            value = payload.get(key)
            if isinstance(value, str) and value:
                return UploadOutcome.uploaded(value)
    return UploadOutcome.failed(f"No URL found in JSON response: {json.dumps(payload, ensure_ascii=False)}")


def interpret_response(response_format: ResponseFormat, text: str) -> UploadOutcome:
    """Turn a 2xx body into a terminal outcome."""
    if response_format is ResponseFormat.JSON:
        return _interpret_json(text)
    return _interpret_url_text(text)


class ResilientUploader:
    """
    Uploads one file per call with a fixed retry budget.

    `sleep` is injectable so tests can count waits without actually waiting.
    """

    def __init__(
        self,
        transport: HttpTransport,
        max_attempts: int = 3,
        retry_delay: float = 3.0,
        sleep: Callable[[float], Awaitable[Any]] = asyncio.sleep,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts must be at least 1")
        self.transport = transport
        self.max_attempts = max_attempts
        self.retry_delay = retry_delay
        self._sleep = sleep

    @staticmethod
    def _check_file(file_path: str) -> Path:
        # Re-checked on every call; the file may have moved since the last one.
        path = Path(file_path)
        if not path.exists():
            raise InvalidFileError(f"File does not exist: {file_path}", path=file_path)
        if not path.is_file():
            raise InvalidFileError(f"Path is not a regular file: {file_path}", path=file_path)
        return path

    async def upload(self, req: UploadRequest) -> UploadOutcome:
        """
        Upload `req.file_path` to `req.upload_url`.

        Raises:
            InvalidFileError: the file is missing or not a regular file.
            InvalidUrlError: `upload_url` cannot be parsed as an http(s) URL.
            LocalIOError: the file exists but cannot be read.
            TransportConfigError: the proxy URL is malformed.
        """
        parse_target_url(req.upload_url)
        path = self._check_file(req.file_path)
        mime_type = guess_mime_type(path)

        try:
            content = await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise LocalIOError(f"Unable to read file {req.file_path}: {e}") from e

        logger.info(
            f"[Upload] {path.name} ({len(content)} bytes, {mime_type}) -> {req.upload_url} "
            f"format={req.response_format.value} proxy={req.proxy_url or 'none'}"
        )

        last_error = ""
        async with self.transport.build(proxy=req.proxy_url) as client:
            for attempt in range(1, self.max_attempts + 1):
                if attempt > 1:
                    await self._sleep(self.retry_delay)

                # A fresh multipart body per attempt; the previous one was consumed.
                files = {req.field_name: (path.name, content, mime_type)}
                try:
                    response = await self.transport.send(
                        client, "POST", req.upload_url, data=REQTYPE_FIELDS, files=files
                    )
                except httpx.RequestError as e:
                    last_error = f"Upload request failed (attempt {attempt}/{self.max_attempts}): {e}"
                    logger.warning(f"[Upload] {last_error}")
                    continue

                if not response.is_success:
                    last_error = f"Upload failed ({response.status_code}): {response.text}"
                    logger.warning(f"[Upload] Attempt {attempt}/{self.max_attempts}: {last_error}")
                    continue

                outcome = interpret_response(req.response_format, response.text)
                if outcome.success:
                    logger.info(f"[Upload] Uploaded {path.name} on attempt {attempt}: {outcome.url}")
                else:
                    logger.warning(f"[Upload] Unusable response from {req.upload_url}: {outcome.error}")
                return outcome

        logger.error(f"[Upload] Giving up on {path.name} after {self.max_attempts} attempts: {last_error}")
        return UploadOutcome.failed(last_error)
