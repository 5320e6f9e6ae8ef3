"""
netbridge/net/downloader.py
Plain downloads into the scratch directory.

download()     generated videos -> <scratch>/temp/<file_name>, raises on any failure
cache_image()  remote images    -> <scratch>/images/<file_name>, a bad status is a soft failure
"""

from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional

import httpx

from netbridge.base.exceptions import LocalIOError, ProtocolError, TransportError, ValidationError
from netbridge.net.transport import HttpTransport

logger = logging.getLogger(__name__)


@dataclass
class CacheOutcome:
    success: bool
    local_path: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        return {"success": self.success, "local_path": self.local_path, "error": self.error}


def _target_path(directory: Path, file_name: str) -> Path:
    # Only bare names: a caller must not be able to write outside the scratch dir.
    if not file_name or Path(file_name).name != file_name or file_name in (".", ".."):
        raise ValidationError(f"Invalid file name: {file_name!r}")
    return directory / file_name


def _write_file(path: Path, content: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(content)


class Downloader:
    def __init__(self, download_transport: HttpTransport, cache_transport: HttpTransport, temp_dir: Path, images_dir: Path):
        self.download_transport = download_transport
        self.cache_transport = cache_transport
        self.temp_dir = temp_dir
        self.images_dir = images_dir

    async def _fetch(self, transport: HttpTransport, url: str, tag: str) -> httpx.Response:
        try:
            async with transport.build() as client:
                return await transport.send(client, "GET", url)
        except (httpx.RequestError, httpx.InvalidURL) as e:
            logger.warning(f"[{tag}] GET {url} failed: {e!r}")
            raise TransportError(f"Failed to download {url}: {e}") from e

    async def _store(self, path: Path, content: bytes, tag: str) -> None:
        try:
            await asyncio.to_thread(_write_file, path, content)
        except OSError as e:
            logger.error(f"[{tag}] Failed to write {path}: {e}")
            raise LocalIOError(f"Failed to write file {path}: {e}") from e

    async def download(self, url: str, file_name: str) -> Path:
        """
        Download `url` into the temp scratch dir and return the local path.

        Raises:
            ValidationError: `file_name` is not a bare file name.
            TransportError: no response received.
            ProtocolError: non-2xx status.
            LocalIOError: the file could not be written.
        """
        path = _target_path(self.temp_dir, file_name)
        logger.info(f"[Download] {url} -> {path}")

        response = await self._fetch(self.download_transport, url, "Download")
        if not response.is_success:
            raise ProtocolError(f"Download failed with status: {response.status_code}", status_code=response.status_code)

        await self._store(path, response.content, "Download")
        logger.info(f"[Download] Saved {path} ({len(response.content)} bytes)")
        return path

    async def cache_image(self, url: str, file_name: str) -> CacheOutcome:
        """Like download() but into the images dir, reporting a bad status instead of raising."""
        path = _target_path(self.images_dir, file_name)
        logger.info(f"[CacheImage] {url} -> {path}")

        response = await self._fetch(self.cache_transport, url, "CacheImage")
        if not response.is_success:
            logger.warning(f"[CacheImage] {url} answered {response.status_code}")
            return CacheOutcome(success=False, error=f"Download failed with status: {response.status_code}")

        await self._store(path, response.content, "CacheImage")
        logger.info(f"[CacheImage] Cached {path} ({len(response.content)} bytes)")
        return CacheOutcome(success=True, local_path=str(path))
