"""
netbridge/files/file_server.py
Ephemeral File Server: expose one local file as http://127.0.0.1:<port>.

The video player in the webview needs a URL, not a path. Every connection
gets the full file (or a bare 404) no matter what it asked for:

    Unbound --start()--> Listening --accept--> Responding --> (closed)

    - One asyncio task per connection (asyncio.start_server); a semaphore
      caps how many of them read the file from disk at once.
    - Reading the request and writing the response each have a deadline;
      a client that stalls is dropped and never holds a slot.
    - The file is re-read on every request; no caching.
    - No range requests, no keep-alive, no auth. Loopback only.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path
from typing import Optional

from netbridge.base.exceptions import BindError

logger = logging.getLogger(__name__)

NOT_FOUND_RESPONSE = b"HTTP/1.1 404 Not Found\r\n\r\n"


def build_ok_header(content_length: int, content_type: str) -> bytes:
    return (
        "HTTP/1.1 200 OK\r\n"
        f"Content-Type: {content_type}\r\n"
        f"Content-Length: {content_length}\r\n"
        "Access-Control-Allow-Origin: *\r\n"
        "\r\n"
    ).encode("ascii")


class EphemeralFileServer:
    """
    Serves `file_path` to every connection until the process exits.

    close() exists for the hosting app's shutdown hook and tests; it is not
    part of the command surface.
    """

    def __init__(
        self,
        file_path: str,
        port: int,
        host: str = "127.0.0.1",
        read_buffer_size: int = 1024,
        read_timeout: float = 10.0,
        write_timeout: float = 120.0,
        max_connections: int = 64,
        content_type: str = "video/mp4",
    ):
        self.file_path = str(file_path)
        self.port = port
        self.host = host
        self.read_buffer_size = read_buffer_size
        self.read_timeout = read_timeout
        self.write_timeout = write_timeout
        self.content_type = content_type
        self._slots = asyncio.Semaphore(max_connections)
        self._server: Optional[asyncio.AbstractServer] = None

    @property
    def is_listening(self) -> bool:
        return self._server is not None and self._server.is_serving()

    @property
    def url(self) -> str:
        return f"http://{self.host}:{self.port}"

    async def start(self) -> str:
        """
        Bind the listener and start accepting.

        Returns the served URL. Port 0 binds an ephemeral port; the URL
        then carries the port actually chosen.

        Raises:
            BindError: the port is taken or cannot be bound.
        """
        if self._server is not None:
            return self.url

        try:
            self._server = await asyncio.start_server(self._handle, host=self.host, port=self.port)
        except OSError as e:
            logger.error(f"[FileServer] Cannot bind {self.host}:{self.port}: {e}")
            raise BindError(f"Unable to start file server on {self.host}:{self.port}: {e}", port=self.port) from e

        self.port = self._server.sockets[0].getsockname()[1]
        logger.info(f"[FileServer] Serving {self.file_path} at {self.url}")
        return self.url

    async def close(self) -> None:
        if self._server is None:
            return
        self._server.close()
        await self._server.wait_closed()
        self._server = None
        logger.info(f"[FileServer] Stopped {self.url}")

    def _read_file(self) -> Optional[bytes]:
        try:
            return Path(self.file_path).read_bytes()
        except OSError as e:
            logger.warning(f"[FileServer] {self.file_path} unreadable: {e}")
            return None

    async def _handle(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter) -> None:
        peer = writer.get_extra_info("peername")
        try:
            logger.info(f"[FileServer] Connection from {peer}")
            # Waiting on the client never holds a slot; only disk reads do.
            try:
                request = await asyncio.wait_for(reader.read(self.read_buffer_size), self.read_timeout)
            except asyncio.TimeoutError:
                logger.info(f"[FileServer] {peer} sent nothing within {self.read_timeout}s, closing")
                return
            if not request:
                return

            request_line = request.decode("utf-8", errors="replace").splitlines()[0] if request.strip() else ""
            logger.info(f"[FileServer] Request: {request_line}")

            async with self._slots:
                content = await asyncio.to_thread(self._read_file)
            if content is None:
                writer.write(NOT_FOUND_RESPONSE)
            else:
                writer.write(build_ok_header(len(content), self.content_type))
                writer.write(content)
            await asyncio.wait_for(writer.drain(), self.write_timeout)
        except asyncio.TimeoutError:
            logger.info(f"[FileServer] {peer} stopped reading within {self.write_timeout}s, dropping")
            writer.transport.abort()
        except (ConnectionError, OSError) as e:
            logger.debug(f"[FileServer] Connection from {peer} dropped: {e}")
        finally:
            writer.close()
            try:
                await writer.wait_closed()
            except (ConnectionError, OSError):
                pass


async def serve_file(file_path: str, port: int, **kwargs) -> EphemeralFileServer:
    """Start an EphemeralFileServer and return it once it is listening."""
    server = EphemeralFileServer(file_path, port, **kwargs)
    await server.start()
    return server
