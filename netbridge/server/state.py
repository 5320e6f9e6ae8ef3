from __future__ import annotations

import asyncio
import logging
from typing import Dict, Optional

from netbridge.base.config import BridgeConfig, get_config
from netbridge.files.file_server import EphemeralFileServer
from netbridge.net.downloader import Downloader
from netbridge.net.relay import RequestRelay
from netbridge.net.transport import HttpTransport
from netbridge.net.uploader import ResilientUploader

logger = logging.getLogger(__name__)


class ApplicationState:
    """
    Process-wide state behind the command surface.

    The only thing that outlives a single command is the set of file
    servers; relay, uploader and downloader build a fresh client per call.
    """
    _instance = None

    @classmethod
    def instance(cls) -> ApplicationState:
        if cls._instance is None:
            cls._instance = cls()
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None

    def __init__(self, config: Optional[BridgeConfig] = None):
        self.config = config or get_config()
        self.file_servers: Dict[int, EphemeralFileServer] = {}
        self.file_servers_lock = asyncio.Lock()
        self.reclaim_task: Optional[asyncio.Task] = None

    def relay(self) -> RequestRelay:
        t = self.config.transport
        return RequestRelay(HttpTransport(t.relay_timeout, t.relay_connect_timeout))

    def uploader(self) -> ResilientUploader:
        t = self.config.transport
        return ResilientUploader(
            HttpTransport(t.upload_timeout, t.upload_connect_timeout),
            max_attempts=self.config.upload.max_attempts,
            retry_delay=self.config.upload.retry_delay,
        )

    def downloader(self) -> Downloader:
        t = self.config.transport
        return Downloader(
            download_transport=HttpTransport(t.download_timeout, t.download_connect_timeout),
            cache_transport=HttpTransport(t.cache_timeout, t.cache_connect_timeout),
            temp_dir=self.config.storage.temp_path,
            images_dir=self.config.storage.images_path,
        )

    async def start_file_server(self, path: str, port: int) -> EphemeralFileServer:
        fs = self.config.file_server
        server = EphemeralFileServer(
            path,
            port,
            host=fs.host,
            read_buffer_size=fs.read_buffer_size,
            read_timeout=fs.read_timeout,
            write_timeout=fs.write_timeout,
            max_connections=fs.max_connections,
            content_type=fs.content_type,
        )
        await server.start()
        async with self.file_servers_lock:
            self.file_servers[server.port] = server
        return server

    async def close_file_servers(self) -> None:
        async with self.file_servers_lock:
            servers = list(self.file_servers.values())
            self.file_servers.clear()
        for server in servers:
            await server.close()


def get_state() -> ApplicationState:
    return ApplicationState.instance()
