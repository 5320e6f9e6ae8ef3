# ============================================================================
# netbridge/base/config.py
# Application Configuration Management
# ============================================================================
#
# PURPOSE:
# All tunables for the networking backend live here: client timeouts, the
# upload retry budget, the loopback file server limits, where scratch files go
# and how logging is set up.
#
# KEY CONCEPTS:
# 1. Frozen dataclasses per concern, combined in one BridgeConfig
# 2. Environment variables override defaults (NETBRIDGE_*)
# 3. One lazily created global config; tests swap it with set_config()
#
# NOTE:
# HTTP_PROXY / HTTPS_PROXY are deliberately NOT read here. They are resolved
# at the upload command boundary (netbridge.net.transport.resolve_proxy).
#
# ============================================================================

from __future__ import annotations

import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import List, Optional

logger = logging.getLogger(__name__)


def _env_bool(name: str, default: str) -> bool:
    return os.getenv(name, default).strip().lower() in ("1", "true", "yes")


# ============================================================================
# HTTP Client Timeouts
# ============================================================================
# Each call site builds its own client. Generation APIs can take minutes to
# answer, so the relay/upload/download budgets are generous.

@dataclass(frozen=True)
class TransportConfig:
    # Total request timeout / connection-establishment timeout (seconds)
    relay_timeout: float = 480.0
    relay_connect_timeout: float = 300.0

    upload_timeout: float = 480.0
    upload_connect_timeout: float = 300.0

    download_timeout: float = 480.0
    download_connect_timeout: float = 300.0

    # Images are small; two minutes is plenty
    cache_timeout: float = 120.0
    cache_connect_timeout: float = 60.0


# ============================================================================
# Upload Retry Budget
# ============================================================================

@dataclass(frozen=True)
class UploadConfig:
    # Fixed number of send attempts (no exponential backoff)
    max_attempts: int = 3

    # Seconds to sleep between two attempts
    retry_delay: float = 3.0


# ============================================================================
# Loopback File Server
# ============================================================================

@dataclass(frozen=True)
class FileServerConfig:
    # Loopback only: the served URL must be unreachable from other hosts
    host: str = "127.0.0.1"

    # How much of the client request we read before answering
    read_buffer_size: int = 1024

    # Seconds a client gets to send its request, then to take the response
    read_timeout: float = 10.0
    write_timeout: float = 120.0

    # Cap on connections reading the file at once; the rest wait for a slot
    max_connections: int = 64

    # The served file is always a rendered video
    content_type: str = "video/mp4"


# ============================================================================
# Scratch Storage
# ============================================================================
# Disposable area for downloads and cached images. Wiped on startup; nothing
# in here is a stable on-disk format.

@dataclass(frozen=True)
class StorageConfig:
    scratch_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()) / "matrix-gen")
    temp_subdir: str = "temp"
    images_subdir: str = "images"

    @property
    def temp_path(self) -> Path:
        return self.scratch_dir / self.temp_subdir

    @property
    def images_path(self) -> Path:
        return self.scratch_dir / self.images_subdir


# ============================================================================
# Logging
# ============================================================================

@dataclass(frozen=True)
class LogConfig:
    level: str = "INFO"
    format: str = "%(asctime)s [%(levelname)s] %(name)s: %(message)s"

    # File logging is off unless a path is given (NETBRIDGE_LOG_FILE)
    file_path: Optional[Path] = None
    max_file_size_mb: int = 10
    backup_count: int = 5

    @property
    def file_enabled(self) -> bool:
        return self.file_path is not None


# ============================================================================
# Master Configuration Container
# ============================================================================

@dataclass
class BridgeConfig:
    transport: TransportConfig = field(default_factory=TransportConfig)
    upload: UploadConfig = field(default_factory=UploadConfig)
    file_server: FileServerConfig = field(default_factory=FileServerConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)
    log: LogConfig = field(default_factory=LogConfig)

    debug: bool = False

    # The command surface is for the local desktop shell only
    api_host: str = "127.0.0.1"
    api_port: int = 8765

    # Origins the webview may call us from
    allowed_origins: tuple = ("tauri://localhost", "http://tauri.localhost", "http://127.0.0.1", "http://localhost")

    # Wipe the scratch directory when the API starts
    reclaim_on_startup: bool = True

    @classmethod
    def from_env(cls) -> "BridgeConfig":
        transport = TransportConfig(
            relay_timeout=float(os.getenv("NETBRIDGE_RELAY_TIMEOUT", "480")),
            relay_connect_timeout=float(os.getenv("NETBRIDGE_RELAY_CONNECT_TIMEOUT", "300")),
            upload_timeout=float(os.getenv("NETBRIDGE_UPLOAD_TIMEOUT", "480")),
            upload_connect_timeout=float(os.getenv("NETBRIDGE_UPLOAD_CONNECT_TIMEOUT", "300")),
            download_timeout=float(os.getenv("NETBRIDGE_DOWNLOAD_TIMEOUT", "480")),
            download_connect_timeout=float(os.getenv("NETBRIDGE_DOWNLOAD_CONNECT_TIMEOUT", "300")),
            cache_timeout=float(os.getenv("NETBRIDGE_CACHE_TIMEOUT", "120")),
            cache_connect_timeout=float(os.getenv("NETBRIDGE_CACHE_CONNECT_TIMEOUT", "60")),
        )

        upload = UploadConfig(
            max_attempts=int(os.getenv("NETBRIDGE_UPLOAD_ATTEMPTS", "3")),
            retry_delay=float(os.getenv("NETBRIDGE_UPLOAD_RETRY_DELAY", "3")),
        )

        file_server = FileServerConfig(
            max_connections=int(os.getenv("NETBRIDGE_FILE_SERVER_MAX_CONNECTIONS", "64")),
            read_timeout=float(os.getenv("NETBRIDGE_FILE_SERVER_READ_TIMEOUT", "10")),
        )

        scratch = os.getenv("NETBRIDGE_SCRATCH_DIR")
        storage = StorageConfig(scratch_dir=Path(scratch)) if scratch else StorageConfig()

        log_file = os.getenv("NETBRIDGE_LOG_FILE")
        log = LogConfig(
            level=os.getenv("NETBRIDGE_LOG_LEVEL", "INFO"),
            file_path=Path(log_file) if log_file else None,
        )

        # "tauri://localhost,http://localhost:1420" -> tuple of origins
        origins_str = os.getenv("NETBRIDGE_ALLOWED_ORIGINS", "")
        origins = tuple(o.strip() for o in origins_str.split(",") if o.strip()) if origins_str else cls.allowed_origins

        return cls(
            transport=transport,
            upload=upload,
            file_server=file_server,
            storage=storage,
            log=log,
            debug=_env_bool("NETBRIDGE_DEBUG", "false"),
            api_host=os.getenv("NETBRIDGE_API_HOST", "127.0.0.1"),
            api_port=int(os.getenv("NETBRIDGE_API_PORT", "8765")),
            allowed_origins=origins,
            reclaim_on_startup=_env_bool("NETBRIDGE_RECLAIM_ON_STARTUP", "true"),
        )


# ============================================================================
# Global Configuration Singleton
# ============================================================================

_config: Optional[BridgeConfig] = None


def get_config() -> BridgeConfig:
    """
    Get the global configuration instance.

    Created from the environment on first use, then reused.
    """
    global _config
    if _config is None:
        _config = BridgeConfig.from_env()
    return _config


def set_config(config: Optional[BridgeConfig]) -> None:
    """
    Replace the global configuration (mainly used for testing).

    Passing None makes the next get_config() re-read the environment.
    """
    global _config
    _config = config


def setup_logging(config: Optional[BridgeConfig] = None) -> None:
    """
    Configure Python's logging system based on our settings.

    Console logging always; a rotating file when NETBRIDGE_LOG_FILE is set.
    Call this once at application startup.
    """
    cfg = config or get_config()

    handlers: List[logging.Handler] = [logging.StreamHandler()]

    if cfg.log.file_enabled:
        from logging.handlers import RotatingFileHandler
        cfg.log.file_path.parent.mkdir(parents=True, exist_ok=True)
        file_handler = RotatingFileHandler(
            cfg.log.file_path,
            maxBytes=cfg.log.max_file_size_mb * 1024 * 1024,
            backupCount=cfg.log.backup_count,
        )
        handlers.append(file_handler)

    level = "DEBUG" if cfg.debug else cfg.log.level
    logging.basicConfig(
        level=getattr(logging, level.upper(), logging.INFO),
        format=cfg.log.format,
        handlers=handlers,
        force=True,
    )
