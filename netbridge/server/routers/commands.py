from __future__ import annotations

import logging
from typing import Any, Dict, Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field, field_validator

from netbridge.files.reclaimer import reclaim_async
from netbridge.net.relay import RequestDescription
from netbridge.net.transport import resolve_proxy
from netbridge.net.uploader import ResponseFormat, UploadRequest
from netbridge.server.state import ApplicationState, get_state

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/commands", tags=["commands"])


class RelayCommand(BaseModel):
    # Method is validated by the relay itself so it answers with its own error.
    method: str = Field(..., min_length=1, max_length=16)
    url: str = Field(..., min_length=1, max_length=8192)
    headers: Optional[Dict[str, str]] = None
    body: Any = None
    token: Optional[str] = None


class UploadCommand(BaseModel):
    file_path: str = Field(..., min_length=1)
    upload_url: str = Field(..., min_length=1)
    field_name: str = Field(..., min_length=1, max_length=256)
    response_format: Optional[str] = None
    proxy_url: Optional[str] = None

    @field_validator("upload_url")
    @classmethod
    def validate_upload_url(cls, v: str) -> str:
        v = v.strip()
        if not v.startswith(("http://", "https://")):
            raise ValueError("upload_url must be an http(s) URL")
        return v


class FileServerCommand(BaseModel):
    path: str = Field(..., min_length=1)
    port: int = Field(..., ge=0, le=65535)


class DownloadCommand(BaseModel):
    url: str = Field(..., min_length=1)
    file_name: str = Field(..., min_length=1, max_length=255)


def state_dep() -> ApplicationState:
    return get_state()


@router.get("/health")
async def health_check():
    return {"status": "ok"}


@router.post("/relay")
async def relay_request(cmd: RelayCommand, state: ApplicationState = Depends(state_dep)):
    """Forward an arbitrary HTTP request and return {status, data}."""
    req = RequestDescription.create(
        method=cmd.method,
        url=cmd.url,
        headers=cmd.headers,
        body=cmd.body,
        token=cmd.token,
    )
    result = await state.relay().relay(req)
    return result.to_dict()


@router.post("/upload")
async def upload_file(cmd: UploadCommand, state: ApplicationState = Depends(state_dep)):
    """
    Upload a local file to an image/video host.

    Remote failures come back as {success: false, error}; only local
    precondition failures produce an error status.
    """
    req = UploadRequest(
        file_path=cmd.file_path,
        upload_url=cmd.upload_url,
        field_name=cmd.field_name,
        response_format=ResponseFormat.parse(cmd.response_format),
        proxy_url=resolve_proxy(cmd.proxy_url),
    )
    outcome = await state.uploader().upload(req)
    return outcome.to_dict()


@router.post("/file-server")
async def start_file_server(cmd: FileServerCommand, state: ApplicationState = Depends(state_dep)):
    """Expose one local file on 127.0.0.1:<port> for the rest of the process lifetime."""
    server = await state.start_file_server(cmd.path, cmd.port)
    return {"url": server.url}


@router.post("/download")
async def download_file(cmd: DownloadCommand, state: ApplicationState = Depends(state_dep)):
    path = await state.downloader().download(cmd.url, cmd.file_name)
    return {"path": str(path)}


@router.post("/cache-image")
async def cache_image(cmd: DownloadCommand, state: ApplicationState = Depends(state_dep)):
    outcome = await state.downloader().cache_image(cmd.url, cmd.file_name)
    return outcome.to_dict()


@router.post("/scratch/reclaim")
async def reclaim_scratch(state: ApplicationState = Depends(state_dep)):
    stats = await reclaim_async(state.config.storage.scratch_dir)
    return stats.to_dict()
