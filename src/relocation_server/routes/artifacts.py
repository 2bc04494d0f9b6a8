"""Artifact endpoints — preview, download, discard.

Handles are only valid for their owner and until their TTL elapses; an
unknown, foreign, or expired handle is a 404.
"""

from typing import Optional

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from relocation_flows.models import Artifact, DownloadLink
from relocation_flows.service import FlowService

from relocation_server.dependencies import get_db, get_service, get_user_id, require_member

router = APIRouter(tags=["artifacts"])


class DownloadRequest(BaseModel):
    """Body for POST /artifacts/{handle}/download."""
    format: Optional[str] = None


@router.get("/artifacts/{handle}")
async def get_artifact(
    handle: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    service: FlowService = Depends(get_service),
) -> Artifact:
    """Preview the generated content behind *handle*."""
    return await service.get_artifact(db, user_id, handle)


@router.post("/artifacts/{handle}/download")
async def download_artifact(
    handle: str,
    body: Optional[DownloadRequest] = None,
    user_id: str = Depends(require_member),
    db: AsyncSession = Depends(get_db),
    service: FlowService = Depends(get_service),
) -> DownloadLink:
    """Render the artifact to a file and return its URL.

    ``format`` is ``primary`` (Word-compatible, the default) or ``print``.
    The first download inside the dedup window is also saved to
    "My Documents".
    """
    fmt = body.format if body is not None else None
    return await service.download(db, user_id, handle, fmt)


@router.delete("/artifacts/{handle}", status_code=204)
async def delete_artifact(
    handle: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    service: FlowService = Depends(get_service),
) -> None:
    """Discard a preview before its TTL elapses."""
    await service.delete_artifact(db, user_id, handle)
