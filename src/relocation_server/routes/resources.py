"""Per-member data clearing — ``DELETE /resources/{resource_kind}``.

``verification`` drops the member's stored verification results;
``previews`` drops every preview artifact they still hold.
"""

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from relocation_flows.service import FlowService

from relocation_server.dependencies import get_db, get_service, get_user_id

router = APIRouter(tags=["resources"])


class ClearResult(BaseModel):
    """Response body for a clear operation."""
    resource_kind: str
    deleted: int


@router.delete("/resources/{resource_kind}")
async def clear_resources(
    resource_kind: str,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    service: FlowService = Depends(get_service),
) -> ClearResult:
    deleted = await service.clear(db, user_id, resource_kind)
    return ClearResult(resource_kind=resource_kind, deleted=deleted)
