""""My Documents" catalog endpoints — list and delete saved downloads."""

from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from relocation_flows.models import SavedDocument
from relocation_flows.service import FlowService

from relocation_server.config import DEFAULT_PAGE_LIMIT, MAX_PAGE_LIMIT
from relocation_server.dependencies import get_db, get_service, get_user_id

router = APIRouter(tags=["documents"])


@router.get("/documents")
async def list_documents(
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    service: FlowService = Depends(get_service),
    limit: int = Query(DEFAULT_PAGE_LIMIT, ge=1, le=MAX_PAGE_LIMIT),
    offset: int = Query(0, ge=0),
) -> list[SavedDocument]:
    """Unexpired saved documents for the current member, newest first."""
    return await service.list_documents(db, user_id, limit=limit, offset=offset)


@router.delete("/documents/{document_id}", status_code=204)
async def delete_document(
    document_id: int,
    user_id: str = Depends(get_user_id),
    db: AsyncSession = Depends(get_db),
    service: FlowService = Depends(get_service),
) -> None:
    """Delete a saved document and its file.  404 if it is not ours."""
    await service.delete_document(db, user_id, document_id)
