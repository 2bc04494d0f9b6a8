"""Admin endpoints — expiry sweep.

Protected by ``ADMIN_API_KEY``: every request must carry a matching
``X-Admin-Key`` header.  Returns 401 if missing, 403 if wrong or if admin
endpoints are disabled.
"""

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from relocation_flows.service import CLEANUP_TARGETS, FlowService

from relocation_server.dependencies import get_db, get_service, require_admin_key

router = APIRouter(prefix="/admin", tags=["admin"])


class CleanupResult(BaseModel):
    """Rows removed per cleanup target."""
    deleted: dict[str, int]


@router.post("/cleanup")
async def cleanup(
    what: list[str] | None = Query(None),
    db: AsyncSession = Depends(get_db),
    service: FlowService = Depends(get_service),
    _admin: str = Depends(require_admin_key),
) -> CleanupResult:
    """Delete expired previews, idempotency keys and saved documents.

    Args:
        what: restrict the sweep to these targets (repeatable);
            default is all of ``artifacts``, ``idempotency``, ``documents``
    """
    targets = tuple(what) if what else CLEANUP_TARGETS
    deleted = await service.purge_expired(db, targets)
    return CleanupResult(deleted=deleted)
