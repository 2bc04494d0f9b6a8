"""Conversation endpoints — list flows, start one, answer its questions.

The server holds no conversation state: ``start`` returns the first turn
and every ``answer`` call carries back the context from the previous turn.
Starting and answering require an active membership.
"""

from typing import Any, Optional, Union

from fastapi import APIRouter, Depends
from pydantic import BaseModel
from sqlalchemy.ext.asyncio import AsyncSession

from relocation_flows.models import FlowSummary, GenerationOutcome, Turn
from relocation_flows.service import FlowService

from relocation_server.dependencies import get_db, get_service, require_member

router = APIRouter(tags=["flows"])


# ------------------------------------------------------------------
# Request models
# ------------------------------------------------------------------

class AnswerRequest(BaseModel):
    """Body for POST /flows/{flow_type}/answer.

    ``context`` is kept loose here; the SDK validates it and reports a
    field-level error for anything malformed.
    """
    message: Optional[Union[str, list[str]]] = None
    context: Optional[dict[str, Any]] = None


# ------------------------------------------------------------------
# Endpoints
# ------------------------------------------------------------------

@router.get("/flows")
async def list_flows(
    service: FlowService = Depends(get_service),
) -> list[FlowSummary]:
    """All available flows with their category and question count."""
    return service.list_flows()


@router.post("/flows/{flow_type}/start")
async def start_flow(
    flow_type: str,
    user_id: str = Depends(require_member),
    db: AsyncSession = Depends(get_db),
    service: FlowService = Depends(get_service),
) -> Turn:
    """Greeting plus the first question.  Safe to call repeatedly."""
    return await service.start_flow(db, user_id, flow_type)


@router.post("/flows/{flow_type}/answer")
async def submit_answer(
    flow_type: str,
    body: AnswerRequest,
    user_id: str = Depends(require_member),
    db: AsyncSession = Depends(get_db),
    service: FlowService = Depends(get_service),
) -> Union[Turn, GenerationOutcome]:
    """Record an answer and return the next turn, or the generation outcome
    once the last visible question has been answered.
    """
    return await service.submit_answer(
        db, user_id, flow_type, body.message, body.context,
    )
