"""Natural Language Query (NLQ) API routes.

This module exposes the question answering pipeline over REST.
"""

import logging
from uuid import uuid4

from fastapi import APIRouter, Depends, HTTPException, Request
from pydantic import BaseModel, Field

from transfermarket.core.config import settings
from transfermarket.nlq.orchestrator import NlqOrchestrator

logger = logging.getLogger(__name__)

# Create API router
router = APIRouter(prefix="/api/v1/nlq")


class AskRequest(BaseModel):
    """Request body for the ask endpoint."""

    question: str = Field(..., min_length=1, max_length=2000, description="Natural language question")


class AskResponse(BaseModel):
    """Response body for the ask endpoint."""

    status: str = Field(..., description="'done' or 'failed'")
    answer: str | None = Field(None, description="Natural language answer (if successful)")
    error_kind: str | None = Field(None, description="Failure kind (if failed)")
    error: str | None = Field(None, description="User-safe error message (if failed)")
    sql: str | None = Field(None, description="Validated SQL that was executed, if any")
    row_count: int | None = Field(None, description="Number of rows the query returned, if any")


def get_orchestrator(request: Request) -> NlqOrchestrator:
    """Orchestrator built at application startup."""
    orchestrator = getattr(request.app.state, "orchestrator", None)
    if orchestrator is None:
        raise HTTPException(status_code=503, detail="Natural language query service is not ready")
    return orchestrator


@router.post("/ask", response_model=AskResponse)
def ask(
    body: AskRequest,
    orchestrator: NlqOrchestrator = Depends(get_orchestrator),
) -> AskResponse:
    """Answer a natural language question about clubs, players and transfers.

    Pipeline failures come back as a structured ``failed`` response with
    status 200; only invalid requests and a disabled feature map to errors.

    Raises:
        HTTPException: 400 for a blank question, 503 if the feature is disabled
    """
    correlation_id = str(uuid4())

    if not settings.LLM_ENABLED:
        logger.warning("NLQ feature disabled", extra={"correlation_id": correlation_id})
        raise HTTPException(
            status_code=503,
            detail="Natural language query feature is currently disabled",
        )

    try:
        outcome = orchestrator.ask(body.question, correlation_id=correlation_id)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))

    return AskResponse(
        status=outcome.state.value,
        answer=outcome.answer,
        error_kind=outcome.error_kind,
        error=outcome.error,
        sql=outcome.sql,
        row_count=outcome.row_count,
    )
