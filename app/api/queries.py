"""
Research query lifecycle endpoints.

Submission creates a pending query and, by default, starts the research
pipeline in the background. Clients poll the query for its status and read
the derived rows from /results.
"""

import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Query, Request, status
from fastapi.responses import JSONResponse
from sqlalchemy.ext.asyncio import AsyncSession

from app.agents.orchestrator import ResearchOrchestrator, start_background_run
from app.api.deps import get_db, get_orchestrator
from app.exceptions import OrchestrationError, QueryNotFoundError
from app.middleware.rate_limit import RUN_LIMIT, SUBMIT_LIMIT, limiter
from app.models.schemas import (
    CompetitorOut,
    OrchestrationResponse,
    QueryCreate,
    QueryOut,
    QueryResults,
    ReportOut,
    SentimentOut,
    TrendOut,
)
from app.services import query_service

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("", response_model=QueryOut, status_code=status.HTTP_201_CREATED)
@limiter.limit(SUBMIT_LIMIT)
async def submit_query(
    request: Request,
    data: QueryCreate,
    db: Annotated[AsyncSession, Depends(get_db)],
    orchestrator: Annotated[ResearchOrchestrator, Depends(get_orchestrator)],
):
    """Create a research query. With run=true the pipeline starts in the background."""
    query = await query_service.create_query(
        db,
        query_text=data.query_text,
        owner_id=data.owner_id,
        query_type=data.query_type,
    )
    response = QueryOut.model_validate(query)

    if data.run:
        start_background_run(orchestrator, query.id)

    return response


@router.get("", response_model=list[QueryOut])
async def list_queries(
    db: Annotated[AsyncSession, Depends(get_db)],
    owner_id: str = Query(..., min_length=1),
    limit: int = Query(20, ge=1, le=100),
):
    """An owner's queries, newest first."""
    queries = await query_service.list_queries(db, owner_id=owner_id, limit=limit)
    return [QueryOut.model_validate(q) for q in queries]


@router.get("/{query_id}", response_model=QueryOut)
async def get_query(query_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """Current state of a query (status polling)."""
    try:
        query = await query_service.get_query(db, query_id)
    except QueryNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Query not found")
    return QueryOut.model_validate(query)


@router.get("/{query_id}/results", response_model=QueryResults)
async def get_query_results(query_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """The query and every row derived from it."""
    try:
        bundle = await query_service.get_results(db, query_id)
    except QueryNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Query not found")

    return QueryResults(
        query=QueryOut.model_validate(bundle.query),
        sentiments=[SentimentOut.model_validate(s) for s in bundle.sentiments],
        competitors=[CompetitorOut.model_validate(c) for c in bundle.competitors],
        trends=[TrendOut.model_validate(t) for t in bundle.trends],
        report=ReportOut.model_validate(bundle.report) if bundle.report else None,
    )


@router.post("/{query_id}/run", response_model=OrchestrationResponse)
@limiter.limit(RUN_LIMIT)
async def run_query(
    request: Request,
    query_id: str,
    orchestrator: Annotated[ResearchOrchestrator, Depends(get_orchestrator)],
):
    """Run the research pipeline synchronously and report how many agents failed."""
    try:
        result = await orchestrator.run(query_id)
    except QueryNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Query not found")
    except OrchestrationError as e:
        return JSONResponse(status_code=status.HTTP_500_INTERNAL_SERVER_ERROR, content={"error": str(e)})

    return OrchestrationResponse(
        success=result.success,
        failed_agents=result.failed_agents,
        total_agents=result.total_agents,
        skipped=result.skipped,
    )


@router.delete("/{query_id}", status_code=status.HTTP_204_NO_CONTENT)
async def delete_query(query_id: str, db: Annotated[AsyncSession, Depends(get_db)]):
    """Delete a query and all of its derived rows."""
    try:
        await query_service.delete_query(db, query_id)
    except QueryNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Query not found")
