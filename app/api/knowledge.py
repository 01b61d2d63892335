import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, status

from app.api.deps import get_knowledge
from app.exceptions import QueryNotFoundError
from app.models.schemas import (
    KnowledgeMatch,
    KnowledgeProcessResponse,
    KnowledgeSearchRequest,
    KnowledgeSearchResponse,
)
from app.services.knowledge_service import KnowledgeService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/search", response_model=KnowledgeSearchResponse)
async def search_knowledge(
    data: KnowledgeSearchRequest,
    knowledge: Annotated[KnowledgeService, Depends(get_knowledge)],
):
    """Similarity search over stored research chunks."""
    matches, method = await knowledge.search(
        data.query,
        query_id=data.query_id,
        limit=data.limit,
        threshold=data.threshold,
    )
    return KnowledgeSearchResponse(
        results=[
            KnowledgeMatch(
                id=m.id,
                query_id=m.query_id,
                content=m.content,
                similarity=m.similarity,
                metadata=m.metadata,
            )
            for m in matches
        ],
        method=method,
    )


@router.post("/{query_id}/process", response_model=KnowledgeProcessResponse)
async def process_query(
    query_id: str,
    knowledge: Annotated[KnowledgeService, Depends(get_knowledge)],
):
    """Chunk and embed the query's collected data."""
    try:
        result = await knowledge.process_query(query_id)
    except QueryNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Query not found")
    return KnowledgeProcessResponse(success=True, chunks=result.chunks, embedded=result.embedded)
