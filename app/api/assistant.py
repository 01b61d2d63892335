import logging
from typing import Annotated

from fastapi import APIRouter, Depends, HTTPException, Request, status

from app.api.deps import get_assistant
from app.exceptions import QueryNotFoundError
from app.middleware.rate_limit import CHAT_LIMIT, limiter
from app.models.schemas import AssistantChatRequest, AssistantChatResponse
from app.services.assistant_service import AssistantService

logger = logging.getLogger(__name__)

router = APIRouter()


@router.post("/chat", response_model=AssistantChatResponse)
@limiter.limit(CHAT_LIMIT)
async def chat(
    request: Request,
    data: AssistantChatRequest,
    assistant: Annotated[AssistantService, Depends(get_assistant)],
):
    """Answer a market research question using the user's collected data."""
    if not data.message or not data.message.strip() or not data.user_id:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Message and userId are required",
        )

    try:
        reply = await assistant.respond(data.message.strip(), data.user_id, query_id=data.query_id)
    except QueryNotFoundError:
        raise HTTPException(status_code=status.HTTP_404_NOT_FOUND, detail="Query not found")

    return AssistantChatResponse(response=reply.response, action=reply.action)
