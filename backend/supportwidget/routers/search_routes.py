"""
Public Search API Router
Visitor-facing endpoints: answers, suggestions, chat history, FAQ reads and feedback
"""

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import JSONResponse
from typing import List, Optional
import logging

from supportwidget.deps import get_chat_log, get_client_ip, get_search_pipeline, get_tenant_id
from supportwidget.exceptions import StorageUnavailableError
from supportwidget.schemas.search import (
    FaqFeedbackRequest, FaqFeedbackResponse, FaqResponse, HistoryResponse,
    ReactionRequest, ReactionResponse, SearchResponse, SuggestionItem
)
from supportwidget.services.chat_log import ChatLog
from supportwidget.services.pipeline import SearchPipeline
from supportwidget.services.synthesizer import degraded_answer

logger = logging.getLogger(__name__)

router = APIRouter(tags=["search"])


# ========================================
# QUESTIONS & SUGGESTIONS
# ========================================

@router.get("/search", response_model=SearchResponse)
async def search(
    request: Request,
    query: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    session_token: Optional[str] = Query(None, alias="sessionToken"),
    tenant_id: Optional[int] = Depends(get_tenant_id),
    pipeline: SearchPipeline = Depends(get_search_pipeline)
):
    """
    Answer a visitor question from the tenant's knowledge base.
    Always carries answer text, even when storage is down (503 + static answer).
    """
    try:
        outcome = await pipeline.answer_question(
            tenant_id=tenant_id,
            raw_query=query,
            ip_address=get_client_ip(request),
            user_agent=request.headers.get("user-agent"),
            limit=limit,
            session_token=session_token
        )
    except StorageUnavailableError as e:
        logger.error(f"Knowledge base unavailable for tenant {tenant_id}: {e}")
        fallback = degraded_answer()
        return JSONResponse(
            status_code=e.status_code,
            content={
                "success": False,
                "message": e.public_message,
                "query": query,
                "answer": fallback.answer,
                "source": fallback.source,
                "confidence": fallback.confidence,
                "relatedEntries": [],
            }
        )

    return SearchResponse(
        query=query.strip(),
        answer=outcome.answer.answer,
        source=outcome.answer.source,
        confidence=outcome.answer.confidence,
        source_entry_id=outcome.answer.source_entry_id,
        related_entries=outcome.entries,
    )


@router.get("/search/suggestions", response_model=List[SuggestionItem])
async def suggestions(
    query: Optional[str] = Query(None),
    limit: Optional[int] = Query(None),
    tenant_id: Optional[int] = Depends(get_tenant_id),
    pipeline: SearchPipeline = Depends(get_search_pipeline)
):
    """Type-ahead suggestions; popular entries when nothing matches."""
    return await pipeline.suggestions(tenant_id, query, limit)


@router.get("/search/history", response_model=HistoryResponse)
async def history(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(50, ge=1, le=100),
    tenant_id: Optional[int] = Depends(get_tenant_id),
    chat_log: ChatLog = Depends(get_chat_log)
):
    """Chat history for the calling IP within the tenant."""
    return await chat_log.history(tenant_id, get_client_ip(request), page, limit)


@router.post("/messages/{message_id}/reaction", response_model=ReactionResponse)
async def react_to_message(
    message_id: int,
    body: ReactionRequest,
    chat_log: ChatLog = Depends(get_chat_log)
):
    """Mark a bot message helpful or not helpful."""
    message = await chat_log.react(body.tenant_id, message_id, body.reaction)
    return ReactionResponse(message_id=message.id, reaction=message.reaction, reacted_at=message.reacted_at)


# ========================================
# FAQ
# ========================================

@router.get("/faq/{entry_id}", response_model=FaqResponse)
async def get_faq(
    entry_id: int,
    tenant_id: Optional[int] = Depends(get_tenant_id),
    pipeline: SearchPipeline = Depends(get_search_pipeline)
):
    """Read one active FAQ entry and count the view."""
    entry = await pipeline.get_entry(tenant_id, entry_id)
    return FaqResponse(faq=entry)


@router.post("/faq/{entry_id}/feedback", response_model=FaqFeedbackResponse)
async def faq_feedback(
    entry_id: int,
    body: FaqFeedbackRequest,
    pipeline: SearchPipeline = Depends(get_search_pipeline)
):
    """Helpful / not helpful vote; counters feed the search ranking."""
    entry = await pipeline.feedback(body.tenant_id, entry_id, body.helpful)
    return FaqFeedbackResponse(
        helpful_count=entry.helpful_count,
        not_helpful_count=entry.not_helpful_count
    )
