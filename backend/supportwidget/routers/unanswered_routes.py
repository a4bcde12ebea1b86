"""
Unanswered Query API Router
Admin triage of questions the widget could not answer
"""

from fastapi import APIRouter, Depends, Query
from typing import Optional
import logging

from supportwidget.auth import AdminPrincipal, require_admin, resolve_admin_tenant
from supportwidget.deps import get_tenant_id, get_unanswered_service
from supportwidget.schemas.unanswered import (
    UnansweredListResponse, UnansweredSearchResponse, UnansweredTopResponse,
    UnansweredUpdateRequest, UnansweredUpdateResponse
)
from supportwidget.services.unanswered import UnansweredQueryService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/unanswered-queries", tags=["unanswered-queries"])


@router.get("", response_model=UnansweredListResponse)
async def list_unanswered(
    status: str = Query("pending"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    sort_by: str = Query("frequency", alias="sortBy"),
    sort_order: str = Query("DESC", alias="sortOrder"),
    tenant_id: Optional[int] = Depends(get_tenant_id),
    principal: AdminPrincipal = Depends(require_admin),
    service: UnansweredQueryService = Depends(get_unanswered_service)
):
    """
    Paginated unanswered queries with per-status stats.
    status: pending | answered | ignored | all
    """
    return await service.list_queries(
        resolve_admin_tenant(principal, tenant_id),
        status=status,
        page=page,
        limit=limit,
        sort_by=sort_by,
        sort_order=sort_order
    )


@router.get("/top", response_model=UnansweredTopResponse)
async def top_unanswered(
    limit: int = Query(10, ge=1, le=100),
    tenant_id: Optional[int] = Depends(get_tenant_id),
    principal: AdminPrincipal = Depends(require_admin),
    service: UnansweredQueryService = Depends(get_unanswered_service)
):
    """Most frequently asked pending questions."""
    queries = await service.top(resolve_admin_tenant(principal, tenant_id), limit)
    return UnansweredTopResponse(queries=queries)


@router.get("/search", response_model=UnansweredSearchResponse)
async def search_unanswered(
    search_term: Optional[str] = Query(None, alias="searchTerm"),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100),
    tenant_id: Optional[int] = Depends(get_tenant_id),
    principal: AdminPrincipal = Depends(require_admin),
    service: UnansweredQueryService = Depends(get_unanswered_service)
):
    """Search query text and admin notes."""
    return await service.search(resolve_admin_tenant(principal, tenant_id), search_term, page, limit)


@router.put("/{query_id}", response_model=UnansweredUpdateResponse)
async def update_unanswered(
    query_id: int,
    body: UnansweredUpdateRequest,
    tenant_id: Optional[int] = Depends(get_tenant_id),
    principal: AdminPrincipal = Depends(require_admin),
    service: UnansweredQueryService = Depends(get_unanswered_service)
):
    """
    Change status / link an entry / add notes.
    autoCreateEntry with status=answered turns the question plus answer into a new FAQ entry.
    """
    record, created_entry = await service.update_status(
        resolve_admin_tenant(principal, tenant_id),
        query_id,
        status=body.status,
        related_entry_id=body.related_entry_id,
        notes=body.notes,
        auto_create_entry=body.auto_create_entry,
        answer=body.answer,
        category=body.category
    )
    return UnansweredUpdateResponse(query=record, created_entry=created_entry)


@router.delete("/{query_id}")
async def delete_unanswered(
    query_id: int,
    tenant_id: Optional[int] = Depends(get_tenant_id),
    principal: AdminPrincipal = Depends(require_admin),
    service: UnansweredQueryService = Depends(get_unanswered_service)
):
    await service.delete(resolve_admin_tenant(principal, tenant_id), query_id)
    return {"success": True, "message": "Unanswered query deleted"}
