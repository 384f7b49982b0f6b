"""
Financial aid review queue and decisions.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlmodel import Session, select

from backoffice.database import get_session
from backoffice.models.financial_aid_request import FinancialAidRequest
from backoffice.routes.deps import Pagination, get_actor, paginate_query, raise_for_result, where_status
from backoffice.services.actor import Actor
from backoffice.services.reporting import aid_queue_sql_order, aid_request_stats
from backoffice.services.settlement import SettlementCoordinator

router = APIRouter()


class AidRequestOut(BaseModel):
    id: int
    client_id: int
    request_type: str
    service_package_id: Optional[int] = None
    individual_service_id: Optional[int] = None
    case_id: Optional[int] = None
    requested_amount: float
    discount_percentage: float
    priority: str
    status: str
    reviewed_by: Optional[str] = None
    review_date: Optional[datetime] = None
    review_notes: Optional[str] = None
    rejection_reason: Optional[str] = None
    approval_details: Optional[Dict[str, Any]] = None
    admin_response: Optional[Dict[str, Any]] = None
    follow_up_required: bool = False
    follow_up_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class AidRequestList(BaseModel):
    requests: List[AidRequestOut]
    pagination: Pagination
    stats: Dict[str, Any]


class AidActionResponse(BaseModel):
    request: AidRequestOut
    warnings: List[str] = []


class AidApproveRequest(BaseModel):
    approved_amount: Optional[Decimal] = None
    approved_discount_percentage: Optional[Decimal] = None
    payment_plan: Optional[str] = None
    conditions: List[str] = []
    valid_until: Optional[datetime] = None
    review_notes: Optional[str] = None


class AidRejectRequest(BaseModel):
    reason: Optional[str] = None
    review_notes: Optional[str] = None


class AidInfoRequest(BaseModel):
    message: Optional[str] = None
    required_documents: List[str] = []
    review_notes: Optional[str] = None


class AidStatusUpdate(BaseModel):
    status: Optional[str] = None
    review_notes: Optional[str] = None


def _action_response(result) -> AidActionResponse:
    raise_for_result(result)
    return AidActionResponse(request=AidRequestOut.model_validate(result.entity), warnings=result.warnings)


@router.get("/finance/financial-aid-requests", response_model=AidRequestList)
def list_aid_requests(
    status: Optional[str] = None,
    priority: Optional[str] = None,
    request_type: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> AidRequestList:
    """Operator queue: most urgent first, newest first within a priority. Stats cover all requests."""
    stmt = select(FinancialAidRequest).order_by(*aid_queue_sql_order())
    stmt = where_status(stmt, FinancialAidRequest.status, status)
    stmt = where_status(stmt, FinancialAidRequest.priority, priority)
    stmt = where_status(stmt, FinancialAidRequest.request_type, request_type)
    items, pagination = paginate_query(session, stmt, page, limit)
    summary_rows = session.exec(
        select(FinancialAidRequest.status, FinancialAidRequest.priority, FinancialAidRequest.request_type)
    ).all()
    return AidRequestList(
        requests=[AidRequestOut.model_validate(r) for r in items],
        pagination=pagination,
        stats=aid_request_stats(summary_rows),
    )


@router.put("/finance/financial-aid-requests/{request_id}/approve", response_model=AidActionResponse)
def approve_aid_request(
    request_id: int,
    payload: Optional[AidApproveRequest] = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> AidActionResponse:
    payload = payload or AidApproveRequest()
    result = SettlementCoordinator(session, actor).approve_aid_request(
        request_id,
        approved_amount=payload.approved_amount,
        approved_discount_percentage=payload.approved_discount_percentage,
        payment_plan=payload.payment_plan,
        conditions=payload.conditions,
        valid_until=payload.valid_until,
        review_notes=payload.review_notes,
    )
    return _action_response(result)


@router.put("/finance/financial-aid-requests/{request_id}/reject", response_model=AidActionResponse)
def reject_aid_request(
    request_id: int,
    payload: Optional[AidRejectRequest] = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> AidActionResponse:
    payload = payload or AidRejectRequest()
    result = SettlementCoordinator(session, actor).reject_aid_request(request_id, payload.reason, payload.review_notes)
    return _action_response(result)


@router.put("/finance/financial-aid-requests/{request_id}/request-info", response_model=AidActionResponse)
def request_more_info(
    request_id: int,
    payload: Optional[AidInfoRequest] = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> AidActionResponse:
    payload = payload or AidInfoRequest()
    result = SettlementCoordinator(session, actor).request_more_info(
        request_id, payload.message, payload.required_documents, payload.review_notes
    )
    return _action_response(result)


@router.put("/finance/financial-aid-requests/{request_id}/status", response_model=AidActionResponse)
def override_aid_status(
    request_id: int,
    payload: Optional[AidStatusUpdate] = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> AidActionResponse:
    """Administrative override: sets any aid status without transition checks."""
    payload = payload or AidStatusUpdate()
    result = SettlementCoordinator(session, actor).override_aid_status(request_id, payload.status, payload.review_notes)
    return _action_response(result)
