"""
Finance review of client purchases: package service requests and individual
service requests. Approve/reject run through the settlement coordinator.
"""
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlmodel import Session, select

from backoffice.database import get_session
from backoffice.models.individual_service_request import IndividualServiceRequest
from backoffice.models.service_request import ServiceRequest
from backoffice.routes.deps import Pagination, get_actor, paginate_query, raise_for_result, where_status
from backoffice.services.actor import Actor
from backoffice.services.settlement import SettlementCoordinator

router = APIRouter()


class ServiceRequestOut(BaseModel):
    id: int
    client_id: int
    package_id: int
    payment_transaction_id: Optional[int] = None
    status: str
    approved_by: Optional[str] = None
    approved_date: Optional[datetime] = None
    approval_notes: Optional[str] = None
    rejected_by: Optional[str] = None
    rejected_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    expiry_date: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class IndividualRequestOut(BaseModel):
    id: int
    client_id: int
    individual_service_id: int
    assigned_lawyer_id: Optional[int] = None
    payment_transaction_id: Optional[int] = None
    status: str
    approved_by: Optional[str] = None
    approved_date: Optional[datetime] = None
    approval_notes: Optional[str] = None
    rejected_by: Optional[str] = None
    rejected_date: Optional[datetime] = None
    rejection_reason: Optional[str] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class ServiceRequestList(BaseModel):
    requests: List[ServiceRequestOut]
    pagination: Pagination


class IndividualRequestList(BaseModel):
    requests: List[IndividualRequestOut]
    pagination: Pagination


class ServiceRequestActionResponse(BaseModel):
    request: ServiceRequestOut
    warnings: List[str] = []


class IndividualRequestActionResponse(BaseModel):
    request: IndividualRequestOut
    warnings: List[str] = []


class ApproveRequest(BaseModel):
    notes: Optional[str] = None


class ApproveIndividualRequest(BaseModel):
    notes: Optional[str] = None
    assigned_lawyer_id: Optional[int] = None


class RejectRequest(BaseModel):
    reason: Optional[str] = None


# ============================================================================
# Package service requests
# ============================================================================


@router.get("/finance/service-requests", response_model=ServiceRequestList)
def list_service_requests(
    status: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> ServiceRequestList:
    """Service requests, newest first, optionally filtered by status."""
    stmt = select(ServiceRequest).order_by(ServiceRequest.created_at.desc(), ServiceRequest.id.desc())
    items, pagination = paginate_query(session, where_status(stmt, ServiceRequest.status, status), page, limit)
    return ServiceRequestList(
        requests=[ServiceRequestOut.model_validate(r) for r in items],
        pagination=pagination,
    )


@router.put("/finance/service-requests/{request_id}/approve", response_model=ServiceRequestActionResponse)
def approve_service_request(
    request_id: int,
    payload: Optional[ApproveRequest] = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> ServiceRequestActionResponse:
    payload = payload or ApproveRequest()
    result = SettlementCoordinator(session, actor).approve_service_request(request_id, payload.notes)
    raise_for_result(result)
    return ServiceRequestActionResponse(
        request=ServiceRequestOut.model_validate(result.entity), warnings=result.warnings
    )


@router.put("/finance/service-requests/{request_id}/reject", response_model=ServiceRequestActionResponse)
def reject_service_request(
    request_id: int,
    payload: Optional[RejectRequest] = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> ServiceRequestActionResponse:
    payload = payload or RejectRequest()
    result = SettlementCoordinator(session, actor).reject_service_request(request_id, payload.reason)
    raise_for_result(result)
    return ServiceRequestActionResponse(
        request=ServiceRequestOut.model_validate(result.entity), warnings=result.warnings
    )


# ============================================================================
# Individual service requests
# ============================================================================


@router.get("/finance/individual-service-requests", response_model=IndividualRequestList)
def list_individual_requests(
    status: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> IndividualRequestList:
    stmt = select(IndividualServiceRequest).order_by(
        IndividualServiceRequest.created_at.desc(), IndividualServiceRequest.id.desc()
    )
    stmt = where_status(stmt, IndividualServiceRequest.status, status)
    items, pagination = paginate_query(session, stmt, page, limit)
    return IndividualRequestList(
        requests=[IndividualRequestOut.model_validate(r) for r in items],
        pagination=pagination,
    )


@router.put(
    "/finance/individual-service-requests/{request_id}/approve",
    response_model=IndividualRequestActionResponse,
)
def approve_individual_request(
    request_id: int,
    payload: Optional[ApproveIndividualRequest] = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> IndividualRequestActionResponse:
    """Approve an individual service request, optionally assigning a lawyer."""
    payload = payload or ApproveIndividualRequest()
    result = SettlementCoordinator(session, actor).approve_individual_request(
        request_id, payload.notes, payload.assigned_lawyer_id
    )
    raise_for_result(result)
    return IndividualRequestActionResponse(
        request=IndividualRequestOut.model_validate(result.entity), warnings=result.warnings
    )


@router.put(
    "/finance/individual-service-requests/{request_id}/reject",
    response_model=IndividualRequestActionResponse,
)
def reject_individual_request(
    request_id: int,
    payload: Optional[RejectRequest] = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> IndividualRequestActionResponse:
    payload = payload or RejectRequest()
    result = SettlementCoordinator(session, actor).reject_individual_request(request_id, payload.reason)
    raise_for_result(result)
    return IndividualRequestActionResponse(
        request=IndividualRequestOut.model_validate(result.entity), warnings=result.warnings
    )
