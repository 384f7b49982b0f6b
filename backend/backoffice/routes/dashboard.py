"""
Finance dashboards, financial report and payment transaction listing (read-only).
"""
from datetime import datetime
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlmodel import Session, select

from backoffice.database import get_session
from backoffice.models.payment_transaction import PaymentTransaction
from backoffice.routes.deps import Pagination, get_actor, paginate_query, where_status
from backoffice.routes.service_requests import ServiceRequestOut
from backoffice.services import reporting
from backoffice.services.actor import Actor
from backoffice.utils.dates import utcnow

router = APIRouter()


class PaymentTransactionOut(BaseModel):
    id: int
    client_id: int
    service_package_id: Optional[int] = None
    individual_service_id: Optional[int] = None
    amount: float
    payment_status: str
    failure_reason: Optional[str] = None
    completed_at: Optional[datetime] = None
    failed_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime

    class Config:
        from_attributes = True


class TransactionList(BaseModel):
    transactions: List[PaymentTransactionOut]
    pagination: Pagination


@router.get("/finance/dashboard")
def get_finance_dashboard(
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    stats = reporting.finance_dashboard(reporting.load_snapshot(session), utcnow())
    stats["recent_requests"] = [
        ServiceRequestOut.model_validate(r).model_dump(mode="json") for r in stats["recent_requests"]
    ]
    return {"stats": stats}


@router.get("/finance/dashboard-stats")
def get_dashboard_stats(
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    return {"stats": reporting.dashboard_stats(reporting.load_snapshot(session), utcnow())}


@router.get("/finance/financial-report")
def get_financial_report(
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    return {"report": reporting.financial_report(reporting.load_snapshot(session), utcnow())}


@router.get("/finance/transactions", response_model=TransactionList)
def list_transactions(
    status: Optional[str] = None,
    page: int = Query(default=1, ge=1),
    limit: int = Query(default=10, ge=1, le=100),
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> TransactionList:
    """Payment transactions, newest first, optionally filtered by payment status."""
    stmt = select(PaymentTransaction).order_by(PaymentTransaction.created_at.desc(), PaymentTransaction.id.desc())
    stmt = where_status(stmt, PaymentTransaction.payment_status, status)
    items, pagination = paginate_query(session, stmt, page, limit)
    return TransactionList(
        transactions=[PaymentTransactionOut.model_validate(t) for t in items],
        pagination=pagination,
    )
