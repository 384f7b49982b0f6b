"""
Lawyer compensation: unpaid ledger, payouts, salary summaries.
"""
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, List, Optional

from fastapi import APIRouter, Depends, Query
from pydantic import BaseModel
from sqlmodel import Session

from backoffice.database import get_session
from backoffice.routes.deps import get_actor, raise_for_result
from backoffice.services.actor import Actor
from backoffice.services.compensation import CompensationCalculator

router = APIRouter()


class LawyerSalaryOut(BaseModel):
    id: int
    lawyer_id: int
    case_id: int
    amount: float
    payment_status: str
    paid_at: Optional[datetime] = None
    paid_by: Optional[str] = None
    payment_method: str
    description: str
    transaction_id: Optional[str] = None
    created_at: datetime

    class Config:
        from_attributes = True


class PayLawyerRequest(BaseModel):
    lawyer_id: Optional[int] = None
    case_id: Optional[int] = None
    amount: Optional[Decimal] = None


class PayLawyerResponse(BaseModel):
    salary: LawyerSalaryOut


@router.get("/finance/lawyer-salaries")
def get_lawyer_salaries(
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    """Per-lawyer compensable cases, sorted by unpaid amount descending."""
    ledgers = CompensationCalculator(session, actor).compute_ledger()
    return {
        "lawyers": [l.to_dict() for l in ledgers],
        "total_unpaid_amount": float(sum(l.total_unpaid_amount for l in ledgers)),
    }


@router.post("/finance/pay-lawyer", response_model=PayLawyerResponse)
def pay_lawyer(
    payload: Optional[PayLawyerRequest] = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> PayLawyerResponse:
    payload = payload or PayLawyerRequest()
    result = CompensationCalculator(session, actor).pay_lawyer(payload.lawyer_id, payload.case_id, payload.amount)
    raise_for_result(result)
    return PayLawyerResponse(salary=LawyerSalaryOut.model_validate(result.entity))


@router.get("/finance/lawyer-salaries/summary")
def get_salary_summary(
    lawyer_id: Optional[int] = None,
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> Dict[str, List[Dict[str, Any]]]:
    return {"summary": CompensationCalculator(session, actor).salary_summary(lawyer_id)}


@router.get("/finance/salary-report")
def get_salary_report(
    year: int = Query(..., ge=2000, le=9999),
    month: int = Query(..., ge=1, le=12),
    session: Session = Depends(get_session),
    actor: Actor = Depends(get_actor),
) -> Dict[str, Any]:
    """Salaries paid in a calendar month, per lawyer."""
    return CompensationCalculator(session, actor).salary_report(year, month)
