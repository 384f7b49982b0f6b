from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, JSON
from sqlmodel import Column, Field, SQLModel

from backoffice.utils.dates import utcnow

AID_REQUEST_TYPES = ("monthly_package", "individual_service", "case_filing")
AID_PRIORITIES = ("urgent", "high", "medium", "low")
AID_STATUSES = ("pending", "under_review", "approved", "rejected", "requires_more_info")


class FinancialAidRequest(SQLModel, table=True):
    """A client's request for a discount or subsidy on a paid service."""

    __tablename__ = "financial_aid_request"

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: int = Field(index=True)
    request_type: str  # monthly_package | individual_service | case_filing
    service_package_id: Optional[int] = Field(default=None, foreign_key="service_package.id")
    individual_service_id: Optional[int] = Field(default=None, foreign_key="individual_service.id")
    case_id: Optional[int] = Field(default=None, foreign_key="legal_case.id")

    requested_amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    discount_percentage: Decimal = Field(default=Decimal("0"), max_digits=5, decimal_places=2)
    priority: str = Field(default="medium", index=True)  # urgent | high | medium | low
    status: str = Field(default="pending", index=True)

    reviewed_by: Optional[str] = None
    review_date: Optional[datetime] = Field(default=None, sa_type=DateTime)
    review_notes: Optional[str] = None
    rejection_reason: Optional[str] = None

    # approved_amount, approved_discount_percentage, payment_plan, conditions, valid_until
    approval_details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    # message, response_date, required_documents
    admin_response: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    follow_up_required: bool = Field(default=False)
    follow_up_date: Optional[datetime] = Field(default=None, sa_type=DateTime)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
