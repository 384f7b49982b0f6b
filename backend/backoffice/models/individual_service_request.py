from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from backoffice.utils.dates import utcnow


class IndividualServiceRequest(SQLModel, table=True):
    """A client's purchase of a single a-la-carte service."""

    __tablename__ = "individual_service_request"

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: int = Field(index=True)
    individual_service_id: int = Field(foreign_key="individual_service.id")
    assigned_lawyer_id: Optional[int] = Field(default=None, foreign_key="lawyer.id")
    payment_transaction_id: Optional[int] = Field(default=None, foreign_key="payment_transaction.id")

    # processing | approved | rejected | in_progress | completed
    status: str = Field(default="processing", index=True)

    approved_by: Optional[str] = None
    approved_date: Optional[datetime] = Field(default=None, sa_type=DateTime)
    approval_notes: Optional[str] = None
    rejected_by: Optional[str] = None
    rejected_date: Optional[datetime] = Field(default=None, sa_type=DateTime)
    rejection_reason: Optional[str] = None

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
