from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from backoffice.utils.dates import utcnow

PAYMENT_PENDING = "pending"
PAYMENT_COMPLETED = "completed"
PAYMENT_FAILED = "failed"


class PaymentTransaction(SQLModel, table=True):
    """Client payment captured at checkout. Settled by request approval/rejection."""

    __tablename__ = "payment_transaction"

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: int = Field(index=True)
    service_package_id: Optional[int] = Field(default=None, foreign_key="service_package.id")
    individual_service_id: Optional[int] = Field(default=None, foreign_key="individual_service.id")
    amount: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    payment_status: str = Field(default=PAYMENT_PENDING, index=True)  # pending | completed | failed
    failure_reason: Optional[str] = None
    completed_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    failed_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
