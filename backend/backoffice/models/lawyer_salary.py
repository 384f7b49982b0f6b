from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime, UniqueConstraint as SAUniqueConstraint
from sqlmodel import Field, SQLModel

from backoffice.utils.dates import utcnow


class LawyerSalary(SQLModel, table=True):
    """Compensation ledger entry: one per (lawyer, case)."""

    __tablename__ = "lawyer_salary"
    __table_args__ = (SAUniqueConstraint("lawyer_id", "case_id", name="uq_lawyer_salary_lawyer_case"),)

    id: Optional[int] = Field(default=None, primary_key=True)
    lawyer_id: int = Field(foreign_key="lawyer.id", index=True)
    case_id: int = Field(foreign_key="legal_case.id")
    amount: Decimal = Field(max_digits=12, decimal_places=2)
    payment_status: str = Field(default="unpaid", index=True)  # unpaid | processing | paid
    paid_at: Optional[datetime] = Field(default=None, sa_type=DateTime)
    paid_by: Optional[str] = None
    payment_method: str = Field(default="system_transfer")  # system_transfer | bank_transfer | cash | check
    description: str = Field(default="")
    transaction_id: Optional[str] = Field(default=None, unique=True, max_length=40)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
