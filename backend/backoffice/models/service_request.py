from datetime import datetime
from typing import TYPE_CHECKING, Optional

from sqlalchemy import DateTime
from sqlmodel import Field, Relationship, SQLModel

from backoffice.utils.dates import utcnow

if TYPE_CHECKING:
    from backoffice.models.service_package import ServicePackage


class ServiceRequest(SQLModel, table=True):
    """A client's purchase of a fixed service package."""

    __tablename__ = "service_request"

    id: Optional[int] = Field(default=None, primary_key=True)
    client_id: int = Field(index=True)
    package_id: int = Field(foreign_key="service_package.id")
    payment_transaction_id: Optional[int] = Field(default=None, foreign_key="payment_transaction.id")

    status: str = Field(default="processing", index=True)  # processing | approved | rejected | active | expired

    approved_by: Optional[str] = None
    approved_date: Optional[datetime] = Field(default=None, sa_type=DateTime)
    approval_notes: Optional[str] = None
    rejected_by: Optional[str] = None
    rejected_date: Optional[datetime] = Field(default=None, sa_type=DateTime)
    rejection_reason: Optional[str] = None
    expiry_date: Optional[datetime] = Field(default=None, sa_type=DateTime)

    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
    updated_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    package: "ServicePackage" = Relationship(back_populates="requests")
