from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, List, Optional

from sqlalchemy import DateTime
from sqlmodel import Field, Relationship, SQLModel

from backoffice.utils.dates import utcnow

if TYPE_CHECKING:
    from backoffice.models.service_request import ServiceRequest


class ServicePackage(SQLModel, table=True):
    __tablename__ = "service_package"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    duration: str = Field(default="monthly")  # "monthly" | "yearly" | "one_time"
    price: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    is_active: bool = Field(default=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)

    requests: List["ServiceRequest"] = Relationship(back_populates="package")
