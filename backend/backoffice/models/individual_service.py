from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from backoffice.utils.dates import utcnow


class IndividualService(SQLModel, table=True):
    __tablename__ = "individual_service"

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    category: Optional[str] = None
    price: Decimal = Field(default=Decimal("0"), max_digits=12, decimal_places=2)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
