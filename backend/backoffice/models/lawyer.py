from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from backoffice.utils.dates import utcnow


class Lawyer(SQLModel, table=True):
    """Verified lawyer. Owned by the verification workflow; read-only here."""

    id: Optional[int] = Field(default=None, primary_key=True)
    name: str
    email: Optional[str] = None
    status: str = Field(default="approved")  # "approved" | "pending" | "suspended"
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
