from datetime import datetime
from typing import Optional

from sqlalchemy import DateTime
from sqlmodel import Field, SQLModel

from backoffice.utils.dates import utcnow

# Case lifecycle states that entitle the assigned lawyer to payment.
COMPENSABLE_CASE_STATUSES = frozenset(
    {
        "lawyer_assigned",
        "filed",
        "scheduling_requested",
        "hearing_scheduled",
        "rescheduled",
        "completed",
    }
)


class Case(SQLModel, table=True):
    """Court case. Owned by the case-flow service; read-only here."""

    __tablename__ = "legal_case"

    id: Optional[int] = Field(default=None, primary_key=True)
    case_number: str = Field(unique=True)
    case_type: Optional[str] = None
    plaintiff_name: Optional[str] = None
    status: str = Field(default="pending")
    current_lawyer_id: Optional[int] = Field(default=None, foreign_key="lawyer.id", index=True)
    created_at: datetime = Field(default_factory=utcnow, sa_type=DateTime)
