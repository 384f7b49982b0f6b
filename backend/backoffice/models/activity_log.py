from datetime import datetime
from typing import Any, Dict, Optional

from sqlalchemy import DateTime, JSON
from sqlmodel import Column, Field, SQLModel

from backoffice.utils.dates import utcnow


class ActivityLog(SQLModel, table=True):
    """Audit trail of back-office actions."""

    __tablename__ = "activity_log"

    id: Optional[int] = Field(default=None, primary_key=True)
    user_id: str = Field(index=True)
    user_type: str
    action: str = Field(index=True)  # service_request_approved | payment_made | ...
    description: str = Field(default="")
    target_type: Optional[str] = None
    target_id: Optional[int] = None
    details: Optional[Dict[str, Any]] = Field(default=None, sa_column=Column(JSON, nullable=True))
    created_at: datetime = Field(default_factory=utcnow, index=True, sa_type=DateTime)
