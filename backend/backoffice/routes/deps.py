"""
Shared route dependencies: caller identity, WorkflowResult -> HTTP mapping,
and paged listing queries.
"""
from typing import Any, Dict, List, Optional, Tuple

from fastapi import Header, HTTPException
from pydantic import BaseModel
from sqlalchemy import func
from sqlmodel import Session, select

from backoffice.services.actor import Actor
from backoffice.services.errors import (
    DUPLICATE_PAYMENT,
    INVALID_TRANSITION,
    MISSING_FIELD,
    NOT_FOUND,
    WorkflowResult,
)
from backoffice.services.reporting import page_info

FINANCE_ROLES = ("finance_manager", "admin")

KIND_STATUS_CODES = {
    NOT_FOUND: 404,
    INVALID_TRANSITION: 409,
    MISSING_FIELD: 400,
    DUPLICATE_PAYMENT: 409,
}


def get_actor(
    x_user_id: Optional[str] = Header(default=None),
    x_user_type: Optional[str] = Header(default=None),
) -> Actor:
    """Caller identity from X-User-Id / X-User-Type. Authentication happens upstream."""
    if not x_user_id or not x_user_type:
        raise HTTPException(status_code=401, detail="Authentication required")
    if x_user_type not in FINANCE_ROLES:
        raise HTTPException(status_code=403, detail="Finance manager access required")
    return Actor(user_id=x_user_id, user_type=x_user_type)


def raise_for_result(result: WorkflowResult) -> None:
    if result.ok:
        return
    detail: Dict[str, Any] = result.to_dict()
    raise HTTPException(status_code=KIND_STATUS_CODES.get(result.kind, 400), detail=detail)


class Pagination(BaseModel):
    currentPage: int
    totalPages: int
    totalItems: int
    itemsPerPage: int


def where_status(stmt, column, status: Optional[str]):
    """Filter ``stmt`` on ``column == status``; empty or "all" means no filter."""
    if not status or status == "all":
        return stmt
    return stmt.where(column == status)


def paginate_query(session: Session, stmt, page: int, limit: int) -> Tuple[List[Any], Pagination]:
    """Run one page of ``stmt`` (OFFSET/LIMIT in SQL) plus a COUNT for the pagination block."""
    total = session.exec(select(func.count()).select_from(stmt.order_by(None).subquery())).one()
    items = session.exec(stmt.offset((page - 1) * limit).limit(limit)).all()
    return list(items), Pagination(**page_info(total, page, limit))
