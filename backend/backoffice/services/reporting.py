"""
Aggregation Reporter
====================
Read-only finance views computed from a snapshot of rows and a reference
``now``. Nothing here touches the session except ``load_snapshot``.
"""

from collections import Counter
from dataclasses import dataclass, field
from datetime import datetime
from decimal import ROUND_FLOOR, Decimal
from math import ceil
from typing import Any, Dict, Iterable, List, Sequence, Tuple

from sqlalchemy import case
from sqlmodel import Session, select

from backoffice.models.financial_aid_request import AID_PRIORITIES, AID_REQUEST_TYPES, AID_STATUSES, FinancialAidRequest
from backoffice.models.individual_service_request import IndividualServiceRequest
from backoffice.models.payment_transaction import PAYMENT_COMPLETED, PaymentTransaction
from backoffice.models.service_package import ServicePackage
from backoffice.models.service_request import ServiceRequest
from backoffice.services.status_machine import INDIVIDUAL_REQUEST_STATUSES, SERVICE_REQUEST_STATUSES
from backoffice.utils.dates import day_window, month_window, year_window

RECENT_REQUESTS_LIMIT = 5

AID_PRIORITY_RANK = {priority: rank for rank, priority in enumerate(AID_PRIORITIES)}
OPEN_AID_STATUSES = ("pending", "under_review")


@dataclass
class ReportSnapshot:
    service_requests: List[ServiceRequest] = field(default_factory=list)
    individual_requests: List[IndividualServiceRequest] = field(default_factory=list)
    aid_requests: List[FinancialAidRequest] = field(default_factory=list)
    transactions: List[PaymentTransaction] = field(default_factory=list)
    packages: Dict[int, ServicePackage] = field(default_factory=dict)


def load_snapshot(session: Session) -> ReportSnapshot:
    return ReportSnapshot(
        service_requests=list(session.exec(select(ServiceRequest)).all()),
        individual_requests=list(session.exec(select(IndividualServiceRequest)).all()),
        aid_requests=list(session.exec(select(FinancialAidRequest)).all()),
        transactions=list(session.exec(select(PaymentTransaction)).all()),
        packages={p.id: p for p in session.exec(select(ServicePackage)).all()},
    )


# ─── Revenue ───────────────────────────────────────────────────────────


def sum_amounts(transactions: Iterable[PaymentTransaction]) -> Decimal:
    return sum((Decimal(t.amount) for t in transactions), Decimal("0"))


def _completed(transactions: Iterable[PaymentTransaction]) -> List[PaymentTransaction]:
    return [t for t in transactions if t.payment_status == PAYMENT_COMPLETED]


def revenue_between(transactions: Iterable[PaymentTransaction], window: Tuple[datetime, datetime]) -> Decimal:
    """Completed revenue for transactions created in [start, end)."""
    start, end = window
    return sum_amounts(t for t in _completed(transactions) if start <= t.created_at < end)


def revenue_growth(this_month: Decimal, last_month: Decimal) -> int:
    """Month-over-month growth in whole percent (halves round toward +inf); 0 when last month had no revenue."""
    if last_month <= 0:
        return 0
    pct = (Decimal(this_month) - Decimal(last_month)) / Decimal(last_month) * 100
    return int((pct + Decimal("0.5")).to_integral_value(rounding=ROUND_FLOOR))


# ─── Counts and queues ─────────────────────────────────────────────────


def count_by(items: Iterable[Any], attr: str, keys: Sequence[str] = ()) -> Dict[str, int]:
    """Counts per value of ``attr``; every key in ``keys`` is present even at zero."""
    counts: Dict[str, int] = {k: 0 for k in keys}
    counts.update(Counter(getattr(item, attr) for item in items))
    return counts


def _newest_first(items: Iterable[Any]) -> List[Any]:
    return sorted(items, key=lambda r: (r.created_at, r.id or 0), reverse=True)


def recent_processing(requests: Iterable[Any], limit: int = RECENT_REQUESTS_LIMIT) -> List[Any]:
    return _newest_first(r for r in requests if r.status == "processing")[:limit]


def aid_queue_order(requests: Iterable[FinancialAidRequest]) -> List[FinancialAidRequest]:
    """Operator queue: priority rank ascending (unknown last), newest first within a rank."""
    newest = _newest_first(requests)
    return sorted(newest, key=lambda r: AID_PRIORITY_RANK.get(r.priority, len(AID_PRIORITY_RANK)))


def aid_queue_sql_order() -> Tuple[Any, ...]:
    """ORDER BY clauses giving the same queue order as ``aid_queue_order``."""
    rank = case(AID_PRIORITY_RANK, value=FinancialAidRequest.priority, else_=len(AID_PRIORITY_RANK))
    return rank, FinancialAidRequest.created_at.desc(), FinancialAidRequest.id.desc()


def aid_request_stats(requests: Sequence[FinancialAidRequest]) -> Dict[str, Any]:
    open_requests = [r for r in requests if r.status in OPEN_AID_STATUSES]
    return {
        "total": len(requests),
        "by_status": count_by(requests, "status", AID_STATUSES),
        "open_by_priority": count_by(open_requests, "priority", AID_PRIORITIES),
        "by_type": count_by(requests, "request_type", AID_REQUEST_TYPES),
    }


def package_popularity(requests: Iterable[ServiceRequest], packages: Dict[int, ServicePackage]) -> List[Dict[str, Any]]:
    """Approved/active request counts per package name, most popular first."""
    counts = Counter(
        packages[r.package_id].name if r.package_id in packages else f"package-{r.package_id}"
        for r in requests
        if r.status in ("approved", "active")
    )
    # Counter.most_common keeps first-seen order for ties
    return [{"name": name, "count": count} for name, count in counts.most_common()]


# ─── Views ─────────────────────────────────────────────────────────────


def finance_dashboard(snapshot: ReportSnapshot, now: datetime) -> Dict[str, Any]:
    service_counts = count_by(snapshot.service_requests, "status", SERVICE_REQUEST_STATUSES)
    individual_counts = count_by(snapshot.individual_requests, "status", INDIVIDUAL_REQUEST_STATUSES)
    completed = _completed(snapshot.transactions)
    return {
        "service_requests": {"total": len(snapshot.service_requests), **service_counts},
        "individual_service_requests": {"total": len(snapshot.individual_requests), **individual_counts},
        "revenue": {
            "total": float(sum_amounts(completed)),
            "this_month": float(revenue_between(completed, month_window(now))),
            "transactions": len(completed),
        },
        "combined_requests": {
            "total": len(snapshot.service_requests) + len(snapshot.individual_requests),
            **{
                status: service_counts.get(status, 0) + individual_counts.get(status, 0)
                for status in ("approved", "processing", "rejected")
            },
        },
        "package_stats": package_popularity(snapshot.service_requests, snapshot.packages),
        "recent_requests": recent_processing(snapshot.service_requests),
    }


def dashboard_stats(snapshot: ReportSnapshot, now: datetime) -> Dict[str, Any]:
    this_month = revenue_between(snapshot.transactions, month_window(now))
    last_month = revenue_between(snapshot.transactions, month_window(now, -1))
    today_start, today_end = day_window(now)
    return {
        "totalRevenue": float(sum_amounts(_completed(snapshot.transactions))),
        "revenueGrowth": revenue_growth(this_month, last_month),
        "totalServiceRequests": len(snapshot.service_requests),
        "pendingRequests": sum(1 for r in snapshot.service_requests if r.status == "processing"),
        "totalTransactions": len(snapshot.transactions),
        "todayTransactions": sum(1 for t in snapshot.transactions if today_start <= t.created_at < today_end),
    }


def financial_report(snapshot: ReportSnapshot, now: datetime) -> Dict[str, Any]:
    return {
        "monthlyRevenue": float(revenue_between(snapshot.transactions, month_window(now))),
        "yearlyRevenue": float(revenue_between(snapshot.transactions, year_window(now))),
        "generatedAt": now.isoformat(),
    }


def page_info(total: int, page: int = 1, limit: int = 10) -> Dict[str, int]:
    """Pagination block for ``total`` items shown ``limit`` per page."""
    return {
        "currentPage": page,
        "totalPages": ceil(total / limit) if total else 0,
        "totalItems": total,
        "itemsPerPage": limit,
    }
