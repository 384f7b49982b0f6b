"""
Lawyer compensation: flat per-case ledger and salary payouts.

The ledger is derived, not stored: every compensable case assigned to a lawyer
is worth ``rate_per_case`` until a LawyerSalary row exists for the
(lawyer, case) pair, at which point the case is paid with that row's amount.
"""

import logging
import os
import random
import string
from dataclasses import dataclass, field
from datetime import datetime
from decimal import Decimal, InvalidOperation
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional, Sequence

from sqlalchemy.exc import IntegrityError
from sqlmodel import Session, select

from backoffice.models.case import COMPENSABLE_CASE_STATUSES, Case
from backoffice.models.lawyer import Lawyer
from backoffice.models.lawyer_salary import LawyerSalary
from backoffice.services.activity_log import ActivityEntry, ActivityLogWriter, ActivitySink
from backoffice.services.actor import Actor
from backoffice.services.errors import DuplicatePayment, MissingField, NotFound, WorkflowError, WorkflowResult
from backoffice.utils.dates import month_window, utcnow

logger = logging.getLogger(__name__)

DEFAULT_RATE_PER_CASE = Decimal("2500")
TRANSACTION_ID_ATTEMPTS = 5

_BASE36 = string.digits + string.ascii_lowercase


@dataclass(frozen=True)
class CompensationPolicy:
    rate_per_case: Decimal = DEFAULT_RATE_PER_CASE
    compensable_statuses: FrozenSet[str] = COMPENSABLE_CASE_STATUSES
    # When a lawyer has no compensable case, count all of their cases instead
    fallback_to_all_cases: bool = True

    @classmethod
    def from_env(cls) -> "CompensationPolicy":
        rate = Decimal(os.getenv("LAWYER_CASE_RATE", str(DEFAULT_RATE_PER_CASE)))
        fallback = os.getenv("LAWYER_CASE_FALLBACK", "true").lower() in ("true", "1", "yes")
        return cls(rate_per_case=rate, fallback_to_all_cases=fallback)


@dataclass
class LedgerCase:
    case_id: int
    case_number: str
    case_type: Optional[str]
    plaintiff_name: Optional[str]
    status: str
    amount: Decimal
    payment_status: str  # paid | unpaid
    paid_at: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "case_id": self.case_id,
            "case_number": self.case_number,
            "case_type": self.case_type,
            "plaintiff_name": self.plaintiff_name,
            "status": self.status,
            "amount": float(self.amount),
            "payment_status": self.payment_status,
            "paid_at": self.paid_at.isoformat() if self.paid_at else None,
        }


@dataclass
class LawyerLedger:
    lawyer_id: int
    name: str
    email: Optional[str]
    cases: List[LedgerCase] = field(default_factory=list)

    @property
    def total_cases(self) -> int:
        return len(self.cases)

    @property
    def unpaid_cases(self) -> List[LedgerCase]:
        return [c for c in self.cases if c.payment_status == "unpaid"]

    @property
    def total_unpaid_cases(self) -> int:
        return len(self.unpaid_cases)

    @property
    def total_unpaid_amount(self) -> Decimal:
        return sum((c.amount for c in self.unpaid_cases), Decimal("0"))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "lawyer_id": self.lawyer_id,
            "name": self.name,
            "email": self.email,
            "total_cases": self.total_cases,
            "total_unpaid_cases": self.total_unpaid_cases,
            "total_unpaid_amount": float(self.total_unpaid_amount),
            "cases": [c.to_dict() for c in self.cases],
        }


# ─── Pure ledger helpers ───────────────────────────────────────────────


def select_compensable_cases(lawyer: Lawyer, cases: Sequence[Case], policy: CompensationPolicy) -> List[Case]:
    """Cases of ``lawyer`` that earn compensation under ``policy``."""
    own = [c for c in cases if c.current_lawyer_id == lawyer.id]
    compensable = [c for c in own if c.status in policy.compensable_statuses]
    if compensable or not own or not policy.fallback_to_all_cases:
        return compensable
    logger.warning(
        "Lawyer %s has no case in a compensable status; counting all %d assigned cases",
        lawyer.id,
        len(own),
    )
    return own


def build_lawyer_ledger(
    lawyer: Lawyer,
    cases: Sequence[Case],
    salaries: Dict[tuple, LawyerSalary],
    policy: CompensationPolicy,
) -> Optional[LawyerLedger]:
    """Ledger for one lawyer, or None when the lawyer has no cases to count."""
    selected = select_compensable_cases(lawyer, cases, policy)
    if not selected:
        return None
    ledger = LawyerLedger(lawyer_id=lawyer.id, name=lawyer.name, email=lawyer.email)
    for case in selected:
        salary = salaries.get((lawyer.id, case.id))
        ledger.cases.append(
            LedgerCase(
                case_id=case.id,
                case_number=case.case_number,
                case_type=case.case_type,
                plaintiff_name=case.plaintiff_name,
                status=case.status,
                amount=Decimal(salary.amount) if salary else policy.rate_per_case,
                payment_status="paid" if salary else "unpaid",
                paid_at=salary.paid_at if salary else None,
            )
        )
    return ledger


def sort_ledgers(ledgers: Iterable[LawyerLedger]) -> List[LawyerLedger]:
    # sorted() is stable: equal unpaid totals keep lawyer order
    return sorted(ledgers, key=lambda l: l.total_unpaid_amount, reverse=True)


def _base36(number: int) -> str:
    if number == 0:
        return "0"
    digits = []
    while number:
        number, rem = divmod(number, 36)
        digits.append(_BASE36[rem])
    return "".join(reversed(digits))


def generate_salary_transaction_id(now: datetime, rng: Optional[random.Random] = None) -> str:
    """SAL-<base36 epoch millis>-<5 random base36 chars>, upper-cased."""
    rng = rng or random.SystemRandom()
    epoch = datetime(1970, 1, 1)
    millis = int((now - epoch).total_seconds() * 1000)
    suffix = "".join(rng.choice(_BASE36) for _ in range(5))
    return f"SAL-{_base36(millis)}-{suffix}".upper()


def summarize_salaries(salaries: Sequence[LawyerSalary], lawyers: Dict[int, Lawyer]) -> List[Dict[str, Any]]:
    """Per-lawyer totals over ledger entries, ordered by lawyer id."""
    by_lawyer: Dict[int, Dict[str, Any]] = {}
    for s in salaries:
        lawyer = lawyers.get(s.lawyer_id)
        row = by_lawyer.setdefault(
            s.lawyer_id,
            {
                "lawyer_id": s.lawyer_id,
                "name": lawyer.name if lawyer else None,
                "total_cases": 0,
                "paid_cases": 0,
                "unpaid_cases": 0,
                "total_amount": Decimal("0"),
                "paid_amount": Decimal("0"),
                "unpaid_amount": Decimal("0"),
            },
        )
        amount = Decimal(s.amount)
        row["total_cases"] += 1
        row["total_amount"] += amount
        if s.payment_status == "paid":
            row["paid_cases"] += 1
            row["paid_amount"] += amount
        elif s.payment_status == "unpaid":
            row["unpaid_cases"] += 1
            row["unpaid_amount"] += amount
    result = []
    for lawyer_id in sorted(by_lawyer):
        row = by_lawyer[lawyer_id]
        for key in ("total_amount", "paid_amount", "unpaid_amount"):
            row[key] = float(row[key])
        result.append(row)
    return result


def monthly_salary_report(
    salaries: Sequence[LawyerSalary], lawyers: Dict[int, Lawyer], year: int, month: int
) -> Dict[str, Any]:
    """Paid totals per lawyer for entries paid within (year, month)."""
    start, end = month_window(datetime(year, month, 1))
    totals: Dict[int, Dict[str, Any]] = {}
    for s in salaries:
        if s.payment_status != "paid" or s.paid_at is None or not (start <= s.paid_at < end):
            continue
        lawyer = lawyers.get(s.lawyer_id)
        row = totals.setdefault(
            s.lawyer_id,
            {"lawyer_id": s.lawyer_id, "name": lawyer.name if lawyer else None, "total_paid": Decimal("0"), "case_count": 0},
        )
        row["total_paid"] += Decimal(s.amount)
        row["case_count"] += 1
    rows = sorted(totals.values(), key=lambda r: r["total_paid"], reverse=True)
    grand_total = sum((r["total_paid"] for r in rows), Decimal("0"))
    for r in rows:
        r["total_paid"] = float(r["total_paid"])
    return {"year": year, "month": month, "lawyers": rows, "total_paid": float(grand_total)}


def _positive_amount(value: Any) -> Decimal:
    if value is None or (isinstance(value, str) and not value.strip()):
        raise MissingField("amount")
    try:
        amount = Decimal(str(value))
    except InvalidOperation:
        raise MissingField("amount", "Amount must be a number")
    if not amount.is_finite() or amount <= 0:
        raise MissingField("amount", "Amount must be greater than zero")
    return amount


# ─── Calculator ────────────────────────────────────────────────────────


class CompensationCalculator:
    def __init__(
        self,
        session: Session,
        actor: Optional[Actor] = None,
        policy: Optional[CompensationPolicy] = None,
        *,
        clock: Callable[[], datetime] = utcnow,
        activity_sink: Optional[ActivitySink] = None,
    ):
        self.session = session
        self.actor = actor
        self.policy = policy or CompensationPolicy.from_env()
        self.clock = clock
        self.activity_sink = activity_sink or ActivityLogWriter(session.get_bind())

    def compute_ledger(self) -> List[LawyerLedger]:
        lawyers = self.session.exec(select(Lawyer).where(Lawyer.status == "approved").order_by(Lawyer.id)).all()
        if not lawyers:
            lawyers = self.session.exec(select(Lawyer).order_by(Lawyer.id)).all()
            if lawyers:
                logger.warning("No approved lawyers; computing ledger over all %d lawyers", len(lawyers))
        if not lawyers:
            return []

        lawyer_ids = [l.id for l in lawyers]
        cases = self.session.exec(
            select(Case).where(Case.current_lawyer_id.in_(lawyer_ids)).order_by(Case.id)
        ).all()
        salaries = {
            (s.lawyer_id, s.case_id): s
            for s in self.session.exec(select(LawyerSalary).where(LawyerSalary.lawyer_id.in_(lawyer_ids))).all()
        }

        ledgers = []
        for lawyer in lawyers:
            ledger = build_lawyer_ledger(lawyer, cases, salaries, self.policy)
            if ledger is not None:
                ledgers.append(ledger)
        return sort_ledgers(ledgers)

    def pay_lawyer(self, lawyer_id: Optional[int], case_id: Optional[int], amount: Any) -> WorkflowResult:
        try:
            return self._pay_lawyer(lawyer_id, case_id, amount)
        except WorkflowError as exc:
            self.session.rollback()
            logger.info("Salary payment refused: %s (%s)", exc.kind, exc.message)
            return WorkflowResult.failure(exc)

    def _pay_lawyer(self, lawyer_id: Optional[int], case_id: Optional[int], amount: Any) -> WorkflowResult:
        if lawyer_id is None:
            raise MissingField("lawyer_id", "Lawyer ID, case ID and amount are required")
        if case_id is None:
            raise MissingField("case_id", "Lawyer ID, case ID and amount are required")
        value = _positive_amount(amount)

        if self._existing_salary(lawyer_id, case_id) is not None:
            raise DuplicatePayment("Payment already made for this case")
        lawyer = self.session.get(Lawyer, lawyer_id)
        if lawyer is None:
            raise NotFound("Lawyer not found")
        case = self.session.get(Case, case_id)
        if case is None:
            raise NotFound("Case not found")
        case_number = case.case_number
        paid_by = self.actor.user_id if self.actor else None

        for attempt in range(1, TRANSACTION_ID_ATTEMPTS + 1):
            now = self.clock()
            salary = LawyerSalary(
                lawyer_id=lawyer_id,
                case_id=case_id,
                amount=value,
                payment_status="paid",
                paid_at=now,
                paid_by=paid_by,
                payment_method="system_transfer",
                description=f"Salary payment for case {case_number}",
                transaction_id=generate_salary_transaction_id(now),
                created_at=now,
            )
            self.session.add(salary)
            try:
                self.session.commit()
            except IntegrityError:
                self.session.rollback()
                if self._existing_salary(lawyer_id, case_id) is not None:
                    raise DuplicatePayment("Payment already made for this case")
                logger.warning("Salary transaction id collision (attempt %d); retrying", attempt)
                continue
            self.session.refresh(salary)
            logger.info(
                "Paid lawyer %s %s for case %s (transaction %s)",
                lawyer_id,
                salary.amount,
                case_number,
                salary.transaction_id,
            )
            if self.actor is not None:
                self.activity_sink(
                    ActivityEntry.for_actor(
                        self.actor,
                        "payment_made",
                        f"Salary payment of {salary.amount} made to lawyer {lawyer_id} for case {case_number}",
                        target_type="lawyer_salary",
                        target_id=salary.id,
                        details={
                            "lawyer_id": lawyer_id,
                            "case_id": case_id,
                            "amount": str(salary.amount),
                            "transaction_id": salary.transaction_id,
                        },
                    )
                )
            return WorkflowResult.success(salary)

        raise RuntimeError(f"Could not allocate a unique salary transaction id after {TRANSACTION_ID_ATTEMPTS} attempts")

    def salary_summary(self, lawyer_id: Optional[int] = None) -> List[Dict[str, Any]]:
        stmt = select(LawyerSalary).order_by(LawyerSalary.id)
        if lawyer_id is not None:
            stmt = stmt.where(LawyerSalary.lawyer_id == lawyer_id)
        salaries = self.session.exec(stmt).all()
        return summarize_salaries(salaries, self._lawyers_by_id())

    def salary_report(self, year: int, month: int) -> Dict[str, Any]:
        salaries = self.session.exec(select(LawyerSalary).where(LawyerSalary.payment_status == "paid")).all()
        return monthly_salary_report(salaries, self._lawyers_by_id(), year, month)

    def _existing_salary(self, lawyer_id: int, case_id: int) -> Optional[LawyerSalary]:
        return self.session.exec(
            select(LawyerSalary).where(LawyerSalary.lawyer_id == lawyer_id, LawyerSalary.case_id == case_id)
        ).first()

    def _lawyers_by_id(self) -> Dict[int, Lawyer]:
        return {l.id: l for l in self.session.exec(select(Lawyer)).all()}
