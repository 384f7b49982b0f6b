"""
Lawyer compensation ledger and salary payouts.
"""
import random
from datetime import datetime
from decimal import Decimal

import pytest
from sqlmodel import Session, select

from backoffice.models import LawyerSalary
from backoffice.services.actor import Actor
from backoffice.services.compensation import (
    CompensationCalculator,
    CompensationPolicy,
    generate_salary_transaction_id,
)
from backoffice.services.errors import DUPLICATE_PAYMENT, MISSING_FIELD, NOT_FOUND
from tests.factories import NOW, make_case, make_lawyer


@pytest.fixture
def entries():
    return []


@pytest.fixture
def calculator(session: Session, actor: Actor, entries):
    return CompensationCalculator(
        session, actor, CompensationPolicy(), clock=lambda: NOW, activity_sink=entries.append
    )


# ============================================================================
# Ledger
# ============================================================================


def test_ledger_counts_compensable_cases_at_flat_rate(session: Session, calculator):
    lawyer = make_lawyer(session)
    make_case(session, lawyer, "CASE-001", status="filed")
    make_case(session, lawyer, "CASE-002", status="hearing_scheduled")
    make_case(session, lawyer, "CASE-003", status="pending")

    (ledger,) = calculator.compute_ledger()

    assert ledger.lawyer_id == lawyer.id
    assert [c.case_number for c in ledger.cases] == ["CASE-001", "CASE-002"]
    assert ledger.total_cases == 2
    assert ledger.total_unpaid_cases == 2
    assert ledger.total_unpaid_amount == Decimal("5000")


def test_paid_case_uses_ledger_amount(session: Session, calculator):
    lawyer = make_lawyer(session)
    paid = make_case(session, lawyer, "CASE-001")
    make_case(session, lawyer, "CASE-002")
    assert calculator.pay_lawyer(lawyer.id, paid.id, "3000").ok

    (ledger,) = calculator.compute_ledger()

    by_number = {c.case_number: c for c in ledger.cases}
    assert by_number["CASE-001"].payment_status == "paid"
    assert by_number["CASE-001"].amount == Decimal("3000")
    assert by_number["CASE-001"].paid_at == NOW
    assert by_number["CASE-002"].payment_status == "unpaid"
    assert ledger.total_unpaid_cases == 1
    assert ledger.total_unpaid_amount == Decimal("2500")


def test_fallback_counts_all_cases_when_none_compensable(session: Session, calculator):
    lawyer = make_lawyer(session)
    make_case(session, lawyer, "CASE-001", status="pending")

    (ledger,) = calculator.compute_ledger()

    assert [c.case_number for c in ledger.cases] == ["CASE-001"]


def test_fallback_disabled_omits_lawyer(session: Session, actor: Actor):
    lawyer = make_lawyer(session)
    make_case(session, lawyer, "CASE-001", status="pending")
    policy = CompensationPolicy(fallback_to_all_cases=False)

    assert CompensationCalculator(session, actor, policy, activity_sink=lambda e: None).compute_ledger() == []


def test_custom_rate(session: Session, actor: Actor):
    lawyer = make_lawyer(session)
    make_case(session, lawyer, "CASE-001")
    policy = CompensationPolicy(rate_per_case=Decimal("4000"))

    (ledger,) = CompensationCalculator(session, actor, policy, activity_sink=lambda e: None).compute_ledger()

    assert ledger.total_unpaid_amount == Decimal("4000")


def test_ledger_sorted_by_unpaid_amount_ties_in_lawyer_order(session: Session, calculator):
    first = make_lawyer(session, "Amal Perera")
    second = make_lawyer(session, "Nimal Silva")
    third = make_lawyer(session, "Kamala Fernando")
    make_lawyer(session, "Idle Lawyer")
    make_case(session, first, "A-1")
    make_case(session, second, "B-1")
    make_case(session, second, "B-2")
    make_case(session, third, "C-1")

    ledgers = calculator.compute_ledger()

    assert [l.lawyer_id for l in ledgers] == [second.id, first.id, third.id]


def test_pending_lawyers_ignored_when_approved_exist(session: Session, calculator):
    approved = make_lawyer(session, "Amal Perera")
    pending = make_lawyer(session, "Nimal Silva", status="pending")
    make_case(session, approved, "A-1")
    make_case(session, pending, "B-1")

    assert [l.lawyer_id for l in calculator.compute_ledger()] == [approved.id]


def test_all_lawyers_used_when_none_approved(session: Session, calculator):
    pending = make_lawyer(session, "Nimal Silva", status="pending")
    make_case(session, pending, "B-1")

    assert [l.lawyer_id for l in calculator.compute_ledger()] == [pending.id]


# ============================================================================
# Payouts
# ============================================================================


def test_pay_lawyer_creates_paid_entry(session: Session, calculator, entries):
    lawyer = make_lawyer(session)
    case = make_case(session, lawyer, "CASE-2026-014")

    result = calculator.pay_lawyer(lawyer.id, case.id, 2500)

    assert result.ok
    salary = result.entity
    assert salary.payment_status == "paid"
    assert salary.amount == Decimal("2500")
    assert salary.paid_at == NOW
    assert salary.paid_by == "fm-1"
    assert salary.payment_method == "system_transfer"
    assert salary.description == "Salary payment for case CASE-2026-014"
    assert salary.transaction_id.startswith("SAL-")
    assert [e.action for e in entries] == ["payment_made"]


def test_second_payment_for_same_case_is_duplicate(session: Session, calculator):
    lawyer = make_lawyer(session)
    case = make_case(session, lawyer, "CASE-001")

    first = calculator.pay_lawyer(lawyer.id, case.id, 2500)
    second = calculator.pay_lawyer(lawyer.id, case.id, 2500)

    assert first.ok
    assert second.kind == DUPLICATE_PAYMENT
    assert len(session.exec(select(LawyerSalary)).all()) == 1


def test_unique_constraint_maps_to_duplicate(session: Session, calculator, monkeypatch):
    lawyer = make_lawyer(session)
    case = make_case(session, lawyer, "CASE-001")
    assert calculator.pay_lawyer(lawyer.id, case.id, 2500).ok

    # Skip the up-front check so the insert hits the (lawyer_id, case_id) constraint
    real_lookup = calculator._existing_salary
    calls = []

    def racing_lookup(lawyer_id, case_id):
        calls.append((lawyer_id, case_id))
        return None if len(calls) == 1 else real_lookup(lawyer_id, case_id)

    monkeypatch.setattr(calculator, "_existing_salary", racing_lookup)

    result = calculator.pay_lawyer(lawyer.id, case.id, 2500)

    assert result.kind == DUPLICATE_PAYMENT
    assert len(session.exec(select(LawyerSalary)).all()) == 1


@pytest.mark.parametrize(
    "lawyer_id,case_id,amount,field",
    [
        (None, 1, 2500, "lawyer_id"),
        (1, None, 2500, "case_id"),
        (1, 1, None, "amount"),
        (1, 1, 0, "amount"),
        (1, 1, -10, "amount"),
        (1, 1, "abc", "amount"),
    ],
)
def test_pay_lawyer_input_validation(calculator, lawyer_id, case_id, amount, field):
    result = calculator.pay_lawyer(lawyer_id, case_id, amount)
    assert result.kind == MISSING_FIELD
    assert result.field_name == field


def test_pay_lawyer_unknown_lawyer_or_case(session: Session, calculator):
    lawyer = make_lawyer(session)
    case = make_case(session, lawyer, "CASE-001")

    assert calculator.pay_lawyer(999, case.id, 2500).kind == NOT_FOUND
    assert calculator.pay_lawyer(lawyer.id, 999, 2500).kind == NOT_FOUND


def test_transaction_id_format():
    tx = generate_salary_transaction_id(datetime(1970, 1, 1, 0, 0, 1), rng=random.Random(7))
    prefix, stamp, suffix = tx.split("-")
    assert prefix == "SAL"
    assert stamp == "RS"  # 1000 ms in base36
    assert len(suffix) == 5
    assert tx == tx.upper()


# ============================================================================
# Summaries
# ============================================================================


def test_salary_summary_and_monthly_report(session: Session, actor: Actor):
    amal = make_lawyer(session, "Amal Perera")
    nimal = make_lawyer(session, "Nimal Silva")
    a1 = make_case(session, amal, "A-1")
    b1 = make_case(session, nimal, "B-1")
    b2 = make_case(session, nimal, "B-2")

    march = CompensationCalculator(session, actor, CompensationPolicy(), clock=lambda: NOW, activity_sink=lambda e: None)
    april = CompensationCalculator(
        session, actor, CompensationPolicy(), clock=lambda: datetime(2026, 4, 2), activity_sink=lambda e: None
    )
    assert march.pay_lawyer(amal.id, a1.id, 2500).ok
    assert march.pay_lawyer(nimal.id, b1.id, 3000).ok
    assert april.pay_lawyer(nimal.id, b2.id, 2000).ok

    summary = march.salary_summary()
    assert [(r["lawyer_id"], r["paid_cases"], r["paid_amount"]) for r in summary] == [
        (amal.id, 1, 2500.0),
        (nimal.id, 2, 5000.0),
    ]

    report = march.salary_report(2026, 3)
    assert [(r["lawyer_id"], r["total_paid"], r["case_count"]) for r in report["lawyers"]] == [
        (nimal.id, 3000.0, 1),
        (amal.id, 2500.0, 1),
    ]
    assert report["total_paid"] == 5500.0


def test_processing_entries_are_neither_paid_nor_unpaid(session: Session, calculator):
    lawyer = make_lawyer(session, "Amal Perera")
    case = make_case(session, lawyer, "A-1")
    session.add(LawyerSalary(lawyer_id=lawyer.id, case_id=case.id, amount=Decimal("2500"), payment_status="processing"))
    session.commit()

    [row] = calculator.salary_summary()

    assert row["total_cases"] == 1
    assert row["total_amount"] == 2500.0
    assert (row["paid_cases"], row["paid_amount"]) == (0, 0.0)
    assert (row["unpaid_cases"], row["unpaid_amount"]) == (0, 0.0)
