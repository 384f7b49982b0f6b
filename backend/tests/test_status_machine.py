"""
Transition planning: legal moves, required inputs, and the effects each plan carries.
"""
from datetime import datetime, timedelta
from decimal import Decimal

import pytest

from backoffice.services import status_machine as sm
from backoffice.services.errors import INVALID_TRANSITION, MISSING_FIELD, InvalidTransition, MissingField

NOW = datetime(2026, 1, 31, 9, 0, 0)


def test_service_request_approval_from_processing_sets_expiry_and_payment():
    t = sm.plan_service_request_approval(
        "processing", actor_id="fm-1", now=NOW, notes="ok", package_duration="monthly", has_payment=True
    )
    updates = t.field_updates()
    assert t.to_status == "approved"
    assert updates["status"] == "approved"
    assert updates["approved_by"] == "fm-1"
    assert updates["approved_date"] == NOW
    assert updates["approval_notes"] == "ok"
    # Jan 31 + 1 month clamps to Feb 28
    assert updates["expiry_date"] == datetime(2026, 2, 28, 9, 0, 0)
    assert [p.payment_status for p in t.payment_effects()] == ["completed"]
    assert [a.action for a in t.activities()] == ["service_request_approved"]


def test_service_request_approval_unknown_duration_leaves_expiry_unset():
    t = sm.plan_service_request_approval("processing", actor_id="fm-1", now=NOW, package_duration="one_time")
    assert "expiry_date" not in t.field_updates()
    assert t.payment_effects() == []


@pytest.mark.parametrize("status", ["approved", "rejected", "active", "expired"])
def test_service_request_approval_rejects_non_processing(status):
    with pytest.raises(InvalidTransition) as exc:
        sm.plan_service_request_approval(status, actor_id="fm-1", now=NOW)
    assert exc.value.kind == INVALID_TRANSITION
    assert exc.value.current_status == status


@pytest.mark.parametrize("reason", [None, "", "   "])
def test_rejection_requires_reason(reason):
    with pytest.raises(MissingField) as exc:
        sm.plan_service_request_rejection("processing", actor_id="fm-1", now=NOW, reason=reason)
    assert exc.value.kind == MISSING_FIELD
    assert exc.value.field_name == "rejection_reason"


def test_missing_reason_reported_before_wrong_status():
    with pytest.raises(MissingField):
        sm.plan_individual_request_rejection("approved", actor_id="fm-1", now=NOW, reason="")


def test_package_rejection_does_not_touch_payment():
    t = sm.plan_service_request_rejection("processing", actor_id="fm-1", now=NOW, reason="Documents missing")
    assert t.payment_effects() == []
    assert t.field_updates()["rejection_reason"] == "Documents missing"


def test_individual_rejection_fails_payment_with_reason():
    t = sm.plan_individual_request_rejection(
        "processing", actor_id="fm-1", now=NOW, reason="Out of scope", has_payment=True
    )
    (effect,) = t.payment_effects()
    assert effect.payment_status == "failed"
    assert effect.failure_reason == "Out of scope"


def test_individual_approval_carries_assigned_lawyer():
    t = sm.plan_individual_request_approval("processing", actor_id="fm-1", now=NOW, assigned_lawyer_id=7)
    assert t.field_updates()["assigned_lawyer_id"] == 7


def test_aid_approval_defaults_to_requested_terms():
    t = sm.plan_aid_approval(
        "under_review",
        actor_id="fm-1",
        now=NOW,
        requested_amount=Decimal("5000.00"),
        discount_percentage=Decimal("40.00"),
    )
    details = t.field_updates()["approval_details"]
    assert details["approved_amount"] == "5000.00"
    assert details["approved_discount_percentage"] == "40.00"
    assert details["conditions"] == []
    assert details["valid_until"] == (NOW + timedelta(days=30)).isoformat()


def test_aid_approval_explicit_zero_amount_is_kept():
    t = sm.plan_aid_approval(
        "pending",
        actor_id="fm-1",
        now=NOW,
        requested_amount=Decimal("5000"),
        discount_percentage=Decimal("40"),
        approved_amount=Decimal("0"),
    )
    assert t.field_updates()["approval_details"]["approved_amount"] == "0"


@pytest.mark.parametrize("status", ["pending", "under_review", "requires_more_info"])
def test_aid_reviewable_statuses_can_be_rejected(status):
    t = sm.plan_aid_rejection(status, actor_id="fm-1", now=NOW, reason="Income above threshold")
    assert t.to_status == "rejected"


def test_aid_more_info_not_allowed_twice():
    with pytest.raises(InvalidTransition):
        sm.plan_aid_more_info("requires_more_info", actor_id="fm-1", now=NOW, message="Payslips please")


def test_aid_more_info_sets_follow_up():
    t = sm.plan_aid_more_info(
        "pending", actor_id="fm-1", now=NOW, message="Need payslips", required_documents=["payslip"]
    )
    updates = t.field_updates()
    assert updates["admin_response"] == {
        "message": "Need payslips",
        "response_date": NOW.isoformat(),
        "required_documents": ["payslip"],
    }
    assert updates["follow_up_required"] is True
    assert updates["follow_up_date"] == NOW + timedelta(days=7)


def test_aid_more_info_requires_message():
    with pytest.raises(MissingField) as exc:
        sm.plan_aid_more_info("pending", actor_id="fm-1", now=NOW, message=" ")
    assert exc.value.field_name == "message"


def test_override_allows_any_source_status():
    t = sm.plan_aid_status_override("rejected", "pending", actor_id="admin-1", now=NOW)
    assert t.from_status == "rejected"
    assert t.to_status == "pending"
    assert "review_notes" not in t.field_updates()
    assert t.payment_effects() == []


def test_override_rejects_status_outside_domain():
    with pytest.raises(MissingField) as exc:
        sm.plan_aid_status_override("pending", "archived", actor_id="admin-1", now=NOW)
    assert exc.value.field_name == "status"


def test_transition_table_has_no_exit_from_terminal_states():
    for kind, moves in sm.TRANSITIONS.items():
        sources = {src for src, _ in moves}
        assert "rejected" not in sources, kind
        assert "approved" not in sources, kind
