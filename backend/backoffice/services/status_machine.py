"""
Status State Machine
====================
Legal status transitions for the three request kinds, and the side effects
each transition carries.

Every ``plan_*`` function is pure: it takes the current status plus the
caller's inputs and returns a ``Transition`` (target status + effect list) or
raises a ``WorkflowError``. Nothing is read from or written to storage here;
the settlement coordinator applies the effects.

Request kinds:
  service_request             processing -> approved | rejected
                              (approved ages into active/expired externally)
  individual_service_request  processing -> approved | rejected
                              (in_progress / completed set by case flow)
  financial_aid_request       pending | under_review | requires_more_info -> approved | rejected
                              pending | under_review -> requires_more_info
                              any -> any  (override_status, unguarded)
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import Any, Dict, FrozenSet, List, Optional, Sequence, Tuple, Union

from backoffice.models.financial_aid_request import AID_STATUSES
from backoffice.models.payment_transaction import PAYMENT_COMPLETED, PAYMENT_FAILED
from backoffice.services.errors import InvalidTransition, MissingField
from backoffice.utils.dates import days_after, package_expiry

SERVICE_REQUEST = "service_request"
INDIVIDUAL_SERVICE_REQUEST = "individual_service_request"
FINANCIAL_AID_REQUEST = "financial_aid_request"

SERVICE_REQUEST_STATUSES = ("processing", "approved", "rejected", "active", "expired")
INDIVIDUAL_REQUEST_STATUSES = ("processing", "approved", "rejected", "in_progress", "completed")

AID_APPROVAL_VALID_DAYS = 30
AID_FOLLOW_UP_DAYS = 7

_AID_REVIEWABLE = ("pending", "under_review", "requires_more_info")

TRANSITIONS: Dict[str, FrozenSet[Tuple[str, str]]] = {
    SERVICE_REQUEST: frozenset({("processing", "approved"), ("processing", "rejected")}),
    INDIVIDUAL_SERVICE_REQUEST: frozenset({("processing", "approved"), ("processing", "rejected")}),
    FINANCIAL_AID_REQUEST: frozenset(
        {(s, "approved") for s in _AID_REVIEWABLE}
        | {(s, "rejected") for s in _AID_REVIEWABLE}
        | {("pending", "requires_more_info"), ("under_review", "requires_more_info")}
    ),
}


# ─── Effects ────────────────────────────────────────────────────────────


@dataclass(frozen=True)
class UpdateFields:
    """Assign columns on the request row."""

    values: Dict[str, Any]


@dataclass(frozen=True)
class SyncPayment:
    """Move the request's linked payment transaction to ``payment_status``."""

    payment_status: str
    failure_reason: Optional[str] = None


@dataclass(frozen=True)
class RecordActivity:
    action: str
    description: str


Effect = Union[UpdateFields, SyncPayment, RecordActivity]


@dataclass(frozen=True)
class Transition:
    request_kind: str
    from_status: str
    to_status: str
    effects: Tuple[Effect, ...] = ()

    def field_updates(self) -> Dict[str, Any]:
        """All UpdateFields merged, plus the new status."""
        merged: Dict[str, Any] = {}
        for effect in self.effects:
            if isinstance(effect, UpdateFields):
                merged.update(effect.values)
        merged["status"] = self.to_status
        return merged

    def payment_effects(self) -> List[SyncPayment]:
        return [e for e in self.effects if isinstance(e, SyncPayment)]

    def activities(self) -> List[RecordActivity]:
        return [e for e in self.effects if isinstance(e, RecordActivity)]


# ─── Guards ─────────────────────────────────────────────────────────────


def is_allowed(request_kind: str, current_status: str, target_status: str) -> bool:
    return (current_status, target_status) in TRANSITIONS[request_kind]


def check_transition(request_kind: str, current_status: str, target_status: str) -> None:
    """Raise InvalidTransition unless current -> target is a legal guarded move."""
    if not is_allowed(request_kind, current_status, target_status):
        sources = sorted({src for src, dst in TRANSITIONS[request_kind] if dst == target_status})
        raise InvalidTransition(
            f"Cannot move {request_kind} from '{current_status}' to '{target_status}'; "
            f"allowed from: {', '.join(sources) or 'none'}",
            current_status=current_status,
            target_status=target_status,
        )


def _require_text(value: Any, field_name: str, message: Optional[str] = None) -> str:
    text = str(value).strip() if value is not None else ""
    if not text:
        raise MissingField(field_name, message)
    return text


def _money(value: Any) -> str:
    return str(Decimal(str(value)))


# ─── Service requests (package purchases) ──────────────────────────────


def plan_service_request_approval(
    current_status: str,
    *,
    actor_id: str,
    now: datetime,
    notes: Optional[str] = None,
    package_duration: Optional[str] = None,
    has_payment: bool = False,
) -> Transition:
    check_transition(SERVICE_REQUEST, current_status, "approved")
    values = {
        "approved_by": actor_id,
        "approved_date": now,
        "approval_notes": notes,
        "updated_at": now,
    }
    expiry = package_expiry(now, package_duration)
    if expiry is not None:
        values["expiry_date"] = expiry
    effects: List[Effect] = [UpdateFields(values)]
    if has_payment:
        effects.append(SyncPayment(PAYMENT_COMPLETED))
    effects.append(RecordActivity("service_request_approved", "Service request approved"))
    return Transition(SERVICE_REQUEST, current_status, "approved", tuple(effects))


def plan_service_request_rejection(
    current_status: str,
    *,
    actor_id: str,
    now: datetime,
    reason: Optional[str],
) -> Transition:
    # Package rejections leave the payment transaction untouched (refunds are handled offline)
    reason_text = _require_text(reason, "rejection_reason", "Rejection reason is required")
    check_transition(SERVICE_REQUEST, current_status, "rejected")
    values = {
        "rejected_by": actor_id,
        "rejected_date": now,
        "rejection_reason": reason_text,
        "updated_at": now,
    }
    return Transition(
        SERVICE_REQUEST,
        current_status,
        "rejected",
        (UpdateFields(values), RecordActivity("service_request_rejected", f"Service request rejected: {reason_text}")),
    )


# ─── Individual service requests ────────────────────────────────────────


def plan_individual_request_approval(
    current_status: str,
    *,
    actor_id: str,
    now: datetime,
    notes: Optional[str] = None,
    assigned_lawyer_id: Optional[int] = None,
    has_payment: bool = False,
) -> Transition:
    check_transition(INDIVIDUAL_SERVICE_REQUEST, current_status, "approved")
    values: Dict[str, Any] = {
        "approved_by": actor_id,
        "approved_date": now,
        "approval_notes": notes,
        "updated_at": now,
    }
    if assigned_lawyer_id is not None:
        values["assigned_lawyer_id"] = assigned_lawyer_id
    effects: List[Effect] = [UpdateFields(values)]
    if has_payment:
        effects.append(SyncPayment(PAYMENT_COMPLETED))
    effects.append(RecordActivity("individual_request_approved", "Individual service request approved"))
    return Transition(INDIVIDUAL_SERVICE_REQUEST, current_status, "approved", tuple(effects))


def plan_individual_request_rejection(
    current_status: str,
    *,
    actor_id: str,
    now: datetime,
    reason: Optional[str],
    has_payment: bool = False,
) -> Transition:
    reason_text = _require_text(reason, "rejection_reason", "Rejection reason is required")
    check_transition(INDIVIDUAL_SERVICE_REQUEST, current_status, "rejected")
    values = {
        "rejected_by": actor_id,
        "rejected_date": now,
        "rejection_reason": reason_text,
        "updated_at": now,
    }
    effects: List[Effect] = [UpdateFields(values)]
    if has_payment:
        effects.append(SyncPayment(PAYMENT_FAILED, failure_reason=reason_text))
    effects.append(
        RecordActivity("individual_request_rejected", f"Individual service request rejected: {reason_text}")
    )
    return Transition(INDIVIDUAL_SERVICE_REQUEST, current_status, "rejected", tuple(effects))


# ─── Financial aid requests ─────────────────────────────────────────────


def plan_aid_approval(
    current_status: str,
    *,
    actor_id: str,
    now: datetime,
    requested_amount: Any,
    discount_percentage: Any,
    approved_amount: Any = None,
    approved_discount_percentage: Any = None,
    payment_plan: Optional[str] = None,
    conditions: Optional[Sequence[str]] = None,
    valid_until: Optional[datetime] = None,
    review_notes: Optional[str] = None,
) -> Transition:
    """
    Approve an aid request. Amount and discount default to what the client
    asked for; the approval is valid for 30 days unless ``valid_until`` is given.
    """
    check_transition(FINANCIAL_AID_REQUEST, current_status, "approved")
    amount = approved_amount if approved_amount is not None else requested_amount
    discount = approved_discount_percentage if approved_discount_percentage is not None else discount_percentage
    expires = valid_until if valid_until is not None else days_after(now, AID_APPROVAL_VALID_DAYS)
    details = {
        "approved_amount": _money(amount),
        "approved_discount_percentage": _money(discount),
        "payment_plan": payment_plan,
        "conditions": list(conditions or []),
        "valid_until": expires.isoformat(),
    }
    values = {
        "reviewed_by": actor_id,
        "review_date": now,
        "review_notes": review_notes,
        "approval_details": details,
        "updated_at": now,
    }
    return Transition(
        FINANCIAL_AID_REQUEST,
        current_status,
        "approved",
        (UpdateFields(values), RecordActivity("aid_request_approved", "Financial aid request approved")),
    )


def plan_aid_rejection(
    current_status: str,
    *,
    actor_id: str,
    now: datetime,
    reason: Optional[str],
    review_notes: Optional[str] = None,
) -> Transition:
    reason_text = _require_text(reason, "rejection_reason", "Rejection reason is required")
    check_transition(FINANCIAL_AID_REQUEST, current_status, "rejected")
    values = {
        "reviewed_by": actor_id,
        "review_date": now,
        "rejection_reason": reason_text,
        "review_notes": review_notes,
        "updated_at": now,
    }
    return Transition(
        FINANCIAL_AID_REQUEST,
        current_status,
        "rejected",
        (UpdateFields(values), RecordActivity("aid_request_rejected", f"Financial aid request rejected: {reason_text}")),
    )


def plan_aid_more_info(
    current_status: str,
    *,
    actor_id: str,
    now: datetime,
    message: Optional[str],
    required_documents: Optional[Sequence[str]] = None,
    review_notes: Optional[str] = None,
) -> Transition:
    message_text = _require_text(message, "message", "Message is required when requesting more information")
    check_transition(FINANCIAL_AID_REQUEST, current_status, "requires_more_info")
    values = {
        "reviewed_by": actor_id,
        "review_date": now,
        "review_notes": review_notes,
        "admin_response": {
            "message": message_text,
            "response_date": now.isoformat(),
            "required_documents": list(required_documents or []),
        },
        "follow_up_required": True,
        "follow_up_date": days_after(now, AID_FOLLOW_UP_DAYS),
        "updated_at": now,
    }
    return Transition(
        FINANCIAL_AID_REQUEST,
        current_status,
        "requires_more_info",
        (UpdateFields(values), RecordActivity("aid_request_info_requested", message_text)),
    )


def plan_aid_status_override(
    current_status: str,
    new_status: Optional[str],
    *,
    actor_id: str,
    now: datetime,
    review_notes: Optional[str] = None,
) -> Transition:
    """
    Administrative override: any of the five statuses from any source.

    Outside TRANSITIONS and free of payment effects; approval
    details and follow-up fields are left as they are.
    """
    target = _require_text(new_status, "status")
    if target not in AID_STATUSES:
        raise MissingField("status", f"Invalid status '{target}'; expected one of: {', '.join(AID_STATUSES)}")
    values: Dict[str, Any] = {"reviewed_by": actor_id, "review_date": now, "updated_at": now}
    if review_notes:
        values["review_notes"] = review_notes
    return Transition(
        FINANCIAL_AID_REQUEST,
        current_status,
        target,
        (
            UpdateFields(values),
            RecordActivity("aid_request_status_changed", f"Status changed from {current_status} to {target}"),
        ),
    )
