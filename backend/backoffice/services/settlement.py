"""
Settlement Coordinator
======================
Executes one request transition end-to-end:

  1. load the request (NotFound)
  2. plan the transition with the status machine (InvalidTransition / MissingField)
  3. write the new status with a compare-and-swap on the status column, so
     two callers racing on the same request cannot both win
  4. apply payment-transaction side effects (best effort, logged on failure)
  5. emit activity log entries (fire-and-forget)

Every public method returns a WorkflowResult; WorkflowErrors never escape.
"""

import logging
from datetime import datetime
from typing import Any, Callable, List, Optional, Sequence, Type

from sqlalchemy import update
from sqlalchemy.exc import SQLAlchemyError
from sqlmodel import Session, SQLModel, select

from backoffice.models.financial_aid_request import FinancialAidRequest
from backoffice.models.individual_service_request import IndividualServiceRequest
from backoffice.models.lawyer import Lawyer
from backoffice.models.payment_transaction import PAYMENT_COMPLETED, PaymentTransaction
from backoffice.models.service_request import ServiceRequest
from backoffice.services import status_machine as sm
from backoffice.services.activity_log import ActivityEntry, ActivityLogWriter, ActivitySink
from backoffice.services.actor import Actor
from backoffice.services.errors import InvalidTransition, NotFound, WorkflowError, WorkflowResult
from backoffice.utils.dates import utcnow

logger = logging.getLogger(__name__)


class SettlementCoordinator:
    def __init__(
        self,
        session: Session,
        actor: Actor,
        *,
        clock: Callable[[], datetime] = utcnow,
        activity_sink: Optional[ActivitySink] = None,
    ):
        self.session = session
        self.actor = actor
        self.clock = clock
        self.activity_sink = activity_sink or ActivityLogWriter(session.get_bind())

    # ─── Package service requests ──────────────────────────────────────

    def approve_service_request(self, request_id: int, notes: Optional[str] = None) -> WorkflowResult:
        def run() -> WorkflowResult:
            request = self._load(ServiceRequest, request_id, "Service request")
            now = self.clock()
            package = request.package
            transition = sm.plan_service_request_approval(
                request.status,
                actor_id=self.actor.user_id,
                now=now,
                notes=notes,
                package_duration=package.duration if package else None,
                has_payment=request.payment_transaction_id is not None,
            )
            return self._commit(ServiceRequest, request, transition, now)

        return self._run(run)

    def reject_service_request(self, request_id: int, reason: Optional[str]) -> WorkflowResult:
        def run() -> WorkflowResult:
            request = self._load(ServiceRequest, request_id, "Service request")
            now = self.clock()
            transition = sm.plan_service_request_rejection(
                request.status, actor_id=self.actor.user_id, now=now, reason=reason
            )
            return self._commit(ServiceRequest, request, transition, now)

        return self._run(run)

    # ─── Individual service requests ───────────────────────────────────

    def approve_individual_request(
        self,
        request_id: int,
        notes: Optional[str] = None,
        assigned_lawyer_id: Optional[int] = None,
    ) -> WorkflowResult:
        def run() -> WorkflowResult:
            request = self._load(IndividualServiceRequest, request_id, "Individual service request")
            if assigned_lawyer_id is not None:
                self._load(Lawyer, assigned_lawyer_id, "Lawyer")
            now = self.clock()
            transition = sm.plan_individual_request_approval(
                request.status,
                actor_id=self.actor.user_id,
                now=now,
                notes=notes,
                assigned_lawyer_id=assigned_lawyer_id,
                has_payment=request.payment_transaction_id is not None,
            )
            return self._commit(IndividualServiceRequest, request, transition, now)

        return self._run(run)

    def reject_individual_request(self, request_id: int, reason: Optional[str]) -> WorkflowResult:
        def run() -> WorkflowResult:
            request = self._load(IndividualServiceRequest, request_id, "Individual service request")
            now = self.clock()
            transition = sm.plan_individual_request_rejection(
                request.status,
                actor_id=self.actor.user_id,
                now=now,
                reason=reason,
                has_payment=request.payment_transaction_id is not None,
            )
            return self._commit(IndividualServiceRequest, request, transition, now)

        return self._run(run)

    # ─── Financial aid requests ────────────────────────────────────────

    def approve_aid_request(
        self,
        request_id: int,
        *,
        approved_amount: Any = None,
        approved_discount_percentage: Any = None,
        payment_plan: Optional[str] = None,
        conditions: Optional[Sequence[str]] = None,
        valid_until: Optional[datetime] = None,
        review_notes: Optional[str] = None,
    ) -> WorkflowResult:
        def run() -> WorkflowResult:
            request = self._load(FinancialAidRequest, request_id, "Financial aid request")
            now = self.clock()
            transition = sm.plan_aid_approval(
                request.status,
                actor_id=self.actor.user_id,
                now=now,
                requested_amount=request.requested_amount,
                discount_percentage=request.discount_percentage,
                approved_amount=approved_amount,
                approved_discount_percentage=approved_discount_percentage,
                payment_plan=payment_plan,
                conditions=conditions,
                valid_until=valid_until,
                review_notes=review_notes,
            )
            return self._commit(FinancialAidRequest, request, transition, now)

        return self._run(run)

    def reject_aid_request(
        self, request_id: int, reason: Optional[str], review_notes: Optional[str] = None
    ) -> WorkflowResult:
        def run() -> WorkflowResult:
            request = self._load(FinancialAidRequest, request_id, "Financial aid request")
            now = self.clock()
            transition = sm.plan_aid_rejection(
                request.status, actor_id=self.actor.user_id, now=now, reason=reason, review_notes=review_notes
            )
            return self._commit(FinancialAidRequest, request, transition, now)

        return self._run(run)

    def request_more_info(
        self,
        request_id: int,
        message: Optional[str],
        required_documents: Optional[Sequence[str]] = None,
        review_notes: Optional[str] = None,
    ) -> WorkflowResult:
        def run() -> WorkflowResult:
            request = self._load(FinancialAidRequest, request_id, "Financial aid request")
            now = self.clock()
            transition = sm.plan_aid_more_info(
                request.status,
                actor_id=self.actor.user_id,
                now=now,
                message=message,
                required_documents=required_documents,
                review_notes=review_notes,
            )
            return self._commit(FinancialAidRequest, request, transition, now)

        return self._run(run)

    def override_aid_status(
        self, request_id: int, status: Optional[str], review_notes: Optional[str] = None
    ) -> WorkflowResult:
        """
        Administrative status override. Unguarded: no source-status check and
        no compare-and-swap, and no payment or approval-detail side effects.
        """

        def run() -> WorkflowResult:
            request = self._load(FinancialAidRequest, request_id, "Financial aid request")
            now = self.clock()
            transition = sm.plan_aid_status_override(
                request.status, status, actor_id=self.actor.user_id, now=now, review_notes=review_notes
            )
            return self._commit(FinancialAidRequest, request, transition, now, guarded=False)

        return self._run(run)

    # ─── Internals ─────────────────────────────────────────────────────

    def _run(self, operation: Callable[[], WorkflowResult]) -> WorkflowResult:
        try:
            return operation()
        except WorkflowError as exc:
            self.session.rollback()
            logger.info("Workflow call by %s refused: %s (%s)", self.actor.user_id, exc.kind, exc.message)
            return WorkflowResult.failure(exc)

    def _load(self, model: Type[SQLModel], entity_id: Optional[int], label: str) -> Any:
        entity = self.session.get(model, entity_id) if entity_id is not None else None
        if entity is None:
            raise NotFound(f"{label} not found")
        return entity

    def _commit(
        self,
        model: Type[SQLModel],
        entity: Any,
        transition: sm.Transition,
        now: datetime,
        *,
        guarded: bool = True,
    ) -> WorkflowResult:
        entity_id = entity.id
        payment_id = getattr(entity, "payment_transaction_id", None)

        stmt = update(model).where(model.id == entity_id)
        if guarded:
            # Compare-and-swap: only the caller that still sees the planned source status wins
            stmt = stmt.where(model.status == transition.from_status)
        stmt = stmt.values(**transition.field_updates()).execution_options(synchronize_session=False)

        result = self.session.execute(stmt)
        if result.rowcount != 1:
            self.session.rollback()
            current = self.session.exec(select(model.status).where(model.id == entity_id)).first()
            if current is None:
                raise NotFound(f"{model.__name__} {entity_id} no longer exists")
            raise InvalidTransition(
                f"{transition.request_kind} {entity_id} changed concurrently; "
                f"current status is '{current}', expected '{transition.from_status}'",
                current_status=current,
                target_status=transition.to_status,
            )
        self.session.commit()
        logger.info(
            "%s %s: %s -> %s by %s",
            transition.request_kind,
            entity_id,
            transition.from_status,
            transition.to_status,
            self.actor.user_id,
        )

        warnings = self._apply_payment_effects(payment_id, transition, now)
        self._emit_activities(transition, entity_id, payment_id)

        self.session.refresh(entity)
        return WorkflowResult.success(entity, warnings)

    def _apply_payment_effects(
        self, payment_id: Optional[int], transition: sm.Transition, now: datetime
    ) -> List[str]:
        """
        Sync the linked payment transaction. Secondary, best-effort: the status
        change above is already committed, so failures become warnings.
        """
        warnings: List[str] = []
        if payment_id is None:
            return warnings
        for effect in transition.payment_effects():
            try:
                payment = self.session.get(PaymentTransaction, payment_id)
                if payment is None:
                    message = f"Linked payment transaction {payment_id} not found; payment status not synced"
                    logger.warning(message)
                    warnings.append(message)
                    continue
                payment.payment_status = effect.payment_status
                payment.updated_at = now
                if effect.payment_status == PAYMENT_COMPLETED:
                    payment.completed_at = now
                else:
                    payment.failed_at = now
                    payment.failure_reason = effect.failure_reason
                self.session.add(payment)
                self.session.commit()
                logger.info("Payment transaction %s marked %s", payment_id, effect.payment_status)
            except SQLAlchemyError as exc:
                self.session.rollback()
                message = f"Payment transaction {payment_id} could not be marked {effect.payment_status}: {exc}"
                logger.warning(message)
                warnings.append(message)
        return warnings

    def _emit_activities(self, transition: sm.Transition, entity_id: int, payment_id: Optional[int]) -> None:
        for activity in transition.activities():
            self.activity_sink(
                ActivityEntry.for_actor(
                    self.actor,
                    activity.action,
                    activity.description,
                    target_type=transition.request_kind,
                    target_id=entity_id,
                    details={
                        "from_status": transition.from_status,
                        "to_status": transition.to_status,
                        "payment_transaction_id": payment_id,
                    },
                )
            )
        for effect in transition.payment_effects():
            action = "payment_made" if effect.payment_status == PAYMENT_COMPLETED else "payment_failed"
            self.activity_sink(
                ActivityEntry.for_actor(
                    self.actor,
                    action,
                    f"Payment transaction {payment_id} marked {effect.payment_status}",
                    target_type="payment_transaction",
                    target_id=payment_id,
                )
            )
