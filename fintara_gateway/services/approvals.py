"""Staff side of the workflow: review, approve, disburse"""

import time
import uuid
from dataclasses import dataclass, field
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session
from sqlalchemy.orm.exc import StaleDataError

from fintara_gateway.domain.exceptions import (
    DomainException,
    ForbiddenError,
    NotReadyError,
    PersistenceFailureError,
)
from fintara_gateway.domain.models import (
    Actor,
    LoanStatus,
    Notification,
    NotificationChannel,
    ReviewNotes,
    Role,
)
from fintara_gateway.domain.workflow import (
    BRANCH_MANAGER_STAGE,
    DISBURSEMENT_STAGE,
    MARKETING_STAGE,
    Stage,
    authorize,
    can_act,
    stage_for,
    validate_target,
)
from fintara_gateway.infrastructure.database.models import CustomerDetails, LoanApproval, LoanRequest, User
from fintara_gateway.infrastructure.database.repositories import (
    CustomerRepository,
    LoanApprovalRepository,
    LoanRequestRepository,
    UserRepository,
)
from fintara_gateway.infrastructure.observability.logging import log_transition
from fintara_gateway.infrastructure.observability.metrics import record_rejection, record_transition
from fintara_gateway.services.disbursement import DisbursementProcessor


_MARKETING_OUTCOMES = (LoanStatus.MARKETING_RECOMMENDED, LoanStatus.MARKETING_REJECTED)
_BM_OUTCOMES = (LoanStatus.BM_APPROVED, LoanStatus.BM_REJECTED)
_BACK_OFFICE_OUTCOMES = (LoanStatus.DISBURSED, LoanStatus.DISBURSEMENT_DECLINED)


@dataclass
class TransitionResult:
    loan_request: LoanRequest
    approval: LoanApproval
    from_status: LoanStatus
    notifications: List[Notification] = field(default_factory=list)


@dataclass
class LoanRequestDetail:
    """Loan request with its customer and the latest note of each review stage"""

    loan_request: LoanRequest
    customer: CustomerDetails
    applicant: User
    marketing_notes: Optional[LoanApproval] = None
    branch_manager_notes: Optional[LoanApproval] = None
    back_office_notes: Optional[LoanApproval] = None


def _money(value: Decimal) -> str:
    return f"{Decimal(value):,.2f}"


def _latest(approvals: List[LoanApproval], statuses) -> Optional[LoanApproval]:
    matching = [a for a in approvals if a.status in statuses]
    return matching[-1] if matching else None


class ApprovalService:
    """Moves loan requests through the review stages"""

    def __init__(self, db: Session, disbursement: DisbursementProcessor | None = None):
        self.db = db
        self.loan_requests = LoanRequestRepository(db)
        self.approvals = LoanApprovalRepository(db)
        self.customers = CustomerRepository(db)
        self.users = UserRepository(db)
        self.disbursement = disbursement or DisbursementProcessor(db)

    def transition(
        self,
        loan_request_id: uuid.UUID,
        actor: Actor,
        target,
        notes: ReviewNotes | None = None,
        expected_stage: Stage | None = None,
        request_id: Optional[str] = None,
    ) -> TransitionResult:
        """
        Move a request to `target` and append the approval record.

        Flow:
        1. Lock the request row
        2. Check it sits in `expected_stage` when the caller names one
        3. Authorize the actor and validate the target against the stage
        4. Apply disbursement side effects for the final stage
        5. Update status and stage timestamp, write the approval record
        6. Commit, then hand back notifications for delivery

        Raises:
            NotFoundError: unknown request
            NotReadyError: request not in the expected stage, or changed concurrently
            ForbiddenError: terminal status or actor not entitled
            InvalidInputError: target is not an outcome of the current stage
            InsufficientLimitError: disbursement exceeds remaining credit
            PersistenceFailureError: storage failure; nothing was changed
        """
        start_time = time.time()
        notes = notes or ReviewNotes()
        operation = expected_stage.name if expected_stage else "transition"

        try:
            loan_request = self.loan_requests.get_for_update(loan_request_id)
            from_status = LoanStatus(loan_request.status)

            if expected_stage is not None and stage_for(from_status) is not expected_stage:
                raise NotReadyError(
                    f"Loan request is not awaiting {expected_stage.name}",
                    details={"status": from_status.value},
                )

            stage = authorize(actor, from_status, loan_request.marketing_id, loan_request.branch_id)
            to_status = validate_target(stage, target)
            now = datetime.now(timezone.utc)

            disbursed_principal: Optional[Decimal] = None
            if stage is DISBURSEMENT_STAGE:
                disbursed_principal = self.disbursement.process(loan_request, actor, to_status, now)

            loan_request.status = to_status
            setattr(loan_request, stage.timestamp_field, now)
            approval = self.approvals.create(loan_request.id, actor.id, to_status, notes, now)
            self.db.flush()

            notifications = self._notifications_for(loan_request, to_status)
            self.db.commit()

        except DomainException as e:
            self.db.rollback()
            record_rejection(operation, e.code)
            raise
        except StaleDataError as e:
            self.db.rollback()
            record_rejection(operation, NotReadyError.code)
            raise NotReadyError("Loan request was modified concurrently, reload and retry") from e
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceFailureError("Failed to save loan request transition") from e

        record_transition(from_status.value, to_status.value, disbursed_principal)
        log_transition(
            request_id,
            str(loan_request.id),
            str(actor.id),
            from_status.value,
            to_status.value,
            (time.time() - start_time) * 1000,
        )
        return TransitionResult(
            loan_request=loan_request,
            approval=approval,
            from_status=from_status,
            notifications=notifications,
        )

    def review_by_marketing(self, loan_request_id: uuid.UUID, actor: Actor, target, notes: ReviewNotes | None = None,
                            request_id: Optional[str] = None) -> TransitionResult:
        return self.transition(loan_request_id, actor, target, notes, MARKETING_STAGE, request_id)

    def review_by_branch_manager(self, loan_request_id: uuid.UUID, actor: Actor, target,
                                 notes: ReviewNotes | None = None,
                                 request_id: Optional[str] = None) -> TransitionResult:
        return self.transition(loan_request_id, actor, target, notes, BRANCH_MANAGER_STAGE, request_id)

    def disburse(self, loan_request_id: uuid.UUID, actor: Actor, target, notes: ReviewNotes | None = None,
                 request_id: Optional[str] = None) -> TransitionResult:
        return self.transition(loan_request_id, actor, target, notes, DISBURSEMENT_STAGE, request_id)

    def _notifications_for(self, loan_request: LoanRequest, status: LoanStatus) -> List[Notification]:
        if status not in (LoanStatus.BM_APPROVED, LoanStatus.DISBURSED, LoanStatus.DISBURSEMENT_DECLINED):
            return []

        customer = self.customers.get(loan_request.customer_id)
        applicant = self.users.get(customer.user_id)
        recipient = str(applicant.id)

        if status == LoanStatus.BM_APPROVED:
            return [
                Notification(
                    channel=NotificationChannel.PUSH,
                    recipient=recipient,
                    title="Loan application approved",
                    body="Your loan application has been approved by the branch manager and is awaiting disbursement.",
                )
            ]

        if status == LoanStatus.DISBURSED:
            return [
                Notification(
                    channel=NotificationChannel.PUSH,
                    recipient=recipient,
                    title="Loan disbursed",
                    body=f"Your loan of {_money(loan_request.disbursed_amount)} has been disbursed to your account.",
                ),
                Notification(
                    channel=NotificationChannel.EMAIL,
                    recipient=applicant.email,
                    template="loan_disbursed",
                    params={"name": applicant.name, "disbursed_amount": _money(loan_request.disbursed_amount)},
                ),
            ]

        return [
            Notification(
                channel=NotificationChannel.PUSH,
                recipient=recipient,
                title="Loan disbursement failed",
                body="Your loan could not be disbursed. Please contact customer service.",
            ),
            Notification(
                channel=NotificationChannel.EMAIL,
                recipient=applicant.email,
                template="loan_disbursement_failed",
                params={"name": applicant.name, "amount": _money(loan_request.amount)},
            ),
        ]

    def get_for_actor(self, loan_request_id: uuid.UUID, actor: Actor) -> LoanRequestDetail:
        """
        Detail view for staff.

        Visible to whoever may act on the current status and to anyone who
        already handled the request at an earlier stage.
        """
        loan_request = self.loan_requests.get(loan_request_id)
        entitled = can_act(actor, loan_request.status, loan_request.marketing_id, loan_request.branch_id)
        if not entitled and not self.approvals.has_handled(loan_request.id, actor.id):
            stage = stage_for(loan_request.status)
            message = stage.denied_message if stage else "You are not allowed to access this loan request"
            raise ForbiddenError(message)

        history = self.approvals.find_by_loan_request(loan_request.id)
        return self._detail(loan_request, history)

    def _detail(self, loan_request: LoanRequest, history: List[LoanApproval] | None = None) -> LoanRequestDetail:
        history = history or []
        customer = self.customers.get(loan_request.customer_id)
        return LoanRequestDetail(
            loan_request=loan_request,
            customer=customer,
            applicant=self.users.get(customer.user_id),
            marketing_notes=_latest(history, _MARKETING_OUTCOMES),
            branch_manager_notes=_latest(history, _BM_OUTCOMES),
            back_office_notes=_latest(history, _BACK_OFFICE_OUTCOMES),
        )

    def marketing_queue(self, actor: Actor) -> List[LoanRequestDetail]:
        """Requests assigned to the calling marketing agent that still await review"""
        self._require_role(actor, Role.MARKETING)
        return [self._detail(lr) for lr in self.loan_requests.find_for_marketing(actor.id)]

    def branch_manager_queue(self, actor: Actor) -> List[LoanRequestDetail]:
        self._require_role(actor, Role.BRANCH_MANAGER)
        requests = self.loan_requests.find_by_branch_and_status(actor.branch_id, LoanStatus.MARKETING_RECOMMENDED)
        return [self._detail(lr, self.approvals.find_by_loan_request(lr.id)) for lr in requests]

    def back_office_queue(self, actor: Actor) -> List[LoanRequestDetail]:
        self._require_role(actor, Role.BACK_OFFICE)
        requests = self.loan_requests.find_by_branch_and_status(actor.branch_id, LoanStatus.BM_APPROVED)
        return [self._detail(lr, self.approvals.find_by_loan_request(lr.id)) for lr in requests]

    @staticmethod
    def _require_role(actor: Actor, role: Role) -> None:
        if actor.role != role:
            raise ForbiddenError(f"Only {role.value} users can view this queue")
        if role != Role.MARKETING and actor.branch_id is None:
            raise ForbiddenError("User is not assigned to a branch")
