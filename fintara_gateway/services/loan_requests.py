"""Loan request submission, previews and customer-facing queries"""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from decimal import Decimal
from typing import List, Optional, Tuple

from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from fintara_gateway.config import settings
from fintara_gateway.domain.assignment import nearest_branch, select_least_loaded
from fintara_gateway.domain.calculator import compute_preview
from fintara_gateway.domain.eligibility import (
    resolve_rate,
    validate_customer_profile,
    validate_eligibility,
    validate_simulation,
)
from fintara_gateway.domain.exceptions import (
    DomainException,
    DuplicateOpenRequestError,
    ForbiddenError,
    PersistenceFailureError,
)
from fintara_gateway.domain.models import (
    Actor,
    CreditProfile,
    HISTORY_STATUSES,
    HistoryGroup,
    LoanStatus,
    LoanTerms,
    OPEN_STATUSES,
    Role,
)
from fintara_gateway.infrastructure.database.models import CustomerDetails, LoanRequest, RepaymentSchedule
from fintara_gateway.infrastructure.database.repositories import (
    BranchRepository,
    CustomerRepository,
    LoanApprovalRepository,
    LoanRequestRepository,
    PlafondRepository,
    RepaymentScheduleRepository,
    UserRepository,
)
from fintara_gateway.infrastructure.observability.logging import log_loan_created
from fintara_gateway.infrastructure.observability.metrics import loan_request_counter, record_rejection


@dataclass
class LoanApplication:
    """Input for a new loan request"""

    amount: Decimal
    tenor: int
    latitude: float
    longitude: float


class LoanRequestService:
    """Customer side of the workflow: preview, submit, track"""

    def __init__(self, db: Session):
        self.db = db
        self.loan_requests = LoanRequestRepository(db)
        self.approvals = LoanApprovalRepository(db)
        self.customers = CustomerRepository(db)
        self.plafonds = PlafondRepository(db)
        self.branches = BranchRepository(db)
        self.users = UserRepository(db)
        self.schedules = RepaymentScheduleRepository(db)

    def _customer_credit(self, actor: Actor) -> Tuple[CustomerDetails, CreditProfile]:
        if actor.role != Role.CUSTOMER:
            raise ForbiddenError("Only customers can submit loan requests")

        customer = self.customers.get_by_user_id(actor.id)
        validate_customer_profile(customer)
        plafond = self.plafonds.get(customer.plafond_id)
        return customer, self.customers.credit_profile(customer, plafond)

    def preview(self, actor: Actor, amount: Decimal, tenor: int) -> LoanTerms:
        """Terms the customer would get, without creating anything"""
        _, credit = self._customer_credit(actor)
        plafond = validate_eligibility(credit, amount, tenor, self.plafonds)
        interest_rate = resolve_rate(self.plafonds, plafond, tenor)
        return compute_preview(amount, tenor, interest_rate, plafond.fee_rate)

    def simulate(self, plafond_name: str, amount: Decimal, tenor: int) -> LoanTerms:
        """Public simulation against a plafond picked by name"""
        plafond = PlafondRepository.to_terms(self.plafonds.get_by_name(plafond_name))
        validate_simulation(plafond, amount, tenor)
        interest_rate = resolve_rate(self.plafonds, plafond, tenor)
        return compute_preview(amount, tenor, interest_rate, plafond.fee_rate)

    def simulate_default(self, amount: Decimal, tenor: int) -> LoanTerms:
        """Public simulation against the entry-level plafond"""
        plafond = PlafondRepository.to_terms(self.plafonds.get_by_name(settings.default_plafond_name))
        interest_rate = resolve_rate(self.plafonds, plafond, tenor)
        return compute_preview(amount, tenor, interest_rate, plafond.fee_rate)

    def assign_marketing(self, branch_id: uuid.UUID) -> uuid.UUID:
        agents = self.users.find_marketing_by_branch(branch_id)
        open_counts = self.loan_requests.count_open_by_marketing(branch_id)
        return select_least_loaded([agent.id for agent in agents], open_counts)

    def create(self, actor: Actor, application: LoanApplication, request_id: Optional[str] = None) -> LoanRequest:
        """
        Submit a loan request.

        Flow:
        1. Check the actor is a customer with a complete profile
        2. Refuse if another request is still open
        3. Check remaining limit and tenor, resolve the interest rate
        4. Route to the nearest branch with marketing staff
        5. Assign the least-loaded marketing agent there
        6. Persist in MARKETING_REVIEW with preview terms snapshotted
        """
        try:
            customer, credit = self._customer_credit(actor)

            if self.loan_requests.exists_open_for_customer(customer.id):
                raise DuplicateOpenRequestError(
                    "You still have a loan request in progress. Wait until it is finished before applying again"
                )

            plafond = validate_eligibility(credit, application.amount, application.tenor, self.plafonds)
            interest_rate = resolve_rate(self.plafonds, plafond, application.tenor)
            terms = compute_preview(application.amount, application.tenor, interest_rate, plafond.fee_rate)

            branch_id = nearest_branch(self.branches.with_marketing_staff(), application.latitude, application.longitude)
            marketing_id = self.assign_marketing(branch_id)

            loan_request = LoanRequest(
                customer_id=customer.id,
                marketing_id=marketing_id,
                branch_id=branch_id,
                plafond_id=plafond.id,
                amount=terms.amount,
                tenor=terms.tenor,
                status=LoanStatus.MARKETING_REVIEW,
                interest_rate=terms.interest_rate,
                fee_rate=plafond.fee_rate,
                interest_amount=terms.interest_amount,
                fees_amount=terms.fees_amount,
                disbursed_amount=terms.disbursed_amount,
                total_repayment_amount=terms.total_repayment,
                estimated_installment=terms.estimated_installment,
                request_date=datetime.now(timezone.utc),
            )
            self._insert(loan_request, customer.id)
            self.db.commit()

        except DomainException as e:
            self.db.rollback()
            record_rejection("create_loan_request", e.code)
            raise
        except SQLAlchemyError as e:
            self.db.rollback()
            raise PersistenceFailureError("Failed to save loan request") from e

        loan_request_counter.inc()
        log_loan_created(
            request_id,
            str(loan_request.id),
            str(customer.id),
            str(marketing_id),
            str(branch_id),
            str(terms.amount),
            terms.tenor,
        )
        return loan_request

    def _insert(self, loan_request: LoanRequest, customer_id: uuid.UUID) -> None:
        try:
            self.loan_requests.add(loan_request)
        except IntegrityError as e:
            # Lost a race with another submission for the same customer
            self.db.rollback()
            if self.loan_requests.exists_open_for_customer(customer_id):
                raise DuplicateOpenRequestError(
                    "You still have a loan request in progress. Wait until it is finished before applying again"
                ) from e
            raise PersistenceFailureError("Failed to save loan request") from e

    def in_progress(self, actor: Actor) -> List[LoanRequest]:
        customer = self._require_customer(actor)
        return self.loan_requests.find_by_customer_and_statuses(customer.id, OPEN_STATUSES)

    def history(self, actor: Actor, group: HistoryGroup) -> List[LoanRequest]:
        customer = self._require_customer(actor)
        return self.loan_requests.find_by_customer_and_statuses(customer.id, HISTORY_STATUSES[group])

    def schedule(self, actor: Actor, loan_request_id: uuid.UUID) -> List[RepaymentSchedule]:
        """Repayment schedule, visible to the borrower and the branch's back office"""
        loan_request = self.loan_requests.get(loan_request_id)
        if not self._may_view_schedule(actor, loan_request):
            raise ForbiddenError("You are not allowed to view this repayment schedule")
        return self.schedules.get_by_loan_request(loan_request.id)

    def _may_view_schedule(self, actor: Actor, loan_request: LoanRequest) -> bool:
        if actor.role == Role.CUSTOMER:
            return self.customers.get(loan_request.customer_id).user_id == actor.id
        if actor.role == Role.BACK_OFFICE and actor.branch_id == loan_request.branch_id:
            return True
        return self.approvals.has_handled(loan_request.id, actor.id)

    def _require_customer(self, actor: Actor) -> CustomerDetails:
        if actor.role != Role.CUSTOMER:
            raise ForbiddenError("User is not a customer")
        return self.customers.get_by_user_id(actor.id)
