"""Final stage of the workflow: release funds or decline"""

from datetime import datetime
from decimal import Decimal
from typing import Optional

from sqlalchemy.orm import Session

from fintara_gateway.config import settings
from fintara_gateway.domain.calculator import compute_disbursement_terms
from fintara_gateway.domain.exceptions import ForbiddenError, InsufficientLimitError, NotReadyError
from fintara_gateway.domain.installments import generate_repayment_schedule
from fintara_gateway.domain.models import Actor, LoanStatus, Role
from fintara_gateway.infrastructure.database.models import LoanRequest
from fintara_gateway.infrastructure.database.repositories import (
    CustomerRepository,
    RepaymentScheduleRepository,
)


class DisbursementProcessor:
    """Applies the financial side effects of a back office decision inside the caller's transaction"""

    def __init__(self, db: Session, first_due_months: int | None = None):
        self.db = db
        self.customers = CustomerRepository(db)
        self.schedules = RepaymentScheduleRepository(db)
        self.first_due_months = (
            first_due_months if first_due_months is not None else settings.schedule_first_due_months
        )

    def ensure_ready(self, loan_request: LoanRequest, actor: Actor) -> None:
        if loan_request.status != LoanStatus.BM_APPROVED:
            raise NotReadyError(
                "Loan request is not ready for disbursement",
                details={"status": LoanStatus(loan_request.status).value},
            )
        if actor.role != Role.BACK_OFFICE or actor.branch_id != loan_request.branch_id:
            raise ForbiddenError("Only back office staff of this branch can disburse this loan request")

    def process(self, loan_request: LoanRequest, actor: Actor, target: LoanStatus, now: datetime) -> Optional[Decimal]:
        """
        Recompute final terms from the rates fixed at creation and, when disbursing,
        consume credit and build the schedule.

        Terms are recomputed for both outcomes so declined requests also carry
        the figures they were judged on.

        Returns:
            Principal released, or None when declined

        Raises:
            NotReadyError: request is not BM_APPROVED
            ForbiddenError: actor is not back office of the request's branch
            InsufficientLimitError: remaining credit no longer covers the principal
        """
        self.ensure_ready(loan_request, actor)

        terms = compute_disbursement_terms(
            loan_request.amount, loan_request.tenor, loan_request.interest_rate, loan_request.fee_rate
        )
        loan_request.interest_amount = terms.interest_amount
        loan_request.fees_amount = terms.fees_amount
        loan_request.disbursed_amount = terms.disbursed_amount
        loan_request.total_repayment_amount = terms.total_repayment
        loan_request.estimated_installment = terms.estimated_installment

        if target != LoanStatus.DISBURSED:
            return None

        customer = self.customers.get_for_update(loan_request.customer_id)
        if customer.remaining_credit_limit < terms.amount:
            raise InsufficientLimitError(
                "Remaining credit limit is not sufficient for disbursement",
                details={
                    "remaining_credit_limit": str(customer.remaining_credit_limit),
                    "amount": str(terms.amount),
                },
            )
        customer.remaining_credit_limit = customer.remaining_credit_limit - terms.amount

        entries = generate_repayment_schedule(
            terms.total_repayment,
            terms.tenor,
            now.date(),
            installment=terms.estimated_installment,
            first_due_months=self.first_due_months,
        )
        self.schedules.create_schedule(loan_request.id, entries)
        return terms.amount
