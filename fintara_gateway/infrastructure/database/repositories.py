"""Data access layer for loan origination entities"""

import uuid
from datetime import datetime
from decimal import Decimal
from typing import Dict, Iterable, List, Optional, Tuple

from sqlalchemy import func
from sqlalchemy.orm import Session

from fintara_gateway.domain.exceptions import NotFoundError
from fintara_gateway.domain.models import (
    CreditProfile,
    LoanStatus,
    OPEN_STATUSES,
    PlafondTerms,
    ReviewNotes,
    Role,
    ScheduleEntry,
)
from fintara_gateway.infrastructure.database.models import (
    Branch,
    CustomerDetails,
    InterestPerTenor,
    LoanApproval,
    LoanRequest,
    Plafond,
    RepaymentSchedule,
    User,
)


class LoanRequestRepository:
    """Repository for loan requests"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, loan_request_id: uuid.UUID) -> LoanRequest:
        loan_request = self.db.get(LoanRequest, loan_request_id)
        if loan_request is None:
            raise NotFoundError("Loan request not found", details={"loan_request_id": str(loan_request_id)})
        return loan_request

    def get_for_update(self, loan_request_id: uuid.UUID) -> LoanRequest:
        """Load and row-lock a request for the rest of the transaction"""
        loan_request = (
            self.db.query(LoanRequest)
            .filter(LoanRequest.id == loan_request_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if loan_request is None:
            raise NotFoundError("Loan request not found", details={"loan_request_id": str(loan_request_id)})
        return loan_request

    def add(self, loan_request: LoanRequest) -> LoanRequest:
        self.db.add(loan_request)
        self.db.flush()  # Get ID and hit the open-request index without committing
        return loan_request

    def exists_open_for_customer(self, customer_id: uuid.UUID) -> bool:
        return (
            self.db.query(LoanRequest.id)
            .filter(LoanRequest.customer_id == customer_id, LoanRequest.status.in_(sorted(OPEN_STATUSES)))
            .first()
            is not None
        )

    def count_open_by_marketing(self, branch_id: uuid.UUID) -> Dict[uuid.UUID, int]:
        """Open request count per marketing agent within a branch"""
        rows = (
            self.db.query(LoanRequest.marketing_id, func.count(LoanRequest.id))
            .filter(LoanRequest.branch_id == branch_id, LoanRequest.status.in_(sorted(OPEN_STATUSES)))
            .group_by(LoanRequest.marketing_id)
            .all()
        )
        return {marketing_id: int(count) for marketing_id, count in rows}

    def find_for_marketing(self, marketing_id: uuid.UUID) -> List[LoanRequest]:
        """Requests awaiting review by a marketing agent"""
        return (
            self.db.query(LoanRequest)
            .filter(
                LoanRequest.marketing_id == marketing_id,
                LoanRequest.status.in_([LoanStatus.SUBMITTED, LoanStatus.MARKETING_REVIEW]),
            )
            .order_by(LoanRequest.request_date.asc())
            .all()
        )

    def find_by_branch_and_status(self, branch_id: uuid.UUID, status: LoanStatus) -> List[LoanRequest]:
        return (
            self.db.query(LoanRequest)
            .filter(LoanRequest.branch_id == branch_id, LoanRequest.status == status)
            .order_by(LoanRequest.request_date.asc())
            .all()
        )

    def find_by_customer_and_statuses(
        self, customer_id: uuid.UUID, statuses: Iterable[LoanStatus]
    ) -> List[LoanRequest]:
        return (
            self.db.query(LoanRequest)
            .filter(LoanRequest.customer_id == customer_id, LoanRequest.status.in_(list(statuses)))
            .order_by(LoanRequest.request_date.desc())
            .all()
        )


class LoanApprovalRepository:
    """Repository for the append-only approval trail"""

    def __init__(self, db: Session):
        self.db = db

    def create(
        self,
        loan_request_id: uuid.UUID,
        handled_by: uuid.UUID,
        status: LoanStatus,
        notes: ReviewNotes,
        approved_at: datetime,
    ) -> LoanApproval:
        approval = LoanApproval(
            loan_request_id=loan_request_id,
            handled_by=handled_by,
            status=status,
            notes=notes.notes,
            identity_notes=notes.identity_notes,
            credit_limit_notes=notes.credit_limit_notes,
            summary_notes=notes.summary_notes,
            approved_at=approved_at,
        )
        self.db.add(approval)
        return approval

    def find_by_loan_request(self, loan_request_id: uuid.UUID) -> List[LoanApproval]:
        return (
            self.db.query(LoanApproval)
            .filter(LoanApproval.loan_request_id == loan_request_id)
            .order_by(LoanApproval.approved_at.asc())
            .all()
        )

    def has_handled(self, loan_request_id: uuid.UUID, user_id: uuid.UUID) -> bool:
        return (
            self.db.query(LoanApproval.id)
            .filter(LoanApproval.loan_request_id == loan_request_id, LoanApproval.handled_by == user_id)
            .first()
            is not None
        )


class UserRepository:
    """Repository for customer and staff accounts"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, user_id: uuid.UUID) -> User:
        user = self.db.get(User, user_id)
        if user is None:
            raise NotFoundError("User not found", details={"user_id": str(user_id)})
        return user

    def find_marketing_by_branch(self, branch_id: uuid.UUID) -> List[User]:
        """Marketing agents of a branch in stable listing order"""
        return (
            self.db.query(User)
            .filter(User.branch_id == branch_id, User.role == Role.MARKETING)
            .order_by(User.created_at.asc(), User.name.asc())
            .all()
        )


class BranchRepository:
    """Repository for branches"""

    def __init__(self, db: Session):
        self.db = db

    def with_marketing_staff(self) -> List[Tuple[uuid.UUID, float, float]]:
        """(id, latitude, longitude) of every branch that has a marketing agent"""
        rows = (
            self.db.query(Branch.id, Branch.latitude, Branch.longitude)
            .join(User, User.branch_id == Branch.id)
            .filter(User.role == Role.MARKETING)
            .distinct()
            .all()
        )
        return [(branch_id, lat, lon) for branch_id, lat, lon in rows]


class PlafondRepository:
    """Repository for plafonds and their rate table"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, plafond_id: uuid.UUID) -> Plafond:
        plafond = self.db.get(Plafond, plafond_id)
        if plafond is None:
            raise NotFoundError("Plafond not found", details={"plafond_id": str(plafond_id)})
        return plafond

    def get_by_name(self, name: str) -> Plafond:
        plafond = self.db.query(Plafond).filter(Plafond.name == name).first()
        if plafond is None:
            raise NotFoundError(f"Plafond {name} not found", details={"plafond": name})
        return plafond

    def find_rate(self, plafond_id: uuid.UUID, tenor: int) -> Optional[Decimal]:
        row = (
            self.db.query(InterestPerTenor.interest_rate)
            .filter(InterestPerTenor.plafond_id == plafond_id, InterestPerTenor.tenor == tenor)
            .first()
        )
        return row[0] if row else None

    @staticmethod
    def to_terms(plafond: Plafond) -> PlafondTerms:
        return PlafondTerms(
            id=plafond.id,
            name=plafond.name,
            max_amount=plafond.max_amount,
            max_tenor=plafond.max_tenor,
            fee_rate=plafond.fee_rate,
        )


class CustomerRepository:
    """Repository for customer profiles and credit state"""

    def __init__(self, db: Session):
        self.db = db

    def get(self, customer_id: uuid.UUID) -> CustomerDetails:
        customer = self.db.get(CustomerDetails, customer_id)
        if customer is None:
            raise NotFoundError("Customer not found", details={"customer_id": str(customer_id)})
        return customer

    def get_by_user_id(self, user_id: uuid.UUID) -> CustomerDetails:
        customer = self.db.query(CustomerDetails).filter(CustomerDetails.user_id == user_id).first()
        if customer is None:
            raise NotFoundError("Customer details not found", details={"user_id": str(user_id)})
        return customer

    def get_for_update(self, customer_id: uuid.UUID) -> CustomerDetails:
        customer = (
            self.db.query(CustomerDetails)
            .filter(CustomerDetails.id == customer_id)
            .with_for_update()
            .populate_existing()
            .first()
        )
        if customer is None:
            raise NotFoundError("Customer not found", details={"customer_id": str(customer_id)})
        return customer

    def credit_profile(self, customer: CustomerDetails, plafond: Plafond) -> CreditProfile:
        return CreditProfile(
            customer_id=customer.id,
            plafond=PlafondRepository.to_terms(plafond),
            remaining_credit_limit=customer.remaining_credit_limit,
        )


class RepaymentScheduleRepository:
    """Repository for repayment schedules"""

    def __init__(self, db: Session):
        self.db = db

    def create_schedule(self, loan_request_id: uuid.UUID, entries: List[ScheduleEntry]) -> List[RepaymentSchedule]:
        rows = []
        for entry in entries:
            row = RepaymentSchedule(
                loan_request_id=loan_request_id,
                installment_number=entry.installment_number,
                due_date=entry.due_date,
                amount=entry.amount,
            )
            self.db.add(row)
            rows.append(row)
        return rows

    def get_by_loan_request(self, loan_request_id: uuid.UUID) -> List[RepaymentSchedule]:
        return (
            self.db.query(RepaymentSchedule)
            .filter(RepaymentSchedule.loan_request_id == loan_request_id)
            .order_by(RepaymentSchedule.installment_number.asc())
            .all()
        )
