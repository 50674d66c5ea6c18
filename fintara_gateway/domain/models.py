"""Domain models - pure Python dataclasses and enums representing business entities"""

import uuid
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from enum import Enum
from typing import Any, Dict, Optional


class Role(str, Enum):
    """Roles taking part in the loan workflow"""

    CUSTOMER = "CUSTOMER"
    MARKETING = "MARKETING"
    BRANCH_MANAGER = "BRANCH_MANAGER"
    BACK_OFFICE = "BACK_OFFICE"


class LoanStatus(str, Enum):
    """Lifecycle status of a loan request"""

    SUBMITTED = "SUBMITTED"
    MARKETING_REVIEW = "MARKETING_REVIEW"
    MARKETING_RECOMMENDED = "MARKETING_RECOMMENDED"
    MARKETING_REJECTED = "MARKETING_REJECTED"
    BM_APPROVED = "BM_APPROVED"
    BM_REJECTED = "BM_REJECTED"
    DISBURSED = "DISBURSED"
    DISBURSEMENT_DECLINED = "DISBURSEMENT_DECLINED"


OPEN_STATUSES = frozenset(
    {
        LoanStatus.SUBMITTED,
        LoanStatus.MARKETING_REVIEW,
        LoanStatus.MARKETING_RECOMMENDED,
        LoanStatus.BM_APPROVED,
    }
)

TERMINAL_STATUSES = frozenset(set(LoanStatus) - OPEN_STATUSES)


class HistoryGroup(str, Enum):
    """Customer-facing grouping of finished loan requests"""

    APPROVED = "APPROVED"
    REJECTED = "REJECTED"


HISTORY_STATUSES = {
    HistoryGroup.APPROVED: (LoanStatus.DISBURSED,),
    HistoryGroup.REJECTED: (
        LoanStatus.MARKETING_REJECTED,
        LoanStatus.BM_REJECTED,
        LoanStatus.DISBURSEMENT_DECLINED,
    ),
}


@dataclass(frozen=True)
class Actor:
    """Identity of the user performing an operation"""

    id: uuid.UUID
    role: Role
    branch_id: Optional[uuid.UUID] = None


@dataclass(frozen=True)
class PlafondTerms:
    """Credit tier limits and fee rate"""

    id: uuid.UUID
    name: str
    max_amount: Decimal
    max_tenor: int
    fee_rate: Decimal


@dataclass(frozen=True)
class CreditProfile:
    """Customer's assigned plafond and unused credit"""

    customer_id: uuid.UUID
    plafond: PlafondTerms
    remaining_credit_limit: Decimal


@dataclass(frozen=True)
class LoanTerms:
    """Computed financial terms for a principal, tenor and rates"""

    amount: Decimal
    tenor: int
    interest_rate: Decimal
    fees_amount: Decimal
    disbursed_amount: Decimal
    interest_amount: Decimal
    total_repayment: Decimal
    estimated_installment: Decimal


@dataclass(frozen=True)
class ReviewNotes:
    """Free-text notes attached to a review decision"""

    notes: Optional[str] = None
    identity_notes: Optional[str] = None
    credit_limit_notes: Optional[str] = None
    summary_notes: Optional[str] = None


class NotificationChannel(str, Enum):
    PUSH = "push"
    EMAIL = "email"


@dataclass(frozen=True)
class Notification:
    """Outbound message produced by a transition, delivered after commit"""

    channel: NotificationChannel
    recipient: str  # user id for push, address for email
    title: Optional[str] = None
    body: Optional[str] = None
    template: Optional[str] = None
    params: Dict[str, Any] = field(default_factory=dict)


@dataclass
class ScheduleEntry:
    """Single payment in a repayment schedule"""

    installment_number: int
    due_date: date
    amount: Decimal
