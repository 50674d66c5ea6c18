"""Pydantic schemas for API request/response validation"""

import uuid
from dataclasses import asdict
from datetime import date, datetime
from decimal import Decimal
from typing import List, Optional

from pydantic import BaseModel, ConfigDict, Field

from fintara_gateway.domain.models import LoanStatus, LoanTerms, ReviewNotes
from fintara_gateway.services.approvals import LoanRequestDetail


class LoanQuoteRequest(BaseModel):
    """Request body for POST /v1/loan-requests/preview and /simulate/default"""

    amount: Decimal = Field(..., gt=0, description="Requested principal")
    tenor: int = Field(..., ge=1, description="Number of monthly installments")


class SimulationRequest(LoanQuoteRequest):
    """Request body for POST /v1/loan-requests/simulate"""

    plafond_name: str = Field(..., min_length=1)


class LoanRequestCreate(LoanQuoteRequest):
    """Request body for POST /v1/loan-requests"""

    latitude: float = Field(..., ge=-90, le=90)
    longitude: float = Field(..., ge=-180, le=180)


class LoanTermsResponse(BaseModel):
    """Computed terms for a preview or simulation"""

    amount: Decimal
    tenor: int
    interest_rate: Decimal
    fees_amount: Decimal
    disbursed_amount: Decimal
    interest_amount: Decimal
    total_repayment: Decimal
    estimated_installment: Decimal

    @classmethod
    def from_terms(cls, terms: LoanTerms) -> "LoanTermsResponse":
        return cls(**asdict(terms))


class LoanRequestResponse(BaseModel):
    """Loan request as stored"""

    model_config = ConfigDict(from_attributes=True)

    id: uuid.UUID
    status: LoanStatus
    amount: Decimal
    tenor: int
    branch_id: uuid.UUID
    marketing_id: uuid.UUID
    interest_rate: Decimal
    fee_rate: Decimal
    interest_amount: Decimal
    fees_amount: Decimal
    disbursed_amount: Optional[Decimal] = None
    total_repayment_amount: Optional[Decimal] = None
    estimated_installment: Optional[Decimal] = None
    request_date: datetime
    approval_marketing_at: Optional[datetime] = None
    approval_bm_at: Optional[datetime] = None
    disbursed_at: Optional[datetime] = None


class ReviewNoteResponse(BaseModel):
    """One decision from the approval trail"""

    model_config = ConfigDict(from_attributes=True)

    status: LoanStatus
    handled_by: uuid.UUID
    notes: Optional[str] = None
    identity_notes: Optional[str] = None
    credit_limit_notes: Optional[str] = None
    summary_notes: Optional[str] = None
    approved_at: datetime


class LoanRequestDetailResponse(BaseModel):
    """Loan request with applicant data and review notes, for staff"""

    loan_request: LoanRequestResponse
    customer_name: str
    customer_email: str
    nik: Optional[str] = None
    occupation: Optional[str] = None
    salary: Optional[Decimal] = None
    remaining_credit_limit: Decimal
    marketing_notes: Optional[ReviewNoteResponse] = None
    branch_manager_notes: Optional[ReviewNoteResponse] = None
    back_office_notes: Optional[ReviewNoteResponse] = None

    @classmethod
    def from_detail(cls, detail: LoanRequestDetail) -> "LoanRequestDetailResponse":
        def note(approval):
            return ReviewNoteResponse.model_validate(approval) if approval is not None else None

        return cls(
            loan_request=LoanRequestResponse.model_validate(detail.loan_request),
            customer_name=detail.applicant.name,
            customer_email=detail.applicant.email,
            nik=detail.customer.nik,
            occupation=detail.customer.occupation,
            salary=detail.customer.salary,
            remaining_credit_limit=detail.customer.remaining_credit_limit,
            marketing_notes=note(detail.marketing_notes),
            branch_manager_notes=note(detail.branch_manager_notes),
            back_office_notes=note(detail.back_office_notes),
        )


class ReviewRequest(BaseModel):
    """Request body for the marketing, branch manager and disbursement decisions"""

    status: str = Field(..., min_length=1, description="Target status")
    notes: Optional[str] = None
    identity_notes: Optional[str] = None
    credit_limit_notes: Optional[str] = None
    summary_notes: Optional[str] = None

    def review_notes(self) -> ReviewNotes:
        return ReviewNotes(
            notes=self.notes,
            identity_notes=self.identity_notes,
            credit_limit_notes=self.credit_limit_notes,
            summary_notes=self.summary_notes,
        )


class TransitionResponse(BaseModel):
    """Outcome of a review decision"""

    loan_request_id: uuid.UUID
    from_status: LoanStatus
    status: LoanStatus
    handled_by: uuid.UUID
    approved_at: datetime


class InstallmentSchema(BaseModel):
    """Single installment in a repayment schedule"""

    model_config = ConfigDict(from_attributes=True)

    installment_number: int
    due_date: date
    amount: Decimal
    status: str = "UNPAID"


class ScheduleResponse(BaseModel):
    """Response for GET /v1/loan-requests/{id}/schedule"""

    loan_request_id: uuid.UUID
    installments: List[InstallmentSchema]
