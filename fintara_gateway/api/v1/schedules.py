"""GET /v1/loan-requests/{id}/schedule - repayment schedule of a disbursed loan"""

import uuid

from fastapi import APIRouter, Depends

from fintara_gateway.api.dependencies import get_current_actor, get_loan_request_service
from fintara_gateway.api.v1.schemas import InstallmentSchema, ScheduleResponse
from fintara_gateway.domain.models import Actor
from fintara_gateway.services.loan_requests import LoanRequestService

router = APIRouter()


@router.get("/loan-requests/{loan_request_id}/schedule", response_model=ScheduleResponse)
def get_schedule(
    loan_request_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    service: LoanRequestService = Depends(get_loan_request_service),
):
    """
    Retrieve the installment schedule.

    Returns:
        Installments ordered by number; empty until the loan is disbursed
    """
    installments = [InstallmentSchema.model_validate(row) for row in service.schedule(actor, loan_request_id)]
    return ScheduleResponse(loan_request_id=loan_request_id, installments=installments)
