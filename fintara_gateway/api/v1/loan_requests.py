"""Customer-facing loan request endpoints: quotes, submission, tracking"""

from typing import List

from fastapi import APIRouter, Depends, Query, Request, status

from fintara_gateway.api.dependencies import get_current_actor, get_loan_request_service, get_request_id
from fintara_gateway.api.v1.schemas import (
    LoanQuoteRequest,
    LoanRequestCreate,
    LoanRequestResponse,
    LoanTermsResponse,
    SimulationRequest,
)
from fintara_gateway.domain.models import Actor, HistoryGroup
from fintara_gateway.services.loan_requests import LoanApplication, LoanRequestService

router = APIRouter()


@router.post("/loan-requests/simulate", response_model=LoanTermsResponse)
def simulate(body: SimulationRequest, service: LoanRequestService = Depends(get_loan_request_service)):
    """Quote terms for any plafond; no account required"""
    return LoanTermsResponse.from_terms(service.simulate(body.plafond_name, body.amount, body.tenor))


@router.post("/loan-requests/simulate/default", response_model=LoanTermsResponse)
def simulate_default(body: LoanQuoteRequest, service: LoanRequestService = Depends(get_loan_request_service)):
    return LoanTermsResponse.from_terms(service.simulate_default(body.amount, body.tenor))


@router.post("/loan-requests/preview", response_model=LoanTermsResponse)
def preview(
    body: LoanQuoteRequest,
    actor: Actor = Depends(get_current_actor),
    service: LoanRequestService = Depends(get_loan_request_service),
):
    """Quote terms against the caller's own plafond and remaining limit"""
    return LoanTermsResponse.from_terms(service.preview(actor, body.amount, body.tenor))


@router.post("/loan-requests", response_model=LoanRequestResponse, status_code=status.HTTP_201_CREATED)
def create_loan_request(
    body: LoanRequestCreate,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: LoanRequestService = Depends(get_loan_request_service),
):
    """
    Submit a loan request.

    The request is routed to the nearest branch with marketing staff and
    assigned to its least-loaded agent.
    """
    application = LoanApplication(
        amount=body.amount,
        tenor=body.tenor,
        latitude=body.latitude,
        longitude=body.longitude,
    )
    loan_request = service.create(actor, application, request_id=get_request_id(request))
    return LoanRequestResponse.model_validate(loan_request)


@router.get("/loan-requests/in-progress", response_model=List[LoanRequestResponse])
def list_in_progress(
    actor: Actor = Depends(get_current_actor),
    service: LoanRequestService = Depends(get_loan_request_service),
):
    return [LoanRequestResponse.model_validate(lr) for lr in service.in_progress(actor)]


@router.get("/loan-requests/history", response_model=List[LoanRequestResponse])
def list_history(
    group: HistoryGroup = Query(..., description="APPROVED or REJECTED"),
    actor: Actor = Depends(get_current_actor),
    service: LoanRequestService = Depends(get_loan_request_service),
):
    """Finished requests of the caller, newest first"""
    return [LoanRequestResponse.model_validate(lr) for lr in service.history(actor, group)]
