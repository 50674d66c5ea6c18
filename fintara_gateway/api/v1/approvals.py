"""Staff endpoints: review queues, decisions and disbursement"""

import uuid
from typing import List

from fastapi import APIRouter, BackgroundTasks, Depends, Request

from fintara_gateway.api.dependencies import (
    get_approval_service,
    get_current_actor,
    get_dispatcher,
    get_request_id,
)
from fintara_gateway.api.v1.schemas import LoanRequestDetailResponse, ReviewRequest, TransitionResponse
from fintara_gateway.domain.models import Actor
from fintara_gateway.infrastructure.notifier import NotificationDispatcher
from fintara_gateway.services.approvals import ApprovalService, TransitionResult

router = APIRouter()


def _respond(
    result: TransitionResult,
    background_tasks: BackgroundTasks,
    dispatcher: NotificationDispatcher,
    request_id: str,
) -> TransitionResponse:
    # Delivery runs after the response; the transition is already committed
    if result.notifications:
        background_tasks.add_task(dispatcher.dispatch, result.notifications, request_id)

    return TransitionResponse(
        loan_request_id=result.loan_request.id,
        from_status=result.from_status,
        status=result.loan_request.status,
        handled_by=result.approval.handled_by,
        approved_at=result.approval.approved_at,
    )


@router.get("/loan-requests/marketing/queue", response_model=List[LoanRequestDetailResponse])
def marketing_queue(
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    return [LoanRequestDetailResponse.from_detail(d) for d in service.marketing_queue(actor)]


@router.get("/loan-requests/branch-manager/queue", response_model=List[LoanRequestDetailResponse])
def branch_manager_queue(
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    return [LoanRequestDetailResponse.from_detail(d) for d in service.branch_manager_queue(actor)]


@router.get("/loan-requests/back-office/queue", response_model=List[LoanRequestDetailResponse])
def back_office_queue(
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    return [LoanRequestDetailResponse.from_detail(d) for d in service.back_office_queue(actor)]


@router.get("/loan-requests/{loan_request_id}", response_model=LoanRequestDetailResponse)
def get_loan_request(
    loan_request_id: uuid.UUID,
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
):
    """
    Loan request detail for staff.

    Returns:
        Request, applicant profile and the latest note from each review stage
    """
    return LoanRequestDetailResponse.from_detail(service.get_for_actor(loan_request_id, actor))


@router.put("/loan-requests/{loan_request_id}/marketing-review", response_model=TransitionResponse)
def marketing_review(
    loan_request_id: uuid.UUID,
    body: ReviewRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """Recommend or reject; only the assigned marketing agent may decide"""
    request_id = get_request_id(request)
    result = service.review_by_marketing(loan_request_id, actor, body.status, body.review_notes(), request_id)
    return _respond(result, background_tasks, dispatcher, request_id)


@router.put("/loan-requests/{loan_request_id}/branch-manager-review", response_model=TransitionResponse)
def branch_manager_review(
    loan_request_id: uuid.UUID,
    body: ReviewRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    request_id = get_request_id(request)
    result = service.review_by_branch_manager(loan_request_id, actor, body.status, body.review_notes(), request_id)
    return _respond(result, background_tasks, dispatcher, request_id)


@router.put("/loan-requests/{loan_request_id}/disbursement", response_model=TransitionResponse)
def disbursement(
    loan_request_id: uuid.UUID,
    body: ReviewRequest,
    background_tasks: BackgroundTasks,
    request: Request,
    actor: Actor = Depends(get_current_actor),
    service: ApprovalService = Depends(get_approval_service),
    dispatcher: NotificationDispatcher = Depends(get_dispatcher),
):
    """
    Disburse or decline a branch-manager-approved request.

    Disbursing consumes the customer's remaining credit limit and creates
    the repayment schedule in the same transaction.
    """
    request_id = get_request_id(request)
    result = service.disburse(loan_request_id, actor, body.status, body.review_notes(), request_id)
    return _respond(result, background_tasks, dispatcher, request_id)
