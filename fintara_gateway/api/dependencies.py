"""Dependency injection for FastAPI endpoints"""

import uuid

from fastapi import Depends, Header, Request
from sqlalchemy.orm import Session

from fintara_gateway.domain.exceptions import ForbiddenError, InvalidInputError, NotFoundError
from fintara_gateway.domain.models import Actor, Role
from fintara_gateway.infrastructure.database.repositories import UserRepository
from fintara_gateway.infrastructure.database.session import get_db
from fintara_gateway.infrastructure.notifier import NotificationDispatcher
from fintara_gateway.services.approvals import ApprovalService
from fintara_gateway.services.loan_requests import LoanRequestService


def get_request_id(request: Request) -> str:
    """Extract request ID from request state"""
    return getattr(request.state, "request_id", "unknown")


def get_current_actor(
    x_user_id: str = Header(..., alias="X-User-Id"),
    db: Session = Depends(get_db),
) -> Actor:
    """Resolve the calling user; authentication happens upstream of this service"""
    try:
        user_id = uuid.UUID(x_user_id)
    except ValueError as e:
        raise InvalidInputError("X-User-Id must be a UUID", details={"X-User-Id": x_user_id}) from e

    try:
        user = UserRepository(db).get(user_id)
    except NotFoundError as e:
        raise ForbiddenError("Unknown user") from e

    return Actor(id=user.id, role=Role(user.role), branch_id=user.branch_id)


def get_loan_request_service(db: Session = Depends(get_db)) -> LoanRequestService:
    return LoanRequestService(db)


def get_approval_service(db: Session = Depends(get_db)) -> ApprovalService:
    return ApprovalService(db)


def get_dispatcher() -> NotificationDispatcher:
    """Provide push/email dispatcher instance"""
    return NotificationDispatcher()
