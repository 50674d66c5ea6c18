"""
Loan approval state machine - one transition table consulted for access and moves.

Each open status maps to the stage that may act on it: which role acts, how
the actor is matched against the request, which statuses it may move to and
which timestamp records the decision. Statuses with no stage are closed to
everyone.
"""

import uuid
from dataclasses import dataclass
from typing import Dict, FrozenSet, Optional

from fintara_gateway.domain.exceptions import ForbiddenError, InvalidInputError
from fintara_gateway.domain.models import Actor, LoanStatus, Role


@dataclass(frozen=True)
class Stage:
    name: str
    role: Role
    targets: FrozenSet[LoanStatus]
    timestamp_field: str
    assigned_agent_only: bool
    denied_message: str


MARKETING_STAGE = Stage(
    name="marketing_review",
    role=Role.MARKETING,
    targets=frozenset({LoanStatus.MARKETING_RECOMMENDED, LoanStatus.MARKETING_REJECTED}),
    timestamp_field="approval_marketing_at",
    assigned_agent_only=True,
    denied_message="Only the assigned marketing agent can access this loan request",
)

BRANCH_MANAGER_STAGE = Stage(
    name="branch_manager_review",
    role=Role.BRANCH_MANAGER,
    targets=frozenset({LoanStatus.BM_APPROVED, LoanStatus.BM_REJECTED}),
    timestamp_field="approval_bm_at",
    assigned_agent_only=False,
    denied_message="Only a branch manager of this branch can access this loan request",
)

DISBURSEMENT_STAGE = Stage(
    name="disbursement",
    role=Role.BACK_OFFICE,
    targets=frozenset({LoanStatus.DISBURSED, LoanStatus.DISBURSEMENT_DECLINED}),
    timestamp_field="disbursed_at",
    assigned_agent_only=False,
    denied_message="Only back office staff of this branch can access this loan request",
)

TRANSITIONS: Dict[LoanStatus, Stage] = {
    LoanStatus.SUBMITTED: MARKETING_STAGE,
    LoanStatus.MARKETING_REVIEW: MARKETING_STAGE,
    LoanStatus.MARKETING_RECOMMENDED: BRANCH_MANAGER_STAGE,
    LoanStatus.BM_APPROVED: DISBURSEMENT_STAGE,
}


def parse_status(value) -> LoanStatus:
    if isinstance(value, LoanStatus):
        return value
    try:
        return LoanStatus(str(value).upper())
    except ValueError as e:
        raise InvalidInputError(f"Unknown loan status: {value}", details={"status": value}) from e


def stage_for(status) -> Optional[Stage]:
    return TRANSITIONS.get(parse_status(status))


def can_act(actor: Actor, status, marketing_id: uuid.UUID, branch_id: uuid.UUID) -> bool:
    """True when `actor` is the party entitled to act on a request in `status`"""
    stage = stage_for(status)
    if stage is None or actor.role != stage.role:
        return False
    if stage.assigned_agent_only:
        return actor.id == marketing_id
    return actor.branch_id is not None and actor.branch_id == branch_id


def authorize(actor: Actor, status, marketing_id: uuid.UUID, branch_id: uuid.UUID) -> Stage:
    """
    Return the stage governing `status` if `actor` may act on it.

    Raises:
        ForbiddenError: terminal/unknown status, or role/branch/assignment mismatch
    """
    stage = stage_for(status)
    if stage is None:
        raise ForbiddenError(
            "Loan request status does not allow further action",
            details={"status": parse_status(status).value},
        )
    if not can_act(actor, status, marketing_id, branch_id):
        raise ForbiddenError(stage.denied_message, details={"stage": stage.name})
    return stage


def validate_target(stage: Stage, target) -> LoanStatus:
    target = parse_status(target)
    if target not in stage.targets:
        raise InvalidInputError(
            f"Status {target.value} is not a valid outcome of {stage.name}",
            details={"allowed": sorted(s.value for s in stage.targets)},
        )
    return target
