"""Domain-specific exceptions"""

from typing import Any, Dict, Optional


class DomainException(Exception):
    """Base exception for domain layer"""

    status_code = 400
    code = "domain_error"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}


class NotFoundError(DomainException):
    """Referenced entity does not exist"""

    status_code = 404
    code = "not_found"


class ForbiddenError(DomainException):
    """Actor's role or branch does not permit the operation in the current state"""

    status_code = 403
    code = "forbidden"


class InvalidInputError(DomainException):
    """Missing profile fields, malformed amount, unsupported target status"""

    code = "invalid_input"


class InvalidTenorError(InvalidInputError):
    """Tenor must be at least one period"""

    code = "invalid_tenor"


class InsufficientLimitError(DomainException):
    """Requested amount exceeds the customer's remaining credit limit"""

    code = "insufficient_limit"


class RateNotFoundError(DomainException):
    """No interest rate is configured for the plafond and tenor"""

    code = "rate_not_found"


class TenorUnavailableError(DomainException):
    """The customer's plafond does not offer the requested tenor"""

    code = "tenor_unavailable"


class NoAgentAvailableError(DomainException):
    """No marketing agent (or branch with agents) can take the request"""

    code = "no_agent_available"


class DuplicateOpenRequestError(DomainException):
    """Customer already has a loan request in progress"""

    status_code = 409
    code = "duplicate_open_request"


class NotReadyError(DomainException):
    """Loan request is not in the state the operation requires"""

    status_code = 409
    code = "not_ready"


class PersistenceFailureError(DomainException):
    """Database write failed; the transition was rolled back"""

    status_code = 500
    code = "persistence_failure"
