"""Plafond and tenor eligibility checks, interest rate resolution"""

from decimal import Decimal
from typing import Any, List, Optional, Protocol
import uuid

from fintara_gateway.domain.calculator import Number, as_decimal
from fintara_gateway.domain.exceptions import (
    InsufficientLimitError,
    InvalidInputError,
    RateNotFoundError,
    TenorUnavailableError,
)
from fintara_gateway.domain.models import CreditProfile, PlafondTerms


class RateTable(Protocol):
    """Lookup of interest rates keyed by (plafond, tenor)"""

    def find_rate(self, plafond_id: uuid.UUID, tenor: int) -> Optional[Decimal]:
        ...


# Profile attributes a customer must fill in before applying, with display labels
REQUIRED_PROFILE_FIELDS = [
    ("gender", "Gender"),
    ("birth_date", "Birth date"),
    ("id_card_url", "ID card photo"),
    ("selfie_id_card_url", "Selfie with ID card"),
    ("address", "Address"),
    ("phone", "Phone number"),
    ("nik", "National ID number"),
    ("mother_maiden_name", "Mother's maiden name"),
    ("occupation", "Occupation"),
    ("salary", "Salary"),
    ("account_number", "Bank account number"),
    ("home_status", "Home ownership status"),
]


def _is_blank(value: Any) -> bool:
    if value is None:
        return True
    return isinstance(value, str) and not value.strip()


def validate_customer_profile(profile: Any) -> None:
    """Raise InvalidInputError listing every missing profile field"""
    missing: List[str] = [label for attr, label in REQUIRED_PROFILE_FIELDS if _is_blank(getattr(profile, attr, None))]
    if missing:
        raise InvalidInputError(
            "Customer profile is incomplete. Complete your profile and documents before applying",
            details={"missing_fields": missing},
        )


def resolve_rate(rates: RateTable, plafond: PlafondTerms, tenor: int) -> Decimal:
    rate = rates.find_rate(plafond.id, tenor)
    if rate is None:
        raise RateNotFoundError(
            f"Interest rate for tenor {tenor} on plafond {plafond.name} not found",
            details={"plafond": plafond.name, "tenor": tenor},
        )
    return as_decimal(rate)


def validate_eligibility(customer: CreditProfile, amount: Number, tenor: int, rates: RateTable) -> PlafondTerms:
    """
    Check a customer can borrow `amount` over `tenor` on their plafond.

    Raises:
        InsufficientLimitError: amount exceeds the remaining credit limit
        TenorUnavailableError: the plafond has no rate entry for the tenor
    """
    amount = as_decimal(amount)
    if amount > customer.remaining_credit_limit:
        raise InsufficientLimitError(
            "Remaining credit limit is insufficient",
            details={
                "requested_amount": str(amount),
                "remaining_credit_limit": str(customer.remaining_credit_limit),
            },
        )

    plafond = customer.plafond
    if rates.find_rate(plafond.id, tenor) is None:
        raise TenorUnavailableError(
            "Tenor is not available for this plafond",
            details={"plafond": plafond.name, "tenor": tenor},
        )
    return plafond


def validate_simulation(plafond: PlafondTerms, amount: Number, tenor: int) -> None:
    """Bounds check for simulations run against a named plafond"""
    amount = as_decimal(amount)
    if amount > plafond.max_amount:
        raise InvalidInputError(
            f"Amount exceeds the maximum for plafond {plafond.name}",
            details={"max_amount": str(plafond.max_amount)},
        )
    if tenor > plafond.max_tenor:
        raise InvalidInputError(
            f"Tenor exceeds the maximum for plafond {plafond.name}",
            details={"max_tenor": plafond.max_tenor},
        )
