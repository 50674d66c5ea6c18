"""Loan financial calculations - fees, interest, repayment totals and installments"""

from decimal import Decimal, ROUND_CEILING, ROUND_HALF_UP
from typing import Union

from fintara_gateway.domain.exceptions import InvalidInputError, InvalidTenorError
from fintara_gateway.domain.models import LoanTerms

Number = Union[Decimal, int, str]

WHOLE_UNIT = Decimal("1")
CENT = Decimal("0.01")


def as_decimal(value: Number) -> Decimal:
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))


def _validate(amount: Decimal, tenor: int) -> None:
    if tenor is None or int(tenor) < 1:
        raise InvalidTenorError("Tenor must be at least 1", details={"tenor": tenor})
    if amount <= 0:
        raise InvalidInputError("Amount must be greater than zero", details={"amount": str(amount)})


def installment_for(total_repayment: Decimal, tenor: int) -> Decimal:
    """
    Split a repayment total into equal installments, rounded up to a whole unit.

    Rounding is always towards the ceiling so that installment * tenor never
    falls short of the total.
    """
    if tenor < 1:
        raise InvalidTenorError("Tenor must be at least 1", details={"tenor": tenor})
    return (total_repayment / Decimal(tenor)).quantize(WHOLE_UNIT, rounding=ROUND_CEILING)


def fees_for(amount: Decimal, fee_rate: Decimal) -> Decimal:
    """Fee charged up front, rounded half-up to the cent so fees + disbursed == amount"""
    return (amount * fee_rate).quantize(CENT, rounding=ROUND_HALF_UP)


def compute_preview(amount: Number, tenor: int, interest_rate: Number, fee_rate: Number) -> LoanTerms:
    """
    Terms shown to the applicant and snapshotted when the request is created.

    Formulas:
    - fees = amount * fee_rate, rounded to the cent
    - disbursed = amount - fees
    - interest = amount * interest_rate (single period)
    - total = amount + interest + fees
    - installment = ceil(total / tenor)

    Example:
        10,000,000 over 12 at 2% interest, 1% fee
        fees 100,000, disbursed 9,900,000, interest 200,000,
        total 10,300,000, installment 858,334
    """
    amount = as_decimal(amount)
    interest_rate = as_decimal(interest_rate)
    fee_rate = as_decimal(fee_rate)
    _validate(amount, tenor)

    fees_amount = fees_for(amount, fee_rate)
    interest_amount = amount * interest_rate
    total_repayment = amount + interest_amount + fees_amount

    return LoanTerms(
        amount=amount,
        tenor=tenor,
        interest_rate=interest_rate,
        fees_amount=fees_amount,
        disbursed_amount=amount - fees_amount,
        interest_amount=interest_amount,
        total_repayment=total_repayment,
        estimated_installment=installment_for(total_repayment, tenor),
    )


def compute_disbursement_terms(amount: Number, tenor: int, interest_rate: Number, fee_rate: Number) -> LoanTerms:
    """
    Terms recomputed by the back office at disbursement.

    Differs from the preview: interest accrues for every period
    (amount * rate * tenor) and fees are NOT added to the total.

    Example:
        10,000,000 over 12 at 2% interest
        interest 2,400,000, total 12,400,000, installment 1,033,334
    """
    amount = as_decimal(amount)
    interest_rate = as_decimal(interest_rate)
    fee_rate = as_decimal(fee_rate)
    _validate(amount, tenor)

    fees_amount = fees_for(amount, fee_rate)
    interest_amount = amount * interest_rate * Decimal(tenor)
    total_repayment = amount + interest_amount

    return LoanTerms(
        amount=amount,
        tenor=tenor,
        interest_rate=interest_rate,
        fees_amount=fees_amount,
        disbursed_amount=amount - fees_amount,
        interest_amount=interest_amount,
        total_repayment=total_repayment,
        estimated_installment=installment_for(total_repayment, tenor),
    )
