"""Repayment schedule generation for disbursed loans"""

from datetime import date
from decimal import Decimal
from typing import List

from fintara_gateway.domain.calculator import installment_for
from fintara_gateway.domain.exceptions import InvalidTenorError
from fintara_gateway.domain.models import ScheduleEntry
from fintara_gateway.utils.date_utils import add_months


def generate_repayment_schedule(
    total_repayment: Decimal,
    tenor: int,
    start_date: date,
    installment: Decimal | None = None,
    first_due_months: int = 1,
) -> List[ScheduleEntry]:
    """
    Generate monthly repayment entries for a disbursed loan.

    Requirements:
    - One entry per tenor period, one calendar month apart
    - First due date `first_due_months` after start_date
    - Each entry pays the (ceiling-rounded) installment until the balance runs out
    - Last entry absorbs the rounding overshoot so entries sum to total_repayment

    Example:
        12,400,000 over 12 → 11 x 1,033,334 + 1 x 1,033,326
    """
    if tenor < 1:
        raise InvalidTenorError("Tenor must be at least 1", details={"tenor": tenor})
    if total_repayment <= 0:
        return []

    if installment is None:
        installment = installment_for(total_repayment, tenor)

    remaining = total_repayment
    entries = []
    for i in range(tenor):
        due_date = add_months(start_date, first_due_months + i)

        if i == tenor - 1:
            amount = remaining
        else:
            amount = min(installment, remaining)

        entries.append(ScheduleEntry(installment_number=i + 1, due_date=due_date, amount=amount))
        remaining -= amount

    return entries
