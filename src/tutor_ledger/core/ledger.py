'''
Pure balance rules shared by every service.

Nothing in here touches the database: the services load a balance row, ask
these functions what the new numbers are, and write them back.
'''
from dataclasses import dataclass
from decimal import Decimal
from datetime import date
from typing import NamedTuple, Optional

from ..database.db_enums import BalanceStatusEnum

ZERO = Decimal("0")


class BalanceStatus(NamedTuple):
    status: BalanceStatusEnum
    amount: Decimal


def derive_status(current_balance: Decimal) -> BalanceStatusEnum:
    """
    Maps a signed balance to its bucket.
    0 -> paid, > 0 -> pending, < 0 -> excess.
    """
    if current_balance == ZERO:
        return BalanceStatusEnum.PAID
    if current_balance > ZERO:
        return BalanceStatusEnum.PENDING
    return BalanceStatusEnum.EXCESS


def status_of(current_balance: Decimal) -> BalanceStatus:
    """Bucket plus magnitude: 0, the amount due, or the credit held."""
    status = derive_status(current_balance)
    if status == BalanceStatusEnum.PAID:
        return BalanceStatus(status, ZERO)
    return BalanceStatus(status, abs(current_balance))


@dataclass(frozen=True)
class CycleTransition:
    """The new balance numbers for a student when a billing period closes."""
    new_balance: Decimal
    new_total_paid: Decimal
    # True when the absorbed fee counts as an implicit payment on the run date
    absorbed_as_payment: bool = False


def roll_forward(current_balance: Decimal, fee: Decimal, record_absorbed_fee: bool = True) -> CycleTransition:
    """
    Folds the next period's fee into the balance of the period that just closed.

    | before            | after                  | total_paid |
    |-------------------|------------------------|------------|
    | 0                 | fee                    | 0          |
    | > 0               | balance + fee          | 0          |
    | < 0, credit >= fee| -(credit - fee)        | fee or 0   |
    | < 0, credit < fee | fee - credit           | 0          |
    """
    if fee < ZERO:
        raise ValueError(f"fee must not be negative, got {fee}")

    if current_balance == ZERO:
        return CycleTransition(new_balance=fee, new_total_paid=ZERO)

    if current_balance > ZERO:
        return CycleTransition(new_balance=current_balance + fee, new_total_paid=ZERO)

    credit = abs(current_balance)
    if credit >= fee:
        return CycleTransition(
            new_balance=fee - credit,
            new_total_paid=fee if record_absorbed_fee else ZERO,
            absorbed_as_payment=record_absorbed_fee and fee > ZERO,
        )
    return CycleTransition(new_balance=fee - credit, new_total_paid=ZERO)


def latest_date(current: Optional[date], candidate: Optional[date]) -> Optional[date]:
    """Returns the later of two optional dates."""
    if current is None:
        return candidate
    if candidate is None:
        return current
    return max(current, candidate)
