"""Loan status classification at an arbitrary as-of date"""

from datetime import date, datetime
from typing import Optional

from loan_engine.domain.models import Loan, LoanStatus
from loan_engine.utils.date_utils import to_day


def _reached_by(moment: Optional[datetime], day: date) -> bool:
    # Legacy records carry no event timestamp: treat the event as always in the past
    return moment is None or to_day(moment) <= day


def classify_status(loan: Loan, as_of: date | datetime) -> LoanStatus:
    """
    Derive a loan's state on the as-of day.

    Precedence (first match wins):
    1. Defaulted: stored status is Defaulted and the default happened by as_of
    2. Paid: repaid >= total repayable > 0 and full repayment happened by as_of
    3. Overdue: due date strictly before as_of (a loan due today is not overdue)
    4. Active

    Never returns Refinanced - callers that need it read the stored field
    (see display_status).
    """
    day = to_day(as_of)

    if loan.status == LoanStatus.DEFAULTED and _reached_by(loan.defaulted_at, day):
        return LoanStatus.DEFAULTED

    if loan.is_fully_repaid and _reached_by(loan.paid_at, day):
        return LoanStatus.PAID

    if loan.due_date is not None and loan.due_date < day:
        return LoanStatus.OVERDUE

    return LoanStatus.ACTIVE


def display_status(loan: Loan, as_of: date | datetime) -> LoanStatus:
    """Status for listings: stored Refinanced wins, everything else is derived"""
    if loan.status == LoanStatus.REFINANCED:
        return LoanStatus.REFINANCED
    return classify_status(loan, as_of)


def days_overdue(loan: Loan, as_of: date | datetime) -> int:
    """Whole days past the due date, 0 when not yet due"""
    if loan.due_date is None:
        return 0
    return max((to_day(as_of) - loan.due_date).days, 0)
