"""Month-bucketed growth (income vs costs) and risk (performing vs overdue) series"""

from datetime import date
from decimal import Decimal
from typing import Dict, List, Sequence

from loan_engine.domain.models import ZERO, Expense, Loan, LoanStatus, MonthlyPoint, Payment
from loan_engine.domain.status import classify_status
from loan_engine.utils.date_utils import generate_month_range, month_end, month_key, to_day


def _sum_by_month(items) -> Dict[str, Decimal]:
    totals: Dict[str, Decimal] = {}
    for item in items:
        key = month_key(to_day(item.date))
        totals[key] = totals.get(key, ZERO) + item.amount
    return totals


def monthly_series(
    loans: Sequence[Loan],
    payments: Sequence[Payment],
    expenses: Sequence[Expense],
    start: date,
    end: date,
) -> List[MonthlyPoint]:
    """
    One point per calendar month from start to end (inclusive).

    Income and costs are accumulated from payments and expenses by their
    dates. Performing/overdue balances are a snapshot at each month end
    (capped at end), classifying every loan started by then.
    """
    income = _sum_by_month(payments)
    costs = _sum_by_month(expenses)
    dated = [loan for loan in loans if loan.is_scoreable]
    # Refinanced balances live on in the successor loan
    tracked = [loan for loan in dated if loan.status != LoanStatus.REFINANCED]

    series = []
    for month in generate_month_range(start, end):
        key = month_key(month)
        snapshot_day = min(month_end(month), end)

        started = [loan for loan in dated if month_key(loan.start_date) == key]
        performing = overdue = ZERO
        for loan in tracked:
            if loan.start_date > snapshot_day:
                continue
            status = classify_status(loan, snapshot_day)
            if status == LoanStatus.ACTIVE:
                performing += loan.outstanding
            elif status == LoanStatus.OVERDUE:
                overdue += loan.outstanding

        series.append(
            MonthlyPoint(
                month=key,
                income=income.get(key, ZERO),
                costs=costs.get(key, ZERO),
                new_loans=len(started),
                new_loans_amount=sum((loan.principal for loan in started), ZERO),
                performing=performing,
                overdue=overdue,
            )
        )

    return series
