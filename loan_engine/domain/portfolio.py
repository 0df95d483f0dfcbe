"""Portfolio aggregation - disbursed/collected/outstanding totals, ratios and arrears aging"""

from datetime import date, datetime
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple

from loan_engine.domain.exceptions import InvalidInputError
from loan_engine.domain.models import (
    ZERO,
    AgedLoan,
    ArrearsAging,
    ArrearsBucket,
    CashFlow,
    CashFlowEntry,
    CostOfDefault,
    DateRange,
    Expense,
    Loan,
    LoanStatus,
    Payment,
    PeriodSummary,
    PortfolioMetrics,
)
from loan_engine.domain.status import classify_status, days_overdue
from loan_engine.utils.date_utils import to_day

# (label, min days, max days); None = unbounded
ARREARS_BUCKETS: List[Tuple[str, int, Optional[int]]] = [
    ("1-7", 1, 7),
    ("8-14", 8, 14),
    ("15-30", 15, 30),
    ("30+", 31, None),
]


def _ratio(numerator, denominator) -> Optional[float]:
    if not denominator:
        return None
    return float(numerator) / float(denominator)


def _in_range(day: date, date_range: Optional[DateRange]) -> bool:
    return date_range is None or date_range.contains(day)


def select_cohort(loans: Sequence[Loan], date_range: Optional[DateRange]) -> Tuple[List[Loan], int]:
    """
    Loans started inside the range (inclusive). Loans without dates are
    excluded and counted rather than failing the aggregation.
    """
    if not isinstance(loans, (list, tuple)):
        raise InvalidInputError(f"Expected a list of loans, got {type(loans).__name__}")

    valid = [loan for loan in loans if loan.is_scoreable]
    cohort = [loan for loan in valid if _in_range(loan.start_date, date_range)]
    return cohort, len(loans) - len(valid)


def arrears_bucket(days: int) -> Optional[str]:
    """Aging bucket label for a number of days past due"""
    for label, low, high in ARREARS_BUCKETS:
        if days >= low and (high is None or days <= high):
            return label
    return None


def arrears_aging(loans: Sequence[Loan], as_of: date | datetime) -> ArrearsAging:
    """
    Bucket currently-overdue loans by days past due.

    A nominally overdue loan with nothing left to pay is left out.
    """
    buckets = {label: ArrearsBucket(label=label) for label, _, _ in ARREARS_BUCKETS}
    aged: List[AgedLoan] = []

    for loan in loans:
        if loan.status == LoanStatus.REFINANCED:
            continue
        if classify_status(loan, as_of) != LoanStatus.OVERDUE:
            continue
        outstanding = loan.outstanding
        if outstanding <= 0:
            continue

        days = days_overdue(loan, as_of)
        label = arrears_bucket(days)
        if label is None:
            continue

        entry = AgedLoan(
            loan_id=loan.id,
            borrower_id=loan.borrower_id,
            due_date=loan.due_date,
            days_overdue=days,
            outstanding=outstanding,
        )
        buckets[label].loans.append(entry)
        buckets[label].total += outstanding
        aged.append(entry)

    aged.sort(key=lambda entry: entry.days_overdue, reverse=True)
    return ArrearsAging(buckets=buckets, loans=aged)


def cost_of_default(loans: Sequence[Loan], as_of: date | datetime) -> CostOfDefault:
    """Unrecovered balance on defaulted loans, in total and per borrower"""
    loss_by_borrower: Dict[Optional[str], Decimal] = {}
    count = 0
    for loan in loans:
        if classify_status(loan, as_of) != LoanStatus.DEFAULTED:
            continue
        count += 1
        loss = max(loan.outstanding, ZERO)
        loss_by_borrower[loan.borrower_id] = loss_by_borrower.get(loan.borrower_id, ZERO) + loss

    return CostOfDefault(
        defaulted_loans=count,
        total_loss=sum(loss_by_borrower.values(), ZERO),
        loss_by_borrower=loss_by_borrower,
    )


def cash_flow(
    loans: Sequence[Loan],
    payments: Sequence[Payment],
    expenses: Sequence[Expense],
    date_range: Optional[DateRange],
) -> CashFlow:
    """
    Inflows (payments) and outflows (disbursements, expenses) in the range.

    Disbursements come from the given cohort; payments and expenses are
    filtered by their own dates.
    """
    entries: List[CashFlowEntry] = []

    for payment in payments:
        day = to_day(payment.date)
        if _in_range(day, date_range):
            entries.append(CashFlowEntry(day, "payment", payment.amount, payment.loan_id))

    for loan in loans:
        entries.append(CashFlowEntry(loan.start_date, "disbursement", -loan.principal, loan.id))

    for expense in expenses:
        day = to_day(expense.date)
        if _in_range(day, date_range):
            entries.append(CashFlowEntry(day, "expense", -expense.amount, expense.id))

    entries.sort(key=lambda entry: entry.date)
    total_inflow = sum((e.amount for e in entries if e.amount > 0), ZERO)
    total_outflow = -sum((e.amount for e in entries if e.amount < 0), ZERO)
    return CashFlow(entries=entries, total_inflow=total_inflow, total_outflow=total_outflow)


def summarize_period(loans: Sequence[Loan], date_range: DateRange) -> PeriodSummary:
    """Headline totals for loans started inside the range"""
    cohort, _ = select_cohort(loans, date_range)
    return PeriodSummary(
        date_range=date_range,
        count=len(cohort),
        disbursed=sum((loan.principal for loan in cohort), ZERO),
        repaid=sum((loan.repaid_amount for loan in cohort), ZERO),
        interest=sum((loan.interest for loan in cohort), ZERO),
    )


def trend_percentage(current: Decimal, previous: Decimal) -> Optional[str]:
    """Period-over-period change as a display string ("+12.5%", "New")"""
    if previous == 0:
        return "New" if current > 0 else None
    change = (Decimal(current) - Decimal(previous)) / Decimal(previous) * 100
    sign = "+" if change >= 0 else ""
    return f"{sign}{change:.1f}%"


def aggregate_portfolio(
    loans: Sequence[Loan],
    payments: Sequence[Payment] = (),
    expenses: Sequence[Expense] = (),
    date_range: Optional[DateRange] = None,
    *,
    as_of: date | datetime,
    compare_previous: bool = False,
) -> PortfolioMetrics:
    """
    Main entry point: aggregate the cohort of loans started in date_range.

    Loans are classified at as_of (today for live dashboards, a snapshot date
    for historical reconstruction). Repayments count toward collected totals
    regardless of when they happened. Refinanced loans contribute disbursed
    and collected amounts but no outstanding balance.

    Ratios are None when their denominator is zero. overdue_ratio is the
    figure earlier dashboards labelled "default rate"; defaulted_ratio counts
    loans explicitly marked Defaulted.
    """
    cohort, excluded = select_cohort(loans, date_range)

    counts = {status: 0 for status in LoanStatus}
    total_disbursed = total_collected = total_outstanding = ZERO
    total_repayable = expected_profit = actual_profit = ZERO
    duration_days = 0
    active_cohort: List[Loan] = []

    for loan in cohort:
        total_disbursed += loan.principal
        total_collected += loan.repaid_amount
        total_repayable += loan.total_repayable
        expected_profit += loan.interest
        duration_days += (loan.due_date - loan.start_date).days

        if loan.status == LoanStatus.REFINANCED:
            counts[LoanStatus.REFINANCED] += 1
            continue

        active_cohort.append(loan)
        status = classify_status(loan, as_of)
        counts[status] += 1

        if status in (LoanStatus.ACTIVE, LoanStatus.OVERDUE):
            total_outstanding += loan.outstanding
        elif status == LoanStatus.PAID:
            actual_profit += loan.interest

    count = len(cohort)
    metrics = PortfolioMetrics(
        total_loans=count,
        active_count=counts[LoanStatus.ACTIVE],
        paid_count=counts[LoanStatus.PAID],
        overdue_count=counts[LoanStatus.OVERDUE],
        defaulted_count=counts[LoanStatus.DEFAULTED],
        refinanced_count=counts[LoanStatus.REFINANCED],
        excluded_loans=excluded,
        total_disbursed=total_disbursed,
        total_collected=total_collected,
        total_outstanding=total_outstanding,
        total_repayable=total_repayable,
        total_expected_profit=expected_profit,
        actual_profit=actual_profit,
        average_loan_size=total_disbursed / count if count else None,
        average_loan_duration_days=duration_days / count if count else None,
        portfolio_yield=(
            float(total_collected / total_disbursed) - 1 if total_disbursed else None
        ),
        repayment_rate=_ratio(total_collected, total_repayable),
        overdue_ratio=_ratio(counts[LoanStatus.OVERDUE], count),
        defaulted_ratio=_ratio(counts[LoanStatus.DEFAULTED], count),
        arrears=arrears_aging(active_cohort, as_of),
        cost_of_default=cost_of_default(active_cohort, as_of),
        cash_flow=cash_flow(cohort, payments, expenses, date_range),
    )

    if compare_previous and date_range is not None:
        previous = summarize_period(loans, date_range.previous())
        metrics.previous_period = previous
        metrics.disbursed_trend = trend_percentage(total_disbursed, previous.disbursed)
        metrics.collected_trend = trend_percentage(total_collected, previous.repaid)

    return metrics
