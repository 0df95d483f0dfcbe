"""Entry points for callers holding raw records: parse, compute, log and record metrics"""

import time
from datetime import date, datetime
from decimal import Decimal
from typing import Any, Dict, Iterable, List, Mapping, Optional

from loan_engine.config import settings
from loan_engine.domain.lending import originate_loan
from loan_engine.domain.models import (
    CreditScore,
    DateRange,
    LoanStatus,
    MonthlyPoint,
    PortfolioMetrics,
)
from loan_engine.domain.portfolio import aggregate_portfolio
from loan_engine.domain.scoring import compute_credit_score
from loan_engine.domain.status import display_status
from loan_engine.domain.timeseries import monthly_series
from loan_engine.infrastructure.documents.loader import (
    attach_payments,
    parse_borrowers,
    parse_expenses,
    parse_interest_schedule,
    parse_loans,
    parse_payments,
)
from loan_engine.infrastructure.observability.logging import log_computation, log_credit_score, log_portfolio
from loan_engine.infrastructure.observability.metrics import (
    computation_duration_histogram,
    record_computation,
    record_credit_score,
    record_portfolio,
)
from loan_engine.utils.date_utils import to_day

Record = Mapping[str, Any]


def _today(as_of: Optional[date | datetime]) -> date:
    # The only place the engine looks at the clock
    return to_day(as_of) if as_of is not None else date.today()


def borrower_credit_score(
    loan_records: Iterable[Record],
    payment_records: Iterable[Record] = (),
    borrower_id: Optional[str] = None,
    as_of: Optional[date | datetime] = None,
) -> CreditScore:
    """
    Score a borrower from raw loan and payment records.

    When borrower_id is given only that borrower's loans are scored;
    otherwise every record is assumed to belong to the borrower.
    """
    start_time = time.time()
    day = _today(as_of)

    loans = parse_loans(loan_records)
    if borrower_id is not None:
        loans = [loan for loan in loans if loan.borrower_id == borrower_id]
    loans = attach_payments(loans, parse_payments(payment_records))

    with computation_duration_histogram.labels(operation="credit_score").time():
        result = compute_credit_score(loans, day, include_history=settings.score_history_enabled)

    duration_ms = (time.time() - start_time) * 1000
    record_credit_score(result.score, result.remarks.value)
    log_credit_score(
        borrower_id,
        result.score,
        result.remarks.value,
        result.stats.total_loans,
        result.stats.excluded_loans,
        duration_ms,
    )
    return result


def borrower_scores(
    borrower_records: Iterable[Record],
    loan_records: Iterable[Record],
    payment_records: Iterable[Record] = (),
    as_of: Optional[date | datetime] = None,
) -> Dict[str, CreditScore]:
    """Current score for every borrower, keyed by borrower id (borrower list view)"""
    start_time = time.time()
    day = _today(as_of)
    payments = parse_payments(payment_records)
    loans = attach_payments(parse_loans(loan_records), payments)

    by_borrower: Dict[str, list] = {}
    for loan in loans:
        by_borrower.setdefault(loan.borrower_id, []).append(loan)

    scores = {}
    with computation_duration_histogram.labels(operation="borrower_scores").time():
        for borrower in parse_borrowers(borrower_records):
            scores[borrower.id] = compute_credit_score(by_borrower.get(borrower.id, []), day, include_history=False)

    duration_ms = (time.time() - start_time) * 1000
    for result in scores.values():
        record_credit_score(result.score, result.remarks.value)
    record_computation("borrower_scores", len(scores))
    log_computation("borrower_scores", len(scores), duration_ms, loan_count=len(loans))
    return scores


def simulate_credit_score(
    loan_records: Iterable[Record],
    principal: Decimal,
    interest_duration: int = 1,
    payment_records: Iterable[Record] = (),
    settings_record: Optional[Record] = None,
    borrower_id: Optional[str] = None,
    as_of: Optional[date | datetime] = None,
) -> CreditScore:
    """Score the borrower as if a new loan were issued today (loan simulator)"""
    start_time = time.time()
    day = _today(as_of)
    loans = parse_loans(loan_records)
    if borrower_id is not None:
        loans = [loan for loan in loans if loan.borrower_id == borrower_id]
    loans = attach_payments(loans, parse_payments(payment_records))

    hypothetical = originate_loan(
        loan_id="simulated",
        borrower_id=borrower_id,
        principal=Decimal(principal),
        start_date=day,
        schedule=parse_interest_schedule(settings_record),
        interest_duration=interest_duration,
    )

    with computation_duration_histogram.labels(operation="credit_score_simulation").time():
        result = compute_credit_score(loans + [hypothetical], day, include_history=False)

    duration_ms = (time.time() - start_time) * 1000
    record_computation("credit_score_simulation", result.stats.total_loans)
    log_computation(
        "credit_score_simulation",
        result.stats.total_loans,
        duration_ms,
        borrower_id=borrower_id,
        score=result.score,
        remarks=result.remarks.value,
        principal=str(hypothetical.principal),
    )
    return result


def portfolio_report(
    loan_records: Iterable[Record],
    payment_records: Iterable[Record] = (),
    expense_records: Iterable[Record] = (),
    start: Optional[date] = None,
    end: Optional[date] = None,
    as_of: Optional[date | datetime] = None,
    compare_previous: bool = False,
) -> PortfolioMetrics:
    """
    Portfolio metrics for loans started between start and end (inclusive).

    Without a start date every loan is included. Loans are classified at
    as_of, which defaults to today.
    """
    start_time = time.time()
    day = _today(as_of)
    date_range = DateRange(start=start, end=end or day) if start is not None else None

    payments = parse_payments(payment_records)
    loans = attach_payments(parse_loans(loan_records), payments)
    expenses = parse_expenses(expense_records)

    with computation_duration_histogram.labels(operation="portfolio").time():
        metrics = aggregate_portfolio(
            loans,
            payments,
            expenses,
            date_range,
            as_of=day,
            compare_previous=compare_previous,
        )

    duration_ms = (time.time() - start_time) * 1000
    record_portfolio(metrics)
    log_portfolio(
        metrics.total_loans,
        metrics.overdue_count,
        metrics.defaulted_count,
        metrics.excluded_loans,
        duration_ms,
    )
    return metrics


def growth_series(
    loan_records: Iterable[Record],
    payment_records: Iterable[Record],
    expense_records: Iterable[Record],
    start: date,
    end: Optional[date] = None,
) -> List[MonthlyPoint]:
    """Monthly income/costs and performing/overdue balances for charts"""
    start_time = time.time()
    payments = parse_payments(payment_records)
    loans = attach_payments(parse_loans(loan_records), payments)
    expenses = parse_expenses(expense_records)

    with computation_duration_histogram.labels(operation="monthly_series").time():
        series = monthly_series(loans, payments, expenses, start, _today(end))

    duration_ms = (time.time() - start_time) * 1000
    record_computation("monthly_series", len(series))
    log_computation("monthly_series", len(series), duration_ms, loan_count=len(loans))
    return series


def loan_statuses(
    loan_records: Iterable[Record],
    payment_records: Iterable[Record] = (),
    as_of: Optional[date | datetime] = None,
) -> Dict[str, LoanStatus]:
    """Display status per loan id (Refinanced from the stored field, the rest derived)"""
    start_time = time.time()
    day = _today(as_of)
    loans = attach_payments(parse_loans(loan_records), parse_payments(payment_records))

    with computation_duration_histogram.labels(operation="loan_statuses").time():
        statuses = {loan.id: display_status(loan, day) for loan in loans}

    duration_ms = (time.time() - start_time) * 1000
    record_computation("loan_statuses", len(statuses))
    log_computation("loan_statuses", len(statuses), duration_ms)
    return statuses
