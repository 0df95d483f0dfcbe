"""Credit scoring engine - derives a 0-100 score from a borrower's loan history"""

import math
from datetime import date, datetime
from typing import List, Sequence, Tuple

from loan_engine.domain.exceptions import InvalidInputError
from loan_engine.domain.models import (
    CreditScore,
    Loan,
    LoanStatus,
    ScorePoint,
    ScoreRemarks,
    ScoreStats,
)
from loan_engine.domain.status import classify_status
from loan_engine.utils.date_utils import generate_month_range, month_end, to_day


def _require_sequence(loans) -> None:
    if not isinstance(loans, (list, tuple)):
        raise InvalidInputError(f"Expected a list of loans, got {type(loans).__name__}")


def _split_scoreable(loans: Sequence[Loan]) -> Tuple[List[Loan], int]:
    """Drop loans without dates and refinanced loans (balance moved to the successor)"""
    scoreable = [
        loan for loan in loans
        if loan.is_scoreable and loan.status != LoanStatus.REFINANCED
    ]
    return scoreable, len(loans) - len(scoreable)


def _repaid_on_time(loan: Loan) -> bool:
    last_repayment = loan.last_payment_at or loan.paid_at
    if last_repayment is None:
        return False
    return to_day(last_repayment) <= loan.due_date


def score_remarks(score: int) -> ScoreRemarks:
    """Map a 0-100 score to its remarks band"""
    if score >= 80:
        return ScoreRemarks.EXCELLENT
    elif score >= 60:
        return ScoreRemarks.GOOD
    elif score >= 40:
        return ScoreRemarks.FAIR
    elif score >= 20:
        return ScoreRemarks.POOR
    else:
        return ScoreRemarks.VERY_POOR


def calculate_score(stats: ScoreStats) -> int:
    """
    Weighted score from loan-history counts, clamped to [0, 100].

    Scoring weights:
    - 40%: On-time repayment rate among paid loans
    - 20%: Share of loans paid, doubled and capped (full marks once half are paid)
    - 20%: History depth, saturates at 10 loans
    - minus 15%: Share of loans overdue
    - minus 5%: Share of loans defaulted
    """
    total = stats.total_loans
    if total == 0:
        return 0

    paid_share = min(stats.paid_loans / total * 2, 1.0)
    depth = min(total / 10, 1.0)

    raw = (
        stats.on_time_repayment_rate * 0.40 * 100
        + paid_share * 0.20 * 100
        + depth * 0.20 * 100
        - (stats.overdue_loans / total) * 0.15 * 100
        - (stats.defaulted_loans / total) * 0.05 * 100
    )

    clamped = max(0.0, min(100.0, raw))
    # Half-up rounding, not banker's rounding
    return int(math.floor(clamped + 0.5))


def _score_at(loans: Sequence[Loan], day: date, excluded: int = 0) -> CreditScore:
    """Steps 1-7 of the assessment for already-filtered scoreable loans"""
    in_window = [loan for loan in loans if loan.start_date <= day]
    if not in_window:
        return CreditScore(
            score=0,
            remarks=ScoreRemarks.NO_HISTORY,
            stats=ScoreStats(excluded_loans=excluded),
        )

    paid: List[Loan] = []
    overdue = defaulted = active = 0
    for loan in in_window:
        status = classify_status(loan, day)
        if status == LoanStatus.PAID:
            paid.append(loan)
        elif status == LoanStatus.OVERDUE:
            overdue += 1
        elif status == LoanStatus.DEFAULTED:
            defaulted += 1
        else:
            active += 1

    on_time = sum(1 for loan in paid if _repaid_on_time(loan))
    repayment_rate = on_time / len(paid) if paid else 0.0

    stats = ScoreStats(
        total_loans=len(in_window),
        active_loans=active,
        paid_loans=len(paid),
        overdue_loans=overdue,
        defaulted_loans=defaulted,
        on_time_repayment_rate=repayment_rate,
        excluded_loans=excluded,
    )
    score = calculate_score(stats)

    positive_factors = []
    negative_factors = []
    if paid and repayment_rate == 1.0:
        positive_factors.append("Perfect on-time repayment record")
    if stats.paid_loans > 5:
        positive_factors.append("Extensive repaid loan history")
    if overdue:
        negative_factors.append(f"{overdue} overdue loan(s)")
    if defaulted:
        negative_factors.append(f"{defaulted} defaulted loan(s)")

    return CreditScore(
        score=score,
        remarks=score_remarks(score),
        positive_factors=positive_factors,
        negative_factors=negative_factors,
        stats=stats,
    )


def score_history(loans: Sequence[Loan], as_of: date | datetime) -> List[ScorePoint]:
    """
    Replay the score month by month from the earliest loan start up to as_of.

    Each point is dated at its month end (the final one capped at as_of) and is
    an independent re-evaluation with that date as the as-of day.
    """
    _require_sequence(loans)
    scoreable, _ = _split_scoreable(loans)
    if not scoreable:
        return []

    day = to_day(as_of)
    earliest = min(loan.start_date for loan in scoreable)
    if earliest > day:
        return []

    history = []
    for month in generate_month_range(earliest, day):
        point_date = min(month_end(month), day)
        history.append(ScorePoint(date=point_date, score=_score_at(scoreable, point_date).score))
    return history


def compute_credit_score(
    loans: Sequence[Loan],
    as_of: date | datetime,
    include_history: bool = True,
) -> CreditScore:
    """
    Main entry point: score a borrower's loan history as of a given date.

    Loans missing start/due dates are excluded rather than failing the
    whole assessment. Returns the score, remarks band, qualitative factors,
    counts and (optionally) the monthly score history.
    """
    _require_sequence(loans)
    scoreable, excluded = _split_scoreable(loans)
    day = to_day(as_of)

    result = _score_at(scoreable, day, excluded)
    if include_history:
        result.history = score_history(scoreable, day)
    return result
