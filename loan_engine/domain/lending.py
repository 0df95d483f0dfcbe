"""Loan lifecycle calculations: interest, origination, payments, top-up, refinance"""

from dataclasses import replace
from datetime import date, datetime, timedelta
from decimal import Decimal
from typing import List, Optional, Sequence, Tuple

from loan_engine.domain.exceptions import InvalidLoanOperationError
from loan_engine.domain.models import ZERO, InterestSchedule, Loan, LoanStatus, Payment

MIN_DURATION_WEEKS = 1
MAX_DURATION_WEEKS = 4


def resolve_interest_rate(
    schedule: InterestSchedule,
    start_date: date,
    interest_duration: Optional[int],
    manual_rate: Optional[Decimal] = None,
) -> Decimal:
    """
    Interest rate for a new loan.

    A manual rate overrides the tiered schedule. Otherwise the rate for the
    term length comes from the start month's override, falling back to the
    base schedule.
    """
    if manual_rate is not None:
        if manual_rate < 0:
            raise InvalidLoanOperationError("Manual interest rate cannot be negative")
        return Decimal(manual_rate)

    if interest_duration is None or not MIN_DURATION_WEEKS <= interest_duration <= MAX_DURATION_WEEKS:
        raise InvalidLoanOperationError(
            f"Interest duration must be {MIN_DURATION_WEEKS}-{MAX_DURATION_WEEKS} weeks, got {interest_duration}"
        )

    return Decimal(schedule.rates_for(start_date).get(interest_duration, ZERO))


def originate_loan(
    loan_id: str,
    borrower_id: str,
    principal: Decimal,
    start_date: date,
    schedule: InterestSchedule,
    interest_duration: Optional[int] = 1,
    manual_rate: Optional[Decimal] = None,
    due_date: Optional[date] = None,
    created_at: Optional[datetime] = None,
) -> Loan:
    """
    Build a new Active loan with its interest fixed at creation time.

    Args:
        principal: Amount disbursed, must be positive
        interest_duration: Term in weeks (1-4), selects the tiered rate
        manual_rate: Decimal rate that overrides the tier
        due_date: Defaults to start_date + interest_duration weeks

    Example:
        1000 for 2 weeks at 0.20 -> interest 200, total repayable 1200
    """
    if principal <= 0:
        raise InvalidLoanOperationError("Principal must be positive")

    rate = resolve_interest_rate(schedule, start_date, interest_duration, manual_rate)

    if due_date is None:
        due_date = start_date + timedelta(weeks=interest_duration or MIN_DURATION_WEEKS)
    if due_date < start_date:
        raise InvalidLoanOperationError("Due date cannot be before start date")

    return Loan(
        id=loan_id,
        borrower_id=borrower_id,
        principal=principal,
        interest=principal * rate,
        start_date=start_date,
        due_date=due_date,
        interest_duration=None if manual_rate is not None else interest_duration,
        manual_interest_rate=manual_rate,
        status=LoanStatus.ACTIVE,
        created_at=created_at,
    )


def _check_payment(loan: Loan, payment: Payment) -> None:
    if payment.loan_id != loan.id:
        raise InvalidLoanOperationError(f"Payment {payment.id} belongs to loan {payment.loan_id}, not {loan.id}")
    if payment.amount <= 0:
        raise InvalidLoanOperationError("Payment amount must be positive")


def apply_payment(loan: Loan, payment: Payment) -> Loan:
    """Add a repayment; records when the loan first became fully repaid"""
    _check_payment(loan, payment)

    updated = replace(
        loan,
        repaid_amount=loan.repaid_amount + payment.amount,
        last_payment_at=max(loan.last_payment_at or payment.date, payment.date),
    )
    if updated.is_fully_repaid and not loan.is_fully_repaid:
        updated = replace(updated, paid_at=payment.date)
    return updated


def undo_payment(loan: Loan, payment: Payment) -> Loan:
    """Reverse a repayment; repaid amount never drops below zero"""
    _check_payment(loan, payment)

    updated = replace(loan, repaid_amount=max(loan.repaid_amount - payment.amount, ZERO))
    if not updated.is_fully_repaid:
        updated = replace(updated, paid_at=None)
    return updated


def with_payment_history(loan: Loan, payments: Sequence[Payment]) -> Loan:
    """
    Derive paid_at and last_payment_at from recorded payments.

    The stored repaid amount stays authoritative; payments only supply
    timing. When the recorded payments never reach the total (legacy loans
    repaid before payments were tracked) the last payment marks the payoff.
    """
    own = sorted((p for p in payments if p.loan_id == loan.id), key=lambda p: p.date)
    if not own:
        return loan

    paid_at = None
    running = ZERO
    for payment in own:
        running += payment.amount
        if loan.total_repayable > 0 and running >= loan.total_repayable:
            paid_at = payment.date
            break

    if loan.is_fully_repaid and paid_at is None:
        paid_at = own[-1].date

    return replace(
        loan,
        last_payment_at=own[-1].date,
        paid_at=paid_at if loan.is_fully_repaid else None,
    )


def top_up(loan: Loan, amount: Decimal) -> Loan:
    """
    Increase the principal of an existing loan, keeping its agreed rate.

    The effective rate is interest/principal of the current loan; interest
    is recomputed on the new principal. Repaid amount is unchanged.
    """
    if amount <= 0:
        raise InvalidLoanOperationError("Top-up amount must be positive")
    if loan.status in (LoanStatus.REFINANCED, LoanStatus.DEFAULTED):
        raise InvalidLoanOperationError(f"Cannot top up a {loan.status.value} loan")

    effective_rate = loan.interest / loan.principal if loan.principal > 0 else ZERO
    new_principal = loan.principal + amount
    return replace(
        loan,
        principal=new_principal,
        interest=new_principal * effective_rate,
        paid_at=None,
    )


def refinance(
    loan: Loan,
    new_loan_id: str,
    principal: Decimal,
    start_date: date,
    due_date: date,
    schedule: InterestSchedule,
    interest_duration: Optional[int] = 1,
    manual_rate: Optional[Decimal] = None,
    created_at: Optional[datetime] = None,
) -> Tuple[Loan, Loan]:
    """
    Close a loan and open its successor for the same borrower.

    Returns (closed predecessor, new loan). A loan has at most one successor.
    """
    if loan.status == LoanStatus.REFINANCED or loan.refinanced_to_id is not None:
        raise InvalidLoanOperationError(f"Loan {loan.id} has already been refinanced")

    successor = originate_loan(
        loan_id=new_loan_id,
        borrower_id=loan.borrower_id,
        principal=principal,
        start_date=start_date,
        schedule=schedule,
        interest_duration=interest_duration,
        manual_rate=manual_rate,
        due_date=due_date,
        created_at=created_at,
    )
    successor = replace(successor, refinanced_from_id=loan.id)
    closed = replace(loan, status=LoanStatus.REFINANCED, refinanced_to_id=new_loan_id)
    return closed, successor


def mark_defaulted(loan: Loan, at: datetime) -> Loan:
    """Write a loan off; Defaulted outranks every derived state from `at` on"""
    return replace(loan, status=LoanStatus.DEFAULTED, defaulted_at=at)


def refinance_chain(loans: Sequence[Loan], loan_id: str) -> List[Loan]:
    """The linear refinance chain containing loan_id, oldest first"""
    by_id = {loan.id: loan for loan in loans}
    current = by_id.get(loan_id)
    if current is None:
        return []

    seen = {current.id}
    while current.refinanced_from_id in by_id and current.refinanced_from_id not in seen:
        current = by_id[current.refinanced_from_id]
        seen.add(current.id)

    # Walk forward from the root; guard against cyclic links in bad data
    chain = [current]
    visited = {current.id}
    while current.refinanced_to_id in by_id and current.refinanced_to_id not in visited:
        current = by_id[current.refinanced_to_id]
        visited.add(current.id)
        chain.append(current)
    return chain
