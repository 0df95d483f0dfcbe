"""Convert raw records from the data-access layer into domain objects"""

import logging
from typing import Any, Iterable, List, Mapping, Optional, Sequence

from pydantic import ValidationError

from loan_engine.config import settings
from loan_engine.domain.exceptions import InvalidRecordError
from loan_engine.domain.lending import with_payment_history
from loan_engine.domain.models import (
    STORED_STATUSES,
    Borrower,
    Expense,
    InterestSchedule,
    Loan,
    LoanStatus,
    Payment,
)
from loan_engine.infrastructure.documents.schemas import (
    BorrowerRecord,
    ExpenseRecord,
    LoanRecord,
    PaymentRecord,
    SettingsRecord,
)
from loan_engine.infrastructure.observability.metrics import record_skipped

logger = logging.getLogger(__name__)


def _stored_status(raw: Optional[str]) -> Optional[LoanStatus]:
    """Only Active/Refinanced/Defaulted are trusted; Paid/Overdue are always derived"""
    if not raw:
        return None
    for status in STORED_STATUSES:
        if raw.lower() == status.value.lower():
            return status
    return None


def loan_from_record(record: Mapping[str, Any]) -> Loan:
    """Validate one loan record; raises InvalidRecordError"""
    try:
        parsed = LoanRecord.model_validate(record)
    except ValidationError as e:
        raise InvalidRecordError(str(e)) from e

    status = _stored_status(parsed.status)
    defaulted_at = parsed.defaulted_at
    if status == LoanStatus.DEFAULTED and defaulted_at is None:
        # "mark defaulted" only touched updatedAt on older records
        defaulted_at = parsed.updated_at

    return Loan(
        id=parsed.id,
        borrower_id=parsed.borrower_id,
        principal=parsed.principal,
        interest=parsed.interest,
        repaid_amount=parsed.repaid_amount,
        start_date=parsed.start_date,
        due_date=parsed.due_date,
        interest_duration=parsed.interest_duration,
        manual_interest_rate=parsed.manual_interest_rate,
        status=status,
        refinanced_from_id=parsed.refinanced_from_id,
        refinanced_to_id=parsed.refinanced_to_id,
        defaulted_at=defaulted_at,
        last_payment_at=parsed.last_payment_date,
        created_at=parsed.created_at,
    )


def _parse_all(records: Iterable[Mapping[str, Any]], convert, kind: str) -> list:
    items = []
    skipped = 0
    for record in records:
        try:
            items.append(convert(record))
        except (InvalidRecordError, ValidationError) as e:
            skipped += 1
            record_id = record.get("id") if isinstance(record, Mapping) else None
            logger.warning(
                f"Skipping malformed {kind} record",
                extra={"record_id": record_id, "kind": kind, "error": str(e)},
            )
    record_skipped(kind, skipped)
    return items


def parse_loans(records: Iterable[Mapping[str, Any]]) -> List[Loan]:
    """Convert loan records, skipping any that fail validation"""
    return _parse_all(records, loan_from_record, "loan")


def _payment(record: Mapping[str, Any]) -> Payment:
    parsed = PaymentRecord.model_validate(record)
    return Payment(id=parsed.id, loan_id=parsed.loan_id, amount=parsed.amount, date=parsed.date)


def parse_payments(records: Iterable[Mapping[str, Any]]) -> List[Payment]:
    return _parse_all(records, _payment, "payment")


def _expense(record: Mapping[str, Any]) -> Expense:
    parsed = ExpenseRecord.model_validate(record)
    return Expense(
        id=parsed.id,
        amount=parsed.amount,
        date=parsed.date,
        description=parsed.description,
        category=parsed.category,
    )


def parse_expenses(records: Iterable[Mapping[str, Any]]) -> List[Expense]:
    return _parse_all(records, _expense, "expense")


def _borrower(record: Mapping[str, Any]) -> Borrower:
    parsed = BorrowerRecord.model_validate(record)
    return Borrower(id=parsed.id, name=parsed.name, phone=parsed.phone)


def parse_borrowers(records: Iterable[Mapping[str, Any]]) -> List[Borrower]:
    return _parse_all(records, _borrower, "borrower")


def parse_interest_schedule(record: Optional[Mapping[str, Any]]) -> InterestSchedule:
    """
    Interest schedule from the settings record.

    Falls back to the configured default rates when the record or its base
    rates are missing. Months without their own interestRates are skipped.
    """
    if not record:
        return InterestSchedule(rates=dict(settings.default_interest_rates))

    try:
        parsed = SettingsRecord.model_validate(record)
    except ValidationError as e:
        logger.warning("Invalid settings record, using default interest rates", extra={"error": str(e)})
        return InterestSchedule(rates=dict(settings.default_interest_rates))

    monthly = {
        month: month_settings.interest_rates
        for month, month_settings in parsed.monthly_settings.items()
        if month_settings.interest_rates
    }
    return InterestSchedule(
        rates=parsed.interest_rates or dict(settings.default_interest_rates),
        monthly_rates=monthly,
    )


def attach_payments(loans: Sequence[Loan], payments: Sequence[Payment]) -> List[Loan]:
    """Fill in repayment timing on each loan from its recorded payments"""
    by_loan: dict = {}
    for payment in payments:
        by_loan.setdefault(payment.loan_id, []).append(payment)
    return [with_payment_history(loan, by_loan.get(loan.id, [])) for loan in loans]
