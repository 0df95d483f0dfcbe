"""Unit tests for portfolio aggregation and arrears aging"""

import math
import pytest
from datetime import date, datetime, timedelta
from decimal import Decimal

from loan_engine.domain.exceptions import InvalidInputError
from loan_engine.domain.models import DateRange, Expense, LoanStatus, Payment
from loan_engine.domain.portfolio import (
    aggregate_portfolio,
    arrears_aging,
    arrears_bucket,
    cash_flow,
    cost_of_default,
    summarize_period,
    trend_percentage,
)

JUNE = DateRange(start=date(2024, 6, 1), end=date(2024, 6, 30))


@pytest.fixture
def paid_and_open(make_loan):
    """1000 + 150 fully repaid, 500 + 100 untouched and not yet due"""
    return [
        make_loan(
            principal=Decimal("1000"),
            interest=Decimal("150"),
            repaid_amount=Decimal("1150"),
            start_date=date(2024, 6, 1),
            due_date=date(2024, 6, 8),
        ),
        make_loan(
            principal=Decimal("500"),
            interest=Decimal("100"),
            repaid_amount=Decimal("0"),
            start_date=date(2024, 6, 2),
            due_date=date(2024, 6, 20),
        ),
    ]


def test_totals_are_sum_of_loans(paid_and_open, as_of):
    metrics = aggregate_portfolio(paid_and_open, date_range=JUNE, as_of=as_of)

    assert metrics.total_loans == 2
    assert metrics.total_disbursed == Decimal("1500")
    assert metrics.total_collected == Decimal("1150")
    # Paid loan contributes nothing outstanding
    assert metrics.total_outstanding == Decimal("600")
    assert metrics.total_repayable == Decimal("1750")
    assert metrics.total_expected_profit == Decimal("250")
    assert metrics.actual_profit == Decimal("150")
    assert metrics.paid_count == 1
    assert metrics.active_count == 1


def test_derived_ratios(paid_and_open, as_of):
    metrics = aggregate_portfolio(paid_and_open, date_range=JUNE, as_of=as_of)

    assert metrics.average_loan_size == Decimal("750")
    assert metrics.portfolio_yield == pytest.approx(1150 / 1500 - 1)
    assert metrics.repayment_rate == pytest.approx(1150 / 1750)
    assert metrics.overdue_ratio == 0.0
    assert metrics.defaulted_ratio == 0.0
    assert metrics.average_loan_duration_days == pytest.approx((7 + 18) / 2)


def test_empty_cohort_ratios_are_none(as_of):
    metrics = aggregate_portfolio([], date_range=JUNE, as_of=as_of)

    assert metrics.total_loans == 0
    assert metrics.total_disbursed == 0
    for value in (
        metrics.average_loan_size,
        metrics.average_loan_duration_days,
        metrics.portfolio_yield,
        metrics.repayment_rate,
        metrics.overdue_ratio,
        metrics.defaulted_ratio,
    ):
        assert value is None


def test_zero_principal_portfolio_has_no_yield(make_loan, as_of):
    """Disbursed 0 must not produce NaN or Infinity"""
    loans = [
        make_loan(
            principal=Decimal("0"),
            interest=Decimal("0"),
            start_date=date(2024, 6, 3),
            due_date=date(2024, 6, 10),
        )
    ]

    metrics = aggregate_portfolio(loans, date_range=JUNE, as_of=as_of)

    assert metrics.portfolio_yield is None
    assert metrics.repayment_rate is None
    assert metrics.average_loan_size == 0
    assert not math.isnan(metrics.overdue_ratio)


def test_date_range_inclusive(make_loan, as_of):
    loans = [
        make_loan(start_date=date(2024, 5, 31), due_date=date(2024, 6, 7)),
        make_loan(start_date=date(2024, 6, 1), due_date=date(2024, 6, 8)),
        make_loan(start_date=date(2024, 6, 30), due_date=date(2024, 7, 7)),
        make_loan(start_date=date(2024, 7, 1), due_date=date(2024, 7, 8)),
    ]

    metrics = aggregate_portfolio(loans, date_range=JUNE, as_of=as_of)

    assert metrics.total_loans == 2


def test_no_range_includes_every_loan(paid_and_open, make_loan, as_of):
    loans = paid_and_open + [make_loan(start_date=date(2023, 1, 1), due_date=date(2023, 1, 8))]

    metrics = aggregate_portfolio(loans, as_of=as_of)

    assert metrics.total_loans == 3


def test_overdue_and_defaulted_ratios_are_separate(make_loan, as_of):
    """The old "default rate" counted overdue loans; both figures are reported"""
    loans = [
        make_loan(start_date=date(2024, 6, 1), due_date=date(2024, 6, 5)),
        make_loan(start_date=date(2024, 6, 1), due_date=date(2024, 6, 6)),
        make_loan(start_date=date(2024, 6, 1), due_date=date(2024, 6, 7), status=LoanStatus.DEFAULTED),
        make_loan(start_date=date(2024, 6, 1), due_date=date(2024, 6, 29)),
    ]

    metrics = aggregate_portfolio(loans, date_range=JUNE, as_of=as_of)

    assert metrics.overdue_count == 2
    assert metrics.defaulted_count == 1
    assert metrics.overdue_ratio == 0.5
    assert metrics.defaulted_ratio == 0.25
    # Defaulted balance is a loss, not outstanding
    assert metrics.total_outstanding == Decimal("1150") * 3
    assert metrics.cost_of_default.total_loss == Decimal("1150")


def test_refinanced_loans_carry_no_outstanding(make_loan, as_of):
    loans = [
        make_loan(
            start_date=date(2024, 6, 1),
            due_date=date(2024, 6, 8),
            repaid_amount=Decimal("300"),
            status=LoanStatus.REFINANCED,
            refinanced_to_id="loan_next",
        ),
        make_loan(start_date=date(2024, 6, 8), due_date=date(2024, 6, 22)),
    ]

    metrics = aggregate_portfolio(loans, date_range=JUNE, as_of=as_of)

    assert metrics.refinanced_count == 1
    assert metrics.total_disbursed == Decimal("2000")
    assert metrics.total_collected == Decimal("300")
    assert metrics.total_outstanding == Decimal("1150")
    assert metrics.overdue_count == 0
    assert metrics.arrears.loans == []


def test_malformed_loans_are_excluded_not_fatal(make_loan, as_of):
    loans = [
        make_loan(start_date=None),
        make_loan(start_date=date(2024, 6, 3), due_date=None),
        make_loan(start_date=date(2024, 6, 3), due_date=date(2024, 6, 10)),
    ]

    metrics = aggregate_portfolio(loans, date_range=JUNE, as_of=as_of)

    assert metrics.total_loans == 1
    assert metrics.excluded_loans == 2


def test_non_list_input_fails_fast(as_of):
    with pytest.raises(InvalidInputError):
        aggregate_portfolio("loans", as_of=as_of)


def test_classification_at_snapshot_date(make_loan):
    """Historical reconstruction: same loans, earlier as_of"""
    loans = [make_loan(start_date=date(2024, 6, 1), due_date=date(2024, 6, 10))]

    before_due = aggregate_portfolio(loans, date_range=JUNE, as_of=date(2024, 6, 10))
    after_due = aggregate_portfolio(loans, date_range=JUNE, as_of=date(2024, 6, 11))

    assert before_due.active_count == 1
    assert after_due.overdue_count == 1


def test_arrears_bucket_boundaries():
    assert arrears_bucket(0) is None
    assert arrears_bucket(1) == "1-7"
    assert arrears_bucket(7) == "1-7"
    assert arrears_bucket(8) == "8-14"
    assert arrears_bucket(14) == "8-14"
    assert arrears_bucket(15) == "15-30"
    assert arrears_bucket(30) == "15-30"
    assert arrears_bucket(31) == "30+"
    assert arrears_bucket(400) == "30+"


def test_arrears_aging_buckets_each_loan_once(make_loan, as_of):
    loans = [
        make_loan(due_date=as_of - timedelta(days=days))
        for days in (7, 8, 14, 15, 30, 31)
    ]

    aging = arrears_aging(loans, as_of)

    assert {label: bucket.count for label, bucket in aging.buckets.items()} == {
        "1-7": 1,
        "8-14": 2,
        "15-30": 2,
        "30+": 1,
    }
    assert sum(bucket.count for bucket in aging.buckets.values()) == len(loans)
    assert aging.buckets["8-14"].total == Decimal("2300")
    assert aging.total_outstanding == Decimal("1150") * 6
    # Most overdue first
    assert [entry.days_overdue for entry in aging.loans] == [31, 30, 15, 14, 8, 7]


def test_arrears_uses_outstanding_balance(make_loan, as_of):
    loan = make_loan(due_date=as_of - timedelta(days=3), repaid_amount=Decimal("400"))

    aging = arrears_aging([loan], as_of)

    assert aging.buckets["1-7"].total == Decimal("750")


def test_arrears_skips_loans_with_nothing_outstanding(make_loan, as_of):
    """Zero-value loans are nominally overdue but owe nothing"""
    loans = [
        make_loan(principal=Decimal("0"), interest=Decimal("0"), due_date=as_of - timedelta(days=3)),
        make_loan(due_date=as_of - timedelta(days=3), repaid_amount=Decimal("1150")),
        make_loan(due_date=as_of - timedelta(days=3), status=LoanStatus.DEFAULTED),
        make_loan(due_date=as_of),
    ]

    aging = arrears_aging(loans, as_of)

    assert aging.loans == []
    assert aging.total_outstanding == 0


def test_cost_of_default_by_borrower(make_loan, as_of):
    loans = [
        make_loan(borrower_id="B1", status=LoanStatus.DEFAULTED, repaid_amount=Decimal("150")),
        make_loan(borrower_id="B1", status=LoanStatus.DEFAULTED),
        make_loan(borrower_id="B2", status=LoanStatus.DEFAULTED, repaid_amount=Decimal("1150")),
        make_loan(borrower_id="B3"),
    ]

    cost = cost_of_default(loans, as_of)

    assert cost.defaulted_loans == 3
    assert cost.total_loss == Decimal("2150")
    assert cost.loss_by_borrower == {"B1": Decimal("2150"), "B2": Decimal("0")}


def test_cash_flow_in_range(make_loan):
    loans = [make_loan(id="L1", start_date=date(2024, 6, 3), due_date=date(2024, 6, 10))]
    payments = [
        Payment("P1", "L1", Decimal("400"), datetime(2024, 6, 9, 10, 0)),
        Payment("P2", "L0", Decimal("250"), datetime(2024, 5, 30, 10, 0)),
    ]
    expenses = [
        Expense("E1", Decimal("60"), date(2024, 6, 4)),
        Expense("E2", Decimal("90"), date(2024, 7, 1)),
    ]

    flow = cash_flow(loans, payments, expenses, JUNE)

    assert [(entry.type, entry.amount) for entry in flow.entries] == [
        ("disbursement", Decimal("-1000")),
        ("expense", Decimal("-60")),
        ("payment", Decimal("400")),
    ]
    assert flow.total_inflow == Decimal("400")
    assert flow.total_outflow == Decimal("1060")
    assert flow.net == Decimal("-660")


def test_collected_counts_repayments_outside_window(make_loan, as_of):
    """Repaid amount counts even when the payment fell after the range"""
    loans = [make_loan(start_date=date(2024, 6, 28), due_date=date(2024, 7, 5), repaid_amount=Decimal("200"))]
    payments = [Payment("P1", loans[0].id, Decimal("200"), datetime(2024, 7, 2, 12, 0))]

    metrics = aggregate_portfolio(loans, payments, date_range=JUNE, as_of=date(2024, 7, 3))

    assert metrics.total_collected == Decimal("200")
    assert metrics.cash_flow.total_inflow == 0


def test_previous_period_comparison(make_loan, as_of):
    loans = [
        make_loan(start_date=date(2024, 5, 10), due_date=date(2024, 5, 17), principal=Decimal("500")),
        make_loan(start_date=date(2024, 6, 3), due_date=date(2024, 6, 10), repaid_amount=Decimal("1150")),
        make_loan(start_date=date(2024, 6, 4), due_date=date(2024, 6, 11)),
    ]

    metrics = aggregate_portfolio(loans, date_range=JUNE, as_of=as_of, compare_previous=True)

    previous = metrics.previous_period
    assert previous.date_range == DateRange(date(2024, 5, 2), date(2024, 5, 31))
    assert previous.count == 1
    assert previous.disbursed == Decimal("500")
    assert metrics.disbursed_trend == "+300.0%"
    assert metrics.collected_trend == "New"


def test_summarize_period(make_loan):
    loans = [
        make_loan(start_date=date(2024, 6, 3), due_date=date(2024, 6, 10), repaid_amount=Decimal("100")),
        make_loan(start_date=date(2024, 7, 3), due_date=date(2024, 7, 10)),
    ]

    summary = summarize_period(loans, JUNE)

    assert summary.count == 1
    assert summary.disbursed == Decimal("1000")
    assert summary.repaid == Decimal("100")
    assert summary.interest == Decimal("150")


def test_trend_percentage():
    assert trend_percentage(Decimal("150"), Decimal("100")) == "+50.0%"
    assert trend_percentage(Decimal("75"), Decimal("100")) == "-25.0%"
    assert trend_percentage(Decimal("100"), Decimal("100")) == "+0.0%"
    assert trend_percentage(Decimal("10"), Decimal("0")) == "New"
    assert trend_percentage(Decimal("0"), Decimal("0")) is None
