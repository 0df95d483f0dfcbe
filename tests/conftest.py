"""Pytest fixtures for testing"""

import pytest
from datetime import date, timedelta
from decimal import Decimal
from typing import Callable

from loan_engine.domain.models import InterestSchedule, Loan


AS_OF = date(2024, 6, 15)


@pytest.fixture
def as_of() -> date:
    """Fixed evaluation day so no test depends on the clock"""
    return AS_OF


@pytest.fixture
def make_loan() -> Callable[..., Loan]:
    """Factory for loans with sensible defaults: 1000 + 150 interest, 2-week term ending before AS_OF"""
    counter = {"n": 0}

    def _make(**overrides) -> Loan:
        counter["n"] += 1
        fields = dict(
            id=f"loan_{counter['n']}",
            borrower_id="borrower_1",
            principal=Decimal("1000"),
            interest=Decimal("150"),
            repaid_amount=Decimal("0"),
            start_date=AS_OF - timedelta(days=30),
            due_date=AS_OF - timedelta(days=16),
        )
        fields.update(overrides)
        return Loan(**fields)

    return _make


@pytest.fixture
def schedule() -> InterestSchedule:
    return InterestSchedule(
        rates={1: Decimal("0.15"), 2: Decimal("0.20"), 3: Decimal("0.30"), 4: Decimal("0.30")},
        monthly_rates={"2024-07": {1: Decimal("0.10"), 2: Decimal("0.18")}},
    )


@pytest.fixture
def loan_records() -> list[dict]:
    """Raw loan documents as supplied by the data-access layer"""
    return [
        {
            "id": "L1",
            "borrowerId": "B1",
            "principal": 1000,
            "interest": 150,
            "totalRepayable": 1150,
            "repaidAmount": 1150,
            "startDate": "2024-05-01",
            "dueDate": "2024-05-08",
            "interestDuration": 1,
            "status": "Active",
        },
        {
            "id": "L2",
            "borrowerId": "B1",
            "principal": 500,
            "interest": 100,
            "repaidAmount": 0,
            "startDate": "2024-05-20",
            "dueDate": "2024-06-03",
            "interestDuration": 2,
            "status": "Active",
        },
        {
            "id": "L3",
            "borrowerId": "B2",
            "principal": 2000,
            "interest": 600,
            "repaidAmount": 500,
            "startDate": "2024-06-01",
            "dueDate": "2024-06-29",
            "interestDuration": 4,
            "status": "Active",
        },
        {
            "id": "L4",
            "borrowerId": "B2",
            "principal": 800,
            "interest": 160,
            "repaidAmount": 100,
            "startDate": "2024-04-01",
            "dueDate": "2024-04-15",
            "status": "Defaulted",
            "updatedAt": "2024-05-01T09:30:00Z",
        },
    ]


@pytest.fixture
def payment_records() -> list[dict]:
    return [
        {"id": "P1", "loanId": "L1", "amount": 600, "date": "2024-05-04T10:00:00"},
        {"id": "P2", "loanId": "L1", "amount": 550, "date": "2024-05-07T16:00:00"},
        {"id": "P3", "loanId": "L3", "amount": 500, "date": "2024-06-10T08:00:00"},
        {"id": "P4", "loanId": "L4", "amount": 100, "date": "2024-04-10T08:00:00"},
    ]


@pytest.fixture
def expense_records() -> list[dict]:
    return [
        {"id": "E1", "amount": 120, "date": "2024-05-15", "description": "Airtime", "category": "operations"},
        {"id": "E2", "amount": 80, "date": "2024-06-02", "description": "Transport", "category": "operations"},
    ]
