"""Domain models - pure Python dataclasses representing business entities"""

from dataclasses import dataclass, field
from datetime import date, datetime, timedelta
from decimal import Decimal
from enum import Enum
from typing import Dict, List, Optional

from loan_engine.utils.date_utils import month_key

ZERO = Decimal("0")


class LoanStatus(str, Enum):
    ACTIVE = "Active"
    PAID = "Paid"
    OVERDUE = "Overdue"
    DEFAULTED = "Defaulted"
    REFINANCED = "Refinanced"


# Values a loan may carry in its stored status field
STORED_STATUSES = (LoanStatus.ACTIVE, LoanStatus.REFINANCED, LoanStatus.DEFAULTED)


class ScoreRemarks(str, Enum):
    EXCELLENT = "Excellent"
    GOOD = "Good"
    FAIR = "Fair"
    POOR = "Poor"
    VERY_POOR = "Very Poor"
    NO_HISTORY = "No loan history"


@dataclass(frozen=True)
class Loan:
    """One lending agreement"""

    id: str
    borrower_id: Optional[str]
    principal: Decimal
    interest: Decimal = ZERO
    repaid_amount: Decimal = ZERO
    start_date: Optional[date] = None
    due_date: Optional[date] = None
    interest_duration: Optional[int] = None  # weeks, 1-4
    manual_interest_rate: Optional[Decimal] = None
    status: Optional[LoanStatus] = None  # stored override: Active, Refinanced or Defaulted
    refinanced_from_id: Optional[str] = None
    refinanced_to_id: Optional[str] = None
    defaulted_at: Optional[datetime] = None
    paid_at: Optional[datetime] = None  # moment repayments reached total_repayable
    last_payment_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    @property
    def total_repayable(self) -> Decimal:
        return self.principal + self.interest

    @property
    def outstanding(self) -> Decimal:
        return self.total_repayable - self.repaid_amount

    @property
    def is_fully_repaid(self) -> bool:
        total = self.total_repayable
        return total > 0 and self.repaid_amount >= total

    @property
    def is_scoreable(self) -> bool:
        """Legacy records without a start or due date cannot be classified over time"""
        return self.start_date is not None and self.due_date is not None


@dataclass(frozen=True)
class Payment:
    """One repayment event against a loan"""

    id: str
    loan_id: str
    amount: Decimal
    date: datetime


@dataclass(frozen=True)
class Expense:
    """Operating cost recorded by the lender"""

    id: str
    amount: Decimal
    date: date
    description: str = ""
    category: str = ""


@dataclass(frozen=True)
class Borrower:
    id: str
    name: str
    phone: str = ""


@dataclass
class InterestSchedule:
    """Interest rate per term length (weeks), optionally overridden per calendar month"""

    rates: Dict[int, Decimal]
    monthly_rates: Dict[str, Dict[int, Decimal]] = field(default_factory=dict)

    def rates_for(self, day: date) -> Dict[int, Decimal]:
        return self.monthly_rates.get(month_key(day)) or self.rates


@dataclass(frozen=True)
class DateRange:
    """Inclusive [start, end] window at day granularity"""

    start: date
    end: date

    def contains(self, day: date) -> bool:
        return self.start <= day <= self.end

    @property
    def days(self) -> int:
        return (self.end - self.start).days + 1

    def previous(self) -> "DateRange":
        """Equal-length window immediately before this one"""
        prev_end = self.start - timedelta(days=1)
        return DateRange(start=prev_end - timedelta(days=self.days - 1), end=prev_end)


@dataclass
class ScorePoint:
    """Credit score at one point of the replayed history"""

    date: date
    score: int


@dataclass
class ScoreStats:
    total_loans: int = 0
    active_loans: int = 0
    paid_loans: int = 0
    overdue_loans: int = 0
    defaulted_loans: int = 0
    on_time_repayment_rate: float = 0.0
    excluded_loans: int = 0


@dataclass
class CreditScore:
    """Output of borrower credit assessment"""

    score: int
    remarks: ScoreRemarks
    positive_factors: List[str] = field(default_factory=list)
    negative_factors: List[str] = field(default_factory=list)
    stats: ScoreStats = field(default_factory=ScoreStats)
    history: List[ScorePoint] = field(default_factory=list)


@dataclass
class AgedLoan:
    loan_id: str
    borrower_id: Optional[str]
    due_date: date
    days_overdue: int
    outstanding: Decimal


@dataclass
class ArrearsBucket:
    label: str
    loans: List[AgedLoan] = field(default_factory=list)
    total: Decimal = ZERO

    @property
    def count(self) -> int:
        return len(self.loans)


@dataclass
class ArrearsAging:
    buckets: Dict[str, ArrearsBucket]
    loans: List[AgedLoan]  # most overdue first

    @property
    def total_outstanding(self) -> Decimal:
        return sum((bucket.total for bucket in self.buckets.values()), ZERO)


@dataclass
class CostOfDefault:
    defaulted_loans: int
    total_loss: Decimal
    loss_by_borrower: Dict[Optional[str], Decimal]


@dataclass
class CashFlowEntry:
    date: date
    type: str  # "payment", "disbursement" or "expense"
    amount: Decimal  # positive inflow, negative outflow
    reference: str


@dataclass
class CashFlow:
    entries: List[CashFlowEntry]
    total_inflow: Decimal
    total_outflow: Decimal

    @property
    def net(self) -> Decimal:
        return self.total_inflow - self.total_outflow


@dataclass
class PeriodSummary:
    date_range: DateRange
    count: int
    disbursed: Decimal
    repaid: Decimal
    interest: Decimal


@dataclass
class PortfolioMetrics:
    """Aggregate financials for a loan cohort"""

    total_loans: int
    active_count: int
    paid_count: int
    overdue_count: int
    defaulted_count: int
    refinanced_count: int
    excluded_loans: int
    total_disbursed: Decimal
    total_collected: Decimal
    total_outstanding: Decimal
    total_repayable: Decimal
    total_expected_profit: Decimal
    actual_profit: Decimal
    average_loan_size: Optional[Decimal]
    average_loan_duration_days: Optional[float]
    portfolio_yield: Optional[float]
    repayment_rate: Optional[float]
    overdue_ratio: Optional[float]  # reported as "default rate" by earlier dashboards
    defaulted_ratio: Optional[float]
    arrears: ArrearsAging
    cost_of_default: CostOfDefault
    cash_flow: CashFlow
    previous_period: Optional[PeriodSummary] = None
    disbursed_trend: Optional[str] = None
    collected_trend: Optional[str] = None


@dataclass
class MonthlyPoint:
    """One month of the growth and risk series"""

    month: str  # YYYY-MM
    income: Decimal
    costs: Decimal
    new_loans: int
    new_loans_amount: Decimal
    performing: Decimal
    overdue: Decimal
