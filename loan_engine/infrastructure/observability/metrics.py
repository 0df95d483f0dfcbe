"""Prometheus metrics for monitoring score distribution, portfolio risk and data quality"""

from prometheus_client import Counter, Gauge, Histogram

from loan_engine.domain.models import PortfolioMetrics

# Scoring metrics
credit_score_counter = Counter(
    "loan_engine_credit_scores_total",
    "Total credit scores computed",
    ["remarks"],  # Excellent | Good | Fair | Poor | Very Poor | No loan history
)

credit_score_histogram = Histogram(
    "loan_engine_credit_score",
    "Distribution of computed credit scores",
    buckets=[20, 40, 60, 80, 100],
)

# Data quality
records_skipped_counter = Counter(
    "loan_engine_records_skipped_total",
    "Records excluded from computations because they were malformed",
    ["kind"],  # loan | payment | expense | borrower
)

# Portfolio risk
arrears_outstanding_gauge = Gauge(
    "loan_engine_arrears_outstanding",
    "Outstanding balance of overdue loans by aging bucket",
    ["bucket"],
)

# Throughput
computations_counter = Counter(
    "loan_engine_computations_total",
    "Total engine computations by operation",
    ["operation"],
)

results_histogram = Histogram(
    "loan_engine_computation_results",
    "Number of items (loans, months, borrowers) produced per computation",
    ["operation"],
    buckets=[1, 5, 10, 50, 100, 500, 1000],
)

# Engine latency
computation_duration_histogram = Histogram(
    "loan_engine_computation_seconds",
    "Time spent in engine computations",
    ["operation"],
)


def record_credit_score(score: int, remarks: str) -> None:
    """Record score metrics for monitoring the borrower score distribution"""
    credit_score_counter.labels(remarks=remarks).inc()
    credit_score_histogram.observe(score)


def record_computation(operation: str, item_count: int) -> None:
    """Count a finished computation and the size of its result"""
    computations_counter.labels(operation=operation).inc()
    results_histogram.labels(operation=operation).observe(item_count)


def record_skipped(kind: str, count: int = 1) -> None:
    if count > 0:
        records_skipped_counter.labels(kind=kind).inc(count)


def record_portfolio(metrics: PortfolioMetrics) -> None:
    """Publish the latest arrears picture"""
    for label, bucket in metrics.arrears.buckets.items():
        arrears_outstanding_gauge.labels(bucket=label).set(float(bucket.total))
    record_skipped("loan", metrics.excluded_loans)
