"""Prometheus metrics for Ponder.

Tracks thought stage outcomes and latency, branch matches, middleware
failures, dispatched envelopes and open dialogues.
"""

from prometheus_client import Counter, Gauge, Histogram

# Thought stage metrics
STAGE_LATENCY = Histogram(
    "ponder_stage_latency_seconds",
    "Latency of individual thought stages",
    labelnames=["stage"],
    buckets=(0.001, 0.005, 0.01, 0.025, 0.05, 0.1, 0.25, 0.5, 1.0, 2.5),
)

STAGE_OUTCOMES = Counter(
    "ponder_stage_outcomes_total",
    "Thought stage completions by outcome",
    labelnames=["stage", "outcome"],
)

# Branch metrics
BRANCH_MATCHES = Counter(
    "ponder_branch_matches_total",
    "Number of branches matched",
    labelnames=["category"],
)

# Middleware metrics
MIDDLEWARE_ERRORS = Counter(
    "ponder_middleware_errors_total",
    "Middleware pieces that raised",
    labelnames=["stack"],
)

# Outgoing metrics
ENVELOPES_DISPATCHED = Counter(
    "ponder_envelopes_dispatched_total",
    "Envelopes dispatched through the message adapter",
    labelnames=["method"],
)

# Dialogue metrics
ACTIVE_DIALOGUES = Gauge(
    "ponder_active_dialogues",
    "Number of audiences engaged in a dialogue",
)


def record_stage(stage: str, success: bool, duration: float) -> None:
    """Record the outcome and latency of a thought stage."""
    STAGE_LATENCY.labels(stage=stage).observe(duration)
    STAGE_OUTCOMES.labels(stage=stage, outcome="success" if success else "skipped").inc()
