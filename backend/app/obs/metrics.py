"""Central registry for Prometheus metrics used by background jobs."""

from __future__ import annotations

from prometheus_client import Counter, Gauge, Histogram

BACKGROUND_RUNS = Counter(
	"forum_jobs_runs_total",
	"Background job executions",
	["name", "result"],
)

BACKGROUND_DURATION = Histogram(
	"forum_jobs_duration_seconds",
	"Background job duration",
	["name"],
	buckets=(0.1, 0.5, 1.0, 2.0, 5.0, 15.0, 30.0, 60.0, 300.0),
)

YEARLY_REVIEW_OUTCOMES = Counter(
	"forum_yearly_review_outcomes_total",
	"Yearly review job outcomes",
	["outcome"],
)

YEARLY_REVIEW_ROWS = Gauge(
	"forum_yearly_review_rows",
	"Qualifying subjects per yearly review leaderboard in the last computed report",
	["leaderboard"],
)


def inc_yearly_review_outcome(outcome: str) -> None:
	YEARLY_REVIEW_OUTCOMES.labels(outcome=outcome).inc()


def set_yearly_review_rows(leaderboard: str, total: int) -> None:
	YEARLY_REVIEW_ROWS.labels(leaderboard=leaderboard).set(total)


__all__ = [
	"BACKGROUND_DURATION",
	"BACKGROUND_RUNS",
	"YEARLY_REVIEW_OUTCOMES",
	"YEARLY_REVIEW_ROWS",
	"inc_yearly_review_outcome",
	"set_yearly_review_rows",
]
