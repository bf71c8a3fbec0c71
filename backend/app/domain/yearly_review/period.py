"""Review period resolution and the publish trigger window."""

from __future__ import annotations

from datetime import datetime, timezone

from app.domain.yearly_review.exceptions import InvalidReviewYear
from app.domain.yearly_review.models import ReviewPeriod, TriggerWindow


def _utc(now: datetime) -> datetime:
	if now.tzinfo is None:
		return now.replace(tzinfo=timezone.utc)
	return now.astimezone(timezone.utc)


def period_for_year(year: int) -> ReviewPeriod:
	"""Calendar year ``year`` as ``[Jan 1 year, Jan 1 year+1)`` in UTC."""

	return ReviewPeriod(
		year=year,
		start=datetime(year, 1, 1, tzinfo=timezone.utc),
		end=datetime(year + 1, 1, 1, tzinfo=timezone.utc),
	)


def resolve_period(now: datetime, *, review_year: int | None = None) -> ReviewPeriod:
	"""Return the period to review when running at ``now``.

	Defaults to the previous calendar year. An explicit ``review_year`` must be
	a year that has already ended.
	"""

	now = _utc(now)
	if review_year is None:
		return period_for_year(now.year - 1)
	if review_year >= now.year:
		raise InvalidReviewYear(f"review_year_not_complete:{review_year}")
	return period_for_year(review_year)


def in_trigger_window(now: datetime, window: TriggerWindow) -> bool:
	return window.contains(_utc(now))


__all__ = ["in_trigger_window", "period_for_year", "resolve_period"]
