"""Scheduled job that publishes the yearly review topic."""

from __future__ import annotations

import logging
from datetime import datetime, timezone
from typing import Any, Callable, Mapping, Optional

from app.domain.yearly_review.exceptions import AlreadyPublishedError, ConfigurationError
from app.domain.yearly_review.models import JobOutcome, ReviewConfig
from app.domain.yearly_review.period import in_trigger_window, resolve_period
from app.domain.yearly_review.render import ReviewRenderer
from app.domain.yearly_review.repository import ForumRepository
from app.domain.yearly_review.service import YearlyReviewService
from app.infra.redis import redis_client
from app.obs import logging as obs_logging
from app.obs import metrics as obs_metrics
from app.settings import is_true, settings

_LOG = logging.getLogger(__name__)

_JOB_NAME = "yearly-review"


def _lock_key(year: int) -> str:
	return f"yearly_review:lock:{year}"


def _utcnow() -> datetime:
	return datetime.now(timezone.utc)


class YearlyReviewJob:
	"""Publishes one review topic per year during the trigger window.

	A year with no qualifying activity still gets its topic, with every
	section rendered empty. A failed run persists nothing, so the next
	scheduled run inside the window starts again from scratch.
	"""

	def __init__(
		self,
		*,
		repository: ForumRepository,
		config: ReviewConfig | None = None,
		renderer: ReviewRenderer | None = None,
		clock: Callable[[], datetime] = _utcnow,
	) -> None:
		self.repo = repository
		self._config = config
		self.service = YearlyReviewService(repository)
		self.renderer = renderer or ReviewRenderer()
		self.clock = clock

	@property
	def config(self) -> ReviewConfig:
		# Built from settings per run unless injected.
		return self._config or ReviewConfig.from_settings(settings)

	async def run_once(self) -> JobOutcome:
		return await self.execute({})

	async def execute(self, args: Optional[Mapping[str, Any]] = None) -> JobOutcome:
		args = args or {}
		started = _utcnow()
		tokens = obs_logging.bind_context(job=_JOB_NAME)
		try:
			outcome = await self._execute(args)
			obs_metrics.BACKGROUND_RUNS.labels(name=_JOB_NAME, result="success").inc()
			obs_metrics.inc_yearly_review_outcome(outcome.value)
			return outcome
		except Exception:
			obs_metrics.BACKGROUND_RUNS.labels(name=_JOB_NAME, result="error").inc()
			_LOG.exception("yearly_review.failed")
			raise
		finally:
			duration = (_utcnow() - started).total_seconds()
			obs_metrics.BACKGROUND_DURATION.labels(name=_JOB_NAME).observe(duration)
			obs_logging.reset_context(tokens)

	async def _execute(self, args: Mapping[str, Any]) -> JobOutcome:
		config = self.config
		if not config.enabled:
			_LOG.info("yearly_review.disabled")
			return JobOutcome.DISABLED

		now = self.clock()
		force = is_true(args.get("force"))
		if not force and not in_trigger_window(now, config.trigger_window):
			_LOG.info("yearly_review.outside_window", extra={"now": now.isoformat()})
			return JobOutcome.OUTSIDE_WINDOW

		review_year = args.get("review_year")
		period = resolve_period(now, review_year=int(review_year) if review_year is not None else None)
		tokens = obs_logging.bind_context(review_year=period.year)
		try:
			existing = await self.repo.get_published_review(period.year)
			if existing is not None:
				_LOG.info("yearly_review.already_published", extra={"topic_id": existing.topic_id})
				return JobOutcome.ALREADY_PUBLISHED

			lock_key = _lock_key(period.year)
			lock_token = await redis_client.acquire_lock(lock_key, ttl_seconds=config.lock_ttl_seconds)
			if lock_token is None:
				_LOG.info("yearly_review.locked")
				return JobOutcome.LOCKED
			try:
				report = await self.service.build_report(period, config)
				rendered = self.renderer.render(report, locale=config.locale)
				if config.publish_category_id is None:
					raise ConfigurationError("publish_category_required")
				try:
					marker = await self.repo.publish_review(
						year=period.year,
						title=rendered.title,
						raw=rendered.raw,
						category_id=config.publish_category_id,
						published_at=now,
					)
				except AlreadyPublishedError:
					_LOG.info("yearly_review.already_published")
					return JobOutcome.ALREADY_PUBLISHED
			finally:
				if not await redis_client.release_lock(lock_key, lock_token):
					_LOG.warning("yearly_review.lock_lost", extra={"lock_key": lock_key})

			_LOG.info(
				"yearly_review.published",
				extra={"topic_id": marker.topic_id, "title": rendered.title, "empty": report.is_empty},
			)
			return JobOutcome.PUBLISHED
		finally:
			obs_logging.reset_context(tokens)


__all__ = ["YearlyReviewJob"]
