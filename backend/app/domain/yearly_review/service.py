"""Service layer computing every yearly review leaderboard."""

from __future__ import annotations

import logging
from typing import Awaitable, Callable, Sequence

from app.domain.yearly_review.models import (
	BadgeGrant,
	Leaderboard,
	LeaderboardKey,
	LeaderboardRow,
	ReviewConfig,
	ReviewPeriod,
	ReviewReport,
	TopicCount,
	UserCount,
)
from app.domain.yearly_review.ranking import cap_rows, rank_topics, rank_users
from app.domain.yearly_review.repository import ForumRepository
from app.obs import metrics as obs_metrics

_LOG = logging.getLogger(__name__)


def _badge_rows(grants: Sequence[BadgeGrant]) -> list[LeaderboardRow]:
	ordered = sorted(grants, key=lambda grant: (grant.granted_at, grant.user_id))
	rows: list[LeaderboardRow] = []
	seen: set[int] = set()
	for grant in ordered:
		if grant.user_id in seen:
			continue
		seen.add(grant.user_id)
		rows.append(LeaderboardRow(rank=len(rows) + 1, subject_id=grant.user_id, username=grant.username, metric=1))
	return rows


class YearlyReviewService:
	"""Runs each aggregation against the repository and assembles a report."""

	def __init__(self, repository: ForumRepository) -> None:
		self.repo = repository

	def _user_queries(
		self, include_private: bool
	) -> list[tuple[LeaderboardKey, Callable[[ReviewPeriod], Awaitable[Sequence[UserCount]]]]]:
		return [
			(LeaderboardKey.TOPICS_CREATED, lambda period: self.repo.topics_created_by_user(period, include_private=include_private)),
			(LeaderboardKey.REPLIES_CREATED, lambda period: self.repo.replies_created_by_user(period, include_private=include_private)),
			(LeaderboardKey.LIKES_GIVEN, lambda period: self.repo.likes_given_by_user(period, include_private=include_private)),
			(LeaderboardKey.LIKES_RECEIVED, lambda period: self.repo.likes_received_by_user(period, include_private=include_private)),
			(LeaderboardKey.DAYS_VISITED, self.repo.days_visited_by_user),
			(LeaderboardKey.TIME_READ, self.repo.time_read_by_user),
		]

	def _topic_queries(
		self, include_private: bool
	) -> list[tuple[LeaderboardKey, Callable[[ReviewPeriod], Awaitable[Sequence[TopicCount]]]]]:
		return [
			(LeaderboardKey.MOST_LIKED_TOPICS, lambda period: self.repo.most_liked_topics(period, include_private=include_private)),
			(LeaderboardKey.MOST_REPLIED_TOPICS, lambda period: self.repo.most_replied_topics(period, include_private=include_private)),
		]

	@staticmethod
	def _leaderboard(key: LeaderboardKey, ranked: list[LeaderboardRow], max_rows: int) -> Leaderboard:
		displayed, _overflow = cap_rows(ranked, max_rows)
		obs_metrics.set_yearly_review_rows(key.value, len(ranked))
		return Leaderboard(key=key, rows=displayed, total=len(ranked))

	async def build_report(self, period: ReviewPeriod, config: ReviewConfig) -> ReviewReport:
		"""Compute every leaderboard for ``period``.

		Queries run one after another; an empty result simply yields an empty
		leaderboard while any exception aborts the whole report.
		"""

		report = ReviewReport(period=period)
		include_private = config.include_private_categories

		for key, query in self._user_queries(include_private):
			values = await query(period)
			report.leaderboards.append(self._leaderboard(key, rank_users(values), config.max_rows))

		for key, query in self._topic_queries(include_private):
			values = await query(period)
			report.leaderboards.append(self._leaderboard(key, rank_topics(values), config.max_rows))

		if config.featured_badge:
			badge = await self.repo.find_badge(config.featured_badge)
			if badge is None:
				_LOG.warning("yearly_review.badge_missing", extra={"badge_name": config.featured_badge})
			else:
				report.badge = badge
				grants = await self.repo.badge_grants(badge.id, period)
				report.leaderboards.append(
					self._leaderboard(LeaderboardKey.FEATURED_BADGE, _badge_rows(grants), config.max_rows)
				)

		_LOG.info(
			"yearly_review.report_built",
			extra={"totals": {board.key.value: board.total for board in report.leaderboards}},
		)
		return report


__all__ = ["YearlyReviewService"]
