"""Pure ranking helpers shared by every leaderboard."""

from __future__ import annotations

from typing import Iterable, Sequence, TypeVar

from app.domain.yearly_review.models import LeaderboardRow, TopicCount, UserCount

T = TypeVar("T")


def _user_sort_key(item: UserCount) -> tuple[int, str, int]:
	return (-item.count, item.username.lower(), item.user_id)


def _topic_sort_key(item: TopicCount) -> tuple[int, str, int]:
	return (-item.count, item.title.lower(), item.topic_id)


def rank_users(values: Iterable[UserCount]) -> list[LeaderboardRow]:
	"""Order by count descending; ties by case-insensitive username, then id."""

	ordered = sorted((item for item in values if item.count > 0), key=_user_sort_key)
	return [
		LeaderboardRow(rank=idx, subject_id=item.user_id, username=item.username, metric=item.count)
		for idx, item in enumerate(ordered, start=1)
	]


def rank_topics(values: Iterable[TopicCount]) -> list[LeaderboardRow]:
	"""Order by count descending; ties by case-insensitive title, then id."""

	ordered = sorted((item for item in values if item.count > 0), key=_topic_sort_key)
	return [
		LeaderboardRow(
			rank=idx,
			subject_id=item.topic_id,
			username=item.username,
			metric=item.count,
			title=item.title,
			slug=item.slug,
		)
		for idx, item in enumerate(ordered, start=1)
	]


def cap_rows(rows: Sequence[T], cap: int) -> tuple[list[T], int]:
	"""Split ``rows`` into the displayed prefix and the overflow count."""

	if cap < 0:
		raise ValueError("cap must be non-negative")
	displayed = list(rows[:cap])
	return displayed, len(rows) - len(displayed)


__all__ = ["cap_rows", "rank_topics", "rank_users"]
