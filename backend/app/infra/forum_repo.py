"""PostgreSQL-backed forum repository for the yearly review job."""

from __future__ import annotations

from datetime import datetime
from typing import Sequence

import asyncpg

from app.domain.yearly_review.exceptions import AlreadyPublishedError
from app.domain.yearly_review.models import (
	Badge,
	BadgeGrant,
	PublishedReview,
	ReviewPeriod,
	TopicCount,
	UserCount,
)
from app.domain.yearly_review.repository import SYSTEM_USER_ID, ForumRepository, slugify

LIKE_ACTION_TYPE = 2

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS yearly_review_publication (
	year INTEGER PRIMARY KEY,
	topic_id BIGINT NOT NULL REFERENCES topics (id),
	title TEXT NOT NULL,
	published_at TIMESTAMPTZ NOT NULL DEFAULT NOW()
)
"""

# Restricts to live topics in categories the review may expose; expects
# ``t`` as the topics alias, ``c`` as categories and $3 as include_private.
_VISIBLE_TOPIC = """
	t.deleted_at IS NULL
	AND t.archetype = 'regular'
	AND ($3::boolean OR c.read_restricted = FALSE)
"""


def _row_to_user_count(row: asyncpg.Record) -> UserCount:
	return UserCount(user_id=int(row["user_id"]), username=str(row["username"]), count=int(row["total"]))


def _row_to_topic_count(row: asyncpg.Record) -> TopicCount:
	return TopicCount(
		topic_id=int(row["topic_id"]),
		title=str(row["title"]),
		slug=str(row["slug"]),
		username=str(row["username"]),
		count=int(row["total"]),
	)


def _row_to_publication(row: asyncpg.Record) -> PublishedReview:
	return PublishedReview(
		year=int(row["year"]),
		topic_id=int(row["topic_id"]),
		title=str(row["title"]),
		published_at=row["published_at"],
	)


class PostgresForumRepository(ForumRepository):
	"""Runs the review aggregations and the publish write using asyncpg."""

	def __init__(self, pool: asyncpg.Pool) -> None:
		self._pool = pool

	async def ensure_schema(self) -> None:
		await self._pool.execute(SCHEMA_SQL)

	async def _user_counts(self, query: str, *args: object) -> list[UserCount]:
		rows = await self._pool.fetch(query, *args)
		return [_row_to_user_count(row) for row in rows]

	async def _topic_counts(self, query: str, *args: object) -> list[TopicCount]:
		rows = await self._pool.fetch(query, *args)
		return [_row_to_topic_count(row) for row in rows]

	async def topics_created_by_user(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[UserCount]:
		return await self._user_counts(
			f"""
			SELECT u.id AS user_id, u.username, COUNT(t.id) AS total
			FROM topics t
			JOIN users u ON u.id = t.user_id
			JOIN categories c ON c.id = t.category_id
			WHERE t.created_at >= $1 AND t.created_at < $2
				AND u.id > 0
				AND {_VISIBLE_TOPIC}
			GROUP BY u.id, u.username
			""",
			period.start,
			period.end,
			include_private,
		)

	async def replies_created_by_user(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[UserCount]:
		return await self._user_counts(
			f"""
			SELECT u.id AS user_id, u.username, COUNT(p.id) AS total
			FROM posts p
			JOIN topics t ON t.id = p.topic_id
			JOIN categories c ON c.id = t.category_id
			JOIN users u ON u.id = p.user_id
			WHERE p.created_at >= $1 AND p.created_at < $2
				AND p.post_number > 1
				AND p.deleted_at IS NULL
				AND u.id > 0
				AND {_VISIBLE_TOPIC}
			GROUP BY u.id, u.username
			""",
			period.start,
			period.end,
			include_private,
		)

	async def _likes_by(self, column: str, period: ReviewPeriod, include_private: bool) -> list[UserCount]:
		return await self._user_counts(
			f"""
			SELECT u.id AS user_id, u.username, COUNT(pa.id) AS total
			FROM post_actions pa
			JOIN posts p ON p.id = pa.post_id
			JOIN topics t ON t.id = p.topic_id
			JOIN categories c ON c.id = t.category_id
			JOIN users u ON u.id = {column}
			WHERE pa.created_at >= $1 AND pa.created_at < $2
				AND pa.post_action_type_id = $4
				AND pa.deleted_at IS NULL
				AND pa.user_id <> p.user_id
				AND p.deleted_at IS NULL
				AND u.id > 0
				AND {_VISIBLE_TOPIC}
			GROUP BY u.id, u.username
			""",
			period.start,
			period.end,
			include_private,
			LIKE_ACTION_TYPE,
		)

	async def likes_given_by_user(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[UserCount]:
		return await self._likes_by("pa.user_id", period, include_private)

	async def likes_received_by_user(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[UserCount]:
		return await self._likes_by("p.user_id", period, include_private)

	async def days_visited_by_user(self, period: ReviewPeriod) -> Sequence[UserCount]:
		return await self._user_counts(
			"""
			SELECT u.id AS user_id, u.username, COUNT(DISTINCT uv.visited_at) AS total
			FROM user_visits uv
			JOIN users u ON u.id = uv.user_id
			WHERE uv.visited_at >= $1::date AND uv.visited_at < $2::date
				AND u.id > 0
			GROUP BY u.id, u.username
			""",
			period.start.date(),
			period.end.date(),
		)

	async def time_read_by_user(self, period: ReviewPeriod) -> Sequence[UserCount]:
		return await self._user_counts(
			"""
			SELECT u.id AS user_id, u.username, SUM(uv.time_read) AS total
			FROM user_visits uv
			JOIN users u ON u.id = uv.user_id
			WHERE uv.visited_at >= $1::date AND uv.visited_at < $2::date
				AND u.id > 0
			GROUP BY u.id, u.username
			HAVING SUM(uv.time_read) > 0
			""",
			period.start.date(),
			period.end.date(),
		)

	async def most_liked_topics(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[TopicCount]:
		return await self._topic_counts(
			f"""
			SELECT t.id AS topic_id, t.title, t.slug, u.username, COUNT(pa.id) AS total
			FROM post_actions pa
			JOIN posts p ON p.id = pa.post_id
			JOIN topics t ON t.id = p.topic_id
			JOIN categories c ON c.id = t.category_id
			JOIN users u ON u.id = t.user_id
			WHERE pa.created_at >= $1 AND pa.created_at < $2
				AND t.created_at >= $1 AND t.created_at < $2
				AND pa.post_action_type_id = $4
				AND pa.deleted_at IS NULL
				AND pa.user_id <> p.user_id
				AND p.deleted_at IS NULL
				AND t.user_id > 0
				AND {_VISIBLE_TOPIC}
			GROUP BY t.id, t.title, t.slug, u.username
			""",
			period.start,
			period.end,
			include_private,
			LIKE_ACTION_TYPE,
		)

	async def most_replied_topics(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[TopicCount]:
		return await self._topic_counts(
			f"""
			SELECT t.id AS topic_id, t.title, t.slug, u.username, COUNT(p.id) AS total
			FROM posts p
			JOIN topics t ON t.id = p.topic_id
			JOIN categories c ON c.id = t.category_id
			JOIN users u ON u.id = t.user_id
			WHERE p.created_at >= $1 AND p.created_at < $2
				AND t.created_at >= $1 AND t.created_at < $2
				AND p.post_number > 1
				AND p.deleted_at IS NULL
				AND p.user_id > 0
				AND t.user_id > 0
				AND {_VISIBLE_TOPIC}
			GROUP BY t.id, t.title, t.slug, u.username
			""",
			period.start,
			period.end,
			include_private,
		)

	async def find_badge(self, name: str) -> Badge | None:
		row = await self._pool.fetchrow("SELECT id, name, slug FROM badges WHERE name = $1", name)
		if row is None:
			return None
		return Badge(id=int(row["id"]), name=str(row["name"]), slug=str(row["slug"]))

	async def badge_grants(self, badge_id: int, period: ReviewPeriod) -> Sequence[BadgeGrant]:
		rows = await self._pool.fetch(
			"""
			SELECT ub.user_id, u.username, ub.granted_at
			FROM user_badges ub
			JOIN users u ON u.id = ub.user_id
			WHERE ub.badge_id = $1
				AND ub.granted_at >= $2 AND ub.granted_at < $3
				AND u.id > 0
			ORDER BY ub.granted_at ASC, ub.user_id ASC
			""",
			badge_id,
			period.start,
			period.end,
		)
		return [
			BadgeGrant(user_id=int(row["user_id"]), username=str(row["username"]), granted_at=row["granted_at"])
			for row in rows
		]

	async def get_published_review(self, year: int) -> PublishedReview | None:
		row = await self._pool.fetchrow(
			"SELECT year, topic_id, title, published_at FROM yearly_review_publication WHERE year = $1",
			year,
		)
		if row is None:
			return None
		return _row_to_publication(row)

	async def publish_review(
		self,
		*,
		year: int,
		title: str,
		raw: str,
		category_id: int,
		published_at: datetime,
	) -> PublishedReview:
		async with self._pool.acquire() as conn:
			async with conn.transaction():
				# Advisory lock keyed by year serialises concurrent publishers.
				await conn.execute("SELECT pg_advisory_xact_lock($1)", year)
				existing = await conn.fetchval("SELECT 1 FROM yearly_review_publication WHERE year = $1", year)
				if existing:
					raise AlreadyPublishedError(year)
				topic_id = await conn.fetchval(
					"""
					INSERT INTO topics (user_id, category_id, title, slug, archetype, created_at, updated_at)
					VALUES ($1, $2, $3, $4, 'regular', $5, $5)
					RETURNING id
					""",
					SYSTEM_USER_ID,
					category_id,
					title,
					slugify(title),
					published_at,
				)
				await conn.execute(
					"""
					INSERT INTO posts (topic_id, user_id, post_number, raw, created_at, updated_at)
					VALUES ($1, $2, 1, $3, $4, $4)
					""",
					topic_id,
					SYSTEM_USER_ID,
					raw,
					published_at,
				)
				row = await conn.fetchrow(
					"""
					INSERT INTO yearly_review_publication (year, topic_id, title, published_at)
					VALUES ($1, $2, $3, $4)
					RETURNING year, topic_id, title, published_at
					""",
					year,
					topic_id,
					title,
					published_at,
				)
		if row is None:  # pragma: no cover - asyncpg always returns a row for RETURNING
			raise RuntimeError("Failed to insert yearly_review_publication")
		return _row_to_publication(row)


__all__ = ["LIKE_ACTION_TYPE", "PostgresForumRepository", "SCHEMA_SQL"]
