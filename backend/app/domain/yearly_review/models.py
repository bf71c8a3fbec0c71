"""Domain models for the yearly review report."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import Optional

from app.domain.yearly_review.exceptions import ConfigurationError


class LeaderboardKey(str, Enum):
	"""Leaderboards included in a review; values double as table classes."""

	TOPICS_CREATED = "topics-created"
	REPLIES_CREATED = "replies-created"
	LIKES_GIVEN = "likes-given"
	LIKES_RECEIVED = "likes-received"
	DAYS_VISITED = "days-visited"
	TIME_READ = "time-read"
	MOST_LIKED_TOPICS = "most-liked-topics"
	MOST_REPLIED_TOPICS = "most-replied-topics"
	FEATURED_BADGE = "featured-badge"

	@property
	def is_topic_board(self) -> bool:
		return self in (LeaderboardKey.MOST_LIKED_TOPICS, LeaderboardKey.MOST_REPLIED_TOPICS)


SUPPORTED_LOCALES: tuple[str, ...] = ("en", "fr")


class JobOutcome(str, Enum):
	"""Result of one yearly review invocation."""

	DISABLED = "disabled"
	OUTSIDE_WINDOW = "outside_window"
	ALREADY_PUBLISHED = "already_published"
	LOCKED = "locked"
	PUBLISHED = "published"


def _as_utc(value: datetime) -> datetime:
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value.astimezone(timezone.utc)


@dataclass(frozen=True, slots=True)
class ReviewPeriod:
	"""Half-open calendar-year range ``[start, end)`` being reviewed."""

	year: int
	start: datetime
	end: datetime

	def contains(self, value: datetime) -> bool:
		value = _as_utc(value)
		return self.start <= value < self.end


@dataclass(frozen=True, slots=True)
class TriggerWindow:
	"""Days of one month during which a review may be published."""

	month: int = 1
	first_day: int = 1
	last_day: int = 1

	def __post_init__(self) -> None:
		if not 1 <= self.month <= 12:
			raise ConfigurationError("trigger_month_out_of_range")
		if not 1 <= self.first_day <= self.last_day <= 31:
			raise ConfigurationError("trigger_days_out_of_range")

	def contains(self, now: datetime) -> bool:
		now = _as_utc(now)
		return now.month == self.month and self.first_day <= now.day <= self.last_day


@dataclass(slots=True)
class UserCount:
	"""Raw aggregation result for one user, before ranking."""

	user_id: int
	username: str
	count: int


@dataclass(slots=True)
class TopicCount:
	"""Raw aggregation result for one topic, before ranking."""

	topic_id: int
	title: str
	slug: str
	username: str
	count: int


@dataclass(frozen=True, slots=True)
class Badge:
	"""Badge definition looked up by name."""

	id: int
	name: str
	slug: str


@dataclass(slots=True)
class BadgeGrant:
	"""A featured badge granted to a user during the period."""

	user_id: int
	username: str
	granted_at: datetime


@dataclass(slots=True)
class LeaderboardRow:
	"""Row for leaderboard ranking."""

	rank: int
	subject_id: int
	username: str
	metric: int
	title: Optional[str] = None
	slug: Optional[str] = None


@dataclass(slots=True)
class Leaderboard:
	"""Ranked rows for one aggregation, with the cap already applied."""

	key: LeaderboardKey
	rows: list[LeaderboardRow]
	total: int

	@property
	def overflow(self) -> int:
		return max(0, self.total - len(self.rows))

	@property
	def is_empty(self) -> bool:
		return self.total == 0


@dataclass(slots=True)
class ReviewReport:
	"""Every leaderboard computed for one review period."""

	period: ReviewPeriod
	leaderboards: list[Leaderboard] = field(default_factory=list)
	badge: Optional[Badge] = None

	def get(self, key: LeaderboardKey) -> Optional[Leaderboard]:
		for board in self.leaderboards:
			if board.key is key:
				return board
		return None

	@property
	def is_empty(self) -> bool:
		return all(board.is_empty for board in self.leaderboards)


@dataclass(slots=True)
class RenderedReview:
	"""Title and body ready to be posted."""

	title: str
	raw: str


@dataclass(slots=True)
class PublishedReview:
	"""Marker row recording the topic created for a review year."""

	year: int
	topic_id: int
	title: str
	published_at: datetime


@dataclass(frozen=True, slots=True)
class ReviewConfig:
	"""Explicit configuration handed to the job on every invocation."""

	enabled: bool
	publish_category_id: Optional[int]
	featured_badge: str = ""
	trigger_window: TriggerWindow = field(default_factory=TriggerWindow)
	max_rows: int = 100
	include_private_categories: bool = False
	locale: str = "en"
	lock_ttl_seconds: int = 900

	def __post_init__(self) -> None:
		if self.max_rows < 1:
			raise ConfigurationError("max_rows_must_be_positive")
		if self.enabled and self.publish_category_id is None:
			raise ConfigurationError("publish_category_required")
		if self.locale not in SUPPORTED_LOCALES:
			raise ConfigurationError(f"unsupported_locale:{self.locale}")

	@classmethod
	def from_settings(cls, source) -> "ReviewConfig":
		return cls(
			enabled=source.yearly_review_enabled,
			publish_category_id=source.yearly_review_publish_category,
			featured_badge=source.yearly_review_featured_badge,
			trigger_window=TriggerWindow(
				month=source.yearly_review_trigger_month,
				first_day=source.yearly_review_trigger_first_day,
				last_day=source.yearly_review_trigger_last_day,
			),
			max_rows=source.yearly_review_max_rows,
			include_private_categories=source.yearly_review_include_private_categories,
			locale=source.yearly_review_locale or "en",
			lock_ttl_seconds=source.yearly_review_lock_ttl_seconds,
		)

