"""Storage contract for the yearly review plus an in-memory reference store."""

from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass
from datetime import date, datetime, timezone
from itertools import count
from typing import Optional, Protocol, Sequence

from app.domain.yearly_review.exceptions import AlreadyPublishedError
from app.domain.yearly_review.models import (
	Badge,
	BadgeGrant,
	PublishedReview,
	ReviewPeriod,
	TopicCount,
	UserCount,
)

SYSTEM_USER_ID = -1


class ForumRepository(Protocol):
	"""Read access to forum activity and the single write used to publish."""

	async def topics_created_by_user(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[UserCount]:
		...

	async def replies_created_by_user(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[UserCount]:
		...

	async def likes_given_by_user(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[UserCount]:
		...

	async def likes_received_by_user(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[UserCount]:
		...

	async def days_visited_by_user(self, period: ReviewPeriod) -> Sequence[UserCount]:
		...

	async def time_read_by_user(self, period: ReviewPeriod) -> Sequence[UserCount]:
		...

	async def most_liked_topics(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[TopicCount]:
		...

	async def most_replied_topics(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[TopicCount]:
		...

	async def find_badge(self, name: str) -> Badge | None:
		...

	async def badge_grants(self, badge_id: int, period: ReviewPeriod) -> Sequence[BadgeGrant]:
		...

	async def get_published_review(self, year: int) -> PublishedReview | None:
		...

	async def publish_review(
		self,
		*,
		year: int,
		title: str,
		raw: str,
		category_id: int,
		published_at: datetime,
	) -> PublishedReview:
		"""Create the topic, its first post and the year marker atomically.

		Raises :class:`AlreadyPublishedError` without writing anything when the
		marker for ``year`` exists.
		"""
		...


@dataclass(slots=True)
class ForumUser:
	id: int
	username: str


@dataclass(slots=True)
class Category:
	id: int
	name: str
	read_restricted: bool = False


@dataclass(slots=True)
class Topic:
	id: int
	user_id: int
	category_id: int
	title: str
	slug: str
	created_at: datetime
	deleted_at: Optional[datetime] = None


@dataclass(slots=True)
class Post:
	id: int
	topic_id: int
	user_id: int
	post_number: int
	raw: str
	created_at: datetime
	deleted_at: Optional[datetime] = None


@dataclass(slots=True)
class LikeAction:
	post_id: int
	user_id: int
	created_at: datetime


@dataclass(slots=True)
class UserVisit:
	user_id: int
	visited_at: date
	time_read: int = 0


@dataclass(slots=True)
class UserBadge:
	badge_id: int
	user_id: int
	granted_at: datetime


def _utc(value: datetime) -> datetime:
	if value.tzinfo is None:
		return value.replace(tzinfo=timezone.utc)
	return value


def slugify(title: str) -> str:
	words = "".join(ch.lower() if ch.isalnum() else " " for ch in title).split()
	return "-".join(words) or "topic"


class InMemoryForumRepository(ForumRepository):
	"""Reference repository used in tests and developer environments."""

	def __init__(self) -> None:
		self.users: dict[int, ForumUser] = {SYSTEM_USER_ID: ForumUser(id=SYSTEM_USER_ID, username="system")}
		self.categories: dict[int, Category] = {}
		self.topics: dict[int, Topic] = {}
		self.posts: dict[int, Post] = {}
		self.likes: list[LikeAction] = []
		self.visits: list[UserVisit] = []
		self.badges: dict[int, Badge] = {}
		self.user_badges: list[UserBadge] = []
		self.publications: dict[int, PublishedReview] = {}
		self._ids = count(1)

	# --- fixtures ---------------------------------------------------------

	def add_user(self, username: str) -> ForumUser:
		user = ForumUser(id=next(self._ids), username=username)
		self.users[user.id] = user
		return user

	def add_category(self, name: str, *, read_restricted: bool = False) -> Category:
		category = Category(id=next(self._ids), name=name, read_restricted=read_restricted)
		self.categories[category.id] = category
		return category

	def add_badge(self, name: str) -> Badge:
		badge = Badge(id=next(self._ids), name=name, slug=slugify(name))
		self.badges[badge.id] = badge
		return badge

	def create_topic(
		self,
		user: ForumUser,
		*,
		category: Category,
		title: str,
		created_at: datetime,
		raw: str = "",
	) -> Topic:
		topic = Topic(
			id=next(self._ids),
			user_id=user.id,
			category_id=category.id,
			title=title,
			slug=slugify(title),
			created_at=_utc(created_at),
		)
		self.topics[topic.id] = topic
		self.create_post(user, topic=topic, created_at=created_at, raw=raw or title)
		return topic

	def create_post(self, user: ForumUser, *, topic: Topic, created_at: datetime, raw: str = "") -> Post:
		post_number = 1 + sum(1 for post in self.posts.values() if post.topic_id == topic.id)
		post = Post(
			id=next(self._ids),
			topic_id=topic.id,
			user_id=user.id,
			post_number=post_number,
			raw=raw,
			created_at=_utc(created_at),
		)
		self.posts[post.id] = post
		return post

	def like(self, user: ForumUser, post: Post, *, created_at: datetime) -> LikeAction:
		action = LikeAction(post_id=post.id, user_id=user.id, created_at=_utc(created_at))
		self.likes.append(action)
		return action

	def visit(self, user: ForumUser, visited_at: date, *, time_read: int = 0) -> UserVisit:
		record = UserVisit(user_id=user.id, visited_at=visited_at, time_read=time_read)
		self.visits.append(record)
		return record

	def grant_badge(self, user: ForumUser, badge: Badge, *, granted_at: datetime) -> UserBadge:
		record = UserBadge(badge_id=badge.id, user_id=user.id, granted_at=_utc(granted_at))
		self.user_badges.append(record)
		return record

	def latest_topic(self) -> Topic | None:
		if not self.topics:
			return None
		return self.topics[max(self.topics)]

	def first_post(self, topic: Topic) -> Post | None:
		for post in self.posts.values():
			if post.topic_id == topic.id and post.post_number == 1:
				return post
		return None

	# --- filters ----------------------------------------------------------

	def _visible_topic(self, topic: Topic | None, include_private: bool) -> bool:
		if topic is None or topic.deleted_at is not None:
			return False
		if topic.user_id <= 0:
			return False
		if include_private:
			return True
		category = self.categories.get(topic.category_id)
		return category is None or not category.read_restricted

	def _visible_post(self, post: Post | None, include_private: bool) -> bool:
		if post is None or post.deleted_at is not None:
			return False
		topic = self.topics.get(post.topic_id)
		if topic is None or topic.deleted_at is not None:
			return False
		if include_private:
			return True
		category = self.categories.get(topic.category_id)
		return category is None or not category.read_restricted

	def _user_counts(self, counts: dict[int, int]) -> list[UserCount]:
		return [
			UserCount(user_id=user_id, username=self.users[user_id].username, count=value)
			for user_id, value in counts.items()
			if user_id > 0 and value > 0
		]

	def _topic_counts(self, counts: dict[int, int]) -> list[TopicCount]:
		results: list[TopicCount] = []
		for topic_id, value in counts.items():
			topic = self.topics[topic_id]
			results.append(
				TopicCount(
					topic_id=topic.id,
					title=topic.title,
					slug=topic.slug,
					username=self.users[topic.user_id].username,
					count=value,
				)
			)
		return results

	def _replies_in(self, period: ReviewPeriod, include_private: bool) -> list[Post]:
		return [
			post
			for post in self.posts.values()
			if post.post_number > 1
			and post.user_id > 0
			and period.contains(post.created_at)
			and self._visible_post(post, include_private)
		]

	def _likes_in(self, period: ReviewPeriod, include_private: bool) -> list[tuple[LikeAction, Post]]:
		pairs: list[tuple[LikeAction, Post]] = []
		for action in self.likes:
			if not period.contains(action.created_at):
				continue
			post = self.posts.get(action.post_id)
			if post is None or not self._visible_post(post, include_private):
				continue
			if action.user_id == post.user_id:
				continue
			pairs.append((action, post))
		return pairs

	# --- ForumRepository --------------------------------------------------

	async def topics_created_by_user(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[UserCount]:
		counts: dict[int, int] = defaultdict(int)
		for topic in self.topics.values():
			if period.contains(topic.created_at) and self._visible_topic(topic, include_private):
				counts[topic.user_id] += 1
		return self._user_counts(counts)

	async def replies_created_by_user(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[UserCount]:
		counts: dict[int, int] = defaultdict(int)
		for post in self._replies_in(period, include_private):
			counts[post.user_id] += 1
		return self._user_counts(counts)

	async def likes_given_by_user(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[UserCount]:
		counts: dict[int, int] = defaultdict(int)
		for action, _post in self._likes_in(period, include_private):
			counts[action.user_id] += 1
		return self._user_counts(counts)

	async def likes_received_by_user(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[UserCount]:
		counts: dict[int, int] = defaultdict(int)
		for _action, post in self._likes_in(period, include_private):
			counts[post.user_id] += 1
		return self._user_counts(counts)

	async def days_visited_by_user(self, period: ReviewPeriod) -> Sequence[UserCount]:
		days: dict[int, set[date]] = defaultdict(set)
		for record in self.visits:
			if period.start.date() <= record.visited_at < period.end.date():
				days[record.user_id].add(record.visited_at)
		return self._user_counts({user_id: len(values) for user_id, values in days.items()})

	async def time_read_by_user(self, period: ReviewPeriod) -> Sequence[UserCount]:
		counts: dict[int, int] = defaultdict(int)
		for record in self.visits:
			if period.start.date() <= record.visited_at < period.end.date():
				counts[record.user_id] += record.time_read
		return self._user_counts(counts)

	async def most_liked_topics(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[TopicCount]:
		counts: dict[int, int] = defaultdict(int)
		for _action, post in self._likes_in(period, include_private):
			topic = self.topics[post.topic_id]
			if period.contains(topic.created_at) and self._visible_topic(topic, include_private):
				counts[topic.id] += 1
		return self._topic_counts(counts)

	async def most_replied_topics(self, period: ReviewPeriod, *, include_private: bool) -> Sequence[TopicCount]:
		counts: dict[int, int] = defaultdict(int)
		for post in self._replies_in(period, include_private):
			topic = self.topics[post.topic_id]
			if period.contains(topic.created_at) and self._visible_topic(topic, include_private):
				counts[topic.id] += 1
		return self._topic_counts(counts)

	async def find_badge(self, name: str) -> Badge | None:
		for badge in self.badges.values():
			if badge.name == name:
				return badge
		return None

	async def badge_grants(self, badge_id: int, period: ReviewPeriod) -> Sequence[BadgeGrant]:
		return [
			BadgeGrant(user_id=record.user_id, username=self.users[record.user_id].username, granted_at=record.granted_at)
			for record in self.user_badges
			if record.badge_id == badge_id and record.user_id > 0 and period.contains(record.granted_at)
		]

	async def get_published_review(self, year: int) -> PublishedReview | None:
		return self.publications.get(year)

	async def publish_review(
		self,
		*,
		year: int,
		title: str,
		raw: str,
		category_id: int,
		published_at: datetime,
	) -> PublishedReview:
		if year in self.publications:
			raise AlreadyPublishedError(year)
		if category_id not in self.categories:
			self.categories[category_id] = Category(id=category_id, name=f"category-{category_id}")
		topic = Topic(
			id=next(self._ids),
			user_id=SYSTEM_USER_ID,
			category_id=category_id,
			title=title,
			slug=slugify(title),
			created_at=_utc(published_at),
		)
		self.topics[topic.id] = topic
		self.create_post(self.users[SYSTEM_USER_ID], topic=topic, created_at=published_at, raw=raw)
		marker = PublishedReview(year=year, topic_id=topic.id, title=title, published_at=_utc(published_at))
		self.publications[year] = marker
		return marker


__all__ = [
	"Category",
	"ForumRepository",
	"ForumUser",
	"InMemoryForumRepository",
	"LikeAction",
	"Post",
	"SYSTEM_USER_ID",
	"slugify",
	"Topic",
	"UserBadge",
	"UserVisit",
]
