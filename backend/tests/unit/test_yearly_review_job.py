import re
from datetime import datetime, timezone

import pytest

from app.domain.yearly_review.exceptions import ConfigurationError, InvalidReviewYear
from app.domain.yearly_review.jobs import YearlyReviewJob
from app.domain.yearly_review.models import JobOutcome, ReviewConfig, TriggerWindow
from app.domain.yearly_review.repository import InMemoryForumRepository
from app.settings import Settings

NEW_YEAR = datetime(2019, 1, 1, 0, 5, tzinfo=timezone.utc)
IN_PERIOD = datetime(2018, 12, 1, tzinfo=timezone.utc)
LOCK_KEY = "yearly_review:lock:2018"


def _job(forum, config, now=NEW_YEAR) -> YearlyReviewJob:
	return YearlyReviewJob(repository=forum, config=config, clock=lambda: now)


def _config(category, **overrides) -> ReviewConfig:
	values = dict(
		enabled=True,
		publish_category_id=category.id,
		trigger_window=TriggerWindow(month=1, first_day=1, last_day=1),
	)
	values.update(overrides)
	return ReviewConfig(**values)


def _row(raw: str, table: str, css_class: str) -> str:
	body = re.search(rf'<table class="{table}">(.*?)</table>', raw, re.S)
	assert body, f"missing table {table}"
	row = re.search(rf'<tr class="{css_class}">(.*?)</tr>', body.group(1), re.S)
	assert row, f"missing row {css_class}"
	return row.group(1)


def _review_raw(forum: InMemoryForumRepository) -> str:
	topic = forum.latest_topic()
	assert topic is not None
	return forum.first_post(topic).raw


@pytest.mark.asyncio
async def test_publishes_review_on_new_year(forum, category, review_config):
	user = forum.add_user("author")
	forum.create_topic(user, category=category, title="December topic", created_at=IN_PERIOD)

	outcome = await _job(forum, review_config).run_once()

	assert outcome is JobOutcome.PUBLISHED
	topic = forum.latest_topic()
	assert topic.title == "Year in review: 2018"
	assert topic.user_id == -1
	assert topic.category_id == category.id
	assert forum.publications[2018].topic_id == topic.id


@pytest.mark.asyncio
async def test_does_not_publish_outside_window(forum, category, review_config):
	user = forum.add_user("author")
	forum.create_topic(user, category=category, title="December topic", created_at=IN_PERIOD)

	outcome = await _job(forum, review_config, now=datetime(2019, 2, 1, tzinfo=timezone.utc)).run_once()

	assert outcome is JobOutcome.OUTSIDE_WINDOW
	assert forum.latest_topic().title == "December topic"
	assert forum.publications == {}


@pytest.mark.asyncio
async def test_repeated_runs_publish_once(forum, category):
	user = forum.add_user("author")
	forum.create_topic(user, category=category, title="December topic", created_at=IN_PERIOD)
	config = _config(category, trigger_window=TriggerWindow(month=1, first_day=1, last_day=7))
	job = _job(forum, config, now=datetime(2019, 1, 5, tzinfo=timezone.utc))

	first = await job.run_once()
	second = await job.run_once()

	assert first is JobOutcome.PUBLISHED
	assert second is JobOutcome.ALREADY_PUBLISHED
	reviews = [topic for topic in forum.topics.values() if topic.title == "Year in review: 2018"]
	assert len(reviews) == 1


@pytest.mark.asyncio
async def test_review_lists_topic_creators(forum, category, review_config):
	top = forum.add_user("top_review_user")
	reviewed = forum.add_user("reviewed_user")
	for idx in range(5):
		forum.create_topic(top, category=category, title=f"Topic {idx}", created_at=IN_PERIOD)
	forum.create_topic(reviewed, category=category, title="Single", created_at=IN_PERIOD)

	await _job(forum, review_config).run_once()

	raw = _review_raw(forum)
	first = _row(raw, "topics-created", "user-row-0")
	second = _row(raw, "topics-created", "user-row-1")
	assert "top_review_user" in first and "<td>5</td>" in first
	assert "reviewed_user" in second and "<td>1</td>" in second


@pytest.mark.asyncio
async def test_review_lists_likes(forum, category, review_config):
	top = forum.add_user("top_review_user")
	reviewed = forum.add_user("reviewed_user")
	owner = forum.add_user("owner")
	topic = forum.create_topic(owner, category=category, title="Reviewed", created_at=IN_PERIOD)
	for _ in range(11):
		forum.like(top, forum.create_post(reviewed, topic=topic, created_at=IN_PERIOD), created_at=IN_PERIOD)
	for _ in range(10):
		forum.like(reviewed, forum.create_post(top, topic=topic, created_at=IN_PERIOD), created_at=IN_PERIOD)

	await _job(forum, review_config).run_once()

	raw = _review_raw(forum)
	given = _row(raw, "likes-given", "user-row-0")
	received = _row(raw, "likes-received", "user-row-0")
	assert "top_review_user" in given and "<td>11</td>" in given
	assert "reviewed_user" in received and "<td>11</td>" in received
	assert "<td>10</td>" in _row(raw, "likes-received", "user-row-1")


@pytest.mark.asyncio
async def test_featured_badge_overflow(forum, category):
	badge = forum.add_badge("Great Contributor")
	for idx in range(101):
		forum.grant_badge(forum.add_user(f"member{idx:03d}"), badge, granted_at=IN_PERIOD)
	config = _config(category, featured_badge="Great Contributor")

	await _job(forum, config).run_once()

	raw = _review_raw(forum)
	assert raw.count('class="mention user-row-') == 100
	assert raw.count("And 1 more") == 1
	assert f'href="/badges/{badge.id}/great-contributor"' in raw


@pytest.mark.asyncio
async def test_featured_badge_without_overflow(forum, category):
	badge = forum.add_badge("Great Contributor")
	for idx in range(16):
		forum.grant_badge(forum.add_user(f"member{idx:02d}"), badge, granted_at=IN_PERIOD)
	config = _config(category, featured_badge="Great Contributor")

	await _job(forum, config).run_once()

	raw = _review_raw(forum)
	assert raw.count('class="mention user-row-') == 16
	assert "more-link" not in raw


@pytest.mark.asyncio
async def test_disabled_job_does_nothing(forum, category):
	user = forum.add_user("author")
	forum.create_topic(user, category=category, title="December topic", created_at=IN_PERIOD)
	config = ReviewConfig(enabled=False, publish_category_id=None)

	outcome = await _job(forum, config).run_once()

	assert outcome is JobOutcome.DISABLED
	assert forum.publications == {}


@pytest.mark.asyncio
async def test_force_ignores_window_but_not_marker(forum, category, review_config):
	user = forum.add_user("author")
	forum.create_topic(user, category=category, title="December topic", created_at=IN_PERIOD)
	job = _job(forum, review_config, now=datetime(2019, 6, 1, tzinfo=timezone.utc))

	assert await job.execute({"force": True}) is JobOutcome.PUBLISHED
	assert await job.execute({"force": "true"}) is JobOutcome.ALREADY_PUBLISHED
	assert len(forum.publications) == 1


@pytest.mark.asyncio
async def test_explicit_review_year(forum, category, review_config):
	user = forum.add_user("author")
	forum.create_topic(user, category=category, title="Old topic", created_at=datetime(2016, 7, 1, tzinfo=timezone.utc))
	job = _job(forum, review_config)

	outcome = await job.execute({"force": True, "review_year": 2016})

	assert outcome is JobOutcome.PUBLISHED
	assert forum.publications[2016].title == "Year in review: 2016"

	with pytest.raises(InvalidReviewYear):
		await job.execute({"force": True, "review_year": 2019})


@pytest.mark.asyncio
async def test_quiet_year_still_publishes(forum, review_config):
	outcome = await _job(forum, review_config).run_once()

	assert outcome is JobOutcome.PUBLISHED
	raw = forum.first_post(forum.latest_topic()).raw
	assert '<table class="topics-created">' in raw
	assert "user-row-0" not in raw


@pytest.mark.asyncio
async def test_boundary_content_belongs_to_next_year(forum, category, review_config):
	user = forum.add_user("early_bird")
	forum.create_topic(user, category=category, title="Happy new year", created_at=datetime(2019, 1, 1, tzinfo=timezone.utc))

	outcome = await _job(forum, review_config).run_once()

	assert outcome is JobOutcome.PUBLISHED
	assert "early_bird" not in _review_raw(forum)


@pytest.mark.asyncio
async def test_held_lock_skips_run(forum, category, review_config, fake_redis):
	user = forum.add_user("author")
	forum.create_topic(user, category=category, title="December topic", created_at=IN_PERIOD)
	await fake_redis.set(LOCK_KEY, "1", ex=60)

	outcome = await _job(forum, review_config).run_once()

	assert outcome is JobOutcome.LOCKED
	assert forum.publications == {}
	assert await fake_redis.get(LOCK_KEY) == "1"


class _FailingForum(InMemoryForumRepository):
	def __init__(self) -> None:
		super().__init__()
		self.failing = True

	async def likes_given_by_user(self, period, *, include_private):
		if self.failing:
			raise RuntimeError("database unavailable")
		return await super().likes_given_by_user(period, include_private=include_private)


@pytest.mark.asyncio
async def test_aggregation_failure_propagates_and_releases_lock(fake_redis):
	forum = _FailingForum()
	category = forum.add_category("Announcements")
	user = forum.add_user("author")
	forum.create_topic(user, category=category, title="December topic", created_at=IN_PERIOD)

	with pytest.raises(RuntimeError):
		await _job(forum, _config(category)).run_once()

	assert forum.publications == {}
	assert forum.latest_topic().title == "December topic"
	assert await fake_redis.exists(LOCK_KEY) == 0


@pytest.mark.asyncio
async def test_failed_run_is_retried_by_next_hourly_run(fake_redis):
	forum = _FailingForum()
	category = forum.add_category("Announcements")
	user = forum.add_user("author")
	forum.create_topic(user, category=category, title="December topic", created_at=IN_PERIOD)
	config = ReviewConfig.from_settings(
		Settings(yearly_review_enabled=True, yearly_review_publish_category=category.id)
	)

	with pytest.raises(RuntimeError):
		await _job(forum, config, now=datetime(2019, 1, 1, 0, 5, tzinfo=timezone.utc)).run_once()
	forum.failing = False
	outcome = await _job(forum, config, now=datetime(2019, 1, 1, 1, 5, tzinfo=timezone.utc)).run_once()

	assert outcome is JobOutcome.PUBLISHED
	assert forum.publications[2018].title == "Year in review: 2018"


def test_unknown_locale_rejected_at_config_time(category):
	with pytest.raises(ConfigurationError):
		_config(category, locale="xx")
	assert _config(category, locale="fr").locale == "fr"


def test_config_from_settings():
	source = Settings(
		yearly_review_enabled=True,
		yearly_review_publish_category=7,
		yearly_review_featured_badge="Anniversary",
		yearly_review_trigger_last_day=3,
		yearly_review_max_rows=25,
	)

	config = ReviewConfig.from_settings(source)

	assert config.enabled is True
	assert config.publish_category_id == 7
	assert config.featured_badge == "Anniversary"
	assert config.trigger_window == TriggerWindow(month=1, first_day=1, last_day=3)
	assert config.max_rows == 25


def test_enabled_without_category_is_rejected():
	with pytest.raises(ConfigurationError):
		ReviewConfig(enabled=True, publish_category_id=None)
	with pytest.raises(ConfigurationError):
		ReviewConfig(enabled=False, publish_category_id=None, max_rows=0)
