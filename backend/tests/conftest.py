import sys
from pathlib import Path

import pytest
import pytest_asyncio
from fakeredis.aioredis import FakeRedis

# Ensure backend package is importable when tests run from repo root
BACKEND_ROOT = Path(__file__).resolve().parents[1]
if str(BACKEND_ROOT) not in sys.path:
	sys.path.insert(0, str(BACKEND_ROOT))

from app.domain.yearly_review.models import ReviewConfig, TriggerWindow
from app.domain.yearly_review.repository import InMemoryForumRepository


@pytest_asyncio.fixture(autouse=True)
async def fake_redis():
	from app.infra.redis import redis_client, set_redis_client
	original = redis_client._client
	client = FakeRedis(decode_responses=True)
	set_redis_client(client)
	try:
		yield client
	finally:
		set_redis_client(original)
		await client.flushall()


@pytest.fixture
def forum() -> InMemoryForumRepository:
	return InMemoryForumRepository()


@pytest.fixture
def category(forum):
	return forum.add_category("Announcements")


@pytest.fixture
def review_config(category) -> ReviewConfig:
	return ReviewConfig(
		enabled=True,
		publish_category_id=category.id,
		trigger_window=TriggerWindow(month=1, first_day=1, last_day=1),
	)
