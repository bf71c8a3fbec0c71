"""Redis connection management.

Provides a stable proxy object so imports like `from app.infra.redis import redis_client`
always reference the same proxy instance. The underlying client can be swapped at
runtime (e.g., to fakeredis in tests) without breaking previously imported references.
"""

from __future__ import annotations

import secrets
from typing import Optional

import redis.asyncio as redis
from redis.exceptions import WatchError

from app.settings import settings


class RedisProxy:
	"""Lightweight proxy that forwards attribute access to an underlying Redis client."""

	def __init__(self, client: redis.Redis):
		self._client: redis.Redis = client

	def set_client(self, client: redis.Redis) -> None:
		self._client = client

	async def acquire_lock(self, key: str, *, ttl_seconds: int) -> Optional[str]:
		"""SET NX with expiry; returns the owner token, or None when already held."""
		token = secrets.token_urlsafe(16)
		stored = await self._client.set(key, token, ex=ttl_seconds, nx=True)
		return token if stored else None

	async def release_lock(self, key: str, token: str) -> bool:
		"""Delete ``key`` only while it still holds ``token``."""
		async with self._client.pipeline(transaction=True) as pipe:
			try:
				await pipe.watch(key)
				if await pipe.get(key) != token:
					await pipe.unwatch()
					return False
				pipe.multi()
				pipe.delete(key)
				await pipe.execute()
			except WatchError:
				return False
		return True

	def __getattr__(self, item):
		return getattr(self._client, item)


_real_client = redis.from_url(settings.redis_url, decode_responses=True)
redis_client: RedisProxy = RedisProxy(_real_client)


def set_redis_client(client: redis.Redis) -> None:
	redis_client.set_client(client)
