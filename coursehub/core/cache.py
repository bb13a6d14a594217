"""
Redis Caching Module
Time-boxed cache for feature flag decisions, with prefix invalidation.
"""

import logging
import time
from typing import Dict, Optional, Tuple

import redis.asyncio as redis

from coursehub.core.config import settings

logger = logging.getLogger(__name__)


class RedisCache:
	"""
	Redis Cache wrapper.
	Falls back to an in-memory dictionary if Redis is unavailable.
	"""

	def __init__(self, redis_url: Optional[str] = None):
		self.redis: Optional[redis.Redis] = None
		self._memory_cache: Dict[str, Tuple[str, float]] = {}

		url = redis_url or settings.redis_url
		if url:
			try:
				self.redis = redis.from_url(
					url,
					encoding='utf-8',
					decode_responses=True,
					socket_connect_timeout=5,
					socket_timeout=5,
				)
				logger.info(f'Redis Cache connected to {url}')
			except Exception as e:
				logger.error(f'Failed to connect to Redis for caching: {e}')

	async def get(self, key: str) -> Optional[str]:
		"""Get raw string value."""
		if self.redis:
			try:
				return await self.redis.get(key)
			except Exception as e:
				logger.error(f'Redis get error: {e}')
				return None
		entry = self._memory_cache.get(key)
		if entry is None:
			return None
		value, expires_at = entry
		if expires_at <= time.monotonic():
			self._memory_cache.pop(key, None)
			return None
		return value

	async def set(self, key: str, value: str, ttl_seconds: int = 300):
		"""Set raw string value with TTL."""
		if self.redis:
			try:
				await self.redis.set(key, value, ex=ttl_seconds)
			except Exception as e:
				logger.error(f'Redis set error: {e}')
		else:
			self._memory_cache[key] = (value, time.monotonic() + ttl_seconds)

	async def delete(self, key: str):
		"""Delete a key."""
		if self.redis:
			try:
				await self.redis.delete(key)
			except Exception as e:
				logger.error(f'Redis delete error: {e}')
		else:
			self._memory_cache.pop(key, None)

	async def delete_prefix(self, prefix: str) -> int:
		"""Delete every key starting with prefix. Returns the number removed."""
		if self.redis:
			removed = 0
			try:
				async for key in self.redis.scan_iter(match=f'{prefix}*'):
					removed += await self.redis.delete(key)
			except Exception as e:
				logger.error(f'Redis delete_prefix error: {e}')
			return removed
		stale = [k for k in self._memory_cache if k.startswith(prefix)]
		for key in stale:
			del self._memory_cache[key]
		return len(stale)

	async def close(self):
		if self.redis:
			await self.redis.close()
