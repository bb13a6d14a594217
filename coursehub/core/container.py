"""
Dependency Injection Container

Holds the process-wide stores and the feature flag service.
Registrations happen once at startup; routes resolve through inject().

Usage:
    from coursehub.core.container import container, inject

    container.register_singleton("user_store", lambda: InMemoryUserStore())

    @router.get("/")
    async def index(users: UserStore = Depends(inject("user_store"))):
        ...
"""

import logging
from typing import Any, Callable, Dict, Optional

from coursehub.core.config import Settings, settings as default_settings

logger = logging.getLogger(__name__)


class ServiceRegistration:
	"""Holds the registration metadata for a service."""

	__slots__ = ('name', 'factory', 'instance', 'initialized')

	def __init__(self, name: str, factory: Callable):
		self.name = name
		self.factory = factory
		self.instance: Any = None
		self.initialized = False


class Container:
	"""
	Singleton-scoped container. Factories run lazily on first resolve.
	"""

	def __init__(self):
		self._registrations: Dict[str, ServiceRegistration] = {}
		self._overrides: Dict[str, Any] = {}  # For testing

	def register_singleton(self, name: str, factory: Callable) -> 'Container':
		self._registrations[name] = ServiceRegistration(name=name, factory=factory)
		logger.debug(f'[DI] Registered singleton: {name}')
		return self

	def register_instance(self, name: str, instance: Any) -> 'Container':
		reg = ServiceRegistration(name=name, factory=lambda: instance)
		reg.instance = instance
		reg.initialized = True
		self._registrations[name] = reg
		logger.debug(f'[DI] Registered instance: {name}')
		return self

	def resolve(self, name: str) -> Any:
		"""
		Resolve a service by name. Raises KeyError if it is not registered.
		"""
		if name in self._overrides:
			return self._overrides[name]

		if name not in self._registrations:
			raise KeyError(f"Service '{name}' not registered. Available: {list(self._registrations.keys())}")

		reg = self._registrations[name]
		if not reg.initialized:
			try:
				reg.instance = reg.factory()
				reg.initialized = True
				logger.debug(f'[DI] Initialized singleton: {name}')
			except Exception as e:
				logger.error(f'[DI] Failed to initialize {name}: {e}')
				raise
		return reg.instance

	def has(self, name: str) -> bool:
		return name in self._registrations

	# ─── Testing Support ─────────────────────────────────────

	def override(self, name: str, instance: Any) -> 'Container':
		"""Override a registration with a mock/test instance."""
		self._overrides[name] = instance
		return self

	def clear_overrides(self):
		self._overrides.clear()

	def reset(self):
		"""Reset all registrations and overrides (for testing)."""
		self._registrations.clear()
		self._overrides.clear()

	def health_check(self) -> Dict[str, str]:
		"""Check initialization status of all services."""
		return {name: 'initialized' if reg.initialized else 'pending' for name, reg in self._registrations.items()}


container = Container()


def register_services(target: Container, config: Optional[Settings] = None) -> Container:
	"""
	Register the stores, cache and flag services for the configured backend.
	"""
	from coursehub.core.cache import RedisCache
	from coursehub.services.app_settings_store import InMemoryAppSettingsStore, SupabaseAppSettingsStore
	from coursehub.services.early_access import EarlyAccessGate
	from coursehub.services.feature_flag_service import FeatureFlagService
	from coursehub.services.supabase_client import supabase_client
	from coursehub.services.targeting_store import InMemoryTargetingStore, SupabaseTargetingStore
	from coursehub.services.user_store import InMemoryUserStore, SupabaseUserStore

	config = config or default_settings

	if config.flag_store_backend == 'memory':
		target.register_singleton('targeting_store', InMemoryTargetingStore)
		target.register_singleton('user_store', InMemoryUserStore)
		target.register_singleton('settings_store', InMemoryAppSettingsStore)
	else:
		target.register_singleton('targeting_store', lambda: SupabaseTargetingStore(supabase_client))
		target.register_singleton('user_store', lambda: SupabaseUserStore(supabase_client))
		target.register_singleton('settings_store', lambda: SupabaseAppSettingsStore(supabase_client))

	target.register_singleton('flag_cache', lambda: RedisCache(config.redis_url) if config.flag_cache_enabled else None)
	target.register_singleton(
		'feature_flags',
		lambda: FeatureFlagService(
			targeting_store=target.resolve('targeting_store'),
			user_store=target.resolve('user_store'),
			settings_store=target.resolve('settings_store'),
			cache=target.resolve('flag_cache'),
			cache_ttl_seconds=config.flag_cache_ttl_seconds,
			max_custom_users=config.flag_max_custom_users,
		),
	)
	target.register_singleton(
		'early_access',
		lambda: EarlyAccessGate(target.resolve('feature_flags'), target.resolve('user_store')),
	)
	logger.info(f'[DI] Feature flag services registered (backend: {config.flag_store_backend})')
	return target


# ─── FastAPI DI Bridge ────────────────────────────────────────


def inject(name: str) -> Callable:
	"""
	FastAPI Depends() bridge for the DI container.
	"""

	def _resolver():
		return container.resolve(name)

	return _resolver
