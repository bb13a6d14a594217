"""
Feature Flag Service - decides whether a flag is on for a (possibly anonymous) user

Evaluation path:
  registry check -> global switch -> targeting snapshot -> user attributes
  (PREMIUM / NON_PREMIUM only) -> targeting evaluator

Evaluation never raises: unknown flags are off, and any storage failure
falls back to the registry default for the flag. The admin paths
(update_targeting, get_targeting, set_flag_enabled) validate their input
and let storage errors propagate.
"""

import asyncio
from typing import Dict, Iterable, List, Optional

import structlog

from coursehub.core.cache import RedisCache
from coursehub.core.exceptions import MalformedRecordError, ValidationError
from coursehub.core.feature_flags import (
	FlagKey,
	TargetMode,
	default_value,
	displayed_flags,
	find_flag_key,
	get_definition,
	parse_flag_key,
	parse_target_mode,
)
from coursehub.core.targeting import is_enabled
from coursehub.models.feature_flag import (
	FlagOverview,
	FlagStatus,
	TargetedUser,
	TargetingView,
	UserAttributes,
)
from coursehub.services.app_settings_store import AppSettingsStore
from coursehub.services.targeting_store import TargetingStore
from coursehub.services.user_store import UserStore

logger = structlog.get_logger(__name__)

CACHE_PREFIX = 'feature_flag'
DEFAULT_MAX_CUSTOM_USERS = 1000


class FeatureFlagService:
	def __init__(
		self,
		targeting_store: TargetingStore,
		user_store: UserStore,
		settings_store: AppSettingsStore,
		cache: Optional[RedisCache] = None,
		cache_ttl_seconds: int = 0,
		max_custom_users: int = DEFAULT_MAX_CUSTOM_USERS,
	):
		self._targeting = targeting_store
		self._users = user_store
		self._settings = settings_store
		self._cache = cache if cache_ttl_seconds > 0 else None
		self._cache_ttl = cache_ttl_seconds
		# Bumped on every write; a check that saw an older value must not populate the cache
		self._generations: Dict[FlagKey, int] = {}
		self.max_custom_users = max_custom_users

	# ─── Evaluation ───────────────────────────────────────────

	async def is_feature_enabled_for_user(self, flag: FlagKey, user_id: Optional[int] = None) -> bool:
		key = find_flag_key(flag)
		if key is None:
			logger.warning('unknown_feature_flag', flag_key=str(flag), user_id=user_id)
			return False

		cache_key = self._cache_key(key, user_id)
		if self._cache:
			cached = await self._cache.get(cache_key)
			if cached is not None:
				return cached == '1'

		generation = self._generations.get(key, 0)
		try:
			enabled = await self._evaluate(key, user_id)
		except Exception as e:
			fallback = default_value(key)
			logger.warning(
				'feature_flag_fallback',
				flag_key=key.value,
				user_id=user_id,
				fallback=fallback,
				error=str(e),
				error_type=type(e).__name__,
			)
			return fallback

		if self._cache and self._generations.get(key, 0) == generation:
			await self._cache.set(cache_key, '1' if enabled else '0', ttl_seconds=self._cache_ttl)
		return enabled

	async def _evaluate(self, flag: FlagKey, user_id: Optional[int]) -> bool:
		if not await self.is_flag_switched_on(flag):
			return False

		snapshot = await self._targeting.get_snapshot(flag)
		mode = snapshot.target_mode
		members = snapshot.enabled_user_ids() if mode is TargetMode.CUSTOM else frozenset()

		user: Optional[UserAttributes] = None
		if user_id is not None:
			if mode in (TargetMode.PREMIUM, TargetMode.NON_PREMIUM):
				# A user id that no longer resolves is evaluated as anonymous
				user = await self._users.get_user_attributes(user_id)
			elif mode is TargetMode.CUSTOM:
				user = UserAttributes(user_id=user_id)

		return is_enabled(mode, members, user)

	async def is_flag_switched_on(self, flag: FlagKey) -> bool:
		"""
		Global admin switch. A flag without a stored setting is on, except
		opt-in flags (early access) which stay off until switched on.
		"""
		key = parse_flag_key(flag)
		value = await self._settings.get_setting(key.value)
		if value is None:
			return not get_definition(key).opt_in
		normalized = value.strip().lower()
		if normalized == 'true':
			return True
		if normalized == 'false':
			return False
		raise MalformedRecordError('app_settings', f'expected "true" or "false", got {value!r}', row={'key': key.value, 'value': value})

	# ─── Administration ───────────────────────────────────────

	async def update_targeting(
		self,
		flag: FlagKey,
		mode: TargetMode,
		user_ids: Optional[Iterable[int]] = None,
		updated_by: Optional[int] = None,
	) -> None:
		key = parse_flag_key(flag)
		target_mode = parse_target_mode(mode)

		ids: Optional[List[int]] = None
		if target_mode is TargetMode.CUSTOM:
			ids = self._validate_user_ids(user_ids)
		elif user_ids:
			logger.info('feature_flag_user_ids_ignored', flag_key=key.value, target_mode=target_mode.value)

		await self._targeting.apply_targeting(key, target_mode, ids, updated_by)
		await self._invalidate(key)
		logger.info(
			'feature_flag_targeting_updated',
			flag_key=key.value,
			target_mode=target_mode.value,
			user_count=len(ids) if ids is not None else 0,
			updated_by=updated_by,
		)

	def _validate_user_ids(self, user_ids: Optional[Iterable[int]]) -> List[int]:
		if user_ids is None:
			raise ValidationError('user_ids is required when target_mode is custom', field='user_ids')
		ids = list(user_ids)
		if not ids:
			raise ValidationError('user_ids must not be empty when target_mode is custom', field='user_ids')
		if len(ids) > self.max_custom_users:
			raise ValidationError(
				f'user_ids exceeds the maximum of {self.max_custom_users}',
				field='user_ids',
				details={'count': len(ids), 'max': self.max_custom_users},
			)
		for user_id in ids:
			if isinstance(user_id, bool) or not isinstance(user_id, int) or user_id <= 0:
				raise ValidationError(f'Invalid user id: {user_id!r}', field='user_ids')
		return sorted(set(ids))

	async def get_targeting(self, flag: FlagKey) -> TargetingView:
		key = parse_flag_key(flag)
		snapshot = await self._targeting.get_snapshot(key)
		if not snapshot.members:
			return TargetingView(target_mode=snapshot.target_mode)

		summaries = {u.id: u for u in await self._users.get_user_summaries(m.user_id for m in snapshot.members)}
		users = [
			TargetedUser(
				user_id=member.user_id,
				email=summaries[member.user_id].email,
				enabled=member.enabled,
				is_premium=summaries[member.user_id].is_premium,
				is_admin=summaries[member.user_id].is_admin,
				display_name=summaries[member.user_id].display_name,
				image=summaries[member.user_id].image,
			)
			for member in snapshot.members
			if member.user_id in summaries
		]
		return TargetingView(target_mode=snapshot.target_mode, users=users)

	async def set_flag_enabled(self, flag: FlagKey, enabled: bool, updated_by: Optional[int] = None) -> None:
		key = parse_flag_key(flag)
		await self._settings.set_setting(key.value, 'true' if enabled else 'false', updated_by)
		await self._invalidate(key)
		logger.info('feature_flag_switched', flag_key=key.value, enabled=enabled, updated_by=updated_by)

	async def get_all_flags(self) -> FlagOverview:
		"""Global switch and targeting for every flag shown to admins."""
		definitions = displayed_flags()

		async def _status(definition) -> FlagStatus:
			enabled, targeting = await asyncio.gather(
				self.is_flag_switched_on(definition.key),
				self.get_targeting(definition.key),
			)
			return FlagStatus(
				key=definition.key,
				title=definition.title,
				description=definition.description,
				enabled=enabled,
				depends_on=list(definition.depends_on),
				targeting=targeting,
			)

		statuses = await asyncio.gather(*(_status(d) for d in definitions))
		return {status.key: status for status in statuses}

	# ─── Cache ────────────────────────────────────────────────

	def _cache_key(self, flag: FlagKey, user_id: Optional[int]) -> str:
		return f'{CACHE_PREFIX}:{flag.value}:{user_id if user_id is not None else "anon"}'

	async def _invalidate(self, flag: FlagKey) -> None:
		self._generations[flag] = self._generations.get(flag, 0) + 1
		if self._cache:
			await self._cache.delete_prefix(f'{CACHE_PREFIX}:{flag.value}:')
