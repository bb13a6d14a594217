"""
Early access gate.

While EARLY_ACCESS_MODE is on for a visitor, only admins get into the full
site. The admin bypass lives here rather than in the evaluator because it
applies to this one flag only. The mode is opt-in: until an admin switches
it on, everyone gets in.
"""

import logging
from typing import Optional

from coursehub.core.feature_flags import FlagKey
from coursehub.models.feature_flag import EarlyAccessStatus
from coursehub.services.feature_flag_service import FeatureFlagService
from coursehub.services.user_store import UserStore

logger = logging.getLogger(__name__)


class EarlyAccessGate:
	def __init__(self, flags: FeatureFlagService, users: UserStore):
		self._flags = flags
		self._users = users

	async def is_early_access_mode(self, user_id: Optional[int] = None) -> bool:
		return await self._flags.is_feature_enabled_for_user(FlagKey.EARLY_ACCESS_MODE, user_id)

	async def check(self, user_id: Optional[int] = None) -> EarlyAccessStatus:
		"""Evaluate the mode once and derive site access from it."""
		enabled = await self.is_early_access_mode(user_id)
		if not enabled:
			return EarlyAccessStatus(early_access_enabled=False, can_access=True)
		return EarlyAccessStatus(early_access_enabled=True, can_access=await self._is_admin(user_id))

	async def can_access_site(self, user_id: Optional[int] = None) -> bool:
		return (await self.check(user_id)).can_access

	async def _is_admin(self, user_id: Optional[int]) -> bool:
		if user_id is None:
			return False
		try:
			user = await self._users.get_user_attributes(user_id)
		except Exception as e:
			logger.warning(f'Early access admin lookup failed for user {user_id}: {e}')
			return False
		return bool(user and user.is_admin)
