"""
Route-level feature gating.

Usage:
    @router.get("/agents", dependencies=[Depends(require_feature(FlagKey.AGENTS_FEATURE))])
    async def list_agents(): ...
"""

from typing import Callable, Optional

from fastapi import Depends

from coursehub.core.auth import AuthUser, get_optional_user
from coursehub.core.container import inject
from coursehub.core.exceptions import FeatureDisabledError
from coursehub.core.feature_flags import FlagKey
from coursehub.services.feature_flag_service import FeatureFlagService


def require_feature(flag: FlagKey) -> Callable:
	"""Build a dependency that rejects the request when flag is off for the caller."""

	async def _check(
		user: Optional[AuthUser] = Depends(get_optional_user),
		flags: FeatureFlagService = Depends(inject('feature_flags')),
	) -> None:
		enabled = await flags.is_feature_enabled_for_user(flag, user.id if user else None)
		if not enabled:
			raise FeatureDisabledError(flag.value)

	return _check
