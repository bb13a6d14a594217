"""
Targeting evaluator.

Pure decision function over a flag's targeting mode:

	mode          anonymous   signed-in user
	ALL           on          on
	PREMIUM       off         user.is_premium
	NON_PREMIUM   off         not user.is_premium
	CUSTOM        off         user_id in members

Anonymous callers only pass under ALL. Admin status is never consulted here;
callers that want an admin bypass apply it themselves.
"""

from typing import AbstractSet, Optional

from coursehub.core.feature_flags import TargetMode
from coursehub.models.feature_flag import UserAttributes


def is_enabled(mode: TargetMode, members: AbstractSet[int], user: Optional[UserAttributes]) -> bool:
	if mode is TargetMode.ALL:
		return True
	if user is None:
		return False
	if mode is TargetMode.PREMIUM:
		return user.is_premium
	if mode is TargetMode.NON_PREMIUM:
		return not user.is_premium
	if mode is TargetMode.CUSTOM:
		return user.user_id in members
	raise ValueError(f'Unhandled target mode: {mode!r}')
