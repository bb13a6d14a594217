"""
Feature Flag API Routes - public flag checks and the early access gate
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from coursehub.api.schemas import EarlyAccessResponse, FlagEnabledResponse
from coursehub.core.auth import AuthUser, get_optional_user
from coursehub.core.container import inject
from coursehub.services.early_access import EarlyAccessGate
from coursehub.services.feature_flag_service import FeatureFlagService

logger = logging.getLogger(__name__)
router = APIRouter()


@router.get('/feature-flags/{flag_key}/enabled', response_model=FlagEnabledResponse)
async def is_feature_enabled(
	flag_key: str,
	user: Optional[AuthUser] = Depends(get_optional_user),
	flags: FeatureFlagService = Depends(inject('feature_flags')),
):
	"""Whether a flag is on for the caller. Unknown flags report disabled."""
	enabled = await flags.is_feature_enabled_for_user(flag_key, user.id if user else None)
	return FlagEnabledResponse(flag_key=flag_key, enabled=enabled)


@router.get('/early-access', response_model=EarlyAccessResponse)
async def early_access_status(
	user: Optional[AuthUser] = Depends(get_optional_user),
	gate: EarlyAccessGate = Depends(inject('early_access')),
):
	status = await gate.check(user.id if user else None)
	return EarlyAccessResponse(**status.model_dump())
