"""
Admin API Routes - feature flag targeting console and user lookups
All endpoints require an admin bearer token.
"""

import logging

from fastapi import APIRouter, Depends, Query

from coursehub.api.schemas import (
	AllFlagsResponse,
	SetFlagEnabledRequest,
	SuccessResponse,
	TargetingResponse,
	UpdateTargetingRequest,
	UserListResponse,
	UsersByEmailsRequest,
	UsersByIdsRequest,
)
from coursehub.core.auth import AuthUser, require_admin
from coursehub.core.container import inject
from coursehub.core.feature_flags import parse_flag_key
from coursehub.services.feature_flag_service import FeatureFlagService
from coursehub.services.user_store import UserStore

logger = logging.getLogger(__name__)
router = APIRouter(prefix='/admin', dependencies=[Depends(require_admin)])


# ============================================================================
# Feature flags
# ============================================================================


@router.get('/feature-flags', response_model=AllFlagsResponse)
async def get_all_feature_flags(flags: FeatureFlagService = Depends(inject('feature_flags'))):
	"""Global switch and targeting of every displayed flag."""
	return AllFlagsResponse(flags=await flags.get_all_flags())


@router.get('/feature-flags/{flag_key}/targeting', response_model=TargetingResponse)
async def get_feature_flag_targeting(flag_key: str, flags: FeatureFlagService = Depends(inject('feature_flags'))):
	key = parse_flag_key(flag_key)
	view = await flags.get_targeting(key)
	return TargetingResponse(flag_key=key, **view.model_dump())


@router.put('/feature-flags/{flag_key}/targeting', response_model=SuccessResponse)
async def update_feature_flag_targeting(
	flag_key: str,
	body: UpdateTargetingRequest,
	admin: AuthUser = Depends(require_admin),
	flags: FeatureFlagService = Depends(inject('feature_flags')),
):
	key = parse_flag_key(flag_key)
	await flags.update_targeting(key, body.target_mode, body.user_ids, updated_by=admin.id)
	return SuccessResponse(message=f'Targeting for {key.value} set to {body.target_mode.value}')


@router.put('/feature-flags/{flag_key}/enabled', response_model=SuccessResponse)
async def set_feature_flag_enabled(
	flag_key: str,
	body: SetFlagEnabledRequest,
	admin: AuthUser = Depends(require_admin),
	flags: FeatureFlagService = Depends(inject('feature_flags')),
):
	key = parse_flag_key(flag_key)
	await flags.set_flag_enabled(key, body.enabled, updated_by=admin.id)
	return SuccessResponse(message=f'{key.value} {"enabled" if body.enabled else "disabled"}')


# ============================================================================
# User lookups for CUSTOM targeting
# ============================================================================


@router.get('/users/search', response_model=UserListResponse)
async def search_users(
	query: str = Query(..., min_length=1),
	users: UserStore = Depends(inject('user_store')),
):
	return UserListResponse(users=await users.search_users(query))


@router.post('/users/by-ids', response_model=UserListResponse)
async def get_users_by_ids(body: UsersByIdsRequest, users: UserStore = Depends(inject('user_store'))):
	return UserListResponse(users=await users.get_users_by_ids(body.user_ids))


@router.post('/users/by-emails', response_model=UserListResponse)
async def get_users_by_emails(body: UsersByEmailsRequest, users: UserStore = Depends(inject('user_store'))):
	return UserListResponse(users=await users.get_users_by_emails(body.emails))
