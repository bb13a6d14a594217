"""
Pydantic request and response schemas for the API endpoints.
"""

from typing import Annotated, Dict, List, Optional

from pydantic import BaseModel, Field

from coursehub.core.feature_flags import FlagKey, TargetMode
from coursehub.models.feature_flag import EarlyAccessStatus, FlagStatus, TargetingView, UserSummary

MAX_BATCH = 1000
EMAIL_PATTERN = r'^[^@\s]+@[^@\s]+\.[^@\s]+$'

# ============================================================================
# Common / Shared
# ============================================================================


class SuccessResponse(BaseModel):
	"""Generic success envelope."""

	success: bool = True
	message: Optional[str] = None


class HealthResponse(BaseModel):
	status: str = 'healthy'
	service: str
	version: str
	environment: str
	services: Dict[str, str] = Field(default_factory=dict)


# ============================================================================
# Feature Flags
# ============================================================================


class FlagEnabledResponse(BaseModel):
	flag_key: str
	enabled: bool


class UpdateTargetingRequest(BaseModel):
	target_mode: TargetMode
	# Capped by FLAG_MAX_CUSTOM_USERS in the service
	user_ids: Optional[List[int]] = None


class SetFlagEnabledRequest(BaseModel):
	enabled: bool


class TargetingResponse(TargetingView):
	flag_key: FlagKey


class AllFlagsResponse(BaseModel):
	flags: Dict[FlagKey, FlagStatus]


class EarlyAccessResponse(EarlyAccessStatus):
	pass


# ============================================================================
# Admin user lookups
# ============================================================================


class UsersByIdsRequest(BaseModel):
	user_ids: List[int] = Field(max_length=MAX_BATCH)


class UsersByEmailsRequest(BaseModel):
	emails: List[Annotated[str, Field(pattern=EMAIL_PATTERN)]] = Field(max_length=MAX_BATCH)


class UserListResponse(BaseModel):
	users: List[UserSummary]
