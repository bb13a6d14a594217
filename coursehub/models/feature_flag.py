from datetime import datetime
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator

from coursehub.core.feature_flags import FlagKey, TargetMode


class TargetingRecord(BaseModel):
	"""
	Active targeting mode of one flag. At most one per flag key.
	"""

	flag_key: FlagKey
	target_mode: TargetMode
	updated_at: Optional[datetime] = None
	updated_by: Optional[int] = None

	model_config = ConfigDict(extra='ignore', frozen=True)


class TargetingMembership(BaseModel):
	"""
	One (flag, user) entry of a CUSTOM allow-list.
	"""

	flag_key: FlagKey
	user_id: int
	enabled: bool = True
	created_at: Optional[datetime] = None

	model_config = ConfigDict(extra='ignore', frozen=True)


class TargetingSnapshot(BaseModel):
	"""Record and members read together."""

	flag_key: FlagKey
	record: Optional[TargetingRecord] = None
	members: Tuple[TargetingMembership, ...] = ()

	model_config = ConfigDict(frozen=True)

	@property
	def target_mode(self) -> TargetMode:
		return self.record.target_mode if self.record else TargetMode.ALL

	def enabled_user_ids(self) -> frozenset:
		return frozenset(m.user_id for m in self.members if m.enabled)


class UserAttributes(BaseModel):
	"""Read-only user snapshot used during evaluation."""

	user_id: int
	is_premium: bool = False
	is_admin: bool = False

	model_config = ConfigDict(frozen=True)

	@field_validator('is_premium', 'is_admin', mode='before')
	@classmethod
	def _null_as_false(cls, v):
		return bool(v) if v is not None else False


class UserSummary(BaseModel):
	"""User row joined with its profile, for admin screens."""

	id: int
	email: Optional[str] = None
	is_premium: bool = False
	is_admin: bool = False
	display_name: Optional[str] = None
	image: Optional[str] = None

	model_config = ConfigDict(extra='ignore')

	@field_validator('is_premium', 'is_admin', mode='before')
	@classmethod
	def _null_as_false(cls, v):
		return bool(v) if v is not None else False


class TargetedUser(BaseModel):
	user_id: int
	email: Optional[str] = None
	enabled: bool = True
	is_premium: bool = False
	is_admin: bool = False
	display_name: Optional[str] = None
	image: Optional[str] = None


class TargetingView(BaseModel):
	"""Admin read-model of a flag's targeting."""

	target_mode: TargetMode = TargetMode.ALL
	users: List[TargetedUser] = Field(default_factory=list)


class EarlyAccessStatus(BaseModel):
	early_access_enabled: bool
	can_access: bool


class FlagStatus(BaseModel):
	"""Admin overview entry for one displayed flag."""

	key: FlagKey
	title: str
	description: str
	enabled: bool
	depends_on: List[FlagKey] = Field(default_factory=list)
	targeting: TargetingView


FlagOverview = Dict[FlagKey, FlagStatus]
