"""
Feature flag registry.

Single source of truth for the closed set of flag keys, their targeting
modes and the fallback values used when targeting data is unavailable.
Built once at import time; there is no runtime mutation path.
"""

from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, FrozenSet, Mapping, Optional, Tuple

from coursehub.core.exceptions import ValidationError


class FlagKey(str, Enum):
	EARLY_ACCESS_MODE = 'EARLY_ACCESS_MODE'
	AGENTS_FEATURE = 'AGENTS_FEATURE'
	ADVANCED_AGENTS_FEATURE = 'ADVANCED_AGENTS_FEATURE'
	LAUNCH_KITS_FEATURE = 'LAUNCH_KITS_FEATURE'
	AFFILIATES_FEATURE = 'AFFILIATES_FEATURE'
	BLOG_FEATURE = 'BLOG_FEATURE'
	NEWS_FEATURE = 'NEWS_FEATURE'
	VIDEO_SEGMENT_CONTENT_TABS = 'VIDEO_SEGMENT_CONTENT_TABS'


class TargetMode(str, Enum):
	ALL = 'all'
	PREMIUM = 'premium'
	NON_PREMIUM = 'non_premium'
	CUSTOM = 'custom'


@dataclass(frozen=True)
class FlagDefinition:
	key: FlagKey
	title: str
	description: str
	default: bool
	depends_on: Tuple[FlagKey, ...] = ()
	hidden: bool = False  # excluded from the admin overview
	opt_in: bool = False  # switch stays off until an admin stores "true"


_DEFINITIONS: Tuple[FlagDefinition, ...] = (
	FlagDefinition(
		key=FlagKey.EARLY_ACCESS_MODE,
		title='Early Access Mode',
		description='Control whether the platform is in early access mode. When enabled, only admins can access the full site.',
		default=False,
		opt_in=True,
	),
	FlagDefinition(
		key=FlagKey.AGENTS_FEATURE,
		title='Agents Feature',
		description='Control whether the AI agents feature is available to users.',
		default=True,
	),
	FlagDefinition(
		key=FlagKey.ADVANCED_AGENTS_FEATURE,
		title='Advanced Agents',
		description='Enable advanced AI agent capabilities like custom workflows and automation. Requires the base Agents feature.',
		default=False,
		depends_on=(FlagKey.AGENTS_FEATURE,),
	),
	FlagDefinition(
		key=FlagKey.LAUNCH_KITS_FEATURE,
		title='Launch Kits Feature',
		description='Control whether the launch kits feature is available to users.',
		default=True,
	),
	FlagDefinition(
		key=FlagKey.AFFILIATES_FEATURE,
		title='Affiliates Feature',
		description='Control whether the affiliate program features are available to users.',
		default=True,
	),
	FlagDefinition(
		key=FlagKey.BLOG_FEATURE,
		title='Blog Feature',
		description='Control whether the blog feature is available to users.',
		default=True,
	),
	FlagDefinition(
		key=FlagKey.NEWS_FEATURE,
		title='News Feature',
		description='Control whether the news feature is available to users.',
		default=True,
	),
	FlagDefinition(
		key=FlagKey.VIDEO_SEGMENT_CONTENT_TABS,
		title='Video Segment Content Tabs',
		description='Control whether the video segment content tabs feature is available.',
		default=False,
		hidden=True,
	),
)

REGISTRY: Mapping[FlagKey, FlagDefinition] = MappingProxyType({d.key: d for d in _DEFINITIONS})

# Fallback values for when the targeting store is not available
FALLBACK_CONFIG: Mapping[FlagKey, bool] = MappingProxyType({d.key: d.default for d in _DEFINITIONS})


def list_flag_keys() -> FrozenSet[FlagKey]:
	return frozenset(REGISTRY)


def get_definition(flag: FlagKey) -> FlagDefinition:
	return REGISTRY[FlagKey(flag)]


def default_value(flag: FlagKey) -> bool:
	return FALLBACK_CONFIG[FlagKey(flag)]


def displayed_flags() -> Tuple[FlagDefinition, ...]:
	"""Flags shown in the admin overview, in registry order."""
	return tuple(d for d in _DEFINITIONS if not d.hidden)


def find_flag_key(value: Any) -> Optional[FlagKey]:
	"""Return the matching FlagKey, or None when value is not a known key."""
	if isinstance(value, FlagKey):
		return value
	try:
		return FlagKey(value)
	except ValueError:
		return None


def parse_flag_key(value: Any) -> FlagKey:
	flag = find_flag_key(value)
	if flag is None:
		raise ValidationError(f'Unknown feature flag: {value!r}', field='flag_key')
	return flag


def parse_target_mode(value: Any) -> TargetMode:
	if isinstance(value, TargetMode):
		return value
	try:
		return TargetMode(value)
	except ValueError:
		allowed = ', '.join(m.value for m in TargetMode)
		raise ValidationError(f'Unknown target mode: {value!r}. Must be one of: {allowed}', field='target_mode')
