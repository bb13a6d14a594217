"""
App Settings Store - admin-controlled key/value settings

Each feature flag has an on/off setting keyed by the flag name. The setting
acts as a global switch in front of targeting; a missing row means on.
"""

import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Dict, Optional

from coursehub.core.repository import SupabaseRepository

logger = logging.getLogger(__name__)


class AppSettingsStore(ABC):
	@abstractmethod
	async def get_setting(self, key: str) -> Optional[str]:
		pass

	@abstractmethod
	async def set_setting(self, key: str, value: str, updated_by: Optional[int] = None) -> None:
		pass


class SupabaseAppSettingsStore(SupabaseRepository, AppSettingsStore):
	table_name = 'app_settings'

	async def get_setting(self, key: str) -> Optional[str]:
		rows = await self.run(self.table().select('key,value').eq('key', key).limit(1), 'get_setting')
		return rows[0].get('value') if rows else None

	async def set_setting(self, key: str, value: str, updated_by: Optional[int] = None) -> None:
		await self.run(
			self.table().upsert(
				{
					'key': key,
					'value': value,
					'updated_at': datetime.now(timezone.utc).isoformat(),
					'updated_by': updated_by,
				},
				on_conflict='key',
			),
			'set_setting',
		)


class InMemoryAppSettingsStore(AppSettingsStore):
	def __init__(self, values: Optional[Dict[str, str]] = None):
		self._values: Dict[str, str] = dict(values or {})

	async def get_setting(self, key: str) -> Optional[str]:
		return self._values.get(key)

	async def set_setting(self, key: str, value: str, updated_by: Optional[int] = None) -> None:
		self._values[key] = value
