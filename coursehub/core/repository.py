"""
Repository base — Supabase data access shared by the stores

Translates PostgREST calls into awaitable operations and maps every
backend failure onto DatabaseError, so callers deal with one error type.

Usage:
    from coursehub.core.repository import SupabaseRepository

    class SettingsRepository(SupabaseRepository):
        table_name = "app_settings"

    rows = await repo.run(repo.table().select("*").eq("key", "x"), "get_setting")
"""

import asyncio
import logging
from typing import Any, Dict, List, Optional, Type, TypeVar

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from coursehub.core.exceptions import DatabaseError, MalformedRecordError

logger = logging.getLogger(__name__)

M = TypeVar('M', bound=BaseModel)


def escape_like(value: str) -> str:
	"""Escape LIKE pattern metacharacters so user input matches literally."""
	return value.replace('\\', '\\\\').replace('%', '\\%').replace('_', '\\_')


class SupabaseRepository:
	"""
	Base for repositories backed by Supabase (PostgREST).

	The supabase client is synchronous; queries run in a worker thread so
	request handlers never block the event loop.
	"""

	table_name: str = ''

	def __init__(self, client: Any):
		"""
		Args:
		    client: Supabase client instance
		"""
		if not self.table_name:
			raise ValueError(f'{self.__class__.__name__} must define table_name')
		self._client = client

	def table(self, name: Optional[str] = None):
		"""Get the table query builder."""
		return self._client.table(name or self.table_name)

	async def run(self, query, operation: str) -> List[Dict[str, Any]]:
		"""Execute a query builder and return its rows."""
		try:
			result = await asyncio.to_thread(query.execute)
		except Exception as e:
			logger.error(f'[{self.table_name}] {operation} error: {e}')
			raise DatabaseError(f'{operation} failed: {e}', operation=operation, details={'table': self.table_name}) from e
		data = result.data
		if data is None:
			return []
		return data if isinstance(data, list) else [data]

	async def call(self, function: str, params: Dict[str, Any]) -> Any:
		"""Call a Postgres function; the function body runs in one transaction."""
		try:
			result = await asyncio.to_thread(self._client.rpc(function, params).execute)
		except Exception as e:
			logger.error(f'[{self.table_name}] rpc {function} error: {e}')
			raise DatabaseError(f'{function} failed: {e}', operation=function, details={'table': self.table_name}) from e
		return result.data

	def decode(self, model: Type[M], row: Dict[str, Any]) -> M:
		try:
			return model.model_validate(row)
		except PydanticValidationError as e:
			raise MalformedRecordError(self.table_name, str(e), row=row) from e
