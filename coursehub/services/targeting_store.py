"""
Targeting Store - persisted flag targeting (mode + CUSTOM allow-lists)

Tables (see migrations/01_feature_flags.sql):
  feature_flag_targets  one row per flag key
  feature_flag_users    one row per (flag key, user id)

Readers never see a half-applied update: snapshots come from a single
statement and writes go through one Postgres function per update.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from typing import Any, Dict, Iterable, List, Optional, Tuple

from coursehub.core.exceptions import DatabaseError, MalformedRecordError
from coursehub.core.feature_flags import FlagKey, TargetMode
from coursehub.core.repository import SupabaseRepository
from coursehub.models.feature_flag import TargetingMembership, TargetingRecord, TargetingSnapshot

logger = logging.getLogger(__name__)

RECORD_COLUMNS = 'flag_key,target_mode,updated_at,updated_by'
MEMBER_COLUMNS = 'flag_key,user_id,enabled,created_at'


class TargetingStore(ABC):
	"""
	Storage contract for flag targeting.
	Failures surface as DatabaseError (or MalformedRecordError for bad rows).
	"""

	@abstractmethod
	async def get_targeting_record(self, flag: FlagKey) -> Optional[TargetingRecord]:
		pass

	@abstractmethod
	async def list_members(self, flag: FlagKey) -> List[TargetingMembership]:
		"""Memberships of a flag ordered by user id."""
		pass

	@abstractmethod
	async def get_snapshot(self, flag: FlagKey) -> TargetingSnapshot:
		"""Record and members from one consistent read."""
		pass

	@abstractmethod
	async def upsert_targeting_record(self, flag: FlagKey, mode: TargetMode, updated_by: Optional[int] = None) -> None:
		pass

	@abstractmethod
	async def replace_members(self, flag: FlagKey, user_ids: Iterable[int]) -> None:
		"""Swap the full member set; old members not listed are removed."""
		pass

	@abstractmethod
	async def apply_targeting(
		self,
		flag: FlagKey,
		mode: TargetMode,
		user_ids: Optional[Iterable[int]] = None,
		updated_by: Optional[int] = None,
	) -> None:
		"""
		Upsert the record and reconcile members in one transaction.

		CUSTOM with user_ids replaces the members, CUSTOM without keeps them,
		any other mode clears them.
		"""
		pass


def _unique_ids(user_ids: Iterable[int]) -> List[int]:
	return sorted(set(int(u) for u in user_ids))


# ─── Supabase ───────────────────────────────────────────────────


class SupabaseTargetingStore(SupabaseRepository, TargetingStore):
	table_name = 'feature_flag_targets'
	members_table = 'feature_flag_users'

	async def get_targeting_record(self, flag: FlagKey) -> Optional[TargetingRecord]:
		rows = await self.run(
			self.table().select(RECORD_COLUMNS).eq('flag_key', flag.value).limit(1),
			'get_targeting_record',
		)
		return self.decode(TargetingRecord, rows[0]) if rows else None

	async def list_members(self, flag: FlagKey) -> List[TargetingMembership]:
		rows = await self.run(
			self.table(self.members_table).select(MEMBER_COLUMNS).eq('flag_key', flag.value).order('user_id'),
			'list_members',
		)
		return [self.decode(TargetingMembership, row) for row in rows]

	async def get_snapshot(self, flag: FlagKey) -> TargetingSnapshot:
		# Resource embedding resolves to one SQL statement, so record and members share a snapshot
		rows = await self.run(
			self.table()
			.select(f'{RECORD_COLUMNS},{self.members_table}({MEMBER_COLUMNS})')
			.eq('flag_key', flag.value)
			.limit(1),
			'get_snapshot',
		)
		if not rows:
			return TargetingSnapshot(flag_key=flag)
		row = dict(rows[0])
		member_rows = row.pop(self.members_table, None) or []
		record = self.decode(TargetingRecord, row)
		members = sorted((self.decode(TargetingMembership, m) for m in member_rows), key=lambda m: m.user_id)
		return TargetingSnapshot(flag_key=flag, record=record, members=tuple(members))

	async def upsert_targeting_record(self, flag: FlagKey, mode: TargetMode, updated_by: Optional[int] = None) -> None:
		await self.run(
			self.table().upsert(
				{
					'flag_key': flag.value,
					'target_mode': mode.value,
					'updated_at': datetime.now(timezone.utc).isoformat(),
					'updated_by': updated_by,
				},
				on_conflict='flag_key',
			),
			'upsert_targeting_record',
		)

	async def replace_members(self, flag: FlagKey, user_ids: Iterable[int]) -> None:
		await self.call(
			'replace_feature_flag_users',
			{'p_flag_key': flag.value, 'p_user_ids': _unique_ids(user_ids)},
		)

	async def apply_targeting(
		self,
		flag: FlagKey,
		mode: TargetMode,
		user_ids: Optional[Iterable[int]] = None,
		updated_by: Optional[int] = None,
	) -> None:
		await self.call(
			'apply_feature_flag_targeting',
			{
				'p_flag_key': flag.value,
				'p_target_mode': mode.value,
				'p_user_ids': _unique_ids(user_ids) if user_ids is not None else None,
				'p_updated_by': updated_by,
			},
		)


# ─── In-Memory (tests, local development) ──────────────────────


class InMemoryTargetingStore(TargetingStore):
	"""
	Copy-on-write store. Writers build complete new state under a lock and
	swap it in without yielding, so readers see either the old or the new
	record/member pair.
	"""

	def __init__(self):
		self._records: Dict[FlagKey, TargetingRecord] = {}
		self._members: Dict[FlagKey, Tuple[TargetingMembership, ...]] = {}
		self._lock = asyncio.Lock()

	async def get_targeting_record(self, flag: FlagKey) -> Optional[TargetingRecord]:
		return self._records.get(flag)

	async def list_members(self, flag: FlagKey) -> List[TargetingMembership]:
		return list(self._members.get(flag, ()))

	async def get_snapshot(self, flag: FlagKey) -> TargetingSnapshot:
		return TargetingSnapshot(flag_key=flag, record=self._records.get(flag), members=self._members.get(flag, ()))

	async def upsert_targeting_record(self, flag: FlagKey, mode: TargetMode, updated_by: Optional[int] = None) -> None:
		async with self._lock:
			self._records = {**self._records, flag: self._build_record(flag, mode, updated_by)}

	async def replace_members(self, flag: FlagKey, user_ids: Iterable[int]) -> None:
		async with self._lock:
			# Mirrors the foreign key from feature_flag_users to feature_flag_targets
			if flag not in self._records:
				raise DatabaseError(f'No targeting record for {flag.value}', operation='replace_members')
			self._members = {**self._members, flag: self._build_members(flag, user_ids)}

	async def apply_targeting(
		self,
		flag: FlagKey,
		mode: TargetMode,
		user_ids: Optional[Iterable[int]] = None,
		updated_by: Optional[int] = None,
	) -> None:
		async with self._lock:
			record = self._build_record(flag, mode, updated_by)
			members = self._members.get(flag, ())
			if mode is TargetMode.CUSTOM:
				if user_ids is not None:
					members = self._build_members(flag, user_ids)
			else:
				members = ()
			# Commit both halves together
			self._records = {**self._records, flag: record}
			self._members = {**self._members, flag: members}

	def _build_record(self, flag: FlagKey, mode: TargetMode, updated_by: Optional[int]) -> TargetingRecord:
		return TargetingRecord(
			flag_key=flag,
			target_mode=mode,
			updated_at=datetime.now(timezone.utc),
			updated_by=updated_by,
		)

	def _build_members(self, flag: FlagKey, user_ids: Iterable[int]) -> Tuple[TargetingMembership, ...]:
		now = datetime.now(timezone.utc)
		return tuple(TargetingMembership(flag_key=flag, user_id=u, enabled=True, created_at=now) for u in _unique_ids(user_ids))

	def load_rows(self, records: Iterable[Dict[str, Any]] = (), members: Iterable[Dict[str, Any]] = ()) -> None:
		"""Seed raw rows, validating them the same way the database store does."""
		new_records = dict(self._records)
		for row in records:
			try:
				record = TargetingRecord.model_validate(row)
			except ValueError as e:
				raise MalformedRecordError('feature_flag_targets', str(e), row=dict(row)) from e
			new_records[record.flag_key] = record
		grouped: Dict[FlagKey, List[TargetingMembership]] = {}
		for row in members:
			try:
				member = TargetingMembership.model_validate(row)
			except ValueError as e:
				raise MalformedRecordError('feature_flag_users', str(e), row=dict(row)) from e
			grouped.setdefault(member.flag_key, []).append(member)
		new_members = dict(self._members)
		for flag, items in grouped.items():
			new_members[flag] = tuple(sorted(items, key=lambda m: m.user_id))
		self._records = new_records
		self._members = new_members
