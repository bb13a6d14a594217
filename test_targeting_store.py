"""Targeting, user and settings stores against in-memory state and a fake Supabase client."""
import asyncio
from types import SimpleNamespace

import pytest

from coursehub.core.exceptions import DatabaseError, MalformedRecordError
from coursehub.core.feature_flags import FlagKey, TargetMode
from coursehub.core.repository import escape_like
from coursehub.services.app_settings_store import SupabaseAppSettingsStore
from coursehub.services.targeting_store import InMemoryTargetingStore, SupabaseTargetingStore
from coursehub.services.user_store import SEARCH_LIMIT, SupabaseUserStore


class FakeQuery:
    """Chainable stand-in for a postgrest request builder."""

    def __init__(self, client, target, data=None, error=None):
        self.client = client
        self.target = target
        self.calls = []
        self._data = data
        self._error = error

    def __getattr__(self, name):
        def _chain(*args, **kwargs):
            self.calls.append((name, args, kwargs))
            return self
        return _chain

    def execute(self):
        self.client.executed.append(self)
        if self._error:
            raise self._error
        return SimpleNamespace(data=self._data)


class FakeSupabase:
    def __init__(self, data=None, error=None):
        self.data = data
        self.error = error
        self.queries = []
        self.executed = []

    def table(self, name):
        query = FakeQuery(self, name, self.data, self.error)
        self.queries.append(query)
        return query

    def rpc(self, function, params):
        query = FakeQuery(self, function, self.data, self.error)
        query.calls.append(("rpc", (function, params), {}))
        self.queries.append(query)
        return query


def call_args(query, name):
    return [args for (n, args, _) in query.calls if n == name]


# === In-memory store ===

def test_apply_custom_then_all_clears_members():
    store = InMemoryTargetingStore()

    async def run():
        await store.apply_targeting(FlagKey.NEWS_FEATURE, TargetMode.CUSTOM, [3, 1, 3], updated_by=7)
        snapshot = await store.get_snapshot(FlagKey.NEWS_FEATURE)
        assert snapshot.target_mode is TargetMode.CUSTOM
        assert [m.user_id for m in snapshot.members] == [1, 3]

        await store.apply_targeting(FlagKey.NEWS_FEATURE, TargetMode.PREMIUM)
        assert await store.list_members(FlagKey.NEWS_FEATURE) == []

    asyncio.run(run())


def test_apply_custom_without_ids_keeps_members():
    store = InMemoryTargetingStore()

    async def run():
        await store.apply_targeting(FlagKey.NEWS_FEATURE, TargetMode.CUSTOM, [5])
        await store.apply_targeting(FlagKey.NEWS_FEATURE, TargetMode.CUSTOM, None)
        assert [m.user_id for m in await store.list_members(FlagKey.NEWS_FEATURE)] == [5]

    asyncio.run(run())


def test_failed_apply_leaves_previous_state(monkeypatch):
    store = InMemoryTargetingStore()

    async def run():
        await store.apply_targeting(FlagKey.NEWS_FEATURE, TargetMode.CUSTOM, [1, 2])
        before = await store.get_snapshot(FlagKey.NEWS_FEATURE)

        def explode(flag, user_ids):
            raise RuntimeError("write failed")

        monkeypatch.setattr(store, "_build_members", explode)
        with pytest.raises(RuntimeError):
            await store.apply_targeting(FlagKey.NEWS_FEATURE, TargetMode.CUSTOM, [9])

        after = await store.get_snapshot(FlagKey.NEWS_FEATURE)
        assert after == before

    asyncio.run(run())


def test_replace_members_requires_record():
    store = InMemoryTargetingStore()

    async def run():
        with pytest.raises(DatabaseError):
            await store.replace_members(FlagKey.BLOG_FEATURE, [1])
        await store.upsert_targeting_record(FlagKey.BLOG_FEATURE, TargetMode.CUSTOM)
        await store.replace_members(FlagKey.BLOG_FEATURE, [4, 2])
        await store.replace_members(FlagKey.BLOG_FEATURE, [2])
        assert [m.user_id for m in await store.list_members(FlagKey.BLOG_FEATURE)] == [2]

    asyncio.run(run())


def test_load_rows_rejects_unknown_mode():
    store = InMemoryTargetingStore()
    with pytest.raises(MalformedRecordError) as exc:
        store.load_rows(records=[{"flag_key": "BLOG_FEATURE", "target_mode": "beta"}])
    assert exc.value.code == "MALFORMED_RECORD"
    assert exc.value.details["table"] == "feature_flag_targets"


# === Supabase targeting store ===

def test_snapshot_decodes_embedded_members():
    client = FakeSupabase(data=[{
        "flag_key": "NEWS_FEATURE",
        "target_mode": "custom",
        "updated_at": "2024-05-01T10:00:00+00:00",
        "updated_by": 7,
        "feature_flag_users": [
            {"flag_key": "NEWS_FEATURE", "user_id": 9, "enabled": True},
            {"flag_key": "NEWS_FEATURE", "user_id": 2, "enabled": False},
        ],
    }])
    store = SupabaseTargetingStore(client)

    snapshot = asyncio.run(store.get_snapshot(FlagKey.NEWS_FEATURE))

    assert snapshot.target_mode is TargetMode.CUSTOM
    assert [m.user_id for m in snapshot.members] == [2, 9]
    assert snapshot.enabled_user_ids() == frozenset({9})
    query = client.queries[0]
    assert query.target == "feature_flag_targets"
    assert "feature_flag_users(" in call_args(query, "select")[0][0]
    assert call_args(query, "eq") == [("flag_key", "NEWS_FEATURE")]


def test_snapshot_without_row_defaults_to_all():
    store = SupabaseTargetingStore(FakeSupabase(data=[]))
    snapshot = asyncio.run(store.get_snapshot(FlagKey.AGENTS_FEATURE))
    assert snapshot.record is None
    assert snapshot.target_mode is TargetMode.ALL


def test_malformed_row_raises():
    store = SupabaseTargetingStore(FakeSupabase(data=[{"flag_key": "NEWS_FEATURE", "target_mode": "beta"}]))
    with pytest.raises(MalformedRecordError):
        asyncio.run(store.get_targeting_record(FlagKey.NEWS_FEATURE))


def test_backend_error_becomes_database_error():
    store = SupabaseTargetingStore(FakeSupabase(error=ConnectionError("refused")))
    with pytest.raises(DatabaseError) as exc:
        asyncio.run(store.get_snapshot(FlagKey.NEWS_FEATURE))
    assert exc.value.details["operation"] == "get_snapshot"


def test_apply_targeting_calls_transactional_function():
    client = FakeSupabase()
    store = SupabaseTargetingStore(client)

    async def run():
        await store.apply_targeting(FlagKey.NEWS_FEATURE, TargetMode.CUSTOM, [3, 1, 3], updated_by=7)
        await store.apply_targeting(FlagKey.NEWS_FEATURE, TargetMode.ALL)

    asyncio.run(run())

    custom_call, all_call = (call_args(q, "rpc")[0] for q in client.queries)
    assert custom_call == ("apply_feature_flag_targeting", {
        "p_flag_key": "NEWS_FEATURE",
        "p_target_mode": "custom",
        "p_user_ids": [1, 3],
        "p_updated_by": 7,
    })
    assert all_call[1]["p_user_ids"] is None
    assert all_call[1]["p_target_mode"] == "all"


def test_replace_members_calls_function():
    client = FakeSupabase()
    asyncio.run(SupabaseTargetingStore(client).replace_members(FlagKey.BLOG_FEATURE, [5, 4]))
    assert call_args(client.queries[0], "rpc")[0] == (
        "replace_feature_flag_users",
        {"p_flag_key": "BLOG_FEATURE", "p_user_ids": [4, 5]},
    )


def test_upsert_record_conflicts_on_flag_key():
    client = FakeSupabase()
    asyncio.run(SupabaseTargetingStore(client).upsert_targeting_record(FlagKey.BLOG_FEATURE, TargetMode.PREMIUM, 7))
    (payload,), kwargs = [(a, k) for (n, a, k) in client.queries[0].calls if n == "upsert"][0]
    assert payload["target_mode"] == "premium"
    assert kwargs["on_conflict"] == "flag_key"


# === Supabase user store ===

def test_escape_like():
    assert escape_like("50%_off\\") == "50\\%\\_off\\\\"
    assert escape_like("ada") == "ada"


def test_search_users_escapes_and_limits():
    client = FakeSupabase(data=[
        {"id": 1, "email": "a_b@example.com", "is_premium": None, "profiles": {"display_name": "A", "image": None}},
        {"id": 2, "email": None, "is_premium": True, "profiles": None},
    ])
    users = asyncio.run(SupabaseUserStore(client).search_users("a_b"))

    assert [u.id for u in users] == [1]
    assert users[0].display_name == "A"
    assert users[0].is_premium is False
    query = client.queries[0]
    assert call_args(query, "ilike") == [("email", "%a\\_b%")]
    assert call_args(query, "limit") == [(SEARCH_LIMIT,)]


def test_user_summaries_keep_request_order():
    client = FakeSupabase(data=[
        {"id": 1, "email": "a@example.com", "profiles": [{"display_name": "Ada", "image": "a.png"}]},
        {"id": 3, "email": "c@example.com", "profiles": []},
    ])
    users = asyncio.run(SupabaseUserStore(client).get_user_summaries([3, 2, 1, 3]))
    assert [u.id for u in users] == [3, 1]
    assert users[1].image == "a.png"
    assert call_args(client.queries[0], "in_") == [("id", [3, 2, 1])]


def test_user_attributes_missing_user():
    store = SupabaseUserStore(FakeSupabase(data=[]))
    assert asyncio.run(store.get_user_attributes(99)) is None


def test_user_attributes_null_flags():
    store = SupabaseUserStore(FakeSupabase(data=[{"id": 4, "is_premium": None, "is_admin": True}]))
    attrs = asyncio.run(store.get_user_attributes(4))
    assert attrs.user_id == 4
    assert attrs.is_premium is False
    assert attrs.is_admin is True


# === Supabase app settings ===

def test_app_setting_read_and_write():
    client = FakeSupabase(data=[{"key": "BLOG_FEATURE", "value": "false"}])
    store = SupabaseAppSettingsStore(client)

    async def run():
        assert await store.get_setting("BLOG_FEATURE") == "false"
        await store.set_setting("BLOG_FEATURE", "true", updated_by=7)

    asyncio.run(run())

    (payload,), kwargs = [(a, k) for (n, a, k) in client.queries[1].calls if n == "upsert"][0]
    assert payload["value"] == "true"
    assert payload["updated_by"] == 7
    assert kwargs["on_conflict"] == "key"
