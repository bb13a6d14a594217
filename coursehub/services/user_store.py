"""
User Store - read-only access to users and their profiles
Used for flag evaluation (premium/admin status) and admin targeting screens.
"""
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Iterable, List, Optional

from coursehub.core.repository import SupabaseRepository, escape_like
from coursehub.models.feature_flag import UserAttributes, UserSummary

logger = logging.getLogger(__name__)

SEARCH_LIMIT = 20
SUMMARY_COLUMNS = "id,email,is_premium,is_admin,profiles(display_name,image)"


class UserStore(ABC):

    @abstractmethod
    async def get_user_attributes(self, user_id: int) -> Optional[UserAttributes]:
        pass

    @abstractmethod
    async def get_user_summaries(self, user_ids: Iterable[int]) -> List[UserSummary]:
        """Users with profile data, in the order of user_ids. Unknown ids are skipped."""
        pass

    @abstractmethod
    async def search_users(self, query: str) -> List[UserSummary]:
        """Case-insensitive email substring search, at most SEARCH_LIMIT results."""
        pass

    @abstractmethod
    async def get_users_by_emails(self, emails: Iterable[str]) -> List[UserSummary]:
        pass

    async def get_users_by_ids(self, user_ids: Iterable[int]) -> List[UserSummary]:
        return await self.get_user_summaries(user_ids)


def _flatten_profile(row: Dict[str, Any]) -> Dict[str, Any]:
    """Merge an embedded `profiles` object (or single-item list) into the user row."""
    row = dict(row)
    profile = row.pop("profiles", None)
    if isinstance(profile, list):
        profile = profile[0] if profile else None
    if profile:
        row["display_name"] = profile.get("display_name")
        row["image"] = profile.get("image")
    return row


class SupabaseUserStore(SupabaseRepository, UserStore):
    table_name = "users"

    async def get_user_attributes(self, user_id: int) -> Optional[UserAttributes]:
        rows = await self.run(
            self.table().select("id,is_premium,is_admin").eq("id", user_id).limit(1),
            "get_user_attributes",
        )
        if not rows:
            return None
        row = rows[0]
        return self.decode(UserAttributes, {
            "user_id": row.get("id"),
            "is_premium": row.get("is_premium"),
            "is_admin": row.get("is_admin"),
        })

    async def get_user_summaries(self, user_ids: Iterable[int]) -> List[UserSummary]:
        ids = list(dict.fromkeys(int(u) for u in user_ids))
        if not ids:
            return []
        rows = await self.run(
            self.table().select(SUMMARY_COLUMNS).in_("id", ids),
            "get_user_summaries",
        )
        by_id = {}
        for row in rows:
            summary = self.decode(UserSummary, _flatten_profile(row))
            by_id[summary.id] = summary
        return [by_id[u] for u in ids if u in by_id]

    async def search_users(self, query: str) -> List[UserSummary]:
        pattern = f"%{escape_like(query)}%"
        rows = await self.run(
            self.table().select(SUMMARY_COLUMNS).ilike("email", pattern).limit(SEARCH_LIMIT),
            "search_users",
        )
        users = [self.decode(UserSummary, _flatten_profile(row)) for row in rows]
        return [u for u in users if u.email is not None]

    async def get_users_by_emails(self, emails: Iterable[str]) -> List[UserSummary]:
        emails = list(dict.fromkeys(emails))
        if not emails:
            return []
        rows = await self.run(
            self.table().select(SUMMARY_COLUMNS).in_("email", emails),
            "get_users_by_emails",
        )
        return [self.decode(UserSummary, _flatten_profile(row)) for row in rows]


class InMemoryUserStore(UserStore):
    """Dictionary-backed store for tests and local development."""

    def __init__(self, users: Optional[Iterable[UserSummary]] = None):
        self._users: Dict[int, UserSummary] = {}
        for user in users or []:
            self.add(user)

    def add(self, user: UserSummary) -> UserSummary:
        self._users[user.id] = user
        return user

    def remove(self, user_id: int) -> None:
        self._users.pop(user_id, None)

    async def get_user_attributes(self, user_id: int) -> Optional[UserAttributes]:
        user = self._users.get(user_id)
        if user is None:
            return None
        return UserAttributes(user_id=user.id, is_premium=user.is_premium, is_admin=user.is_admin)

    async def get_user_summaries(self, user_ids: Iterable[int]) -> List[UserSummary]:
        ids = dict.fromkeys(int(u) for u in user_ids)
        return [self._users[u] for u in ids if u in self._users]

    async def search_users(self, query: str) -> List[UserSummary]:
        needle = query.lower()
        matches = [u for u in self._users.values() if u.email and needle in u.email.lower()]
        return sorted(matches, key=lambda u: u.id)[:SEARCH_LIMIT]

    async def get_users_by_emails(self, emails: Iterable[str]) -> List[UserSummary]:
        wanted = set(emails)
        return [u for u in self._users.values() if u.email in wanted]
