"""
Supabase Client - Singleton connection to Supabase
"""
import logging
from supabase import create_client, Client
from coursehub.core.config import settings

logger = logging.getLogger(__name__)


class SupabaseClient:
    """Singleton Supabase client for database operations."""

    _instance: Client = None

    @classmethod
    def get_client(cls) -> Client:
        """Get or create Supabase client instance."""
        if cls._instance is None:
            if not settings.supabase_url:
                raise RuntimeError(
                    "Supabase not configured. Set SUPABASE_URL and SUPABASE_SERVICE_KEY in .env"
                )
            # Flag tables are written by admins only; the service key bypasses RLS
            cls._instance = create_client(
                settings.supabase_url,
                settings.get_supabase_key()
            )
            logger.info("Supabase client initialized")
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        cls._instance = None


def _get_supabase_client() -> Client:
    """Lazy-initialize and return the Supabase client singleton."""
    return SupabaseClient.get_client()


# Lazy proxy - avoids crash at import time if env vars are missing
class _LazySupabaseClient:
    """Proxy that defers Supabase initialization until first attribute access."""

    def __getattr__(self, name):
        client = _get_supabase_client()
        return getattr(client, name)

supabase_client = _LazySupabaseClient()
