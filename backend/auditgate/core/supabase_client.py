"""
Supabase client configuration and initialization.
"""
from typing import Optional

from supabase import Client, ClientOptions, create_client

from .config import Settings


class SupabaseClient:
    """Supabase client wrapper for database operations."""

    def __init__(self, settings: Settings):
        self._settings = settings
        self._service_client: Optional[Client] = None

    @property
    def service_client(self) -> Client:
        """Get the service role client (with elevated permissions)."""
        if not self._service_client:
            self._service_client = create_client(
                self._settings.supabase_url,
                self._settings.supabase_service_role_key,
                options=ClientOptions(
                    postgrest_client_timeout=self._settings.store_timeout_seconds,
                    auto_refresh_token=False,
                    persist_session=False,
                ),
            )
        return self._service_client
