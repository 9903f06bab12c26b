"""
Site inventory counts used to enforce site and page limits.
"""
from ..core.validation import ensure_site_id, ensure_user_id
from .record_store import RecordStore

SITES_TABLE = "user_sites"
PAGES_TABLE = "user_pages"


class SiteService:
    """Counts the sites and pages a user owns."""

    def __init__(self, store: RecordStore):
        self.store = store

    async def count_sites(self, user_id: str) -> int:
        user_id = ensure_user_id(user_id)
        return self.store.count(SITES_TABLE, eq={"user_id": user_id})

    async def count_pages(self, user_id: str, site_id: str) -> int:
        user_id = ensure_user_id(user_id)
        site_id = ensure_site_id(site_id)
        return self.store.count(PAGES_TABLE, eq={"user_id": user_id, "site_id": site_id})
