"""
Shared fixtures: an in-memory record store, a controllable clock and a
FastAPI app wired around them.
"""
import copy
import uuid
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional

import pytest
from fastapi.testclient import TestClient
from jose import jwt

from auditgate.core.config import Settings
from auditgate.core.container import build_services
from auditgate.core.errors import StoreUnavailable
from auditgate.core.plans import PlanCatalog
from auditgate.core.validation import to_timestamp
from auditgate.main import create_application


JWT_SECRET = "test-jwt-secret-with-enough-length-0123456789"
ADMIN_TOKEN = "admin-secret"
WEBHOOK_SECRET = "whsec_test"
T0 = datetime(2026, 1, 1, 12, 0, 0, tzinfo=timezone.utc)
SITE_A = "3f2b8c1d-6a4e-4f7b-9c2d-1e5a7b9c0d11"
SITE_B = "8a1c2e3f-4b5d-4e6f-8a7b-9c0d1e2f3a44"


class InMemoryRecordStore:
    """
    RecordStore fake with PostgREST filter semantics.

    NULL never satisfies a range or inequality filter. Set ``fail`` to make
    every call raise StoreUnavailable.
    """

    def __init__(self):
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.fail = False
        self.calls: List[str] = []

    def _check(self, operation: str):
        self.calls.append(operation)
        if self.fail:
            raise StoreUnavailable(f"simulated outage during {operation}")

    def _rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    @staticmethod
    def _matches(row, eq=None, neq=None, gte=None, lt=None) -> bool:
        for column, value in (eq or {}).items():
            if row.get(column) != value:
                return False
        for column, value in (neq or {}).items():
            if row.get(column) is None or row.get(column) == value:
                return False
        for column, value in (gte or {}).items():
            if row.get(column) is None or row[column] < value:
                return False
        for column, value in (lt or {}).items():
            if row.get(column) is None or not row[column] < value:
                return False
        return True

    def insert(self, table: str, row: Dict[str, Any]) -> Dict[str, Any]:
        self._check("insert")
        stored = dict(row)
        stored.setdefault("id", str(uuid.uuid4()))
        stored.setdefault("created_at", to_timestamp(datetime.now(timezone.utc)))
        self._rows(table).append(stored)
        return copy.deepcopy(stored)

    def select(self, table, *, columns="*", eq=None, neq=None, gte=None, lt=None,
               order_by=None, desc=False, limit=None):
        self._check("select")
        rows = [r for r in self._rows(table) if self._matches(r, eq=eq, neq=neq, gte=gte, lt=lt)]
        if order_by:
            rows = sorted(rows, key=lambda r: r.get(order_by) or "", reverse=desc)
        if limit is not None:
            rows = rows[:limit]
        return copy.deepcopy(rows)

    def count(self, table, *, eq=None, gte=None) -> int:
        self._check("count")
        return len([r for r in self._rows(table) if self._matches(r, eq=eq, gte=gte)])

    def update(self, table, values, *, eq=None, lt=None):
        self._check("update")
        updated = []
        for row in self._rows(table):
            if self._matches(row, eq=eq, lt=lt):
                row.update(values)
                updated.append(copy.deepcopy(row))
        return updated

    # Test helpers

    def add_subscription(self, user_id: str, plan_id: str, status: str = "active",
                         created_at: datetime = T0, period_end: Optional[datetime] = None,
                         updated_at: Optional[datetime] = None) -> Dict[str, Any]:
        row = {
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "plan_id": plan_id,
            "status": status,
            "stripe_customer_id": None,
            "stripe_subscription_id": None,
            "current_period_start": to_timestamp(created_at),
            "current_period_end": to_timestamp(period_end) if period_end else None,
            "created_at": to_timestamp(created_at),
            "updated_at": to_timestamp(updated_at or created_at),
        }
        self._rows("user_subscriptions").append(row)
        return row

    def add_audit(self, user_id: str, at: datetime, url: Optional[str] = None):
        self._rows("audits").append({
            "id": str(uuid.uuid4()),
            "user_id": user_id,
            "url": url,
            "created_at": to_timestamp(at),
        })

    def subscriptions_for(self, user_id: str) -> List[Dict[str, Any]]:
        return [r for r in self._rows("user_subscriptions") if r["user_id"] == user_id]


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime = T0):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> datetime:
        self.now = self.now + timedelta(seconds=seconds)
        return self.now

    def set(self, now: datetime) -> datetime:
        self.now = now
        return now


def make_token(user_id: str, email: str = "user@example.com", secret: str = JWT_SECRET,
               expires_in: int = 3600, audience: str = "authenticated") -> str:
    now = datetime.now(timezone.utc)
    return jwt.encode(
        {
            "sub": user_id,
            "email": email,
            "role": "authenticated",
            "aud": audience,
            "iat": int(now.timestamp()),
            "exp": int((now + timedelta(seconds=expires_in)).timestamp()),
        },
        secret,
        algorithm="HS256",
    )


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def store():
    return InMemoryRecordStore()


@pytest.fixture
def catalog():
    return PlanCatalog()


@pytest.fixture
def services(store, catalog, clock):
    return build_services(store, catalog, clock=clock)


@pytest.fixture
def user_id():
    return str(uuid.uuid4())


@pytest.fixture
def settings():
    return Settings(
        supabase_url="https://example.supabase.co",
        supabase_service_role_key="service-role-key",
        supabase_jwt_secret=JWT_SECRET,
        admin_api_key=ADMIN_TOKEN,
        stripe_webhook_secret=WEBHOOK_SECRET,
    )


@pytest.fixture
def app(settings, services):
    return create_application(settings=settings, services=services)


@pytest.fixture
def client(app):
    return TestClient(app)


@pytest.fixture
def auth_headers(user_id):
    return {"Authorization": f"Bearer {make_token(user_id)}"}


@pytest.fixture
def admin_headers():
    return {"X-Admin-Token": ADMIN_TOKEN}
