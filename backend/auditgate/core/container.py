"""
Explicitly constructed service graph.

The FastAPI app holds one Services instance on ``app.state.services``;
routes receive it through the ``get_services`` dependency. Nothing here is a
module-level singleton, so tests build their own graph around any
RecordStore.
"""
from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Callable, Optional

from .config import Settings
from .plans import PlanCatalog
from .supabase_client import SupabaseClient
from .validation import utcnow
from ..services.admin_service import AdminService
from ..services.billing_service import BillingService
from ..services.entitlement_service import EntitlementService
from ..services.lifecycle_reconciler import LifecycleReconciler
from ..services.record_store import RecordStore, SupabaseRecordStore
from ..services.site_service import SiteService
from ..services.subscription_service import SubscriptionService
from ..services.usage_ledger import UsageLedger


@dataclass
class Services:
    """Collaborators shared by the API routes."""
    catalog: PlanCatalog
    store: RecordStore
    subscriptions: SubscriptionService
    ledger: UsageLedger
    sites: SiteService
    entitlements: EntitlementService
    reconciler: LifecycleReconciler
    billing: BillingService
    admin: AdminService


def build_services(
    store: RecordStore,
    catalog: Optional[PlanCatalog] = None,
    clock: Callable[[], datetime] = utcnow,
    billing_period: timedelta = timedelta(days=30),
) -> Services:
    """Wire the services around one record store."""
    catalog = catalog or PlanCatalog()
    subscriptions = SubscriptionService(store, catalog, clock=clock, billing_period=billing_period)
    ledger = UsageLedger(store)
    sites = SiteService(store)
    return Services(
        catalog=catalog,
        store=store,
        subscriptions=subscriptions,
        ledger=ledger,
        sites=sites,
        entitlements=EntitlementService(subscriptions, ledger, sites, catalog, clock=clock),
        reconciler=LifecycleReconciler(subscriptions, clock=clock),
        billing=BillingService(subscriptions),
        admin=AdminService(subscriptions),
    )


def build_supabase_services(settings: Settings) -> Services:
    """Production wiring: Supabase service-role client behind the record store."""
    client = SupabaseClient(settings)
    return build_services(
        SupabaseRecordStore(client.service_client),
        billing_period=timedelta(days=settings.billing_period_days),
    )
