"""
Tests for subscription state: effective subscription, plan changes,
cancellation and reactivation.
"""
import pytest
from datetime import timedelta

from auditgate.core.errors import InvalidInput, NoActiveSubscription, NoCancelledSubscription
from auditgate.schemas.subscription import BillingRefs, SubscriptionStatus

from conftest import T0


@pytest.mark.asyncio
async def test_user_without_rows_gets_virtual_free(services, store, user_id):
    subscription = await services.subscriptions.get_effective(user_id)

    assert subscription.plan_id == "free"
    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.persisted is False
    assert subscription.id is None
    # Reading never creates rows
    assert store.subscriptions_for(user_id) == []


@pytest.mark.asyncio
async def test_most_recently_created_row_wins(services, store, user_id):
    # Older row was touched last; creation order still decides
    store.add_subscription(user_id, "pro", created_at=T0, updated_at=T0 + timedelta(days=5))
    store.add_subscription(user_id, "basic", created_at=T0 + timedelta(days=1))

    subscription = await services.subscriptions.get_effective(user_id)

    assert subscription.plan_id == "basic"


@pytest.mark.asyncio
async def test_set_plan_creates_then_updates_in_place(services, store, clock, user_id):
    created = await services.subscriptions.set_plan(user_id, "basic")
    assert created.plan_id == "basic"
    assert created.current_period_end == clock() + timedelta(days=30)

    clock.advance(3600)
    updated = await services.subscriptions.set_plan(user_id, "pro")

    assert updated.id == created.id
    assert updated.plan_id == "pro"
    assert len(store.subscriptions_for(user_id)) == 1


@pytest.mark.asyncio
async def test_set_plan_is_idempotent(services, store, user_id):
    first = await services.subscriptions.set_plan(user_id, "basic")
    second = await services.subscriptions.set_plan(user_id, "basic")

    assert first.id == second.id
    assert second.plan_id == "basic"
    assert len(store.subscriptions_for(user_id)) == 1


@pytest.mark.asyncio
async def test_set_plan_free_always_succeeds(services, store, user_id):
    store.add_subscription(user_id, "pro", status="cancelled", period_end=T0 + timedelta(days=10))

    subscription = await services.subscriptions.set_plan(user_id, "free")

    assert subscription.plan_id == "free"
    assert subscription.status == SubscriptionStatus.ACTIVE
    assert subscription.current_period_end is None


@pytest.mark.asyncio
async def test_set_plan_keeps_billing_refs_unless_supplied(services, user_id):
    await services.subscriptions.set_plan(
        user_id, "pro", BillingRefs(stripe_customer_id="cus_123", stripe_subscription_id="sub_123")
    )

    subscription = await services.subscriptions.set_plan(user_id, "basic")

    assert subscription.stripe_customer_id == "cus_123"
    assert subscription.stripe_subscription_id == "sub_123"


@pytest.mark.asyncio
async def test_set_plan_uses_supplied_period_end(services, user_id):
    period_end = T0 + timedelta(days=7)

    subscription = await services.subscriptions.set_plan(
        user_id, "pro", BillingRefs(current_period_end=period_end)
    )

    assert subscription.current_period_end == period_end


@pytest.mark.asyncio
async def test_set_plan_unknown_plan_rejected(services, store, user_id):
    with pytest.raises(InvalidInput):
        await services.subscriptions.set_plan(user_id, "enterprise")
    assert store.subscriptions_for(user_id) == []


@pytest.mark.asyncio
async def test_cancel_preserves_plan_and_period_end(services, store, user_id):
    period_end = T0 + timedelta(days=20)
    store.add_subscription(user_id, "pro", period_end=period_end)

    cancelled = await services.subscriptions.cancel(user_id)

    assert cancelled.status == SubscriptionStatus.CANCELLED
    assert cancelled.plan_id == "pro"
    assert cancelled.current_period_end == period_end


@pytest.mark.asyncio
async def test_cancel_without_subscription_fails(services, user_id):
    with pytest.raises(NoActiveSubscription):
        await services.subscriptions.cancel(user_id)


@pytest.mark.asyncio
async def test_cancel_twice_fails(services, store, user_id):
    store.add_subscription(user_id, "basic", period_end=T0 + timedelta(days=3))
    await services.subscriptions.cancel(user_id)

    with pytest.raises(NoActiveSubscription):
        await services.subscriptions.cancel(user_id)


@pytest.mark.asyncio
async def test_end_period_only_brings_period_end_forward(services, store, user_id):
    store.add_subscription(user_id, "pro", status="cancelled", period_end=T0 + timedelta(days=25))

    later = await services.subscriptions.end_period(user_id, T0 + timedelta(days=30))
    assert later is None

    ended = await services.subscriptions.end_period(user_id, T0)
    assert ended.current_period_end == T0
    assert ended.plan_id == "pro"
    assert ended.status == SubscriptionStatus.CANCELLED


@pytest.mark.asyncio
async def test_end_period_leaves_active_subscription_alone(services, store, user_id):
    store.add_subscription(user_id, "basic", period_end=T0 + timedelta(days=25))

    assert await services.subscriptions.end_period(user_id, T0) is None
    assert store.subscriptions_for(user_id)[0]["status"] == "active"


@pytest.mark.asyncio
async def test_reactivate_active_subscription_fails(services, store, user_id):
    store.add_subscription(user_id, "basic")

    with pytest.raises(NoCancelledSubscription):
        await services.subscriptions.reactivate(user_id)


@pytest.mark.asyncio
async def test_reactivate_without_rows_fails(services, user_id):
    with pytest.raises(NoCancelledSubscription):
        await services.subscriptions.reactivate(user_id)


@pytest.mark.asyncio
async def test_reactivate_keeps_plan_and_period_end(services, store, user_id):
    period_end = T0 + timedelta(days=12)
    store.add_subscription(user_id, "pro", status="cancelled", period_end=period_end)

    reactivated = await services.subscriptions.reactivate(user_id)

    assert reactivated.status == SubscriptionStatus.ACTIVE
    assert reactivated.plan_id == "pro"
    assert reactivated.current_period_end == period_end


@pytest.mark.asyncio
async def test_list_users_not_on_plan_is_distinct(services, store, user_id):
    store.add_subscription(user_id, "pro", created_at=T0)
    store.add_subscription(user_id, "basic", created_at=T0 + timedelta(days=1))
    store.add_subscription("0d8a3b7e-51f4-4d7c-8e0b-2c8c0c4f9e21", "free")

    assert await services.subscriptions.list_users_not_on_plan("free") == [user_id]
