"""Tests for the subscription HTTP endpoints."""

import uuid
from datetime import timedelta

import pytest
from sqlalchemy import select

from app.models.subscription_analytics import SubscriptionAnalytics
from app.services.plan_store import get_clinic

BASE = "/api/v1/subscriptions"


@pytest.mark.asyncio
async def test_health(client):
    resp = await client.get("/health")
    assert resp.status_code == 200
    assert resp.json()["status"] == "ok"


def test_app_registers_every_table():
    from app.core.database import Base

    assert {
        "clinics",
        "users",
        "trial_history",
        "subscription_analytics",
        "subscription_plan_prices",
    } <= set(Base.metadata.tables)


# ============================================================================
# tenant routes
# ============================================================================

@pytest.mark.asyncio
async def test_get_my_subscription(client, make_clinic, make_user):
    clinic_id = await make_clinic(name="Bem Estar", total_patients=12)
    _, headers = await make_user("admin@bemestar.com", role="admin", clinic_id=clinic_id)

    resp = await client.get(f"{BASE}/me", headers=headers)

    assert resp.status_code == 200
    data = resp.json()
    assert data["clinic_id"] == str(clinic_id)
    assert data["clinic_name"] == "Bem Estar"
    assert data["subscription_plan"] == "scheduling"
    assert data["effective_plan"] == "scheduling"
    assert data["trial_pro_enabled"] is False
    assert data["trial_days_remaining"] is None
    assert data["total_patients"] == 12


@pytest.mark.asyncio
async def test_feature_gate_blocks_and_records_event(client, db, make_clinic, make_user):
    clinic_id = await make_clinic()
    _, headers = await make_user("admin@clinic.com", role="admin", clinic_id=clinic_id)

    resp = await client.get(f"{BASE}/me/features/financial-reports", headers=headers)

    assert resp.status_code == 403
    detail = resp.json()["detail"]
    assert detail["requires_pro"] is True
    assert detail["current_plan"] == "scheduling"
    assert detail["feature"] == "financial-reports"

    result = await db.execute(
        select(SubscriptionAnalytics).where(SubscriptionAnalytics.clinic_id == clinic_id)
    )
    events = result.scalars().all()
    assert len(events) == 1
    assert events[0].event_type == "feature_blocked"
    assert events[0].event_data["feature"] == "financial-reports"
    assert events[0].event_data["path"] == f"{BASE}/me/features/financial-reports"


@pytest.mark.asyncio
async def test_feature_gate_allows_running_trial_until_expiry(client, clock, operator, make_clinic, make_user):
    _, ops_headers = operator
    clinic_id = await make_clinic()
    _, headers = await make_user("admin@clinic.com", role="admin", clinic_id=clinic_id)

    resp = await client.post(
        f"{BASE}/clinics/{clinic_id}/trial/activate",
        json={"duration_days": 3},
        headers=ops_headers,
    )
    assert resp.status_code == 200

    resp = await client.get(f"{BASE}/me/features/reports", headers=headers)
    assert resp.status_code == 200
    data = resp.json()
    assert data["allowed"] is True
    assert data["effective_plan"] == "pro"
    assert data["is_trial_active"] is True

    # Lapsed but not yet swept: no longer entitled
    clock.advance(days=3)
    resp = await client.get(f"{BASE}/me/features/reports", headers=headers)
    assert resp.status_code == 403


@pytest.mark.asyncio
async def test_feature_gate_allows_paid_pro(client, make_clinic, make_user):
    clinic_id = await make_clinic(plan="pro")
    _, headers = await make_user("admin@clinic.com", role="admin", clinic_id=clinic_id)

    resp = await client.get(f"{BASE}/me/features/reports", headers=headers)

    assert resp.status_code == 200
    assert resp.json()["is_trial_active"] is False


@pytest.mark.asyncio
async def test_plan_prices_for_any_authenticated_user(client, plan_prices, make_clinic, make_user):
    clinic_id = await make_clinic()
    _, headers = await make_user("staff@clinic.com", clinic_id=clinic_id)

    resp = await client.get(f"{BASE}/plans/prices", headers=headers)

    assert resp.status_code == 200
    assert [p["plan_name"] for p in resp.json()] == ["pro", "scheduling"]


# ============================================================================
# operator routes
# ============================================================================

@pytest.mark.asyncio
async def test_list_all_subscriptions(client, operator, make_clinic):
    _, headers = operator
    await make_clinic(name="Beta")
    await make_clinic(name="Alfa")

    resp = await client.get(f"{BASE}/", headers=headers)

    assert resp.status_code == 200
    assert [s["clinic_name"] for s in resp.json()] == ["Alfa", "Beta"]


@pytest.mark.asyncio
async def test_get_unknown_clinic_returns_404(client, operator):
    _, headers = operator
    resp = await client.get(f"{BASE}/clinics/{uuid.uuid4()}", headers=headers)
    assert resp.status_code == 404
    assert resp.json()["error"] == "ClinicNotFoundError"


@pytest.mark.asyncio
async def test_activate_trial_endpoint(client, clock, db, operator, make_clinic):
    operator_id, headers = operator
    clinic_id = await make_clinic()

    resp = await client.post(
        f"{BASE}/clinics/{clinic_id}/trial/activate",
        json={"duration_days": 7},
        headers=headers,
    )

    assert resp.status_code == 200
    assert resp.json()["expires_at"].startswith((clock() + timedelta(days=7)).isoformat()[:19])

    history = (await client.get(f"{BASE}/clinics/{clinic_id}/trials", headers=headers)).json()
    assert len(history) == 1
    assert history[0]["status"] == "active"
    assert history[0]["activated_by"] == str(operator_id)
    assert history[0]["activated_by_name"] == "Ops Person"


@pytest.mark.asyncio
async def test_activate_trial_defaults_to_seven_days(client, clock, operator, make_clinic):
    _, headers = operator
    clinic_id = await make_clinic()

    resp = await client.post(f"{BASE}/clinics/{clinic_id}/trial/activate", json={}, headers=headers)

    assert resp.status_code == 200
    sub = (await client.get(f"{BASE}/clinics/{clinic_id}", headers=headers)).json()
    assert sub["trial_days_remaining"] == 7


@pytest.mark.asyncio
@pytest.mark.parametrize("duration", [0, 31])
async def test_activate_trial_bad_duration_returns_400(client, operator, make_clinic, duration):
    _, headers = operator
    clinic_id = await make_clinic()

    resp = await client.post(
        f"{BASE}/clinics/{clinic_id}/trial/activate",
        json={"duration_days": duration},
        headers=headers,
    )

    assert resp.status_code == 400
    assert resp.json()["error"] == "InvalidDurationError"


@pytest.mark.asyncio
async def test_activate_trial_twice_returns_400(client, operator, make_clinic):
    _, headers = operator
    clinic_id = await make_clinic()
    url = f"{BASE}/clinics/{clinic_id}/trial/activate"

    assert (await client.post(url, json={"duration_days": 7}, headers=headers)).status_code == 200
    resp = await client.post(url, json={"duration_days": 7}, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["error"] == "TrialAlreadyActiveError"


@pytest.mark.asyncio
async def test_activate_trial_unknown_clinic_returns_404(client, operator):
    _, headers = operator
    resp = await client.post(
        f"{BASE}/clinics/{uuid.uuid4()}/trial/activate",
        json={"duration_days": 7},
        headers=headers,
    )
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_convert_trial_endpoint(client, db, operator, make_clinic):
    _, headers = operator
    clinic_id = await make_clinic()
    await client.post(f"{BASE}/clinics/{clinic_id}/trial/activate", json={"duration_days": 7}, headers=headers)

    resp = await client.post(f"{BASE}/clinics/{clinic_id}/trial/convert", headers=headers)
    assert resp.status_code == 200

    clinic = await get_clinic(db, clinic_id)
    assert clinic.subscription_plan == "pro"
    assert clinic.trial_pro_enabled is False

    resp = await client.post(f"{BASE}/clinics/{clinic_id}/trial/convert", headers=headers)
    assert resp.status_code == 400
    assert resp.json()["error"] == "NoActiveTrialError"


@pytest.mark.asyncio
async def test_cancel_trial_endpoint(client, clock, operator, make_clinic):
    _, headers = operator
    clinic_id = await make_clinic()
    await client.post(f"{BASE}/clinics/{clinic_id}/trial/activate", json={"duration_days": 3}, headers=headers)
    clock.advance(days=1)

    resp = await client.post(f"{BASE}/clinics/{clinic_id}/trial/cancel", headers=headers)

    assert resp.status_code == 200
    sub = resp.json()["subscription"]
    assert sub["effective_plan"] == "scheduling"
    assert sub["trial_pro_enabled"] is False
    assert sub["trial_pro_expires_at"] is None

    events = (await client.get(f"{BASE}/clinics/{clinic_id}/analytics", headers=headers)).json()
    assert [e["event_type"] for e in events] == ["trial_cancelled", "trial_activated"]

    blocked = (await client.get(f"{BASE}/clinics/{clinic_id}/blocked-features", headers=headers)).json()
    assert blocked == []


@pytest.mark.asyncio
async def test_cancel_without_trial_returns_404(client, operator, make_clinic):
    _, headers = operator
    clinic_id = await make_clinic()
    resp = await client.post(f"{BASE}/clinics/{clinic_id}/trial/cancel", headers=headers)
    assert resp.status_code == 404
    assert resp.json()["error"] == "NoTrialToCancelError"


@pytest.mark.asyncio
async def test_update_plan_endpoint(client, operator, make_clinic):
    _, headers = operator
    clinic_id = await make_clinic()

    resp = await client.put(f"{BASE}/clinics/{clinic_id}/plan", json={"plan_name": "pro"}, headers=headers)

    assert resp.status_code == 200
    assert resp.json()["subscription"]["subscription_plan"] == "pro"
    assert resp.json()["subscription"]["effective_plan"] == "pro"


@pytest.mark.asyncio
async def test_update_plan_invalid_returns_400(client, operator, make_clinic):
    _, headers = operator
    clinic_id = await make_clinic()

    resp = await client.put(f"{BASE}/clinics/{clinic_id}/plan", json={"plan_name": "gold"}, headers=headers)

    assert resp.status_code == 400
    assert resp.json()["details"]["allowed"] == ["pro", "scheduling"]


@pytest.mark.asyncio
async def test_update_plan_unknown_clinic_returns_404(client, operator):
    _, headers = operator
    resp = await client.put(f"{BASE}/clinics/{uuid.uuid4()}/plan", json={"plan_name": "pro"}, headers=headers)
    assert resp.status_code == 404


@pytest.mark.asyncio
async def test_stats_endpoint(client, operator, make_clinic):
    _, headers = operator
    await make_clinic(plan="pro", total_patients=3, monthly_revenue="105.00")

    resp = await client.get(f"{BASE}/stats", headers=headers)

    assert resp.status_code == 200
    rows = {row["plan"]: row for row in resp.json()}
    assert rows["pro"]["total_clinics"] == 1
    assert rows["trial"]["total_clinics"] == 0


@pytest.mark.asyncio
async def test_expiring_trials_endpoint(client, clock, operator, make_clinic):
    _, headers = operator
    await make_clinic(name="Logo", trial_expires_at=clock() + timedelta(days=2))
    await make_clinic(name="Depois", trial_expires_at=clock() + timedelta(days=20))

    resp = await client.get(f"{BASE}/trials/expiring", headers=headers)
    assert resp.status_code == 200
    assert [t["clinic_name"] for t in resp.json()] == ["Logo"]

    resp = await client.get(f"{BASE}/trials/expiring", params={"days_ahead": 30}, headers=headers)
    assert len(resp.json()) == 2

    resp = await client.get(f"{BASE}/trials/expiring", params={"days_ahead": -1}, headers=headers)
    assert resp.status_code == 422


@pytest.mark.asyncio
async def test_manual_sweep_endpoint(client, clock, db, operator, make_clinic):
    _, headers = operator
    clinic_id = await make_clinic()
    await client.post(f"{BASE}/clinics/{clinic_id}/trial/activate", json={"duration_days": 7}, headers=headers)
    clock.advance(days=8)

    resp = await client.post(f"{BASE}/trials/expire", headers=headers)
    assert resp.status_code == 200
    assert resp.json() == {"expired_count": 1}

    clinic = await get_clinic(db, clinic_id)
    assert clinic.trial_pro_enabled is False

    history = (await client.get(f"{BASE}/clinics/{clinic_id}/trials", headers=headers)).json()
    assert history[0]["status"] == "expired"

    resp = await client.post(f"{BASE}/trials/expire", headers=headers)
    assert resp.json() == {"expired_count": 0}


@pytest.mark.asyncio
async def test_blocked_features_endpoint(client, operator, make_clinic, make_user):
    _, ops_headers = operator
    clinic_id = await make_clinic(name="Upsell")
    _, headers = await make_user("admin@upsell.com", role="admin", clinic_id=clinic_id)
    await client.get(f"{BASE}/me/features/telemedicine", headers=headers)

    resp = await client.get(f"{BASE}/analytics/blocked-features", headers=ops_headers)

    assert resp.status_code == 200
    events = resp.json()
    assert len(events) == 1
    assert events[0]["clinic_name"] == "Upsell"
    assert events[0]["event_data"]["feature"] == "telemedicine"

    resp = await client.get(
        f"{BASE}/analytics/blocked-features",
        params={"clinic_id": str(uuid.uuid4())},
        headers=ops_headers,
    )
    assert resp.json() == []
