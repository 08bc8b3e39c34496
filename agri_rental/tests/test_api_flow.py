"""HTTP surface: auth, order and lease flow, error rendering"""
import pytest

from agri_rental.core.enums import DeviceStatus, UserRole
from agri_rental.core.security import hash_password
from conftest import CATEGORY, LOCATION


@pytest.fixture
async def device(make_device):
    return await make_device()


@pytest.mark.integration
class TestAuthEndpoints:

    async def test_register_login_and_me(self, client):
        response = await client.post("/auth/register", json={
            "phone": "9876543210",
            "password": "secret123",
            "name": "Asha",
        })
        assert response.status_code == 200
        assert response.json()["token_type"] == "bearer"

        response = await client.post("/auth/login", data={"username": "9876543210", "password": "secret123"})
        assert response.status_code == 200
        token = response.json()["access_token"]

        response = await client.get("/auth/me", headers={"Authorization": f"Bearer {token}"})
        assert response.status_code == 200
        assert response.json()["role"] == "FARMER"

    async def test_duplicate_phone(self, client, make_user):
        await make_user(phone="9000000001")
        response = await client.post("/auth/register", json={"phone": "9000000001", "password": "secret123"})
        assert response.status_code == 400

    async def test_wrong_password(self, client, make_user):
        await make_user(phone="9000000002", password_hash=hash_password("right-one"))
        response = await client.post("/auth/login", data={"username": "9000000002", "password": "wrong-one"})
        assert response.status_code == 400

    async def test_intermediary_needs_business_name(self, client):
        response = await client.post("/auth/register", json={
            "phone": "9000000003", "password": "secret123", "role": "INTERMEDIARY",
        })
        assert response.status_code == 422
        assert response.json()["error"]["code"] == "VALIDATION_FAILED"

    async def test_admin_cannot_self_register(self, client):
        response = await client.post("/auth/register", json={
            "phone": "9000000004", "password": "secret123", "role": UserRole.ADMIN.value,
        })
        assert response.status_code == 422

    async def test_missing_token(self, client):
        response = await client.get("/orders/mine")
        assert response.status_code == 401


@pytest.mark.integration
class TestOrderAndLeaseFlow:

    async def test_lease_flow_end_to_end(
        self, client, auth_headers, admin, intermediary_pair, device, threshold, default_rule, order_dates
    ):
        user, intermediary = intermediary_pair
        start, end = order_dates

        response = await client.post("/orders/", headers=auth_headers(user), json={
            "device_id": device.id,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "requested_hours": 120,
        })
        assert response.status_code == 201
        order = response.json()
        assert order["kind"] == "LEASE"
        assert order["handler"] == {"type": "ADMIN", "id": "admin"}
        assert set(order["allowed_next_states"]) == {"UNDER_REVIEW", "ACCEPTED", "REJECTED", "CANCELLED"}

        response = await client.patch(
            f"/orders/{order['id']}/status", headers=auth_headers(admin), json={"status": "ACCEPTED"},
        )
        assert response.status_code == 200
        assert response.json()["status"] == "ACCEPTED"

        response = await client.post("/leases/", headers=auth_headers(admin), json={
            "order_id": order["id"],
            "deposit_amount": 10000,
        })
        assert response.status_code == 201
        lease = response.json()
        assert lease["intermediary_id"] == intermediary.id
        assert lease["commitment"] == {"type": "HOURS", "value": 120.0}
        assert lease["estimated_price"] == 60000.0

        response = await client.get("/leases/mine", headers=auth_headers(user))
        assert [item["id"] for item in response.json()] == [lease["id"]]

        response = await client.get(f"/devices/{device.id}", headers=auth_headers(user))
        assert response.json()["current_lease_id"] == lease["id"]

    async def test_invalid_transition_renders_409(
        self, client, auth_headers, admin, farmer, device, threshold, order_dates
    ):
        start, end = order_dates
        response = await client.post("/orders/", headers=auth_headers(farmer), json={
            "device_id": device.id,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "requested_hours": 50,
        })
        order_id = response.json()["id"]

        response = await client.patch(
            f"/orders/{order_id}/status", headers=auth_headers(admin), json={"status": "CLOSED"},
        )
        assert response.status_code == 409
        error = response.json()["error"]
        assert error["code"] == "INVALID_TRANSITION"
        assert error["details"] == {"current": "INTEREST_RAISED", "requested": "CLOSED"}

    async def test_lease_from_unaccepted_order_renders_412(
        self, client, auth_headers, admin, farmer, device, threshold, order_dates
    ):
        start, end = order_dates
        response = await client.post("/orders/", headers=auth_headers(farmer), json={
            "device_id": device.id,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "requested_area": 20,
        })
        response = await client.post("/leases/", headers=auth_headers(admin), json={"order_id": response.json()["id"]})
        assert response.status_code == 412
        assert response.json()["error"]["code"] == "PRECONDITION_FAILED"

    async def test_cancel_by_stranger_is_forbidden(
        self, client, auth_headers, make_user, farmer, device, threshold, order_dates
    ):
        stranger = await make_user(name="Stranger")
        start, end = order_dates
        response = await client.post("/orders/", headers=auth_headers(farmer), json={
            "device_id": device.id,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "requested_hours": 50,
        })
        order_id = response.json()["id"]

        response = await client.post(f"/orders/{order_id}/cancel", headers=auth_headers(stranger), json={})
        assert response.status_code == 403

        response = await client.post(f"/orders/{order_id}/cancel", headers=auth_headers(farmer), json={"note": "oops"})
        assert response.status_code == 200
        assert response.json()["status"] == "CANCELLED"
        assert response.json()["allowed_next_states"] == []

    async def test_unknown_order_renders_404(self, client, auth_headers, farmer):
        response = await client.get("/orders/missing", headers=auth_headers(farmer))
        assert response.status_code == 404
        assert response.json()["error"]["code"] == "NOT_FOUND"

    async def test_negative_hours_rejected_by_schema(self, client, auth_headers, farmer, device, order_dates):
        start, end = order_dates
        response = await client.post("/orders/", headers=auth_headers(farmer), json={
            "device_id": device.id,
            "start_date": start.isoformat(),
            "end_date": end.isoformat(),
            "requested_hours": -3,
        })
        assert response.status_code == 422


@pytest.mark.integration
@pytest.mark.pricing
class TestPricingEndpoints:

    async def test_rule_conflict_renders_ids(self, client, auth_headers, admin):
        body = {
            "category_id": CATEGORY,
            "location_code": LOCATION,
            "rates": [{"metric": "PER_HOUR", "rate": 600}],
            "effective_from": "2024-06-15",
            "effective_to": "2024-06-25",
        }
        first = await client.post("/pricing/rules", headers=auth_headers(admin), json=body)
        assert first.status_code == 201
        assert first.json()["is_default"] is False

        body.update(effective_from="2024-06-10", effective_to="2024-06-20")
        response = await client.post("/pricing/rules", headers=auth_headers(admin), json=body)
        assert response.status_code == 409
        assert response.json()["error"]["details"]["conflicting_ids"] == [first.json()["id"]]

    async def test_active_rule_lookup(self, client, auth_headers, farmer, default_rule):
        response = await client.get(
            "/pricing/active",
            headers=auth_headers(farmer),
            params={"category_id": CATEGORY, "location_code": LOCATION, "on_date": "2024-07-01", "requested_hours": 2},
        )
        assert response.status_code == 200
        assert response.json()["rule"]["id"] == default_rule.id
        assert response.json()["estimated_price"] == 1000.0

    async def test_threshold_admin_only(self, client, auth_headers, admin, farmer):
        body = {"max_rental_hours": 8, "max_rental_area": 5}
        response = await client.put("/pricing/thresholds/SPRAYER", headers=auth_headers(farmer), json=body)
        assert response.status_code == 403

        response = await client.put("/pricing/thresholds/SPRAYER", headers=auth_headers(admin), json=body)
        assert response.status_code == 200
        response = await client.get("/pricing/thresholds/SPRAYER", headers=auth_headers(farmer))
        assert response.json()["max_rental_hours"] == 8

    async def test_take_live_without_default_rule(self, client, auth_headers, admin, make_device):
        device = await make_device(status=DeviceStatus.ONBOARDED)
        response = await client.post(
            f"/devices/{device.id}/finalize", headers=auth_headers(admin), json={"action": "TAKE_LIVE"},
        )
        assert response.status_code == 412


@pytest.mark.integration
class TestMonitoring:

    async def test_health_and_metrics(self, client):
        response = await client.get("/health")
        assert response.status_code == 200
        assert response.json()["dependencies"]["redis"] == "disconnected"

        response = await client.get("/metrics")
        assert response.status_code == 200
        assert "http_requests_total" in response.text

    async def test_readiness_without_redis(self, client):
        response = await client.get("/readiness")
        assert response.status_code == 503
        assert "redis" in response.json()["failing"]
