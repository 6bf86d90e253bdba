"""
tests/test_api_shop.py -- Integration tests for inventory, cart, appointments, and users.

Coverage:
  - Role gating through require_role(): 401 anonymous, 403 wrong role
  - Inventory: defaults, newest first, delete counts
  - Cart: qty merge, concurrent adds lose nothing (httpx.AsyncClient + gather)
  - Appointments: clients see and change only their own, staff see all
  - GET /api/users: admin only, no password hashes
"""

from __future__ import annotations

import asyncio
import uuid

import httpx
import pytest
from fastapi.testclient import TestClient


def _auth(token: str) -> dict[str, str]:
    return {"Authorization": f"Bearer {token}"}


def _signup(client: TestClient, role: str = "client") -> str:
    """Register + login a fresh account; return its bearer token."""
    email = f"{role}-{uuid.uuid4().hex[:8]}@example.com"
    client.post("/api/register", json={"email": email, "password": "secret1", "role": role})
    return client.post("/api/login", json={"email": email, "password": "secret1"}).json()["token"]


class TestInventory:
    def test_list_is_public(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/inventory")
        assert resp.status_code == 200
        assert isinstance(resp.json(), list)

    def test_add_requires_authentication(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/inventory", json={"name": "Zeep"})
        assert resp.status_code == 401

    def test_add_forbidden_for_client(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/inventory", json={"name": "Zeep"}, headers=_auth(_signup(client)))
        assert resp.status_code == 403
        assert resp.json()["error"]["code"] == "forbidden"

    def test_add_defaults_and_order(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, _uid = api_client
        first = client.post("/api/inventory", json={}, headers=_auth(token)).json()
        assert first["name"] == "Nieuwe product"
        assert first["category"] == "Algemeen"
        assert first["price"] == "0.00"
        second = client.post(
            "/api/inventory", json={"name": "Handcreme", "price": 4.95}, headers=_auth(token)
        ).json()
        assert second["price"] == "4.95"
        ids = [i["id"] for i in client.get("/api/inventory").json()]
        assert ids.index(second["id"]) < ids.index(first["id"]), "Newest item must come first"

    def test_worker_can_delete(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, _uid = api_client
        item = client.post("/api/inventory", json={"name": "Weg"}, headers=_auth(token)).json()
        worker = _signup(client, "worker")
        resp = client.delete(f"/api/inventory/{item['id']}", headers=_auth(worker))
        assert resp.json() == {"deleted": 1}
        resp = client.delete(f"/api/inventory/{item['id']}", headers=_auth(worker))
        assert resp.json() == {"deleted": 0}


class TestCart:
    @pytest.fixture(autouse=True)
    def empty_cart(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        assert client.delete("/api/cart").json() == {"items": []}

    def test_add_merges_quantity(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        client.post("/api/cart", json={"id": "X", "name": "Zeep", "price": "2.50"})
        cart = client.post("/api/cart", json={"id": "X", "qty": 2}).json()
        assert cart["items"] == [{"id": "X", "name": "Zeep", "price": "2.50", "qty": 3, "img": ""}]

    def test_remove_line(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        client.post("/api/cart", json={"id": "X"})
        client.post("/api/cart", json={"id": "Y"})
        cart = client.delete("/api/cart/X").json()
        assert [line["id"] for line in cart["items"]] == ["Y"]

    def test_qty_must_be_positive(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.post("/api/cart", json={"id": "X", "qty": 0})
        assert resp.status_code == 422
        assert resp.json()["error"]["code"] == "validation_error"

    @pytest.mark.parametrize("concurrent", [2, 20])
    def test_concurrent_adds_lose_no_update(self, api_client: tuple[TestClient, str, str], concurrent: int) -> None:
        """N simultaneous "add X, qty 1" requests on an empty cart end with one line of qty N."""
        client, _token, _uid = api_client

        async def add_all() -> list[httpx.Response]:
            transport = httpx.ASGITransport(app=client.app)
            async with httpx.AsyncClient(transport=transport, base_url="http://localhost") as ac:
                return await asyncio.gather(*(ac.post("/api/cart", json={"id": "X", "qty": 1}) for _ in range(concurrent)))

        responses = asyncio.run(add_all())
        assert all(r.status_code == 200 for r in responses)
        cart = client.get("/api/cart").json()
        assert len(cart["items"]) == 1
        assert cart["items"][0]["qty"] == concurrent


class TestAppointments:
    def test_requires_authentication(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        assert client.get("/api/appointments").status_code == 401
        assert client.post("/api/appointments", json={}).status_code == 401

    def test_create_defaults(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        token = _signup(client)
        me = client.get("/api/me", headers=_auth(token)).json()
        appt = client.post("/api/appointments", json={"datetime": "2025-01-10T10:00"}, headers=_auth(token)).json()
        assert appt["userId"] == me["id"]
        assert appt["status"] == "gepland"
        assert appt["notes"] == ""

    def test_clients_see_only_their_own(self, api_client: tuple[TestClient, str, str]) -> None:
        client, admin_token, _uid = api_client
        alice, bob = _signup(client), _signup(client)
        a = client.post("/api/appointments", json={"notes": "alice"}, headers=_auth(alice)).json()
        b = client.post("/api/appointments", json={"notes": "bob"}, headers=_auth(bob)).json()

        alice_ids = {x["id"] for x in client.get("/api/appointments", headers=_auth(alice)).json()}
        assert alice_ids == {a["id"]}

        all_ids = {x["id"] for x in client.get("/api/appointments", headers=_auth(admin_token)).json()}
        assert {a["id"], b["id"]} <= all_ids

    def test_client_cannot_touch_others(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        alice, bob = _signup(client), _signup(client)
        appt = client.post("/api/appointments", json={"notes": "alice"}, headers=_auth(alice)).json()

        resp = client.put(f"/api/appointments/{appt['id']}", json={"notes": "hijack"}, headers=_auth(bob))
        assert resp.status_code == 403
        resp = client.delete(f"/api/appointments/{appt['id']}", headers=_auth(bob))
        assert resp.status_code == 403

        mine = client.get("/api/appointments", headers=_auth(alice)).json()
        assert mine[0]["notes"] == "alice"

    def test_update_keeps_blank_fields(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        token = _signup(client)
        appt = client.post(
            "/api/appointments", json={"datetime": "2025-01-10T10:00", "notes": "knippen"}, headers=_auth(token)
        ).json()
        updated = client.put(
            f"/api/appointments/{appt['id']}", json={"status": "voltooid", "notes": ""}, headers=_auth(token)
        ).json()
        assert updated["status"] == "voltooid"
        assert updated["notes"] == "knippen"
        assert updated["datetime"] == "2025-01-10T10:00"

    def test_worker_can_update_any(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        appt = client.post("/api/appointments", json={}, headers=_auth(_signup(client))).json()
        resp = client.put(
            f"/api/appointments/{appt['id']}", json={"status": "bevestigd"}, headers=_auth(_signup(client, "worker"))
        )
        assert resp.status_code == 200
        assert resp.json()["status"] == "bevestigd"

    def test_unknown_appointment(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, _uid = api_client
        assert client.put("/api/appointments/nope", json={}, headers=_auth(token)).status_code == 404
        resp = client.delete("/api/appointments/nope", headers=_auth(token))
        assert resp.status_code == 404
        assert resp.json()["error"]["code"] == "not_found"

    def test_owner_can_delete(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        token = _signup(client)
        appt = client.post("/api/appointments", json={}, headers=_auth(token)).json()
        assert client.delete(f"/api/appointments/{appt['id']}", headers=_auth(token)).json() == {"deleted": 1}
        assert client.get("/api/appointments", headers=_auth(token)).json() == []


class TestUsers:
    def test_admin_lists_users_without_hashes(self, api_client: tuple[TestClient, str, str]) -> None:
        client, token, uid = api_client
        resp = client.get("/api/users", headers=_auth(token))
        assert resp.status_code == 200
        users = resp.json()
        assert any(u["id"] == uid for u in users)
        for u in users:
            assert set(u) == {"id", "name", "email", "role"}

    def test_worker_forbidden(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        resp = client.get("/api/users", headers=_auth(_signup(client, "worker")))
        assert resp.status_code == 403

    def test_anonymous_unauthorized(self, api_client: tuple[TestClient, str, str]) -> None:
        client, _token, _uid = api_client
        assert client.get("/api/users").status_code == 401
