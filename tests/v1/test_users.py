"""Tests for the account activity endpoints."""

from fastapi import status
from fastapi.testclient import TestClient


def test_heartbeat_first_activity_mints(client: TestClient, owner: str, clock) -> None:
    r = client.post("/api/v1/users/heartbeat", json={"address": owner.upper().replace("0X", "0x")})
    assert r.status_code == status.HTTP_200_OK
    data = r.json()
    assert data["address"] == owner
    assert data["first_activity"] is True
    assert data["issuance"]["success"] is True
    assert data["last_issued_at"] == clock.now


def test_heartbeat_can_skip_minting(client: TestClient, owner: str, fake_ledger) -> None:
    r = client.post("/api/v1/users/heartbeat", json={"address": owner, "triggerMint": False})
    data = r.json()
    assert data["issuance"] is None
    assert fake_ledger.commits == []


def test_heartbeat_rejects_bad_address(client: TestClient) -> None:
    r = client.post("/api/v1/users/heartbeat", json={"address": "not-an-address"})
    assert r.status_code == status.HTTP_400_BAD_REQUEST


def test_list_users(client: TestClient, owner: str, other_owner: str) -> None:
    client.post("/api/v1/users/heartbeat", json={"address": owner, "triggerMint": False})
    client.post("/api/v1/users/heartbeat", json={"address": other_owner})

    r = client.get("/api/v1/users")
    assert r.status_code == status.HTTP_200_OK
    data = r.json()
    assert data["count"] == 2
    assert data["inactivity_threshold_seconds"] == 300
    users = {user["address"]: user for user in data["users"]}
    assert users[owner]["last_mint_time"] is None
    assert users[other_owner]["last_mint_time"] is not None
    assert all(user["is_active"] for user in data["users"])


def test_logout_cleans_up_and_removes(client: TestClient, owner: str, clock) -> None:
    client.post("/api/v1/users/heartbeat", json={"address": owner})
    clock.advance(61)

    r = client.post("/api/v1/users/logout", json={"address": owner})
    data = r.json()
    assert data["success"] is True
    assert data["removed"] is True
    assert data["cleanup"]["batches_removed"] == 1

    assert client.get("/api/v1/users").json()["count"] == 0


def test_check_inactive(client: TestClient, owner: str, other_owner: str, clock) -> None:
    client.post("/api/v1/users/heartbeat", json={"address": owner, "triggerMint": False})
    clock.advance(301)
    client.post("/api/v1/users/heartbeat", json={"address": other_owner, "triggerMint": False})

    r = client.post("/api/v1/users/check-inactive")
    data = r.json()
    assert (data["removed_count"], data["remaining_count"]) == (1, 1)


def test_delete_user_route(client: TestClient, owner: str) -> None:
    client.post("/api/v1/users/heartbeat", json={"address": owner, "triggerMint": False})

    r = client.delete(f"/api/v1/users/{owner}")
    assert r.status_code == status.HTTP_200_OK
    assert r.json()["removed"] is True
    assert client.get("/api/v1/users").json()["count"] == 0

    r = client.delete("/api/v1/users/0x1234")
    assert r.status_code == status.HTTP_400_BAD_REQUEST


def test_cleanup_route_reaps_idle_accounts(client: TestClient, owner: str, clock) -> None:
    client.post("/api/v1/users/heartbeat", json={"address": owner, "triggerMint": False})
    clock.advance(301)

    r = client.get("/api/v1/users/cleanup")
    assert r.status_code == status.HTTP_200_OK
    assert (r.json()["removed_count"], r.json()["remaining_count"]) == (1, 0)
