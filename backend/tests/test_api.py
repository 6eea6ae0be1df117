"""Tests for the FastAPI routes."""
import pytest
from fastapi.testclient import TestClient

from uptimewatch.dependencies import build_services
from uptimewatch.main import create_app
from uptimewatch.services.alerter import AlerterService
from uptimewatch.services.storage import MemoryGateway

from conftest import RecordingSender, StubChecker

USER = {
    "first_name": "Grace",
    "last_name": "Hopper",
    "phone": "15550001111",
    "password": "hunter2",
    "tos_agreement": True,
}

CHECK = {
    "protocol": "https",
    "hostname": "example.com",
    "path": "/status",
    "method": "get",
    "success_codes": [200, 201],
    "timeout_sec": 3,
}


@pytest.fixture
def services(settings):
    gateway = MemoryGateway()
    alerter = AlerterService(gateway, sms_sender=RecordingSender())
    return build_services(gateway, settings, checker=StubChecker(), alerter=alerter)


@pytest.fixture
def client(services):
    return TestClient(create_app(services))


def sign_up_and_in(client, **overrides) -> dict:
    body = {**USER, **overrides}
    resp = client.post("/api/users", json=body)
    assert resp.status_code == 200
    resp = client.post("/api/tokens", json={"phone": body["phone"], "password": body["password"]})
    assert resp.status_code == 200
    return {"token": resp.json()["id"]}


class TestUsersAndTokens:
    def test_health(self, client):
        resp = client.get("/health")
        assert resp.status_code == 200
        assert resp.json()["status"] == "healthy"

    def test_sign_up_hides_password(self, client):
        resp = client.post("/api/users", json=USER)
        assert resp.status_code == 200
        data = resp.json()
        assert data["phone"] == USER["phone"]
        assert "password" not in data and "password_hash" not in data

    def test_malformed_sign_up(self, client):
        resp = client.post("/api/users", json={**USER, "phone": "abc"})
        assert resp.status_code == 400

    def test_duplicate_sign_up(self, client):
        client.post("/api/users", json=USER)
        assert client.post("/api/users", json=USER).status_code == 400

    def test_bad_credentials(self, client):
        client.post("/api/users", json=USER)
        resp = client.post("/api/tokens", json={"phone": USER["phone"], "password": "wrong"})
        assert resp.status_code == 401

    def test_profile_requires_token(self, client):
        assert client.get("/api/users/me").status_code == 401
        assert client.get("/api/users/me", headers={"token": "bogus"}).status_code == 401

    def test_profile_update(self, client):
        headers = sign_up_and_in(client)
        resp = client.put("/api/users/me", json={"first_name": "Amazing"}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["first_name"] == "Amazing"

    def test_extend_and_sign_out(self, client):
        headers = sign_up_and_in(client)
        token_id = headers["token"]

        resp = client.put(f"/api/tokens/{token_id}", json={"extend": True})
        assert resp.status_code == 200

        assert client.delete(f"/api/tokens/{token_id}").status_code == 200
        assert client.get("/api/users/me", headers=headers).status_code == 401
        assert client.get(f"/api/tokens/{token_id}").status_code == 404

    def test_delete_user_cascades(self, client, services):
        headers = sign_up_and_in(client)
        check_id = client.post("/api/checks", json=CHECK, headers=headers).json()["id"]
        assert check_id in services.registry

        assert client.delete("/api/users/me", headers=headers).status_code == 200
        assert check_id not in services.registry
        assert client.get("/api/users/me", headers=headers).status_code == 401


class TestChecks:
    def test_create_and_get(self, client):
        headers = sign_up_and_in(client)
        resp = client.post("/api/checks", json=CHECK, headers=headers)
        assert resp.status_code == 200
        check = resp.json()
        assert check["state"] == "unknown"
        assert check["method"] == "GET"

        resp = client.get(f"/api/checks/{check['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["hostname"] == "example.com"

        resp = client.get("/api/checks", headers=headers)
        assert [c["id"] for c in resp.json()] == [check["id"]]

    @pytest.mark.parametrize("overrides", [
        {"protocol": "ftp"},
        {"hostname": "not a host"},
        {"timeout_sec": 10},
        {"success_codes": []},
        {"method": "PATCH"},
        {"path": "no-leading-slash"},
    ])
    def test_invalid_check(self, client, overrides):
        headers = sign_up_and_in(client)
        resp = client.post("/api/checks", json={**CHECK, **overrides}, headers=headers)
        assert resp.status_code == 400

    def test_quota(self, client, services):
        headers = sign_up_and_in(client)
        for _ in range(5):
            assert client.post("/api/checks", json=CHECK, headers=headers).status_code == 200

        resp = client.post("/api/checks", json=CHECK, headers=headers)
        assert resp.status_code == 400
        assert "maximum" in resp.json()["error"]
        assert len(services.registry) == 5

    def test_other_users_check(self, client):
        owner = sign_up_and_in(client)
        intruder = sign_up_and_in(client, phone="15550002222")
        check_id = client.post("/api/checks", json=CHECK, headers=owner).json()["id"]

        assert client.get(f"/api/checks/{check_id}", headers=intruder).status_code == 403
        assert client.delete(f"/api/checks/{check_id}", headers=intruder).status_code == 403

    def test_unknown_check(self, client):
        headers = sign_up_and_in(client)
        assert client.get("/api/checks/missing", headers=headers).status_code == 404

    def test_update_and_delete(self, client, services):
        headers = sign_up_and_in(client)
        check_id = client.post("/api/checks", json=CHECK, headers=headers).json()["id"]

        resp = client.put(f"/api/checks/{check_id}", json={"timeout_sec": 5}, headers=headers)
        assert resp.status_code == 200
        assert resp.json()["timeout_sec"] == 5

        assert client.put(f"/api/checks/{check_id}", json={}, headers=headers).status_code == 400

        assert client.delete(f"/api/checks/{check_id}", headers=headers).status_code == 200
        assert check_id not in services.registry
        assert client.get(f"/api/checks/{check_id}", headers=headers).status_code == 404

    def test_reset_and_test(self, client):
        headers = sign_up_and_in(client)
        check_id = client.post("/api/checks", json=CHECK, headers=headers).json()["id"]

        resp = client.post(f"/api/checks/{check_id}/test", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["state"] == "up"

        resp = client.post(f"/api/checks/{check_id}/reset", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["state"] == "unknown"

    def test_status_overview(self, client):
        headers = sign_up_and_in(client)
        client.post("/api/checks", json=CHECK, headers=headers)
        client.post("/api/checks", json=CHECK, headers=headers)

        resp = client.get("/api/status", headers=headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["total_checks"] == 2
        assert data["checks_unknown"] == 2
        assert data["checks_remaining"] == 3
        assert data["checks"][0]["url"] == "https://example.com/status"
