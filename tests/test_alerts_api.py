"""Tests for the alert REST endpoints (owner resolved from X-User-Id)."""
from unittest.mock import patch

import pytest
from sqlalchemy.orm import sessionmaker

from conftest import make_rule_payload, make_tender, make_user
from tenderwatch.db.crud.tenders import upsert_tender


@pytest.fixture()
def seed(db_engine):
    """Session for arranging data behind the API."""
    Session = sessionmaker(bind=db_engine)
    session = Session()
    yield session
    session.close()


@pytest.fixture()
def owner(seed):
    u = make_user(email="owner@example.com")
    seed.add(u)
    seed.commit()
    return u


@pytest.fixture()
def headers(owner):
    return {"X-User-Id": owner.id}


def _create(client, headers, **kwargs) -> dict:
    resp = client.post("/api/alerts", json=make_rule_payload(**kwargs), headers=headers)
    assert resp.status_code == 201, resp.text
    return resp.json()


@pytest.mark.integration
class TestAuth:

    def test_missing_header(self, client):
        assert client.get("/api/alerts").status_code == 401

    def test_unknown_user(self, client):
        assert client.get("/api/alerts", headers={"X-User-Id": "nobody"}).status_code == 401


@pytest.mark.integration
class TestCrudEndpoints:

    def test_create_returns_camel_case(self, client, headers, owner):
        data = _create(client, headers, categories=["IT Equipment"])
        assert data["id"]
        assert data["userId"] == owner.id
        assert data["isActive"] is True
        assert data["keywords"] == [{"term": "laptop", "matchType": "contains"}]
        assert data["emailSettings"]["frequency"] == "immediate"
        assert data["stats"]["totalMatches"] == 0

    def test_create_invalid_is_422(self, client, headers):
        body = make_rule_payload(estimatedValue={"min": 500, "max": 100})
        assert client.post("/api/alerts", json=body, headers=headers).status_code == 422
        body = make_rule_payload(keywords=[])
        assert client.post("/api/alerts", json=body, headers=headers).status_code == 422

    def test_list_and_get(self, client, headers):
        created = _create(client, headers)
        _create(client, headers, name="Second")

        listing = client.get("/api/alerts", headers=headers).json()
        assert listing["count"] == 2
        assert {a["name"] for a in listing["alerts"]} == {"Laptop tenders", "Second"}

        resp = client.get(f"/api/alerts/{created['id']}", headers=headers)
        assert resp.status_code == 200
        assert resp.json()["name"] == "Laptop tenders"

    def test_other_users_alert_is_404(self, client, headers, seed):
        created = _create(client, headers)
        stranger = make_user()
        seed.add(stranger)
        seed.commit()
        other = {"X-User-Id": stranger.id}

        assert client.get(f"/api/alerts/{created['id']}", headers=other).status_code == 404
        assert client.delete(f"/api/alerts/{created['id']}", headers=other).status_code == 404
        assert client.get("/api/alerts", headers=other).json()["count"] == 0

    def test_put_is_partial(self, client, headers):
        created = _create(client, headers, description="Original")
        resp = client.put(
            f"/api/alerts/{created['id']}",
            json={"name": "Renamed", "emailSettings": {"frequency": "daily"}},
            headers=headers,
        )
        assert resp.status_code == 200
        data = resp.json()
        assert data["name"] == "Renamed"
        assert data["description"] == "Original"
        assert data["emailSettings"]["frequency"] == "daily"
        assert data["emailSettings"]["dailySummaryTime"] == "09:00"

    def test_put_revalidates_merged_rule(self, client, headers):
        created = _create(client, headers, advancedFilters={"maxDaysUntilClosing": 10})
        resp = client.put(
            f"/api/alerts/{created['id']}",
            json={"advancedFilters": {"minDaysUntilClosing": 20}},
            headers=headers,
        )
        assert resp.status_code == 422
        current = client.get(f"/api/alerts/{created['id']}", headers=headers).json()
        assert current["advancedFilters"]["minDaysUntilClosing"] is None

    def test_toggle(self, client, headers):
        created = _create(client, headers)
        first = client.patch(f"/api/alerts/{created['id']}/toggle", headers=headers)
        assert first.json()["isActive"] is False
        second = client.patch(f"/api/alerts/{created['id']}/toggle", headers=headers)
        assert second.json()["isActive"] is True

    def test_delete(self, client, headers):
        created = _create(client, headers)
        assert client.delete(f"/api/alerts/{created['id']}", headers=headers).status_code == 204
        assert client.get(f"/api/alerts/{created['id']}", headers=headers).status_code == 404


@pytest.mark.integration
class TestStatsEndpoint:

    def test_stats_shape(self, client, headers):
        _create(client, headers)
        _create(client, headers, name="Weekly", emailSettings={"frequency": "weekly"})

        resp = client.get("/api/alerts/stats", headers=headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["totalAlerts"] == 2
        assert data["activeAlerts"] == 2
        assert data["inactiveAlerts"] == 0
        assert data["alertsByFrequency"] == {"immediate": 1, "daily": 0, "weekly": 1}
        assert data["recentMatches"] == []


@pytest.mark.integration
class TestAlertTestEndpoint:

    def test_replays_recent_tenders(self, client, headers, seed):
        upsert_tender(seed, make_tender())
        upsert_tender(seed, make_tender(title="Office chairs", description=None))
        created = _create(client, headers)

        resp = client.post(f"/api/alerts/{created['id']}/test", headers=headers)
        assert resp.status_code == 200
        data = resp.json()
        assert data["totalTested"] == 2
        assert data["matchCount"] == 1
        assert len(data["matchingTenders"]) == 1

        # Stats untouched
        after = client.get(f"/api/alerts/{created['id']}", headers=headers).json()
        assert after["stats"]["totalMatches"] == 0

    def test_limit_bounds(self, client, headers):
        created = _create(client, headers)
        url = f"/api/alerts/{created['id']}/test"
        assert client.post(url, params={"limit": 0}, headers=headers).status_code == 422
        assert client.post(url, params={"limit": 101}, headers=headers).status_code == 422
        assert client.post(url, params={"limit": 1}, headers=headers).status_code == 200

    def test_inactive_is_409(self, client, headers):
        created = _create(client, headers, isActive=False)
        assert client.post(f"/api/alerts/{created['id']}/test", headers=headers).status_code == 409


@pytest.mark.integration
class TestSendTestEmail:

    def test_sends_to_custom_email(self, client, headers, outbox):
        created = _create(client, headers, emailSettings={"customEmail": "team@example.com"})
        resp = client.post(f"/api/alerts/{created['id']}/send-test-email", headers=headers)

        assert resp.status_code == 200
        data = resp.json()
        assert data["success"] is True
        assert data["messageId"].startswith("<")
        files = list(outbox.glob("email_*.html"))
        assert len(files) == 1
        assert "To: team@example.com" in files[0].read_text(encoding="utf-8")

    def test_falls_back_to_account_email(self, client, headers):
        created = _create(client, headers)
        with patch("tenderwatch.services.notification_service.send_email_html", return_value="<t@x>") as send:
            resp = client.post(f"/api/alerts/{created['id']}/send-test-email", headers=headers)
        assert resp.json() == {"success": True, "messageId": "<t@x>"}
        assert send.call_args.kwargs["to"] == "owner@example.com"

    def test_delivery_failure_is_502(self, client, headers):
        created = _create(client, headers)
        with patch("tenderwatch.services.notification_service.send_email_html", side_effect=OSError("down")):
            resp = client.post(f"/api/alerts/{created['id']}/send-test-email", headers=headers)
        assert resp.status_code == 502
