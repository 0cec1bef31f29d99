"""Tests for the CAPTIVE-PORTAL-API endpoint and response rendering."""

from __future__ import annotations

from datetime import timedelta

import pytest
from conftest import CLIENT_IP, CLIENT_MAC

from models.client_session import ClientSession
from services.capport import CaptivePublisher
from utils import identity
from utils.time_helper import utcnow

PORTAL = "https://portal.test/portal"


def test_render_without_session() -> None:
    publisher = CaptivePublisher(PORTAL, venue_info_url="https://venue.test/")
    assert publisher.render(None) == {
        "captive": True,
        "user-portal-url": PORTAL,
        "venue-info-url": "https://venue.test/",
    }


def test_render_authenticated_session() -> None:
    now = utcnow()
    session = ClientSession(captive=False, expires_at=now + timedelta(seconds=90))
    body = CaptivePublisher(PORTAL).render(session, now=now)
    assert body == {
        "captive": False,
        "user-portal-url": PORTAL,
        "seconds-remaining": 90,
        "can-extend-session": True,
    }


@pytest.mark.parametrize("captive, offset", [(True, 90), (False, -1)])
def test_render_captive_or_expired_session(captive, offset) -> None:
    now = utcnow()
    session = ClientSession(captive=captive, expires_at=now + timedelta(seconds=offset))
    body = CaptivePublisher(PORTAL).render(session, now=now)
    assert body["captive"] is True
    assert "seconds-remaining" not in body


def test_headers_are_copied() -> None:
    publisher = CaptivePublisher(PORTAL)
    publisher.headers()["Cache-Control"] = "public"
    assert publisher.headers()["Cache-Control"] == "private, no-store"


def test_defaults_to_caller_address(client, services) -> None:
    services.session_store.mark_authenticated(identity.ip_mac(CLIENT_IP, CLIENT_MAC))
    assert client.get("/capport/api").get_json()["captive"] is False


def test_malformed_ip_is_400(client) -> None:
    response = client.get("/capport/api?ip=not-an-ip")
    assert response.status_code == 400
    assert response.headers["Content-Type"] == "application/captive+json"
    assert response.get_json() == {"error": "Invalid IP address", "captive": True}


def test_unresolved_device_is_captive(client) -> None:
    response = client.get("/capport/api?ip=10.9.9.9")
    assert response.status_code == 200
    assert response.get_json()["captive"] is True


def test_client_supplied_mac_without_lease(client, services) -> None:
    services.session_store.mark_authenticated(identity.ip_mac("10.9.9.9", "aa:bb:cc:00:11:22"))
    body = client.get("/capport/api?ip=10.9.9.9&mac=AA:BB:CC:00:11:22").get_json()
    assert body["captive"] is False


def test_expired_session_is_captive(client, services) -> None:
    services.session_store.mark_authenticated(
        identity.ip_mac(CLIENT_IP, CLIENT_MAC), now=utcnow() - timedelta(hours=3),
    )
    assert client.get(f"/capport/api?ip={CLIENT_IP}").get_json()["captive"] is True
    assert ClientSession.query.one().captive is True


def test_token_in_path(client, services) -> None:
    """The URL token selects the token identity even on an ipmac deployment."""
    assert client.get("/capport/api/abc123").get_json()["captive"] is True

    services.session_store.mark_authenticated(identity.token("abc123"))
    response = client.get("/capport/api/abc123")
    assert response.headers["Content-Type"] == "application/captive+json"
    assert response.get_json()["captive"] is False


@pytest.mark.parametrize("config_overrides", [{"IDENTITY_SCHEME": "token"}])
def test_token_scheme_requires_token(client, services) -> None:
    response = client.get("/capport/api")
    assert response.status_code == 400
    assert response.get_json()["error"] == "Token is required"

    services.session_store.mark_authenticated(identity.token("tok-1"))
    assert client.get("/capport/api?token=tok-1").get_json()["captive"] is False


@pytest.mark.parametrize("config_overrides", [{"IDENTITY_SCHEME": "email"}])
def test_email_scheme(client, services) -> None:
    services.session_store.mark_authenticated(identity.email("a@b.com"))
    assert client.get("/capport/api?email=A@B.com").get_json()["captive"] is False
    assert client.get("/capport/api?email=c@d.com").get_json()["captive"] is True


def test_internal_error_fails_closed(client, services, monkeypatch) -> None:
    def broken_get(key, now=None):
        raise RuntimeError("database is locked")

    monkeypatch.setattr(services.session_store, "get", broken_get)
    response = client.get(f"/capport/api?ip={CLIENT_IP}")
    assert response.status_code == 500
    assert response.headers["Content-Type"] == "application/captive+json"
    assert response.headers["Cache-Control"] == "private, no-store"
    body = response.get_json()
    assert body["captive"] is True
    assert body["error"] == "Internal server error"
