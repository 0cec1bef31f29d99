"""Tests for the `flask capport` maintenance commands."""

from __future__ import annotations

from datetime import timedelta

from conftest import CLIENT_IP, CLIENT_MAC

from models import db
from models.client_session import ClientSession
from models.otp_challenge import OtpChallenge
from utils import identity
from utils.time_helper import utcnow

DEVICE = identity.ip_mac("10.0.0.2", "aa:bb:cc:dd:ee:02")


def test_purge_closes_expired_sessions(app, services, outbox, firewall_runner) -> None:
    services.firewall.grant("10.0.0.2").result(timeout=5)
    services.session_store.mark_authenticated(DEVICE, now=utcnow() - timedelta(hours=3))
    services.otp_service.issue("old@example.com", now=utcnow() - timedelta(minutes=10))
    services.rate_limiter.record_usage("10.0.0.2", "otp_ip", now=utcnow() - timedelta(hours=30))

    result = app.test_cli_runner().invoke(args=["capport", "purge"])
    assert result.exit_code == 0, result.output
    assert "Purged 1 expired OTPs, 1 rate-limit records; closed 1 sessions." in result.output

    assert [c[3] for c in firewall_runner.changes] == ["-I", "-I", "-D", "-D"]
    assert {c[6] for c in firewall_runner.commands} == {"10.0.0.2"}
    assert firewall_runner.rules == []

    db.session.expire_all()
    row = ClientSession.query.one()
    assert row.captive is True
    assert row.expires_at is None


def test_purge_revokes_lapsed_session_that_requested_a_new_code(app, client, services, outbox, firewall_runner) -> None:
    """A lapsed device asking for a new OTP is pending again; purge still closes its DNS rule."""
    device = identity.ip_mac(CLIENT_IP, CLIENT_MAC)
    services.firewall.grant(CLIENT_IP).result(timeout=5)
    services.session_store.mark_authenticated(device, email="back@example.com", now=utcnow() - timedelta(hours=3))

    assert client.post("/send-otp", json={"email": "back@example.com"}).get_json()["success"] is True
    assert firewall_runner.rules

    result = app.test_cli_runner().invoke(args=["capport", "purge"])
    assert "closed 1 sessions" in result.output
    assert firewall_runner.rules == []


def test_show_session(app, services) -> None:
    services.session_store.mark_authenticated(DEVICE, email="who@example.com")

    result = app.test_cli_runner().invoke(args=["capport", "show-session", "10.0.0.2"])
    assert DEVICE.key in result.output
    assert "state=authenticated" in result.output
    assert "email=who@example.com" in result.output

    result = app.test_cli_runner().invoke(args=["capport", "show-session", "10.9.9.9"])
    assert "No session for 10.9.9.9" in result.output


def test_clear_otps_requires_confirmation(app, services, outbox) -> None:
    services.otp_service.issue("a@example.com")
    runner = app.test_cli_runner()

    assert runner.invoke(args=["capport", "clear-otps"], input="n\n").exit_code != 0
    assert OtpChallenge.query.count() == 1

    result = runner.invoke(args=["capport", "clear-otps", "--yes"])
    assert "Deleted 1 OTP records" in result.output
    assert OtpChallenge.query.count() == 0


def test_clear_all(app, services, outbox) -> None:
    services.otp_service.issue("a@example.com")
    services.session_store.upsert(DEVICE)
    services.rate_limiter.record_usage("a@example.com", "otp_email")

    result = app.test_cli_runner().invoke(args=["capport", "clear-all", "--yes"])
    assert result.exit_code == 0, result.output
    for table in ("otp_challenges", "client_sessions", "rate_limits"):
        assert f"Cleared {table}: 1 rows" in result.output
