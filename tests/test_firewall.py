"""Tests for the iptables enforcer, using a recording runner instead of subprocess."""

from __future__ import annotations

import logging

import pytest
from conftest import FakeFirewallRunner

from services.firewall import FirewallEnforcer, run_command


@pytest.fixture()
def runner() -> FakeFirewallRunner:
    return FakeFirewallRunner()


@pytest.fixture()
def enforcer(runner):
    enforcer = FirewallEnforcer(iptables_path="/sbin/iptables", runner=runner)
    yield enforcer
    enforcer.close()


def test_grant_inserts_tcp_and_udp_rules(enforcer, runner) -> None:
    result = enforcer.grant("10.0.0.7").result(timeout=5)
    assert result.success
    assert result.action == "grant"
    assert runner.changes == [
        ["/sbin/iptables", "-t", "nat", "-I", "PREROUTING", "-s", "10.0.0.7", "-p", "tcp", "--dport", "53", "-j", "ACCEPT"],
        ["/sbin/iptables", "-t", "nat", "-I", "PREROUTING", "-s", "10.0.0.7", "-p", "udp", "--dport", "53", "-j", "ACCEPT"],
    ]


def test_revoke_deletes_rules(enforcer, runner) -> None:
    enforcer.grant("10.0.0.7").result(timeout=5)
    assert enforcer.revoke("10.0.0.7").result(timeout=5).success
    assert [c[3] for c in runner.changes] == ["-I", "-I", "-D", "-D"]
    assert runner.rules == []


def test_regrant_does_not_stack_duplicate_rules(enforcer, runner) -> None:
    """Verifying twice leaves one rule per protocol, so one revoke closes access."""
    enforcer.grant("10.0.0.7").result(timeout=5)
    assert enforcer.grant("10.0.0.7").result(timeout=5).success
    assert len(runner.rules) == 2

    enforcer.revoke("10.0.0.7").result(timeout=5)
    assert runner.rules == []


def test_revoke_of_missing_rule_is_reported(enforcer, runner, caplog) -> None:
    with caplog.at_level(logging.ERROR, logger="services.firewall"):
        result = enforcer.revoke("10.0.0.8").result(timeout=5)
    assert not result.success
    assert "Firewall revoke failed for 10.0.0.8" in caplog.text


def test_failure_is_logged_and_reported(enforcer, runner, caplog) -> None:
    runner.fail = True
    with caplog.at_level(logging.ERROR, logger="services.firewall"):
        result = enforcer.grant("10.0.0.7").result(timeout=5)
    assert not result.success
    assert [o.error for o in result.outcomes] == ["iptables: Permission denied"] * 2
    assert "Firewall grant failed for 10.0.0.7 (tcp)" in caplog.text
    assert "Firewall grant failed for 10.0.0.7 (udp)" in caplog.text


def test_invalid_ip_runs_nothing(enforcer, runner) -> None:
    result = enforcer.grant("10.0.0.7; reboot").result(timeout=5)
    assert not result.success
    assert runner.commands == []


def test_disabled_enforcer_skips_commands(runner) -> None:
    enforcer = FirewallEnforcer(enabled=False, runner=runner)
    try:
        assert enforcer.grant("10.0.0.7").result(timeout=5).success
    finally:
        enforcer.close()
    assert runner.commands == []


def test_wait_pending_drains_futures(enforcer) -> None:
    for n in range(5):
        enforcer.grant(f"10.0.0.{n + 10}")
    enforcer.wait_pending(timeout=5)
    assert enforcer.pending == set()


def test_run_command_reports_missing_binary(tmp_path) -> None:
    success, _stdout, stderr = run_command([str(tmp_path / "no-such-iptables")], timeout=1)
    assert success is False
    assert stderr
