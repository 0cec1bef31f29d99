# tests/conftest.py
from __future__ import annotations

import re
import threading
from collections.abc import Iterator

import pytest
from flask import Flask

from app import create_app
from config import TestConfig
from models import db
from services import EXTENSION_KEY, CaptivePortalServices
from utils.mail import mail

CLIENT_IP = "127.0.0.1"
CLIENT_MAC = "aa:bb:cc:dd:ee:01"

LEASES = (
    f"1893456000 {CLIENT_MAC} {CLIENT_IP} laptop 01:{CLIENT_MAC}\n"
    "1893456000 aa:bb:cc:dd:ee:02 10.0.0.2 * *\n"
    "1893456000 aa:bb:cc:dd:ee:03 10.0.0.3 phone *\n"
)

_OTP_RE = re.compile(r"\b(\d{6})\b")


class FakeFirewallRunner:
    """
    Stands in for subprocess running iptables: records every command and keeps
    the chain as a list, so -I can stack duplicates and -C/-D behave as they
    do on a real table. Every command fails when `fail` is set.
    """

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.commands: list[list[str]] = []
        self.rules: list[tuple[str, ...]] = []
        self._lock = threading.Lock()

    def __call__(self, command, timeout):
        with self._lock:
            self.commands.append(list(command))
            if self.fail:
                return False, "", "iptables: Permission denied"
            flag, rule = command[3], tuple(command[4:])
            if flag == "-I":
                self.rules.insert(0, rule)
            elif rule not in self.rules:
                return False, "", "iptables: Bad rule (does a matching rule exist in that chain?)."
            elif flag == "-D":
                self.rules.remove(rule)
            return True, "", ""

    @property
    def changes(self) -> list[list[str]]:
        """Commands that modify the chain (-I/-D), without the -C checks."""
        return [c for c in self.commands if c[3] != "-C"]


@pytest.fixture()
def lease_file(tmp_path):
    path = tmp_path / "dnsmasq.leases"
    path.write_text(LEASES)
    return path


@pytest.fixture()
def firewall_runner() -> FakeFirewallRunner:
    return FakeFirewallRunner()


@pytest.fixture()
def config_overrides() -> dict:
    """Override per test module/function to change app config."""
    return {}


@pytest.fixture()
def app(lease_file, firewall_runner, config_overrides) -> Iterator[Flask]:
    attrs = {"LEASE_FILE_PATH": str(lease_file), "FIREWALL_ENABLED": True}
    attrs.update(config_overrides)
    config_class = type("PortalTestConfig", (TestConfig,), attrs)

    app = create_app(config_class, firewall_runner=firewall_runner)
    with app.app_context():
        yield app
        db.session.remove()
        db.drop_all()
    app.extensions[EXTENSION_KEY].close()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def services(app) -> CaptivePortalServices:
    return app.extensions[EXTENSION_KEY]


@pytest.fixture()
def outbox(app):
    with mail.record_messages() as messages:
        yield messages


def otp_from(message) -> str:
    """Pull the 6-digit code out of a captured OTP email."""
    match = _OTP_RE.search(message.body)
    assert match, message.body
    return match.group(1)
