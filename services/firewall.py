"""
Firewall control using iptables.

grant(ip) inserts two NAT/PREROUTING accept rules (TCP and UDP, port 53) for
the client so its DNS traffic is no longer redirected to the portal; a rule
already in the chain (iptables -C) is not inserted twice, so a single
revoke(ip) removes the client's access. Rules are
applied on a background thread; the HTTP response never waits for them.
Failures are logged for the operator and reported through the returned future.
"""
import ipaddress
import logging
import subprocess
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import List

logger = logging.getLogger(__name__)

DNS_PORT = 53
PROTOCOLS = ('tcp', 'udp')


@dataclass
class RuleOutcome:
    command: List[str]
    success: bool
    error: str = ''


@dataclass
class FirewallResult:
    ip: str
    action: str  # grant, revoke
    outcomes: List[RuleOutcome] = field(default_factory=list)

    @property
    def success(self):
        return bool(self.outcomes) and all(o.success for o in self.outcomes)


def run_command(command, timeout):
    """Execute a system command; returns (success, stdout, stderr)."""
    try:
        result = subprocess.run(command, capture_output=True, text=True, timeout=timeout, check=False)
        return result.returncode == 0, result.stdout, result.stderr
    except subprocess.TimeoutExpired:
        return False, '', 'Timeout'
    except OSError as error:
        return False, '', str(error)


class FirewallEnforcer:
    """Applies and revokes per-client DNS allow rules."""

    def __init__(self, iptables_path='iptables', enabled=True, command_timeout=5.0,
                 runner=run_command, max_workers=2):
        self.iptables_path = iptables_path
        self.enabled = enabled
        self.command_timeout = command_timeout
        self.runner = runner
        self.pending = set()
        self._lock = threading.Lock()
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix='firewall')

    def dns_rule(self, flag, ip, protocol):
        return [
            self.iptables_path, '-t', 'nat', flag, 'PREROUTING',
            '-s', ip, '-p', protocol, '--dport', str(DNS_PORT), '-j', 'ACCEPT',
        ]

    def grant(self, ip) -> Future:
        """Insert the allow rules for `ip` in the background."""
        return self._submit('grant', '-I', ip)

    def revoke(self, ip) -> Future:
        """Delete the allow rules for `ip` in the background."""
        return self._submit('revoke', '-D', ip)

    def _submit(self, action, flag, ip):
        future = self._executor.submit(self._apply, action, flag, ip)
        with self._lock:
            self.pending.add(future)
        future.add_done_callback(self._discard)
        return future

    def _discard(self, future):
        with self._lock:
            self.pending.discard(future)

    def _rule_present(self, ip, protocol):
        """iptables -C exits 0 only when the exact rule is already in the chain."""
        success, _stdout, _stderr = self.runner(self.dns_rule('-C', ip, protocol), self.command_timeout)
        return success

    def _apply(self, action, flag, ip):
        result = FirewallResult(ip=ip, action=action)
        try:
            ip = str(ipaddress.ip_address(ip))
        except ValueError:
            logger.error("Refusing firewall %s for invalid IP %r", action, ip)
            result.outcomes.append(RuleOutcome(command=[], success=False, error='Invalid IP address'))
            return result

        for protocol in PROTOCOLS:
            command = self.dns_rule(flag, ip, protocol)
            if not self.enabled:
                logger.info("Firewall disabled, skipping: %s", ' '.join(command))
                result.outcomes.append(RuleOutcome(command=command, success=True))
                continue
            if action == 'grant' and self._rule_present(ip, protocol):
                logger.info("Firewall rule already present for %s (%s)", ip, protocol)
                result.outcomes.append(RuleOutcome(command=command, success=True))
                continue
            success, _stdout, stderr = self.runner(command, self.command_timeout)
            if success:
                logger.info("Firewall %s applied for %s (%s)", action, ip, protocol)
            else:
                logger.error("Firewall %s failed for %s (%s): %s", action, ip, protocol, (stderr or '').strip())
            result.outcomes.append(RuleOutcome(command=command, success=success, error=(stderr or '').strip()))
        return result

    def wait_pending(self, timeout=None):
        """Block until every submitted task has finished."""
        with self._lock:
            futures = list(self.pending)
        for future in futures:
            future.result(timeout=timeout)

    def close(self):
        self._executor.shutdown(wait=True)
