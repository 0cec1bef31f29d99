"""
DHCP lease lookups (dnsmasq lease file).

Each line of the lease file reads:
    <expiry-epoch> <mac> <ip> <hostname|*> <client-id|*>
The file is scanned front-to-back and the first line whose IP matches wins.
Every failure mode (no path configured, unreadable or empty file, no match)
resolves to None so callers fall back to the captive state.
"""
import logging
from dataclasses import dataclass
from typing import Optional

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class LeaseRecord:
    expiry: int
    mac: str
    ip: str
    hostname: Optional[str] = None
    client_id: Optional[str] = None


def parse_lease_line(line: str) -> Optional[LeaseRecord]:
    """Parse one lease line; None for blank or malformed lines."""
    parts = line.split()
    if len(parts) < 3:
        return None
    try:
        expiry = int(parts[0])
    except ValueError:
        return None
    hostname = parts[3] if len(parts) > 3 and parts[3] != '*' else None
    client_id = parts[4] if len(parts) > 4 and parts[4] != '*' else None
    return LeaseRecord(expiry=expiry, mac=parts[1].lower(), ip=parts[2], hostname=hostname, client_id=client_id)


class LeaseResolver:
    """Resolve a client IP to its hardware identity from the lease table."""

    def __init__(self, lease_file_path=None):
        self.lease_file_path = lease_file_path

    def _read_lines(self):
        if not self.lease_file_path:
            logger.error("LEASE_FILE_PATH not configured")
            return None
        try:
            with open(self.lease_file_path, encoding='utf-8', errors='replace') as fh:
                data = fh.read()
        except OSError as e:
            logger.error("Error reading dnsmasq leases file %s: %s", self.lease_file_path, e)
            return None
        if not data.strip():
            logger.warning("Dnsmasq leases file is empty: %s", self.lease_file_path)
            return None
        return data.strip().splitlines()

    def resolve(self, ip: str) -> Optional[LeaseRecord]:
        """First matching lease for `ip`, or None (treat as captive)."""
        lines = self._read_lines()
        if lines is None:
            return None
        for line in lines:
            lease = parse_lease_line(line)
            if lease is not None and lease.ip == ip:
                logger.info("MAC address resolved for %s: %s", ip, lease.mac)
                return lease
        logger.warning("No lease found for IP %s", ip)
        return None
