"""
Request-boundary identity resolution.
The rest of the code only sees IdentityKey values produced here.
"""
from typing import NamedTuple, Optional

from flask import current_app, request

from services.lease_resolver import LeaseRecord
from utils import identity as ident
from utils.errors import ValidationError


class ResolvedIdentity(NamedTuple):
    key: Optional[ident.IdentityKey]
    client_ip: Optional[str]
    lease: Optional[LeaseRecord] = None


def request_ip():
    """Client address as seen by the app (ProxyFix applied when TRUST_PROXY)."""
    return request.remote_addr


def _lease_identity(services, ip, mac=None):
    lease = services.lease_resolver.resolve(ip)
    if lease is not None:
        try:
            return ident.IpMac(ip=ip, mac=ident.normalize_mac(lease.mac)), lease
        except ValidationError:
            current_app.logger.error("Malformed MAC %r in lease table for %s", lease.mac, ip)
    if mac:
        return ident.ip_mac(ip, mac), None
    return None, None


def resolve_identity(services, ip=None, mac=None, token=None, email=None, force_token=False):
    """
    Build the identity key for the active IDENTITY_SCHEME.
    force_token selects the token variant whatever the scheme (capport URL token).
    Returns key=None when an ipmac identity cannot be resolved (no lease and no MAC).
    Raises ValidationError for malformed input.
    """
    scheme = current_app.config.get('IDENTITY_SCHEME', ident.SCHEME_IPMAC)
    client_ip = ident.normalize_ip(ip) if ip else None

    if force_token or scheme == ident.SCHEME_TOKEN:
        if not token:
            raise ValidationError('Token is required')
        return ResolvedIdentity(ident.token(token), client_ip)

    if scheme == ident.SCHEME_EMAIL:
        return ResolvedIdentity(ident.email(email), client_ip)

    if client_ip is None:
        raise ValidationError('Invalid IP address')
    if mac:
        mac = ident.normalize_mac(mac)
    key, lease = _lease_identity(services, client_ip, mac)
    return ResolvedIdentity(key, client_ip, lease)
