"""
Identity keys: the unit a client session attaches to.

Exactly one binding scheme is active per deployment (IDENTITY_SCHEME):
  ipmac - client IP plus the MAC address from the DHCP lease table
  token - opaque token handed to the portal by the gateway
  email - the email address itself
Each variant renders to a stable string stored in client_sessions.identity_key.
"""
import ipaddress
import re
from dataclasses import dataclass
from typing import Optional, Union

from utils.errors import ValidationError

SCHEME_IPMAC = 'ipmac'
SCHEME_TOKEN = 'token'
SCHEME_EMAIL = 'email'
SCHEMES = (SCHEME_IPMAC, SCHEME_TOKEN, SCHEME_EMAIL)

_MAC_RE = re.compile(r'^[0-9a-f]{2}([:-])(?:[0-9a-f]{2}\1){4}[0-9a-f]{2}$', re.IGNORECASE)
_TOKEN_RE = re.compile(r'^[A-Za-z0-9_\-.~]{1,128}$')
_EMAIL_RE = re.compile(r'^[^@\s]+@[^@\s]+\.[^@\s]+$')


@dataclass(frozen=True)
class IpMac:
    ip: str
    mac: str
    scheme = SCHEME_IPMAC

    @property
    def key(self) -> str:
        return f'ipmac:{self.mac}|{self.ip}'


@dataclass(frozen=True)
class Token:
    token: str
    scheme = SCHEME_TOKEN

    @property
    def key(self) -> str:
        return f'token:{self.token}'


@dataclass(frozen=True)
class Email:
    email: str
    scheme = SCHEME_EMAIL

    @property
    def key(self) -> str:
        return f'email:{self.email}'


IdentityKey = Union[IpMac, Token, Email]


def normalize_ip(value: str) -> str:
    """Canonical textual form of an IPv4/IPv6 address; ValidationError if malformed."""
    try:
        return str(ipaddress.ip_address((value or '').strip()))
    except ValueError:
        raise ValidationError('Invalid IP address')


def normalize_mac(value: str) -> str:
    """Lowercase colon-separated MAC; ValidationError if malformed."""
    value = (value or '').strip()
    if not _MAC_RE.match(value):
        raise ValidationError('Invalid MAC address')
    return value.replace('-', ':').lower()


def normalize_token(value: str) -> str:
    value = (value or '').strip()
    if not _TOKEN_RE.match(value):
        raise ValidationError('Invalid token')
    return value


def normalize_email(value: str) -> str:
    value = (value or '').strip().lower()
    if not value:
        raise ValidationError('Email is required')
    if len(value) > 254 or not _EMAIL_RE.match(value):
        raise ValidationError('Please provide a valid email address')
    return value


def ip_mac(ip: str, mac: str) -> IpMac:
    return IpMac(ip=normalize_ip(ip), mac=normalize_mac(mac))


def token(value: str) -> Token:
    return Token(token=normalize_token(value))


def email(value: str) -> Email:
    return Email(email=normalize_email(value))


def client_ip_of(identity: IdentityKey) -> Optional[str]:
    return identity.ip if isinstance(identity, IpMac) else None
