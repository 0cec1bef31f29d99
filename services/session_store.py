"""
Durable per-identity captive state.

One row per identity key, written with a single upsert statement. Every read
applies lazy expiry: a row whose expires_at has passed is reported captive and
the correction is committed before the row is returned.
"""
import logging
from datetime import timedelta

from sqlalchemy import and_, func, or_, select, update

from models import db
from models.client_session import ClientSession
from utils.db_helper import upsert
from utils.identity import IpMac, client_ip_of
from utils.time_helper import utcnow

logger = logging.getLogger(__name__)

DEFAULT_SESSION_TTL = timedelta(hours=2)

METADATA_FIELDS = (
    'user_agent', 'platform', 'browser', 'browser_version', 'os',
    'os_version', 'device', 'engine', 'is_mobile', 'hostname',
)


class SessionStore:
    """Owns the client_sessions table."""

    def __init__(self, session_ttl=DEFAULT_SESSION_TTL):
        self.session_ttl = session_ttl

    def upsert(self, identity, metadata=None, captive=True, expires_at=None,
               email=None, client_ip=None, authenticated_at=None, now=None):
        """
        Create or overwrite the row for `identity`. Metadata keys left out
        (or None) keep their stored values.
        """
        now = now or utcnow()
        if client_ip is None:
            client_ip = client_ip_of(identity)

        values = {
            'identity_key': identity.key,
            'scheme': identity.scheme,
            'captive': captive,
            'expires_at': expires_at,
            'created_at': now,
            'updated_at': now,
        }
        if authenticated_at is not None:
            values['authenticated_at'] = authenticated_at
        if isinstance(identity, IpMac):
            values['mac_address'] = identity.mac
        if email is not None:
            values['email'] = email
        if client_ip is not None:
            values['client_ip'] = client_ip
        for field in METADATA_FIELDS:
            if metadata and metadata.get(field) is not None:
                values[field] = metadata[field]

        overwrite = [k for k in values if k not in ('identity_key', 'created_at')]
        upsert(
            ClientSession,
            values,
            index_elements=['identity_key'],
            set_=lambda excluded: {k: excluded[k] for k in overwrite},
        )
        db.session.commit()
        logger.info("Session upserted for %s (captive=%s)", identity.key, captive)
        return self.get(identity, now=now)

    def get(self, identity, now=None):
        return self._get_by_key(identity.key, now=now)

    def _get_by_key(self, identity_key, now=None):
        now = now or utcnow()
        row = db.session.execute(
            select(ClientSession).where(ClientSession.identity_key == identity_key)
        ).scalar_one_or_none()
        if row is None:
            return None
        if row.is_expired(now) and not row.captive:
            logger.info("Session %s expired at %s, updating to captive state",
                        identity_key, row.expires_at.isoformat())
            db.session.execute(
                update(ClientSession)
                .where(ClientSession.id == row.id, ClientSession.expires_at < now)
                .values(captive=True, updated_at=now)
            )
            db.session.commit()
            db.session.refresh(row)
        return row

    def mark_authenticated(self, identity, ttl=None, now=None, **kwargs):
        """captive=False for `ttl` (two hours by default)."""
        now = now or utcnow()
        expires = now + (ttl or self.session_ttl)
        return self.upsert(identity, captive=False, expires_at=expires,
                           authenticated_at=now, now=now, **kwargs)

    def mark_captive(self, identity, now=None):
        now = now or utcnow()
        db.session.execute(
            update(ClientSession)
            .where(ClientSession.identity_key == identity.key)
            .values(captive=True, expires_at=None, updated_at=now)
        )
        db.session.commit()
        return self.get(identity, now=now)

    def is_authenticated(self, identity, now=None):
        row = self.get(identity, now=now)
        return row is not None and not row.captive

    def active_devices_for_email(self, email, exclude=None, now=None):
        """Authenticated, unexpired sessions bound to `email`."""
        now = now or utcnow()
        query = select(func.count(ClientSession.id)).where(
            ClientSession.email == email,
            ClientSession.captive.is_(False),
            ClientSession.expires_at > now,
        )
        if exclude is not None:
            query = query.where(ClientSession.identity_key != exclude.key)
        return db.session.execute(query).scalar_one()

    def expire_stale(self, now=None):
        """
        Close every session whose access was granted and not yet revoked but
        has lapsed: expiry passed (whether or not a read already flipped it to
        captive), or the row went back to captive without an expiry (re-sent
        OTP, mark_captive). Returns the closed rows so the caller can revoke
        their firewall rules.
        """
        now = now or utcnow()
        rows = db.session.execute(
            select(ClientSession).where(
                ClientSession.authenticated_at.is_not(None),
                or_(
                    ClientSession.revoked_at.is_(None),
                    ClientSession.revoked_at < ClientSession.authenticated_at,
                ),
                or_(
                    ClientSession.expires_at < now,
                    and_(ClientSession.captive.is_(True), ClientSession.expires_at.is_(None)),
                ),
            )
        ).scalars().all()
        if rows:
            db.session.execute(
                update(ClientSession)
                .where(ClientSession.id.in_([r.id for r in rows]))
                .values(captive=True, expires_at=None, revoked_at=now, updated_at=now)
            )
            db.session.commit()
            for row in rows:
                db.session.refresh(row)
        return rows

    def clear(self):
        count = ClientSession.query.delete()
        db.session.commit()
        return count
