"""
Client session model: the captive state of one network identity.
"""
from models import db
from utils.time_helper import utcnow

STATE_CAPTIVE = 'captive'
STATE_PENDING = 'pending'
STATE_AUTHENTICATED = 'authenticated'
STATE_EXPIRED = 'expired'


class ClientSession(db.Model):
    """
    One row per identity key (upserted, never appended).
    `captive` is the only authority for the CAPTIVE-PORTAL-API answer;
    `expires_at` is checked on every read by the session store.
    """
    __tablename__ = 'client_sessions'

    id = db.Column(db.Integer, primary_key=True)
    identity_key = db.Column(db.String(255), unique=True, nullable=False)
    scheme = db.Column(db.String(10), nullable=False)  # ipmac, token, email
    email = db.Column(db.String(254), nullable=True, index=True)
    client_ip = db.Column(db.String(45), nullable=True)
    mac_address = db.Column(db.String(17), nullable=True)
    hostname = db.Column(db.String(255), nullable=True)

    # Derived from the browser's User-Agent
    user_agent = db.Column(db.Text, nullable=True)
    platform = db.Column(db.String(100), nullable=True)
    browser = db.Column(db.String(50), nullable=True)
    browser_version = db.Column(db.String(50), nullable=True)
    os = db.Column(db.String(50), nullable=True)
    os_version = db.Column(db.String(50), nullable=True)
    device = db.Column(db.String(50), nullable=True)
    engine = db.Column(db.String(50), nullable=True)
    is_mobile = db.Column(db.Boolean, nullable=False, default=False)

    captive = db.Column(db.Boolean, nullable=False, default=True)
    expires_at = db.Column(db.DateTime, nullable=True)
    authenticated_at = db.Column(db.DateTime, nullable=True)
    # Set when the firewall rules opened at authenticated_at were revoked
    revoked_at = db.Column(db.DateTime, nullable=True)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    updated_at = db.Column(db.DateTime, nullable=False, default=utcnow, onupdate=utcnow)

    def is_expired(self, now=None):
        return self.expires_at is not None and (now or utcnow()) > self.expires_at

    def state(self, now=None):
        """Lifecycle state: captive -> pending -> authenticated -> expired."""
        if self.is_expired(now) and self.authenticated_at is not None:
            return STATE_EXPIRED
        if not self.captive:
            return STATE_AUTHENTICATED
        if self.email:
            return STATE_PENDING
        return STATE_CAPTIVE

    def seconds_remaining(self, now=None):
        if self.captive or self.expires_at is None:
            return 0
        delta = self.expires_at - (now or utcnow())
        return max(0, int(delta.total_seconds()))

    def __repr__(self):
        return f'<ClientSession {self.identity_key} captive={self.captive}>'
