"""
Rate-limit bookkeeping, one row per (identifier, limit type).
"""
from models import db
from utils.time_helper import utcnow


class RateLimitRecord(db.Model):
    """Fixed-window counter plus last-request timestamp for cooldowns."""
    __tablename__ = 'rate_limits'
    __table_args__ = (
        db.UniqueConstraint('identifier', 'limit_type', name='uq_rate_limits_identifier_type'),
    )

    id = db.Column(db.Integer, primary_key=True)
    identifier = db.Column(db.String(254), nullable=False)
    limit_type = db.Column(db.String(50), nullable=False)  # send_otp_email, send_otp_ip
    request_count = db.Column(db.Integer, nullable=False, default=0)
    window_start = db.Column(db.DateTime, nullable=False, default=utcnow)
    last_request = db.Column(db.DateTime, nullable=False, default=utcnow)

    def __repr__(self):
        return f'<RateLimitRecord {self.limit_type}:{self.identifier} count={self.request_count}>'
