"""
Email OTP challenge model.
OTPs are hashed before storage; never store plain OTP in DB.
"""
from models import db
from utils.time_helper import utcnow


class OtpChallenge(db.Model):
    """
    One authoritative challenge per email; replaced in place on re-issue.
    Deleted on successful verification or once found expired.
    """
    __tablename__ = 'otp_challenges'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(254), unique=True, nullable=False)
    code_hash = db.Column(db.String(64), nullable=False)
    created_at = db.Column(db.DateTime, nullable=False, default=utcnow)
    expires_at = db.Column(db.DateTime, nullable=False)
    failed_attempts = db.Column(db.Integer, nullable=False, default=0)

    def is_expired(self, now=None):
        return (now or utcnow()) >= self.expires_at

    def __repr__(self):
        return f'<OtpChallenge {self.email}>'
