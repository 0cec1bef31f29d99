"""
OTP generation and hashing for email verification.
OTPs are hashed before storage; never store plain OTP in DB.
"""
import hashlib
import hmac
import secrets
from datetime import timedelta

from utils.time_helper import utcnow

# OTP range and expiry
OTP_MIN = 100000
OTP_MAX = 999999
OTP_EXPIRY_MINUTES = 5


def generate_otp() -> str:
    """Generate a uniformly random 6-digit numeric OTP in [100000, 999999]."""
    return str(OTP_MIN + secrets.randbelow(OTP_MAX - OTP_MIN + 1))


def is_well_formed(otp) -> bool:
    return isinstance(otp, str) and len(otp) == 6 and otp.isdigit()


def hash_otp(otp: str) -> str:
    """Hash OTP for storage."""
    return hashlib.sha256(otp.encode('utf-8')).hexdigest()


def verify_otp(plain_otp: str, otp_hash: str) -> bool:
    """Verify a plain OTP against stored hash."""
    return hmac.compare_digest(hash_otp(plain_otp), otp_hash)


def otp_expires_at(now=None):
    """Return expiry datetime for new OTP (5 minutes from now)."""
    return (now or utcnow()) + timedelta(minutes=OTP_EXPIRY_MINUTES)
