"""
OTP issuance and verification.

issue():  generate -> send mail -> persist. A failed or timed-out send never
          leaves a usable code behind.
verify(): the consuming DELETE is conditional on the code hash and expiry,
          so of two concurrent verifiers with the right code only one wins.
"""
import enum
import logging
from dataclasses import dataclass
from datetime import datetime

from sqlalchemy import delete, update
from sqlalchemy.exc import SQLAlchemyError

from models import db
from models.otp_challenge import OtpChallenge
from utils.db_helper import upsert
from utils.errors import DependencyFailure
from utils.otp_helper import generate_otp, hash_otp, verify_otp, otp_expires_at, is_well_formed
from utils.time_helper import utcnow

logger = logging.getLogger(__name__)


class VerifyResult(enum.Enum):
    OK = 'ok'
    INVALID_CODE = 'invalid_code'
    EXPIRED = 'expired'
    NOT_FOUND = 'not_found'


@dataclass(frozen=True)
class IssuedChallenge:
    email: str
    code: str
    created_at: datetime
    expires_at: datetime


class OtpService:
    """Owns the otp_challenges table."""

    def __init__(self, mailer):
        self.mailer = mailer

    def issue(self, email: str, now=None) -> IssuedChallenge:
        now = now or utcnow()
        code = generate_otp()
        expires = otp_expires_at(now)

        # Raises DependencyFailure; nothing persisted yet.
        self.mailer.send_otp(email, code)

        try:
            upsert(
                OtpChallenge,
                dict(email=email, code_hash=hash_otp(code), created_at=now,
                     expires_at=expires, failed_attempts=0),
                index_elements=['email'],
                set_=lambda excluded: {
                    'code_hash': excluded.code_hash,
                    'created_at': excluded.created_at,
                    'expires_at': excluded.expires_at,
                    'failed_attempts': 0,
                },
            )
            db.session.commit()
        except SQLAlchemyError as e:
            db.session.rollback()
            logger.error("Failed to store OTP for %s: %s", email, e, exc_info=True)
            raise DependencyFailure("Failed to send OTP") from e

        logger.info("OTP issued for %s, expires %s", email, expires.isoformat())
        return IssuedChallenge(email=email, code=code, created_at=now, expires_at=expires)

    def get(self, email: str):
        return OtpChallenge.query.filter_by(email=email).first()

    def verify(self, email: str, code: str, now=None) -> VerifyResult:
        now = now or utcnow()
        row = self.get(email)
        if row is None:
            logger.info("No OTP found for %s", email)
            return VerifyResult.NOT_FOUND

        # Every write below is conditioned on the row as read; a re-issue in
        # between keeps the id but changes code_hash and expires_at.
        challenge_id = row.id
        code_hash = row.code_hash
        if row.is_expired(now):
            db.session.execute(
                delete(OtpChallenge).where(
                    OtpChallenge.id == challenge_id,
                    OtpChallenge.code_hash == code_hash,
                    OtpChallenge.expires_at <= now,
                )
            )
            db.session.commit()
            logger.info("OTP for %s expired; record purged", email)
            return VerifyResult.EXPIRED

        if not is_well_formed(code) or not verify_otp(code, code_hash):
            db.session.execute(
                update(OtpChallenge)
                .where(OtpChallenge.id == challenge_id, OtpChallenge.code_hash == code_hash)
                .values(failed_attempts=OtpChallenge.failed_attempts + 1)
            )
            db.session.commit()
            logger.info("Invalid OTP submitted for %s", email)
            return VerifyResult.INVALID_CODE

        result = db.session.execute(
            delete(OtpChallenge).where(
                OtpChallenge.id == challenge_id,
                OtpChallenge.code_hash == code_hash,
                OtpChallenge.expires_at > now,
            )
        )
        db.session.commit()
        if result.rowcount != 1:
            # Consumed by a concurrent verifier or replaced by a re-issue.
            logger.info("OTP for %s already consumed", email)
            return VerifyResult.NOT_FOUND

        logger.info("OTP verified for %s", email)
        return VerifyResult.OK

    def purge_expired(self, now=None) -> int:
        now = now or utcnow()
        result = db.session.execute(delete(OtpChallenge).where(OtpChallenge.expires_at <= now))
        db.session.commit()
        return result.rowcount

    def clear(self) -> int:
        result = db.session.execute(delete(OtpChallenge))
        db.session.commit()
        return result.rowcount
