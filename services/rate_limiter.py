"""
Cooldown + fixed hourly window abuse control, keyed by identifier and limit type.

The hourly window is fixed, not sliding: the counter resets wholesale once
more than an hour has passed since window_start, so up to 2x the cap can land
around a window boundary.
"""
import logging
import math
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy import case, delete, select

from models import db
from models.rate_limit import RateLimitRecord
from utils.db_helper import upsert
from utils.time_helper import utcnow

logger = logging.getLogger(__name__)

WINDOW = timedelta(hours=1)


@dataclass(frozen=True)
class Decision:
    allowed: bool
    message: Optional[str] = None
    retry_after_seconds: Optional[int] = None

    def __bool__(self):
        return self.allowed


ADMIT = Decision(allowed=True)


def deny(message, retry_after_seconds=None):
    return Decision(allowed=False, message=message, retry_after_seconds=retry_after_seconds)


@dataclass(frozen=True)
class RatePolicy:
    """One check against one identifier; cooldown and/or hourly cap."""
    identifier: str
    limit_type: str
    cooldown_seconds: Optional[int] = None
    max_per_hour: Optional[int] = None


class RateLimiter:
    """Owns the rate_limits table."""

    def _get(self, identifier, limit_type):
        return db.session.execute(
            select(RateLimitRecord).where(
                RateLimitRecord.identifier == identifier,
                RateLimitRecord.limit_type == limit_type,
            )
        ).scalar_one_or_none()

    def check_cooldown(self, identifier, limit_type, cooldown_seconds, now=None) -> Decision:
        now = now or utcnow()
        record = self._get(identifier, limit_type)
        if record is None:
            return ADMIT

        elapsed = (now - record.last_request).total_seconds()
        if elapsed < cooldown_seconds:
            remaining = math.ceil(cooldown_seconds - elapsed)
            return deny(f"Please wait {remaining} seconds before requesting again", remaining)
        return ADMIT

    def check_hourly_window(self, identifier, limit_type, max_requests, now=None) -> Decision:
        now = now or utcnow()
        record = self._get(identifier, limit_type)
        if record is None:
            return ADMIT

        since_start = now - record.window_start
        if since_start > WINDOW:
            return ADMIT

        if record.request_count >= max_requests:
            remaining_minutes = math.ceil((WINDOW - since_start).total_seconds() / 60)
            return deny(
                f"Too many requests. Please try again in {remaining_minutes} minutes",
                remaining_minutes * 60,
            )
        return ADMIT

    def record_usage(self, identifier, limit_type, now=None):
        """Count one request: new row, window reset, or increment, in one statement."""
        now = now or utcnow()
        window_expired = RateLimitRecord.window_start < now - WINDOW
        upsert(
            RateLimitRecord,
            dict(identifier=identifier, limit_type=limit_type, request_count=1,
                 window_start=now, last_request=now),
            index_elements=['identifier', 'limit_type'],
            set_={
                'request_count': case((window_expired, 1), else_=RateLimitRecord.request_count + 1),
                'window_start': case((window_expired, now), else_=RateLimitRecord.window_start),
                'last_request': now,
            },
        )
        db.session.commit()

    def check(self, policy: RatePolicy, now=None) -> Decision:
        if policy.cooldown_seconds:
            decision = self.check_cooldown(policy.identifier, policy.limit_type, policy.cooldown_seconds, now=now)
            if not decision:
                return decision
        if policy.max_per_hour:
            return self.check_hourly_window(policy.identifier, policy.limit_type, policy.max_per_hour, now=now)
        return ADMIT

    def admit(self, policies, now=None) -> Decision:
        """
        All policies must admit. Usage is recorded for every policy only after
        all of them have admitted.
        """
        now = now or utcnow()
        for policy in policies:
            decision = self.check(policy, now=now)
            if not decision:
                logger.info("Rate limit hit: %s for %s", policy.limit_type, policy.identifier)
                return decision
        for policy in policies:
            self.record_usage(policy.identifier, policy.limit_type, now=now)
        return ADMIT

    def purge_stale(self, older_than=timedelta(hours=24), now=None) -> int:
        now = now or utcnow()
        result = db.session.execute(
            delete(RateLimitRecord).where(RateLimitRecord.last_request < now - older_than)
        )
        db.session.commit()
        return result.rowcount

    def clear(self) -> int:
        result = db.session.execute(delete(RateLimitRecord))
        db.session.commit()
        return result.rowcount
