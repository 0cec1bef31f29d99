"""
Models package for the captive portal
"""
from flask_sqlalchemy import SQLAlchemy

db = SQLAlchemy()

# Import all models here to ensure they're registered
from models.otp_challenge import OtpChallenge
from models.client_session import ClientSession
from models.rate_limit import RateLimitRecord

__all__ = [
    'db',
    'OtpChallenge',
    'ClientSession',
    'RateLimitRecord',
]
