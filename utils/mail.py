"""
Email utility functions
"""
import logging
from concurrent.futures import ThreadPoolExecutor, TimeoutError as FuturesTimeout

from flask import current_app
from flask_mail import Mail, Message

from utils.errors import DependencyFailure
from utils.otp_helper import OTP_EXPIRY_MINUTES

mail = Mail()

logger = logging.getLogger(__name__)

OTP_SEND_FAIL_MSG = "Failed to send OTP"
MAIL_NOT_CONFIGURED_MSG = "Email service is not configured. Please contact support."


def build_otp_message(email: str, otp: str) -> Message:
    """
    OTP email. Subject: "Your OTP Code".
    Uses clean HTML template; fallback plain body.
    """
    body = (
        f"Your OTP is {otp}. It expires in {OTP_EXPIRY_MINUTES} minutes. "
        "Do not share this code."
    )
    return Message(
        subject="Your OTP Code",
        recipients=[email],
        body=body,
        html=_otp_email_html(otp),
        sender=current_app.config.get("MAIL_DEFAULT_SENDER"),
    )


def _otp_email_html(otp: str) -> str:
    """Clean HTML template for OTP email."""
    return f"""
    <!DOCTYPE html>
    <html>
    <head><meta charset="utf-8"><title>Your Wi-Fi access code</title></head>
    <body style="font-family: system-ui, sans-serif; max-width: 480px; margin: 0 auto; padding: 24px;">
        <h2 style="color: #1a1a2e;">Your Wi-Fi access code</h2>
        <p>Enter the code below on the portal page to get online:</p>
        <p style="font-size: 28px; font-weight: bold; letter-spacing: 6px; color: #16213e;">{otp}</p>
        <p style="color: #666;">This code expires in {OTP_EXPIRY_MINUTES} minutes. Do not share it with anyone.</p>
        <hr style="border: none; border-top: 1px solid #eee; margin: 24px 0;">
        <p style="font-size: 12px; color: #999;">If you did not request this, you can ignore this email.</p>
    </body>
    </html>
    """


class OtpMailer:
    """
    Sends OTP emails through Flask-Mail on a worker thread so a hung SMTP
    server cannot block the request past `timeout` seconds.
    """

    def __init__(self, app, timeout=10.0, max_workers=4):
        self.app = app
        self.timeout = timeout
        self._executor = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="otp-mail")

    def ensure_configured(self):
        config = self.app.config
        if not config.get("MAIL_SERVER"):
            self.app.logger.error("Cannot send OTP email: MAIL_SERVER is not configured")
            raise DependencyFailure(MAIL_NOT_CONFIGURED_MSG)
        if not config.get("MAIL_USERNAME") and not config.get("MAIL_SUPPRESS_SEND"):
            self.app.logger.error("Cannot send OTP email: MAIL_USERNAME is not configured")
            raise DependencyFailure(MAIL_NOT_CONFIGURED_MSG)

    def send_otp(self, email: str, otp: str) -> None:
        """Deliver the code or raise DependencyFailure (timeouts included)."""
        self.ensure_configured()
        with self.app.app_context():
            msg = build_otp_message(email, otp)
        future = self._executor.submit(self._send, msg)
        try:
            future.result(timeout=self.timeout)
        except FuturesTimeout:
            logger.error("SMTP send to %s timed out after %ss", email, self.timeout)
            raise DependencyFailure(OTP_SEND_FAIL_MSG)
        except Exception as e:
            logger.error("SMTP error sending OTP email to %s: %s", email, e, exc_info=True)
            raise DependencyFailure(OTP_SEND_FAIL_MSG) from e

    def _send(self, msg):
        with self.app.app_context():
            mail.send(msg)

    def close(self):
        self._executor.shutdown(wait=False)
