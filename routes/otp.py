"""
Portal authentication routes: send OTP and verify OTP.
Reachable at /send-otp and /verify-otp, and under /api for the SPA front-end.
"""
from flask import Blueprint, current_app, jsonify, request

from models import db
from routes.identity import request_ip, resolve_identity
from services import get_services
from services.otp_service import VerifyResult
from services.rate_limiter import RatePolicy
from utils.errors import (
    CaptivePortalError,
    NotFoundError,
    QuotaExceededError,
    RateLimitError,
    ValidationError,
)
from utils.identity import normalize_email
from utils.user_agent import parse_user_agent

otp_bp = Blueprint('otp', __name__)

GENERIC_ERROR = "Internal server error"
OTP_SUCCESS_MSG = "OTP sent to email"
OTP_VERIFY_SUCCESS_MSG = "OTP verified"
ALREADY_AUTHENTICATED_MSG = "You already have access"
DEVICE_NOT_RESOLVED_MSG = "Unable to identify your device. Please reconnect to the network."

VERIFY_ERRORS = {
    VerifyResult.NOT_FOUND: "No OTP found",
    VerifyResult.EXPIRED: "OTP has expired",
    VerifyResult.INVALID_CODE: "Invalid OTP",
}


@otp_bp.errorhandler(CaptivePortalError)
def handle_portal_error(e):
    return jsonify(e.to_dict()), e.status_code


def _json_body():
    data = request.get_json(silent=True)
    return data if isinstance(data, dict) else {}


def _browser_metadata(data):
    info = data.get('browserInfo')
    if not isinstance(info, dict):
        info = {}
    user_agent = info.get('userAgent') or request.headers.get('User-Agent')
    return parse_user_agent(user_agent, info.get('platform'))


def _resolve_device(services, data, email):
    resolved = resolve_identity(
        services,
        ip=request_ip(),
        mac=data.get('mac'),
        token=data.get('token'),
        email=email,
    )
    if resolved.key is None:
        raise ValidationError(DEVICE_NOT_RESOLVED_MSG)
    return resolved


def _send_otp_policies(email, ip):
    config = current_app.config
    return [
        RatePolicy(
            identifier=email,
            limit_type='send_otp_email',
            cooldown_seconds=config['OTP_EMAIL_COOLDOWN_SECONDS'],
            max_per_hour=config['OTP_EMAIL_MAX_PER_HOUR'],
        ),
        RatePolicy(
            identifier=ip,
            limit_type='send_otp_ip',
            max_per_hour=config['OTP_IP_MAX_PER_HOUR'],
        ),
    ]


def _check_device_quota(services, email, identity):
    limit = current_app.config['MAX_DEVICES_PER_EMAIL']
    if not limit:
        return
    active = services.session_store.active_devices_for_email(email, exclude=identity)
    if active >= limit:
        raise QuotaExceededError(f"Device limit reached: {limit} devices already connected with this email")


@otp_bp.route('/send-otp', methods=['POST'])
@otp_bp.route('/api/send-otp', methods=['POST'])
def send_otp():
    """
    Email a one-time code and record the device as pending.
    Input (JSON): email, mac?, token?, browserInfo {userAgent, platform}.
    """
    services = get_services()
    data = _json_body()
    email = normalize_email(data.get('email'))
    ip = request_ip()

    try:
        decision = services.rate_limiter.admit(_send_otp_policies(email, ip))
        if not decision:
            raise RateLimitError(decision.message, retry_after=decision.retry_after_seconds)

        resolved = _resolve_device(services, data, email)
        identity = resolved.key

        if services.session_store.is_authenticated(identity):
            return jsonify({"success": False, "message": ALREADY_AUTHENTICATED_MSG})
        _check_device_quota(services, email, identity)

        services.otp_service.issue(email)

        metadata = _browser_metadata(data)
        if resolved.lease is not None and resolved.lease.hostname:
            metadata['hostname'] = resolved.lease.hostname
        services.session_store.upsert(
            identity, metadata=metadata, captive=True, expires_at=None,
            email=email, client_ip=resolved.client_ip or ip,
        )
        return jsonify({"success": True, "message": OTP_SUCCESS_MSG})
    except CaptivePortalError:
        raise
    except Exception as e:
        current_app.logger.error(f"Unexpected error in send_otp for {email}: {str(e)}", exc_info=True)
        db.session.rollback()
        return jsonify({"success": False, "error": GENERIC_ERROR}), 500


@otp_bp.route('/verify-otp', methods=['POST'])
@otp_bp.route('/api/verify-otp', methods=['POST'])
def verify_otp():
    """
    Verify the code, authenticate the device and open DNS for it.
    Input (JSON): email, otp, mac?, token?, browserInfo?.
    """
    services = get_services()
    data = _json_body()
    raw_email = data.get('email')
    otp = str(data.get('otp') or '').strip()
    if not raw_email or not otp:
        raise ValidationError("Email and OTP are required")
    email = normalize_email(raw_email)
    ip = request_ip()

    try:
        resolved = _resolve_device(services, data, email)
        identity = resolved.key
        _check_device_quota(services, email, identity)

        result = services.otp_service.verify(email, otp)
        if result is not VerifyResult.OK:
            raise NotFoundError(VERIFY_ERRORS[result])

        metadata = _browser_metadata(data) if data.get('browserInfo') else None
        services.session_store.mark_authenticated(
            identity, email=email, metadata=metadata, client_ip=resolved.client_ip or ip,
        )
        # The client is told "verified" whatever the firewall outcome.
        services.firewall.grant(resolved.client_ip or ip)
        return jsonify({"success": True, "message": OTP_VERIFY_SUCCESS_MSG})
    except CaptivePortalError:
        raise
    except Exception as e:
        current_app.logger.error(f"Error verifying OTP for {email}: {str(e)}", exc_info=True)
        db.session.rollback()
        return jsonify({"success": False, "error": GENERIC_ERROR}), 500
