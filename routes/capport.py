"""
RFC 8908 CAPTIVE-PORTAL-API routes.
Always answers application/captive+json; any doubt resolves to captive: true.
"""
from flask import Blueprint, current_app, jsonify, request

from models import db
from routes.identity import request_ip, resolve_identity
from services import get_services
from utils.errors import ValidationError

capport_bp = Blueprint('capport', __name__)


def _captive_json(body, status):
    response = jsonify(body)
    response.status_code = status
    response.headers.update(get_services().publisher.headers())
    return response


def _capport_response(token=None):
    services = get_services()
    publisher = services.publisher
    args = request.args
    ip = args.get('ip') or request_ip()

    try:
        resolved = resolve_identity(
            services,
            ip=ip,
            mac=args.get('mac'),
            token=token or args.get('token'),
            email=args.get('email'),
            force_token=token is not None,
        )
    except ValidationError as e:
        current_app.logger.info("Malformed capport request from %s: %s", request_ip(), e.message)
        return _captive_json({'error': e.message, 'captive': True}, 400)

    try:
        if resolved.key is None:
            current_app.logger.warning("Identity not resolved for %s, defaulting to captive state", ip)
            return _captive_json(publisher.render(None), 200)

        session = services.session_store.get(resolved.key)
        body = publisher.render(session)
        if body['captive']:
            current_app.logger.info("Client in captive state: %s", resolved.key.key)
        else:
            current_app.logger.info("Active session found: %s (%ss remaining)",
                                    resolved.key.key, body['seconds-remaining'])
        return _captive_json(body, 200)
    except Exception as e:
        current_app.logger.error(f"Capport API error for {ip}: {str(e)}", exc_info=True)
        db.session.rollback()
        body = publisher.captive_body()
        body['error'] = 'Internal server error'
        return _captive_json(body, 500)


@capport_bp.route('/capport/api', methods=['GET'])
def capport_api():
    """Captive state keyed by ?ip=&mac= (defaults to the caller's address)."""
    return _capport_response()


@capport_bp.route('/capport/api/<token>', methods=['GET'])
def capport_api_token(token):
    """Captive state keyed by the portal token in the URL."""
    return _capport_response(token=token)
