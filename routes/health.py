"""
Liveness probe for the process supervisor.
"""
from flask import Blueprint, current_app, jsonify
from sqlalchemy import text

from models import db
from utils.time_helper import utcnow

health_bp = Blueprint('health', __name__)


@health_bp.route('/health', methods=['GET'])
def health():
    """Process is up; reports whether the database answers."""
    database = 'ok'
    try:
        db.session.execute(text('SELECT 1'))
    except Exception as e:
        current_app.logger.error(f"Health check database error: {str(e)}", exc_info=True)
        db.session.rollback()
        database = 'error'
    status = 'ok' if database == 'ok' else 'degraded'
    return jsonify({
        'status': status,
        'database': database,
        'timestamp': utcnow().isoformat() + 'Z',
    }), 200 if status == 'ok' else 503
