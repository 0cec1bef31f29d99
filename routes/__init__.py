"""
Routes package for the captive portal
"""
# Export blueprints for registration in app.py
from routes.capport import capport_bp
from routes.otp import otp_bp
from routes.health import health_bp

__all__ = [
    'capport_bp',
    'otp_bp',
    'health_bp',
]
