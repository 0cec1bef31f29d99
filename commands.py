"""
Operator commands, run through the Flask CLI:

    flask --app app capport purge
    flask --app app capport show-session 10.0.0.23
    flask --app app capport clear-otps
    flask --app app capport clear-all
"""
from datetime import timedelta

import click
from flask import current_app
from flask.cli import AppGroup

from models import db
from models.client_session import ClientSession
from services import get_services
from utils.time_helper import utcnow

capport_cli = AppGroup('capport', help='Captive portal maintenance.')


@capport_cli.command('purge')
@click.option('--rate-limit-age-hours', default=24, show_default=True,
              help='Drop rate-limit records idle for longer than this.')
def purge(rate_limit_age_hours):
    """Remove expired OTPs and idle rate limits; close expired sessions."""
    services = get_services()
    now = utcnow()
    otps = services.otp_service.purge_expired(now=now)
    limits = services.rate_limiter.purge_stale(timedelta(hours=rate_limit_age_hours), now=now)
    expired = services.session_store.expire_stale(now=now)
    for session in expired:
        if session.client_ip:
            services.firewall.revoke(session.client_ip)
    services.firewall.wait_pending()
    click.echo(f"Purged {otps} expired OTPs, {limits} rate-limit records; closed {len(expired)} sessions.")


@capport_cli.command('show-session')
@click.argument('ip')
def show_session(ip):
    """Print the stored sessions for a client IP."""
    rows = ClientSession.query.filter_by(client_ip=ip).order_by(ClientSession.id.desc()).all()
    if not rows:
        click.echo(f"No session for {ip}")
        return
    now = utcnow()
    for row in rows:
        click.echo(
            f"{row.identity_key} state={row.state(now)} email={row.email or '-'} "
            f"expires={row.expires_at.isoformat() if row.expires_at else '-'} "
            f"device={row.device or '-'} browser={row.browser or '-'}"
        )


@capport_cli.command('clear-otps')
@click.confirmation_option(prompt='Delete ALL OTP records?')
def clear_otps():
    """Delete every OTP challenge."""
    count = get_services().otp_service.clear()
    click.echo(f"Deleted {count} OTP records")


@capport_cli.command('clear-all')
@click.confirmation_option(prompt='Delete ALL records from ALL tables?')
def clear_all():
    """Delete every OTP, session and rate-limit record."""
    services = get_services()
    counts = {
        'otp_challenges': services.otp_service.clear(),
        'client_sessions': services.session_store.clear(),
        'rate_limits': services.rate_limiter.clear(),
    }
    for table, count in counts.items():
        click.echo(f"Cleared {table}: {count} rows")
    current_app.logger.info("All portal tables cleared from CLI")


@capport_cli.command('init-db')
def init_db():
    """Create missing tables."""
    db.create_all()
    click.echo("Database tables verified/created")
