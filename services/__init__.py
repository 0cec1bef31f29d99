"""
Service objects for the captive portal, built once per app by create_app()
and reached from request handlers through get_services().
"""
from flask import current_app

from services.capport import CaptivePublisher
from services.firewall import FirewallEnforcer
from services.lease_resolver import LeaseResolver
from services.otp_service import OtpService
from services.rate_limiter import RateLimiter
from services.session_store import SessionStore
from utils.mail import OtpMailer

EXTENSION_KEY = 'capport'


class CaptivePortalServices:
    """Explicitly constructed collaborators with a controlled lifecycle."""

    def __init__(self, lease_resolver, otp_service, session_store, rate_limiter,
                 publisher, firewall, mailer):
        self.lease_resolver = lease_resolver
        self.otp_service = otp_service
        self.session_store = session_store
        self.rate_limiter = rate_limiter
        self.publisher = publisher
        self.firewall = firewall
        self.mailer = mailer
        self.closed = False

    @classmethod
    def from_app(cls, app, firewall_runner=None):
        config = app.config
        mailer = OtpMailer(app, timeout=config.get('MAIL_SEND_TIMEOUT_SECONDS', 10))
        firewall_kwargs = {}
        if firewall_runner is not None:
            firewall_kwargs['runner'] = firewall_runner
        return cls(
            lease_resolver=LeaseResolver(config.get('LEASE_FILE_PATH')),
            otp_service=OtpService(mailer),
            session_store=SessionStore(session_ttl=config['SESSION_TTL']),
            rate_limiter=RateLimiter(),
            publisher=CaptivePublisher(config['PORTAL_URL'], config.get('VENUE_INFO_URL')),
            firewall=FirewallEnforcer(
                iptables_path=config.get('IPTABLES_PATH', 'iptables'),
                enabled=config.get('FIREWALL_ENABLED', False),
                command_timeout=config.get('FIREWALL_COMMAND_TIMEOUT', 5),
                **firewall_kwargs,
            ),
            mailer=mailer,
        )

    def close(self):
        if self.closed:
            return
        self.closed = True
        self.firewall.close()
        self.mailer.close()


def get_services() -> CaptivePortalServices:
    return current_app.extensions[EXTENSION_KEY]
