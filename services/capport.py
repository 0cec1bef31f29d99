"""
RFC 8908 CAPTIVE-PORTAL-API response body and headers.
"""
from utils.time_helper import utcnow

CAPTIVE_JSON = 'application/captive+json'

CAPPORT_HEADERS = {
    'Content-Type': CAPTIVE_JSON,
    'Cache-Control': 'private, no-store',
}


class CaptivePublisher:
    """Pure rendering of a (lazily expired) client session."""

    def __init__(self, portal_url, venue_info_url=None):
        self.portal_url = portal_url
        self.venue_info_url = venue_info_url

    def captive_body(self):
        body = {
            'captive': True,
            'user-portal-url': self.portal_url,
        }
        if self.venue_info_url:
            body['venue-info-url'] = self.venue_info_url
        return body

    def render(self, session, now=None):
        now = now or utcnow()
        body = self.captive_body()
        if session is None or session.captive or session.expires_at is None or session.is_expired(now):
            return body

        body['captive'] = False
        body['seconds-remaining'] = session.seconds_remaining(now)
        body['can-extend-session'] = True
        return body

    def headers(self):
        return dict(CAPPORT_HEADERS)
