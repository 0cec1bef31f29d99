"""
Coarse User-Agent classification stored with each client session.
Only enough detail to tell devices apart in the admin view.
"""
import re

# Order matters: Edge and Opera also announce Chrome, Chrome announces Safari.
_BROWSERS = (
    ('Edge', re.compile(r'Edg(?:e|A|iOS)?/([\d.]+)')),
    ('Opera', re.compile(r'(?:OPR|Opera)/([\d.]+)')),
    ('Samsung Internet', re.compile(r'SamsungBrowser/([\d.]+)')),
    ('Firefox', re.compile(r'(?:Firefox|FxiOS)/([\d.]+)')),
    ('Chrome', re.compile(r'(?:Chrome|CriOS)/([\d.]+)')),
    ('Safari', re.compile(r'Version/([\d.]+).*Safari/')),
)

_OSES = (
    ('iOS', re.compile(r'(?:iPhone|iPad|iPod).*? OS ([\d_]+)')),
    ('Android', re.compile(r'Android ([\d.]+)')),
    ('Windows', re.compile(r'Windows NT ([\d.]+)')),
    ('Mac OS', re.compile(r'Mac OS X ([\d_.]+)')),
    ('Chrome OS', re.compile(r'CrOS \S+ ([\d.]+)')),
    ('Linux', re.compile(r'Linux()')),
)

_ENGINES = (
    ('Blink', re.compile(r'Chrome/')),
    ('Gecko', re.compile(r'Gecko/')),
    ('WebKit', re.compile(r'AppleWebKit/')),
    ('Trident', re.compile(r'Trident/')),
)


def _first_match(table, ua):
    for name, pattern in table:
        m = pattern.search(ua)
        if m:
            if not pattern.groups:
                return name, None
            return name, (m.group(1).replace('_', '.') or None)
    return None, None


def parse_user_agent(user_agent, platform=None):
    """
    Return session metadata columns for a User-Agent string.
    Unknown parts are None; never raises.
    """
    ua = (user_agent or '').strip()
    browser, browser_version = _first_match(_BROWSERS, ua)
    os_name, os_version = _first_match(_OSES, ua)
    engine, _ = _first_match(_ENGINES, ua)

    if re.search(r'iPad|Tablet', ua) or ('Android' in ua and 'Mobile' not in ua):
        device = 'tablet'
    elif re.search(r'Mobi|iPhone|iPod', ua):
        device = 'mobile'
    elif ua:
        device = 'desktop'
    else:
        device = None

    return {
        'user_agent': ua or None,
        'platform': (platform or '').strip()[:100] or None,
        'browser': browser,
        'browser_version': browser_version,
        'os': os_name,
        'os_version': os_version,
        'device': device,
        'engine': engine,
        'is_mobile': device in ('mobile', 'tablet'),
    }
