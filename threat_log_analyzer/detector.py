# ==================== FORMAT DETECTOR ====================
# Classifies an uploaded file into one of the supported log dialects by
# looking at its first non-blank line only.

import re

WEBSERVER = 'webserver'
ZSCALER_WEB = 'zscaler_web'
ZSCALER_FIREWALL = 'zscaler_firewall'
ZSCALER_DNS = 'zscaler_dns'
ZSCALER_SSL = 'zscaler_ssl'
ZSCALER_THREAT = 'zscaler_threat'
UNKNOWN = 'unknown'

DIALECTS = (
    WEBSERVER,
    ZSCALER_WEB,
    ZSCALER_FIREWALL,
    ZSCALER_DNS,
    ZSCALER_SSL,
    ZSCALER_THREAT,
)

DIALECT_LABELS = {
    WEBSERVER: 'Web Server',
    ZSCALER_WEB: 'ZScaler Web Proxy',
    ZSCALER_FIREWALL: 'ZScaler Firewall',
    ZSCALER_DNS: 'ZScaler DNS',
    ZSCALER_SSL: 'ZScaler SSL Inspection',
    ZSCALER_THREAT: 'ZScaler Threat',
    UNKNOWN: 'unknown',
}

ISO_TIMESTAMP = re.compile(r'^\d{4}-\d{2}-\d{2}T\d{2}:\d{2}:\d{2}')
APACHE_TIMESTAMP = re.compile(r'^\d{2}/\w{3}/\d{4}:\d{2}:\d{2}:\d{2}')
HTTP_VERSION = re.compile(r'HTTP/\d')
QUOTED = re.compile(r'"[^"]*"')

# Header-token rules, checked in order after the webserver grammar
KEYWORD_RULES = (
    (ZSCALER_FIREWALL, ('action', 'protocol')),
    (ZSCALER_DNS, ('query_type', 'query_name')),
    (ZSCALER_SSL, ('ssl_version', 'cipher_suite')),
    (ZSCALER_THREAT, ('threat_type', 'threat_name')),
)


def split_lines(content):
    """Return the non-blank lines of content, stripped"""
    return [line.strip() for line in content.splitlines() if line.strip()]


def is_webserver_line(line):
    return (
        '[' in line
        and ']' in line
        and QUOTED.search(line) is not None
        and HTTP_VERSION.search(line) is not None
    )


def detect_positional(fields):
    """Guess a dialect from the field layout of a headerless CSV line"""
    if len(fields) == 9 and '.' not in fields[1]:
        return ZSCALER_FIREWALL
    if len(fields) == 7 and fields[3] and '.' not in fields[3]:
        return ZSCALER_DNS
    if len(fields) == 7 and ('SSL' in fields[3] or 'TLS' in fields[3]):
        return ZSCALER_SSL
    if len(fields) == 9 and 'Mozilla' in fields[3]:
        return ZSCALER_WEB
    return ZSCALER_WEB


def detect_line(first_line):
    """Apply the ordered detection rules to a single line"""
    if is_webserver_line(first_line):
        return WEBSERVER

    if ',' not in first_line:
        return WEBSERVER

    for dialect, tokens in KEYWORD_RULES:
        if all(token in first_line for token in tokens):
            return dialect

    fields = [part.strip() for part in first_line.split(',')]
    first_field = fields[0]
    if (ISO_TIMESTAMP.match(first_field) or APACHE_TIMESTAMP.match(first_field)) \
            and 'user_agent' in first_line:
        return ZSCALER_WEB

    return detect_positional(fields)


def detect(content):
    """Detect the dialect of content.

    Returns a ``(dialect, lines)`` tuple where ``lines`` holds the non-blank
    lines of the file. Empty content yields ``('unknown', [])``.
    """
    lines = split_lines(content or '')
    if not lines:
        return UNKNOWN, []
    return detect_line(lines[0]), lines
