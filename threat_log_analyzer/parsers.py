# ==================== LOG PARSER ====================
# One line parser per dialect. Each returns either a NormalizedLogRecord or a
# SkipReason; malformed lines never raise.

import logging
import re
from datetime import datetime, timedelta, timezone

import pandas as pd

from . import rules
from .detector import (
    WEBSERVER, ZSCALER_WEB, ZSCALER_FIREWALL, ZSCALER_DNS, ZSCALER_SSL,
    ZSCALER_THREAT, UNKNOWN,
)
from .models import NormalizedLogRecord, ParseReport, SkipReason

logger = logging.getLogger(__name__)

WEBSERVER_LINE = re.compile(
    r'^(\S+) - - \[([^\]]+)\] "(\S+) (\S+) (\S+)" (\d+) (\d+) "([^"]*)" "([^"]*)"$'
)
APACHE_TIMESTAMP = re.compile(
    r'(\d{2})/(\w{3})/(\d{4}):(\d{2}):(\d{2}):(\d{2}) ([+\-])(\d{2})(\d{2})'
)

MONTHS = {
    'Jan': 1, 'Feb': 2, 'Mar': 3, 'Apr': 4, 'May': 5, 'Jun': 6,
    'Jul': 7, 'Aug': 8, 'Sep': 9, 'Oct': 10, 'Nov': 11, 'Dec': 12,
}

DEFAULT_HEADER_MARKERS = ('timestamp,source_ip', 'source_ip,destination_ip')
FIREWALL_HEADER_MARKERS = ('timestamp,action', 'action,protocol')

HEADER = 'header'


# Values handed to pandas must carry an explicit calendar date; bare times and
# words like "now" resolve against the clock.
CALENDAR_DATE = re.compile(
    r'\d{4}[-/.]\d{1,2}[-/.]\d{1,2}'
    r'|\d{1,2}[-/.]\d{1,2}[-/.]\d{4}'
    r'|\d{1,2}[-/ ][A-Za-z]{3,9}[-/ ]\d{4}'
    r'|[A-Za-z]{3,9}\.? \d{1,2},? \d{4}'
)
RELATIVE_DATE = re.compile(r'\b(now|today|yesterday|tomorrow)\b', re.IGNORECASE)


class InvalidTimestamp(ValueError):
    pass


def to_utc(ts):
    """Convert to UTC, or None when the shift leaves the datetime range"""
    if ts.tzinfo is None:
        return ts.replace(tzinfo=timezone.utc)
    try:
        return ts.astimezone(timezone.utc)
    except OverflowError:
        return None


def parse_timestamp(value):
    """Parse a generic date-time string into an aware UTC datetime.

    Returns None when the value cannot be understood.
    """
    value = (value or '').strip()
    if not value:
        return None

    try:
        iso = value[:-1] + '+00:00' if value.endswith('Z') else value
        ts = datetime.fromisoformat(iso)
    except ValueError:
        ts = None

    if ts is None:
        if RELATIVE_DATE.search(value) or not CALENDAR_DATE.search(value):
            return None
        try:
            parsed = pd.to_datetime(value, utc=True, errors='coerce')
        except (ValueError, TypeError, OverflowError):
            return None
        if pd.isna(parsed):
            return None
        ts = parsed.to_pydatetime()

    return to_utc(ts)


def parse_apache_timestamp(value):
    """Parse ``DD/Mon/YYYY:HH:MM:SS +ZZZZ``, falling back to parse_timestamp.

    Raises InvalidTimestamp for an unknown month name.
    """
    match = APACHE_TIMESTAMP.search(value)
    if not match:
        return parse_timestamp(value)

    day, month, year, hour, minute, second, sign, off_h, off_m = match.groups()
    month_num = MONTHS.get(month)
    if month_num is None:
        raise InvalidTimestamp(f'invalid month {month!r}')

    offset = timedelta(hours=int(off_h), minutes=int(off_m))
    if sign == '-':
        offset = -offset
    try:
        ts = datetime(int(year), month_num, int(day), int(hour), int(minute),
                      int(second), tzinfo=timezone(offset))
    except ValueError:
        return None
    return to_utc(ts)


def to_int(value):
    try:
        return int(value)
    except (TypeError, ValueError):
        return 0


def is_header(line, markers):
    return line.startswith('#') or any(marker in line for marker in markers)


def split_fields(line, minimum):
    parts = [part.strip() for part in line.split(',')]
    if len(parts) < minimum:
        return None
    return parts


def _skip(line_number, line, reason):
    return SkipReason(line_number=line_number, line=line, reason=reason)


def _csv_prelude(line, line_number, minimum, markers=DEFAULT_HEADER_MARKERS):
    """Shared header / field-count / timestamp checks for CSV dialects"""
    if is_header(line, markers):
        return None, None, _skip(line_number, line, HEADER)
    parts = split_fields(line, minimum)
    if parts is None:
        return None, None, _skip(line_number, line, f'expected at least {minimum} fields')
    timestamp = parse_timestamp(parts[0])
    if timestamp is None:
        return None, None, _skip(line_number, line, f'invalid timestamp {parts[0]!r}')
    return parts, timestamp, None


def parse_zscaler_web_line(line, line_number):
    """timestamp,source_ip,destination_ip,user_agent,url,action,status_code,bytes_sent,bytes_received"""
    parts, timestamp, skip = _csv_prelude(line, line_number, 9)
    if skip:
        return skip

    source_ip, destination_ip, user_agent, url, action = parts[1:6]
    fields = {
        'url': url,
        'action': action,
        'status_code': to_int(parts[6]),
        'user_agent': user_agent,
    }
    category, severity = rules.analyze(rules.WEB_RULES, fields)

    return NormalizedLogRecord(
        timestamp=timestamp,
        source_ip=source_ip,
        destination_ip=destination_ip,
        user_agent=user_agent,
        url=url,
        action=action,
        status_code=fields['status_code'],
        bytes_sent=to_int(parts[7]),
        bytes_received=to_int(parts[8]),
        threat_category=category,
        severity=severity,
        log_type='web',
    )


def parse_webserver_line(line, line_number):
    """Apache / Nginx combined log format"""
    if is_header(line, DEFAULT_HEADER_MARKERS):
        return _skip(line_number, line, HEADER)

    match = WEBSERVER_LINE.match(line)
    if not match:
        return _skip(line_number, line, 'does not match combined log format')

    source_ip, ts_value, method, url, _, status, size, _, user_agent = match.groups()
    try:
        timestamp = parse_apache_timestamp(ts_value)
    except InvalidTimestamp as e:
        return _skip(line_number, line, str(e))
    if timestamp is None:
        return _skip(line_number, line, f'invalid timestamp {ts_value!r}')

    fields = {
        'url': url,
        'action': method,
        'status_code': int(status),
        'user_agent': user_agent,
    }
    category, severity = rules.analyze(rules.WEB_RULES, fields)

    return NormalizedLogRecord(
        timestamp=timestamp,
        source_ip=source_ip,
        destination_ip='',
        user_agent=user_agent,
        url=url,
        action=method,
        status_code=fields['status_code'],
        bytes_sent=int(size),
        bytes_received=0,
        threat_category=category,
        severity=severity,
        log_type='web',
    )


def parse_firewall_line(line, line_number):
    """timestamp,action,protocol,source_ip,source_port,destination_ip,destination_port,rule_name,threat_category"""
    parts, timestamp, skip = _csv_prelude(line, line_number, 9, FIREWALL_HEADER_MARKERS)
    if skip:
        return skip

    _, action, protocol, source_ip, source_port, destination_ip, destination_port, \
        rule_name, threat_category = parts[:9]
    fields = {
        'action': action,
        'protocol': protocol,
        'destination_port': to_int(destination_port),
        'threat_category': threat_category,
    }
    category, severity = rules.analyze(rules.FIREWALL_RULES, fields)

    return NormalizedLogRecord(
        timestamp=timestamp,
        source_ip=source_ip,
        destination_ip=destination_ip,
        user_agent='',
        url='',
        action=action,
        status_code=0,
        bytes_sent=0,
        bytes_received=0,
        threat_category=category,
        severity=severity,
        log_type='firewall',
        protocol=protocol,
        source_port=to_int(source_port),
        destination_port=fields['destination_port'],
        rule_name=rule_name,
    )


def parse_dns_line(line, line_number):
    """timestamp,source_ip,destination_ip,query_type,query_name,response_code,threat_category"""
    parts, timestamp, skip = _csv_prelude(line, line_number, 7)
    if skip:
        return skip

    _, source_ip, destination_ip, query_type, query_name, response_code, threat_category = parts[:7]
    fields = {
        'query_type': query_type,
        'query_name': query_name,
        'response_code': response_code,
        'threat_category': threat_category,
    }
    category, severity = rules.analyze(rules.DNS_RULES, fields)

    return NormalizedLogRecord(
        timestamp=timestamp,
        source_ip=source_ip,
        destination_ip=destination_ip,
        user_agent='',
        url=query_name,
        action=query_type,
        status_code=0,
        bytes_sent=0,
        bytes_received=0,
        threat_category=category,
        severity=severity,
        log_type='dns',
        query_type=query_type,
        query_name=query_name,
        response_code=response_code,
    )


def parse_ssl_line(line, line_number):
    """timestamp,source_ip,destination_ip,ssl_version,cipher_suite,certificate_subject,threat_category"""
    parts, timestamp, skip = _csv_prelude(line, line_number, 7)
    if skip:
        return skip

    _, source_ip, destination_ip, ssl_version, cipher_suite, certificate_subject, \
        threat_category = parts[:7]
    fields = {
        'ssl_version': ssl_version,
        'cipher_suite': cipher_suite,
        'certificate_subject': certificate_subject,
        'threat_category': threat_category,
    }
    category, severity = rules.analyze(rules.SSL_RULES, fields)

    return NormalizedLogRecord(
        timestamp=timestamp,
        source_ip=source_ip,
        destination_ip=destination_ip,
        user_agent='',
        url='',
        action='SSL_CONNECTION',
        status_code=0,
        bytes_sent=0,
        bytes_received=0,
        threat_category=category,
        severity=severity,
        log_type='ssl',
        ssl_version=ssl_version,
        cipher_suite=cipher_suite,
        certificate_subject=certificate_subject,
    )


def parse_threat_line(line, line_number):
    """timestamp,source_ip,destination_ip,threat_type,threat_name,action,severity"""
    parts, timestamp, skip = _csv_prelude(line, line_number, 7)
    if skip:
        return skip

    _, source_ip, destination_ip, threat_type, threat_name, action, severity_hint = parts[:7]
    fields = {
        'threat_type': threat_type,
        'action': action,
        'severity': severity_hint,
    }
    category, severity = rules.analyze(
        rules.THREAT_RULES, fields, default_category=threat_type or 'Unknown Threat'
    )

    return NormalizedLogRecord(
        timestamp=timestamp,
        source_ip=source_ip,
        destination_ip=destination_ip,
        user_agent='',
        url=threat_name,
        action=action,
        status_code=0,
        bytes_sent=0,
        bytes_received=0,
        threat_category=category,
        severity=severity,
        log_type='threat',
    )


PARSER_MAP = {
    WEBSERVER: parse_webserver_line,
    ZSCALER_WEB: parse_zscaler_web_line,
    ZSCALER_FIREWALL: parse_firewall_line,
    ZSCALER_DNS: parse_dns_line,
    ZSCALER_SSL: parse_ssl_line,
    ZSCALER_THREAT: parse_threat_line,
}


def parse_with_diagnostics(lines, dialect):
    """Parse lines with the given dialect, keeping a record of skipped lines"""
    report = ParseReport(dialect=dialect)
    if dialect == UNKNOWN:
        return report

    try:
        parser = PARSER_MAP[dialect]
    except KeyError:
        raise ValueError(f'Unsupported log dialect: {dialect}')

    for line_number, line in enumerate(lines, 1):
        result = parser(line, line_number)
        if isinstance(result, SkipReason):
            report.skipped.append(result)
            if result.reason != HEADER:
                logger.warning('Skipping %s line %d: %s', dialect, line_number, result.reason)
        else:
            report.records.append(result)

    return report


def parse(lines, dialect):
    """Parse lines into normalized records, dropping malformed ones"""
    return parse_with_diagnostics(lines, dialect).records
