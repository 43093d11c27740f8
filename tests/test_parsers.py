from datetime import datetime, timezone

import pytest

from threat_log_analyzer import parsers
from threat_log_analyzer.detector import DIALECTS
from tests.samples import (
    WEB_LINE, WEB_EXE_LINE, WEBSERVER_LINE, FIREWALL_LINE, DNS_LINE, SSL_LINE,
    THREAT_LINE, FIREWALL_HEADER, DNS_HEADER,
)

SAMPLES = {
    'zscaler_web': (WEB_LINE, 'web'),
    'webserver': (WEBSERVER_LINE, 'web'),
    'zscaler_firewall': (FIREWALL_LINE, 'firewall'),
    'zscaler_dns': (DNS_LINE, 'dns'),
    'zscaler_ssl': (SSL_LINE, 'ssl'),
    'zscaler_threat': (THREAT_LINE, 'threat'),
}

JAN_15_10AM = datetime(2024, 1, 15, 10, 0, tzinfo=timezone.utc)


def test_every_dialect_has_a_sample():
    assert set(SAMPLES) == set(DIALECTS)


@pytest.mark.parametrize('dialect', sorted(SAMPLES))
def test_single_line_yields_one_record(dialect):
    line, log_type = SAMPLES[dialect]
    records = parsers.parse([line], dialect)
    assert len(records) == 1
    assert records[0].log_type == log_type
    assert records[0].severity in ('low', 'medium', 'high', 'critical')


@pytest.mark.parametrize('dialect', sorted(SAMPLES))
def test_too_few_fields_yields_nothing(dialect):
    line, _ = SAMPLES[dialect]
    truncated = ','.join(line.split(',')[:4]) if ',' in line else line[:40]
    report = parsers.parse_with_diagnostics([truncated], dialect)
    assert report.records == []
    assert len(report.skipped) == 1
    assert report.skipped[0].line_number == 1


def test_zscaler_web_normal_request():
    record, = parsers.parse([WEB_LINE], 'zscaler_web')
    assert record.timestamp == JAN_15_10AM
    assert record.source_ip == '1.2.3.4'
    assert record.destination_ip == '5.6.7.8'
    assert record.status_code == 200
    assert record.bytes_sent == 512
    assert record.bytes_received == 1024
    assert record.severity == 'low'
    assert record.threat_category == 'Normal'


def test_zscaler_web_executable_download():
    record, = parsers.parse([WEB_EXE_LINE], 'zscaler_web')
    assert record.severity == 'medium'
    assert record.threat_category == 'Suspicious File Access'


def test_non_numeric_counters_default_to_zero():
    line = "2024-01-15T10:00:00Z,1.2.3.4,5.6.7.8,Mozilla/5.0,/,GET,-,n/a,"
    record, = parsers.parse([line], 'zscaler_web')
    assert (record.status_code, record.bytes_sent, record.bytes_received) == (0, 0, 0)


def test_invalid_timestamp_is_skipped():
    lines = ["yesterday-ish,1.2.3.4,5.6.7.8,Mozilla/5.0,/,GET,200,1,1", WEB_LINE]
    report = parsers.parse_with_diagnostics(lines, 'zscaler_web')
    assert len(report.records) == 1
    assert 'invalid timestamp' in report.skipped[0].reason


def test_webserver_record_shape():
    record, = parsers.parse([WEBSERVER_LINE], 'webserver')
    assert record.timestamp == datetime(2024, 1, 15, 10, 30, 15, tzinfo=timezone.utc)
    assert record.source_ip == '192.168.1.10'
    assert record.destination_ip == ''
    assert record.action == 'GET'
    assert record.url == '/index.html'
    assert record.bytes_sent == 2326
    assert record.bytes_received == 0
    assert record.user_agent == 'Mozilla/5.0'


def test_webserver_timezone_offset_is_applied():
    line = WEBSERVER_LINE.replace('+0000', '-0500')
    record, = parsers.parse([line], 'webserver')
    assert record.timestamp == datetime(2024, 1, 15, 15, 30, 15, tzinfo=timezone.utc)


def test_webserver_unknown_month_is_skipped():
    line = WEBSERVER_LINE.replace('/Jan/', '/Foo/')
    report = parsers.parse_with_diagnostics([line], 'webserver')
    assert report.records == []
    assert 'invalid month' in report.skipped[0].reason


def test_webserver_scanner_post_to_admin():
    line = (
        '10.1.1.1 - - [15/Jan/2024:10:30:15 +0000] "POST /admin/upload HTTP/1.1" '
        '500 12 "-" "sqlmap/1.7"'
    )
    record, = parsers.parse([line], 'webserver')
    assert record.severity == 'critical'
    assert record.threat_category == 'Admin Access Attempt'


def test_firewall_record():
    record, = parsers.parse([FIREWALL_LINE], 'zscaler_firewall')
    assert record.severity == 'critical'
    assert record.threat_category == 'Suspicious Port Access'
    assert record.protocol == 'telnet'
    assert record.source_port == 51515
    assert record.destination_port == 23
    assert record.rule_name == 'Block-Telnet'
    assert record.status_code == 0


def test_firewall_header_is_skipped_quietly(caplog):
    report = parsers.parse_with_diagnostics([FIREWALL_HEADER, FIREWALL_LINE], 'zscaler_firewall')
    assert len(report.records) == 1
    assert report.skipped[0].reason == parsers.HEADER
    assert 'Skipping' not in caplog.text


def test_comment_lines_are_skipped():
    records = parsers.parse(['# exported 2024-01-15', DNS_LINE], 'zscaler_dns')
    assert len(records) == 1


def test_malformed_line_logs_warning(caplog):
    parsers.parse(["2024-01-15T10:00:00Z,only,three"], 'zscaler_dns')
    assert 'Skipping zscaler_dns line 1' in caplog.text


def test_dns_record_reuses_url_and_action():
    line = "2024-01-15T10:00:00Z,10.0.0.5,8.8.8.8,TXT,exfil-data.badsite.xyz,NXDOMAIN,normal"
    record, = parsers.parse([DNS_HEADER, line], 'zscaler_dns')
    assert record.url == 'exfil-data.badsite.xyz'
    assert record.action == 'TXT'
    assert record.query_name == 'exfil-data.badsite.xyz'
    assert record.response_code == 'NXDOMAIN'
    assert record.severity == 'critical'
    assert record.threat_category == 'DNS Resolution Failure'


def test_ssl_record():
    record, = parsers.parse([SSL_LINE], 'zscaler_ssl')
    assert record.action == 'SSL_CONNECTION'
    assert record.ssl_version == 'TLSv1.2'
    assert record.severity == 'low'
    assert record.threat_category == 'Normal'


def test_ssl_input_category_is_copied():
    line = SSL_LINE.replace(',normal', ',Malicious Certificate')
    record, = parsers.parse([line], 'zscaler_ssl')
    assert record.threat_category == 'Malicious Certificate'
    assert record.severity == 'medium'


def test_threat_record():
    record, = parsers.parse([THREAT_LINE], 'zscaler_threat')
    assert record.url == 'Emotet'
    assert record.action == 'blocked'
    assert record.threat_category == 'Critical Threat'
    assert record.severity == 'critical'


def test_threat_without_type_is_unknown():
    line = "2024-01-15T10:00:00Z,10.0.0.5,203.0.113.7,,Something,allowed,low"
    record, = parsers.parse([line], 'zscaler_threat')
    assert record.threat_category == 'Unknown Threat'
    assert record.severity == 'low'


def test_unknown_dialect_yields_nothing():
    assert parsers.parse([WEB_LINE], 'unknown') == []


def test_unsupported_dialect_is_a_programming_error():
    with pytest.raises(ValueError):
        parsers.parse([WEB_LINE], 'syslog')


@pytest.mark.parametrize('value, expected', [
    ('2024-01-15T10:00:00Z', JAN_15_10AM),
    ('2024-01-15T12:00:00+02:00', JAN_15_10AM),
    ('2024-01-15 10:00:00', JAN_15_10AM),
    ('Jan 15 2024 10:00:00', JAN_15_10AM),
    ('', None),
    ('not a date', None),
    ('now', None),
    ('today', None),
    ('10:00', None),
    ('2024', None),
    ('0001-01-01T00:00:00+05:00', None),
    ('9999-12-31T23:00:00-05:00', None),
])
def test_parse_timestamp(value, expected):
    assert parsers.parse_timestamp(value) == expected


@pytest.mark.parametrize('value, expected', [
    ('15/Jan/2024:12:00:00 +0200', JAN_15_10AM),
    ('31/Dec/9999:23:00:00 -0500', None),
    ('01/Jan/0001:00:00:00 +0500', None),
])
def test_parse_apache_timestamp(value, expected):
    assert parsers.parse_apache_timestamp(value) == expected


@pytest.mark.parametrize('dialect, line', [
    ('zscaler_web', WEB_LINE.replace('2024-01-15T10:00:00Z', '0001-01-01T00:00:00+05:00')),
    ('zscaler_web', WEB_LINE.replace('2024-01-15T10:00:00Z', 'now')),
    ('zscaler_firewall', FIREWALL_LINE.replace('2024-01-15T10:00:00Z', '10:00')),
    ('webserver', WEBSERVER_LINE.replace('15/Jan/2024:10:30:15 +0000', '31/Dec/9999:23:00:00 -0500')),
])
def test_out_of_range_and_relative_timestamps_are_skipped(dialect, line):
    report = parsers.parse_with_diagnostics([line], dialect)
    assert report.records == []
    skip, = report.skipped
    assert skip.line == line
    assert skip.reason.startswith('invalid timestamp')
