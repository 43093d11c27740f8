import pytest

from threat_log_analyzer import rules


def web_fields(url='/index.html', action='GET', status_code=200, user_agent='Mozilla/5.0'):
    return {'url': url, 'action': action, 'status_code': status_code, 'user_agent': user_agent}


@pytest.mark.parametrize('score, severity', [
    (0, 'low'), (1, 'low'), (2, 'medium'), (3, 'medium'),
    (4, 'high'), (5, 'high'), (6, 'critical'), (11, 'critical'),
])
def test_severity_bands(score, severity):
    assert rules.severity_from_score(score) == severity


def test_clean_web_request_is_normal():
    assert rules.analyze(rules.WEB_RULES, web_fields()) == ('Normal', 'low')


def test_scores_accumulate_and_last_category_wins():
    fields = web_fields(url='/admin/login', action='POST', status_code=500, user_agent='curl/7.68.0')
    score, category, matched = rules.score_rules(rules.WEB_RULES, fields)
    assert matched == ['server_error', 'suspicious_user_agent', 'admin_post']
    assert score == 6
    assert category == 'Admin Access Attempt'


def test_pattern_lists_score_once():
    fields = web_fields(url='/x/powershell/cmd.exe')
    score, category, _ = rules.score_rules(rules.WEB_RULES, fields)
    assert (score, category) == (3, 'Suspicious File Access')


@pytest.mark.parametrize('status_code, expected', [
    (404, ('Client Error', 'low')),
    (503, ('Server Error', 'medium')),
])
def test_status_code_rules(status_code, expected):
    assert rules.analyze(rules.WEB_RULES, web_fields(status_code=status_code)) == expected


def test_modification_verbs():
    assert rules.analyze(rules.WEB_RULES, web_fields(action='delete')) == ('Modification Attempt', 'low')


def test_firewall_copies_flagged_input_category():
    fields = {'action': 'allow', 'protocol': 'tcp', 'destination_port': 443,
              'threat_category': 'Botnet Callback'}
    assert rules.analyze(rules.FIREWALL_RULES, fields) == ('Botnet Callback', 'medium')


def test_firewall_normal_category_is_not_flagged():
    fields = {'action': 'allow', 'protocol': 'tcp', 'destination_port': 443,
              'threat_category': 'NORMAL'}
    assert rules.analyze(rules.FIREWALL_RULES, fields) == ('Normal', 'low')


def test_dns_rules_overwrite_in_order():
    fields = {'query_type': 'TXT', 'query_name': 'beacon.evil.tk',
              'response_code': 'NXDOMAIN', 'threat_category': 'normal'}
    score, category, matched = rules.score_rules(rules.DNS_RULES, fields)
    assert matched == ['suspicious_query_type', 'suspicious_domain', 'c2_keyword', 'nxdomain']
    assert score == 8
    assert category == 'DNS Resolution Failure'


def test_ssl_weak_configuration():
    fields = {'ssl_version': 'SSLv3', 'cipher_suite': 'RC4-MD5',
              'certificate_subject': 'CN=self-signed', 'threat_category': 'normal'}
    score, category, _ = rules.score_rules(rules.SSL_RULES, fields)
    assert score == 7
    assert category == 'Suspicious Certificate'


def test_threat_severity_hint_is_blended_not_copied():
    fields = {'threat_type': 'ADWARE', 'action': 'allowed', 'severity': 'critical'}
    assert rules.analyze(rules.THREAT_RULES, fields, default_category='ADWARE') == ('ADWARE', 'medium')


def test_threat_type_bands():
    fields = {'threat_type': 'SQL_INJECTION', 'action': 'blocked', 'severity': 'low'}
    assert rules.analyze(rules.THREAT_RULES, fields) == ('High Threat', 'high')
