# ==================== THREAT SCORING RULES ====================
# Additive heuristic scoring. Every matching rule adds its points; the
# category is taken from the LAST matching rule that names one, so the order
# of each table below is significant.

import re
from collections import namedtuple

Rule = namedtuple('Rule', ['name', 'points', 'category', 'test'])

DEFAULT_CATEGORY = 'Normal'

SEVERITY_THRESHOLDS = (
    (6, 'critical'),
    (4, 'high'),
    (2, 'medium'),
)

# --- web / webserver ---

SUSPICIOUS_URL_PATTERNS = [re.compile(p, re.IGNORECASE) for p in (
    r'\.exe$',
    r'\.bat$',
    r'\.cmd$',
    r'\.ps1$',
    r'\.vbs$',
    r'\.js$',
    r'\.php$',
    r'\.asp$',
    r'\.jsp$',
    r'cmd\.exe',
    r'powershell',
    r'eval\(',
    r'script',
    r'javascript:',
    r'data:',
    r'vbscript:',
)]

SUSPICIOUS_USER_AGENTS = [re.compile(p, re.IGNORECASE) for p in (
    r'curl',
    r'wget',
    r'python',
    r'perl',
    r'nmap',
    r'sqlmap',
    r'nikto',
    r'dirb',
    r'gobuster',
    r'hydra',
)]

# --- firewall ---

SUSPICIOUS_PROTOCOLS = {'telnet', 'ftp', 'smtp', 'pop3', 'imap'}
SUSPICIOUS_PORTS = {22, 23, 25, 110, 143, 3389, 5900, 8080}
BLOCK_ACTIONS = {'block', 'deny'}

# --- dns ---

SUSPICIOUS_QUERY_TYPES = {'TXT', 'ANY'}

SUSPICIOUS_TLDS = [re.compile(p, re.IGNORECASE) for p in (
    r'\.tk$',
    r'\.ml$',
    r'\.ga$',
    r'\.cf$',
    r'\.gq$',
    r'\.xyz$',
    r'\.top$',
    r'\.club$',
    r'\.online$',
    r'\.site$',
)]

C2_KEYWORDS = [re.compile(p, re.IGNORECASE) for p in (
    r'command',
    r'control',
    r'beacon',
    r'malware',
    r'trojan',
    r'backdoor',
    r'exfil',
    r'data',
)]

# --- ssl ---

WEAK_TLS_VERSIONS = ('SSLv2', 'SSLv3', 'TLSv1.0')
WEAK_CIPHERS = ('RC4', 'DES', '3DES', 'MD5', 'NULL', 'EXPORT')

SUSPICIOUS_SUBJECTS = [re.compile(p, re.IGNORECASE) for p in (
    r'self-signed',
    r'invalid',
    r'expired',
    r'revoked',
    r'unknown',
    r'test',
    r'example',
)]

# --- threat feed ---

CRITICAL_THREAT_TYPES = ('MALWARE_DETECTED', 'BOTNET_COMMUNICATION', 'COMMAND_INJECTION', 'RANSOMWARE')
HIGH_THREAT_TYPES = ('PHISHING_ATTEMPT', 'SUSPICIOUS_DOWNLOAD', 'SQL_INJECTION', 'DATA_EXFILTRATION')
MEDIUM_THREAT_TYPES = ('XSS_ATTACK', 'BRUTE_FORCE_ATTEMPT', 'SUSPICIOUS_ACTIVITY')


def _any_match(patterns, value):
    return any(p.search(value or '') for p in patterns)


def _flagged_category(fields):
    category = fields.get('threat_category') or ''
    return bool(category) and category.lower() != 'normal'


def _input_category(fields):
    return fields['threat_category']


WEB_RULES = (
    Rule('suspicious_url', 3, 'Suspicious File Access',
         lambda f: _any_match(SUSPICIOUS_URL_PATTERNS, f['url'])),
    Rule('client_error', 1, 'Client Error',
         lambda f: 400 <= f['status_code'] < 500),
    Rule('server_error', 2, 'Server Error',
         lambda f: f['status_code'] >= 500),
    Rule('suspicious_user_agent', 2, 'Suspicious User Agent',
         lambda f: _any_match(SUSPICIOUS_USER_AGENTS, f['user_agent'])),
    Rule('admin_post', 2, 'Admin Access Attempt',
         lambda f: f['action'].upper() == 'POST' and 'admin' in f['url']),
    Rule('modification', 1, 'Modification Attempt',
         lambda f: f['action'].upper() in ('PUT', 'DELETE')),
)

FIREWALL_RULES = (
    Rule('blocked', 3, 'Blocked Traffic',
         lambda f: f['action'].lower() in BLOCK_ACTIONS),
    Rule('suspicious_protocol', 2, 'Suspicious Protocol',
         lambda f: f['protocol'].lower() in SUSPICIOUS_PROTOCOLS),
    Rule('suspicious_port', 2, 'Suspicious Port Access',
         lambda f: f['destination_port'] in SUSPICIOUS_PORTS),
    Rule('flagged_category', 3, _input_category, _flagged_category),
)

DNS_RULES = (
    Rule('suspicious_query_type', 2, 'Suspicious DNS Query Type',
         lambda f: f['query_type'] in SUSPICIOUS_QUERY_TYPES),
    Rule('suspicious_domain', 2, 'Suspicious Domain',
         lambda f: _any_match(SUSPICIOUS_TLDS, f['query_name'])),
    Rule('c2_keyword', 3, 'Potential C2 Communication',
         lambda f: _any_match(C2_KEYWORDS, f['query_name'])),
    Rule('nxdomain', 1, 'DNS Resolution Failure',
         lambda f: f['response_code'] == 'NXDOMAIN'),
    Rule('flagged_category', 3, _input_category, _flagged_category),
)

SSL_RULES = (
    Rule('weak_version', 3, 'Weak SSL/TLS Version',
         lambda f: any(v in f['ssl_version'] for v in WEAK_TLS_VERSIONS)),
    Rule('weak_cipher', 2, 'Weak Cipher Suite',
         lambda f: any(c in f['cipher_suite'] for c in WEAK_CIPHERS)),
    Rule('suspicious_certificate', 2, 'Suspicious Certificate',
         lambda f: _any_match(SUSPICIOUS_SUBJECTS, f['certificate_subject'])),
    Rule('flagged_category', 3, _input_category, _flagged_category),
)

# The severity hint rules blend the feed's own severity into the score
# without touching the category.
THREAT_RULES = (
    Rule('critical_type', 4, 'Critical Threat',
         lambda f: any(t in f['threat_type'] for t in CRITICAL_THREAT_TYPES)),
    Rule('high_type', 3, 'High Threat',
         lambda f: any(t in f['threat_type'] for t in HIGH_THREAT_TYPES)),
    Rule('medium_type', 2, 'Medium Threat',
         lambda f: any(t in f['threat_type'] for t in MEDIUM_THREAT_TYPES)),
    Rule('blocked', 1, None,
         lambda f: f['action'].lower() == 'blocked'),
    Rule('hint_critical', 3, None,
         lambda f: f['severity'].lower() == 'critical'),
    Rule('hint_high', 2, None,
         lambda f: f['severity'].lower() == 'high'),
    Rule('hint_medium', 1, None,
         lambda f: f['severity'].lower() == 'medium'),
)


def severity_from_score(score):
    for threshold, severity in SEVERITY_THRESHOLDS:
        if score >= threshold:
            return severity
    return 'low'


def score_rules(rules, fields, default_category=DEFAULT_CATEGORY):
    """Run a rule table over fields.

    Returns ``(score, category, matched)`` where ``matched`` lists the names
    of the rules that fired, in evaluation order.
    """
    score = 0
    category = default_category
    matched = []
    for rule in rules:
        if not rule.test(fields):
            continue
        score += rule.points
        matched.append(rule.name)
        if callable(rule.category):
            category = rule.category(fields)
        elif rule.category is not None:
            category = rule.category
    return score, category, matched


def analyze(rules, fields, default_category=DEFAULT_CATEGORY):
    """Score fields and map the result to ``(category, severity)``"""
    score, category, _ = score_rules(rules, fields, default_category)
    return category, severity_from_score(score)
