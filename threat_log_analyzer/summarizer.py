# ==================== AI SUMMARIZER ====================
# Client for a local Ollama server. The analysis never depends on it: every
# failure path falls back to a template built from the records themselves.

import json
import logging

import requests

logger = logging.getLogger(__name__)

THREAT_LEVELS = ('low', 'medium', 'high', 'critical')

SUSPICIOUS_URL_MARKERS = ('.exe', 'cmd.exe', 'powershell', 'javascript:', 'data:')
SUSPICIOUS_AGENT_MARKERS = ('curl', 'wget', 'nmap', 'sqlmap')

SYSTEM_PROMPT = (
    "You are a cybersecurity expert specializing in log analysis and threat "
    "detection. Provide accurate, actionable insights for SOC analysts."
)


def reduce_records(records, limit=100):
    """Reduced view of up to ``limit`` records sent to the AI service.

    Accepts NormalizedLogRecord objects or stored entry dicts.
    """
    reduced = []
    for record in list(records)[:limit]:
        if hasattr(record, 'to_dict'):
            record = record.to_dict()
        reduced.append({
            'timestamp': str(record['timestamp']),
            'source_ip': record.get('source_ip') or '',
            'destination_ip': record.get('destination_ip') or '',
            'url': record.get('url') or '',
            'action': record.get('action') or '',
            'status_code': record.get('status_code') or 0,
            'user_agent': record.get('user_agent') or '',
            'threat_category': record['threat_category'],
            'severity': record['severity'],
        })
    return reduced


def _count_by(entries, key):
    counts = {}
    for entry in entries:
        counts[entry[key]] = counts.get(entry[key], 0) + 1
    return counts


def prepare_log_summary(entries):
    """Build the textual context handed to the model"""
    if not entries:
        return "No log entries to analyze."

    unique_ips = len({e['source_ip'] for e in entries})
    unique_urls = len({e['url'] for e in entries})
    severity_counts = _count_by(entries, 'severity')
    category_counts = _count_by(entries, 'threat_category')

    suspicious_urls = sum(
        1 for e in entries if any(m in e['url'] for m in SUSPICIOUS_URL_MARKERS)
    )
    suspicious_agents = sum(
        1 for e in entries
        if any(m in e['user_agent'].lower() for m in SUSPICIOUS_AGENT_MARKERS)
    )
    error_responses = sum(1 for e in entries if e['status_code'] >= 400)

    samples = [e for e in entries if e['severity'] in ('high', 'critical')][:5]

    lines = [
        f"Total Log Entries: {len(entries)}",
        f"Unique Source IPs: {unique_ips}",
        f"Unique URLs: {unique_urls}",
        "",
        "Severity Distribution:",
    ]
    lines += [f"- {severity}: {count}" for severity, count in severity_counts.items()]
    lines += ["", "Threat Categories:"]
    lines += [f"- {category}: {count}" for category, count in category_counts.items()]
    lines += [
        "",
        "Suspicious Indicators:",
        f"- Suspicious URLs: {suspicious_urls}",
        f"- Suspicious User Agents: {suspicious_agents}",
        f"- Error Responses (4xx/5xx): {error_responses}",
        "",
        "Sample Suspicious Entries:",
    ]
    lines += [
        f"- {e['timestamp']}: {e['source_ip']} -> {e['url']} ({e['severity']})"
        for e in samples
    ]
    return '\n'.join(lines)


def fallback_analysis(entries):
    """Template-based analysis used when the model is unavailable"""
    critical = sum(1 for e in entries if e['severity'] == 'critical')
    high = sum(1 for e in entries if e['severity'] == 'high')

    if critical > 0:
        threat_level = 'critical'
    elif high > 5:
        threat_level = 'high'
    elif high > 0:
        threat_level = 'medium'
    else:
        threat_level = 'low'

    return {
        'threat_level': threat_level,
        'confidence': 0.7,
        'insights': [
            f"Detected {critical} critical and {high} high severity events",
            "Manual review recommended for suspicious patterns",
        ],
        'recommendations': [
            "Review high and critical severity events",
            "Check for patterns in source IPs and URLs",
            "Monitor for similar activity in the future",
        ],
        'ioc_indicators': [
            f"{e['source_ip']} - {e['url']}"
            for e in entries if e['severity'] in ('high', 'critical')
        ][:10],
        'attack_patterns': ["Basic pattern detection active", "AI analysis unavailable"],
    }


def _bullets(items):
    return '\n'.join(f"• {item}" for item in items)


class OllamaSummarizer:
    """Generate threat insights using a local Ollama LLM"""

    def __init__(self, model='llama3.2', base_url='http://localhost:11434', timeout=60):
        self.model = model
        self.base_url = base_url.rstrip('/')
        self.timeout = timeout

    def _generate(self, prompt, json_mode=False):
        payload = {
            "model": self.model,
            "system": SYSTEM_PROMPT,
            "prompt": prompt,
            "stream": False,
            "options": {"temperature": 0.3},
        }
        if json_mode:
            payload["format"] = "json"

        response = requests.post(
            f"{self.base_url}/api/generate",
            json=payload,
            timeout=self.timeout
        )
        response.raise_for_status()
        return response.json()['response']

    def analyze_logs(self, entries):
        """Structured threat assessment for the reduced entries"""
        if not entries:
            return fallback_analysis(entries)

        prompt = f"""You are a cybersecurity expert analyzing proxy, firewall, DNS, SSL and threat-feed logs. Analyze the following log data and provide insights:

LOG SUMMARY:
{prepare_log_summary(entries)}

Respond only with JSON in the following format:
{{
  "threat_level": "low|medium|high|critical",
  "confidence": 0.85,
  "insights": ["insight1", "insight2"],
  "recommendations": ["recommendation1", "recommendation2"],
  "ioc_indicators": ["indicator1", "indicator2"],
  "attack_patterns": ["pattern1", "pattern2"]
}}

Focus on suspicious behaviours, attack vectors, indicators of compromise and recommended actions for SOC analysts."""

        try:
            result = json.loads(self._generate(prompt, json_mode=True))
        except (requests.RequestException, ValueError, KeyError) as e:
            logger.warning("Ollama analysis failed, using fallback: %s", e)
            return fallback_analysis(entries)

        if not isinstance(result, dict):
            logger.warning("Ollama returned non-object JSON, using fallback")
            return fallback_analysis(entries)

        threat_level = str(result.get('threat_level', 'low')).lower()
        if threat_level not in THREAT_LEVELS:
            threat_level = 'low'
        try:
            confidence = float(result.get('confidence', 0.5))
        except (TypeError, ValueError):
            confidence = 0.5

        return {
            'threat_level': threat_level,
            'confidence': confidence,
            'insights': list(result.get('insights') or []),
            'recommendations': list(result.get('recommendations') or []),
            'ioc_indicators': list(result.get('ioc_indicators') or []),
            'attack_patterns': list(result.get('attack_patterns') or []),
        }

    def generate_executive_summary(self, entries, insights=None):
        """Markdown summary for analysts, built from an analysis result"""
        if insights is None:
            insights = self.analyze_logs(entries)

        return f"""## AI-Powered Security Analysis Summary

**Threat Level**: {insights['threat_level'].upper()} (Confidence: {insights['confidence'] * 100:.1f}%)

### Key Insights:
{_bullets(insights['insights'])}

### Recommendations:
{_bullets(insights['recommendations'])}

### Indicators of Compromise (IOCs):
{_bullets(insights['ioc_indicators'])}

### Attack Patterns Detected:
{_bullets(insights['attack_patterns'])}
"""

    def analyze_entry(self, entry):
        """Free-text assessment of a single suspicious entry"""
        prompt = f"""Analyze this suspicious log entry for potential threats:

Timestamp: {entry['timestamp']}
Source IP: {entry['source_ip']}
Destination: {entry['destination_ip']}
URL: {entry['url']}
Action: {entry['action']}
Status Code: {entry['status_code']}
User Agent: {entry['user_agent']}
Current Severity: {entry['severity']}

Provide a brief analysis of potential threats and recommended actions."""

        try:
            return self._generate(prompt) or "Analysis unavailable"
        except (requests.RequestException, ValueError, KeyError) as e:
            logger.warning("Ollama entry analysis failed: %s", e)
            return "AI analysis unavailable for this entry."
