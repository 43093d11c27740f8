# ==================== AGGREGATOR ====================

from collections import Counter
from datetime import timezone

from .models import AnalysisSummary

TOP_N = 10

NARRATIVE_CLAUSES = (
    ('critical', '{} critical threats detected. '),
    ('high', '{} high severity events. '),
    ('medium', '{} medium severity events. '),
    ('low', '{} low severity events. '),
)


def format_timestamp(ts):
    """Render an aware datetime as ``YYYY-MM-DDTHH:MM:SS.mmmZ`` in UTC"""
    ts = ts.astimezone(timezone.utc)
    return ts.strftime('%Y-%m-%dT%H:%M:%S.') + f'{ts.microsecond // 1000:03d}Z'


def empty_summary():
    return AnalysisSummary(
        total_entries=0,
        time_range='No data',
        threat_summary='No threats detected',
    )


def build_narrative(total, severity_counts):
    narrative = f'Analysis of {total} log entries. '
    for severity, template in NARRATIVE_CLAUSES:
        count = severity_counts.get(severity, 0)
        if count:
            narrative += template.format(count)
    if not severity_counts.get('critical') and not severity_counts.get('high'):
        narrative += 'No high-priority threats detected.'
    return narrative.rstrip()


def summarize(records):
    """Reduce a sequence of records to an AnalysisSummary"""
    records = list(records)
    if not records:
        return empty_summary()

    timestamps = sorted(r.timestamp for r in records)
    time_range = f'{format_timestamp(timestamps[0])} to {format_timestamp(timestamps[-1])}'

    categories = Counter(r.threat_category for r in records)
    severities = Counter(r.severity for r in records)
    sources = Counter(r.source_ip for r in records if r.source_ip)
    destinations = Counter(r.destination_ip for r in records if r.destination_ip)

    return AnalysisSummary(
        total_entries=len(records),
        time_range=time_range,
        threat_summary=build_narrative(len(records), severities),
        top_sources=[ip for ip, _ in sources.most_common(TOP_N)],
        top_destinations=[ip for ip, _ in destinations.most_common(TOP_N)],
        threat_categories=dict(categories),
        severity_distribution=dict(severities),
    )
