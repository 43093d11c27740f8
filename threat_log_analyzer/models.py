# Data models shared by the parser, aggregator and storage layers

from dataclasses import dataclass, field, asdict
from datetime import datetime
from typing import Dict, List, Optional

# Ordered most to least severe
SEVERITIES = ('critical', 'high', 'medium', 'low')

LOG_TYPES = ('web', 'firewall', 'dns', 'ssl', 'threat')


@dataclass(frozen=True)
class NormalizedLogRecord:
    """One parsed and scored log line"""
    timestamp: datetime
    source_ip: str
    destination_ip: str
    user_agent: str
    url: str
    action: str
    status_code: int
    bytes_sent: int
    bytes_received: int
    threat_category: str
    severity: str
    log_type: str
    protocol: Optional[str] = None
    source_port: Optional[int] = None
    destination_port: Optional[int] = None
    rule_name: Optional[str] = None
    query_type: Optional[str] = None
    query_name: Optional[str] = None
    response_code: Optional[str] = None
    ssl_version: Optional[str] = None
    cipher_suite: Optional[str] = None
    certificate_subject: Optional[str] = None

    def to_dict(self):
        data = asdict(self)
        data['timestamp'] = self.timestamp.isoformat()
        return data


@dataclass(frozen=True)
class AnalysisSummary:
    """Aggregate view of one uploaded file"""
    total_entries: int
    time_range: str
    threat_summary: str
    top_sources: List[str] = field(default_factory=list)
    top_destinations: List[str] = field(default_factory=list)
    threat_categories: Dict[str, int] = field(default_factory=dict)
    severity_distribution: Dict[str, int] = field(default_factory=dict)

    def to_dict(self):
        return asdict(self)


@dataclass(frozen=True)
class SkipReason:
    """Why a single input line produced no record"""
    line_number: int
    line: str
    reason: str


@dataclass
class ParseReport:
    dialect: str
    records: List[NormalizedLogRecord] = field(default_factory=list)
    skipped: List[SkipReason] = field(default_factory=list)
