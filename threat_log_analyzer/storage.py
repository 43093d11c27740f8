# ==================== STORAGE ====================
# Persistence for uploads, parsed entries and summaries. The store is handed
# to the pipeline and the web app explicitly; nothing here is module-global.

import json
import sqlite3
from abc import ABC, abstractmethod
from contextlib import contextmanager
from datetime import datetime, timezone

STATUS_PROCESSING = 'processing'
STATUS_COMPLETED = 'completed'
STATUS_FAILED = 'failed'

RECORD_COLUMNS = (
    'timestamp', 'source_ip', 'destination_ip', 'user_agent', 'url', 'action',
    'status_code', 'bytes_sent', 'bytes_received', 'threat_category', 'severity',
    'protocol', 'source_port', 'destination_port', 'rule_name', 'query_type',
    'query_name', 'response_code', 'ssl_version', 'cipher_suite',
    'certificate_subject', 'log_type',
)

JSON_ANALYSIS_COLUMNS = (
    'top_sources', 'top_destinations', 'threat_categories', 'severity_distribution',
)

SCHEMA = """
CREATE TABLE IF NOT EXISTS uploaded_files (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    filename TEXT NOT NULL,
    original_name TEXT NOT NULL,
    file_size INTEGER NOT NULL,
    dialect TEXT NOT NULL,
    log_type TEXT NOT NULL,
    status TEXT NOT NULL DEFAULT 'processing'
        CHECK (status IN ('processing', 'completed', 'failed')),
    created_at TEXT NOT NULL
);

CREATE TABLE IF NOT EXISTS log_entries (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    file_id INTEGER NOT NULL REFERENCES uploaded_files(id) ON DELETE CASCADE,
    timestamp TEXT NOT NULL,
    source_ip TEXT,
    destination_ip TEXT,
    user_agent TEXT,
    url TEXT,
    action TEXT,
    status_code INTEGER,
    bytes_sent INTEGER,
    bytes_received INTEGER,
    threat_category TEXT,
    severity TEXT CHECK (severity IN ('low', 'medium', 'high', 'critical')),
    protocol TEXT,
    source_port INTEGER,
    destination_port INTEGER,
    rule_name TEXT,
    query_type TEXT,
    query_name TEXT,
    response_code TEXT,
    ssl_version TEXT,
    cipher_suite TEXT,
    certificate_subject TEXT,
    log_type TEXT CHECK (log_type IN ('web', 'firewall', 'dns', 'ssl', 'threat'))
);

CREATE INDEX IF NOT EXISTS idx_log_entries_file ON log_entries(file_id, timestamp);

CREATE TABLE IF NOT EXISTS log_analysis (
    id INTEGER PRIMARY KEY AUTOINCREMENT,
    file_id INTEGER NOT NULL UNIQUE REFERENCES uploaded_files(id) ON DELETE CASCADE,
    total_entries INTEGER NOT NULL,
    time_range TEXT NOT NULL,
    threat_summary TEXT,
    top_sources TEXT,
    top_destinations TEXT,
    threat_categories TEXT,
    severity_distribution TEXT,
    created_at TEXT NOT NULL
);
"""


def _now():
    return datetime.now(timezone.utc).isoformat()


class LogStore(ABC):
    """Interface for the persistence collaborator"""

    @abstractmethod
    def init_schema(self):
        raise NotImplementedError

    @abstractmethod
    def save_uploaded_file(self, filename, original_name, file_size, dialect, log_type,
                           status=STATUS_PROCESSING):
        raise NotImplementedError

    @abstractmethod
    def save_log_entries(self, file_id, records):
        raise NotImplementedError

    @abstractmethod
    def save_analysis(self, file_id, summary):
        raise NotImplementedError

    @abstractmethod
    def update_file_status(self, file_id, status):
        raise NotImplementedError

    @abstractmethod
    def list_files(self):
        raise NotImplementedError

    @abstractmethod
    def get_file(self, file_id):
        raise NotImplementedError

    @abstractmethod
    def get_analysis(self, file_id):
        raise NotImplementedError

    @abstractmethod
    def get_log_entries(self, file_id, limit=100):
        raise NotImplementedError

    @abstractmethod
    def get_log_entry(self, file_id, entry_id):
        raise NotImplementedError

    @abstractmethod
    def delete_file(self, file_id):
        raise NotImplementedError


class SQLiteLogStore(LogStore):
    """LogStore backed by a SQLite database file"""

    def __init__(self, db_path):
        self.db_path = str(db_path)

    @contextmanager
    def connect(self):
        conn = sqlite3.connect(self.db_path)
        conn.row_factory = sqlite3.Row
        conn.execute('PRAGMA foreign_keys = ON')
        try:
            yield conn
            conn.commit()
        except Exception:
            conn.rollback()
            raise
        finally:
            conn.close()

    def init_schema(self):
        with self.connect() as conn:
            conn.executescript(SCHEMA)

    def save_uploaded_file(self, filename, original_name, file_size, dialect, log_type,
                           status=STATUS_PROCESSING):
        with self.connect() as conn:
            cur = conn.execute(
                """
                INSERT INTO uploaded_files
                    (filename, original_name, file_size, dialect, log_type, status, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (filename, original_name, file_size, dialect, log_type, status, _now()),
            )
            file_id = cur.lastrowid
        return self.get_file(file_id)

    def save_log_entries(self, file_id, records):
        rows = []
        for record in records:
            data = record.to_dict()
            rows.append([file_id] + [data[column] for column in RECORD_COLUMNS])
        if not rows:
            return 0

        placeholders = ', '.join('?' for _ in range(len(RECORD_COLUMNS) + 1))
        with self.connect() as conn:
            conn.executemany(
                f"INSERT INTO log_entries (file_id, {', '.join(RECORD_COLUMNS)}) "
                f"VALUES ({placeholders})",
                rows,
            )
        return len(rows)

    def save_analysis(self, file_id, summary):
        data = summary.to_dict()
        with self.connect() as conn:
            conn.execute(
                """
                INSERT OR REPLACE INTO log_analysis
                    (file_id, total_entries, time_range, threat_summary, top_sources,
                     top_destinations, threat_categories, severity_distribution, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    file_id,
                    data['total_entries'],
                    data['time_range'],
                    data['threat_summary'],
                    json.dumps(data['top_sources']),
                    json.dumps(data['top_destinations']),
                    json.dumps(data['threat_categories']),
                    json.dumps(data['severity_distribution']),
                    _now(),
                ),
            )

    def update_file_status(self, file_id, status):
        with self.connect() as conn:
            conn.execute(
                'UPDATE uploaded_files SET status = ? WHERE id = ?', (status, file_id)
            )

    def list_files(self):
        with self.connect() as conn:
            rows = conn.execute(
                'SELECT * FROM uploaded_files ORDER BY created_at DESC, id DESC'
            ).fetchall()
        return [dict(row) for row in rows]

    def get_file(self, file_id):
        with self.connect() as conn:
            row = conn.execute(
                'SELECT * FROM uploaded_files WHERE id = ?', (file_id,)
            ).fetchone()
        return dict(row) if row else None

    def get_analysis(self, file_id):
        with self.connect() as conn:
            row = conn.execute(
                'SELECT * FROM log_analysis WHERE file_id = ?', (file_id,)
            ).fetchone()
        if row is None:
            return None
        analysis = dict(row)
        for column in JSON_ANALYSIS_COLUMNS:
            analysis[column] = json.loads(analysis[column]) if analysis[column] else None
        return analysis

    def get_log_entries(self, file_id, limit=100):
        with self.connect() as conn:
            rows = conn.execute(
                """
                SELECT * FROM log_entries
                WHERE file_id = ?
                ORDER BY timestamp DESC, id DESC
                LIMIT ?
                """,
                (file_id, limit),
            ).fetchall()
        return [dict(row) for row in rows]

    def get_log_entry(self, file_id, entry_id):
        with self.connect() as conn:
            row = conn.execute(
                'SELECT * FROM log_entries WHERE file_id = ? AND id = ?', (file_id, entry_id)
            ).fetchone()
        return dict(row) if row else None

    def delete_file(self, file_id):
        with self.connect() as conn:
            conn.execute('DELETE FROM log_entries WHERE file_id = ?', (file_id,))
            conn.execute('DELETE FROM log_analysis WHERE file_id = ?', (file_id,))
            cur = conn.execute('DELETE FROM uploaded_files WHERE id = ?', (file_id,))
            deleted = cur.rowcount > 0
        return deleted
