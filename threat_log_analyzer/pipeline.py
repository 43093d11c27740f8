# ==================== ANALYSIS PIPELINE ====================
# detect -> parse/score -> summarize, plus the persistence job run per upload.

import logging
import threading
from dataclasses import dataclass, field
from typing import List

from . import aggregator, detector, parsers
from .models import AnalysisSummary, NormalizedLogRecord, SkipReason
from .storage import STATUS_COMPLETED, STATUS_FAILED

logger = logging.getLogger(__name__)


@dataclass
class AnalysisResult:
    dialect: str
    records: List[NormalizedLogRecord]
    summary: AnalysisSummary
    skipped: List[SkipReason] = field(default_factory=list)

    @property
    def label(self):
        return detector.DIALECT_LABELS.get(self.dialect, self.dialect)


def analyze_content(content):
    """Run the full analysis over the text of one file.

    Pure: the same content always yields the same result.
    """
    dialect, lines = detector.detect(content)
    report = parsers.parse_with_diagnostics(lines, dialect)
    summary = aggregator.summarize(report.records)
    logger.info(
        "Parsed %d entries (%d lines skipped) as %s",
        len(report.records), len(report.skipped), dialect
    )
    return AnalysisResult(
        dialect=dialect,
        records=report.records,
        summary=summary,
        skipped=report.skipped,
    )


def process_upload(store, file_id, result):
    """Persist records and summary for an upload and mark it completed.

    Storage errors mark the upload failed and are re-raised.
    """
    try:
        store.save_log_entries(file_id, result.records)
        store.save_analysis(file_id, result.summary)
        store.update_file_status(file_id, STATUS_COMPLETED)
    except Exception:
        store.update_file_status(file_id, STATUS_FAILED)
        raise
    logger.info("Log analysis completed for upload %s", file_id)


def _run_job(fn, args):
    try:
        fn(*args)
    except Exception:
        logger.exception("Background job %s failed", getattr(fn, '__name__', fn))


def run_in_background(fn, *args):
    """Start fn(*args) on a daemon thread and return the thread"""
    thread = threading.Thread(target=_run_job, args=(fn, args), daemon=True)
    thread.start()
    return thread
