# ==================== ANOMALY DETECTOR ====================

import numpy as np
import pandas as pd
from sklearn.ensemble import IsolationForest

SEVERITY_RANK = {'low': 0, 'medium': 1, 'high': 2, 'critical': 3}

FEATURE_COLUMNS = [
    'status_code',
    'bytes_sent',
    'bytes_received',
    'destination_port',
    'url_length',
    'severity_rank',
]

MIN_RECORDS = 10


def records_to_frame(records):
    """Numeric feature frame, one row per record"""
    rows = []
    for record in records:
        rows.append({
            'status_code': record.status_code,
            'bytes_sent': record.bytes_sent,
            'bytes_received': record.bytes_received,
            'destination_port': record.destination_port or 0,
            'url_length': len(record.url or ''),
            'severity_rank': SEVERITY_RANK.get(record.severity, 0),
        })
    return pd.DataFrame(rows, columns=FEATURE_COLUMNS)


class AnomalyDetector:
    """Isolation Forest-based outlier flagging over parsed records"""

    def __init__(self, contamination=0.1):
        self.model = IsolationForest(
            contamination=contamination,
            random_state=42,
            n_estimators=100
        )

    def detect(self, records):
        """Return ``(flags, anomalies)`` for the given records.

        Small batches are not scored; every record is reported as normal.
        """
        records = list(records)
        if len(records) < MIN_RECORDS:
            return [False] * len(records), []

        X = records_to_frame(records).to_numpy(dtype=np.float64)
        predictions = self.model.fit_predict(X)
        scores = self.model.score_samples(X)

        # -1 = anomaly, 1 = normal
        is_anomaly = predictions == -1

        anomalies = []
        for i, (is_anom, score) in enumerate(zip(is_anomaly, scores)):
            if is_anom:
                anomalies.append({
                    'index': i,
                    'score': float(score),
                    'severity': 'high' if score < -0.5 else 'medium'
                })

        return [bool(flag) for flag in is_anomaly], anomalies
