import pytest

from app import create_app
from threat_log_analyzer.summarizer import fallback_analysis


class FakeSummarizer:
    """Stands in for the Ollama client in web tests"""

    def __init__(self):
        self.calls = []

    def analyze_logs(self, entries):
        self.calls.append(('analyze_logs', len(entries)))
        return fallback_analysis(entries)

    def generate_executive_summary(self, entries, insights=None):
        self.calls.append(('generate_executive_summary', len(entries)))
        return "## Summary"

    def analyze_entry(self, entry):
        self.calls.append(('analyze_entry', entry['url']))
        return "Entry looks suspicious."


@pytest.fixture
def summarizer():
    return FakeSummarizer()


@pytest.fixture
def app(tmp_path, summarizer):
    app = create_app({
        'TESTING': True,
        'UPLOAD_FOLDER': str(tmp_path / 'uploads'),
        'DATABASE_PATH': str(tmp_path / 'threat_logs.db'),
        'BACKGROUND_PROCESSING': False,
        'SUMMARIZER': summarizer,
    })
    return app


@pytest.fixture
def client(app):
    return app.test_client()
