# Application settings, read from the environment with sensible defaults

import os


def _env_bool(name, default):
    value = os.environ.get(name)
    if value is None:
        return default
    return value.strip().lower() in ('1', 'true', 'yes', 'on')


class Config:
    UPLOAD_FOLDER = os.environ.get('UPLOAD_FOLDER', 'uploads')
    MAX_CONTENT_LENGTH = int(os.environ.get('MAX_CONTENT_LENGTH', 10 * 1024 * 1024))  # 10MB max file size
    ALLOWED_EXTENSIONS = {'log', 'txt', 'csv'}
    ALLOWED_MIME_TYPES = {'text/plain', 'text/csv', 'application/octet-stream'}

    DATABASE_PATH = os.environ.get('DATABASE_PATH', 'threat_logs.db')

    OLLAMA_MODEL = os.environ.get('OLLAMA_MODEL', 'llama3.2')
    OLLAMA_BASE_URL = os.environ.get('OLLAMA_BASE_URL', 'http://localhost:11434')
    OLLAMA_TIMEOUT = int(os.environ.get('OLLAMA_TIMEOUT', 60))

    AI_SAMPLE_SIZE = int(os.environ.get('AI_SAMPLE_SIZE', 100))
    ANOMALY_CONTAMINATION = float(os.environ.get('ANOMALY_CONTAMINATION', 0.1))

    # Persist uploads on a worker thread so the response returns immediately
    BACKGROUND_PROCESSING = _env_bool('BACKGROUND_PROCESSING', True)

    LOG_LEVEL = os.environ.get('LOG_LEVEL', 'INFO')
