# Threat Log Analyzer
# A Flask-based web application for uploading security logs and reviewing
# heuristic threat scores alongside AI-generated summaries

import os
import time
import logging

from flask import Flask, render_template_string, request, jsonify
from werkzeug.exceptions import RequestEntityTooLarge
from werkzeug.utils import secure_filename

from threat_log_analyzer.anomaly import AnomalyDetector
from threat_log_analyzer.config import Config
from threat_log_analyzer.pipeline import analyze_content, process_upload, run_in_background
from threat_log_analyzer.storage import SQLiteLogStore
from threat_log_analyzer.summarizer import OllamaSummarizer, reduce_records

SAMPLE_ENTRY_FIELDS = (
    'id', 'timestamp', 'source_ip', 'destination_ip', 'url', 'action',
    'status_code', 'threat_category', 'severity', 'log_type',
)


def create_app(overrides=None):
    app = Flask(__name__)
    app.config.from_object(Config)
    if overrides:
        app.config.update(overrides)

    logging.basicConfig(
        level=app.config['LOG_LEVEL'],
        format='%(asctime)s %(levelname)s %(name)s: %(message)s'
    )

    # Create uploads directory
    os.makedirs(app.config['UPLOAD_FOLDER'], exist_ok=True)

    store = app.config.get('LOG_STORE') or SQLiteLogStore(app.config['DATABASE_PATH'])
    store.init_schema()
    app.extensions['log_store'] = store
    app.extensions['summarizer'] = app.config.get('SUMMARIZER') or OllamaSummarizer(
        model=app.config['OLLAMA_MODEL'],
        base_url=app.config['OLLAMA_BASE_URL'],
        timeout=app.config['OLLAMA_TIMEOUT']
    )

    register_routes(app)
    return app


def allowed_file(app, filename):
    return '.' in filename and filename.rsplit('.', 1)[1].lower() in app.config['ALLOWED_EXTENSIONS']


def sample_entry(entry):
    return {key: entry.get(key) for key in SAMPLE_ENTRY_FIELDS}


def register_routes(app):
    store = app.extensions['log_store']
    summarizer = app.extensions['summarizer']

    @app.errorhandler(RequestEntityTooLarge)
    def too_large(e):
        limit_mb = app.config['MAX_CONTENT_LENGTH'] // (1024 * 1024)
        return jsonify({'error': f'File too large. Maximum size is {limit_mb}MB.'}), 413

    @app.route('/')
    def index():
        return render_template_string(INDEX_TEMPLATE)

    @app.route('/api/logs/upload', methods=['POST'])
    def upload():
        if 'logfile' not in request.files:
            return jsonify({'error': 'No file uploaded'}), 400

        file = request.files['logfile']

        if file.filename == '':
            return jsonify({'error': 'No file selected'}), 400

        if not allowed_file(app, file.filename):
            return jsonify({'error': 'Invalid file type. Use .log, .txt or .csv'}), 400

        if file.mimetype not in app.config['ALLOWED_MIME_TYPES']:
            return jsonify({'error': 'Invalid file type. Please upload a text or CSV file.'}), 400

        # Save uploaded file
        filename = f"{int(time.time() * 1000)}_{secure_filename(file.filename)}"
        filepath = os.path.join(app.config['UPLOAD_FOLDER'], filename)
        data = file.read()
        with open(filepath, 'wb') as f:
            f.write(data)

        try:
            result = analyze_content(data.decode('utf-8', errors='ignore'))

            detector = AnomalyDetector(contamination=app.config['ANOMALY_CONTAMINATION'])
            _, anomalies = detector.detect(result.records)

            uploaded = store.save_uploaded_file(
                filename=filename,
                original_name=file.filename,
                file_size=len(data),
                dialect=result.dialect,
                log_type=result.label,
            )

            if app.config['BACKGROUND_PROCESSING']:
                run_in_background(process_upload, store, uploaded['id'], result)
            else:
                process_upload(store, uploaded['id'], result)
                uploaded = store.get_file(uploaded['id'])

            return jsonify({
                'message': 'File uploaded successfully',
                'file': {
                    'id': uploaded['id'],
                    'filename': uploaded['filename'],
                    'original_name': uploaded['original_name'],
                    'dialect': result.dialect,
                    'log_type': result.label,
                    'status': uploaded['status'],
                    'entries_parsed': len(result.records),
                    'lines_skipped': len(result.skipped),
                },
                'anomaly_count': len(anomalies),
                'anomalies': [
                    dict(anom, entry=result.records[anom['index']].to_dict())
                    for anom in anomalies[:100]
                ],
            }), 201

        except Exception as e:
            app.logger.exception('Upload processing failed for %s', filename)
            if os.path.exists(filepath):
                os.remove(filepath)
            return jsonify({'error': 'Failed to upload file', 'details': str(e)}), 500

    @app.route('/api/logs/files', methods=['GET'])
    def list_files():
        try:
            return jsonify({'files': store.list_files()})
        except Exception as e:
            app.logger.exception('Error fetching files')
            return jsonify({'error': 'Failed to fetch files', 'details': str(e)}), 500

    @app.route('/api/logs/files/<int:file_id>', methods=['DELETE'])
    def delete_file(file_id):
        try:
            uploaded = store.get_file(file_id)
            if uploaded is None:
                return jsonify({'error': 'File not found'}), 404

            filepath = os.path.join(app.config['UPLOAD_FOLDER'], uploaded['filename'])
            try:
                os.remove(filepath)
            except OSError as e:
                app.logger.warning('Could not delete physical file %s: %s', filepath, e)

            store.delete_file(file_id)
            return jsonify({
                'message': 'File deleted successfully',
                'deletedFile': {
                    'id': uploaded['id'],
                    'filename': uploaded['filename'],
                    'original_name': uploaded['original_name'],
                },
            })
        except Exception as e:
            app.logger.exception('Error deleting file %s', file_id)
            return jsonify({'error': 'Failed to delete file', 'details': str(e)}), 500

    @app.route('/api/logs/analysis/<int:file_id>', methods=['GET'])
    def get_analysis(file_id):
        try:
            uploaded = store.get_file(file_id)
            if uploaded is None:
                return jsonify({'error': 'File not found'}), 404

            analysis = store.get_analysis(file_id)
            if analysis is None:
                if uploaded['status'] == 'processing':
                    return jsonify({'status': 'processing'}), 202
                return jsonify({'error': 'Analysis not found'}), 404

            entries = store.get_log_entries(file_id, limit=50)

            ai_insights = None
            executive_summary = None
            if entries:
                reduced = reduce_records(entries, limit=app.config['AI_SAMPLE_SIZE'])
                ai_insights = summarizer.analyze_logs(reduced)
                executive_summary = summarizer.generate_executive_summary(reduced, ai_insights)

            return jsonify({
                'analysis': dict(
                    analysis,
                    filename=uploaded['filename'],
                    log_type=uploaded['log_type'],
                    dialect=uploaded['dialect'],
                ),
                'sample_entries': [sample_entry(e) for e in entries],
                'ai_insights': ai_insights,
                'executive_summary': executive_summary,
                'ai_available': ai_insights is not None,
            })
        except Exception as e:
            app.logger.exception('Error fetching analysis %s', file_id)
            return jsonify({'error': 'Internal server error', 'details': str(e)}), 500

    @app.route('/api/logs/analysis/<int:file_id>', methods=['POST'])
    def analysis_action(file_id):
        payload = request.get_json(silent=True) or {}
        action = payload.get('action')

        try:
            if store.get_analysis(file_id) is None:
                return jsonify({'error': 'Analysis not found'}), 404

            if action == 'regenerate_ai_analysis':
                entries = store.get_log_entries(file_id, limit=app.config['AI_SAMPLE_SIZE'])
                if not entries:
                    return jsonify({'error': 'No log entries available for AI analysis'}), 400

                reduced = reduce_records(entries, limit=app.config['AI_SAMPLE_SIZE'])
                ai_insights = summarizer.analyze_logs(reduced)
                return jsonify({
                    'success': True,
                    'aiInsights': ai_insights,
                    'executiveSummary': summarizer.generate_executive_summary(reduced, ai_insights),
                })

            if action == 'analyze_entry':
                entry_id = payload.get('entry_id')
                entry = store.get_log_entry(file_id, entry_id)
                if entry is None:
                    return jsonify({'error': 'Entry not found'}), 404
                reduced = reduce_records([entry])[0]
                return jsonify({'success': True, 'analysis': summarizer.analyze_entry(reduced)})

            return jsonify({'error': 'Invalid action'}), 400
        except Exception as e:
            app.logger.exception('Error processing AI analysis request for %s', file_id)
            return jsonify({'error': 'Internal server error', 'details': str(e)}), 500


# ==================== HTML TEMPLATE ====================

INDEX_TEMPLATE = '''
<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <meta name="viewport" content="width=device-width, initial-scale=1.0">
    <title>Threat Log Analyzer</title>
    <style>
        body { font-family: 'Segoe UI', Tahoma, Geneva, Verdana, sans-serif; background: #f4f5fb; padding: 20px; }
        .container { max-width: 1100px; margin: 0 auto; }
        .card { background: white; border-radius: 12px; padding: 24px; margin-bottom: 20px; box-shadow: 0 4px 20px rgba(0,0,0,0.08); }
        .stats { display: grid; grid-template-columns: repeat(auto-fit, minmax(180px, 1fr)); gap: 12px; }
        .stat { background: #f8f9fa; padding: 16px; border-radius: 8px; text-align: center; }
        .stat-value { font-size: 1.8em; font-weight: bold; color: #667eea; }
        .summary { background: #f8f9fa; border-left: 4px solid #667eea; padding: 16px; white-space: pre-wrap; }
        .error { color: #c0392b; display: none; }
        .error.show { display: block; }
        table { width: 100%; border-collapse: collapse; font-size: 0.9em; }
        td, th { padding: 6px; border-bottom: 1px solid #eee; text-align: left; }
        .sev-critical { color: #c0392b; font-weight: bold; }
        .sev-high { color: #e67e22; }
        .sev-medium { color: #d4ac0d; }
        .sev-low { color: #2e86c1; }
    </style>
</head>
<body>
    <div class="container">
        <div class="card">
            <h1>Threat Log Analyzer</h1>
            <p>Upload web proxy, web server, firewall, DNS, SSL or threat-feed logs (.log, .txt, .csv, max 10MB).</p>
            <input type="file" id="logfile" accept=".log,.txt,.csv">
            <button id="uploadBtn">Analyze</button>
            <p class="error" id="errorBox"></p>
        </div>
        <div class="card" id="results" style="display: none;">
            <div class="stats">
                <div class="stat"><div class="stat-value" id="totalEntries">0</div>Entries</div>
                <div class="stat"><div class="stat-value" id="logType">-</div>Format</div>
                <div class="stat"><div class="stat-value" id="timeRange">-</div>Time range</div>
            </div>
            <h3>Summary</h3>
            <div class="summary" id="threatSummary"></div>
            <h3>AI Analysis</h3>
            <div class="summary" id="aiSummary"></div>
            <h3>Sample entries</h3>
            <table id="entries"></table>
        </div>
    </div>

    <script>
        const errorBox = document.getElementById('errorBox');

        function showError(message) {
            errorBox.textContent = 'Error: ' + message;
            errorBox.classList.add('show');
        }

        async function pollAnalysis(fileId) {
            const response = await fetch('/api/logs/analysis/' + fileId);
            if (response.status === 202) {
                setTimeout(() => pollAnalysis(fileId), 1000);
                return;
            }
            const data = await response.json();
            if (data.error) {
                showError(data.error);
                return;
            }
            displayResults(data);
        }

        function displayResults(data) {
            const analysis = data.analysis;
            document.getElementById('totalEntries').textContent = analysis.total_entries;
            document.getElementById('logType').textContent = analysis.log_type;
            document.getElementById('timeRange').textContent = analysis.time_range;
            document.getElementById('threatSummary').textContent = analysis.threat_summary;
            document.getElementById('aiSummary').textContent = data.executive_summary || 'AI analysis unavailable.';

            const table = document.getElementById('entries');
            table.innerHTML = '<tr><th>Time</th><th>Source</th><th>URL / Name</th><th>Category</th><th>Severity</th></tr>';
            data.sample_entries.forEach(entry => {
                const row = table.insertRow();
                [entry.timestamp, entry.source_ip, entry.url, entry.threat_category, entry.severity].forEach(value => {
                    row.insertCell().textContent = value || '';
                });
                row.cells[4].className = 'sev-' + entry.severity;
            });
            document.getElementById('results').style.display = 'block';
        }

        document.getElementById('uploadBtn').addEventListener('click', async function() {
            const file = document.getElementById('logfile').files[0];
            if (!file) return;
            errorBox.classList.remove('show');

            const formData = new FormData();
            formData.append('logfile', file);

            try {
                const response = await fetch('/api/logs/upload', { method: 'POST', body: formData });
                const data = await response.json();
                if (data.error) {
                    throw new Error(data.error);
                }
                pollAnalysis(data.file.id);
            } catch (error) {
                showError(error.message);
            }
        });
    </script>
</body>
</html>
'''

if __name__ == '__main__':
    print("=" * 60)
    print("Threat Log Analyzer")
    print("=" * 60)
    print("\n🚀 Starting Flask server...")
    print("📝 Optional AI summaries need Ollama running: ollama serve")
    print("📦 Supports: ZScaler web/firewall/DNS/SSL/threat exports, Apache/Nginx access logs")
    print("🌐 Open http://localhost:5000 in your browser\n")
    create_app().run(debug=True, host='0.0.0.0', port=5000)
