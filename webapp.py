#!/usr/bin/env python3
"""
Flask Web UI for the helpdesk audit tool
Provides a simple web interface and JSON API for device classification,
credential consolidation and staff import validation
"""

import os
import logging
import uuid
from pathlib import Path
from datetime import datetime
from flask import Flask, render_template, request, redirect, url_for, send_file, flash, jsonify
from werkzeug.utils import secure_filename

from core.ad_client import ActiveDirectoryClient
from core.consolidation import consolidate_users_by_email, get_all_usernames, get_credentials_summary
from core.credentials import display_password
from core.device_type import classify
from core.models import CredentialRecord, DeviceClassificationInput
from processors.credential_consolidation import CredentialConsolidationProcessor
from processors.device_classification import DeviceClassificationProcessor
from processors.user_import import UserImportProcessor
from utils.config import Config

app = Flask(__name__)
app.secret_key = os.environ.get('FLASK_SECRET_KEY', 'your-secret-key-change-this')

app.config.update(
    UPLOAD_FOLDER=os.environ.get('UPLOAD_FOLDER', 'uploads'),
    OUTPUT_FOLDER=os.environ.get('OUTPUT_FOLDER', 'downloads'),
    MAX_CONTENT_LENGTH=16 * 1024 * 1024  # 16MB max file size
)

# Processor configurations
PROCESSORS = {
    'classify': {
        'name': 'Device Classification',
        'description': 'Thin client vs full PC from serial, VPN, RDP and Intune signals',
        'file_types': ['csv', 'xlsx', 'xls'],
        'class': DeviceClassificationProcessor
    },
    'consolidate': {
        'name': 'Credential Consolidation',
        'description': 'One row per email across VPN and RDP credentials',
        'file_types': ['csv', 'xlsx', 'xls'],
        'class': CredentialConsolidationProcessor
    },
    'import_users': {
        'name': 'Staff Import Validation',
        'description': 'Email format and domain checks for staff import sheets',
        'file_types': ['csv'],
        'class': UserImportProcessor
    }
}

CLASSIFICATION_FIELDS = [
    'device_serial_number', 'vpn_username', 'vpn_password',
    'rdp_username', 'rdp_password', 'device_type'
]

CREDENTIAL_FIELDS = [
    'id', 'username', 'password', 'service_type', 'email',
    'notes', 'created_at', 'updated_at', 'tenant_id'
]


def allowed_file(filename, processor_type):
    """Check if file extension is allowed for the processor"""
    if '.' not in filename:
        return False

    extension = filename.rsplit('.', 1)[1].lower()
    allowed_extensions = PROCESSORS.get(processor_type, {}).get('file_types', [])
    return extension in allowed_extensions


def setup_logging():
    """Setup logging for the web application"""
    log_dir = Path("logs")
    log_dir.mkdir(exist_ok=True)

    timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
    log_filename = log_dir / f"webapp_{timestamp}.log"

    logging.basicConfig(
        level=logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
        handlers=[
            logging.FileHandler(log_filename),
            logging.StreamHandler()
        ]
    )


def build_processor(processor_type, config, ad_client):
    if processor_type == 'import_users':
        return UserImportProcessor(config.allowed_email_domain)
    return PROCESSORS[processor_type]['class'](ad_client)


@app.route('/')
def index():
    """Main page with upload form"""
    return render_template('index.html', processors=PROCESSORS)


@app.route('/upload', methods=['POST'])
def upload_file():
    """Handle file upload and processing"""
    try:
        if 'file' not in request.files:
            flash('No file selected', 'error')
            return redirect(url_for('index'))

        file = request.files['file']
        processor_type = request.form.get('processor')
        use_directory = request.form.get('use_directory') == 'on'
        sheet_name = request.form.get('sheet_name', '').strip() or None

        if file.filename == '':
            flash('No file selected', 'error')
            return redirect(url_for('index'))

        if not processor_type or processor_type not in PROCESSORS:
            flash('Invalid processor selected', 'error')
            return redirect(url_for('index'))

        if not allowed_file(file.filename, processor_type):
            allowed_types = ', '.join(PROCESSORS[processor_type]['file_types'])
            flash(f'Invalid file type. Allowed types for {PROCESSORS[processor_type]["name"]}: {allowed_types}',
                  'error')
            return redirect(url_for('index'))

        job_id = str(uuid.uuid4())

        upload_folder = app.config['UPLOAD_FOLDER']
        os.makedirs(upload_folder, exist_ok=True)
        filename = secure_filename(file.filename)
        input_path = os.path.join(upload_folder, f"{job_id}_{filename}")
        file.save(input_path)

        result = process_file(job_id, input_path, processor_type, use_directory, sheet_name)

        if result['success']:
            return render_template('results.html',
                                   job_id=job_id,
                                   processor_name=PROCESSORS[processor_type]['name'],
                                   stats=result.get('stats'),
                                   output_files=result.get('output_files', []))
        else:
            flash(f'Processing failed: {result["error"]}', 'error')
            return redirect(url_for('index'))

    except Exception as e:
        app.logger.error(f"Upload error: {str(e)}")
        flash(f'An error occurred: {str(e)}', 'error')
        return redirect(url_for('index'))


def process_file(job_id, input_path, processor_type, use_directory, sheet_name):
    """Process the uploaded file using the selected processor"""
    try:
        app.logger.info(f"Starting processing job {job_id} with processor {processor_type}")

        config = Config()
        if use_directory and not config.validate_ad_config():
            missing_vars = config.get_missing_ad_vars()
            return {
                'success': False,
                'error': f'Missing AD configuration: {", ".join(missing_vars)}'
            }

        output_folder = app.config['OUTPUT_FOLDER']
        os.makedirs(output_folder, exist_ok=True)
        timestamp = datetime.now().strftime("%Y%m%d_%H%M%S")
        base_filename = f"{job_id}_{processor_type}_{timestamp}"
        output_path = os.path.join(output_folder, f"{base_filename}_processed.csv")

        ad_client = None
        if use_directory:
            ad_client = ActiveDirectoryClient(
                config.ad_server, config.ad_username,
                config.ad_password, config.base_dn
            )
            ad_client.connect()

        try:
            processor = build_processor(processor_type, config, ad_client)
            processing_stats = processor.process(input_path, output_path, sheet_name=sheet_name)
        finally:
            if ad_client:
                ad_client.disconnect()

        output_files = [{
            'filename': os.path.basename(output_path),
            'path': output_path,
            'description': 'Processed output'
        }]

        if processor_type == 'import_users' and processing_stats.errors:
            errors_path = os.path.join(output_folder, f"{base_filename}_errors.csv")
            processor.write_errors(errors_path)
            output_files.append({
                'filename': os.path.basename(errors_path),
                'path': errors_path,
                'description': 'Validation errors'
            })

        app.logger.info(f"Processing job {job_id} completed successfully")
        return {
            'success': True,
            'output_files': output_files,
            'stats': stats_for_display(processing_stats)
        }

    except Exception as e:
        app.logger.error(f"Processing job {job_id} failed: {str(e)}")
        return {
            'success': False,
            'error': str(e)
        }
    finally:
        if os.path.exists(input_path):
            os.remove(input_path)


def stats_for_display(stats):
    """Flatten processor statistics for the results page"""
    if hasattr(stats, 'device_type_counts'):
        display = {
            'total_records': stats.total_records,
            'classified_records': stats.classified_records,
            'skipped_records': stats.skipped_records
        }
        display.update({device_type.value: count for device_type, count in stats.device_type_counts.items()})
        return display

    if hasattr(stats, 'consolidated_users'):
        return {
            'total_records': stats.total_records,
            'records_without_email': stats.records_without_email,
            'consolidated_users': stats.consolidated_users,
            'users_with_both': stats.users_with_both
        }

    return {
        'total_rows': stats.total_rows,
        'valid_rows': len(stats.valid_rows),
        'errors': len(stats.errors)
    }


def classification_input_from_json(payload):
    """Build classifier input from a JSON object"""
    if not isinstance(payload, dict):
        raise ValueError('Each item must be a JSON object')

    values = {}
    for name in CLASSIFICATION_FIELDS:
        value = payload.get(name)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"'{name}' must be a string")
        values[name] = value

    has_intune = payload.get('has_intune_device', False)
    if not isinstance(has_intune, bool):
        raise ValueError("'has_intune_device' must be a boolean")

    return DeviceClassificationInput(has_intune_device=has_intune, **values)


def credential_record_from_json(payload):
    """Build a credential record from a JSON object"""
    if not isinstance(payload, dict):
        raise ValueError('Each item must be a JSON object')

    for name in CREDENTIAL_FIELDS:
        value = payload.get(name)
        if value is not None and not isinstance(value, str):
            raise ValueError(f"'{name}' must be a string")

    return CredentialRecord.from_dict(payload)


@app.route('/api/classify', methods=['POST'])
def api_classify():
    """Classify one JSON object or a list of them"""
    payload = request.get_json(silent=True)
    if payload is None:
        return jsonify({'error': 'Request body must be JSON'}), 400

    items = payload if isinstance(payload, list) else [payload]
    try:
        inputs = [classification_input_from_json(item) for item in items]
    except ValueError as e:
        return jsonify({'error': str(e)}), 400

    results = []
    for data in inputs:
        result = classify(data)
        results.append({'device_type': result.device_type.value, 'reason': result.reason})

    return jsonify(results if isinstance(payload, list) else results[0])


@app.route('/api/consolidate', methods=['POST'])
def api_consolidate():
    """Consolidate a JSON list of credential records"""
    payload = request.get_json(silent=True)
    if not isinstance(payload, list):
        return jsonify({'error': 'Request body must be a JSON list of credentials'}), 400

    try:
        records = [credential_record_from_json(item) for item in payload]
    except ValueError as e:
        return jsonify({'error': f'Invalid credential record: {e}'}), 400

    users = consolidate_users_by_email(records)
    return jsonify([
        {
            'id': user.id,
            'email': user.email,
            'summary': get_credentials_summary(user),
            'usernames': get_all_usernames(user),
            'has_vpn': user.has_vpn,
            'has_rdp': user.has_rdp,
            'created_at': user.created_at,
            'updated_at': user.updated_at,
            'credentials': [
                dict(cred.to_dict(), password=display_password(cred.password))
                for cred in user.all_credentials
            ]
        }
        for user in users
    ])


@app.route('/download/<filename>')
def download_file(filename):
    """Download processed file"""
    try:
        file_path = os.path.join(app.config['OUTPUT_FOLDER'], secure_filename(filename))
        if not os.path.exists(file_path):
            flash('File not found', 'error')
            return redirect(url_for('index'))

        return send_file(os.path.abspath(file_path), as_attachment=True)

    except Exception as e:
        app.logger.error(f"Download error: {str(e)}")
        flash('Error downloading file', 'error')
        return redirect(url_for('index'))


@app.route('/health')
def health_check():
    """Health check endpoint"""
    config = Config()

    return jsonify({
        'status': 'healthy',
        'ad_config_valid': config.validate_ad_config(),
        'store_config_valid': config.validate_store_config(),
        'processors_available': list(PROCESSORS.keys())
    })


if __name__ == '__main__':
    setup_logging()

    config = Config()
    if not config.validate_ad_config():
        missing_vars = config.get_missing_ad_vars()
        app.logger.warning(f"Missing AD configuration: {', '.join(missing_vars)}; directory enrichment disabled")
    else:
        app.logger.info("AD configuration validated successfully")

    port = int(os.environ.get('PORT', 5000))
    debug = os.environ.get('FLASK_DEBUG', 'False').lower() == 'true'

    app.logger.info(f"Starting helpdesk audit Web UI on port {port}")
    app.run(host='0.0.0.0', port=port, debug=debug)
