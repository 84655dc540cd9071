#!/usr/bin/env python3
"""
Demand Letter Drafter
Extracts case exhibits with Claude and exports settlement demand letters
"""

import io
import json
import logging
import os

from flask import Flask, request, jsonify, send_file, Response
from werkzeug.exceptions import RequestEntityTooLarge

from demand_drafter.config import Config
from demand_drafter.errors import DemandDrafterError, InputError
from demand_drafter.processors.exhibit_pipeline import ExhibitPipeline
from demand_drafter.processors.ingestion import parse_bool, parse_existing_exhibits, parse_keep_files
from demand_drafter.processors.section_enhancer import SectionEnhancer
from demand_drafter.renderers.letter_document import DOCX_MIMETYPE, LetterDocumentBuilder
from demand_drafter.utils.file_parser import UploadedFile
from demand_drafter.utils.model_client import ModelClient

logger = logging.getLogger(__name__)

config = Config.from_env()

app = Flask(__name__)
app.config['MAX_CONTENT_LENGTH'] = config.max_upload_mb * 1024 * 1024


def get_config() -> Config:
    """Settings for one request. Re-read so credential changes apply without a restart."""
    return Config.from_env()


def get_model_client(cfg: Config) -> ModelClient:
    return ModelClient(cfg)


def read_uploads():
    """Collect the `pdfs` file parts with their optional modified times."""
    raw_modified = request.form.get('lastModified')
    modified = {}
    if raw_modified:
        try:
            modified = json.loads(raw_modified)
        except json.JSONDecodeError as e:
            raise InputError('Invalid lastModified payload', details=str(e)) from e
        if not isinstance(modified, dict):
            raise InputError('Invalid lastModified payload', details='Expected a JSON object')

    uploads = []
    for file in request.files.getlist('pdfs'):
        name = os.path.basename(file.filename or '')
        stamp = modified.get(name)
        uploads.append(UploadedFile(
            file_name=name,
            data=file.read(),
            last_modified=str(stamp) if stamp is not None else None,
        ))
    return uploads


# ============ ERRORS ============

@app.errorhandler(DemandDrafterError)
def handle_drafter_error(error):
    return jsonify(error.to_dict()), error.status_code


@app.errorhandler(RequestEntityTooLarge)
def handle_too_large(error):
    return jsonify({
        'error': 'Upload too large',
        'details': f'Limit is {config.max_upload_mb} MB per request',
    }), 413


# ============ ROUTES ============

@app.route('/api/health')
def health():
    cfg = get_config()
    return jsonify({'status': 'ok', 'model': cfg.model, 'configured': cfg.is_configured})


@app.route('/api/process-pdf', methods=['POST'])
def process_pdf():
    """Extract new exhibits and rebuild the case analysis"""
    cfg = get_config()
    cfg.require_api_key()

    uploads = read_uploads()
    existing = parse_existing_exhibits(request.form.get('existingExhibits'))
    keep_files = parse_keep_files(request.form.get('keepFiles'))
    reprocess_all = parse_bool(request.form.get('reprocessAll'))

    try:
        pipeline = ExhibitPipeline(get_model_client(cfg), cfg)
        result = pipeline.process(uploads, existing, keep_files, reprocess_all)
    except DemandDrafterError:
        raise
    except Exception as e:
        logger.exception("PDF processing error")
        return jsonify({'error': 'Failed to process PDF files', 'details': str(e)}), 500

    return jsonify(result.to_dict())


@app.route('/api/enhance-section', methods=['POST'])
def enhance_section():
    """Rewrite one letter section following the user's instruction"""
    data = request.get_json(silent=True) or {}
    section_content = data.get('sectionContent')
    instruction = data.get('enhancementPrompt')
    section_type = data.get('sectionType') or 'letter'

    if not section_content or not instruction:
        return jsonify({'success': False, 'error': 'Missing section content or enhancement prompt'}), 400

    cfg = get_config()
    try:
        cfg.require_api_key()
        enhancer = SectionEnhancer(get_model_client(cfg))
        return jsonify(enhancer.enhance(section_content, instruction, section_type))
    except DemandDrafterError as e:
        logger.error(f"Enhancement error: {e.message}")
        return jsonify({'success': False, 'error': e.message}), e.status_code


@app.route('/api/export-word', methods=['POST'])
def export_word():
    """Generate the demand letter as a Word document"""
    data = request.get_json(silent=True)
    if not isinstance(data, dict) or not isinstance(data.get('letterData'), dict):
        return jsonify({'error': 'Missing letterData'}), 400

    pleading_paper = bool(data.get('pleadingPaper', False))
    exhibits = [e for e in data.get('exhibits') or [] if isinstance(e, dict)]
    builder = LetterDocumentBuilder(data['letterData'], exhibits)

    try:
        if data.get('format') == 'text':
            return Response(
                builder.pleading_text(),
                mimetype='text/plain',
                headers={'Content-Disposition': f'attachment; filename={builder.download_name(True, "txt")}'},
            )
        content = builder.to_bytes(pleading_paper)
    except Exception as e:
        logger.exception("Word export error")
        return jsonify({'error': 'Failed to generate Word document', 'details': str(e)}), 500

    return send_file(
        io.BytesIO(content),
        as_attachment=True,
        download_name=builder.download_name(pleading_paper),
        mimetype=DOCX_MIMETYPE,
    )


if __name__ == '__main__':
    logging.basicConfig(
        level=config.log_level,
        format='%(asctime)s %(levelname)s %(name)s: %(message)s',
    )

    print("\n" + "="*60)
    print("DEMAND LETTER DRAFTER")
    print("="*60)
    print(f"\nServer starting at: http://{config.host}:{config.port}")
    if not config.is_configured:
        print("\nWARNING: ANTHROPIC_API_KEY is not set. Add it to your .env file.")
    print("Press Ctrl+C to stop.\n")

    app.run(debug=config.debug, host=config.host, port=config.port)
