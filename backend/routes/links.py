# routes/links.py
"""
Submitted links endpoints

POST /api/submit-links   (admin)  - add links to a month's batch
GET  /api/get-links               - read a month's batch
"""

from flask import Blueprint, jsonify, request
import logging

import link_store
from db_utils import DatabaseNotConfiguredError
from middleware.auth_middleware import require_admin
from music_detector import extract_music_urls
from utils.helpers import safe_strip

logger = logging.getLogger(__name__)
links_bp = Blueprint('links', __name__, url_prefix='/api')


def _parse_mentions(raw):
    """Free-text mentions are stored verbatim, one entry per line"""
    if not raw:
        return []
    if isinstance(raw, str):
        raw = raw.splitlines()
    mentions = []
    for line in raw:
        line = safe_strip(line) if isinstance(line, str) else None
        if line and line not in mentions:
            mentions.append(line)
    return mentions


@links_bp.route('/submit-links', methods=['POST'])
@require_admin
def submit_links():
    """
    Add links to a month's batch

    Request body:
        {
            "links": "https://... https://..." or ["https://...", ...],
            "mentions": ["Daft Punk - Around The World", ...] (optional),
            "month": "YYYY-MM" (optional, defaults to the current month)
        }

    Returns:
        200: {"success": true, "month", "added", "duplicatesSkipped", "totalLinks",
              "recognized", "unrecognized": [...]}
        400: Nothing usable in the submission / invalid month
        500: Database error
    """
    data = request.get_json(silent=True)
    if not isinstance(data, dict):
        return jsonify({'success': False, 'error': 'Invalid request body. Expected JSON object.'}), 400

    if not data.get('links') and not data.get('mentions'):
        return jsonify({
            'success': False,
            'error': 'No links provided. Send { links: "..." } or { links: [...] }'
        }), 400

    month = data.get('month') or link_store.current_month_key()
    if not link_store.is_month_key(month):
        return jsonify({'success': False, 'error': f"Invalid month '{month}', expected YYYY-MM"}), 400

    parsed_links = link_store.parse_links(data.get('links'))
    mentions = _parse_mentions(data.get('mentions'))
    submissions = parsed_links + [m for m in mentions if m not in parsed_links]

    if not submissions:
        return jsonify({'success': False, 'error': 'No valid URLs found in submission'}), 400

    unrecognized = [link for link in parsed_links if not extract_music_urls(link)]

    try:
        result = link_store.append_submitted_links(month, submissions)
    except DatabaseNotConfiguredError as e:
        logger.error(f"[SubmitLinks] {e}")
        return jsonify({'success': False, 'error': 'Database not configured.'}), 500
    except Exception as e:
        logger.error(f"[SubmitLinks] Error: {e}", exc_info=True)
        return jsonify({'success': False, 'error': 'Failed to save links. Check server logs.'}), 500

    message = f"Added {result['added']} new links"
    if result['duplicates']:
        message += f" ({result['duplicates']} duplicates skipped)"

    return jsonify({
        'success': True,
        'message': message,
        'month': month,
        'added': result['added'],
        'duplicatesSkipped': result['duplicates'],
        'totalLinks': result['total'],
        'recognized': len(parsed_links) - len(unrecognized),
        'unrecognized': unrecognized
    }), 200


@links_bp.route('/get-links', methods=['GET'])
def get_links():
    """
    Get the links submitted for a month

    Query parameters:
        month: 'YYYY-MM' (defaults to the current month)
    """
    month = request.args.get('month') or link_store.current_month_key()
    if not link_store.is_month_key(month):
        return jsonify({'success': False, 'error': f"Invalid month '{month}', expected YYYY-MM"}), 400

    try:
        doc = link_store.get_links_document(month)
    except Exception as e:
        logger.error(f"[GetLinks] Error: {e}", exc_info=True)
        return jsonify({'success': False, 'error': 'Failed to retrieve links'}), 500

    if not doc:
        return jsonify({'success': True, 'month': month, 'links': [], 'count': 0}), 200

    links = list(doc['links'] or [])
    return jsonify({
        'success': True,
        'month': month,
        'links': links,
        'count': len(links),
        'createdAt': doc.get('created_at'),
        'updatedAt': doc.get('updated_at')
    }), 200
