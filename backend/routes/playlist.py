# routes/playlist.py
"""
Playlist generation endpoint

Triggered by the monthly scheduler (00:00 UTC on the 1st) or manually from the
admin panel. Runs synchronously and returns the run report.
"""

from flask import Blueprint, current_app, jsonify, request
import logging

from config import create_run_context
from date_utils import parse_year_month
from middleware.auth_middleware import require_cron_secret
from playlist_generator import PlaylistGenerator, failure_report

logger = logging.getLogger(__name__)
playlist_bp = Blueprint('playlist', __name__, url_prefix='/api')


@playlist_bp.route('/generate-playlist', methods=['GET', 'POST'])
@require_cron_secret
def generate_playlist():
    """
    Run the playlist generator

    Query parameters / JSON body (both optional):
        month: 'YYYY-MM' to build a specific month instead of the previous one

    Returns:
        200: Run report (including early exits with nothing to publish)
        400: Invalid month
        500: Run report for a failed run (partial stats)
    """
    data = request.get_json(silent=True) or {}
    month_value = request.args.get('month') or data.get('month')

    target_month = None
    if month_value:
        try:
            target_month = parse_year_month(month_value)
        except ValueError as e:
            return jsonify({'success': False, 'error': str(e)}), 400

    try:
        context = create_run_context(
            current_app.config['SPOTIFY_TOKEN_CACHE'],
            project_id=current_app.config['CONFIG_PROJECT_ID']
        )
    except ValueError as e:
        logger.error(f"[GeneratePlaylist] Invalid settings: {e}")
        report, status_code = failure_report(str(e))
        return jsonify(report), status_code

    report, status_code = PlaylistGenerator(context, logger=logger).run(target_month=target_month)
    return jsonify(report), status_code
