# routes/status.py
"""
System status endpoints

GET  /api/status        - database reachability, config presence, next run, last run
GET  /api/test/spotify  - refresh a token with the active config and read the profile
POST /api/test/spotify  - same, with credentials from the request body (before saving)
"""

from datetime import datetime, timezone

from flask import Blueprint, current_app, jsonify, request
import logging
import requests

import config_store
import db_utils
from date_utils import describe_next_run
from models import SpotifyConfig
from spotify_client import (
    SpotifyAPIError, SpotifyAuthError, SpotifyClient, SpotifyRateLimitError, TokenCache
)

logger = logging.getLogger(__name__)
status_bp = Blueprint('status', __name__, url_prefix='/api')


@status_bp.route('/status', methods=['GET'])
def get_status():
    """
    Report system status

    Always returns 200; individual checks report their own state.
    """
    project_id = current_app.config['CONFIG_PROJECT_ID']
    status = {
        'timestamp': datetime.now(timezone.utc).isoformat(),
        'hasDatabaseConnection': False,
        'hasSpotifyConfig': False,
        'nextCronRunDescription': describe_next_run(),
        'lastRunSummary': None
    }

    stored_vars = {}
    try:
        status['hasDatabaseConnection'] = db_utils.test_connection()
        if status['hasDatabaseConnection']:
            row = config_store.get_config(project_id)
            if row:
                stored_vars = row.get('vars') or {}
                last_run = row.get('last_run')
                if last_run:
                    status['lastRunSummary'] = {
                        'date': last_run.get('date'),
                        'success': last_run.get('success'),
                        'tracksAdded': last_run.get('tracksAdded') or 0,
                        'playlistUrl': last_run.get('playlistUrl')
                    }
    except Exception as e:
        logger.error(f"[Status] Error: {e}")

    status['hasSpotifyConfig'] = config_store.has_spotify_config(
        config_store.merge_with_environment(stored_vars)
    )

    logger.info(f"[Status] Database: {'OK' if status['hasDatabaseConnection'] else 'Unavailable'}, "
                f"Spotify config: {'OK' if status['hasSpotifyConfig'] else 'Missing'}")
    return jsonify(status), 200


def _config_from_body(data: dict):
    client_id = data.get('clientId')
    client_secret = data.get('clientSecret')
    refresh_token = data.get('refreshToken')
    if not client_id or not client_secret or not refresh_token:
        return None
    return SpotifyConfig(
        client_id=client_id,
        client_secret=client_secret,
        refresh_token=refresh_token,
        user_id=data.get('userId') or ''
    )


@status_bp.route('/test/spotify', methods=['GET', 'POST'])
def test_spotify():
    """
    Check Spotify credentials end to end

    Uses a throwaway token cache so test credentials never replace the token
    used by playlist runs.

    Returns:
        200: {"success": bool, "message": str}
        400: POST without clientId / clientSecret / refreshToken
    """
    if request.method == 'POST':
        config = _config_from_body(request.get_json(silent=True) or {})
        if config is None:
            return jsonify({
                'success': False,
                'error': 'Client ID, Secret, and Refresh Token required'
            }), 400
    else:
        try:
            config = config_store.get_active_config(current_app.config['CONFIG_PROJECT_ID'])
        except config_store.ConfigError as e:
            return jsonify({'success': False, 'message': str(e)}), 200

    client = SpotifyClient(config, token_cache=TokenCache(), max_retries=1, logger=logger)
    try:
        profile = client.get_current_user()
    except (SpotifyAuthError, SpotifyAPIError, SpotifyRateLimitError) as e:
        return jsonify({'success': False, 'message': str(e)}), 200
    except requests.exceptions.RequestException as e:
        logger.error(f"[TestSpotify] Error: {e}")
        return jsonify({'success': False, 'message': 'Connection failed'}), 200

    return jsonify({
        'success': True,
        'message': f"Connected as {profile.get('display_name') or profile.get('id')}"
    }), 200
