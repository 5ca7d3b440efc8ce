# routes/stats.py
"""
Playlist statistics for the community site

GET /api/stats

Requires MAIN_PLAYLIST_ID and PLAYLIST_IDS (comma-separated, main + past months)
plus working Spotify credentials.
"""

from flask import Blueprint, current_app, jsonify
import logging

import config_store
from playlist_stats import build_stats, fetch_all_playlists_data, parse_playlist_ids
from spotify_client import SpotifyClient

logger = logging.getLogger(__name__)
stats_bp = Blueprint('stats', __name__, url_prefix='/api')

CACHE_CONTROL = 's-maxage=300, stale-while-revalidate'


@stats_bp.route('/stats', methods=['GET'])
def get_stats():
    """
    Compute playlist statistics

    Returns:
        200: Stats payload (cached by the CDN for 5 minutes)
        503: Playlist ids or Spotify credentials not configured
        500: Spotify error
    """
    main_id = current_app.config.get('MAIN_PLAYLIST_ID')
    playlist_ids = parse_playlist_ids(main_id, current_app.config.get('PLAYLIST_IDS'))

    if not main_id:
        return jsonify({'error': 'Playlist IDs not configured. Set MAIN_PLAYLIST_ID and PLAYLIST_IDS.'}), 503

    try:
        config = config_store.get_active_config(current_app.config['CONFIG_PROJECT_ID'])
    except config_store.ConfigError as e:
        logger.warning(f"[Stats] {e}")
        return jsonify({'error': 'Spotify credentials not configured', 'message': str(e)}), 503

    logger.info(f"[Stats] Fetching data for {len(playlist_ids)} playlists")

    try:
        client = SpotifyClient(config, token_cache=current_app.config['SPOTIFY_TOKEN_CACHE'], logger=logger)
        data = fetch_all_playlists_data(client, playlist_ids)
        stats = build_stats(data, main_id)
    except Exception as e:
        logger.error(f"[Stats] Error: {e}", exc_info=True)
        return jsonify({'error': 'Failed to fetch playlist stats', 'message': str(e)}), 500

    response = jsonify(stats)
    response.headers['Cache-Control'] = CACHE_CONTROL
    return response, 200
