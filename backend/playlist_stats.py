"""
Playlist Statistics
Computes the numbers shown on the community site from the monthly playlists

Input shape (as returned by fetch_all_playlists_data):
    {
        'playlists': [{'id', 'name', 'url', 'coverImage', 'followers', 'trackCount'}, ...],
        'tracks_by_playlist': {playlist_id: [{'id', 'name', 'artists', 'durationMs', 'addedAt'}, ...]}
    }
"""

import logging
from datetime import datetime, timezone
from typing import Dict, Iterable, List, Mapping

from spotify_client import SpotifyClient
from utils.helpers import split_csv

logger = logging.getLogger(__name__)


DEFAULT_PLAYLIST_NAME = 'Digital Diggaz'
TOP_ARTIST_LIMIT = 10
NEW_TRACK_LIMIT = 10

PLAYLIST_FIELDS = 'id,name,external_urls,images,followers(total),tracks(total)'
ITEM_FIELDS = 'items(added_at,track(id,name,duration_ms,artists(name))),next'


# ============================================================================
# CALCULATIONS
# ============================================================================

def get_unique_tracks(tracks_by_playlist: Mapping[str, List[dict]]) -> Dict[str, dict]:
    """Tracks keyed by id across all playlists (first occurrence wins)"""
    unique = {}
    for tracks in tracks_by_playlist.values():
        for track in tracks:
            if track['id'] not in unique:
                unique[track['id']] = track
    return unique


def calculate_total_duration(tracks) -> int:
    """Sum of durationMs over a list of tracks or a dict of id -> track"""
    if isinstance(tracks, Mapping):
        tracks = tracks.values()
    return sum(track.get('durationMs') or 0 for track in tracks)


def get_top_artists(unique_tracks: Mapping[str, dict], limit: int = TOP_ARTIST_LIMIT) -> List[dict]:
    """
    Count tracks per artist

    Returns:
        [{'name': str, 'count': int}, ...] most tracks first; ties keep the
        order in which artists were first seen
    """
    counts = {}
    for track in unique_tracks.values():
        for artist in track.get('artists') or []:
            counts[artist] = counts.get(artist, 0) + 1

    ranked = sorted(counts.items(), key=lambda item: item[1], reverse=True)
    return [{'name': name, 'count': count} for name, count in ranked[:limit]]


def get_new_tracks(main_tracks: List[dict], tracks_by_playlist: Mapping[str, List[dict]],
                   main_id: str) -> List[dict]:
    """Tracks in the main playlist that no other playlist has, newest first"""
    historical_ids = set()
    for playlist_id, tracks in tracks_by_playlist.items():
        if playlist_id == main_id:
            continue
        historical_ids.update(track['id'] for track in tracks)

    new_tracks = [track for track in main_tracks if track['id'] not in historical_ids]
    return sorted(new_tracks, key=lambda track: track.get('addedAt') or '', reverse=True)


def format_duration(ms) -> str:
    """Milliseconds as H:MM:SS, e.g. 3723000 -> '1:02:03'"""
    if not ms or ms < 0:
        return '0:00:00'

    total_seconds = int(ms // 1000)
    hours, remainder = divmod(total_seconds, 3600)
    minutes, seconds = divmod(remainder, 60)
    return f"{hours}:{minutes:02d}:{seconds:02d}"


def build_stats(data: Mapping, main_id: str) -> dict:
    """
    Build the full stats payload

    Args:
        data: Output of fetch_all_playlists_data
        main_id: ID of the current/main playlist

    Returns:
        Dict with main, total, current, topArtists, newTracks, otherPlaylists, fetchedAt
    """
    playlists = data.get('playlists') or []
    tracks_by_playlist = data.get('tracks_by_playlist') or {}

    main_playlist = next((p for p in playlists if p['id'] == main_id), {})
    main_tracks = tracks_by_playlist.get(main_id) or []

    unique_tracks = get_unique_tracks(tracks_by_playlist)
    new_tracks = get_new_tracks(main_tracks, tracks_by_playlist, main_id)

    return {
        'main': {
            'id': main_playlist.get('id'),
            'name': main_playlist.get('name') or DEFAULT_PLAYLIST_NAME,
            'url': main_playlist.get('url'),
            'coverImage': main_playlist.get('coverImage'),
            'followers': main_playlist.get('followers') or 0
        },
        'total': {
            'tracks': len(unique_tracks),
            'durationMs': calculate_total_duration(unique_tracks)
        },
        'current': {
            'tracks': len(main_tracks),
            'durationMs': calculate_total_duration(main_tracks)
        },
        'topArtists': get_top_artists(unique_tracks, TOP_ARTIST_LIMIT),
        'newTracks': [
            {
                'id': track['id'],
                'name': track.get('name'),
                'artists': track.get('artists') or [],
                'addedAt': track.get('addedAt')
            }
            for track in new_tracks[:NEW_TRACK_LIMIT]
        ],
        'otherPlaylists': [
            {
                'id': p['id'],
                'name': p.get('name'),
                'url': p.get('url'),
                'trackCount': p.get('trackCount', 0)
            }
            for p in playlists if p['id'] != main_id
        ],
        'fetchedAt': datetime.now(timezone.utc).isoformat()
    }


# ============================================================================
# SPOTIFY DATA
# ============================================================================

def parse_playlist_ids(main_id: str, raw_ids: str) -> List[str]:
    """Split a comma-separated id list, making sure the main id comes first"""
    ids = split_csv(raw_ids)
    if main_id and main_id not in ids:
        ids.insert(0, main_id)
    return ids


def _playlist_summary(data: dict) -> dict:
    images = data.get('images') or []
    return {
        'id': data['id'],
        'name': data.get('name'),
        'url': (data.get('external_urls') or {}).get('spotify')
               or f"https://open.spotify.com/playlist/{data['id']}",
        'coverImage': images[0].get('url') if images else None,
        'followers': (data.get('followers') or {}).get('total', 0),
        'trackCount': (data.get('tracks') or {}).get('total', 0)
    }


def _track_summary(item: dict):
    track = item.get('track')
    # Local files and removed tracks come back without an id
    if not track or not track.get('id'):
        return None
    return {
        'id': track['id'],
        'name': track.get('name'),
        'artists': [artist['name'] for artist in track.get('artists') or []],
        'durationMs': track.get('duration_ms') or 0,
        'addedAt': item.get('added_at')
    }


def fetch_all_playlists_data(client: SpotifyClient, playlist_ids: Iterable[str]) -> dict:
    """
    Fetch metadata and every track for each playlist

    Returns:
        {'playlists': [...], 'tracks_by_playlist': {...}} ready for build_stats
    """
    playlists = []
    tracks_by_playlist = {}

    for playlist_id in playlist_ids:
        playlists.append(_playlist_summary(client.get_playlist(playlist_id, fields=PLAYLIST_FIELDS)))

        tracks = []
        for item in client.get_playlist_items(playlist_id, fields=ITEM_FIELDS):
            summary = _track_summary(item)
            if summary:
                tracks.append(summary)
        tracks_by_playlist[playlist_id] = tracks

        logger.info(f"[Stats] Playlist {playlist_id}: {len(tracks)} tracks")

    return {'playlists': playlists, 'tracks_by_playlist': tracks_by_playlist}
