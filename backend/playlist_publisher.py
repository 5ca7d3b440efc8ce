"""
Playlist Publisher

Creates the monthly playlist and appends resolved tracks to it:
- tracks already in the playlist are skipped (membership read through every page)
- the rest are appended in batches of at most 100 URIs

Appending is not transactional. If a batch fails the exception propagates and
the batches that were already applied stay in the playlist.
"""

import time
import logging
from typing import Iterable

from models import AddTracksResult, PlaylistInfo
from spotify_client import MAX_URIS_PER_REQUEST, SpotifyClient

logger = logging.getLogger(__name__)


class PlaylistPublisher:

    def __init__(self, client: SpotifyClient, batch_size: int = MAX_URIS_PER_REQUEST,
                 batch_delay: float = 0.1, logger=None):
        """
        Args:
            client: Authenticated SpotifyClient
            batch_size: URIs per append request (capped at Spotify's limit of 100)
            batch_delay: Pause between append requests (seconds)
            logger: Optional logger instance
        """
        self.client = client
        self.batch_size = max(1, min(batch_size, MAX_URIS_PER_REQUEST))
        self.batch_delay = batch_delay
        self.logger = logger or logging.getLogger(__name__)

    def create_playlist(self, owner_id: str, name: str, description: str) -> PlaylistInfo:
        """Create a new private playlist owned by owner_id"""
        self.logger.info(f"Creating playlist: {name}")

        data = self.client.create_playlist(owner_id, name, description, public=False)
        url = (data.get('external_urls') or {}).get('spotify') or f"https://open.spotify.com/playlist/{data['id']}"

        self.logger.info(f"Playlist created: {url}")
        return PlaylistInfo(id=data['id'], url=url, name=data.get('name', name))

    def add_tracks(self, playlist_id: str, track_uris: Iterable[str]) -> AddTracksResult:
        """
        Add tracks to a playlist, skipping ones it already contains

        Args:
            playlist_id: Target playlist
            track_uris: Spotify track URIs

        Returns:
            AddTracksResult(added=URIs submitted, skipped=URIs already present
            or repeated in the input)
        """
        track_uris = list(track_uris)
        if not track_uris:
            return AddTracksResult(added=0, skipped=0)

        self.logger.info("Checking existing playlist tracks...")
        existing_uris = self.client.get_playlist_track_uris(playlist_id)

        new_uris = []
        seen = set(existing_uris)
        for uri in track_uris:
            if uri in seen:
                continue
            seen.add(uri)
            new_uris.append(uri)

        skipped = len(track_uris) - len(new_uris)
        if skipped:
            self.logger.info(f"Skipping {skipped} duplicate tracks")

        added = 0
        for start in range(0, len(new_uris), self.batch_size):
            batch = new_uris[start:start + self.batch_size]
            self.client.add_tracks_to_playlist(playlist_id, batch)
            added += len(batch)
            self.logger.info(f"Added batch: {added}/{len(new_uris)} tracks")

            if start + self.batch_size < len(new_uris) and self.batch_delay:
                time.sleep(self.batch_delay)

        return AddTracksResult(added=added, skipped=skipped)
