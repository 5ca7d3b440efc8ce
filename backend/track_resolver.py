"""
Track Resolver

Resolves a Candidate to at most one Spotify track released in the target
month. Direct track ids are looked up without searching; everything else goes
through a single search request whose results are scanned in the order
Spotify returns them. The first result with a matching release date wins.

Failures for one candidate never abort a run: they come back as a
ResolveResult carrying an error message.
"""

import logging
from typing import Optional

import requests

from date_utils import TargetMonth, is_released_in_month
from models import Candidate, ResolvedTrack, ResolveResult
from spotify_client import SpotifyAPIError, SpotifyAuthError, SpotifyClient, SpotifyRateLimitError

logger = logging.getLogger(__name__)


SEARCH_RESULT_LIMIT = 10


def build_search_query(query: Optional[str], artist: Optional[str] = None,
                       track: Optional[str] = None) -> str:
    """
    Build a Spotify search query, using field filters when hints exist

    Examples:
        build_search_query("x", "Daft Punk", "Around The World")
            -> "track:Around The World artist:Daft Punk"
        build_search_query("Around The World", track="Around The World")
            -> "track:Around The World Around The World"
        build_search_query("daft punk live", artist="Daft Punk")
            -> "artist:Daft Punk daft punk live"
    """
    query = (query or '').strip()

    if artist and track:
        return f"track:{track} artist:{artist}"
    if track:
        return f"track:{track} {query}".strip()
    if artist:
        return f"artist:{artist} {query}".strip()
    return query


def _release_date(item: dict) -> Optional[str]:
    album = item.get('album')
    if not isinstance(album, dict):
        return None
    release_date = album.get('release_date')
    return release_date if isinstance(release_date, str) else None


class TrackResolver:
    """
    Resolves candidates against the Spotify catalogue
    """

    def __init__(self, client: SpotifyClient, search_limit: int = SEARCH_RESULT_LIMIT, logger=None):
        self.client = client
        self.search_limit = search_limit
        self.logger = logger or logging.getLogger(__name__)

    def resolve(self, candidate: Candidate, target_month: TargetMonth) -> ResolveResult:
        """
        Resolve one candidate for the target month

        Args:
            candidate: Candidate built by the music detector
            target_month: Month whose releases are accepted

        Returns:
            ResolveResult with the accepted track, nothing (no match), or an
            error message
        """
        try:
            if candidate.direct_track_id:
                self.logger.info(f"Direct Spotify track: {candidate.direct_track_id}")
                return self._resolve_direct(candidate.direct_track_id, target_month)

            if not (candidate.search_query or candidate.artist_hint or candidate.track_hint):
                self.logger.debug(f"Nothing to search for {candidate.describe()}")
                return ResolveResult.no_match()

            return self._resolve_search(candidate, target_month)

        except (SpotifyAPIError, SpotifyAuthError, SpotifyRateLimitError,
                requests.exceptions.RequestException, ValueError) as e:
            message = f"Failed to resolve {candidate.describe()}: {e}"
            self.logger.error(message)
            return ResolveResult.failure(message)

    def _resolve_direct(self, track_id: str, target_month: TargetMonth) -> ResolveResult:
        data = self.client.get_track(track_id)
        if not isinstance(data, dict):
            raise ValueError(f"Malformed track object for {track_id}")
        release_date = _release_date(data)

        if not is_released_in_month(release_date, target_month.year_month):
            self.logger.debug(f"Track {track_id} released {release_date}, "
                              f"not in {target_month.year_month}")
            return ResolveResult.no_match()

        return ResolveResult(track=ResolvedTrack.from_api(data))

    def _resolve_search(self, candidate: Candidate, target_month: TargetMonth) -> ResolveResult:
        search_query = build_search_query(
            candidate.search_query,
            artist=candidate.artist_hint,
            track=candidate.track_hint
        )
        self.logger.info(f'Searching: "{search_query}"')

        items = self.client.search_tracks(search_query, limit=self.search_limit)
        if not items:
            return ResolveResult.no_match()

        for item in items:
            if not isinstance(item, dict):
                self.logger.debug(f"Skipping malformed search result: {item!r}")
                continue
            release_date = _release_date(item)
            if not is_released_in_month(release_date, target_month.year_month):
                continue
            try:
                return ResolveResult(track=ResolvedTrack.from_api(item))
            except ValueError as e:
                self.logger.debug(f"Skipping search result: {e}")

        # Expected for most shared music - it simply is not a new release
        self.logger.debug(f'No result for "{search_query}" released in {target_month.year_month}')
        return ResolveResult.no_match()
