"""
Monthly Playlist Generator

Orchestrates a full run:
    load config -> compute target month -> authenticate -> gather submitted links
    -> extract candidates -> resolve (sequential, throttled) -> create playlist
    -> add tracks -> report

Early exits (no links, no candidates, no matches) are successful runs that
create nothing. Any unhandled error ends the run with a failure report that
still carries the stats collected so far. Nothing is rolled back: a playlist
created before a failing append stays as it is.

Used by:
- routes/playlist.py (HTTP trigger, monthly cron)
- scripts/generate_playlist.py (CLI interface)
"""

import os
import time
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional, Tuple

from date_utils import TargetMonth, get_previous_month_bounds
from models import Candidate, ResolvedTrack, RunStats
from music_detector import extract_music_from_post
from playlist_publisher import PlaylistPublisher
from rate_limiter import RateLimiter
from spotify_client import SpotifyClient, TokenCache
from track_resolver import TrackResolver

logger = logging.getLogger(__name__)


DEFAULT_PLAYLIST_PREFIX = 'Digital Diggaz'

# Pause between candidates to stay under Spotify's request budget
DEFAULT_CANDIDATE_DELAY = 0.2


def _parse_delay(raw: Optional[str]) -> float:
    if raw is None or not raw.strip():
        return DEFAULT_CANDIDATE_DELAY
    try:
        delay = float(raw)
    except ValueError:
        delay = -1
    if not 0 <= delay < float('inf'):
        raise ValueError(f"Invalid CANDIDATE_DELAY_SECONDS '{raw}': expected a non-negative number of seconds")
    return delay


def failure_report(message: str) -> Tuple[Dict[str, Any], int]:
    """Report for a run that could not start (e.g. invalid settings)"""
    return {
        'success': False,
        'message': message,
        'stats': RunStats().to_dict(),
        'duration_ms': 0
    }, 500


@dataclass
class GeneratorSettings:
    project_id: str = 'default'
    playlist_prefix: str = DEFAULT_PLAYLIST_PREFIX
    candidate_delay: float = DEFAULT_CANDIDATE_DELAY
    batch_delay: float = 0.1
    page_delay: float = 0.1
    dry_run: bool = False

    @classmethod
    def from_env(cls, environ=None, **overrides) -> 'GeneratorSettings':
        """
        Read PLAYLIST_NAME_PREFIX / CANDIDATE_DELAY_SECONDS / CONFIG_PROJECT_ID

        Raises:
            ValueError: If CANDIDATE_DELAY_SECONDS is not a non-negative number
        """
        environ = os.environ if environ is None else environ
        settings = cls(
            project_id=environ.get('CONFIG_PROJECT_ID', 'default'),
            playlist_prefix=environ.get('PLAYLIST_NAME_PREFIX', DEFAULT_PLAYLIST_PREFIX),
            candidate_delay=_parse_delay(environ.get('CANDIDATE_DELAY_SECONDS'))
        )
        for key, value in overrides.items():
            setattr(settings, key, value)
        return settings


@dataclass
class RunContext:
    """
    Everything a run needs from the outside world

    config_store needs get_active_config(project_id) and
    record_last_run(summary, project_id); link_store needs
    get_submitted_links(month). The token cache is the one process-wide
    piece of state shared between runs.
    """
    config_store: Any
    link_store: Any
    token_cache: TokenCache = field(default_factory=TokenCache)
    settings: GeneratorSettings = field(default_factory=GeneratorSettings)
    client_factory: Callable[..., SpotifyClient] = SpotifyClient


class PlaylistGenerator:

    def __init__(self, context: RunContext, logger=None):
        self.context = context
        self.settings = context.settings
        self.logger = logger or logging.getLogger(__name__)

    # ========================================================================
    # NAMING
    # ========================================================================

    def playlist_name(self, month: TargetMonth) -> str:
        return f"{self.settings.playlist_prefix} {month.month_name} {month.year}"

    def playlist_description(self, month: TargetMonth) -> str:
        return (f"Music shared in {self.settings.playlist_prefix} during {month.label}. "
                f"Auto-generated playlist featuring new releases only.")

    # ========================================================================
    # RUN
    # ========================================================================

    def run(self, now: Optional[datetime] = None,
            target_month: Optional[TargetMonth] = None) -> Tuple[Dict[str, Any], int]:
        """
        Execute one generation run

        Args:
            now: Reference time for the target month (defaults to now, UTC)
            target_month: Explicit month override (skips the previous-month rule)

        Returns:
            (report dict, HTTP status code)
        """
        start_time = time.monotonic()
        stats = RunStats()
        month = None

        self.logger.info("=" * 60)
        self.logger.info(f"[Start] {self.settings.playlist_prefix} Playlist Generator")
        if self.settings.dry_run:
            self.logger.info("*** DRY RUN MODE ***")
        self.logger.info("=" * 60)

        try:
            self.logger.info("[Step 1] Loading configuration...")
            config = self.context.config_store.get_active_config(self.settings.project_id)

            self.logger.info("[Step 2] Calculating date range...")
            month = target_month or get_previous_month_bounds(now)
            self.logger.info(f"[Dates] Target month: {month.label}")
            self.logger.info(f"[Dates] Range: {month.start_date.isoformat()} to {month.end_date.isoformat()}")

            self.logger.info("[Step 3] Authenticating with Spotify...")
            client = self.context.client_factory(
                config,
                token_cache=self.context.token_cache,
                page_delay=self.settings.page_delay,
                logger=self.logger
            )
            client.get_access_token()

            self.logger.info("[Step 4] Fetching submitted links...")
            links = self.context.link_store.get_submitted_links(month.year_month)
            stats.items_scanned = len(links)
            self.logger.info(f"[Links] Found {len(links)} submissions for {month.year_month}")

            if not links:
                return self._finish(start_time, stats, month, success=True,
                                    message=f"No links submitted for {month.label}.")

            self.logger.info("[Step 5] Extracting music candidates...")
            candidates = self.extract_candidates(links)
            stats.candidates_extracted = len(candidates)
            self.logger.info(f"[Extract] Found {len(candidates)} candidates from {len(links)} submissions")

            if not candidates:
                return self._finish(start_time, stats, month, success=True,
                                    message="No recognizable music found in submitted links")

            self.logger.info("[Step 6] Resolving candidates on Spotify...")
            resolver = TrackResolver(client, logger=self.logger)
            matched = self.resolve_candidates(resolver, candidates, month, stats)
            stats.tracks_matched = len(matched)
            self.logger.info(f"[Search] Matched {len(matched)} unique tracks from {month.label}")

            if not matched:
                return self._finish(start_time, stats, month, success=True,
                                    message=f"No tracks from {month.label} found")

            tracks = list(matched.values())
            if self.settings.dry_run:
                return self._finish(start_time, stats, month, success=True,
                                    message=f"Dry run: {len(tracks)} tracks would be added for {month.label}",
                                    tracks=tracks)

            self.logger.info("[Step 7] Creating Spotify playlist...")
            publisher = PlaylistPublisher(client, batch_delay=self.settings.batch_delay, logger=self.logger)
            name = self.playlist_name(month)
            playlist = publisher.create_playlist(config.user_id, name, self.playlist_description(month))

            self.logger.info("[Step 8] Adding tracks to playlist...")
            result = publisher.add_tracks(playlist.id, [track.uri for track in tracks])
            stats.tracks_added = result.added
            stats.tracks_skipped = result.skipped

            return self._finish(start_time, stats, month, success=True,
                                message=f"Created playlist for {month.label}",
                                playlist=playlist.to_dict(), tracks=tracks)

        except Exception as e:
            self.logger.error(f"[Fatal Error] {e}", exc_info=True)
            return self._finish(start_time, stats, month, success=False, message=str(e))

    # ========================================================================
    # PIPELINE STEPS
    # ========================================================================

    def extract_candidates(self, submissions: List[str]) -> List[Candidate]:
        candidates = []
        for submission in submissions:
            candidates.extend(extract_music_from_post(submission))
        return candidates

    def resolve_candidates(self, resolver: TrackResolver, candidates: List[Candidate],
                           month: TargetMonth, stats: RunStats) -> Dict[str, ResolvedTrack]:
        """
        Resolve candidates one at a time with a fixed delay between them

        Per-candidate errors are collected into stats.errors and the loop
        carries on. Tracks are keyed by id; the first occurrence wins.
        """
        limiter = RateLimiter(self.settings.candidate_delay)
        matched = {}

        for index, candidate in enumerate(candidates, 1):
            limiter.wait()
            self.logger.debug(f"[Process] {index}/{len(candidates)}: {candidate.describe()}")

            result = resolver.resolve(candidate, month)
            if result.error:
                stats.errors.append(result.error)
                continue

            track = result.track
            if track and track.id not in matched:
                matched[track.id] = track
                self.logger.info(f"[Match] Found: {track.display_name} ({track.release_date})")

        return matched

    # ========================================================================
    # REPORTING
    # ========================================================================

    def _finish(self, start_time: float, stats: RunStats, month: Optional[TargetMonth],
                success: bool, message: str, playlist: dict = None,
                tracks: List[ResolvedTrack] = None) -> Tuple[Dict[str, Any], int]:
        duration_ms = int((time.monotonic() - start_time) * 1000)

        report = {
            'success': success,
            'message': message,
            'stats': stats.to_dict(),
            'duration_ms': duration_ms
        }
        if month is not None:
            report['target_month'] = month.year_month
        if playlist:
            report['playlist'] = playlist
        if tracks:
            report['tracks'] = [track.to_dict() for track in tracks]

        self.logger.info("=" * 60)
        self.logger.info(f"[{'Complete' if success else 'Failed'}] {message}")
        self.logger.info("=" * 60)
        if playlist:
            self.logger.info(f"Playlist: {playlist['url']}")
        self.logger.info(f"Submissions scanned: {stats.items_scanned}")
        self.logger.info(f"Music candidates: {stats.candidates_extracted}")
        self.logger.info(f"Tracks matched: {stats.tracks_matched}")
        self.logger.info(f"Tracks added: {stats.tracks_added}")
        self.logger.info(f"Tracks skipped (dupes): {stats.tracks_skipped}")
        self.logger.info(f"Errors: {len(stats.errors)}")
        self.logger.info(f"Duration: {duration_ms}ms")

        if not self.settings.dry_run:
            self._record_last_run(report)

        return report, 200 if success else 500

    def _record_last_run(self, report: Dict[str, Any]):
        summary = {
            'date': datetime.now(timezone.utc).isoformat(),
            'success': report['success'],
            'message': report['message'],
            'targetMonth': report.get('target_month'),
            'tracksAdded': report['stats']['tracksAdded'],
            'playlistUrl': (report.get('playlist') or {}).get('url')
        }
        try:
            self.context.config_store.record_last_run(summary, self.settings.project_id)
        except Exception as e:
            # The run outcome stands even if it cannot be recorded
            self.logger.warning(f"Could not record last run summary: {e}")
