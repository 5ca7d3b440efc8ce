"""
Data Models for the playlist generation pipeline

Candidate      - unresolved music reference extracted from a submission
MusicInfo      - artist / track / query parsed from free text
ResolvedTrack  - Spotify track accepted for the target month
ResolveResult  - per-candidate outcome (track, or no match, or error)
PlaylistInfo   - created playlist handle
AddTracksResult- outcome of an append operation
RunStats       - counters accumulated during one run
SpotifyConfig  - credentials needed to talk to Spotify on behalf of the owner
"""

from dataclasses import dataclass, field
from typing import List, Optional


# Candidate.platform values that are not a streaming platform
PLATFORM_UNKNOWN = 'unknown'
PLATFORM_TEXT_ONLY = 'text_only'


@dataclass
class Candidate:
    """A music reference awaiting resolution"""
    source_url: Optional[str]
    platform: str
    search_query: str = ''
    direct_track_id: Optional[str] = None
    artist_hint: Optional[str] = None
    track_hint: Optional[str] = None
    source: str = 'url'

    def describe(self) -> str:
        if self.direct_track_id:
            return f"spotify track {self.direct_track_id}"
        if self.source_url:
            return f"{self.platform} link {self.source_url}"
        return f'text "{self.search_query}"'


@dataclass
class MusicInfo:
    """Artist and track parsed from free text, plus the cleaned search query"""
    artist: Optional[str]
    track: Optional[str]
    query: str


@dataclass
class ResolvedTrack:
    id: str
    uri: str
    name: str
    artists: List[str]
    release_date: str

    @classmethod
    def from_api(cls, item: dict) -> 'ResolvedTrack':
        """
        Build from a Spotify track object

        Raises:
            ValueError: If the object is not a track with an id and uri
        """
        if not isinstance(item, dict) or not item.get('id') or not item.get('uri'):
            raise ValueError(f"Malformed track object: {item!r:.200}")
        return cls(
            id=item['id'],
            uri=item['uri'],
            name=item.get('name', ''),
            artists=[a.get('name', '') for a in item.get('artists') or [] if isinstance(a, dict)],
            release_date=(item.get('album') or {}).get('release_date', '')
        )

    @property
    def display_name(self) -> str:
        return f"{', '.join(self.artists)} - {self.name}"

    def to_dict(self) -> dict:
        return {
            'id': self.id,
            'uri': self.uri,
            'name': self.name,
            'artists': list(self.artists),
            'releaseDate': self.release_date,
        }


@dataclass
class ResolveResult:
    """
    Outcome of resolving one candidate

    A result with neither track nor error is the expected "no match" case.
    """
    track: Optional[ResolvedTrack] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def matched(self) -> bool:
        return self.track is not None

    @classmethod
    def no_match(cls) -> 'ResolveResult':
        return cls()

    @classmethod
    def failure(cls, message: str) -> 'ResolveResult':
        return cls(error=message)


@dataclass
class PlaylistInfo:
    id: str
    url: str
    name: Optional[str] = None

    def to_dict(self) -> dict:
        return {'name': self.name, 'url': self.url, 'id': self.id}


@dataclass
class AddTracksResult:
    added: int = 0
    skipped: int = 0


@dataclass
class RunStats:
    """Counters for a single generation run, reported even on failure"""
    items_scanned: int = 0
    candidates_extracted: int = 0
    tracks_matched: int = 0
    tracks_added: int = 0
    tracks_skipped: int = 0
    errors: List[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            'itemsScanned': self.items_scanned,
            'candidatesExtracted': self.candidates_extracted,
            'tracksMatched': self.tracks_matched,
            'tracksAdded': self.tracks_added,
            'tracksSkipped': self.tracks_skipped,
            'errors': list(self.errors),
        }


@dataclass
class SpotifyConfig:
    client_id: str
    client_secret: str
    refresh_token: str
    user_id: str
