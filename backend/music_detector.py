"""
Music Link Detection and Search Query Extraction

Turns raw community submissions into Candidates for the track resolver:
- extract_urls: pull valid http(s) URLs out of free text
- detect_platform / is_music_url: classify a URL by music platform
- extract_spotify_track_id: direct Spotify track id (skips search entirely)
- clean_text_for_search / extract_music_info: normalize the text around a link
  and split "Artist - Track" / "Track by Artist" into hints
- extract_music_from_post: combine the above into candidates for one submission

Functions in this module are stateless and have no side effects.
"""

import re
import logging
from typing import List, Optional
from urllib.parse import urlparse

from models import Candidate, MusicInfo, PLATFORM_TEXT_ONLY, PLATFORM_UNKNOWN

logger = logging.getLogger(__name__)


# ============================================================================
# PATTERNS
# ============================================================================

# Ordered (platform, pattern) pairs. Patterns are exclusive on domain, so the
# order only matters for readability. Matched against the start of the URL.
MUSIC_URL_PATTERNS = [
    ('youtube', re.compile(r'https?://(?:www\.|m\.|music\.)?youtube\.com/(?:watch\?(?:\S*?&)?v=|shorts/)[\w-]+', re.IGNORECASE)),
    ('youtube', re.compile(r'https?://youtu\.be/[\w-]+', re.IGNORECASE)),
    ('soundcloud', re.compile(r'https?://(?:www\.|m\.)?soundcloud\.com/[\w-]+/[\w-]+', re.IGNORECASE)),
    ('spotify', re.compile(r'https?://open\.spotify\.com/(?:intl-[\w-]+/)?track/\w+', re.IGNORECASE)),
    ('spotify', re.compile(r'https?://(?:www\.)?spotify\.com/track/\w+', re.IGNORECASE)),
    ('bandcamp', re.compile(r'https?://(?:[\w-]+\.)?bandcamp\.com/(?:track|album)/[\w-]+', re.IGNORECASE)),
    ('apple_music', re.compile(r'https?://(?:www\.)?music\.apple\.com/[\w/-]+', re.IGNORECASE)),
    ('tidal', re.compile(r'https?://(?:www\.|listen\.)?tidal\.com/(?:browse/)?(?:track|album)/\d+', re.IGNORECASE)),
    ('deezer', re.compile(r'https?://(?:www\.)?deezer\.com/(?:[a-z]{2}/)?(?:track|album)/\d+', re.IGNORECASE)),
]

# Catches any link in post text; each hit is validated afterwards
GENERIC_URL_PATTERN = re.compile(r'https?://[^\s<>"{}|\\^`\[\]]+', re.IGNORECASE)

TRAILING_PUNCTUATION = re.compile(r'[.,;:!?)]+$')

SPOTIFY_TRACK_ID_PATTERN = re.compile(r'spotify\.com/(?:intl-[\w-]+/)?track/([A-Za-z0-9]+)', re.IGNORECASE)

# Promotional noise from video titles. Parenthesized/bracketed forms first,
# then bare phrases that are unlikely to be part of a real title.
PROMO_PATTERNS = [
    re.compile(r'[(\[]\s*official\s*(?:music\s*|lyrics?\s*)?(?:video|audio)\s*[)\]]', re.IGNORECASE),
    re.compile(r'[(\[]\s*lyrics?\s*video\s*[)\]]', re.IGNORECASE),
    re.compile(r'[(\[]\s*(?:audio|visuali[sz]er)\s*[)\]]', re.IGNORECASE),
    re.compile(r'\bofficial\s*(?:music\s*)?(?:video|audio)\b', re.IGNORECASE),
    re.compile(r'\blyrics?\s+video\b', re.IGNORECASE),
    re.compile(r'\bvisuali[sz]er\b', re.IGNORECASE),
]

EMOJI_PATTERN = re.compile(
    '['
    '\U0001F600-\U0001F64F'
    '\U0001F300-\U0001F5FF'
    '\U0001F680-\U0001F6FF'
    '\U0001F900-\U0001F9FF'
    '\U0001FA70-\U0001FAFF'
    '\u2600-\u26FF'
    '\u2700-\u27BF'
    '\uFE0F\u200D'
    ']'
)

# Call-to-action openers ("Check out Artist - Track")
LEAD_IN_PATTERN = re.compile(
    r'^(?:check\s+(?:this\s+)?out|listen\s+to|have\s+a\s+listen(?:\s+to)?|now\s+playing|'
    r'new\s+(?:track|song|single|music|release))\b\s*[:\-–—]?\s*',
    re.IGNORECASE
)

WHITESPACE_PATTERN = re.compile(r'\s+')

# "Artist - Track": a hyphen needs surrounding spaces so "Jay-Z" stays whole
DASH_PATTERN = re.compile(r'^(.+?)(?:\s+-\s+|\s*[–—]\s*)(.+)$')
BY_PATTERN = re.compile(r'^(.+?)\s+by\s+(.+)$', re.IGNORECASE)

# Text-only fallback thresholds (tunable, not a contract)
MIN_TEXT_LENGTH = 5
MIN_QUERY_LENGTH = 10


# ============================================================================
# URL EXTRACTION AND CLASSIFICATION
# ============================================================================

def _clean_url(url: str) -> str:
    return TRAILING_PUNCTUATION.sub('', url.strip())


def is_valid_url(url: str) -> bool:
    """True if url parses as an absolute http(s) URL with a host"""
    try:
        parsed = urlparse(url)
    except ValueError:
        return False
    return parsed.scheme.lower() in ('http', 'https') and bool(parsed.hostname)


def extract_urls(text: Optional[str]) -> List[str]:
    """
    Extract all valid URLs from free text

    Trailing sentence punctuation is stripped and duplicates removed (first
    occurrence order is kept). Matches that do not parse as absolute http(s)
    URLs are dropped silently.

    Args:
        text: Raw submission or post text

    Returns:
        List of unique URLs
    """
    if not text or not isinstance(text, str):
        return []

    urls = []
    seen = set()
    for match in GENERIC_URL_PATTERN.findall(text):
        url = _clean_url(match)
        if url in seen or not is_valid_url(url):
            continue
        seen.add(url)
        urls.append(url)
    return urls


def detect_platform(url: str) -> str:
    """
    Detect the music platform of a URL

    Returns:
        Platform tag (e.g. 'youtube', 'spotify') or 'unknown'
    """
    if not url:
        return PLATFORM_UNKNOWN

    for platform, pattern in MUSIC_URL_PATTERNS:
        if pattern.match(url):
            return platform
    return PLATFORM_UNKNOWN


def is_music_url(url: str) -> bool:
    return detect_platform(url) != PLATFORM_UNKNOWN


def extract_spotify_track_id(url: str) -> Optional[str]:
    """
    Extract the Spotify track ID from a track URL

    Example:
        extract_spotify_track_id("https://open.spotify.com/track/4iV5W9uYEdYUVa79Axb7Rh")
        -> "4iV5W9uYEdYUVa79Axb7Rh"
    """
    if not url:
        return None
    match = SPOTIFY_TRACK_ID_PATTERN.search(url)
    return match.group(1) if match else None


# ============================================================================
# TEXT NORMALIZATION
# ============================================================================

def clean_text_for_search(text: Optional[str]) -> str:
    """
    Clean free text for use as a search query

    Removes promotional suffixes ("Official Video", "(Audio)", ...), emoji,
    call-to-action openers ("Check out ...") and collapses whitespace.
    """
    if not text:
        return ''

    cleaned = text
    for pattern in PROMO_PATTERNS:
        cleaned = pattern.sub(' ', cleaned)
    cleaned = EMOJI_PATTERN.sub(' ', cleaned)
    cleaned = WHITESPACE_PATTERN.sub(' ', cleaned).strip()
    cleaned = LEAD_IN_PATTERN.sub('', cleaned).strip()
    return cleaned


def extract_music_info(text: Optional[str]) -> MusicInfo:
    """
    Extract artist and track hints from text

    "Artist - Track" is tried first, then "Track by Artist". A text that has
    both ("Foo - Bar by Baz") is parsed by the dash rule only.

    Example:
        extract_music_info("Check out Daft Punk - Around The World")
        -> MusicInfo(artist="Daft Punk", track="Around The World", query="Daft Punk - Around The World")
    """
    cleaned = clean_text_for_search(text)

    dash_match = DASH_PATTERN.match(cleaned)
    if dash_match:
        return MusicInfo(
            artist=dash_match.group(1).strip(),
            track=dash_match.group(2).strip(),
            query=cleaned
        )

    by_match = BY_PATTERN.match(cleaned)
    if by_match:
        return MusicInfo(
            artist=by_match.group(2).strip(),
            track=by_match.group(1).strip(),
            query=cleaned
        )

    return MusicInfo(artist=None, track=None, query=cleaned)


def strip_urls(text: Optional[str]) -> str:
    """Remove URLs from text, leaving the surrounding words"""
    if not text:
        return ''
    return WHITESPACE_PATTERN.sub(' ', GENERIC_URL_PATTERN.sub(' ', text)).strip()


# ============================================================================
# CANDIDATE CONSTRUCTION
# ============================================================================

def extract_music_from_post(text: Optional[str], link: Optional[str] = None,
                            min_text_length: int = MIN_TEXT_LENGTH,
                            min_query_length: int = MIN_QUERY_LENGTH) -> List[Candidate]:
    """
    Build search candidates from one post or submission

    One candidate per recognised music URL, carrying hints parsed from the
    text around the URL. When no music URL is present but the text looks like
    a music mention, a single text-only candidate is produced instead.

    Args:
        text: Post/submission text
        link: Optional attached link (e.g. a post attachment)
        min_text_length: Surrounding text must be longer than this for the
                         text-only fallback
        min_query_length: Unstructured queries must be longer than this for
                          the text-only fallback

    Returns:
        List of Candidates (possibly empty)
    """
    text = text if isinstance(text, str) else ''
    urls = extract_urls(text)

    if link:
        cleaned_link = _clean_url(link)
        if cleaned_link not in urls and is_valid_url(cleaned_link):
            urls.append(cleaned_link)

    surrounding = strip_urls(text)
    info = extract_music_info(surrounding)

    candidates = []
    for url in urls:
        platform = detect_platform(url)
        if platform == PLATFORM_UNKNOWN:
            logger.debug(f"Ignoring non-music URL: {url}")
            continue

        candidates.append(Candidate(
            source_url=url,
            platform=platform,
            direct_track_id=extract_spotify_track_id(url) if platform == 'spotify' else None,
            search_query=info.query,
            artist_hint=info.artist,
            track_hint=info.track,
            source='url'
        ))

    if not candidates and len(surrounding) > min_text_length:
        if info.artist or info.track or len(info.query) > min_query_length:
            candidates.append(Candidate(
                source_url=None,
                platform=PLATFORM_TEXT_ONLY,
                search_query=info.query,
                artist_hint=info.artist,
                track_hint=info.track,
                source='text'
            ))

    return candidates


def extract_music_urls(url: Optional[str]) -> List[Candidate]:
    """
    Classify a single submitted URL

    Used when previewing manually submitted links. Returns a one-element list
    for a recognised music URL and an empty list otherwise.
    """
    if not url or not isinstance(url, str):
        return []

    cleaned = _clean_url(url)
    if not is_valid_url(cleaned):
        return []

    platform = detect_platform(cleaned)
    if platform == PLATFORM_UNKNOWN:
        return []

    return [Candidate(
        source_url=cleaned,
        platform=platform,
        direct_track_id=extract_spotify_track_id(cleaned) if platform == 'spotify' else None,
        source='url'
    )]
