"""
Spotify API Client Infrastructure

Handles low-level Spotify API concerns:
- OAuth refresh-token grant and access token caching
- Rate limiting (minimum spacing plus transparent 429 retries)
- Thin wrappers around the endpoints the playlist job needs

Used by TrackResolver, PlaylistPublisher and the stats endpoint for all API
interactions.
"""

import time
import base64
import logging
from typing import Any, Dict, Iterator, List, Optional, Set

import requests

from models import SpotifyConfig
from rate_limiter import RateLimiter

logger = logging.getLogger(__name__)


SPOTIFY_TOKEN_URL = 'https://accounts.spotify.com/api/token'
SPOTIFY_API_BASE = 'https://api.spotify.com/v1'

# Cached tokens are refreshed this many seconds before they actually expire
TOKEN_EXPIRY_BUFFER = 60

# Spotify's limit for URIs per add-items request
MAX_URIS_PER_REQUEST = 100

# Wait used for a 429 that carries no Retry-After or X-RateLimit-Reset header
DEFAULT_RETRY_AFTER = 5


class SpotifyRateLimitError(Exception):
    """Raised when Spotify API rate limit is hit"""
    def __init__(self, retry_after: int = None):
        self.retry_after = retry_after
        super().__init__(f"Spotify rate limit exceeded. Retry after {retry_after} seconds." if retry_after else "Spotify rate limit exceeded.")


class SpotifyAPIError(Exception):
    """Raised for non-2xx responses from the Web API"""
    def __init__(self, status_code: int, body: str = ''):
        self.status_code = status_code
        self.body = body
        super().__init__(f"Spotify API error: {status_code}")


class SpotifyAuthError(Exception):
    """Raised when an access token cannot be obtained"""


class TokenCache:
    """
    Access token holder shared by every client in the process

    One cache per process (single tenant). Concurrent runs would race on it;
    the scheduler runs at most one generation at a time.
    """

    def __init__(self):
        self.access_token = None
        self.expires_at = 0.0

    def get(self, buffer: float = TOKEN_EXPIRY_BUFFER) -> Optional[str]:
        """Return the cached token if it stays valid for at least `buffer` seconds"""
        if self.access_token and time.time() < self.expires_at - buffer:
            return self.access_token
        return None

    def store(self, access_token: str, expires_in: float):
        self.access_token = access_token
        self.expires_at = time.time() + expires_in

    def clear(self):
        self.access_token = None
        self.expires_at = 0.0


class SpotifyClient:
    """
    Low-level Spotify API client with authentication and rate limiting.
    """

    def __init__(self, config: SpotifyConfig, token_cache: TokenCache = None,
                 rate_limit_delay=0.0, max_retries=None, page_delay=0.1,
                 timeout=10, logger=None):
        """
        Initialize Spotify Client

        Args:
            config: Spotify credentials (client id/secret, refresh token, owner)
            token_cache: Shared token cache; a private one is created if omitted
            rate_limit_delay: Minimum delay between API calls (seconds)
            max_retries: Maximum retries for rate-limited requests (None = keep
                         retrying as long as Spotify asks us to wait)
            page_delay: Pause between paginated requests (seconds)
            timeout: Per-request timeout (seconds)
            logger: Optional logger instance (uses module logger if not provided)
        """
        self.config = config
        self.token_cache = token_cache if token_cache is not None else TokenCache()
        self.logger = logger or logging.getLogger(__name__)

        self.rate_limiter = RateLimiter(rate_limit_delay) if rate_limit_delay else None
        self.max_retries = max_retries
        self.page_delay = page_delay
        self.timeout = timeout

        self.stats = {
            'api_calls': 0,
            'rate_limit_hits': 0,
            'rate_limit_waits': 0,
            'token_refreshes': 0
        }

    # ========================================================================
    # RATE LIMITING METHODS
    # ========================================================================

    def _handle_rate_limit_response(self, response: requests.Response) -> Optional[float]:
        """
        Extract rate limit information from response headers

        Args:
            response: Response object from requests

        Returns:
            Number of seconds to wait before retrying, or None if not rate limited
        """
        if response.status_code != 429:
            return None

        # Check for Retry-After header (number of seconds to wait)
        retry_after = response.headers.get('Retry-After')
        if retry_after:
            try:
                return max(0, int(retry_after))
            except ValueError:
                try:
                    return max(0.0, float(retry_after))
                except ValueError:
                    self.logger.warning(f"Invalid Retry-After header: {retry_after}")

        # Check for X-RateLimit-Reset (Unix timestamp)
        rate_limit_reset = response.headers.get('X-RateLimit-Reset')
        if rate_limit_reset:
            try:
                reset_time = int(rate_limit_reset)
                return max(0, reset_time - int(time.time()))
            except ValueError:
                self.logger.warning(f"Invalid X-RateLimit-Reset header: {rate_limit_reset}")

        return None

    def _make_api_request(self, method: str, url: str, **kwargs) -> requests.Response:
        """
        Make an HTTP request, transparently retrying 429 responses

        Args:
            method: HTTP method ('get', 'post', etc.)
            url: URL to request
            **kwargs: Additional arguments to pass to requests

        Returns:
            Response object (any status other than 429)

        Raises:
            SpotifyRateLimitError: If max_retries is set and exhausted
            requests.exceptions.RequestException: For network failures
        """
        retry_count = 0

        while True:
            if self.rate_limiter:
                self.rate_limiter.wait()

            response = getattr(requests, method)(url, **kwargs)
            self.stats['api_calls'] += 1

            if response.status_code != 429:
                return response

            self.stats['rate_limit_hits'] += 1
            retry_after = self._handle_rate_limit_response(response)

            if self.max_retries is not None and retry_count >= self.max_retries:
                raise SpotifyRateLimitError(retry_after)

            wait_time = retry_after if retry_after is not None else DEFAULT_RETRY_AFTER
            self.logger.warning(f"Rate limit hit (attempt {retry_count + 1}). Waiting {wait_time}s...")

            self.stats['rate_limit_waits'] += 1
            time.sleep(wait_time)
            retry_count += 1

    # ========================================================================
    # AUTHENTICATION
    # ========================================================================

    def get_access_token(self) -> str:
        """
        Get a valid Spotify access token (reuses the cached one if still valid)

        Uses the refresh-token grant so the job can act on behalf of the
        playlist owner without user interaction.

        Raises:
            SpotifyAuthError: If the refresh request fails
        """
        token = self.token_cache.get()
        if token:
            return token

        self.logger.info("Refreshing Spotify access token...")

        credentials = f"{self.config.client_id}:{self.config.client_secret}"
        credentials_b64 = base64.b64encode(credentials.encode()).decode()

        try:
            response = self._make_api_request(
                'post',
                SPOTIFY_TOKEN_URL,
                headers={
                    'Authorization': f'Basic {credentials_b64}',
                    'Content-Type': 'application/x-www-form-urlencoded'
                },
                data={
                    'grant_type': 'refresh_token',
                    'refresh_token': self.config.refresh_token
                },
                timeout=self.timeout
            )
        except (requests.exceptions.RequestException, SpotifyRateLimitError) as e:
            self.logger.error(f"Failed to authenticate with Spotify: {e}")
            raise SpotifyAuthError(f"Spotify token refresh failed: {e}") from e

        if not response.ok:
            self.logger.error(f"Spotify token refresh failed: {response.status_code} {response.text}")
            raise SpotifyAuthError("Spotify token refresh failed. Check SPOTIFY_REFRESH_TOKEN.")

        data = response.json()
        self.token_cache.store(data['access_token'], data.get('expires_in', 3600))
        self.stats['token_refreshes'] += 1

        self.logger.info("Spotify token refreshed successfully")
        return self.token_cache.access_token

    # ========================================================================
    # GENERIC REQUEST
    # ========================================================================

    def api_request(self, method: str, path: str, params: Dict[str, Any] = None,
                    json_body: Any = None, _retried_auth: bool = False) -> dict:
        """
        Make an authenticated Web API request

        Args:
            method: HTTP method ('get', 'post', ...)
            path: Path relative to the API base, or an absolute URL (e.g. a
                  pagination 'next' link)
            params: Query parameters
            json_body: JSON request body

        Returns:
            Parsed JSON response ({} for empty bodies)

        Raises:
            SpotifyAPIError: For non-2xx responses
            SpotifyAuthError: If no access token can be obtained
            requests.exceptions.RequestException: For network failures
        """
        url = path if path.startswith('http') else f"{SPOTIFY_API_BASE}{path}"
        token = self.get_access_token()

        kwargs = {
            'headers': {
                'Authorization': f'Bearer {token}',
                'Content-Type': 'application/json'
            },
            'timeout': self.timeout
        }
        if params:
            kwargs['params'] = params
        if json_body is not None:
            kwargs['json'] = json_body

        response = self._make_api_request(method, url, **kwargs)

        # Token revoked or expired early - refresh once and retry
        if response.status_code == 401 and not _retried_auth:
            self.logger.warning("Spotify rejected the access token, refreshing")
            self.token_cache.clear()
            return self.api_request(method, path, params=params, json_body=json_body,
                                    _retried_auth=True)

        if not response.ok:
            self.logger.error(f"Spotify API error: {response.status_code} {response.text}")
            raise SpotifyAPIError(response.status_code, response.text)

        if not response.content:
            return {}
        return response.json()

    # ========================================================================
    # TRACKS AND SEARCH
    # ========================================================================

    def search_tracks(self, query: str, limit: int = 10) -> List[dict]:
        """
        Search for tracks

        Returns:
            Track objects in the order Spotify ranked them
        """
        data = self.api_request('get', '/search', params={
            'q': query,
            'type': 'track',
            'limit': str(limit)
        })
        return (data.get('tracks') or {}).get('items') or []

    def get_track(self, track_id: str) -> dict:
        return self.api_request('get', f'/tracks/{track_id}')

    def get_current_user(self) -> dict:
        return self.api_request('get', '/me')

    # ========================================================================
    # PLAYLISTS
    # ========================================================================

    def create_playlist(self, user_id: str, name: str, description: str,
                        public: bool = False) -> dict:
        return self.api_request('post', f'/users/{user_id}/playlists', json_body={
            'name': name,
            'description': description,
            'public': public
        })

    def get_playlist(self, playlist_id: str, fields: str = None) -> dict:
        params = {'fields': fields} if fields else None
        return self.api_request('get', f'/playlists/{playlist_id}', params=params)

    def get_playlist_items(self, playlist_id: str, fields: str = None) -> Iterator[dict]:
        """
        Iterate over every item of a playlist, following 'next' links

        Args:
            playlist_id: Spotify playlist ID
            fields: Optional field filter (must include 'next')

        Yields:
            Playlist item objects ({'track': {...}, 'added_at': ...})
        """
        params = {'limit': '100'}
        if fields:
            params['fields'] = fields

        url = f'/playlists/{playlist_id}/tracks'
        page = 0
        while url:
            data = self.api_request('get', url, params=params)
            page += 1
            for item in data.get('items') or []:
                yield item

            url = data.get('next')
            # The 'next' link already carries the query string
            params = None
            if url and self.page_delay:
                time.sleep(self.page_delay)

        self.logger.debug(f"Read {page} page(s) of playlist {playlist_id}")

    def get_playlist_track_uris(self, playlist_id: str) -> Set[str]:
        """Get all track URIs currently in a playlist"""
        uris = set()
        for item in self.get_playlist_items(playlist_id, fields='items(track(uri)),next'):
            uri = (item.get('track') or {}).get('uri')
            if uri:
                uris.add(uri)
        return uris

    def add_tracks_to_playlist(self, playlist_id: str, uris: List[str]) -> dict:
        """
        Append up to 100 track URIs to a playlist in one request

        Raises:
            ValueError: If more than 100 URIs are given
        """
        if len(uris) > MAX_URIS_PER_REQUEST:
            raise ValueError(f"At most {MAX_URIS_PER_REQUEST} URIs per request, got {len(uris)}")
        return self.api_request('post', f'/playlists/{playlist_id}/tracks', json_body={'uris': list(uris)})
