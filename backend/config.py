"""
Configuration Module for the Digital Diggaz playlist service
Handles logging setup, Flask app initialization and run context wiring
"""

import os
import logging

from playlist_generator import GeneratorSettings, RunContext
from spotify_client import TokenCache


def configure_logging(level=logging.INFO):
    """
    Configure application logging with standard format

    Returns:
        Logger instance for the config module
    """
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )
    return logging.getLogger(__name__)


def init_app_config(app):
    """
    Initialize Flask app configuration

    This sets up:
    - Custom JSON provider for date formatting
    - The process-wide Spotify token cache
    - Playlist/stats settings read from the environment

    Args:
        app: Flask application instance
    """
    from utils.json_provider import CustomJSONProvider
    app.json = CustomJSONProvider(app)

    app.config.setdefault('SPOTIFY_TOKEN_CACHE', TokenCache())
    app.config.setdefault('CONFIG_PROJECT_ID', os.getenv('CONFIG_PROJECT_ID', 'default'))
    app.config.setdefault('MAIN_PLAYLIST_ID', os.getenv('MAIN_PLAYLIST_ID'))
    app.config.setdefault('PLAYLIST_IDS', os.getenv('PLAYLIST_IDS', ''))


def create_run_context(token_cache: TokenCache = None, **overrides) -> RunContext:
    """
    Build the context for one generation run backed by the Postgres stores

    Args:
        token_cache: Shared token cache (a fresh one when omitted)
        **overrides: GeneratorSettings fields to override (e.g. dry_run=True)
    """
    import config_store
    import link_store

    return RunContext(
        config_store=config_store,
        link_store=link_store,
        token_cache=token_cache or TokenCache(),
        settings=GeneratorSettings.from_env(**overrides)
    )
