"""
Configuration Store
Persists project configuration (Spotify credentials, last run summary) in Postgres

Table: app_configs
    project_id  TEXT PRIMARY KEY
    vars        JSONB   - SPOTIFY_CLIENT_ID, SPOTIFY_CLIENT_SECRET, SPOTIFY_USER_ID, SPOTIFY_REFRESH_TOKEN
    last_run    JSONB   - summary of the most recent generation run
    created_at / updated_at

Environment variables of the same names fill in any key missing from the
stored vars, so scripts can run without a saved configuration.
"""

import os
import logging
from typing import Dict, List, Mapping, Optional

from psycopg.types.json import Jsonb

import db_utils
from models import SpotifyConfig
from utils.helpers import safe_strip

logger = logging.getLogger(__name__)


DEFAULT_PROJECT_ID = 'default'

SPOTIFY_KEYS = [
    'SPOTIFY_CLIENT_ID',
    'SPOTIFY_CLIENT_SECRET',
    'SPOTIFY_USER_ID',
    'SPOTIFY_REFRESH_TOKEN'
]

CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS app_configs (
        project_id  TEXT PRIMARY KEY,
        vars        JSONB NOT NULL DEFAULT '{}'::jsonb,
        last_run    JSONB,
        created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""


class ConfigError(Exception):
    """Raised when configuration is missing or incomplete"""


# ============================================================================
# VALIDATION AND MASKING
# ============================================================================

def validate_fields(data: Mapping, keys: List[str]) -> List[str]:
    """Return the keys that are missing or blank in data"""
    return [key for key in keys if not safe_strip(data.get(key))]


def has_spotify_config(vars: Optional[Mapping]) -> bool:
    if not vars:
        return False
    return not validate_fields(vars, SPOTIFY_KEYS)


def mask_secret(value) -> str:
    """Mask a secret for logs/responses: 'abcd...wxyz', or '***' when short"""
    if not value or not isinstance(value, str) or len(value) < 12:
        return '***'
    return f"{value[:4]}...{value[-4:]}"


def mask_secrets(vars: Optional[Mapping]) -> Optional[Dict]:
    """Mask every secret-looking value; user ids stay readable"""
    if vars is None:
        return None
    masked = {}
    for key, value in vars.items():
        if key == 'SPOTIFY_USER_ID' or not isinstance(value, str):
            masked[key] = value
        else:
            masked[key] = mask_secret(value)
    return masked


def merge_with_environment(vars: Optional[Mapping], environ: Mapping = None) -> Dict:
    """Fill keys missing from the stored vars with environment variables"""
    environ = os.environ if environ is None else environ
    merged = dict(vars or {})
    for key in SPOTIFY_KEYS:
        if not safe_strip(merged.get(key)) and safe_strip(environ.get(key)):
            merged[key] = environ[key].strip()
    return merged


def build_spotify_config(vars: Mapping) -> SpotifyConfig:
    """
    Validate vars and build a SpotifyConfig

    Raises:
        ConfigError: If any required field is missing
    """
    missing = validate_fields(vars, SPOTIFY_KEYS)
    if missing:
        raise ConfigError(f"Missing required config fields: {', '.join(missing)}")

    return SpotifyConfig(
        client_id=vars['SPOTIFY_CLIENT_ID'].strip(),
        client_secret=vars['SPOTIFY_CLIENT_SECRET'].strip(),
        refresh_token=vars['SPOTIFY_REFRESH_TOKEN'].strip(),
        user_id=vars['SPOTIFY_USER_ID'].strip()
    )


# ============================================================================
# DATABASE OPERATIONS
# ============================================================================

def ensure_table():
    db_utils.execute_update(CREATE_TABLE_SQL)


def get_config(project_id: str = DEFAULT_PROJECT_ID) -> Optional[dict]:
    """
    Get the stored configuration row for a project

    Returns:
        Dict with project_id, vars, last_run, created_at, updated_at or None
    """
    return db_utils.execute_query(
        """
        SELECT project_id, vars, last_run, created_at, updated_at
        FROM app_configs
        WHERE project_id = %s
        """,
        (project_id,),
        fetch_one=True
    )


def save_config(project_id: str, vars: Mapping) -> dict:
    """
    Save or update project configuration

    Only the provided (non-blank) keys are overwritten; other stored keys are
    kept.

    Returns:
        {'project_id': ..., 'updated_at': ...}
    """
    updates = {key: value.strip() for key, value in vars.items()
               if isinstance(value, str) and value.strip()}

    with db_utils.get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT vars FROM app_configs WHERE project_id = %s FOR UPDATE",
                (project_id,)
            )
            row = cur.fetchone()
            merged = dict(row['vars'] or {}) if row else {}
            merged.update(updates)

            cur.execute(
                """
                INSERT INTO app_configs (project_id, vars)
                VALUES (%s, %s)
                ON CONFLICT (project_id)
                DO UPDATE SET vars = EXCLUDED.vars, updated_at = now()
                RETURNING project_id, updated_at
                """,
                (project_id, Jsonb(merged))
            )
            result = cur.fetchone()

    logger.info(f"Config saved for project: {project_id} "
                f"({', '.join(f'{k}={v}' for k, v in mask_secrets(updates).items())})")
    return dict(result)


def list_configs() -> List[dict]:
    """List stored projects (never includes secrets)"""
    rows = db_utils.execute_query(
        "SELECT project_id, created_at, updated_at FROM app_configs ORDER BY project_id"
    )
    return [dict(row) for row in rows or []]


def delete_config(project_id: str) -> bool:
    """Delete a project's configuration; False when nothing was stored"""
    deleted = db_utils.execute_update(
        "DELETE FROM app_configs WHERE project_id = %s",
        (project_id,)
    )
    return deleted > 0


def record_last_run(summary: dict, project_id: str = DEFAULT_PROJECT_ID):
    """Store the summary of the most recent generation run"""
    db_utils.execute_update(
        """
        INSERT INTO app_configs (project_id, last_run)
        VALUES (%s, %s)
        ON CONFLICT (project_id)
        DO UPDATE SET last_run = EXCLUDED.last_run
        """,
        (project_id, Jsonb(summary))
    )


def get_last_run(project_id: str = DEFAULT_PROJECT_ID) -> Optional[dict]:
    row = get_config(project_id)
    return row['last_run'] if row else None


def get_active_config(project_id: str = DEFAULT_PROJECT_ID) -> SpotifyConfig:
    """
    Get the validated Spotify configuration for a run

    Stored vars take precedence; environment variables fill the gaps. When no
    database is configured the environment alone is used.

    Raises:
        ConfigError: If no configuration exists or fields are missing
    """
    stored_vars = {}
    try:
        row = get_config(project_id)
        if row and row.get('vars'):
            stored_vars = row['vars']
    except db_utils.DatabaseNotConfiguredError:
        logger.warning("No database configured, reading Spotify settings from the environment")

    vars = merge_with_environment(stored_vars)
    if not any(safe_strip(vars.get(key)) for key in SPOTIFY_KEYS):
        raise ConfigError(
            f'No configuration found for project "{project_id}". '
            'Save configuration via /api/save-config or set the SPOTIFY_* environment variables.'
        )

    return build_spotify_config(vars)
