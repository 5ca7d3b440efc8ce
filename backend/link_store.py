"""
Submitted Links Store
Month-keyed, append-only lists of music links submitted by the community

Table: submitted_links
    month       TEXT PRIMARY KEY  ('YYYY-MM')
    links       TEXT[]            - in submission order
    created_at / updated_at
"""

import re
import logging
from datetime import datetime, timezone
from typing import Iterable, List, Optional, Tuple, Union

import db_utils
from music_detector import is_valid_url

logger = logging.getLogger(__name__)


CREATE_TABLE_SQL = """
    CREATE TABLE IF NOT EXISTS submitted_links (
        month       TEXT PRIMARY KEY,
        links       TEXT[] NOT NULL DEFAULT '{}',
        created_at  TIMESTAMPTZ NOT NULL DEFAULT now(),
        updated_at  TIMESTAMPTZ NOT NULL DEFAULT now()
    )
"""

LINK_SEPARATORS = re.compile(r'[\n,\s]+')
MONTH_KEY_PATTERN = re.compile(r'^\d{4}-(0[1-9]|1[0-2])$')


# ============================================================================
# PARSING HELPERS
# ============================================================================

def current_month_key(now: Optional[datetime] = None) -> str:
    """Current month as 'YYYY-MM' (UTC)"""
    now = now or datetime.now(timezone.utc)
    return f"{now.year}-{now.month:02d}"


def is_month_key(value) -> bool:
    return isinstance(value, str) and bool(MONTH_KEY_PATTERN.match(value))


def parse_links(raw: Union[str, Iterable[str], None]) -> List[str]:
    """
    Extract valid http(s) URLs from a submission

    Accepts one link per line, comma-separated or space-separated text, or a
    list of such strings. Duplicates are removed, first occurrence wins.
    """
    if not raw:
        return []
    if not isinstance(raw, str):
        raw = '\n'.join(str(part) for part in raw)

    links = []
    for part in LINK_SEPARATORS.split(raw):
        part = part.strip()
        if part and is_valid_url(part) and part not in links:
            links.append(part)
    return links


def merge_links(existing: Iterable[str], incoming: Iterable[str]) -> Tuple[List[str], int]:
    """
    Work out which incoming links are new

    Returns:
        (new links in submission order, number of duplicates skipped)
    """
    seen = set(existing or [])
    new_links = []
    duplicates = 0
    for link in incoming:
        if link in seen:
            duplicates += 1
            continue
        seen.add(link)
        new_links.append(link)
    return new_links, duplicates


# ============================================================================
# DATABASE OPERATIONS
# ============================================================================

def ensure_table():
    db_utils.execute_update(CREATE_TABLE_SQL)


def get_links_document(month: str) -> Optional[dict]:
    """Get the stored row for a month (links plus timestamps) or None"""
    return db_utils.execute_query(
        "SELECT month, links, created_at, updated_at FROM submitted_links WHERE month = %s",
        (month,),
        fetch_one=True
    )


def get_submitted_links(month: str) -> List[str]:
    """Get the links submitted for a month ('YYYY-MM'), oldest first"""
    doc = get_links_document(month)
    return list(doc['links'] or []) if doc else []


def append_submitted_links(month: str, links: Iterable[str]) -> dict:
    """
    Append links to a month's batch, skipping ones already stored

    Returns:
        {'added': int, 'duplicates': int, 'total': int}
    """
    links = list(links)

    with db_utils.get_db_connection() as conn:
        with conn.cursor() as cur:
            cur.execute(
                "SELECT links FROM submitted_links WHERE month = %s FOR UPDATE",
                (month,)
            )
            row = cur.fetchone()
            existing = list(row['links'] or []) if row else []
            new_links, duplicates = merge_links(existing, links)

            if row is None:
                cur.execute(
                    "INSERT INTO submitted_links (month, links) VALUES (%s, %s)",
                    (month, new_links)
                )
            elif new_links:
                cur.execute(
                    """
                    UPDATE submitted_links
                    SET links = links || %s::text[], updated_at = now()
                    WHERE month = %s
                    """,
                    (new_links, month)
                )

    logger.info(f"Added {len(new_links)} links for {month} ({duplicates} duplicates skipped)")
    return {
        'added': len(new_links),
        'duplicates': duplicates,
        'total': len(existing) + len(new_links)
    }
