"""
SQLite persistence layer.

Tables:
  - matches: one row per match, the full Match snapshot as JSON
  - player_records: ratings and career history carried between matches

Uses aiosqlite for async access. Database file: settings.database_path
"""

import json
import logging
from datetime import datetime, timezone
from pathlib import Path

import aiosqlite
from pydantic import ValidationError

from cricsim.config import settings
from cricsim.models import Match, PlayerRecord

logger = logging.getLogger(__name__)

DB_PATH = Path(settings.database_path)
DB_DIR = DB_PATH.parent

_db: aiosqlite.Connection | None = None


# ------------------------------------------------------------------ #
#  Connection management
# ------------------------------------------------------------------ #

async def init_db() -> None:
    """Create tables if they don't exist. Called once at app startup."""
    global _db
    DB_DIR.mkdir(parents=True, exist_ok=True)

    _db = await aiosqlite.connect(str(DB_PATH))
    _db.row_factory = aiosqlite.Row

    await _db.executescript("""
        CREATE TABLE IF NOT EXISTS matches (
            match_id    TEXT PRIMARY KEY,
            status      TEXT NOT NULL,
            title       TEXT NOT NULL DEFAULT '',
            data        TEXT NOT NULL,
            created_at  TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        );

        CREATE INDEX IF NOT EXISTS idx_matches_status
            ON matches(status, created_at);

        CREATE TABLE IF NOT EXISTS player_records (
            player_id   INTEGER PRIMARY KEY,
            name        TEXT NOT NULL,
            rating      REAL NOT NULL,
            data        TEXT NOT NULL,
            updated_at  TEXT NOT NULL
        );
    """)
    await _db.commit()
    logger.info(f"SQLite database initialized at {DB_PATH}")


async def close_db() -> None:
    """Close the database connection."""
    global _db
    if _db:
        await _db.close()
        _db = None


def _get_db() -> aiosqlite.Connection:
    if _db is None:
        raise RuntimeError("Database not initialized, call init_db() first")
    return _db


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


# ------------------------------------------------------------------ #
#  Matches CRUD
# ------------------------------------------------------------------ #

async def save_match(match: Match) -> None:
    """Insert or replace the stored snapshot for a match."""
    db = _get_db()
    title = " v ".join(t.name for t in match.teams)
    await db.execute(
        """INSERT INTO matches (match_id, status, title, data, created_at, updated_at)
           VALUES (?, ?, ?, ?, ?, ?)
           ON CONFLICT(match_id) DO UPDATE SET
               status = excluded.status,
               data = excluded.data,
               updated_at = excluded.updated_at""",
        (match.id, match.status.value, title, match.model_dump_json(), match.created_at, _now()),
    )
    await db.commit()


async def get_match(match_id: str) -> Match | None:
    db = _get_db()
    async with db.execute("SELECT data FROM matches WHERE match_id = ?", (match_id,)) as cur:
        row = await cur.fetchone()
        return Match.model_validate_json(row["data"]) if row else None


async def list_matches(status: str | None = None) -> list[dict]:
    """Summaries only; fetch a match by id for the full snapshot."""
    db = _get_db()
    if status:
        query = "SELECT * FROM matches WHERE status = ? ORDER BY created_at DESC"
        params: tuple = (status,)
    else:
        query = "SELECT * FROM matches ORDER BY created_at DESC"
        params = ()
    async with db.execute(query, params) as cur:
        return [_row_to_summary(r) for r in await cur.fetchall()]


async def delete_match(match_id: str) -> bool:
    db = _get_db()
    cursor = await db.execute("DELETE FROM matches WHERE match_id = ?", (match_id,))
    await db.commit()
    return cursor.rowcount > 0


def _row_to_summary(row: aiosqlite.Row) -> dict:
    data = json.loads(row["data"])
    return {
        "match_id": row["match_id"],
        "title": row["title"],
        "status": row["status"],
        "result": data.get("result"),
        "overs_per_innings": data.get("overs_per_innings"),
        "created_at": row["created_at"],
        "updated_at": row["updated_at"],
    }


# ------------------------------------------------------------------ #
#  Player records
# ------------------------------------------------------------------ #

async def load_player_records() -> dict[int, PlayerRecord]:
    """
    Every stored player record, keyed by player id. Unreadable rows are
    skipped and a failed read yields an empty dict: a player with no record
    simply starts from the default rating.
    """
    try:
        db = _get_db()
        async with db.execute("SELECT player_id, data FROM player_records") as cur:
            rows = await cur.fetchall()
    except Exception as e:
        logger.warning(f"Could not read player records: {e}")
        return {}

    records: dict[int, PlayerRecord] = {}
    for row in rows:
        try:
            records[row["player_id"]] = PlayerRecord.model_validate_json(row["data"])
        except ValidationError as e:
            logger.warning(f"Skipping corrupt record for player {row['player_id']}: {e}")
    return records


async def get_player_record(player_id: int) -> PlayerRecord | None:
    db = _get_db()
    async with db.execute("SELECT data FROM player_records WHERE player_id = ?", (player_id,)) as cur:
        row = await cur.fetchone()
    if row is None:
        return None
    try:
        return PlayerRecord.model_validate_json(row["data"])
    except ValidationError as e:
        logger.warning(f"Corrupt record for player {player_id}: {e}")
        return None


async def save_player_records(records: list[PlayerRecord]) -> bool:
    """Upsert records in one transaction. Returns False (and logs) on failure."""
    if not records:
        return True
    now = _now()
    rows = [(r.player_id, r.name, r.rating, r.model_dump_json(), now) for r in records]
    try:
        db = _get_db()
        await db.executemany(
            """INSERT INTO player_records (player_id, name, rating, data, updated_at)
               VALUES (?, ?, ?, ?, ?)
               ON CONFLICT(player_id) DO UPDATE SET
                   name = excluded.name,
                   rating = excluded.rating,
                   data = excluded.data,
                   updated_at = excluded.updated_at""",
            rows,
        )
        await db.commit()
    except Exception as e:
        logger.error(f"Failed to save {len(rows)} player records: {e}")
        return False
    logger.info(f"Saved {len(rows)} player records")
    return True
