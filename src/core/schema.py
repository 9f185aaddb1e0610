"""SQLite schema management (code-first approach)."""

import logging

from src.core import db_client


logger = logging.getLogger(__name__)


_TIMESTAMP_DEFAULT = "(strftime('%Y-%m-%dT%H:%M:%fZ', 'now'))"

# Central list of all collections in the schema, in dependency order
COLLECTIONS = [
    "users",
    "profiles",
    "tasks",
    "user_stats",
]

_TABLES: dict[str, str] = {
    "users": f"""
        CREATE TABLE IF NOT EXISTS users (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            email TEXT NOT NULL UNIQUE,
            password_hash TEXT NOT NULL,
            created TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
            updated TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT}
        )
    """,
    "profiles": f"""
        CREATE TABLE IF NOT EXISTS profiles (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL UNIQUE REFERENCES users (id) ON DELETE CASCADE,
            display_name TEXT,
            avatar_url TEXT,
            dark_mode INTEGER NOT NULL DEFAULT 0,
            created TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
            updated TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT}
        )
    """,
    "tasks": f"""
        CREATE TABLE IF NOT EXISTS tasks (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL REFERENCES users (id) ON DELETE CASCADE,
            title TEXT NOT NULL CHECK (length(trim(title)) > 0),
            description TEXT,
            category TEXT NOT NULL CHECK (category IN ('Work', 'DSA', 'Personal')),
            status TEXT NOT NULL DEFAULT 'pending' CHECK (status IN ('pending', 'completed')),
            xp_reward INTEGER NOT NULL CHECK (xp_reward > 0),
            completed_at TEXT,
            created TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
            updated TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
            CHECK ((status = 'completed') = (completed_at IS NOT NULL))
        )
    """,
    "user_stats": f"""
        CREATE TABLE IF NOT EXISTS user_stats (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            user_id INTEGER NOT NULL UNIQUE REFERENCES users (id) ON DELETE CASCADE,
            xp INTEGER NOT NULL DEFAULT 0 CHECK (xp >= 0 AND xp < 100),
            level INTEGER NOT NULL DEFAULT 1 CHECK (level >= 1),
            streak INTEGER NOT NULL DEFAULT 0 CHECK (streak >= 0),
            last_completed TEXT,
            created TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT},
            updated TEXT NOT NULL DEFAULT {_TIMESTAMP_DEFAULT}
        )
    """,
}

_INDEXES = [
    "CREATE INDEX IF NOT EXISTS idx_tasks_user_created ON tasks (user_id, created)",
]


async def init_db(*, db_path: str | None = None) -> None:
    """Create all tables and indexes if they do not exist (idempotent)."""
    conn = await db_client.get_connection(db_path=db_path)

    for collection_name in COLLECTIONS:
        await conn.execute(_TABLES[collection_name])
        logger.info("Ensured table: %s", collection_name)

    for index_sql in _INDEXES:
        await conn.execute(index_sql)

    await conn.commit()
    logger.info("SQLite schema initialization complete")
