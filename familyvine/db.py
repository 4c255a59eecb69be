"""Database pool management and schema bootstrap for familyvine."""

from __future__ import annotations

import logging
import os

import asyncpg

logger = logging.getLogger("familyvine.db")

# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

_DB_HOST = os.environ.get("FV_DB_HOST", "localhost")
_DB_PORT = os.environ.get("FV_DB_PORT", "5432")
_DB_USER = os.environ.get("FV_DB_USER", "postgres")
_DB_PASSWORD = os.environ.get("FV_DB_PASSWORD", "postgres")
_DB_NAME = os.environ.get("FV_DB_NAME", "familyvine")

DATABASE_URL = os.environ.get(
    "FV_DATABASE_URL",
    f"postgresql://{_DB_USER}:{_DB_PASSWORD}@{_DB_HOST}:{_DB_PORT}/{_DB_NAME}",
)

SCHEMA_SQL = """
CREATE TABLE IF NOT EXISTS members (
    id          SERIAL PRIMARY KEY,
    first_name  TEXT NOT NULL,
    last_name   TEXT NOT NULL DEFAULT '',
    gender      TEXT NOT NULL DEFAULT 'Unknown',
    is_alive    BOOLEAN NOT NULL DEFAULT TRUE,
    birth_date  DATE,
    death_date  DATE,
    photo_url   TEXT,
    created_at  TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS relationships (
    id                 SERIAL PRIMARY KEY,
    member1_id         INTEGER NOT NULL REFERENCES members(id) ON DELETE CASCADE,
    member2_id         INTEGER NOT NULL REFERENCES members(id) ON DELETE CASCADE,
    relationship_type  TEXT NOT NULL,
    created_at         TIMESTAMPTZ NOT NULL DEFAULT now(),
    CHECK (member1_id <> member2_id),
    UNIQUE (member1_id, member2_id, relationship_type)
);

CREATE INDEX IF NOT EXISTS relationships_member1_idx ON relationships (member1_id);
CREATE INDEX IF NOT EXISTS relationships_member2_idx ON relationships (member2_id);

CREATE TABLE IF NOT EXISTS unions (
    id           SERIAL PRIMARY KEY,
    partner1_id  INTEGER NOT NULL REFERENCES members(id) ON DELETE CASCADE,
    partner2_id  INTEGER REFERENCES members(id) ON DELETE CASCADE,
    union_type   TEXT,
    is_primary   BOOLEAN NOT NULL DEFAULT FALSE,
    union_date   DATE,
    notes        TEXT,
    created_at   TIMESTAMPTZ NOT NULL DEFAULT now()
);

CREATE TABLE IF NOT EXISTS union_children (
    id           SERIAL PRIMARY KEY,
    union_id     INTEGER NOT NULL REFERENCES unions(id) ON DELETE CASCADE,
    child_id     INTEGER NOT NULL REFERENCES members(id) ON DELETE CASCADE,
    birth_order  INTEGER,
    created_at   TIMESTAMPTZ NOT NULL DEFAULT now(),
    UNIQUE (union_id, child_id)
);

CREATE INDEX IF NOT EXISTS union_children_child_idx ON union_children (child_id);
"""

# ---------------------------------------------------------------------------
# Pool
# ---------------------------------------------------------------------------

_pool: asyncpg.Pool | None = None


async def init_pool() -> asyncpg.Pool:
    """Create the global asyncpg connection pool."""
    global _pool
    _pool = await asyncpg.create_pool(
        DATABASE_URL,
        min_size=2,
        max_size=10,
    )
    return _pool


async def close_pool() -> None:
    """Gracefully close the connection pool."""
    global _pool
    if _pool:
        await _pool.close()
        _pool = None


def get_pool() -> asyncpg.Pool:
    """Return the pool, raising if not initialized."""
    if _pool is None:
        raise RuntimeError("Database pool not initialized")
    return _pool


async def ensure_schema(pool: asyncpg.Pool) -> None:
    """Create tables if they do not exist yet."""
    async with pool.acquire() as conn:
        await conn.execute(SCHEMA_SQL)
    logger.info("Schema ensured")
