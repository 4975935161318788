# padelbot/models/storage.py
from __future__ import annotations

import os
import sqlite3
from contextlib import contextmanager
from datetime import datetime, timezone

# ---------- helpers ----------

def iso_now() -> str:
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")

def _dict_factory(cursor, row):
    d = {}
    for idx, col in enumerate(cursor.description):
        d[col[0]] = row[idx]
    return d

@contextmanager
def get_conn(db_path: str):
    os.makedirs(os.path.dirname(db_path) or ".", exist_ok=True)
    conn = sqlite3.connect(db_path, isolation_level=None, timeout=10)  # autocommit
    conn.row_factory = _dict_factory
    try:
        yield conn
    finally:
        conn.close()

@contextmanager
def transaction(db_path: str):
    """
    Conexão com BEGIN IMMEDIATE: pega o lock de escrita antes do primeiro
    SELECT, então ler-e-depois-escrever não intercala com outro processo.
    """
    with get_conn(db_path) as conn:
        conn.execute("BEGIN IMMEDIATE")
        try:
            yield conn
        except BaseException:
            conn.execute("ROLLBACK")
            raise
        else:
            conn.execute("COMMIT")

# ---------- schema / init ----------

DDL_BOOKINGS = """
CREATE TABLE IF NOT EXISTS locations (
  id          INTEGER PRIMARY KEY AUTOINCREMENT,
  name        TEXT NOT NULL,
  url         TEXT,
  created_at  TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS users (
  id          INTEGER PRIMARY KEY,             -- id do usuário no Telegram
  username    TEXT,
  first_name  TEXT NOT NULL,
  skill_level TEXT,
  created_at  TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS bookings (
  id          INTEGER PRIMARY KEY AUTOINCREMENT,
  location_id INTEGER NOT NULL REFERENCES locations(id),
  start_time  TEXT NOT NULL,                   -- ISO-8601 UTC
  end_time    TEXT NOT NULL,
  price       REAL NOT NULL,
  courts      INTEGER NOT NULL,
  note        TEXT,
  cancelled   INTEGER NOT NULL DEFAULT 0,
  created_at  TEXT NOT NULL,
  updated_at  TEXT NOT NULL
);
CREATE TABLE IF NOT EXISTS registrations (
  id          INTEGER PRIMARY KEY AUTOINCREMENT,
  booking_id  INTEGER NOT NULL REFERENCES bookings(id),
  user_id     INTEGER NOT NULL REFERENCES users(id),
  created_at  TEXT NOT NULL,
  UNIQUE (booking_id, user_id)
);
CREATE INDEX IF NOT EXISTS idx_registrations_booking ON registrations(booking_id, created_at);
"""

DDL_MESSAGES = """
CREATE TABLE IF NOT EXISTS messages (
  booking_id      INTEGER PRIMARY KEY,         -- uma mensagem ativa por reserva
  chat_id         INTEGER NOT NULL,
  message_id      INTEGER,
  content_hash    TEXT,
  status          TEXT NOT NULL,               -- absent | posted | stale | deleted
  last_synced_at  TEXT,
  pinned_at       TEXT,                        -- NULL = não fixada
  created_at      TEXT NOT NULL
);
CREATE INDEX IF NOT EXISTS idx_messages_chat_message ON messages(chat_id, message_id);
CREATE INDEX IF NOT EXISTS idx_messages_status ON messages(status);
"""

DDL_LEASES = """
CREATE TABLE IF NOT EXISTS sync_leases (
  booking_id   INTEGER PRIMARY KEY,
  owner        TEXT,
  lease_until  REAL NOT NULL DEFAULT 0,        -- epoch seconds
  dirty        INTEGER NOT NULL DEFAULT 0
);
"""

def ensure_db(db_path: str) -> None:
    with get_conn(db_path) as conn:
        conn.execute("PRAGMA journal_mode=WAL")
        cur = conn.cursor()
        for ddl in (DDL_BOOKINGS, DDL_MESSAGES, DDL_LEASES):
            cur.executescript(ddl)

        # bancos criados antes do pin
        cols = {row["name"] for row in conn.execute("PRAGMA table_info(messages)")}
        if "pinned_at" not in cols:
            conn.execute("ALTER TABLE messages ADD COLUMN pinned_at TEXT")
