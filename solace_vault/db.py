# solace_vault/db.py

import logging
import os
import sqlite3

logger = logging.getLogger(__name__)


def _table_exists(c: sqlite3.Cursor, table_name: str) -> bool:
    c.execute("SELECT name FROM sqlite_master WHERE type='table' AND name=?", (table_name,))
    return c.fetchone() is not None


def connect(db_path: str) -> sqlite3.Connection:
    return sqlite3.connect(db_path, timeout=5.0)


def init_db(db_path: str) -> None:
    """Create the storage tables if missing. Safe to call repeatedly."""
    directory = os.path.dirname(db_path)
    if directory:
        os.makedirs(directory, mode=0o700, exist_ok=True)

    # Owner-only from the first byte written
    os.close(os.open(db_path, os.O_WRONLY | os.O_CREAT, 0o600))
    os.chmod(db_path, 0o600)

    conn = connect(db_path)
    c = conn.cursor()

    # Secure items: encrypted envelopes. require_auth mirrors the keychain
    # access-control flag set at write time. The master key is kept in a
    # separate key file, never in this table.
    c.execute('''
        CREATE TABLE IF NOT EXISTS secure_items (
            name TEXT PRIMARY KEY,
            value TEXT NOT NULL,
            require_auth INTEGER NOT NULL DEFAULT 0,
            updated_at TEXT NOT NULL
        )
    ''')

    # Plain key-value items: consent summary, audit log, app settings
    c.execute('''
        CREATE TABLE IF NOT EXISTS kv_items (
            name TEXT PRIMARY KEY,
            value TEXT NOT NULL
        )
    ''')

    # --- Column migrations ---
    c.execute("PRAGMA table_info(secure_items)")
    columns = [col[1] for col in c.fetchall()]
    if 'require_auth' not in columns:
        c.execute("ALTER TABLE secure_items ADD COLUMN require_auth INTEGER NOT NULL DEFAULT 0")
        logger.info("Added 'require_auth' column to secure_items")

    conn.commit()
    conn.close()
    logger.debug("Storage schema ready at %s", db_path)
