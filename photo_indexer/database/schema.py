"""
Database schema definitions.
"""
import sqlite3
import logging

CURRENT_SCHEMA_VERSION = 1

def init_schema(conn: sqlite3.Connection):
    """
    Applies the catalog schema to the database.
    Idempotent: safe to run on every startup.
    """
    with conn:
        # 1. Version Tracking (For future migrations)
        conn.execute("""
            CREATE TABLE IF NOT EXISTS schema_version (
                version INTEGER PRIMARY KEY
            );
        """)

        cur = conn.cursor()
        cur.execute("SELECT version FROM schema_version")
        if not cur.fetchone():
            conn.execute("INSERT INTO schema_version (version) VALUES (?)", (CURRENT_SCHEMA_VERSION,))

        # 2. Lookup entities (created lazily, never deleted by the indexer)
        conn.execute("""
        CREATE TABLE IF NOT EXISTS cameras (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            model           TEXT NOT NULL UNIQUE
        );
        """)

        conn.execute("""
        CREATE TABLE IF NOT EXISTS locations (
            id              TEXT PRIMARY KEY,     -- Derived from coordinates
            lat             REAL NOT NULL,
            lng             REAL NOT NULL,
            name            TEXT NOT NULL DEFAULT '',
            city            TEXT NOT NULL DEFAULT '',
            county          TEXT NOT NULL DEFAULT '',
            country         TEXT NOT NULL DEFAULT '',
            category        TEXT NOT NULL DEFAULT '',
            type            TEXT NOT NULL DEFAULT ''
        );
        """)

        conn.execute("""
        CREATE TABLE IF NOT EXISTS tags (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            label           TEXT NOT NULL UNIQUE CHECK (label <> '')
        );
        """)

        # 3. Logical photos
        conn.execute("""
        CREATE TABLE IF NOT EXISTS photos (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            canonical_name  TEXT NOT NULL UNIQUE,
            title           TEXT NOT NULL DEFAULT '',
            perceptual_hash TEXT,
            lat             REAL,
            lng             REAL,
            artist          TEXT,
            colors          TEXT NOT NULL DEFAULT '',
            vibrant_color   TEXT,
            muted_color     TEXT,
            favorite        INTEGER NOT NULL DEFAULT 0,
            taken_at        TEXT,
            created_at      TEXT NOT NULL,
            updated_at      TEXT NOT NULL,
            camera_id       INTEGER,
            location_id     TEXT,
            FOREIGN KEY(camera_id) REFERENCES cameras(id),
            FOREIGN KEY(location_id) REFERENCES locations(id)
        );
        """)

        conn.execute("""
        CREATE TABLE IF NOT EXISTS photo_tags (
            photo_id        INTEGER NOT NULL,
            tag_id          INTEGER NOT NULL,
            position        INTEGER NOT NULL,     -- Preserves first-seen order
            PRIMARY KEY (photo_id, tag_id),
            FOREIGN KEY(photo_id) REFERENCES photos(id) ON DELETE CASCADE,
            FOREIGN KEY(tag_id) REFERENCES tags(id) ON DELETE CASCADE
        );
        """)

        # 4. Physical files
        conn.execute("""
        CREATE TABLE IF NOT EXISTS files (
            id              INTEGER PRIMARY KEY AUTOINCREMENT,
            photo_id        INTEGER NOT NULL,
            rel_path        TEXT NOT NULL,
            hash            TEXT NOT NULL,
            type            TEXT NOT NULL,
            mime            TEXT,
            orientation     INTEGER NOT NULL DEFAULT 0,
            width           INTEGER,
            height          INTEGER,
            aspect_ratio    REAL,
            is_primary      INTEGER NOT NULL DEFAULT 0,
            FOREIGN KEY(photo_id) REFERENCES photos(id) ON DELETE CASCADE
        );
        """)

        # 5. Indices for Performance
        conn.execute("CREATE INDEX IF NOT EXISTS idx_files_hash ON files(hash);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_files_rel_path ON files(rel_path);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_files_photo ON files(photo_id, is_primary);")
        conn.execute("CREATE INDEX IF NOT EXISTS idx_photos_taken_at ON photos(taken_at);")

    logging.debug("Database schema initialized.")
