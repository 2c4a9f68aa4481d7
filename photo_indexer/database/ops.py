import sqlite3
import logging
import threading
from contextlib import contextmanager
from datetime import datetime
from typing import Optional, List, Dict, Iterator

from ..exceptions import DatabaseError
from ..models import Photo, CatalogFile, Tag, Camera, Location

PHOTO_COLUMNS = """
    id, canonical_name, title, perceptual_hash, lat, lng, artist, colors,
    vibrant_color, muted_color, favorite, taken_at, updated_at, camera_id, location_id
"""

FILE_COLUMNS = """
    id, photo_id, rel_path, hash, type, mime, orientation, width, height, aspect_ratio, is_primary
"""


def _to_iso(dt: Optional[datetime]) -> Optional[str]:
    return dt.isoformat() if dt else None


def _from_iso(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


class CatalogStore:
    """
    Explicit find / create / update operations over the catalog tables.

    Writes are expected to run inside transaction(), which serializes them on
    the shared connection and commits or rolls back as one unit. A group's
    whole find -> probe -> write sequence additionally runs under
    identity_lock() so two observations of the same logical photo cannot
    both decide to create it.
    """
    def __init__(self, conn: sqlite3.Connection, write_lock: Optional[threading.RLock] = None):
        self.conn = conn
        self._write_lock = write_lock or threading.RLock()
        self._identity_locks: Dict[str, list] = {}
        self._registry_lock = threading.Lock()

    # --- Concurrency ---

    @contextmanager
    def identity_lock(self, canonical_name: str) -> Iterator[None]:
        with self._registry_lock:
            entry = self._identity_locks.setdefault(canonical_name, [threading.Lock(), 0])
            entry[1] += 1

        entry[0].acquire()
        try:
            yield
        finally:
            entry[0].release()
            with self._registry_lock:
                entry[1] -= 1
                if entry[1] == 0:
                    del self._identity_locks[canonical_name]

    @contextmanager
    def transaction(self) -> Iterator["CatalogStore"]:
        """One SQLite transaction. Rolls back and raises DatabaseError on failure."""
        with self._write_lock:
            try:
                with self.conn:
                    yield self
            except sqlite3.Error as e:
                logging.error(f"Catalog transaction rolled back: {e}")
                raise DatabaseError(str(e)) from e

    def _fetchone(self, sql: str, params: tuple = ()):
        with self._write_lock:
            try:
                return self.conn.execute(sql, params).fetchone()
            except sqlite3.Error as e:
                raise DatabaseError(str(e)) from e

    def _fetchall(self, sql: str, params: tuple = ()) -> list:
        with self._write_lock:
            try:
                return self.conn.execute(sql, params).fetchall()
            except sqlite3.Error as e:
                raise DatabaseError(str(e)) from e

    def _insert(self, sql: str, params: tuple) -> int:
        cur = self.conn.execute(sql, params)
        if cur.lastrowid is None:
            raise DatabaseError("Database INSERT failed to return a row ID.")
        return cur.lastrowid

    # --- Photos ---

    def find_photo(self, canonical_name: str) -> Optional[Photo]:
        row = self._fetchone(f"SELECT {PHOTO_COLUMNS} FROM photos WHERE canonical_name = ?", (canonical_name,))
        if row is None:
            return None
        photo = self._row_to_photo(row)
        photo.tags = self.photo_tags(photo.id)
        return photo

    def create_photo(self, photo: Photo, now: datetime) -> Photo:
        photo.updated_at = now
        photo.id = self._insert("""
            INSERT INTO photos (
                canonical_name, title, perceptual_hash, lat, lng, artist, colors,
                vibrant_color, muted_color, favorite, taken_at, created_at, updated_at,
                camera_id, location_id
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            photo.canonical_name, photo.title, photo.perceptual_hash, photo.lat, photo.lng,
            photo.artist, photo.colors, photo.vibrant_color, photo.muted_color,
            int(photo.favorite), _to_iso(photo.taken_at), _to_iso(now), _to_iso(now),
            photo.camera_id, photo.location_id,
        ))
        self.set_photo_tags(photo.id, photo.tags)
        return photo

    def update_photo(self, photo: Photo, now: datetime) -> Photo:
        """Saves every mutable column of an existing photo. Tags are left alone."""
        photo.updated_at = now
        self.conn.execute("""
            UPDATE photos
            SET title = ?, perceptual_hash = ?, lat = ?, lng = ?, artist = ?, colors = ?,
                vibrant_color = ?, muted_color = ?, favorite = ?, taken_at = ?, updated_at = ?,
                camera_id = ?, location_id = ?
            WHERE id = ?
        """, (
            photo.title, photo.perceptual_hash, photo.lat, photo.lng, photo.artist, photo.colors,
            photo.vibrant_color, photo.muted_color, int(photo.favorite), _to_iso(photo.taken_at),
            _to_iso(now), photo.camera_id, photo.location_id, photo.id,
        ))
        return photo

    def _row_to_photo(self, row) -> Photo:
        (pid, canonical, title, phash, lat, lng, artist, colors,
         vibrant, muted, favorite, taken_at, updated_at, camera_id, location_id) = row
        return Photo(
            id=pid, canonical_name=canonical, title=title, perceptual_hash=phash,
            lat=lat, lng=lng, artist=artist, colors=colors,
            vibrant_color=vibrant, muted_color=muted, favorite=bool(favorite),
            taken_at=_from_iso(taken_at), updated_at=_from_iso(updated_at),
            camera_id=camera_id, location_id=location_id,
        )

    # --- Files ---

    def find_file(self, photo_id: int, file_hash: str, rel_path: str) -> Optional[CatalogFile]:
        """
        Finds a file of the photo by content hash OR relative path.
        A path match wins over a hash match.
        """
        row = self._fetchone(f"""
            SELECT {FILE_COLUMNS} FROM files
            WHERE photo_id = ? AND (hash = ? OR rel_path = ?)
            ORDER BY (rel_path = ?) DESC, id
            LIMIT 1
        """, (photo_id, file_hash, rel_path, rel_path))
        return self._row_to_file(row) if row else None

    def find_primary_file(self, photo_id: int, primary_type: str) -> Optional[CatalogFile]:
        row = self._fetchone(f"""
            SELECT {FILE_COLUMNS} FROM files
            WHERE photo_id = ? AND type = ? AND is_primary = 1
            ORDER BY id LIMIT 1
        """, (photo_id, primary_type))
        return self._row_to_file(row) if row else None

    def files_for_photo(self, photo_id: int) -> List[CatalogFile]:
        rows = self._fetchall(f"SELECT {FILE_COLUMNS} FROM files WHERE photo_id = ? ORDER BY id", (photo_id,))
        return [self._row_to_file(r) for r in rows]

    def create_file(self, f: CatalogFile) -> CatalogFile:
        f.id = self._insert("""
            INSERT INTO files (
                photo_id, rel_path, hash, type, mime, orientation, width, height, aspect_ratio, is_primary
            )
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (
            f.photo_id, f.rel_path, f.hash, f.type, f.mime, f.orientation,
            f.width, f.height, f.aspect_ratio, int(f.primary),
        ))
        return f

    def update_file(self, f: CatalogFile) -> CatalogFile:
        self.conn.execute("""
            UPDATE files
            SET photo_id = ?, rel_path = ?, hash = ?, type = ?, mime = ?, orientation = ?,
                width = ?, height = ?, aspect_ratio = ?, is_primary = ?
            WHERE id = ?
        """, (
            f.photo_id, f.rel_path, f.hash, f.type, f.mime, f.orientation,
            f.width, f.height, f.aspect_ratio, int(f.primary), f.id,
        ))
        return f

    def demote_other_primaries(self, photo_id: int, keep_file_id: int):
        self.conn.execute(
            "UPDATE files SET is_primary = 0 WHERE photo_id = ? AND id <> ? AND is_primary = 1",
            (photo_id, keep_file_id),
        )

    def _row_to_file(self, row) -> CatalogFile:
        fid, photo_id, rel_path, file_hash, ftype, mime, orientation, width, height, aspect, primary = row
        return CatalogFile(
            id=fid, photo_id=photo_id, rel_path=rel_path, hash=file_hash, type=ftype,
            mime=mime, orientation=orientation, width=width, height=height,
            aspect_ratio=aspect, primary=bool(primary),
        )

    # --- Lookup entities ---
    # The first_or_create_* helpers run inside the caller's transaction().

    def first_or_create_tag(self, label: str) -> Tag:
        row = self._fetchone("SELECT id, label FROM tags WHERE label = ?", (label,))
        if row:
            return Tag(id=row[0], label=row[1])
        tag_id = self._insert("INSERT INTO tags (label) VALUES (?)", (label,))
        return Tag(id=tag_id, label=label)

    def first_or_create_camera(self, model: str) -> Camera:
        row = self._fetchone("SELECT id, model FROM cameras WHERE model = ?", (model,))
        if row:
            return Camera(id=row[0], model=row[1])
        camera_id = self._insert("INSERT INTO cameras (model) VALUES (?)", (model,))
        return Camera(id=camera_id, model=model)

    def first_or_create_location(self, loc: Location) -> Location:
        row = self._fetchone("""
            SELECT id, lat, lng, name, city, county, country, category, type
            FROM locations WHERE id = ?
        """, (loc.id,))
        if row:
            return Location(*row)
        self.conn.execute("""
            INSERT INTO locations (id, lat, lng, name, city, county, country, category, type)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?)
        """, (loc.id, loc.lat, loc.lng, loc.name, loc.city, loc.county, loc.country, loc.category, loc.type))
        return loc

    def get_location(self, location_id: str) -> Optional[Location]:
        row = self._fetchone("""
            SELECT id, lat, lng, name, city, county, country, category, type
            FROM locations WHERE id = ?
        """, (location_id,))
        return Location(*row) if row else None

    def get_camera(self, camera_id: int) -> Optional[Camera]:
        row = self._fetchone("SELECT id, model FROM cameras WHERE id = ?", (camera_id,))
        return Camera(id=row[0], model=row[1]) if row else None

    # --- Tags ---

    def photo_tags(self, photo_id: int) -> List[Tag]:
        rows = self._fetchall("""
            SELECT t.id, t.label
            FROM photo_tags pt
            JOIN tags t ON pt.tag_id = t.id
            WHERE pt.photo_id = ?
            ORDER BY pt.position
        """, (photo_id,))
        return [Tag(id=tid, label=label) for tid, label in rows]

    def set_photo_tags(self, photo_id: int, tags: List[Tag]):
        for position, tag in enumerate(tags):
            self.conn.execute(
                "INSERT OR IGNORE INTO photo_tags (photo_id, tag_id, position) VALUES (?, ?, ?)",
                (photo_id, tag.id, position),
            )

    # --- Stats ---

    def counts(self) -> Dict[str, int]:
        """Row counts per catalog table."""
        result = {}
        for table in ("photos", "files", "tags", "photo_tags", "cameras", "locations"):
            result[table] = self._fetchone(f"SELECT COUNT(*) FROM {table}")[0]
        return result
