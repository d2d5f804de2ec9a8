"""
Schools repository: SQLite-backed store of geotagged school records.
"""
import sqlite3
from datetime import datetime, timezone
from pathlib import Path
from typing import NamedTuple

from src.data.geo import GeoPoint

# ~100 m in degrees of latitude; two schools this close are treated as the same place
DUPLICATE_COORD_DELTA_DEG = 0.001


class SchoolRecord(NamedTuple):
    school_id: int
    name: str
    address: str
    lat: float
    lng: float
    created_at: str

    @property
    def location(self) -> GeoPoint:
        return GeoPoint(self.lat, self.lng)


def _row_to_record(r: sqlite3.Row) -> SchoolRecord:
    return SchoolRecord(
        school_id=r["id"],
        name=r["name"],
        address=r["address"],
        lat=float(r["latitude"]),
        lng=float(r["longitude"]),
        created_at=r["created_at"],
    )


def init_db(db_path: str | Path) -> None:
    """Create schools table and index if they do not exist."""
    db_path = Path(db_path)
    db_path.parent.mkdir(parents=True, exist_ok=True)
    with sqlite3.connect(db_path) as conn:
        conn.execute(
            """
            CREATE TABLE IF NOT EXISTS schools (
                id INTEGER PRIMARY KEY AUTOINCREMENT,
                name TEXT NOT NULL,
                address TEXT NOT NULL,
                latitude REAL NOT NULL,
                longitude REAL NOT NULL,
                created_at TEXT NOT NULL
            )
            """
        )
        conn.execute(
            "CREATE INDEX IF NOT EXISTS idx_schools_lat_lng ON schools(latitude, longitude)"
        )
        conn.commit()


def create_school(
    db_path: str | Path,
    *,
    name: str,
    address: str,
    lat: float,
    lng: float,
) -> SchoolRecord:
    db_path = Path(db_path)
    if not db_path.exists():
        raise ValueError("Database not initialized. Run init_db first.")
    created_at = datetime.now(timezone.utc).isoformat()
    with sqlite3.connect(db_path) as conn:
        cur = conn.execute(
            "INSERT INTO schools (name, address, latitude, longitude, created_at) VALUES (?, ?, ?, ?, ?)",
            (name, address, lat, lng, created_at),
        )
        conn.commit()
        school_id = cur.lastrowid
    return SchoolRecord(
        school_id=school_id,
        name=name,
        address=address,
        lat=lat,
        lng=lng,
        created_at=created_at,
    )


def list_schools(db_path: str | Path) -> list[SchoolRecord]:
    """All schools, newest first. Callers re-sort by distance, so order is informational."""
    db_path = Path(db_path)
    if not db_path.exists():
        return []
    with sqlite3.connect(db_path) as conn:
        conn.row_factory = sqlite3.Row
        cur = conn.execute(
            """
            SELECT id, name, address, latitude, longitude, created_at
            FROM schools
            ORDER BY created_at DESC, id DESC
            """
        )
        return [_row_to_record(r) for r in cur.fetchall()]


def get_school(db_path: str | Path, school_id: int) -> SchoolRecord | None:
    db_path = Path(db_path)
    if not db_path.exists():
        return None
    with sqlite3.connect(db_path) as conn:
        conn.row_factory = sqlite3.Row
        cur = conn.execute(
            "SELECT id, name, address, latitude, longitude, created_at FROM schools WHERE id = ?",
            (school_id,),
        )
        r = cur.fetchone()
        if r is None:
            return None
        return _row_to_record(r)


def find_duplicate(db_path: str | Path, name: str, lat: float, lng: float) -> SchoolRecord | None:
    """
    Return an existing school with the same name, or with both coordinates
    within DUPLICATE_COORD_DELTA_DEG of (lat, lng). None if there is no match.
    """
    db_path = Path(db_path)
    if not db_path.exists():
        return None
    with sqlite3.connect(db_path) as conn:
        conn.row_factory = sqlite3.Row
        cur = conn.execute(
            """
            SELECT id, name, address, latitude, longitude, created_at
            FROM schools
            WHERE name = ?
               OR (ABS(latitude - ?) < ? AND ABS(longitude - ?) < ?)
            ORDER BY id
            LIMIT 1
            """,
            (name, lat, DUPLICATE_COORD_DELTA_DEG, lng, DUPLICATE_COORD_DELTA_DEG),
        )
        r = cur.fetchone()
        return _row_to_record(r) if r is not None else None


def count_schools(db_path: str | Path) -> int:
    db_path = Path(db_path)
    if not db_path.exists():
        return 0
    with sqlite3.connect(db_path) as conn:
        return conn.execute("SELECT COUNT(*) FROM schools").fetchone()[0]


def check_db(db_path: str | Path) -> bool:
    """True when the DB file exists and the schools table is queryable."""
    db_path = Path(db_path)
    if not db_path.exists():
        return False
    try:
        with sqlite3.connect(db_path) as conn:
            conn.execute("SELECT 1 FROM schools LIMIT 1").fetchall()
    except sqlite3.Error:
        return False
    return True
