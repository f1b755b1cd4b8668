import sqlite3
import json
import os
import re
import uuid
from contextlib import closing, contextmanager
from typing import Callable, Iterator, List, Optional, Sequence
from menu_scanner.parsing.utils import scan_name_for_date, utc_now_iso
from menu_scanner.schemas import MenuData, MenuItem, MenuScan, StoredMenuItem

_ITEM_COLUMNS = """
    mi.id, mi.menu_scan_id, mi.dish_name, mi.description, mi.ingredients,
    mi.allergens, mi.price, mi.category, mi.dietary_tags, mi.created_at,
    ms.restaurant_name, ms.menu_type, ms.raw_text AS scan_raw_text
"""

def _dump_list(values: Optional[Sequence[str]]) -> Optional[str]:
    return json.dumps(list(values), ensure_ascii=False) if values is not None else None

def _load_list(payload: Optional[str]) -> Optional[List[str]]:
    return json.loads(payload) if payload is not None else None

def _row_to_item(row: sqlite3.Row) -> StoredMenuItem:
    data = dict(row)
    for key in ("ingredients", "allergens", "dietary_tags"):
        data[key] = _load_list(data[key])
    return StoredMenuItem(**data)

class ScanStore:
    """Menu scans and their items in SQLite. Every query is parameterized."""

    def __init__(self, database_path: str):
        self.database_path = database_path

    @contextmanager
    def _connect(self) -> Iterator[sqlite3.Connection]:
        with closing(sqlite3.connect(self.database_path)) as conn:
            conn.row_factory = sqlite3.Row
            conn.execute("PRAGMA foreign_keys = ON")
            with conn:
                yield conn

    def init_db(self):
        """Create the scan and item tables"""
        directory = os.path.dirname(self.database_path)
        if directory:
            os.makedirs(directory, exist_ok=True)

        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS menu_scans (
                    id TEXT PRIMARY KEY,
                    raw_text TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    user_id TEXT NOT NULL,
                    name TEXT,
                    restaurant_name TEXT,
                    menu_type TEXT,
                    cuisine_type TEXT
                )
            """)
            conn.execute("""
                CREATE TABLE IF NOT EXISTS menu_items (
                    id TEXT PRIMARY KEY,
                    menu_scan_id TEXT NOT NULL REFERENCES menu_scans(id) ON DELETE CASCADE,
                    dish_name TEXT NOT NULL,
                    description TEXT,
                    ingredients TEXT,
                    allergens TEXT,
                    price REAL,
                    category TEXT,
                    dietary_tags TEXT,
                    created_at TEXT NOT NULL
                )
            """)
            conn.execute("CREATE INDEX IF NOT EXISTS idx_scans_user ON menu_scans(user_id, created_at)")
            conn.execute("CREATE INDEX IF NOT EXISTS idx_items_scan ON menu_items(menu_scan_id)")

    def _insert_scan(
        self,
        conn: sqlite3.Connection,
        raw_text: str,
        user_id: str,
        name: Optional[str],
        restaurant_name: Optional[str],
        menu_type: Optional[str],
        cuisine_type: Optional[str],
        created_at: Optional[str] = None,
    ) -> str:
        scan_id = str(uuid.uuid4())
        conn.execute(
            """
            INSERT INTO menu_scans
                (id, raw_text, created_at, user_id, name, restaurant_name, menu_type, cuisine_type)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?)
            """,
            (scan_id, raw_text or "", created_at or utc_now_iso(), user_id,
             name or scan_name_for_date(), restaurant_name, menu_type, cuisine_type)
        )
        return scan_id

    def _insert_items(self, conn: sqlite3.Connection, scan_id: str, items: Sequence[MenuItem]):
        now = utc_now_iso()
        conn.executemany(
            """
            INSERT INTO menu_items
                (id, menu_scan_id, dish_name, description, ingredients, allergens,
                 price, category, dietary_tags, created_at)
            VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
            """,
            [
                (str(uuid.uuid4()), scan_id, item.dish_name, item.description,
                 _dump_list(item.ingredients), _dump_list(item.allergens), item.price,
                 item.category, _dump_list(item.dietary_tags), now)
                for item in items
            ]
        )

    def create_scan(
        self,
        raw_text: str,
        user_id: str,
        name: Optional[str] = None,
        restaurant_name: Optional[str] = None,
        menu_type: Optional[str] = None,
        cuisine_type: Optional[str] = None,
    ) -> str:
        """Create a scan holding the raw text; returns the new scan id"""
        with self._connect() as conn:
            return self._insert_scan(conn, raw_text, user_id, name, restaurant_name, menu_type, cuisine_type)

    def insert_items(self, scan_id: str, items: Sequence[MenuItem]):
        """Attach items to an existing scan"""
        with self._connect() as conn:
            self._insert_items(conn, scan_id, items)

    def store_menu_data(self, data: MenuData, user_id: str, use_auto_naming: bool = False) -> str:
        """
        Store a scan together with its items in one transaction.
        The scan is named after its date, or after the restaurant when auto-naming is on.
        """
        if not data.menu_items:
            raise ValueError("No menu items to store")

        created_at = data.scan_date or utc_now_iso()
        name = None
        if use_auto_naming:
            name = f"{data.restaurant_name or 'Menu scan'} - {scan_name_for_date()}"

        with self._connect() as conn:
            scan_id = self._insert_scan(
                conn, data.raw_text, user_id, name,
                data.restaurant_name, data.menu_type, data.cuisine_type, created_at
            )
            self._insert_items(conn, scan_id, data.menu_items)

        print(f"STORED SCAN {scan_id} with {len(data.menu_items)} items")
        return scan_id

    def get_scan(self, scan_id: str) -> Optional[MenuScan]:
        with self._connect() as conn:
            row = conn.execute(
                """
                SELECT ms.*, COUNT(mi.id) AS item_count
                FROM menu_scans ms
                LEFT JOIN menu_items mi ON mi.menu_scan_id = ms.id
                WHERE ms.id = ?
                GROUP BY ms.id
                """,
                (scan_id,)
            ).fetchone()
        return MenuScan(**dict(row)) if row else None

    def list_items_by_scan(self, scan_id: str) -> List[StoredMenuItem]:
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_ITEM_COLUMNS}
                FROM menu_items mi
                JOIN menu_scans ms ON ms.id = mi.menu_scan_id
                WHERE mi.menu_scan_id = ?
                ORDER BY mi.dish_name
                """,
                (scan_id,)
            ).fetchall()
        return [_row_to_item(row) for row in rows]

    def list_scans_by_user(self, user_id: str, limit: Optional[int] = None) -> List[MenuScan]:
        """Scan history for a user, newest first, with item counts"""
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT ms.*, COUNT(mi.id) AS item_count
                FROM menu_scans ms
                LEFT JOIN menu_items mi ON mi.menu_scan_id = ms.id
                WHERE ms.user_id = ?
                GROUP BY ms.id
                ORDER BY ms.created_at DESC, ms.rowid DESC
                LIMIT ?
                """,
                (user_id, limit if limit is not None else -1)
            ).fetchall()
        return [MenuScan(**dict(row)) for row in rows]

    def list_scans_by_restaurant(self, restaurant_name: str) -> List[MenuScan]:
        """Scans whose restaurant name or raw text mentions the restaurant, newest first"""
        if not restaurant_name or not restaurant_name.strip():
            raise ValueError("Restaurant name is required")

        escaped = re.sub(r'([\\%_])', r'\\\1', restaurant_name.strip())
        pattern = f"%{escaped}%"
        with self._connect() as conn:
            rows = conn.execute(
                """
                SELECT ms.*, COUNT(mi.id) AS item_count
                FROM menu_scans ms
                LEFT JOIN menu_items mi ON mi.menu_scan_id = ms.id
                WHERE ms.raw_text LIKE ? ESCAPE '\\' OR ms.restaurant_name LIKE ? ESCAPE '\\'
                GROUP BY ms.id
                ORDER BY ms.created_at DESC, ms.rowid DESC
                """,
                (pattern, pattern)
            ).fetchall()
        print(f"FOUND {len(rows)} scans for restaurant: {restaurant_name}")
        return [MenuScan(**dict(row)) for row in rows]

    def get_most_recent_scan(self) -> Optional[MenuScan]:
        with self._connect() as conn:
            row = conn.execute(
                "SELECT * FROM menu_scans ORDER BY created_at DESC, rowid DESC LIMIT 1"
            ).fetchone()
        return MenuScan(**dict(row)) if row else None

    def delete_scan(self, scan_id: str) -> bool:
        """Delete a scan and, by cascade, its items"""
        with self._connect() as conn:
            cursor = conn.execute("DELETE FROM menu_scans WHERE id = ?", (scan_id,))
            return cursor.rowcount > 0

    def query_items(self, predicate: Optional[Callable[[StoredMenuItem], bool]] = None) -> List[StoredMenuItem]:
        """All stored items in insertion order, optionally filtered in-process"""
        with self._connect() as conn:
            rows = conn.execute(
                f"""
                SELECT {_ITEM_COLUMNS}
                FROM menu_items mi
                JOIN menu_scans ms ON ms.id = mi.menu_scan_id
                ORDER BY mi.rowid
                """
            ).fetchall()
        items = (_row_to_item(row) for row in rows)
        if predicate is None:
            return list(items)
        return [item for item in items if predicate(item)]

    def clear_all(self):
        """Remove all scans and items (for testing)"""
        with self._connect() as conn:
            conn.execute("DELETE FROM menu_items")
            conn.execute("DELETE FROM menu_scans")

    def get_stats(self) -> dict:
        with self._connect() as conn:
            total_scans = conn.execute("SELECT COUNT(*) FROM menu_scans").fetchone()[0]
            total_items = conn.execute("SELECT COUNT(*) FROM menu_items").fetchone()[0]

        return {
            "total_scans": total_scans,
            "total_items": total_items,
            "database_path": self.database_path
        }
