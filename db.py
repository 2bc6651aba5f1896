import sqlite3
import os
import json
import logging
from contextlib import contextmanager
from typing import List, Tuple, Optional, Iterable

from config import STORED_IN_KEYRING, YamlConfig, APP_VERSION
from settings_schema import validate_settings
from models import (
    CARDIO,
    BODYWEIGHT,
    DAYS_OF_WEEK,
    EXERCISE_KINDS,
    LOADED_KINDS,
    DerivedRecord,
    ExerciseTarget,
    SessionRecord,
)

logger = logging.getLogger(__name__)

_DAY_CHECK = ", ".join(f"'{d}'" for d in DAYS_OF_WEEK)
_KIND_CHECK = ", ".join(f"'{k}'" for k in EXERCISE_KINDS)


class Database:
    """Provides SQLite connection management and schema initialization."""

    _TABLE_DEFINITIONS = {
        "exercises": (
            f"""CREATE TABLE exercises (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    type TEXT NOT NULL CHECK(type IN ({_KIND_CHECK})),
                    category TEXT,
                    target_sets INTEGER,
                    target_reps INTEGER,
                    target_weight REAL,
                    last_done TEXT,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );""",
            [
                "id",
                "name",
                "type",
                "category",
                "target_sets",
                "target_reps",
                "target_weight",
                "last_done",
                "created_at",
            ],
        ),
        "routines": (
            f"""CREATE TABLE routines (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    exercise_id INTEGER NOT NULL,
                    day_of_week TEXT NOT NULL CHECK(day_of_week IN ({_DAY_CHECK})),
                    order_index INTEGER NOT NULL,
                    notes TEXT,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE
                );""",
            ["id", "exercise_id", "day_of_week", "order_index", "notes"],
        ),
        "history": (
            """CREATE TABLE history (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    exercise_id INTEGER NOT NULL,
                    session_date TEXT NOT NULL,
                    weight REAL,
                    sets_completed TEXT NOT NULL,
                    completed INTEGER NOT NULL DEFAULT 0,
                    volume REAL,
                    is_pr INTEGER NOT NULL DEFAULT 0,
                    notes TEXT,
                    FOREIGN KEY(exercise_id) REFERENCES exercises(id) ON DELETE CASCADE
                );""",
            [
                "id",
                "exercise_id",
                "session_date",
                "weight",
                "sets_completed",
                "completed",
                "volume",
                "is_pr",
                "notes",
            ],
        ),
        "day_titles": (
            f"""CREATE TABLE day_titles (
                    day_of_week TEXT PRIMARY KEY CHECK(day_of_week IN ({_DAY_CHECK})),
                    title TEXT NOT NULL DEFAULT ''
                );""",
            ["day_of_week", "title"],
        ),
        "metric_types": (
            """CREATE TABLE metric_types (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL UNIQUE,
                    unit TEXT NOT NULL DEFAULT '',
                    color TEXT NOT NULL DEFAULT '#4CAF50',
                    order_index INTEGER NOT NULL DEFAULT 0,
                    is_default INTEGER NOT NULL DEFAULT 0,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP
                );""",
            ["id", "name", "unit", "color", "order_index", "is_default", "created_at"],
        ),
        "metric_entries": (
            """CREATE TABLE metric_entries (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    metric_type_id INTEGER NOT NULL,
                    entry_date TEXT NOT NULL,
                    value REAL NOT NULL,
                    notes TEXT,
                    created_at TEXT NOT NULL DEFAULT CURRENT_TIMESTAMP,
                    FOREIGN KEY(metric_type_id) REFERENCES metric_types(id) ON DELETE CASCADE
                );""",
            ["id", "metric_type_id", "entry_date", "value", "notes", "created_at"],
        ),
        "settings": (
            """CREATE TABLE settings (
                    key TEXT PRIMARY KEY,
                    value TEXT NOT NULL
                );""",
            ["key", "value"],
        ),
    }

    _DEFAULT_METRICS = [
        ("Body Weight", "kg", "#4CAF50"),
        ("Body Fat", "%", "#FF9800"),
        ("Waist", "cm", "#2196F3"),
    ]

    def __init__(self, db_path: str = "train.db") -> None:
        self._db_path = db_path
        self._migrate_routine_targets()
        self._ensure_schema()
        self._init_days()
        self._init_settings()
        self._init_metric_types()

    @contextmanager
    def _connection(self):
        connection = sqlite3.connect(self._db_path)
        connection.execute("PRAGMA foreign_keys = ON;")
        try:
            yield connection
            connection.commit()
        finally:
            connection.close()

    @staticmethod
    def _columns(conn: sqlite3.Connection, table: str) -> List[str]:
        return [row[1] for row in conn.execute(f"PRAGMA table_info({table});")]

    def _migrate_routine_targets(self) -> None:
        """Move per-routine targets of older stores onto their exercises."""
        with self._connection() as conn:
            if "target_sets" not in self._columns(conn, "routines"):
                return
            ex_cols = self._columns(conn, "exercises")
            if not ex_cols:
                return
            for col, col_type in (
                ("target_sets", "INTEGER"),
                ("target_reps", "INTEGER"),
                ("target_weight", "REAL"),
            ):
                if col not in ex_cols:
                    conn.execute(f"ALTER TABLE exercises ADD COLUMN {col} {col_type};")
            first = (
                "(SELECT r.{col} FROM routines r WHERE r.exercise_id = exercises.id "
                "AND r.{col} IS NOT NULL ORDER BY r.id LIMIT 1)"
            )
            weight_sources = [first.format(col="target_weight")]
            progression_cols = self._columns(conn, "exercise_progression")
            if "current_weight" in progression_cols:
                weight_sources.insert(
                    0,
                    "(SELECT p.current_weight FROM exercise_progression p "
                    "WHERE p.exercise_id = exercises.id AND p.current_weight IS NOT NULL)",
                )
            conn.execute(
                "UPDATE exercises SET "
                f"target_sets = COALESCE(target_sets, {first.format(col='target_sets')}), "
                f"target_reps = COALESCE(target_reps, {first.format(col='target_reps')}), "
                f"target_weight = COALESCE(target_weight, {', '.join(weight_sources)});"
            )
            deleted = conn.execute(
                "DELETE FROM routines WHERE exercise_id NOT IN (SELECT id FROM exercises);"
            ).rowcount
            logger.info(
                "moved routine targets onto exercises (%d orphaned routines removed)",
                deleted,
            )

    def _ensure_schema(self) -> None:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute("PRAGMA foreign_keys=off;")
            cursor.execute("PRAGMA legacy_alter_table=on;")
            for table, (sql, columns) in self._TABLE_DEFINITIONS.items():
                self._ensure_table(conn, table, sql, columns)
            cursor.execute("PRAGMA foreign_keys=on;")

    def _ensure_table(
        self, conn: sqlite3.Connection, table: str, sql: str, columns: List[str]
    ) -> None:
        cur = conn.execute(
            "SELECT name FROM sqlite_master WHERE type='table' AND name=?;", (table,)
        )
        if cur.fetchone() is None:
            conn.execute(sql)
            return

        existing_cols = self._columns(conn, table)
        if existing_cols == columns:
            return

        conn.execute(f"DROP TABLE IF EXISTS {table}_old;")
        conn.execute(f"ALTER TABLE {table} RENAME TO {table}_old;")
        conn.execute(sql)

        common = [c for c in existing_cols if c in columns]
        if common:
            cols = ", ".join(common)
            missing = [c for c in columns if c not in existing_cols]
            if missing:
                def default_val(col: str) -> str:
                    if col == "created_at":
                        return "CURRENT_TIMESTAMP"
                    if col in ("completed", "is_pr", "is_default", "order_index"):
                        return "0"
                    if col in ("title", "unit"):
                        return "''"
                    if col == "color":
                        return "'#4CAF50'"
                    return "NULL"

                defaults = ", ".join(default_val(c) for c in missing)
                conn.execute(
                    f"INSERT INTO {table} ({cols}, {', '.join(missing)}) SELECT {cols}, {defaults} FROM {table}_old;"
                )
            else:
                conn.execute(
                    f"INSERT INTO {table} ({cols}) SELECT {cols} FROM {table}_old;"
                )
        conn.execute(f"DROP TABLE {table}_old;")
        logger.info("rebuilt table %s for the current schema", table)

    def _init_days(self) -> None:
        with self._connection() as conn:
            for day in DAYS_OF_WEEK:
                conn.execute(
                    "INSERT OR IGNORE INTO day_titles (day_of_week, title) VALUES (?, '');",
                    (day,),
                )

    def _init_settings(self) -> None:
        defaults = {
            "progression_threshold": "3",
            "weight_increment": "2.5",
            "assist_decrement": "2.5",
            "weight_unit": "kg",
            "history_limit": "200",
            "dashboard_days": "30",
            "api_token": "",
            "app_version": APP_VERSION,
        }
        with self._connection() as conn:
            for key, value in defaults.items():
                conn.execute(
                    "INSERT OR IGNORE INTO settings (key, value) VALUES (?, ?);",
                    (key, value),
                )

    def _init_metric_types(self) -> None:
        with self._connection() as conn:
            seeded = conn.execute(
                "SELECT value FROM settings WHERE key = 'metric_defaults_seeded';"
            ).fetchone()
            if seeded:
                return
            for pos, (name, unit, color) in enumerate(self._DEFAULT_METRICS):
                conn.execute(
                    "INSERT OR IGNORE INTO metric_types (name, unit, color, order_index, is_default) VALUES (?, ?, ?, ?, 1);",
                    (name, unit, color, pos),
                )
            conn.execute(
                "INSERT INTO settings (key, value) VALUES ('metric_defaults_seeded', '1');"
            )


class BaseRepository(Database):
    """Base repository providing helper methods."""

    def execute(self, query: str, params: Tuple = ()) -> int:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.lastrowid

    def fetch_all(self, query: str, params: Tuple = ()) -> List[Tuple]:
        with self._connection() as conn:
            cursor = conn.cursor()
            cursor.execute(query, params)
            return cursor.fetchall()

    def _require(self, table: str, row_id: int, label: str) -> None:
        rows = self.fetch_all(f"SELECT id FROM {table} WHERE id = ?;", (row_id,))
        if not rows:
            raise ValueError(f"{label} not found")


def validate_day(day: str) -> str:
    if day not in DAYS_OF_WEEK:
        raise ValueError("invalid day of week")
    return day


class ExerciseRepository(BaseRepository):
    """Repository for the exercise library."""

    _COLUMNS = "id, name, type, category, target_sets, target_reps, target_weight, last_done, created_at"

    @staticmethod
    def _check_targets(
        kind: str,
        target_sets: Optional[int],
        target_reps: Optional[int],
        target_weight: Optional[float],
    ) -> Tuple[Optional[int], Optional[int], Optional[float]]:
        if kind not in EXERCISE_KINDS:
            raise ValueError(f"invalid exercise type: {kind}")
        if kind == CARDIO:
            return None, None, None
        if target_sets is None or target_reps is None:
            raise ValueError("target_sets and target_reps are required")
        if int(target_sets) <= 0 or int(target_reps) <= 0:
            raise ValueError("target_sets and target_reps must be positive")
        if kind not in LOADED_KINDS:
            target_weight = None
        elif target_weight is not None and target_weight < 0:
            raise ValueError("target_weight must not be negative")
        return int(target_sets), int(target_reps), target_weight

    @staticmethod
    def _row_to_dict(row: Tuple) -> dict:
        (eid, name, kind, category, sets, reps, weight, last_done, created_at) = row
        return {
            "id": eid,
            "name": name,
            "type": kind,
            "category": category,
            "target_sets": sets,
            "target_reps": reps,
            "target_weight": weight,
            "last_done": last_done,
            "created_at": created_at,
        }

    def add(
        self,
        name: str,
        kind: str,
        category: Optional[str] = None,
        target_sets: Optional[int] = None,
        target_reps: Optional[int] = None,
        target_weight: Optional[float] = None,
        last_done: Optional[str] = None,
    ) -> int:
        name = (name or "").strip()
        if not name:
            raise ValueError("name is required")
        sets, reps, weight = self._check_targets(kind, target_sets, target_reps, target_weight)
        if self.fetch_by_name(name) is not None:
            raise ValueError("exercise already exists")
        return self.execute(
            "INSERT INTO exercises (name, type, category, target_sets, target_reps, target_weight, last_done) VALUES (?, ?, ?, ?, ?, ?, ?);",
            (name, kind, category or None, sets, reps, weight, last_done),
        )

    def fetch_all_exercises(
        self,
        search: Optional[str] = None,
        kind: Optional[str] = None,
        category: Optional[str] = None,
        limit: int = 50,
    ) -> List[dict]:
        query = f"SELECT {self._COLUMNS} FROM exercises WHERE 1=1"
        params: list = []
        if search:
            query += " AND name LIKE ?"
            params.append(f"%{search}%")
        if kind:
            query += " AND type = ?"
            params.append(kind)
        if category:
            query += " AND category = ?"
            params.append(category)
        query += " ORDER BY name LIMIT ?;"
        params.append(limit)
        return [self._row_to_dict(r) for r in self.fetch_all(query, tuple(params))]

    def fetch_detail(self, exercise_id: int) -> dict:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercises WHERE id = ?;", (exercise_id,)
        )
        if not rows:
            raise ValueError("exercise not found")
        return self._row_to_dict(rows[0])

    def fetch_by_name(self, name: str) -> Optional[dict]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM exercises WHERE name = ?;", (name,)
        )
        return self._row_to_dict(rows[0]) if rows else None

    def target(self, exercise_id: int) -> ExerciseTarget:
        detail = self.fetch_detail(exercise_id)
        return ExerciseTarget(
            kind=detail["type"],
            target_sets=detail["target_sets"],
            target_reps=detail["target_reps"],
            target_weight=detail["target_weight"],
        )

    def update(
        self,
        exercise_id: int,
        name: Optional[str] = None,
        kind: Optional[str] = None,
        category: Optional[str] = None,
        target_sets: Optional[int] = None,
        target_reps: Optional[int] = None,
        target_weight: Optional[float] = None,
    ) -> None:
        current = self.fetch_detail(exercise_id)
        new_kind = kind or current["type"]
        sets, reps, weight = self._check_targets(
            new_kind,
            target_sets if target_sets is not None else current["target_sets"],
            target_reps if target_reps is not None else current["target_reps"],
            target_weight if target_weight is not None else current["target_weight"],
        )
        new_name = current["name"]
        if name is not None:
            new_name = name.strip()
            if not new_name:
                raise ValueError("name is required")
            other = self.fetch_by_name(new_name)
            if other is not None and other["id"] != exercise_id:
                raise ValueError("exercise already exists")
        new_category = current["category"] if category is None else (category or None)
        self.execute(
            "UPDATE exercises SET name = ?, type = ?, category = ?, target_sets = ?, target_reps = ?, target_weight = ? WHERE id = ?;",
            (new_name, new_kind, new_category, sets, reps, weight, exercise_id),
        )

    def set_target_reps(self, exercise_id: int, reps: int) -> None:
        if reps <= 0:
            raise ValueError("target_reps must be positive")
        self.execute(
            "UPDATE exercises SET target_reps = ? WHERE id = ?;", (reps, exercise_id)
        )

    def set_last_done(self, exercise_id: int, date: Optional[str]) -> None:
        self.execute(
            "UPDATE exercises SET last_done = ? WHERE id = ?;", (date, exercise_id)
        )

    def delete(self, exercise_id: int) -> None:
        self._require("exercises", exercise_id, "exercise")
        self.execute("DELETE FROM exercises WHERE id = ?;", (exercise_id,))

    def categories(self) -> List[str]:
        rows = self.fetch_all(
            "SELECT DISTINCT category FROM exercises WHERE category IS NOT NULL ORDER BY category;"
        )
        return [r[0] for r in rows]


class RoutineRepository(BaseRepository):
    """Repository for per-day routine entries."""

    def add(self, exercise_id: int, day: str, notes: Optional[str] = None) -> int:
        validate_day(day)
        self._require("exercises", exercise_id, "exercise")
        rows = self.fetch_all(
            "SELECT COALESCE(MAX(order_index), -1) FROM routines WHERE day_of_week = ?;",
            (day,),
        )
        position = int(rows[0][0]) + 1
        return self.execute(
            "INSERT INTO routines (exercise_id, day_of_week, order_index, notes) VALUES (?, ?, ?, ?);",
            (exercise_id, day, position, notes),
        )

    def fetch_for_day(self, day: str) -> List[dict]:
        validate_day(day)
        rows = self.fetch_all(
            """SELECT r.id, r.exercise_id, r.order_index, r.notes,
                      e.name, e.type, e.category, e.target_sets, e.target_reps,
                      e.target_weight, e.last_done
               FROM routines r JOIN exercises e ON r.exercise_id = e.id
               WHERE r.day_of_week = ?
               ORDER BY r.order_index, r.id;""",
            (day,),
        )
        return [
            {
                "routine_id": rid,
                "exercise_id": eid,
                "order_index": pos,
                "notes": notes,
                "name": name,
                "type": kind,
                "category": category,
                "target_sets": sets,
                "target_reps": reps,
                "target_weight": weight,
                "last_done": last_done,
            }
            for (rid, eid, pos, notes, name, kind, category, sets, reps, weight, last_done) in rows
        ]

    def fetch_detail(self, routine_id: int) -> dict:
        rows = self.fetch_all(
            "SELECT id, exercise_id, day_of_week, order_index, notes FROM routines WHERE id = ?;",
            (routine_id,),
        )
        if not rows:
            raise ValueError("routine not found")
        rid, eid, day, pos, notes = rows[0]
        return {
            "id": rid,
            "exercise_id": eid,
            "day_of_week": day,
            "order_index": pos,
            "notes": notes,
        }

    def update_notes(self, routine_id: int, notes: Optional[str]) -> None:
        self._require("routines", routine_id, "routine")
        self.execute(
            "UPDATE routines SET notes = ? WHERE id = ?;", (notes, routine_id)
        )

    def delete(self, routine_id: int) -> None:
        detail = self.fetch_detail(routine_id)
        with self._connection() as conn:
            conn.execute("DELETE FROM routines WHERE id = ?;", (routine_id,))
            self._resequence(conn, detail["day_of_week"])

    @staticmethod
    def _resequence(conn: sqlite3.Connection, day: str) -> None:
        ids = [
            r[0]
            for r in conn.execute(
                "SELECT id FROM routines WHERE day_of_week = ? ORDER BY order_index, id;",
                (day,),
            )
        ]
        for pos, rid in enumerate(ids):
            conn.execute(
                "UPDATE routines SET order_index = ? WHERE id = ?;", (pos, rid)
            )

    def reorder(self, day: str, order: list[int]) -> None:
        validate_day(day)
        existing = [
            row[0]
            for row in self.fetch_all(
                "SELECT id FROM routines WHERE day_of_week = ? ORDER BY order_index;",
                (day,),
            )
        ]
        if set(order) != set(existing) or len(order) != len(existing):
            raise ValueError("invalid order")
        with self._connection() as conn:
            for pos, rid in enumerate(order):
                conn.execute(
                    "UPDATE routines SET order_index = ? WHERE id = ?;", (pos, rid)
                )


class HistoryRepository(BaseRepository):
    """Repository for logged sessions."""

    _COLUMNS = "id, exercise_id, session_date, weight, sets_completed, completed, volume, is_pr, notes"

    @staticmethod
    def _row_to_dict(row: Tuple) -> dict:
        hid, eid, date, weight, sets, completed, volume, is_pr, notes = row
        return {
            "id": hid,
            "exercise_id": eid,
            "session_date": date,
            "weight": weight,
            "sets_completed": json.loads(sets),
            "completed": bool(completed),
            "volume": volume,
            "is_pr": bool(is_pr),
            "notes": notes,
        }

    def add(
        self,
        exercise_id: int,
        session_date: str,
        weight: Optional[float],
        reps: Iterable[int],
        completed: bool = False,
        volume: Optional[float] = None,
        is_pr: bool = False,
        notes: Optional[str] = None,
    ) -> int:
        return self.execute(
            "INSERT INTO history (exercise_id, session_date, weight, sets_completed, completed, volume, is_pr, notes) VALUES (?, ?, ?, ?, ?, ?, ?, ?);",
            (
                exercise_id,
                session_date,
                weight,
                json.dumps(list(reps)),
                int(completed),
                volume,
                int(is_pr),
                notes,
            ),
        )

    def fetch_detail(self, history_id: int) -> dict:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM history WHERE id = ?;", (history_id,)
        )
        if not rows:
            raise ValueError("history entry not found")
        return self._row_to_dict(rows[0])

    def fetch_history(self, exercise_id: int, limit: int = 200) -> List[dict]:
        """Return the newest ``limit`` sessions, newest first."""
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM history WHERE exercise_id = ? ORDER BY session_date DESC, id DESC LIMIT ?;",
            (exercise_id, limit),
        )
        return [self._row_to_dict(r) for r in rows]

    def fetch_records(self, exercise_id: int, kind: str) -> List[SessionRecord]:
        """Return all sessions of an exercise as engine input, oldest first."""
        rows = self.fetch_all(
            "SELECT id, session_date, weight, sets_completed, completed FROM history WHERE exercise_id = ? ORDER BY session_date, id;",
            (exercise_id,),
        )
        return [
            SessionRecord(
                id=hid,
                date=date,
                weight=weight,
                reps_per_set=json.loads(sets),
                kind=kind,
                completed=bool(completed),
            )
            for hid, date, weight, sets, completed in rows
        ]

    def update(
        self,
        history_id: int,
        session_date: Optional[str] = None,
        weight: Optional[float] = None,
        reps: Optional[List[int]] = None,
        completed: Optional[bool] = None,
        notes: Optional[str] = None,
    ) -> None:
        self._require("history", history_id, "history entry")
        updates: list[str] = []
        params: list = []
        if session_date is not None:
            updates.append("session_date = ?")
            params.append(session_date)
        if weight is not None:
            updates.append("weight = ?")
            params.append(weight)
        if reps is not None:
            updates.append("sets_completed = ?")
            params.append(json.dumps(list(reps)))
        if completed is not None:
            updates.append("completed = ?")
            params.append(int(completed))
        if notes is not None:
            updates.append("notes = ?")
            params.append(notes)
        if not updates:
            raise ValueError("no fields to update")
        params.append(history_id)
        self.execute(
            f"UPDATE history SET {', '.join(updates)} WHERE id = ?;", tuple(params)
        )

    def delete(self, history_id: int) -> None:
        self._require("history", history_id, "history entry")
        self.execute("DELETE FROM history WHERE id = ?;", (history_id,))

    def apply_derived(self, records: Iterable[DerivedRecord]) -> None:
        """Store replayed ``completed``/``volume``/``is_pr`` values."""
        with self._connection() as conn:
            for record in records:
                if record.id is None:
                    continue
                conn.execute(
                    "UPDATE history SET completed = ?, volume = ?, is_pr = ? WHERE id = ?;",
                    (int(record.completed), record.volume, int(record.is_pr), record.id),
                )

    def fetch_pr_entry(self, exercise_id: int) -> Optional[dict]:
        rows = self.fetch_all(
            f"SELECT {self._COLUMNS} FROM history WHERE exercise_id = ? AND is_pr = 1 ORDER BY session_date DESC, id DESC LIMIT 1;",
            (exercise_id,),
        )
        return self._row_to_dict(rows[0]) if rows else None

    def exercise_ids(self) -> List[int]:
        rows = self.fetch_all("SELECT DISTINCT exercise_id FROM history ORDER BY exercise_id;")
        return [int(r[0]) for r in rows]


class DayTitleRepository(BaseRepository):
    """Repository for the title shown above each day's routine."""

    def fetch_title(self, day: str) -> str:
        validate_day(day)
        rows = self.fetch_all(
            "SELECT title FROM day_titles WHERE day_of_week = ?;", (day,)
        )
        return rows[0][0] if rows else ""

    def set_title(self, day: str, title: str) -> None:
        validate_day(day)
        self.execute(
            "INSERT INTO day_titles (day_of_week, title) VALUES (?, ?) "
            "ON CONFLICT(day_of_week) DO UPDATE SET title=excluded.title;",
            (day, title or ""),
        )

    def fetch_all_titles(self) -> dict:
        rows = self.fetch_all("SELECT day_of_week, title FROM day_titles;")
        titles = dict(rows)
        return {day: titles.get(day, "") for day in DAYS_OF_WEEK}


class MetricTypeRepository(BaseRepository):
    """Repository for user defined body metrics."""

    def add(self, name: str, unit: str = "", color: str = "#4CAF50") -> int:
        name = (name or "").strip()
        if not name:
            raise ValueError("name is required")
        if self.fetch_all("SELECT id FROM metric_types WHERE name = ?;", (name,)):
            raise ValueError("metric already exists")
        rows = self.fetch_all("SELECT COALESCE(MAX(order_index), -1) FROM metric_types;")
        return self.execute(
            "INSERT INTO metric_types (name, unit, color, order_index, is_default) VALUES (?, ?, ?, ?, 0);",
            (name, unit or "", color or "#4CAF50", int(rows[0][0]) + 1),
        )

    def fetch_types(self) -> List[dict]:
        rows = self.fetch_all(
            "SELECT id, name, unit, color, order_index, is_default FROM metric_types ORDER BY order_index, id;"
        )
        return [
            {
                "id": mid,
                "name": name,
                "unit": unit,
                "color": color,
                "order_index": pos,
                "is_default": bool(is_default),
            }
            for mid, name, unit, color, pos, is_default in rows
        ]

    def fetch_detail(self, metric_id: int) -> dict:
        for metric in self.fetch_types():
            if metric["id"] == metric_id:
                return metric
        raise ValueError("metric not found")

    def update(
        self,
        metric_id: int,
        name: Optional[str] = None,
        unit: Optional[str] = None,
        color: Optional[str] = None,
    ) -> None:
        current = self.fetch_detail(metric_id)
        self.execute(
            "UPDATE metric_types SET name = ?, unit = ?, color = ? WHERE id = ?;",
            (
                name.strip() if name else current["name"],
                current["unit"] if unit is None else unit,
                color or current["color"],
                metric_id,
            ),
        )

    def delete(self, metric_id: int) -> None:
        self._require("metric_types", metric_id, "metric")
        self.execute("DELETE FROM metric_types WHERE id = ?;", (metric_id,))

    def reorder(self, order: list[int]) -> None:
        existing = [m["id"] for m in self.fetch_types()]
        if set(order) != set(existing) or len(order) != len(existing):
            raise ValueError("invalid order")
        with self._connection() as conn:
            for pos, mid in enumerate(order):
                conn.execute(
                    "UPDATE metric_types SET order_index = ? WHERE id = ?;", (pos, mid)
                )


class MetricEntryRepository(BaseRepository):
    """Repository for body metric measurements."""

    def add(
        self,
        metric_type_id: int,
        entry_date: str,
        value: float,
        notes: Optional[str] = None,
    ) -> int:
        self._require("metric_types", metric_type_id, "metric")
        return self.execute(
            "INSERT INTO metric_entries (metric_type_id, entry_date, value, notes) VALUES (?, ?, ?, ?);",
            (metric_type_id, entry_date, value, notes),
        )

    def fetch_for_type(self, metric_type_id: int, limit: int = 30) -> List[dict]:
        rows = self.fetch_all(
            "SELECT id, metric_type_id, entry_date, value, notes FROM metric_entries WHERE metric_type_id = ? ORDER BY entry_date DESC, id DESC LIMIT ?;",
            (metric_type_id, limit),
        )
        return [
            {"id": eid, "metric_type_id": mid, "entry_date": d, "value": v, "notes": n}
            for eid, mid, d, v, n in rows
        ]

    def fetch_since(self, start_date: str) -> List[Tuple[int, str, float]]:
        """Return ``(metric_type_id, entry_date, value)`` rows, oldest first."""
        rows = self.fetch_all(
            "SELECT metric_type_id, entry_date, value FROM metric_entries WHERE entry_date >= ? ORDER BY entry_date, id;",
            (start_date,),
        )
        return [(int(m), d, float(v)) for m, d, v in rows]

    def latest(self, metric_type_id: int) -> Optional[dict]:
        entries = self.fetch_for_type(metric_type_id, 1)
        return entries[0] if entries else None

    def update(
        self,
        entry_id: int,
        value: Optional[float] = None,
        entry_date: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> None:
        rows = self.fetch_all(
            "SELECT entry_date, value, notes FROM metric_entries WHERE id = ?;",
            (entry_id,),
        )
        if not rows:
            raise ValueError("entry not found")
        old_date, old_value, old_notes = rows[0]
        self.execute(
            "UPDATE metric_entries SET entry_date = ?, value = ?, notes = ? WHERE id = ?;",
            (
                entry_date or old_date,
                old_value if value is None else value,
                old_notes if notes is None else notes,
                entry_id,
            ),
        )

    def delete(self, entry_id: int) -> None:
        self._require("metric_entries", entry_id, "entry")
        self.execute("DELETE FROM metric_entries WHERE id = ?;", (entry_id,))


class SettingsRepository(BaseRepository):
    """Repository for general application settings synchronized with YAML."""

    TEXT_KEYS = {"weight_unit", "api_token", "app_version"}

    def __init__(
        self, db_path: str = "train.db", yaml_path: str = "settings.yaml"
    ) -> None:
        super().__init__(db_path)
        self._yaml = YamlConfig(yaml_path)
        self._sync_from_yaml()
        self._sync_to_yaml()

    def _raw_all_settings(self) -> dict:
        rows = self.fetch_all("SELECT key, value FROM settings ORDER BY key;")
        result: dict[str, float | str] = {}
        for k, v in rows:
            if k in self.TEXT_KEYS:
                result[k] = v
                continue
            try:
                result[k] = float(v)
            except ValueError:
                result[k] = v
        return result

    def all_settings(self) -> dict:
        data = self._raw_all_settings()
        data.pop("metric_defaults_seeded", None)
        if data.get("api_token"):
            data["api_token"] = "***"
        return data

    def _sync_from_yaml(self) -> None:
        data = self._yaml.load()
        if not data:
            return
        validate_settings(data)
        with self._connection() as conn:
            for key, value in data.items():
                if value is STORED_IN_KEYRING and key in YamlConfig.SENSITIVE_KEYS:
                    continue
                conn.execute(
                    "INSERT INTO settings (key, value) VALUES (?, ?) "
                    "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
                    (key, str(value)),
                )

    def _sync_to_yaml(self) -> None:
        self._yaml.save(self._raw_all_settings())

    def get_float(self, key: str, default: float) -> float:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return float(rows[0][0]) if rows else default

    def get_text(self, key: str, default: str) -> str:
        self._sync_from_yaml()
        rows = self.fetch_all("SELECT value FROM settings WHERE key = ?;", (key,))
        return rows[0][0] if rows else default

    def get_int(self, key: str, default: int) -> int:
        try:
            return int(float(self.get_text(key, str(default))))
        except ValueError:
            return default

    def set_text(self, key: str, value: str) -> None:
        self.execute(
            "INSERT INTO settings (key, value) VALUES (?, ?) "
            "ON CONFLICT(key) DO UPDATE SET value=excluded.value;",
            (key, value),
        )
        self._sync_to_yaml()

    def set_float(self, key: str, value: float) -> None:
        self.set_text(key, str(value))

    def set_int(self, key: str, value: int) -> None:
        self.set_text(key, str(value))

    def update_many(self, data: dict) -> None:
        """Validate and store several settings at once."""
        merged = self._raw_all_settings()
        merged.update(data)
        merged.pop("metric_defaults_seeded", None)
        validate_settings(merged)
        for key, value in data.items():
            self.set_text(key, str(value))
