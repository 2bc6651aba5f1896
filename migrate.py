"""One-time import of the per-day ``train.json`` document into SQLite."""

import datetime
import json
import logging
import os
import sys

from algorithms import infer_category, legacy_schema
from algorithms.session_evaluator import SessionEvaluator
from db import DayTitleRepository, ExerciseRepository, HistoryRepository, RoutineRepository
from models import BODYWEIGHT, CARDIO, DAYS_OF_WEEK, ExerciseTarget
from progression_service import ProgressionService

logger = logging.getLogger(__name__)


def should_migrate(db_path: str = "train.db", json_path: str = "train.json") -> bool:
    """Return True when there is a JSON document but no database yet."""
    return not os.path.exists(db_path) and os.path.exists(json_path)


def load_days(json_path: str, run_date=None) -> dict:
    """Read ``json_path`` and normalise every exercise, keyed by weekday."""
    with open(json_path, "r", encoding="utf-8") as f:
        data = json.load(f)
    if not isinstance(data, dict):
        raise ValueError("expected an object keyed by day of week")
    days = {}
    for key in data:
        if key not in DAYS_OF_WEEK:
            logger.warning("skipping unknown day %r", key)
    for day in DAYS_OF_WEEK:
        if day not in data:
            continue
        value = data[day]
        if isinstance(value, list):
            title, raw_exercises = "", value
        elif isinstance(value, dict):
            title = str(value.get("title") or "")
            raw_exercises = value.get("exercises") or []
        else:
            logger.warning("skipping malformed day %s", day)
            continue
        days[day] = {
            "title": title,
            "exercises": [legacy_schema.normalize(raw, run_date) for raw in raw_exercises],
        }
    return days


def _collect_exercises(days: dict) -> dict:
    exercises: dict[str, dict] = {}
    for day in days.values():
        for record in day["exercises"]:
            name = legacy_schema.canonical_name(record)
            if not name:
                continue
            known = exercises.get(name)
            if known is None:
                exercises[name] = {"record": record, "history": [], "last_done": None}
                known = exercises[name]
            known["history"].extend(record.get("history") or [])
            last_done = record.get("last_done")
            if last_done and (known["last_done"] is None or last_done > known["last_done"]):
                known["last_done"] = last_done
    return exercises


def _merge_history(entries: list) -> list:
    """Sort sessions by date and keep the first one seen for each date."""
    seen = set()
    merged = []
    for entry in sorted(entries, key=lambda e: e["date"]):
        if entry["date"] in seen:
            continue
        seen.add(entry["date"])
        merged.append(entry)
    return merged


def _add_exercise(exercises: ExerciseRepository, name: str, record: dict, last_done) -> tuple[int, str]:
    """Create the exercise, importing it as cardio when its targets are rejected."""
    kind = record["kind"]
    category = record.get("category") or infer_category(name)
    try:
        eid = exercises.add(
            name,
            kind,
            category,
            record.get("target_sets"),
            record.get("target_reps"),
            record.get("target_weight"),
            last_done,
        )
    except ValueError as e:
        if kind == CARDIO:
            raise
        logger.warning("importing %s as cardio: %s", name, e)
        kind = CARDIO
        eid = exercises.add(name, kind, category, last_done=last_done)
    return eid, kind


def _import_days(days: dict, db_path: str) -> dict:
    exercises = ExerciseRepository(db_path)
    history = HistoryRepository(db_path)
    routines = RoutineRepository(db_path)
    titles = DayTitleRepository(db_path)
    progression = ProgressionService(exercises, history)

    ids: dict[str, int] = {}
    session_count = 0
    for name, info in _collect_exercises(days).items():
        record = info["record"]
        ids[name], kind = _add_exercise(exercises, name, record, info["last_done"])
        if kind == CARDIO:
            continue
        target = ExerciseTarget(
            kind=kind,
            target_sets=record.get("target_sets"),
            target_reps=record.get("target_reps"),
            target_weight=record.get("target_weight"),
        )
        for entry in _merge_history(info["history"]):
            reps = entry.get("reps_per_set") or []
            if not reps:
                logger.warning("skipping %s session on %s without sets", name, entry["date"])
                continue
            weight = None if kind == BODYWEIGHT else entry.get("weight")
            evaluation = SessionEvaluator.evaluate(reps, weight, target)
            history.add(
                ids[name],
                entry["date"],
                weight,
                reps,
                evaluation.completed,
                evaluation.volume,
            )
            session_count += 1
        progression.rederive(ids[name])
    logger.info("migrated %d exercises and %d sessions", len(ids), session_count)

    routine_count = 0
    for day, data in days.items():
        titles.set_title(day, data["title"])
        for record in data["exercises"]:
            name = legacy_schema.canonical_name(record)
            if name not in ids:
                continue
            notes = record.get("text") if record["kind"] == CARDIO else None
            routines.add(ids[name], day, notes)
            routine_count += 1
    logger.info("migrated %d routine entries", routine_count)
    return {
        "exercises": len(ids),
        "sessions": session_count,
        "routines": routine_count,
    }


def migrate(
    json_path: str = "train.json",
    db_path: str = "train.db",
    run_date: datetime.date | str | None = None,
) -> dict:
    """Import ``json_path`` into ``db_path`` and rename it to ``*.backup``.

    The store is built under a temporary name and moved into place only once
    every record has been imported, so a failed run leaves neither a partial
    database nor a renamed JSON file behind.
    """
    if os.path.exists(db_path):
        raise ValueError(f"{db_path} already exists")
    logger.info("migrating %s into %s", json_path, db_path)
    days = load_days(json_path, run_date)

    tmp_path = f"{db_path}.tmp"
    if os.path.exists(tmp_path):
        os.remove(tmp_path)
    try:
        summary = _import_days(days, tmp_path)
    except Exception:
        logger.error("migration of %s failed, %s was not created", json_path, db_path)
        if os.path.exists(tmp_path):
            os.remove(tmp_path)
        raise
    os.replace(tmp_path, db_path)

    backup_path = f"{json_path}.backup"
    try:
        os.replace(json_path, backup_path)
        logger.info("backed up %s to %s", json_path, backup_path)
    except OSError as e:
        logger.warning("failed to back up %s: %s", json_path, e)
    return summary


if __name__ == "__main__":
    logging.basicConfig(level=logging.INFO)
    src = sys.argv[1] if len(sys.argv) > 1 else "train.json"
    path = sys.argv[2] if len(sys.argv) > 2 else "train.db"
    migrate(src, path)
