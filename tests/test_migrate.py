import json
import os
import sys

import pytest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import legacy_schema
from db import DayTitleRepository, ExerciseRepository, HistoryRepository, RoutineRepository
from migrate import migrate, should_migrate

LEGACY = {
    "Monday": {
        "title": "Legs",
        "exercises": [
            {
                "text": "Leg Press: 3x15@60",
                "type": "weight",
                "name": "Leg Press",
                "target": {"sets": 3, "reps": 15},
                "currentWeight": 60,
                "lastDone": "2024-01-05",
                "consecutiveSuccesses": 1,
                "history": [
                    {"date": "2024-01-01", "weight": 60, "sets": [15, 15, 15], "completed": True},
                    {"date": "2024-01-05", "weight": 60, "sets": [14, 15, 15], "completed": False},
                ],
            },
            {"text": "Jog 20 min", "done": True},
        ],
    },
    "Thursday": {
        "title": "Legs again",
        "exercises": [
            {
                "text": "Leg Press: 3x15@60",
                "type": "weight",
                "name": "Leg Press",
                "target": {"sets": 3, "reps": 15},
                "currentWeight": 60,
                "lastDone": "2024-01-03",
                "history": [
                    {"date": "2024-01-03", "weight": 60, "sets": [15, 16, 15], "completed": True},
                    {"date": "2024-01-05", "weight": 60, "sets": [15, 15, 15], "completed": True},
                ],
            },
            "Plank: 3x1@0",
            "Stretch",
        ],
    },
    "Someday": {"title": "ignored", "exercises": ["Squat: 5x5@100"]},
}


def _write(tmp_path, data=LEGACY):
    path = tmp_path / "train.json"
    path.write_text(json.dumps(data), encoding="utf-8")
    return str(path)


def test_should_migrate(tmp_path):
    db_path = str(tmp_path / "train.db")
    assert not should_migrate(db_path, str(tmp_path / "train.json"))
    json_path = _write(tmp_path)
    assert should_migrate(db_path, json_path)
    open(db_path, "w").close()
    assert not should_migrate(db_path, json_path)


def test_migrate_builds_store(tmp_path):
    json_path = _write(tmp_path)
    db_path = str(tmp_path / "train.db")

    summary = migrate(json_path, db_path, "2024-02-01")

    assert summary == {"exercises": 4, "sessions": 3, "routines": 5}
    assert not os.path.exists(json_path)
    assert os.path.exists(json_path + ".backup")

    exercises = ExerciseRepository(db_path)
    leg_press = exercises.fetch_by_name("Leg Press")
    assert leg_press["type"] == "weight"
    assert leg_press["category"] == "Legs-Push"
    assert (leg_press["target_sets"], leg_press["target_reps"], leg_press["target_weight"]) == (3, 15, 60)
    assert leg_press["last_done"] == "2024-01-05"

    jog = exercises.fetch_by_name("Jog 20 min")
    assert jog["type"] == "cardio"
    assert jog["last_done"] == "2024-02-01"
    assert exercises.fetch_by_name("Plank")["category"] == "Core-Pull"
    assert exercises.fetch_by_name("Squat") is None

    history = HistoryRepository(db_path).fetch_history(leg_press["id"])
    assert [h["session_date"] for h in history] == ["2024-01-05", "2024-01-03", "2024-01-01"]
    # the first copy of a duplicated date wins
    assert history[0]["sets_completed"] == [14, 15, 15]
    assert [h["completed"] for h in history] == [False, True, True]
    assert [h["is_pr"] for h in history] == [False, False, True]

    titles = DayTitleRepository(db_path).fetch_all_titles()
    assert titles["Monday"] == "Legs"
    assert titles["Thursday"] == "Legs again"
    monday = RoutineRepository(db_path).fetch_for_day("Monday")
    assert [(e["name"], e["notes"]) for e in monday] == [
        ("Leg Press", None),
        ("Jog 20 min", "Jog 20 min"),
    ]
    thursday = RoutineRepository(db_path).fetch_for_day("Thursday")
    assert [e["name"] for e in thursday] == ["Leg Press", "Plank", "Stretch"]


def test_day_as_plain_list(tmp_path):
    json_path = _write(tmp_path, {"Friday": ["Bench Press: 4x8@50"]})
    db_path = str(tmp_path / "train.db")
    migrate(json_path, db_path, "2024-02-01")
    friday = RoutineRepository(db_path).fetch_for_day("Friday")
    assert friday[0]["name"] == "Bench Press"
    assert friday[0]["target_weight"] == 50


def test_partial_record_imported_as_cardio(tmp_path):
    json_path = _write(tmp_path, {"Monday": {"exercises": ["Jog", {"kind": "weight", "name": "Squat"}]}})
    db_path = str(tmp_path / "train.db")
    summary = migrate(json_path, db_path, "2024-02-01")
    assert summary == {"exercises": 2, "sessions": 0, "routines": 2}
    assert ExerciseRepository(db_path).fetch_by_name("Squat")["type"] == "cardio"
    assert os.path.exists(json_path + ".backup")


def test_rejected_targets_fall_back_to_cardio(tmp_path, monkeypatch):
    monkeypatch.setattr(legacy_schema, "normalize", lambda raw, run_date=None: raw)
    json_path = _write(tmp_path, {"Monday": [{"kind": "weight", "name": "Squat", "target_sets": 0, "target_reps": 5}]})
    db_path = str(tmp_path / "train.db")
    migrate(json_path, db_path, "2024-02-01")
    squat = ExerciseRepository(db_path).fetch_by_name("Squat")
    assert squat["type"] == "cardio"
    assert squat["target_sets"] is None


def test_failed_migration_leaves_nothing_behind(tmp_path, monkeypatch):
    def fail(self, *args, **kwargs):
        raise RuntimeError("disk full")

    monkeypatch.setattr(HistoryRepository, "add", fail)
    json_path = _write(tmp_path)
    db_path = str(tmp_path / "train.db")

    with pytest.raises(RuntimeError):
        migrate(json_path, db_path, "2024-02-01")

    assert not os.path.exists(db_path)
    assert not os.path.exists(db_path + ".tmp")
    assert os.path.exists(json_path)
    assert should_migrate(db_path, json_path)


def test_migrate_refuses_existing_store(tmp_path):
    json_path = _write(tmp_path)
    db_path = str(tmp_path / "train.db")
    ExerciseRepository(db_path)
    with pytest.raises(ValueError):
        migrate(json_path, db_path)
    assert os.path.exists(json_path)
