import csv
import json
import os
import shutil
import sqlite3
import sys
import tempfile
import unittest
from unittest import mock
sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from cli import (
    export_history,
    backup_db,
    restore_db,
    normalize_file,
    rederive,
    main,
)
from db import ExerciseRepository
from rest_api import TrainAPI
from fastapi.testclient import TestClient

class CLIToolsTest(unittest.TestCase):
    def setUp(self) -> None:
        self.db_path = "test_cli.db"
        self.yaml_path = "test_cli.yaml"
        if os.path.exists(self.db_path):
            os.remove(self.db_path)
        if os.path.exists(self.yaml_path):
            os.remove(self.yaml_path)
        self.api = TrainAPI(db_path=self.db_path, yaml_path=self.yaml_path)
        self.client = TestClient(self.api.app)
        eid = self.client.post(
            "/exercises",
            params={"name": "Leg Press", "type": "weight", "target_sets": 3, "target_reps": 15, "target_weight": 60},
        ).json()["id"]
        for date, reps, weight in (
            ("2024-01-01", "15,15,15", 60),
            ("2024-01-02", "15,15,15", 65),
        ):
            self.client.post(
                "/history",
                params={"exercise_id": eid, "reps": reps, "weight": weight, "date": date},
            )
        self.exercise_id = eid

    def tearDown(self) -> None:
        for path in [self.db_path, self.yaml_path, "backup.db", "exports", "legacy.json"]:
            if os.path.exists(path):
                if os.path.isdir(path):
                    for f in os.listdir(path):
                        os.remove(os.path.join(path, f))
                    os.rmdir(path)
                else:
                    os.remove(path)

    def test_export_backup_restore(self) -> None:
        os.makedirs("exports", exist_ok=True)
        paths = export_history(self.db_path, "exports")
        self.assertEqual(paths, [os.path.join("exports", f"history_{self.exercise_id}.csv")])
        with open(paths[0], newline="", encoding="utf-8") as f:
            rows = list(csv.DictReader(f))
        self.assertEqual([r["session_date"] for r in rows], ["2024-01-01", "2024-01-02"])
        self.assertEqual(rows[0]["exercise"], "Leg Press")
        self.assertEqual(rows[0]["sets_completed"], "15 15 15")
        backup_db(self.db_path, "backup.db")
        self.assertTrue(os.path.exists("backup.db"))
        os.remove(self.db_path)
        restore_db("backup.db", self.db_path)
        self.assertTrue(os.path.exists(self.db_path))

    def test_backup_via_main(self) -> None:
        main(["--verbose", "backup", "--db", self.db_path, "--out", "backup.db"])
        self.assertTrue(os.path.exists("backup.db"))

    def test_rederive_restores_flags(self) -> None:
        conn = sqlite3.connect(self.db_path)
        conn.execute("UPDATE history SET is_pr = 0, volume = NULL")
        conn.commit()
        conn.close()
        self.assertEqual(rederive(self.db_path, self.yaml_path), 1)
        history = self.api.history.fetch_history(self.exercise_id)
        self.assertEqual([h["is_pr"] for h in history], [True, True])
        self.assertEqual(history[0]["volume"], 45 * 65)

    def test_normalize_file(self) -> None:
        with open("legacy.json", "w", encoding="utf-8") as f:
            json.dump(
                {"Monday": {"title": "Legs", "exercises": ["Leg Press: 3x15@60", {"text": "Jog", "done": True}]}},
                f,
            )
        data = json.loads(normalize_file("legacy.json", "2024-01-01"))
        self.assertEqual(data["Monday"]["title"], "Legs")
        self.assertEqual(
            data["Monday"]["exercises"],
            [
                {"kind": "weight", "name": "Leg Press", "target_sets": 3, "target_reps": 15, "target_weight": 60},
                {"kind": "cardio", "text": "Jog", "last_done": "2024-01-01"},
            ],
        )
        self.assertTrue(os.path.exists("legacy.json"))


class DefaultPathsTest(unittest.TestCase):
    """Commands run with their default paths in a fresh working directory."""

    def setUp(self) -> None:
        self.cwd = os.getcwd()
        self.workdir = tempfile.mkdtemp()
        os.chdir(self.workdir)
        with open("train.json", "w", encoding="utf-8") as f:
            json.dump({"Monday": {"title": "Legs", "exercises": ["Leg Press: 3x15@60", "Jog"]}}, f)

    def tearDown(self) -> None:
        os.chdir(self.cwd)
        shutil.rmtree(self.workdir)

    def test_migrate_with_defaults(self) -> None:
        main(["migrate"])
        self.assertTrue(os.path.exists("train.db"))
        self.assertTrue(os.path.exists("train.json.backup"))
        self.assertFalse(os.path.exists("train.json"))
        self.assertEqual(ExerciseRepository("train.db").fetch_by_name("Jog")["type"], "cardio")

    def test_serve_migrates_first(self) -> None:
        with mock.patch("cli.uvicorn.run") as run:
            main(["serve"])
        run.assert_called_once()
        self.assertFalse(os.path.exists("train.json"))
        leg_press = ExerciseRepository("train.db").fetch_by_name("Leg Press")
        self.assertEqual(leg_press["target_weight"], 60)


if __name__ == "__main__":
    unittest.main()
