import argparse
import csv
import json
import logging
import os
import shutil

import uvicorn

from db import ExerciseRepository, HistoryRepository, SettingsRepository
from migrate import load_days, migrate, should_migrate
from progression_service import ProgressionService

logger = logging.getLogger(__name__)

HISTORY_FIELDS = [
    "session_date",
    "weight",
    "sets_completed",
    "completed",
    "volume",
    "is_pr",
    "notes",
]


def export_history(db_path: str, output_dir: str = ".") -> list[str]:
    """Write one CSV file of logged sessions per exercise."""
    exercises = ExerciseRepository(db_path)
    history = HistoryRepository(db_path)
    paths = []
    for exercise_id in history.exercise_ids():
        rows = list(reversed(history.fetch_history(exercise_id, limit=-1)))
        out_path = os.path.join(output_dir, f"history_{exercise_id}.csv")
        with open(out_path, "w", newline="", encoding="utf-8") as f:
            writer = csv.DictWriter(f, fieldnames=["exercise"] + HISTORY_FIELDS)
            writer.writeheader()
            name = exercises.fetch_detail(exercise_id)["name"]
            for row in rows:
                item = {k: row[k] for k in HISTORY_FIELDS}
                item["sets_completed"] = " ".join(str(r) for r in row["sets_completed"])
                item["exercise"] = name
                writer.writerow(item)
        paths.append(out_path)
    logger.info("exported history of %d exercises", len(paths))
    return paths


def normalize_file(json_path: str, run_date=None) -> str:
    """Return the canonical JSON form of a legacy per-day document."""
    return json.dumps(load_days(json_path, run_date), indent=2)


def backup_db(db_path: str, backup_path: str) -> None:
    shutil.copy(db_path, backup_path)


def restore_db(backup_path: str, db_path: str) -> None:
    shutil.copy(backup_path, db_path)


def rederive(db_path: str, yaml_path: str = "settings.yaml") -> int:
    service = ProgressionService(
        ExerciseRepository(db_path),
        HistoryRepository(db_path),
        SettingsRepository(db_path, yaml_path),
    )
    return service.rederive_all()


def serve(db_path: str, yaml_path: str, json_path: str, host: str, port: int) -> None:
    if should_migrate(db_path, json_path):
        migrate(json_path, db_path)
    # rest_api builds a default app on import, which creates train.db
    from rest_api import TrainAPI

    api = TrainAPI(db_path=db_path, yaml_path=yaml_path)
    uvicorn.run(api.app, host=host, port=port)


def main(argv=None) -> None:
    parser = argparse.ArgumentParser(description="Utility commands")
    parser.add_argument("--verbose", action="store_true")
    sub = parser.add_subparsers(dest="cmd", required=True)

    mig = sub.add_parser("migrate")
    mig.add_argument("--json", default="train.json")
    mig.add_argument("--db", default="train.db")
    mig.add_argument("--date", default=None)

    norm = sub.add_parser("normalize")
    norm.add_argument("--json", default="train.json")
    norm.add_argument("--date", default=None)

    exp = sub.add_parser("export")
    exp.add_argument("--db", default="train.db")
    exp.add_argument("--out", default=".")

    bkp = sub.add_parser("backup")
    bkp.add_argument("--db", default="train.db")
    bkp.add_argument("--out", default="backup.db")

    rst = sub.add_parser("restore")
    rst.add_argument("--in", dest="src", default="backup.db")
    rst.add_argument("--db", default="train.db")

    red = sub.add_parser("rederive")
    red.add_argument("--db", default="train.db")
    red.add_argument("--yaml", default="settings.yaml")

    srv = sub.add_parser("serve")
    srv.add_argument("--db", default="train.db")
    srv.add_argument("--yaml", default="settings.yaml")
    srv.add_argument("--json", default="train.json")
    srv.add_argument("--host", default="127.0.0.1")
    srv.add_argument("--port", type=int, default=8000)

    args = parser.parse_args(argv)
    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    if args.cmd == "migrate":
        if os.path.exists(args.db):
            parser.error(f"{args.db} already exists")
        summary = migrate(args.json, args.db, args.date)
        print(json.dumps(summary))
    elif args.cmd == "normalize":
        print(normalize_file(args.json, args.date))
    elif args.cmd == "export":
        export_history(args.db, args.out)
    elif args.cmd == "backup":
        backup_db(args.db, args.out)
    elif args.cmd == "restore":
        restore_db(args.src, args.db)
    elif args.cmd == "rederive":
        count = rederive(args.db, args.yaml)
        print(f"Re-derived {count} exercises")
    elif args.cmd == "serve":
        serve(args.db, args.yaml, args.json, args.host, args.port)


if __name__ == "__main__":
    main()
