import datetime
import logging
from typing import Any

from fastapi import Body, FastAPI, HTTPException, Request, Response

from algorithms import infer_category, legacy_schema
from db import (
    DayTitleRepository,
    ExerciseRepository,
    HistoryRepository,
    MetricEntryRepository,
    MetricTypeRepository,
    RoutineRepository,
    SettingsRepository,
)
from metrics_service import MetricsService
from models import CARDIO, IncompleteSessionError
from progression_service import ProgressionService

logger = logging.getLogger(__name__)


def _parse_ids(order: str) -> list[int]:
    try:
        return [int(i) for i in order.split(",") if i]
    except ValueError:
        raise HTTPException(
            status_code=400,
            detail="invalid order parameter; expected comma-separated ids",
        )


def _parse_reps(reps: str | None) -> list | None:
    """Split a comma-separated rep list, keeping empty positions as blanks."""
    if reps is None:
        return None
    return [r.strip() for r in reps.split(",")]


def _error(e: ValueError) -> HTTPException:
    if isinstance(e, IncompleteSessionError):
        return HTTPException(status_code=400, detail=f"incomplete session: {e}")
    if "not found" in str(e):
        return HTTPException(status_code=404, detail=str(e))
    return HTTPException(status_code=400, detail=str(e))


class TokenGuard:
    """Reject requests without the configured ``X-API-Token`` header."""

    OPEN_PATHS = {"/health", "/docs", "/openapi.json"}

    def __init__(self, settings: SettingsRepository) -> None:
        self.settings = settings

    async def __call__(self, request: Request, call_next):
        token = self.settings.get_text("api_token", "")
        if token and request.url.path not in self.OPEN_PATHS:
            if request.headers.get("X-API-Token") != token:
                logger.warning("rejected request to %s: bad token", request.url.path)
                return Response("invalid api token", status_code=401)
        return await call_next(request)


class TrainAPI:
    """Provides REST endpoints for routines, session logging and progression."""

    def __init__(
        self,
        db_path: str = "train.db",
        yaml_path: str = "settings.yaml",
    ) -> None:
        self.db_path = db_path
        self.settings = SettingsRepository(db_path, yaml_path)
        self.exercises = ExerciseRepository(db_path)
        self.routines = RoutineRepository(db_path)
        self.history = HistoryRepository(db_path)
        self.day_titles = DayTitleRepository(db_path)
        self.metric_types = MetricTypeRepository(db_path)
        self.metric_entries = MetricEntryRepository(db_path)
        self.progression = ProgressionService(
            self.exercises, self.history, self.settings
        )
        self.metrics = MetricsService(self.metric_types, self.metric_entries)
        self.app = FastAPI(
            title="Train API",
            description="REST API for weekly routines and progressive overload",
        )
        self.app.middleware("http")(TokenGuard(self.settings))
        self._setup_routes()

    def _routine_entry(self, entry: dict) -> dict:
        item = dict(entry)
        if entry["type"] == CARDIO:
            item["progression"] = None
            item["personal_record"] = None
            return item
        result = self.progression.replay(entry["exercise_id"])
        item["progression"] = result.state.model_dump()
        item["personal_record"] = (
            result.personal_record.model_dump() if result.personal_record else None
        )
        return item

    def _setup_routes(self) -> None:
        @self.app.get(
            "/health",
            summary="Health check",
            description="Verify API and database connectivity.",
        )
        def health():
            """Return API and database connection status."""
            try:
                self.day_titles.fetch_all_titles()
                return {"status": "ok"}
            except Exception as e:  # pragma: no cover - connectivity failure
                raise HTTPException(status_code=500, detail=str(e))

        @self.app.get("/exercises")
        def list_exercises(
            search: str = None,
            type: str = None,
            category: str = None,
            limit: int = 50,
        ):
            return self.exercises.fetch_all_exercises(search, type, category, limit)

        @self.app.get("/exercises/categories")
        def list_categories():
            return self.exercises.categories()

        @self.app.post("/exercises")
        def add_exercise(
            name: str,
            type: str,
            category: str = None,
            target_sets: int = None,
            target_reps: int = None,
            target_weight: float = None,
        ):
            try:
                eid = self.exercises.add(
                    name,
                    type,
                    category if category is not None else infer_category(name),
                    target_sets,
                    target_reps,
                    target_weight,
                )
                return {"id": eid}
            except ValueError as e:
                raise _error(e)

        @self.app.get("/exercises/{exercise_id}")
        def get_exercise(exercise_id: int):
            try:
                return self.exercises.fetch_detail(exercise_id)
            except ValueError as e:
                raise _error(e)

        @self.app.put("/exercises/{exercise_id}")
        def update_exercise(
            exercise_id: int,
            name: str = None,
            type: str = None,
            category: str = None,
            target_sets: int = None,
            target_reps: int = None,
            target_weight: float = None,
        ):
            try:
                self.exercises.update(
                    exercise_id,
                    name,
                    type,
                    category,
                    target_sets,
                    target_reps,
                    target_weight,
                )
                if self.history.fetch_history(exercise_id, 1):
                    self.progression.rederive(exercise_id)
                return {"status": "updated"}
            except ValueError as e:
                raise _error(e)

        @self.app.delete("/exercises/{exercise_id}")
        def delete_exercise(exercise_id: int):
            try:
                self.exercises.delete(exercise_id)
                return {"status": "deleted"}
            except ValueError as e:
                raise _error(e)

        @self.app.post("/routines/reorder")
        def reorder_routines(day: str, order: str):
            ids = _parse_ids(order)
            try:
                self.routines.reorder(day, ids)
                return {"status": "updated"}
            except ValueError as e:
                raise _error(e)

        @self.app.get("/routines/{day}")
        def get_routine(day: str):
            try:
                title = self.day_titles.fetch_title(day)
                entries = self.routines.fetch_for_day(day)
            except ValueError as e:
                raise _error(e)
            return {
                "day": day,
                "title": title,
                "exercises": [self._routine_entry(e) for e in entries],
            }

        @self.app.post("/routines")
        def add_routine(exercise_id: int, day: str, notes: str = None):
            try:
                rid = self.routines.add(exercise_id, day, notes)
                return {"id": rid}
            except ValueError as e:
                raise _error(e)

        @self.app.put("/routines/{routine_id}")
        def update_routine(routine_id: int, notes: str = None):
            try:
                self.routines.update_notes(routine_id, notes)
                return {"status": "updated"}
            except ValueError as e:
                raise _error(e)

        @self.app.delete("/routines/{routine_id}")
        def delete_routine(routine_id: int):
            try:
                self.routines.delete(routine_id)
                return {"status": "deleted"}
            except ValueError as e:
                raise _error(e)

        @self.app.get("/days")
        def list_days():
            return self.day_titles.fetch_all_titles()

        @self.app.get("/days/{day}")
        def get_day(day: str):
            try:
                return {"day": day, "title": self.day_titles.fetch_title(day)}
            except ValueError as e:
                raise _error(e)

        @self.app.put("/days/{day}")
        def set_day_title(day: str, title: str = ""):
            try:
                self.day_titles.set_title(day, title)
                return {"status": "updated"}
            except ValueError as e:
                raise _error(e)

        @self.app.post("/history")
        def log_session(
            exercise_id: int,
            reps: str = None,
            weight: float = None,
            date: str = None,
            notes: str = None,
            fill_blanks: bool = True,
        ):
            try:
                return self.progression.log_session(
                    exercise_id,
                    date,
                    _parse_reps(reps),
                    weight,
                    notes,
                    fill_blanks,
                )
            except ValueError as e:
                raise _error(e)

        @self.app.put("/history/entries/{history_id}")
        def update_session(
            history_id: int,
            reps: str = None,
            weight: float = None,
            date: str = None,
            notes: str = None,
        ):
            try:
                result = self.progression.update_session(
                    history_id, date, _parse_reps(reps), weight, notes
                )
                return {"status": "updated", "progression": result.state.model_dump()}
            except ValueError as e:
                raise _error(e)

        @self.app.delete("/history/entries/{history_id}")
        def delete_session(history_id: int):
            try:
                self.progression.delete_session(history_id)
                return {"status": "deleted"}
            except ValueError as e:
                raise _error(e)

        @self.app.get("/history/{exercise_id}")
        def get_history(exercise_id: int, limit: int = None):
            try:
                self.exercises.fetch_detail(exercise_id)
            except ValueError as e:
                raise _error(e)
            if limit is None:
                limit = self.settings.get_int("history_limit", 200)
            return self.history.fetch_history(exercise_id, limit)

        @self.app.get("/history/{exercise_id}/pr")
        def get_personal_record(exercise_id: int):
            try:
                record = self.progression.personal_record(exercise_id)
            except ValueError as e:
                raise _error(e)
            return record.model_dump() if record else None

        @self.app.get("/progression/{exercise_id}")
        def get_progression(exercise_id: int):
            try:
                return self.progression.progression(exercise_id).model_dump()
            except ValueError as e:
                raise _error(e)

        @self.app.post("/normalize")
        def normalize_record(record: Any = Body(...), run_date: str = None):
            try:
                day = (
                    datetime.date.fromisoformat(run_date)
                    if run_date
                    else datetime.date.today()
                )
            except ValueError as e:
                raise _error(e)
            return legacy_schema.normalize(record, day)

        @self.app.get("/metrics")
        def list_metrics():
            return self.metrics.list_types()

        @self.app.post("/metrics")
        def add_metric(name: str, unit: str = "", color: str = "#4CAF50"):
            try:
                mid = self.metric_types.add(name, unit, color)
                return {"id": mid}
            except ValueError as e:
                raise _error(e)

        @self.app.post("/metrics/reorder")
        def reorder_metrics(order: str):
            ids = _parse_ids(order)
            try:
                self.metric_types.reorder(ids)
                return {"status": "updated"}
            except ValueError as e:
                raise _error(e)

        @self.app.get("/metrics/dashboard")
        def metrics_dashboard(days: int = None):
            if days is None:
                days = self.settings.get_int("dashboard_days", 30)
            try:
                return self.metrics.dashboard(days)
            except ValueError as e:
                raise _error(e)

        @self.app.post("/metrics/entries")
        def add_metric_entry(
            metric_id: int,
            value: float,
            date: str = None,
            notes: str = None,
        ):
            try:
                eid = self.metric_entries.add(
                    metric_id,
                    date or datetime.date.today().isoformat(),
                    value,
                    notes,
                )
                return {"id": eid}
            except ValueError as e:
                raise _error(e)

        @self.app.put("/metrics/entries/{entry_id}")
        def update_metric_entry(
            entry_id: int,
            value: float = None,
            date: str = None,
            notes: str = None,
        ):
            try:
                self.metric_entries.update(entry_id, value, date, notes)
                return {"status": "updated"}
            except ValueError as e:
                raise _error(e)

        @self.app.delete("/metrics/entries/{entry_id}")
        def delete_metric_entry(entry_id: int):
            try:
                self.metric_entries.delete(entry_id)
                return {"status": "deleted"}
            except ValueError as e:
                raise _error(e)

        @self.app.put("/metrics/{metric_id}")
        def update_metric(
            metric_id: int,
            name: str = None,
            unit: str = None,
            color: str = None,
        ):
            try:
                self.metric_types.update(metric_id, name, unit, color)
                return {"status": "updated"}
            except ValueError as e:
                raise _error(e)

        @self.app.delete("/metrics/{metric_id}")
        def delete_metric(metric_id: int):
            try:
                self.metric_types.delete(metric_id)
                return {"status": "deleted"}
            except ValueError as e:
                raise _error(e)

        @self.app.get("/metrics/{metric_id}/entries")
        def list_metric_entries(metric_id: int, limit: int = 30):
            try:
                self.metric_types.fetch_detail(metric_id)
            except ValueError as e:
                raise _error(e)
            return self.metric_entries.fetch_for_type(metric_id, limit)

        @self.app.get("/settings")
        def get_settings():
            return self.settings.all_settings()

        @self.app.post("/settings")
        def update_settings(
            progression_threshold: int = None,
            weight_increment: float = None,
            assist_decrement: float = None,
            weight_unit: str = None,
            history_limit: int = None,
            dashboard_days: int = None,
            api_token: str = None,
        ):
            changes = {
                key: value
                for key, value in {
                    "progression_threshold": progression_threshold,
                    "weight_increment": weight_increment,
                    "assist_decrement": assist_decrement,
                    "weight_unit": weight_unit,
                    "history_limit": history_limit,
                    "dashboard_days": dashboard_days,
                    "api_token": api_token,
                }.items()
                if value is not None
            }
            try:
                self.settings.update_many(changes)
            except ValueError as e:
                raise _error(e)
            return {"status": "updated"}


api = TrainAPI()
app = api.app

if __name__ == "__main__":
    import uvicorn

    uvicorn.run(app)
