from __future__ import annotations

import datetime
import logging
from typing import Iterable, Optional

from db import ExerciseRepository, HistoryRepository, SettingsRepository
from algorithms.progression_tracker import ProgressionTracker
from algorithms.session_evaluator import SessionEvaluator
from models import (
    BODYWEIGHT,
    CARDIO,
    LOADED_KINDS,
    IncompleteSessionError,
    PersonalRecord,
    ProgressionState,
    ReplayResult,
)

logger = logging.getLogger(__name__)


class ProgressionService:
    """Log sessions and keep derived progression data in sync with history.

    Derived values (completion, volume, PR flags, streaks) are never patched
    in place: every mutation of an exercise's history is followed by a full
    replay of that history.
    """

    def __init__(
        self,
        exercise_repo: ExerciseRepository,
        history_repo: HistoryRepository,
        settings_repo: SettingsRepository | None = None,
    ) -> None:
        self.exercises = exercise_repo
        self.history = history_repo
        self.settings = settings_repo

    def _threshold(self) -> int:
        if self.settings is None:
            return ProgressionTracker.PROMOTION_THRESHOLD
        return self.settings.get_int(
            "progression_threshold", ProgressionTracker.PROMOTION_THRESHOLD
        )

    def _increments(self) -> tuple[float, float]:
        if self.settings is None:
            return ProgressionTracker.WEIGHT_INCREMENT, ProgressionTracker.ASSIST_DECREMENT
        return (
            self.settings.get_float("weight_increment", ProgressionTracker.WEIGHT_INCREMENT),
            self.settings.get_float("assist_decrement", ProgressionTracker.ASSIST_DECREMENT),
        )

    def replay(self, exercise_id: int) -> ReplayResult:
        """Replay an exercise's full history without writing anything.

        Stored sessions keep the completion decided when they were logged, so
        the replayed streaks do not depend on the starting rep target. A
        reported bodyweight promotion is expressed against the exercise's
        stored ``target_reps``, which already includes it.
        """
        target = self.exercises.target(exercise_id)
        records = self.history.fetch_records(exercise_id, target.kind)
        inc, dec = self._increments()
        result = ProgressionTracker.replay(
            records,
            target,
            threshold=self._threshold(),
            weight_increment=inc,
            assist_decrement=dec,
        )
        change = result.state.suggested_target_change
        if change is not None and change.field == "target_reps":
            reps = target.target_reps or 0
            change.current, change.suggested = reps - 1, reps
        return result

    def rederive(self, exercise_id: int) -> ReplayResult:
        """Replay history and store the derived per-session values."""
        result = self.replay(exercise_id)
        self.history.apply_derived(result.records)
        logger.debug(
            "re-derived exercise %s: %d sessions, streak %d",
            exercise_id,
            len(result.records),
            result.state.consecutive_successes,
        )
        return result

    def rederive_all(self) -> int:
        ids = self.history.exercise_ids()
        for exercise_id in ids:
            self.rederive(exercise_id)
        return len(ids)

    def log_session(
        self,
        exercise_id: int,
        session_date: str | None = None,
        raw_reps: Optional[Iterable] = None,
        weight: Optional[float] = None,
        notes: Optional[str] = None,
        fill_blanks: bool = True,
    ) -> dict:
        """Record a completed session and return it with updated progression.

        Blank rep entries are filled with the target rep count unless
        ``fill_blanks`` is False, in which case they reject the session.
        """
        session_date = session_date or datetime.date.today().isoformat()
        target = self.exercises.target(exercise_id)
        if target.kind == CARDIO:
            self.exercises.set_last_done(exercise_id, session_date)
            return {"exercise_id": exercise_id, "last_done": session_date}

        reps = SessionEvaluator.prepare_session(raw_reps or [], target, fill_blanks)
        if target.kind == BODYWEIGHT:
            weight = None
        elif weight is None:
            weight = target.target_weight
        if target.kind in LOADED_KINDS and weight is None:
            raise IncompleteSessionError("weight is required")
        if weight is not None and weight < 0:
            raise IncompleteSessionError("weight must not be negative")

        evaluation = SessionEvaluator.evaluate(reps, weight, target)
        history_id = self.history.add(
            exercise_id,
            session_date,
            weight,
            reps,
            evaluation.completed,
            evaluation.volume,
            notes=notes,
        )
        result = self.rederive(exercise_id)
        self.exercises.set_last_done(exercise_id, session_date)

        change = result.state.suggested_target_change
        last = result.records[-1] if result.records else None
        if (
            change is not None
            and change.applied
            and last is not None
            and last.id == history_id
            and last.promoted
        ):
            new_reps = (target.target_reps or 0) + 1
            self.exercises.set_target_reps(exercise_id, new_reps)
            change.current, change.suggested = target.target_reps, new_reps
            logger.info(
                "exercise %s promoted to %d reps after %d successful sessions",
                exercise_id,
                new_reps,
                self._threshold(),
            )

        entry = next((r for r in result.records if r.id == history_id), None)
        return {
            "id": history_id,
            "exercise_id": exercise_id,
            "session_date": session_date,
            "weight": weight,
            "sets_completed": reps,
            "completed": evaluation.completed,
            "volume": evaluation.volume,
            "is_pr": bool(entry and entry.is_pr),
            "progression": result.state.model_dump(),
        }

    def update_session(
        self,
        history_id: int,
        session_date: Optional[str] = None,
        raw_reps: Optional[Iterable] = None,
        weight: Optional[float] = None,
        notes: Optional[str] = None,
    ) -> ReplayResult:
        """Edit a logged session and re-derive its exercise."""
        entry = self.history.fetch_detail(history_id)
        exercise_id = entry["exercise_id"]
        target = self.exercises.target(exercise_id)
        reps = None
        completed = None
        if target.kind == BODYWEIGHT:
            weight = None
        if raw_reps is not None or weight is not None:
            if target.kind == CARDIO:
                raise IncompleteSessionError("cardio sessions carry no sets")
            reps = (
                SessionEvaluator.prepare_session(raw_reps, target)
                if raw_reps is not None
                else entry["sets_completed"]
            )
            new_weight = entry["weight"] if weight is None else weight
            completed = SessionEvaluator.evaluate(reps, new_weight, target).completed
        self.history.update(
            history_id,
            session_date=session_date,
            weight=weight,
            reps=reps,
            completed=completed,
            notes=notes,
        )
        return self.rederive(exercise_id)

    def delete_session(self, history_id: int) -> ReplayResult:
        entry = self.history.fetch_detail(history_id)
        self.history.delete(history_id)
        return self.rederive(entry["exercise_id"])

    def progression(self, exercise_id: int) -> ProgressionState:
        return self.replay(exercise_id).state

    def personal_record(self, exercise_id: int) -> Optional[PersonalRecord]:
        return self.replay(exercise_id).personal_record
