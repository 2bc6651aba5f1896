"""Streak tracking and progressive-overload decisions.

All derived progression values are produced by replaying the full,
date-ascending session history from an empty state. The history is used in
the order given; sorting is the caller's job.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from pydantic import BaseModel

from models import (
    ASSISTED,
    BODYWEIGHT,
    CARDIO,
    WEIGHT,
    DerivedRecord,
    ExerciseTarget,
    ProgressionState,
    ReplayResult,
    SessionRecord,
    TargetChange,
)
from .personal_records import PersonalRecordCalculator
from .session_evaluator import SessionEvaluator


class TrackerState(BaseModel):
    """State carried from one session to the next during replay."""

    target: ExerciseTarget
    consecutive_successes: int = 0
    ready_to_progress: bool = False
    previous_weight: Optional[float] = None
    sessions: int = 0
    promotions: int = 0


class ProgressionTracker:
    """Applies the streak transition rule to a session history."""

    PROMOTION_THRESHOLD: int = 3
    WEIGHT_INCREMENT: float = 2.5
    ASSIST_DECREMENT: float = 2.5

    @staticmethod
    def _plateau_weight(record: SessionRecord, kind: str) -> float:
        if kind == BODYWEIGHT:
            return 0.0
        return float(record.weight or 0.0)

    @classmethod
    def start(cls, target: ExerciseTarget) -> TrackerState:
        return TrackerState(target=target)

    @classmethod
    def advance(
        cls,
        state: TrackerState,
        record: SessionRecord,
        threshold: int | None = None,
    ) -> Tuple[TrackerState, DerivedRecord]:
        """Apply one session to ``state`` and return the new state.

        ``state`` is not modified.
        """
        if threshold is None:
            threshold = cls.PROMOTION_THRESHOLD
        target = state.target
        if target.kind == CARDIO:
            return state, DerivedRecord(
                id=record.id, date=record.date, weight=record.weight, completed=True
            )

        evaluation = SessionEvaluator.evaluate(record.reps_per_set, record.weight, target)
        success = evaluation.completed if record.completed is None else record.completed
        weight = cls._plateau_weight(record, target.kind)

        streak = state.consecutive_successes
        ready = state.ready_to_progress
        if state.sessions == 0 or weight != state.previous_weight:
            streak = 1 if success else 0
            ready = False
        elif success:
            streak += 1
        else:
            streak = 0
            ready = False

        promoted = False
        promotions = state.promotions
        if streak >= threshold:
            if target.kind == BODYWEIGHT:
                target = target.with_reps((target.target_reps or 0) + 1)
                streak = 0
                ready = False
                promoted = True
                promotions += 1
            else:
                ready = True

        new_state = TrackerState(
            target=target,
            consecutive_successes=streak,
            ready_to_progress=ready,
            previous_weight=weight,
            sessions=state.sessions + 1,
            promotions=promotions,
        )
        derived = DerivedRecord(
            id=record.id,
            date=record.date,
            weight=record.weight,
            completed=success,
            volume=evaluation.volume,
            consecutive_successes=streak,
            ready_to_progress=ready,
            promoted=promoted,
        )
        return new_state, derived

    @classmethod
    def suggest(
        cls,
        state: TrackerState,
        last: Optional[DerivedRecord],
        previous_target: ExerciseTarget,
        *,
        weight_increment: float | None = None,
        assist_decrement: float | None = None,
    ) -> Optional[TargetChange]:
        """Return the target change implied by ``state``."""
        kind = state.target.kind
        if kind == BODYWEIGHT:
            if last is not None and last.promoted:
                return TargetChange(
                    field="target_reps",
                    direction="increase",
                    current=previous_target.target_reps,
                    suggested=state.target.target_reps,
                    applied=True,
                )
            return None
        if not state.ready_to_progress or kind not in (WEIGHT, ASSISTED):
            return None
        current = state.previous_weight
        if current is None:
            current = state.target.target_weight or 0.0
        if kind == WEIGHT:
            step = cls.WEIGHT_INCREMENT if weight_increment is None else weight_increment
            return TargetChange(
                field="target_weight",
                direction="increase",
                current=current,
                suggested=round(current + step, 2),
            )
        step = cls.ASSIST_DECREMENT if assist_decrement is None else assist_decrement
        return TargetChange(
            field="target_weight",
            direction="decrease",
            current=current,
            suggested=round(max(0.0, current - step), 2),
        )

    @classmethod
    def replay(
        cls,
        history: Iterable[SessionRecord],
        target: ExerciseTarget,
        *,
        threshold: int | None = None,
        weight_increment: float | None = None,
        assist_decrement: float | None = None,
    ) -> ReplayResult:
        """Derive progression state and PR flags from the full history."""
        records = list(history)
        state = cls.start(target)
        derived: List[DerivedRecord] = []
        target_before_last = target
        for record in records:
            target_before_last = state.target
            state, out = cls.advance(state, record, threshold)
            derived.append(out)

        flags = PersonalRecordCalculator.mark_records(records, target.kind)
        for out, is_pr in zip(derived, flags):
            out.is_pr = is_pr

        last = derived[-1] if derived else None
        suggestion = cls.suggest(
            state,
            last,
            target_before_last,
            weight_increment=weight_increment,
            assist_decrement=assist_decrement,
        )
        return ReplayResult(
            state=ProgressionState(
                consecutive_successes=state.consecutive_successes,
                ready_to_progress=state.ready_to_progress,
                suggested_target_change=suggestion,
            ),
            records=derived,
            personal_record=PersonalRecordCalculator.personal_record(
                records, target.kind
            ),
            final_target=state.target,
            promotions=state.promotions,
        )
