from __future__ import annotations

from typing import List, Optional

from pydantic import BaseModel, Field

WEIGHT = "weight"
BODYWEIGHT = "bodyweight"
ASSISTED = "assisted"
CARDIO = "cardio"

EXERCISE_KINDS = (WEIGHT, BODYWEIGHT, ASSISTED, CARDIO)
LOADED_KINDS = (WEIGHT, ASSISTED)

DAYS_OF_WEEK = (
    "Monday",
    "Tuesday",
    "Wednesday",
    "Thursday",
    "Friday",
    "Saturday",
    "Sunday",
)


class IncompleteSessionError(ValueError):
    """Raised when a submitted session cannot be evaluated."""


class ExerciseTarget(BaseModel):
    """Prescription an exercise is currently trained at."""

    kind: str
    target_sets: Optional[int] = None
    target_reps: Optional[int] = None
    target_weight: Optional[float] = None

    def with_reps(self, reps: int) -> "ExerciseTarget":
        return self.model_copy(update={"target_reps": reps})


class SessionRecord(BaseModel):
    """One completed workout instance for an exercise.

    ``completed`` is filled in when the session is logged; records coming
    from outside (legacy imports) may leave it unset and are evaluated on
    replay instead.
    """

    date: str
    weight: Optional[float] = None
    reps_per_set: List[int] = Field(default_factory=list)
    kind: str = WEIGHT
    completed: Optional[bool] = None
    id: Optional[int] = None


class SessionEvaluation(BaseModel):
    completed: bool
    volume: float


class TargetChange(BaseModel):
    """Suggested (or, for bodyweight, applied) change to an exercise target."""

    field: str
    direction: str
    current: Optional[float] = None
    suggested: Optional[float] = None
    applied: bool = False


class ProgressionState(BaseModel):
    consecutive_successes: int = 0
    ready_to_progress: bool = False
    suggested_target_change: Optional[TargetChange] = None


class PersonalRecord(BaseModel):
    weight: float
    date: str


class DerivedRecord(BaseModel):
    """Per-record output of a full history replay."""

    date: str
    weight: Optional[float] = None
    completed: bool = False
    volume: Optional[float] = None
    is_pr: bool = False
    consecutive_successes: int = 0
    ready_to_progress: bool = False
    promoted: bool = False
    id: Optional[int] = None


class ReplayResult(BaseModel):
    state: ProgressionState
    records: List[DerivedRecord] = Field(default_factory=list)
    personal_record: Optional[PersonalRecord] = None
    final_target: ExerciseTarget
    promotions: int = 0
