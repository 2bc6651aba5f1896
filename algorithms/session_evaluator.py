from typing import Iterable, List, Optional

from models import (
    BODYWEIGHT,
    CARDIO,
    ExerciseTarget,
    IncompleteSessionError,
    SessionEvaluation,
)


class SessionEvaluator:
    """Validates submitted sets and decides whether a session hit its target."""

    @staticmethod
    def is_blank(value) -> bool:
        """Return True for an unset rep field. ``0`` is a real rep count."""
        if value is None:
            return True
        return isinstance(value, str) and value.strip() == ""

    @classmethod
    def fill_blank_reps(cls, raw_reps: Iterable, target_reps: Optional[int]) -> list:
        """Replace every blank entry with ``target_reps``."""
        if target_reps is None:
            return list(raw_reps)
        return [target_reps if cls.is_blank(r) else r for r in raw_reps]

    @classmethod
    def validate_reps(cls, reps: Iterable, target_sets: Optional[int]) -> List[int]:
        """Return ``reps`` as integers or raise ``IncompleteSessionError``."""
        values = list(reps)
        if target_sets is None or target_sets <= 0:
            raise IncompleteSessionError("exercise has no target sets")
        if len(values) != target_sets:
            raise IncompleteSessionError(
                f"expected {target_sets} sets, got {len(values)}"
            )
        result: List[int] = []
        for pos, value in enumerate(values, start=1):
            if cls.is_blank(value):
                raise IncompleteSessionError(f"set {pos} is blank")
            if isinstance(value, bool):
                raise IncompleteSessionError(f"set {pos} is not a number")
            if isinstance(value, float):
                if not value.is_integer():
                    raise IncompleteSessionError(f"set {pos} is not a whole number")
                value = int(value)
            elif isinstance(value, str):
                try:
                    value = int(value.strip())
                except ValueError:
                    raise IncompleteSessionError(f"set {pos} is not a number")
            elif not isinstance(value, int):
                raise IncompleteSessionError(f"set {pos} is not a number")
            if value < 0:
                raise IncompleteSessionError(f"set {pos} is negative")
            result.append(value)
        return result

    @classmethod
    def prepare_session(
        cls, raw_reps: Iterable, target: ExerciseTarget, fill_blanks: bool = True
    ) -> List[int]:
        """Apply the blank-fill policy and validate a submission."""
        if target.kind == CARDIO:
            raise IncompleteSessionError("cardio sessions carry no sets")
        reps = list(raw_reps)
        if fill_blanks:
            reps = cls.fill_blank_reps(reps, target.target_reps)
        return cls.validate_reps(reps, target.target_sets)

    @staticmethod
    def volume(reps: List[int], weight: Optional[float], kind: str) -> float:
        """Return the training volume of a session."""
        if kind == CARDIO:
            raise ValueError("cardio sessions have no volume")
        total = sum(reps)
        if kind == BODYWEIGHT:
            return float(total)
        return float(total) * float(weight or 0.0)

    @classmethod
    def evaluate(
        cls, reps: List[int], weight: Optional[float], target: ExerciseTarget
    ) -> SessionEvaluation:
        """Evaluate an already validated session against ``target``."""
        if target.kind == CARDIO:
            raise ValueError("cardio sessions are not evaluated")
        target_reps = target.target_reps or 0
        completed = (
            target.target_sets is not None
            and len(reps) == target.target_sets
            and all(r >= target_reps for r in reps)
        )
        return SessionEvaluation(
            completed=completed, volume=cls.volume(reps, weight, target.kind)
        )
