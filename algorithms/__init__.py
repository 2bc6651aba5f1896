from .session_evaluator import SessionEvaluator
from .personal_records import PersonalRecordCalculator
from .progression_tracker import ProgressionTracker, TrackerState
from .categories import infer_category
from . import legacy_schema

__all__ = [
    "SessionEvaluator",
    "PersonalRecordCalculator",
    "ProgressionTracker",
    "TrackerState",
    "infer_category",
    "legacy_schema",
]
