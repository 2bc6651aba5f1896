"""Conversion of historical exercise records into the canonical shape.

Older stores kept exercises as bare strings, as ``{text, done}`` or
``{text, lastDone}`` objects, as per-day objects with their own camelCase
fields, or as snake_case objects with missing or invalid fields.
:func:`decode` maps a raw value onto one of the variant classes
below and :meth:`LegacyRecord.to_canonical` produces the canonical dict.
Decoding never raises; anything unrecognised becomes a cardio entry that
keeps the original text.
"""

from __future__ import annotations

import copy
import datetime
import logging
import re
from typing import Any, Optional

from models import BODYWEIGHT, CARDIO, EXERCISE_KINDS, LOADED_KINDS, WEIGHT

logger = logging.getLogger(__name__)

PRESCRIPTION_PATTERN = re.compile(
    r"^\s*(?P<name>[^:]+?)\s*:\s*(?P<sets>\d+)\s*[xX×]\s*(?P<reps>\d+)"
    r"\s*@\s*(?P<weight>\d+(?:\.\d+)?)\s*(?:kg)?\s*$"
)

SNAKE_CASE_KEYS = ("kind", "name", "target_sets", "target_reps", "target_weight", "last_done")


def _number(text: str) -> int | float:
    value = float(text)
    return int(value) if value.is_integer() and "." not in text else value


def _run_date(run_date: datetime.date | str | None) -> str:
    if run_date is None:
        return datetime.date.today().isoformat()
    if isinstance(run_date, datetime.date):
        return run_date.isoformat()
    return str(run_date)


def _positive_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    try:
        number = int(value)
    except (TypeError, ValueError):
        return None
    return number if number > 0 else None


def _compact(data: dict) -> dict:
    return {k: v for k, v in data.items() if v is not None}


def _weight(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    return value if value >= 0 else None


def _is_canonical(raw: dict) -> bool:
    """Return True when ``raw`` already satisfies the canonical invariants."""
    kind = raw.get("kind")
    if kind not in EXERCISE_KINDS:
        return False
    if kind == CARDIO:
        return isinstance(raw.get("text"), str) and "name" not in raw
    name = raw.get("name")
    if not (isinstance(name, str) and name.strip()) or "text" in raw:
        return False
    for key in ("target_sets", "target_reps"):
        value = raw.get(key)
        if isinstance(value, bool) or not isinstance(value, int) or value <= 0:
            return False
    if kind == BODYWEIGHT:
        return "target_weight" not in raw
    return raw.get("target_weight") is None or _weight(raw["target_weight"]) is not None


def parse_prescription(text: str) -> Optional[dict]:
    """Parse ``"Name: SxR@W"`` into weight-exercise fields."""
    match = PRESCRIPTION_PATTERN.match(text or "")
    if match is None:
        return None
    sets = int(match.group("sets"))
    reps = int(match.group("reps"))
    if sets <= 0 or reps <= 0:
        return None
    return {
        "kind": WEIGHT,
        "name": match.group("name").strip(),
        "target_sets": sets,
        "target_reps": reps,
        "target_weight": _number(match.group("weight")),
    }


def text_to_canonical(text: str) -> dict:
    parsed = parse_prescription(text)
    if parsed is not None:
        return parsed
    return {"kind": CARDIO, "text": text}


class LegacyRecord:
    """Base class of the decoded record variants."""

    def __init__(self, raw: Any) -> None:
        self.raw = raw

    def to_canonical(self, run_date: datetime.date | str | None = None) -> dict:
        raise NotImplementedError


class CanonicalRecord(LegacyRecord):
    def to_canonical(self, run_date=None) -> dict:
        return copy.deepcopy(self.raw)


class TextRecord(LegacyRecord):
    def to_canonical(self, run_date=None) -> dict:
        return text_to_canonical(self.raw)


class DoneFlagRecord(LegacyRecord):
    """``{text, done}``: completion kept as a boolean, without a date."""

    def to_canonical(self, run_date=None) -> dict:
        out = text_to_canonical(str(self.raw.get("text") or ""))
        if self.raw.get("done"):
            out["last_done"] = _run_date(run_date)
        return out


class LastDoneRecord(LegacyRecord):
    def to_canonical(self, run_date=None) -> dict:
        out = text_to_canonical(str(self.raw.get("text") or ""))
        last_done = self.raw.get("lastDone")
        if isinstance(last_done, str) and last_done:
            out["last_done"] = last_done
        return out


class LegacyExerciseRecord(LegacyRecord):
    """Per-day exercise object with ``type``/``target``/``history`` fields.

    Stored streak counters, completion flags and volumes are dropped; they
    are recomputed from history.
    """

    def to_canonical(self, run_date=None) -> dict:
        raw = self.raw
        text = str(raw.get("text") or "")
        parsed = parse_prescription(text) or {}
        kind = raw.get("type")
        if kind not in EXERCISE_KINDS:
            kind = parsed.get("kind", CARDIO)

        last_done = raw.get("lastDone")
        if not (isinstance(last_done, str) and last_done):
            last_done = None
        history = self._history(raw.get("history"))

        if kind != CARDIO:
            target = raw.get("target") if isinstance(raw.get("target"), dict) else {}
            sets = _positive_int(target.get("sets")) or parsed.get("target_sets")
            reps = _positive_int(target.get("reps")) or parsed.get("target_reps")
            name = str(raw.get("name") or parsed.get("name") or text).strip()
            if sets and reps and name:
                weight = None
                if kind in LOADED_KINDS:
                    current = raw.get("currentWeight")
                    if isinstance(current, (int, float)) and not isinstance(current, bool) and current > 0:
                        weight = current
                    else:
                        weight = parsed.get("target_weight")
                return _compact(
                    {
                        "kind": kind,
                        "name": name,
                        "category": raw.get("category") or None,
                        "target_sets": sets,
                        "target_reps": reps,
                        "target_weight": weight,
                        "last_done": last_done,
                        "history": history or None,
                    }
                )
            logger.warning("exercise %r has no usable target, keeping as cardio", text)

        return _compact(
            {
                "kind": CARDIO,
                "text": text or str(raw.get("name") or ""),
                "category": raw.get("category") or None,
                "last_done": last_done,
                "history": history or None,
            }
        )

    @staticmethod
    def _history(entries: Any) -> list:
        if not isinstance(entries, list):
            return []
        out = []
        for entry in entries:
            if not isinstance(entry, dict) or not entry.get("date"):
                continue
            sets = entry.get("sets") or entry.get("reps_per_set") or []
            reps = [int(r) for r in sets if isinstance(r, (int, float)) and not isinstance(r, bool)]
            weight = entry.get("weight")
            out.append(
                _compact(
                    {
                        "date": str(entry["date"]),
                        "weight": float(weight) if isinstance(weight, (int, float)) and not isinstance(weight, bool) else None,
                        "reps_per_set": reps,
                    }
                )
            )
        return out


class PartialRecord(LegacyRecord):
    """Snake_case object that is missing fields or carries invalid ones.

    Targets come from the object itself or from a prescription in ``text``.
    Without a kind, one is inferred: a prescription or a ``target_weight``
    means a weight exercise, anything else bodyweight.
    """

    def _kind(self, parsed: dict) -> str:
        kind = self.raw.get("kind")
        if kind in EXERCISE_KINDS:
            return kind
        if parsed or _weight(self.raw.get("target_weight")) is not None:
            return WEIGHT
        return BODYWEIGHT

    def to_canonical(self, run_date=None) -> dict:
        raw = self.raw
        text = raw.get("text") if isinstance(raw.get("text"), str) else ""
        name = raw.get("name") if isinstance(raw.get("name"), str) else ""
        parsed = parse_prescription(text) or {}
        kind = self._kind(parsed)
        last_done = raw.get("last_done")
        if not (isinstance(last_done, str) and last_done):
            last_done = None
        history = LegacyExerciseRecord._history(raw.get("history"))

        if kind != CARDIO:
            sets = _positive_int(raw.get("target_sets")) or parsed.get("target_sets")
            reps = _positive_int(raw.get("target_reps")) or parsed.get("target_reps")
            name = name.strip() or parsed.get("name") or text.strip()
            if sets and reps and name:
                weight = None
                if kind in LOADED_KINDS:
                    weight = _weight(raw.get("target_weight"))
                    if weight is None:
                        weight = parsed.get("target_weight")
                return _compact(
                    {
                        "kind": kind,
                        "name": name,
                        "category": raw.get("category") or None,
                        "target_sets": sets,
                        "target_reps": reps,
                        "target_weight": weight,
                        "last_done": last_done,
                        "history": history or None,
                    }
                )
            logger.warning("exercise %r has no usable target, keeping as cardio", text or name)

        return _compact(
            {
                "kind": CARDIO,
                "text": text or name,
                "category": raw.get("category") or None,
                "last_done": last_done,
                "history": history or None,
            }
        )


class UnknownRecord(LegacyRecord):
    def to_canonical(self, run_date=None) -> dict:
        if self.raw is None or isinstance(self.raw, (dict, list)):
            text = ""
        else:
            text = str(self.raw)
        logger.warning("unrecognised exercise record %r, keeping as cardio", self.raw)
        return {"kind": CARDIO, "text": text}


def decode(raw: Any) -> LegacyRecord:
    """Classify ``raw`` into one of the known record shapes."""
    if isinstance(raw, str):
        return TextRecord(raw)
    if not isinstance(raw, dict):
        return UnknownRecord(raw)
    if _is_canonical(raw):
        return CanonicalRecord(raw)
    if any(key in raw for key in ("type", "target", "currentWeight")):
        return LegacyExerciseRecord(raw)
    if any(key in raw for key in SNAKE_CASE_KEYS):
        return PartialRecord(raw)
    if "history" in raw:
        return LegacyExerciseRecord(raw)
    if "text" in raw and "done" in raw:
        return DoneFlagRecord(raw)
    if "text" in raw:
        return LastDoneRecord(raw)
    return UnknownRecord(raw)


def normalize(raw: Any, run_date: datetime.date | str | None = None) -> dict:
    """Return the canonical form of ``raw``; canonical input is unchanged."""
    return decode(raw).to_canonical(run_date)


def canonical_name(record: dict) -> str:
    """Name used to identify a canonical record's exercise."""
    return str(record.get("name") or record.get("text") or "")


def is_structured(record: dict) -> bool:
    """Return True for canonical records that carry sets and reps."""
    return record.get("kind") in EXERCISE_KINDS and record.get("kind") != CARDIO
