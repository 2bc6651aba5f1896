from typing import Iterable, List, Optional

from models import ASSISTED, WEIGHT, PersonalRecord, SessionRecord


class PersonalRecordCalculator:
    """Finds record weights in a date-ascending session history.

    Heavier is better for ``weight`` exercises, lighter (less assistance) is
    better for ``assisted`` ones. Other kinds have no weight record.
    """

    @staticmethod
    def _beats(weight: float, best: float, kind: str) -> bool:
        if kind == ASSISTED:
            return weight < best
        return weight > best

    @classmethod
    def mark_records(cls, history: Iterable[SessionRecord], kind: str) -> List[bool]:
        """Return one ``is_pr`` flag per record.

        A record is a PR when it strictly beats every earlier record, so a
        repeated record weight is only flagged the first time.
        """
        records = list(history)
        if kind not in (WEIGHT, ASSISTED):
            return [False] * len(records)
        flags: List[bool] = []
        best: Optional[float] = None
        for record in records:
            if record.weight is None:
                flags.append(False)
                continue
            weight = float(record.weight)
            if best is None or cls._beats(weight, best, kind):
                best = weight
                flags.append(True)
            else:
                flags.append(False)
        return flags

    @classmethod
    def personal_record(
        cls, history: Iterable[SessionRecord], kind: str
    ) -> Optional[PersonalRecord]:
        """Return the extreme weight with the date it was first reached."""
        records = list(history)
        result: Optional[PersonalRecord] = None
        for record, is_pr in zip(records, cls.mark_records(records, kind)):
            if is_pr:
                result = PersonalRecord(weight=float(record.weight), date=record.date)
        return result
