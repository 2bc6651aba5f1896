from __future__ import annotations
import datetime
from typing import Dict, List, Optional

from db import MetricTypeRepository, MetricEntryRepository


class MetricsService:
    """Prepare body metric data for the dashboard charts."""

    def __init__(
        self,
        type_repo: MetricTypeRepository,
        entry_repo: MetricEntryRepository,
    ) -> None:
        self.types = type_repo
        self.entries = entry_repo

    def list_types(self) -> List[Dict]:
        """Return metric types with their most recent entry."""
        result = []
        for metric in self.types.fetch_types():
            latest = self.entries.latest(metric["id"])
            item = dict(metric)
            item["latest"] = (
                {"date": latest["entry_date"], "value": latest["value"]}
                if latest
                else None
            )
            result.append(item)
        return result

    @staticmethod
    def summarize(values: List[float]) -> Dict[str, Optional[float]]:
        if not values:
            return {"latest": None, "change": None, "min": None, "max": None}
        return {
            "latest": values[-1],
            "change": round(values[-1] - values[0], 2),
            "min": min(values),
            "max": max(values),
        }

    def dashboard(self, days: int = 30, today: datetime.date | None = None) -> List[Dict]:
        """Return every metric with its entries of the last ``days`` days."""
        if days <= 0:
            raise ValueError("days must be positive")
        end = today or datetime.date.today()
        start = end - datetime.timedelta(days=days - 1)
        grouped: Dict[int, List[Dict]] = {}
        for metric_id, entry_date, value in self.entries.fetch_since(start.isoformat()):
            if entry_date > end.isoformat():
                continue
            grouped.setdefault(metric_id, []).append({"date": entry_date, "value": value})
        metrics = []
        for metric in self.types.fetch_types():
            points = grouped.get(metric["id"], [])
            metrics.append(
                {
                    "id": metric["id"],
                    "name": metric["name"],
                    "unit": metric["unit"],
                    "color": metric["color"],
                    "entries": points,
                    "summary": self.summarize([p["value"] for p in points]),
                }
            )
        return metrics
