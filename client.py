import requests
from typing import Iterable, Optional


def _params(**params) -> dict:
    return {k: v for k, v in params.items() if v is not None}


class TrainClient:
    """Simple REST client for the train API."""

    def __init__(
        self,
        base_url: str = "http://localhost:8000",
        session=None,
        token: Optional[str] = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.session = session or requests.Session()
        if token:
            self.session.headers.update({"X-API-Token": token})

    def _request(self, method: str, path: str, **params):
        resp = getattr(self.session, method)(
            f"{self.base_url}{path}", params=_params(**params)
        )
        resp.raise_for_status()
        return resp.json()

    def list_exercises(
        self,
        search: Optional[str] = None,
        kind: Optional[str] = None,
        category: Optional[str] = None,
    ):
        return self._request(
            "get", "/exercises", search=search, type=kind, category=category
        )

    def add_exercise(
        self,
        name: str,
        kind: str,
        target_sets: Optional[int] = None,
        target_reps: Optional[int] = None,
        target_weight: Optional[float] = None,
        category: Optional[str] = None,
    ) -> int:
        return self._request(
            "post",
            "/exercises",
            name=name,
            type=kind,
            target_sets=target_sets,
            target_reps=target_reps,
            target_weight=target_weight,
            category=category,
        )["id"]

    def get_exercise(self, exercise_id: int) -> dict:
        return self._request("get", f"/exercises/{exercise_id}")

    def delete_exercise(self, exercise_id: int) -> None:
        self._request("delete", f"/exercises/{exercise_id}")

    def get_routine(self, day: str) -> dict:
        return self._request("get", f"/routines/{day}")

    def add_to_routine(self, exercise_id: int, day: str, notes: Optional[str] = None) -> int:
        return self._request(
            "post", "/routines", exercise_id=exercise_id, day=day, notes=notes
        )["id"]

    def reorder_routine(self, day: str, order: Iterable[int]) -> None:
        self._request(
            "post", "/routines/reorder", day=day, order=",".join(str(i) for i in order)
        )

    def set_day_title(self, day: str, title: str) -> None:
        self._request("put", f"/days/{day}", title=title)

    def log_session(
        self,
        exercise_id: int,
        reps: Optional[Iterable] = None,
        weight: Optional[float] = None,
        date: Optional[str] = None,
        notes: Optional[str] = None,
    ) -> dict:
        """Log a session; ``None`` entries in ``reps`` are sent as blank sets."""
        rep_text = None
        if reps is not None:
            rep_text = ",".join("" if r is None else str(r) for r in reps)
        return self._request(
            "post",
            "/history",
            exercise_id=exercise_id,
            reps=rep_text,
            weight=weight,
            date=date,
            notes=notes,
        )

    def history(self, exercise_id: int, limit: Optional[int] = None):
        return self._request("get", f"/history/{exercise_id}", limit=limit)

    def delete_session(self, history_id: int) -> None:
        self._request("delete", f"/history/entries/{history_id}")

    def progression(self, exercise_id: int) -> dict:
        return self._request("get", f"/progression/{exercise_id}")

    def personal_record(self, exercise_id: int) -> Optional[dict]:
        return self._request("get", f"/history/{exercise_id}/pr")

    def list_metrics(self):
        return self._request("get", "/metrics")

    def add_metric_entry(
        self, metric_id: int, value: float, date: Optional[str] = None
    ) -> int:
        return self._request(
            "post", "/metrics/entries", metric_id=metric_id, value=value, date=date
        )["id"]

    def dashboard(self, days: Optional[int] = None):
        return self._request("get", "/metrics/dashboard", days=days)
