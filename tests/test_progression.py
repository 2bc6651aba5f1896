import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms.progression_tracker import ProgressionTracker
from models import ExerciseTarget, SessionRecord


def session(date, weight, reps, kind="weight"):
    return SessionRecord(date=date, weight=weight, reps_per_set=reps, kind=kind)


class ProgressionTrackerTest(unittest.TestCase):
    def setUp(self) -> None:
        self.leg_press = ExerciseTarget(
            kind="weight", target_sets=3, target_reps=15, target_weight=60
        )

    def test_leg_press_scenario(self) -> None:
        history = [
            session("2024-01-01", 60, [15, 15, 15]),
            session("2024-01-03", 60, [15, 16, 15]),
            session("2024-01-05", 60, [14, 15, 15]),
        ]
        result = ProgressionTracker.replay(history, self.leg_press)
        self.assertEqual([r.completed for r in result.records], [True, True, False])
        self.assertEqual([r.consecutive_successes for r in result.records], [1, 2, 0])
        self.assertEqual([r.is_pr for r in result.records], [True, False, False])
        self.assertFalse(result.state.ready_to_progress)
        self.assertEqual(result.state.consecutive_successes, 0)
        self.assertEqual(result.personal_record.weight, 60)
        self.assertEqual(result.personal_record.date, "2024-01-01")
        self.assertIsNone(result.state.suggested_target_change)

    def test_ready_after_three_successes(self) -> None:
        history = [session(f"2024-01-0{i}", 60, [15, 15, 15]) for i in range(1, 4)]
        result = ProgressionTracker.replay(history, self.leg_press)
        self.assertEqual(result.state.consecutive_successes, 3)
        self.assertTrue(result.state.ready_to_progress)
        change = result.state.suggested_target_change
        self.assertEqual(change.field, "target_weight")
        self.assertEqual(change.direction, "increase")
        self.assertEqual(change.current, 60)
        self.assertEqual(change.suggested, 62.5)
        self.assertFalse(change.applied)

    def test_weight_change_resets_streak(self) -> None:
        history = [session(f"2024-01-0{i}", 60, [15, 15, 15]) for i in range(1, 4)]
        history.append(session("2024-01-04", 62.5, [15, 15, 15]))
        result = ProgressionTracker.replay(history, self.leg_press)
        self.assertEqual(result.state.consecutive_successes, 1)
        self.assertFalse(result.state.ready_to_progress)

        history[-1] = session("2024-01-04", 62.5, [12, 15, 15])
        result = ProgressionTracker.replay(history, self.leg_press)
        self.assertEqual(result.state.consecutive_successes, 0)
        self.assertFalse(result.state.ready_to_progress)

    def test_failure_clears_readiness(self) -> None:
        history = [session(f"2024-01-0{i}", 60, [15, 15, 15]) for i in range(1, 4)]
        history.append(session("2024-01-04", 60, [15, 15, 10]))
        result = ProgressionTracker.replay(history, self.leg_press)
        self.assertEqual(result.state.consecutive_successes, 0)
        self.assertFalse(result.state.ready_to_progress)

    def test_assisted_suggests_less_assistance(self) -> None:
        target = ExerciseTarget(kind="assisted", target_sets=3, target_reps=8, target_weight=20)
        history = [session(f"2024-02-0{i}", 20, [8, 8, 8], "assisted") for i in range(1, 4)]
        result = ProgressionTracker.replay(history, target, assist_decrement=5)
        change = result.state.suggested_target_change
        self.assertEqual(change.direction, "decrease")
        self.assertEqual(change.suggested, 15)

    def test_assisted_suggestion_never_negative(self) -> None:
        target = ExerciseTarget(kind="assisted", target_sets=1, target_reps=5, target_weight=2)
        history = [session(f"2024-02-0{i}", 2, [5], "assisted") for i in range(1, 4)]
        result = ProgressionTracker.replay(history, target)
        self.assertEqual(result.state.suggested_target_change.suggested, 0)

    def test_bodyweight_promotes_once(self) -> None:
        target = ExerciseTarget(kind="bodyweight", target_sets=3, target_reps=10)
        history = [
            session(f"2024-03-0{i}", None, [10, 10, 10], "bodyweight") for i in range(1, 5)
        ]
        result = ProgressionTracker.replay(history[:3], target)
        self.assertEqual(result.promotions, 1)
        self.assertEqual(result.final_target.target_reps, 11)
        self.assertEqual(result.state.consecutive_successes, 0)
        self.assertFalse(result.state.ready_to_progress)
        change = result.state.suggested_target_change
        self.assertEqual(change.field, "target_reps")
        self.assertTrue(change.applied)
        self.assertEqual((change.current, change.suggested), (10, 11))

        result = ProgressionTracker.replay(history, target)
        self.assertEqual(result.promotions, 1)
        self.assertEqual([r.promoted for r in result.records], [False, False, True, False])
        # the fourth session is measured against the promoted target
        self.assertFalse(result.records[3].completed)
        self.assertIsNone(result.state.suggested_target_change)

    def test_stored_completion_wins(self) -> None:
        record = SessionRecord(
            date="2024-01-01", weight=60, reps_per_set=[15, 15, 15], completed=False
        )
        result = ProgressionTracker.replay([record], self.leg_press)
        self.assertFalse(result.records[0].completed)
        self.assertEqual(result.state.consecutive_successes, 0)

    def test_threshold_is_configurable(self) -> None:
        history = [session(f"2024-01-0{i}", 60, [15, 15, 15]) for i in range(1, 3)]
        result = ProgressionTracker.replay(history, self.leg_press, threshold=2)
        self.assertTrue(result.state.ready_to_progress)

    def test_explicit_threshold_is_not_replaced(self) -> None:
        start = ProgressionTracker.start(self.leg_press)
        record = session("2024-01-01", 60, [15, 15, 15])
        state, _ = ProgressionTracker.advance(start, record)
        self.assertFalse(state.ready_to_progress)
        for threshold in (0, 1):
            state, _ = ProgressionTracker.advance(start, record, threshold)
            self.assertTrue(state.ready_to_progress)

    def test_cardio_leaves_state_untouched(self) -> None:
        target = ExerciseTarget(kind="cardio")
        history = [session("2024-01-01", None, [], "cardio")]
        result = ProgressionTracker.replay(history, target)
        self.assertEqual(result.state.consecutive_successes, 0)
        self.assertIsNone(result.personal_record)
        self.assertTrue(result.records[0].completed)

    def test_replay_matches_incremental_advance(self) -> None:
        history = [
            session("2024-01-01", 60, [15, 15, 15]),
            session("2024-01-02", 60, [15, 15, 15]),
            session("2024-01-03", 62.5, [15, 14, 15]),
            session("2024-01-04", 62.5, [15, 15, 15]),
            session("2024-01-05", 62.5, [15, 15, 15]),
            session("2024-01-06", 62.5, [16, 15, 15]),
        ]
        state = ProgressionTracker.start(self.leg_press)
        streaks = []
        for record in history:
            state, derived = ProgressionTracker.advance(state, record)
            streaks.append(derived.consecutive_successes)
            prefix = ProgressionTracker.replay(history[: len(streaks)], self.leg_press)
            self.assertEqual(prefix.state.consecutive_successes, state.consecutive_successes)
            self.assertEqual(prefix.state.ready_to_progress, state.ready_to_progress)
        self.assertEqual(streaks, [1, 2, 0, 1, 2, 3])
        self.assertTrue(state.ready_to_progress)


if __name__ == "__main__":
    unittest.main()
