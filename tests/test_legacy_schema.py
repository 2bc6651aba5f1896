import datetime
import os
import sys
import unittest

sys.path.append(os.path.dirname(os.path.dirname(__file__)))
from algorithms import legacy_schema
from algorithms.categories import infer_category


class LegacySchemaTest(unittest.TestCase):
    def test_prescription_string(self) -> None:
        self.assertEqual(
            legacy_schema.normalize("Leg Press: 3x15@60"),
            {
                "kind": "weight",
                "name": "Leg Press",
                "target_sets": 3,
                "target_reps": 15,
                "target_weight": 60,
            },
        )

    def test_prescription_variants(self) -> None:
        record = legacy_schema.normalize("Chest Press : 4 × 8 @ 42.5kg")
        self.assertEqual(record["name"], "Chest Press")
        self.assertEqual(record["target_sets"], 4)
        self.assertEqual(record["target_weight"], 42.5)

    def test_done_flag_uses_run_date(self) -> None:
        self.assertEqual(
            legacy_schema.normalize({"text": "Jog", "done": True}, datetime.date(2024, 1, 1)),
            {"kind": "cardio", "text": "Jog", "last_done": "2024-01-01"},
        )
        self.assertEqual(
            legacy_schema.normalize({"text": "Jog", "done": False}, "2024-01-01"),
            {"kind": "cardio", "text": "Jog"},
        )

    def test_last_done_is_kept(self) -> None:
        record = legacy_schema.normalize({"text": "Row 20 min", "lastDone": "2023-12-24"})
        self.assertEqual(record, {"kind": "cardio", "text": "Row 20 min", "last_done": "2023-12-24"})
        record = legacy_schema.normalize({"text": "Row 20 min", "lastDone": None})
        self.assertNotIn("last_done", record)

    def test_legacy_exercise_object(self) -> None:
        raw = {
            "text": "Pull Ups",
            "type": "bodyweight",
            "name": "Pull Ups",
            "target": {"sets": 3, "reps": 8},
            "lastDone": "2024-02-01",
            "consecutiveSuccesses": 2,
            "readyToProgress": False,
            "history": [
                {"date": "2024-02-01", "weight": 0, "sets": [8, 8, 7], "completed": False},
            ],
        }
        record = legacy_schema.normalize(raw)
        self.assertEqual(record["kind"], "bodyweight")
        self.assertEqual(record["target_sets"], 3)
        self.assertEqual(record["target_reps"], 8)
        self.assertNotIn("target_weight", record)
        self.assertNotIn("consecutiveSuccesses", record)
        self.assertEqual(
            record["history"], [{"date": "2024-02-01", "weight": 0.0, "reps_per_set": [8, 8, 7]}]
        )

    def test_legacy_weight_uses_current_weight(self) -> None:
        raw = {
            "text": "Leg Press: 3x15@60",
            "type": "weight",
            "name": "Leg Press",
            "target": {"sets": 3, "reps": 15},
            "currentWeight": 65,
        }
        self.assertEqual(legacy_schema.normalize(raw)["target_weight"], 65)

    def test_unparseable_text_becomes_cardio(self) -> None:
        self.assertEqual(
            legacy_schema.normalize("Stretch for a while"),
            {"kind": "cardio", "text": "Stretch for a while"},
        )

    def test_unknown_shapes_fail_closed(self) -> None:
        self.assertEqual(legacy_schema.normalize(42), {"kind": "cardio", "text": "42"})
        self.assertEqual(legacy_schema.normalize(None), {"kind": "cardio", "text": ""})
        self.assertEqual(legacy_schema.normalize({"foo": 1})["kind"], "cardio")

    def test_structured_object_without_target_falls_back(self) -> None:
        record = legacy_schema.normalize({"text": "Mystery", "type": "weight"})
        self.assertEqual(record, {"kind": "cardio", "text": "Mystery"})

    def test_partial_record_parses_prescription(self) -> None:
        self.assertEqual(
            legacy_schema.normalize({"kind": "weight", "text": "Leg Press: 3x15@60"}),
            {
                "kind": "weight",
                "name": "Leg Press",
                "target_sets": 3,
                "target_reps": 15,
                "target_weight": 60,
            },
        )

    def test_kindless_record_infers_kind(self) -> None:
        self.assertEqual(
            legacy_schema.normalize({"name": "Squat", "target_sets": 3, "target_reps": 5, "target_weight": 100}),
            {"kind": "weight", "name": "Squat", "target_sets": 3, "target_reps": 5, "target_weight": 100},
        )
        self.assertEqual(
            legacy_schema.normalize({"name": "Dips", "target_sets": 3, "target_reps": 12}),
            {"kind": "bodyweight", "name": "Dips", "target_sets": 3, "target_reps": 12},
        )

    def test_partial_record_without_targets_falls_back(self) -> None:
        self.assertEqual(
            legacy_schema.normalize({"kind": "weight", "name": "Squat"}),
            {"kind": "cardio", "text": "Squat"},
        )
        record = legacy_schema.normalize({"kind": "bodyweight", "name": "Dips", "target_sets": 0, "target_reps": 10})
        self.assertEqual(record, {"kind": "cardio", "text": "Dips"})
        self.assertEqual(legacy_schema.normalize({"target_weight": 5}), {"kind": "cardio", "text": ""})

    def test_invalid_canonical_is_not_passed_through(self) -> None:
        record = legacy_schema.normalize(
            {"kind": "assisted", "name": "Pull Up", "target_sets": 3, "target_reps": 8, "target_weight": -5}
        )
        self.assertEqual(record, {"kind": "assisted", "name": "Pull Up", "target_sets": 3, "target_reps": 8})

    def test_idempotent(self) -> None:
        samples = [
            "Leg Press: 3x15@60",
            {"text": "Jog", "done": True},
            {"text": "Swim", "lastDone": "2024-01-01"},
            {"text": "Dips", "type": "bodyweight", "target": {"sets": 3, "reps": 12}},
            {"kind": "weight", "text": "Leg Press: 3x15@60"},
            {"name": "Squat", "target_sets": 3, "target_reps": 5, "target_weight": 100},
            {"kind": "weight", "name": "Squat"},
            {"foo": 1},
            "just text",
            7,
        ]
        for raw in samples:
            once = legacy_schema.normalize(raw, "2024-01-01")
            self.assertEqual(legacy_schema.normalize(once, "2024-06-01"), once)

    def test_canonical_is_returned_unchanged(self) -> None:
        record = {"kind": "weight", "name": "Squat", "target_sets": 5, "target_reps": 5, "target_weight": 100}
        out = legacy_schema.normalize(record)
        self.assertEqual(out, record)
        self.assertIsNot(out, record)

    def test_canonical_name(self) -> None:
        self.assertEqual(legacy_schema.canonical_name({"kind": "cardio", "text": "Jog"}), "Jog")
        self.assertEqual(legacy_schema.canonical_name({"kind": "weight", "name": "Squat"}), "Squat")
        self.assertTrue(legacy_schema.is_structured({"kind": "weight"}))
        self.assertFalse(legacy_schema.is_structured({"kind": "cardio"}))


class CategoryTest(unittest.TestCase):
    def test_keywords(self) -> None:
        self.assertEqual(infer_category("Leg Press"), "Legs-Push")
        self.assertEqual(infer_category("Romanian Deadlift"), "Legs-Pull")
        self.assertEqual(infer_category("Incline Bench Press"), "Arms-Push")
        self.assertEqual(infer_category("Seated Cable Row"), "Arms-Pull")
        self.assertEqual(infer_category("Ab Machine"), "Core-Push")
        self.assertEqual(infer_category("Plank"), "Core-Pull")

    def test_word_boundaries_and_punctuation(self) -> None:
        self.assertEqual(infer_category("Pull-Up"), None)
        self.assertEqual(infer_category("Pull Up (wide)"), "Arms-Pull")
        self.assertIsNone(infer_category("Rowing machine 20 min"))
        self.assertIsNone(infer_category("Jog"))

    def test_first_group_wins(self) -> None:
        self.assertEqual(infer_category("Leg Curl"), "Legs-Pull")
