import json
import os
import unittest
from unittest import mock

from judging.scoring_config import (
    CRITERIA,
    DEFAULT_WEIGHTS,
    ScoringConfig,
    ScoringConfigError,
    load_scoring_config_from_env,
    normalize_criterion,
    out_of_range_criteria,
    parse_ranges,
    parse_weights,
)


class ScoringConfigTests(unittest.TestCase):
    def test_default_weights_sum_to_one(self):
        config = ScoringConfig()
        self.assertAlmostEqual(sum(config.weights.values()), 1.0, delta=1e-9)
        self.assertEqual(config.weights, DEFAULT_WEIGHTS)

    def test_weights_not_summing_to_one_are_rejected(self):
        weights = dict(DEFAULT_WEIGHTS, impact=0.25)
        with self.assertRaises(ScoringConfigError):
            ScoringConfig(weights=weights)

    def test_missing_and_negative_weights_are_rejected(self):
        missing = {k: v for k, v in DEFAULT_WEIGHTS.items() if k != "impact"}
        with self.assertRaises(ScoringConfigError):
            ScoringConfig(weights=missing)

        negative = dict(DEFAULT_WEIGHTS, impact=-0.2, functionality=0.7)
        with self.assertRaises(ScoringConfigError):
            ScoringConfig(weights=negative)

    def test_range_must_have_min_below_max(self):
        ranges = {c: (0.0, 100.0) for c in CRITERIA}
        ranges["impact"] = (20.0, 20.0)
        with self.assertRaises(ScoringConfigError):
            ScoringConfig(ranges=ranges)

    def test_historical_per_criterion_maxima_are_configurable(self):
        ranges = parse_ranges({
            "projectDesign": [0, 25],
            "functionality": [0, 30],
            "presentation": [0, 15],
            "webDesign": [0, 10],
            "impact": {"min": 0, "max": 20},
        })
        config = ScoringConfig(ranges=ranges)
        self.assertEqual(config.range_for("web_design"), (0.0, 10.0))
        self.assertEqual(config.range_for("impact"), (0.0, 20.0))


class CriterionNameTests(unittest.TestCase):
    def test_accepts_common_spellings(self):
        for raw in ("projectDesign", "project_design", "Project Design", "project-design"):
            self.assertEqual(normalize_criterion(raw), "project_design")
        self.assertEqual(normalize_criterion("webDesign"), "web_design")

    def test_unknown_criterion(self):
        self.assertIsNone(normalize_criterion("creativity"))
        with self.assertRaises(ScoringConfigError):
            parse_weights({"creativity": 1.0})


class EnvironmentConfigTests(unittest.TestCase):
    def test_env_weights_override_defaults(self):
        weights = {"projectDesign": 0.2, "functionality": 0.2, "presentation": 0.2, "webDesign": 0.2, "impact": 0.2}
        with mock.patch.dict(os.environ, {"SCORE_WEIGHTS": json.dumps(weights), "SCORE_RANGES": ""}):
            config = load_scoring_config_from_env()
        self.assertEqual(config.weights["impact"], 0.2)

    def test_invalid_env_weights_fail_at_load(self):
        weights = {"projectDesign": 0.5, "functionality": 0.5, "presentation": 0.5, "webDesign": 0.0, "impact": 0.0}
        with mock.patch.dict(os.environ, {"SCORE_WEIGHTS": json.dumps(weights)}):
            with self.assertRaises(ScoringConfigError):
                load_scoring_config_from_env()

    def test_malformed_env_json(self):
        with mock.patch.dict(os.environ, {"SCORE_WEIGHTS": "{not json"}):
            with self.assertRaises(ScoringConfigError):
                load_scoring_config_from_env()


class RangeCheckTests(unittest.TestCase):
    def test_reports_out_of_range_and_nan(self):
        config = ScoringConfig()
        values = {
            "project_design": 100,
            "functionality": 100.5,
            "presentation": -1,
            "web_design": float("nan"),
            "impact": 0,
        }
        self.assertEqual(
            out_of_range_criteria(values, config),
            ["functionality", "presentation", "web_design"],
        )


if __name__ == "__main__":
    unittest.main()
