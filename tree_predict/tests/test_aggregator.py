"""
Tests for confidence aggregation.
"""
from __future__ import annotations

import pytest

from tree_predict.aggregator import aggregate_candidates, confidence_level, noisy_or
from tree_predict.model import ConfidenceLevel, PredictedType, PredictionCandidate


class TestNoisyOr:
    """Tests for Noisy-OR combination."""

    def test_two_signals(self, make_candidate):
        """70 and 50 combine to 1 - 0.3 * 0.5 = 85."""
        merged = aggregate_candidates([
            make_candidate("r1", "A", "B", 70),
            make_candidate("r2", "A", "B", 50),
        ])

        assert len(merged) == 1
        assert merged[0].confidence == 85.0
        assert confidence_level(merged[0].confidence) == ConfidenceLevel.HIGH

    def test_union_scenario(self, make_candidate):
        """missing_union at 60 and age_family at 40 combine to 76, Medium."""
        merged = aggregate_candidates([
            make_candidate("missing_union", "X", "Y", 60, PredictedType.UNION, "co-parents"),
            make_candidate("age_family", "X", "Y", 40, PredictedType.UNION, "close in age"),
        ])

        assert merged[0].confidence == 76.0
        assert confidence_level(merged[0].confidence) == ConfidenceLevel.MEDIUM
        assert merged[0].rule_id == "missing_union"
        assert merged[0].explanation.startswith("co-parents")
        assert "missing_union" in merged[0].explanation
        assert "age_family" in merged[0].explanation

    def test_capped_at_99(self, make_candidate):
        merged = aggregate_candidates([
            make_candidate("r1", "A", "B", 95),
            make_candidate("r2", "A", "B", 95),
            make_candidate("r3", "A", "B", 95),
        ])

        assert merged[0].confidence == 99.0

    @pytest.mark.parametrize("confidences", [
        [10, 20], [55, 45], [80, 80, 1], [0, 33.33], [99, 50], [100, 0],
    ])
    def test_monotonic_and_bounded(self, make_candidate, confidences):
        """Combined confidence is at least the best member and at most 99."""
        merged = aggregate_candidates([
            make_candidate(f"r{i}", "A", "B", c) for i, c in enumerate(confidences)
        ])

        assert len(merged) == 1
        assert merged[0].confidence >= min(max(confidences), 99)
        assert merged[0].confidence <= 99

    def test_noisy_or_empty(self):
        assert noisy_or([]) == 0.0


class TestAggregateCandidates:
    """Tests for grouping and ordering."""

    def test_single_candidate_passes_through(self, make_candidate):
        c = make_candidate("spouse_child_gap", "A", "B", 90, explanation="exact text")

        merged = aggregate_candidates([c])

        assert merged == [c]
        assert merged[0].explanation == "exact text"
        assert merged[0].confidence == 90

    def test_direction_matters(self, make_candidate):
        """A -> B and B -> A are different relationships."""
        merged = aggregate_candidates([
            make_candidate("r1", "A", "B", 50),
            make_candidate("r2", "B", "A", 50),
        ])

        assert len(merged) == 2
        assert all(c.confidence == 50 for c in merged)

    def test_type_matters(self, make_candidate):
        merged = aggregate_candidates([
            make_candidate("r1", "A", "B", 50, PredictedType.PARENT_CHILD),
            make_candidate("r2", "A", "B", 50, PredictedType.UNION),
        ])

        assert len(merged) == 2

    def test_primary_is_highest_confidence(self, make_candidate):
        merged = aggregate_candidates([
            make_candidate("weak", "A", "B", 30, explanation="weak signal"),
            make_candidate("strong", "A", "B", 80, explanation="strong signal"),
        ])

        assert merged[0].rule_id == "strong"
        assert merged[0].explanation == "strong signal (also matched by: strong, weak)"

    def test_rule_ids_deduplicated(self, make_candidate):
        merged = aggregate_candidates([
            make_candidate("r1", "A", "B", 50),
            make_candidate("r1", "A", "B", 40),
            make_candidate("r2", "A", "B", 30),
        ])

        assert merged[0].explanation.endswith("(also matched by: r1, r2)")

    def test_sorted_descending(self, make_candidate):
        merged = aggregate_candidates([
            make_candidate("r1", "A", "B", 40),
            make_candidate("r1", "C", "D", 90),
            make_candidate("r1", "E", "F", 65),
        ])

        assert [c.confidence for c in merged] == [90, 65, 40]

    def test_empty(self):
        assert aggregate_candidates([]) == []


class TestConfidenceLevel:
    """Tests for confidence bucketing."""

    @pytest.mark.parametrize("confidence,level", [
        (100, ConfidenceLevel.HIGH),
        (85.00, ConfidenceLevel.HIGH),
        (84.99, ConfidenceLevel.MEDIUM),
        (60.00, ConfidenceLevel.MEDIUM),
        (59.99, ConfidenceLevel.LOW),
        (0, ConfidenceLevel.LOW),
    ])
    def test_boundaries(self, confidence, level):
        assert confidence_level(confidence) == level


class TestPredictionCandidate:
    """Tests for candidate validation."""

    @pytest.mark.parametrize("confidence", [-1, 100.01])
    def test_rejects_out_of_range(self, confidence):
        with pytest.raises(ValueError):
            PredictionCandidate("r", PredictedType.UNION, "A", "B", confidence, "x")

    def test_accepts_wire_type(self):
        c = PredictionCandidate("r", "parent_child", "A", "B", 50, "x")

        assert c.predicted_type == PredictedType.PARENT_CHILD
