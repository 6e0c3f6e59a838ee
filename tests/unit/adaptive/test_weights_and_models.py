"""
Unit tests for the weight vector helpers and the personalization data model

Tests cover:
- Default weights and safe ranges
- Clamping and validation
- Retention prediction
- Serialization round-trips
"""

import json
import math

import pytest

from personalizer.adaptive.fsrs.errors import InvalidWeightRange
from personalizer.adaptive.fsrs.models import (
    BaselineMetrics,
    PerformanceMetrics,
    PersonalizationState,
    ReviewEvent,
    Stage,
    WeightCheckpoint,
)
from personalizer.adaptive.fsrs.weights import (
    CRITICAL_INDICES,
    DEFAULT_WEIGHTS,
    PARAMETER_COUNT,
    PARAMETER_RANGES,
    clamp_weight,
    clamp_weights,
    coerce_weights,
    default_weights,
    in_range,
    predict_retention,
    validate_weights,
)
from tests.fixtures import create_review, create_performance


class TestWeightVector:
    """Tests for defaults, ranges and clamping"""

    def test_vector_shapes(self):
        assert PARAMETER_COUNT == 21
        assert len(DEFAULT_WEIGHTS) == 21
        assert len(PARAMETER_RANGES) == 21

    def test_defaults_within_ranges(self):
        """Every default lies inside its declared safe range"""
        assert in_range(DEFAULT_WEIGHTS)

    def test_ranges_are_ordered(self):
        for low, high in PARAMETER_RANGES:
            assert low < high

    def test_critical_indices(self):
        assert CRITICAL_INDICES == (0, 1, 2, 3, 17, 18, 19, 20)

    def test_default_weights_returns_copy(self):
        w = default_weights()
        w[0] = 99.0
        assert DEFAULT_WEIGHTS[0] == 0.212

    def test_clamp_weight_low_and_high(self):
        assert clamp_weight(-5.0, 0) == 0.1
        assert clamp_weight(50.0, 3) == 15.0
        assert clamp_weight(0.3, 17) == 0.3

    def test_clamp_weights_brings_everything_in_range(self):
        wild = [1000.0 if i % 2 else -1000.0 for i in range(PARAMETER_COUNT)]
        clamped = clamp_weights(wild)

        assert in_range(clamped)
        assert all(isinstance(w, float) for w in clamped)

    def test_clamp_weights_leaves_valid_vector_unchanged(self):
        assert clamp_weights(DEFAULT_WEIGHTS) == list(DEFAULT_WEIGHTS)

    def test_validate_rejects_wrong_length(self):
        with pytest.raises(InvalidWeightRange):
            validate_weights([1.0] * 17)

    def test_validate_rejects_non_finite(self):
        w = default_weights()
        w[5] = float("nan")
        with pytest.raises(InvalidWeightRange) as exc_info:
            validate_weights(w)
        assert exc_info.value.context["indices"] == [5]

    def test_coerce_falls_back_to_defaults(self):
        assert coerce_weights(None) == list(DEFAULT_WEIGHTS)
        assert coerce_weights([1.0, 2.0]) == list(DEFAULT_WEIGHTS)

    def test_coerce_clamps_stored_vector(self):
        stored = default_weights()
        stored[17] = 4.0
        assert coerce_weights(stored)[17] == 1.0


class TestPredictRetention:
    """Tests for the retention predictor"""

    def test_no_elapsed_time_is_full_retention(self):
        # exp(0) * 1.05425 clips to 1
        assert predict_retention(0.0, 5.0, DEFAULT_WEIGHTS) == 1.0

    def test_elapsed_equals_stability(self):
        expected = math.exp(-1) * (1 + 0.1 * DEFAULT_WEIGHTS[17])
        assert math.isclose(predict_retention(4.0, 4.0, DEFAULT_WEIGHTS), expected, rel_tol=1e-12)

    def test_missing_stability_treated_as_one(self):
        assert predict_retention(2.0, 0.0, DEFAULT_WEIGHTS) == predict_retention(2.0, 1.0, DEFAULT_WEIGHTS)

    def test_only_short_term_factor_matters(self):
        w = default_weights()
        w[0] = 1.9
        w[8] = 2.5
        assert predict_retention(3.0, 2.0, w) == predict_retention(3.0, 2.0, DEFAULT_WEIGHTS)

        w[17] = 0.0
        assert math.isclose(predict_retention(3.0, 2.0, w), math.exp(-1.5), rel_tol=1e-12)

    def test_prediction_is_bounded(self):
        for elapsed in (0.0, 0.5, 10.0, 1000.0):
            p = predict_retention(elapsed, 1.0, DEFAULT_WEIGHTS)
            assert 0.0 <= p <= 1.0


class TestReviewEvent:
    """Tests for ReviewEvent"""

    @pytest.mark.parametrize("rating,recalled", [(1, False), (2, False), (3, True), (4, True)])
    def test_recalled_threshold(self, rating, recalled):
        assert create_review(rating=rating).recalled is recalled

    @pytest.mark.parametrize("rating", [0, 5, -1])
    def test_invalid_rating_rejected(self, rating):
        with pytest.raises(ValueError):
            create_review(rating=rating)

    def test_event_is_immutable(self):
        event = create_review()
        with pytest.raises(AttributeError):
            event.rating = 4

    def test_from_review_log(self):
        event = ReviewEvent.from_dict({"rating": 2, "elapsed_days": 3, "stability": None, "timestamp": 10})

        assert event.rating == 2
        assert event.elapsed_days == 3.0
        assert event.stability == 0.0
        assert event.scheduled_days == 0.0
        assert event.response_time_ms is None


class TestSerialization:
    """Round-trips through JSON-safe dicts"""

    def test_initial_state_round_trip(self):
        state = PersonalizationState(last_update=123.0)
        restored = PersonalizationState.from_dict(json.loads(json.dumps(state.to_dict())))
        assert restored == state

    def test_full_state_round_trip(self):
        phase1 = default_weights()
        phase1[17] = 0.75
        state = PersonalizationState(
            stage=Stage.OPTIMIZED,
            baseline=BaselineMetrics(accuracy=0.62, avg_interval=4.5, retention_rate=0.5, timestamp=1.5),
            phase1_weights=phase1,
            phase2_weights=default_weights(),
            total_reviews=215,
            last_update=1_700_000_123.25,
            last_checkpoint_review_count=200,
            backtrack_count=2,
            checkpoints=[
                WeightCheckpoint(
                    weights=phase1,
                    performance=create_performance(0.8, 0.7, review_count=200),
                    review_count=200,
                    timestamp=1_700_000_100.0,
                ),
            ],
        )

        restored = PersonalizationState.from_dict(json.loads(json.dumps(state.to_dict())))

        assert restored == state
        assert restored.stage is Stage.OPTIMIZED

    def test_weight_vector_round_trip(self):
        w = default_weights()
        assert json.loads(json.dumps(w)) == w

    def test_checkpoint_round_trip(self):
        checkpoint = WeightCheckpoint(
            weights=default_weights(),
            performance=create_performance(0.8, 0.7, review_count=150),
            review_count=150,
            timestamp=42.0,
        )
        assert WeightCheckpoint.from_dict(json.loads(json.dumps(checkpoint.to_dict()))) == checkpoint

    def test_stage_order_is_monotonic(self):
        stages = [Stage.BASELINE, Stage.PHASE1, Stage.PHASE2, Stage.OPTIMIZED]
        assert [s.order for s in stages] == [0, 1, 2, 3]


class TestPerformanceMetrics:
    def test_stability_score_weights(self):
        perf = create_performance(accuracy=0.8, retention=0.6)
        assert perf.stability_score() == pytest.approx(0.7 * 0.8 + 0.3 * 0.6)

    def test_optional_fields_round_trip(self):
        perf = PerformanceMetrics(
            prediction_accuracy=0.5,
            retention_rate=0.4,
            review_count=60,
            timestamp=0.0,
            avg_response_time=4200.0,
            brier_score=0.18,
            sample_size=50,
        )
        assert PerformanceMetrics.from_dict(perf.to_dict()) == perf
