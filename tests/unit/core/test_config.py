"""
Unit tests for settings and logging setup
"""

import logging

import pytest
from pydantic import ValidationError

from personalizer.core.config import PersonalizationSettings
from personalizer.core.logging import InterceptHandler, setup_logging


class TestPersonalizationSettings:
    """Tests for defaults, environment overrides and validation"""

    def test_defaults(self, settings):
        assert settings.learning_rate == 0.05
        assert settings.min_data_points == 50
        assert settings.epsilon == 0.01
        assert settings.max_checkpoints == 5
        assert settings.performance_threshold == 0.1
        assert (settings.baseline_milestone, settings.phase1_milestone, settings.phase2_milestone) == (50, 100, 200)

    def test_phase2_learning_rate(self, settings):
        assert settings.phase2_learning_rate == pytest.approx(0.04)

    def test_environment_override(self, monkeypatch):
        monkeypatch.setenv("PERSONALIZER_LEARNING_RATE", "0.2")
        monkeypatch.setenv("PERSONALIZER_MAX_CHECKPOINTS", "8")

        settings = PersonalizationSettings(_env_file=None)

        assert settings.learning_rate == 0.2
        assert settings.max_checkpoints == 8

    def test_milestones_must_increase(self):
        with pytest.raises(ValidationError):
            PersonalizationSettings(_env_file=None, baseline_milestone=100, phase1_milestone=100)

    @pytest.mark.parametrize("field,value", [
        ("learning_rate", 0.0),
        ("epsilon", -0.01),
        ("max_checkpoints", 0),
        ("stability_accuracy_weight", 1.5),
    ])
    def test_invalid_values_rejected(self, field, value):
        with pytest.raises(ValidationError):
            PersonalizationSettings(_env_file=None, **{field: value})


class TestLogging:
    def test_setup_routes_stdlib_through_loguru(self, settings):
        setup_logging(settings)

        assert len(logging.root.handlers) == 1
        assert isinstance(logging.root.handlers[0], InterceptHandler)
        assert logging.getLogger("personalizer.adaptive").propagate is True

    def test_intercepted_records_reach_loguru(self, settings):
        from loguru import logger

        setup_logging(settings)
        captured = []
        sink_id = logger.add(captured.append, format="{message}")
        try:
            logging.getLogger("personalizer.test").warning("checkpoint evicted")
        finally:
            logger.remove(sink_id)

        assert any("checkpoint evicted" in str(m) for m in captured)
