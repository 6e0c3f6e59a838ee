"""
Unit test configuration and fixtures.

Unit tests validate isolated components without external dependencies.
Every store is in-memory; nothing touches the filesystem unless a test asks
for tmp_path.
"""

import pytest

from personalizer.core.config import PersonalizationSettings
from personalizer.adaptive.fsrs import (
    CheckpointLedger,
    GradientWeightOptimizer,
    PersonalizationContext,
    default_weights,
)


# ============================================================================
# Settings Fixtures
# ============================================================================

@pytest.fixture
def settings():
    """Default settings, isolated from any .env file."""
    return PersonalizationSettings(_env_file=None)


# ============================================================================
# Engine Fixtures
# ============================================================================

@pytest.fixture
def optimizer(settings):
    """Gradient optimizer with default settings."""
    return GradientWeightOptimizer(settings)


@pytest.fixture
def ledger(settings):
    """Empty checkpoint ledger."""
    return CheckpointLedger(settings)


@pytest.fixture
def context(user_id):
    """Per-user context backed by in-memory stores."""
    return PersonalizationContext.in_memory(user_id)


@pytest.fixture
def weights():
    """Fresh copy of the default weight vector."""
    return default_weights()
