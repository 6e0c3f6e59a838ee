"""
Shared test fixtures and factories for personalizer tests.

This module provides reusable test data generators and factories
that can be imported into any test file or conftest.py.
"""

from .reviews import (
    ReviewFactory,
    create_review,
    create_alternating_history,
    create_recalled_history,
    create_random_history,
    create_performance,
)

__all__ = [
    "ReviewFactory",
    "create_review",
    "create_alternating_history",
    "create_recalled_history",
    "create_random_history",
    "create_performance",
]
