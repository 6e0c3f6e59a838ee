"""
Adaptive Learning Engine
Per-user personalization of the FSRS-6 memory model
"""

from .fsrs import (
    GradientWeightOptimizer,
    CheckpointLedger,
    StageController,
    RobustController,
    PersonalizationContext,
)

__all__ = [
    "GradientWeightOptimizer",
    "CheckpointLedger",
    "StageController",
    "RobustController",
    "PersonalizationContext",
]
