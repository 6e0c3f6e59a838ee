"""
FSRS-6 Weight Personalization

Includes:
- GradientWeightOptimizer: Staged finite-difference tuning of the 21 weights
- CheckpointLedger: Regression detection and blended backtracking
- StageController: baseline -> phase1 -> phase2 -> optimized lifecycle
- RobustController: Per-review orchestration of all of the above
- Stores: Weight/state persistence and notification interfaces
"""
from .weights import (
    PARAMETER_COUNT,
    DEFAULT_WEIGHTS,
    PARAMETER_RANGES,
    CRITICAL_INDICES,
    default_weights,
    clamp_weight,
    clamp_weights,
    validate_weights,
    predict_retention,
)

from .models import (
    Stage,
    ReviewEvent,
    BaselineMetrics,
    PerformanceMetrics,
    WeightCheckpoint,
    PersonalizationState,
    OptimizationResult,
    BacktrackProposal,
    StageTransition,
    UpdateReport,
)

from .errors import (
    PersonalizationError,
    InsufficientEvidence,
    OptimizationNoImprovement,
    PersistenceFailure,
    InvalidWeightRange,
)

from .stores import (
    ReviewHistoryProvider,
    WeightStore,
    PersonalizationStateStore,
    NotificationSink,
    InMemoryReviewHistory,
    InMemoryWeightStore,
    InMemoryStateStore,
    JsonFileWeightStore,
    JsonFileStateStore,
    LoggingNotificationSink,
    CollectingNotificationSink,
    PersonalizationContext,
)

from .evaluator import PerformanceEvaluator
from .optimizer import GradientWeightOptimizer
from .checkpoints import CheckpointLedger
from .stages import StageController
from .controller import RobustController

__all__ = [
    # Weights
    "PARAMETER_COUNT",
    "DEFAULT_WEIGHTS",
    "PARAMETER_RANGES",
    "CRITICAL_INDICES",
    "default_weights",
    "clamp_weight",
    "clamp_weights",
    "validate_weights",
    "predict_retention",
    # Data model
    "Stage",
    "ReviewEvent",
    "BaselineMetrics",
    "PerformanceMetrics",
    "WeightCheckpoint",
    "PersonalizationState",
    "OptimizationResult",
    "BacktrackProposal",
    "StageTransition",
    "UpdateReport",
    # Errors
    "PersonalizationError",
    "InsufficientEvidence",
    "OptimizationNoImprovement",
    "PersistenceFailure",
    "InvalidWeightRange",
    # Collaborators
    "ReviewHistoryProvider",
    "WeightStore",
    "PersonalizationStateStore",
    "NotificationSink",
    "InMemoryReviewHistory",
    "InMemoryWeightStore",
    "InMemoryStateStore",
    "JsonFileWeightStore",
    "JsonFileStateStore",
    "LoggingNotificationSink",
    "CollectingNotificationSink",
    "PersonalizationContext",
    # Engine
    "PerformanceEvaluator",
    "GradientWeightOptimizer",
    "CheckpointLedger",
    "StageController",
    "RobustController",
]
