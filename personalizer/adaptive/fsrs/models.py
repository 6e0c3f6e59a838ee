"""
Data model for weight personalization

Every persisted record converts to and from a JSON-safe dict.
"""
from dataclasses import dataclass, field
from typing import List, Dict, Optional, Any
from enum import Enum
import time


class Stage(str, Enum):
    """Personalization lifecycle stages, in evidence order"""
    BASELINE = "baseline"
    PHASE1 = "phase1"
    PHASE2 = "phase2"
    OPTIMIZED = "optimized"

    @property
    def order(self) -> int:
        return _STAGE_ORDER.index(self)


_STAGE_ORDER = [Stage.BASELINE, Stage.PHASE1, Stage.PHASE2, Stage.OPTIMIZED]


def _optional_list(values: Optional[List[float]]) -> Optional[List[float]]:
    return list(values) if values is not None else None


@dataclass(frozen=True)
class ReviewEvent:
    """A single completed review"""
    rating: int  # 1-4
    elapsed_days: float
    scheduled_days: float
    stability: float
    timestamp: float  # epoch seconds
    response_time_ms: Optional[float] = None

    def __post_init__(self):
        if self.rating not in (1, 2, 3, 4):
            raise ValueError(f"rating must be in 1..4, got {self.rating}")

    @property
    def recalled(self) -> bool:
        """HARD counts as a lapse here; only GOOD/EASY are recalls"""
        return self.rating >= 3

    def to_dict(self) -> Dict[str, Any]:
        return {
            "rating": self.rating,
            "elapsed_days": self.elapsed_days,
            "scheduled_days": self.scheduled_days,
            "stability": self.stability,
            "timestamp": self.timestamp,
            "response_time_ms": self.response_time_ms,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "ReviewEvent":
        """Create from a review log dictionary"""
        return cls(
            rating=int(d["rating"]),
            elapsed_days=float(d.get("elapsed_days") or 0.0),
            scheduled_days=float(d.get("scheduled_days") or 0.0),
            stability=float(d.get("stability") or 0.0),
            timestamp=float(d.get("timestamp", 0.0)),
            response_time_ms=d.get("response_time_ms"),
        )


@dataclass
class BaselineMetrics:
    """Reference metrics collected once the first milestone is reached"""
    accuracy: float
    avg_interval: float
    retention_rate: float
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accuracy": self.accuracy,
            "avg_interval": self.avg_interval,
            "retention_rate": self.retention_rate,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "BaselineMetrics":
        return cls(
            accuracy=d["accuracy"],
            avg_interval=d["avg_interval"],
            retention_rate=d["retention_rate"],
            timestamp=d["timestamp"],
        )


@dataclass
class PerformanceMetrics:
    """Prediction quality over a trailing review window"""
    prediction_accuracy: float
    retention_rate: float
    review_count: int
    timestamp: float
    avg_response_time: Optional[float] = None
    brier_score: float = 0.0
    sample_size: int = 0

    def stability_score(self, accuracy_weight: float = 0.7) -> float:
        """Weighted blend: accuracy 70%, retention 30% by default"""
        return accuracy_weight * self.prediction_accuracy + (1 - accuracy_weight) * self.retention_rate

    def to_dict(self) -> Dict[str, Any]:
        return {
            "prediction_accuracy": self.prediction_accuracy,
            "retention_rate": self.retention_rate,
            "review_count": self.review_count,
            "timestamp": self.timestamp,
            "avg_response_time": self.avg_response_time,
            "brier_score": self.brier_score,
            "sample_size": self.sample_size,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PerformanceMetrics":
        return cls(
            prediction_accuracy=d["prediction_accuracy"],
            retention_rate=d["retention_rate"],
            review_count=d["review_count"],
            timestamp=d["timestamp"],
            avg_response_time=d.get("avg_response_time"),
            brier_score=d.get("brier_score", 0.0),
            sample_size=d.get("sample_size", 0),
        )


@dataclass
class WeightCheckpoint:
    """Snapshot usable as a rollback candidate"""
    weights: List[float]
    performance: PerformanceMetrics
    review_count: int
    timestamp: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "weights": list(self.weights),
            "performance": self.performance.to_dict(),
            "review_count": self.review_count,
            "timestamp": self.timestamp,
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "WeightCheckpoint":
        return cls(
            weights=list(d["weights"]),
            performance=PerformanceMetrics.from_dict(d["performance"]),
            review_count=d["review_count"],
            timestamp=d["timestamp"],
        )


@dataclass
class PersonalizationState:
    """Per-user lifecycle record, persisted after every update"""
    stage: Stage = Stage.BASELINE
    baseline: Optional[BaselineMetrics] = None
    phase1_weights: Optional[List[float]] = None
    phase2_weights: Optional[List[float]] = None
    total_reviews: int = 0
    last_update: float = field(default_factory=time.time)
    last_checkpoint_review_count: int = 0
    backtrack_count: int = 0
    checkpoints: List[WeightCheckpoint] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "stage": self.stage.value,
            "baseline": self.baseline.to_dict() if self.baseline else None,
            "phase1_weights": _optional_list(self.phase1_weights),
            "phase2_weights": _optional_list(self.phase2_weights),
            "total_reviews": self.total_reviews,
            "last_update": self.last_update,
            "last_checkpoint_review_count": self.last_checkpoint_review_count,
            "backtrack_count": self.backtrack_count,
            "checkpoints": [c.to_dict() for c in self.checkpoints],
        }

    @classmethod
    def from_dict(cls, d: Dict[str, Any]) -> "PersonalizationState":
        return cls(
            stage=Stage(d.get("stage", Stage.BASELINE.value)),
            baseline=BaselineMetrics.from_dict(d["baseline"]) if d.get("baseline") else None,
            phase1_weights=_optional_list(d.get("phase1_weights")),
            phase2_weights=_optional_list(d.get("phase2_weights")),
            total_reviews=d.get("total_reviews", 0),
            last_update=d.get("last_update", 0.0),
            last_checkpoint_review_count=d.get("last_checkpoint_review_count", 0),
            backtrack_count=d.get("backtrack_count", 0),
            checkpoints=[WeightCheckpoint.from_dict(c) for c in d.get("checkpoints", [])],
        )


@dataclass
class OptimizationResult:
    """Result of a phase1 or phase2 optimization run"""
    weights: List[float]
    initial_loss: float
    final_loss: float
    iterations: int
    accepted: bool
    improvement: float  # relative, (initial - final) / initial
    optimized_indices: List[int] = field(default_factory=list)
    loss_history: List[float] = field(default_factory=list)  # best-so-far per iteration
    reason: Optional[str] = None


@dataclass
class BacktrackProposal:
    """Checkpoint the ledger suggests blending back toward"""
    checkpoint: WeightCheckpoint
    reason: str  # "regression" or "stable_checkpoint"
    performance_drop: float
    decay_factor: float


@dataclass
class StageTransition:
    """Outcome of one stage-controller step that ran a milestone action"""
    from_stage: Stage
    to_stage: Stage
    total_reviews: int
    result: Optional[OptimizationResult] = None
    error: Optional[str] = None

    @property
    def advanced(self) -> bool:
        return self.to_stage != self.from_stage


@dataclass
class UpdateReport:
    """What a single per-review update did"""
    total_reviews: int
    stage_before: Stage
    stage_after: Stage
    transition: Optional[StageTransition] = None
    checkpoint_created: bool = False
    backtrack: Optional[BacktrackProposal] = None
    notices: List[str] = field(default_factory=list)
    errors: List[str] = field(default_factory=list)

    @property
    def backtracked(self) -> bool:
        return self.backtrack is not None
