"""
Checkpoint ledger and memory backtracking

Keeps a bounded history of (review_count, weights, performance) snapshots,
detects regressions against them and proposes rollbacks. Rollbacks are
never hard overwrites: the proposed checkpoint is blended with the current
weights, pulling harder the larger the regression.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

from personalizer.core.config import PersonalizationSettings, settings as default_settings
from .models import BacktrackProposal, PerformanceMetrics, WeightCheckpoint
from .weights import clamp_weights

logger = logging.getLogger(__name__)

# (minimum drop, decay factor), checked in order; drops must exceed the minimum
DECAY_SCHEDULE = (
    (0.20, 0.9),
    (0.15, 0.8),
    (0.10, 0.7),
)
DEFAULT_DECAY = 0.5


class CheckpointLedger:
    """
    Bounded checkpoint history keyed by review count
    """

    def __init__(self, settings: Optional[PersonalizationSettings] = None):
        self.settings = settings or default_settings
        self._checkpoints: Dict[int, WeightCheckpoint] = {}

    def __len__(self) -> int:
        return len(self._checkpoints)

    def stability_score(self, performance: PerformanceMetrics) -> float:
        return performance.stability_score(self.settings.stability_accuracy_weight)

    def create_checkpoint(
        self,
        review_count: int,
        weights: Sequence[float],
        performance: PerformanceMetrics,
        timestamp: Optional[float] = None,
    ) -> WeightCheckpoint:
        """
        Record a snapshot, evicting the oldest beyond max_checkpoints

        Recording an existing review count replaces that checkpoint.
        """
        checkpoint = WeightCheckpoint(
            weights=list(weights),
            performance=performance,
            review_count=review_count,
            timestamp=performance.timestamp if timestamp is None else timestamp,
        )
        self._checkpoints[review_count] = checkpoint
        logger.info(
            f"Checkpoint #{review_count}: accuracy={performance.prediction_accuracy:.3f}, "
            f"retention={performance.retention_rate:.3f}"
        )

        self._evict()
        return checkpoint

    def _evict(self) -> None:
        while len(self._checkpoints) > self.settings.max_checkpoints:
            oldest = min(self._checkpoints)
            del self._checkpoints[oldest]
            logger.debug(f"Evicted checkpoint #{oldest}")

    def restore(self, checkpoints: Sequence[WeightCheckpoint]) -> None:
        """Replace the ledger contents with previously persisted checkpoints"""
        self._checkpoints = {c.review_count: c for c in checkpoints}
        self._evict()
        logger.info(f"Restored {len(self._checkpoints)} checkpoints")

    def history(self) -> List[WeightCheckpoint]:
        """Checkpoints ordered by review count, oldest first"""
        return [self._checkpoints[k] for k in sorted(self._checkpoints)]

    def latest(self) -> Optional[WeightCheckpoint]:
        if not self._checkpoints:
            return None
        return self._checkpoints[max(self._checkpoints)]

    def predecessor(self) -> Optional[WeightCheckpoint]:
        """Second-newest checkpoint; the newest is the one at the latest boundary"""
        ordered = self.history()
        if len(ordered) < 2:
            return None
        return ordered[-2]

    def find_most_stable(self, current: PerformanceMetrics) -> Optional[WeightCheckpoint]:
        """
        Highest-scoring checkpoint, if it beats current by more than the threshold

        Ties go to the newer checkpoint.
        """
        if not self._checkpoints:
            return None

        best = max(
            self.history(),
            key=lambda c: (self.stability_score(c.performance), c.review_count),
        )
        if self.stability_score(best.performance) > self.stability_score(current) + self.settings.performance_threshold:
            return best
        return None

    def detect_regression(self, current: PerformanceMetrics) -> Optional[BacktrackProposal]:
        """
        Propose a checkpoint to blend back toward, or None

        Args:
            current: Performance of the current weights

        Returns:
            BacktrackProposal naming the checkpoint, drop and decay factor
        """
        previous = self.predecessor()
        if previous is None:
            logger.debug("Fewer than two checkpoints, skipping regression check")
            return None

        current_score = self.stability_score(current)
        drop = self.stability_score(previous.performance) - current_score

        if drop > self.settings.performance_threshold:
            logger.warning(
                f"Stability score dropped {drop:.3f} since checkpoint #{previous.review_count}"
            )
            return BacktrackProposal(
                checkpoint=previous,
                reason="regression",
                performance_drop=drop,
                decay_factor=self.adaptive_decay_factor(drop),
            )

        stable = self.find_most_stable(current)
        if stable is not None and stable is not previous:
            stable_drop = self.stability_score(stable.performance) - current_score
            logger.warning(
                f"Checkpoint #{stable.review_count} outscores current weights by {stable_drop:.3f}"
            )
            return BacktrackProposal(
                checkpoint=stable,
                reason="stable_checkpoint",
                performance_drop=stable_drop,
                decay_factor=self.adaptive_decay_factor(stable_drop),
            )

        return None

    @staticmethod
    def adaptive_decay_factor(performance_drop: float) -> float:
        """Share of the old weights to keep; larger drops pull harder"""
        for minimum, decay in DECAY_SCHEDULE:
            if performance_drop > minimum:
                return decay
        return DEFAULT_DECAY

    def decay_between(self, old: PerformanceMetrics, current: PerformanceMetrics) -> float:
        return self.adaptive_decay_factor(self.stability_score(old) - self.stability_score(current))

    @staticmethod
    def blend(old_weights: Sequence[float], current_weights: Sequence[float], decay_factor: float) -> List[float]:
        """decay * old + (1 - decay) * current, per parameter, clamped"""
        blended = [
            decay_factor * old + (1 - decay_factor) * cur
            for old, cur in zip(old_weights, current_weights)
        ]
        return clamp_weights(blended)

    def clear(self) -> None:
        self._checkpoints.clear()
        logger.info("Cleared all checkpoints")

    def statistics(self) -> Dict[str, Any]:
        checkpoints = self.history()
        if not checkpoints:
            return {
                "total_checkpoints": 0,
                "oldest_checkpoint": 0,
                "newest_checkpoint": 0,
                "avg_accuracy": 0.0,
                "avg_retention": 0.0,
            }
        return {
            "total_checkpoints": len(checkpoints),
            "oldest_checkpoint": checkpoints[0].review_count,
            "newest_checkpoint": checkpoints[-1].review_count,
            "avg_accuracy": sum(c.performance.prediction_accuracy for c in checkpoints) / len(checkpoints),
            "avg_retention": sum(c.performance.retention_rate for c in checkpoints) / len(checkpoints),
        }

    def to_dict(self) -> Dict[str, Any]:
        return {"checkpoints": [c.to_dict() for c in self.history()]}

    @classmethod
    def from_dict(cls, d: Dict[str, Any], settings: Optional[PersonalizationSettings] = None) -> "CheckpointLedger":
        ledger = cls(settings)
        ledger.restore([WeightCheckpoint.from_dict(item) for item in d.get("checkpoints", [])])
        return ledger
