"""
Performance evaluation over a trailing review window
"""
import logging
from typing import List, Optional, Sequence, Tuple

import numpy as np

from personalizer.core.config import PersonalizationSettings, settings as default_settings
from .models import PerformanceMetrics, ReviewEvent
from .weights import predict_retention_batch

logger = logging.getLogger(__name__)


def history_arrays(history: Sequence[ReviewEvent]) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Sanitised (elapsed, stability, outcome) arrays

    Missing elapsed days count as 0 and non-positive stability as 1,
    matching the scalar predictor.
    """
    elapsed = np.array([e.elapsed_days or 0.0 for e in history], dtype=np.float64)
    stability = np.array(
        [e.stability if e.stability and e.stability > 0 else 1.0 for e in history],
        dtype=np.float64,
    )
    outcome = np.array([1.0 if e.recalled else 0.0 for e in history], dtype=np.float64)
    return elapsed, stability, outcome


def retention_rate(history: Sequence[ReviewEvent]) -> float:
    """Share of reviews rated GOOD or EASY"""
    if not history:
        return 0.0
    return sum(1 for e in history if e.recalled) / len(history)


def average_interval(history: Sequence[ReviewEvent]) -> float:
    """Mean scheduled interval, ignoring non-positive values"""
    intervals = [e.scheduled_days for e in history if e.scheduled_days and e.scheduled_days > 0]
    if not intervals:
        return 0.0
    return sum(intervals) / len(intervals)


def average_response_time(history: Sequence[ReviewEvent]) -> Optional[float]:
    """Mean response time of events that recorded one"""
    times = [e.response_time_ms for e in history if e.response_time_ms is not None]
    if not times:
        return None
    return sum(times) / len(times)


class PerformanceEvaluator:
    """
    Scores a weight vector against recent reviews

    Prediction accuracy thresholds the predicted retention at 0.5 and
    compares it with the binary outcome; the Brier score is reported next
    to it because thresholding hides pure calibration drift.
    """

    def __init__(self, settings: Optional[PersonalizationSettings] = None):
        self.settings = settings or default_settings

    def window(self, history: Sequence[ReviewEvent]) -> List[ReviewEvent]:
        return list(history[-self.settings.performance_window:])

    def evaluate(
        self,
        history: Sequence[ReviewEvent],
        weights: Sequence[float],
        review_count: Optional[int] = None,
    ) -> PerformanceMetrics:
        """
        Compute metrics over the trailing window

        Args:
            history: Full or partial review history, oldest first
            weights: Weight vector being scored
            review_count: Count recorded on the metrics (default: len(history))

        Returns:
            PerformanceMetrics for the window
        """
        recent = self.window(history)
        count = len(history) if review_count is None else review_count

        if not recent:
            return PerformanceMetrics(
                prediction_accuracy=0.0,
                retention_rate=0.0,
                review_count=count,
                timestamp=0.0,
            )

        elapsed, stability, outcome = history_arrays(recent)
        predicted = predict_retention_batch(elapsed, stability, weights)

        predicted_binary = (predicted > 0.5).astype(np.float64)
        accuracy = float(np.mean(predicted_binary == outcome))
        brier = float(np.mean((predicted - outcome) ** 2))

        metrics = PerformanceMetrics(
            prediction_accuracy=accuracy,
            retention_rate=retention_rate(recent),
            review_count=count,
            timestamp=recent[-1].timestamp,
            avg_response_time=average_response_time(recent),
            brier_score=brier,
            sample_size=len(recent),
        )
        logger.debug(
            f"Evaluated {len(recent)} reviews: accuracy={accuracy:.3f}, "
            f"retention={metrics.retention_rate:.3f}, brier={brier:.4f}"
        )
        return metrics

    def stability_score(self, metrics: PerformanceMetrics) -> float:
        return metrics.stability_score(self.settings.stability_accuracy_weight)
