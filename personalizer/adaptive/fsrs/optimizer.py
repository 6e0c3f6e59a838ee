"""
Gradient Weight Optimizer

Tunes the FSRS-6 weight vector from a user's review history with small,
clamped gradient steps.

Phases:
1. Baseline: reference metrics from the first reviews (no tuning)
2. Phase1: one pass over the critical parameters, accepted only when the
   loss improves by at least phase1_acceptance_gain over the defaults
3. Phase2: gradient-boosting loop over all 21 parameters with early stopping

Gradients are central finite differences, so the predictor can stay an
opaque function of the weights.
"""

import logging
from typing import List, Optional, Sequence

import numpy as np

from personalizer.core.config import PersonalizationSettings, settings as default_settings
from .errors import InsufficientEvidence, OptimizationNoImprovement
from .evaluator import average_interval, history_arrays, retention_rate
from .models import BaselineMetrics, OptimizationResult, ReviewEvent
from .weights import (
    CRITICAL_INDICES,
    DEFAULT_WEIGHTS,
    PARAMETER_COUNT,
    clamp_weight,
    clamp_weights,
    predict_retention_batch,
)

logger = logging.getLogger(__name__)


class _LossSurface:
    """Review history pre-converted to arrays for repeated loss evaluation"""

    def __init__(self, history: Sequence[ReviewEvent]):
        self.elapsed, self.stability, self.outcome = history_arrays(history)

    def loss(self, weights: Sequence[float]) -> float:
        predicted = predict_retention_batch(self.elapsed, self.stability, weights)
        return float(np.mean((predicted - self.outcome) ** 2))

    def gradient(self, weights: Sequence[float], index: int, epsilon: float) -> float:
        """Ascent direction for one parameter: -(L(w+e) - L(w-e)) / 2e"""
        plus = list(weights)
        plus[index] += epsilon
        minus = list(weights)
        minus[index] -= epsilon
        return -(self.loss(plus) - self.loss(minus)) / (2 * epsilon)


class GradientWeightOptimizer:
    """
    Finite-difference optimizer for the personalization stages

    Pure and deterministic: identical history and starting weights always
    produce identical results.
    """

    def __init__(self, settings: Optional[PersonalizationSettings] = None):
        self.settings = settings or default_settings

    def _require_evidence(self, history: Sequence[ReviewEvent]) -> None:
        if len(history) < self.settings.min_data_points:
            raise InsufficientEvidence(self.settings.min_data_points, len(history))

    def calculate_loss(self, history: Sequence[ReviewEvent], weights: Sequence[float]) -> float:
        """Mean squared error between predicted retention and the binary outcome"""
        if not history:
            return 0.0
        return _LossSurface(history).loss(weights)

    def calculate_gradient(self, history: Sequence[ReviewEvent], weights: Sequence[float], index: int) -> float:
        return _LossSurface(history).gradient(weights, index, self.settings.epsilon)

    def collect_baseline(self, history: Sequence[ReviewEvent]) -> BaselineMetrics:
        """
        Collect reference metrics from the review history

        Accuracy rounds the default-weight prediction to 0 or 1 (0.5 rounds up)
        and compares it with the outcome.

        Raises:
            InsufficientEvidence: fewer than min_data_points reviews
        """
        self._require_evidence(history)

        surface = _LossSurface(history)
        predicted = predict_retention_batch(surface.elapsed, surface.stability, DEFAULT_WEIGHTS)
        rounded = np.floor(predicted + 0.5)
        accuracy = float(np.mean(rounded == surface.outcome))

        baseline = BaselineMetrics(
            accuracy=accuracy,
            avg_interval=average_interval(history),
            retention_rate=retention_rate(history),
            timestamp=history[-1].timestamp,
        )
        logger.info(
            f"Baseline collected from {len(history)} reviews: accuracy={baseline.accuracy:.3f}, "
            f"retention={baseline.retention_rate:.3f}, avg_interval={baseline.avg_interval:.1f}"
        )
        return baseline

    def optimize_phase1(
        self,
        history: Sequence[ReviewEvent],
        learning_rate: Optional[float] = None,
    ) -> OptimizationResult:
        """
        Single pass over the critical parameters, seeded from the defaults

        Each parameter's gradient sees the updates already applied to the
        parameters before it. The candidate is kept only if it beats the
        defaults by phase1_acceptance_gain (relative).

        Args:
            history: Review history (at least min_data_points events)
            learning_rate: Step size (default: settings.learning_rate)

        Returns:
            OptimizationResult; weights are the defaults when rejected
        """
        self._require_evidence(history)
        lr = self.settings.learning_rate if learning_rate is None else learning_rate
        surface = _LossSurface(history)

        defaults = list(DEFAULT_WEIGHTS)
        candidate = list(DEFAULT_WEIGHTS)

        for idx in CRITICAL_INDICES:
            grad = surface.gradient(candidate, idx, self.settings.epsilon)
            candidate[idx] = clamp_weight(candidate[idx] + lr * grad, idx)

        default_loss = surface.loss(defaults)
        candidate_loss = surface.loss(candidate)
        improvement = (default_loss - candidate_loss) / default_loss if default_loss > 0 else 0.0

        if default_loss > 0 and improvement >= self.settings.phase1_acceptance_gain:
            logger.info(f"Phase1 candidate accepted, loss improved {improvement * 100:.1f}%")
            return OptimizationResult(
                weights=candidate,
                initial_loss=default_loss,
                final_loss=candidate_loss,
                iterations=1,
                accepted=True,
                improvement=improvement,
                optimized_indices=list(CRITICAL_INDICES),
                loss_history=[candidate_loss],
            )

        logger.warning(
            f"Phase1 improvement {improvement * 100:.1f}% below "
            f"{self.settings.phase1_acceptance_gain * 100:.0f}%, keeping default weights"
        )
        return OptimizationResult(
            weights=defaults,
            initial_loss=default_loss,
            final_loss=default_loss,
            iterations=1,
            accepted=False,
            improvement=improvement,
            optimized_indices=list(CRITICAL_INDICES),
            loss_history=[default_loss],
            reason=OptimizationNoImprovement.code,
        )

    def optimize_phase2(
        self,
        history: Sequence[ReviewEvent],
        start_weights: Sequence[float],
        learning_rate: Optional[float] = None,
        max_iterations: Optional[int] = None,
    ) -> OptimizationResult:
        """
        Gradient-boosting loop over all parameters

        Tracks the lowest-loss vector seen and stops after
        early_stopping_patience non-improving iterations, or as soon as
        there is nothing left to improve (zero loss or vanishing gradient).

        Args:
            history: Review history (at least min_data_points events)
            start_weights: Vector to start from (usually the phase1 result)
            learning_rate: Step size (default: settings.phase2_learning_rate)
            max_iterations: Iteration budget (default: settings.phase2_max_iterations)

        Returns:
            OptimizationResult with the best vector found
        """
        self._require_evidence(history)
        lr = self.settings.phase2_learning_rate if learning_rate is None else learning_rate
        budget = self.settings.phase2_max_iterations if max_iterations is None else max_iterations
        patience = self.settings.early_stopping_patience
        eps = self.settings.epsilon
        surface = _LossSurface(history)

        weights = np.asarray(clamp_weights(start_weights), dtype=np.float64)
        best_weights = weights.copy()
        initial_loss = surface.loss(weights)
        best_loss = initial_loss
        loss_history: List[float] = []
        no_improvement = 0
        iterations = 0

        for iteration in range(budget):
            iterations = iteration + 1

            if best_loss == 0.0:
                loss_history.append(best_loss)
                logger.debug("Phase2 loss already zero, nothing to optimize")
                break

            gradients = np.array(
                [surface.gradient(weights.tolist(), i, eps) for i in range(PARAMETER_COUNT)],
                dtype=np.float64,
            )
            if not np.any(gradients):
                loss_history.append(best_loss)
                logger.debug(f"Phase2 gradient vanished at iteration {iterations}")
                break

            weights = np.asarray(clamp_weights(weights + lr * gradients), dtype=np.float64)
            current_loss = surface.loss(weights)

            if current_loss < best_loss:
                best_loss = current_loss
                best_weights = weights.copy()
                no_improvement = 0
                logger.debug(f"Phase2 iteration {iterations}: loss {current_loss:.4f}")
            else:
                no_improvement += 1

            loss_history.append(best_loss)

            if no_improvement >= patience:
                logger.debug(f"Phase2 early stop at iteration {iterations}")
                break

        improvement = (initial_loss - best_loss) / initial_loss if initial_loss > 0 else 0.0
        logger.info(
            f"Phase2 finished after {iterations} iterations, loss {initial_loss:.4f} -> {best_loss:.4f}"
        )
        return OptimizationResult(
            weights=best_weights.tolist(),
            initial_loss=initial_loss,
            final_loss=best_loss,
            iterations=iterations,
            accepted=best_loss < initial_loss,
            improvement=improvement,
            optimized_indices=list(range(PARAMETER_COUNT)),
            loss_history=loss_history,
        )
