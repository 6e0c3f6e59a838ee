"""
FSRS-6 weight vector: defaults, safe ranges and the retention predictor

The 21 weights follow FSRS 6.1.1. The personalization engine only reads
w[17] (short-term memory factor) inside its prediction; the remaining
weights are tuned for the external scheduler and kept inside their ranges.
"""
import math
from typing import List, Optional, Sequence, Tuple

import numpy as np

from .errors import InvalidWeightRange

PARAMETER_COUNT = 21

DEFAULT_WEIGHTS: Tuple[float, ...] = (
    0.212,   # w[0]: Initial stability - AGAIN
    1.2931,  # w[1]: Initial stability - HARD
    2.3065,  # w[2]: Initial stability - GOOD
    8.2956,  # w[3]: Initial stability - EASY
    6.4133,  # w[4]: Initial difficulty
    0.8334,  # w[5]: Difficulty weight
    3.0194,  # w[6]: Difficulty change rate
    0.001,   # w[7]: Difficulty decay
    1.8722,  # w[8]: Stability growth
    0.1666,  # w[9]: Stability decay
    0.796,   # w[10]: Post-lapse stability
    1.4835,  # w[11]: Lapse exponent
    0.0614,  # w[12]: Lapse stability exponent
    0.2629,  # w[13]: Lapse time exponent
    1.6483,  # w[14]: Recall stability growth
    0.6014,  # w[15]: HARD penalty
    1.8729,  # w[16]: EASY bonus
    0.5425,  # w[17]: Short-term memory factor
    0.0912,  # w[18]: Short-term memory decay
    0.0658,  # w[19]: Long-term stability factor
    0.1542,  # w[20]: Long-term stability growth
)

PARAMETER_RANGES: Tuple[Tuple[float, float], ...] = (
    (0.1, 2.0),
    (0.5, 3.0),
    (1.0, 5.0),
    (3.0, 15.0),
    (3.0, 10.0),
    (0.5, 2.0),
    (0.5, 5.0),
    (0.0, 0.5),
    (0.5, 3.0),
    (0.0, 1.0),
    (0.5, 2.0),
    (0.5, 3.0),
    (0.0, 2.0),
    (0.0, 1.0),
    (0.0, 2.0),
    (0.5, 1.5),
    (1.0, 3.0),
    (0.0, 1.0),
    (0.0, 0.5),
    (0.0, 0.5),
    (0.0, 0.5),
)

# Initial stabilities plus the FSRS-6 short/long-term factors
CRITICAL_INDICES: Tuple[int, ...] = (0, 1, 2, 3, 17, 18, 19, 20)

SHORT_TERM_INDEX = 17
SHORT_TERM_SCALE = 0.1

_LOWER = np.array([low for low, _ in PARAMETER_RANGES], dtype=np.float64)
_UPPER = np.array([high for _, high in PARAMETER_RANGES], dtype=np.float64)


def default_weights() -> List[float]:
    """Fresh, mutable copy of the default vector"""
    return list(DEFAULT_WEIGHTS)


def clamp_weight(value: float, index: int) -> float:
    """Clamp a single weight into its safe range"""
    low, high = PARAMETER_RANGES[index]
    return max(low, min(high, float(value)))


def clamp_weights(weights: Sequence[float]) -> List[float]:
    """Clamp every component into its safe range"""
    validate_weights(weights)
    return np.clip(np.asarray(weights, dtype=np.float64), _LOWER, _UPPER).tolist()


def validate_weights(weights: Sequence[float]) -> None:
    """
    Check the shape of a weight vector

    Raises:
        InvalidWeightRange: wrong length or non-finite components
    """
    if len(weights) != PARAMETER_COUNT:
        raise InvalidWeightRange(
            f"expected {PARAMETER_COUNT} weights, got {len(weights)}",
            {"length": len(weights)},
        )
    bad = [i for i, w in enumerate(weights) if not math.isfinite(w)]
    if bad:
        raise InvalidWeightRange(f"non-finite weights at {bad}", {"indices": bad})


def in_range(weights: Sequence[float]) -> bool:
    """True when every component lies within its safe range"""
    return all(low <= w <= high for w, (low, high) in zip(weights, PARAMETER_RANGES))


def coerce_weights(raw: Optional[Sequence[float]]) -> List[float]:
    """Turn a persisted vector into a valid one, falling back to defaults"""
    if raw is None or len(raw) != PARAMETER_COUNT:
        return default_weights()
    return clamp_weights([float(w) for w in raw])


def predict_retention(elapsed_days: Optional[float], stability: Optional[float], weights: Sequence[float]) -> float:
    """
    Predict the probability of recall

    R = exp(-t / S) * (1 + 0.1 * w[17]), clipped to [0, 1]

    Args:
        elapsed_days: Days since the previous review (missing -> 0)
        stability: Card stability (missing or non-positive -> 1)
        weights: Weight vector

    Returns:
        Retention probability between 0 and 1
    """
    elapsed = elapsed_days or 0.0
    s = stability if stability and stability > 0 else 1.0
    retention = math.exp(-elapsed / s)
    adjustment = 1 + weights[SHORT_TERM_INDEX] * SHORT_TERM_SCALE
    return max(0.0, min(1.0, retention * adjustment))


def predict_retention_batch(elapsed: np.ndarray, stability: np.ndarray, weights: Sequence[float]) -> np.ndarray:
    """Vectorised predict_retention over pre-sanitised arrays"""
    adjustment = 1 + weights[SHORT_TERM_INDEX] * SHORT_TERM_SCALE
    return np.clip(np.exp(-elapsed / stability) * adjustment, 0.0, 1.0)
