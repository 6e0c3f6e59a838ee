"""
Review event fixtures and factories for testing.
"""

import random
from dataclasses import dataclass
from typing import List, Optional, Sequence

from personalizer.adaptive.fsrs.models import PerformanceMetrics, ReviewEvent


@dataclass
class ReviewFactory:
    """Factory for sequential review events."""

    elapsed_days: float = 0.0
    stability: float = 1.0
    scheduled_days: float = 1.0
    start_timestamp: float = 1_700_000_000.0

    def create(self, index: int, rating: int = 3, response_time_ms: Optional[float] = None) -> ReviewEvent:
        return create_review(
            rating=rating,
            elapsed_days=self.elapsed_days,
            stability=self.stability,
            scheduled_days=self.scheduled_days,
            timestamp=self.start_timestamp + index * 86400,
            response_time_ms=response_time_ms,
        )

    def from_ratings(self, ratings: Sequence[int]) -> List[ReviewEvent]:
        return [self.create(i, rating) for i, rating in enumerate(ratings)]


def create_review(
    rating: int = 3,
    elapsed_days: float = 0.0,
    stability: float = 1.0,
    scheduled_days: float = 1.0,
    timestamp: float = 1_700_000_000.0,
    response_time_ms: Optional[float] = None,
) -> ReviewEvent:
    """Create a single review event."""
    return ReviewEvent(
        rating=rating,
        elapsed_days=elapsed_days,
        scheduled_days=scheduled_days,
        stability=stability,
        timestamp=timestamp,
        response_time_ms=response_time_ms,
    )


def create_alternating_history(count: int, ratings: Sequence[int] = (4, 1), elapsed_days: float = 0.0) -> List[ReviewEvent]:
    """Ratings cycling through `ratings`, e.g. 4,1,4,1,..."""
    factory = ReviewFactory(elapsed_days=elapsed_days)
    return [factory.create(i, ratings[i % len(ratings)]) for i in range(count)]


def create_recalled_history(count: int, elapsed_days: float = 1.0, stability: float = 1.0) -> List[ReviewEvent]:
    """Every review rated GOOD after `elapsed_days`."""
    factory = ReviewFactory(elapsed_days=elapsed_days, stability=stability)
    return [factory.create(i, 3) for i in range(count)]


def create_random_history(count: int, seed: int = 42) -> List[ReviewEvent]:
    """Deterministic pseudo-random history with mixed outcomes and intervals."""
    rng = random.Random(seed)
    events = []
    for i in range(count):
        stability = rng.uniform(0.5, 30.0)
        events.append(create_review(
            rating=rng.choice([1, 2, 3, 3, 4]),
            elapsed_days=rng.uniform(0.0, 40.0),
            stability=stability,
            scheduled_days=round(stability),
            timestamp=1_700_000_000.0 + i * 3600,
            response_time_ms=rng.uniform(1500, 9000),
        ))
    return events


def create_performance(
    accuracy: float,
    retention: float,
    review_count: int = 50,
    timestamp: float = 1_700_000_000.0,
) -> PerformanceMetrics:
    """PerformanceMetrics with the given accuracy and retention."""
    return PerformanceMetrics(
        prediction_accuracy=accuracy,
        retention_rate=retention,
        review_count=review_count,
        timestamp=timestamp,
        sample_size=50,
    )
