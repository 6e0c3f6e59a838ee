"""
Simulate a learner going through the full personalization lifecycle.

Generates synthetic reviews, feeds them one at a time to the robust
controller with file-backed stores, and reports stage transitions,
checkpoints and rollbacks as they happen.

Usage:
    python scripts/simulate_personalization.py [--reviews 300] [--data-dir DIR | --scratch]
"""
import argparse
import logging
import math
import random
import tempfile

from personalizer.core.config import get_settings
from personalizer.core.logging import setup_logging
from personalizer.adaptive.fsrs import (
    CollectingNotificationSink,
    PersonalizationContext,
    ReviewEvent,
    RobustController,
)

logger = logging.getLogger("personalizer.simulation")


def synthetic_review(index: int, rng: random.Random, forgetting_boost: float) -> ReviewEvent:
    """A review whose recall probability follows exp(-t/S), degraded by forgetting_boost"""
    stability = rng.uniform(1.0, 20.0)
    elapsed = rng.uniform(0.0, 2.0 * stability)
    p_recall = math.exp(-elapsed / stability) * (1.0 - forgetting_boost)
    recalled = rng.random() < p_recall
    rating = rng.choice([3, 4]) if recalled else rng.choice([1, 2])
    return ReviewEvent(
        rating=rating,
        elapsed_days=elapsed,
        scheduled_days=round(stability),
        stability=stability,
        timestamp=1_700_000_000.0 + index * 86400,
        response_time_ms=rng.uniform(1500, 9000),
    )


def simulate(reviews: int, data_dir: str, seed: int):
    settings = get_settings()
    setup_logging(settings)

    sink = CollectingNotificationSink()
    context = PersonalizationContext.file_backed("sim_user_1", data_dir, notifier=sink)
    controller = RobustController(context, settings=settings)
    rng = random.Random(seed)

    logger.info(f"--- Simulating {reviews} reviews (data in {data_dir}) ---")
    for i in range(reviews):
        # the learner gets distracted for a while after the optimizer has finished
        boost = 0.6 if 240 <= i < 290 else 0.0
        context.history_provider.append(context.user_id, synthetic_review(i, rng, boost))

        report = controller.update_after_review()
        for error in report.errors:
            logger.error(f"❌ review {report.total_reviews}: {error}")
        if report.transition is not None and report.transition.advanced:
            logger.info(
                f"✅ review {report.total_reviews}: "
                f"{report.stage_before.value} -> {report.stage_after.value}"
            )
        if report.checkpoint_created:
            logger.info(f"review {report.total_reviews}: checkpoint created")
        if report.backtracked:
            logger.warning(
                f"review {report.total_reviews}: rolled back toward checkpoint "
                f"#{report.backtrack.checkpoint.review_count} ({report.backtrack.reason})"
            )

    progress = controller.get_progress()
    stats = controller.get_backtracking_statistics()

    print(f"\nStage:        {progress['stage']} ({progress['progress']:.0f}%)")
    print(f"Checkpoints:  {stats['total_checkpoints']} (#{stats['oldest_checkpoint']}..#{stats['newest_checkpoint']})")
    print(f"Backtracks:   {stats['backtrack_count']}")
    print(f"w[17]:        {controller.current_weights()[17]:.4f}")
    print("\nNotices:")
    for message in sink.messages:
        print(f"  - {message}")


def main():
    parser = argparse.ArgumentParser(description="Simulate FSRS weight personalization")
    parser.add_argument("--reviews", type=int, default=300)
    parser.add_argument("--data-dir", default=get_settings().data_dir, help="Directory for weight/state files")
    parser.add_argument("--scratch", action="store_true", help="Use a throwaway temp directory instead")
    parser.add_argument("--seed", type=int, default=7)
    args = parser.parse_args()

    if args.scratch:
        with tempfile.TemporaryDirectory() as tmp:
            simulate(args.reviews, tmp, args.seed)
    else:
        simulate(args.reviews, args.data_dir, args.seed)


if __name__ == "__main__":
    main()
