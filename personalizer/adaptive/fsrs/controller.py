"""
Robust personalization controller

Composes the stage controller with checkpointing and memory backtracking.
One call per completed review, in a fixed order:

1. stage milestone actions (baseline / phase1 / phase2)
2. a checkpoint when a checkpoint-interval boundary was crossed or a
   milestone saved new weights
3. regression detection and, if proposed, a blended rollback (skipped when
   the proposed checkpoint already holds the current weights)

Stage optimization runs before regression detection so a freshly optimized
vector is checkpointed before it can be rolled back.
"""

import logging
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

from personalizer.core.config import PersonalizationSettings, settings as default_settings
from .checkpoints import CheckpointLedger
from .errors import PersistenceFailure
from .evaluator import PerformanceEvaluator
from .models import BacktrackProposal, ReviewEvent, StageTransition, UpdateReport
from .optimizer import GradientWeightOptimizer
from .stages import StageController
from .stores import PersonalizationContext

logger = logging.getLogger(__name__)


class RobustController:
    """
    Per-user orchestration of personalization, checkpoints and backtracking

    Never raises from update_after_review: failures are logged and returned
    in the report so the review workflow is never blocked.
    """

    def __init__(
        self,
        context: PersonalizationContext,
        settings: Optional[PersonalizationSettings] = None,
        optimizer: Optional[GradientWeightOptimizer] = None,
        ledger: Optional[CheckpointLedger] = None,
    ):
        self.context = context
        self.settings = settings or default_settings
        self.stages = StageController(context, optimizer=optimizer, settings=self.settings)
        self.ledger = ledger or CheckpointLedger(self.settings)
        self.evaluator = PerformanceEvaluator(self.settings)

    @property
    def user_id(self) -> str:
        return self.context.user_id

    def current_weights(self) -> List[float]:
        return self.context.weight_store.load(self.user_id)

    def _load_history(self) -> List[ReviewEvent]:
        if self.context.history_provider is None:
            raise ValueError("no history given and the context has no history provider")
        return self.context.history_provider.get_history(self.user_id)

    def update_after_review(self, history: Optional[Sequence[ReviewEvent]] = None) -> UpdateReport:
        """
        Update personalization after a completed review

        Args:
            history: Full review history including the new review
                (default: read from the context's history provider)

        Returns:
            UpdateReport describing what happened
        """
        try:
            events = list(history) if history is not None else self._load_history()
        except Exception as e:
            logger.exception(f"User {self.user_id}: could not read review history")
            stage = self.stages.state.stage
            return UpdateReport(total_reviews=0, stage_before=stage, stage_after=stage, errors=[str(e)])

        total = len(events)
        stage_before = self.stages.state.stage
        report = UpdateReport(total_reviews=total, stage_before=stage_before, stage_after=stage_before)
        self.context.drain_notices()

        # 1. Stage milestones
        try:
            transition = self.stages.update_after_review(events)
        except PersistenceFailure as e:
            logger.error(f"User {self.user_id}: persistence failed during stage update: {e}")
            report.errors.append(str(e))
            return report
        except Exception as e:
            logger.exception(f"User {self.user_id}: stage update failed")
            report.errors.append(f"stage update failed: {e}")
            return report

        report.transition = transition
        if transition is not None:
            report.stage_before = transition.from_stage
            if transition.error:
                report.errors.append(transition.error)
        else:
            report.stage_before = self.stages.state.stage
        report.stage_after = self.stages.state.stage

        # 2. Checkpoint at interval boundaries and after every optimization
        try:
            self._restore_ledger()
            report.checkpoint_created = self._maybe_checkpoint(events, transition)
        except PersistenceFailure as e:
            logger.error(f"User {self.user_id}: persistence failed while checkpointing: {e}")
            report.errors.append(str(e))
            return report
        except Exception as e:
            logger.exception(f"User {self.user_id}: checkpoint failed")
            report.errors.append(f"checkpoint failed: {e}")

        # 3. Regression detection and blended rollback
        try:
            report.backtrack = self._detect_and_backtrack(events)
        except PersistenceFailure as e:
            logger.error(f"User {self.user_id}: persistence failed while backtracking: {e}")
            report.errors.append(str(e))
        except Exception as e:
            logger.exception(f"User {self.user_id}: regression check failed")
            report.errors.append(f"regression check failed: {e}")

        report.notices = self.context.drain_notices()
        return report

    def _restore_ledger(self) -> None:
        """Reload persisted checkpoints into an empty ledger"""
        checkpoints = self.stages.state.checkpoints
        if len(self.ledger) == 0 and checkpoints:
            self.ledger.restore(checkpoints)

    def _maybe_checkpoint(self, history: Sequence[ReviewEvent], transition: Optional[StageTransition]) -> bool:
        """
        Record a checkpoint when an interval boundary was crossed or new weights were saved

        Boundaries are multiples of checkpoint_interval, so a checkpoint missed
        at review 50 is taken at 51 and the next one still lands on 100.
        """
        state = self.stages.state
        total = len(history)
        interval = self.settings.checkpoint_interval
        optimized = transition is not None and transition.result is not None and transition.error is None
        crossed = total // interval > state.last_checkpoint_review_count // interval
        if not (optimized or crossed):
            return False

        weights = self.current_weights()
        performance = self.evaluator.evaluate(history, weights)
        self.ledger.create_checkpoint(total, weights, performance)

        state.last_checkpoint_review_count = total
        state.checkpoints = self.ledger.history()
        self.stages.save_state()
        return True

    def _detect_and_backtrack(self, history: Sequence[ReviewEvent]) -> Optional[BacktrackProposal]:
        current_weights = self.current_weights()
        current = self.evaluator.evaluate(history, current_weights)
        proposal = self.ledger.detect_regression(current)
        if proposal is None:
            return None
        if np.allclose(proposal.checkpoint.weights, current_weights):
            logger.debug(
                f"User {self.user_id}: checkpoint #{proposal.checkpoint.review_count} "
                "already matches the current weights, nothing to blend"
            )
            return None

        self._apply_backtrack(proposal, current_weights)
        return proposal

    def _apply_backtrack(self, proposal: BacktrackProposal, current_weights: Sequence[float]) -> None:
        blended = self.ledger.blend(proposal.checkpoint.weights, current_weights, proposal.decay_factor)
        self.context.weight_store.save(self.user_id, blended)

        state = self.stages.state
        state.backtrack_count += 1
        self.stages.save_state()

        if proposal.reason == "regression":
            detail = f"Regression detected (stability score -{proposal.performance_drop:.3f})"
        else:
            detail = f"A previous checkpoint outperforms current weights by {proposal.performance_drop:.3f}"
        message = (
            f"{detail}; parameters blended toward checkpoint #{proposal.checkpoint.review_count} "
            f"with decay {proposal.decay_factor * 100:.0f}%"
        )
        logger.warning(f"User {self.user_id}: {message}")
        self.context.notify(message)

    def get_progress(self) -> Dict[str, Any]:
        return self.stages.get_progress()

    def get_backtracking_statistics(self) -> Dict[str, Any]:
        stats = self.ledger.statistics()
        stats["backtrack_count"] = self.stages.state.backtrack_count
        return stats

    def reset(self) -> None:
        """Reset stage state, weights and checkpoints"""
        self.stages.reset()
        self.ledger.clear()
        logger.info(f"User {self.user_id}: personalization and checkpoints reset")
