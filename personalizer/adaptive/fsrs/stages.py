"""
Stage controller: progressive activation of weight personalization

Stages:
- baseline (0-50 reviews): collect reference metrics
- phase1 (51-100 reviews): tune the critical parameters
- phase2 (101-200 reviews): tune all parameters
- optimized (200+ reviews): terminal; further changes come from backtracking
"""

import logging
import time
from typing import Any, Dict, Optional, Sequence

from personalizer.core.config import PersonalizationSettings, settings as default_settings
from .errors import PersonalizationError
from .models import PersonalizationState, ReviewEvent, Stage, StageTransition
from .optimizer import GradientWeightOptimizer
from .stores import PersonalizationContext
from .weights import default_weights

logger = logging.getLogger(__name__)


class StageController:
    """
    Drives the baseline -> phase1 -> phase2 -> optimized lifecycle

    State is reloaded from the state store on every call and saved back at
    the end, so a failed save is retried from the last durable record.
    """

    def __init__(
        self,
        context: PersonalizationContext,
        optimizer: Optional[GradientWeightOptimizer] = None,
        settings: Optional[PersonalizationSettings] = None,
    ):
        self.context = context
        self.settings = settings or default_settings
        self.optimizer = optimizer or GradientWeightOptimizer(self.settings)
        self.state = PersonalizationState()

    @property
    def user_id(self) -> str:
        return self.context.user_id

    def load_state(self) -> PersonalizationState:
        self.state = self.context.state_store.load(self.user_id)
        return self.state

    def save_state(self) -> None:
        self.context.state_store.save(self.user_id, self.state)

    def update_after_review(self, history: Sequence[ReviewEvent]) -> Optional[StageTransition]:
        """
        Run the milestone action due at the current history length, if any

        Args:
            history: Full review history including the review just completed

        Returns:
            StageTransition when a milestone action ran, else None

        Raises:
            PersistenceFailure: the state or weight store failed
        """
        state = self.load_state()
        total = len(history)
        state.total_reviews = total
        transition = None

        # Pending milestones fire on the first call at or past their count, so a
        # call whose save failed is redone by the next review.
        if state.stage == Stage.BASELINE:
            if total >= self.settings.baseline_milestone:
                transition = self._collect_baseline(state, history)
            else:
                logger.debug(
                    f"User {self.user_id}: {total}/{self.settings.baseline_milestone} reviews toward baseline"
                )
        elif state.stage == Stage.PHASE1 and total >= self.settings.phase1_milestone:
            transition = self._run_phase1(state, history)
        elif state.stage == Stage.PHASE2 and total >= self.settings.phase2_milestone:
            transition = self._run_phase2(state, history)

        self.save_state()
        return transition

    def _advance(self, state: PersonalizationState, to_stage: Stage) -> None:
        if to_stage.order != state.stage.order + 1:
            raise ValueError(f"illegal stage transition {state.stage.value} -> {to_stage.value}")
        state.stage = to_stage
        state.last_update = time.time()

    def _failed(self, state: PersonalizationState, total: int, action: str, error: Exception) -> StageTransition:
        logger.exception(f"User {self.user_id}: {action} failed")
        return StageTransition(
            from_stage=state.stage,
            to_stage=state.stage,
            total_reviews=total,
            error=f"{action} failed: {error}",
        )

    def _collect_baseline(self, state: PersonalizationState, history: Sequence[ReviewEvent]) -> StageTransition:
        logger.info(f"User {self.user_id}: collecting baseline")
        try:
            baseline = self.optimizer.collect_baseline(history[:self.settings.baseline_milestone])
        except (PersonalizationError, ValueError, ArithmeticError) as e:
            return self._failed(state, len(history), "baseline collection", e)

        from_stage = state.stage
        state.baseline = baseline
        self._advance(state, Stage.PHASE1)
        self.context.notify("Learning your memory patterns: baseline collected")
        return StageTransition(from_stage=from_stage, to_stage=state.stage, total_reviews=len(history))

    def _run_phase1(self, state: PersonalizationState, history: Sequence[ReviewEvent]) -> Optional[StageTransition]:
        if state.baseline is None:
            logger.warning(f"User {self.user_id}: baseline missing, skipping phase1 optimization")
            return None

        logger.info(f"User {self.user_id}: starting phase1 optimization")
        try:
            result = self.optimizer.optimize_phase1(history[:self.settings.phase1_milestone])
        except (PersonalizationError, ValueError, ArithmeticError) as e:
            return self._failed(state, len(history), "phase1 optimization", e)

        self.context.weight_store.save(self.user_id, result.weights)

        from_stage = state.stage
        state.phase1_weights = list(result.weights)
        self._advance(state, Stage.PHASE2)
        if result.accepted:
            self.context.notify(
                f"Personalized scheduling activated (phase 1, prediction error -{result.improvement * 100:.1f}%)"
            )
        else:
            self.context.notify("Personalization phase 1 complete: default weights kept")
        return StageTransition(from_stage=from_stage, to_stage=state.stage, total_reviews=len(history), result=result)

    def _run_phase2(self, state: PersonalizationState, history: Sequence[ReviewEvent]) -> StageTransition:
        logger.info(f"User {self.user_id}: starting phase2 optimization")
        start = state.phase1_weights or self.context.weight_store.load(self.user_id)
        try:
            result = self.optimizer.optimize_phase2(history, start)
        except (PersonalizationError, ValueError, ArithmeticError) as e:
            return self._failed(state, len(history), "phase2 optimization", e)

        self.context.weight_store.save(self.user_id, result.weights)

        from_stage = state.stage
        state.phase2_weights = list(result.weights)
        self._advance(state, Stage.OPTIMIZED)
        self.context.notify(
            f"Personalized scheduling complete (phase 2, {result.iterations} iterations)"
        )
        return StageTransition(from_stage=from_stage, to_stage=state.stage, total_reviews=len(history), result=result)

    def get_progress(self) -> Dict[str, Any]:
        """Stage, percentage toward full personalization and the next milestone"""
        state = self.load_state()
        total = state.total_reviews
        s = self.settings

        if state.stage == Stage.BASELINE:
            progress = min(total / s.baseline_milestone, 1) * 25
            next_milestone = s.baseline_milestone
        elif state.stage == Stage.PHASE1:
            span = s.phase1_milestone - s.baseline_milestone
            progress = 25 + min((total - s.baseline_milestone) / span, 1) * 25
            next_milestone = s.phase1_milestone
        elif state.stage == Stage.PHASE2:
            span = s.phase2_milestone - s.phase1_milestone
            progress = 50 + min((total - s.phase1_milestone) / span, 1) * 25
            next_milestone = s.phase2_milestone
        else:
            progress = 100
            next_milestone = s.phase2_milestone

        return {
            "stage": state.stage.value,
            "progress": max(0.0, float(progress)),
            "next_milestone": next_milestone,
            "total_reviews": total,
        }

    def reset(self) -> None:
        """Return to a fresh baseline state with default weights"""
        self.state = PersonalizationState()
        self.save_state()
        self.context.weight_store.save(self.user_id, default_weights())
        self.context.notify("Personalization data reset")
        logger.info(f"User {self.user_id}: personalization reset")
