"""
Personalization engine configuration
"""
import os
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict


class PersonalizationSettings(BaseSettings):
    """Tunables for weight personalization with environment variable support"""

    # Gradient optimizer
    learning_rate: float = 0.05
    min_data_points: int = 50
    epsilon: float = 0.01  # Central finite-difference step
    phase1_acceptance_gain: float = 0.05  # Relative loss improvement required in phase1
    phase2_max_iterations: int = 10
    phase2_lr_scale: float = 0.8
    early_stopping_patience: int = 3

    # Stage milestones (total reviews)
    baseline_milestone: int = 50
    phase1_milestone: int = 100
    phase2_milestone: int = 200

    # Checkpoints and backtracking
    checkpoint_interval: int = 50
    max_checkpoints: int = 5
    performance_threshold: float = 0.1
    performance_window: int = 50
    stability_accuracy_weight: float = Field(default=0.7, ge=0.0, le=1.0)

    # Storage
    data_dir: str = "data/personalization"

    # Monitoring
    log_level: str = os.getenv("LOG_LEVEL", "INFO")
    environment: str = os.getenv("ENVIRONMENT", "development")  # development, staging, production

    model_config = SettingsConfigDict(
        env_prefix="PERSONALIZER_",
        env_file=".env",
        extra="ignore"
    )

    @field_validator("learning_rate", "epsilon")
    @classmethod
    def _positive(cls, value: float) -> float:
        if value <= 0:
            raise ValueError("must be positive")
        return value

    @field_validator(
        "min_data_points",
        "phase2_max_iterations",
        "early_stopping_patience",
        "checkpoint_interval",
        "max_checkpoints",
        "performance_window",
    )
    @classmethod
    def _at_least_one(cls, value: int) -> int:
        if value < 1:
            raise ValueError("must be at least 1")
        return value

    @model_validator(mode="after")
    def _milestones_ordered(self) -> "PersonalizationSettings":
        if not (self.baseline_milestone < self.phase1_milestone < self.phase2_milestone):
            raise ValueError(
                "milestones must satisfy baseline < phase1 < phase2, got "
                f"{self.baseline_milestone}/{self.phase1_milestone}/{self.phase2_milestone}"
            )
        return self

    @property
    def phase2_learning_rate(self) -> float:
        return self.learning_rate * self.phase2_lr_scale


settings = PersonalizationSettings()


def get_settings() -> PersonalizationSettings:
    """Return the process-wide default settings"""
    return settings
