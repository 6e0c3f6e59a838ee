"""
Personalization error taxonomy

Only PersistenceFailure and unexpected computation errors ever cross a
component boundary, and the controllers catch those too: a personalization
failure must never block the review that triggered it.
"""
from typing import Any, Dict, Optional


class PersonalizationError(Exception):
    """Base class for personalization errors"""

    code = "PERSONALIZATION_ERROR"

    def __init__(self, message: str, context: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.context = context or {}

    def to_dict(self) -> Dict[str, Any]:
        return {"code": self.code, "message": self.message, "context": self.context}


class InsufficientEvidence(PersonalizationError):
    """Not enough review history for the requested computation"""

    code = "INSUFFICIENT_EVIDENCE"

    def __init__(self, required: int, available: int):
        super().__init__(
            f"need at least {required} reviews, have {available}",
            {"required": required, "available": available},
        )
        self.required = required
        self.available = available


class OptimizationNoImprovement(PersonalizationError):
    """Phase1 candidate rejected; defaults retained"""

    code = "OPTIMIZATION_NO_IMPROVEMENT"


class PersistenceFailure(PersonalizationError):
    """A weight or state store failed to load or save"""

    code = "PERSISTENCE_FAILURE"


class InvalidWeightRange(PersonalizationError):
    """Malformed weight vector (wrong length or non-finite values)"""

    code = "INVALID_WEIGHT_RANGE"
