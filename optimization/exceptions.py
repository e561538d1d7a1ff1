"""
Error types raised by the optimization core
"""
from typing import List, Optional


class OptimizationError(Exception):
    """Base class for failures the caller is expected to handle"""


class InsufficientCandidatesError(OptimizationError):
    """A position quota cannot be filled under the current constraints"""

    def __init__(self, position, required: int, available: int, reason: Optional[str] = None):
        self.position = position
        self.required = required
        self.available = available
        self.reason = reason or "not enough selectable players"
        super().__init__(
            f"Cannot fill {position.value}: need {required}, filled {available} ({self.reason})"
        )


class FormationInfeasibleError(OptimizationError):
    """A squad cannot supply a legal starting XI"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("No legal starting XI: " + "; ".join(self.errors))


class InvalidSquadError(OptimizationError, ValueError):
    """Raised when a Squad would be built from an illegal set of players"""

    def __init__(self, errors: List[str]):
        self.errors = list(errors)
        super().__init__("Illegal squad: " + "; ".join(self.errors))


class InvalidScenarioError(OptimizationError, ValueError):
    """An explicit what-if swap list references players it cannot apply to"""
