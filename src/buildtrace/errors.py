"""
Exceptions raised by BuildTrace.

All errors derive from BuildTraceError so that batch drivers can record a
failed session and continue with the next one.
"""

from typing import List, Optional, TYPE_CHECKING

if TYPE_CHECKING:
    from .segmentation import SegmentationFailure


class BuildTraceError(Exception):
    """Base exception for analysis errors"""
    pass


class MalformedEventPayload(BuildTraceError):
    """Raised when a block event payload cannot be decoded at all"""
    pass


class SessionFormatError(BuildTraceError):
    """Raised when a session file is not valid"""
    pass


class PlanFormatError(BuildTraceError):
    """Raised when a plan or initial world file cannot be parsed"""
    pass


class ConfigError(BuildTraceError):
    """Raised when the analysis configuration is invalid"""
    pass


class UnknownScenarioError(BuildTraceError):
    """Raised when no plan is registered for a scenario"""

    def __init__(self, scenario: str, known: Optional[List[str]] = None):
        self.scenario = scenario
        self.known = sorted(known or [])
        message = f"Scenario '{scenario}' is not implemented"
        if self.known:
            message += f" (known: {', '.join(self.known)})"
        super().__init__(message)


class ReconciliationFailureError(BuildTraceError):
    """Raised when a failed segmentation is used as if it had succeeded"""

    def __init__(self, failure: "SegmentationFailure"):
        self.failure = failure
        super().__init__(str(failure))


class LabelMappingError(BuildTraceError):
    """Raised when a label mapping does not fit the plan it is applied to"""
    pass


class NegativeDurationError(BuildTraceError):
    """Raised when an HLO would be attributed a negative duration"""

    def __init__(self, goal_index: int, label: str, duration_ms: int):
        self.goal_index = goal_index
        self.label = label
        self.duration_ms = duration_ms
        super().__init__(
            f"Negative duration for HLO {goal_index} ({label}): {duration_ms}ms"
        )
