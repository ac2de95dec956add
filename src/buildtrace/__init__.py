"""
BuildTrace: HLO timing analysis for recorded building games

Reconstructs, from the event log of a collaborative building game, when
each high-level object (wall, row, floor, railing) of the target structure
was completed, and attributes time and architect corrections to each.
"""

__version__ = "0.1.0"

from .blocks import Block, Goal
from .world import WorldStateTracker
from .events import (
    EventType,
    Instruction,
    LogEvent,
    MessageKind,
    QuestionAnswer,
    SessionLog,
    classify_message,
    load_session,
    load_sessions,
)
from .config import AnalysisConfig, ScenarioConfig, load_config
from .plans import (
    Plan,
    ScenarioRegistry,
    read_block_plan,
    read_highlevel_plan,
    read_initial_world,
)
from .segmentation import (
    FailureKind,
    HLOResult,
    HLOSegmenter,
    SegmentationFailure,
    SegmentationOutcome,
    SegmenterState,
    segment_session,
)
from .attribution import AttributionReport, DurationAttributor, HLODuration, LabelMapping
from .analysis import BatchResult, GameAnalysis, InstructionLevel, analyze_sessions
from .aggregate import AggregateInformation, AnswerStats
from .errors import (
    BuildTraceError,
    ConfigError,
    LabelMappingError,
    MalformedEventPayload,
    NegativeDurationError,
    PlanFormatError,
    ReconciliationFailureError,
    SessionFormatError,
    UnknownScenarioError,
)

__all__ = [
    "Block",
    "Goal",
    "WorldStateTracker",
    "EventType",
    "Instruction",
    "LogEvent",
    "MessageKind",
    "QuestionAnswer",
    "SessionLog",
    "classify_message",
    "load_session",
    "load_sessions",
    "AnalysisConfig",
    "ScenarioConfig",
    "load_config",
    "Plan",
    "ScenarioRegistry",
    "read_block_plan",
    "read_highlevel_plan",
    "read_initial_world",
    # Segmentation
    "FailureKind",
    "HLOResult",
    "HLOSegmenter",
    "SegmentationFailure",
    "SegmentationOutcome",
    "SegmenterState",
    "segment_session",
    # Attribution
    "AttributionReport",
    "DurationAttributor",
    "HLODuration",
    "LabelMapping",
    # Analysis
    "BatchResult",
    "GameAnalysis",
    "InstructionLevel",
    "analyze_sessions",
    "AggregateInformation",
    "AnswerStats",
    # Errors
    "BuildTraceError",
    "ConfigError",
    "LabelMappingError",
    "MalformedEventPayload",
    "NegativeDurationError",
    "PlanFormatError",
    "ReconciliationFailureError",
    "SessionFormatError",
    "UnknownScenarioError",
    "__version__",
]
