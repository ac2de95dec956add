"""
Per-game analysis

GameAnalysis answers the questions asked about a single recorded game:
was it successful, how long did it take, how many blocks were placed and
removed, how many corrections the architect had to give, how long each
instruction and each HLO took.

analyze_sessions() runs the analysis over many games. A game that cannot
be analyzed is recorded as failed and the batch carries on.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from .attribution import AttributionReport, DurationAttributor, LabelMapping
from .config import AnalysisConfig
from .errors import BuildTraceError
from .events import (
    EventType,
    LogEvent,
    MessageKind,
    SessionLoadFailure,
    SessionLog,
    classify_message,
)
from .logging import get_logger, log_context
from .plans import ScenarioRegistry
from .segmentation import SegmentationOutcome, segment_session
from .world import WorldStateTracker

logger = get_logger()


class InstructionLevel(Enum):
    """How the architect phrased its instructions"""
    BLOCK = "block"
    TEACHING = "teaching"
    HIGHLEVEL = "highlevel"


@dataclass
class BlockHistory:
    """Block events up to some point of a game"""
    placed: List = field(default_factory=list)
    destroyed: List = field(default_factory=list)
    present: List = field(default_factory=list)


class GameAnalysis:
    """Statistics for one recorded game"""

    def __init__(self, session: SessionLog, config: Optional[AnalysisConfig] = None):
        self.session = session
        self.config = config or AnalysisConfig()
        self._success_index = self._find_success_index()
        self._hlo_cache: Optional[Tuple[SegmentationOutcome, AttributionReport]] = None

    @property
    def game_id(self) -> int:
        return self.session.game_id

    @property
    def scenario(self) -> str:
        return self.session.scenario

    @property
    def architect(self) -> Optional[str]:
        return self.session.architect

    @property
    def events(self) -> List[LogEvent]:
        return self.session.events

    def _find_success_index(self) -> Optional[int]:
        for i, event in enumerate(self.events):
            if event.is_success_marker:
                return i
        return None

    def _events_until_success(self) -> List[LogEvent]:
        if self._success_index is None:
            return list(self.events)
        return self.events[: self._success_index + 1]

    def _kind(self, event: LogEvent) -> MessageKind:
        return classify_message(
            event.message, self.config.misplaced_phrase, self.config.missing_phrase
        )

    # --- success and timing ---

    @property
    def was_successful(self) -> bool:
        return self._success_index is not None

    @property
    def start_time(self) -> Optional[datetime]:
        return self.events[0].timestamp if self.events else None

    @property
    def end_time(self) -> Optional[datetime]:
        return self.events[-1].timestamp if self.events else None

    @property
    def success_time(self) -> Optional[datetime]:
        if self._success_index is None:
            return None
        return self.events[self._success_index].timestamp

    @property
    def time_to_success(self) -> Optional[int]:
        """Seconds from the first log entry to the success marker"""
        if self.success_time is None:
            return None
        return int((self.success_time - self.start_time).total_seconds())

    @property
    def total_time(self) -> int:
        """Seconds logged in; may be much longer than the task itself"""
        if not self.events:
            return 0
        return int((self.end_time - self.start_time).total_seconds())

    # --- counts ---

    @property
    def num_blocks_placed(self) -> int:
        return sum(1 for e in self._events_until_success() if e.event_type == EventType.BLOCK_PLACED)

    @property
    def num_blocks_destroyed(self) -> int:
        return sum(1 for e in self._events_until_success() if e.event_type == EventType.BLOCK_DESTROYED)

    @property
    def num_mistakes(self) -> int:
        """Architect corrections issued before success"""
        counted = {MessageKind.MISPLACED_BLOCK}
        if self.config.count_destroyed_as_mistake:
            counted.add(MessageKind.MISSING_BLOCK)
        return sum(
            1 for e in self._events_until_success()
            if e.event_type == EventType.TEXT_MESSAGE and self._kind(e) in counted
        )

    @property
    def numeric_answers(self) -> List[Tuple[str, int]]:
        return [(qa.question, int(qa.answer)) for qa in self.session.questionnaire if qa.is_numeric]

    @property
    def freeform_answers(self) -> List[Tuple[str, str]]:
        return [(qa.question, qa.answer) for qa in self.session.questionnaire if not qa.is_numeric]

    def infer_instruction_level(self) -> InstructionLevel:
        messages = [e.message for e in self.events]
        if any("teach you" in m for m in messages):
            return InstructionLevel.TEACHING
        if any("a wall" in m or "a floor" in m for m in messages):
            return InstructionLevel.HIGHLEVEL
        return InstructionLevel.BLOCK

    # --- durations ---

    def block_placed_durations(self) -> List[int]:
        """Milliseconds between block placements, the first one from game start"""
        durations = []
        previous = self.start_time
        for event in self.events:
            if event.event_type == EventType.BLOCK_PLACED:
                durations.append(int((event.timestamp - previous).total_seconds() * 1000))
                previous = event.timestamp
        return durations

    def durations_per_instruction(self) -> List[Tuple[str, int]]:
        """
        Time in ms from each new instruction to the next one.

        Instructions are identified by their derivation tree. Corrections
        (new=false) do not start a new interval. The last instruction runs
        until the success marker.
        """
        durations: List[Tuple[str, int]] = []
        current: Optional[str] = None
        since: Optional[datetime] = None
        for event in self.events:
            if event.is_success_marker:
                if current is not None:
                    durations.append((current, int((event.timestamp - since).total_seconds() * 1000)))
                break
            if event.event_type != EventType.TEXT_MESSAGE or event.direction != "PassToClient":
                continue
            instruction = event.instruction
            if instruction is None or not instruction.is_new:
                continue
            if current is not None:
                durations.append((current, int((event.timestamp - since).total_seconds() * 1000)))
            current = instruction.tree
            since = event.timestamp
        return durations

    def blocks_until(self, timestamp: datetime) -> BlockHistory:
        """Blocks placed, destroyed and still present before timestamp"""
        history = BlockHistory()
        world = WorldStateTracker()
        for event in self.events:
            if event.timestamp >= timestamp:
                break
            if event.event_type == EventType.BLOCK_PLACED:
                history.placed.append(event.block)
                world.add(event.block)
            elif event.event_type == EventType.BLOCK_DESTROYED:
                history.destroyed.append(event.block)
                world.remove(event.block)
        history.present = world.present_blocks()
        return history

    # --- HLOs ---

    def segment(self, registry: ScenarioRegistry) -> SegmentationOutcome:
        plan = registry.load_plan(self.scenario)
        return segment_session(
            plan,
            self.events,
            misplaced_phrase=self.config.misplaced_phrase,
            missing_phrase=self.config.missing_phrase,
            game_id=self.game_id,
        )

    def hlo_information(self, registry: ScenarioRegistry) -> Optional[AttributionReport]:
        """
        Time and mistakes per HLO, or None for unfinished games.

        Raises:
            UnknownScenarioError: If no plan is known for the scenario
            ReconciliationFailureError: If the HLOs of a finished game cannot
                all be found in the log
            NegativeDurationError: If the HLOs were not built in plan order
        """
        if not self.was_successful or self.architect is None:
            return None
        if self._hlo_cache is None:
            plan = registry.load_plan(self.scenario)
            mapping = LabelMapping.of(self.scenario, registry.labels(self.scenario))
            attributor = DurationAttributor(plan, mapping)
            outcome = self.segment(registry)
            with log_context(game_id=self.game_id, scenario=self.scenario):
                self._hlo_cache = (outcome, attributor.attribute(outcome))
        return self._hlo_cache[1]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "scenario": self.scenario,
            "architect": self.architect,
            "was_successful": self.was_successful,
            "time_to_success": self.time_to_success,
            "total_time": self.total_time,
            "num_blocks_placed": self.num_blocks_placed,
            "num_blocks_destroyed": self.num_blocks_destroyed,
            "num_mistakes": self.num_mistakes,
            "instruction_level": self.infer_instruction_level().value,
        }


@dataclass
class SessionResult:
    """Analysis of one game in a batch"""
    analysis: GameAnalysis
    hlo: Optional[AttributionReport] = None
    error: Optional[BuildTraceError] = None

    @property
    def failed(self) -> bool:
        return self.error is not None


@dataclass
class BatchResult:
    """Analyses of a batch of games, including the ones that failed"""
    results: List[SessionResult] = field(default_factory=list)
    load_failures: List[SessionLoadFailure] = field(default_factory=list)

    @property
    def analyses(self) -> List[GameAnalysis]:
        return [r.analysis for r in self.results]

    @property
    def failures(self) -> List[SessionResult]:
        return [r for r in self.results if r.failed]

    def hlo_reports(self) -> Dict[int, AttributionReport]:
        return {r.analysis.game_id: r.hlo for r in self.results if r.hlo is not None}


def analyze_sessions(
    sessions: List[SessionLog],
    registry: ScenarioRegistry,
    config: Optional[AnalysisConfig] = None,
    load_failures: Optional[List[SessionLoadFailure]] = None,
) -> BatchResult:
    """
    Analyze every session; errors are recorded per session, never raised.

    `load_failures` are session files that could not be read at all (see
    load_sessions); they are carried into the result so reports can list them.
    """
    config = config or registry.config
    batch = BatchResult(load_failures=list(load_failures or []))
    for session in sessions:
        analysis = GameAnalysis(session, config)
        result = SessionResult(analysis=analysis)
        with log_context(game_id=session.game_id, scenario=session.scenario):
            try:
                result.hlo = analysis.hlo_information(registry)
            except BuildTraceError as e:
                logger.error(f"Cannot compute HLO timings: {e}", error_type=type(e).__name__)
                result.error = e
        batch.results.append(result)

    logger.info(
        f"Analyzed {len(batch.results)} games",
        failed=len(batch.failures),
        unreadable=len(batch.load_failures),
    )
    return batch
