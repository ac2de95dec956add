"""
HLO segmentation

Replays a game log against a scenario plan and records, for every goal,
the log timestamp at which all of its blocks were first present and the
number of architect corrections issued up to then.

Segmentation is a small state machine:

    NORMAL ──all goals resolved──────────────> DONE
      │
      └─goals pending──> IGNORE_DESTROY ──resolved──> DONE
                               │
                               └─goals pending──> FAILED

The IGNORE_DESTROY pass exists for a logging bug where a put-delete-put at
one location was recorded as put-put-delete. Replaying without any destroy
events recovers the block in that case. There is exactly one retry and it
starts again from the initial world; nothing from the first pass is kept.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Sequence

from .errors import ReconciliationFailureError
from .events import (
    MISPLACED_BLOCK_PHRASE,
    MISSING_BLOCK_PHRASE,
    EventType,
    LogEvent,
    MessageKind,
    classify_message,
)
from .logging import get_logger, log_context
from .plans import Plan
from .world import WorldStateTracker

logger = get_logger()


class SegmenterState(Enum):
    """States of the segmentation state machine"""
    NORMAL = "normal"                  # Destroy events remove blocks
    IGNORE_DESTROY = "ignore_destroy"  # Destroy events are dropped
    DONE = "done"
    FAILED = "failed"

    @property
    def is_terminal(self) -> bool:
        return self in (SegmenterState.DONE, SegmenterState.FAILED)


class FailureKind(Enum):
    """Why a segmentation could not be completed"""
    RECONCILIATION_FAILURE = "reconciliation_failure"
    # The log has a success marker but goals stay unresolved: the log itself
    # is inconsistent, not just the game unfinished
    INCONSISTENT_SUCCESS_STATE = "inconsistent_success_state"
    MISSING_FIRST_INSTRUCTION = "missing_first_instruction"


@dataclass(frozen=True)
class HLOResult:
    """When a goal was first complete and how many mistakes preceded it"""
    goal_index: int
    timestamp: datetime
    mistakes: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "goal_index": self.goal_index,
            "timestamp": self.timestamp.isoformat(),
            "mistakes": self.mistakes,
        }


@dataclass(frozen=True)
class SegmentationFailure:
    """Diagnostic record of a failed segmentation"""
    kind: FailureKind
    unresolved: tuple = ()
    reason: str = ""

    def __str__(self) -> str:
        text = f"{self.kind.value}: {self.reason}"
        if self.unresolved:
            text += f" (unresolved goals: {', '.join(str(i) for i in self.unresolved)})"
        return text

    def to_dict(self) -> Dict[str, Any]:
        return {
            "kind": self.kind.value,
            "unresolved": list(self.unresolved),
            "reason": self.reason,
        }


@dataclass(frozen=True)
class SegmentationOutcome:
    """
    Result of segmenting one session.

    On success `results` has one entry per goal in plan order. On failure
    `results` is empty and `failure` says why.
    """
    state: SegmenterState
    results: tuple = ()
    first_instruction_time: Optional[datetime] = None
    reconciled: bool = False
    failure: Optional[SegmentationFailure] = None
    diagnostics: tuple = ()

    @property
    def succeeded(self) -> bool:
        return self.state == SegmenterState.DONE

    @property
    def total_mistakes(self) -> int:
        return self.results[-1].mistakes if self.results else 0

    def require_success(self) -> "SegmentationOutcome":
        if not self.succeeded:
            raise ReconciliationFailureError(self.failure)
        return self

    def to_dict(self) -> Dict[str, Any]:
        return {
            "state": self.state.value,
            "results": [r.to_dict() for r in self.results],
            "first_instruction_time": (
                self.first_instruction_time.isoformat() if self.first_instruction_time else None
            ),
            "reconciled": self.reconciled,
            "failure": self.failure.to_dict() if self.failure else None,
            "diagnostics": list(self.diagnostics),
        }


@dataclass
class _Pass:
    """Mutable state of one replay of the log"""
    world: WorldStateTracker
    slots: List[Optional[HLOResult]]
    mistakes: int = 0
    first_instruction_time: Optional[datetime] = None
    diagnostics: List[str] = field(default_factory=list)

    @property
    def unresolved(self) -> List[int]:
        return [i for i, slot in enumerate(self.slots) if slot is None]


class HLOSegmenter:
    """
    Finds the completion time of every goal of a plan in a game log.

    The log must already be in the order the events happened; the
    segmenter does not reorder it.
    """

    def __init__(
        self,
        plan: Plan,
        misplaced_phrase: str = MISPLACED_BLOCK_PHRASE,
        missing_phrase: str = MISSING_BLOCK_PHRASE,
    ):
        if not plan.goals:
            raise ValueError(f"Plan for scenario '{plan.scenario}' has no goals")
        self.plan = plan
        self.misplaced_phrase = misplaced_phrase
        self.missing_phrase = missing_phrase

    def segment(self, events: Sequence[LogEvent]) -> SegmentationOutcome:
        """Segment a log, retrying once without destroy events if needed"""
        state = SegmenterState.NORMAL
        reconciled = False
        run: Optional[_Pass] = None

        while not state.is_terminal:
            with log_context(pass_state=state.value):
                run = self._replay(events, state)
                if not run.unresolved:
                    state = SegmenterState.DONE
                elif state == SegmenterState.NORMAL:
                    logger.warning(
                        "Goals unresolved after normal pass, retrying without destroy events",
                        unresolved=run.unresolved,
                    )
                    state = SegmenterState.IGNORE_DESTROY
                    reconciled = True
                else:
                    state = SegmenterState.FAILED

        if state == SegmenterState.FAILED:
            finished = any(event.is_success_marker for event in events)
            kind = (
                FailureKind.INCONSISTENT_SUCCESS_STATE if finished
                else FailureKind.RECONCILIATION_FAILURE
            )
            failure = SegmentationFailure(
                kind=kind,
                unresolved=tuple(run.unresolved),
                reason=(
                    "game finished successfully but not all goals were built"
                    if finished else "not all goals were built"
                ),
            )
            logger.error(f"Segmentation failed: {failure}")
            return SegmentationOutcome(
                state=SegmenterState.FAILED,
                reconciled=reconciled,
                failure=failure,
                diagnostics=tuple(run.diagnostics),
            )

        if run.first_instruction_time is None:
            failure = SegmentationFailure(
                kind=FailureKind.MISSING_FIRST_INSTRUCTION,
                reason="no instruction found in the log",
            )
            logger.error("first instruction is missing")
            return SegmentationOutcome(
                state=SegmenterState.FAILED,
                reconciled=reconciled,
                failure=failure,
                diagnostics=tuple(run.diagnostics),
            )

        return SegmentationOutcome(
            state=SegmenterState.DONE,
            results=tuple(run.slots),
            first_instruction_time=run.first_instruction_time,
            reconciled=reconciled,
            diagnostics=tuple(run.diagnostics),
        )

    def _replay(self, events: Sequence[LogEvent], state: SegmenterState) -> _Pass:
        run = _Pass(
            world=WorldStateTracker(self.plan.initial_blocks),
            slots=[None] * len(self.plan.goals),
        )
        last_index = len(self.plan.goals) - 1

        for event in events:
            if event.is_malformed:
                run.diagnostics.append(
                    f"event {event.event_id}: missing {', '.join(event.missing_axes)}, defaulted to 0"
                )

            if event.event_type == EventType.BLOCK_PLACED:
                run.world.add(event.block)
            elif event.event_type == EventType.BLOCK_DESTROYED:
                if state == SegmenterState.NORMAL:
                    run.world.remove(event.block)
            elif event.event_type == EventType.TEXT_MESSAGE:
                self._handle_text(run, event)
            elif event.event_type == EventType.GAME_FINISHED:
                # The last HLO is done when the game says so
                if run.slots[last_index] is None:
                    run.slots[last_index] = HLOResult(last_index, event.timestamp, run.mistakes)

            self._resolve_goals(run, event)

        return run

    def _handle_text(self, run: _Pass, event: LogEvent) -> None:
        instruction = event.instruction
        if run.first_instruction_time is None and instruction is not None and instruction.is_new:
            run.first_instruction_time = event.timestamp

        kind = classify_message(event.message, self.misplaced_phrase, self.missing_phrase)
        if kind in (MessageKind.MISPLACED_BLOCK, MessageKind.MISSING_BLOCK):
            run.mistakes += 1

    def _resolve_goals(self, run: _Pass, event: LogEvent) -> None:
        for index, goal in enumerate(self.plan.goals):
            if run.slots[index] is None and run.world.contains_all(goal):
                run.slots[index] = HLOResult(index, event.timestamp, run.mistakes)
                logger.debug(
                    f"Goal {index} complete",
                    event_id=event.event_id,
                    mistakes=run.mistakes,
                )


def segment_session(
    plan: Plan,
    events: Sequence[LogEvent],
    misplaced_phrase: str = MISPLACED_BLOCK_PHRASE,
    missing_phrase: str = MISSING_BLOCK_PHRASE,
    game_id: Optional[int] = None,
) -> SegmentationOutcome:
    """Segment one session's events against a plan"""
    segmenter = HLOSegmenter(plan, misplaced_phrase, missing_phrase)
    with log_context(game_id=game_id, scenario=plan.scenario):
        with logger.timed("segmentation"):
            return segmenter.segment(events)
