"""
Duration attribution

Turns goal completion times into the time and mistakes spent on each HLO.
The first HLO is measured from the first instruction, every later HLO from
the completion of the one before it; the build order is assumed to match
the plan order.
"""

from dataclasses import dataclass
from datetime import datetime, timedelta
from typing import Any, Dict, Iterable, List, Tuple

from .errors import LabelMappingError, NegativeDurationError
from .plans import Plan
from .segmentation import SegmentationOutcome

_MILLISECOND = timedelta(milliseconds=1)


@dataclass(frozen=True)
class LabelMapping:
    """Semantic label of every goal of a scenario's plan, in plan order"""
    scenario: str
    labels: Tuple[str, ...]

    @classmethod
    def of(cls, scenario: str, labels: Iterable[str]) -> "LabelMapping":
        return cls(scenario=scenario, labels=tuple(labels))

    def validate(self, plan: Plan) -> None:
        """Refuse mappings that do not have exactly one label per goal"""
        if plan.scenario != self.scenario:
            raise LabelMappingError(
                f"Labels for '{self.scenario}' applied to plan of '{plan.scenario}'"
            )
        if len(self.labels) != len(plan.goals):
            raise LabelMappingError(
                f"Scenario '{self.scenario}' has {len(plan.goals)} goals "
                f"but {len(self.labels)} labels"
            )

    def __len__(self) -> int:
        return len(self.labels)


@dataclass(frozen=True)
class HLODuration:
    """Time and mistakes attributed to one HLO"""
    label: str
    duration_ms: int
    mistakes: int

    def as_tuple(self) -> Tuple[str, int, int]:
        return (self.label, self.duration_ms, self.mistakes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "label": self.label,
            "duration_ms": self.duration_ms,
            "mistakes": self.mistakes,
        }


@dataclass(frozen=True)
class AttributionReport:
    """Per-HLO durations of one session plus the totals they add up to"""
    scenario: str
    durations: Tuple[HLODuration, ...] = ()
    total_duration_ms: int = 0
    total_mistakes: int = 0
    reconciled: bool = False

    def by_label(self) -> Dict[str, List[HLODuration]]:
        grouped: Dict[str, List[HLODuration]] = {}
        for entry in self.durations:
            grouped.setdefault(entry.label, []).append(entry)
        return grouped

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenario": self.scenario,
            "durations": [d.to_dict() for d in self.durations],
            "total_duration_ms": self.total_duration_ms,
            "total_mistakes": self.total_mistakes,
            "reconciled": self.reconciled,
        }


def _offset_ms(start: datetime, end: datetime) -> int:
    return (end - start) // _MILLISECOND


class DurationAttributor:
    """Attributes elapsed time and mistakes to the HLOs of one scenario"""

    def __init__(self, plan: Plan, mapping: LabelMapping):
        mapping.validate(plan)
        self.plan = plan
        self.mapping = mapping

    def attribute(self, outcome: SegmentationOutcome) -> AttributionReport:
        """
        Compute per-HLO durations from a successful segmentation.

        Durations are differences of millisecond offsets from the first
        instruction, so they add up exactly to the total.

        Raises:
            ReconciliationFailureError: If the segmentation failed
            NegativeDurationError: If an HLO completed before its predecessor
        """
        outcome.require_success()
        if len(outcome.results) != len(self.mapping):
            raise LabelMappingError(
                f"Segmentation has {len(outcome.results)} goals, "
                f"labels for '{self.mapping.scenario}' cover {len(self.mapping)}"
            )

        start = outcome.first_instruction_time
        durations: List[HLODuration] = []
        previous_offset = 0
        previous_mistakes = 0
        for index, (label, result) in enumerate(zip(self.mapping.labels, outcome.results)):
            offset = _offset_ms(start, result.timestamp)
            duration = offset - previous_offset
            if duration < 0:
                raise NegativeDurationError(index, label, duration)
            durations.append(HLODuration(
                label=label,
                duration_ms=duration,
                mistakes=result.mistakes - previous_mistakes,
            ))
            previous_offset = offset
            previous_mistakes = result.mistakes

        return AttributionReport(
            scenario=self.plan.scenario,
            durations=tuple(durations),
            total_duration_ms=previous_offset,
            total_mistakes=previous_mistakes,
            reconciled=outcome.reconciled,
        )
