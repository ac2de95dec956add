"""
Tests for attributing time and mistakes to HLOs
"""

from datetime import timedelta

import pytest

from buildtrace.attribution import DurationAttributor, HLODuration, LabelMapping
from buildtrace.blocks import Block
from buildtrace.errors import (
    LabelMappingError,
    NegativeDurationError,
    ReconciliationFailureError,
)
from buildtrace.plans import Plan
from buildtrace.segmentation import (
    FailureKind,
    HLOResult,
    SegmentationFailure,
    SegmentationOutcome,
    SegmenterState,
)

from factories import T0, at


PLAN = Plan.from_block_lists("bridge", [[Block(0, 0, 0)], [Block(1, 0, 0)], [Block(2, 0, 0)]])
MAPPING = LabelMapping.of("bridge", ["floor", "railing", "railing"])


def done(first, *completions):
    """A successful outcome from (timestamp, mistakes) pairs"""
    return SegmentationOutcome(
        state=SegmenterState.DONE,
        results=tuple(HLOResult(i, ts, m) for i, (ts, m) in enumerate(completions)),
        first_instruction_time=first,
    )


class TestLabelMapping:
    """Tests for validating label mappings"""

    def test_valid(self):
        MAPPING.validate(PLAN)
        assert len(MAPPING) == 3

    def test_too_few_labels(self):
        with pytest.raises(LabelMappingError):
            LabelMapping.of("bridge", ["floor", "railing"]).validate(PLAN)

    def test_too_many_labels(self):
        with pytest.raises(LabelMappingError):
            DurationAttributor(PLAN, LabelMapping.of("bridge", ["floor"] * 4))

    def test_other_scenario(self):
        with pytest.raises(LabelMappingError):
            LabelMapping.of("house", ["floor", "railing", "railing"]).validate(PLAN)


class TestDurationAttributor:
    """Tests for per-HLO durations"""

    def test_durations(self):
        """The first HLO counts from the first instruction, later ones from their predecessor"""
        outcome = done(at(1), (at(3), 0), (at(7), 1), (at(12), 1))
        report = DurationAttributor(PLAN, MAPPING).attribute(outcome)

        assert [d.as_tuple() for d in report.durations] == [
            ("floor", 2000, 0),
            ("railing", 4000, 1),
            ("railing", 5000, 0),
        ]
        assert report.total_duration_ms == 11000
        assert report.total_mistakes == 1
        assert report.scenario == "bridge"

    def test_durations_sum_to_total(self):
        """Sub-millisecond timestamps do not make the parts drift from the total"""
        first = T0 + timedelta(microseconds=700)
        outcome = done(
            first,
            (T0 + timedelta(milliseconds=1, microseconds=600), 0),
            (T0 + timedelta(milliseconds=3, microseconds=100), 0),
            (T0 + timedelta(milliseconds=5, microseconds=900), 0),
        )
        report = DurationAttributor(PLAN, MAPPING).attribute(outcome)
        assert sum(d.duration_ms for d in report.durations) == report.total_duration_ms
        assert report.total_duration_ms == 5

    def test_simultaneous_completion(self):
        outcome = done(at(0), (at(2), 0), (at(2), 0), (at(3), 0))
        report = DurationAttributor(PLAN, MAPPING).attribute(outcome)
        assert [d.duration_ms for d in report.durations] == [2000, 0, 1000]

    def test_out_of_order_completion(self):
        """An HLO finished before its predecessor is refused"""
        outcome = done(at(0), (at(5), 0), (at(3), 0), (at(8), 0))
        with pytest.raises(NegativeDurationError) as exc_info:
            DurationAttributor(PLAN, MAPPING).attribute(outcome)
        assert exc_info.value.goal_index == 1
        assert exc_info.value.label == "railing"
        assert exc_info.value.duration_ms == -2000

    def test_completed_before_first_instruction(self):
        outcome = done(at(5), (at(1), 0), (at(6), 0), (at(8), 0))
        with pytest.raises(NegativeDurationError) as exc_info:
            DurationAttributor(PLAN, MAPPING).attribute(outcome)
        assert exc_info.value.goal_index == 0

    def test_failed_segmentation(self):
        failure = SegmentationFailure(FailureKind.RECONCILIATION_FAILURE, (2,), "not all goals were built")
        outcome = SegmentationOutcome(state=SegmenterState.FAILED, failure=failure)
        with pytest.raises(ReconciliationFailureError) as exc_info:
            DurationAttributor(PLAN, MAPPING).attribute(outcome)
        assert exc_info.value.failure.unresolved == (2,)

    def test_result_count_mismatch(self):
        outcome = done(at(0), (at(1), 0), (at(2), 0))
        with pytest.raises(LabelMappingError):
            DurationAttributor(PLAN, MAPPING).attribute(outcome)

    def test_reconciled_flag_carried(self):
        outcome = SegmentationOutcome(
            state=SegmenterState.DONE,
            results=(HLOResult(0, at(1), 0), HLOResult(1, at(2), 0), HLOResult(2, at(3), 0)),
            first_instruction_time=at(0),
            reconciled=True,
        )
        assert DurationAttributor(PLAN, MAPPING).attribute(outcome).reconciled

    def test_by_label(self):
        outcome = done(at(0), (at(1), 0), (at(3), 0), (at(6), 0))
        grouped = DurationAttributor(PLAN, MAPPING).attribute(outcome).by_label()
        assert [d.duration_ms for d in grouped["railing"]] == [2000, 3000]
        assert grouped["floor"] == [HLODuration("floor", 1000, 0)]

    def test_to_dict(self):
        outcome = done(at(0), (at(1), 0), (at(3), 0), (at(6), 0))
        data = DurationAttributor(PLAN, MAPPING).attribute(outcome).to_dict()
        assert data["total_duration_ms"] == 6000
        assert data["durations"][0] == {"label": "floor", "duration_ms": 1000, "mistakes": 0}
