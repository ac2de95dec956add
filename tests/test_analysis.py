"""
Tests for per-game analysis and batch runs
"""

import pytest

from buildtrace.analysis import GameAnalysis, InstructionLevel, analyze_sessions
from buildtrace.blocks import Block
from buildtrace.config import AnalysisConfig
from buildtrace.errors import ReconciliationFailureError, SessionFormatError, UnknownScenarioError
from buildtrace.events import SessionLoadFailure
from buildtrace.plans import Plan, ScenarioRegistry

from factories import (
    at,
    destroyed_row,
    finished_row,
    instruction_row,
    misplaced_row,
    missing_row,
    placed_row,
    session,
    text_row,
)


A = Block(1, 66, 1)
B = Block(2, 66, 1)
C = Block(3, 66, 1)
D = Block(5, 66, 1)


def make_registry(config=None):
    registry = ScenarioRegistry(config or AnalysisConfig())
    registry.register_plan(Plan.from_block_lists("bridge", [[A], [B]]), labels=["floor", "railing"])
    return registry


def finished_rows():
    return [
        text_row(1, 0, "Welcome! Today we are building a bridge."),
        instruction_row(2, 1, tree="(floor)", text="Put a block on the ground"),
        placed_row(3, 3, A.x, A.y, A.z),
        misplaced_row(4, 4),
        placed_row(5, 5, D.x, D.y, D.z),
        destroyed_row(6, 6, D.x, D.y, D.z),
        missing_row(7, 7),
        instruction_row(8, 8, tree="(railing)", text="Put a block next to it"),
        placed_row(9, 10, B.x, B.y, B.z),
        finished_row(10, 12),
        placed_row(11, 20, C.x, C.y, C.z),
    ]


def finished_session(**kwargs):
    return session(1, "bridge", finished_rows(), questionnaire=[
        {"question": "Difficulty", "answer": "4"},
        {"question": "Comments", "answer": "nice"},
    ], **kwargs)


class TestGameAnalysis:
    """Tests for statistics of a single game"""

    def test_success_and_times(self):
        analysis = GameAnalysis(finished_session())
        assert analysis.was_successful
        assert analysis.start_time == at(0)
        assert analysis.success_time == at(12)
        assert analysis.end_time == at(20)
        assert analysis.time_to_success == 12
        assert analysis.total_time == 20

    def test_counts_stop_at_success(self):
        """Blocks placed after the success marker are not counted"""
        analysis = GameAnalysis(finished_session())
        assert analysis.num_blocks_placed == 3
        assert analysis.num_blocks_destroyed == 1

    def test_mistakes(self):
        assert GameAnalysis(finished_session()).num_mistakes == 2

    def test_missing_block_not_counted_when_disabled(self):
        config = AnalysisConfig(count_destroyed_as_mistake=False)
        assert GameAnalysis(finished_session(), config).num_mistakes == 1

    def test_unfinished_game(self):
        analysis = GameAnalysis(session(2, "bridge", finished_rows()[:5]))
        assert not analysis.was_successful
        assert analysis.success_time is None
        assert analysis.time_to_success is None
        assert analysis.num_blocks_placed == 2

    def test_empty_game(self):
        analysis = GameAnalysis(session(3, "bridge", []))
        assert analysis.start_time is None
        assert analysis.total_time == 0
        assert analysis.block_placed_durations() == []

    def test_questionnaire(self):
        analysis = GameAnalysis(finished_session())
        assert analysis.numeric_answers == [("Difficulty", 4)]
        assert analysis.freeform_answers == [("Comments", "nice")]

    def test_block_placed_durations(self):
        assert GameAnalysis(finished_session()).block_placed_durations() == [3000, 2000, 5000, 10000]

    def test_durations_per_instruction(self):
        """Each instruction runs until the next one, the last until success"""
        assert GameAnalysis(finished_session()).durations_per_instruction() == [
            ("(floor)", 7000),
            ("(railing)", 4000),
        ]

    def test_repeated_instruction_does_not_split(self):
        rows = finished_rows()
        rows.insert(4, instruction_row(0, 3.5, tree="(floor)", new=False))
        for event_id, r in enumerate(rows, start=1):
            r["id"] = event_id
        durations = GameAnalysis(session(1, "bridge", rows)).durations_per_instruction()
        assert [tree for tree, _ in durations] == ["(floor)", "(railing)"]

    def test_blocks_until(self):
        analysis = GameAnalysis(finished_session())
        history = analysis.blocks_until(at(6))
        assert history.placed == [A, D]
        assert history.destroyed == []
        assert history.present == [A, D]

        history = analysis.blocks_until(at(6.5))
        assert history.destroyed == [D]
        assert history.present == [A]

    def test_instruction_level(self):
        assert GameAnalysis(finished_session()).infer_instruction_level() == InstructionLevel.BLOCK
        teaching = session(4, "house", [text_row(1, 0, "I will teach you how to build a wall")])
        assert GameAnalysis(teaching).infer_instruction_level() == InstructionLevel.TEACHING
        highlevel = session(5, "house", [text_row(1, 0, "Build a wall from here")])
        assert GameAnalysis(highlevel).infer_instruction_level() == InstructionLevel.HIGHLEVEL

    def test_to_dict(self):
        data = GameAnalysis(finished_session()).to_dict()
        assert data["game_id"] == 1
        assert data["was_successful"] is True
        assert data["num_mistakes"] == 2


class TestHLOInformation:
    """Tests for HLO timings of a game"""

    def test_durations(self):
        report = GameAnalysis(finished_session()).hlo_information(make_registry())
        assert [d.as_tuple() for d in report.durations] == [
            ("floor", 2000, 0),
            ("railing", 7000, 2),
        ]
        assert report.total_duration_ms == 9000

    def test_unfinished_game_has_none(self):
        analysis = GameAnalysis(session(2, "bridge", finished_rows()[:5]))
        assert analysis.hlo_information(make_registry()) is None

    def test_no_architect_has_none(self):
        analysis = GameAnalysis(finished_session(architect=None))
        assert analysis.hlo_information(make_registry()) is None

    def test_unknown_scenario(self):
        analysis = GameAnalysis(session(6, "castle", finished_rows()))
        with pytest.raises(UnknownScenarioError):
            analysis.hlo_information(make_registry())

    def test_inconsistent_log(self):
        """A finished game whose first HLO is never built cannot be attributed"""
        rows = [r for r in finished_rows() if r["id"] != 3]
        analysis = GameAnalysis(session(7, "bridge", rows))
        with pytest.raises(ReconciliationFailureError):
            analysis.hlo_information(make_registry())

    def test_result_is_cached(self):
        analysis = GameAnalysis(finished_session())
        registry = make_registry()
        assert analysis.hlo_information(registry) is analysis.hlo_information(registry)


class TestAnalyzeSessions:
    """Tests for batch analysis"""

    def test_failures_do_not_stop_the_batch(self):
        sessions = [
            finished_session(),
            session(6, "castle", finished_rows()),
            session(2, "bridge", finished_rows()[:5]),
        ]
        batch = analyze_sessions(sessions, make_registry())

        assert [r.analysis.game_id for r in batch.results] == [1, 6, 2]
        assert [r.analysis.game_id for r in batch.failures] == [6]
        assert isinstance(batch.failures[0].error, UnknownScenarioError)
        assert list(batch.hlo_reports()) == [1]
        assert len(batch.analyses) == 3

    def test_config_from_registry(self):
        config = AnalysisConfig(count_destroyed_as_mistake=False)
        batch = analyze_sessions([finished_session()], make_registry(config))
        assert batch.analyses[0].num_mistakes == 1

    def test_mixed_timestamp_forms(self):
        """A session with some UTC-suffixed timestamps is analyzed like any other"""
        rows = finished_rows()
        rows[4]["timestamp"] = at(4).isoformat() + "Z"
        rows[8]["timestamp"] = at(10).isoformat() + "+00:00"
        batch = analyze_sessions(
            [session(1, "bridge", rows), session(2, "bridge", finished_rows())],
            make_registry(),
        )

        assert batch.failures == []
        reports = batch.hlo_reports()
        assert list(reports) == [1, 2]
        assert reports[1].total_duration_ms == reports[2].total_duration_ms == 9000

    def test_load_failures_are_kept(self, tmp_path):
        unreadable = [SessionLoadFailure(tmp_path / "bad.json", SessionFormatError("invalid JSON"))]
        batch = analyze_sessions([finished_session()], make_registry(), load_failures=unreadable)
        assert batch.load_failures == unreadable
        assert batch.failures == []
        assert len(batch.results) == 1
