"""
Markdown and CSV reports

Formats per-game and aggregate analyses for reading, and writes the CSV
table used for statistical analysis (one row per game, fixed HLO columns,
"NA" where a value does not exist).
"""

from pathlib import Path
from typing import Dict, List, Optional, Union

from .aggregate import AggregateInformation
from .analysis import BatchResult, GameAnalysis, SessionResult
from .attribution import AttributionReport
from .config import AnalysisConfig
from .logging import get_logger

logger = get_logger()

NA = "NA"


def _or_na(value) -> str:
    return NA if value is None else str(value)


def _csv_value(value, separator: str) -> str:
    text = _or_na(value)
    if separator in text or "\n" in text or '"' in text:
        text = '"' + text.replace('"', '""') + '"'
    return text


def game_markdown(
    analysis: GameAnalysis,
    hlo: Optional[AttributionReport] = None,
    hlo_error: Optional[Exception] = None,
) -> str:
    """Markdown report for one game"""
    success = analysis.was_successful
    lines = [
        "# Overview",
        f" - Connection from: {analysis.session.client_ip}",
        f" - Player name: {analysis.session.player_name}",
        f" - Scenario: {analysis.scenario}",
        f" - Architect: {analysis.architect}",
        f" - Successful: {str(success).lower()}",
        "",
        "## Times",
        f" - Start Time: {_or_na(analysis.start_time)}",
        f" - Success Time: {analysis.success_time if success else 'not applicable'}",
        f" - End Time: {_or_na(analysis.end_time)}",
        " - Experiment Duration: "
        + (f"{analysis.time_to_success} seconds" if success else "not applicable"),
        f" - Total time logged in: {analysis.total_time} seconds",
        "",
        "## Blocks",
        f" - Number of blocks placed: {analysis.num_blocks_placed}",
        f" - Number of blocks destroyed: {analysis.num_blocks_destroyed}",
        f" - Number of mistakes: {analysis.num_mistakes}",
        "",
        "# Duration per block",
    ]
    lines.extend(f" - {ms}ms" for ms in analysis.block_placed_durations())

    if success:
        lines.extend(["", "# Durations per High-level object"])
        if hlo is not None:
            lines.extend(f" - {d.label} : {d.duration_ms}ms" for d in hlo.durations)
        elif hlo_error is not None:
            lines.append(f" - not available: {hlo_error}")

        lines.extend(["", "# Durations per Instruction"])
        lines.extend(f" - {tree} : {ms}ms" for tree, ms in analysis.durations_per_instruction())

    return "\n".join(lines) + "\n"


def aggregate_markdown(
    info: AggregateInformation,
    hlo_reports: Optional[List[AttributionReport]] = None,
) -> str:
    """Markdown report for a group of games, with HLO averages when reports are given"""
    lines = [
        "# Overview",
        f" - Number of games: {info.num_games}",
        f" - Average game duration: {info.average_game_duration():.2f}",
        f" - Fraction of successful games: {info.fraction_successful():.2f}",
        f" - Fraction of players making a mistake: {info.fraction_with_mistakes():.2f}",
        f" - Average number of mistakes: {info.average_mistakes():.2f}",
        f" - Average number of blocks placed: {info.average_blocks_placed():.2f}",
        f" - Average number of blocks destroyed: {info.average_blocks_destroyed():.2f}",
        "",
        "# Likert Questions",
        "",
        "| Question | Mean | Standard Deviation | Median | Minimum | Maximum |",
        "| -------- | ----:| ------------------:| ------:| -------:| -------:|",
    ]
    for answer in info.answer_distribution():
        lines.append(
            f"| {answer.question} | {answer.mean:.2f} | {answer.std_deviation:.2f} "
            f"| {answer.median} | {answer.minimum} | {answer.maximum} |"
        )

    lines.extend(["", "# Free-form Questions"])
    for question, answers in info.free_text_responses().items():
        lines.append(f"### {question}")
        lines.extend(f" - {answer}" for answer in answers)

    if hlo_reports:
        lines.extend(["", "# Average durations per High-level object"])
        for label, ms in info.average_hlo_durations(hlo_reports).items():
            lines.append(f" - {label} : {ms:.0f}ms")

    return "\n".join(lines) + "\n"


def failures_markdown(batch: BatchResult) -> str:
    """Markdown list of the sessions that could not be analyzed"""
    lines = ["# Failed sessions"]
    lines.extend(f" - {failure}" for failure in batch.load_failures)
    lines.extend(
        f" - game {result.analysis.game_id}: {result.error}" for result in batch.failures
    )
    return "\n".join(lines) + "\n"


def csv_header(questions: List[str], config: AnalysisConfig) -> str:
    sep = config.csv_separator
    lines = [f"# Question{i}: {q}" for i, q in enumerate(questions)]
    columns = [
        "gameid", "scenario", "architect", "wasSuccessful", "timeToSuccess",
        "numBlocksPlaced", "numBlocksDestroyed", "numMistakes",
    ]
    columns += [f"HLO{i}" for i in range(config.hlo_columns)]
    columns += [f"HLOmistakes{i}" for i in range(config.hlo_columns)]
    columns += [f"Question{i}" for i in range(len(questions))]
    lines.append(sep.join(columns))
    return "\n".join(lines) + "\n"


def csv_line(result: SessionResult, questions: List[str], config: AnalysisConfig) -> str:
    sep = config.csv_separator
    analysis = result.analysis
    values = [
        analysis.game_id,
        analysis.scenario,
        analysis.architect,
        str(analysis.was_successful).lower(),
        analysis.time_to_success,
        analysis.num_blocks_placed,
        analysis.num_blocks_destroyed,
        analysis.num_mistakes,
    ]

    durations = list(result.hlo.durations) if result.hlo is not None else []
    values += [
        durations[i].duration_ms if i < len(durations) else None
        for i in range(config.hlo_columns)
    ]
    values += [
        durations[i].mistakes if i < len(durations) else None
        for i in range(config.hlo_columns)
    ]

    answers = dict(analysis.numeric_answers)
    values += [answers.get(q) for q in questions]
    return sep.join(_csv_value(v, sep) for v in values) + "\n"


def batch_csv(batch: BatchResult, config: AnalysisConfig) -> str:
    """CSV table with one row per game"""
    questions = sorted({q for a in batch.analyses for q, _ in a.numeric_answers})
    rows = [csv_line(result, questions, config) for result in batch.results]
    return csv_header(questions, config) + "".join(rows)


def _write(path: Path, text: str) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    with open(path, "w", encoding="utf-8") as f:
        f.write(text)


def write_experiment_reports(
    batch: BatchResult,
    output_dir: Union[str, Path],
    config: AnalysisConfig,
) -> List[Path]:
    """
    Write the full set of reports for an experiment.

    Layout:
        per_game/game-<id>.md
        per_scenario/scenario-details-<scenario>.md
        per_architect/architect-details-<architect>.md
        <scenario>-<architect>.md
        failures.md (only when some sessions failed)
        games.csv
    """
    output_dir = Path(output_dir)
    written: List[Path] = []

    for result in batch.results:
        path = output_dir / "per_game" / f"game-{result.analysis.game_id}.md"
        _write(path, game_markdown(result.analysis, result.hlo, result.error))
        written.append(path)

    scenarios = sorted({a.scenario for a in batch.analyses})
    architects = sorted({a.architect for a in batch.analyses if a.architect is not None})

    groups: Dict[Path, List[GameAnalysis]] = {}
    for scenario in scenarios:
        groups[output_dir / "per_scenario" / f"scenario-details-{scenario}.md"] = [
            a for a in batch.analyses if a.scenario == scenario
        ]
    for architect in architects:
        groups[output_dir / "per_architect" / f"architect-details-{architect}.md"] = [
            a for a in batch.analyses if a.architect == architect
        ]
    for scenario in scenarios:
        for architect in architects:
            groups[output_dir / f"{scenario}-{architect}.md"] = [
                a for a in batch.analyses
                if a.scenario == scenario and a.architect == architect
            ]

    reports = batch.hlo_reports()
    for path, games in groups.items():
        group_reports = [reports[g.game_id] for g in games if g.game_id in reports]
        _write(path, aggregate_markdown(AggregateInformation(games), group_reports))
        written.append(path)

    if batch.failures or batch.load_failures:
        failures_path = output_dir / "failures.md"
        _write(failures_path, failures_markdown(batch))
        written.append(failures_path)

    csv_path = output_dir / "games.csv"
    _write(csv_path, batch_csv(batch, config))
    written.append(csv_path)

    logger.info(f"Wrote {len(written)} report files", output_dir=str(output_dir))
    return written
