"""
Statistics across games

Summarizes a group of analyzed games, e.g. all games of one scenario or
one architect: success rate, durations, mistakes, block counts, the
distribution of numeric questionnaire answers and the free-text answers.
"""

from dataclasses import dataclass
from typing import Any, Dict, List
import statistics

from .analysis import GameAnalysis
from .attribution import AttributionReport


@dataclass
class AnswerStats:
    """Distribution of the numeric answers to one question"""
    question: str
    mean: float = 0.0          # Geometric mean
    std_deviation: float = 0.0
    median: int = 0
    minimum: int = 0
    maximum: int = 0
    count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "question": self.question,
            "mean": round(self.mean, 2),
            "std_deviation": round(self.std_deviation, 2),
            "median": self.median,
            "minimum": self.minimum,
            "maximum": self.maximum,
            "count": self.count,
        }


def _mean(values: List[float]) -> float:
    return statistics.mean(values) if values else 0.0


def _geometric_mean(values: List[int]) -> float:
    # Likert answers start at 1; a 0 answer makes the geometric mean 0
    if any(v <= 0 for v in values):
        return 0.0
    return statistics.geometric_mean(values)


class AggregateInformation:
    """Statistics over a list of game analyses"""

    def __init__(self, games: List[GameAnalysis]):
        self.games = games

    @property
    def num_games(self) -> int:
        return len(self.games)

    def _successful(self) -> List[GameAnalysis]:
        return [g for g in self.games if g.was_successful]

    def _fraction(self, count: int) -> float:
        return count / self.num_games if self.games else 0.0

    def average_game_duration(self) -> float:
        """Mean seconds to success over successful games"""
        return _mean([g.time_to_success for g in self._successful()])

    def fraction_successful(self) -> float:
        return self._fraction(len(self._successful()))

    def average_mistakes(self) -> float:
        return _mean([g.num_mistakes for g in self.games])

    def average_blocks_placed(self) -> float:
        return _mean([g.num_blocks_placed for g in self.games])

    def average_blocks_destroyed(self) -> float:
        return _mean([g.num_blocks_destroyed for g in self.games])

    def fraction_with_mistakes(self) -> float:
        """Fraction of players that made at least one mistake"""
        return self._fraction(sum(1 for g in self.games if g.num_mistakes > 0))

    def mistake_distribution(self) -> Dict[int, int]:
        """Number of games per mistake count"""
        distribution: Dict[int, int] = {}
        for game in self.games:
            distribution[game.num_mistakes] = distribution.get(game.num_mistakes, 0) + 1
        return dict(sorted(distribution.items()))

    def answer_distribution(self) -> List[AnswerStats]:
        collected: Dict[str, List[int]] = {}
        for game in self.games:
            for question, answer in game.numeric_answers:
                collected.setdefault(question, []).append(answer)

        distribution = []
        for question in sorted(collected):
            values = collected[question]
            distribution.append(AnswerStats(
                question=question,
                mean=_geometric_mean(values),
                std_deviation=statistics.stdev(values) if len(values) > 1 else 0.0,
                median=int(statistics.median(values)),
                minimum=min(values),
                maximum=max(values),
                count=len(values),
            ))
        return distribution

    def free_text_responses(self) -> Dict[str, List[str]]:
        responses: Dict[str, List[str]] = {}
        for game in self.games:
            for question, answer in game.freeform_answers:
                answers = responses.setdefault(question, [])
                if answer:
                    answers.append(answer)
        return responses

    def average_hlo_durations(self, reports: List[AttributionReport]) -> Dict[str, float]:
        """Mean duration in ms per HLO label"""
        collected: Dict[str, List[int]] = {}
        for report in reports:
            for entry in report.durations:
                collected.setdefault(entry.label, []).append(entry.duration_ms)
        return {label: _mean(values) for label, values in collected.items()}

    def to_dict(self) -> Dict[str, Any]:
        return {
            "num_games": self.num_games,
            "average_game_duration": round(self.average_game_duration(), 2),
            "fraction_successful": round(self.fraction_successful(), 4),
            "fraction_with_mistakes": round(self.fraction_with_mistakes(), 4),
            "average_mistakes": round(self.average_mistakes(), 2),
            "average_blocks_placed": round(self.average_blocks_placed(), 2),
            "average_blocks_destroyed": round(self.average_blocks_destroyed(), 2),
            "mistake_distribution": self.mistake_distribution(),
        }
