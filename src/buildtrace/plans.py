"""
Scenario plans

A plan lists the goals of a scenario in the order they are built, plus the
blocks that exist before the game starts. Plans come in two formats that
both normalize to the same goal sequence:

- block plans, where every HLO is bracketed by "-starting" and "-finished"
  steps around its "!place-block" steps:

      (!floor-starting)
      (!place-block stone 1.0 66.0 3.0)
      (!floor-finished)

- high-level plans, where each "!build-" step opens a new HLO and the
  "!place-block-hidden" steps that follow it list its blocks:

      (!build-wall 2.0 66.0 2.0 ...)
      (!place-block-hidden stone 2.0 66.0 2.0)

The initial world is a CSV file with one "x,y,z" block per line.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import Dict, FrozenSet, Iterable, List, Optional, Tuple, Union

from .blocks import Block, Goal
from .config import AnalysisConfig, ScenarioConfig
from .errors import ConfigError, PlanFormatError, UnknownScenarioError
from .logging import get_logger

logger = get_logger()


@dataclass(frozen=True)
class Plan:
    """Ordered goals of a scenario and the world they are built into"""
    scenario: str
    goals: Tuple[Goal, ...]
    initial_blocks: FrozenSet[Block] = frozenset()

    @classmethod
    def from_block_lists(
        cls,
        scenario: str,
        block_lists: Iterable[Iterable[Block]],
        initial_blocks: Iterable[Block] = (),
    ) -> "Plan":
        goals = tuple(Goal.of(i, blocks) for i, blocks in enumerate(block_lists))
        return cls(scenario=scenario, goals=goals, initial_blocks=frozenset(initial_blocks))

    @property
    def last_goal(self) -> Goal:
        return self.goals[-1]

    def __len__(self) -> int:
        return len(self.goals)


def _read_lines(path: Union[str, Path]) -> List[str]:
    try:
        with open(path, "r", encoding="utf-8") as f:
            return f.read().splitlines()
    except OSError as e:
        raise PlanFormatError(f"Cannot read {path}: {e}")


def _block_from_step(step: str, path: Union[str, Path], line_no: int) -> Block:
    # "(!place-block <type> <x> <y> <z>)"
    fields = step.strip().rstrip(")").split()
    try:
        x, y, z = (int(float(value)) for value in fields[2:5])
    except (ValueError, OverflowError):
        raise PlanFormatError(f"{path}:{line_no}: cannot read block from '{step.strip()}'")
    return Block(x, y, z)


def parse_block_plan(lines: Iterable[str], source: str = "<block plan>") -> List[List[Block]]:
    """Goals of a plan written as primitive placement steps"""
    goals: List[List[Block]] = []
    current: List[Block] = []
    for line_no, step in enumerate(lines, start=1):
        if "-starting" in step:
            current = []
        elif "!place-block" in step:
            current.append(_block_from_step(step, source, line_no))
        elif "-finished" in step:
            goals.append(current)
    return goals


def parse_highlevel_plan(lines: Iterable[str], source: str = "<high-level plan>") -> List[List[Block]]:
    """Goals of a plan written as build steps expanding to hidden placements"""
    goals: List[List[Block]] = []
    current: List[Block] = []
    for line_no, step in enumerate(lines, start=1):
        if "!build-" in step:
            if current:
                goals.append(current)
            current = []
        elif "!place-block-hidden" in step:
            current.append(_block_from_step(step, source, line_no))
    goals.append(current)
    return goals


def read_block_plan(path: Union[str, Path]) -> List[List[Block]]:
    return parse_block_plan(_read_lines(path), str(path))


def read_highlevel_plan(path: Union[str, Path]) -> List[List[Block]]:
    return parse_highlevel_plan(_read_lines(path), str(path))


def read_initial_world(path: Union[str, Path]) -> FrozenSet[Block]:
    """Blocks present before the game starts"""
    blocks = set()
    for line_no, line in enumerate(_read_lines(path), start=1):
        if line.startswith("#") or not line.strip():
            continue
        fields = line.split(",")
        try:
            x, y, z = (int(value) for value in fields[:3])
        except ValueError:
            raise PlanFormatError(f"{path}:{line_no}: cannot read block from '{line}'")
        blocks.add(Block(x, y, z))
    return frozenset(blocks)


PLAN_READERS = {
    "block": read_block_plan,
    "highlevel": read_highlevel_plan,
}


def load_plan(scenario: ScenarioConfig) -> Plan:
    """Read the plan and initial world configured for a scenario"""
    if scenario.plan_path is None:
        raise ConfigError(f"No plan file configured for scenario '{scenario.name}'")

    block_lists = PLAN_READERS[scenario.plan_format](scenario.plan_path)
    if not block_lists or any(not blocks for blocks in block_lists):
        raise PlanFormatError(f"{scenario.plan_path}: plan contains an empty goal")

    initial: FrozenSet[Block] = frozenset()
    if scenario.world_path is not None:
        initial = read_initial_world(scenario.world_path)

    plan = Plan.from_block_lists(scenario.name, block_lists, initial)
    logger.debug(
        f"Loaded plan for {scenario.name}",
        goals=len(plan.goals),
        initial_blocks=len(plan.initial_blocks),
    )
    return plan


class ScenarioRegistry:
    """
    Resolves scenario names to plans and label mappings.

    Plans are read once per registry and reused for every session.
    """

    def __init__(self, config: AnalysisConfig):
        self.config = config
        self._plans: Dict[str, Plan] = {}

    @property
    def scenario_names(self) -> List[str]:
        return sorted(self.config.scenarios)

    def scenario_config(self, name: str) -> ScenarioConfig:
        scenario = self.config.scenario(name)
        if scenario is None:
            raise UnknownScenarioError(name, self.scenario_names)
        return scenario

    def register_plan(self, plan: Plan, labels: Optional[List[str]] = None) -> None:
        """Add an already built plan, e.g. one not stored on disk"""
        scenario = self.config.scenario(plan.scenario)
        if scenario is None:
            scenario = ScenarioConfig(name=plan.scenario)
            self.config.scenarios[plan.scenario] = scenario
        if labels is not None:
            scenario.labels = list(labels)
        self._plans[plan.scenario] = plan

    def load_plan(self, name: str) -> Plan:
        if name not in self._plans:
            self._plans[name] = load_plan(self.scenario_config(name))
        return self._plans[name]

    def labels(self, name: str) -> List[str]:
        return list(self.scenario_config(name).labels)
