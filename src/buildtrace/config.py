"""
Analysis configuration

The configuration is a JSON file naming, per scenario, the plan file, the
initial world and the HLO labels, plus the phrases used to recognize
architect corrections:

    {
      "scenarios": {
        "house": {"plan_path": "plans/house-highlevel.plan",
                  "plan_format": "highlevel",
                  "world_path": "worlds/house.csv"},
        "bridge": {"plan_path": "plans/bridge-block.plan",
                   "plan_format": "block",
                   "world_path": "worlds/bridge.csv"}
      },
      "count_destroyed_as_mistake": true
    }

Relative paths are resolved against the directory of the config file.
Labels default to the built-in mapping for house and bridge.
"""

import json
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from .errors import ConfigError
from .events import MISPLACED_BLOCK_PHRASE, MISSING_BLOCK_PHRASE

CONFIG_ENV = "BUILDTRACE_CONFIG"

PLAN_FORMATS = ("block", "highlevel")

# HLO labels per scenario, one per goal of the plan
DEFAULT_LABELS: Dict[str, List[str]] = {
    "house": ["wall"] * 4 + ["row"] * 4,
    "bridge": ["floor", "railing", "railing"],
}

DEFAULT_PLAN_FORMATS: Dict[str, str] = {
    "house": "highlevel",
    "bridge": "block",
}


@dataclass
class ScenarioConfig:
    """Where the plan of a scenario comes from and how its HLOs are named"""
    name: str
    plan_path: Optional[Path] = None
    plan_format: str = "block"
    world_path: Optional[Path] = None
    labels: List[str] = field(default_factory=list)

    def __post_init__(self):
        if self.plan_format not in PLAN_FORMATS:
            raise ConfigError(
                f"Unknown plan format '{self.plan_format}' for scenario '{self.name}' "
                f"(expected one of: {', '.join(PLAN_FORMATS)})"
            )

    def to_dict(self) -> Dict[str, Any]:
        return {
            "plan_path": str(self.plan_path) if self.plan_path else None,
            "plan_format": self.plan_format,
            "world_path": str(self.world_path) if self.world_path else None,
            "labels": list(self.labels),
        }

    @classmethod
    def from_dict(
        cls,
        name: str,
        data: Dict[str, Any],
        base_dir: Optional[Path] = None,
    ) -> "ScenarioConfig":
        def resolve(value: Optional[str]) -> Optional[Path]:
            if not value:
                return None
            path = Path(value)
            if base_dir is not None and not path.is_absolute():
                path = base_dir / path
            return path

        labels = data.get("labels") or DEFAULT_LABELS.get(name, [])
        if not isinstance(labels, list) or not all(isinstance(l, str) for l in labels):
            raise ConfigError(f"Labels for scenario '{name}' must be a list of strings")

        return cls(
            name=name,
            plan_path=resolve(data.get("plan_path")),
            plan_format=data.get("plan_format", DEFAULT_PLAN_FORMATS.get(name, "block")),
            world_path=resolve(data.get("world_path")),
            labels=list(labels),
        )


@dataclass
class AnalysisConfig:
    """Configuration for analyzing a set of recorded games"""
    scenarios: Dict[str, ScenarioConfig] = field(default_factory=dict)
    count_destroyed_as_mistake: bool = True
    misplaced_phrase: str = MISPLACED_BLOCK_PHRASE
    missing_phrase: str = MISSING_BLOCK_PHRASE
    hlo_columns: int = 8
    csv_separator: str = ","
    output_dir: Path = Path("analysis")

    def scenario(self, name: str) -> Optional[ScenarioConfig]:
        return self.scenarios.get(name)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "scenarios": {name: sc.to_dict() for name, sc in self.scenarios.items()},
            "count_destroyed_as_mistake": self.count_destroyed_as_mistake,
            "misplaced_phrase": self.misplaced_phrase,
            "missing_phrase": self.missing_phrase,
            "hlo_columns": self.hlo_columns,
            "csv_separator": self.csv_separator,
            "output_dir": str(self.output_dir),
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], base_dir: Optional[Path] = None) -> "AnalysisConfig":
        scenarios_data = data.get("scenarios", {})
        if not isinstance(scenarios_data, dict):
            raise ConfigError("'scenarios' must be an object keyed by scenario name")

        scenarios = {
            name: ScenarioConfig.from_dict(name, sc or {}, base_dir)
            for name, sc in scenarios_data.items()
        }
        output_dir = Path(data.get("output_dir", "analysis"))
        if base_dir is not None and not output_dir.is_absolute():
            output_dir = base_dir / output_dir

        hlo_columns = data.get("hlo_columns", 8)
        if not isinstance(hlo_columns, int) or hlo_columns < 0:
            raise ConfigError(f"'hlo_columns' must be a non-negative integer, got {hlo_columns!r}")

        return cls(
            scenarios=scenarios,
            count_destroyed_as_mistake=bool(data.get("count_destroyed_as_mistake", True)),
            misplaced_phrase=data.get("misplaced_phrase", MISPLACED_BLOCK_PHRASE),
            missing_phrase=data.get("missing_phrase", MISSING_BLOCK_PHRASE),
            hlo_columns=hlo_columns,
            csv_separator=data.get("csv_separator", ","),
            output_dir=output_dir,
        )


def default_config() -> AnalysisConfig:
    """Configuration with the built-in scenarios and no plan files"""
    return AnalysisConfig(scenarios={
        name: ScenarioConfig.from_dict(name, {}) for name in DEFAULT_LABELS
    })


def load_config(path: Optional[Union[str, Path]] = None) -> AnalysisConfig:
    """
    Load the analysis configuration.

    Args:
        path: Config file. If None, BUILDTRACE_CONFIG is consulted and the
            built-in defaults are used when it is unset.

    Raises:
        ConfigError: If the file is missing or invalid
    """
    if path is None:
        env_path = os.environ.get(CONFIG_ENV)
        if not env_path:
            return default_config()
        path = env_path

    path = Path(path)
    if not path.is_file():
        raise ConfigError(f"Config file not found: {path}")
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise ConfigError(f"{path}: invalid JSON: {e}")
    if not isinstance(data, dict):
        raise ConfigError(f"{path}: expected a JSON object")
    return AnalysisConfig.from_dict(data, base_dir=path.parent.resolve())
