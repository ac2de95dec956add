"""
Shared utilities for BuildTrace CLI commands.
"""

import sys
from typing import List, Tuple

from ..config import AnalysisConfig, load_config
from ..errors import BuildTraceError
from ..events import SessionLoadFailure, SessionLog, load_session, load_sessions
from ..plans import ScenarioRegistry


def load_config_or_exit(args) -> AnalysisConfig:
    """Load the analysis config named on the command line or exit."""
    try:
        return load_config(getattr(args, "config", None))
    except BuildTraceError as e:
        print(f"Error: {e}")
        sys.exit(1)


def get_registry(config: AnalysisConfig) -> ScenarioRegistry:
    return ScenarioRegistry(config)


def load_session_or_exit(path: str) -> SessionLog:
    try:
        return load_session(path)
    except FileNotFoundError:
        print(f"Error: session file not found: {path}")
        sys.exit(1)
    except BuildTraceError as e:
        print(f"Error: {e}")
        sys.exit(1)


def load_sessions_or_exit(directory: str) -> Tuple[List[SessionLog], List[SessionLoadFailure]]:
    """Load all sessions of a directory; unreadable files are returned as failures."""
    failures: List[SessionLoadFailure] = []
    try:
        sessions = load_sessions(directory, failures)
    except BuildTraceError as e:
        print(f"Error: {e}")
        sys.exit(1)
    return sessions, failures


def format_ms(ms: int) -> str:
    """Format milliseconds for display."""
    if ms >= 60000:
        return f"{ms // 60000}m {(ms % 60000) / 1000:.1f}s"
    return f"{ms / 1000:.1f}s"
