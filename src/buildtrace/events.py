"""
Game log events and session files

A session file is a JSON export of one game from the experiment database:
the game's metadata, the questionnaire answers and every row of the game
log. Rows keep the shape of the log table:

    {"id": 17, "timestamp": "2020-05-12T14:03:11.250",
     "direction": "PassToClient", "message_type": "TextMessage",
     "message": "{\\"text\\": \\"...\\"}"}

Events are ordered by their row id on load. That is the order the log
store recorded them in, and the order segmentation replays them in.
"""

import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple, Union

from .blocks import Block, decode_block
from .errors import BuildTraceError, SessionFormatError
from .logging import get_logger

logger = get_logger()

SUCCESS_STATE = "SuccessfullyFinished"

# Correction messages sent by the architect
MISPLACED_BLOCK_PHRASE = "Not there! please remove that block again"
MISSING_BLOCK_PHRASE = "Please add this block again."


class EventType(Enum):
    """Message types found in the game log"""
    BLOCK_PLACED = "BlockPlacedMessage"
    BLOCK_DESTROYED = "BlockDestroyedMessage"
    TEXT_MESSAGE = "TextMessage"
    GAME_FINISHED = "SuccessfullyFinished"
    OTHER = "other"

    @classmethod
    def from_message_type(cls, message_type: str) -> "EventType":
        for member in cls:
            if member.value == message_type:
                return member
        return cls.OTHER


class MessageKind(Enum):
    """What a text message means for the analysis"""
    INSTRUCTION = "instruction"
    MISPLACED_BLOCK = "misplaced_block"
    MISSING_BLOCK = "missing_block"
    OTHER = "other"


@dataclass(frozen=True)
class Instruction:
    """A structured instruction generated by the architect"""
    tree: str                 # Derivation tree of the generated sentence
    text: str = ""
    is_new: bool = True       # False for repeated or corrective instructions


def _load_json_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (TypeError, ValueError):
        return None
    return value if isinstance(value, dict) else None


def parse_instruction(message: str) -> Optional[Instruction]:
    """
    Extract the instruction from a text message, if it carries one.

    Structured instructions are JSON embedded in the "text" field and have
    a derivation tree. Welcome and status messages are plain text.
    """
    payload = _load_json_object(message)
    if payload is None:
        return None
    text = payload.get("text")
    if not isinstance(text, str) or not text.lstrip().startswith("{"):
        return None
    inner = _load_json_object(text)
    if inner is None or "tree" not in inner:
        return None
    return Instruction(
        tree=str(inner["tree"]),
        text=str(inner.get("message", "")),
        is_new=bool(inner.get("new", True)),
    )


def classify_message(
    message: str,
    misplaced_phrase: str = MISPLACED_BLOCK_PHRASE,
    missing_phrase: str = MISSING_BLOCK_PHRASE,
) -> MessageKind:
    """Classify a text message; corrections take precedence over instructions"""
    if misplaced_phrase and misplaced_phrase in message:
        return MessageKind.MISPLACED_BLOCK
    if missing_phrase and missing_phrase in message:
        return MessageKind.MISSING_BLOCK
    if parse_instruction(message) is not None:
        return MessageKind.INSTRUCTION
    return MessageKind.OTHER


def _as_naive_utc(value: datetime) -> datetime:
    if value.tzinfo is None:
        return value
    return value.astimezone(timezone.utc).replace(tzinfo=None)


def parse_timestamp(value: Union[str, datetime]) -> datetime:
    """
    Parse a log timestamp into a naive datetime.

    Timestamps without an offset are taken to be UTC. Timestamps
    with an offset ("Z", "+02:00") are converted to UTC and the offset dropped,
    so every timestamp of a session can be compared with every other.
    """
    if isinstance(value, datetime):
        return _as_naive_utc(value)
    if not isinstance(value, str):
        raise SessionFormatError(f"Invalid timestamp: {value!r}")
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return _as_naive_utc(datetime.fromisoformat(text))
    except ValueError:
        raise SessionFormatError(f"Invalid timestamp: {value!r}")


def _event_id(data: Dict[str, Any], default_id: int) -> int:
    value = data.get("id", default_id)
    try:
        return int(value)
    except (TypeError, ValueError, OverflowError):
        raise SessionFormatError(f"Invalid event id {value!r} in row: {data!r}")


@dataclass(frozen=True)
class LogEvent:
    """
    One row of a game log.

    For block events `block` holds the decoded position; `missing_axes`
    names coordinates that were absent from the payload and defaulted to 0.
    """
    event_id: int
    timestamp: datetime
    event_type: EventType
    message: str = ""
    direction: str = ""
    message_type: str = ""
    block: Optional[Block] = None
    missing_axes: Tuple[str, ...] = ()
    instruction: Optional[Instruction] = field(default=None, compare=False)

    @property
    def is_block_event(self) -> bool:
        return self.event_type in (EventType.BLOCK_PLACED, EventType.BLOCK_DESTROYED)

    @property
    def is_success_marker(self) -> bool:
        return self.event_type == EventType.GAME_FINISHED

    @property
    def is_malformed(self) -> bool:
        return bool(self.missing_axes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.event_id,
            "timestamp": self.timestamp.isoformat(),
            "direction": self.direction,
            "message_type": self.message_type or self.event_type.value,
            "message": self.message,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any], default_id: int = 0) -> "LogEvent":
        if "timestamp" not in data:
            raise SessionFormatError(f"Log row without timestamp: {data!r}")
        timestamp = parse_timestamp(data["timestamp"])
        message_type = str(data.get("message_type", ""))
        message = data.get("message", "")
        if not isinstance(message, str):
            message = json.dumps(message)
        event_type = EventType.from_message_type(message_type)

        payload = _load_json_object(message)
        if payload is not None and payload.get("newGameState") == SUCCESS_STATE:
            event_type = EventType.GAME_FINISHED

        block = None
        missing: Tuple[str, ...] = ()
        instruction = None
        if event_type in (EventType.BLOCK_PLACED, EventType.BLOCK_DESTROYED):
            block, missing = decode_block(payload or {})
            for axis in missing:
                logger.error(
                    "Missing %s value for block at %s: %s", axis, timestamp.isoformat(), message
                )
        elif event_type == EventType.TEXT_MESSAGE:
            instruction = parse_instruction(message)

        return cls(
            event_id=_event_id(data, default_id),
            timestamp=timestamp,
            event_type=event_type,
            message=message,
            direction=str(data.get("direction", "")),
            message_type=message_type,
            block=block,
            missing_axes=missing,
            instruction=instruction,
        )


@dataclass(frozen=True)
class QuestionAnswer:
    """A questionnaire answer given after the game"""
    question: str
    answer: str

    @property
    def is_numeric(self) -> bool:
        return self.answer.strip().isdigit()

    def to_dict(self) -> Dict[str, str]:
        return {"question": self.question, "answer": self.answer}


@dataclass
class SessionLog:
    """One recorded game: metadata plus the ordered event log"""
    game_id: int
    scenario: str
    architect: Optional[str] = None
    player_name: str = ""
    client_ip: str = ""
    events: List[LogEvent] = field(default_factory=list)
    questionnaire: List[QuestionAnswer] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "game_id": self.game_id,
            "scenario": self.scenario,
            "architect": self.architect,
            "player_name": self.player_name,
            "client_ip": self.client_ip,
            "questionnaire": [qa.to_dict() for qa in self.questionnaire],
            "events": [event.to_dict() for event in self.events],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "SessionLog":
        for key in ("game_id", "scenario"):
            if key not in data:
                raise SessionFormatError(f"Session is missing '{key}'")
        try:
            game_id = int(data["game_id"])
        except (TypeError, ValueError):
            raise SessionFormatError(f"Invalid game id: {data['game_id']!r}")

        rows = data.get("events", [])
        if not isinstance(rows, list) or not all(isinstance(row, dict) for row in rows):
            raise SessionFormatError("Session 'events' must be a list of objects")

        events = [LogEvent.from_dict(row, default_id=i) for i, row in enumerate(rows)]
        # sorted() is stable, rows without ids keep their file order
        events = sorted(events, key=lambda e: e.event_id)

        answers = data.get("questionnaire", [])
        if not isinstance(answers, list) or not all(
            isinstance(qa, dict) and "question" in qa for qa in answers
        ):
            raise SessionFormatError("Session 'questionnaire' must be a list of questions")
        questionnaire = [
            QuestionAnswer(question=str(qa["question"]), answer=str(qa.get("answer", "")))
            for qa in answers
        ]
        return cls(
            game_id=game_id,
            scenario=str(data["scenario"]),
            architect=data.get("architect"),
            player_name=data.get("player_name", ""),
            client_ip=data.get("client_ip", ""),
            events=events,
            questionnaire=questionnaire,
        )


@dataclass
class SessionLoadFailure:
    """A session file that could not be read"""
    path: Path
    error: BuildTraceError

    def __str__(self) -> str:
        return f"{self.path.name}: {self.error}"


def load_session(path: Union[str, Path]) -> SessionLog:
    """Load one session from a JSON file"""
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = json.load(f)
    except json.JSONDecodeError as e:
        raise SessionFormatError(f"{path}: invalid JSON: {e}")
    if not isinstance(data, dict):
        raise SessionFormatError(f"{path}: expected a JSON object")
    return SessionLog.from_dict(data)


def load_sessions(
    directory: Union[str, Path],
    failures: Optional[List[SessionLoadFailure]] = None,
) -> List[SessionLog]:
    """
    Load every *.json session in a directory, ordered by game id.

    Args:
        directory: Directory holding the session files
        failures: If given, files that cannot be loaded are logged, appended
            here and skipped. Otherwise the first bad file raises.

    Raises:
        SessionFormatError: If directory is not a directory, or a file is
            invalid and no failures list was given
    """
    directory = Path(directory)
    if not directory.is_dir():
        raise SessionFormatError(f"Not a directory: {directory}")

    sessions = []
    for path in sorted(directory.glob("*.json")):
        try:
            sessions.append(load_session(path))
        except BuildTraceError as e:
            if failures is None:
                raise
            logger.error(f"Skipping session file {path.name}: {e}", error_type=type(e).__name__)
            failures.append(SessionLoadFailure(path=path, error=e))
    return sorted(sessions, key=lambda s: s.game_id)
