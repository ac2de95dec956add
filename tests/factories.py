"""
Builders for game log events and sessions used across the tests
"""

import json
from datetime import datetime, timedelta

from buildtrace.blocks import Block
from buildtrace.events import (
    MISPLACED_BLOCK_PHRASE,
    MISSING_BLOCK_PHRASE,
    LogEvent,
    SessionLog,
)

T0 = datetime(2020, 5, 12, 14, 0, 0)


def at(seconds: float) -> datetime:
    return T0 + timedelta(seconds=seconds)


def row(event_id, seconds, message_type, message, direction="PassToClient"):
    return {
        "id": event_id,
        "timestamp": at(seconds).isoformat(),
        "direction": direction,
        "message_type": message_type,
        "message": message if isinstance(message, str) else json.dumps(message),
    }


def placed_row(event_id, seconds, x, y, z):
    return row(event_id, seconds, "BlockPlacedMessage", {"x": x, "y": y, "z": z, "type": "STONE"},
               direction="PassFromClient")


def destroyed_row(event_id, seconds, x, y, z):
    return row(event_id, seconds, "BlockDestroyedMessage", {"x": x, "y": y, "z": z},
               direction="PassFromClient")


def instruction_row(event_id, seconds, tree="(build wall)", new=True, text="Build a wall"):
    inner = json.dumps({"message": text, "tree": tree, "new": new})
    return row(event_id, seconds, "TextMessage", {"gameId": 1, "text": inner})


def text_row(event_id, seconds, text):
    return row(event_id, seconds, "TextMessage", {"gameId": 1, "text": text})


def misplaced_row(event_id, seconds):
    return text_row(event_id, seconds, MISPLACED_BLOCK_PHRASE)


def missing_row(event_id, seconds):
    return text_row(event_id, seconds, MISSING_BLOCK_PHRASE)


def finished_row(event_id, seconds):
    return row(event_id, seconds, "TextMessage",
               {"gameId": 1, "newGameState": "SuccessfullyFinished"})


def events(*rows):
    return [LogEvent.from_dict(r) for r in rows]


def placed(event_id, seconds, block: Block):
    return LogEvent.from_dict(placed_row(event_id, seconds, block.x, block.y, block.z))


def destroyed(event_id, seconds, block: Block):
    return LogEvent.from_dict(destroyed_row(event_id, seconds, block.x, block.y, block.z))


def instruction(event_id, seconds, **kwargs):
    return LogEvent.from_dict(instruction_row(event_id, seconds, **kwargs))


def misplaced(event_id, seconds):
    return LogEvent.from_dict(misplaced_row(event_id, seconds))


def missing(event_id, seconds):
    return LogEvent.from_dict(missing_row(event_id, seconds))


def finished(event_id, seconds):
    return LogEvent.from_dict(finished_row(event_id, seconds))


def session_dict(game_id, scenario, rows, architect="A", questionnaire=None):
    return {
        "game_id": game_id,
        "scenario": scenario,
        "architect": architect,
        "player_name": f"player{game_id}",
        "client_ip": "127.0.0.1",
        "questionnaire": questionnaire or [],
        "events": list(rows),
    }


def session(game_id, scenario, rows, **kwargs) -> SessionLog:
    return SessionLog.from_dict(session_dict(game_id, scenario, rows, **kwargs))
