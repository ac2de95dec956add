"""
Block and Goal value types

A Block is identified by its coordinates only; a Goal is the exact set of
blocks that must be present at the same time for one high-level object
(a wall, a row, the floor, a railing) to count as built.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, FrozenSet, Iterable, Iterator, List, Tuple

from .errors import MalformedEventPayload

AXES = ("x", "y", "z")


@dataclass(frozen=True, order=True)
class Block:
    """A block position in the world"""
    x: int
    y: int
    z: int

    def to_dict(self) -> Dict[str, int]:
        return {"x": self.x, "y": self.y, "z": self.z}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Block":
        return decode_block(data)[0]

    def __str__(self) -> str:
        return f"({self.x}, {self.y}, {self.z})"


def decode_block(data: Dict[str, Any]) -> Tuple[Block, Tuple[str, ...]]:
    """
    Read block coordinates from an event payload.

    Missing axes default to 0; old game logs were written before all three
    coordinates were recorded. Returns the block together with the names of
    the axes that were missing so callers can report the anomaly.
    """
    values = []
    missing: List[str] = []
    for axis in AXES:
        if axis in data and data[axis] is not None:
            try:
                values.append(int(float(data[axis])))
            except (TypeError, ValueError, OverflowError):
                raise MalformedEventPayload(
                    f"Coordinate {axis}={data[axis]!r} is not a valid coordinate"
                )
        else:
            values.append(0)
            missing.append(axis)
    return Block(*values), tuple(missing)


@dataclass(frozen=True)
class Goal:
    """
    The completion criterion of one HLO.

    The goal is met when every block in `blocks` is present. Goals compare by
    their index and block set.
    """
    index: int
    blocks: FrozenSet[Block] = field(default_factory=frozenset)

    @classmethod
    def of(cls, index: int, blocks: Iterable[Block]) -> "Goal":
        return cls(index=index, blocks=frozenset(blocks))

    def __len__(self) -> int:
        return len(self.blocks)

    def __iter__(self) -> Iterator[Block]:
        return iter(sorted(self.blocks))

    def __contains__(self, block: object) -> bool:
        return block in self.blocks
