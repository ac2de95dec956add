"""
World state reconstruction

Tracks how many times each block position is currently occupied. Counting
instead of keeping a set matters for one logging bug: a put-delete-put
sequence at one location has been recorded as put-put-delete. With a set
the block would be gone after replay; with counts it is still there
(1 + 1 - 1 = 1).
"""

from collections import Counter
from typing import Dict, Iterable, List, Optional

from .blocks import Block, Goal


class WorldStateTracker:
    """Occupancy count per block; counts never drop below zero"""

    def __init__(self, initial_blocks: Optional[Iterable[Block]] = None):
        self._counts: Counter = Counter()
        for block in initial_blocks or ():
            self.add(block)

    def add(self, block: Block) -> None:
        self._counts[block] += 1

    def remove(self, block: Block) -> None:
        """Decrement the count for block; removing an absent block is a no-op"""
        current = self._counts.get(block, 0)
        if current > 1:
            self._counts[block] = current - 1
        elif current == 1:
            del self._counts[block]

    def count(self, block: Block) -> int:
        return self._counts.get(block, 0)

    def contains(self, block: Block) -> bool:
        return self.count(block) >= 1

    def contains_all(self, goal: Goal) -> bool:
        """True iff every block of the goal is present"""
        return all(self._counts.get(block, 0) >= 1 for block in goal.blocks)

    def missing_from(self, goal: Goal) -> List[Block]:
        """Blocks of the goal that are not present, in coordinate order"""
        return sorted(block for block in goal.blocks if not self.contains(block))

    def present_blocks(self) -> List[Block]:
        return sorted(self._counts)

    def snapshot(self) -> Dict[Block, int]:
        return dict(self._counts)

    def __len__(self) -> int:
        return len(self._counts)
