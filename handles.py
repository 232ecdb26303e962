from __future__ import annotations

import itertools
import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import Iterator

from maze import Direction, Maze, Position, Shuffler

logger = logging.getLogger(__name__)

# Integer codes used by hosts that cannot pass a Direction member.
DIRECTION_CODES = (Direction.NORTH, Direction.SOUTH, Direction.EAST, Direction.WEST)

_registry_ids = itertools.count(1)


class InvalidHandleError(KeyError):
    """Raised for handles that were never issued by a registry or were already destroyed."""


@dataclass(frozen=True)
class MazeHandle:
    """
    Opaque token for a maze owned by a MazeRegistry.

    A slot may be reused after destroy; the generation counter tells the new
    maze apart from stale handles that still point at the old one.
    """

    owner: int
    slot: int
    generation: int


def coerce_direction(direction: Direction | int) -> Direction:
    if isinstance(direction, Direction):
        return direction
    if isinstance(direction, int) and not isinstance(direction, bool) and 0 <= direction < len(DIRECTION_CODES):
        return DIRECTION_CODES[direction]
    raise ValueError(f"Unknown direction code: {direction!r}")


class MazeRegistry:
    """
    Handle table for hosts that operate on mazes they do not construct.

    Every create must be matched by exactly one destroy. Calls on a single
    handle must be serialized by the caller; there is no locking here.
    """

    def __init__(self):
        self._id = next(_registry_ids)
        self._slots: list[Maze | None] = []
        self._generations: list[int] = []
        self._free: list[int] = []

    def __len__(self) -> int:
        return sum(1 for m in self._slots if m is not None)

    def create(self, width: int, height: int, rng: Shuffler | None = None) -> MazeHandle:
        maze = Maze(width, height, rng=rng)
        if self._free:
            slot = self._free.pop()
            self._slots[slot] = maze
        else:
            slot = len(self._slots)
            self._slots.append(maze)
            self._generations.append(0)
        handle = MazeHandle(owner=self._id, slot=slot, generation=self._generations[slot])
        logger.debug("Created %dx%d maze in slot %d (generation %d)", width, height, slot, handle.generation)
        return handle

    def destroy(self, handle: MazeHandle) -> None:
        self._resolve(handle)
        self._slots[handle.slot] = None
        self._generations[handle.slot] += 1
        self._free.append(handle.slot)
        logger.debug("Destroyed maze in slot %d", handle.slot)

    def player_position(self, handle: MazeHandle) -> Position:
        return self._resolve(handle).player

    def end_position(self, handle: MazeHandle) -> Position:
        return self._resolve(handle).end

    def try_move(self, handle: MazeHandle, direction: Direction | int) -> bool:
        maze = self._resolve(handle)
        return maze.try_move(coerce_direction(direction))

    def is_at_end(self, handle: MazeHandle) -> bool:
        return self._resolve(handle).is_at_end()

    @contextmanager
    def open(self, width: int, height: int, rng: Shuffler | None = None) -> Iterator[MazeHandle]:
        handle = self.create(width, height, rng=rng)
        try:
            yield handle
        finally:
            self.destroy(handle)

    def _resolve(self, handle: MazeHandle) -> Maze:
        if (
            not isinstance(handle, MazeHandle)
            or handle.owner != self._id
            or not 0 <= handle.slot < len(self._slots)
            or self._generations[handle.slot] != handle.generation
            or self._slots[handle.slot] is None
        ):
            logger.warning("Rejected stale or unknown maze handle: %r", handle)
            raise InvalidHandleError(handle)
        return self._slots[handle.slot]
