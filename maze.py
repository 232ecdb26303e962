from __future__ import annotations

import logging
import random
from dataclasses import dataclass
from enum import Enum
from typing import Iterator, Protocol

logger = logging.getLogger(__name__)


class Direction(Enum):
    NORTH = (0, -1)
    SOUTH = (0, 1)
    EAST = (1, 0)
    WEST = (-1, 0)

    @property
    def delta(self) -> tuple[int, int]:
        return self.value

    @property
    def opposite(self) -> "Direction":
        return {
            Direction.NORTH: Direction.SOUTH,
            Direction.SOUTH: Direction.NORTH,
            Direction.EAST: Direction.WEST,
            Direction.WEST: Direction.EAST,
        }[self]


@dataclass(frozen=True)
class Position:
    x: int
    y: int


Passage = tuple[Position, Position]


class Shuffler(Protocol):
    def shuffle(self, x: list) -> None: ...


class Maze:
    """
    A perfect maze over a width x height grid.

    Passages are carved by `carve_passages` before the constructor returns, so
    every cell is reachable from `start` along exactly one path. After that the
    only mutable field is `player`, which moves through `try_move`.
    """

    def __init__(self, width: int, height: int, rng: Shuffler | None = None):
        if width < 1 or height < 1:
            raise ValueError(f"Maze dimensions must be positive, got {width}x{height}")

        self._width = width
        self._height = height
        self._start = Position(0, 0)
        self._end = Position(width - 1, height - 1)
        self.visited: set[Position] = set()
        self._connections: set[Passage] = set()
        self._player = self._start

        carve_passages(self, rng if rng is not None else random.Random())
        self._connections = frozenset(self._connections)

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def start(self) -> Position:
        return self._start

    @property
    def end(self) -> Position:
        return self._end

    @property
    def player(self) -> Position:
        return self._player

    @property
    def connections(self) -> frozenset[Passage]:
        return self._connections

    @property
    def passage_count(self) -> int:
        return len(self._connections) // 2

    # Grid model

    def in_bounds(self, pos: Position) -> bool:
        return 0 <= pos.x < self._width and 0 <= pos.y < self._height

    def cells(self) -> Iterator[Position]:
        for y in range(self._height):
            for x in range(self._width):
                yield Position(x, y)

    def move_target(self, pos: Position, direction: Direction) -> Position | None:
        """Return the cell one step from `pos` in `direction`, or None off the grid."""
        dx, dy = direction.delta
        nxt = Position(pos.x + dx, pos.y + dy)
        if not self.in_bounds(nxt):
            return None
        return nxt

    def connect(self, a: Position, b: Position) -> None:
        # Both orientations go in together so the set stays symmetric.
        self._connections.add((a, b))
        self._connections.add((b, a))

    def is_connected(self, a: Position, b: Position) -> bool:
        return (a, b) in self._connections

    def available_moves(self, pos: Position) -> set[Direction]:
        if not self.in_bounds(pos):
            return set()
        moves: set[Direction] = set()
        for direction in Direction:
            nxt = self.move_target(pos, direction)
            if nxt is not None and (pos, nxt) in self._connections:
                moves.add(direction)
        return moves

    # Navigation

    def try_move(self, direction: Direction) -> bool:
        nxt = self.move_target(self._player, direction)
        if nxt is None or (self._player, nxt) not in self._connections:
            return False
        self._player = nxt
        return True

    def is_at_end(self) -> bool:
        return self._player == self._end


def carve_passages(maze: Maze, rng: Shuffler) -> None:
    """
    Randomized iterative depth-first search from `maze.start`.

    Cells are popped from the same end they are pushed to, which gives the long
    corridors typical of DFS mazes. A neighbour is only connected while still
    unvisited, so the result is a spanning tree.
    """
    stack: list[Position] = [maze.start]
    maze.visited.add(maze.start)

    while stack:
        pos = stack.pop()
        directions = [Direction.NORTH, Direction.SOUTH, Direction.EAST, Direction.WEST]
        rng.shuffle(directions)

        for direction in directions:
            nxt = maze.move_target(pos, direction)
            if nxt is None or nxt in maze.visited:
                continue
            maze.connect(pos, nxt)
            maze.visited.add(nxt)
            stack.append(nxt)

    logger.debug(
        "Carved %dx%d maze: %d passages, %d cells visited",
        maze.width,
        maze.height,
        maze.passage_count,
        len(maze.visited),
    )
