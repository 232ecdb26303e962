from __future__ import annotations

import argparse
import logging
import random
import sys
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, TextIO

from config import LOG_LEVELS, GameConfig
from db import open_repo
from maze import Direction, Maze, Position

logger = logging.getLogger(__name__)

WELCOME = "Welcome to the Maze Puzzle!"
HELP = "Navigate using: n (north), s (south), e (east), w (west), q (quit)"
LEGEND = "Maze Legend: P=Player, E=Exit, . = Path, # = Wall"
CONFIRMATION_CODE = "blorp"

_DIRECTION_TOKENS = {
    "n": Direction.NORTH,
    "north": Direction.NORTH,
    "s": Direction.SOUTH,
    "south": Direction.SOUTH,
    "e": Direction.EAST,
    "east": Direction.EAST,
    "w": Direction.WEST,
    "west": Direction.WEST,
}


@dataclass(frozen=True)
class Command:
    """
    Normalized command object consumed by the session.
    """

    verb: str
    args: list[str] = field(default_factory=list)


def parse_command(line: str) -> Command:
    parts = line.strip().lower().split()
    if not parts:
        return Command(verb="")
    return Command(verb=parts[0], args=parts[1:])


@dataclass
class GameView:
    """
    UI-agnostic state projection returned by the session.
    """

    pos: dict[str, int]
    available_moves: list[str]
    is_complete: bool
    move_count: int = 0


@dataclass
class GameOutput:
    """
    Wrapper for state + user-facing messages from session commands.
    """

    view: GameView
    messages: list[str] = field(default_factory=list)
    quit: bool = False


class GameSession:
    def __init__(self, *, maze: Maze, repo: Any = None, player_name: str = "player"):
        self.maze = maze
        self.repo = repo
        self.player_name = player_name
        self._move_count = 0
        self._started_at = _utc_now_iso()
        self._run_recorded = False

    @property
    def move_count(self) -> int:
        return self._move_count

    def _direction_from_token(self, token: str | None) -> Direction | None:
        if token is None:
            return None
        return _DIRECTION_TOKENS.get(token.strip().lower())

    def _available_move_tokens(self) -> list[str]:
        return sorted(d.name[0].lower() for d in self.maze.available_moves(self.maze.player))

    def _maybe_finish(self) -> bool:
        if not self.maze.is_at_end():
            return False
        if self.repo is not None and not self._run_recorded:
            metrics = {
                "elapsed_seconds": _elapsed_seconds(self._started_at),
                "moves": self._move_count,
            }
            self.repo.record_run(
                player=self.player_name,
                width=self.maze.width,
                height=self.maze.height,
                metrics=metrics,
            )
            self._run_recorded = True
        logger.info("Exit reached after %d moves", self._move_count)
        return True

    def _make_view(self) -> GameView:
        pos = self.maze.player
        return GameView(
            pos={"x": pos.x, "y": pos.y},
            available_moves=self._available_move_tokens(),
            is_complete=self.maze.is_at_end(),
            move_count=self._move_count,
        )

    def view(self) -> GameView:
        return self._make_view()

    def handle(self, command: Command) -> GameOutput:
        verb = (command.verb or "").strip().lower()
        args = command.args or []

        if verb in {"q", "quit"}:
            logger.info("Player quit after %d moves", self._move_count)
            return GameOutput(view=self._make_view(), messages=["Quitting the maze. Goodbye!"], quit=True)

        if verb == "go":
            direction = self._direction_from_token(args[0] if args else None)
        else:
            direction = self._direction_from_token(verb)

        if direction is None:
            return GameOutput(view=self._make_view(), messages=["Unknown command."])

        if self.maze.try_move(direction):
            self._move_count += 1
        else:
            logger.debug("Move %s blocked at %s", direction.name, self.maze.player)

        # Checked after every move attempt; a 1x1 maze starts on the exit.
        if self._maybe_finish():
            messages = [
                "Congratulations! You found the exit!",
                f"Confirmation code: {CONFIRMATION_CODE}",
            ]
            return GameOutput(view=self._make_view(), messages=messages, quit=True)
        return GameOutput(view=self._make_view())


def render_map(maze: Maze) -> str:
    lines = [LEGEND, ""]
    for y in range(maze.height):
        row: list[str] = []
        for x in range(maze.width):
            pos = Position(x, y)
            if pos == maze.player:
                row.append("P")
            elif pos == maze.end:
                row.append("E")
            else:
                row.append(".")
            if x < maze.width - 1:
                row.append(" " if maze.is_connected(pos, Position(x + 1, y)) else "|")
        lines.append("".join(row))

        if y < maze.height - 1:
            lines.append(
                "".join(
                    "  " if maze.is_connected(Position(x, y), Position(x, y + 1)) else "--"
                    for x in range(maze.width)
                )
            )
    return "\n".join(lines)


def run(config: GameConfig, stdin: TextIO | None = None, stdout: TextIO | None = None) -> int:
    stdin = stdin if stdin is not None else sys.stdin
    stdout = stdout if stdout is not None else sys.stdout

    rng = random.Random(config.seed) if config.seed is not None else None
    logger.info("Generating %dx%d maze", config.width, config.height)
    maze = Maze(config.width, config.height, rng=rng)
    repo = open_repo(config.scores_path) if config.scores_path else None
    session = GameSession(maze=maze, repo=repo, player_name=config.player_name)

    print(WELCOME, file=stdout)
    print(HELP, file=stdout)
    try:
        while True:
            if config.show_maze:
                print("\n" + render_map(maze), file=stdout)

            pos = maze.player
            stdout.write(f"You are at ({pos.x}, {pos.y}). Move: ")
            stdout.flush()
            line = stdin.readline()
            if not line:
                # End of input quits like 'q'.
                print(file=stdout)
                line = "q"

            output = session.handle(parse_command(line))
            for message in output.messages:
                print(message, file=stdout)
            if output.quit:
                break
    finally:
        if repo is not None:
            repo.close()
    return 0


def setup_logging(level: str = "WARNING") -> None:
    # stderr keeps log lines out of the game prompt on stdout.
    numeric_level = getattr(logging, level.upper(), logging.WARNING)

    handler = logging.StreamHandler(sys.stderr)
    handler.setLevel(numeric_level)
    handler.setFormatter(
        logging.Formatter(fmt="%(asctime)s [%(levelname)-5s] %(name)s | %(message)s", datefmt="%H:%M:%S")
    )

    root = logging.getLogger()
    root.setLevel(numeric_level)
    root.handlers.clear()
    root.addHandler(handler)


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Navigate a randomly generated perfect maze")
    parser.add_argument("--show-maze", action="store_true", help="Draw the whole maze before every prompt")
    parser.add_argument("--width", type=int, default=GameConfig.width)
    parser.add_argument("--height", type=int, default=GameConfig.height)
    parser.add_argument("--seed", type=int, default=None, help="Seed for a reproducible maze")
    parser.add_argument("--scores", type=str, default=None, help="Run history file (.db for SQLite, JSON otherwise)")
    parser.add_argument("--player", type=str, default=GameConfig.player_name)
    parser.add_argument("--log-level", type=str, default=GameConfig.log_level, choices=list(LOG_LEVELS))
    return parser


def main(argv: list[str] | None = None) -> int:
    parser = _build_parser()
    args = parser.parse_args(argv)
    try:
        config = GameConfig(
            width=args.width,
            height=args.height,
            seed=args.seed,
            show_maze=args.show_maze,
            scores_path=args.scores,
            player_name=args.player,
            log_level=args.log_level,
        )
    except ValueError as e:
        parser.error(str(e))

    setup_logging(config.log_level)
    return run(config)


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def _elapsed_seconds(started_at: str | None) -> int:
    if not started_at:
        return 0
    try:
        dt = datetime.fromisoformat(started_at.replace("Z", "+00:00"))
    except ValueError:
        return 0
    now = datetime.now(timezone.utc)
    return max(0, int((now - dt).total_seconds()))


if __name__ == "__main__":
    sys.exit(main())
