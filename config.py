"""Configuration for the interactive maze game."""

from __future__ import annotations

from dataclasses import dataclass

LOG_LEVELS = ("DEBUG", "INFO", "WARNING", "ERROR")


@dataclass(frozen=True)
class GameConfig:
    """Immutable settings for one CLI session."""

    # Grid
    width: int = 1000
    height: int = 1000
    seed: int | None = None

    # Display
    show_maze: bool = False

    # Run history
    scores_path: str | None = None
    player_name: str = "player"

    log_level: str = "WARNING"

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError(f"Grid dimensions must be positive, got {self.width}x{self.height}")
        if self.log_level.upper() not in LOG_LEVELS:
            raise ValueError(f"Unknown log level: {self.log_level}")
