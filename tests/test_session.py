import io
import logging
import random
import sys

import pytest


@pytest.fixture
def restore_root_logger():
    root = logging.getLogger()
    handlers, level = list(root.handlers), root.level
    yield root
    root.handlers[:] = handlers
    root.setLevel(level)


def _corridor(maze_module):
    # A 2x1 grid always has the single passage (0,0) <-> (1,0).
    return maze_module.Maze(2, 1)


def test_parse_command_normalizes(main_module):
    cmd = main_module.parse_command("  GO North \n")
    assert cmd.verb == "go"
    assert cmd.args == ["north"]
    assert main_module.parse_command("\n").verb == ""


def test_new_session_view(main_module, maze_module):
    session = main_module.GameSession(maze=_corridor(maze_module))
    view = session.view()
    assert view.pos == {"x": 0, "y": 0}
    assert view.available_moves == ["e"]
    assert view.is_complete is False
    assert view.move_count == 0


def test_blocked_move_is_silent(main_module, maze_module):
    session = main_module.GameSession(maze=_corridor(maze_module))
    out = session.handle(main_module.Command("n"))
    assert out.messages == []
    assert out.quit is False
    assert out.view.pos == {"x": 0, "y": 0}
    assert out.view.move_count == 0


def test_unknown_command_does_not_move(main_module, maze_module):
    maze = _corridor(maze_module)
    session = main_module.GameSession(maze=maze)
    for verb in ("x", "", "go", "jump"):
        out = session.handle(main_module.Command(verb))
        assert out.messages == ["Unknown command."]
        assert maze.player == maze.start


def test_reaching_exit_congratulates_and_quits(main_module, maze_module):
    session = main_module.GameSession(maze=_corridor(maze_module))
    out = session.handle(main_module.Command("e"))
    assert out.quit is True
    assert out.view.is_complete is True
    assert out.view.move_count == 1
    assert "Congratulations! You found the exit!" in out.messages
    assert "Confirmation code: blorp" in out.messages


@pytest.mark.parametrize("command", [("east", []), ("go", ["e"]), ("go", ["east"]), ("E", [])])
def test_direction_aliases(main_module, maze_module, command):
    session = main_module.GameSession(maze=_corridor(maze_module))
    verb, args = command
    out = session.handle(main_module.Command(verb, args))
    assert out.view.pos == {"x": 1, "y": 0}


def test_quit(main_module, maze_module):
    session = main_module.GameSession(maze=_corridor(maze_module))
    out = session.handle(main_module.Command("q"))
    assert out.quit is True
    assert out.messages == ["Quitting the maze. Goodbye!"]


def test_completed_run_is_recorded_once(main_module, maze_module, repo):
    session = main_module.GameSession(maze=_corridor(maze_module), repo=repo, player_name="neo")
    session.handle(main_module.Command("e"))
    session.handle(main_module.Command("w"))
    session.handle(main_module.Command("e"))
    runs = repo.top_runs()
    assert len(runs) == 1
    assert runs[0]["player"] == "neo"
    assert (runs[0]["width"], runs[0]["height"]) == (2, 1)
    assert runs[0]["metrics"]["moves"] == 1
    assert runs[0]["metrics"]["elapsed_seconds"] >= 0


def test_render_map_corridor(main_module, maze_module):
    text = main_module.render_map(_corridor(maze_module))
    lines = text.splitlines()
    assert lines[0] == "Maze Legend: P=Player, E=Exit, . = Path, # = Wall"
    assert lines[2] == "P E"


def test_render_map_walls_match_connections(main_module, maze_module):
    Position = maze_module.Position
    maze = maze_module.Maze(4, 3, rng=random.Random(8))
    lines = main_module.render_map(maze).splitlines()[2:]
    assert len(lines) == 2 * maze.height - 1
    for y in range(maze.height):
        row = lines[2 * y]
        assert len(row) == 2 * maze.width - 1
        for x in range(maze.width - 1):
            wall = row[2 * x + 1]
            assert (wall == " ") == maze.is_connected(Position(x, y), Position(x + 1, y))
        if y < maze.height - 1:
            between = lines[2 * y + 1]
            for x in range(maze.width):
                cell = between[2 * x:2 * x + 2]
                assert (cell == "  ") == maze.is_connected(Position(x, y), Position(x, y + 1))
    assert lines[0][0] == "P"
    assert lines[-1][-1] == "E"


def test_run_loop_plays_to_exit(main_module, config_module):
    config = config_module.GameConfig(width=2, height=1)
    stdin = io.StringIO("x\nn\ne\n")
    stdout = io.StringIO()
    assert main_module.run(config, stdin=stdin, stdout=stdout) == 0
    text = stdout.getvalue()
    assert text.startswith("Welcome to the Maze Puzzle!\n")
    assert "Unknown command." in text
    assert text.count("You are at (0, 0). Move: ") == 3
    assert "Confirmation code: blorp" in text


def test_one_by_one_session_finishes_on_any_move(main_module, maze_module):
    session = main_module.GameSession(maze=maze_module.Maze(1, 1))
    out = session.handle(main_module.Command("n"))
    assert out.quit is True
    assert out.view.move_count == 0
    assert out.messages == ["Congratulations! You found the exit!", "Confirmation code: blorp"]


def test_run_loop_one_by_one_congratulates(main_module, config_module):
    config = config_module.GameConfig(width=1, height=1)
    stdout = io.StringIO()
    assert main_module.run(config, stdin=io.StringIO("n\n"), stdout=stdout) == 0
    text = stdout.getvalue()
    assert text.count("You are at (0, 0). Move: ") == 1
    assert "Congratulations! You found the exit!" in text
    assert "Confirmation code: blorp" in text
    assert "Goodbye" not in text


def test_run_loop_shows_map_when_enabled(main_module, config_module):
    config = config_module.GameConfig(width=2, height=1, show_maze=True)
    stdout = io.StringIO()
    main_module.run(config, stdin=io.StringIO("q\n"), stdout=stdout)
    text = stdout.getvalue()
    assert "Maze Legend" in text
    assert "Quitting the maze. Goodbye!" in text


def test_run_loop_quits_on_end_of_input(main_module, config_module):
    config = config_module.GameConfig(width=3, height=3, seed=4)
    stdout = io.StringIO()
    assert main_module.run(config, stdin=io.StringIO(""), stdout=stdout) == 0
    assert "Quitting the maze. Goodbye!" in stdout.getvalue()
    assert "Maze Legend" not in stdout.getvalue()


def test_run_loop_records_to_scores_file(main_module, config_module, db_module, tmp_path):
    path = tmp_path / "history.db"
    config = config_module.GameConfig(width=2, height=1, scores_path=str(path), player_name="trinity")
    main_module.run(config, stdin=io.StringIO("e\n"), stdout=io.StringIO())
    repo = db_module.open_repo(path)
    try:
        runs = repo.top_runs(width=2, height=1)
        assert [r["player"] for r in runs] == ["trinity"]
    finally:
        repo.close()


def test_main_rejects_bad_dimensions(main_module):
    with pytest.raises(SystemExit) as exc:
        main_module.main(["--width", "0"])
    assert exc.value.code == 2


def test_main_runs_with_flags(main_module, monkeypatch, capsys, restore_root_logger):
    monkeypatch.setattr("sys.stdin", io.StringIO("e\n"))
    assert main_module.main(["--width", "2", "--height", "1", "--log-level", "DEBUG"]) == 0
    assert "Confirmation code: blorp" in capsys.readouterr().out


def test_config_defaults_and_validation(config_module):
    config = config_module.GameConfig()
    assert (config.width, config.height) == (1000, 1000)
    assert config.show_maze is False
    with pytest.raises(ValueError):
        config_module.GameConfig(height=-1)
    with pytest.raises(ValueError):
        config_module.GameConfig(log_level="LOUD")


def test_setup_logging_writes_to_stderr(main_module, restore_root_logger):
    main_module.setup_logging("info")
    root = restore_root_logger
    assert root.level == logging.INFO
    assert len(root.handlers) == 1
    assert root.handlers[0].stream is sys.stderr
