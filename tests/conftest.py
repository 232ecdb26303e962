import importlib
import random

import pytest


def import_required(module_name: str):
    """
    Import a project module with a clearer failure message than ModuleNotFoundError.
    """
    try:
        return importlib.import_module(module_name)
    except ModuleNotFoundError as e:
        pytest.fail(
            f"Required module '{module_name}.py' could not be imported. "
            f"Original error: {e}"
        )


@pytest.fixture
def maze_module():
    return import_required("maze")


@pytest.fixture
def handles_module():
    return import_required("handles")


@pytest.fixture
def db_module():
    return import_required("db")


@pytest.fixture
def main_module():
    return import_required("main")


@pytest.fixture
def config_module():
    return import_required("config")


@pytest.fixture
def rng():
    return random.Random(1234)


@pytest.fixture(params=["runs.json", "runs.db"])
def repo(request, tmp_path, db_module):
    """Both run-history backends, chosen by file suffix."""
    r = db_module.open_repo(tmp_path / request.param)
    yield r
    r.close()
