" generic fixtures "
import logging

import pytest

from workstyle.config import IconTable
from workstyle.models import AppIdentifier, Window, WorkspaceSnapshot

from .testtools import FakeBackend


def pytest_configure():
    "Runs once before all"
    from workstyle.logging_setup import init_logger

    init_logger("/dev/null", force_debug=True)


@pytest.fixture
def test_logger():
    "A logger for the tests"
    from workstyle.logging_setup import get_logger

    return get_logger("tests", logging.DEBUG)


@pytest.fixture
def table():
    "A small icon table"
    return IconTable.from_pairs(
        [("firefox", "🦊"), ("fire", "🔥"), ("code", "💻"), ("kitty", "🐱")],
        fallback_glyph="?",
    )


def snapshot(*workspaces):
    "Build a tree snapshot from (id, name, [(window id, app name), ...]) tuples"
    return [
        WorkspaceSnapshot(ws_id, name, [Window(win_id, AppIdentifier(app)) for win_id, app in windows])
        for ws_id, name, windows in workspaces
    ]


@pytest.fixture
def tree():
    "Two workspaces, the second one empty"
    return snapshot(
        (1, "1", [("a", "firefox"), ("b", "kitty")]),
        (2, "2", []),
    )


@pytest.fixture
def backend(tree):
    "An in-memory backend echoing the renames"
    return FakeBackend(tree=tree, echo=True)
