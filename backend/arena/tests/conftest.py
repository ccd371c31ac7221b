import pytest

from arena.logic.settings import MatchSettings
from arena.messaging.router import MessageRouter
from arena.session.controller import SessionController
from arena.session.manager import SessionManager
from arena.tests.mocks import ManualScheduler, RecordingReporter, ScriptedMoveChooser


@pytest.fixture
def scheduler():
    return ManualScheduler()


@pytest.fixture
def reporter():
    return RecordingReporter()


@pytest.fixture
def move_chooser():
    return ScriptedMoveChooser()


@pytest.fixture
def match_settings():
    return MatchSettings()


@pytest.fixture
def controller(match_settings, scheduler, move_chooser, reporter):
    return SessionController(
        "match1",
        settings=match_settings,
        scheduler=scheduler,
        move_chooser=move_chooser,
        reporter=reporter,
    )


@pytest.fixture
def manager(match_settings, scheduler, reporter):
    return SessionManager(
        match_settings,
        scheduler=scheduler,
        reporter=reporter,
        move_chooser_factory=ScriptedMoveChooser,
        max_capacity=2,
    )


@pytest.fixture
def router(manager):
    return MessageRouter(manager)
