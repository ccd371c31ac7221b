from arena.tests.mocks.connection import MockConnection
from arena.tests.mocks.move_chooser import ScriptedMoveChooser
from arena.tests.mocks.reporter import RecordingReporter
from arena.tests.mocks.scheduler import ManualScheduler

__all__ = ["ManualScheduler", "MockConnection", "RecordingReporter", "ScriptedMoveChooser"]
