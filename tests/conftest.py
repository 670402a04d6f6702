"""Shared pytest configuration and fixtures for the CCTV Dashboard test suite."""

import sys
from pathlib import Path

import pytest

# Ensure the project root is in the path for imports
PROJECT_ROOT = Path(__file__).parent.parent
if str(PROJECT_ROOT) not in sys.path:
    sys.path.insert(0, str(PROJECT_ROOT))

from cctv_dashboard import create_app
from cctv_dashboard.config import StreamSettings, TestingConfig
from cctv_dashboard.models.camera import CameraDescriptor, CameraStatus, StreamProtocol
from cctv_dashboard.services.dispatch import AdapterKind
from cctv_dashboard.services.streams import StreamSessionManager


# =============================================================================
# Virtual-clock executor
# =============================================================================

class ManualTimer:
    def __init__(self, due, fn, args):
        self.due = due
        self.fn = fn
        self.args = args
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class ManualExecutor:
    """
    Deterministic stand-in for SerialExecutor. Submitted tasks queue until
    run_pending() or advance(); timers fire when advance() reaches them.
    """

    def __init__(self, name='test'):
        self.name = name
        self.clock = 0.0
        self.closed = False
        self._ready = []
        self._timers = []

    def now(self):
        return self.clock

    def submit(self, fn, *args):
        if not self.closed:
            self._ready.append((fn, args))

    def call_later(self, delay, fn, *args):
        timer = ManualTimer(self.clock + delay, fn, args)
        if not self.closed:
            self._timers.append(timer)
        return timer

    def run_pending(self):
        while self._ready:
            fn, args = self._ready.pop(0)
            fn(*args)

    def advance(self, seconds):
        target = self.clock + seconds
        self.run_pending()
        while True:
            due = [t for t in self._timers if not t.cancelled and t.due <= target]
            if not due:
                break
            timer = min(due, key=lambda t: t.due)
            self._timers.remove(timer)
            self.clock = timer.due
            self.submit(timer.fn, *timer.args)
            self.run_pending()
        self.clock = target
        self.run_pending()

    def pending_timers(self):
        return [t for t in self._timers if not t.cancelled]

    def shutdown(self, timeout=2.0):
        self.run_pending()
        self.closed = True
        self._timers = []


# =============================================================================
# Recording adapters
# =============================================================================

class FakeHandle:
    def __init__(self, adapter, locator, callbacks):
        self.adapter = adapter
        self.locator = locator
        self.callbacks = callbacks
        self.released = False
        # Worker still blocked after release()
        self.stuck = False
        self.joined = False

    @property
    def alive(self):
        return not self.released or self.stuck

    def release(self):
        self.released = True

    def join(self, timeout=None):
        self.joined = True
        self.stuck = False
        return True


class FakeAdapter:
    """Records every handle it opens; tests drive the callbacks by hand"""

    def __init__(self, kind):
        self.kind = kind
        self.handles = []
        self.open_error = None

    def open(self, locator, callbacks):
        if self.open_error is not None:
            raise self.open_error
        handle = FakeHandle(self, locator, callbacks)
        self.handles.append(handle)
        return handle

    @property
    def live(self):
        return [h for h in self.handles if h.alive]

    @property
    def last(self):
        return self.handles[-1]


@pytest.fixture
def executor():
    return ManualExecutor()


@pytest.fixture
def adapters():
    return {
        AdapterKind.SEGMENTED: FakeAdapter(AdapterKind.SEGMENTED),
        AdapterKind.POLLING: FakeAdapter(AdapterKind.POLLING),
    }


@pytest.fixture
def settings():
    return StreamSettings(retry_period=30.0, settle_delay=1.0, connect_timeout=None)


def make_camera(camera_id='CAM001', status=CameraStatus.ONLINE, protocol=StreamProtocol.SEGMENTED,
                source_url=None):
    return CameraDescriptor(
        camera_id=camera_id,
        name=f'Camera {camera_id}',
        location='Lantai 1',
        status=status,
        resolution='1920x1080',
        fps=30,
        protocol=protocol,
        source_url=source_url,
    )


# =============================================================================
# Flask app
# =============================================================================

@pytest.fixture
def executors():
    """Every executor the session manager created, by camera id"""
    return {}


@pytest.fixture
def session_manager(adapters, settings, executors):
    def factory(name):
        executors[name] = ManualExecutor(name)
        return executors[name]

    return StreamSessionManager(settings=settings, adapters=adapters, executor_factory=factory)


@pytest.fixture
def app(tmp_path, session_manager):
    class Config(TestingConfig):
        SQLALCHEMY_DATABASE_URI = f"sqlite:///{tmp_path / 'cctv.db'}"
        AUDIT_LOG_DIR = str(tmp_path / 'logs')

    app = create_app(Config, session_manager=session_manager)
    yield app
    session_manager.dispose_all()


@pytest.fixture
def client(app):
    return app.test_client()
