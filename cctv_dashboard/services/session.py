"""
Stream session controller: one per displayed camera tile.

State machine:

    IDLE -> CONNECTING -> CONNECTED
    CONNECTING | CONNECTED -> ERROR      adapter failure or connect timeout
    ERROR -> CONNECTING                  retry timer, once per retry period
    any -> IDLE                          refresh (re-connects after a settle
                                         delay), dispose, or camera offline

All state changes run on the session's SerialExecutor. Each connection
attempt gets a new generation number; adapter callbacks and timers carry the
generation they were created for and are ignored once it is stale.

A released handle whose worker is still inside a blocking call is kept as
draining. No new attempt starts until it has exited, and dispose waits for it.
"""
import threading
from datetime import datetime
from enum import Enum
from typing import Optional

from ..config import StreamSettings
from ..errors import StreamError, TransportError
from ..models.camera import CameraDescriptor, CameraStatus
from .adapters import AdapterCallbacks
from .dispatch import mask_locator, plan_connection

DRAIN_POLL_INTERVAL = 0.25


class ConnectionState(str, Enum):
    IDLE = 'idle'
    CONNECTING = 'connecting'
    CONNECTED = 'connected'
    ERROR = 'error'


class StreamSession:
    """Connection lifecycle for a single camera feed"""

    def __init__(self, camera: CameraDescriptor, executor, adapters: dict,
                 settings: Optional[StreamSettings] = None):
        self.camera_id = camera.camera_id
        self.protocol = camera.protocol
        self.settings = settings or StreamSettings()
        self._declared_locator = camera.source_url
        self._status = camera.status
        self._executor = executor
        self._adapters = adapters
        self._lock = threading.Lock()

        self.state = ConnectionState.IDLE
        self.last_error: Optional[str] = None
        self.last_update: Optional[float] = None
        self.last_update_at: Optional[datetime] = None
        self.locator: Optional[str] = None
        self.locator_source: Optional[str] = None
        self.attempts = 0

        self._override: Optional[str] = None
        self._generation = 0
        self._handle = None
        self._frame: Optional[bytes] = None
        self._visible = False
        self._disposed = False
        self._retry_timer = None
        self._settle_timer = None
        self._timeout_timer = None
        self._drain_timer = None
        # Released handles whose worker thread has not exited yet
        self._draining = []

    # ------------------------------------------------------------------
    # Public API; safe to call from any thread
    # ------------------------------------------------------------------

    def start(self):
        """The tile became visible"""
        self._executor.submit(self._start)

    def request_refresh(self):
        self._executor.submit(self._refresh)

    def set_source_override(self, locator: Optional[str]):
        self._executor.submit(self._set_override, locator)

    def update_status(self, status: CameraStatus):
        self._executor.submit(self._update_status, status)

    def dispose(self):
        """
        Release everything and stop the session's executor. Returns once every
        adapter worker has exited. Later calls do nothing.
        """
        self._executor.submit(self._dispose)
        self._executor.shutdown(timeout=None)

    @property
    def generation(self) -> int:
        return self._generation

    @property
    def disposed(self) -> bool:
        return self._disposed

    @property
    def status(self) -> CameraStatus:
        return self._status

    @property
    def source_override(self) -> Optional[str]:
        return self._override

    def get_frame(self) -> Optional[bytes]:
        """Most recent frame as JPEG bytes, if connected"""
        with self._lock:
            return self._frame

    def to_dict(self) -> dict:
        with self._lock:
            return {
                'cameraId': self.camera_id,
                'protocol': self.protocol.value,
                'streamType': self.protocol.label,
                'cameraStatus': self._status.value,
                'state': self.state.value,
                'lastError': self.last_error,
                'lastUpdate': self.last_update_at.isoformat() if self.last_update_at else None,
                'locator': mask_locator(self.locator),
                'locatorSource': self.locator_source,
                'attempts': self.attempts,
                'hasFrame': self._frame is not None,
            }

    # ------------------------------------------------------------------
    # Executor tasks
    # ------------------------------------------------------------------

    def _log(self, message: str):
        print(f"[Stream {self.camera_id}] {message}", flush=True)

    def _set_state(self, state: ConnectionState, error: Optional[str] = None):
        with self._lock:
            self.state = state
            self.last_error = error
            if state is not ConnectionState.CONNECTED:
                self._frame = None

    def _stamp(self):
        self.last_update = self._executor.now()
        self.last_update_at = datetime.now()

    def _start(self):
        if self._disposed or self._visible:
            return
        self._visible = True
        if self._status is CameraStatus.OFFLINE:
            self._log("Camera offline, holding idle")
            return
        self._begin_attempt()

    def _begin_attempt(self):
        self._release()
        if self._still_draining():
            # The previous surface is still attached; connect once it is gone
            self._drain_timer = self._executor.call_later(
                DRAIN_POLL_INTERVAL, self._drained, self._generation)
            return
        generation = self._generation
        plan = plan_connection(self.protocol, self.camera_id, self._override,
                               self._declared_locator, self.settings)
        with self._lock:
            self.locator = plan.locator
            self.locator_source = plan.source
            self.attempts += 1
        self._set_state(ConnectionState.CONNECTING)
        self._log(f"Connecting via {plan.adapter.value} to {mask_locator(plan.locator)} ({plan.source})")

        if self.settings.connect_timeout:
            self._timeout_timer = self._executor.call_later(
                self.settings.connect_timeout, self._on_timeout, generation)

        adapter = self._adapters[plan.adapter]
        try:
            self._handle = adapter.open(plan.locator, self._callbacks(generation))
        except StreamError as e:
            self._fail(e)
        except Exception as e:
            self._fail(TransportError(f"Adapter failed to start: {e}"))

    def _callbacks(self, generation: int) -> AdapterCallbacks:
        submit = self._executor.submit
        return AdapterCallbacks(
            ready=lambda: submit(self._on_ready, generation),
            frame=lambda data: submit(self._on_frame, generation, data),
            failure=lambda error: submit(self._on_failure, generation, error),
        )

    def _release(self):
        """
        Stop in-flight work and release the adapter handle. Always completes;
        invalidates every callback and timer issued so far.
        """
        self._generation += 1
        for name in ('_timeout_timer', '_settle_timer', '_retry_timer', '_drain_timer'):
            timer = getattr(self, name)
            if timer is not None:
                timer.cancel()
                setattr(self, name, None)

        handle, self._handle = self._handle, None
        if handle is not None:
            try:
                handle.release()
            except Exception as e:
                self._log(f"Error releasing stream handle: {e}")
            if getattr(handle, 'alive', False):
                self._log("Stream worker still shutting down")
                self._draining.append(handle)

    def _still_draining(self) -> bool:
        self._draining = [h for h in self._draining if h.alive]
        return bool(self._draining)

    def _drained(self, generation: int):
        if generation != self._generation:
            return
        self._drain_timer = None
        if self._disposed or self._status is CameraStatus.OFFLINE:
            return
        self._begin_attempt()

    def _fail(self, error: StreamError):
        self._release()
        message = error.describe()
        self._set_state(ConnectionState.ERROR, message)
        self._log(f"{message}; retrying in {self.settings.retry_period:g}s")
        self._retry_timer = self._executor.call_later(
            self.settings.retry_period, self._retry, self._generation)

    def _on_ready(self, generation: int):
        if generation != self._generation or self.state is not ConnectionState.CONNECTING:
            return
        if self._timeout_timer is not None:
            self._timeout_timer.cancel()
            self._timeout_timer = None
        self._set_state(ConnectionState.CONNECTED)
        self._stamp()
        self._log("Connected")

    def _on_frame(self, generation: int, frame: bytes):
        if generation != self._generation or self.state is not ConnectionState.CONNECTED:
            return
        with self._lock:
            self._frame = frame
        self._stamp()

    def _on_failure(self, generation: int, error: StreamError):
        if generation != self._generation:
            return
        if self.state not in (ConnectionState.CONNECTING, ConnectionState.CONNECTED):
            return
        self._fail(error)

    def _on_timeout(self, generation: int):
        if generation != self._generation or self.state is not ConnectionState.CONNECTING:
            return
        self._timeout_timer = None
        self._fail(TransportError(f"No response within {self.settings.connect_timeout:g}s"))

    def _retry(self, generation: int):
        if generation != self._generation:
            return
        self._retry_timer = None
        if self._disposed or self.state is not ConnectionState.ERROR:
            return
        if self._status is CameraStatus.OFFLINE:
            return
        self._log("Attempting to reconnect...")
        self._begin_attempt()

    def _refresh(self):
        if self._disposed:
            return
        self._visible = True
        self._release()
        self._set_state(ConnectionState.IDLE)
        if self._status is CameraStatus.OFFLINE:
            self._log("Refresh ignored, camera offline")
            return
        self._settle_timer = self._executor.call_later(
            self.settings.settle_delay, self._settled, self._generation)

    def _settled(self, generation: int):
        if generation != self._generation:
            return
        self._settle_timer = None
        if self._disposed or self.state is not ConnectionState.IDLE:
            return
        if self._status is CameraStatus.OFFLINE:
            return
        self._begin_attempt()

    def _set_override(self, locator: Optional[str]):
        if self._disposed:
            return
        self._override = (locator or '').strip() or None
        if self._override:
            self._log(f"Source override set: {mask_locator(self._override)}")
        else:
            self._log("Source override cleared")
        self._refresh()

    def _update_status(self, status: CameraStatus):
        if self._disposed:
            return
        previous = self._status
        with self._lock:
            self._status = status
        if status is CameraStatus.OFFLINE:
            self._release()
            if previous is not CameraStatus.OFFLINE:
                self._log("Camera went offline, releasing stream")
            self._set_state(ConnectionState.IDLE)
            return
        if previous is CameraStatus.OFFLINE and self._visible and self.state is ConnectionState.IDLE:
            self._log(f"Camera back {status.value}")
            self._begin_attempt()

    def _dispose(self):
        if self._disposed:
            return
        self._disposed = True
        self._visible = False
        self._release()
        for handle in self._draining:
            handle.join()
        self._draining = []
        self._set_state(ConnectionState.IDLE)
        self._log("Session disposed")
