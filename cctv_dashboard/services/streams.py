"""
Live stream sessions, one per camera tile currently on screen.
"""
import threading
from typing import Callable, Dict, List, Optional

from ..config import StreamSettings
from ..models.camera import CameraDescriptor, CameraStatus
from .adapters import build_adapters
from .executor import SerialExecutor
from .session import StreamSession


class StreamSessionManager:
    """Opens, looks up and disposes stream sessions by camera id"""

    def __init__(self, settings: Optional[StreamSettings] = None, adapters: Optional[dict] = None,
                 executor_factory: Callable[[str], object] = SerialExecutor):
        self.settings = settings or StreamSettings()
        self.adapters = adapters if adapters is not None else build_adapters(self.settings)
        self.executor_factory = executor_factory
        self._sessions: Dict[str, StreamSession] = {}
        self._lock = threading.Lock()

    def open(self, camera: CameraDescriptor) -> StreamSession:
        """Session for a tile that became visible; reuses a live one"""
        with self._lock:
            session = self._sessions.get(camera.camera_id)
            if session is not None:
                return session
            session = StreamSession(camera, self.executor_factory(camera.camera_id),
                                    self.adapters, self.settings)
            self._sessions[camera.camera_id] = session
        print(f"[Sessions] Opened {camera.camera_id} ({camera.protocol.value})", flush=True)
        session.start()
        return session

    def get(self, camera_id: str) -> Optional[StreamSession]:
        with self._lock:
            return self._sessions.get(camera_id)

    def list(self) -> List[StreamSession]:
        with self._lock:
            return [self._sessions[k] for k in sorted(self._sessions)]

    def dispose(self, camera_id: str) -> bool:
        with self._lock:
            session = self._sessions.pop(camera_id, None)
        if session is None:
            return False
        session.dispose()
        print(f"[Sessions] Disposed {camera_id}", flush=True)
        return True

    def notify_status(self, camera_id: str, status: CameraStatus) -> None:
        session = self.get(camera_id)
        if session is not None:
            session.update_status(status)

    def dispose_all(self) -> None:
        with self._lock:
            sessions, self._sessions = self._sessions, {}
        for camera_id, session in sessions.items():
            print(f"[Sessions] Stopping {camera_id}...", flush=True)
            session.dispose()
