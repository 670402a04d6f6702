"""
Playback adapters for stream sessions.

An adapter opens one connection attempt and returns a handle that owns every
resource of that attempt: the worker thread, its HTTP session and, for
segmented media, the playback surface. Results are reported through the
callbacks the session passes in; the session discards reports from attempts
it has already released.
"""
import threading
from dataclasses import dataclass
from typing import Callable, Optional
from urllib.parse import urlparse

import cv2
import numpy as np
import requests

from ..errors import ConfigurationError, ProtocolError, StreamError, TransportError
from .dispatch import HTTP_SCHEMES, AdapterKind, mask_locator

JPEG_QUALITY = 85
MAX_READ_FAILURES = 30
READ_RETRY_DELAY = 0.033

# FFmpeg open/read calls must give up before AdapterHandle.release stops waiting
JOIN_TIMEOUT = 2.0
SURFACE_TIMEOUT_MS = 1500


@dataclass(frozen=True)
class AdapterCallbacks:
    """Bound to one attempt; safe to call from any thread"""
    ready: Callable[[], None]
    frame: Callable[[bytes], None]
    failure: Callable[[StreamError], None]


def require_http_locator(locator: Optional[str], protocol: str) -> str:
    if not locator:
        raise ConfigurationError(f"No source locator configured for {protocol} stream")
    scheme = urlparse(locator).scheme.lower()
    if scheme not in HTTP_SCHEMES:
        raise ConfigurationError(
            f"Unsupported locator scheme '{scheme or '?'}' for {protocol} stream: {mask_locator(locator)}"
        )
    return locator


def encode_jpeg(image) -> bytes:
    ok, buffer = cv2.imencode('.jpg', image, [cv2.IMWRITE_JPEG_QUALITY, JPEG_QUALITY])
    if not ok:
        raise ProtocolError("Frame could not be encoded")
    return buffer.tobytes()


def decode_image(data: bytes) -> bytes:
    """Validate a fetched image and re-encode it as JPEG"""
    if not data:
        raise ProtocolError("Empty image response")
    image = cv2.imdecode(np.frombuffer(data, dtype=np.uint8), cv2.IMREAD_COLOR)
    if image is None:
        raise ProtocolError("Image could not be decoded")
    return encode_jpeg(image)


@dataclass(frozen=True)
class Playlist:
    segments: int
    variants: int
    target_duration: Optional[float]


def parse_manifest(text: str) -> Playlist:
    """Minimal HLS playlist check: header plus at least one segment or variant"""
    lines = [line.strip() for line in (text or '').splitlines() if line.strip()]
    if not lines or lines[0] != '#EXTM3U':
        raise ProtocolError("Manifest is missing the #EXTM3U header")

    segments = sum(1 for line in lines if line.startswith('#EXTINF'))
    variants = sum(1 for line in lines if line.startswith('#EXT-X-STREAM-INF'))
    target_duration = None
    for line in lines:
        if line.startswith('#EXT-X-TARGETDURATION:'):
            try:
                target_duration = float(line.split(':', 1)[1])
            except ValueError:
                raise ProtocolError(f"Bad target duration: {line}") from None
    if segments == 0 and variants == 0:
        raise ProtocolError("Manifest lists no segments or variants")
    return Playlist(segments=segments, variants=variants, target_duration=target_duration)


class AdapterHandle:
    """Resources of one connection attempt"""

    def __init__(self, label: str, callbacks: AdapterCallbacks, http: requests.Session,
                 join_timeout: float = JOIN_TIMEOUT):
        self.label = label
        self.callbacks = callbacks
        self._http = http
        self._stop = threading.Event()
        self._join_timeout = join_timeout
        self._thread = None

    @property
    def stopped(self) -> bool:
        return self._stop.is_set()

    def wait(self, seconds: float) -> bool:
        """Sleep until seconds elapse or the handle is released"""
        return self._stop.wait(seconds)

    def start(self, target) -> 'AdapterHandle':
        self._thread = threading.Thread(target=self._run, args=(target,), name=self.label, daemon=True)
        self._thread.start()
        return self

    def fetch(self, url: str, timeout: float) -> requests.Response:
        try:
            response = self._http.get(url, timeout=timeout, headers={'Cache-Control': 'no-cache'})
            response.raise_for_status()
        except requests.exceptions.RequestException as e:
            raise TransportError(f"Failed to fetch {mask_locator(url)}: {e}") from e
        return response

    def _run(self, target):
        try:
            target(self)
        except StreamError as e:
            if not self.stopped:
                self.callbacks.failure(e)
        except Exception as e:
            if not self.stopped:
                self.callbacks.failure(TransportError(str(e)))

    @property
    def alive(self) -> bool:
        """True until the worker thread has exited and dropped its surface"""
        return self._thread is not None and self._thread.is_alive()

    def join(self, timeout: Optional[float] = None) -> bool:
        thread = self._thread
        if thread is not None and thread is not threading.current_thread():
            thread.join(timeout=timeout)
        return not self.alive

    def release(self):
        """
        Stop the worker, close the HTTP session and wait briefly for the thread.
        If the thread is still inside a blocking call afterwards, `alive` stays
        True until it exits.
        """
        self._stop.set()
        try:
            self._http.close()
        finally:
            self.join(self._join_timeout)


class VideoCaptureSurface:
    """Playback surface backed by OpenCV's FFmpeg reader"""

    def __init__(self, url: str, timeout_ms: int = SURFACE_TIMEOUT_MS):
        self.url = url
        self.timeout_ms = timeout_ms
        self._capture = None

    def open(self) -> bool:
        self._capture = cv2.VideoCapture(self.url, cv2.CAP_FFMPEG, [
            cv2.CAP_PROP_OPEN_TIMEOUT_MSEC, self.timeout_ms,
            cv2.CAP_PROP_READ_TIMEOUT_MSEC, self.timeout_ms,
        ])
        self._capture.set(cv2.CAP_PROP_BUFFERSIZE, 3)
        return self._capture.isOpened()

    def read(self) -> Optional[bytes]:
        if self._capture is None:
            return None
        success, frame = self._capture.read()
        if not success:
            return None
        return encode_jpeg(frame)

    def release(self):
        if self._capture is not None:
            self._capture.release()
            self._capture = None


class SegmentedAdapter:
    """Loads an HLS manifest, then attaches a playback surface to it"""
    kind = AdapterKind.SEGMENTED

    def __init__(self, fetch_timeout: float = 10.0, surface_factory=VideoCaptureSurface,
                 session_factory=requests.Session, join_timeout: float = JOIN_TIMEOUT):
        self.fetch_timeout = fetch_timeout
        self.surface_factory = surface_factory
        self.session_factory = session_factory
        self.join_timeout = join_timeout

    def open(self, locator: str, callbacks: AdapterCallbacks) -> AdapterHandle:
        require_http_locator(locator, 'segmented')
        handle = AdapterHandle(f"segmented {mask_locator(locator)}", callbacks, self.session_factory(),
                               join_timeout=self.join_timeout)
        return handle.start(lambda h: self._play(h, locator))

    def _play(self, handle: AdapterHandle, locator: str):
        playlist = parse_manifest(handle.fetch(locator, self.fetch_timeout).text)
        if handle.stopped:
            return
        print(f"[HLS] Manifest parsed: {playlist.segments} segments, {playlist.variants} variants", flush=True)
        handle.callbacks.ready()
        if self.surface_factory is None:
            return

        surface = self.surface_factory(locator)
        try:
            if not surface.open():
                raise ProtocolError("Playback surface failed to attach")
            failures = 0
            while not handle.stopped:
                frame = surface.read()
                if frame is None:
                    failures += 1
                    if failures >= MAX_READ_FAILURES:
                        raise TransportError("Stream stalled: no frames from playback surface")
                    handle.wait(READ_RETRY_DELAY)
                    continue
                failures = 0
                handle.callbacks.frame(frame)
        finally:
            surface.release()


class PollingAdapter:
    """Repeatedly fetches a still image at a fixed cadence"""
    kind = AdapterKind.POLLING

    def __init__(self, interval: float = 3.0, fetch_timeout: float = 10.0,
                 session_factory=requests.Session, join_timeout: float = JOIN_TIMEOUT):
        self.interval = interval
        self.fetch_timeout = fetch_timeout
        self.session_factory = session_factory
        self.join_timeout = join_timeout

    def open(self, locator: str, callbacks: AdapterCallbacks) -> AdapterHandle:
        require_http_locator(locator, 'polling')
        handle = AdapterHandle(f"polling {mask_locator(locator)}", callbacks, self.session_factory(),
                               join_timeout=self.join_timeout)
        return handle.start(lambda h: self._poll(h, locator))

    def _poll(self, handle: AdapterHandle, locator: str):
        connected = False
        while not handle.stopped:
            frame = decode_image(handle.fetch(locator, self.fetch_timeout).content)
            if handle.stopped:
                return
            if not connected:
                handle.callbacks.ready()
                connected = True
            handle.callbacks.frame(frame)
            handle.wait(self.interval)


def build_adapters(settings) -> dict:
    """Default adapter set keyed by AdapterKind"""
    return {
        AdapterKind.SEGMENTED: SegmentedAdapter(fetch_timeout=settings.fetch_timeout),
        AdapterKind.POLLING: PollingAdapter(interval=settings.poll_interval,
                                            fetch_timeout=settings.fetch_timeout),
    }
