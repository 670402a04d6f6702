"""
Sequential execution context for a stream session.

Every state change of a session runs on one worker thread, one task at a
time. Adapter threads and timers never touch session state directly; they
submit a task here instead.
"""
import queue
import threading
import time
import traceback

_STOP = object()


class SerialExecutor:
    """Runs submitted callables one at a time on a dedicated daemon thread"""

    def __init__(self, name: str):
        self.name = name
        self._queue = queue.Queue()
        self._closed = False
        self._lock = threading.Lock()
        self._timers = set()
        self._thread = threading.Thread(target=self._run, name=f"session-{name}", daemon=True)
        self._thread.start()

    def now(self) -> float:
        return time.monotonic()

    def submit(self, fn, *args) -> None:
        """Queue fn(*args); silently dropped once the executor is shut down"""
        with self._lock:
            if self._closed:
                return
            self._queue.put((fn, args))

    def call_later(self, delay: float, fn, *args):
        """Submit fn(*args) after delay seconds. Returns a handle with cancel()"""
        timer = threading.Timer(delay, self._fire, args=(fn, args))
        timer.daemon = True
        with self._lock:
            if self._closed:
                return timer
            self._timers.add(timer)
        timer.start()
        return timer

    def _fire(self, fn, args):
        with self._lock:
            self._timers = {t for t in self._timers if t.is_alive() and t is not threading.current_thread()}
        self.submit(fn, *args)

    def shutdown(self, timeout: float = 2.0) -> None:
        """Run what is already queued, then stop the worker thread"""
        with self._lock:
            if self._closed:
                return
            self._closed = True
            timers, self._timers = self._timers, set()
            self._queue.put(_STOP)
        for timer in timers:
            timer.cancel()
        if threading.current_thread() is not self._thread:
            self._thread.join(timeout=timeout)

    def _run(self):
        while True:
            item = self._queue.get()
            if item is _STOP:
                break
            fn, args = item
            try:
                fn(*args)
            except Exception as e:
                print(f"[Session {self.name}] Task {getattr(fn, '__name__', fn)} failed: {e}", flush=True)
                traceback.print_exc()
