import logging
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


def _socketio_spawn(target: Callable[[], None]):
    from sudoku_classic import socketio
    return socketio.start_background_task(target)


class SessionTimer:
    """Cancellable once-per-interval tick owned by a single session.

    Every ``start`` arms a fresh stop event, so a worker left over from an
    earlier run can never tick again once ``stop`` has been called.
    When ``enabled`` is False the timer tracks its running flag but never
    spawns a worker (used under TESTING; ticks are then driven by hand).
    """

    def __init__(self, on_tick: Callable[[], None], interval: float = 1.0,
                 spawn: Optional[Callable] = None, enabled: bool = True, label: str = ''):
        self.on_tick = on_tick
        self.interval = float(interval)
        self.enabled = enabled
        self.label = label
        self._spawn = spawn or _socketio_spawn
        self._stop_event: Optional[threading.Event] = None
        self._task = None
        self._lock = threading.Lock()

    @property
    def running(self) -> bool:
        return self._stop_event is not None and not self._stop_event.is_set()

    def start(self) -> None:
        with self._lock:
            if self.running:
                return
            stop_event = threading.Event()
            self._stop_event = stop_event
            if self.enabled:
                self._task = self._spawn(lambda: self._worker(stop_event))
        logger.info(f"[timer-start] session={self.label} interval={self.interval}s")

    def stop(self) -> None:
        with self._lock:
            stop_event, task = self._stop_event, self._task
            if stop_event is None or stop_event.is_set():
                return
            stop_event.set()
            self._task = None
        join = getattr(task, 'join', None)
        if join is not None and task is not threading.current_thread():
            join(timeout=self.interval + 1.0)
        logger.info(f"[timer-stop] session={self.label}")

    def _worker(self, stop_event: threading.Event) -> None:
        while not stop_event.wait(self.interval):
            try:
                self.on_tick()
            except Exception:
                logger.exception(f"[timer-error] session={self.label}")
                stop_event.set()
