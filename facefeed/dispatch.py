"""Single-threaded render context.

Worker threads never touch drawable state directly; they ``post`` callables
here and whichever thread owns the surface (the OpenCV window loop, or a
dedicated render thread in headless mode) runs them in order.
"""
from __future__ import annotations

import logging
import queue
import threading
from typing import Callable, Optional

logger = logging.getLogger(__name__)


class RenderDispatcher:
    def __init__(self):
        self._q: "queue.Queue[Callable[[], None]]" = queue.Queue()
        self._closed = threading.Event()
        self._thread: Optional[threading.Thread] = None

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def post(self, fn: Callable[[], None]) -> bool:
        """Queue fn for the render context. Returns False once closed."""
        if self._closed.is_set():
            return False
        self._q.put(fn)
        return True

    def run_pending(self, max_items: Optional[int] = None) -> int:
        """Run queued callables on the calling thread; returns how many ran."""
        ran = 0
        while max_items is None or ran < max_items:
            if self._closed.is_set():
                break
            try:
                fn = self._q.get_nowait()
            except queue.Empty:
                break
            self._run(fn)
            ran += 1
        return ran

    def _run(self, fn: Callable[[], None]) -> None:
        try:
            fn()
        except Exception:
            logger.exception("[dispatch] render callback failed")

    # ---- headless mode ----
    def start_thread(self, poll_interval: float = 0.05) -> None:
        """Drain the queue on a dedicated daemon thread."""
        if self._thread is not None:
            return

        def _loop():
            while not self._closed.is_set():
                try:
                    fn = self._q.get(timeout=poll_interval)
                except queue.Empty:
                    continue
                if self._closed.is_set():
                    break
                self._run(fn)

        self._thread = threading.Thread(target=_loop, name="render", daemon=True)
        self._thread.start()

    def close(self, timeout: float = 1.0) -> None:
        """Stop accepting work and drop anything still queued."""
        self._closed.set()
        if self._thread is not None and self._thread is not threading.current_thread():
            self._thread.join(timeout=timeout)
        self._thread = None
        dropped = 0
        while True:
            try:
                self._q.get_nowait()
                dropped += 1
            except queue.Empty:
                break
        if dropped:
            logger.debug(f"[dispatch] dropped {dropped} pending render callbacks")
