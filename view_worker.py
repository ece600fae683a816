import itertools
import logging
import threading
from concurrent.futures import Future, ThreadPoolExecutor
from typing import Any, Callable, Dict

from errors import StaleResultError

logger = logging.getLogger(__name__)


class PendingResult:
    """Handle for one background request, tagged with its sequence number."""

    def __init__(self, worker: "ViewWorker", kind: str, seq: int, future: Future, context: Any = None):
        self.worker = worker
        self.kind = kind
        self.seq = seq
        self.future = future
        self.context = context

    def done(self) -> bool:
        return self.future.done()

    def is_current(self) -> bool:
        return self.worker.latest(self.kind) == self.seq

    def result(self, timeout=None):
        """Wait for the value; raises StaleResultError once superseded."""
        if not self.is_current():
            raise StaleResultError(self.kind, self.seq, self.worker.latest(self.kind))
        value = self.future.result(timeout)
        if not self.is_current():
            raise StaleResultError(self.kind, self.seq, self.worker.latest(self.kind))
        return value

    def __repr__(self):
        state = "done" if self.done() else "running"
        return f"PendingResult({self.kind}#{self.seq}, {state})"


class ViewWorker:
    """Runs load/sort/filter jobs off the owner's thread.

    Newer requests of the same kind supersede older ones: a queued job is
    cancelled, a running one finishes but its result is never handed out.
    """

    def __init__(self, max_workers: int = 2):
        self._pool = ThreadPoolExecutor(max_workers=max_workers, thread_name_prefix="csvnav-view")
        self._lock = threading.Lock()
        self._counter = itertools.count(1)
        self._latest: Dict[str, int] = {}
        self._inflight: Dict[str, PendingResult] = {}

    def latest(self, kind: str) -> int:
        with self._lock:
            return self._latest.get(kind, 0)

    def submit(self, kind: str, fn: Callable, *args, context: Any = None, **kwargs) -> PendingResult:
        with self._lock:
            seq = next(self._counter)
            self._latest[kind] = seq
            previous = self._inflight.get(kind)
            if previous is not None and not previous.future.done():
                if previous.future.cancel():
                    logger.debug("Cancelled queued %s request #%d", kind, previous.seq)
                else:
                    logger.debug("%s request #%d still running; result will be dropped", kind, previous.seq)
            future = self._pool.submit(fn, *args, **kwargs)
            pending = PendingResult(self, kind, seq, future, context)
            self._inflight[kind] = pending
        return pending

    def shutdown(self, wait: bool = True):
        self._pool.shutdown(wait=wait, cancel_futures=True)

    def __enter__(self):
        return self

    def __exit__(self, *exc):
        self.shutdown()
        return False
