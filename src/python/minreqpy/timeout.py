import logging
import queue
import threading
import time
from typing import Callable, TypeVar

from .errors import DeadlineExceededError, MinreqError, OtherError


logger = logging.getLogger(__name__)

T = TypeVar("T")


def deadline_after(seconds: float | None) -> float | None:
    """Absolute deadline on the time.monotonic() clock, or None for no deadline."""
    if seconds is None:
        return None
    return time.monotonic() + seconds


def time_until(deadline: float | None) -> float | None:
    """
    Seconds left until the deadline, or None when there is none.

    Raises DeadlineExceededError once the deadline has passed, so a zero or
    negative value never reaches socket.settimeout().
    """
    if deadline is None:
        return None
    remaining = deadline - time.monotonic()
    if remaining <= 0:
        raise DeadlineExceededError()
    return remaining


def enforce_timeout(deadline: float | None, work: Callable[[], T]) -> T:
    """
    Run `work` so that the caller gets an answer no later than `deadline`.

    Sockets take timeouts, but name resolution (socket.getaddrinfo) does not,
    so with a deadline the work runs on a worker thread and the calling thread
    waits on a one-shot queue for at most the remaining time. A worker that
    misses the deadline is abandoned, not cancelled: it keeps running until its
    own blocking call returns, and a result it produces then is closed (if it
    has a close() method) and dropped. That costs at most one thread per
    timed-out hop.

    Without a deadline the work runs inline on the calling thread.
    """
    if deadline is None:
        return work()

    remaining = time_until(deadline)
    outcome: queue.Queue[tuple[T | None, BaseException | None]] = queue.Queue(maxsize=1)
    # Guards the hand-off so a result is either delivered or discarded, never both.
    handoff = threading.Lock()
    abandoned = threading.Event()

    def run() -> None:
        try:
            result = work()
        except BaseException as e:
            outcome.put((None, e))
            return

        with handoff:
            if not abandoned.is_set():
                outcome.put((result, None))
                return
        _discard(result)

    worker = threading.Thread(target=run, name="minreqpy-hop", daemon=True)
    worker.start()

    try:
        result, error = outcome.get(timeout=remaining)
    except queue.Empty:
        with handoff:
            abandoned.set()
            late = None if outcome.empty() else outcome.get_nowait()
        if late is not None:
            _discard(late[0])
        logger.warning("Deadline reached, abandoning worker thread %s.", worker.name)
        raise DeadlineExceededError() from None

    if error is None:
        return result
    if isinstance(error, MinreqError):
        raise error
    raise OtherError("request connection panicked") from error


def _discard(result: object) -> None:
    close = getattr(result, "close", None)
    if close is None:
        return
    try:
        close()
    except MinreqError as e:
        logger.debug("Closing a discarded result failed: %s", e)
