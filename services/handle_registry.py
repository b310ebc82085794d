"""
Backstop for file handles owned by cache entries.

Sessions close their entries' handles explicitly. The registry only
covers the case where an entry escapes its session and is dropped
without close(): a weakref.finalize closes the handle when the entry is
garbage collected, and close_all() runs at shutdown.
"""

import threading
import weakref
from typing import IO, Any
import structlog

logger = structlog.get_logger(__name__)


def _close_handle(handle: IO) -> None:
    try:
        handle.close()
    except OSError as e:
        logger.warning("upload_handle_close_failed", error=str(e))


class HandleRegistry:
    """Thread-safe map of live owners to the finalizers closing their handles."""

    def __init__(self):
        self._lock = threading.Lock()
        self._finalizers: dict[int, weakref.finalize] = {}

    def register(self, owner: Any, handle: IO) -> None:
        """Close handle once owner is garbage collected (unless deregistered)."""
        finalizer = weakref.finalize(owner, _close_handle, handle)
        with self._lock:
            self._finalizers[id(owner)] = finalizer

    def deregister(self, owner: Any) -> None:
        """Forget owner; its handle is the caller's to close."""
        with self._lock:
            finalizer = self._finalizers.pop(id(owner), None)
        if finalizer is not None:
            finalizer.detach()

    def reap(self) -> int:
        """
        Drop bookkeeping for owners that were already collected.

        Returns:
            Number of entries removed
        """
        with self._lock:
            dead = [key for key, finalizer in self._finalizers.items() if not finalizer.alive]
            for key in dead:
                del self._finalizers[key]
        if dead:
            logger.debug("upload_handles_reaped", count=len(dead))
        return len(dead)

    def close_all(self) -> int:
        """
        Close every handle still registered.

        Returns:
            Number of handles closed
        """
        with self._lock:
            finalizers = list(self._finalizers.values())
            self._finalizers.clear()

        closed = 0
        for finalizer in finalizers:
            if finalizer.alive:
                finalizer()
                closed += 1
        return closed

    def __len__(self) -> int:
        with self._lock:
            return len(self._finalizers)

    def __contains__(self, owner: Any) -> bool:
        with self._lock:
            finalizer = self._finalizers.get(id(owner))
        return finalizer is not None and finalizer.alive
