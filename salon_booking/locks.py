# salon_booking/locks.py
"""
Keyed mutual exclusion for the write paths.

Bookings are serialized per professional and queue renumbering per
establishment. The registry only hands out mutexes; all state they guard
lives in the database, and the services also take a row lock
(``SELECT ... FOR UPDATE``) so separate processes serialize on databases
that support it.
"""

from contextlib import contextmanager
import logging
import threading
from typing import Dict, Iterator

logger = logging.getLogger(__name__)

_REGISTRY: Dict[str, threading.Lock] = {}
_REGISTRY_LOCK = threading.Lock()


def _lock_for(key: str) -> threading.Lock:
    with _REGISTRY_LOCK:
        lock = _REGISTRY.get(key)
        if lock is None:
            lock = _REGISTRY[key] = threading.Lock()
        return lock


@contextmanager
def keyed_lock(key: str) -> Iterator[None]:
    lock = _lock_for(key)
    if not lock.acquire(blocking=False):
        logger.debug("lock_contended", extra={"lock_key": key})
        lock.acquire()
    try:
        yield
    finally:
        lock.release()


def professional_lock(professional_id: int):
    return keyed_lock(f"professional:{professional_id}:bookings")


def queue_lock(establishment_id: int):
    return keyed_lock(f"establishment:{establishment_id}:queue")
