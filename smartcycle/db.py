import os
import threading
from contextlib import contextmanager

from sqlmodel import SQLModel, create_engine, Session
from .settings import settings

# collections guarded by exclusive()
USERS = "users"
GUARDIANS = "guardians"
BIKES = "bikes"
LEDGER = "ledger"

def _make_engine(url: str):
    if url.startswith("sqlite"):
        path = url.split("///", 1)[-1]
        if path and path != ":memory:":
            os.makedirs(os.path.dirname(os.path.abspath(path)), exist_ok=True)
        return create_engine(url, connect_args={"check_same_thread": False, "timeout": 30})
    return create_engine(url, pool_pre_ping=True)

engine = _make_engine(settings.database_url)

def init_db():
    SQLModel.metadata.create_all(engine)

def get_session():
    # reads after commit must not trigger a reload on a closed session
    return Session(engine, expire_on_commit=False)

_locks: dict[str, threading.Lock] = {}
_locks_guard = threading.Lock()

def _lock_for(name: str) -> threading.Lock:
    with _locks_guard:
        lock = _locks.get(name)
        if lock is None:
            lock = _locks[name] = threading.Lock()
        return lock

@contextmanager
def exclusive(*collections: str):
    """Hold the per-collection write locks for the duration of the block.

    Locks are taken in sorted order so callers needing several collections
    never deadlock against each other.
    """
    held = []
    try:
        for name in sorted(set(collections)):
            lock = _lock_for(name)
            lock.acquire()
            held.append(lock)
        yield
    finally:
        for lock in reversed(held):
            lock.release()
