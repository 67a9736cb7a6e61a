import threading
import weakref
from contextlib import contextmanager

_registry_guard = threading.Lock()
# Entries live only while some thread holds or waits on them.
_locks = weakref.WeakValueDictionary()


class _KeyLock:
    __slots__ = ("lock", "__weakref__")

    def __init__(self):
        self.lock = threading.RLock()


@contextmanager
def keyed_lock(*key):
    """
    Process-wide mutual exclusion for one key, e.g. ("bill", teacher_id, month, year).

    Complements row locks for databases without SELECT ... FOR UPDATE.
    """
    with _registry_guard:
        entry = _locks.get(key)
        if entry is None:
            entry = _KeyLock()
            _locks[key] = entry
    with entry.lock:
        yield


def bill_lock(teacher_id, month, year):
    return keyed_lock("bill", int(teacher_id), int(month), int(year))


def attendance_lock(teacher_id, day):
    return keyed_lock("attendance", int(teacher_id), day.isoformat())
