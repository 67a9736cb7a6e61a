from contextlib import contextmanager
from mess.extensions import db


@contextmanager
def atomic():
    """
    Runs the enclosed reads and writes as one unit of work.

    Commits when the block exits normally and rolls the whole session back
    on any exception, which is then re-raised.
    """
    try:
        yield db.session
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise


def locked(query):
    # SELECT ... FOR UPDATE where the backend supports it; SQLite ignores it.
    return query.with_for_update()
