from contextlib import contextmanager
from itertools import chain
from typing import Callable, Generator, List

from sqlalchemy import create_engine, event
from sqlalchemy.orm import Session, declarative_base, scoped_session, sessionmaker

from .settings import get_settings

settings = get_settings()
engine = create_engine(settings.database_url, echo=False, future=True)
SessionLocal = scoped_session(sessionmaker(bind=engine, autoflush=False, autocommit=False, expire_on_commit=False))
Base = declarative_base()

TaskListener = Callable[[int], None]

_CHANGED_TASKS = "taskcal.changed_tasks"
_task_listeners: List[TaskListener] = []


def on_task_change(listener: TaskListener) -> TaskListener:
    """Register a callback run with the id of every task a flush touches."""
    _task_listeners.append(listener)
    return listener


def _notify(task_id: int) -> None:
    for listener in _task_listeners:
        listener(task_id)


@event.listens_for(Session, "after_flush")
def _collect_task_changes(session: Session, flush_context) -> None:
    # new/dirty/deleted still hold the pre-flush state here, with ids assigned.
    changed = session.info.setdefault(_CHANGED_TASKS, set())
    for obj in chain(session.new, session.dirty, session.deleted):
        task_id = getattr(obj, "owner_task_id", None)
        if task_id is not None:
            changed.add(task_id)
            _notify(task_id)


@event.listens_for(Session, "after_commit")
def _announce_committed(session: Session) -> None:
    # Readers may have cached the pre-commit state in between; notify again.
    for task_id in session.info.pop(_CHANGED_TASKS, ()):
        _notify(task_id)


@event.listens_for(Session, "after_rollback")
def _announce_rolled_back(session: Session) -> None:
    # State cached from the discarded flush is stale as well.
    for task_id in session.info.pop(_CHANGED_TASKS, ()):
        _notify(task_id)


@contextmanager
def session_scope() -> Generator[Session, None, None]:
    session = SessionLocal()
    try:
        yield session
        session.commit()
    except Exception:
        session.rollback()
        raise
    finally:
        session.close()
