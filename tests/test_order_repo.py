import uuid
from types import SimpleNamespace

from app.models.order import OrderEvent
from app.repositories.order_repo import EVENT_APPEND_LOCK_KEY, OrderRepository


class RecordingSession:
    """Just enough of a Session to watch what append_event issues."""

    def __init__(self, dialect: str):
        self.calls: list[tuple[str, object]] = []
        self._bind = SimpleNamespace(dialect=SimpleNamespace(name=dialect))

    def get_bind(self):
        return self._bind

    def exec(self, statement):
        self.calls.append(("exec", statement))

    def add(self, obj):
        self.calls.append(("add", obj))

    def flush(self):
        self.calls.append(("flush", None))


def _event() -> OrderEvent:
    return OrderEvent(
        order_id=uuid.uuid4(),
        order_number="ORD1",
        kind="created",
        status="pending",
        customer_id=uuid.uuid4(),
    )


def test_postgres_event_append_takes_commit_scoped_lock_first():
    session = RecordingSession("postgresql")
    event = _event()

    OrderRepository().append_event(session, event)

    kinds = [kind for kind, _ in session.calls]
    assert kinds == ["exec", "add", "flush"]
    lock = session.calls[0][1]
    assert "pg_advisory_xact_lock" in str(lock)
    assert lock.compile().params == {"key": EVENT_APPEND_LOCK_KEY}
    assert session.calls[1][1] is event


def test_sqlite_event_append_needs_no_lock():
    session = RecordingSession("sqlite")

    OrderRepository().append_event(session, _event())

    assert [kind for kind, _ in session.calls] == ["add", "flush"]
