# app/repositories/order_repo.py
import uuid
from collections.abc import Iterable
from typing import Any

from sqlalchemy import delete, text, update
from sqlmodel import Session, select

from app.models.order import Order, OrderEvent, OrderItem

# pg_advisory_xact_lock key guarding order_events inserts
EVENT_APPEND_LOCK_KEY = 7_310_418_001


def _where(model, precondition: dict[str, Any]) -> list:
    """
    Translate {"status": ("pending", "accepted"), "delivery_boy_id": x}
    into SQL clauses: tuples/lists/sets mean IN, None means IS NULL.
    """
    clauses = []
    for field, expected in precondition.items():
        column = getattr(model, field)
        if isinstance(expected, (tuple, list, set, frozenset)):
            clauses.append(column.in_(list(expected)))
        elif expected is None:
            clauses.append(column.is_(None))
        else:
            clauses.append(column == expected)
    return clauses


class OrderRepository:
    """
    Data access layer for orders, order_items and order_events.

    NOTE:
      - No commits here; every lifecycle command is one transaction
        and the service is responsible for calling session.commit().
      - Status / assignment writes go through `conditional_update`:
        the precondition is part of the UPDATE's WHERE clause, so a
        write whose precondition no longer holds at commit time
        affects zero rows instead of overwriting.
    """

    # ---- Orders ----

    def list_visible(
        self,
        session: Session,
        *,
        customer_id: uuid.UUID | None = None,
        delivery_boy_id: uuid.UUID | None = None,
        status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[Order]:
        """
        List orders newest first. The caller-scoping filters
        (customer_id / delivery_boy_id) are chosen by the service.
        """
        stmt = select(Order)
        if customer_id is not None:
            stmt = stmt.where(Order.customer_id == customer_id)
        if delivery_boy_id is not None:
            stmt = stmt.where(Order.delivery_boy_id == delivery_boy_id)
        if status is not None:
            stmt = stmt.where(Order.status == status)
        stmt = (
            stmt.order_by(Order.created_at.desc(), Order.order_number.desc())
            .offset(skip)
            .limit(limit)
        )
        return session.exec(stmt).all()

    def get_by_id(self, session: Session, order_id: uuid.UUID) -> Order | None:
        return session.get(Order, order_id, populate_existing=True)

    def create_order(self, session: Session, order: Order) -> Order:
        """
        Insert an Order without committing, but ensure id is populated.
        """
        session.add(order)
        session.flush()
        session.refresh(order)
        return order

    def conditional_update(
        self,
        session: Session,
        order_id: uuid.UUID,
        precondition: dict[str, Any],
        patch: dict[str, Any],
    ) -> bool:
        """
        Apply `patch` to the order only if `precondition` still holds.

        Returns:
            True if the row was updated, False if the precondition
            failed (or the row is gone).
        """
        stmt = (
            update(Order)
            .where(Order.id == order_id, *_where(Order, precondition))
            .values(**patch)
            .execution_options(synchronize_session=False)
        )
        result = session.exec(stmt)  # type: ignore[call-overload]
        return result.rowcount == 1

    def conditional_delete(
        self,
        session: Session,
        order_id: uuid.UUID,
        precondition: dict[str, Any],
    ) -> bool:
        """
        Delete the order and its lines only if `precondition` holds.

        Lines go first (they reference the order); both statements
        filter on the same precondition, so a lost race deletes nothing.
        """
        matching = select(Order.id).where(Order.id == order_id, *_where(Order, precondition))
        session.exec(  # type: ignore[call-overload]
            delete(OrderItem)
            .where(OrderItem.order_id.in_(matching))
            .execution_options(synchronize_session=False)
        )
        result = session.exec(  # type: ignore[call-overload]
            delete(Order)
            .where(Order.id == order_id, *_where(Order, precondition))
            .execution_options(synchronize_session=False)
        )
        return result.rowcount == 1

    # ---- Order items ----

    def list_items_for_order(
        self,
        session: Session,
        order_id: uuid.UUID,
    ) -> list[OrderItem]:
        stmt = (
            select(OrderItem)
            .where(OrderItem.order_id == order_id)
            .order_by(OrderItem.created_at, OrderItem.item_name)
        )
        return session.exec(stmt).all()

    def list_items_for_orders(
        self,
        session: Session,
        order_ids: Iterable[uuid.UUID],
    ) -> list[OrderItem]:
        ids = list(order_ids)
        if not ids:
            return []
        stmt = select(OrderItem).where(OrderItem.order_id.in_(ids))
        return session.exec(stmt).all()

    def create_items(
        self,
        session: Session,
        items: list[OrderItem],
    ) -> list[OrderItem]:
        session.add_all(items)
        session.flush()
        for item in items:
            session.refresh(item)
        return items

    def update_item_quantity(
        self,
        session: Session,
        item_id: uuid.UUID,
        quantity: int,
        subtotal: float,
    ) -> None:
        session.exec(  # type: ignore[call-overload]
            update(OrderItem)
            .where(OrderItem.id == item_id)
            .values(quantity=quantity, subtotal=subtotal)
            .execution_options(synchronize_session=False)
        )

    # ---- Events ----

    def append_event(self, session: Session, event: OrderEvent) -> OrderEvent:
        """
        Insert without committing; flush assigns the sequence id.

        On Postgres a serial id is drawn at INSERT, not at commit, so two
        writers could commit ids out of order and a poller paging with
        `after=` would skip the late one. A transaction-scoped advisory
        lock, held until commit, makes id order equal commit order.
        SQLite already allows a single writer per database.
        """
        if session.get_bind().dialect.name == "postgresql":
            session.exec(  # type: ignore[call-overload]
                text("SELECT pg_advisory_xact_lock(:key)").bindparams(key=EVENT_APPEND_LOCK_KEY)
            )
        session.add(event)
        session.flush()
        return event

    def list_events(
        self,
        session: Session,
        *,
        after: int = 0,
        limit: int = 100,
        customer_id: uuid.UUID | None = None,
        delivery_boy_id: uuid.UUID | None = None,
    ) -> list[OrderEvent]:
        stmt = select(OrderEvent).where(OrderEvent.id > after)
        if customer_id is not None:
            stmt = stmt.where(OrderEvent.customer_id == customer_id)
        if delivery_boy_id is not None:
            stmt = stmt.where(OrderEvent.delivery_boy_id == delivery_boy_id)
        stmt = stmt.order_by(OrderEvent.id).limit(limit)
        return session.exec(stmt).all()

