# app/services/order_service.py
import logging
import uuid
from collections.abc import Iterator
from contextlib import contextmanager
from datetime import datetime, timezone
from typing import Any

from sqlalchemy.exc import OperationalError
from sqlmodel import Session
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from app.core.config import get_settings
from app.core.errors import (
    InvalidStateTransition,
    NotFound,
    PinMismatch,
    Transient,
    Unauthorized,
    ValidationFailed,
)
from app.core.events import OrderChangeFeed
from app.core.geo import distance_km
from app.models.catalog import Item, ItemVariant
from app.models.order import Order, OrderEvent, OrderItem, STATUS_PENDING
from app.models.profile import Profile, ROLE_CUSTOMER, ROLE_DELIVERY
from app.repositories.cart_repo import CartRepository
from app.repositories.catalog_repo import CatalogRepository
from app.repositories.order_repo import OrderRepository
from app.repositories.profile_repo import ProfileRepository
from app.repositories.shop_repo import ShopRepository
from app.schemas.order import (
    LineQuantity,
    OrderCreate,
    OrderEventRead,
    OrderItemRead,
    OrderRead,
    QuantityChange,
    QuantityEditResult,
)
from app.services.order_lifecycle import (
    ACTION_ACCEPT,
    ACTION_ASSIGN,
    ACTION_CANCEL,
    ACTION_DELETE,
    ACTION_DELIVER,
    ACTION_EDIT_ITEMS,
    ACTION_SYNC_TOTAL,
    Transition,
    authorize,
    can_view,
    check_transition,
    generate_pin,
    next_order_number,
    precondition_for,
    verify_pin,
)

settings = get_settings()
logger = logging.getLogger(__name__)

# Only Transient failures are retried; everything else needs new input.
retry_transient = retry(
    retry=retry_if_exception_type(Transient),
    stop=stop_after_attempt(settings.TRANSIENT_RETRY_ATTEMPTS),
    wait=wait_exponential(multiplier=0.1, max=settings.TRANSIENT_RETRY_MAX_WAIT),
    reraise=True,
)


def _now() -> datetime:
    return datetime.now(timezone.utc)


def _money(value: float) -> float:
    return round(value, 2)


class OrderService:
    """
    Order lifecycle manager.

    Responsibilities:
      - Create an order from the customer's cart (snapshot lines, PIN)
      - Enforce the transition table and authorization predicate
        (app.services.order_lifecycle)
      - Perform every state change as one conditional UPDATE so racing
        actors cannot both win
      - Keep total_amount equal to the sum of line subtotals
      - Append an OrderEvent per change and publish it after commit
    """

    def __init__(
        self,
        order_repo: OrderRepository,
        cart_repo: CartRepository,
        catalog_repo: CatalogRepository,
        profile_repo: ProfileRepository,
        shop_repo: ShopRepository,
        feed: OrderChangeFeed,
    ):
        self.order_repo = order_repo
        self.cart_repo = cart_repo
        self.catalog_repo = catalog_repo
        self.profile_repo = profile_repo
        self.shop_repo = shop_repo
        self.feed = feed

    # -------- Transaction helpers --------

    @contextmanager
    def _transaction(self, session: Session) -> Iterator[None]:
        """
        Commit on success; roll back on any error. Lost connections are
        reported as Transient so callers (and retry_transient) can retry.
        """
        try:
            yield
            session.commit()
        except OperationalError as exc:
            session.rollback()
            logger.warning("Order store unavailable: %s", exc)
            raise Transient("Order store is unavailable, please retry") from exc
        except Exception:
            session.rollback()
            raise

    def _record(
        self,
        session: Session,
        order: Order,
        kind: str,
        *,
        status: str | None = None,
        delivery_boy_id: uuid.UUID | None = None,
        payload: dict[str, Any] | None = None,
    ) -> OrderEvent:
        return self.order_repo.append_event(
            session,
            OrderEvent(
                order_id=order.id,
                order_number=order.order_number,
                kind=kind,
                status=status or order.status,
                customer_id=order.customer_id,
                delivery_boy_id=delivery_boy_id,
                payload=payload,
            ),
        )

    def _get_visible(self, session: Session, actor: Profile, order_id: uuid.UUID) -> Order:
        """
        Load an order the caller is allowed to see.

        Orders outside the caller's visibility are reported exactly like
        missing ones.
        """
        order = self.order_repo.get_by_id(session, order_id)
        if order is None or not can_view(actor, order):
            raise NotFound("Order not found")
        return order

    def _lost_race(self, session: Session, order_id: uuid.UUID, action: str) -> Exception:
        current = self.order_repo.get_by_id(session, order_id)
        if current is None:
            return NotFound("Order not found")
        return InvalidStateTransition(
            f"Order changed concurrently (now {current.status}); cannot {action.replace('_', ' ')}"
        )

    def _apply(
        self,
        session: Session,
        actor: Profile,
        order: Order,
        rule: Transition,
        kind: str,
        patch: dict[str, Any] | None = None,
        payload: dict[str, Any] | None = None,
    ) -> OrderRead:
        """
        Run one conditional write for `rule` plus its event, then publish.
        """
        values: dict[str, Any] = dict(patch or {})
        if rule.to_status is not None:
            values["status"] = rule.to_status
        if rule.clears_assignment:
            values["delivery_boy_id"] = None
        values["updated_at"] = _now()

        new_status = values.get("status", order.status)
        # A cleared assignee still has to learn about the change.
        audience = values.get("delivery_boy_id", order.delivery_boy_id) or order.delivery_boy_id

        with self._transaction(session):
            updated = self.order_repo.conditional_update(
                session,
                order.id,
                precondition_for(rule, actor),
                values,
            )
            if not updated:
                raise self._lost_race(session, order.id, rule.action)
            event = self._record(
                session,
                order,
                kind,
                status=new_status,
                delivery_boy_id=audience,
                payload=payload,
            )

        self.feed.publish([event])
        logger.info(
            "Order %s: %s by %s %s -> %s",
            order.order_number,
            kind,
            actor.role,
            actor.id,
            new_status,
        )
        return self._build_order_dto(session, actor, self.order_repo.get_by_id(session, order.id))

    # -------- Customer operations --------

    @retry_transient
    def place_order(
        self,
        session: Session,
        customer: Profile,
        payload: OrderCreate,
    ) -> OrderRead:
        """
        Convert the customer's cart into a pending order.

        Steps:
          1. Resolve contact + address (payload, else profile); all required.
          2. Load cart; error if empty.
          3. Resolve every cart line against the catalog (exists, in stock).
          4. If coordinates given and the shop location is known,
             compute distance and enforce the delivery radius.
          5. Insert order (order_number, PIN) + snapshot lines, clear cart,
             append 'created' event. One transaction.
        """
        if customer.role != ROLE_CUSTOMER:
            raise Unauthorized("Only customers can place orders")

        name = payload.customer_name or (customer.full_name or "").strip()
        phone = payload.customer_phone or (customer.phone or "").strip()
        address = payload.delivery_address or (customer.address or "").strip()
        missing = [
            field
            for field, value in (
                ("customer_name", name),
                ("customer_phone", phone),
                ("delivery_address", address),
            )
            if not value
        ]
        if missing:
            raise ValidationFailed(f"Missing required fields: {', '.join(missing)}")

        cart_items = self.cart_repo.list_for_customer(session, customer.id)
        if not cart_items:
            raise ValidationFailed("Cart is empty")

        resolved: list[tuple[Item, ItemVariant, int]] = []
        errors: list[str] = []
        for ci in cart_items:
            variant = self.catalog_repo.get_variant(session, ci.variant_id)
            item = self.catalog_repo.get_item(session, ci.item_id)
            if variant is None or item is None or variant.item_id != item.id:
                errors.append(f"{ci.variant_id}: no longer available")
                continue
            if not item.in_stock:
                errors.append(f"{item.name}: out of stock")
                continue
            resolved.append((item, variant, ci.quantity))
        if errors:
            raise ValidationFailed("Cart validation failed: " + "; ".join(errors))

        distance: float | None = None
        if payload.latitude is not None and payload.longitude is not None:
            shop = self.shop_repo.get_current(session)
            if shop is not None:
                distance = distance_km(
                    shop.latitude, shop.longitude, payload.latitude, payload.longitude
                )
                if distance > settings.DELIVERY_RADIUS_KM:
                    raise ValidationFailed(
                        f"Delivery is not available {distance:.2f} km from the shop "
                        f"(limit {settings.DELIVERY_RADIUS_KM:g} km)"
                    )

        total = _money(sum(variant.price * qty for _, variant, qty in resolved))

        with self._transaction(session):
            order = self.order_repo.create_order(
                session,
                Order(
                    order_number=next_order_number(),
                    customer_id=customer.id,
                    customer_name=name,
                    customer_phone=phone,
                    delivery_address=address,
                    latitude=payload.latitude,
                    longitude=payload.longitude,
                    distance_km=distance,
                    total_amount=total,
                    status=STATUS_PENDING,
                    delivery_pin=generate_pin(),
                ),
            )
            lines = [
                OrderItem(
                    order_id=order.id,
                    item_id=item.id,
                    variant_id=variant.id,
                    item_name=item.name,
                    quantity_unit=variant.quantity_unit,
                    quantity=qty,
                    price=variant.price,
                    subtotal=_money(variant.price * qty),
                )
                for item, variant, qty in resolved
            ]
            self.order_repo.create_items(session, lines)
            self.cart_repo.clear_customer_cart(session, customer.id, commit=False)

            # Remember the address for the next checkout
            if payload.delivery_address and payload.delivery_address != customer.address:
                customer.address = payload.delivery_address
                customer.updated_at = _now()
                session.add(customer)

            event = self._record(session, order, "created")

        self.feed.publish([event])
        logger.info(
            "Order %s placed by %s: %d lines, total %.2f",
            order.order_number,
            customer.id,
            len(lines),
            total,
        )
        return self._build_order_dto(session, customer, self.order_repo.get_by_id(session, order.id))

    @retry_transient
    def delete_order(self, session: Session, actor: Profile, order_id: uuid.UUID) -> None:
        """
        Customer removes their own pending or cancelled order.
        """
        order = self._get_visible(session, actor, order_id)
        rule = authorize(ACTION_DELETE, actor, order)
        check_transition(rule, order)
        order_number = order.order_number

        with self._transaction(session):
            if not self.order_repo.conditional_delete(
                session, order.id, precondition_for(rule, actor)
            ):
                raise self._lost_race(session, order.id, rule.action)
            event = self._record(session, order, "deleted", delivery_boy_id=order.delivery_boy_id)

        self.feed.publish([event])
        logger.info("Order %s deleted by customer %s", order_number, actor.id)

    # -------- Shared transitions --------

    @retry_transient
    def accept_order(self, session: Session, actor: Profile, order_id: uuid.UUID) -> OrderRead:
        """
        Owner accepts a pending order, or the assigned delivery person
        accepts their assignment. Both move pending -> accepted.
        """
        order = self._get_visible(session, actor, order_id)
        rule = authorize(ACTION_ACCEPT, actor, order)
        check_transition(rule, order)
        return self._apply(session, actor, order, rule, "accepted")

    @retry_transient
    def cancel_order(self, session: Session, actor: Profile, order_id: uuid.UUID) -> OrderRead:
        """
        Owner cancels a pending/accepted order; a customer cancels their
        own pending order. Always clears the delivery assignment.
        """
        order = self._get_visible(session, actor, order_id)
        rule = authorize(ACTION_CANCEL, actor, order)
        check_transition(rule, order)
        return self._apply(session, actor, order, rule, "cancelled")

    @retry_transient
    def confirm_delivery(
        self,
        session: Session,
        actor: Profile,
        order_id: uuid.UUID,
        pin: str | None,
    ) -> OrderRead:
        """
        Mark an accepted order delivered after the PIN handoff check.

        Allowed for the assigned delivery person, and for the owner as a
        fallback (with or without an assignee). The PIN is checked in
        both cases; a mismatch leaves the order unchanged.
        """
        order = self._get_visible(session, actor, order_id)
        rule = authorize(ACTION_DELIVER, actor, order)
        check_transition(rule, order)
        try:
            verify_pin(order, pin)
        except PinMismatch:
            logger.info("PIN mismatch on order %s by %s %s", order.order_number, actor.role, actor.id)
            raise
        return self._apply(
            session,
            actor,
            order,
            rule,
            "delivered",
            patch={"delivered_by": actor.id},
        )

    # -------- Owner operations --------

    @retry_transient
    def assign_delivery(
        self,
        session: Session,
        actor: Profile,
        order_id: uuid.UUID,
        delivery_person_id: uuid.UUID | None,
    ) -> OrderRead:
        """
        Owner assigns (or clears) the delivery person of an open order.
        """
        order = self._get_visible(session, actor, order_id)
        rule = authorize(ACTION_ASSIGN, actor, order)
        check_transition(rule, order)

        if delivery_person_id is not None:
            target = self.profile_repo.get_by_id(session, delivery_person_id)
            if target is None or target.role != ROLE_DELIVERY:
                raise ValidationFailed("Target profile is not a delivery person")

        return self._apply(
            session,
            actor,
            order,
            rule,
            "assigned",
            patch={"delivery_boy_id": delivery_person_id},
            payload={
                "previous_delivery_boy_id": str(order.delivery_boy_id) if order.delivery_boy_id else None,
            },
        )

    @retry_transient
    def edit_quantities(
        self,
        session: Session,
        actor: Profile,
        order_id: uuid.UUID,
        lines: list[LineQuantity],
    ) -> QuantityEditResult:
        """
        Owner changes line quantities of an open order.

        Lines are rewritten first and the order total last, in one
        transaction; the total write is conditional on the order still
        being editable, so a concurrent delivery/cancel rolls the whole
        edit back. Emits 'quantities_changed' with per-line deltas.
        """
        order = self._get_visible(session, actor, order_id)
        rule = authorize(ACTION_EDIT_ITEMS, actor, order)
        check_transition(rule, order)

        if not lines:
            raise ValidationFailed("No lines to update")
        seen: set[uuid.UUID] = set()
        for line in lines:
            if line.quantity <= 0:
                raise ValidationFailed("Quantity must be greater than zero")
            if line.order_item_id in seen:
                raise ValidationFailed(f"Line {line.order_item_id} given twice")
            seen.add(line.order_item_id)

        current = {it.id: it for it in self.order_repo.list_items_for_order(session, order.id)}
        unknown = [str(line.order_item_id) for line in lines if line.order_item_id not in current]
        if unknown:
            raise ValidationFailed(f"Lines not in this order: {', '.join(unknown)}")

        changes: list[QuantityChange] = []
        subtotals = {item_id: it.subtotal for item_id, it in current.items()}
        for line in lines:
            existing = current[line.order_item_id]
            if existing.quantity == line.quantity:
                continue
            subtotals[existing.id] = _money(existing.price * line.quantity)
            changes.append(
                QuantityChange(
                    order_item_id=existing.id,
                    item_name=existing.item_name,
                    old_quantity=existing.quantity,
                    new_quantity=line.quantity,
                    delta=line.quantity - existing.quantity,
                )
            )

        if not changes:
            return QuantityEditResult(order=self._build_order_dto(session, actor, order), changes=[])

        old_total = order.total_amount
        new_total = _money(sum(subtotals.values()))

        with self._transaction(session):
            for change in changes:
                self.order_repo.update_item_quantity(
                    session,
                    change.order_item_id,
                    change.new_quantity,
                    subtotals[change.order_item_id],
                )
            updated = self.order_repo.conditional_update(
                session,
                order.id,
                precondition_for(rule, actor),
                {"total_amount": new_total, "updated_at": _now()},
            )
            if not updated:
                raise self._lost_race(session, order.id, rule.action)
            event = self._record(
                session,
                order,
                "quantities_changed",
                delivery_boy_id=order.delivery_boy_id,
                payload={
                    "changes": [c.model_dump(mode="json") for c in changes],
                    "old_total": old_total,
                    "new_total": new_total,
                },
            )

        self.feed.publish([event])
        logger.info(
            "Order %s: %d line(s) edited by owner, total %.2f -> %.2f",
            order.order_number,
            len(changes),
            old_total,
            new_total,
        )
        refreshed = self.order_repo.get_by_id(session, order.id)
        return QuantityEditResult(
            order=self._build_order_dto(session, actor, refreshed),
            changes=changes,
        )

    @retry_transient
    def sync_total(self, session: Session, actor: Profile, order_id: uuid.UUID) -> OrderRead:
        """
        Rewrite total_amount from the committed lines.

        This is the retry path for a total write that failed after the
        line writes went through.
        """
        order = self._get_visible(session, actor, order_id)
        rule = authorize(ACTION_SYNC_TOTAL, actor, order)
        check_transition(rule, order)

        items = self.order_repo.list_items_for_order(session, order.id)
        total = _money(sum(it.subtotal for it in items))
        if total == order.total_amount:
            return self._build_order_dto(session, actor, order)
        return self._apply(
            session,
            actor,
            order,
            rule,
            "total_synced",
            patch={"total_amount": total},
            payload={"old_total": order.total_amount, "new_total": total},
        )

    # -------- Reads --------

    def list_orders(
        self,
        session: Session,
        actor: Profile,
        status: str | None = None,
        skip: int = 0,
        limit: int = 50,
    ) -> list[OrderRead]:
        """
        Orders visible to the caller, newest first, with items.
        """
        scope: dict[str, uuid.UUID] = {}
        if actor.role == ROLE_CUSTOMER:
            scope["customer_id"] = actor.id
        elif actor.role == ROLE_DELIVERY:
            scope["delivery_boy_id"] = actor.id

        orders = self.order_repo.list_visible(
            session, status=status, skip=skip, limit=limit, **scope
        )
        items_by_order: dict[uuid.UUID, list[OrderItem]] = {}
        for it in self.order_repo.list_items_for_orders(session, [o.id for o in orders]):
            items_by_order.setdefault(it.order_id, []).append(it)

        return [
            self._build_order_dto(session, actor, o, items_by_order.get(o.id, []))
            for o in orders
        ]

    def get_order(self, session: Session, actor: Profile, order_id: uuid.UUID) -> OrderRead:
        order = self._get_visible(session, actor, order_id)
        return self._build_order_dto(session, actor, order)

    def list_events(
        self,
        session: Session,
        actor: Profile,
        after: int = 0,
        limit: int | None = None,
    ) -> list[OrderEventRead]:
        """
        Change feed page for the caller, in sequence order.

        Clients keep the last `id` they saw and poll with after=<id>.
        """
        limit = min(limit or settings.EVENTS_PAGE_LIMIT, settings.EVENTS_PAGE_LIMIT)
        scope: dict[str, uuid.UUID] = {}
        if actor.role == ROLE_CUSTOMER:
            scope["customer_id"] = actor.id
        elif actor.role == ROLE_DELIVERY:
            scope["delivery_boy_id"] = actor.id

        events = self.order_repo.list_events(session, after=after, limit=limit, **scope)
        return [OrderEventRead.model_validate(e, from_attributes=True) for e in events]

    # -------- Helper DTO builder --------

    def _build_order_dto(
        self,
        session: Session,
        actor: Profile,
        order: Order | None,
        items: list[OrderItem] | None = None,
    ) -> OrderRead:
        """
        Compose OrderRead from ORM rows. The PIN is hidden from
        delivery staff.
        """
        if order is None:
            raise NotFound("Order not found")
        if items is None:
            items = self.order_repo.list_items_for_order(session, order.id)

        return OrderRead(
            id=order.id,
            order_number=order.order_number,
            customer_id=order.customer_id,
            customer_name=order.customer_name,
            customer_phone=order.customer_phone,
            delivery_address=order.delivery_address,
            latitude=order.latitude,
            longitude=order.longitude,
            distance_km=order.distance_km,
            total_amount=order.total_amount,
            status=order.status,  # Literal
            delivery_pin=None if actor.role == ROLE_DELIVERY else order.delivery_pin,
            delivery_boy_id=order.delivery_boy_id,
            delivered_by=order.delivered_by,
            created_at=order.created_at,
            updated_at=order.updated_at,
            items=[
                OrderItemRead(
                    id=it.id,
                    order_id=it.order_id,
                    item_id=it.item_id,
                    variant_id=it.variant_id,
                    item_name=it.item_name,
                    quantity_unit=it.quantity_unit,
                    quantity=it.quantity,
                    price=it.price,
                    subtotal=it.subtotal,
                )
                for it in items
            ],
        )
