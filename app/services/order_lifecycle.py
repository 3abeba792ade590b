# app/services/order_lifecycle.py
"""
Order state machine and authorization predicate.

Pure functions over (action, caller profile, order); no database access.
`OrderService` uses them to decide whether a command may run and to
build the precondition of the conditional UPDATE that performs it.

    pending ──accept──▶ accepted ──deliver──▶ delivered
       │                   │
       └──────cancel───────┴──────▶ cancelled
"""

import secrets
import threading
import time
from dataclasses import dataclass
from typing import Any

from app.core.errors import InvalidStateTransition, PinMismatch, Unauthorized
from app.models.order import (
    Order,
    STATUS_ACCEPTED,
    STATUS_CANCELLED,
    STATUS_DELIVERED,
    STATUS_PENDING,
)
from app.models.profile import Profile, ROLE_CUSTOMER, ROLE_DELIVERY, ROLE_OWNER

ACTION_ACCEPT = "accept"
ACTION_CANCEL = "cancel"
ACTION_DELETE = "delete"
ACTION_ASSIGN = "assign"
ACTION_DELIVER = "deliver"
ACTION_EDIT_ITEMS = "edit_items"
ACTION_SYNC_TOTAL = "sync_total"

EDITABLE_STATUSES = (STATUS_PENDING, STATUS_ACCEPTED)

PIN_LENGTH = 6


@dataclass(frozen=True)
class Transition:
    action: str
    role: str
    from_statuses: tuple[str, ...]
    # None => command does not change status
    to_status: str | None = None
    # order.customer_id must be the caller
    requires_ownership: bool = False
    # order.delivery_boy_id must be the caller
    requires_assignment: bool = False
    clears_assignment: bool = False


TRANSITIONS: dict[tuple[str, str], Transition] = {
    (t.action, t.role): t
    for t in (
        Transition(ACTION_ACCEPT, ROLE_OWNER, (STATUS_PENDING,), STATUS_ACCEPTED),
        Transition(
            ACTION_ACCEPT,
            ROLE_DELIVERY,
            (STATUS_PENDING,),
            STATUS_ACCEPTED,
            requires_assignment=True,
        ),
        Transition(
            ACTION_CANCEL,
            ROLE_OWNER,
            EDITABLE_STATUSES,
            STATUS_CANCELLED,
            clears_assignment=True,
        ),
        Transition(
            ACTION_CANCEL,
            ROLE_CUSTOMER,
            (STATUS_PENDING,),
            STATUS_CANCELLED,
            requires_ownership=True,
            clears_assignment=True,
        ),
        Transition(
            ACTION_DELETE,
            ROLE_CUSTOMER,
            (STATUS_PENDING, STATUS_CANCELLED),
            requires_ownership=True,
        ),
        Transition(ACTION_ASSIGN, ROLE_OWNER, EDITABLE_STATUSES),
        # Owner fallback: may confirm without an assignee, PIN still checked
        Transition(ACTION_DELIVER, ROLE_OWNER, (STATUS_ACCEPTED,), STATUS_DELIVERED),
        Transition(
            ACTION_DELIVER,
            ROLE_DELIVERY,
            (STATUS_ACCEPTED,),
            STATUS_DELIVERED,
            requires_assignment=True,
        ),
        Transition(ACTION_EDIT_ITEMS, ROLE_OWNER, EDITABLE_STATUSES),
        Transition(ACTION_SYNC_TOTAL, ROLE_OWNER, EDITABLE_STATUSES),
    )
}


def can_view(actor: Profile, order: Order) -> bool:
    """
    Row-level visibility:
      - owner sees every order
      - customer sees own orders
      - delivery person sees orders assigned to them
    """
    if actor.role == ROLE_OWNER:
        return True
    if actor.role == ROLE_CUSTOMER:
        return order.customer_id == actor.id
    if actor.role == ROLE_DELIVERY:
        return order.delivery_boy_id is not None and order.delivery_boy_id == actor.id
    return False


def authorize(action: str, actor: Profile, order: Order) -> Transition:
    """
    Return the transition rule `actor` may apply to `order`.

    Raises:
        Unauthorized: role has no rule for the action, or the caller is
            not the order's customer / assignee where that is required.
    """
    rule = TRANSITIONS.get((action, actor.role))
    if rule is None:
        raise Unauthorized(f"Role '{actor.role}' may not {action.replace('_', ' ')} orders")
    if rule.requires_ownership and order.customer_id != actor.id:
        raise Unauthorized("Order belongs to another customer")
    if rule.requires_assignment and order.delivery_boy_id != actor.id:
        raise Unauthorized("Order is not assigned to you")
    return rule


def check_transition(rule: Transition, order: Order) -> None:
    """
    Raises:
        InvalidStateTransition: order status is not a source state of `rule`.
    """
    if order.status not in rule.from_statuses:
        raise InvalidStateTransition(
            f"Cannot {rule.action.replace('_', ' ')} an order that is {order.status}"
        )


def precondition_for(rule: Transition, actor: Profile) -> dict[str, Any]:
    """
    WHERE-clause precondition re-checked by the conditional UPDATE.
    """
    precondition: dict[str, Any] = {"status": rule.from_statuses}
    if rule.requires_ownership:
        precondition["customer_id"] = actor.id
    if rule.requires_assignment:
        precondition["delivery_boy_id"] = actor.id
    return precondition


def verify_pin(order: Order, submitted: str | None) -> None:
    """
    Delivery handoff check. Exact string match against the stored PIN;
    orders without a stored PIN pass.

    Raises:
        PinMismatch
    """
    expected = order.delivery_pin
    if not expected:
        return
    # Compare bytes: compare_digest rejects non-ASCII str
    if submitted is None or not secrets.compare_digest(
        submitted.encode(), expected.encode()
    ):
        raise PinMismatch("Delivery PIN does not match")


def generate_pin() -> str:
    return f"{secrets.randbelow(10 ** PIN_LENGTH):0{PIN_LENGTH}d}"


_order_number_lock = threading.Lock()
_last_order_millis = 0


def next_order_number() -> str:
    """
    ORD<epoch millis>. Strictly increasing within this process; two
    processes may still collide (the column is unique).
    """
    global _last_order_millis
    with _order_number_lock:
        millis = max(int(time.time() * 1000), _last_order_millis + 1)
        _last_order_millis = millis
    return f"ORD{millis}"
