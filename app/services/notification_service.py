# app/services/notification_service.py
import logging
import smtplib
import uuid
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from sqlmodel import Session

from app.core.email_client import send_email, smtp_configured
from app.database import engine
from app.models.order import OrderEvent
from app.repositories.profile_repo import ProfileRepository

logger = logging.getLogger(__name__)

# Kinds the customer is emailed about
CUSTOMER_EMAIL_KINDS = ("quantities_changed", "accepted", "cancelled", "delivered")


class NotificationService:
    """
    Best-effort customer emails driven by the order change feed.

    `on_event` runs on the request thread right after commit; it only
    copies what it needs and hands the send to a worker thread, so a
    slow or failing SMTP server never blocks or fails a command.
    """

    def __init__(self, profile_repo: ProfileRepository):
        self.profile_repo = profile_repo
        self._executor: ThreadPoolExecutor | None = None

    def start(self) -> None:
        if self._executor is None:
            self._executor = ThreadPoolExecutor(max_workers=1, thread_name_prefix="notify")

    def stop(self) -> None:
        if self._executor is not None:
            self._executor.shutdown(wait=True)
            self._executor = None

    def wants(self, event: OrderEvent) -> bool:
        return event.kind in CUSTOMER_EMAIL_KINDS

    def on_event(self, event: OrderEvent) -> None:
        if not smtp_configured():
            logger.debug("SMTP not configured; skipping email for event %s", event.id)
            return
        if self._executor is None:
            logger.warning("Notifier not started; dropping email for event %s", event.id)
            return

        self._executor.submit(
            self.send_order_email,
            event.customer_id,
            event.order_number,
            event.kind,
            event.status,
            dict(event.payload or {}),
        )

    def send_order_email(
        self,
        customer_id: uuid.UUID,
        order_number: str,
        kind: str,
        status: str,
        payload: dict[str, Any],
    ) -> None:
        with Session(engine) as session:
            customer = self.profile_repo.get_by_id(session, customer_id)
            if customer is None:
                return
            to_email = customer.email

        subject, body = render_order_email(order_number, kind, status, payload)
        try:
            send_email(to_email=to_email, subject=subject, text_body=body)
            logger.info("Emailed %s about order %s (%s)", to_email, order_number, kind)
        except (RuntimeError, smtplib.SMTPException, OSError):
            logger.exception("Failed to email %s about order %s", to_email, order_number)


def render_order_email(
    order_number: str,
    kind: str,
    status: str,
    payload: dict[str, Any],
) -> tuple[str, str]:
    """
    Plain-text subject/body for a customer-facing order event.
    """
    if kind == "quantities_changed":
        lines = [
            f"  {c['item_name']}: {c['old_quantity']} -> {c['new_quantity']}"
            for c in payload.get("changes", [])
        ]
        body = (
            f"The shop updated quantities on order {order_number}:\n"
            + "\n".join(lines)
            + f"\n\nNew total: ₹{payload.get('new_total', 0):.2f}\n"
        )
        return f"[Ration Shop] Order {order_number} was updated", body

    messages = {
        "accepted": "has been accepted and is being prepared.",
        "cancelled": "has been cancelled.",
        "delivered": "has been delivered. Thank you for shopping with us!",
    }
    body = f"Your order {order_number} {messages.get(kind, f'is now {status}.')}\n"
    return f"[Ration Shop] Order {order_number} {status}", body
