"""
Call contracts of the services the facades orchestrate.

Implementations live outside this package (persistence, delivery); the
facades only rely on these signatures.
"""

from typing import Any, Dict, Optional, Protocol

from ..core.enums import BookingStatus
from ..schemas.booking import Booking, BookingSpec
from ..schemas.collaborators import InvoiceSpec, NotificationSpec, TransactionSpec
from ..schemas.payment import PaymentIntent, PaymentResult


class BookingServiceProtocol(Protocol):
    async def create_booking(self, spec: BookingSpec) -> Booking: ...

    async def update_booking_status(self, booking_id: str, status: BookingStatus) -> None: ...


class PaymentServiceProtocol(Protocol):
    async def create_payment_intent(
        self,
        amount: float,
        currency: str,
        customer_id: str,
        metadata: Optional[Dict[str, Any]] = None,
        *,
        payment_method_id: str = "",
        description: Optional[str] = None,
        idempotency_key: Optional[str] = None,
    ) -> PaymentIntent: ...

    async def confirm_payment_intent(
        self, intent_id: str, payment_method_id: str
    ) -> PaymentResult: ...


class TransactionServiceProtocol(Protocol):
    async def create_transaction(self, spec: TransactionSpec) -> Any: ...


class InvoiceServiceProtocol(Protocol):
    async def create_invoice(self, spec: InvoiceSpec) -> Any: ...


class NotificationServiceProtocol(Protocol):
    async def send_notification(self, spec: NotificationSpec) -> None: ...


def record_id(record: Any) -> Optional[str]:
    """Identifier of a record returned by a collaborator (model, object or mapping)."""
    if record is None:
        return None
    if isinstance(record, dict):
        value = record.get("id") or record.get("_id")
    else:
        value = getattr(record, "id", None) or getattr(record, "_id", None)
    return str(value) if value is not None else None
