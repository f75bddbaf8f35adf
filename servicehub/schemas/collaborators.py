"""Specs handed to the external transaction, invoice and notification services."""

from datetime import datetime
from typing import Any, Dict, List, Optional

from pydantic import Field

from servicehub.core.enums import NotificationChannel, NotificationPriority, ServiceType

from ._strict_base import StrictModel


class TransactionSpec(StrictModel):
    payer_id: str
    beneficiary_id: str
    amount: float
    currency: str
    service_type: ServiceType
    service_id: str
    description: str
    metadata: Dict[str, Any] = Field(default_factory=dict)


class InvoiceItem(StrictModel):
    description: str
    quantity: int = 1
    unit_price: float
    total: float


class InvoiceSpec(StrictModel):
    user_id: str
    transaction_id: str
    amount: float
    currency: str
    items: List[InvoiceItem]
    due_date: datetime
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ChannelSpec(StrictModel):
    type: NotificationChannel
    enabled: bool = True
    priority: NotificationPriority = NotificationPriority.MEDIUM


class NotificationSpec(StrictModel):
    recipient: str
    type: str
    template: str
    channels: List[ChannelSpec]
    locale: str
    priority: NotificationPriority = NotificationPriority.MEDIUM
    data: Dict[str, Any] = Field(default_factory=dict)
    scheduled_at: Optional[datetime] = None
