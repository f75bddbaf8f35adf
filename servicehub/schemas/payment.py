"""
Payment schemas.

``PaymentData`` is what a payment processor consumes; its checks live in the
processor's ``validate`` step so that a bad request still flows through the
pipeline and comes back as a failed ``PaymentResult``. ``PaymentFacadeData``
is the strict public request validated before any side effect.
"""

from typing import Any, Dict, Optional

from pydantic import Field, field_validator, model_validator

from servicehub.core.enums import ServiceType

from ._strict_base import StrictModel, StrictRequestModel


def _require_text(value: str, message: str) -> str:
    if not isinstance(value, str) or not value.strip():
        raise ValueError(message)
    return value.strip()


# ========== Processor DTOs ==========


class PaymentData(StrictModel):
    """Input of a single processor run."""

    amount: float = Field(..., description="Amount in major currency units")
    currency: str = Field(..., description="ISO 4217 code")
    customer_id: str = Field(default="", description="Gateway customer reference")
    payment_method_id: str = Field(default="", description="Gateway payment method reference")
    description: Optional[str] = None
    idempotency_key: Optional[str] = Field(
        default=None, description="Key making intent creation safe to repeat"
    )
    metadata: Dict[str, Any] = Field(default_factory=dict)


class NextAction(StrictModel):
    """Follow-up the customer must complete (3-D Secure, PayPal approval, ...)."""

    type: str
    url: Optional[str] = None


class PaymentIntent(StrictModel):
    """Pending gateway payment intent (Stripe PaymentIntent, PayPal order)."""

    id: str
    amount: float
    currency: str
    status: str
    client_secret: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class PaymentResult(StrictModel):
    """Outcome of a confirmation or of a whole processor run."""

    success: bool
    transaction_id: Optional[str] = None
    payment_intent_id: Optional[str] = None
    error: Optional[str] = None
    requires_action: bool = False
    next_action: Optional[NextAction] = None

    @model_validator(mode="after")
    def _check_outcome(self) -> "PaymentResult":
        if self.success and self.requires_action:
            raise ValueError("A successful payment cannot require action")
        if self.requires_action and self.error:
            raise ValueError("A requires-action outcome carries no error")
        return self

    @classmethod
    def failure(cls, error: str, payment_intent_id: Optional[str] = None) -> "PaymentResult":
        return cls(success=False, error=error, payment_intent_id=payment_intent_id)

    @classmethod
    def action_required(
        cls, payment_intent_id: str, next_action: Optional[NextAction] = None
    ) -> "PaymentResult":
        return cls(
            success=False,
            requires_action=True,
            payment_intent_id=payment_intent_id,
            next_action=next_action,
        )


# ========== Facade envelopes ==========


class PaymentFacadeData(StrictRequestModel):
    """Request accepted by PaymentFacade.process_payment."""

    amount: float = Field(..., description="Amount in major currency units")
    currency: str = Field(..., description="ISO 4217 code, upper-cased on validation")
    customer_id: str
    payment_method_id: str
    payer_id: str
    beneficiary_id: str
    service_type: ServiceType
    service_id: str
    description: str
    create_invoice: bool = Field(default=True, description="Create an invoice after payment")
    send_notification: bool = Field(
        default=True, description="Notify the customer after payment"
    )
    metadata: Dict[str, Any] = Field(default_factory=dict)

    @field_validator("amount")
    @classmethod
    def _positive_amount(cls, v: float) -> float:
        if v <= 0:
            raise ValueError("Amount must be positive")
        return v

    @field_validator("currency")
    @classmethod
    def _currency_code(cls, v: str) -> str:
        if len(v) != 3 or not v.isalpha():
            raise ValueError("Currency must be 3 characters")
        return v.upper()

    @field_validator("customer_id")
    @classmethod
    def _customer_id(cls, v: str) -> str:
        return _require_text(v, "Customer ID is required")

    @field_validator("payment_method_id")
    @classmethod
    def _payment_method_id(cls, v: str) -> str:
        return _require_text(v, "Payment method ID is required")

    @field_validator("payer_id")
    @classmethod
    def _payer_id(cls, v: str) -> str:
        return _require_text(v, "Payer ID is required")

    @field_validator("beneficiary_id")
    @classmethod
    def _beneficiary_id(cls, v: str) -> str:
        return _require_text(v, "Beneficiary ID is required")

    @field_validator("service_id")
    @classmethod
    def _service_id(cls, v: str) -> str:
        return _require_text(v, "Service ID is required")

    @field_validator("description")
    @classmethod
    def _description(cls, v: str) -> str:
        return _require_text(v, "Description is required")


class PaymentFacadeResult(StrictModel):
    success: bool
    payment_intent_id: Optional[str] = None
    transaction_id: Optional[str] = None
    invoice_id: Optional[str] = None
    error: Optional[str] = None
    requires_action: bool = False
    next_action: Optional[NextAction] = None
