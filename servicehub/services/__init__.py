"""Service layer: base service, collaborator contracts and the gateway payment service."""

from servicehub.services.base import BaseService
from servicehub.services.payment_service import GatewayPaymentService

__all__ = ["BaseService", "GatewayPaymentService"]
