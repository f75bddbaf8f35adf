# servicehub/core/enums.py
"""
Core enums for the servicehub orchestration layer.

String-valued so they serialize transparently into logs, cache keys and
collaborator payloads.
"""

from enum import Enum


class ServiceType(str, Enum):
    """Marketplace service families a booking or payment belongs to."""

    HEALTH = "HEALTH"
    BTP = "BTP"
    EDUCATION = "EDUCATION"


class BookingStatus(str, Enum):
    PENDING = "PENDING"
    CONFIRMED = "CONFIRMED"
    IN_PROGRESS = "IN_PROGRESS"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"
    NO_SHOW = "NO_SHOW"
    FAILED = "FAILED"


class ConsultationMode(str, Enum):
    """Consultation mode as requested by the caller."""

    IN_PERSON = "IN_PERSON"
    TELEMEDICINE = "TELEMEDICINE"
    HYBRID = "HYBRID"

    def to_booking_mode(self) -> str:
        """Map to the booking service's consultation mode ('cabinet' or 'video')."""
        if self is ConsultationMode.IN_PERSON:
            return "cabinet"
        return "video"


class BackoffKind(str, Enum):
    FIXED = "fixed"
    LINEAR = "linear"
    EXPONENTIAL = "exponential"


class PaymentProvider(str, Enum):
    STRIPE = "STRIPE"
    PAYPAL = "PAYPAL"


class NotificationChannel(str, Enum):
    EMAIL = "EMAIL"
    IN_APP = "IN_APP"
    SMS = "SMS"


class NotificationPriority(str, Enum):
    LOW = "LOW"
    MEDIUM = "MEDIUM"
    HIGH = "HIGH"
