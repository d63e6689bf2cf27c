"""Structured audit logging for booking lifecycle actions.

Every state change on a reservation leaves an audit entry, including the
manual status overrides that bypass the normal transition rules.
"""

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Any, Optional

from carhire.logging import get_logger

logger = get_logger(__name__)


class AuditEventType(str, Enum):
    """Types of auditable events."""

    # Booking lifecycle
    BOOKING_CREATED = "booking_created"
    BOOKING_CANCELED = "booking_canceled"
    BOOKING_DELETED = "booking_deleted"

    # Payment
    PAYMENT_SIMULATED = "payment_simulated"

    # Administrative overrides
    BOOKING_STATUS_OVERRIDDEN = "booking_status_overridden"
    PAYMENT_STATUS_OVERRIDDEN = "payment_status_overridden"

    # Catalog
    CAR_DELETED = "car_deleted"


class AuditLogger:
    """Centralized audit logging service."""

    @staticmethod
    def log_event(
        event_type: AuditEventType,
        actor_id: Optional[str],
        resource_type: str,
        resource_id: str,
        action: str,
        success: bool = True,
        metadata: Optional[dict[str, Any]] = None,
        error: Optional[str] = None,
    ) -> None:
        """
        Log an auditable event with structured context.

        Args:
            event_type: Type of audit event
            actor_id: User the booking belongs to, None for guest bookings
            resource_type: Type of resource (booking, car)
            resource_id: ID of the affected resource
            action: Human-readable action description
            success: Whether the action succeeded
            metadata: Additional context (prices, statuses, etc.)
            error: Error message if action failed
        """
        audit_entry = {
            "event_type": event_type.value,
            "actor_id": actor_id,
            "resource_type": resource_type,
            "resource_id": resource_id,
            "action": action,
            "success": success,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "metadata": metadata or {},
        }

        if error:
            audit_entry["error"] = error

        logger.info(
            "audit_event",
            **audit_entry,
        )

    @staticmethod
    def log_booking_created(
        actor_id: Optional[str],
        booking_id: str,
        booking_reference: str,
        car_id: str,
        total_price: Decimal,
    ) -> None:
        """Log reservation creation."""
        AuditLogger.log_event(
            event_type=AuditEventType.BOOKING_CREATED,
            actor_id=actor_id,
            resource_type="booking",
            resource_id=booking_id,
            action=f"Created booking {booking_reference}",
            metadata={
                "booking_reference": booking_reference,
                "car_id": car_id,
                "total_price": str(total_price),
            },
        )

    @staticmethod
    def log_booking_canceled(
        actor_id: Optional[str],
        booking_id: str,
        refund_required: bool,
    ) -> None:
        """Log reservation cancellation."""
        AuditLogger.log_event(
            event_type=AuditEventType.BOOKING_CANCELED,
            actor_id=actor_id,
            resource_type="booking",
            resource_id=booking_id,
            action="Booking canceled",
            metadata={"refund_required": refund_required},
        )

    @staticmethod
    def log_payment_simulated(
        actor_id: Optional[str],
        booking_id: str,
        previous_payment_status: str,
        booking_status: str,
    ) -> None:
        """Log a simulated payment."""
        AuditLogger.log_event(
            event_type=AuditEventType.PAYMENT_SIMULATED,
            actor_id=actor_id,
            resource_type="booking",
            resource_id=booking_id,
            action="Payment simulated",
            metadata={
                "previous_payment_status": previous_payment_status,
                "booking_status": booking_status,
            },
        )

    @staticmethod
    def log_status_override(
        event_type: AuditEventType,
        actor_id: Optional[str],
        booking_id: str,
        field: str,
        old_value: str,
        new_value: str,
    ) -> None:
        """Log a manual status override that bypasses transition rules."""
        AuditLogger.log_event(
            event_type=event_type,
            actor_id=actor_id,
            resource_type="booking",
            resource_id=booking_id,
            action=f"Manual override of {field}: {old_value} -> {new_value}",
            metadata={"field": field, "old": old_value, "new": new_value},
        )

    @staticmethod
    def log_deleted(
        event_type: AuditEventType,
        resource_type: str,
        resource_id: str,
    ) -> None:
        """Log a hard delete (dev-only escape hatch)."""
        AuditLogger.log_event(
            event_type=event_type,
            actor_id=None,
            resource_type=resource_type,
            resource_id=resource_id,
            action=f"Deleted {resource_type}",
        )
