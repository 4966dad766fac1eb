"""
Order-specific exceptions.

Exception Hierarchy:
    OrderError (base)
    └── InvalidTransition - Status change not allowed from the current status

Usage:
    from orders.exceptions import InvalidTransition

    try:
        OrderStateTracker.transition(order, OrderStatus.REFUNDED)
    except InvalidTransition as e:
        logger.error("Refund transition rejected", extra=e.to_dict())
"""

from __future__ import annotations

from typing import TYPE_CHECKING

from core.exceptions import ConflictError

if TYPE_CHECKING:
    import uuid
    from typing import Any


class OrderError(ConflictError):
    """Base exception for order lifecycle errors."""

    default_error_code: str = "ORDER_ERROR"


class InvalidTransition(OrderError):
    """
    Raised when an order cannot move from its current status to the target.

    Attributes:
        order_id: The order whose transition was rejected
        current: Status the order is in
        target: Status that was requested
    """

    default_error_code: str = "INVALID_TRANSITION"

    def __init__(
        self,
        order_id: uuid.UUID,
        current: str,
        target: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ):
        self.order_id = order_id
        self.current = current
        self.target = target

        full_details = {
            "order_id": str(order_id),
            "current_status": current,
            "target_status": target,
        }
        if details:
            full_details.update(details)

        super().__init__(
            message=f"Order {order_id} cannot move from {current} to {target}",
            error_code=error_code,
            details=full_details,
        )
