"""
Protocol definitions for the collaborators of the refund workflow.

The refund workflow depends on three things it does not own: reading
orders/users/tenants, telling the client about their refund, and writing
the audit trail. Each is specified here as a Protocol so the workflow can
be built against the abstraction and tests can pass simple fakes.

Available Protocols:
    EntityLookup: Nullable reads of orders, users and tenants
    RefundNotifier: Client-facing refund notification
    AuditSink: Append-only activity/audit records

Usage:
    from core.protocols import AuditSink

    class ListAuditSink:
        def __init__(self):
            self.records = []

        def record(self, log_name, subject, causer, event, properties):
            self.records.append((log_name, event, properties))

    # ListAuditSink is a valid AuditSink
    # even without explicit inheritance (duck typing)
    sink: AuditSink = ListAuditSink()

Note:
    - Protocols are primarily for type checking
    - @runtime_checkable allows isinstance() checks
    - Database-backed defaults live in refunds.lookups,
      notifications.services and activity.services
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Protocol, runtime_checkable

if TYPE_CHECKING:
    from typing import Any
    from uuid import UUID


@runtime_checkable
class EntityLookup(Protocol):
    """
    Protocol for entity reads used by the refund workflow.

    Every method returns None when the entity does not exist; callers
    handle absence explicitly instead of catching DoesNotExist.
    """

    def get_order(self, order_id: UUID | str) -> Any | None:
        """Return the order or None."""
        ...

    def get_order_for_update(self, order_id: UUID | str) -> Any | None:
        """
        Return the order locked with SELECT ... FOR UPDATE, or None.

        Must be called inside a transaction.atomic() block.
        """
        ...

    def get_user(self, user_id: Any) -> Any | None:
        """Return the user or None."""
        ...

    def get_tenant(self, tenant_id: Any) -> Any | None:
        """Return the tenant or None."""
        ...


@runtime_checkable
class RefundNotifier(Protocol):
    """
    Protocol for telling a client that their refund was credited.

    Implementations should not raise on delivery problems; the workflow
    logs and swallows notifier errors after the refund has committed.
    """

    def notify_refund(
        self,
        client: Any,
        amount: int,
        order: Any,
        *,
        refund_key: str | None = None,
    ) -> None:
        """
        Notify the client of a refund.

        Args:
            client: User receiving the refund
            amount: Credited amount in minor units
            order: The refunded order
            refund_key: Identifies this particular refund (the wallet
                transaction id). An order can be refunded more than once,
                through complaints, so each refund gets its own message.
        """
        ...


@runtime_checkable
class AuditSink(Protocol):
    """
    Protocol for the activity/audit trail.

    Records are written inside the caller's transaction, so a failed
    unit of work leaves no audit record behind.
    """

    def record(
        self,
        log_name: str,
        subject: Any,
        causer: Any | None,
        event: str,
        properties: dict[str, Any],
    ) -> None:
        """
        Append one audit record.

        Args:
            log_name: Log channel, e.g. "orders" or "wallets"
            subject: Model instance the record is about
            causer: User that caused the event, None for the system
            event: Event name, e.g. "refund_processed"
            properties: JSON-serialisable details
        """
        ...
