"""
Service layer base classes.

ServiceResult is returned for outcomes a caller is expected to branch on
(an order outside its cancellation window, a duplicate notification).
Exceptions are kept for failures a caller cannot act on, or that a task
should retry: database errors, broken invariants, ledger violations.

Usage:
    from core.services import BaseService, ServiceResult

    class OrderCancellationService(BaseService):
        @classmethod
        def cancel_order(cls, order, client) -> ServiceResult[Order]:
            if order.client_id != client.pk:
                return ServiceResult.failure(
                    "You can only cancel your own orders",
                    error_code="NOT_OWNER",
                )
            with cls.atomic():
                ...
            return ServiceResult.success(order)
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass
from typing import TYPE_CHECKING, Generic, TypeVar

from django.db import transaction

if TYPE_CHECKING:
    from collections.abc import Generator
    from typing import Any

    from core.exceptions import BaseApplicationError

T = TypeVar("T")


@dataclass
class ServiceResult(Generic[T]):
    """
    Outcome of a service call.

    Attributes:
        success: Whether the operation went through
        data: Result payload on success
        error: Human-readable reason on failure
        error_code: Stable machine-readable code (NOT_OWNER, WINDOW_EXPIRED, ...)
        details: Structured context for the failure, e.g. the window that expired
    """

    success: bool
    data: T | None = None
    error: str | None = None
    error_code: str | None = None
    details: dict[str, Any] | None = None

    @classmethod
    def success(cls, data: T) -> ServiceResult[T]:
        return cls(success=True, data=data)

    @classmethod
    def failure(
        cls,
        error: str,
        error_code: str | None = None,
        details: dict[str, Any] | None = None,
    ) -> ServiceResult[T]:
        return cls(
            success=False,
            error=error,
            error_code=error_code,
            details=details,
        )

    @classmethod
    def from_error(cls, exc: BaseApplicationError) -> ServiceResult[T]:
        """Turn a domain exception into a failed result."""
        return cls.failure(
            exc.message,
            error_code=exc.error_code,
            details=exc.details or None,
        )

    def __bool__(self) -> bool:
        return self.success


class BaseService:
    """
    Base class for services.

    Services that only touch the database use classmethods. Services with
    collaborators (notifier, audit sink, entity lookup) take them in
    __init__ so tests can pass fakes.
    """

    @classmethod
    def get_logger(cls) -> logging.Logger:
        """Logger named after the concrete service class."""
        return logging.getLogger(f"{cls.__module__}.{cls.__name__}")

    @classmethod
    @contextmanager
    def atomic(cls, savepoint: bool = True) -> Generator[None, None, None]:
        """
        Run the block in a database transaction.

        Nested inside another atomic block this opens a savepoint, so an
        exception only unwinds the inner block.
        """
        with transaction.atomic(savepoint=savepoint):
            yield
