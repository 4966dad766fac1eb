"""
Shared infrastructure for the marketplace apps.

core.services
    BaseService, ServiceResult
core.exceptions
    BaseApplicationError, ValidationError, ConflictError, ImmutableRecordError
core.protocols
    EntityLookup, RefundNotifier, AuditSink: collaborators injected into
    the refund workflow
core.models / core.model_mixins
    BaseModel, UUIDPrimaryKeyMixin, AppendOnlyMixin. Not re-exported here,
    importing models before the app registry is ready raises
    AppRegistryNotReady.
"""

from .exceptions import (
    BaseApplicationError,
    ConflictError,
    ImmutableRecordError,
    ValidationError,
)
from .protocols import AuditSink, EntityLookup, RefundNotifier
from .services import BaseService, ServiceResult

__all__ = [
    "BaseService",
    "ServiceResult",
    "BaseApplicationError",
    "ValidationError",
    "ConflictError",
    "ImmutableRecordError",
    "EntityLookup",
    "RefundNotifier",
    "AuditSink",
]
