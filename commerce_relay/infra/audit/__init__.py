"""Audit capture.

Components:
- AuditLog / AuditAction: the append-only audit trail
- builder: value snapshots and entry construction
- AuditContext: explicit actor passed to ``UnitOfWork.commit``
- ChangeCaptureInterceptor / AuditingSession: ``before_flush`` capture
- AuditLogRepository: entity history and actor queries
"""

from commerce_relay.infra.audit.builder import (
    build_audit_entry,
    serialize_value,
    snapshot_original_values,
    snapshot_values,
)
from commerce_relay.infra.audit.context import AUDIT_CONTEXT_KEY, AuditContext
from commerce_relay.infra.audit.interceptor import (
    AuditingSession,
    ChangeCaptureInterceptor,
    get_audit_context,
)
from commerce_relay.infra.audit.models import EMPTY_VALUES_PLACEHOLDER, AuditAction, AuditLog
from commerce_relay.infra.audit.repository import AuditLogRepository

__all__ = [
    "AUDIT_CONTEXT_KEY",
    "EMPTY_VALUES_PLACEHOLDER",
    "AuditAction",
    "AuditContext",
    "AuditLog",
    "AuditLogRepository",
    "AuditingSession",
    "ChangeCaptureInterceptor",
    "build_audit_entry",
    "get_audit_context",
    "serialize_value",
    "snapshot_original_values",
    "snapshot_values",
]
