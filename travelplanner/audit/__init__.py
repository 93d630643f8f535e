"""Audit logging module."""

from travelplanner.audit.logger import (
    AuditEvent,
    AuditLogger,
    get_audit_logger,
    reset_audit_logger,
)

__all__ = [
    "AuditEvent",
    "AuditLogger",
    "get_audit_logger",
    "reset_audit_logger",
]
