"""Audit logging for security-relevant operations.

Logs authentication outcomes, user provisioning and trip membership
changes. Raw launch payloads, hashes and signatures are never logged.
"""

import logging
from collections import deque
from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any

from starlette.requests import HTTPConnection

log = logging.getLogger("audit")


@dataclass
class AuditEvent:
    """Structured audit event."""

    action: str  # e.g., "auth.success", "trip.create"
    principal: str = "anonymous"  # local user id or "anonymous"
    resource: str | None = None  # e.g., "trip:12"
    status: str = "success"  # "success", "denied", "error"
    details: dict[str, Any] | None = None
    request_id: str | None = None
    timestamp: str = field(default_factory=lambda: datetime.now(timezone.utc).isoformat())


class AuditLogger:
    """Audit logger for security operations.

    Logs events as structured JSON via Python's logging module and keeps
    an in-memory ring buffer for recent event retrieval.
    """

    MAX_BUFFER_SIZE = 1000

    def __init__(self, enabled: bool = True):
        self.enabled = enabled
        self._buffer: deque[dict] = deque(maxlen=self.MAX_BUFFER_SIZE)

    def log(
        self,
        event: AuditEvent | None = None,
        *,
        action: str | None = None,
        principal: str | None = None,
        resource: str | None = None,
        resource_type: str | None = None,
        resource_id: str | None = None,
        status: str = "success",
        details: dict[str, Any] | None = None,
        request_id: str | None = None,
    ) -> None:
        """Write an audit event to the log.

        Accepts either an AuditEvent object or keyword arguments.
        resource_type and resource_id are combined as "type:id".
        """
        if not self.enabled:
            return

        if event is None:
            combined_resource = resource
            if resource_type and resource_id:
                combined_resource = f"{resource_type}:{resource_id}"
            elif resource_type:
                combined_resource = resource_type

            event = AuditEvent(
                action=action or "unknown",
                principal=principal or "anonymous",
                resource=combined_resource,
                status=status,
                details=details,
                request_id=request_id,
            )

        self._buffer.append(asdict(event))

        extra = {
            "type": "audit",
            "principal": event.principal,
            "action": event.action,
            "status": event.status,
        }
        if event.resource:
            extra["resource"] = event.resource
        if event.request_id:
            extra["request_id"] = event.request_id
        if event.details:
            extra["details"] = event.details

        if event.status in ("denied", "error"):
            log.warning(f"audit: {event.action} {event.status}", extra=extra)
        else:
            log.info(f"audit: {event.action} {event.status}", extra=extra)

    def get_recent_events(
        self,
        limit: int = 100,
        action_filter: str | None = None,
        status_filter: str | None = None,
    ) -> list[dict]:
        """Get recent audit events from buffer, newest first.

        Args:
            limit: Max events to return
            action_filter: Filter by action prefix (e.g., "auth.")
            status_filter: Filter by status (e.g., "denied")
        """
        events = list(self._buffer)
        events.reverse()

        if action_filter:
            events = [e for e in events if e["action"].startswith(action_filter)]
        if status_filter:
            events = [e for e in events if e["status"] == status_filter]

        return events[:limit]

    def log_auth_success(
        self,
        principal_id: str,
        scheme: str,
        conn: HTTPConnection | None = None,
    ) -> None:
        """Log a successful launch-payload authentication."""
        self.log(
            AuditEvent(
                action="auth.success",
                principal=principal_id,
                details={"scheme": scheme},
                request_id=_get_request_id(conn),
            )
        )

    def log_auth_failure(
        self,
        reason: str,
        conn: HTTPConnection | None = None,
    ) -> None:
        """Log a rejected launch payload."""
        self.log(
            AuditEvent(
                action="auth.denied",
                principal="anonymous",
                status="denied",
                details={"reason": reason},
                request_id=_get_request_id(conn),
            )
        )

    def log_access(
        self,
        action: str,
        principal_id: str,
        resource: str | None = None,
        status: str = "success",
        details: dict[str, Any] | None = None,
        conn: HTTPConnection | None = None,
    ) -> None:
        """Log a resource access event (e.g., "trip.create")."""
        self.log(
            AuditEvent(
                action=action,
                principal=principal_id,
                resource=resource,
                status=status,
                details=details,
                request_id=_get_request_id(conn),
            )
        )


def _get_request_id(conn: HTTPConnection | None) -> str | None:
    """Extract request ID from request headers if available."""
    if conn is None:
        return None

    for header in ("X-Request-ID", "X-Correlation-ID", "Request-Id"):
        if header in conn.headers:
            return conn.headers[header]

    return None


# Global logger instance
_audit_logger: AuditLogger | None = None


def get_audit_logger() -> AuditLogger:
    """Get the global audit logger instance."""
    global _audit_logger

    if _audit_logger is None:
        from travelplanner.config import AUDIT_ENABLED

        _audit_logger = AuditLogger(enabled=AUDIT_ENABLED)

    return _audit_logger


def reset_audit_logger() -> None:
    """Reset the global logger (for testing)."""
    global _audit_logger
    _audit_logger = None
