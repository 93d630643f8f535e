"""Tests for the audit logger."""
import logging

from httpx import AsyncClient

from travelplanner.audit import AuditEvent, AuditLogger, get_audit_logger
from travelplanner.auth.exceptions import AuthErrorCode

from tests.conftest import OTHER_BOT_TOKEN, auth_headers, make_init_data


class TestAuditLogger:
    """Tests for AuditLogger."""

    def test_records_events_newest_first(self):
        audit = AuditLogger()
        audit.log(action="auth.success", principal="1")
        audit.log(action="trip.create", principal="1", resource_type="trip", resource_id="5")

        events = audit.get_recent_events()
        assert [e["action"] for e in events] == ["trip.create", "auth.success"]
        assert events[0]["resource"] == "trip:5"

    def test_filters(self):
        audit = AuditLogger()
        audit.log_auth_success("1", "hash")
        audit.log_auth_failure(AuthErrorCode.STALE_PAYLOAD)
        audit.log_access("trip.create", "1", resource="trip:1")

        denied = audit.get_recent_events(status_filter="denied")
        assert len(denied) == 1
        assert denied[0]["details"] == {"reason": AuthErrorCode.STALE_PAYLOAD}
        assert len(audit.get_recent_events(action_filter="auth.")) == 2
        assert len(audit.get_recent_events(limit=1)) == 1

    def test_disabled_logger_records_nothing(self):
        audit = AuditLogger(enabled=False)
        audit.log(AuditEvent(action="auth.success"))
        assert audit.get_recent_events() == []

    def test_buffer_is_bounded(self):
        audit = AuditLogger()
        for i in range(AuditLogger.MAX_BUFFER_SIZE + 10):
            audit.log(action="auth.success", principal=str(i))
        events = audit.get_recent_events(limit=AuditLogger.MAX_BUFFER_SIZE * 2)
        assert len(events) == AuditLogger.MAX_BUFFER_SIZE
        assert events[0]["principal"] == str(AuditLogger.MAX_BUFFER_SIZE + 9)

    def test_denied_events_logged_as_warning(self, caplog):
        audit = AuditLogger()
        with caplog.at_level(logging.INFO, logger="audit"):
            audit.log_auth_failure(AuthErrorCode.SIGNATURE_MISMATCH)
        assert caplog.records[-1].levelno == logging.WARNING
        assert caplog.records[-1].action == "auth.denied"


class TestRequestAuditing:
    """Tests for audit events emitted while serving requests."""

    async def test_success_and_provisioning_audited(self, client: AsyncClient):
        await client.get(
            "/api/users/me",
            headers={**auth_headers(make_init_data(42)), "X-Request-ID": "req-1"},
        )
        audit = get_audit_logger()

        success = audit.get_recent_events(action_filter="auth.success")
        assert success[0]["details"] == {"scheme": "hash"}
        assert success[0]["request_id"] == "req-1"
        assert audit.get_recent_events(action_filter="user.create")

    async def test_failure_audited_without_payload(self, client: AsyncClient):
        payload = make_init_data(42, bot_token=OTHER_BOT_TOKEN)
        await client.get("/api/users/me", headers=auth_headers(payload))

        denied = get_audit_logger().get_recent_events(status_filter="denied")
        assert denied[0]["details"] == {"reason": AuthErrorCode.SIGNATURE_MISMATCH}
        assert payload not in repr(denied)
