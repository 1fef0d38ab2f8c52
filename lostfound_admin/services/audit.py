"""Append-only audit trail of privileged admin actions.

Every privileged handler wraps its work in :meth:`AuditLogger.scope`, which
writes exactly one entry: success on normal exit, failure when the body
raises or calls :meth:`AuditEntry.fail`. Writes go through their own short
session so an audit row never shares (or rolls back with) the request's
transaction, and a failed write is logged and dropped rather than failing
the request.
"""
from contextlib import contextmanager
from typing import Any, Callable, Dict, Iterator, Optional

from sqlalchemy.orm import Session

from lostfound_admin.errors import AdminAPIError
from lostfound_admin.middleware.monitoring import record_audit_write_failure
from lostfound_admin.models.audit_log import AuditLog
from lostfound_admin.utils.client import sanitize_metadata
from lostfound_admin.utils.logger import logger

SUCCESS = "success"
FAILURE = "failure"

# Read-only actions hidden by the "important only" audit log filter
ROUTINE_ACTIONS = ("READ_SETTINGS", "READ_AUDIT_LOGS", "VIEW_PROFILE", "READ_DASHBOARD", "2FA_CHECK")


class AuditMarker:
    """Per-request flag noting whether an audit entry has been written"""

    __slots__ = ("recorded",)

    def __init__(self):
        self.recorded = False


class AuditEntry:
    """Mutable description of the entry a scope will write"""

    def __init__(self, action: str, resource_type: str, resource_id: Optional[str] = None):
        self.action = action
        self.resource_type = resource_type
        self.resource_id = resource_id
        self.metadata: Dict[str, Any] = {}
        self.failed = False

    def fail(self, **metadata: Any) -> None:
        self.failed = True
        self.metadata.update(metadata)


class AuditLogger:
    def __init__(self, session_factory: Callable[[], Session]):
        self.session_factory = session_factory

    def record(
        self,
        admin_id: str,
        action: str,
        resource_type: str,
        outcome: str,
        metadata: Optional[Dict[str, Any]] = None,
        ip: Optional[str] = None,
        user_agent: Optional[str] = None,
        resource_id: Optional[str] = None,
        actor_label: Optional[str] = None,
        request_id: Optional[str] = None,
    ) -> None:
        """Persist one entry. Never raises."""
        db = self.session_factory()
        try:
            db.add(AuditLog(
                admin_id=admin_id,
                admin_email=actor_label,
                action=action,
                resource_type=resource_type,
                outcome=outcome,
                resource_id=resource_id,
                log_metadata=sanitize_metadata(metadata),
                ip_address=ip,
                user_agent=user_agent,
                request_id=request_id,
            ))
            db.commit()
        except Exception as exc:
            db.rollback()
            record_audit_write_failure()
            logger.error(
                f"Failed to write audit log: {exc}",
                extra={"admin_id": admin_id, "action": action, "request_id": request_id},
            )
        finally:
            db.close()

    def record_for(
        self,
        ctx,
        action: str,
        resource_type: str,
        outcome: str,
        metadata: Optional[Dict[str, Any]] = None,
        resource_id: Optional[str] = None,
    ) -> None:
        """Record on behalf of the admin (or bare principal) behind ``ctx``"""
        if ctx.profile is not None:
            admin_id, actor_label = ctx.profile.id, ctx.profile.email
        elif ctx.principal is not None:
            admin_id, actor_label = ctx.principal.id, ctx.principal.email
        else:
            admin_id, actor_label = "anonymous", None

        self.record(
            admin_id=admin_id,
            action=action,
            resource_type=resource_type,
            outcome=outcome,
            metadata=metadata,
            ip=ctx.client_ip,
            user_agent=ctx.user_agent,
            resource_id=resource_id,
            actor_label=actor_label,
            request_id=ctx.request_id,
        )
        if ctx.audit is not None:
            ctx.audit.recorded = True

    @contextmanager
    def scope(
        self,
        ctx,
        action: str,
        resource_type: str,
        resource_id: Optional[str] = None,
    ) -> Iterator[AuditEntry]:
        entry = AuditEntry(action, resource_type, resource_id)
        try:
            yield entry
        except AdminAPIError as exc:
            entry.metadata.setdefault("error", exc.error)
            entry.metadata["code"] = exc.code
            self._write(ctx, entry, FAILURE)
            raise
        except Exception as exc:
            entry.metadata.setdefault("error", type(exc).__name__)
            entry.metadata["code"] = "SERVER_ERROR"
            self._write(ctx, entry, FAILURE)
            raise
        else:
            self._write(ctx, entry, FAILURE if entry.failed else SUCCESS)

    def _write(self, ctx, entry: AuditEntry, outcome: str) -> None:
        self.record_for(
            ctx,
            action=entry.action,
            resource_type=entry.resource_type,
            outcome=outcome,
            metadata=entry.metadata,
            resource_id=entry.resource_id,
        )
