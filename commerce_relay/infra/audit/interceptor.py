"""Change-capture interceptor.

Hooks SQLAlchemy's ``before_flush`` on ``AuditingSession``. For every
tracked ``Entity`` in the flush it:

1. stamps metadata: a missing id, version and timestamps on new entities,
   ``created_by``/``modified_by`` from the actor, and a version bump on
   modified entities;
2. builds exactly one ``AuditLog`` entry (Create, Update or Delete) and
   adds it to the same session, so the mutation and its audit trail
   commit or roll back together.

Captures are remembered in ``session.info`` until the transaction ends. A
second flush in the same transaction (an explicit ``session.flush()``
followed by more changes) merges into the entity's existing entry instead
of writing another one, and does not bump the version again. An entity
created and deleted within one transaction leaves no entry.

Audit entries and outbox messages are not ``Entity`` subclasses and are
never captured, so adding entries inside the flush cannot recurse. A
failure while building one entity's entry is logged and swallowed; it
never aborts the business transaction.

The actor comes from ``session.info["audit_context"]``, set by
``UnitOfWork(actor=...)`` or ``UnitOfWork.commit(actor=...)``. If the
actor only arrives with the commit, ``before_commit`` fills it into the
entries and actor stamps captured by earlier flushes. Without one the
commit proceeds with a null actor, except that sensitive entity kinds
(users and their refresh tokens by default) are not audited at all.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from sqlalchemy import event
from sqlalchemy import inspect as sa_inspect
from sqlalchemy.orm import Session

from commerce_relay.core.database.base import (
    AuditColumnsMixin,
    Entity,
    TimestampMixin,
    generate_uuid7,
    utcnow,
)
from commerce_relay.core.settings import get_audit_settings
from commerce_relay.infra.audit.builder import build_audit_entry, snapshot_values
from commerce_relay.infra.audit.context import AUDIT_CONTEXT_KEY, AuditContext
from commerce_relay.infra.audit.models import EMPTY_VALUES_PLACEHOLDER, AuditAction, AuditLog
from commerce_relay.infra.metrics import audit_capture_failures_total, audit_entries_captured_total

if TYPE_CHECKING:
    from sqlalchemy.orm import InstanceState, SessionTransaction, UOWTransaction

    from commerce_relay.core.settings.audit import AuditSettings

logger = logging.getLogger(__name__)

# Key under which per-transaction captures are kept in ``Session.info``
CAPTURES_KEY = "audit_captures"


def get_audit_context(session: Session) -> AuditContext | None:
    return session.info.get(AUDIT_CONTEXT_KEY)


@dataclass(slots=True)
class _Capture:
    """What one transaction has recorded for one entity so far."""

    action: AuditAction
    entry: AuditLog | None = None
    # Sensitive entity without an actor: built, not yet added
    held: bool = False


def _captures(session: Session) -> dict[InstanceState[Any], _Capture]:
    return session.info.setdefault(CAPTURES_KEY, {})


class ChangeCaptureInterceptor:
    """Stamp and audit every tracked entity in a transaction.

    Attributes:
        settings: Enable flag, sensitive entity kinds, app version
    """

    def __init__(self, settings: AuditSettings | None = None) -> None:
        self._settings = settings

    @property
    def settings(self) -> AuditSettings:
        # Resolved lazily so the cached settings can be swapped in tests
        return self._settings or get_audit_settings()

    def before_flush(
        self,
        session: Session,
        flush_context: UOWTransaction | None = None,
        instances: Any = None,
    ) -> list[AuditLog]:
        """Capture all pending changes of ``session``.

        Returns:
            The audit entries newly added to the session by this flush.
        """
        context = get_audit_context(session)
        actor_id = context.user_id if context else None
        captures = _captures(session)

        changes: list[tuple[Entity, AuditAction]] = []
        for obj in list(session.new):
            if isinstance(obj, Entity):
                self._stamp_created(obj, actor_id)
                changes.append((obj, AuditAction.CREATE))
        for obj in list(session.dirty):
            if isinstance(obj, Entity) and session.is_modified(obj, include_collections=False):
                if sa_inspect(obj) in captures:
                    self._restamp_modified(obj, actor_id)
                else:
                    self._stamp_modified(obj, actor_id)
                changes.append((obj, AuditAction.UPDATE))
        for obj in list(session.deleted):
            if isinstance(obj, Entity):
                changes.append((obj, AuditAction.DELETE))

        settings = self.settings
        entries: list[AuditLog] = []
        for obj, action in changes:
            state = sa_inspect(obj)
            capture = captures.get(state)
            if capture is not None:
                self._merge(session, obj, action, capture)
                continue

            capture = captures[state] = _Capture(action)
            if not settings.enabled:
                continue

            entity_type = type(obj).__name__
            try:
                capture.entry = build_audit_entry(
                    obj, action, context, app_version=settings.app_version
                )
            except Exception:
                # Auditing must never abort the business transaction
                audit_capture_failures_total.labels(entity_type=entity_type).inc()
                logger.exception(
                    "Failed to build audit entry",
                    extra={"entity_type": entity_type, "action": action.value},
                )
                continue

            if actor_id is None and entity_type in settings.sensitive_entity_types:
                capture.held = True
                continue

            entries.append(capture.entry)
            audit_entries_captured_total.labels(action=action.value).inc()

        session.add_all(entries)
        if entries:
            logger.debug(
                "Captured audit entries",
                extra={"count": len(entries), "actor_id": actor_id},
            )
        return entries

    def before_commit(self, session: Session) -> None:
        """Apply an actor that arrived after earlier flushes.

        Entries captured without an actor take the commit's actor, held
        sensitive entries are added, and null actor stamps on entities are
        filled in. The commit's final flush then refreshes the affected
        entries' snapshots.
        """
        context = get_audit_context(session)
        if context is None:
            return

        captures = session.info.get(CAPTURES_KEY, {})
        for state, capture in captures.items():
            entry = capture.entry
            if entry is not None and entry.user_id is None and entry.ip_address is None:
                entry.user_id = context.user_id
                entry.ip_address = context.ip_address
                entry.user_agent = context.user_agent
            if capture.held and context.user_id is not None:
                capture.held = False
                session.add(entry)
                audit_entries_captured_total.labels(action=capture.action.value).inc()

            obj = state.obj()
            if context.user_id is None or obj is None or capture.action == AuditAction.DELETE:
                continue
            if isinstance(obj, AuditColumnsMixin):
                if capture.action == AuditAction.CREATE and state.dict.get("created_by") is None:
                    obj.created_by = context.user_id
                if state.dict.get("modified_by") is None:
                    obj.modified_by = context.user_id

    def _merge(
        self,
        session: Session,
        obj: Entity,
        action: AuditAction,
        capture: _Capture,
    ) -> None:
        """Fold a later flush into the entity's existing capture."""
        entry = capture.entry
        if action == AuditAction.DELETE:
            if capture.action == AuditAction.CREATE:
                # Never visible outside the transaction
                if entry is not None and not capture.held:
                    session.delete(entry)
                capture.entry = None
            elif entry is not None:
                entry.action = AuditAction.DELETE
                entry.new_values = dict(EMPTY_VALUES_PLACEHOLDER)
            capture.action = AuditAction.DELETE
            return

        if entry is None:
            return
        try:
            new_values = snapshot_values(obj)
        except Exception:
            audit_capture_failures_total.labels(entity_type=type(obj).__name__).inc()
            logger.exception(
                "Failed to refresh audit entry",
                extra={"entity_type": type(obj).__name__, "action": capture.action.value},
            )
            return
        entry.new_values = new_values or dict(EMPTY_VALUES_PLACEHOLDER)

    def _stamp_created(self, obj: Entity, actor_id: str | None) -> None:
        # Column defaults only fire at INSERT; set them now so snapshots see them
        state = sa_inspect(obj)
        if state.dict.get("id") is None:
            obj.id = generate_uuid7()
        if state.dict.get("version") is None:
            obj.version = 1
        if isinstance(obj, TimestampMixin):
            now = utcnow()
            if state.dict.get("created_at") is None:
                obj.created_at = now
            if state.dict.get("updated_at") is None:
                obj.updated_at = now
        if isinstance(obj, AuditColumnsMixin):
            obj.set_creation_audit_info(actor_id)

    def _stamp_modified(self, obj: Entity, actor_id: str | None) -> None:
        obj.increment_version()
        if isinstance(obj, TimestampMixin):
            obj.updated_at = utcnow()
        if isinstance(obj, AuditColumnsMixin):
            obj.set_audit_info(actor_id)

    def _restamp_modified(self, obj: Entity, actor_id: str | None) -> None:
        # Already stamped in this transaction; the version stays put
        if isinstance(obj, TimestampMixin):
            obj.updated_at = utcnow()
        if isinstance(obj, AuditColumnsMixin) and actor_id is not None:
            obj.set_audit_info(actor_id)


class AuditingSession(Session):
    """Session whose flushes run the change-capture interceptor.

    Used as ``sync_session_class`` of the async session factory.
    """

    interceptor: ChangeCaptureInterceptor = ChangeCaptureInterceptor()


@event.listens_for(AuditingSession, "before_flush")
def _capture_changes(session: Session, flush_context: UOWTransaction, instances: Any) -> None:
    interceptor: ChangeCaptureInterceptor = session.interceptor  # type: ignore[attr-defined]
    interceptor.before_flush(session, flush_context, instances)


@event.listens_for(AuditingSession, "before_commit")
def _apply_commit_actor(session: Session) -> None:
    interceptor: ChangeCaptureInterceptor = session.interceptor  # type: ignore[attr-defined]
    interceptor.before_commit(session)


@event.listens_for(AuditingSession, "after_transaction_end")
def _forget_captures(session: Session, transaction: SessionTransaction) -> None:
    if transaction.parent is None:
        session.info.pop(CAPTURES_KEY, None)


__all__ = [
    "CAPTURES_KEY",
    "AuditingSession",
    "ChangeCaptureInterceptor",
    "get_audit_context",
]
