"""Actor context for a unit of work."""

from __future__ import annotations

from dataclasses import dataclass

# Key under which the context is stored in ``Session.info``
AUDIT_CONTEXT_KEY = "audit_context"


@dataclass(frozen=True, slots=True)
class AuditContext:
    """Who performed a unit of work, and from where.

    Passed explicitly to ``UnitOfWork(actor=...)`` or
    ``UnitOfWork.commit(actor=...)``. ``user_id`` is
    None for background jobs and pre-authentication flows.
    """

    user_id: str | None = None
    ip_address: str | None = None
    user_agent: str | None = None

    @property
    def is_authenticated(self) -> bool:
        return self.user_id is not None


__all__ = ["AUDIT_CONTEXT_KEY", "AuditContext"]
