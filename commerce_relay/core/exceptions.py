"""Exception taxonomy for event delivery and audit capture.

Errors fall into the categories the delivery core distinguishes:

- Permanent resolution failures (``MessageTypeResolutionError``,
  ``MessageDeserializationError``): retrying cannot succeed; surfaced as
  warnings for operator remediation.
- Transient delivery failures (``MessageDispatchError``): recorded on the
  message and retried with backoff.
- Audit capture failures (``AuditLogValidationError`` and anything raised
  while building an entry): swallowed per entity by the interceptor.

Store errors are deliberately not wrapped. ``sqlalchemy.exc.SQLAlchemyError``
propagates to the caller so the enclosing business transaction fails.
"""

from __future__ import annotations

from typing import Any


class RelayError(Exception):
    """Base exception for the delivery and audit core.

    Attributes:
        message: Error description
        details: Additional context about the error
    """

    def __init__(self, message: str, details: dict[str, Any] | None = None) -> None:
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def __str__(self) -> str:
        """Format error message with details."""
        if self.details:
            details_str = ", ".join(f"{k}={v!r}" for k, v in self.details.items())
            return f"{self.message} ({details_str})"
        return self.message


class MessageTypeResolutionError(RelayError):
    """Outbox message type discriminator is not registered.

    The discriminator will never resolve without a code change, so the
    message needs operator remediation.
    """

    def __init__(self, message_type: str) -> None:
        self.message_type = message_type
        super().__init__(f"Cannot find type {message_type}", details={"type": message_type})


class MessageDeserializationError(RelayError):
    """Outbox message content could not be decoded into its resolved shape."""

    def __init__(self, message_type: str, reason: str) -> None:
        self.message_type = message_type
        self.reason = reason
        super().__init__(
            "Failed to deserialize message content",
            details={"type": message_type, "reason": reason},
        )


class MessageDispatchError(RelayError):
    """A notification consumer raised while handling a payload."""

    def __init__(self, payload_type: str, handler: str, cause: BaseException) -> None:
        self.payload_type = payload_type
        self.handler = handler
        self.cause = cause
        super().__init__(
            f"Handler {handler} failed for {payload_type}: {cause}",
            details={"payload_type": payload_type, "handler": handler},
        )

    def __str__(self) -> str:
        return self.message


class DuplicateRegistrationError(RelayError):
    """A discriminator was registered twice with different payload types."""

    def __init__(self, discriminator: str, existing: type, new: type) -> None:
        super().__init__(
            f"Discriminator '{discriminator}' already registered with {existing.__name__}",
            details={"discriminator": discriminator, "new": new.__name__},
        )


class AuditLogValidationError(RelayError, ValueError):
    """An audit log entry failed validation.

    Raised by the audit log factory when the entity type or entity id is
    missing. Never escapes the change-capture interceptor.
    """

    def __init__(self, field: str, reason: str) -> None:
        self.field = field
        self.reason = reason
        super().__init__(f"Invalid audit log {field}: {reason}", details={"field": field})


__all__ = [
    "AuditLogValidationError",
    "DuplicateRegistrationError",
    "MessageDeserializationError",
    "MessageDispatchError",
    "MessageTypeResolutionError",
    "RelayError",
]
