#Best-effort collaborators the engine talks to but does not own:
#audit trail, push notifications, and the fire-and-forget runner.

from .audit import AuditEntry, AuditLog, InMemoryAuditLog, LoggingAuditLog, snapshot
from .push import LoggingNotifier, Notifier, Role, WebhookNotifier
from .side_effects import SideEffects, fire_and_forget

__all__ = [
    "AuditEntry",
    "AuditLog",
    "InMemoryAuditLog",
    "LoggingAuditLog",
    "snapshot",
    "LoggingNotifier",
    "Notifier",
    "Role",
    "WebhookNotifier",
    "SideEffects",
    "fire_and_forget",
]
