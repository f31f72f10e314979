"""
Audit log backed by the AuditLogEntry table.
Called through notifications.side_effects, so a failed insert is logged and dropped.
"""

from .models import AuditLogEntry


class DjangoAuditLog:
    def log(self, actor_id, action, target_type, target_id, before=None, after=None, reason=""):
        AuditLogEntry.objects.create(
            actor_id=actor_id,
            action=action,
            target_type=target_type,
            target_id=target_id,
            before=before,
            after=after,
            reason=reason or "",
        )
