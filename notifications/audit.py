"""
Purpose: Audit trail collaborator.
What it does:
Records who changed what, with before/after snapshots, for every booking,
resolution and dispatch transition. The engine only ever writes entries;
reading them back is the audit service's business.

Implementations:
- LoggingAuditLog   writes one structured log line per entry (default)
- InMemoryAuditLog  keeps entries in a list (tests, simulation)
The Django project adds a model-backed one (backend/logistics/audit.py).
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Dict, List, Optional, Protocol

from common.clock import utc_now

logger = logging.getLogger(__name__)

Snapshot = Optional[Dict[str, Any]]


@dataclass(frozen=True)
class AuditEntry:
    actor_id: str
    action: str
    target_type: str
    target_id: str
    before: Snapshot = None
    after: Snapshot = None
    reason: str = ""
    created_at: datetime = field(default_factory=utc_now)


class AuditLog(Protocol):
    def log(
        self,
        actor_id: str,
        action: str,
        target_type: str,
        target_id: str,
        before: Snapshot = None,
        after: Snapshot = None,
        reason: str = "",
    ) -> None: ...


def snapshot(entity: Any) -> Snapshot:
    """Plain-dict state of a domain record, or None when there is nothing to record."""
    if entity is None:
        return None
    return entity.to_dict()


class LoggingAuditLog:
    def log(self, actor_id, action, target_type, target_id, before=None, after=None, reason=""):
        logger.info(
            "audit action=%s target=%s/%s actor=%s reason=%r",
            action, target_type, target_id, actor_id, reason,
        )


class InMemoryAuditLog:
    def __init__(self):
        self.entries: List[AuditEntry] = []

    def log(self, actor_id, action, target_type, target_id, before=None, after=None, reason=""):
        self.entries.append(
            AuditEntry(
                actor_id=actor_id,
                action=action,
                target_type=target_type,
                target_id=target_id,
                before=before,
                after=after,
                reason=reason,
            )
        )

    def actions(self) -> List[str]:
        return [entry.action for entry in self.entries]
