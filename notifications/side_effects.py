"""
Purpose: Fire-and-forget plumbing for audit and push calls.
What it does:
Runs a collaborator call either inline or on an injected executor and
makes sure its failure can never fail the operation that triggered it.
"""

from __future__ import annotations

import logging
from concurrent.futures import Executor
from dataclasses import dataclass, field
from typing import Any, Callable, Optional

from .audit import AuditLog, LoggingAuditLog, Snapshot
from .push import LoggingNotifier, Notifier, Payload, Role

logger = logging.getLogger(__name__)


def _run_quietly(fn: Callable[..., Any], *args: Any, **kwargs: Any) -> None:
    try:
        fn(*args, **kwargs)
    except Exception:
        logger.warning("side effect %s failed", getattr(fn, "__qualname__", fn), exc_info=True)


def fire_and_forget(fn: Callable[..., Any], *args: Any, executor: Optional[Executor] = None, **kwargs: Any) -> None:
    if executor is None:
        _run_quietly(fn, *args, **kwargs)
        return

    try:
        executor.submit(_run_quietly, fn, *args, **kwargs)
    except RuntimeError:
        # Executor already shut down
        logger.warning("side effect %s dropped: executor unavailable", getattr(fn, "__qualname__", fn))


@dataclass
class SideEffects:
    """
    The audit log and notifier a component talks to, plus where their calls run.

    `executor` runs audit calls; `notify_executor` runs push calls and falls
    back to `executor`. A collaborator without an executor runs inline.
    """
    audit_log: AuditLog = field(default_factory=LoggingAuditLog)
    notifier: Notifier = field(default_factory=LoggingNotifier)
    executor: Optional[Executor] = None
    notify_executor: Optional[Executor] = None

    @property
    def _push_executor(self) -> Optional[Executor]:
        return self.notify_executor or self.executor

    def audit(
        self,
        actor_id: str,
        action: str,
        target_type: str,
        target_id: str,
        before: Snapshot = None,
        after: Snapshot = None,
        reason: str = "",
    ) -> None:
        fire_and_forget(
            self.audit_log.log, actor_id, action, target_type, target_id,
            before, after, reason, executor=self.executor,
        )

    def notify_user(self, user_id: str, title: str, body: str, data: Payload = None) -> None:
        fire_and_forget(self.notifier.notify_user, user_id, title, body, data, executor=self._push_executor)

    def notify_vehicle_driver(self, vehicle_id: str, title: str, body: str, data: Payload = None) -> None:
        fire_and_forget(self.notifier.notify_vehicle_driver, vehicle_id, title, body, data, executor=self._push_executor)

    def notify_role(self, title: str, body: str, data: Payload, *roles: Role) -> None:
        fire_and_forget(self.notifier.notify_role, title, body, data, *roles, executor=self._push_executor)
