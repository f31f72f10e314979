from .dispatch_state import (
    PROGRESS_TIMESTAMPS,
    apply_assignment,
    apply_cancellation,
    apply_status,
    ensure_assignable,
    ensure_cancellable,
    ensure_progressable,
)

__all__ = [
    "PROGRESS_TIMESTAMPS",
    "apply_assignment",
    "apply_cancellation",
    "apply_status",
    "ensure_assignable",
    "ensure_cancellable",
    "ensure_progressable",
]
