"""
Entity store package.

Public API:
- Capability protocols: VehicleStore, ReservationStore, ConflictStore, DispatchStore, EntityStore
- InMemoryEntityStore (dict-backed implementation of all of them)

The Django ORM implementation lives with the web project (backend/logistics/store.py).
"""
from .protocols import ConflictStore, DispatchStore, EntityStore, ReservationStore, VehicleStore
from .memory import InMemoryEntityStore

__all__ = [
    "ConflictStore",
    "DispatchStore",
    "EntityStore",
    "ReservationStore",
    "VehicleStore",
    "InMemoryEntityStore",
]
