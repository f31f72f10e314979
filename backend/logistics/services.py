"""
Purpose: Wires the booking engine to the ORM store for the web process.
What it does:
Builds one set of services per process from environment settings:
- DjangoEntityStore + DjangoAuditLog
- WebhookNotifier when PUSH_GATEWAY_URL is set, LoggingNotifier otherwise,
  called from a thread pool so a slow gateway never holds up a request
- OSRM pickup durations for the ETA estimator when BASE_URL is set
"""

from __future__ import annotations

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import lru_cache

from common.config import Settings
from dispatch.booking import BookingOrchestrator
from dispatch.lifecycle import DispatchStateMachine
from fleet.policy import FleetPolicy
from notifications.push import LoggingNotifier, WebhookNotifier
from notifications.side_effects import SideEffects
from reservations.conflicts import ConflictResolver
from reservations.manager import ReservationManager
from routing.eta_service import ETAEstimator
from routing.matrix_adapter import pickup_duration_provider_from_osrm_client
from routing.osrm_client import OSRMClient
from routing.policy import eta_policy_from_settings

from .audit import DjangoAuditLog
from .store import DjangoEntityStore


@dataclass(frozen=True)
class Services:
    store: DjangoEntityStore
    reservations: ReservationManager
    conflicts: ConflictResolver
    dispatches: DispatchStateMachine
    bookings: BookingOrchestrator
    eta: ETAEstimator


def build_services(settings: Settings) -> Services:
    fleet_policy = FleetPolicy(location_stale_seconds=settings.location_stale_seconds)
    fleet_policy.validate()

    store = DjangoEntityStore(fleet_policy=fleet_policy)

    if settings.push_gateway_url:
        notifier = WebhookNotifier(settings.push_gateway_url, timeout_seconds=settings.push_timeout_seconds)
    else:
        notifier = LoggingNotifier()
    # Audit rows are written on the request's DB connection; push calls run on a bounded pool
    side_effects = SideEffects(
        audit_log=DjangoAuditLog(),
        notifier=notifier,
        notify_executor=ThreadPoolExecutor(max_workers=max(settings.push_workers, 1), thread_name_prefix="push"),
    )

    reservations = ReservationManager(
        store,
        side_effects=side_effects,
        reminder_minutes=settings.reservation_reminder_minutes,
    )
    dispatches = DispatchStateMachine(store, side_effects=side_effects)

    duration_provider = None
    if settings.osrm_base_url:
        duration_provider = pickup_duration_provider_from_osrm_client(OSRMClient(settings.osrm_base_url))

    return Services(
        store=store,
        reservations=reservations,
        conflicts=ConflictResolver(store, side_effects=side_effects),
        dispatches=dispatches,
        bookings=BookingOrchestrator(
            store,
            dispatches=dispatches,
            reservations=reservations,
            side_effects=side_effects,
        ),
        eta=ETAEstimator(
            store,
            policy=eta_policy_from_settings(settings),
            fleet_policy=fleet_policy,
            duration_provider=duration_provider,
        ),
    )


@lru_cache(maxsize=None)
def get_services() -> Services:
    return build_services(Settings.from_env())
