#Marks routing as a package.
#Re-exports the public APIs (ETAEstimator, OSRMClient, haversine_m) so other
#modules import from routing without knowing internal file names.
#No business logic.

from .geo import haversine_m
from .policy import ETAPolicy, default_eta_policy, eta_policy_from_settings
from .eta_service import ETAEstimator, VehicleETA
from .osrm_client import OSRMClient, OSRMError
from .matrix_adapter import PickupDurationProvider, pickup_duration_provider_from_osrm_client

__all__ = [
    "haversine_m",
    "ETAPolicy",
    "default_eta_policy",
    "eta_policy_from_settings",
    "ETAEstimator",
    "VehicleETA",
    "OSRMClient",
    "OSRMError",
    "PickupDurationProvider",
    "pickup_duration_provider_from_osrm_client",
]
