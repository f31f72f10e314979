import random

import pytest

from fleet.models import VehicleStatus
from routing.eta_service import ETAEstimator
from routing.geo import haversine_m
from routing.matrix_adapter import PickupDurationProvider
from routing.osrm_client import OSRMClient, OSRMError
from routing.policy import ETAPolicy

PICKUP = (14.5547, 121.0244)


class FakeOSRM:
    def __init__(self, seconds_per_degree=10000):
        self.seconds_per_degree = seconds_per_degree
        self.calls = []

    def compute_table(self, sources, destinations):
        self.calls.append((list(sources), list(destinations)))
        return {
            "durations": [
                [(abs(s[0] - d[0]) + abs(s[1] - d[1])) * self.seconds_per_degree for d in destinations]
                for s in sources
            ],
            "distances": [],
        }


class FailingOSRM:
    def compute_table(self, sources, destinations):
        raise OSRMError("OSRM request failed: connection refused")


@pytest.fixture
def estimator(store, clock):
    def build(seed=42, **kwargs):
        return ETAEstimator(store, rng=random.Random(seed), clock=clock, **kwargs)
    return build


def test_haversine_known_distance():
    # One degree of latitude is ~111.2 km on a 6371 km sphere
    assert haversine_m((0.0, 0.0), (1.0, 0.0)) == pytest.approx(111195, rel=1e-4)
    assert haversine_m(PICKUP, PICKUP) == 0


def test_one_estimate_per_vehicle_sorted_by_duration(estimator):
    estimates = estimator().estimate(PICKUP)

    assert sorted(e.vehicle_id for e in estimates) == ["v1", "v2", "v3", "v4", "v5"]
    durations = [e.duration_sec for e in estimates]
    assert durations == sorted(durations)


def test_same_seed_same_estimates(estimator):
    first = [e.to_dict() for e in estimator(seed=7).estimate(PICKUP)]
    second = [e.to_dict() for e in estimator(seed=7).estimate(PICKUP)]
    assert first == second


def test_straight_line_duration_uses_sampled_speed(estimator):
    by_id = {e.vehicle_id: e for e in estimator().estimate(PICKUP)}

    v1 = by_id["v1"]
    assert (v1.lat, v1.lon) == (14.56, 121.03)
    assert not v1.position_is_fallback
    assert v1.distance_m == round(haversine_m((14.56, 121.03), PICKUP))

    # 15-25 km/h bounds the duration from both sides
    assert v1.distance_m / (25 / 3.6) - 1 <= v1.duration_sec <= v1.distance_m / (15 / 3.6) + 1


def test_vehicle_at_pickup_gets_floor_with_jitter(store, estimator):
    store.set_vehicle_location("v1", *PICKUP)

    [v1] = [e for e in estimator().estimate(PICKUP) if e.vehicle_id == "v1"]
    assert v1.distance_m == 0
    assert 60 <= v1.duration_sec < 180


def test_vehicles_without_fix_use_reference_offsets(estimator):
    policy = ETAPolicy()
    by_id = {e.vehicle_id: e for e in estimator(policy=policy).estimate(PICKUP)}

    # List position (name order) picks the offset: v3 is third, v4 fourth
    for vehicle_id, idx in (("v3", 2), ("v4", 3)):
        estimate = by_id[vehicle_id]
        d_lat, d_lon = policy.fallback_offsets[idx]
        assert estimate.position_is_fallback
        assert (estimate.lat, estimate.lon) == (policy.reference_lat + d_lat, policy.reference_lon + d_lon)


def test_stale_fix_falls_back(store, clock, estimator):
    clock.advance(minutes=10)
    by_id = {e.vehicle_id: e for e in estimator().estimate(PICKUP)}

    assert by_id["v1"].position_is_fallback
    assert by_id["v1"].status == VehicleStatus.STALE_LOCATION
    assert not by_id["v1"].is_available


def test_availability_flag_follows_status(estimator):
    by_id = {e.vehicle_id: e for e in estimator().estimate(PICKUP)}

    assert by_id["v1"].is_available
    assert by_id["v5"].status == VehicleStatus.MAINTENANCE
    assert not by_id["v5"].is_available


def test_road_durations_replace_straight_line_for_live_fixes(estimator):
    osrm = FakeOSRM()
    by_id = {e.vehicle_id: e for e in estimator(duration_provider=PickupDurationProvider(osrm)).estimate(PICKUP)}

    # Only v1 and v2 have fresh fixes, so only they are routed
    [(sources, destinations)] = osrm.calls
    assert sources == [(14.56, 121.03), (14.55, 121.02)]
    assert destinations == [PICKUP]

    assert by_id["v1"].duration_sec == round((abs(14.56 - PICKUP[0]) + abs(121.03 - PICKUP[1])) * 10000)


def test_osrm_failure_falls_back_to_straight_line(estimator):
    plain = [e.to_dict() for e in estimator(seed=3).estimate(PICKUP)]
    degraded = [
        e.to_dict()
        for e in estimator(seed=3, duration_provider=PickupDurationProvider(FailingOSRM())).estimate(PICKUP)
    ]
    assert degraded == plain


def test_duration_provider_caches_lookups():
    osrm = FakeOSRM()
    provider = PickupDurationProvider(osrm)

    first = provider([(14.56, 121.03)], PICKUP)
    second = provider([(14.56, 121.03), (14.55, 121.02)], PICKUP)

    assert second[0] == first[0]
    assert [call[0] for call in osrm.calls] == [[(14.56, 121.03)], [(14.55, 121.02)]]

    provider.clear()
    provider([(14.56, 121.03)], PICKUP)
    assert len(osrm.calls) == 3


class FakeResponse:
    def __init__(self, payload):
        self.payload = payload

    def json(self):
        return self.payload


class FakeSession:
    def __init__(self, payload):
        self.payload = payload
        self.requests = []

    def get(self, url, params=None, timeout=None):
        self.requests.append((url, params, timeout))
        return FakeResponse(self.payload)


def test_osrm_client_builds_table_request():
    session = FakeSession({"code": "Ok", "durations": [[120.5]], "distances": [[900.0]]})
    client = OSRMClient("http://osrm.local/", session=session)

    table = client.compute_table([(14.56, 121.03)], [PICKUP])

    assert table == {"durations": [[120.5]], "distances": [[900.0]]}
    [(url, params, timeout)] = session.requests
    assert url == "http://osrm.local/table/v1/driving/121.03,14.56;121.0244,14.5547"
    assert params["sources"] == "0"
    assert params["destinations"] == "1"
    assert timeout == 5


def test_osrm_client_raises_on_error_code():
    client = OSRMClient("http://osrm.local", session=FakeSession({"code": "InvalidQuery", "message": "bad coords"}))

    with pytest.raises(OSRMError):
        client.compute_table([(14.56, 121.03)], [PICKUP])


def test_policy_validation():
    with pytest.raises(ValueError):
        ETAPolicy(fallback_offsets=[]).validate()
    with pytest.raises(ValueError):
        ETAPolicy(min_speed_kmh=30, max_speed_kmh=20).validate()
