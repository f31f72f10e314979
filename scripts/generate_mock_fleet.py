import pandas as pd
import numpy as np
from datetime import datetime, timezone, timedelta

def generate_mock_fleet(num_vehicles=25, output_file="mock_fleet.csv", seed=None):
    """
    Generates a company fleet around the ETA reference point (Manila CBD).
    Some vehicles have no driver, some are in maintenance and some report a
    stale GPS fix, so every derived vehicle status shows up in a simulation.
    """
    rng = np.random.default_rng(seed)

    CENTER_LAT = 14.5547
    CENTER_LON = 121.0244

    now = datetime.now(timezone.utc)
    data = []

    for index in range(num_vehicles):
        has_driver = rng.random() < 0.9
        has_fix = rng.random() < 0.85

        # Stale fixes are older than the 120s freshness threshold
        fix_age_s = int(rng.integers(5, 90)) if rng.random() < 0.8 else int(rng.integers(300, 3600))

        data.append({
            "vehicle_id": f"VEH-{str(index+1).zfill(3)}",
            "name": f"Van {str(index+1).zfill(2)}",
            "license_plate": f"{chr(65 + index % 26)}{chr(65 + (index * 7) % 26)}{chr(65 + (index * 3) % 26)} {rng.integers(1000, 9999)}",
            "driver_id": f"DRV-{str(index+1).zfill(3)}" if has_driver else "",
            "is_maintenance": bool(rng.random() < 0.08),
            # Vehicles scattered within ~6km of the centre (roughly 0.06 degrees)
            "lat": np.round(CENTER_LAT + rng.uniform(-0.06, 0.06), 6) if has_fix else np.nan,
            "lon": np.round(CENTER_LON + rng.uniform(-0.06, 0.06), 6) if has_fix else np.nan,
            "location_at": (now - timedelta(seconds=fix_age_s)).isoformat() if has_fix else "",
        })

    df = pd.DataFrame(data)
    df.to_csv(output_file, index=False)
    print(f"Generated {num_vehicles} vehicles and saved to '{output_file}'")

    print("\nFleet summary:")
    print(f"  without driver: {(df['driver_id'] == '').sum()}")
    print(f"  in maintenance: {df['is_maintenance'].sum()}")
    print(f"  without GPS fix: {df['lat'].isna().sum()}")

if __name__ == "__main__":
    generate_mock_fleet()
