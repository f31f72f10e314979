#Purpose: The OSRM “adapter/client”.
#Sole responsibility: talk to OSRM via HTTP and return normalized outputs.
#Encapsulates OSRM-specific details:
#coordinate formatting (lon,lat)
#URL construction (/table)
#timeouts and error handling
#parsing response JSON into your internal shape
#It should not contain booking rules or ETA heuristics.

import logging
from typing import Dict, List, Optional, Tuple

import requests

from common.config import Settings

logger = logging.getLogger(__name__)

# Internal coordinate type: (lat, lon)
LatLon = Tuple[float, float]


class OSRMError(Exception):
    """Raised when OSRM is unreachable or answers with a non-Ok code."""
    pass


class OSRMClient:
    """
    OSRM Adapter / Client

    Sole responsibility:
    - Talk to OSRM via HTTP
    - Convert internal (lat, lon) → OSRM (lon,lat)
    - Return normalized outputs
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        profile: str = "driving",
        timeout: int = 5,
        session: Optional[requests.Session] = None,
    ):
        # Read OSRM base URL from environment
        # Example in .env:
        # BASE_URL=http://router.project-osrm.org
        self.base_url = (base_url or Settings.from_env().osrm_base_url or "").rstrip("/")
        self.timeout = timeout  # seconds to wait for OSRM before giving up
        self.profile = profile  # driving, walking, cycling
        self.session = session or requests.Session()

        if not self.base_url:
            raise ValueError("OSRM base URL not set. Please set BASE_URL in the .env file.")

    def format_coordinates(self, coords: List[LatLon]) -> str:
        """Convert list of (lat, lon) to OSRM format 'lon,lat;lon,lat;...'"""
        return ";".join(f"{lon},{lat}" for lat, lon in coords)

    #----------------
    # table service (batch routing)
    #----------------
    def compute_table(self, sources: List[LatLon], destinations: List[LatLon]) -> Dict[str, List[List[Optional[float]]]]:
        """
        Calls the OSRM /table endpoint for a sources x destinations matrix.

        Returns:
            {
                "durations": [[seconds or None, ...], ...],  # one row per source
                "distances": [[metres or None, ...], ...],
            }
        OSRM reports unreachable pairs as null, which stays None here.
        """
        if not sources or not destinations:
            return {"durations": [], "distances": []}

        coordinates = self.format_coordinates(sources + destinations)
        params = {
            "sources": ";".join(str(i) for i in range(len(sources))),
            "destinations": ";".join(str(i) for i in range(len(sources), len(sources) + len(destinations))),
            "annotations": "duration,distance",
        }
        url = f"{self.base_url}/table/v1/{self.profile}/{coordinates}"

        try:
            response = self.session.get(url, params=params, timeout=self.timeout)
            data = response.json()
        except (requests.RequestException, ValueError) as exc:
            raise OSRMError(f"OSRM request failed: {exc}") from exc

        if data.get("code") != "Ok":
            raise OSRMError(f"OSRM error: {data.get('message', 'Unknown error')}")

        logger.debug("OSRM table %dx%d ok", len(sources), len(destinations))
        return {
            "durations": data["durations"],
            "distances": data.get("distances", []),
        }
