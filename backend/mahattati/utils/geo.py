import math
from typing import Sequence
import numpy as np

EARTH_RADIUS_KM = 6371.0


def haversine_km(lat: float, lng: float, lats: Sequence[float], lngs: Sequence[float]) -> np.ndarray:
    """Great-circle distance in km from (lat, lng) to every (lats[i], lngs[i])"""
    lat1 = np.radians(lat)
    lng1 = np.radians(lng)
    lat2 = np.radians(np.asarray(lats, dtype=float))
    lng2 = np.radians(np.asarray(lngs, dtype=float))

    a = (
        np.sin((lat2 - lat1) / 2.0) ** 2
        + np.cos(lat1) * np.cos(lat2) * np.sin((lng2 - lng1) / 2.0) ** 2
    )
    # clip guards arcsin against rounding just above 1
    return 2.0 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(np.clip(a, 0.0, 1.0)))


def bounding_box(lat: float, lng: float, radius_km: float) -> tuple[float, float, float, float]:
    """
    (min_lat, max_lat, min_lng, max_lng) enclosing the circle.

    Used as a cheap SQL pre-filter; the exact haversine check runs afterwards.
    """
    lat_delta = math.degrees(radius_km / EARTH_RADIUS_KM)
    cos_lat = math.cos(math.radians(lat))
    if cos_lat < 1e-6 or abs(lat) + lat_delta >= 90.0:
        # Near the poles any longitude can be within range
        lng_delta = 180.0
    else:
        lng_delta = min(180.0, math.degrees(radius_km / (EARTH_RADIUS_KM * cos_lat)))
    return lat - lat_delta, lat + lat_delta, lng - lng_delta, lng + lng_delta
