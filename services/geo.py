# Geo helpers — great-circle distance for "near me" filtering and sorting

import numpy as np
from math import radians, cos, sin, asin, sqrt
from typing import List, Tuple

EARTH_RADIUS_KM = 6371


def haversine(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Straight-line distance in km between two lat/lon points."""
    lat1, lon1, lat2, lon2 = map(radians, [lat1, lon1, lat2, lon2])
    a = sin((lat2 - lat1) / 2) ** 2 + cos(lat1) * cos(lat2) * sin((lon2 - lon1) / 2) ** 2
    return 2 * EARTH_RADIUS_KM * asin(sqrt(a))


def distances_km(origin: Tuple[float, float], points: List[Tuple[float, float]]) -> np.ndarray:
    """Vectorised haversine from one origin to N points."""
    if not points:
        return np.zeros(0)
    coords = np.radians(np.asarray(points, dtype=float))
    lat0, lon0 = np.radians(origin)
    dlat = coords[:, 0] - lat0
    dlon = coords[:, 1] - lon0
    a = np.sin(dlat / 2) ** 2 + np.cos(lat0) * np.cos(coords[:, 0]) * np.sin(dlon / 2) ** 2
    return 2 * EARTH_RADIUS_KM * np.arcsin(np.sqrt(a))
