"""
Distance helpers for pincode-based warehouse lookups

Pincodes are mapped to an approximate regional centroid using their first
digit (the postal zone). Good enough to rank warehouses, not for routing.
"""
import math
from typing import Optional, Tuple, Union

EARTH_RADIUS_KM = 6371

# First pincode digit -> (latitude, longitude) of the zone's main city
PINCODE_ZONES = {
    "1": (28.7041, 77.1025),   # Delhi
    "2": (19.0760, 72.8777),   # Mumbai
    "3": (23.0225, 72.5714),   # Ahmedabad
    "4": (17.3850, 78.4867),   # Hyderabad
    "5": (12.9716, 77.5946),   # Bangalore
    "6": (13.0827, 80.2707),   # Chennai
    "7": (22.5726, 88.3639),   # Kolkata
    "8": (26.9124, 75.7873),   # Jaipur
    "9": (21.1458, 79.0882),   # Nagpur
}

DELIVERY_KM_PER_DAY = 300


def calculate_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in km (haversine), rounded to one decimal"""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)

    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))

    return round(EARTH_RADIUS_KM * c, 1)


def pincode_to_coordinates(pincode: Union[str, int, None]) -> Optional[Tuple[float, float]]:
    """Approximate coordinates for a 6-digit pincode, or None if it can't be placed"""
    if pincode is None:
        return None
    code = str(pincode).strip()
    if len(code) != 6 or not code.isdigit():
        return None
    return PINCODE_ZONES.get(code[0])


def calculate_distance_by_pincode(pincode1, pincode2) -> Optional[float]:
    coords1 = pincode_to_coordinates(pincode1)
    coords2 = pincode_to_coordinates(pincode2)
    if not coords1 or not coords2:
        return None
    return calculate_distance(coords1[0], coords1[1], coords2[0], coords2[1])


def estimate_delivery_days(distance_km: Optional[float]) -> Optional[int]:
    """One day per started 300 km; 0 for the same zone"""
    if distance_km is None:
        return None
    return math.ceil(distance_km / DELIVERY_KM_PER_DAY)


def estimate_delivery_hours(distance_km: float) -> int:
    # Same city, regional, national
    if distance_km < 50:
        return 6
    if distance_km < 300:
        return 36
    return 72


def format_distance(distance_km: Optional[float]) -> str:
    if distance_km is None:
        return "Unknown"
    if distance_km < 1:
        return f"{round(distance_km * 1000)} m"
    return f"{distance_km:.1f} km"
