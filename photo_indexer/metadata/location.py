from typing import Optional, Protocol

from ..models import Location


class LocationResolver(Protocol):
    """Turns a coordinate pair into a Location (names optional)."""
    def resolve(self, lat: float, lng: float) -> Optional[Location]: ...


class CoordinateLocationResolver:
    """
    Offline resolver: the identity is the coordinate pair rounded to
    `precision` decimals (~11 m at 4). No place names are attached; plug a
    reverse-geocoding resolver in for those.
    """
    def __init__(self, precision: int = 4):
        self.precision = precision

    def resolve(self, lat: float, lng: float) -> Optional[Location]:
        if lat is None or lng is None or (lat == 0.0 and lng == 0.0):
            return None
        lat_r = round(lat, self.precision)
        lng_r = round(lng, self.precision)
        return Location(id=f"{lat_r:.{self.precision}f},{lng_r:.{self.precision}f}", lat=lat_r, lng=lng_r)
