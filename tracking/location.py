"""
Offline place naming from a static table of country and city bounding boxes.

Boxes may overlap; the table is scanned in order and the first match wins,
so list order is priority. Coordinates outside every country box fall back
to an ocean-basin decision table.
"""

from dataclasses import dataclass, field
from typing import Callable, Optional, Tuple

from shapely.geometry import Point, box

from contracts.constants import INTERNATIONAL_WATERS
from contracts.validation import Coordinate


class BoundingBox:
    """Inclusive lat/lon rectangle backed by a shapely polygon."""

    def __init__(self, lat_min: float, lat_max: float, lon_min: float, lon_max: float):
        self.lat_min = lat_min
        self.lat_max = lat_max
        self.lon_min = lon_min
        self.lon_max = lon_max
        self.geometry = box(lon_min, lat_min, lon_max, lat_max)

    def contains(self, coord: Coordinate) -> bool:
        # covers() includes the boundary, contains() would not
        return self.geometry.covers(Point(coord.longitude, coord.latitude))

    def __repr__(self) -> str:
        return f"BoundingBox({self.lat_min}, {self.lat_max}, {self.lon_min}, {self.lon_max})"


@dataclass(frozen=True)
class CityRecord:
    name: str
    bounds: BoundingBox


@dataclass(frozen=True)
class CountryRecord:
    name: str
    region: str
    bounds: BoundingBox
    timezone: Callable[[Coordinate], str]
    cities: Tuple[CityRecord, ...] = field(default_factory=tuple)


@dataclass(frozen=True)
class PlaceInfo:
    """Structured classification result."""
    country: Optional[str]
    city: Optional[str] = None
    region: Optional[str] = None
    timezone: Optional[str] = None
    ocean: Optional[str] = None

    @property
    def display_name(self) -> str:
        if self.city and self.country:
            return f"{self.city}, {self.country}"
        if self.country:
            return self.country
        return self.ocean or INTERNATIONAL_WATERS


def _fixed_zone(zone: str) -> Callable[[Coordinate], str]:
    return lambda coord: zone


def _longitude_zones(bands: Tuple[Tuple[float, float, str], ...], default: str) -> Callable[[Coordinate], str]:
    """Pick a timezone id from (lon_min, lon_max, zone) bands, first match wins."""
    def select(coord: Coordinate) -> str:
        for lon_min, lon_max, zone in bands:
            if lon_min <= coord.longitude <= lon_max:
                return zone
        return default
    return select


def _city(name: str, lat_min: float, lat_max: float, lon_min: float, lon_max: float) -> CityRecord:
    return CityRecord(name, BoundingBox(lat_min, lat_max, lon_min, lon_max))


COUNTRIES: Tuple[CountryRecord, ...] = (
    CountryRecord(
        name="United States",
        region="North America",
        bounds=BoundingBox(24.0, 49.0, -125.0, -66.0),
        timezone=_longitude_zones((
            (-125.0, -117.0, "America/Los_Angeles"),
            (-117.0, -104.0, "America/Denver"),
            (-104.0, -87.0, "America/Chicago"),
            (-87.0, -66.0, "America/New_York"),
        ), default="America/New_York"),
        cities=(
            _city("Los Angeles", 33.7, 34.1, -118.7, -118.1),
            _city("New York", 40.4, 40.9, -74.3, -73.7),
            _city("San Francisco", 37.4, 37.8, -122.5, -122.3),
            _city("Chicago", 41.6, 42.1, -88.0, -87.5),
        ),
    ),
    CountryRecord(
        name="Canada",
        region="North America",
        bounds=BoundingBox(42.0, 70.0, -141.0, -52.0),
        timezone=_longitude_zones((
            (-141.0, -120.0, "America/Vancouver"),
            (-120.0, -110.0, "America/Edmonton"),
            (-110.0, -90.0, "America/Winnipeg"),
            (-90.0, -60.0, "America/Toronto"),
            (-60.0, -52.0, "America/Halifax"),
        ), default="America/Toronto"),
        cities=(
            _city("Toronto", 43.5, 43.9, -79.6, -79.1),
            _city("Montreal", 45.4, 45.7, -73.8, -73.4),
            _city("Vancouver", 49.0, 49.4, -123.3, -122.9),
        ),
    ),
    CountryRecord(
        name="United Kingdom",
        region="Europe",
        bounds=BoundingBox(49.0, 61.0, -8.0, 2.0),
        timezone=_fixed_zone("Europe/London"),
        cities=(
            _city("London", 51.3, 51.7, -0.5, 0.3),
            _city("Manchester", 53.3, 53.6, -2.4, -2.1),
        ),
    ),
    CountryRecord(
        name="France",
        region="Europe",
        bounds=BoundingBox(42.0, 51.0, -5.0, 9.0),
        timezone=_fixed_zone("Europe/Paris"),
        cities=(
            _city("Paris", 48.7, 49.0, 2.1, 2.6),
            _city("Marseille", 43.2, 43.4, 5.3, 5.5),
        ),
    ),
    CountryRecord(
        name="Germany",
        region="Europe",
        bounds=BoundingBox(47.0, 55.0, 6.0, 15.0),
        timezone=_fixed_zone("Europe/Berlin"),
        cities=(
            _city("Berlin", 52.3, 52.7, 13.2, 13.6),
            _city("Munich", 48.0, 48.3, 11.4, 11.8),
        ),
    ),
    CountryRecord(
        name="Italy",
        region="Europe",
        bounds=BoundingBox(36.0, 47.0, 6.0, 19.0),
        timezone=_fixed_zone("Europe/Rome"),
        cities=(
            _city("Rome", 41.7, 42.0, 12.3, 12.7),
            _city("Milan", 45.3, 45.6, 9.0, 9.4),
        ),
    ),
    CountryRecord(
        name="Spain",
        region="Europe",
        bounds=BoundingBox(35.0, 44.0, -9.0, 5.0),
        timezone=_fixed_zone("Europe/Madrid"),
        cities=(
            _city("Madrid", 40.3, 40.6, -3.8, -3.5),
            _city("Barcelona", 41.3, 41.5, 2.0, 2.3),
        ),
    ),
    CountryRecord(
        name="Japan",
        region="Asia",
        bounds=BoundingBox(31.0, 46.0, 125.0, 146.0),
        timezone=_fixed_zone("Asia/Tokyo"),
        cities=(
            _city("Tokyo", 35.5, 35.8, 139.5, 139.9),
            _city("Osaka", 34.6, 34.8, 135.4, 135.6),
        ),
    ),
    CountryRecord(
        name="Australia",
        region="Oceania",
        bounds=BoundingBox(-44.0, -10.0, 113.0, 154.0),
        timezone=_longitude_zones((
            (113.0, 129.0, "Australia/Perth"),
            (129.0, 138.0, "Australia/Adelaide"),
            (138.0, 154.0, "Australia/Sydney"),
        ), default="Australia/Sydney"),
        cities=(
            _city("Sydney", -34.1, -33.7, 150.9, 151.3),
            _city("Melbourne", -37.9, -37.7, 144.8, 145.1),
        ),
    ),
)


def ocean_basin(coord: Coordinate) -> str:
    """
    Name the ocean basin for a coordinate outside every country box.

    Polar caps are checked first, then longitude bands split by hemisphere.
    Checking the caps last would leave the Antarctic name unreachable, since
    every southern latitude already falls in a longitude band.
    """
    lat = coord.latitude
    lon = coord.longitude

    if lat >= 66.0:
        return "Arctic Ocean"
    if lat <= -60.0:
        return "Antarctic Ocean"
    if -80.0 <= lon <= 20.0:
        return "North Atlantic Ocean" if lat >= 0.0 else "South Atlantic Ocean"
    if -180.0 <= lon <= -80.0 or 120.0 <= lon <= 180.0:
        return "North Pacific Ocean" if lat >= 0.0 else "South Pacific Ocean"
    if 20.0 <= lon <= 120.0 and lat <= 30.0:
        return "Indian Ocean"
    return INTERNATIONAL_WATERS


class LocationClassifier:
    """Pure, total coordinate-to-place classifier."""

    def __init__(self, countries: Tuple[CountryRecord, ...] = COUNTRIES):
        self.countries = countries

    def describe(self, coord: Coordinate) -> PlaceInfo:
        """Classify a coordinate into country/city/region/timezone or ocean."""
        for country in self.countries:
            if not country.bounds.contains(coord):
                continue
            city = next((c.name for c in country.cities if c.bounds.contains(coord)), None)
            return PlaceInfo(
                country=country.name,
                city=city,
                region=country.region,
                timezone=country.timezone(coord),
            )
        return PlaceInfo(country=None, ocean=ocean_basin(coord))

    def classify(self, coord: Coordinate) -> str:
        """Human-readable place name; never empty."""
        return self.describe(coord).display_name
