"""
Location acquisition and reverse geocoding
"""
from app.services.location.devices import (
    Coordinates,
    DeviceGeolocation,
    PositionOptions,
    ReportedPosition,
    reason_from_error_code,
)
from app.services.location.geocoding import Geocoder, GoogleGeocoder, NullGeocoder, get_geocoder
from app.services.location.resolver import (
    ADDRESS_PLACEHOLDER,
    FAILURE_MESSAGES,
    LocationResolver,
    LocationResult,
    LocationState,
)

__all__ = [
    "Coordinates",
    "DeviceGeolocation",
    "PositionOptions",
    "ReportedPosition",
    "reason_from_error_code",
    "Geocoder",
    "GoogleGeocoder",
    "NullGeocoder",
    "get_geocoder",
    "ADDRESS_PLACEHOLDER",
    "FAILURE_MESSAGES",
    "LocationResolver",
    "LocationResult",
    "LocationState",
]
