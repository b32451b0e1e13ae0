"""
Device geolocation adapters.
"""
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Optional, Union

from app.core.config import settings
from app.core.errors import LocationFailure, LocationFailureReason


@dataclass(frozen=True)
class Coordinates:
    latitude: float
    longitude: float

    @property
    def is_zero(self) -> bool:
        return self.latitude == 0 and self.longitude == 0


@dataclass(frozen=True)
class PositionOptions:
    """Single accuracy-prioritized fix, bounded wait, never a cached fix."""

    high_accuracy: bool = True
    timeout_ms: int = 10000
    max_cache_age_ms: int = 0

    @classmethod
    def from_settings(cls) -> "PositionOptions":
        return cls(
            high_accuracy=settings.LOCATION_HIGH_ACCURACY,
            timeout_ms=settings.LOCATION_TIMEOUT_MS,
            max_cache_age_ms=settings.LOCATION_MAX_CACHE_AGE_MS,
        )

    def to_client_options(self) -> Dict[str, Union[bool, int]]:
        """Options in the shape ``navigator.geolocation.getCurrentPosition`` takes."""
        return {
            "enableHighAccuracy": self.high_accuracy,
            "timeout": self.timeout_ms,
            "maximumAge": self.max_cache_age_ms,
        }


class DeviceGeolocation(ABC):
    """Source of the reporter's position."""

    @abstractmethod
    async def get_current_position(self, options: PositionOptions) -> Coordinates:
        """Return a fresh fix or raise ``LocationFailure``."""
        pass


# W3C GeolocationPositionError codes
W3C_ERROR_CODES = {
    1: LocationFailureReason.PERMISSION_DENIED,
    2: LocationFailureReason.POSITION_UNAVAILABLE,
    3: LocationFailureReason.TIMEOUT,
}


def reason_from_error_code(code: Union[int, str, None]) -> LocationFailureReason:
    """Map a browser error code (or reason name) to a failure reason."""
    if isinstance(code, str):
        if code.isdigit():
            code = int(code)
        else:
            try:
                return LocationFailureReason(code)
            except ValueError:
                return LocationFailureReason.POSITION_UNAVAILABLE
    return W3C_ERROR_CODES.get(code, LocationFailureReason.POSITION_UNAVAILABLE)


class ReportedPosition(DeviceGeolocation):
    """
    Outcome the accident form got from the browser's geolocation API.

    Either coordinates or an error code; neither means the browser has
    no geolocation support.
    """

    def __init__(
        self,
        latitude: Optional[float] = None,
        longitude: Optional[float] = None,
        error_code: Union[int, str, None] = None,
    ):
        self.latitude = latitude
        self.longitude = longitude
        self.error_code = error_code

    async def get_current_position(self, options: PositionOptions) -> Coordinates:
        if self.error_code is not None:
            raise LocationFailure(reason_from_error_code(self.error_code))
        if self.latitude is None or self.longitude is None:
            raise LocationFailure(LocationFailureReason.UNSUPPORTED)
        if not (-90 <= self.latitude <= 90 and -180 <= self.longitude <= 180):
            raise LocationFailure(LocationFailureReason.POSITION_UNAVAILABLE)
        return Coordinates(latitude=self.latitude, longitude=self.longitude)
