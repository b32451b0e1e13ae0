"""
Location resolver.

Per submission session: ``idle -> acquiring -> resolved | unavailable``.
A fix is acquired first, then reverse-resolved to an address. Neither
stage is fatal: a missing address leaves coordinates only, a missing
fix leaves the manual address override.
"""
import asyncio
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Optional, Tuple

from app.core.errors import (
    LocationFailure,
    LocationFailureReason,
    TransportFailure,
    ValidationError,
)
from app.core.logging import get_logger
from app.services.location.devices import Coordinates, DeviceGeolocation, PositionOptions
from app.services.location.geocoding import Geocoder

logger = get_logger(__name__)


class LocationState(str, Enum):
    IDLE = "idle"
    ACQUIRING = "acquiring"
    RESOLVED = "resolved"
    UNAVAILABLE = "unavailable"


FAILURE_MESSAGES: Dict[LocationFailureReason, str] = {
    LocationFailureReason.PERMISSION_DENIED: "Location permission denied. Enable GPS for this site and retry.",
    LocationFailureReason.POSITION_UNAVAILABLE: "Position unavailable. Try moving outside for a better signal and retry.",
    LocationFailureReason.TIMEOUT: "Location request timed out. Retry.",
    LocationFailureReason.UNSUPPORTED: "Geolocation is not supported on this device. Enter the address manually.",
}

ADDRESS_PLACEHOLDER = "Address not available"


@dataclass
class LocationResult:
    state: LocationState
    coordinates: Optional[Coordinates] = None
    address: str = ""
    address_resolved: bool = False
    failure: Optional[LocationFailureReason] = None
    message: Optional[str] = None
    manual: bool = False

    @property
    def can_retry(self) -> bool:
        return self.state in (LocationState.IDLE, LocationState.RESOLVED, LocationState.UNAVAILABLE)

    @property
    def manual_entry_allowed(self) -> bool:
        return self.state == LocationState.UNAVAILABLE or not self.address_resolved

    @property
    def display_address(self) -> str:
        return self.address or ADDRESS_PLACEHOLDER

    def to_dict(self) -> Dict[str, Any]:
        coordinates = self.coordinates or Coordinates(0.0, 0.0)
        return {
            "state": self.state.value,
            "lat": coordinates.latitude,
            "lng": coordinates.longitude,
            "address": self.address,
            "display_address": self.display_address,
            "address_resolved": self.address_resolved,
            "failure": self.failure.value if self.failure else None,
            "message": self.message,
            "manual": self.manual,
            "can_retry": self.can_retry,
            "manual_entry_allowed": self.manual_entry_allowed,
        }


class LocationResolver:
    """Acquire a position and resolve it to an address for one form session."""

    def __init__(
        self,
        device: Optional[DeviceGeolocation],
        geocoder: Optional[Geocoder] = None,
        options: Optional[PositionOptions] = None,
    ):
        self.device = device
        self.geocoder = geocoder
        self.options = options or PositionOptions.from_settings()
        self._state = LocationState.IDLE
        self._result: Optional[LocationResult] = None
        self._pending: Optional[asyncio.Task] = None

    @property
    def state(self) -> LocationState:
        return self._state

    @property
    def result(self) -> Optional[LocationResult]:
        return self._result

    async def acquire(self) -> LocationResult:
        """
        Acquire a fix and reverse-resolve it.

        A call made while another is in flight supersedes it; the earlier
        caller sees ``asyncio.CancelledError``.
        """
        if self._pending is not None and not self._pending.done():
            logger.debug("Superseding in-flight location request")
            self._pending.cancel()

        self._state = LocationState.ACQUIRING
        self._result = None
        task = asyncio.ensure_future(self._acquire())
        self._pending = task
        try:
            return await task
        finally:
            if self._pending is task:
                self._pending = None

    async def retry(self) -> LocationResult:
        """Restart acquisition from ``idle``."""
        self.reset()
        return await self.acquire()

    def reset(self) -> None:
        if self._pending is not None and not self._pending.done():
            self._pending.cancel()
        self._pending = None
        self._state = LocationState.IDLE
        self._result = None

    async def _acquire(self) -> LocationResult:
        try:
            coordinates = await self._get_fix()
        except LocationFailure as exc:
            return self._finish(
                LocationResult(
                    state=LocationState.UNAVAILABLE,
                    coordinates=Coordinates(0.0, 0.0),
                    failure=exc.reason,
                    message=FAILURE_MESSAGES[exc.reason],
                )
            )

        address, resolved = await self.reverse_resolve(coordinates)
        return self._finish(
            LocationResult(
                state=LocationState.RESOLVED,
                coordinates=coordinates,
                address=address,
                address_resolved=resolved,
                message=None if resolved else ADDRESS_PLACEHOLDER,
            )
        )

    async def _get_fix(self) -> Coordinates:
        if self.device is None:
            raise LocationFailure(LocationFailureReason.UNSUPPORTED)
        try:
            return await asyncio.wait_for(
                self.device.get_current_position(self.options),
                timeout=self.options.timeout_ms / 1000,
            )
        except asyncio.TimeoutError:
            raise LocationFailure(LocationFailureReason.TIMEOUT)

    def _finish(self, result: LocationResult) -> LocationResult:
        self._state = result.state
        self._result = result
        if result.failure:
            logger.info(f"Location unavailable: {result.failure.value}")
        return result

    async def reverse_resolve(self, coordinates: Coordinates) -> Tuple[str, bool]:
        """Address for the coordinates, or ``("", False)`` when it cannot be resolved."""
        if self.geocoder is None or coordinates.is_zero:
            return "", False
        try:
            address = await self.geocoder.reverse_resolve(coordinates.latitude, coordinates.longitude)
        except TransportFailure as exc:
            logger.warning(f"Reverse geocoding degraded to coordinates only: {exc.message}")
            return "", False
        if not address:
            return "", False
        return address, True

    def manual_override(self, address: str) -> LocationResult:
        """
        Use a typed address.

        Coordinates of a successful fix are kept; otherwise they stay (0, 0).
        """
        address = (address or "").strip()
        if not address:
            raise ValidationError("address is required for manual entry", field="address")
        if self._state == LocationState.ACQUIRING:
            self.reset()

        previous = self._result
        coordinates = Coordinates(0.0, 0.0)
        state = LocationState.UNAVAILABLE
        if previous is not None and previous.state == LocationState.RESOLVED:
            coordinates = previous.coordinates
            state = LocationState.RESOLVED

        return self._finish(
            LocationResult(
                state=state,
                coordinates=coordinates,
                address=address,
                address_resolved=False,
                failure=previous.failure if previous else None,
                message=previous.message if previous and previous.failure else None,
                manual=True,
            )
        )
