"""
Reverse geocoding collaborators.
"""
from abc import ABC, abstractmethod
from typing import Optional

import httpx

from app.core.config import settings
from app.core.errors import TransportFailure
from app.core.logging import get_logger

logger = get_logger(__name__)


class Geocoder(ABC):
    @abstractmethod
    async def reverse_resolve(self, latitude: float, longitude: float) -> Optional[str]:
        """Human-readable address, ``None`` when unresolved."""
        pass


class GoogleGeocoder(Geocoder):
    """Google Geocoding API (``latlng`` reverse lookup)."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.GOOGLE_MAPS_API_KEY
        self.base_url = base_url or settings.GEOCODING_URL
        self.timeout = timeout or settings.GEOCODING_TIMEOUT_SECONDS
        self.transport = transport

    async def reverse_resolve(self, latitude: float, longitude: float) -> Optional[str]:
        params = {"latlng": f"{latitude},{longitude}", "key": self.api_key}
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self.transport) as client:
                response = await client.get(self.base_url, params=params)
                response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.error(f"Geocoding request failed: {exc}")
            raise TransportFailure("geocoding", "Geocoding service unreachable", exc)

        try:
            data = response.json()
        except ValueError as exc:
            logger.error(f"Geocoding returned a non-JSON body: {exc}")
            raise TransportFailure("geocoding", "Geocoding service returned an unreadable answer", exc)
        if not isinstance(data, dict):
            raise TransportFailure("geocoding", "Geocoding service returned an unreadable answer")

        results = data.get("results") or []
        if data.get("status") == "OK" and results:
            return results[0].get("formatted_address") or None

        logger.info(f"Geocoding returned no address: status={data.get('status')}")
        return None


class NullGeocoder(Geocoder):
    """Used when no geocoding key is configured."""

    async def reverse_resolve(self, latitude: float, longitude: float) -> Optional[str]:
        return None


def get_geocoder() -> Geocoder:
    """Dependency returning the configured geocoder."""
    if settings.GOOGLE_MAPS_API_KEY:
        return GoogleGeocoder()
    return NullGeocoder()
