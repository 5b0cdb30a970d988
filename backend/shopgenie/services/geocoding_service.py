# /shopgenie/services/geocoding_service.py

import httpx
import logging
import tenacity
from typing import Optional

from shopgenie.config.settings import settings
from shopgenie.models.domain import GeocodeResult

logger = logging.getLogger(__name__)

GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


class GeocodingService:
    """
    Thin client for the Google Maps Geocoding API. Without an API key it
    degrades to echoing the user's text back as an unverified address.
    """

    def __init__(self, api_key: Optional[str]):
        self.api_key = api_key
        self.http_client = httpx.AsyncClient(timeout=10.0)

    @tenacity.retry(
        retry=tenacity.retry_if_exception_type((httpx.RequestError, httpx.HTTPStatusError)),
        stop=tenacity.stop_after_attempt(3),
        wait=tenacity.wait_exponential(multiplier=1, min=1, max=5),
        before_sleep=tenacity.before_sleep_log(logger, logging.WARNING),
        reraise=True,
    )
    async def _request(self, params: dict) -> dict:
        response = await self.http_client.get(GEOCODE_URL, params={**params, "key": self.api_key})
        response.raise_for_status()
        return response.json()

    async def geocode(self, address: str) -> GeocodeResult:
        address = (address or "").strip()
        if not self.api_key:
            return GeocodeResult(formatted_address=address, verified=False)
        try:
            data = await self._request({"address": address, "region": "in"})
        except (httpx.RequestError, httpx.HTTPStatusError) as e:
            logger.warning(f"Geocoding failed, keeping raw address: {e}")
            return GeocodeResult(formatted_address=address, verified=False)

        if data.get("status") != "OK" or not data.get("results"):
            logger.info(f"Geocoding returned {data.get('status')} for address input")
            return GeocodeResult(formatted_address=address, verified=False)

        result = data["results"][0]
        location = (result.get("geometry") or {}).get("location") or {}
        return GeocodeResult(
            formatted_address=result.get("formatted_address", address),
            latitude=location.get("lat"),
            longitude=location.get("lng"),
            verified=True,
        )

    async def reverse_geocode(self, latitude: float, longitude: float) -> GeocodeResult:
        fallback = GeocodeResult(
            formatted_address=f"{latitude}, {longitude}",
            latitude=latitude,
            longitude=longitude,
            verified=False,
        )
        if not self.api_key:
            return fallback
        try:
            data = await self._request({"latlng": f"{latitude},{longitude}"})
        except (httpx.RequestError, httpx.HTTPStatusError) as e:
            logger.warning(f"Reverse geocoding failed: {e}")
            return fallback

        if data.get("status") != "OK" or not data.get("results"):
            return fallback
        return GeocodeResult(
            formatted_address=data["results"][0].get("formatted_address", fallback.formatted_address),
            latitude=latitude,
            longitude=longitude,
            verified=True,
        )


geocoding_service = GeocodingService(settings.google_maps_api_key)
