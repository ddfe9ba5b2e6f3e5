"""
Google Geocoding address validation
"""

import logging
from typing import Optional

import httpx

from .. import config

logger = logging.getLogger(__name__)

GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"


class GeocodingNotConfigured(Exception):
    pass


def parse_address_components(components: list[dict]) -> dict:
    """Pull street, city, state, postal code and country out of Google address_components"""
    parsed = {"street": "", "city": "", "state": "", "postalCode": "", "country": ""}
    for component in components:
        types = component.get("types", [])
        name = component.get("long_name", "")
        if "street_number" in types:
            parsed["street"] = f"{name} "
        elif "route" in types:
            parsed["street"] += name
        elif "locality" in types:
            parsed["city"] = name
        elif "administrative_area_level_1" in types or "administrative_area_level_2" in types:
            parsed["state"] = name
        elif "postal_code" in types:
            parsed["postalCode"] = name
        elif "country" in types:
            parsed["country"] = name
    return parsed


async def validate_address(address: str) -> dict:
    """
    Geocode a free-form address.

    Returns:
        {"valid": False, "message", "status"} when Google finds nothing, otherwise
        {"valid": True, "address": {...}} with the parsed components and coordinates

    Raises:
        GeocodingNotConfigured: GOOGLE_MAPS_API_KEY is missing
        httpx.HTTPError: upstream request failed
    """
    api_key: Optional[str] = config.GOOGLE_MAPS_API_KEY
    if not api_key:
        raise GeocodingNotConfigured("Google Maps API key is not configured")

    async with httpx.AsyncClient(timeout=8.0) as client:
        response = await client.get(GOOGLE_GEOCODE_URL, params={"address": address, "key": api_key})
        response.raise_for_status()
        data = response.json()

    results = data.get("results") or []
    if data.get("status") != "OK" or not results:
        logger.info(f"📍 Address not found: status={data.get('status')}")
        return {
            "valid": False,
            "message": "Address not found or invalid",
            "status": data.get("status"),
        }

    result = results[0]
    location = result.get("geometry", {}).get("location", {})
    return {
        "valid": True,
        "address": {
            "formatted": result.get("formatted_address"),
            **parse_address_components(result.get("address_components", [])),
            "place_id": result.get("place_id"),
            "lat": location.get("lat"),
            "lng": location.get("lng"),
        },
    }
