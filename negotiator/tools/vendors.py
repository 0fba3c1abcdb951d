"""
Vendor discovery.

In production, ``PlacesSearch`` would integrate with a maps/places text
search API. The directory turns place results into Vendors with a distance
from the reference point, and falls back to a fixed list of Varanasi shops
when the search returns nothing or fails.
"""

import logging
import math
from typing import Optional, Protocol, TypedDict

from negotiator.config import JourneyConfig, TelephonyConfig, settings
from negotiator.schemas.session_schema import Vendor
from negotiator.utils import normalize_phone

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0
MAX_VENDORS = 5


class PlaceResult(TypedDict, total=False):
    place_id: str
    name: str
    address: str
    phone: Optional[str]
    rating: Optional[float]
    lat: float
    lng: float


class PlacesSearch(Protocol):
    async def search_places(self, query: str, location: Optional[str]) -> list[PlaceResult]: ...


class NullPlacesSearch:
    """No places backend configured; always returns no results."""

    async def search_places(self, query: str, location: Optional[str]) -> list[PlaceResult]:
        return []


def builtin_vendors(phone: str = settings.telephony.default_vendor_phone) -> list[Vendor]:
    """Known Banarasi saree shops used when discovery yields nothing."""
    return [
        Vendor(
            id="mock-vendor-1",
            name="Kashi Silk Emporium",
            address="D-12/15, Lalpur, Varanasi, Uttar Pradesh 221001",
            phone=phone,
            distance=2.5,
            rating=4.8,
            place_id="mock-place-1",
        ),
        Vendor(
            id="mock-vendor-2",
            name="Banaras Saree Palace",
            address="K-37/42, Thatheri Bazar, Varanasi, Uttar Pradesh 221001",
            phone=phone,
            distance=3.1,
            rating=4.6,
            place_id="mock-place-2",
        ),
        Vendor(
            id="mock-vendor-3",
            name="Royal Heritage Silks",
            address="S-8/175, Godowlia, Varanasi, Uttar Pradesh 221001",
            phone=phone,
            distance=1.8,
            rating=4.9,
            place_id="mock-place-3",
        ),
    ]


def haversine_km(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance between two coordinates in kilometres."""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


class VendorDirectory:
    """Finds vendors for the configured product near a location."""

    def __init__(
        self,
        places: Optional[PlacesSearch] = None,
        journey_config: JourneyConfig = settings.journey,
        telephony_config: TelephonyConfig = settings.telephony,
    ) -> None:
        self._places = places or NullPlacesSearch()
        self._journey = journey_config
        self._default_phone = telephony_config.default_vendor_phone

    async def search(self, location: Optional[str] = None) -> list[Vendor]:
        location = location or self._journey.default_location
        try:
            places = await self._places.search_places(self._journey.product_query, location)
        except Exception:
            logger.warning("Places search failed, using built-in vendors", exc_info=True)
            return builtin_vendors(self._default_phone)

        vendors = [self._to_vendor(place, index) for index, place in enumerate(places[:MAX_VENDORS])]
        if not vendors:
            logger.info("No places found near '%s', using built-in vendors", location)
            return builtin_vendors(self._default_phone)
        return vendors

    def _to_vendor(self, place: PlaceResult, index: int) -> Vendor:
        place_id = place.get("place_id")
        if "lat" in place and "lng" in place:
            distance = haversine_km(
                self._journey.reference_lat, self._journey.reference_lng,
                place["lat"], place["lng"],
            )
        else:
            distance = 0.0
        return Vendor(
            id=place_id or f"vendor-{index}",
            name=place.get("name", f"Vendor {index + 1}"),
            address=place.get("address", ""),
            phone=normalize_phone(place.get("phone") or self._default_phone),
            distance=round(distance, 2),
            rating=place.get("rating"),
            place_id=place_id,
        )
