"""
IP geolocation through public lookup services, cached for a day
"""

from typing import Any, Callable, Dict, List, Optional, Tuple

import requests
from loguru import logger

from linkanalysis.core.models import GeoLocation
from linkanalysis.core.storage import DAY, TTLCache


def _from_ip_api(ip: str, data: Dict[str, Any]) -> Optional[GeoLocation]:
    if data.get("status") != "success":
        return None
    return GeoLocation(
        ip=ip,
        country=data.get("country") or "",
        region=data.get("regionName") or "",
        city=data.get("city") or "",
        latitude=data.get("lat"),
        longitude=data.get("lon"),
        isp=data.get("isp") or "",
        provider="ip-api.com",
    )


def _from_ipapi_co(ip: str, data: Dict[str, Any]) -> Optional[GeoLocation]:
    if data.get("error"):
        return None
    return GeoLocation(
        ip=ip,
        country=data.get("country_name") or "",
        region=data.get("region") or "",
        city=data.get("city") or "",
        latitude=data.get("latitude"),
        longitude=data.get("longitude"),
        isp=data.get("org") or "",
        provider="ipapi.co",
    )


Provider = Tuple[str, str, Callable[[str, Dict[str, Any]], Optional[GeoLocation]]]

PROVIDERS: List[Provider] = [
    ("ip-api.com", "http://ip-api.com/json/{ip}", _from_ip_api),
    ("ipapi.co", "https://ipapi.co/{ip}/json/", _from_ipapi_co),
]


class GeoLocationService:
    """Looks up IP addresses, trying each provider in order until one answers"""

    def __init__(self, session: Optional[requests.Session] = None,
                 cache: Optional[TTLCache] = None, timeout: float = 5.0):
        self.session = session or requests.Session()
        self.cache = cache or TTLCache(default_ttl=DAY)
        self.timeout = timeout

    def lookup(self, ip: str) -> Optional[GeoLocation]:
        ip = ip.strip()
        if not ip:
            return None

        key = f"geo:{ip}"
        cached = self.cache.get(key)
        if cached is not None:
            return GeoLocation.model_validate(cached)

        location = self._query(ip)
        if location is not None:
            self.cache.set(key, location.model_dump(), DAY)
        return location

    def _query(self, ip: str) -> Optional[GeoLocation]:
        for name, url, convert in PROVIDERS:
            try:
                response = self.session.get(url.format(ip=ip), timeout=self.timeout)
                response.raise_for_status()
                location = convert(ip, response.json())
            except (requests.RequestException, ValueError) as e:
                logger.warning(f"Geolocation lookup via {name} failed for {ip}: {e}")
                continue
            if location is not None:
                logger.debug(f"Resolved {ip} via {name}: {location.city}, {location.country}")
                return location
            logger.debug(f"{name} has no location for {ip}")

        logger.warning(f"Could not geolocate {ip}")
        return None
