"""
Geocoding module for reverse geocoding GPS coordinates.

This module resolves GPS coordinates to a short place name (city, town,
village or municipality) through the Nominatim reverse endpoint. Results
are cached per rounded coordinate and network calls are serialized to
respect the service's one-request-per-second policy.
"""

import logging
import threading
import time
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

import requests

from .config import SorterConfig

# Address fields tried in order when picking a place name
PLACE_FIELDS = ("city", "town", "village", "municipality")


def cache_key(latitude: float, longitude: float) -> str:
    """Rounded coordinate key, about 111 m resolution."""
    return f"{latitude:.3f}_{longitude:.3f}"


@dataclass(frozen=True)
class ReverseGeocodeResult:
    """Fields of a Nominatim reverse response that the sorter uses."""

    city: str = ""
    town: str = ""
    village: str = ""
    municipality: str = ""

    @classmethod
    def from_json(cls, payload: Any) -> "ReverseGeocodeResult":
        """
        Build a result from a decoded JSON response.

        Args:
            payload: Decoded response body

        Returns:
            Result with every missing or non-string field left empty
        """
        if not isinstance(payload, dict):
            return cls()
        address = payload.get("address")
        if not isinstance(address, dict):
            return cls()

        values = {}
        for field_name in PLACE_FIELDS:
            value = address.get(field_name)
            values[field_name] = value.strip() if isinstance(value, str) else ""
        return cls(**values)

    @property
    def place_name(self) -> str:
        for field_name in PLACE_FIELDS:
            value = getattr(self, field_name)
            if value:
                return value
        return ""


class GeocodeResolver:
    """
    Maps (latitude, longitude) pairs to place names.

    One instance is shared by all workers of a run. Lookups go through an
    in-memory cache keyed by the coordinate rounded to three decimals; cache
    misses take a single network lock, so at most one request is in flight
    at a time regardless of the coordinate.
    """

    def __init__(self, config: Optional[SorterConfig] = None,
                 session: Optional[requests.Session] = None,
                 sleep: Callable[[float], None] = time.sleep):
        """
        Initialize the resolver.

        Args:
            config: Run configuration (endpoint, timeout, rate limit)
            session: HTTP session, created on demand when omitted
            sleep: Function used for the post-request delay
        """
        self.logger = logging.getLogger(__name__)
        self.config = config or SorterConfig()
        self._session = session
        self._sleep = sleep

        self._geocoding_cache: Dict[str, str] = {}
        self._cache_lock = threading.Lock()
        self._network_lock = threading.Lock()

        self._cache_hits = 0
        self._cache_misses = 0
        self._network_calls = 0

    @property
    def session(self) -> requests.Session:
        if self._session is None:
            self._session = requests.Session()
        return self._session

    def resolve(self, latitude: float, longitude: float) -> str:
        """
        Reverse geocode coordinates to a place name.

        Args:
            latitude: Latitude in decimal degrees
            longitude: Longitude in decimal degrees

        Returns:
            Place name, or an empty string when nothing was found or the
            lookup failed
        """
        key = cache_key(latitude, longitude)
        cached = self._lookup(key)
        if cached is not None:
            return cached

        with self._network_lock:
            # Another worker may have resolved the same key while we waited
            cached = self._lookup(key, count=False)
            if cached is not None:
                return cached

            with self._cache_lock:
                self._cache_misses += 1
            try:
                result = self._fetch_place_name(latitude, longitude)
            finally:
                self._sleep(self.config.rate_limit_delay)

            with self._cache_lock:
                self._geocoding_cache[key] = result

        return result

    def _lookup(self, key: str, count: bool = True) -> Optional[str]:
        with self._cache_lock:
            if key in self._geocoding_cache:
                if count:
                    self._cache_hits += 1
                self.logger.debug(f"Cache hit for {key}")
                return self._geocoding_cache[key]
        return None

    def _fetch_place_name(self, latitude: float, longitude: float) -> str:
        self._network_calls += 1
        params = {
            "format": "json",
            "lat": repr(float(latitude)),
            "lon": repr(float(longitude)),
            "zoom": self.config.geocode_zoom,
        }
        try:
            response = self.session.get(self.config.geocode_url, params=params,
                                        headers={"User-Agent": self.config.user_agent},
                                        timeout=self.config.request_timeout)
            try:
                response.raise_for_status()
                payload = response.json()
            finally:
                response.close()
        except requests.RequestException as e:
            self.logger.warning(f"Geocoding failed for coordinates ({latitude}, {longitude}): {e}")
            return ""
        except ValueError as e:
            self.logger.warning(f"Invalid geocoding response for ({latitude}, {longitude}): {e}")
            return ""
        except Exception as e:
            self.logger.error(f"Unexpected geocoding error for ({latitude}, {longitude}): {e}")
            return ""

        place = ReverseGeocodeResult.from_json(payload).place_name
        if place:
            self.logger.debug(f"Resolved ({latitude:.6f}, {longitude:.6f}) to {place}")
        else:
            self.logger.debug(f"No place name for coordinates ({latitude}, {longitude})")
        return place

    def get_cache_stats(self) -> Dict[str, int]:
        """
        Get cache statistics.

        Returns:
            Dictionary with cache hit/miss statistics
        """
        with self._cache_lock:
            total_requests = self._cache_hits + self._cache_misses
            hit_rate = (self._cache_hits / total_requests * 100) if total_requests > 0 else 0

            return {
                'cache_hits': self._cache_hits,
                'cache_misses': self._cache_misses,
                'network_calls': self._network_calls,
                'total_requests': total_requests,
                'hit_rate_percent': round(hit_rate, 2),
                'cache_size': len(self._geocoding_cache)
            }
