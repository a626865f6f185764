"""Enrichment service for AccessLens - resolves client IPs to geolocation data."""

import logging
from datetime import datetime
from typing import Dict, Mapping, Optional
from urllib.parse import quote

import httpx
from pydantic import BaseModel, Field, ValidationError

from ..models import GeoInfo
from .cache import TTLCache


logger = logging.getLogger(__name__)


class GeoLookupError(Exception):
    """A single lookup attempt failed."""
    pass


class LookupStatistics(BaseModel):
    """Statistics for geolocation lookups."""

    lookups: int = Field(0, description="Total lookup calls")
    cache_hits: int = Field(0, description="Lookups answered from the cache")
    remote_calls: int = Field(0, description="HTTP requests issued")
    failed_attempts: int = Field(0, description="HTTP attempts that failed")
    fallbacks: int = Field(0, description="Lookups that returned the UNKNOWN placeholder")
    start_time: datetime = Field(default_factory=datetime.now, description="When statistics collection started")

    @property
    def cache_hit_rate(self) -> float:
        """Calculate cache hit rate as percentage."""
        if self.lookups == 0:
            return 0.0
        return (self.cache_hits / self.lookups) * 100


class GeoLookupClient:
    """Client for an ipinfo-style geolocation service.

    Successful lookups are cached with a TTL. Failed attempts are retried up
    to ``max_retries`` times; if none succeeds the UNKNOWN placeholder is
    returned and nothing is cached, so a later call can try again.

    Args:
        base_url: Service root, requests go to ``{base_url}/{ip}?token=...``
        token: Access token sent as the ``token`` query parameter
        max_retries: Extra attempts after the first one fails
        timeout: Connect/read timeout per attempt, in seconds
        cache: Cache for successful results
        client: Pre-built httpx client (base_url and timeout are then taken from it)
    """

    def __init__(
        self,
        base_url: str = "https://ipinfo.io",
        token: Optional[str] = None,
        max_retries: int = 2,
        timeout: float = 5.0,
        cache: Optional[TTLCache] = None,
        client: Optional[httpx.Client] = None,
    ):
        if max_retries < 0:
            raise ValueError("max_retries must be >= 0")

        self.token = token or ""
        self.max_retries = max_retries
        self.cache: TTLCache = cache if cache is not None else TTLCache(max_size=10_000, ttl_seconds=3600)
        self.client = client or httpx.Client(
            base_url=base_url,
            timeout=httpx.Timeout(timeout),
            headers={"Accept": "application/json", "User-Agent": "AccessLens/1.0"},
        )
        self.statistics = LookupStatistics()

    def lookup(self, ip: str) -> GeoInfo:
        """Resolve an IP address to its geolocation.

        Never raises; failures degrade to :meth:`GeoInfo.unknown`.
        """
        self.statistics.lookups += 1

        cached = self.cache.get(ip)
        if cached is not None:
            self.statistics.cache_hits += 1
            logger.debug("Geo cache hit: %s", ip)
            return cached

        total_attempts = 1 + self.max_retries
        attempts_left = total_attempts

        while attempts_left > 0:
            attempts_left -= 1
            attempt = total_attempts - attempts_left

            try:
                info = self._fetch(ip)
            except (httpx.HTTPError, httpx.InvalidURL, GeoLookupError, ValueError) as e:
                self.statistics.failed_attempts += 1
                if attempts_left > 0:
                    logger.warning(
                        "Geo lookup failed (attempt %d/%d): %s - %s", attempt, total_attempts, ip, e
                    )
                else:
                    logger.error("Geo lookup retries exhausted: %s - %s", ip, e)
                continue

            self.cache.put(ip, info)
            return info

        self.statistics.fallbacks += 1
        return GeoInfo.unknown()

    def lookup_top_ips(self, ip_counts: Mapping[str, int], top_n: int) -> Dict[str, GeoInfo]:
        """Look up the ``top_n`` most frequent IPs.

        Args:
            ip_counts: Request count per IP
            top_n: Number of IPs to resolve

        Returns:
            Dict of ip -> GeoInfo ordered by descending count
        """
        if top_n <= 0:
            return {}

        ranked = sorted(ip_counts.items(), key=lambda item: item[1], reverse=True)[:top_n]
        return {ip: self.lookup(ip) for ip, _ in ranked}

    def _fetch(self, ip: str) -> GeoInfo:
        """Issue one HTTP request.

        Raises:
            httpx.HTTPError: On transport errors and timeouts
            httpx.InvalidURL: If the address cannot be expressed as a request URL
            GeoLookupError: On a non-success status
            ValueError: If the body is not JSON or lacks the expected fields
        """
        self.statistics.remote_calls += 1
        response = self.client.get(f"/{quote(ip, safe='')}", params={"token": self.token})

        if not response.is_success:
            raise GeoLookupError(f"HTTP {response.status_code}")

        try:
            return GeoInfo.model_validate(response.json())
        except ValidationError as e:
            raise GeoLookupError(f"Unexpected response body: {e.error_count()} invalid field(s)")

    def clear_cache(self) -> None:
        """Clear the geolocation cache."""
        self.cache.clear()

    def get_statistics(self) -> LookupStatistics:
        """Get lookup statistics."""
        return self.statistics

    def close(self) -> None:
        self.client.close()

    def __enter__(self) -> "GeoLookupClient":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()


def create_geo_lookup_client(config=None) -> GeoLookupClient:
    """Factory function to create a configured geolocation client."""
    if config is None:
        from ..core.config import get_geo_lookup_config
        config = get_geo_lookup_config()

    return GeoLookupClient(
        base_url=config.base_url,
        token=config.token,
        max_retries=config.max_retries,
        timeout=config.request_timeout,
        cache=TTLCache(max_size=config.cache_max_size, ttl_seconds=config.cache_ttl_seconds),
    )
