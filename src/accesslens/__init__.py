"""AccessLens - asynchronous CSV access-log analysis with geolocation enrichment."""

__version__ = "0.1.0"
