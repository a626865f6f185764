"""Configuration management for AccessLens."""

import os
from pathlib import Path
from typing import Optional, Dict, Any
import yaml
from pydantic import BaseModel, Field, model_validator


class AnalysisConfig(BaseModel):
    """Configuration for the analysis worker pool."""

    core_pool_size: int = Field(2, ge=0, description="Workers kept alive while idle")
    max_pool_size: int = Field(4, ge=1, description="Upper bound on concurrent workers")
    queue_capacity: int = Field(10, ge=0, description="Jobs that may wait for a free worker")
    keep_alive_seconds: float = Field(60.0, gt=0, description="Idle time before an extra worker exits")
    max_lines: int = Field(200_000, ge=1, description="Maximum data lines accepted per file")

    @model_validator(mode="after")
    def validate_pool_sizes(self) -> "AnalysisConfig":
        """Ensure the maximum pool size is not below the core size."""
        if self.max_pool_size < self.core_pool_size:
            raise ValueError(
                f"max_pool_size ({self.max_pool_size}) must be >= core_pool_size ({self.core_pool_size})"
            )
        return self


class GeoLookupConfig(BaseModel):
    """Configuration for the geolocation lookup service."""

    base_url: str = Field("https://ipinfo.io", description="Geolocation service base URL")
    token: Optional[str] = Field(None, description="ipinfo access token")

    # Retries and timeouts
    request_timeout: float = Field(5.0, gt=0, description="Connect/read timeout per attempt in seconds")
    max_retries: int = Field(2, ge=0, description="Retry attempts after a failed request")

    # Caching
    cache_max_size: int = Field(10_000, ge=0, description="Maximum cached IPs")
    cache_ttl_seconds: int = Field(3600, gt=0, description="Cache TTL in seconds")


class AccessLensConfig(BaseModel):
    """Main AccessLens configuration."""

    analysis: AnalysisConfig = Field(default_factory=AnalysisConfig)
    geo: GeoLookupConfig = Field(default_factory=GeoLookupConfig)


class ConfigManager:
    """Manages AccessLens configuration from multiple sources."""

    def __init__(self):
        self.config_paths = [
            Path.home() / ".accesslens" / "config.yml",
            Path.home() / ".accesslens" / "config.yaml",
            Path.cwd() / "accesslens.yml",
            Path.cwd() / "accesslens.yaml",
        ]
        self._config: Optional[AccessLensConfig] = None

    def _load_from_file(self) -> Dict[str, Any]:
        """Load configuration from the first readable file."""
        for config_path in self.config_paths:
            if config_path.exists():
                try:
                    with open(config_path, 'r', encoding='utf-8') as f:
                        return yaml.safe_load(f) or {}
                except (OSError, yaml.YAMLError):
                    # Unreadable file, try the next one
                    continue
        return {}

    def _load_from_env(self) -> Dict[str, Any]:
        """Load configuration from environment variables."""
        env_config: Dict[str, Dict[str, Any]] = {
            "analysis": {},
            "geo": {},
        }

        token = os.getenv("IPINFO_TOKEN") or os.getenv("ACCESSLENS_IPINFO_TOKEN")
        if token:
            env_config["geo"]["token"] = token

        env_mappings = {
            "ACCESSLENS_CORE_POOL_SIZE": ("analysis", "core_pool_size", int),
            "ACCESSLENS_MAX_POOL_SIZE": ("analysis", "max_pool_size", int),
            "ACCESSLENS_QUEUE_CAPACITY": ("analysis", "queue_capacity", int),
            "ACCESSLENS_MAX_LINES": ("analysis", "max_lines", int),
            "ACCESSLENS_KEEP_ALIVE_SECONDS": ("analysis", "keep_alive_seconds", float),
            "ACCESSLENS_GEO_BASE_URL": ("geo", "base_url", str),
            "ACCESSLENS_REQUEST_TIMEOUT": ("geo", "request_timeout", float),
            "ACCESSLENS_MAX_RETRIES": ("geo", "max_retries", int),
            "ACCESSLENS_CACHE_MAX_SIZE": ("geo", "cache_max_size", int),
            "ACCESSLENS_CACHE_TTL_SECONDS": ("geo", "cache_ttl_seconds", int),
        }

        for env_var, (section, key, type_converter) in env_mappings.items():
            value = os.getenv(env_var)
            if value:
                try:
                    env_config[section][key] = type_converter(value)
                except (ValueError, TypeError):
                    # Skip invalid values
                    continue

        return env_config

    def _merge_configs(self, file_config: Dict[str, Any], env_config: Dict[str, Any]) -> Dict[str, Any]:
        """Merge file and environment configurations with env taking precedence."""
        merged = {section: dict(values) if isinstance(values, dict) else values
                  for section, values in file_config.items()}

        for section, values in env_config.items():
            if not isinstance(merged.get(section), dict):
                merged[section] = {}
            merged[section].update(values)

        return merged

    def load_config(self) -> AccessLensConfig:
        """Load configuration from all sources."""
        if self._config is not None:
            return self._config

        merged_config = self._merge_configs(self._load_from_file(), self._load_from_env())
        self._config = AccessLensConfig(**merged_config)

        return self._config

    def reload(self) -> AccessLensConfig:
        """Discard the cached configuration and load it again."""
        self._config = None
        return self.load_config()

    def get_analysis_config(self) -> AnalysisConfig:
        """Get analysis configuration."""
        return self.load_config().analysis

    def get_geo_lookup_config(self) -> GeoLookupConfig:
        """Get geolocation configuration."""
        return self.load_config().geo

    def save_config(self, config_path: Optional[Path] = None) -> None:
        """Save current configuration to file."""
        if self._config is None:
            return

        if config_path is None:
            config_path = self.config_paths[0]

        config_path.parent.mkdir(parents=True, exist_ok=True)

        config_dict = self._config.model_dump(exclude_unset=True)

        with open(config_path, 'w', encoding='utf-8') as f:
            yaml.safe_dump(config_dict, f, default_flow_style=False, indent=2)

    def create_sample_config(self, config_path: Optional[Path] = None) -> None:
        """Create a sample configuration file."""
        if config_path is None:
            config_path = self.config_paths[0]

        config_path.parent.mkdir(parents=True, exist_ok=True)

        sample_config = {
            "analysis": {
                "core_pool_size": 2,
                "max_pool_size": 4,
                "queue_capacity": 10,
                "max_lines": 200000,
                "keep_alive_seconds": 60.0,
            },
            "geo": {
                "base_url": "https://ipinfo.io",
                "token": "your-ipinfo-token-here",
                "request_timeout": 5.0,
                "max_retries": 2,
                "cache_max_size": 10000,
                "cache_ttl_seconds": 3600,
            },
        }

        with open(config_path, 'w', encoding='utf-8') as f:
            f.write("# AccessLens Configuration File\n")
            f.write("# Copy this file to ~/.accesslens/config.yml and set your ipinfo token\n\n")
            yaml.safe_dump(sample_config, f, default_flow_style=False, indent=2)


# Global config manager instance
config_manager = ConfigManager()


def get_analysis_config() -> AnalysisConfig:
    """Convenience function to get analysis configuration."""
    return config_manager.get_analysis_config()


def get_geo_lookup_config() -> GeoLookupConfig:
    """Convenience function to get geolocation configuration."""
    return config_manager.get_geo_lookup_config()


def get_config() -> AccessLensConfig:
    """Convenience function to get full configuration."""
    return config_manager.load_config()
