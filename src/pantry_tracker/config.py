"""Configuration management for Pantry Tracker."""

import tomllib
from dataclasses import dataclass
from datetime import timedelta
from pathlib import Path
from typing import Any

from .exceptions import PersistenceError


@dataclass
class DataConfig:
    """Data storage configuration."""

    storage_dir: Path
    backend: str = "json"


@dataclass
class DefaultsConfig:
    """Default values configuration."""

    owner: str = "default"
    storage_location: str = "pantry"
    unit: str = "pcs"


@dataclass
class ExpiryConfig:
    """Expiry monitoring configuration."""

    expiring_window_days: int = 3
    notify: bool = True

    @property
    def expiring_window(self) -> timedelta:
        return timedelta(days=self.expiring_window_days)


@dataclass
class AnalysisConfig:
    """Analytics configuration."""

    window_days: int = 30
    restock_cover_days: int = 14
    waste_rate_threshold: float = 20.0
    repeated_waste_count: int = 2
    max_suggestions: int = 20


@dataclass
class ConcurrencyConfig:
    """Conflict retry configuration."""

    max_retries: int = 3


@dataclass
class CatalogConfig:
    """Food/recipe catalog configuration."""

    path: Path | None = None


@dataclass
class LoggingConfig:
    """Logging configuration."""

    level: str = "WARNING"


@dataclass
class Config:
    """Complete application configuration."""

    data: DataConfig
    defaults: DefaultsConfig
    expiry: ExpiryConfig
    analysis: AnalysisConfig
    concurrency: ConcurrencyConfig
    catalog: CatalogConfig
    logging: LoggingConfig


class ConfigManager:
    """Manages application configuration from TOML files."""

    def __init__(self, config_path: Path | None = None):
        """Initialize configuration manager.

        Args:
            config_path: Optional explicit path to config file.
                        If not provided, searches standard locations.
        """
        self.config_path = config_path or self._find_config()
        self._config = self._load_config()

    @property
    def data(self) -> DataConfig:
        """Get data configuration."""
        return self._config.data

    @property
    def defaults(self) -> DefaultsConfig:
        """Get defaults configuration."""
        return self._config.defaults

    @property
    def expiry(self) -> ExpiryConfig:
        """Get expiry configuration."""
        return self._config.expiry

    @property
    def analysis(self) -> AnalysisConfig:
        """Get analysis configuration."""
        return self._config.analysis

    @property
    def concurrency(self) -> ConcurrencyConfig:
        """Get concurrency configuration."""
        return self._config.concurrency

    @property
    def catalog(self) -> CatalogConfig:
        """Get catalog configuration."""
        return self._config.catalog

    @property
    def logging(self) -> LoggingConfig:
        """Get logging configuration."""
        return self._config.logging

    def _find_config(self) -> Path:
        """Find config file in standard locations."""
        locations = [
            Path.cwd() / "config.toml",
            Path.home() / ".config" / "pantry-tracker" / "config.toml",
            Path.home() / ".pantry-tracker" / "config.toml",
        ]

        for loc in locations:
            if loc.exists():
                return loc

        # Return default location if none found
        return Path.home() / ".config" / "pantry-tracker" / "config.toml"

    def _load_config(self) -> Config:
        """Load configuration from TOML file."""
        if not self.config_path.exists():
            return self._default_config()

        try:
            with open(self.config_path, "rb") as f:
                data = tomllib.load(f)
        except (OSError, tomllib.TOMLDecodeError) as e:
            raise PersistenceError(f"Cannot load config {self.config_path}: {e}") from e

        catalog_path = data.get("catalog", {}).get("path")

        return Config(
            data=DataConfig(
                storage_dir=Path(
                    data.get("data", {}).get("storage_dir", "~/pantry-tracker/data")
                ).expanduser(),
                backend=data.get("data", {}).get("backend", "json"),
            ),
            defaults=DefaultsConfig(
                owner=data.get("defaults", {}).get("owner", "default"),
                storage_location=data.get("defaults", {}).get("storage_location", "pantry"),
                unit=data.get("defaults", {}).get("unit", "pcs"),
            ),
            expiry=ExpiryConfig(
                expiring_window_days=data.get("expiry", {}).get("expiring_window_days", 3),
                notify=data.get("expiry", {}).get("notify", True),
            ),
            analysis=AnalysisConfig(
                window_days=data.get("analysis", {}).get("window_days", 30),
                restock_cover_days=data.get("analysis", {}).get("restock_cover_days", 14),
                waste_rate_threshold=data.get("analysis", {}).get("waste_rate_threshold", 20.0),
                repeated_waste_count=data.get("analysis", {}).get("repeated_waste_count", 2),
                max_suggestions=data.get("analysis", {}).get("max_suggestions", 20),
            ),
            concurrency=ConcurrencyConfig(
                max_retries=data.get("concurrency", {}).get("max_retries", 3),
            ),
            catalog=CatalogConfig(
                path=Path(catalog_path).expanduser() if catalog_path else None,
            ),
            logging=LoggingConfig(
                level=data.get("logging", {}).get("level", "WARNING"),
            ),
        )

    def _default_config(self) -> Config:
        """Return default configuration."""
        return Config(
            data=DataConfig(storage_dir=Path.home() / "pantry-tracker" / "data"),
            defaults=DefaultsConfig(),
            expiry=ExpiryConfig(),
            analysis=AnalysisConfig(),
            concurrency=ConcurrencyConfig(),
            catalog=CatalogConfig(),
            logging=LoggingConfig(),
        )

    def get(self, key_path: str, default: Any = None) -> Any:
        """Get config value by dot-notation path.

        Args:
            key_path: Dot-separated path like 'analysis.window_days'
            default: Default value if path not found

        Returns:
            Configuration value or default
        """
        keys = key_path.split(".")
        value: Any = self._config

        for key in keys:
            if hasattr(value, key):
                value = getattr(value, key)
            elif isinstance(value, dict):
                value = value.get(key)
                if value is None:
                    return default
            else:
                return default

        return value if value is not None else default
