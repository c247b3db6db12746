"""Configuration settings for the ShukList price comparison application."""
from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Literal


@dataclass(slots=True)
class DisplayConfig:
    """Settings related to rendering prices in the user interface."""

    currency_symbol: str = "€"
    """Symbol prefixed to every rendered amount."""

    currency_code: str = "EUR"
    """ISO code reported alongside amounts in JSON responses."""


@dataclass(slots=True)
class AppConfig:
    """Top-level configuration for the application."""

    environment: Literal["development", "production"] = "development"
    data_directory: Path = field(default_factory=lambda: Path("data"))
    secret_key: str = "development-secret-key"
    display: DisplayConfig = field(default_factory=DisplayConfig)

    def ensure_data_directories(self) -> None:
        """Create data directories required by the application."""

        self.data_directory.mkdir(parents=True, exist_ok=True)


DEFAULT_CONFIG = AppConfig()
