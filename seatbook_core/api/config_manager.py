"""
API Configuration Manager
Centralized management of backend settings and connector instances
"""
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Dict, Optional, Type

import streamlit as st

from seatbook_core.errors import ConfigurationError
from seatbook_core.logging import get_logger

from .base_connector import APIConfig, BaseAPIConnector, DEFAULT_TIMEOUT
from .mock_connector import MockSeatConnector
from .seat_connector import SeatBookAPIConnector

logger = get_logger(__name__)

DEFAULT_API_URL = "http://localhost:5000/api"
DEFAULT_LOCAL_DB = Path("local_data") / "seatbook.db"


@dataclass
class SeatBookSettings:
    """Resolved runtime settings"""
    provider: str = "mock"
    base_url: str = DEFAULT_API_URL
    timeout: float = DEFAULT_TIMEOUT
    local_db_path: Path = DEFAULT_LOCAL_DB
    monitor_connection: bool = True


class APIConfigManager:
    """
    Manages backend configuration and creates connector instances

    Usage:
        config_manager = APIConfigManager()
        connector = config_manager.get_connector(token=session_token)
        library = connector.get_my_library()
    """

    # Registry of available connectors
    CONNECTORS: Dict[str, Type[BaseAPIConnector]] = {
        "mock": MockSeatConnector,
        "http": SeatBookAPIConnector,
    }

    ENV_PREFIX = "SEATBOOK_"

    def __init__(self, overrides: Optional[Dict[str, Any]] = None):
        """Initialize with configuration from Streamlit secrets, environment or defaults"""
        raw = self._load_raw_config()
        raw.update(overrides or {})
        self.settings = self._build_settings(raw)

    def _load_raw_config(self) -> Dict[str, Any]:
        """
        Load configuration from Streamlit secrets, falling back to environment variables

        Expected secrets.toml format:
        [api]
        provider = "http"
        base_url = "https://seatbook.example.com/api"
        timeout = 10
        local_db = "local_data/seatbook.db"
        monitor_connection = true
        """
        try:
            if "api" in st.secrets:
                return dict(st.secrets["api"])
        except FileNotFoundError:
            # No secrets.toml on this machine
            pass

        env = {
            "provider": os.getenv(f"{self.ENV_PREFIX}API_PROVIDER"),
            "base_url": os.getenv(f"{self.ENV_PREFIX}API_URL"),
            "timeout": os.getenv(f"{self.ENV_PREFIX}API_TIMEOUT"),
            "local_db": os.getenv(f"{self.ENV_PREFIX}LOCAL_DB"),
            "monitor_connection": os.getenv(f"{self.ENV_PREFIX}MONITOR_CONNECTION"),
        }
        return {k: v for k, v in env.items() if v}

    def _build_settings(self, raw: Dict[str, Any]) -> SeatBookSettings:
        settings = SeatBookSettings()

        provider = str(raw.get("provider", settings.provider)).lower()
        if provider not in self.CONNECTORS:
            raise ConfigurationError(
                f"Unknown API provider '{provider}'. Available: {', '.join(self.CONNECTORS)}",
                config_key="provider",
            )
        settings.provider = provider
        settings.base_url = str(raw.get("base_url", settings.base_url))

        if raw.get("timeout") is not None:
            try:
                settings.timeout = float(raw["timeout"])
            except (TypeError, ValueError):
                raise ConfigurationError(
                    f"Invalid timeout: {raw['timeout']!r}",
                    config_key="timeout",
                    expected_type="number",
                )
            if settings.timeout <= 0:
                raise ConfigurationError("Timeout must be positive", config_key="timeout")

        if raw.get("local_db"):
            settings.local_db_path = Path(raw["local_db"])
        if raw.get("monitor_connection") is not None:
            flag = raw["monitor_connection"]
            if isinstance(flag, str):
                flag = flag.strip().lower() in ("1", "true", "yes", "on")
            settings.monitor_connection = bool(flag)

        logger.debug(f"Resolved settings: provider={settings.provider} url={settings.base_url}")
        return settings

    def get_connector(self, token: Optional[str] = None, **kwargs) -> BaseAPIConnector:
        """
        Get a connector for the configured provider

        Args:
            token: Bearer token of the signed-in manager
            **kwargs: Extra constructor arguments (e.g. manager_id for the mock)

        Returns:
            Configured connector instance
        """
        connector_class = self.CONNECTORS[self.settings.provider]
        config = APIConfig(
            api_name=f"seatbook-{self.settings.provider}",
            base_url=self.settings.base_url,
            api_key=token,
            timeout=self.settings.timeout,
        )
        return connector_class(config, **kwargs)

    def get_status(self) -> Dict[str, Any]:
        """Settings summary for UI display"""
        return {
            "provider": self.settings.provider,
            "base_url": self.settings.base_url,
            "timeout": self.settings.timeout,
            "local_db": str(self.settings.local_db_path),
        }
