"""
TraceLink Configuration

Persistent connection settings, stored with QSettings so the host
remembers the last backend address across runs.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from PyQt6.QtCore import QSettings

from .communication.websocket_transport import DEFAULT_ADDRESS, DEFAULT_PATH


logger = logging.getLogger(__name__)


ORGANIZATION = "TraceLink"
APPLICATION = "TraceLink"

SETTINGS_GROUP = "Connection"


@dataclass
class TraceConfig:
    """Connection configuration."""
    address: str = DEFAULT_ADDRESS
    endpoint_path: str = DEFAULT_PATH
    event_queue_size: int = 0   # 0 = unbounded
    log_level: str = "INFO"

    def validate(self) -> list[str]:
        """
        Check the configuration.

        Returns:
            List of problems, empty if valid
        """
        errors = []
        if not self.address or "/" in self.address:
            errors.append(f"Invalid address {self.address!r}, expected host[:port]")
        elif ":" in self.address:
            port = self.address.rsplit(":", 1)[1]
            if not port.isdigit() or not 0 < int(port) < 65536:
                errors.append(f"Invalid port in address {self.address!r}")
        if not self.endpoint_path.startswith("/"):
            errors.append(f"Endpoint path must start with '/': {self.endpoint_path!r}")
        if self.event_queue_size < 0:
            errors.append("Event queue size must not be negative")
        return errors


def get_settings() -> QSettings:
    """Get the application settings store."""
    return QSettings(ORGANIZATION, APPLICATION)


def load_config(settings: Optional[QSettings] = None) -> TraceConfig:
    """
    Load connection configuration from settings.

    Missing or invalid values fall back to defaults.
    """
    settings = settings or get_settings()
    defaults = TraceConfig()

    settings.beginGroup(SETTINGS_GROUP)
    try:
        config = TraceConfig(
            address=str(settings.value("address", defaults.address)),
            endpoint_path=str(settings.value("endpoint_path", defaults.endpoint_path)),
            event_queue_size=int(settings.value("event_queue_size", defaults.event_queue_size)),
            log_level=str(settings.value("log_level", defaults.log_level)),
        )
    except (TypeError, ValueError) as e:
        logger.warning(f"Invalid connection settings, using defaults: {e}")
        config = defaults
    finally:
        settings.endGroup()

    for problem in config.validate():
        logger.warning(f"Connection settings: {problem}")

    return config


def save_config(config: TraceConfig, settings: Optional[QSettings] = None) -> None:
    """Save connection configuration to settings."""
    settings = settings or get_settings()
    settings.beginGroup(SETTINGS_GROUP)
    settings.setValue("address", config.address)
    settings.setValue("endpoint_path", config.endpoint_path)
    settings.setValue("event_queue_size", config.event_queue_size)
    settings.setValue("log_level", config.log_level)
    settings.endGroup()
    settings.sync()
    logger.debug(f"Connection settings saved: {config.address}{config.endpoint_path}")
