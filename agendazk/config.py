"""
Configuration parser for AgendaZK.

Handles TOML file parsing and the default XDG locations for data files.
"""

import tomllib
import os
import sys
from pathlib import Path
from dataclasses import dataclass, field
from typing import Optional


STORAGE_BACKENDS = ("json", "memory")


@dataclass
class NotificationsConfig:
    """Configuration for reminder scheduling."""
    enabled: bool = True
    match_tolerance_seconds: int = 60  # Window used by get_events_with_notifications


@dataclass
class StorageConfig:
    """Configuration for the document store backing the agenda."""
    backend: str = "json"  # "json" or "memory"


@dataclass
class Config:
    """Main configuration container for AgendaZK."""

    data_dir: Path
    timezone: str = "Europe/Paris"
    installation_id: str = ""  # Optional fixed installation id for device ids
    notifications: NotificationsConfig = field(default_factory=NotificationsConfig)
    storage: StorageConfig = field(default_factory=StorageConfig)

    @property
    def documents_dir(self) -> Path:
        """Directory holding one JSON file per document collection."""
        return self.data_dir / "documents"

    @property
    def device_file(self) -> Path:
        """JSON file used as device key/value storage."""
        return self.data_dir / "device.json"

    @classmethod
    def get_default_config_path(cls) -> Path:
        """Get the default configuration file path."""
        xdg_config = os.environ.get('XDG_CONFIG_HOME', os.path.expanduser('~/.config'))
        return Path(xdg_config) / 'agendazk' / 'agendazk.toml'

    @classmethod
    def get_default_data_path(cls) -> Path:
        """Get the default data directory."""
        xdg_data = os.environ.get('XDG_DATA_HOME', os.path.expanduser('~/.local/share'))
        return Path(xdg_data) / 'agendazk'

    @classmethod
    def default(cls) -> 'Config':
        """Configuration with every value at its default."""
        return cls(data_dir=cls.get_default_data_path())

    @classmethod
    def load(cls, config_path: Optional[Path] = None) -> 'Config':
        """Load configuration from TOML file."""
        if config_path is None:
            config_path = cls.get_default_config_path()

        if not config_path.exists():
            raise FileNotFoundError(f"Configuration file not found: {config_path}")

        with open(config_path, 'rb') as f:
            data = tomllib.load(f)

        return cls.from_dict(data)

    @classmethod
    def from_dict(cls, data: dict) -> 'Config':
        """Build a Config from parsed TOML data."""
        # Parse General section
        general = data.get('General', {})
        data_dir_str = general.get('data_dir', str(cls.get_default_data_path()))
        data_dir = Path(os.path.expanduser(data_dir_str))

        # Parse Notifications section
        notifications_data = data.get('Notifications', {})
        notifications = NotificationsConfig(
            enabled=bool(notifications_data.get('enabled', NotificationsConfig.enabled)),
            match_tolerance_seconds=int(notifications_data.get(
                'match_tolerance_seconds', NotificationsConfig.match_tolerance_seconds
            )),
        )

        # Parse Storage section
        storage_data = data.get('Storage', {})
        backend = storage_data.get('backend', StorageConfig.backend)
        if backend not in STORAGE_BACKENDS:
            print(f"WARNING: unknown storage backend '{backend}', using 'json'", file=sys.stderr)
            backend = StorageConfig.backend
        storage = StorageConfig(backend=backend)

        return cls(
            data_dir=data_dir,
            timezone=general.get('timezone', cls.timezone),
            installation_id=general.get('installation_id', ''),
            notifications=notifications,
            storage=storage,
        )
