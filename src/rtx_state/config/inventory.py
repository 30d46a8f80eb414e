"""Device inventory management from YAML configuration."""
import logging
from pathlib import Path
from typing import Optional

import yaml

from ..devices import RouterDevice, create_device

logger = logging.getLogger(__name__)


class DeviceInventory:
    """Manages the router inventory loaded from YAML config.

    ```yaml
    defaults:
      type: rtx
      username: admin
      password_env: RTX_PASSWORD

    devices:
      rtx-hq:
        name: HQ edge
        host: 192.168.100.1
      rtx-branch:
        name: Branch edge
        host: 192.168.200.1
        port: 2222

    groups:
      edge:
        - rtx-hq
        - rtx-branch
    ```
    """

    def __init__(self, config_path: Optional[str] = None):
        self.config_path = config_path or self._find_config()
        self._config: dict = {}
        self._devices: dict[str, RouterDevice] = {}
        self._load_config()

    def _find_config(self) -> str:
        """Find the devices.yaml config file."""
        search_paths = [
            Path.cwd() / "configs" / "devices.yaml",
            Path.cwd() / "devices.yaml",
            Path.home() / ".config" / "rtx-state" / "devices.yaml",
            Path("/etc/rtx-state/devices.yaml"),
        ]

        for path in search_paths:
            if path.exists():
                return str(path)

        raise FileNotFoundError(
            "Could not find devices.yaml. Create one in ./configs/devices.yaml"
        )

    def _load_config(self) -> None:
        """Load the YAML configuration."""
        with open(self.config_path, encoding="utf-8") as f:
            self._config = yaml.safe_load(f) or {}

        # Apply defaults
        defaults = self._config.get("defaults", {})
        for device_id, device_config in self._config.get("devices", {}).items():
            if device_config is None:
                device_config = self._config["devices"][device_id] = {}
            device_config.setdefault("name", device_id)
            for key, value in defaults.items():
                if key not in device_config:
                    device_config[key] = value

        self._validate_groups()
        logger.debug(f"Loaded {len(self.get_device_ids())} devices from {self.config_path}")

    def get_device_ids(self) -> list[str]:
        """Get all device IDs."""
        return list(self._config.get("devices", {}).keys())

    def get_device_config(self, device_id: str) -> dict:
        """Get raw config for a device (defaults applied)."""
        devices = self._config.get("devices", {})
        if device_id not in devices:
            raise KeyError(f"Unknown device: {device_id}")
        return devices[device_id]

    def get_device(self, device_id: str) -> RouterDevice:
        """Get or create a device instance."""
        if device_id not in self._devices:
            config = self.get_device_config(device_id)
            self._devices[device_id] = create_device(device_id, config)
        return self._devices[device_id]

    def get_all_devices(self) -> dict[str, RouterDevice]:
        """Get all device instances."""
        for device_id in self.get_device_ids():
            self.get_device(device_id)
        return self._devices

    async def close_all(self) -> None:
        """Close all device connections."""
        for device in self._devices.values():
            if device.is_connected:
                await device.disconnect()
        self._devices.clear()

    # === Group Management ===

    def _validate_groups(self) -> None:
        """Validate that all group members reference valid devices."""
        groups = self._config.get("groups", {})
        devices = self._config.get("devices", {})

        for group_name, members in groups.items():
            if not isinstance(members, list):
                logger.warning(f"Group '{group_name}' should be a list of device IDs")
                continue
            for device_id in members:
                if device_id not in devices:
                    logger.warning(
                        f"Group '{group_name}' references unknown device: {device_id}"
                    )

    def get_group_names(self) -> list[str]:
        """Get list of all group names."""
        return list(self._config.get("groups", {}).keys())

    def get_group_members(self, group_name: str) -> list[str]:
        """Get device IDs in a group.

        Raises:
            KeyError: If group doesn't exist
        """
        groups = self._config.get("groups", {})
        if group_name not in groups:
            raise KeyError(f"Unknown group: {group_name}")
        return list(groups[group_name])

    def get_devices_in_group(self, group_name: str) -> list[RouterDevice]:
        """Get device instances for all members of a group."""
        return [self.get_device(device_id) for device_id in self.get_group_members(group_name)]
