"""Device handlers (the transport boundary)."""
import dataclasses
import logging

from .base import DeviceConfig, DeviceStatus, RouterDevice
from .rtx import RTXDevice

logger = logging.getLogger(__name__)

__all__ = [
    "DeviceConfig",
    "DeviceStatus",
    "RTXDevice",
    "RouterDevice",
    "create_device",
]

# Device type registry
DEVICE_TYPES = {
    "rtx": RTXDevice,
}


def create_device(device_id: str, config: dict) -> RouterDevice:
    """Factory function to create device instances.

    Inventory keys DeviceConfig does not know (notes, tags) are ignored.
    """
    device_type = config.get("type", "").lower()
    if device_type not in DEVICE_TYPES:
        raise ValueError(f"Unknown device type: {device_type}")

    known = {f.name for f in dataclasses.fields(DeviceConfig)}
    ignored = sorted(set(config) - known)
    if ignored:
        logger.debug(f"{device_id}: ignoring inventory keys {ignored}")
    device_class = DEVICE_TYPES[device_type]
    return device_class(device_id, DeviceConfig(**{k: v for k, v in config.items() if k in known}))
