"""Base device abstraction for RTX routers (the transport boundary)."""
import os
import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Any, Optional

from ..utils.connection import CommandResult

logger = logging.getLogger(__name__)


@dataclass
class DeviceConfig:
    """Configuration for a router."""
    type: str
    name: str
    host: str
    protocol: str = "ssh"
    port: int = 22
    username: str = ""
    password: Optional[str] = None
    password_env: str = "RTX_PASSWORD"
    # Password for the `administrator` command (falls back to the login password)
    admin_password: Optional[str] = None
    admin_password_env: str = "RTX_ADMIN_PASSWORD"
    administrator_required: bool = True
    timeout: int = 30
    retries: int = 3
    retry_delay: float = 2

    def get_password(self) -> str:
        """Get password from config or environment variable."""
        if self.password:
            return self.password
        return os.environ.get(self.password_env, "")

    def get_admin_password(self) -> str:
        if self.admin_password:
            return self.admin_password
        return os.environ.get(self.admin_password_env, "") or self.get_password()


@dataclass
class DeviceStatus:
    """Router reachability and identification."""
    reachable: bool
    uptime: Optional[str] = None
    firmware_version: Optional[str] = None
    error: Optional[str] = None


class RouterDevice(ABC):
    """Abstract base class for router handlers.

    The config engine only ever talks to a router through this interface:
    commands go in one at a time, in order, and ``get_running_config``
    returns text for the parser to confirm the result.
    """

    def __init__(self, device_id: str, config: DeviceConfig):
        self.device_id = device_id
        self.config = config
        self._connected = False
        self._connection: Any = None

    @property
    def name(self) -> str:
        return self.config.name

    @property
    def host(self) -> str:
        return self.config.host

    @property
    def is_connected(self) -> bool:
        return self._connected

    # Connection management
    @abstractmethod
    async def connect(self) -> bool:
        """Establish connection to the device."""
        pass

    @abstractmethod
    async def disconnect(self) -> None:
        """Close connection to the device."""
        pass

    async def check_health(self) -> DeviceStatus:
        """Check device reachability."""
        try:
            if not self._connected:
                await self.connect()
            success, output = await self.execute("show environment")
            version = None
            uptime = None
            if success:
                for line in output.split("\n"):
                    if version is None and ("Rev." in line or "RTX" in line):
                        version = line.strip()
                    if "Elapsed time" in line or "起動からの経過時間" in line:
                        uptime = line.split(":", 1)[-1].strip()
            return DeviceStatus(reachable=True, uptime=uptime, firmware_version=version)
        except Exception as e:
            return DeviceStatus(reachable=False, error=str(e))

    # Command execution
    @abstractmethod
    async def execute(self, command: str) -> tuple[bool, str]:
        """Execute a raw command on the device.

        Returns:
            Tuple of (success, output)
        """
        pass

    async def execute_batch(
        self,
        commands: list[str],
        stop_on_error: bool = True,
    ) -> list[CommandResult]:
        """Execute commands in order.

        Args:
            commands: Commands exactly as synthesized
            stop_on_error: Stop at the first failing command

        Returns:
            One CommandResult per command that was sent
        """
        results = []
        for command in commands:
            success, output = await self.execute(command)
            results.append(CommandResult(
                success=success,
                output=output,
                error="" if success else output,
                device_id=self.device_id,
                command=command,
            ))
            if not success:
                logger.warning(f"{self.device_id}: command failed: {command!r}: {output}")
                if stop_on_error:
                    break
        return results

    # Configuration retrieval
    @abstractmethod
    async def get_running_config(self) -> str:
        """Get the current running configuration."""
        pass

    async def save_config(self) -> tuple[bool, str]:
        """Save running config to flash."""
        return await self.execute("save")

    # Context manager support
    async def __aenter__(self):
        await self.connect()
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        await self.disconnect()
        return False
