"""Yamaha RTX router handler via SSH CLI.

Technical details:
- Interactive shell via invoke_shell(); RTX has no exec channel
- `console lines infinity` disables the pager, `console character ascii`
  keeps messages in English where the firmware allows it
- Configuration needs administrator mode (`administrator` + password),
  prompt changes from `>` to `#`
- Failed commands answer with `Error:` or a Japanese `エラー` line

Command Reference (RTX1210 / RTX830):
- show config            : Full running configuration
- show environment       : Firmware revision and uptime
- save                   : Persist running config to flash
"""
import asyncio
import logging
import re
import time
from typing import Optional

import paramiko

from .base import DeviceConfig, RouterDevice
from ..utils.connection import with_retry
from ..utils.logging_config import perf_logger, timed

logger = logging.getLogger(__name__)

# "> " in user mode, "# " in administrator mode, optionally after "[RTX1210] "
PROMPT_PATTERN = re.compile(r"(?:^|\n)[^\n]*[>#] ?$")
MORE_PATTERN = re.compile(r"---\s*(?:つづく|more)\s*---", re.IGNORECASE)
PASSWORD_PATTERN = re.compile(r"Password:\s*$", re.IGNORECASE)
ANSI_PATTERN = re.compile(r"\x1b\[[0-9;?]*[a-zA-Z]")


class RTXSSH:
    """Low-level SSH shell for RTX routers."""

    def __init__(self, host: str, port: int, username: str, password: str, timeout: float = 30):
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.timeout = timeout
        self._client: Optional[paramiko.SSHClient] = None
        self._shell: Optional[paramiko.Channel] = None

    async def connect(self) -> None:
        """Establish SSH connection with interactive shell."""
        loop = asyncio.get_event_loop()

        def _connect():
            client = paramiko.SSHClient()
            client.set_missing_host_key_policy(paramiko.AutoAddPolicy())
            client.connect(
                self.host,
                port=self.port,
                username=self.username,
                password=self.password,
                timeout=self.timeout,
                allow_agent=False,
                look_for_keys=False,
            )
            return client

        self._client = await loop.run_in_executor(None, _connect)

        def _get_shell():
            shell = self._client.invoke_shell(width=200)
            shell.settimeout(self.timeout)
            return shell

        self._shell = await loop.run_in_executor(None, _get_shell)
        await self._read_until(PROMPT_PATTERN, timeout=10)

    async def close(self) -> None:
        """Close SSH connection."""
        if self._shell:
            try:
                self._shell.close()
            except (OSError, EOFError) as e:
                logger.debug(f"Closing shell: {e}")
            self._shell = None
        if self._client:
            self._client.close()
            self._client = None

    async def _read_available(self, timeout: float = 1) -> str:
        """Read available data from shell."""
        if not self._shell:
            raise ConnectionError("Not connected")

        shell = self._shell
        loop = asyncio.get_event_loop()

        def _recv():
            if shell.recv_ready():
                data = shell.recv(65535)
                return ANSI_PATTERN.sub("", data.decode("utf-8", errors="ignore"))
            return ""

        return await asyncio.wait_for(loop.run_in_executor(None, _recv), timeout=timeout)

    async def _read_until(self, pattern: re.Pattern, timeout: float = 30) -> str:
        """Read until ``pattern`` matches the tail of the output or timeout."""
        output = ""
        start_time = asyncio.get_event_loop().time()

        while True:
            elapsed = asyncio.get_event_loop().time() - start_time
            if elapsed > timeout:
                logger.debug(f"Read timed out after {elapsed:.1f}s")
                break

            try:
                chunk = await self._read_available(timeout=min(2, timeout - elapsed))
            except asyncio.TimeoutError:
                await asyncio.sleep(0.1)
                continue

            if not chunk:
                await asyncio.sleep(0.1)
                continue

            output += chunk
            if MORE_PATTERN.search(output):
                await self._send_raw(" ")
                output = MORE_PATTERN.sub("", output)
                continue
            if pattern.search(output):
                break

        return output.replace("\r", "")

    async def _send_raw(self, data: str) -> None:
        if not self._shell:
            raise ConnectionError("Not connected")
        loop = asyncio.get_event_loop()
        await loop.run_in_executor(None, self._shell.send, data)

    async def send_command(self, command: str, timeout: float = 30) -> str:
        """Send a command and return its output without echo and prompt."""
        await self._send_raw(f"{command}\r")
        output = await self._read_until(PROMPT_PATTERN, timeout=timeout)

        lines = output.split("\n")
        if lines and command in lines[0]:
            lines = lines[1:]
        if lines and PROMPT_PATTERN.search(lines[-1]):
            lines = lines[:-1]
        return "\n".join(lines).strip()

    async def administrator(self, password: str, timeout: float = 10) -> bool:
        """Enter administrator mode."""
        await self._send_raw("administrator\r")
        output = await self._read_until(PASSWORD_PATTERN, timeout=timeout)
        if PASSWORD_PATTERN.search(output):
            await self._send_raw(f"{password}\r")
            output = await self._read_until(PROMPT_PATTERN, timeout=timeout)
        return output.rstrip().endswith("#")


class RTXDevice(RouterDevice):
    """Yamaha RTX router handler."""

    # Error markers (must appear at line start)
    ERROR_PATTERNS = [
        r"^Error[:\s]",
        r"^エラー",
        r"^Invalid",
    ]

    def __init__(self, device_id: str, config: DeviceConfig):
        super().__init__(device_id, config)
        self._ssh: Optional[RTXSSH] = None

    def _has_error(self, output: str) -> Optional[str]:
        """First line of output that reports a command failure."""
        for line in output.split("\n"):
            line_stripped = line.strip()
            if not line_stripped:
                continue
            for pattern in self.ERROR_PATTERNS:
                if re.search(pattern, line_stripped, re.IGNORECASE):
                    return line_stripped
        return None

    @with_retry(max_attempts=3, min_wait=2, max_wait=10)
    @timed("connect")
    async def connect(self) -> bool:
        """Connect and enter administrator mode."""
        logger.info(f"Connecting to RTX {self.device_id} at {self.host}")

        self._ssh = RTXSSH(
            self.host,
            self.config.port,
            self.config.username,
            self.config.get_password(),
            timeout=self.config.timeout,
        )
        await self._ssh.connect()

        # Pager off: `show config` must come back in one piece
        await self._ssh.send_command("console lines infinity", timeout=5)
        await self._ssh.send_command("console character ascii", timeout=5)

        if self.config.administrator_required:
            if not await self._ssh.administrator(self.config.get_admin_password()):
                await self._ssh.close()
                self._ssh = None
                raise PermissionError(f"Failed to enter administrator mode on {self.device_id}")

        self._connected = True
        logger.info(f"Connected to {self.device_id}")
        return True

    async def disconnect(self) -> None:
        """Disconnect from the router."""
        if self._ssh:
            await self._ssh.close()
            self._ssh = None
        self._connected = False
        logger.info(f"Disconnected from {self.device_id}")

    async def execute(self, command: str) -> tuple[bool, str]:
        """Execute one command."""
        if not self._ssh:
            raise ConnectionError("Not connected")

        start = time.perf_counter()
        try:
            output = await self._ssh.send_command(command, timeout=self.config.timeout)
        except Exception as e:
            elapsed = (time.perf_counter() - start) * 1000
            perf_logger.warning(
                f"{'execute':20s} | {self.device_id:15s} | {elapsed:8.2f}ms | "
                f"ERROR | cmd={command[:50]} | {e}"
            )
            logger.error(f"Command failed on {self.device_id}: {e}")
            self._connected = False
            raise

        elapsed = (time.perf_counter() - start) * 1000
        error = self._has_error(output)
        perf_logger.debug(
            f"{'execute':20s} | {self.device_id:15s} | {elapsed:8.2f}ms | "
            f"{'FAIL' if error else 'OK'} | cmd={command[:50]}"
        )
        if error:
            logger.debug(f"{self.device_id}: {command!r} rejected: {error}")
            return False, output
        return True, output

    @timed("get_running_config")
    async def get_running_config(self) -> str:
        """Get running configuration (`show config`)."""
        success, output = await self.execute("show config")
        if not success:
            raise ConnectionError(f"show config failed on {self.device_id}: {output}")
        return output
