"""Tests for device base classes and the RTX handler."""
import pytest

from rtx_state.devices.base import DeviceConfig, DeviceStatus, RouterDevice
from rtx_state.devices.rtx import MORE_PATTERN, PROMPT_PATTERN, RTXDevice

SHOW_ENVIRONMENT = """RTX1210 Rev.14.01.42 (Fri Jan 20 10:00:00 2023)
  main:  RTX1210 ver=00 serial=S00000000 MAC-Address=00:a0:de:00:00:01
CPU:   3%(5sec)   2%(1min)   2%(5min)
Elapsed time from boot: 12days 03:04:05"""


def _config(**overrides) -> DeviceConfig:
    values = dict(type="rtx", name="Test RTX", host="192.0.2.1", username="admin")
    values.update(overrides)
    return DeviceConfig(**values)


class ScriptedRouter(RouterDevice):
    """Router answering commands from a dict."""

    def __init__(self, answers=None, connect_error=None):
        super().__init__("rtx-test", _config())
        self.answers = answers or {}
        self.connect_error = connect_error
        self.sent = []

    async def connect(self) -> bool:
        if self.connect_error:
            raise self.connect_error
        self._connected = True
        return True

    async def disconnect(self) -> None:
        self._connected = False

    async def execute(self, command: str) -> tuple[bool, str]:
        self.sent.append(command)
        return self.answers.get(command, (True, ""))

    async def get_running_config(self) -> str:
        return ""


class TestDeviceConfig:
    """Tests for DeviceConfig dataclass."""

    def test_defaults(self):
        """Default values are applied."""
        config = _config()
        assert config.protocol == "ssh"
        assert config.port == 22
        assert config.password is None
        assert config.password_env == "RTX_PASSWORD"
        assert config.administrator_required is True
        assert config.timeout == 30
        assert config.retries == 3

    def test_get_password_from_config(self, monkeypatch):
        """Password from config takes precedence."""
        monkeypatch.setenv("RTX_PASSWORD", "from_env")
        assert _config(password="secret123").get_password() == "secret123"

    def test_get_password_from_env(self, monkeypatch):
        """Password falls back to the environment."""
        monkeypatch.setenv("RTX_PASSWORD", "from_env")
        assert _config().get_password() == "from_env"

    def test_get_password_custom_env(self, monkeypatch):
        """Custom environment variable name is honoured."""
        monkeypatch.setenv("BRANCH_PASS", "branch")
        assert _config(password_env="BRANCH_PASS").get_password() == "branch"

    def test_admin_password_fallback(self, monkeypatch):
        """The administrator password falls back to the login password."""
        monkeypatch.delenv("RTX_ADMIN_PASSWORD", raising=False)
        assert _config(password="login").get_admin_password() == "login"

    def test_admin_password_env(self, monkeypatch):
        """A dedicated administrator password wins over the login one."""
        monkeypatch.setenv("RTX_ADMIN_PASSWORD", "admin-secret")
        assert _config(password="login").get_admin_password() == "admin-secret"
        assert _config(admin_password="explicit").get_admin_password() == "explicit"


class TestDeviceStatus:
    """Tests for DeviceStatus dataclass."""

    def test_unreachable_device(self):
        """Unreachable status carries only the error."""
        status = DeviceStatus(reachable=False, error="Connection refused")
        assert status.uptime is None
        assert status.firmware_version is None


class TestRouterDevice:
    """Tests for behaviour shared by all router handlers."""

    @pytest.mark.asyncio
    async def test_execute_batch_stops_on_error(self):
        """The batch stops at the first rejected command."""
        router = ScriptedRouter({"ip filter 2 bogus": (False, "Error: Invalid parameter")})
        results = await router.execute_batch(["ip filter 1 pass * * *", "ip filter 2 bogus", "save"])
        assert [r.command for r in results] == ["ip filter 1 pass * * *", "ip filter 2 bogus"]
        assert results[0].success
        assert not results[1].success
        assert results[1].error == "Error: Invalid parameter"
        assert results[1].device_id == "rtx-test"

    @pytest.mark.asyncio
    async def test_execute_batch_continues(self):
        """Without stop_on_error every command is sent."""
        router = ScriptedRouter({"ip filter 2 bogus": (False, "Error: Invalid parameter")})
        results = await router.execute_batch(["ip filter 2 bogus", "save"], stop_on_error=False)
        assert len(results) == 2
        assert router.sent == ["ip filter 2 bogus", "save"]

    @pytest.mark.asyncio
    async def test_check_health(self):
        """Firmware and uptime come from show environment."""
        router = ScriptedRouter({"show environment": (True, SHOW_ENVIRONMENT)})
        status = await router.check_health()
        assert status.reachable
        assert status.firmware_version.startswith("RTX1210 Rev.14.01.42")
        assert status.uptime == "12days 03:04:05"

    @pytest.mark.asyncio
    async def test_check_health_unreachable(self):
        """Connection failures are reported, not raised."""
        router = ScriptedRouter(connect_error=ConnectionRefusedError("refused"))
        status = await router.check_health()
        assert not status.reachable
        assert "refused" in status.error

    @pytest.mark.asyncio
    async def test_context_manager(self):
        """async with connects and disconnects."""
        router = ScriptedRouter()
        async with router as connected:
            assert connected.is_connected
        assert not router.is_connected

    @pytest.mark.asyncio
    async def test_save_config(self):
        """Saving sends the save command."""
        router = ScriptedRouter()
        assert await router.save_config() == (True, "")
        assert router.sent == ["save"]


class TestRTXDevice:
    """Tests for RTX output handling."""

    @pytest.fixture
    def device(self):
        return RTXDevice("rtx-hq", _config())

    def test_error_detected(self, device):
        """English error lines are detected."""
        assert device._has_error("Error: Invalid parameter") == "Error: Invalid parameter"

    def test_japanese_error_detected(self, device):
        """Japanese error lines are detected."""
        assert device._has_error("\nエラー: パラメータの数が不適当です") == "エラー: パラメータの数が不適当です"

    def test_clean_output(self, device):
        """Config text that mentions errors mid-line is not a failure."""
        assert device._has_error("description 1 \"Error budget link\"\n") is None
        assert device._has_error("") is None

    def test_prompt_pattern(self):
        """Both user and administrator prompts end a read."""
        assert PROMPT_PATTERN.search("show config\n[RTX1210] > ")
        assert PROMPT_PATTERN.search("\n# ")
        assert not PROMPT_PATTERN.search("ip route default gateway pp 1\n")

    def test_more_pattern(self):
        """Pager markers are recognized in both languages."""
        assert MORE_PATTERN.search("--- つづく ---")
        assert MORE_PATTERN.search("--- more ---")

    @pytest.mark.asyncio
    async def test_execute_requires_connection(self, device):
        """Commands need an open session."""
        with pytest.raises(ConnectionError):
            await device.execute("show config")
