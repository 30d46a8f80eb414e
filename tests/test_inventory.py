"""Tests for device inventory management."""
import pytest
import tempfile
import os
from rtx_state.config.inventory import DeviceInventory
from rtx_state.devices import RTXDevice, create_device


class TestDeviceInventory:
    """Tests for DeviceInventory class."""

    @pytest.fixture
    def temp_config(self):
        """Create a temporary config file for testing."""
        config_content = """
defaults:
  type: rtx
  username: admin
  password_env: "TEST_RTX_PASSWORD"
  timeout: 20

devices:
  rtx-hq:
    name: "HQ edge"
    host: 192.168.100.1
    notes: "rack 3"

  rtx-branch:
    host: 192.168.200.1
    port: 2222
    timeout: 60

groups:
  edge:
    - rtx-hq
    - rtx-branch
  stale:
    - rtx-gone
"""
        with tempfile.NamedTemporaryFile(mode='w', suffix='.yaml', delete=False) as f:
            f.write(config_content)
            f.flush()
            yield f.name
        os.unlink(f.name)

    def test_load_config(self, temp_config):
        """Inventory loads config file correctly."""
        inv = DeviceInventory(temp_config)
        assert inv.get_device_ids() == ["rtx-hq", "rtx-branch"]

    def test_defaults_applied(self, temp_config):
        """Defaults fill keys a device does not set."""
        inv = DeviceInventory(temp_config)
        hq = inv.get_device_config("rtx-hq")
        branch = inv.get_device_config("rtx-branch")
        assert hq["username"] == "admin"
        assert hq["timeout"] == 20
        assert branch["timeout"] == 60
        assert branch["port"] == 2222

    def test_name_defaults_to_id(self, temp_config):
        """A device without a name is named after its id."""
        inv = DeviceInventory(temp_config)
        assert inv.get_device_config("rtx-branch")["name"] == "rtx-branch"
        assert inv.get_device_config("rtx-hq")["name"] == "HQ edge"

    def test_unknown_device(self, temp_config):
        """Unknown device raises KeyError."""
        inv = DeviceInventory(temp_config)
        with pytest.raises(KeyError):
            inv.get_device_config("nonexistent")

    def test_get_device(self, temp_config):
        """Devices are created once and cached."""
        inv = DeviceInventory(temp_config)
        device = inv.get_device("rtx-hq")
        assert isinstance(device, RTXDevice)
        assert device.host == "192.168.100.1"
        assert device.name == "HQ edge"
        assert inv.get_device("rtx-hq") is device

    def test_password_from_env(self, temp_config, monkeypatch):
        """Passwords are read from the configured environment variable."""
        monkeypatch.setenv("TEST_RTX_PASSWORD", "hunter2")
        monkeypatch.delenv("RTX_ADMIN_PASSWORD", raising=False)
        inv = DeviceInventory(temp_config)
        config = inv.get_device("rtx-branch").config
        assert config.get_password() == "hunter2"
        assert config.get_admin_password() == "hunter2"

    def test_get_all_devices(self, temp_config):
        """All devices are instantiated."""
        inv = DeviceInventory(temp_config)
        assert set(inv.get_all_devices()) == {"rtx-hq", "rtx-branch"}

    @pytest.mark.asyncio
    async def test_close_all(self, temp_config):
        """Closing clears the device cache."""
        inv = DeviceInventory(temp_config)
        inv.get_all_devices()
        await inv.close_all()
        assert inv._devices == {}


class TestGroups:
    """Tests for inventory groups."""

    @pytest.fixture
    def inventory(self, tmp_path):
        path = tmp_path / "devices.yaml"
        path.write_text(
            "devices:\n"
            "  rtx-a:\n"
            "    type: rtx\n"
            "    host: 192.0.2.1\n"
            "  rtx-b:\n"
            "    type: rtx\n"
            "    host: 192.0.2.2\n"
            "groups:\n"
            "  all:\n"
            "    - rtx-a\n"
            "    - rtx-b\n",
            encoding="utf-8",
        )
        return DeviceInventory(str(path))

    def test_group_names(self, inventory):
        """Group names are listed."""
        assert inventory.get_group_names() == ["all"]

    def test_group_members(self, inventory):
        """Members come back in declaration order."""
        assert inventory.get_group_members("all") == ["rtx-a", "rtx-b"]

    def test_devices_in_group(self, inventory):
        """Group members resolve to device instances."""
        devices = inventory.get_devices_in_group("all")
        assert [d.device_id for d in devices] == ["rtx-a", "rtx-b"]

    def test_unknown_group(self, inventory):
        """Unknown group raises KeyError."""
        with pytest.raises(KeyError):
            inventory.get_group_members("core")

    def test_missing_file(self, tmp_path):
        """A missing inventory file raises."""
        with pytest.raises(FileNotFoundError):
            DeviceInventory(str(tmp_path / "absent.yaml"))


class TestCreateDevice:
    """Tests for the device factory."""

    def test_rtx(self):
        """The rtx type builds an RTXDevice."""
        device = create_device("r1", {"type": "RTX", "name": "R1", "host": "192.0.2.9", "tags": ["lab"]})
        assert isinstance(device, RTXDevice)
        assert device.config.port == 22

    def test_unknown_type(self):
        """Unknown device types are rejected."""
        with pytest.raises(ValueError):
            create_device("sw1", {"type": "brocade", "name": "SW1", "host": "192.0.2.10"})
