"""Tests for the Click entry point."""

import json

from click.testing import CliRunner

from main import build_device, build_target, cli
from ya_frida_tool.core.targets import (
    ByFrontmost,
    ByGating,
    ByIds,
    ByName,
    DeviceByHost,
    DeviceById,
    LocalDevice,
    RemoteDevice,
    Spawn,
    UsbDevice,
)


class TestBuildDevice:
    def test_default(self):
        assert build_device("local") == LocalDevice()
        assert build_device("usb") == UsbDevice()

    def test_flags_override_default(self):
        assert build_device("local", usb=True) == UsbDevice()
        assert build_device("local", remote=True) == RemoteDevice()
        assert build_device("usb", host="10.0.0.2") == DeviceByHost("10.0.0.2")
        assert build_device("usb", host="h", device_id="abc") == DeviceById("abc")


class TestBuildTarget:
    def test_no_flags_means_no_target(self):
        assert build_target(LocalDevice()) is None

    def test_pids_collapse_into_one_selector(self):
        target = build_target(UsbDevice(), pids=(3, 4), spawn=("calc",), positional="5")
        assert target.device == UsbDevice()
        assert target.processes == [Spawn("calc"), ByIds((3, 4, 5))]

    def test_positional_name(self):
        target = build_target(LocalDevice(), positional="Safari", frontmost=True, wait=("Mail",))
        assert target.processes == [ByFrontmost(), ByGating("Mail"), ByName("Safari")]


class TestCommands:
    def test_run_without_target_is_usage_error(self, tmp_path):
        result = CliRunner().invoke(cli, ["-c", str(tmp_path / "none.toml"), "run"])
        assert result.exit_code == 2
        assert "Expected a target" in result.output

    def test_show_config(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[frida]\nruntime = "v8"\n\n'
            '[[targets]]\ndevice = "usb"\nprocesses = [{ kind = "by-name", name = "Safari" }]\n',
        )
        result = CliRunner().invoke(cli, ["-c", str(path), "show-config"])
        assert result.exit_code == 0
        data = json.loads(result.output)
        assert data["frida"]["runtime"] == "v8"
        assert data["targets"] == [
            {"device": {"kind": "usb"}, "processes": [{"kind": "by-name", "name": "Safari"}]},
        ]

    def test_init_config(self, tmp_path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        result = CliRunner().invoke(cli, ["-c", str(tmp_path / "none.toml"), "init-config"])
        assert result.exit_code == 0
        assert (tmp_path / "config.toml").exists()
