"""Tests for TOML configuration loading and saving."""

from ya_frida_tool.config import AppConfig
from ya_frida_tool.core.targets import ByIds, DeviceByHost, Spawn, Target


class TestAppConfig:
    def test_missing_file_gives_defaults(self, tmp_path):
        cfg = AppConfig.load(tmp_path / "nope.toml")
        assert cfg.frida.default_device == "local"
        assert cfg.frida.runtime == "qjs"
        assert cfg.frida.poll_interval == 0.5
        assert cfg.targets == []

    def test_load_targets(self, tmp_path):
        path = tmp_path / "config.toml"
        path.write_text(
            '[frida]\n'
            'default_device = "usb"\n'
            'poll_interval = 1.5\n'
            '\n'
            '[[targets]]\n'
            'device = { kind = "by-host", host = "192.168.1.5" }\n'
            'processes = [{ kind = "spawn", program = "calc" }, { kind = "by-ids", ids = [3, 4] }]\n',
        )
        cfg = AppConfig.load(path)
        assert cfg.frida.default_device == "usb"
        assert cfg.frida.poll_interval == 1.5
        [target] = cfg.targets
        assert target.device == DeviceByHost("192.168.1.5")
        assert target.processes == [Spawn("calc"), ByIds((3, 4))]

    def test_save_then_load(self, tmp_path):
        path = tmp_path / "config.toml"
        cfg = AppConfig()
        cfg.frida.runtime = "v8"
        cfg.targets = [Target(device=DeviceByHost("h"), processes=[Spawn("calc")])]
        cfg.save(path)

        loaded = AppConfig.load(path)
        assert loaded.frida.runtime == "v8"
        assert loaded.targets[0].device == DeviceByHost("h")
        assert loaded.targets[0].processes == [Spawn("calc")]
