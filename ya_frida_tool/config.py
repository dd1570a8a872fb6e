"""Configuration management with TOML support."""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path

import tomli_w

from ya_frida_tool.core.targets import ScriptRuntime, Target, parse_target

DEFAULT_CONFIG_NAME = "config.toml"


@dataclass
class FridaConfig:
    """Frida-specific configuration."""

    default_device: str = "local"
    device_timeout: int = 5
    script: str = ""
    runtime: ScriptRuntime = "qjs"
    poll_interval: float = 0.5


@dataclass
class AppConfig:
    """Top-level application configuration."""

    frida: FridaConfig = field(default_factory=FridaConfig)
    targets: list[Target] = field(default_factory=list)

    @classmethod
    def load(cls, path: Path | None = None) -> AppConfig:
        """Load config from TOML file, falling back to defaults."""
        if path is None:
            path = Path.cwd() / DEFAULT_CONFIG_NAME
        if not path.exists():
            return cls()
        with open(path, "rb") as f:
            raw = tomllib.load(f)
        return cls._from_dict(raw)

    @classmethod
    def _from_dict(cls, data: dict) -> AppConfig:
        frida_data = data.get("frida", {})
        targets = [parse_target(t) for t in data.get("targets", [])]
        return cls(frida=FridaConfig(**frida_data), targets=targets)

    def to_dict(self) -> dict:
        data: dict = {
            "frida": {
                "default_device": self.frida.default_device,
                "device_timeout": self.frida.device_timeout,
                "script": self.frida.script,
                "runtime": self.frida.runtime,
                "poll_interval": self.frida.poll_interval,
            },
        }
        if self.targets:
            data["targets"] = [t.to_dict() for t in self.targets]
        return data

    def save(self, path: Path) -> None:
        """Persist current config to TOML file."""
        with open(path, "wb") as f:
            tomli_w.dump(self.to_dict(), f)
