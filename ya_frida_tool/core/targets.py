"""Device and process selectors, mirroring the frida CLI -U/-R/-H/-D and -f/-n/-p/-F/-w flags."""

from dataclasses import dataclass, field
from typing import Any, Literal

ScriptRuntime = Literal["qjs", "v8"]


# ---------------------------------------------------------------------------
# Devices
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class LocalDevice:
    kind = "local"

    @property
    def label(self) -> str:
        return "local"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind}


@dataclass(frozen=True, slots=True)
class UsbDevice:
    kind = "usb"

    @property
    def label(self) -> str:
        return "usb"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind}


@dataclass(frozen=True, slots=True)
class RemoteDevice:
    kind = "remote"

    @property
    def label(self) -> str:
        return "remote"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind}


@dataclass(frozen=True, slots=True)
class DeviceByHost:
    host: str
    kind = "by-host"

    @property
    def label(self) -> str:
        return f"host:{self.host}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "host": self.host}


@dataclass(frozen=True, slots=True)
class DeviceById:
    id: str
    kind = "by-id"

    @property
    def label(self) -> str:
        return f"id:{self.id}"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "id": self.id}


TargetDevice = LocalDevice | UsbDevice | RemoteDevice | DeviceByHost | DeviceById


# ---------------------------------------------------------------------------
# Processes
# ---------------------------------------------------------------------------


@dataclass(frozen=True, slots=True)
class Spawn:
    program: str
    kind = "spawn"

    @property
    def label(self) -> str:
        return self.program

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "program": self.program}


@dataclass(frozen=True, slots=True)
class ByName:
    name: str
    kind = "by-name"

    @property
    def label(self) -> str:
        return self.name

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "name": self.name}


@dataclass(frozen=True, slots=True)
class AllByName:
    """Keep enlisting every process with this name for as long as we run."""

    name: str
    kind = "all-by-name"

    @property
    def label(self) -> str:
        return self.name

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "name": self.name}


@dataclass(frozen=True, slots=True)
class AnyByName:
    name: str
    kind = "any-by-name"

    @property
    def label(self) -> str:
        return self.name

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "name": self.name}


@dataclass(frozen=True, slots=True)
class ByIds:
    ids: tuple[int, ...]
    kind = "by-ids"

    @property
    def label(self) -> str:
        return ", ".join(str(pid) for pid in self.ids)

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "ids": list(self.ids)}


@dataclass(frozen=True, slots=True)
class ByGating:
    """Wait for the next spawn whose identifier or name matches."""

    name: str
    kind = "by-gating"

    @property
    def label(self) -> str:
        return self.name

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind, "name": self.name}


@dataclass(frozen=True, slots=True)
class ByFrontmost:
    kind = "by-frontmost"

    @property
    def label(self) -> str:
        return "frontmost"

    def to_dict(self) -> dict[str, Any]:
        return {"kind": self.kind}


TargetProcess = Spawn | ByName | AllByName | AnyByName | ByIds | ByGating | ByFrontmost

# Kinds whose processes start paused and are resumed once instrumented.
RESUMABLE_KINDS = frozenset({Spawn.kind, ByGating.kind})


@dataclass(slots=True)
class Target:
    """One device paired with the process selectors to apply on it."""

    device: TargetDevice = field(default_factory=LocalDevice)
    processes: list[TargetProcess] = field(default_factory=list)

    def add_process(self, process: TargetProcess) -> None:
        if isinstance(process, ByIds):
            self.add_pids(*process.ids)
            return
        self.processes.append(process)

    def add_pids(self, *pids: int) -> None:
        """Fold *pids* into the existing by-ids selector, creating it if needed."""
        for i, existing in enumerate(self.processes):
            if isinstance(existing, ByIds):
                merged = existing.ids + tuple(p for p in pids if p not in existing.ids)
                self.processes[i] = ByIds(merged)
                return
        self.processes.append(ByIds(tuple(pids)))

    def to_dict(self) -> dict[str, Any]:
        return {
            "device": self.device.to_dict(),
            "processes": [p.to_dict() for p in self.processes],
        }


# ---------------------------------------------------------------------------
# Parsing
# ---------------------------------------------------------------------------


def _require(data: dict[str, Any], key: str) -> Any:
    if key not in data:
        msg = f"Selector '{data.get('kind')}' requires '{key}'"
        raise ValueError(msg)
    return data[key]


def parse_device(data: dict[str, Any] | str) -> TargetDevice:
    """Build a device selector from a TOML table or a ``host:``/``id:`` shorthand."""
    if isinstance(data, str):
        if data.startswith("host:"):
            return DeviceByHost(data.removeprefix("host:"))
        if data.startswith("id:"):
            return DeviceById(data.removeprefix("id:"))
        data = {"kind": data}

    kind = data.get("kind")
    if kind == "local":
        return LocalDevice()
    if kind == "usb":
        return UsbDevice()
    if kind == "remote":
        return RemoteDevice()
    if kind == "by-host":
        return DeviceByHost(str(_require(data, "host")))
    if kind == "by-id":
        return DeviceById(str(_require(data, "id")))
    msg = f"Unknown device kind: {kind!r}"
    raise ValueError(msg)


def parse_process(data: dict[str, Any]) -> TargetProcess:
    """Build a process selector from a TOML table."""
    kind = data.get("kind")
    if kind == "spawn":
        return Spawn(str(_require(data, "program")))
    if kind == "by-name":
        return ByName(str(_require(data, "name")))
    if kind == "all-by-name":
        return AllByName(str(_require(data, "name")))
    if kind == "any-by-name":
        return AnyByName(str(_require(data, "name")))
    if kind == "by-ids":
        return ByIds(tuple(int(pid) for pid in _require(data, "ids")))
    if kind == "by-gating":
        return ByGating(str(_require(data, "name")))
    if kind == "by-frontmost":
        return ByFrontmost()
    msg = f"Unknown process kind: {kind!r}"
    raise ValueError(msg)


def parse_target(data: dict[str, Any]) -> Target:
    target = Target(device=parse_device(data.get("device", {"kind": "local"})))
    for entry in data.get("processes", []):
        target.add_process(parse_process(entry))
    return target


def infer_process(value: str) -> TargetProcess:
    """Interpret a bare command-line target: a number is a PID, anything else a name."""
    try:
        return ByIds((int(value, 10),))
    except ValueError:
        return ByName(value)
