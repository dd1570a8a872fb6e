"""Frida device management with remote support."""

from collections.abc import Callable
from typing import TYPE_CHECKING, Any

import frida

from ya_frida_tool.core.base import BaseFridaDevice, BaseFridaManager, SignalRelay
from ya_frida_tool.core.session import FridaSessionWrapper
from ya_frida_tool.core.targets import (
    DeviceByHost,
    DeviceById,
    LocalDevice,
    RemoteDevice,
    TargetDevice,
    UsbDevice,
)

if TYPE_CHECKING:
    from ya_frida_tool.config import AppConfig


class FridaDeviceWrapper(BaseFridaDevice):
    """Async wrapper around a single frida.core.Device."""

    def __init__(self, device: "frida.core.Device") -> None:
        self._device = device
        self._signals = SignalRelay(device)

    @property
    def id(self) -> str:
        return self._device.id

    @property
    def name(self) -> str:
        return self._device.name

    async def enumerate_processes(
        self,
        cancellable: "frida.Cancellable | None" = None,
    ) -> "list[frida.core.Process]":
        return await BaseFridaManager.run_cancellable(
            cancellable, self._device.enumerate_processes,
        )

    async def get_process(
        self,
        name: str,
        cancellable: "frida.Cancellable | None" = None,
    ) -> "frida.core.Process":
        return await BaseFridaManager.run_cancellable(
            cancellable, self._device.get_process, name,
        )

    async def get_frontmost_application(
        self,
        cancellable: "frida.Cancellable | None" = None,
    ) -> "frida.core.Application | None":
        return await BaseFridaManager.run_cancellable(
            cancellable, self._device.get_frontmost_application,
        )

    async def spawn(self, program: str) -> int:
        return await BaseFridaManager.run_sync(self._device.spawn, program)

    async def resume(self, pid: int) -> None:
        await BaseFridaManager.run_sync(self._device.resume, pid)

    # --- spawn gating ---

    async def enable_spawn_gating(self) -> None:
        await BaseFridaManager.run_sync(self._device.enable_spawn_gating)

    async def disable_spawn_gating(self) -> None:
        await BaseFridaManager.run_sync(self._device.disable_spawn_gating)

    async def enumerate_pending_spawn(self) -> list:
        return await BaseFridaManager.run_sync(self._device.enumerate_pending_spawn)

    # --- sessions ---

    async def attach(self, pid: int) -> FridaSessionWrapper:
        session = await BaseFridaManager.run_sync(self._device.attach, pid)
        return FridaSessionWrapper(session)

    # --- signals: "child-added", "spawn-added" ---

    def on(self, signal: str, callback: Callable[..., Any]) -> None:
        self._signals.on(signal, callback)

    def off(self, signal: str, callback: Callable[..., Any]) -> None:
        self._signals.off(signal, callback)


class DeviceManager(BaseFridaManager):
    """Resolves device selectors to connected Frida devices."""

    def __init__(self, config: "AppConfig") -> None:
        self._config = config
        self._mgr: frida.core.DeviceManager | None = None

    async def initialize(self) -> None:
        self._mgr = frida.get_device_manager()

    async def cleanup(self) -> None:
        self._mgr = None

    async def get_device(
        self,
        target: TargetDevice,
        cancellable: "frida.Cancellable | None" = None,
    ) -> FridaDeviceWrapper:
        """Look up the device described by *target*."""
        if self._mgr is None:
            await self.initialize()
        assert self._mgr is not None
        timeout = self._config.frida.device_timeout

        if isinstance(target, LocalDevice):
            device = await self.run_cancellable(cancellable, self._mgr.get_local_device)
        elif isinstance(target, UsbDevice):
            device = await self.run_cancellable(
                cancellable, self._mgr.get_usb_device, timeout,
            )
        elif isinstance(target, RemoteDevice):
            device = await self.run_cancellable(cancellable, self._mgr.get_remote_device)
        elif isinstance(target, DeviceByHost):
            device = await self.run_cancellable(
                cancellable, self._mgr.add_remote_device, target.host,
            )
        elif isinstance(target, DeviceById):
            device = await self.run_cancellable(
                cancellable, self._mgr.get_device, target.id, timeout,
            )
        else:
            msg = f"Invalid target device: {target!r}"
            raise ValueError(msg)
        return FridaDeviceWrapper(device)
