"""Top-level coordinator: one DeviceController per device, run to completion."""

from __future__ import annotations

import asyncio
import logging

import frida

from ya_frida_tool.config import AppConfig
from ya_frida_tool.core.agent import load_agent_source
from ya_frida_tool.core.base import BaseFridaDevice
from ya_frida_tool.core.controller import DeviceController
from ya_frida_tool.core.delegate import Delegate
from ya_frida_tool.core.device import DeviceManager
from ya_frida_tool.core.operation import OperationScheduler
from ya_frida_tool.core.targets import TargetDevice

logger = logging.getLogger(__name__)


class Application:
    """Drives every configured target until all devices reach a terminal state."""

    def __init__(
        self,
        config: AppConfig,
        delegate: Delegate,
        device_manager: DeviceManager | None = None,
    ) -> None:
        self._config = config
        self._delegate = delegate
        self._device_manager = device_manager or DeviceManager(config)
        self._scheduler = OperationScheduler("application", delegate)
        self._cancellable = frida.Cancellable()
        self._controllers: dict[str, DeviceController] = {}
        self._dispose_task: asyncio.Task | None = None

    @property
    def controllers(self) -> list[DeviceController]:
        return list(self._controllers.values())

    @property
    def is_stopping(self) -> bool:
        return self._cancellable.is_cancelled

    async def run(self) -> None:
        """Instrument every target, then wait for all controllers to finish.

        Controllers are disposed on every exit path. Errors raised after
        :meth:`stop` was requested are part of the shutdown and are not re-raised.
        """
        frida_cfg = self._config.frida
        try:
            source = load_agent_source(frida_cfg.script or None)
            for target in self._config.targets:
                if self.is_stopping:
                    break
                device = await self._get_device(target.device)
                controller = self._controllers.get(device.id)
                if controller is None:
                    if self.is_stopping:
                        break
                    controller = DeviceController(
                        device,
                        self._delegate,
                        self._scheduler,
                        self._cancellable,
                        source=source,
                        runtime=frida_cfg.runtime,
                        poll_interval=frida_cfg.poll_interval,
                    )
                    self._controllers[device.id] = controller
                await controller.add(target.processes)

            await asyncio.gather(*(c.join() for c in self._controllers.values()))
        except Exception:
            if not self.is_stopping:
                raise
            logger.debug("Ignoring error raised during shutdown", exc_info=True)
        finally:
            await self.dispose()

    def stop(self) -> None:
        """Cancel in-flight device calls and start tearing everything down."""
        self._cancellable.cancel()
        if self._dispose_task is None:
            self._dispose_task = asyncio.ensure_future(self._dispose())

    async def dispose(self) -> None:
        """Dispose every controller exactly once, however often this is called."""
        if self._dispose_task is None:
            self._dispose_task = asyncio.ensure_future(self._dispose())
        await asyncio.shield(self._dispose_task)

    async def _dispose(self) -> None:
        controllers = list(self._controllers.values())
        results = await asyncio.gather(*(c.dispose() for c in controllers), return_exceptions=True)
        for controller, result in zip(controllers, results):
            if isinstance(result, Exception):
                logger.warning("Disposing controller for %s failed: %s", controller.device.name, result)
        self._cancellable.cancel()
        await self._device_manager.cleanup()

    async def _get_device(self, target: TargetDevice) -> BaseFridaDevice:
        return await self._scheduler.perform(
            "Getting device",
            lambda: self._device_manager.get_device(target, self._cancellable),
        )
