"""Core layer: device/session wrappers and the orchestration built on them."""

from ya_frida_tool.core.agent import Agent
from ya_frida_tool.core.base import BaseFridaDevice, BaseFridaManager
from ya_frida_tool.core.controller import DeviceController
from ya_frida_tool.core.device import DeviceManager
from ya_frida_tool.core.operation import Operation, OperationScheduler
from ya_frida_tool.core.resolver import TargetResolver

__all__ = [
    "Agent",
    "BaseFridaDevice",
    "BaseFridaManager",
    "DeviceController",
    "DeviceManager",
    "Operation",
    "OperationScheduler",
    "TargetResolver",
]
