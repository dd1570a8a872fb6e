"""Shared fixtures for ya_frida_tool tests."""

import pytest

from tests.fakes import FakeDevice, RecordingDelegate
from ya_frida_tool.core.resolver import Process


@pytest.fixture
def delegate() -> RecordingDelegate:
    return RecordingDelegate()


@pytest.fixture
def device() -> FakeDevice:
    return FakeDevice(
        processes=[
            Process(1, "launchd"),
            Process(42, "Calculator"),
            Process(50, "worker"),
            Process(51, "worker"),
        ],
    )
