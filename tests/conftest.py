"""Shared fixtures: in-memory devices and a dispatcher over them."""

import pytest

from adc_control.device.memory import InMemoryDevice
from adc_control.dispatcher import Dispatcher
from adc_control.registry import DeviceRegistry


@pytest.fixture
def devices():
    return [
        InMemoryDevice("adc0", registers={0x0000: 5, 0x0001: 9}),
        InMemoryDevice("adc1"),
        InMemoryDevice("adc2"),
    ]


@pytest.fixture
def registry(devices):
    return DeviceRegistry({d.name: d for d in devices})


@pytest.fixture
def dispatcher(registry):
    return Dispatcher(registry)
