"""Tests for the device registry."""

import threading

import pytest

from adc_control.device.memory import InMemoryDevice
from adc_control.errors import UnknownDeviceError
from adc_control.registry import DeviceRegistry


def test_resolve(registry, devices):
    assert registry.resolve("adc1") is devices[1]


def test_resolve_unknown():
    registry = DeviceRegistry({"adc0": InMemoryDevice("adc0")})
    with pytest.raises(UnknownDeviceError) as excinfo:
        registry.resolve("adc1")
    assert excinfo.value.name == "adc1"
    assert "adc1" in str(excinfo.value)


def test_all_devices_in_registration_order(registry):
    assert [name for name, _ in registry.all_devices()] == ["adc0", "adc1", "adc2"]


def test_empty_registry():
    registry = DeviceRegistry()
    assert registry.all_devices() == []
    assert len(registry) == 0


def test_all_devices_is_a_snapshot(registry):
    snapshot = registry.all_devices()
    registry.add("adc3", InMemoryDevice("adc3"))
    assert len(snapshot) == 3
    assert len(registry.all_devices()) == 4


def test_add_rejects_duplicates_and_reserved(registry):
    with pytest.raises(ValueError):
        registry.add("adc0", InMemoryDevice("adc0"))
    with pytest.raises(ValueError):
        registry.add("all", InMemoryDevice("all"))
    with pytest.raises(ValueError):
        registry.add("", InMemoryDevice(""))


def test_contains_and_names(registry):
    assert "adc0" in registry
    assert "nope" not in registry
    assert registry.names() == ["adc0", "adc1", "adc2"]


def test_concurrent_lookups(registry):
    """Lookups from many threads see the same handles."""
    errors = []

    def lookup():
        try:
            for _ in range(200):
                assert registry.resolve("adc2").name == "adc2"
                assert len(registry.all_devices()) == 3
        except AssertionError as e:
            errors.append(e)

    threads = [threading.Thread(target=lookup) for _ in range(8)]
    for t in threads:
        t.start()
    for t in threads:
        t.join()
    assert errors == []
