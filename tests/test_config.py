"""Tests for YAML configuration loading."""

import pytest

from adc_control.config import (
    API_PORT,
    Config,
    DeviceConfig,
    build_registry,
    load_config,
    parse_config,
)
from adc_control.device.adc64 import DEFAULT_REGISTERS, Adc64Device
from adc_control.transport.udp_connection import CONTROL_PORT

CONFIG_YAML = """
api:
  host: 0.0.0.0
  port: 8080
devices:
  - name: adc0
    ip: 192.168.1.10
  - name: adc1
    ip: 192.168.1.11
    port: 40000
    registers: [0x40, 0x41]
"""


def test_load_config(tmp_path):
    path = tmp_path / "adc-control.yaml"
    path.write_text(CONFIG_YAML)
    config = load_config(path)

    assert config.api.host == "0.0.0.0"
    assert config.api.port == 8080
    assert config.devices == [
        DeviceConfig(name="adc0", ip="192.168.1.10", port=CONTROL_PORT, registers=DEFAULT_REGISTERS),
        DeviceConfig(name="adc1", ip="192.168.1.11", port=40000, registers=(0x40, 0x41)),
    ]


def test_defaults():
    config = parse_config(None)
    assert config == Config()
    assert config.api.port == API_PORT
    assert config.devices == []


def test_missing_file(tmp_path):
    with pytest.raises(FileNotFoundError):
        load_config(tmp_path / "missing.yaml")


def test_invalid_yaml(tmp_path):
    path = tmp_path / "bad.yaml"
    path.write_text("devices: [\n")
    with pytest.raises(ValueError):
        load_config(path)


@pytest.mark.parametrize(
    "raw",
    [
        ["not", "a", "mapping"],
        {"api": "nope"},
        {"api": {"port": 70000}},
        {"devices": {"name": "adc0"}},
        {"devices": [{"ip": "10.0.0.1"}]},
        {"devices": [{"name": "adc0"}]},
        {"devices": [{"name": "adc0", "ip": "10.0.0.1", "port": "x"}]},
        {"devices": [{"name": "adc0", "ip": "10.0.0.1", "registers": [0x8000]}]},
        {"devices": [{"name": "adc0", "ip": "a"}, {"name": "adc0", "ip": "b"}]},
    ],
)
def test_invalid_config(raw):
    with pytest.raises(ValueError):
        parse_config(raw)


def test_build_registry():
    config = parse_config({"devices": [{"name": "adc0", "ip": "127.0.0.1"}]})
    registry = build_registry(config)
    device = registry.resolve("adc0")
    assert isinstance(device, Adc64Device)
    assert device.name == "adc0"


def test_build_registry_rejects_reserved_name():
    config = parse_config({"devices": [{"name": "all", "ip": "127.0.0.1"}]})
    with pytest.raises(ValueError):
        build_registry(config)
