"""YAML configuration: API bind address and the device list.

Example::

    api:
      host: 0.0.0.0
      port: 8000
    devices:
      - name: adc0
        ip: 192.168.1.10
      - name: adc1
        ip: 192.168.1.11
        port: 33300
        registers: [0x40, 0x41, 0x42]
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml

from .device.adc64 import DEFAULT_REGISTERS, Adc64Device
from .registry import DeviceRegistry
from .transport.udp_connection import CONTROL_PORT

logger = logging.getLogger(__name__)

API_HOST = "127.0.0.1"
API_PORT = 8000
DEFAULT_CONFIG_FILE = "adc-control.yaml"


@dataclass
class ApiConfig:
    host: str = API_HOST
    port: int = API_PORT


@dataclass
class DeviceConfig:
    name: str
    ip: str
    port: int = CONTROL_PORT
    registers: tuple[int, ...] = DEFAULT_REGISTERS


@dataclass
class Config:
    api: ApiConfig = field(default_factory=ApiConfig)
    devices: list[DeviceConfig] = field(default_factory=list)


def _port(value: Any, where: str) -> int:
    if not isinstance(value, int) or isinstance(value, bool) or not 0 < value < 65536:
        raise ValueError(f"{where}: port must be an integer 1-65535, got {value!r}")
    return value


def _parse_device(raw: Any, index: int) -> DeviceConfig:
    where = f"devices[{index}]"
    if not isinstance(raw, dict):
        raise ValueError(f"{where}: expected a mapping")
    name = raw.get("name")
    ip = raw.get("ip")
    if not name or not isinstance(name, str):
        raise ValueError(f"{where}: missing 'name'")
    if not ip or not isinstance(ip, str):
        raise ValueError(f"{where}: missing 'ip'")

    device = DeviceConfig(name=name, ip=ip)
    if "port" in raw:
        device.port = _port(raw["port"], where)
    if "registers" in raw:
        registers = raw["registers"]
        if not isinstance(registers, list) or not all(
            isinstance(r, int) and not isinstance(r, bool) and 0 <= r <= 0x7FFF
            for r in registers
        ):
            raise ValueError(f"{where}: 'registers' must be a list of 15-bit addresses")
        device.registers = tuple(registers)
    return device


def parse_config(raw: Any) -> Config:
    """Validate a decoded YAML document into a :class:`Config`.

    Raises:
        ValueError: If the document is not a valid configuration.
    """
    if raw is None:
        raw = {}
    if not isinstance(raw, dict):
        raise ValueError("Configuration must be a mapping")

    config = Config()
    api = raw.get("api") or {}
    if not isinstance(api, dict):
        raise ValueError("'api' must be a mapping")
    config.api.host = str(api.get("host", API_HOST))
    if "port" in api:
        config.api.port = _port(api["port"], "api")

    devices = raw.get("devices") or []
    if not isinstance(devices, list):
        raise ValueError("'devices' must be a list")
    seen: set[str] = set()
    for index, item in enumerate(devices):
        device = _parse_device(item, index)
        if device.name in seen:
            raise ValueError(f"Duplicate device name: {device.name}")
        seen.add(device.name)
        config.devices.append(device)
    return config


def load_config(path: str | Path) -> Config:
    """Load and validate a YAML configuration file.

    Raises:
        FileNotFoundError: If the file does not exist.
        ValueError: If the YAML is invalid or fails validation.
    """
    config_file = Path(path)
    if not config_file.exists():
        raise FileNotFoundError(f"Configuration file not found: {config_file}")
    try:
        raw = yaml.safe_load(config_file.read_text())
    except yaml.YAMLError as err:
        raise ValueError(f"Invalid YAML: {err}") from err

    config = parse_config(raw)
    logger.info("Loaded %d device(s) from %s", len(config.devices), config_file)
    return config


def build_registry(config: Config) -> DeviceRegistry:
    """Create an ADC64 control handle for every configured device."""
    registry = DeviceRegistry()
    for device in config.devices:
        registry.add(
            device.name,
            Adc64Device.from_endpoint(device.name, device.ip, device.port, device.registers),
        )
    return registry
