"""Device control handles: interface, ADC64 implementation, in-memory device."""

from .base import CTRL_MSTREAM_ENABLE, REG_CTRL, DeviceControl
from .adc64 import DEFAULT_REGISTERS, Adc64Device
from .memory import InMemoryDevice
