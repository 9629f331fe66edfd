"""Register and MStream control for ADC64 data-acquisition boards."""

__version__ = "0.1.0"
