"""Pressure sensor, servo timing, in-memory I2C bus and orientation math for an underwater vehicle controller."""

__version__ = "0.1.0"