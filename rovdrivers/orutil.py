"""Shared helpers: result counters, millisecond timers, angle helpers and an I2C bus."""

from __future__ import annotations

import time
from collections.abc import Callable, Iterable, Mapping

_UINT32_MASK = 0xFFFFFFFF


class ResultCount:
    """Counts occurrences of each result code and of error results.

    Any result whose value is greater than ``error_threshold`` also counts
    as an error.
    """

    def __init__(self, size: int, error_threshold: int = 0) -> None:
        if size <= 0:
            raise ValueError("size must be positive")
        self._results = [0] * size
        self._errors = 0
        self._threshold = int(error_threshold)

    def add_result(self, result: int) -> int:
        """Record one occurrence of ``result`` and return it unchanged."""
        index = int(result)
        self._results[index] += 1
        if index > self._threshold:
            self._errors += 1
        return result

    def count(self, result: int) -> int:
        """Return how many times ``result`` has been recorded."""
        return self._results[int(result)]

    def error_count(self) -> int:
        """Return the number of error results recorded."""
        return self._errors

    def clear(self) -> None:
        """Reset every counter, including the error count."""
        self._errors = 0
        self._results = [0] * len(self._results)

    def clear_result(self, result: int) -> None:
        """Reset the counter for a single result (the error count is kept)."""
        self._results[int(result)] = 0


def _monotonic_ms() -> int:
    return time.monotonic_ns() // 1_000_000


class Timer:
    """A 32-bit millisecond timer that tolerates counter wraparound."""

    def __init__(self, clock: Callable[[], int] | None = None) -> None:
        self._clock = clock if clock is not None else _monotonic_ms
        self._last_ms = self.now()

    def now(self) -> int:
        """Return the current time in milliseconds, wrapped to 32 bits."""
        return int(self._clock()) & _UINT32_MASK

    def has_elapsed(self, ms: int) -> bool:
        """Return True, and restart, once more than ``ms`` milliseconds have passed."""
        current = self.now()
        if ((current - self._last_ms) & _UINT32_MASK) > ms:
            self._last_ms = current
            return True
        return False

    def reset(self) -> None:
        """Restart the timer from the current time."""
        self._last_ms = self.now()


def encode_1k(value: float) -> int:
    """Scale a float by 1000 and truncate it to an integer."""
    return int(value * 1000.0)


def decode_1k(value: int) -> float:
    """Undo :func:`encode_1k`."""
    return float(value) * 0.001


def normalize_angle_360(angle: float) -> float:
    """Fold an angle that is at most one turn outside [0, 360] back into it."""
    if angle > 360.0:
        return angle - 360.0
    if angle < 0.0:
        return angle + 360.0
    return angle


def normalize_angle_180(angle: float) -> float:
    """Fold an angle that is at most one turn outside [-180, 180] back into it."""
    if angle > 180.0:
        return angle - 360.0
    if angle < -180.0:
        return angle + 360.0
    return angle


class I2CError(Exception):
    """An I2C transaction failed."""


def _check_byte(name: str, value: int) -> int:
    value = int(value)
    if not 0 <= value <= 0xFF:
        raise ValueError(f"{name} must fit in one byte, got {value}")
    return value


class I2CBus:
    """An in-memory I2C bus.

    ``registers`` maps a device address to a mapping of register number to
    the bytes that a read of that register returns. Addresses not in the
    mapping do not acknowledge. Every write is appended to ``writes`` as an
    ``(address, payload)`` pair. Hardware backends subclass this and
    override the transaction methods.
    """

    def __init__(
        self,
        registers: Mapping[int, Mapping[int, bytes]] | None = None,
        devices: Iterable[int] = (),
    ) -> None:
        self.registers: dict[int, dict[int, bytes]] = {
            address: {reg: bytes(data) for reg, data in regs.items()}
            for address, regs in (registers or {}).items()
        }
        for address in devices:
            self.registers.setdefault(address, {})
        self.writes: list[tuple[int, bytes]] = []
        self._locked: set[int] = set()

    def _device(self, address: int) -> dict[int, bytes]:
        try:
            return self.registers[address]
        except KeyError:
            raise I2CError(f"no device acknowledged at address 0x{address:02X}") from None

    def write_byte(self, address: int, value: int) -> None:
        """Write a single command byte to a device."""
        value = _check_byte("value", value)
        self._device(address)
        self.writes.append((address, bytes([value])))

    def write_register_byte(self, address: int, register: int, value: int) -> None:
        """Write one byte into a device register."""
        register = _check_byte("register", register)
        value = _check_byte("value", value)
        device = self._device(address)
        device[register] = bytes([value])
        self.writes.append((address, bytes([register, value])))

    def read_register_byte(self, address: int, register: int) -> int:
        """Read one byte from a device register."""
        return self.read_register_bytes(address, register, 1)[0]

    def read_register_bytes(self, address: int, register: int, count: int) -> bytes:
        """Read ``count`` bytes starting at a device register."""
        register = _check_byte("register", register)
        device = self._device(address)
        data = device.get(register, b"")
        if len(data) < count:
            raise I2CError(
                f"short read from 0x{address:02X} register 0x{register:02X}: "
                f"wanted {count} bytes, got {len(data)}"
            )
        return data[:count]

    def lock_address(self, address: int) -> bool:
        """Claim an address for exclusive use; False if it is already claimed."""
        if address in self._locked:
            return False
        self._locked.add(address)
        return True

    def free_address(self, address: int) -> None:
        """Release a claimed address."""
        self._locked.discard(address)