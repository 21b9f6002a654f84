"""Interrupt-driven hobby servo pulse generation on 16-bit timers.

A :class:`ServoBank` owns the channel table that the timer interrupts walk.
Each timer drives up to twelve servos in turn: on every compare-match
interrupt the current servo's pin is pulled low, the next servo's pin is
pulled high, and the compare register is set to end that servo's pulse.
Once every servo on a timer has been pulsed, the timer waits out the rest
of the refresh interval before starting over.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import NamedTuple

SERVO_VERSION = 2

MIN_PULSE_WIDTH = 544
MAX_PULSE_WIDTH = 2400
DEFAULT_PULSE_WIDTH = 1500
REFRESH_INTERVAL = 20000

SERVOS_PER_TIMER = 12
INVALID_SERVO = 255

LOW = 0
HIGH = 1

AVR_CLOCK_MHZ = 16
AVR_PRESCALE = 8
AVR_TRIM_DURATION = 2

_MAX_PIN = 63
_COUNTER_MASK = 0xFFFF
_REFRESH_MARGIN_TICKS = 4

AVR_BOARD_TIMERS: Mapping[str, tuple[str, ...]] = {
    "atmega1280": ("timer4", "timer1", "timer3"),
    "atmega2560": ("timer4", "timer1", "timer3"),
    "atmega32u4": ("timer1",),
    "at90usb646": ("timer3", "timer1"),
    "at90usb1286": ("timer3", "timer1"),
    "atmega128": ("timer3", "timer1"),
    "atmega1281": ("timer3", "timer1"),
    "atmega2561": ("timer3", "timer1"),
    "default": ("timer1",),
}


def _tdiv(numerator: int, denominator: int) -> int:
    """Integer division that truncates toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


def map_range(value: int, in_min: int, in_max: int, out_min: int, out_max: int) -> int:
    """Re-map an integer from one range to another, truncating toward zero."""
    return _tdiv((value - in_min) * (out_max - out_min), in_max - in_min) + out_min


@dataclass(frozen=True)
class ServoTiming:
    """Timer clock settings and the pulse trim that compensates for pin-write delay."""

    clock_mhz: int = AVR_CLOCK_MHZ
    prescale: int = AVR_PRESCALE
    trim_duration: int = AVR_TRIM_DURATION

    def us_to_ticks(self, us: int) -> int:
        """Convert microseconds to timer ticks."""
        return _tdiv(self.clock_mhz * int(us), self.prescale)

    def ticks_to_us(self, ticks: int) -> int:
        """Convert timer ticks back to microseconds."""
        return (int(ticks) * self.prescale) // self.clock_mhz


class TimerUpdate(NamedTuple):
    """Timer registers after an interrupt: the counter and the next compare value."""

    counter: int
    compare: int


@dataclass
class _Channel:
    pin: int = 0
    active: bool = False
    ticks: int = 0


class ServoBank:
    """The shared channel table and timer interrupt logic for a set of servos.

    ``timer_names`` lists the 16-bit timers in the order they are claimed;
    twelve servos are served by each. ``digital_write`` and ``pin_mode`` are
    called with ``(pin, level)`` and ``(pin)``; ``on_timer_start`` and
    ``on_timer_stop`` with the timer index. Pin levels are also kept in
    ``pin_levels`` and output pins in ``output_pins``.
    """

    def __init__(
        self,
        timer_names: Sequence[str] = AVR_BOARD_TIMERS["default"],
        timing: ServoTiming | None = None,
        *,
        digital_write: Callable[[int, int], None] | None = None,
        pin_mode: Callable[[int], None] | None = None,
        on_timer_start: Callable[[int], None] | None = None,
        on_timer_stop: Callable[[int], None] | None = None,
    ) -> None:
        if not timer_names:
            raise ValueError("at least one timer is required")
        self.timer_names = tuple(timer_names)
        self.timing = timing if timing is not None else ServoTiming()
        self._digital_write = digital_write
        self._pin_mode = pin_mode
        self._on_timer_start = on_timer_start
        self._on_timer_stop = on_timer_stop
        self._channels = [_Channel() for _ in range(self.max_servos)]
        self._current = [0] * self.timer_count
        self._count = 0
        self.pin_levels: dict[int, int] = {}
        self.output_pins: set[int] = set()

    @property
    def timer_count(self) -> int:
        return len(self.timer_names)

    @property
    def max_servos(self) -> int:
        return self.timer_count * SERVOS_PER_TIMER

    @property
    def servo_count(self) -> int:
        """How many servos have been created on this bank."""
        return self._count

    def create_servo(self) -> Servo:
        """Create a servo bound to the next free channel of this bank."""
        return Servo(self)

    def is_timer_active(self, timer: int) -> bool:
        """Return True if any servo served by ``timer`` is attached."""
        self._check_timer(timer)
        start = timer * SERVOS_PER_TIMER
        return any(ch.active for ch in self._channels[start : start + SERVOS_PER_TIMER])

    def handle_interrupt(self, timer: int, counter: int) -> TimerUpdate:
        """Service a compare-match interrupt of ``timer`` whose counter reads ``counter``."""
        self._check_timer(timer)
        counter = int(counter) & _COUNTER_MASK
        channel = self._current[timer]
        if channel < 0:
            counter = 0
        else:
            current = self._servo_channel(timer, channel)
            if current is not None and current.active:
                self._write_pin(current.pin, LOW)

        channel += 1
        upcoming = self._servo_channel(timer, channel)
        if upcoming is not None:
            compare = (counter + upcoming.ticks) & _COUNTER_MASK
            if upcoming.active:
                self._write_pin(upcoming.pin, HIGH)
        else:
            compare = self._refresh_compare(counter)
            channel = -1
        self._current[timer] = channel
        return TimerUpdate(counter, compare)

    # ------------------------------------------------------------------

    def _refresh_compare(self, counter: int) -> int:
        refresh = self.timing.us_to_ticks(REFRESH_INTERVAL)
        if counter + _REFRESH_MARGIN_TICKS < refresh:
            return refresh & _COUNTER_MASK
        return (counter + _REFRESH_MARGIN_TICKS) & _COUNTER_MASK

    def _servo_channel(self, timer: int, channel: int) -> _Channel | None:
        index = timer * SERVOS_PER_TIMER + channel
        if index < self._count and channel < SERVOS_PER_TIMER:
            return self._channels[index]
        return None

    def _check_timer(self, timer: int) -> None:
        if not 0 <= timer < self.timer_count:
            raise ValueError(f"timer index {timer} out of range")

    def _allocate(self) -> int:
        if self._count >= self.max_servos:
            return INVALID_SERVO
        index = self._count
        self._count += 1
        self._channels[index].ticks = self.timing.us_to_ticks(DEFAULT_PULSE_WIDTH)
        return index

    def _write_pin(self, pin: int, level: int) -> None:
        self.pin_levels[pin] = level
        if self._digital_write is not None:
            self._digital_write(pin, level)

    def _set_output(self, pin: int) -> None:
        self.output_pins.add(pin)
        if self._pin_mode is not None:
            self._pin_mode(pin)

    def _start_timer(self, timer: int) -> None:
        if self._on_timer_start is not None:
            self._on_timer_start(timer)

    def _stop_timer(self, timer: int) -> None:
        if self._on_timer_stop is not None:
            self._on_timer_stop(timer)


DEFAULT_BANK = ServoBank()


class Servo:
    """One servo channel of a :class:`ServoBank`.

    If the bank is full the servo gets index :data:`INVALID_SERVO` and every
    operation on it does nothing.
    """

    def __init__(self, bank: ServoBank | None = None) -> None:
        self.bank = bank if bank is not None else DEFAULT_BANK
        self.index = self.bank._allocate()
        self._min_offset = 0
        self._max_offset = 0

    @property
    def _valid(self) -> bool:
        return self.index < self.bank.max_servos

    @property
    def _channel(self) -> _Channel:
        return self.bank._channels[self.index]

    @property
    def timer(self) -> int:
        return self.index // SERVOS_PER_TIMER

    @property
    def min_us(self) -> int:
        """Shortest pulse this servo is sent, in microseconds."""
        return MIN_PULSE_WIDTH - self._min_offset * 4

    @property
    def max_us(self) -> int:
        """Longest pulse this servo is sent, in microseconds."""
        return MAX_PULSE_WIDTH - self._max_offset * 4

    @property
    def attached(self) -> bool:
        return self._valid and self._channel.active

    def attach(self, pin: int, min_us: int = MIN_PULSE_WIDTH, max_us: int = MAX_PULSE_WIDTH) -> int:
        """Drive ``pin`` from this channel, limiting pulses to ``[min_us, max_us]``.

        Returns the channel index, or :data:`INVALID_SERVO` if the bank was full.
        """
        if not self._valid:
            return self.index
        if not 0 <= pin <= _MAX_PIN:
            raise ValueError(f"pin {pin} out of range 0..{_MAX_PIN}")
        min_offset = _tdiv(MIN_PULSE_WIDTH - int(min_us), 4)
        max_offset = _tdiv(MAX_PULSE_WIDTH - int(max_us), 4)
        for name, offset in (("min_us", min_offset), ("max_us", max_offset)):
            if not -128 <= offset <= 127:
                raise ValueError(f"{name} too far from its default")

        self.bank._set_output(pin)
        channel = self._channel
        channel.pin = pin
        self._min_offset = min_offset
        self._max_offset = max_offset
        if not self.bank.is_timer_active(self.timer):
            self.bank._start_timer(self.timer)
        channel.active = True
        return self.index

    def detach(self) -> None:
        """Stop pulsing this servo's pin, stopping its timer if it was the last one."""
        if not self._valid:
            return
        self._channel.active = False
        if not self.bank.is_timer_active(self.timer):
            self.bank._stop_timer(self.timer)

    def write(self, value: int) -> None:
        """Set the angle in degrees; values of at least MIN_PULSE_WIDTH are microseconds."""
        value = int(value)
        if value < MIN_PULSE_WIDTH:
            value = min(max(value, 0), 180)
            value = map_range(value, 0, 180, self.min_us, self.max_us)
        self.write_microseconds(value)

    def write_microseconds(self, value: int) -> None:
        """Set the pulse width in microseconds, clamped to this servo's limits."""
        if not self._valid:
            return
        value = min(max(int(value), self.min_us), self.max_us)
        value -= self.bank.timing.trim_duration
        self._channel.ticks = self.bank.timing.us_to_ticks(value)

    def read(self) -> int:
        """Return the last written pulse width as an angle from 0 to 180."""
        return map_range(self.read_microseconds() + 1, self.min_us, self.max_us, 0, 180)

    def read_microseconds(self) -> int:
        """Return the last written pulse width in microseconds (0 for an invalid servo)."""
        if self.index == INVALID_SERVO:
            return 0
        timing = self.bank.timing
        return timing.ticks_to_us(self._channel.ticks) + timing.trim_duration