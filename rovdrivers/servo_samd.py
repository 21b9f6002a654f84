"""Servo pulse generation on the SAMD timer/counter peripheral.

The SAMD build drives servos from one 16-bit timer/counter (TC4, compare
channel 0) clocked at 48 MHz with a prescaler of 16, which gives 3000 ticks
per millisecond. The first compare match is scheduled 1 ms after a timer is
started. Channel walking and refresh timing are shared with
:class:`rovdrivers.servo.ServoBank`.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass

from rovdrivers.servo import Servo, ServoBank, ServoTiming, TimerUpdate

SAMD_CLOCK_MHZ = 48
SAMD_PRESCALE = 16
SAMD_TRIM_DURATION = 5

SAMD_TIMER_NAMES: tuple[str, ...] = ("timer1",)

SAMD_TIMING = ServoTiming(
    clock_mhz=SAMD_CLOCK_MHZ,
    prescale=SAMD_PRESCALE,
    trim_duration=SAMD_TRIM_DURATION,
)

_FIRST_INTERRUPT_US = 1000
_COUNTER_MASK = 0xFFFF


@dataclass(frozen=True)
class TimerConfig:
    """Which timer/counter and compare channel serve one servo timer."""

    counter: str
    channel: int


SAMD_TIMER_CONFIG: dict[int, TimerConfig] = {0: TimerConfig("TC4", 0)}


class SamdServoBank(ServoBank):
    """A servo bank on the SAMD timer/counter.

    ``compare_registers`` holds the last value written to each timer's
    compare register and ``enabled_timers`` the timers whose match
    interrupt is enabled.
    """

    def __init__(
        self,
        timing: ServoTiming | None = None,
        *,
        digital_write: Callable[[int, int], None] | None = None,
        pin_mode: Callable[[int], None] | None = None,
        on_timer_start: Callable[[int], None] | None = None,
        on_timer_stop: Callable[[int], None] | None = None,
    ) -> None:
        super().__init__(
            SAMD_TIMER_NAMES,
            timing if timing is not None else SAMD_TIMING,
            digital_write=digital_write,
            pin_mode=pin_mode,
            on_timer_start=on_timer_start,
            on_timer_stop=on_timer_stop,
        )
        self.compare_registers: dict[int, int] = {}
        self.enabled_timers: set[int] = set()

    def handle_interrupt(self, timer: int, counter: int) -> TimerUpdate:
        """Service a compare-match interrupt and store the new compare value."""
        update = super().handle_interrupt(timer, counter)
        self.compare_registers[timer] = update.compare
        return update

    def _start_timer(self, timer: int) -> None:
        first = self.timing.us_to_ticks(_FIRST_INTERRUPT_US) & _COUNTER_MASK
        self.compare_registers[timer] = first
        self.enabled_timers.add(timer)
        super()._start_timer(timer)

    def _stop_timer(self, timer: int) -> None:
        self.enabled_timers.discard(timer)
        super()._stop_timer(timer)


def samd_bank(servo_count: int = 0) -> tuple[SamdServoBank, list[Servo]]:
    """Create a SAMD servo bank together with ``servo_count`` servos on it.

    Servos beyond the bank's capacity get the invalid index, as on hardware.
    """
    if servo_count < 0:
        raise ValueError("servo_count must not be negative")
    bank = SamdServoBank()
    servos = [bank.create_servo() for _ in range(servo_count)]
    return bank, servos