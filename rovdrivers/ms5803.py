"""Driver for the MS5803-14BA pressure and temperature sensor.

The sensor is run as a non-blocking state machine: call :meth:`PressureSensor.tick`
often, and pick up new readings from ``sensor.data`` once
``sensor.data.sample_available()`` returns True.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, field
from enum import Enum, IntEnum, auto

from rovdrivers.orutil import I2CBus, I2CError, ResultCount, Timer

I2C_ADDRESS_A = 0x76
I2C_ADDRESS_B = 0x77

CMD_ADC_READ = 0x00
CMD_RESET = 0x1E
CMD_PROM_READ_BASE = 0xA0
CMD_PRES_CONV_BASE = 0x40
CMD_TEMP_CONV_BASE = 0x40 + 0x10

WATER_MOD_FRESH = 1.019716
WATER_MOD_SALT = 0.9945

RETRY_DELAY_MS = 1000
RESET_DELAY_MS = 10

POW_2_7 = 1 << 7
POW_2_8 = 1 << 8
POW_2_13 = 1 << 13
POW_2_15 = 1 << 15
POW_2_16 = 1 << 16
POW_2_21 = 1 << 21
POW_2_23 = 1 << 23
POW_2_33 = 1 << 33
POW_2_37 = 1 << 37

SEA_LEVEL_MBAR = 1013.25


class Address(Enum):
    """Which of the two bus addresses the sensor is strapped to."""

    ADDRESS_A = auto()
    ADDRESS_B = auto()

    @property
    def i2c_address(self) -> int:
        return I2C_ADDRESS_A if self is Address.ADDRESS_A else I2C_ADDRESS_B


class WaterType(IntEnum):
    FRESH = 0
    SALT = 1


class State(IntEnum):
    UNINITIALIZED = 0
    DISABLED = 1
    DELAY = 2
    READING_CALIB_DATA = 3
    CONVERTING_PRESSURE = 4
    CONVERTING_TEMPERATURE = 5
    PROCESSING_DATA = 6


class Result(IntEnum):
    """Outcome codes; anything above SUCCESS is an error."""

    SUCCESS = 0
    ERR_HARD_RESET = 1
    ERR_FAILED_SEQUENCE = 2
    ERR_I2C_TRANSACTION = 3
    ERR_CRC_MISMATCH = 4


class OversampleRate(IntEnum):
    OSR_256_SAMPLES = 0
    OSR_512_SAMPLES = 1
    OSR_1024_SAMPLES = 2
    OSR_2048_SAMPLES = 3
    OSR_4096_SAMPLES = 4


@dataclass(frozen=True)
class OversampleInfo:
    """Command modifier and conversion time for one oversampling rate."""

    command_mod: int
    conversion_time_ms: int


OSR_INFO: Mapping[int, OversampleInfo] = {
    OversampleRate.OSR_256_SAMPLES: OversampleInfo(0x00, 1),
    OversampleRate.OSR_512_SAMPLES: OversampleInfo(0x02, 2),
    OversampleRate.OSR_1024_SAMPLES: OversampleInfo(0x04, 3),
    OversampleRate.OSR_2048_SAMPLES: OversampleInfo(0x06, 5),
    OversampleRate.OSR_4096_SAMPLES: OversampleInfo(0x08, 10),
}


@dataclass
class SensorData:
    """The latest compensated sample."""

    temperature_c: float = 0.0
    pressure_mbar: float = 0.0
    depth_m: float = 0.0
    _available: bool = field(default=False, repr=False, compare=False)

    def sample_available(self) -> bool:
        """Return True once for each new sample, then False until the next one."""
        if self._available:
            self._available = False
            return True
        return False

    def update(self, temperature: float, pressure: float, water_mod: float) -> None:
        """Store a new sample and derive depth from it."""
        self.temperature_c = temperature
        self.pressure_mbar = pressure
        self.depth_m = (pressure - SEA_LEVEL_MBAR) * water_mod / 100.0
        self._available = True


def crc4(coefficients: Sequence[int]) -> int:
    """Return the 4-bit CRC of eight PROM words.

    The low nibble of the last word holds the stored CRC and is treated as zero.
    """
    words = [int(w) & 0xFFFF for w in coefficients]
    if len(words) != 8:
        raise ValueError(f"expected 8 calibration words, got {len(words)}")
    words[7] &= 0xFFF0
    remainder = 0
    for word in words:
        for byte in (word >> 8, word & 0xFF):
            remainder ^= byte
            for _ in range(8):
                if remainder & 0x8000:
                    remainder = (remainder << 1) ^ 0x3000
                else:
                    remainder <<= 1
    return (remainder >> 12) & 0x000F


def _tdiv(numerator: int, denominator: int) -> int:
    """Integer division that truncates toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return quotient if (numerator >= 0) == (denominator > 0) else -quotient


class PressureSensor:
    """State-machine driver shared by the MS58xx family of pressure sensors.

    The class attributes describe the model; the defaults are those of the
    MS5803-14BA.
    """

    oversample_table: Mapping[int, OversampleInfo] = OSR_INFO
    calibration_word_count = 8
    high_temperature_factor = 7
    pressure_divisor = POW_2_15

    def __init__(
        self,
        bus: I2CBus,
        address: Address = Address.ADDRESS_A,
        clock: Callable[[], int] | None = None,
    ) -> None:
        self._bus = bus
        self.address = Address(address).i2c_address
        self.data = SensorData()
        self._osr: int = OversampleRate.OSR_256_SAMPLES
        self._water_type = WaterType.FRESH
        self._water_mod = WATER_MOD_FRESH
        self._enabled = True
        self._state = State.UNINITIALIZED
        self._timer = Timer(clock)
        self._next_state = State.UNINITIALIZED
        self._delay_ms = 0
        self._results = ResultCount(len(Result), Result.SUCCESS)
        self._coeffs = [0] * 8

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    @property
    def state(self) -> State:
        return self._state

    @property
    def enabled(self) -> bool:
        return self._enabled

    @property
    def water_type(self) -> WaterType:
        return self._water_type

    @property
    def water_mod(self) -> float:
        return self._water_mod

    @property
    def oversample_rate(self) -> int:
        return self._osr

    @property
    def coefficients(self) -> tuple[int, ...]:
        return tuple(self._coeffs)

    @property
    def update_period(self) -> int:
        """Milliseconds for one full sample: two conversion periods."""
        return 2 * self._conversion_time()

    @property
    def error_count(self) -> int:
        return self._results.error_count()

    def tick(self) -> None:
        """Advance the state machine by one step."""
        state = self._state
        if state is State.DELAY:
            if self._timer.has_elapsed(self._delay_ms):
                self._transition(self._next_state)
        elif state is State.CONVERTING_PRESSURE:
            if self._start_conversion(CMD_PRES_CONV_BASE):
                self._delayed_transition(State.CONVERTING_TEMPERATURE, self._conversion_time())
            else:
                self._failed_sequence()
        elif state is State.CONVERTING_TEMPERATURE:
            pressure = self._read_adc()
            if pressure is not None and self._start_conversion(CMD_TEMP_CONV_BASE):
                self._d1 = pressure
                self._delayed_transition(State.PROCESSING_DATA, self._conversion_time())
            else:
                if pressure is not None:
                    self._d1 = pressure
                self._failed_sequence()
        elif state is State.PROCESSING_DATA:
            temperature = self._read_adc()
            if temperature is None:
                self._transition(State.CONVERTING_PRESSURE)
                self._results.add_result(Result.ERR_FAILED_SEQUENCE)
            else:
                self._d2 = temperature
                temp_c, pressure_mbar = self.compensate(self._d1, self._d2)
                self.data.update(temp_c, pressure_mbar, self._water_mod)
                self._transition(State.CONVERTING_PRESSURE)
        elif state is State.UNINITIALIZED:
            if self._write(CMD_RESET):
                self._delayed_transition(State.READING_CALIB_DATA, RESET_DELAY_MS)
            else:
                self.hard_reset()
        elif state is State.READING_CALIB_DATA:
            if self._read_calibration_data():
                self._transition(State.CONVERTING_PRESSURE)
            else:
                self.hard_reset()

    def hard_reset(self) -> None:
        """Restart initialisation after a delay, counting the reset."""
        self._delayed_transition(State.UNINITIALIZED, RETRY_DELAY_MS)
        self._results.add_result(Result.ERR_HARD_RESET)
        self.clear_result_count(Result.ERR_FAILED_SEQUENCE)

    def full_reset(self) -> None:
        """Restart initialisation after a delay, clearing statistics and re-enabling."""
        self._delayed_transition(State.UNINITIALIZED, RETRY_DELAY_MS)
        self._results.clear()
        self._enabled = True

    def disable(self) -> None:
        """Stop the state machine until :meth:`full_reset`."""
        self._transition(State.DISABLED)
        self._enabled = False

    def lock(self) -> bool:
        """Claim the sensor's bus address; False if it is already claimed."""
        return self._bus.lock_address(self.address)

    def free_lock(self) -> None:
        """Release the sensor's bus address."""
        self._bus.free_address(self.address)

    def set_oversample_rate(self, rate: int) -> None:
        """Change the oversampling rate and restart the sensor."""
        if rate not in self.oversample_table:
            raise ValueError(f"unsupported oversample rate {rate!r}")
        self._osr = rate
        self._transition(State.UNINITIALIZED)

    def set_water_type(self, water_type: WaterType) -> None:
        """Choose the water density used for depth."""
        self._water_type = WaterType(water_type)
        self._water_mod = (
            WATER_MOD_FRESH if self._water_type is WaterType.FRESH else WATER_MOD_SALT
        )

    def result_count(self, result: Result) -> int:
        return self._results.count(result)

    def clear_result_count(self, result: Result) -> None:
        self._results.clear_result(result)

    def compensate(self, d1: int, d2: int) -> tuple[float, float]:
        """Return ``(temperature_c, pressure_mbar)`` from raw pressure and temperature.

        Uses the calibration words last read from the sensor.
        """
        c = self._coeffs
        dt = d2 - c[5] * POW_2_8
        temp = 2000 + _tdiv(dt * c[6], POW_2_23)
        off = c[2] * POW_2_16 + _tdiv(c[4] * dt, POW_2_7)
        sens = c[1] * POW_2_15 + _tdiv(c[3] * dt, POW_2_8)

        if temp < 2000:
            ti = _tdiv(3 * dt * dt, POW_2_33)
            offi = _tdiv(3 * (temp - 2000) ** 2, 2)
            sensi = _tdiv(5 * (temp - 2000) ** 2, 8)
            if temp < -1500:
                offi += 7 * (temp + 1500) ** 2
                sensi += 4 * (temp + 1500) ** 2
        else:
            ti = _tdiv(self.high_temperature_factor * dt * dt, POW_2_37)
            offi = _tdiv((temp - 2000) ** 2, 16)
            sensi = 0

        off2 = off - offi
        sens2 = sens - sensi
        temp2 = temp - ti
        pressure = _tdiv(_tdiv(d1 * sens2, POW_2_21) - off2, self.pressure_divisor)
        return temp2 / 100.0, pressure / 10.0

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    _d1 = 0
    _d2 = 0

    def _conversion_time(self) -> int:
        return self.oversample_table[self._osr].conversion_time_ms

    def _transition(self, state: State) -> None:
        self._state = state

    def _delayed_transition(self, next_state: State, delay_ms: int) -> None:
        self._state = State.DELAY
        self._next_state = next_state
        self._delay_ms = delay_ms
        self._timer.reset()

    def _failed_sequence(self) -> None:
        self._delayed_transition(State.CONVERTING_PRESSURE, self._conversion_time())
        self._results.add_result(Result.ERR_FAILED_SEQUENCE)

    def _write(self, command: int) -> bool:
        try:
            self._bus.write_byte(self.address, command)
        except I2CError:
            self._results.add_result(Result.ERR_I2C_TRANSACTION)
            return False
        return True

    def _read(self, register: int, count: int) -> bytes | None:
        try:
            return self._bus.read_register_bytes(self.address, register, count)
        except I2CError:
            self._results.add_result(Result.ERR_I2C_TRANSACTION)
            return None

    def _start_conversion(self, base: int) -> bool:
        return self._write(base + self.oversample_table[self._osr].command_mod)

    def _read_adc(self) -> int | None:
        raw = self._read(CMD_ADC_READ, 3)
        return None if raw is None else int.from_bytes(raw[:3], "big")

    def _read_calibration_data(self) -> bool:
        for index in range(self.calibration_word_count):
            raw = self._read(CMD_PROM_READ_BASE + index * 2, 2)
            if raw is None:
                return False
            self._coeffs[index] = int.from_bytes(raw[:2], "big")
        if self._crc_matches(self._coeffs):
            return True
        self._results.add_result(Result.ERR_CRC_MISMATCH)
        return False

    def _crc_matches(self, coefficients: Sequence[int]) -> bool:
        return (coefficients[7] & 0x000F) == crc4(coefficients)


class MS5803_14BA(PressureSensor):
    """The 14-bar MS5803 sensor."""

    oversample_table = OSR_INFO
    calibration_word_count = 8
    high_temperature_factor = 7
    pressure_divisor = POW_2_15

    def compensate(self, d1: int, d2: int) -> tuple[float, float]:
        """Apply the 14-bar second-order compensation; see :meth:`PressureSensor.compensate`."""
        return super().compensate(d1, d2)