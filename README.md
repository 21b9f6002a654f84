# rovdrivers

Drivers and helpers for the peripherals of an underwater vehicle controller.
The drivers are plain Python state machines that talk to devices through an
`I2CBus` object. The `I2CBus` class shipped here is an in-memory bus, so the
drivers can be exercised without hardware; a hardware backend subclasses it
and overrides its transaction methods.

## Contents

- `rovdrivers.orutil`
  - `ResultCount`: per-result counters plus an error count for results above a
    threshold (`add_result`, `count`, `error_count`, `clear`, `clear_result`).
  - `Timer`: a 32-bit millisecond timer (`now`, `has_elapsed`, `reset`) that
    takes an optional clock function.
  - `I2CBus` and `I2CError`: the in-memory bus (`write_byte`,
    `write_register_byte`, `read_register_byte`, `read_register_bytes`,
    `lock_address`, `free_address`). Addresses without a device, and short
    reads, raise `I2CError`. Every write is recorded in `bus.writes`.
  - `encode_1k` / `decode_1k` fixed-point helpers, and `normalize_angle_360` /
    `normalize_angle_180`.
- `rovdrivers.vector3`: `dot_product` and `cross_product` for 3-vectors.
- `rovdrivers.quaternion`: `norm`, `normalize`, `conjugate`, `multiply`,
  `euler_to_quaternion` and `quaternion_to_euler` on `(w, x, y, z)` tuples.
- `rovdrivers.ms5803`: the `MS5803_14BA` pressure and temperature sensor
  (built on `PressureSensor`). It resets the device, reads the eight PROM
  calibration words with a CRC-4 check (`crc4`), runs pressure and temperature
  conversions at a chosen `OversampleRate`, applies second-order compensation
  (`compensate`) and derives depth for `WaterType.FRESH` or `WaterType.SALT`.
  Failures are counted by `Result` code (`result_count`, `clear_result_count`,
  `error_count`) and trigger retries rather than exceptions.
- `rovdrivers.servo`: `ServoBank`, `Servo`, `ServoTiming`, `TimerUpdate` and
  `map_range`. A bank holds the channel table for up to twelve servos per
  timer; `handle_interrupt(timer, counter)` performs one compare-match step,
  driving pins high and low and returning the new counter and compare values.
  `AVR_BOARD_TIMERS` lists the timer order for each supported board.
- `rovdrivers.servo_samd`: `SamdServoBank` with SAMD timing (48 MHz, prescale
  16, trim 5) and `samd_bank(servo_count)` to build a bank with servos.

## Install

```
pip install .
```

To run the test suite:

```
pip install .[test]
pytest
```

## Example

Call `tick()` regularly. Each call moves the sensor's state machine forward:
reset, read calibration, convert pressure, convert temperature, then process.

```python
from rovdrivers.ms5803 import MS5803_14BA, Address, WaterType

sensor = MS5803_14BA(bus, Address.ADDRESS_A)   # bus is an I2CBus or a subclass
sensor.set_water_type(WaterType.SALT)

while True:
    sensor.tick()
    if sensor.data.sample_available():
        print(sensor.data.temperature_c, sensor.data.pressure_mbar, sensor.data.depth_m)
```

Servos:

```python
from rovdrivers.servo import ServoBank

bank = ServoBank()
servo = bank.create_servo()
servo.attach(9)
servo.write(90)              # degrees; values >= 544 are taken as microseconds
print(servo.read_microseconds())
```

## What this package does not do

- It has no hardware I2C backend and no real timer interrupts: `I2CBus` is an
  in-memory model, and servo interrupts happen only when you call
  `handle_interrupt`.
- It has no driver for a GPIO expander, no driver for the 30-bar pressure
  sensor variant, and no motion-processor key or memory tables; only the
  quaternion and vector math for orientation is included.