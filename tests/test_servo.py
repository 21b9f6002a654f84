import pytest

from rovdrivers.servo import (
    AVR_BOARD_TIMERS,
    AVR_TRIM_DURATION,
    DEFAULT_PULSE_WIDTH,
    HIGH,
    INVALID_SERVO,
    LOW,
    MAX_PULSE_WIDTH,
    MIN_PULSE_WIDTH,
    REFRESH_INTERVAL,
    SERVOS_PER_TIMER,
    Servo,
    ServoBank,
    ServoTiming,
    map_range,
)


def test_map_range_endpoints_and_midpoint():
    assert map_range(0, 0, 180, MIN_PULSE_WIDTH, MAX_PULSE_WIDTH) == MIN_PULSE_WIDTH
    assert map_range(180, 0, 180, MIN_PULSE_WIDTH, MAX_PULSE_WIDTH) == MAX_PULSE_WIDTH
    assert map_range(90, 0, 180, MIN_PULSE_WIDTH, MAX_PULSE_WIDTH) == 1472


def test_map_range_truncates_toward_zero():
    assert map_range(-1, 0, 10, 0, 3) == 0


def test_map_range_zero_width_input_raises():
    with pytest.raises(ZeroDivisionError):
        map_range(5, 3, 3, 0, 10)


@pytest.mark.parametrize("us", [MIN_PULSE_WIDTH, DEFAULT_PULSE_WIDTH, MAX_PULSE_WIDTH])
def test_timing_round_trip(us):
    timing = ServoTiming()
    assert timing.ticks_to_us(timing.us_to_ticks(us)) == us


def test_bank_sizes():
    bank = ServoBank(AVR_BOARD_TIMERS["atmega2560"])
    assert bank.timer_count == 3
    assert bank.max_servos == 3 * SERVOS_PER_TIMER


def test_create_servo_assigns_sequential_indices():
    bank = ServoBank()
    servos = [bank.create_servo() for _ in range(3)]
    assert [s.index for s in servos] == [0, 1, 2]
    assert bank.servo_count == 3


def test_full_bank_gives_invalid_servo():
    bank = ServoBank()
    for _ in range(bank.max_servos):
        bank.create_servo()
    extra = bank.create_servo()
    assert extra.index == INVALID_SERVO
    assert extra.attach(3) == INVALID_SERVO
    assert extra.attached is False
    assert extra.read_microseconds() == 0
    assert bank.servo_count == bank.max_servos


def test_new_servo_reads_default_pulse_plus_trim():
    servo = Servo(ServoBank())
    assert servo.read_microseconds() == DEFAULT_PULSE_WIDTH + AVR_TRIM_DURATION


def test_write_microseconds_round_trip():
    servo = Servo(ServoBank())
    servo.attach(9)
    servo.write_microseconds(DEFAULT_PULSE_WIDTH)
    assert servo.read_microseconds() == DEFAULT_PULSE_WIDTH


def test_write_microseconds_clamps_to_limits():
    servo = Servo(ServoBank())
    servo.attach(9, 1000, 2000)
    servo.write_microseconds(5000)
    assert servo.read_microseconds() == 2000
    servo.write_microseconds(600)
    assert servo.read_microseconds() == 1000


@pytest.mark.parametrize(
    "angle, expected",
    [(0, MIN_PULSE_WIDTH), (-10, MIN_PULSE_WIDTH), (180, MAX_PULSE_WIDTH), (300, MAX_PULSE_WIDTH)],
)
def test_write_angle_clamps(angle, expected):
    servo = Servo(ServoBank())
    servo.attach(4)
    servo.write(angle)
    assert servo.read_microseconds() == expected


def test_write_large_value_is_microseconds():
    servo = Servo(ServoBank())
    servo.attach(4)
    servo.write(1000)
    assert servo.read_microseconds() == 1000


@pytest.mark.parametrize("angle", [0, 45, 90, 135, 180])
def test_angle_round_trip(angle):
    servo = Servo(ServoBank())
    servo.attach(4)
    servo.write(angle)
    assert servo.read() == angle


def test_attach_sets_limits_and_output_pin():
    bank = ServoBank()
    servo = bank.create_servo()
    assert servo.attach(7, 1000, 2000) == servo.index
    assert servo.min_us == 1000
    assert servo.max_us == 2000
    assert servo.attached is True
    assert 7 in bank.output_pins


def test_attach_rejects_bad_pin_and_limits():
    servo = Servo(ServoBank())
    with pytest.raises(ValueError):
        servo.attach(64)
    with pytest.raises(ValueError):
        servo.attach(3, MIN_PULSE_WIDTH - 4 * 200, MAX_PULSE_WIDTH)
    assert servo.attached is False


def test_timer_started_once_and_stopped_after_last_detach():
    started, stopped = [], []
    bank = ServoBank(on_timer_start=started.append, on_timer_stop=stopped.append)
    first, second = bank.create_servo(), bank.create_servo()
    first.attach(2)
    second.attach(3)
    assert started == [0]
    assert bank.is_timer_active(0)
    first.detach()
    assert stopped == []
    second.detach()
    assert stopped == [0]
    assert not bank.is_timer_active(0)


def test_servos_spread_across_timers():
    bank = ServoBank(AVR_BOARD_TIMERS["atmega2560"])
    servos = [bank.create_servo() for _ in range(SERVOS_PER_TIMER + 1)]
    servos[-1].attach(5)
    assert servos[-1].timer == 1
    assert bank.is_timer_active(1)
    assert not bank.is_timer_active(0)


def test_is_timer_active_rejects_unknown_timer():
    bank = ServoBank()
    with pytest.raises(ValueError):
        bank.is_timer_active(1)
    with pytest.raises(ValueError):
        bank.handle_interrupt(5, 0)


def test_interrupt_cycle_pulses_pins_in_turn():
    writes = []
    bank = ServoBank(digital_write=lambda pin, level: writes.append((pin, level)))
    a, b = bank.create_servo(), bank.create_servo()
    a.attach(3)
    b.attach(5)
    b.write_microseconds(2000)
    ticks_a = bank.timing.us_to_ticks(DEFAULT_PULSE_WIDTH)
    ticks_b = bank.timing.us_to_ticks(2000 - AVR_TRIM_DURATION)
    refresh = bank.timing.us_to_ticks(REFRESH_INTERVAL)

    update = bank.handle_interrupt(0, 100)
    assert update.counter == 100
    assert update.compare == 100 + ticks_b
    assert writes == [(3, LOW), (5, HIGH)]

    update = bank.handle_interrupt(0, 100 + ticks_b)
    assert update.compare == refresh
    assert bank.pin_levels[5] == LOW

    update = bank.handle_interrupt(0, refresh)
    assert update.counter == 0
    assert update.compare == ticks_a
    assert bank.pin_levels[3] == HIGH


def test_interrupt_late_refresh_adds_margin():
    bank = ServoBank()
    refresh = bank.timing.us_to_ticks(REFRESH_INTERVAL)
    update = bank.handle_interrupt(0, refresh)
    assert update.compare == refresh + 4


def test_interrupt_skips_inactive_servo_pins():
    bank = ServoBank()
    bank.create_servo()
    bank.create_servo()
    bank.handle_interrupt(0, 0)
    assert bank.pin_levels == {}


def test_detach_invalid_servo_is_harmless():
    bank = ServoBank()
    for _ in range(bank.max_servos):
        bank.create_servo().attach(1)
    extra = bank.create_servo()
    extra.detach()
    assert bank.is_timer_active(0)
    assert extra.index == INVALID_SERVO