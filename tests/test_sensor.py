"""Tests for the simulated sensor and the periodic sampler"""
import random
import time
from datetime import datetime

import pytest

from sensorchain.ledger.errors import StorageError
from sensorchain.ledger.verifier import Verified
from sensorchain.sensor import Reading, Sampler, SimulatedSensor, format_timestamp


def fixed_clock():
    return datetime(2024, 1, 1, 12, 30, 0)


def wait_for(predicate, timeout=5.0):
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if predicate():
            return True
        time.sleep(0.01)
    return False


def test_format_timestamp():
    """Test timestamps use the log's datetime format"""
    assert format_timestamp(datetime(2024, 1, 1, 0, 0, 5)) == "2024-01-01 00:00:05"


def test_simulated_sensor_reading_shape():
    """Test readings carry a formatted timestamp and a one-decimal value"""
    sensor = SimulatedSensor(clock=fixed_clock, rng=random.Random(1))
    reading = sensor.read()
    assert reading.timestamp == "2024-01-01 12:30:00"
    _, _, decimals = reading.value.partition(".")
    assert len(decimals) == 1
    assert "," not in reading.value


def test_simulated_sensor_is_reproducible():
    """Test a seeded sensor produces the same walk"""
    first = SimulatedSensor(clock=fixed_clock, rng=random.Random(42))
    second = SimulatedSensor(clock=fixed_clock, rng=random.Random(42))
    assert [first.read() for _ in range(5)] == [second.read() for _ in range(5)]


def test_simulated_sensor_stays_in_bounds():
    """Test the walk is clamped to the configured range"""
    sensor = SimulatedSensor(baseline=0.0, jitter=50.0, minimum=-1.0, maximum=1.0, rng=random.Random(7))
    for _ in range(200):
        assert -1.0 <= float(sensor.read().value) <= 1.0


def test_sampler_rejects_bad_interval(ledger):
    """Test sampling needs a positive interval"""
    with pytest.raises(ValueError):
        Sampler(ledger, SimulatedSensor(), 0)


def test_sample_once_appends(ledger):
    """Test one sample becomes one committed record"""
    sampler = Sampler(ledger, SimulatedSensor(clock=fixed_clock, rng=random.Random(3)), interval=1.0)
    record = sampler.sample_once()
    assert record.timestamp == "2024-01-01 12:30:00"
    assert sampler.samples == 1
    assert ledger.verify() == Verified(length=1, tip=record.entry_hash)


def test_sampler_thread_appends_periodically(ledger):
    """Test the background sampler keeps extending a valid chain"""
    sampler = Sampler(ledger, SimulatedSensor(), interval=0.01)
    sampler.start()
    try:
        assert sampler.running
        assert wait_for(lambda: sampler.samples >= 3)
    finally:
        sampler.stop()

    assert not sampler.running
    result = ledger.verify()
    assert isinstance(result, Verified)
    assert result.length == sampler.samples


class BrokenLedger:
    def append(self, timestamp, value):
        raise StorageError("disk full")


class ConstantSensor:
    def read(self):
        return Reading(timestamp="2024-01-01 00:00:00", value="20.0")


def test_sampler_survives_failures():
    """Test failed appends are counted and sampling continues"""
    sampler = Sampler(BrokenLedger(), ConstantSensor(), interval=0.01)
    sampler.start()
    try:
        assert wait_for(lambda: sampler.failures >= 2)
        assert sampler.running
    finally:
        sampler.stop()
    assert sampler.samples == 0
