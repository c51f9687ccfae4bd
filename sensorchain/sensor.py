"""Sensor sources and the periodic sampler"""
import random
import threading
from dataclasses import dataclass
from datetime import datetime
from typing import Callable, Optional, Protocol

from sensorchain.middleware.monitoring import record_append
from sensorchain.utils.logger import logger

TIMESTAMP_FORMAT = "%Y-%m-%d %H:%M:%S"


@dataclass(frozen=True)
class Reading:
    timestamp: str
    value: str


class SensorSource(Protocol):
    def read(self) -> Reading:
        ...


def format_timestamp(moment: Optional[datetime] = None) -> str:
    return (moment or datetime.now()).strftime(TIMESTAMP_FORMAT)


class SimulatedSensor:
    """Temperature-like random walk around ``baseline``, clamped to [minimum, maximum]"""

    def __init__(
        self,
        baseline: float = 20.0,
        jitter: float = 0.5,
        minimum: float = -40.0,
        maximum: float = 85.0,
        clock: Callable[[], datetime] = datetime.now,
        rng: Optional[random.Random] = None,
    ):
        self.baseline = baseline
        self.jitter = jitter
        self.minimum = minimum
        self.maximum = maximum
        self.clock = clock
        self.rng = rng or random.Random()
        self._current = baseline

    def read(self) -> Reading:
        step = self.rng.uniform(-self.jitter, self.jitter)
        # Pull gently back towards the baseline so the walk does not drift off
        self._current += step + (self.baseline - self._current) * 0.1
        self._current = min(self.maximum, max(self.minimum, self._current))
        return Reading(timestamp=format_timestamp(self.clock()), value=f"{self._current:.1f}")


class Sampler:
    """Daemon thread appending one reading every ``interval`` seconds.

    A failed append is logged and counted; the sampler keeps running so a
    transient storage error does not stop data collection.
    """

    def __init__(self, ledger, sensor: SensorSource, interval: float):
        if interval <= 0:
            raise ValueError("interval must be positive")
        self.ledger = ledger
        self.sensor = sensor
        self.interval = interval
        self.failures = 0
        self.samples = 0
        self._stop = threading.Event()
        self._thread: Optional[threading.Thread] = None

    def sample_once(self):
        """Take one reading and append it. Returns the committed record."""
        reading = self.sensor.read()
        try:
            record = self.ledger.append(reading.timestamp, reading.value)
        except Exception:
            record_append("error")
            raise
        record_append("success")
        self.samples += 1
        return record

    def _run(self) -> None:
        logger.info("Sampler started", extra={"duration": self.interval})
        while not self._stop.wait(self.interval):
            try:
                self.sample_once()
            except Exception as exc:
                self.failures += 1
                logger.error(
                    "Sampling failed",
                    extra={"error": str(exc), "action": "sample"},
                    exc_info=True,
                )
        logger.info("Sampler stopped")

    @property
    def running(self) -> bool:
        return self._thread is not None and self._thread.is_alive()

    def start(self) -> None:
        if self.running:
            return
        self._stop.clear()
        self._thread = threading.Thread(target=self._run, name="sensorchain-sampler", daemon=True)
        self._thread.start()

    def stop(self, timeout: float = 5.0) -> None:
        self._stop.set()
        if self._thread is not None:
            self._thread.join(timeout)
            self._thread = None
