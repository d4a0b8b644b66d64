#!/usr/bin/env python3
"""
Heart Monitor - Wires the stream client to the waveform and the heart.

Responsibilities:
- Route samples: amplitude -> RollingWaveformBuffer, bpm -> PulsePresenter
- Device liveness: a watchdog marks the sensor offline when no sample has
  arrived for 5s, regardless of the WebSocket state
- Tri-state status derived from transport state and liveness:
    CONNECTED       transport open and samples arriving
    TRANSPORT_ONLY  transport open but the device is silent
    DISCONNECTED    no transport
- Simulation mode: synthetic waveform, BPM re-drawn in 70-80 every second,
  self-timed heart beats; reported as CONNECTED

Beat edges: the firmware writes a bpm value once per detected beat, so a
sample carrying bpm is treated as a beat edge.

USAGE:
    monitor = HeartMonitor(ReconnectingStreamClient(url))
    await monitor.run()        # connects and checks liveness until stop()
    # every frame:
    monitor.tick()
"""

import asyncio
import enum
import time
from typing import Callable, Optional

import numpy as np

from heartlink.client import ReconnectingStreamClient
from heartlink.decoder import HeartbeatSample
from heartlink.log import get_logger
from heartlink.presenter import PulsePresenter
from heartlink.protocol import DEVICE_TIMEOUT_S
from heartlink.waveform import RollingWaveformBuffer

logger = get_logger(__name__)

# How often run() re-evaluates the watchdog
CHECK_INTERVAL_S = 0.5

SIMULATED_BPM_MIN = 70.0
SIMULATED_BPM_SPAN = 10.0
SIMULATED_BPM_PERIOD_S = 1.0


class MonitorStatus(enum.Enum):
    CONNECTED = "connected"
    TRANSPORT_ONLY = "transport_only"
    DISCONNECTED = "disconnected"

    @property
    def label(self) -> str:
        return STATUS_LABELS[self]


STATUS_LABELS = {
    MonitorStatus.CONNECTED: "Connected",
    MonitorStatus.TRANSPORT_ONLY: "Connected (device offline)",
    MonitorStatus.DISCONNECTED: "Disconnected",
}


class DeviceWatchdog:
    """Liveness signal for the sensor, layered above the transport.

    Attributes:
        timeout (float): Seconds without a sample before going offline
        online (bool): True between a feed() and the next timeout
        last_sample_time (float): Clock value of the last feed()
    """

    def __init__(self, timeout: float = DEVICE_TIMEOUT_S,
                 clock: Callable[[], float] = time.monotonic) -> None:
        self.timeout = timeout
        self.clock = clock
        self.online = False
        self.last_sample_time: Optional[float] = None

    def feed(self, now: Optional[float] = None) -> bool:
        """Record a sample; True if this brought the device online."""
        self.last_sample_time = self.clock() if now is None else now
        if self.online:
            return False
        self.online = True
        return True

    def check(self, now: Optional[float] = None) -> bool:
        """Expire liveness; True if the device just went offline."""
        if not self.online:
            return False
        now = self.clock() if now is None else now
        if now - self.last_sample_time < self.timeout:
            return False
        self.online = False
        logger.warning(f"No sensor data for {self.timeout:.1f}s, device offline")
        return True

    def reset(self) -> None:
        self.online = False
        self.last_sample_time = None


class HeartMonitor:
    """Client-side application core: samples in, display state out.

    Attributes:
        client (ReconnectingStreamClient): Transport to the bridge
        waveform (RollingWaveformBuffer): Rolling plot data
        presenter (PulsePresenter): Heart animation
        watchdog (DeviceWatchdog): Sensor liveness
        current_bpm (float): Last BPM received (or simulated)
        simulating (bool): Simulation mode active
    """

    def __init__(self, client: ReconnectingStreamClient,
                 waveform: Optional[RollingWaveformBuffer] = None,
                 presenter: Optional[PulsePresenter] = None,
                 watchdog: Optional[DeviceWatchdog] = None,
                 on_status: Optional[Callable[[MonitorStatus], None]] = None,
                 clock: Callable[[], float] = time.monotonic,
                 seed: Optional[int] = None) -> None:
        self.client = client
        self.waveform = waveform if waveform is not None else RollingWaveformBuffer()
        self.presenter = presenter if presenter is not None else PulsePresenter()
        self.watchdog = watchdog if watchdog is not None else DeviceWatchdog(clock=clock)
        self.on_status = on_status
        self.clock = clock

        self.current_bpm: Optional[float] = None
        self.simulating = False
        self.sample_count = 0

        self._rng = np.random.default_rng(seed)
        self._next_bpm_change: Optional[float] = None
        self._status = MonitorStatus.DISCONNECTED
        self._running = False

        client.on_message(self.handle_sample)
        client.on_connect(self._refresh_status)
        client.on_disconnect(self._on_disconnect)

    @property
    def status(self) -> MonitorStatus:
        if self.simulating:
            return MonitorStatus.CONNECTED
        if not self.client.connected:
            return MonitorStatus.DISCONNECTED
        if self.watchdog.online:
            return MonitorStatus.CONNECTED
        return MonitorStatus.TRANSPORT_ONLY

    def handle_sample(self, sample: HeartbeatSample, now: Optional[float] = None) -> None:
        """Route one sample from the bridge."""
        if self.simulating:
            return
        now = self.clock() if now is None else now
        self.sample_count += 1
        self.watchdog.feed(now)

        if sample.amplitude is not None:
            self.waveform.push(sample.amplitude)

        # A zero BPM line means no pulse was detected, not a beat
        if sample.bpm is not None and sample.bpm > 0:
            self.current_bpm = sample.bpm
            self.presenter.set_rate(sample.bpm)
            self.presenter.trigger(now * 1000.0)

        self._refresh_status()

    def check(self, now: Optional[float] = None) -> MonitorStatus:
        """Run the liveness watchdog and refresh the status."""
        self.watchdog.check(now)
        self._refresh_status()
        return self._status

    def tick(self, now: Optional[float] = None) -> float:
        """Per-frame step: simulation input plus heart animation.

        Returns:
            Current heart scale
        """
        now = self.clock() if now is None else now
        if self.simulating:
            if self._next_bpm_change is None or now >= self._next_bpm_change:
                self.current_bpm = SIMULATED_BPM_MIN + self._rng.random() * SIMULATED_BPM_SPAN
                self.presenter.set_rate(self.current_bpm)
                self._next_bpm_change = now + SIMULATED_BPM_PERIOD_S
            self.waveform.simulate(self.current_bpm, now)
        return self.presenter.update(now * 1000.0)

    def simulate(self, enabled: Optional[bool] = None) -> bool:
        """Switch simulation mode (toggle when enabled is None)."""
        if enabled is None:
            enabled = not self.simulating
        if enabled == self.simulating:
            return self.simulating

        self.simulating = enabled
        self.presenter.self_timed = enabled
        self._next_bpm_change = None
        if enabled:
            logger.info("Simulation started")
        else:
            self.current_bpm = None
            self.waveform.clear()
            logger.info("Simulation stopped")
        self._refresh_status()
        return self.simulating

    async def run(self, check_interval: float = CHECK_INTERVAL_S) -> None:
        """Connect and evaluate liveness until stop() is called."""
        self._running = True
        self.client.connect()
        try:
            while self._running:
                self.check()
                await asyncio.sleep(check_interval)
        finally:
            self.client.disconnect()
            await self.client.wait_closed()

    def stop(self) -> None:
        self._running = False

    def _on_disconnect(self) -> None:
        self.watchdog.reset()
        self._refresh_status()

    def _refresh_status(self) -> None:
        status = self.status
        if status is self._status:
            return
        self._status = status
        logger.info(f"Status: {status.label}")
        if self.on_status:
            self.on_status(status)
