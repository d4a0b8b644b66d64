#!/usr/bin/env python3
"""
Device Simulator - Synthetic sensor board for running without hardware.

Produces exactly the lines the firmware writes over serial, so simulated data
goes through the same decode path as the real device:
- {"waveform": N} once per sample (20 Hz, N in 0-1023)
- {"bpm": X} once per simulated beat, at the start of the upstroke
- A plain-text banner line on startup, like the firmware's boot message

Features:
- Configurable BPM with clamping (40-180)
- Gaussian noise on the waveform
- Pulse shape: long diastolic baseline, fast upstroke, slower decay
"""

import asyncio
import json
import threading
from typing import Callable, List, Optional

import numpy as np

from heartlink.protocol import ADC_MIN, ADC_MAX

BPM_MIN = 40.0
BPM_MAX = 180.0

BANNER = "Heartlink simulated sensor ready"


class DeviceSimulator:
    """Emulated sensor board with controllable parameters.

    Args:
        bpm: Initial BPM (default: 75)
        noise_level: Gaussian noise std dev in ADC counts (default: 4.0)
        sample_rate_hz: Waveform lines per second (default: 20)
        baseline: Diastolic ADC value (default: 450)
        peak: Systolic ADC value (default: 800)
        seed: Optional RNG seed for reproducible noise
    """

    def __init__(
        self,
        bpm: float = 75.0,
        noise_level: float = 4.0,
        sample_rate_hz: float = 20.0,
        baseline: int = 450,
        peak: int = 800,
        seed: Optional[int] = None,
    ):
        self.bpm = max(BPM_MIN, min(BPM_MAX, bpm))
        self.noise_level = max(0.0, noise_level)
        self.sample_rate_hz = sample_rate_hz
        self.baseline = baseline
        self.peak = peak

        self.rng = np.random.default_rng(seed)
        self.lock = threading.Lock()

        # Phase accumulator within the cardiac cycle (0.0-1.0)
        self.phase = 0.0
        self.sample_count = 0
        self.beat_count = 0
        self._beat_pending = True
        self.running = False

    def set_bpm(self, bpm: float):
        """Set current BPM, clamped to 40-180 (thread-safe)."""
        with self.lock:
            self.bpm = max(BPM_MIN, min(BPM_MAX, bpm))

    def set_noise_level(self, noise_level: float):
        """Set noise level (std dev, thread-safe)."""
        with self.lock:
            self.noise_level = max(0.0, noise_level)

    @staticmethod
    def pulse_shape(phase: float) -> float:
        """Normalized pulse amplitude (0.0-1.0) at a phase of the cycle.

        - 0.00-0.10: fast upstroke (systole)
        - 0.10-0.35: slower decay back towards baseline
        - 0.35-1.00: baseline (diastole)
        """
        if phase < 0.10:
            return phase / 0.10
        if phase < 0.35:
            return 1.0 - (phase - 0.10) / 0.25
        return 0.0

    def next_lines(self) -> List[str]:
        """Advance one sample period and return the lines it produced.

        Returns:
            One waveform line, preceded by a bpm line when a new beat starts
        """
        with self.lock:
            lines = []
            if self._beat_pending:
                self._beat_pending = False
                self.beat_count += 1
                lines.append(json.dumps({"bpm": round(self.bpm, 1)}))

            sample = self.baseline + (self.peak - self.baseline) * self.pulse_shape(self.phase)
            if self.noise_level > 0:
                sample += self.rng.normal(0, self.noise_level)
            sample = int(np.clip(np.round(sample), ADC_MIN, ADC_MAX))
            lines.append(json.dumps({"waveform": sample}))

            self.sample_count += 1
            self.phase += (self.bpm / 60.0) / self.sample_rate_hz
            if self.phase >= 1.0:
                self.phase -= 1.0
                self._beat_pending = True
            return lines

    async def run(self, feed: Callable[[str], None]):
        """Emit lines into feed at the sample rate until stop() is called."""
        self.running = True
        loop = asyncio.get_running_loop()
        interval = 1.0 / self.sample_rate_hz
        next_time = loop.time()

        feed(BANNER)
        while self.running:
            for line in self.next_lines():
                feed(line)

            # Sleep with drift compensation
            next_time += interval
            await asyncio.sleep(max(0.0, next_time - loop.time()))

    def stop(self):
        self.running = False
