#!/usr/bin/env python3
"""
Rolling Waveform Buffer - Fixed-size sample window with adaptive auto-scale.

ALGORITHM:
- Buffer is primed with `capacity` copies of the neutral midpoint (512), so
  the rendered line starts flat and its length never changes afterwards
- push(): append, evict the oldest sample (FIFO), then update the running
  range. A sample outside the range moves the bound to it immediately; a
  sample inside pulls each bound towards it by 2% (0.98 old + 0.02 new).
  Expansion is instant and contraction is slow, so the scale does not flicker
  on bursty input but still follows baseline drift
- Effective display range: running bounds when they are more than 50 counts
  apart, otherwise both bounds padded outward by 25 so near-flat input is not
  amplified into noise

USAGE:
    buffer = RollingWaveformBuffer()
    buffer.push(sample.amplitude)
    frame = buffer.render()
    xs, ys = frame.to_points(width=800, height=200)
"""

import math
from collections import deque
from dataclasses import dataclass
from typing import Tuple

import numpy as np

from heartlink.protocol import ADC_MIN, ADC_MAX, ADC_MIDPOINT

DEFAULT_CAPACITY = 100

# Auto-scale decay split (retained / pulled toward the new sample)
DECAY_RETAIN = 0.98
DECAY_PULL = 0.02

# Ranges narrower than this are padded before display
MIN_DISPLAY_RANGE = 50
RANGE_PADDING = 25

# Share of the drawable height used by the wave
WAVE_HEIGHT_FRACTION = 0.4
VERTICAL_MARGIN = 40


@dataclass(frozen=True)
class WaveformFrame:
    """Snapshot handed to the painter for one frame.

    Attributes:
        samples (tuple): Buffered values, oldest first
        effective_min (float): Lower bound of the display range
        effective_max (float): Upper bound of the display range
        capacity (int): Buffer capacity (x-axis extent)
    """
    samples: Tuple[float, ...]
    effective_min: float
    effective_max: float
    capacity: int

    @property
    def latest(self) -> float:
        return self.samples[-1]

    def normalized(self) -> np.ndarray:
        """Samples mapped so effective_min -> 0.0 and effective_max -> 1.0."""
        span = self.effective_max - self.effective_min
        return (np.asarray(self.samples, dtype=float) - self.effective_min) / span

    def to_points(self, width: float, height: float) -> Tuple[np.ndarray, np.ndarray]:
        """Map samples to pixel coordinates (y grows downward).

        Sample i sits at x = i / capacity * width. The wave is centered on
        height / 2 and uses 40% of (height - 40) pixels peak to peak.

        Returns:
            Tuple of (xs, ys) arrays
        """
        xs = np.arange(len(self.samples), dtype=float) / self.capacity * width
        wave_height = (height - VERTICAL_MARGIN) * WAVE_HEIGHT_FRACTION
        ys = height / 2 - (self.normalized() - 0.5) * wave_height
        return xs, ys


class RollingWaveformBuffer:
    """Bounded, arrival-ordered sample buffer with running min/max.

    Attributes:
        capacity (int): Number of samples kept
        midpoint (float): Neutral value used to prime the buffer
        running_min (float): Decayed lower bound of observed samples
        running_max (float): Decayed upper bound of observed samples
    """

    def __init__(self, capacity: int = DEFAULT_CAPACITY,
                 midpoint: float = ADC_MIDPOINT,
                 value_min: float = ADC_MIN,
                 value_max: float = ADC_MAX) -> None:
        if capacity < 1:
            raise ValueError(f"Capacity must be >= 1, got {capacity}")

        self.capacity = capacity
        self.midpoint = midpoint
        self.value_min = value_min
        self.value_max = value_max

        self.samples: deque = deque(maxlen=capacity)
        self.running_min = value_max
        self.running_max = value_min
        self.clear()

    def __len__(self) -> int:
        return len(self.samples)

    def push(self, value: float) -> None:
        """Append one sample and update the auto-scale state.

        Non-finite values are ignored so a single bad reading cannot poison
        the running range.
        """
        if value is None or not math.isfinite(value):
            return

        # deque(maxlen) evicts the oldest entry
        self.samples.append(value)

        if value > self.running_max:
            self.running_max = value
        else:
            self.running_max = self.running_max * DECAY_RETAIN + value * DECAY_PULL

        if value < self.running_min:
            self.running_min = value
        else:
            self.running_min = self.running_min * DECAY_RETAIN + value * DECAY_PULL

    def effective_range(self) -> Tuple[float, float]:
        """Display bounds, padded by 25 when the running range is <= 50."""
        if self.running_max - self.running_min > MIN_DISPLAY_RANGE:
            return self.running_min, self.running_max
        return self.running_min - RANGE_PADDING, self.running_max + RANGE_PADDING

    def render(self) -> WaveformFrame:
        effective_min, effective_max = self.effective_range()
        return WaveformFrame(
            samples=tuple(self.samples),
            effective_min=effective_min,
            effective_max=effective_max,
            capacity=self.capacity,
        )

    def clear(self) -> None:
        """Re-prime with the midpoint and reset the range to its extremes.

        min starts at the theoretical max and max at the theoretical min, so
        the next real sample re-seeds both bounds.
        """
        self.samples.clear()
        self.samples.extend([self.midpoint] * self.capacity)
        self.running_min = self.value_max
        self.running_max = self.value_min

    def simulate(self, bpm: float, now: float) -> float:
        """Push one synthetic heartbeat value for simulation mode.

        Baseline wobble around the midpoint with a spike during the first
        eighth of each beat.

        Args:
            bpm: Simulated heart rate
            now: Current time in seconds

        Returns:
            The value pushed
        """
        beats_per_second = bpm / 60.0
        phase = now * beats_per_second * math.pi * 2

        value = self.midpoint + math.sin(phase * 5) * 20
        beat_phase = phase % (math.pi * 2)
        if beat_phase < math.pi / 4:
            value += math.sin(beat_phase * 4) * 200

        self.push(value)
        return value
