"""
Tests for Device Simulator

Validates the emitted line format, beat cadence, BPM control and the async
emit loop.
"""

import asyncio

import pytest

from heartlink.decoder import DebugLine, HeartbeatSample, decode
from heartlink.simulator import BANNER, DeviceSimulator


class TestDeviceSimulator:
    """Test DeviceSimulator functionality."""

    def test_initialization(self):
        simulator = DeviceSimulator()

        assert simulator.bpm == 75.0
        assert simulator.sample_rate_hz == 20.0
        assert simulator.phase == 0.0
        assert simulator.running is False

    def test_first_period_starts_a_beat(self):
        simulator = DeviceSimulator(bpm=72.0, seed=0)

        bpm_line, waveform_line = simulator.next_lines()

        assert decode(bpm_line) == HeartbeatSample(bpm=72.0)
        assert decode(waveform_line).waveform is not None
        assert simulator.beat_count == 1
        assert len(simulator.next_lines()) == 1

    def test_waveform_stays_in_adc_range(self):
        simulator = DeviceSimulator(noise_level=50.0, baseline=20, peak=1010, seed=3)

        values = []
        for _ in range(200):
            for line in simulator.next_lines():
                sample = decode(line)
                if sample.waveform is not None:
                    values.append(sample.waveform)

        assert len(values) == 200
        assert min(values) >= 0
        assert max(values) <= 1023

    def test_beat_cadence(self):
        """60 BPM at 20 Hz: one beat every 20 samples."""
        simulator = DeviceSimulator(bpm=60.0, seed=1)

        bpm_lines = 0
        for _ in range(400):
            bpm_lines += sum(1 for line in simulator.next_lines() if '"bpm"' in line)

        assert 19 <= bpm_lines <= 21
        assert simulator.beat_count == bpm_lines

    def test_pulse_reaches_peak_without_noise(self):
        simulator = DeviceSimulator(bpm=60.0, noise_level=0.0)

        values = [decode(simulator.next_lines()[-1]).waveform for _ in range(20)]

        assert max(values) >= 780
        assert min(values) == 450

    @pytest.mark.parametrize("requested,expected", [
        (20.0, 40.0),
        (90.0, 90.0),
        (250.0, 180.0),
    ])
    def test_set_bpm_clamps(self, requested, expected):
        simulator = DeviceSimulator()

        simulator.set_bpm(requested)

        assert simulator.bpm == expected

    def test_pulse_shape(self):
        assert DeviceSimulator.pulse_shape(0.0) == 0.0
        assert DeviceSimulator.pulse_shape(0.05) == pytest.approx(0.5)
        assert DeviceSimulator.pulse_shape(0.225) == pytest.approx(0.5)
        assert DeviceSimulator.pulse_shape(0.6) == 0.0

    def test_run_emits_banner_then_samples(self):
        simulator = DeviceSimulator(sample_rate_hz=200.0, seed=2)
        received = []

        def feed(line):
            received.append(line)
            if len(received) >= 5:
                simulator.stop()

        asyncio.run(asyncio.wait_for(simulator.run(feed), timeout=2.0))

        assert received[0] == BANNER
        assert isinstance(decode(received[0]), DebugLine)
        assert all(isinstance(decode(line), HeartbeatSample) for line in received[1:])
        assert simulator.running is False
