"""
Tests for the Rolling Waveform Buffer

Validates FIFO eviction, priming, the decayed auto-scale and the pixel mapping
handed to the painter.
"""

import pytest

from heartlink.waveform import RollingWaveformBuffer


class TestBuffer:
    """Bounded, arrival-ordered storage."""

    def test_primed_with_midpoint(self):
        buffer = RollingWaveformBuffer()

        assert len(buffer) == 100
        assert set(buffer.samples) == {512}

    def test_keeps_last_capacity_values_in_order(self):
        buffer = RollingWaveformBuffer(capacity=100)

        for value in range(150):
            buffer.push(value)

        assert len(buffer) == 100
        assert list(buffer.samples) == list(range(50, 150))

    def test_length_constant_after_each_push(self):
        buffer = RollingWaveformBuffer(capacity=10)

        for value in (1, 2, 3):
            buffer.push(value)
            assert len(buffer) == 10

    def test_non_finite_values_ignored(self):
        buffer = RollingWaveformBuffer()
        buffer.push(600)

        buffer.push(float("nan"))
        buffer.push(float("inf"))

        assert buffer.render().latest == 600
        assert buffer.running_max == 600

    def test_invalid_capacity(self):
        with pytest.raises(ValueError):
            RollingWaveformBuffer(capacity=0)


class TestAutoScale:
    """Instant expansion, 0.98/0.02 contraction."""

    def test_clear_then_first_sample_seeds_both_bounds(self):
        buffer = RollingWaveformBuffer()
        buffer.push(300)
        buffer.push(900)

        buffer.clear()
        assert list(buffer.samples) == [512] * 100

        buffer.push(800)
        low, high = buffer.effective_range()

        assert buffer.running_min == 800
        assert buffer.running_max == 800
        assert low <= 800 <= high

    def test_decay_toward_sample_inside_range(self):
        buffer = RollingWaveformBuffer()
        buffer.push(600)
        buffer.push(500)

        assert buffer.running_min == 500
        assert buffer.running_max == pytest.approx(600 * 0.98 + 500 * 0.02)

    def test_outlier_expands_immediately(self):
        buffer = RollingWaveformBuffer()
        buffer.push(300)
        buffer.push(900)

        assert buffer.running_max == 900
        assert buffer.running_min == pytest.approx(300 * 0.98 + 900 * 0.02)

    def test_narrow_range_is_padded(self):
        buffer = RollingWaveformBuffer()
        buffer.push(800)

        assert buffer.effective_range() == (775, 825)

    def test_wide_range_used_directly(self):
        buffer = RollingWaveformBuffer()
        buffer.push(300)
        buffer.push(900)

        low, high = buffer.effective_range()

        assert low == pytest.approx(306.0)
        assert high == 900


class TestRender:
    """Frame snapshot and pixel mapping."""

    def test_render_snapshot(self):
        buffer = RollingWaveformBuffer(capacity=5)
        buffer.push(800)

        frame = buffer.render()
        buffer.push(100)

        assert frame.samples == (512, 512, 512, 512, 800)
        assert (frame.effective_min, frame.effective_max) == (775, 825)
        assert frame.capacity == 5

    def test_to_points(self):
        buffer = RollingWaveformBuffer(capacity=100)
        buffer.push(800)

        xs, ys = buffer.render().to_points(width=200, height=240)

        assert len(xs) == len(ys) == 100
        assert xs[0] == 0
        assert xs[-1] == pytest.approx(198)
        # Middle of the effective range sits on the center line
        assert ys[-1] == pytest.approx(120)

    def test_higher_values_drawn_higher(self):
        buffer = RollingWaveformBuffer(capacity=3)
        for value in (400, 600, 500):
            buffer.push(value)

        _, ys = buffer.render().to_points(width=300, height=240)

        assert ys[1] < ys[2] < ys[0]

    def test_simulate_pushes_value(self):
        buffer = RollingWaveformBuffer()

        value = buffer.simulate(bpm=75, now=12.3)

        assert buffer.render().latest == value
        assert 0 < value < 1023
