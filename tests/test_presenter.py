"""
Tests for the Pulse Presenter

Validates the two-phase beat animation, restart-from-current-scale on
retrigger, stop/start and the self-timed fallback. Time is passed explicitly
in milliseconds.
"""

import pytest

from heartlink.presenter import (
    AnimationScheduler,
    BeatPhase,
    PulsePresenter,
    Tween,
    quadratic_in,
    quadratic_out,
)


class TestEasing:
    def test_endpoints(self):
        for easing in (quadratic_in, quadratic_out):
            assert easing(0.0) == 0.0
            assert easing(1.0) == 1.0

    def test_shapes(self):
        assert quadratic_out(0.5) == 0.75
        assert quadratic_in(0.5) == 0.25


class TestAnimationScheduler:
    def test_chained_tween_starts_at_predecessor_end(self):
        values = []
        scheduler = AnimationScheduler()
        first = Tween(2.0, 100, quadratic_in, on_update=values.append)
        second = Tween(0.0, 100, quadratic_in, on_update=values.append)
        first.chain(second)

        scheduler.add(first, now=0, from_value=1.0)
        scheduler.update(150)

        assert second.start_time == 100
        assert second.from_value == 2.0
        assert values[-1] == pytest.approx(2.0 - 2.0 * 0.25)

    def test_remove_drops_chain(self):
        scheduler = AnimationScheduler()
        first = Tween(2.0, 100, quadratic_in)
        second = Tween(0.0, 100, quadratic_in)
        first.chain(second)
        scheduler.add(first, now=0, from_value=1.0)
        scheduler.update(120)

        scheduler.remove(first)

        assert len(scheduler) == 0


class TestBeatAnimation:
    """Systole to 1.20x over 150ms, diastole to 1.0x over 250ms."""

    def test_full_cycle(self):
        presenter = PulsePresenter()

        presenter.trigger(now=0)
        assert presenter.phase is BeatPhase.SYSTOLE
        assert presenter.target_scale == pytest.approx(1.2)

        assert presenter.update(75) == pytest.approx(1.0 + 0.2 * 0.75)

        assert presenter.update(150) == pytest.approx(1.2)
        assert presenter.phase is BeatPhase.DIASTOLE

        assert presenter.update(275) == pytest.approx(1.2 - 0.2 * 0.25)

        assert presenter.update(400) == pytest.approx(1.0)
        assert presenter.phase is BeatPhase.IDLE

    def test_large_frame_gap_finishes_both_phases(self):
        presenter = PulsePresenter()
        presenter.trigger(now=0)

        assert presenter.update(1000) == pytest.approx(1.0)
        assert presenter.phase is BeatPhase.IDLE
        assert len(presenter.scheduler) == 0

    def test_retrigger_restarts_from_current_scale(self):
        presenter = PulsePresenter()
        presenter.trigger(now=0)
        mid_scale = presenter.update(75)

        presenter.trigger(now=75)

        assert len(presenter.scheduler) == 1
        assert presenter.scale == pytest.approx(mid_scale)
        assert presenter.update(75) == pytest.approx(mid_scale)
        assert presenter.update(225) == pytest.approx(1.2)
        assert presenter.beat_count == 2

    def test_on_scale_receives_updates(self):
        scales = []
        presenter = PulsePresenter(on_scale=scales.append)
        presenter.trigger(now=0)

        presenter.update(150)

        assert scales[-1] == pytest.approx(1.2)

    def test_beat_alias(self):
        presenter = PulsePresenter(clock=lambda: 0.0)

        assert presenter.beat() is True
        assert presenter.last_beat_time == 0.0


class TestRate:
    def test_set_rate_derives_interval_only(self):
        presenter = PulsePresenter()

        presenter.set_rate(75)

        assert presenter.beat_interval_ms == pytest.approx(800)
        assert presenter.phase is BeatPhase.IDLE
        assert presenter.beat_count == 0

    def test_non_positive_rate_ignored(self):
        presenter = PulsePresenter()
        presenter.set_bpm(60)

        presenter.set_rate(0)

        assert presenter.bpm == 60

    def test_self_timed_fallback(self):
        presenter = PulsePresenter(self_timed=True)
        presenter.set_rate(60)

        presenter.update(0)
        presenter.update(500)
        count_mid = presenter.beat_count
        presenter.update(1000)

        assert count_mid == 1
        assert presenter.beat_count == 2

    def test_edge_driven_without_self_timing(self):
        presenter = PulsePresenter()
        presenter.set_rate(60)

        presenter.update(0)
        presenter.update(5000)

        assert presenter.beat_count == 0


class TestStartStop:
    def test_stop_cancels_and_resets_scale(self):
        presenter = PulsePresenter()
        presenter.trigger(now=0)
        presenter.update(75)

        presenter.stop()

        assert presenter.scale == 1.0
        assert presenter.phase is BeatPhase.IDLE
        assert len(presenter.scheduler) == 0
        assert presenter.trigger(now=100) is False

    def test_start_reenables(self):
        presenter = PulsePresenter()
        presenter.stop()
        presenter.start()

        assert presenter.trigger(now=0) is True

    def test_toggle(self):
        presenter = PulsePresenter()

        assert presenter.toggle() is False
        assert presenter.toggle() is True
