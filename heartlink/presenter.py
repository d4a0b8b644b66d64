#!/usr/bin/env python3
"""
Pulse Presenter - Two-phase beat animation for the heart display.

Each beat edge starts a scale animation in two chained phases:
- Systole: ease out to 1.20x over 150ms (fast contraction)
- Diastole: ease in back to 1.0x over 250ms (slower relaxation)

ARCHITECTURE:
- The presenter owns an AnimationScheduler; nothing is global
- The caller ticks update(now) once per frame; time is in milliseconds
- A new trigger cancels the running animation and restarts systole from the
  current scale, not from baseline
- set_rate() only derives the beat interval; beats come from upstream edges.
  With self_timed=True (simulation mode) update() triggers every interval

USAGE:
    presenter = PulsePresenter(on_scale=renderer.set_scale)

    # on each beat edge:
    presenter.set_rate(sample.bpm)
    presenter.trigger()

    # every frame:
    presenter.update()
"""

import enum
import time
from typing import Callable, List, Optional

from heartlink.log import get_logger

logger = get_logger(__name__)

BASELINE_SCALE = 1.0
PEAK_SCALE = 1.20
EXPAND_DURATION_MS = 150.0
CONTRACT_DURATION_MS = 250.0


def quadratic_out(k: float) -> float:
    return k * (2 - k)


def quadratic_in(k: float) -> float:
    return k * k


def monotonic_ms() -> float:
    return time.monotonic() * 1000.0


class Tween:
    """Interpolates one value to a target over a fixed duration.

    The start value is captured when the tween starts, so a chained tween
    continues from wherever its predecessor ended.
    """

    def __init__(self, to_value: float, duration_ms: float,
                 easing: Callable[[float], float],
                 on_update: Optional[Callable[[float], None]] = None,
                 on_start: Optional[Callable[[], None]] = None) -> None:
        self.to_value = to_value
        self.duration_ms = duration_ms
        self.easing = easing
        self.on_update = on_update
        self.on_start = on_start
        self.next: Optional["Tween"] = None
        self.from_value: Optional[float] = None
        self.start_time: Optional[float] = None

    def chain(self, tween: "Tween") -> "Tween":
        self.next = tween
        return self

    @property
    def end_time(self) -> float:
        return self.start_time + self.duration_ms

    def start(self, now: float, from_value: float) -> None:
        self.start_time = now
        self.from_value = from_value
        if self.on_start:
            self.on_start()

    def update(self, now: float) -> bool:
        """Apply the value for time now; True once the tween has finished."""
        if self.duration_ms <= 0:
            progress = 1.0
        else:
            progress = min(1.0, max(0.0, (now - self.start_time) / self.duration_ms))
        value = self.from_value + (self.to_value - self.from_value) * self.easing(progress)
        if self.on_update:
            self.on_update(value)
        return progress >= 1.0


class AnimationScheduler:
    """Runs active tweens; ticked explicitly by its owner."""

    def __init__(self) -> None:
        self._tweens: List[Tween] = []

    def __len__(self) -> int:
        return len(self._tweens)

    def add(self, tween: Tween, now: float, from_value: float) -> None:
        tween.start(now, from_value)
        self._tweens.append(tween)

    def remove(self, tween: Optional[Tween]) -> None:
        """Remove a tween and anything chained after it."""
        while tween is not None:
            if tween in self._tweens:
                self._tweens.remove(tween)
            tween = tween.next

    def clear(self) -> None:
        self._tweens.clear()

    def update(self, now: float) -> None:
        for tween in list(self._tweens):
            self._advance(tween, now)

    def _advance(self, tween: Tween, now: float) -> None:
        if not tween.update(now):
            return
        self._tweens.remove(tween)
        if tween.next is not None:
            # Chained tween starts when its predecessor ended, not at now
            self.add(tween.next, tween.end_time, tween.to_value)
            self._advance(tween.next, now)


class BeatPhase(enum.Enum):
    IDLE = "idle"
    SYSTOLE = "systole"
    DIASTOLE = "diastole"


class PulsePresenter:
    """Drives the heart's beat animation from beat edges.

    Attributes:
        scale (float): Current scale applied to the heart
        target_scale (float): Scale the running phase is heading to
        phase (BeatPhase): idle, systole or diastole
        bpm (float): Last rate passed to set_rate()
        beat_interval_ms (float): 60000 / bpm, 0 until a rate is set
        enabled (bool): False after stop(); triggers are ignored
        self_timed (bool): Trigger from update() every beat_interval_ms
    """

    def __init__(self, on_scale: Optional[Callable[[float], None]] = None,
                 clock: Callable[[], float] = monotonic_ms,
                 self_timed: bool = False) -> None:
        self.on_scale = on_scale
        self.clock = clock
        self.self_timed = self_timed
        self.scheduler = AnimationScheduler()

        self.scale = BASELINE_SCALE
        self.target_scale = BASELINE_SCALE
        self.phase = BeatPhase.IDLE
        self.bpm: Optional[float] = None
        self.beat_interval_ms = 0.0
        self.enabled = True

        self.last_beat_time: Optional[float] = None
        self.beat_count = 0
        self._animation: Optional[Tween] = None

    @property
    def is_animating(self) -> bool:
        return self.phase is not BeatPhase.IDLE

    def set_rate(self, bpm: float) -> None:
        """Update the derived beat interval; does not trigger a beat."""
        if bpm is None or bpm <= 0:
            logger.debug(f"Ignoring non-positive BPM: {bpm}")
            return
        self.bpm = bpm
        self.beat_interval_ms = 60000.0 / bpm

    set_bpm = set_rate

    def trigger(self, now: Optional[float] = None) -> bool:
        """Start a beat, cancelling any animation in flight.

        Returns:
            True if a beat animation started, False while stopped
        """
        if not self.enabled:
            return False
        if now is None:
            now = self.clock()

        self.scheduler.remove(self._animation)

        systole = Tween(PEAK_SCALE, EXPAND_DURATION_MS, quadratic_out,
                        on_update=self._apply_scale,
                        on_start=lambda: self._enter(BeatPhase.SYSTOLE, PEAK_SCALE))
        diastole = Tween(BASELINE_SCALE, CONTRACT_DURATION_MS, quadratic_in,
                         on_update=self._apply_scale,
                         on_start=lambda: self._enter(BeatPhase.DIASTOLE, BASELINE_SCALE))
        systole.chain(diastole)

        self._animation = systole
        self.scheduler.add(systole, now, self.scale)

        self.last_beat_time = now
        self.beat_count += 1
        return True

    beat = trigger

    def update(self, now: Optional[float] = None) -> float:
        """Advance the animation; call once per frame.

        Returns:
            Current scale
        """
        if now is None:
            now = self.clock()

        if (self.self_timed and self.enabled and self.beat_interval_ms > 0
                and (self.last_beat_time is None
                     or now - self.last_beat_time >= self.beat_interval_ms)):
            self.trigger(now)

        self.scheduler.update(now)
        if self.phase is not BeatPhase.IDLE and len(self.scheduler) == 0:
            self._enter(BeatPhase.IDLE, BASELINE_SCALE)
            self._animation = None
        return self.scale

    def start(self) -> None:
        self.enabled = True

    def stop(self) -> None:
        """Disable beating, cancel the animation and snap back to 1.0x."""
        self.enabled = False
        self.scheduler.remove(self._animation)
        self._animation = None
        self._enter(BeatPhase.IDLE, BASELINE_SCALE)
        self._apply_scale(BASELINE_SCALE)

    def toggle(self) -> bool:
        """Flip between started and stopped; returns the new enabled state."""
        if self.enabled:
            self.stop()
        else:
            self.start()
        return self.enabled

    def _enter(self, phase: BeatPhase, target: float) -> None:
        self.phase = phase
        self.target_scale = target

    def _apply_scale(self, value: float) -> None:
        self.scale = value
        if self.on_scale:
            self.on_scale(value)
