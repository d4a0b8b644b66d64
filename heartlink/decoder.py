#!/usr/bin/env python3
"""
Line Decoder - Classifies raw device lines into typed events.

The sensor board writes one line per reading. Lines that begin with "{" carry
a JSON object with any subset of the keys bpm, raw and waveform; everything
else is diagnostic text printed by the firmware.

EVENTS:
    HeartbeatSample: JSON object with at least one numeric sample key
    DebugLine:       Non-JSON text, logged locally and never broadcast
    Malformed:       Looks like JSON but does not decode to a sample

USAGE:
    event = decode(b'{"waveform": 700}\\n')
    if isinstance(event, HeartbeatSample):
        hub.broadcast(event)

decode() never raises; every malformed input is absorbed into Malformed.
"""

import json
import math
from dataclasses import dataclass
from typing import Any, Mapping, Optional, Union

from heartlink.protocol import SAMPLE_KEYS


def _is_number(value: Any) -> bool:
    # bool is an int subclass but never a reading
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return False
    # NaN, Infinity and ints too large for a float are not readings
    try:
        return math.isfinite(float(value))
    except OverflowError:
        return False


@dataclass(frozen=True)
class HeartbeatSample:
    """One decoded reading from the sensor board.

    Every field is optional and independently meaningful; absent keys stay
    None rather than defaulting to zero.

    Attributes:
        bpm (float): Detected heart rate, present once per detected beat
        raw (int): Instantaneous raw sensor amplitude (0-1023)
        waveform (int): Filtered waveform amplitude (0-1023)
    """
    bpm: Optional[float] = None
    raw: Optional[int] = None
    waveform: Optional[int] = None

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> Optional["HeartbeatSample"]:
        """Build a sample from a decoded JSON object.

        Returns:
            HeartbeatSample with whichever numeric keys are present, or None
            when the mapping carries none of bpm/raw/waveform as numbers
        """
        fields = {key: data[key] for key in SAMPLE_KEYS
                  if key in data and _is_number(data[key])}
        if not fields:
            return None
        return cls(**fields)

    @property
    def amplitude(self) -> Optional[float]:
        """Value to plot: waveform when present, otherwise raw."""
        return self.waveform if self.waveform is not None else self.raw

    def to_dict(self) -> dict:
        """Wire payload containing only the keys that are present."""
        return {key: getattr(self, key) for key in SAMPLE_KEYS
                if getattr(self, key) is not None}

    def to_json(self) -> str:
        return json.dumps(self.to_dict())


@dataclass(frozen=True)
class DebugLine:
    """Diagnostic text from the firmware."""
    text: str


@dataclass(frozen=True)
class Malformed:
    """JSON-looking line that could not be decoded into a sample."""
    text: str


DecodedEvent = Union[HeartbeatSample, DebugLine, Malformed]


def decode(line: Union[str, bytes]) -> DecodedEvent:
    """Classify one device line.

    Args:
        line: Raw line as bytes (decoded as UTF-8 with replacement) or text,
              with or without its trailing newline

    Returns:
        HeartbeatSample, DebugLine or Malformed

    Examples:
        >>> decode('{"waveform": 700}')
        HeartbeatSample(bpm=None, raw=None, waveform=700)
        >>> decode('Sensor ready')
        DebugLine(text='Sensor ready')
        >>> decode('{"bpm": 7')
        Malformed(text='{"bpm": 7')
    """
    if isinstance(line, (bytes, bytearray)):
        line = bytes(line).decode("utf-8", errors="replace")

    text = line.strip()
    if not text.startswith("{"):
        return DebugLine(text)

    try:
        data = json.loads(text)
    except (ValueError, RecursionError):
        return Malformed(text)

    if not isinstance(data, dict):
        return Malformed(text)

    sample = HeartbeatSample.from_mapping(data)
    if sample is None:
        return Malformed(text)
    return sample
