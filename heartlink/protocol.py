#!/usr/bin/env python3
"""
Heartlink Shared Protocol - Constants, validation and statistics.

Provides the port and timing constants, input validation helpers and the
message statistics tracker used across the bridge, client and viewer.

Classes:
    - MessageStatistics: Thread-safe message counter with formatted output

Functions:
    - validate_port(port): Validate port in range 1-65535
    - validate_baud_rate(baud_rate): Validate a standard serial baud rate
    - validate_interval(name, value): Validate a positive duration

Constants:
    - DEFAULT_SERIAL_PORT: Device path of the sensor board
    - DEFAULT_BAUD_RATE: Serial link speed (115200)
    - DEFAULT_WS_HOST, DEFAULT_WS_PORT: WebSocket listen address (8082)
    - DEFAULT_WS_URL: URL clients connect to by default
    - RECONNECT_INTERVAL_S: Client backoff before reconnecting (3s)
    - DEVICE_TIMEOUT_S: Liveness window before the device counts as offline (5s)
    - ADC_MIN, ADC_MAX, ADC_MIDPOINT: 10-bit sensor value range
"""

import threading


# ============================================================================
# CONSTANTS
# ============================================================================

# Serial link to the sensor board
DEFAULT_SERIAL_PORT = "/dev/ttyACM0"
DEFAULT_BAUD_RATE = 115200

# WebSocket push channel (bridge -> viewers)
DEFAULT_WS_HOST = "0.0.0.0"
DEFAULT_WS_PORT = 8082
DEFAULT_WS_URL = f"ws://localhost:{DEFAULT_WS_PORT}"

# Client-side timing
RECONNECT_INTERVAL_S = 3.0
DEVICE_TIMEOUT_S = 5.0

# 10-bit ADC range reported by the sensor board
ADC_MIN = 0
ADC_MAX = 1023
ADC_MIDPOINT = 512

# Sample keys carried by device lines and WebSocket messages
SAMPLE_KEYS = ("bpm", "raw", "waveform")

PORT_MIN = 1
PORT_MAX = 65535

STANDARD_BAUD_RATES = (
    300, 1200, 2400, 4800, 9600, 14400, 19200, 28800,
    38400, 57600, 115200, 230400, 250000, 460800, 500000, 921600, 1000000,
)


# ============================================================================
# VALIDATION FUNCTIONS
# ============================================================================

def validate_port(port: int) -> None:
    """Validate TCP port number is in valid range.

    Args:
        port: Port number to validate

    Raises:
        ValueError: If port is not an int in range 1-65535

    Examples:
        >>> validate_port(8082)  # OK
        >>> validate_port(0)  # Raises ValueError
    """
    if isinstance(port, bool) or not isinstance(port, int):
        raise ValueError(f"Port must be an integer, got {port!r}")
    if port < PORT_MIN or port > PORT_MAX:
        raise ValueError(f"Port must be in range {PORT_MIN}-{PORT_MAX}, got {port}")


def validate_baud_rate(baud_rate: int) -> None:
    """Validate serial baud rate against the standard rates.

    Raises:
        ValueError: If baud_rate is not one of STANDARD_BAUD_RATES
    """
    if isinstance(baud_rate, bool) or not isinstance(baud_rate, int):
        raise ValueError(f"Baud rate must be an integer, got {baud_rate!r}")
    if baud_rate not in STANDARD_BAUD_RATES:
        raise ValueError(
            f"Unsupported baud rate: {baud_rate}\n"
            f"Use one of: {', '.join(str(b) for b in STANDARD_BAUD_RATES)}"
        )


def validate_interval(name: str, value: float) -> None:
    """Validate a duration in seconds is a positive number.

    Raises:
        ValueError: If value is not a number greater than zero
    """
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"{name} must be a number, got {value!r}")
    if value <= 0:
        raise ValueError(f"{name} must be > 0, got {value}")


# ============================================================================
# MESSAGE STATISTICS
# ============================================================================

class MessageStatistics:
    """Thread-safe message statistics tracker with formatted output.

    Typical counters:
        - lines_read: All lines read from the device
        - samples_broadcast: Heartbeat samples handed to the hub
        - debug_lines: Non-JSON diagnostic lines
        - malformed_lines: JSON-looking lines that failed to parse
        - delivery_attempts: Individual consumer sends scheduled

    Examples:
        >>> stats = MessageStatistics()
        >>> stats.increment('lines_read')
        >>> stats.print_stats("SERIAL BRIDGE STATISTICS")
    """

    def __init__(self):
        self.counters = {}
        self.lock = threading.Lock()

    def increment(self, counter_name: str, amount: int = 1) -> None:
        """Increment a counter, creating it at zero if needed."""
        with self.lock:
            self.counters[counter_name] = self.counters.get(counter_name, 0) + amount

    def get(self, counter_name: str) -> int:
        """Current value of a counter, 0 if it was never incremented."""
        with self.lock:
            return self.counters.get(counter_name, 0)

    def print_stats(self, title: str = "STATISTICS") -> None:
        """Print counters as a titled block, sorted by name.

        Output format:
            ============================================================
            TITLE
            ============================================================
            Counter Name: value
            ...
            ============================================================
        """
        print("\n" + "=" * 60)
        print(title)
        print("=" * 60)

        # Snapshot under lock, print without it
        with self.lock:
            snapshot = dict(self.counters)

        for name in sorted(snapshot.keys()):
            display_name = name.replace('_', ' ').title()
            print(f"{display_name}: {snapshot[name]}")

        print("=" * 60)
