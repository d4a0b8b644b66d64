#!/usr/bin/env python3
"""
Heart Viewer - Live waveform and beating heart from the bridge stream.

Connects to the serial bridge over WebSocket and shows the sensor waveform and
a heart marker that pulses on every detected beat, in a matplotlib window.

FEATURES:
- Rolling waveform (last 100 samples) with adaptive auto-scale
- Heart marker scaled by the two-phase beat animation
- BPM display and tri-state status (connected / device offline / disconnected)
- Automatic reconnection to the bridge every 3 seconds
- Simulation mode when no hardware is available

ARCHITECTURE:
- Single asyncio loop: the stream client, liveness checks and the frame loop
  all run on it; matplotlib is pumped with draw_idle()/flush_events()
- Each frame ticks the monitor (simulation + animation), renders the buffer
  and updates the artists

KEYS:
    s   toggle simulation
    b   start/stop the heart beating
    c   clear the waveform

USAGE:
    python3 -m heartlink.viewer
    python3 -m heartlink.viewer --url ws://raspberrypi.local:8082
    python3 -m heartlink.viewer --simulate
"""

import argparse
import asyncio
import os
import sys
from typing import Optional

import matplotlib.pyplot as plt
import numpy as np
import yaml

from heartlink import config as heartlink_config
from heartlink import log
from heartlink.client import ReconnectingStreamClient
from heartlink.log import get_logger
from heartlink.monitor import DeviceWatchdog, HeartMonitor, MonitorStatus
from heartlink.waveform import WAVE_HEIGHT_FRACTION

logger = get_logger(__name__)

LINE_COLOR = '#ff4757'
BACKGROUND_COLOR = '#1e1e2e'
GRID_COLOR = (1.0, 1.0, 1.0, 0.1)
HEART_BASE_SIZE = 4000

STATUS_COLORS = {
    MonitorStatus.CONNECTED: '#2ed573',
    MonitorStatus.TRANSPORT_ONLY: '#ffa502',
    MonitorStatus.DISCONNECTED: '#ff4757',
}


class HeartViewer:
    """matplotlib presentation of a HeartMonitor.

    Attributes:
        monitor (HeartMonitor): Source of waveform, scale and status
        fps (int): Target frame rate
    """

    def __init__(self, monitor: HeartMonitor, fps: int = 30) -> None:
        self.monitor = monitor
        self.fps = fps

        # Matplotlib objects (initialized in setup())
        self.fig = None
        self.ax_heart = None
        self.ax_wave = None
        self.line = None
        self.heart = None
        self.bpm_text = None
        self.status_text = None

    def setup(self) -> None:
        """Create the figure: heart panel on the left, waveform on the right."""
        self.fig, (self.ax_heart, self.ax_wave) = plt.subplots(
            1, 2, figsize=(10, 4), gridspec_kw={'width_ratios': [1, 2]}
        )
        self.fig.patch.set_facecolor(BACKGROUND_COLOR)
        self.fig.canvas.mpl_connect('key_press_event', self.on_key)

        ax = self.ax_heart
        ax.set_facecolor(BACKGROUND_COLOR)
        ax.set_xlim(-1, 1)
        ax.set_ylim(-1, 1)
        ax.set_xticks([])
        ax.set_yticks([])
        self.heart = ax.scatter([0], [0], s=[HEART_BASE_SIZE], marker='o', color=LINE_COLOR)
        self.bpm_text = ax.text(0, -0.8, 'BPM: --', ha='center', color='white', fontsize=14)
        self.status_text = ax.text(0, 0.85, '', ha='center', fontsize=11)

        capacity = self.monitor.waveform.capacity
        ax = self.ax_wave
        ax.set_facecolor(BACKGROUND_COLOR)
        ax.set_xlim(0, capacity)
        ax.set_xticks(np.arange(0, capacity + 1, 10))
        ax.set_xticklabels([])
        ax.set_yticks([])
        ax.grid(True, color=GRID_COLOR)
        self.line, = ax.plot([], [], color=LINE_COLOR, linewidth=2)

        self.fig.tight_layout()

    def draw_frame(self, now: Optional[float] = None):
        """Advance the monitor one frame and update every artist.

        Returns:
            tuple: Modified artists
        """
        scale = self.monitor.tick(now)
        frame = self.monitor.waveform.render()

        self.line.set_data(np.arange(len(frame.samples)), frame.samples)

        # Wave occupies 40% of the panel height around the center line
        center = (frame.effective_min + frame.effective_max) / 2
        half_span = (frame.effective_max - frame.effective_min) / 2 / WAVE_HEIGHT_FRACTION
        self.ax_wave.set_ylim(center - half_span, center + half_span)

        self.heart.set_sizes([HEART_BASE_SIZE * scale ** 2])

        bpm = self.monitor.current_bpm
        self.bpm_text.set_text(f"BPM: {round(bpm)}" if bpm is not None else "BPM: --")

        status = self.monitor.status
        self.status_text.set_text(status.label)
        self.status_text.set_color(STATUS_COLORS[status])

        return (self.line, self.heart, self.bpm_text, self.status_text)

    def on_key(self, event) -> None:
        if event.key == 's':
            self.monitor.simulate()
        elif event.key == 'b':
            beating = self.monitor.presenter.toggle()
            logger.info(f"Heart beating {'started' if beating else 'stopped'}")
        elif event.key == 'c':
            self.monitor.waveform.clear()

    async def run(self) -> None:
        """Show the window and pump frames until it is closed."""
        self.setup()
        plt.show(block=False)

        monitor_task = asyncio.get_running_loop().create_task(self.monitor.run())
        frame_interval = 1.0 / self.fps
        try:
            while plt.fignum_exists(self.fig.number):
                self.draw_frame()
                self.fig.canvas.draw_idle()
                self.fig.canvas.flush_events()
                await asyncio.sleep(frame_interval)
        finally:
            self.monitor.stop()
            await monitor_task
            plt.close(self.fig)


def create_argument_parser():
    """Create command-line argument parser for the viewer."""
    parser = argparse.ArgumentParser(
        description="Heart Viewer - Live waveform and beating heart"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML configuration file (default: built-in defaults)"
    )
    parser.add_argument(
        "--url",
        default=None,
        help="Bridge WebSocket URL (default: client.url from config)"
    )
    parser.add_argument(
        "--reconnect-interval",
        type=float,
        default=None,
        help="Seconds between reconnect attempts (default: 3)"
    )
    parser.add_argument(
        "--device-timeout",
        type=float,
        default=None,
        help="Seconds without data before the device counts as offline (default: 5)"
    )
    parser.add_argument(
        "--fps",
        type=int,
        default=30,
        help="Frame rate (default: 30)"
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Start in simulation mode"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("HEARTLINK_LOG_LEVEL", "INFO"),
        help="Logging verbosity (default: INFO)"
    )
    return parser


def main(argv=None):
    """Main entry point: parse arguments, build the monitor, run the window."""
    parser = create_argument_parser()
    args = parser.parse_args(argv)
    log.set_level(args.log_level)

    def to_ms(seconds):
        return None if seconds is None else seconds * 1000

    try:
        config = heartlink_config.load_config(args.config)
        heartlink_config.apply_overrides(config, **{
            'client.url': args.url,
            'client.reconnect_interval_ms': to_ms(args.reconnect_interval),
            'client.device_timeout_ms': to_ms(args.device_timeout),
        })
        if args.fps < 1:
            raise ValueError(f"FPS must be >= 1, got {args.fps}")
    except (ValueError, FileNotFoundError, yaml.YAMLError) as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    client_config = config['client']
    client = ReconnectingStreamClient(
        client_config['url'],
        reconnect_interval=client_config['reconnect_interval_ms'] / 1000.0,
    )
    monitor = HeartMonitor(
        client,
        watchdog=DeviceWatchdog(timeout=client_config['device_timeout_ms'] / 1000.0),
    )
    if args.simulate:
        monitor.simulate(True)

    viewer = HeartViewer(monitor, fps=args.fps)
    logger.info(f"Connecting to {client.url} (close the window to exit)")
    try:
        asyncio.run(viewer.run())
    except KeyboardInterrupt:
        logger.info("Shutting down...")


if __name__ == "__main__":
    main()
