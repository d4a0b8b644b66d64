#!/usr/bin/env python3
"""
Serial Bridge - Relays sensor board readings to WebSocket viewers.

Reads newline-delimited lines from the sensor board, decodes each one, and
broadcasts heartbeat samples to every connected viewer through the hub.

ARCHITECTURE:
- pyserial-asyncio stream reader on the same event loop as the WebSocket server
- Line Decoder classifies each line (sample / debug / malformed)
- Broadcast Hub fans samples out without awaiting any consumer socket
- --simulate replaces the device with DeviceSimulator (same decode path)

FAILURE POLICY:
- Device open failure: logged once with troubleshooting hints, process exits
  with code 1 (no retry; re-plugging the board re-enumerates the device)
- Device read failure or EOF mid-session: logged, session marked lost, the
  WebSocket server keeps running but no further samples are produced

INPUT (serial, 115200 baud by default):
    {"bpm": 72.5}
    {"waveform": 612}
    {"raw": 598, "waveform": 610}
    Anything else is treated as firmware debug output

OUTPUT (WebSocket, port 8082 by default):
    JSON object with the sample keys that were present, e.g. {"waveform": 612}

USAGE:
    python3 -m heartlink.bridge --port /dev/ttyACM0
    python3 -m heartlink.bridge --config config.yaml --listen-port 9000
    python3 -m heartlink.bridge --simulate --simulate-bpm 90
"""

import argparse
import asyncio
import os
import sys
from typing import Optional, Union

import serial
import serial_asyncio
import yaml
from websockets.asyncio.server import serve

from heartlink import config as heartlink_config
from heartlink import log
from heartlink.decoder import DebugLine, HeartbeatSample, Malformed, decode
from heartlink.hub import BroadcastHub
from heartlink.log import get_logger
from heartlink.protocol import MessageStatistics
from heartlink.simulator import DeviceSimulator

logger = get_logger(__name__)

TROUBLESHOOTING = (
    "Troubleshooting:\n"
    "  1. Check that the sensor board is connected\n"
    "  2. Verify the port path (try: ls /dev/cu.* or ls /dev/tty.*)\n"
    "  3. Close the Arduino Serial Monitor if it is open\n"
    "  4. Make sure no other program is using the port"
)


class DeviceOpenError(Exception):
    """The serial device could not be opened; operator action is required."""

    def __init__(self, port: str, reason: str):
        super().__init__(f"Cannot open serial port {port}: {reason}")
        self.port = port
        self.reason = reason


class SerialBridge:
    """Owns the device link and drives decode -> broadcast per line.

    Attributes:
        port (str): Device path
        baud_rate (int): Serial speed
        hub (BroadcastHub): Fan-out target for samples
        stats (MessageStatistics): Line and sample counters
        connected (bool): True while a device session is live
        lost (bool): True once an open session ended (error or EOF)
    """

    def __init__(self, port: str, baud_rate: int, hub: BroadcastHub,
                 stats: Optional[MessageStatistics] = None) -> None:
        self.port = port
        self.baud_rate = baud_rate
        self.hub = hub
        self.stats = stats if stats is not None else hub.stats
        self.reader: Optional[asyncio.StreamReader] = None
        self.writer: Optional[asyncio.StreamWriter] = None
        self.connected = False
        self.lost = False

    async def open(self) -> None:
        """Open the serial device.

        Raises:
            DeviceOpenError: If the port cannot be opened (no retry)
        """
        try:
            self.reader, self.writer = await serial_asyncio.open_serial_connection(
                url=self.port, baudrate=self.baud_rate
            )
        except (serial.SerialException, OSError, ValueError) as e:
            logger.error(f"Serial port error: {e}")
            logger.error(TROUBLESHOOTING)
            raise DeviceOpenError(self.port, str(e)) from e

        self.connected = True
        logger.info(f"Serial port {self.port} opened at {self.baud_rate} baud")

    def feed_line(self, line: Union[str, bytes]) -> None:
        """Decode one line and broadcast it if it is a sample."""
        self.stats.increment("lines_read")
        event = decode(line)

        if isinstance(event, HeartbeatSample):
            logger.debug(f"Heartbeat: {event.to_dict()}")
            self.stats.increment("samples_broadcast")
            self.hub.broadcast(event)
        elif isinstance(event, DebugLine):
            self.stats.increment("debug_lines")
            if event.text:
                logger.info(f"Debug: {event.text}")
        elif isinstance(event, Malformed):
            self.stats.increment("malformed_lines")
            logger.debug(f"Dropped malformed line: {event.text!r}")

    async def run(self) -> None:
        """Read lines until the device goes away.

        Returns normally on EOF or I/O error; the session is then lost and
        no further samples are produced until the process is restarted.
        """
        if self.reader is None:
            raise RuntimeError("SerialBridge.run() called before open()")

        try:
            while True:
                line = await self.reader.readline()
                if not line:
                    logger.error(f"Serial port {self.port} closed (end of stream)")
                    break
                self.feed_line(line)
        except (serial.SerialException, OSError) as e:
            logger.error(f"Serial port error: {e}")
            logger.error("Device link lost; restart the bridge after reconnecting the board")
        finally:
            self.connected = False
            self.lost = True
            self.close()

    def close(self) -> None:
        if self.writer is not None:
            self.writer.close()
            self.writer = None


async def run_bridge(config: dict, simulate: bool = False,
                     simulate_bpm: float = 75.0,
                     stats: Optional[MessageStatistics] = None) -> None:
    """Run the WebSocket server plus the device (or simulator) loop.

    Raises:
        DeviceOpenError: If the device cannot be opened
        OSError: If the listen address is already in use
    """
    stats = stats if stats is not None else MessageStatistics()
    hub = BroadcastHub(stats)
    bridge = SerialBridge(config['serial']['port'], config['serial']['baud_rate'], hub, stats)

    simulator = None
    if simulate:
        simulator = DeviceSimulator(bpm=simulate_bpm)
        logger.info(f"Simulation mode: synthetic sensor at {simulator.bpm:.0f} BPM")
    else:
        await bridge.open()

    host = config['server']['host']
    port = config['server']['port']
    async with serve(hub.handler, host, port):
        logger.info(f"WebSocket server started on ws://{host}:{port}")
        logger.info("Waiting for sensor data... (Ctrl+C to stop)")
        try:
            if simulator is not None:
                await simulator.run(bridge.feed_line)
            else:
                await bridge.run()
            # Keep serving viewers after the device is gone
            await asyncio.Future()
        finally:
            if simulator is not None:
                simulator.stop()
            await hub.close()


def create_argument_parser():
    """Create command-line argument parser for the bridge."""
    parser = argparse.ArgumentParser(
        description="Serial Bridge - Relay sensor board readings to WebSocket viewers"
    )
    parser.add_argument(
        "--config",
        default=None,
        help="YAML configuration file (default: built-in defaults)"
    )
    parser.add_argument(
        "--port",
        default=None,
        help="Serial device path (default: serial.port from config)"
    )
    parser.add_argument(
        "--baud-rate",
        type=int,
        default=None,
        help="Serial baud rate (default: serial.baud_rate from config)"
    )
    parser.add_argument(
        "--host",
        default=None,
        help="WebSocket listen host (default: server.host from config)"
    )
    parser.add_argument(
        "--listen-port",
        type=int,
        default=None,
        help="WebSocket listen port (default: server.port from config)"
    )
    parser.add_argument(
        "--simulate",
        action="store_true",
        help="Use a synthetic sensor instead of the serial device"
    )
    parser.add_argument(
        "--simulate-bpm",
        type=float,
        default=75.0,
        help="BPM of the synthetic sensor (default: 75)"
    )
    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=os.getenv("HEARTLINK_LOG_LEVEL", "INFO"),
        help="Logging verbosity (default: INFO)"
    )
    return parser


def main(argv=None):
    """Main entry point: parse arguments, load config, run the bridge.

    Error handling:
    - Invalid configuration: log error, exit 1
    - Device open failure: troubleshooting already logged, exit 1
    - "Address already in use": listen port held by another process, exit 1
    """
    parser = create_argument_parser()
    args = parser.parse_args(argv)
    log.set_level(args.log_level)

    try:
        config = heartlink_config.load_config(args.config)
        heartlink_config.apply_overrides(config, **{
            'serial.port': args.port,
            'serial.baud_rate': args.baud_rate,
            'server.host': args.host,
            'server.port': args.listen_port,
        })
    except (ValueError, FileNotFoundError, yaml.YAMLError) as e:
        logger.error(f"Configuration error: {e}")
        sys.exit(1)

    stats = MessageStatistics()
    try:
        asyncio.run(run_bridge(config, simulate=args.simulate,
                               simulate_bpm=args.simulate_bpm, stats=stats))
    except KeyboardInterrupt:
        logger.info("Shutting down...")
    except DeviceOpenError:
        sys.exit(1)
    except OSError as e:
        if "Address already in use" in str(e):
            logger.error(f"Port {config['server']['port']} already in use")
        else:
            logger.error(str(e))
        sys.exit(1)
    finally:
        stats.print_stats("SERIAL BRIDGE STATISTICS")


if __name__ == "__main__":
    main()
