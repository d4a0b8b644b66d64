#!/usr/bin/env python3
"""
Entry point for running heartlink as a module.

Usage:
    python -m heartlink bridge [options]
    python -m heartlink viewer [options]
"""

import sys


def main():
    if len(sys.argv) < 2 or sys.argv[1] not in ("bridge", "viewer"):
        print("Usage: python -m heartlink {bridge,viewer} [options]")
        print()
        print("  bridge   Relay the serial sensor to WebSocket viewers")
        print("  viewer   Show the live waveform and beating heart")
        sys.exit(1)

    command, argv = sys.argv[1], sys.argv[2:]
    # Import only the selected component
    if command == "bridge":
        from heartlink.bridge import main as component_main
    else:
        from heartlink.viewer import main as component_main
    component_main(argv)


if __name__ == "__main__":
    main()
