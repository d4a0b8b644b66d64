"""
Heartlink - Live heartbeat relay from a serial sensor to WebSocket viewers.

Modules:
    decoder: Device line classification (sample / debug / malformed)
    hub: WebSocket consumer membership and fan-out
    bridge: Serial device link and bridge entry point
    client: Auto-reconnecting WebSocket consumer
    waveform: Rolling sample buffer with adaptive auto-scale
    presenter: Two-phase heart beat animation
    monitor: Liveness watchdog and client-side wiring
    viewer: matplotlib viewer entry point
"""

__version__ = "0.1.0"

# Note: Modules are imported on-demand so that python -m heartlink.bridge
# does not pull in matplotlib. Use: from heartlink import bridge, client, etc.
