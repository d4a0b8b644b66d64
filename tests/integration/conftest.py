"""Pytest fixtures for relay integration tests.

- stats: fresh MessageStatistics
- hub: BroadcastHub sharing those statistics
- bridge: SerialBridge fed by hand through feed_line() (no device)
"""

import pytest

from heartlink.bridge import SerialBridge
from heartlink.hub import BroadcastHub
from heartlink.protocol import MessageStatistics


@pytest.fixture
def stats():
    return MessageStatistics()


@pytest.fixture
def hub(stats):
    return BroadcastHub(stats)


@pytest.fixture
def bridge(hub, stats):
    return SerialBridge("/dev/null", 115200, hub, stats)
