"""Tests for the heartlink log format and level handling."""

import logging
import sys

import pytest

from heartlink import log
from heartlink.log import HeartlinkFormatter, get_logger


@pytest.fixture
def restore_level():
    package = logging.getLogger(log.ROOT_LOGGER_NAME)
    level = package.level
    yield package
    package.setLevel(level)


def make_record(name, level=logging.INFO, msg="Client connected", exc_info=None):
    return logging.LogRecord(name, level, __file__, 1, msg, None, exc_info)


class TestHeartlinkFormatter:
    def test_prefix_layout(self):
        line = HeartlinkFormatter().format(make_record("heartlink.hub"))

        assert line.startswith("[I ")
        assert line.endswith(" hub      ] Client connected")

    def test_long_component_truncated(self):
        line = HeartlinkFormatter().format(make_record("heartlink.presenter_extra", logging.WARNING))

        assert line.startswith("[W ")
        assert " presenter] " in line

    def test_exception_appended(self):
        try:
            raise OverflowError("int too large to convert to float")
        except OverflowError:
            record = make_record("heartlink.client", logging.ERROR, "Handler failed", sys.exc_info())

        line = HeartlinkFormatter().format(record)

        assert "Handler failed\nTraceback" in line
        assert "OverflowError" in line


class TestLevels:
    def test_components_live_under_the_package_logger(self):
        assert get_logger("heartlink.bridge").name == "heartlink.bridge"
        assert get_logger("__main__").name == "heartlink.__main__"
        assert logging.getLogger(log.ROOT_LOGGER_NAME).handlers

    def test_set_level_reaches_components(self, restore_level):
        component = get_logger("heartlink.waveform")

        log.set_level("WARNING")
        assert not component.isEnabledFor(logging.INFO)

        log.set_level("DEBUG")
        assert component.isEnabledFor(logging.DEBUG)
