"""Tests for routing stdlib logging into loguru."""

import logging

from loguru import logger

from tunebot.utils.logging import _InterceptHandler


class TestInterceptHandler:
    def test_stdlib_record_reaches_loguru_with_caller(self):
        records = []
        sink_id = logger.add(lambda message: records.append(message.record), level="DEBUG")
        std = logging.getLogger("tunebot.tests.intercept")
        handler = _InterceptHandler()
        std.addHandler(handler)
        std.propagate = False
        std.setLevel(logging.INFO)
        try:
            std.warning("node %s unreachable", "local")
        finally:
            logger.remove(sink_id)
            std.removeHandler(handler)
            std.propagate = True

        assert len(records) == 1
        record = records[0]
        assert record["message"] == "node local unreachable"
        assert record["level"].name == "WARNING"
        assert record["function"] == "test_stdlib_record_reaches_loguru_with_caller"

    def test_unknown_level_falls_back_to_number(self):
        records = []
        sink_id = logger.add(lambda message: records.append(message.record), level=0)
        std = logging.getLogger("tunebot.tests.intercept.custom")
        handler = _InterceptHandler()
        std.addHandler(handler)
        std.propagate = False
        std.setLevel(1)
        try:
            std.log(25, "custom level")
        finally:
            logger.remove(sink_id)
            std.removeHandler(handler)
            std.propagate = True

        assert records[0]["message"] == "custom level"
        assert records[0]["level"].no == 25
