import logging

import pytest
import structlog
from structlog.testing import CapturingLogger


def _keep_event_dict(logger, method_name, event_dict):
    return event_dict


class LogCapture:
    """Explicit logger for components under test plus what it recorded."""

    def __init__(self):
        self.sink = CapturingLogger()
        self.log = structlog.wrap_logger(
            self.sink,
            processors=[_keep_event_dict],
            wrapper_class=structlog.make_filtering_bound_logger(logging.DEBUG),
        )

    def events(self, method_name: str | None = None) -> list[dict]:
        return [
            call.kwargs
            for call in self.sink.calls
            if method_name is None or call.method_name == method_name
        ]

    def messages(self, method_name: str | None = None) -> list[str]:
        return [event["event"] for event in self.events(method_name)]


@pytest.fixture
def log_capture() -> LogCapture:
    return LogCapture()
