# tests/conftest.py
from __future__ import annotations

import pytest
from loguru import logger

from flowexpect.engine.control_flow import ControlFlow
from flowexpect.runtime.scope import RunScope, activate

pytest_plugins = ["pytester", "flowexpect.plugin"]


@pytest.fixture(autouse=True)
def disable_file_logger():
    logger.remove()
    logger.add(lambda msg: None)  # or sys.stderr
    yield


@pytest.fixture
def log_messages():
    """Collect loguru messages (WARNING and up) emitted during the test."""
    messages: list[str] = []
    logger.add(lambda msg: messages.append(msg.record["message"]), level="WARNING")
    yield messages


# ============================================================
# fake driver：只用 ControlFlow + Deferred，不起真正的 driver
# ============================================================
class FakeElement:
    def __init__(self, flow, *, present=True, displayed=True):
        self.flow = flow
        self._present = present
        self._displayed = displayed

    def is_present(self):
        return self.flow.fulfilled(self._present)

    def is_displayed(self):
        value = self._displayed() if callable(self._displayed) else self._displayed
        return self.flow.execute(lambda: value, description="is_displayed")


class FakeDriver:
    """
    Mimics a driver whose calls are queued on the control flow.

    `calls` counts how often each getter's underlying work actually ran.
    """

    def __init__(self, flow):
        self.flow = flow
        self.calls: dict[str, int] = {}
        self.retry_counter = 0
        self.absent_countdown = 4

    def _queue(self, name, fn):
        def work():
            self.calls[name] = self.calls.get(name, 0) + 1
            return fn()

        return self.flow.execute(work, description=name)

    def sleep(self, seconds):
        return self.flow.timeout(seconds)

    def set_up(self):
        return self._queue("set_up", lambda: self.flow.fulfilled("setup done"))

    def get_value_a(self):
        return self._queue("get_value_a", lambda: self.flow.delayed(0.05).then(lambda _: "a"))

    def get_other_value_a(self):
        return self._queue("get_other_value_a", lambda: self.flow.fulfilled("a"))

    def get_value_b(self):
        return self._queue("get_value_b", lambda: self.flow.fulfilled("b"))

    def get_big_number(self):
        return self._queue("get_big_number", lambda: self.flow.fulfilled(1111))

    def get_decimal_number(self):
        return self._queue("get_decimal_number", lambda: self.flow.fulfilled(3.14159))

    def get_retry_counter(self):
        def bump():
            self.retry_counter += 1
            return self.flow.fulfilled(self.retry_counter)

        return self._queue("get_retry_counter", bump)

    def get_displayed_element(self):
        return self._queue("get_displayed_element", lambda: FakeElement(self.flow, displayed=True))

    def get_hidden_element(self):
        return self._queue("get_hidden_element", lambda: FakeElement(self.flow, displayed=False))

    def get_soon_to_be_absent_element(self):
        def countdown():
            self.absent_countdown -= 1
            return self.absent_countdown > 0

        return self._queue(
            "get_soon_to_be_absent_element",
            lambda: FakeElement(self.flow, present=True, displayed=countdown),
        )


@pytest.fixture
def fake_driver(flow) -> FakeDriver:
    return FakeDriver(flow)


@pytest.fixture
def scoped_run():
    """
    A RunScope with its own flow, outside the plugin's `flow` fixture:
    the test drives the flow and reads the log itself.
    """
    control_flow = ControlFlow()
    try:
        with activate(RunScope(flow=control_flow)) as scope:
            yield scope
    finally:
        control_flow.close()


@pytest.fixture
def plugin_conftest(pytester):
    """Enable the plugin for in-process pytester runs."""
    pytester.makeconftest('pytest_plugins = ["flowexpect.plugin"]\n')
    return pytester
