#!filepath: flowexpect/plugin.py
"""
pytest bridge.

Enable with ``pytest_plugins = ["flowexpect.plugin"]`` in the root
conftest.py, or ``pytest -p flowexpect.plugin``.

- ``flow`` fixture: a per-test ControlFlow; requesting it (directly or
  through another fixture) makes the plugin drive the flow after the test
  body and raise the recorded expectation failures.
- ``@pytest.mark.detail_level(n)``: runtime-gated test (skipped above the
  current level).
- ``@pytest.mark.retry(timeout=..., interval=...)``: retry the body until
  it passes or the budget elapses.
- ``@pytest.mark.flow_timeout(seconds)``: per-test drain budget.
"""
from __future__ import annotations

import inspect
from contextlib import ExitStack
from functools import partial
from typing import Optional

import pytest
from pydantic import ValidationError

from flowexpect.config import AppConfig
from flowexpect.engine.control_flow import ControlFlow
from flowexpect.runtime.level_gate import DetailLevel, LevelGate, pop_gate, push_gate
from flowexpect.runtime.scope import RunScope, activate, current_scope
from flowexpect.utils.errors import UserInputError
from flowexpect.utils.logger import logs
from flowexpect.utils.retry import RetryRunner, RetryState

CONFIG_KEY = pytest.StashKey[AppConfig]()
GATE_KEY = pytest.StashKey[LevelGate]()

MARKERS = [
    "detail_level(level): skip the test when level is above the run's detail level",
    "retry(timeout=None, interval=None): re-run the test body until it passes or the timeout elapses",
    "flow_timeout(seconds): budget for draining the control flow after the test body",
]


# --------------------------------------------------
# configuration
# --------------------------------------------------
def pytest_addoption(parser):
    group = parser.getgroup("flowexpect", "deferred-aware expectations")
    group.addoption(
        "--detail-level",
        action="store",
        type=int,
        default=None,
        dest="flowexpect_detail_level",
        help="run only tests whose detail level is <= this value (default: run all)",
    )
    group.addoption(
        "--flow-timeout",
        action="store",
        type=float,
        default=None,
        dest="flowexpect_timeout",
        help="seconds a test may spend draining its control flow",
    )
    group.addoption(
        "--flowexpect-config",
        action="store",
        default=None,
        dest="flowexpect_config",
        help="YAML config file for flowexpect",
    )
    parser.addini("flowexpect_config", "YAML config file for flowexpect", default=None)


def load_run_config(config) -> AppConfig:
    """YAML/env config, then command-line overrides on top."""
    path = config.getoption("flowexpect_config") or config.getini("flowexpect_config") or None
    app = AppConfig.load(path)

    updates = {}
    level = config.getoption("flowexpect_detail_level")
    if level is not None:
        updates["detail_level"] = level
    timeout = config.getoption("flowexpect_timeout")
    if timeout is not None:
        if timeout <= 0:
            raise UserInputError(f"--flow-timeout must be > 0, got {timeout}")
        updates["default_timeout"] = timeout
    if updates:
        app = app.model_copy(update={"run": app.run.model_copy(update=updates)})
    return app


@pytest.hookimpl(tryfirst=True)
def pytest_configure(config):
    for marker in MARKERS:
        config.addinivalue_line("markers", marker)

    try:
        app = load_run_config(config)
        gate = LevelGate(DetailLevel(app.run.detail_level))
    except (UserInputError, FileNotFoundError, ValidationError) as e:
        raise pytest.UsageError(f"flowexpect: {e}") from e

    logs.configure(app.log)
    config.stash[CONFIG_KEY] = app
    config.stash[GATE_KEY] = push_gate(gate)
    logs.debug(f"[Plugin] configured detail_level={app.run.detail_level} timeout={app.run.default_timeout}")


def pytest_unconfigure(config):
    gate = config.stash.get(GATE_KEY, None)
    if gate is not None:
        pop_gate(gate)


def set_detail_level(config, level: int) -> None:
    """Set the run's detail level; only valid before collection starts."""
    config.stash[GATE_KEY].level.set(level)


def pytest_report_header(config):
    app = config.stash.get(CONFIG_KEY, None)
    if app is None:
        return None
    level = config.stash[GATE_KEY].level.value
    shown = "all" if level is None else level
    return f"flowexpect: detail level {shown}, flow timeout {app.run.default_timeout}s"


@pytest.hookimpl(tryfirst=True)
def pytest_collection(session):
    # registration starts: the level may no longer change
    session.config.stash[GATE_KEY].level.freeze()


# --------------------------------------------------
# runtime gating
# --------------------------------------------------
def _marker_level(marker) -> int:
    if marker.args:
        return marker.args[0]
    if "level" in marker.kwargs:
        return marker.kwargs["level"]
    raise UserInputError("detail_level marker needs a level, e.g. @pytest.mark.detail_level(2)")


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_setup(item):
    marker = item.get_closest_marker("detail_level")
    if marker is None:
        return
    item.config.stash[GATE_KEY].check(_marker_level(marker), skip=pytest.skip)


# --------------------------------------------------
# running bodies
# --------------------------------------------------
def _timeout_for(item, app: AppConfig) -> float:
    marker = item.get_closest_marker("flow_timeout")
    if marker is not None and marker.args:
        seconds = float(marker.args[0])
        if seconds <= 0:
            raise UserInputError(f"flow_timeout marker must be > 0, got {seconds}")
        return seconds
    return app.run.default_timeout


@pytest.hookimpl(tryfirst=True)
def pytest_pyfunc_call(pyfuncitem):
    funcargs = pyfuncitem.funcargs
    flow: Optional[ControlFlow] = funcargs.get("flow")
    retry = pyfuncitem.get_closest_marker("retry")
    is_async = inspect.iscoroutinefunction(pyfuncitem.obj)
    if flow is None and retry is None and not is_async:
        return None

    app = pyfuncitem.config.stash[CONFIG_KEY]
    timeout = _timeout_for(pyfuncitem, app)
    testargs = {arg: funcargs[arg] for arg in pyfuncitem._fixtureinfo.argnames}
    body = partial(pyfuncitem.obj, **testargs)

    with ExitStack() as stack:
        scope = current_scope()
        if flow is None:
            flow = ControlFlow()
            stack.callback(flow.close)
        if scope is None or scope.flow is not flow:
            scope = stack.enter_context(activate(RunScope(flow=flow)))

        try:
            if retry is not None:
                runner = RetryRunner(
                    flow,
                    timeout_budget=retry.kwargs.get("timeout", app.run.retry_timeout),
                    poll_interval=retry.kwargs.get("interval", app.run.poll_interval),
                    drain_timeout=timeout,
                )
                runner.run(body, scope, funcargs.get("retry_state"), name=pyfuncitem.name)
            else:
                outcome = body()
                if inspect.isawaitable(outcome):
                    flow.run(outcome, timeout)
                else:
                    flow.run_until_idle(timeout)
                scope.log.raise_for_failures()
        except BaseException:
            # a failed body's queued work never runs, not even at teardown
            flow.reset()
            raise
    return True


@pytest.hookimpl(tryfirst=True)
def pytest_runtest_teardown(item):
    # expectations made while fixtures tear down are judged in a log of their own
    flow = (getattr(item, "funcargs", None) or {}).get("flow")
    scope = current_scope()
    if flow is not None and scope is not None and scope.flow is flow:
        scope.new_log()


# --------------------------------------------------
# fixtures
# --------------------------------------------------
@pytest.fixture
def flow(request):
    """
    Per-test control flow; expectations inside the test use it.

    Expectations made by other fixtures' teardown are driven and raised
    here, as a teardown error of the test.
    """
    timeout = _timeout_for(request.node, request.config.stash[CONFIG_KEY])
    control_flow = ControlFlow()
    try:
        with activate(RunScope(flow=control_flow)) as scope:
            yield control_flow
            control_flow.run_until_idle(timeout)
            scope.log.raise_for_failures()
    finally:
        control_flow.close()


@pytest.fixture
def retry_state() -> RetryState:
    """Retry bookkeeping; `retry_state.attempt` is the current wait iteration."""
    return RetryState()
