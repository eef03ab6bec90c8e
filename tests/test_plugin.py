#!filepath: tests/test_plugin.py
"""
End-to-end runs of the plugin through pytester (in-process pytest runs).
"""
import pytest

LEVELED_TESTS = """
import pytest
from flowexpect import expect


def test_unmarked():
    expect(3).not_.to_equal(7)


@pytest.mark.detail_level(0)
def test_level_zero(flow):
    expect(flow.fulfilled(4)).not_.to_equal(7)


@pytest.mark.detail_level(1)
def test_level_one():
    expect(5).not_.to_equal(8)


@pytest.mark.detail_level(2)
def test_level_two_would_fail():
    expect(6).to_equal(9)


@pytest.mark.detail_level(level=3)
def test_level_three_would_fail():
    expect(7).to_equal(10)
"""


# =============================
#   runtime-gated（marker）
# =============================
def test_detail_level_skips_deeper_tests(plugin_conftest):
    plugin_conftest.makepyfile(LEVELED_TESTS)

    result = plugin_conftest.runpytest("--detail-level=1", "-rs")

    result.assert_outcomes(passed=3, skipped=2)
    result.stdout.fnmatch_lines(["*detail level 2 > current level 1*"])


def test_unset_level_runs_everything(plugin_conftest):
    plugin_conftest.makepyfile(LEVELED_TESTS)

    result = plugin_conftest.runpytest()

    result.assert_outcomes(passed=3, failed=2)
    result.stdout.fnmatch_lines(["*Expected 6 to equal 9.*"])


def test_level_from_config_file(plugin_conftest):
    plugin_conftest.makepyfile(LEVELED_TESTS)
    plugin_conftest.makefile(".yaml", flowexpect="run:\n  detail_level: 0\n")

    result = plugin_conftest.runpytest("--flowexpect-config=flowexpect.yaml")

    result.assert_outcomes(passed=2, skipped=3)


def test_level_from_ini(plugin_conftest):
    plugin_conftest.makepyfile(LEVELED_TESTS)
    plugin_conftest.makefile(".yaml", flowexpect="run:\n  detail_level: 0\n")
    plugin_conftest.makeini("[pytest]\nflowexpect_config = flowexpect.yaml\n")

    result = plugin_conftest.runpytest()

    result.assert_outcomes(passed=2, skipped=3)


def test_command_line_beats_config_file(plugin_conftest):
    plugin_conftest.makepyfile(LEVELED_TESTS)
    plugin_conftest.makefile(".yaml", flowexpect="run:\n  detail_level: 0\n")

    result = plugin_conftest.runpytest("--flowexpect-config=flowexpect.yaml", "--detail-level=1")

    result.assert_outcomes(passed=3, skipped=2)


# =============================
#   registration-gated
# =============================
def test_registration_gated_blocks_are_not_collected(plugin_conftest):
    plugin_conftest.makepyfile(
        """
        from flowexpect import detail_block, detail_enabled, expect

        if detail_enabled(1):
            def test_level_one_block():
                expect(6).not_.to_equal(8)

        if detail_enabled(2):
            def test_level_two_block():
                expect(8).to_equal(10)

        @detail_block(3)
        class TestLevelThree:
            def test_never_collected(self):
                expect(9).to_equal(10)
        """
    )

    result = plugin_conftest.runpytest("--detail-level=1", "-v")

    result.assert_outcomes(passed=1)
    result.stdout.fnmatch_lines(["*test_level_one_block PASSED*"])
    result.stdout.no_fnmatch_line("*test_level_two_block*")
    result.stdout.no_fnmatch_line("*test_never_collected*")


# =============================
#   设置 level 的时机
# =============================
def test_level_set_in_conftest(pytester):
    pytester.makeconftest(
        """
        pytest_plugins = ["flowexpect.plugin"]
        from flowexpect.plugin import set_detail_level


        def pytest_configure(config):
            set_detail_level(config, 0)
        """
    )
    pytester.makepyfile(LEVELED_TESTS)

    result = pytester.runpytest()

    result.assert_outcomes(passed=2, skipped=3)


def test_level_set_twice_is_an_error(pytester):
    pytester.makeconftest(
        """
        pytest_plugins = ["flowexpect.plugin"]
        from flowexpect.plugin import set_detail_level


        def pytest_configure(config):
            set_detail_level(config, 0)
        """
    )
    pytester.makepyfile(LEVELED_TESTS)

    result = pytester.runpytest("--detail-level=1")

    assert result.ret != pytest.ExitCode.OK
    output = "\n".join(result.outlines + result.errlines)
    assert "already set" in output


def test_level_set_after_registration_started(plugin_conftest):
    plugin_conftest.makepyfile(
        """
        from flowexpect import set_detail_level

        set_detail_level(1)


        def test_never_runs():
            pass
        """
    )

    result = plugin_conftest.runpytest()

    result.assert_outcomes(errors=1)
    result.stdout.fnmatch_lines(["*LevelConfigurationError*"])


def test_negative_level_is_a_usage_error(plugin_conftest):
    plugin_conftest.makepyfile(LEVELED_TESTS)

    result = plugin_conftest.runpytest("--detail-level=-1")

    assert result.ret == pytest.ExitCode.USAGE_ERROR
    result.stderr.fnmatch_lines(["*detail level must be an int >= 0*"])


def test_missing_config_file_is_a_usage_error(plugin_conftest):
    plugin_conftest.makepyfile(LEVELED_TESTS)

    result = plugin_conftest.runpytest("--flowexpect-config=nope.yaml")

    assert result.ret == pytest.ExitCode.USAGE_ERROR
    result.stderr.fnmatch_lines(["*Config file not found*"])


def test_invalid_env_value_is_a_usage_error(plugin_conftest, monkeypatch):
    monkeypatch.setenv("FLOWEXPECT_DETAIL_LEVEL", "abc")
    plugin_conftest.makepyfile(LEVELED_TESTS)

    result = plugin_conftest.runpytest()

    assert result.ret == pytest.ExitCode.USAGE_ERROR
    result.stderr.fnmatch_lines(["*flowexpect: 1 validation error*"])


def test_report_header(plugin_conftest):
    plugin_conftest.makepyfile(LEVELED_TESTS)

    result = plugin_conftest.runpytest("--detail-level=2", "--flow-timeout=1.5")

    result.stdout.fnmatch_lines(["flowexpect: detail level 2, flow timeout 1.5s"])


# =============================
#   失败报告
# =============================
def test_mismatch_is_reported_after_the_flow_drains(plugin_conftest):
    plugin_conftest.makepyfile(
        """
        from flowexpect import expect


        def test_mismatch(flow):
            expect(flow.fulfilled("a")).to_equal("b")


        def test_two_failures(flow):
            expect(1).to_equal(2)
            expect(flow.fulfilled(3)).to_equal(4)
        """
    )

    result = plugin_conftest.runpytest()

    result.assert_outcomes(failed=2)
    result.stdout.fnmatch_lines(
        [
            "*Expected 'a' to equal 'b'.*",
            "*2 expectations failed*",
        ]
    )


def test_flow_timeout_marker(plugin_conftest):
    plugin_conftest.makepyfile(
        """
        import pytest
        from flowexpect import expect


        @pytest.mark.flow_timeout(0.05)
        def test_slow(flow):
            flow.timeout(5)
            expect(flow.execute(lambda: "b")).to_equal("b")
        """
    )

    result = plugin_conftest.runpytest()

    result.assert_outcomes(failed=1)
    result.stdout.fnmatch_lines(["*TimeoutFailure*"])


def test_non_positive_flow_timeout_marker_is_rejected(plugin_conftest):
    plugin_conftest.makepyfile(
        """
        import pytest


        @pytest.mark.flow_timeout(0)
        def test_zero_budget(flow):
            pass


        @pytest.mark.flow_timeout(-1)
        async def test_negative_budget():
            pass
        """
    )

    result = plugin_conftest.runpytest()

    result.assert_outcomes(errors=1, failed=1)
    result.stdout.fnmatch_lines(["*flow_timeout marker must be > 0, got 0.0*"])
    result.stdout.fnmatch_lines(["*flow_timeout marker must be > 0, got -1.0*"])


def test_unhandled_rejection_fails_the_test(plugin_conftest):
    plugin_conftest.makepyfile(
        """
        from flowexpect import expect


        def test_error_in_continuation(flow):
            flow.execute(lambda: "a").then(lambda value: value.no_such_method())


        def test_error_in_task(flow):
            flow.execute(lambda: 1 / 0)


        def test_underlying_deferred_still_usable(flow):
            flow.execute(lambda: "a").then(lambda value: expect(value).to_equal("a"))
        """
    )

    result = plugin_conftest.runpytest()

    result.assert_outcomes(failed=2, passed=1)
    result.stdout.fnmatch_lines(["*UnhandledRejection: 1 unhandled rejection(s) on the control flow:*"])
    result.stdout.fnmatch_lines(["*AttributeError*no_such_method*"])
    result.stdout.fnmatch_lines(["*ZeroDivisionError*"])


# =============================
#   fixture setup / teardown 里的 expect
# =============================
def test_teardown_expectations_are_reported(plugin_conftest):
    plugin_conftest.makepyfile(
        """
        import asyncio

        import pytest
        from flowexpect import expect

        state = {"x": 0}


        @pytest.fixture(autouse=True)
        def x_must_be_set(flow):
            state["x"] = 0
            yield
            expect(state["x"]).to_be(1)
            expect(flow.execute(lambda: state["x"])).to_be(1)


        def test_synchronous_sets_x():
            state["x"] = 1


        async def test_asynchronous_sets_x():
            await asyncio.sleep(0.05)
            state["x"] = 1


        def test_forgets_to_set_x():
            pass
        """
    )

    result = plugin_conftest.runpytest()

    # a teardown error still counts the call as passed
    result.assert_outcomes(passed=3, errors=1)
    result.stdout.fnmatch_lines(
        [
            "*ERROR at teardown of test_forgets_to_set_x*",
            "*2 expectations failed*",
        ]
    )


def test_setup_expectations_fail_retried_and_plain_tests_alike(plugin_conftest):
    plugin_conftest.makepyfile(
        """
        import pytest
        from flowexpect import expect

        attempts = {"n": 0}


        @pytest.fixture
        def failing_setup(flow):
            expect(flow.fulfilled("setup")).to_equal("never")


        @pytest.mark.retry(timeout=0.5, interval=0.01)
        def test_retry_with_failing_setup(failing_setup):
            attempts["n"] += 1


        def test_plain_with_failing_setup(failing_setup):
            pass


        def test_retry_body_never_ran():
            assert attempts["n"] == 0
        """
    )

    result = plugin_conftest.runpytest("-v")

    result.assert_outcomes(failed=2, passed=1)
    result.stdout.fnmatch_lines(
        [
            "*test_retry_with_failing_setup FAILED*",
            "*test_plain_with_failing_setup FAILED*",
        ]
    )
    result.stdout.fnmatch_lines(["*Expected 'setup' to equal 'never'.*"])


def test_async_tests_run_on_the_flow(plugin_conftest):
    plugin_conftest.makepyfile(
        """
        from flowexpect import current_scope, expect


        async def test_with_flow(flow):
            value = await flow.execute(lambda: "a")
            expect(value).to_equal("a")


        async def test_without_flow_fixture():
            flow = current_scope().flow
            assert await expect(flow.fulfilled(1)).to_equal(1)
        """
    )

    result = plugin_conftest.runpytest()

    result.assert_outcomes(passed=2)


# =============================
#   retry marker
# =============================
def test_retry_marker_passes_eventually(plugin_conftest):
    plugin_conftest.makepyfile(
        """
        import pytest
        from flowexpect import expect

        count = {"n": 0}


        @pytest.mark.retry(timeout=2, interval=0.01)
        def test_retry_until_three():
            count["n"] += 1
            expect(count["n"]).to_be(3)


        def test_count_updated_by_retry():
            assert count["n"] == 3
        """
    )

    result = plugin_conftest.runpytest()

    result.assert_outcomes(passed=2)


def test_retry_marker_gives_up(plugin_conftest):
    plugin_conftest.makepyfile(
        """
        import pytest
        from flowexpect import expect


        @pytest.mark.retry(timeout=0.05, interval=0.01)
        def test_never_passes():
            expect(1).to_equal(2)
        """
    )

    result = plugin_conftest.runpytest()

    result.assert_outcomes(failed=1)
    result.stdout.fnmatch_lines(["*RetryExhausted*Expected 1 to equal 2.*"])


def test_retry_defaults_come_from_config(plugin_conftest):
    plugin_conftest.makefile(".yaml", flowexpect="run:\n  retry_timeout: 0.05\n  poll_interval: 0.01\n")
    plugin_conftest.makepyfile(
        """
        import pytest
        from flowexpect import expect


        @pytest.mark.retry
        def test_never_passes(retry_state):
            expect(retry_state.attempt).to_be(-1)
        """
    )

    result = plugin_conftest.runpytest("--flowexpect-config=flowexpect.yaml")

    result.assert_outcomes(failed=1)
    result.stdout.fnmatch_lines(["*RetryExhausted*"])
