"""Unit tests for retries with exponential backoff."""

import logging

import pytest

from pymegadl.exceptions import (
    MegaAPIError,
    MegaDecryptionError,
    MegaError,
    MegaIntegrityError,
    MegaLocalCollisionError,
    MegaNetworkError,
)
from pymegadl.output import OutputFormatter
from pymegadl.retry import DEFAULT_RETRY_POLICY, RetryingTransfer, RetryPolicy


class FlakyFetch:
    """Fails with the given errors, one per call, then returns ``result``."""

    def __init__(self, errors, result="done"):
        self.errors = list(errors)
        self.result = result
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.errors:
            raise self.errors.pop(0)
        return self.result


@pytest.fixture
def transfer(sleeps):
    return RetryingTransfer(OutputFormatter(), sleep=sleeps.append)


class TestRetryPolicy:
    """Tests for the delay schedule."""

    def test_default_schedule(self):
        """Test the 2, 4, 8, 16 second delays."""
        delays = [DEFAULT_RETRY_POLICY.delay_for(i) for i in range(4)]
        assert delays == [2, 4, 8, 16]
        assert DEFAULT_RETRY_POLICY.max_attempts == 5

    def test_custom_policy(self):
        """Test a non-default policy."""
        policy = RetryPolicy(max_attempts=3, initial_delay=0.5, backoff_multiplier=3)
        assert [policy.delay_for(i) for i in range(3)] == [0.5, 1.5, 4.5]


class TestRetryingTransfer:
    """Tests for RetryingTransfer.attempt."""

    def test_success_on_first_attempt(self, transfer, sleeps):
        """Test that a working fetch runs once without sleeping."""
        fetch = FlakyFetch([])
        assert transfer.attempt(fetch, "'x'") == "done"
        assert fetch.calls == 1
        assert sleeps == []

    def test_transient_errors_are_retried(self, transfer, sleeps, capsys, caplog):
        """Test recovery after two network errors."""
        fetch = FlakyFetch([MegaNetworkError("reset"), MegaNetworkError("timeout")])

        with caplog.at_level(logging.WARNING, logger="pymegadl.retry"):
            assert transfer.attempt(fetch, "'x'") == "done"
        assert fetch.calls == 3
        assert sleeps == [2, 4]

        # Recovered attempts are logged, not reported as errors
        assert "ERROR" not in capsys.readouterr().err
        assert "Attempt #1 for 'x' failed: reset" in caplog.text
        assert "Attempt #2 for 'x' failed: timeout" in caplog.text

    def test_attempt_budget_is_bounded(self, transfer, sleeps, capsys):
        """Test that a persistent transient error gives up after five tries."""
        errors = [MegaNetworkError(f"failure {i}") for i in range(10)]
        fetch = FlakyFetch(errors)

        with pytest.raises(MegaNetworkError, match="failure 4"):
            transfer.attempt(fetch, "'x'")

        assert fetch.calls == 5
        assert sleeps == [2, 4, 8, 16]
        err = capsys.readouterr().err
        assert err.count("ERROR: Download failed for 'x'") == 1
        assert "failure 4" in err

    @pytest.mark.parametrize(
        "error",
        [
            MegaAPIError("Object not found", code=-9),
            MegaDecryptionError("bad key"),
            MegaIntegrityError("MAC mismatch"),
            MegaLocalCollisionError("exists"),
            MegaError("unexpected reply"),
        ],
    )
    def test_fatal_errors_are_not_retried(self, transfer, sleeps, error):
        """Test that non-network errors abort immediately."""
        fetch = FlakyFetch([error])

        with pytest.raises(type(error)):
            transfer.attempt(fetch, "'x'")

        assert fetch.calls == 1
        assert sleeps == []

    def test_transient_then_fatal(self, transfer, sleeps):
        """Test that a fatal error after a transient one stops the loop."""
        fetch = FlakyFetch([MegaNetworkError("reset"), MegaDecryptionError("bad key")])

        with pytest.raises(MegaDecryptionError):
            transfer.attempt(fetch, "'x'")

        assert fetch.calls == 2
        assert sleeps == [2]

    def test_other_exceptions_propagate(self, transfer, sleeps):
        """Test that programming errors are not treated as transfer failures."""
        fetch = FlakyFetch([KeyError("boom")])

        with pytest.raises(KeyError):
            transfer.attempt(fetch, "'x'")

        assert fetch.calls == 1
        assert sleeps == []

    def test_attempt_message_with_progress(self, make_context, capsys):
        """Test the retry notice shown when progress is enabled."""
        context = make_context(progress=True)
        fetch = FlakyFetch([MegaNetworkError("reset")])

        context.transfer.attempt(fetch, "'x'")

        out = capsys.readouterr().out
        assert "Attempt #1 failed, trying again in 2 seconds..." in out

    def test_no_attempt_message_without_progress(self, make_context, capsys):
        """Test that --no-progress hides the retry notice."""
        context = make_context(progress=False)
        fetch = FlakyFetch([MegaNetworkError("reset")])

        context.transfer.attempt(fetch, "'x'")

        assert "Attempt #" not in capsys.readouterr().out

    def test_zero_attempts(self, sleeps):
        """Test a policy that allows no attempts at all."""
        transfer = RetryingTransfer(
            OutputFormatter(),
            policy=RetryPolicy(max_attempts=0),
            sleep=sleeps.append,
        )
        fetch = FlakyFetch([])

        with pytest.raises(MegaError):
            transfer.attempt(fetch, "'x'")
        assert fetch.calls == 0
