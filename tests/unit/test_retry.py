"""Unit tests for the retry policy."""

from typing import Any, List

import pytest

from synaptica.errors import RetryError
from synaptica.retry import RetryPolicy


def test_delay_doubles_and_caps() -> None:
    """Test exponential backoff with a maximum delay."""
    policy = RetryPolicy(max_attempts=5, base_delay=1.0, max_delay=5.0)

    assert [policy.delay_for(n) for n in range(1, 6)] == [1.0, 2.0, 4.0, 5.0, 5.0]


def test_returns_first_success(sleep_recorder: Any) -> None:
    """Test that a call succeeding on the second attempt waits once."""
    outcomes: List[Any] = [ConnectionError("down"), "ok"]

    def flaky() -> str:
        result = outcomes.pop(0)
        if isinstance(result, Exception):
            raise result
        return result

    assert RetryPolicy().call(flaky, sleep=sleep_recorder) == "ok"
    assert sleep_recorder.delays == [1.0]


def test_gives_up_after_max_attempts(sleep_recorder: Any) -> None:
    """Test exhaustion: three attempts, two waits, RetryError with the last error."""
    attempts: List[int] = []

    def always_fails() -> None:
        attempts.append(1)
        raise TimeoutError(f"attempt {len(attempts)}")

    with pytest.raises(RetryError) as exc_info:
        RetryPolicy(max_attempts=3).call(always_fails, sleep=sleep_recorder)

    assert len(attempts) == 3
    assert sleep_recorder.delays == [1.0, 2.0]
    assert exc_info.value.attempts == 3
    assert str(exc_info.value.last_error) == "attempt 3"


def test_single_attempt_raises_without_waiting(sleep_recorder: Any) -> None:
    """Test that one allowed attempt fails straight into RetryError."""

    def fails() -> None:
        raise ConnectionError("refused")

    with pytest.raises(RetryError) as exc_info:
        RetryPolicy(max_attempts=1).call(fails, sleep=sleep_recorder)

    assert exc_info.value.attempts == 1
    assert isinstance(exc_info.value.__cause__, ConnectionError)
    assert sleep_recorder.delays == []


def test_only_listed_errors_are_retried(sleep_recorder: Any) -> None:
    """Test that other exceptions propagate immediately."""
    policy = RetryPolicy(retry_on=(ConnectionError,))

    def broken() -> None:
        raise KeyError("bug")

    with pytest.raises(KeyError):
        policy.call(broken, sleep=sleep_recorder)
    assert sleep_recorder.delays == []


def test_arguments_are_passed_through(sleep_recorder: Any) -> None:
    """Test positional and keyword arguments reach the wrapped call."""
    result = RetryPolicy().call(lambda a, b=0: a + b, 2, b=3, sleep=sleep_recorder)

    assert result == 5


def test_invalid_policy() -> None:
    """Test validation of policy values."""
    with pytest.raises(ValueError):
        RetryPolicy(max_attempts=0)
    with pytest.raises(ValueError):
        RetryPolicy(base_delay=-1.0)
