import httpx
import openai
import pytest

from llm import retry_utils
from llm.retry_utils import call_llm_with_retry


@pytest.fixture(autouse=True)
def no_sleep(monkeypatch):
    delays = []
    monkeypatch.setattr(retry_utils.time, "sleep", delays.append)
    return delays


def _connection_error():
    return openai.APIConnectionError(request=httpx.Request("POST", "https://api.openai.com/v1/chat/completions"))


def test_retries_transient_errors_then_succeeds(no_sleep):
    attempts = []

    def flaky():
        attempts.append(1)
        if len(attempts) < 3:
            raise _connection_error()
        return "ok"

    assert call_llm_with_retry(flaky, max_retries=2, initial_delay=0.5) == "ok"
    assert len(attempts) == 3
    assert no_sleep == [0.5, 1.0]


def test_reraises_after_last_attempt(no_sleep):
    def down():
        raise _connection_error()

    with pytest.raises(openai.APIConnectionError):
        call_llm_with_retry(down, max_retries=1)
    assert len(no_sleep) == 1


def test_non_retryable_errors_pass_straight_through(no_sleep):
    def broken():
        raise ValueError("bad request body")

    with pytest.raises(ValueError):
        call_llm_with_retry(broken)
    assert no_sleep == []


def test_passes_arguments_through():
    assert call_llm_with_retry(lambda a, b=0: a + b, 2, b=3) == 5
