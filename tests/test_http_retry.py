from __future__ import annotations

from dataclasses import replace
from unittest.mock import MagicMock

import pytest
import requests.exceptions

from retencoes.services.exceptions import AuthenticationError, ExtractionError
from retencoes.services.http_retry import (
    GEMINI_EXTRACT,
    RetryableHTTPError,
    is_auth_failure,
    raise_for_gemini_status,
    retry_call,
)

STEADY = replace(GEMINI_EXTRACT, jitter=0.0)


def _gemini_response(status_code: int = 200, text: str = ""):
    resp = MagicMock()
    resp.ok = status_code < 400
    resp.status_code = status_code
    resp.text = text
    resp.json.return_value = {"candidates": []}
    return resp


class FakeGemini:
    """Serves canned responses (or raises canned errors) in order."""

    def __init__(self, *outcomes):
        self._outcomes = list(outcomes)
        self.calls = 0

    def __call__(self):
        self.calls += 1
        outcome = self._outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        raise_for_gemini_status(outcome)
        return outcome.json()


class TestRaiseForGeminiStatus:
    def test_success_passes(self):
        raise_for_gemini_status(_gemini_response(200))

    @pytest.mark.parametrize("status", [401, 403])
    def test_auth_status(self, status):
        with pytest.raises(AuthenticationError, match="chave da API"):
            raise_for_gemini_status(_gemini_response(status, "denied"))

    def test_invalid_key_reported_as_400(self):
        body = '{"error": {"status": "INVALID_ARGUMENT", "reason": "API_KEY_INVALID"}}'
        with pytest.raises(AuthenticationError):
            raise_for_gemini_status(_gemini_response(400, body))

    @pytest.mark.parametrize("status", sorted(GEMINI_EXTRACT.transient_statuses))
    def test_transient_status(self, status):
        with pytest.raises(RetryableHTTPError) as exc_info:
            raise_for_gemini_status(_gemini_response(status, "overloaded"))
        assert exc_info.value.status_code == status

    def test_bad_request_is_extraction_error(self):
        with pytest.raises(ExtractionError, match="400") as exc_info:
            raise_for_gemini_status(_gemini_response(400, "Unsupported MIME type"))
        assert not isinstance(exc_info.value, AuthenticationError)

    def test_body_truncated(self):
        with pytest.raises(ExtractionError) as exc_info:
            raise_for_gemini_status(_gemini_response(404, "x" * 2000))
        assert len(str(exc_info.value)) < 600

    def test_auth_markers_case_insensitive(self):
        assert is_auth_failure(400, "API key not valid. Please pass a valid API key.")
        assert is_auth_failure(400, "PERMISSION DENIED")
        assert not is_auth_failure(400, "Request payload size exceeds the limit")


class TestRetryCall:
    def test_first_answer_returned(self):
        gemini = FakeGemini(_gemini_response(200))
        assert retry_call(gemini, GEMINI_EXTRACT, sleep=lambda _: None) == {"candidates": []}
        assert gemini.calls == 1

    def test_rate_limit_then_success(self):
        waits: list[float] = []
        gemini = FakeGemini(_gemini_response(429, "quota"), _gemini_response(200))
        assert retry_call(gemini, STEADY, sleep=waits.append) == {"candidates": []}
        assert waits == [2.0]

    def test_overload_backs_off_exponentially(self):
        waits: list[float] = []
        gemini = FakeGemini(
            _gemini_response(503, "overloaded"),
            _gemini_response(500, "internal"),
            _gemini_response(200),
        )
        retry_call(gemini, STEADY, sleep=waits.append)
        assert waits == [2.0, 4.0]
        assert gemini.calls == 3

    def test_read_timeout_resent(self):
        timeout = requests.exceptions.ReadTimeout("read timed out")
        gemini = FakeGemini(timeout, _gemini_response(200))
        retry_call(gemini, GEMINI_EXTRACT, sleep=lambda _: None)
        assert gemini.calls == 2

    def test_gives_up_after_three_attempts(self):
        gemini = FakeGemini(*[_gemini_response(503, "overloaded")] * 3)
        with pytest.raises(RetryableHTTPError, match="503"):
            retry_call(gemini, GEMINI_EXTRACT, sleep=lambda _: None)
        assert gemini.calls == 3

    def test_rejected_key_is_final(self):
        waits: list[float] = []
        gemini = FakeGemini(_gemini_response(403, "denied"), _gemini_response(200))
        with pytest.raises(AuthenticationError):
            retry_call(gemini, GEMINI_EXTRACT, sleep=waits.append)
        assert gemini.calls == 1
        assert waits == []

    def test_bad_request_is_final(self):
        gemini = FakeGemini(_gemini_response(400, "bad request"), _gemini_response(200))
        with pytest.raises(ExtractionError):
            retry_call(gemini, GEMINI_EXTRACT, sleep=lambda _: None)
        assert gemini.calls == 1

    def test_default_sleep_is_time_sleep(self, monkeypatch):
        waits: list[float] = []
        monkeypatch.setattr("retencoes.services.http_retry.time.sleep", waits.append)
        gemini = FakeGemini(requests.exceptions.ConnectionError("reset"), _gemini_response(200))
        retry_call(gemini, STEADY)
        assert waits == [2.0]


class TestGeminiPolicy:
    def test_waits_grow_and_cap(self):
        capped = replace(STEADY, max_wait=5.0)
        assert [capped.wait_before(n) for n in (1, 2, 3, 4)] == [2.0, 4.0, 5.0, 5.0]

    def test_jitter_stays_within_a_quarter(self):
        for _ in range(100):
            assert 1.5 <= GEMINI_EXTRACT.wait_before(1) <= 2.5
            assert 3.0 <= GEMINI_EXTRACT.wait_before(2) <= 5.0

    def test_plain_http_error_not_transient(self):
        assert not isinstance(requests.exceptions.HTTPError("400"), GEMINI_EXTRACT.transient_errors)
        assert isinstance(RetryableHTTPError(503), GEMINI_EXTRACT.transient_errors)
