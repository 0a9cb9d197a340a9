"""Tests for the synchronous client's request pipeline."""

from __future__ import annotations

import json
import threading
import time
from typing import Any, Callable, Optional
from unittest.mock import MagicMock, patch

import httpx
import pytest

from refyne import __version__
from refyne.cache import Cache, MemoryCache
from refyne.client import Client
from refyne.client.base import BaseClient
from refyne.exceptions import (
    APIError,
    AuthenticationError,
    ForbiddenError,
    NetworkError,
    NotFoundError,
    RateLimitError,
    RefyneError,
    RequestCancelledError,
    UnsupportedAPIVersionError,
    ValidationError,
)
from refyne.models import CacheEntry, ExtractResponse, LLMConfig, UsageResponse
from refyne.transport import HTTPXTransport

BASE_URL = "https://api.refyne.uk"
USAGE = {"tier": "pro", "creditsUsed": 12.5, "creditsLimit": 100, "creditsRemaining": 87.5}


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class Recorder:
    """Mock transport handler replaying a scripted list of outcomes."""

    def __init__(self, *outcomes: Any) -> None:
        self.outcomes = list(outcomes)
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        outcome = self.outcomes.pop(0) if len(self.outcomes) > 1 else self.outcomes[0]
        if isinstance(outcome, Exception):
            raise outcome
        if callable(outcome):
            return outcome(request)
        # Fresh copy per attempt; the client closes responses it retries.
        return httpx.Response(
            outcome.status_code, headers=outcome.headers, content=outcome.content
        )

    @property
    def count(self) -> int:
        return len(self.requests)


def _response(
    status_code: int = 200,
    data: Any = None,
    *,
    cache_control: Optional[str] = None,
    api_version: Optional[str] = "1.0.0",
    headers: Optional[dict[str, str]] = None,
) -> httpx.Response:
    all_headers = dict(headers or {})
    if cache_control is not None:
        all_headers["Cache-Control"] = cache_control
    if api_version is not None:
        all_headers["X-API-Version"] = api_version
    if data is None:
        return httpx.Response(status_code, headers=all_headers)
    return httpx.Response(status_code, headers=all_headers, json=data)


def _client(handler: Callable[[httpx.Request], httpx.Response], **kwargs: Any) -> Client:
    transport = HTTPXTransport(transport=httpx.MockTransport(handler))
    kwargs.setdefault("max_retries", 3)
    return Client(kwargs.pop("api_key", "test-key"), transport=transport, **kwargs)


@pytest.fixture
def sleep():
    with patch("refyne.client.sync_client.time.sleep") as mock_sleep:
        yield mock_sleep


# ---------------------------------------------------------------------------
# Request construction
# ---------------------------------------------------------------------------


class TestRequestConstruction:
    def test_standard_headers(self) -> None:
        recorder = Recorder(_response(data=USAGE))
        _client(recorder).get_usage()

        request = recorder.requests[0]
        assert request.method == "GET"
        assert str(request.url) == f"{BASE_URL}/api/v1/usage"
        assert request.headers["Authorization"] == "Bearer test-key"
        assert request.headers["Content-Type"] == "application/json"
        assert request.headers["Accept"] == "application/json"
        assert request.headers["User-Agent"].startswith(
            f"Refyne-SDK-Python/{__version__} (Python/"
        )

    def test_user_agent_suffix(self) -> None:
        recorder = Recorder(_response(data=USAGE))
        _client(recorder, user_agent_suffix="MyApp/2.1").get_usage()
        assert recorder.requests[0].headers["User-Agent"].endswith(") MyApp/2.1")

    def test_extract_body_uses_wire_names(self) -> None:
        recorder = Recorder(_response(data={"data": {"name": "Widget"}, "url": "https://x"}))
        result = _client(recorder).extract(
            "https://x",
            {"name": "string"},
            fetch_mode="static",
            llm_config=LLMConfig(provider="openai", api_key="sk-1"),
        )

        body = json.loads(recorder.requests[0].content)
        assert body == {
            "url": "https://x",
            "schema": {"name": "string"},
            "fetchMode": "static",
            "llmConfig": {"provider": "openai", "apiKey": "sk-1"},
        }
        assert isinstance(result, ExtractResponse)
        assert result.data == {"name": "Widget"}

    def test_per_attempt_timeout(self) -> None:
        recorder = Recorder(_response(data=USAGE))
        _client(recorder, timeout=5).get_usage()
        timeout = recorder.requests[0].extensions["timeout"]
        assert timeout == {"connect": 5.0, "read": 5.0, "write": 5.0, "pool": 5.0}

    def test_base_url_trailing_slash_is_stripped(self) -> None:
        recorder = Recorder(_response(data=USAGE))
        _client(recorder, base_url="https://api.example.com/").get_usage()
        assert str(recorder.requests[0].url) == "https://api.example.com/api/v1/usage"

    def test_insecure_base_url_warns(self, recording_logger) -> None:
        _client(Recorder(_response()), base_url="http://localhost:8080", logger=recording_logger)
        assert any("HTTPS" in m for m in recording_logger.messages("warning"))


# ---------------------------------------------------------------------------
# Response decoding
# ---------------------------------------------------------------------------


class TestDecoding:
    def test_result_type_model(self) -> None:
        usage = _client(Recorder(_response(data=USAGE))).get_usage()
        assert isinstance(usage, UsageResponse)
        assert usage.credits_remaining == 87.5

    def test_raw_json_without_result_type(self) -> None:
        client = _client(Recorder(_response(data={"ok": True})))
        assert client.request("GET", "/api/v1/anything") == {"ok": True}

    def test_empty_body_returns_none(self) -> None:
        client = _client(Recorder(_response(204)))
        assert client.request("DELETE", "/api/v1/keys/k1") is None

    def test_invalid_json_raises(self) -> None:
        bad = httpx.Response(200, content=b"<html>", headers={"X-API-Version": "1.0.0"})
        with pytest.raises(RefyneError, match="Failed to parse response"):
            _client(Recorder(bad)).request("GET", "/api/v1/usage")

    def test_shape_mismatch_raises(self) -> None:
        client = _client(Recorder(_response(data={"jobs": "not-a-list"})))
        with pytest.raises(RefyneError, match="JobList"):
            client.jobs.list()


# ---------------------------------------------------------------------------
# Caching
# ---------------------------------------------------------------------------


class TestCaching:
    def test_cacheable_get_is_served_from_cache(self) -> None:
        recorder = Recorder(_response(data=USAGE, cache_control="private, max-age=60"))
        client = _client(recorder)

        first = client.get_usage()
        second = client.get_usage()

        assert recorder.count == 1
        assert first == second
        assert first is not second

    def test_no_store_is_not_cached(self) -> None:
        recorder = Recorder(_response(data=USAGE, cache_control="no-store"))
        client = _client(recorder)
        client.get_usage()
        client.get_usage()
        assert recorder.count == 2

    def test_missing_cache_control_is_not_cached(self) -> None:
        recorder = Recorder(_response(data=USAGE))
        client = _client(recorder)
        client.get_usage()
        client.get_usage()
        assert recorder.count == 2

    def test_post_is_never_cached(self) -> None:
        recorder = Recorder(_response(data={"data": {}}, cache_control="max-age=60"))
        client = _client(recorder)
        client.extract("https://x", {"a": "string"})
        client.extract("https://x", {"a": "string"})
        assert recorder.count == 2

    def test_skip_cache_bypasses_lookup(self) -> None:
        recorder = Recorder(_response(data=USAGE, cache_control="max-age=60"))
        client = _client(recorder)
        client.get_usage()
        client.request("GET", "/api/v1/usage", result_type=UsageResponse, skip_cache=True)
        assert recorder.count == 2

    def test_cache_disabled(self) -> None:
        recorder = Recorder(_response(data=USAGE, cache_control="max-age=60"))
        client = _client(recorder, cache_enabled=False)
        client.get_usage()
        client.get_usage()
        assert recorder.count == 2

    def test_error_responses_are_not_cached(self) -> None:
        recorder = Recorder(
            _response(404, {"error": "missing"}, cache_control="max-age=60"),
            _response(data={"id": "j1"}, cache_control="max-age=60"),
        )
        client = _client(recorder)
        with pytest.raises(NotFoundError):
            client.jobs.get("j1")
        assert client.jobs.get("j1").id == "j1"
        assert recorder.count == 2

    def test_shared_cache_is_partitioned_by_api_key(self) -> None:
        cache = MemoryCache()
        recorder = Recorder(_response(data=USAGE, cache_control="max-age=60"))
        _client(recorder, api_key="key-a", cache=cache).get_usage()
        _client(recorder, api_key="key-b", cache=cache).get_usage()
        _client(recorder, api_key="key-a", cache=cache).get_usage()
        assert recorder.count == 2
        assert cache.size() == 2

    def test_cache_read_failure_falls_back_to_network(self, recording_logger) -> None:
        class BrokenCache(Cache):
            def get(self, key: str) -> Optional[CacheEntry]:
                raise RuntimeError("disk on fire")

            def set(self, key: str, entry: CacheEntry) -> None:
                raise RuntimeError("disk on fire")

            def delete(self, key: str) -> None:
                pass

        recorder = Recorder(_response(data=USAGE, cache_control="max-age=60"))
        client = _client(recorder, cache=BrokenCache(), logger=recording_logger)

        assert client.get_usage().tier == "pro"
        warnings = recording_logger.messages("warning")
        assert "Cache read failed, fetching from API" in warnings
        assert "Cache write failed" in warnings

    def test_undecodable_cached_value_falls_back(self) -> None:
        cache = MemoryCache()
        recorder = Recorder(_response(data={"id": "j1"}, cache_control="max-age=60"))
        client = _client(recorder, cache=cache)
        key = client._cache_key("GET", f"{BASE_URL}/api/v1/jobs/j1")
        cache.set(key, CacheEntry(value={"id": ["bad"]}, expires_at=2**40))

        assert client.jobs.get("j1").id == "j1"
        assert recorder.count == 1


# ---------------------------------------------------------------------------
# Retries
# ---------------------------------------------------------------------------


class TestRetries:
    def test_rate_limit_then_success_without_sleep(self, sleep, recording_logger) -> None:
        recorder = Recorder(
            _response(429, {"error": "slow down"}, headers={"Retry-After": "0"}),
            _response(data=USAGE),
        )
        usage = _client(recorder, logger=recording_logger).get_usage()

        assert usage.tier == "pro"
        assert recorder.count == 2
        sleep.assert_not_called()
        [(_, message, meta)] = [r for r in recording_logger.records if r[0] == "warning"]
        assert message == "Rate limited. Retrying"
        assert meta == {"retry_after": 0, "attempt": 1, "max_retries": 3}

    def test_rate_limit_waits_retry_after(self, sleep) -> None:
        recorder = Recorder(
            _response(429, headers={"Retry-After": "7"}),
            _response(data=USAGE),
        )
        _client(recorder).get_usage()
        sleep.assert_called_once_with(7)

    def test_server_error_then_success_backs_off(self, sleep) -> None:
        recorder = Recorder(_response(500, {"error": "oops"}), _response(data=USAGE))
        _client(recorder).get_usage()
        assert recorder.count == 2
        sleep.assert_called_once_with(1)

    def test_server_error_exhausts_retries(self, sleep) -> None:
        recorder = Recorder(_response(503, {"error": "down", "detail": "maintenance"}))
        with pytest.raises(APIError) as exc_info:
            _client(recorder, max_retries=2).get_usage()

        assert recorder.count == 3
        assert [c.args[0] for c in sleep.call_args_list] == [1, 2]
        assert exc_info.value.status == 503
        assert str(exc_info.value) == "down: maintenance"

    def test_rate_limit_exhausts_retries(self, sleep) -> None:
        recorder = Recorder(_response(429, {"error": "quota"}, headers={"Retry-After": "3"}))
        with pytest.raises(RateLimitError) as exc_info:
            _client(recorder, max_retries=1).get_usage()
        assert recorder.count == 2
        assert exc_info.value.retry_after == 3

    def test_rate_limit_without_header_reports_default(self, sleep) -> None:
        recorder = Recorder(_response(429))
        with pytest.raises(RateLimitError) as exc_info:
            _client(recorder, max_retries=1).get_usage()
        sleep.assert_called_once_with(1)
        assert exc_info.value.retry_after == 60

    def test_zero_retries_means_one_attempt(self, sleep) -> None:
        recorder = Recorder(_response(500))
        with pytest.raises(APIError):
            _client(recorder, max_retries=0).get_usage()
        assert recorder.count == 1
        sleep.assert_not_called()

    def test_network_error_then_success(self, sleep, recording_logger) -> None:
        recorder = Recorder(httpx.ConnectError("refused"), _response(data=USAGE))
        _client(recorder, logger=recording_logger).get_usage()
        assert recorder.count == 2
        sleep.assert_called_once_with(1)
        assert "Network error. Retrying" in recording_logger.messages("warning")

    def test_network_error_exhausts_retries(self, sleep) -> None:
        recorder = Recorder(httpx.ConnectError("refused"))
        with pytest.raises(NetworkError) as exc_info:
            _client(recorder, max_retries=2).get_usage()

        assert recorder.count == 3
        assert isinstance(exc_info.value.error, httpx.ConnectError)
        assert isinstance(exc_info.value.__cause__, httpx.ConnectError)
        assert "3 attempt" in str(exc_info.value)

    def test_timeout_is_retried_as_network_error(self, sleep) -> None:
        recorder = Recorder(httpx.ReadTimeout("slow"))
        with pytest.raises(NetworkError):
            _client(recorder, max_retries=1).get_usage()
        assert recorder.count == 2


# ---------------------------------------------------------------------------
# Error classification
# ---------------------------------------------------------------------------


class TestErrors:
    def test_validation_error_carries_field_errors(self) -> None:
        recorder = Recorder(
            _response(400, {"error": "invalid request", "errors": {"url": "must be absolute"}})
        )
        with pytest.raises(ValidationError) as exc_info:
            _client(recorder).extract("nope", {"a": "string"})

        assert recorder.count == 1
        assert exc_info.value.errors == {"url": "must be absolute"}
        assert exc_info.value.status == 400
        assert str(exc_info.value) == "validation error: invalid request"

    @pytest.mark.parametrize(
        ("status", "exc_type"),
        [
            (401, AuthenticationError),
            (403, ForbiddenError),
            (404, NotFoundError),
        ],
    )
    def test_client_errors_are_not_retried(self, status: int, exc_type: type) -> None:
        recorder = Recorder(_response(status, {"error": "nope"}))
        with pytest.raises(exc_type) as exc_info:
            _client(recorder).get_usage()
        assert recorder.count == 1
        assert exc_info.value.status == status

    def test_other_status_is_generic(self) -> None:
        recorder = Recorder(_response(409, {"error": "conflict", "detail": "name taken"}))
        with pytest.raises(APIError) as exc_info:
            _client(recorder).request("POST", "/api/v1/schemas", {"name": "x"})
        assert type(exc_info.value) is APIError
        assert exc_info.value.detail == "name taken"

    def test_message_falls_back_to_reason_phrase(self) -> None:
        with pytest.raises(NotFoundError) as exc_info:
            _client(Recorder(_response(404))).get_usage()
        assert exc_info.value.message == "Not Found"


# ---------------------------------------------------------------------------
# Cancellation
# ---------------------------------------------------------------------------


class TestCancellation:
    def test_cancelled_before_first_attempt(self) -> None:
        recorder = Recorder(_response(data=USAGE))
        cancel = threading.Event()
        cancel.set()
        with pytest.raises(RequestCancelledError):
            _client(recorder).request("GET", "/api/v1/usage", cancel=cancel)
        assert recorder.count == 0

    def test_cancel_set_during_send_discards_response(self) -> None:
        cancel = threading.Event()

        def fail_and_cancel(request: httpx.Request) -> httpx.Response:
            cancel.set()
            return _response(500)

        recorder = Recorder(fail_and_cancel)
        with pytest.raises(RequestCancelledError) as exc_info:
            _client(recorder).request("GET", "/api/v1/usage", cancel=cancel)

        assert recorder.count == 1
        assert isinstance(exc_info.value, NetworkError)

    def test_cancel_interrupts_backoff_wait(self) -> None:
        cancel = threading.Event()
        recorder = Recorder(_response(503))
        timer = threading.Timer(0.05, cancel.set)
        timer.start()
        started = time.monotonic()
        with pytest.raises(RequestCancelledError):
            _client(recorder).request("GET", "/api/v1/usage", cancel=cancel)
        timer.join()

        assert recorder.count == 1
        assert time.monotonic() - started < 0.9

    def test_cancel_aborts_in_flight_attempt(self) -> None:
        cancel = threading.Event()
        release = threading.Event()

        def slow(request: httpx.Request) -> httpx.Response:
            release.wait(5)
            return _response(data=USAGE)

        timer = threading.Timer(0.05, cancel.set)
        timer.start()
        started = time.monotonic()
        try:
            with pytest.raises(RequestCancelledError):
                _client(Recorder(slow)).request("GET", "/api/v1/usage", cancel=cancel)
            assert time.monotonic() - started < 2
        finally:
            release.set()
            timer.join()

    def test_unset_event_does_not_interfere(self) -> None:
        recorder = Recorder(_response(data=USAGE))
        result = _client(recorder).request(
            "GET", "/api/v1/usage", result_type=UsageResponse, cancel=threading.Event()
        )
        assert result.tier == "pro"


# ---------------------------------------------------------------------------
# API version check
# ---------------------------------------------------------------------------


class TestVersionCheck:
    def test_newer_major_warns_once(self, recording_logger) -> None:
        recorder = Recorder(_response(data=USAGE, api_version="2.0.0"))
        client = _client(recorder, logger=recording_logger, min_api_version="1.0.0")
        client.get_usage()
        client.get_usage()
        warnings = [m for m in recording_logger.messages("warning") if "2.0.0" in m]
        assert len(warnings) == 1

    def test_newer_major_still_succeeds(self) -> None:
        recorder = Recorder(_response(data=USAGE, api_version="2.0.0"))
        client = _client(recorder, min_api_version="1.0.0", max_known_api_version="1.0.0")
        assert client.get_usage().tier == "pro"

    def test_too_old_fails_and_rechecks(self) -> None:
        recorder = Recorder(_response(data=USAGE, api_version="0.5.0"))
        client = _client(recorder, min_api_version="1.0.0")
        with pytest.raises(UnsupportedAPIVersionError):
            client.get_usage()
        with pytest.raises(UnsupportedAPIVersionError):
            client.get_usage()

    def test_check_runs_before_status_handling(self) -> None:
        recorder = Recorder(_response(404, {"error": "missing"}, api_version="0.5.0"))
        client = _client(recorder, min_api_version="1.0.0")
        with pytest.raises(UnsupportedAPIVersionError):
            client.jobs.get("j1")

    def test_missing_header_warns_once(self, recording_logger) -> None:
        recorder = Recorder(_response(data=USAGE, api_version=None))
        client = _client(recorder, logger=recording_logger)
        client.get_usage()
        client.get_usage()
        assert recording_logger.messages("warning").count(
            "API did not return X-API-Version header"
        ) == 1

    def test_cache_hit_does_not_trigger_check(self) -> None:
        cache = MemoryCache()
        seed = _client(Recorder(_response(data=USAGE, cache_control="max-age=60")), cache=cache)
        seed.get_usage()

        with patch("refyne.client.base.check_api_version_compatibility") as mock_check:
            client = _client(Recorder(_response(data=USAGE)), cache=cache)
            client.get_usage()
        mock_check.assert_not_called()

    def test_concurrent_first_calls_check_once(self) -> None:
        recorder = Recorder(_response(data=USAGE))
        client = _client(recorder, cache_enabled=False)
        start = threading.Barrier(8)
        errors: list[BaseException] = []

        def worker() -> None:
            start.wait()
            try:
                client.get_usage()
            except BaseException as exc:  # noqa: BLE001
                errors.append(exc)

        with patch("refyne.client.base.check_api_version_compatibility") as mock_check:
            threads = [threading.Thread(target=worker) for _ in range(8)]
            for t in threads:
                t.start()
            for t in threads:
                t.join()

        assert errors == []
        assert recorder.count == 8
        assert mock_check.call_count == 1


# ---------------------------------------------------------------------------
# Lifecycle
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_context_manager_closes_owned_transport(self) -> None:
        with patch("refyne.client.sync_client.HTTPXTransport") as mock_transport:
            with Client("key"):
                pass
        mock_transport.return_value.close.assert_called_once()

    def test_supplied_transport_is_not_closed(self) -> None:
        transport = HTTPXTransport(transport=httpx.MockTransport(Recorder(_response())))
        with patch.object(transport, "close") as mock_close:
            with Client("key", transport=transport):
                pass
        mock_close.assert_not_called()

    def test_cache_closed_only_when_requested(self) -> None:
        kept = MagicMock(spec=Cache)
        with _client(Recorder(_response()), cache=kept):
            pass
        kept.close.assert_not_called()

        owned = MagicMock(spec=Cache)
        with _client(Recorder(_response()), cache=owned, close_cache=True):
            pass
        owned.close.assert_called_once()

    def test_base_client_is_abstract(self) -> None:
        with pytest.raises(TypeError):
            BaseClient("key")
