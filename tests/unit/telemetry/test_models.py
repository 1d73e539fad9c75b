"""Tests for the domain models and the Result container."""

from datetime import datetime

import pytest

from telemetry.domain.models import (
    HealthStatus,
    ProxyResponse,
    RequestSample,
    ServiceHealthSample,
)
from telemetry.domain.result import Result
from tests.conftest import T0


class TestRequestSampleFromExchange:
    def test_reads_every_field(self) -> None:
        sample = RequestSample.from_exchange(
            {
                "method": "post",
                "url": "/orders",
                "headers": {"User-Agent": "curl/8.0"},
                "client_ip": "10.0.0.7",
                "user_id": 17,
            },
            {"status_code": 201},
            12.5,
            timestamp=T0,
        )

        assert sample.timestamp == T0
        assert sample.method == "POST"
        assert sample.endpoint == "POST /orders"
        assert sample.status_code == 201
        assert sample.response_time_ms == 12.5
        assert sample.user_agent == "curl/8.0"
        assert sample.client_ip == "10.0.0.7"
        assert sample.user_id == "17"
        assert not sample.is_error

    def test_path_and_status_aliases(self) -> None:
        sample = RequestSample.from_exchange({"path": "/p"}, {"status": 404}, 1)

        assert sample.url == "/p"
        assert sample.status_code == 404
        assert sample.is_error

    def test_byte_headers_are_decoded(self) -> None:
        sample = RequestSample.from_exchange(
            {"headers": {b"user-agent": b"httpx"}}, {"status_code": 200}, 1
        )

        assert sample.user_agent == "httpx"

    @pytest.mark.parametrize(
        "elapsed",
        ["12", None, True, object(), float("inf"), float("-inf"), float("nan"), 10**400],
    )
    def test_non_numeric_or_non_finite_response_time_is_dropped(self, elapsed: object) -> None:
        sample = RequestSample.from_exchange({}, {"status_code": 200}, elapsed)

        assert sample.response_time_ms is None

    def test_error_text_marks_a_success_status_as_error(self) -> None:
        sample = RequestSample.from_exchange({}, {"status_code": 200}, 1, error="partial write")

        assert sample.is_error
        assert sample.error == "partial write"

    def test_exception_without_message_uses_its_type(self) -> None:
        sample = RequestSample.from_exchange({}, None, 1, error=TimeoutError())

        assert sample.error == "TimeoutError"


class TestImmutability:
    def test_request_samples_are_frozen(self) -> None:
        sample = RequestSample.from_exchange({}, {"status_code": 200}, 1)

        with pytest.raises(ValueError, match="frozen"):
            sample.status_code = 500  # type: ignore[misc]

    def test_naive_timestamps_are_rejected(self) -> None:
        with pytest.raises(ValueError, match="timezone"):
            RequestSample(timestamp=datetime(2024, 5, 1, 10, 0))
        with pytest.raises(ValueError, match="timezone"):
            ServiceHealthSample(
                timestamp=datetime(2024, 5, 1, 10, 0),
                service_id=1,
                service_name="x",
                status=HealthStatus.ONLINE,
            )

    @pytest.mark.parametrize("elapsed", [float("inf"), float("nan")])
    def test_health_samples_reject_non_finite_times(self, elapsed: float) -> None:
        with pytest.raises(ValueError):
            ServiceHealthSample(
                service_id=1, service_name="x", status=HealthStatus.ONLINE, response_time_ms=elapsed
            )

    def test_health_samples_reject_negative_times(self) -> None:
        with pytest.raises(ValueError):
            ServiceHealthSample(
                service_id=1, service_name="x", status=HealthStatus.ONLINE, response_time_ms=-1
            )


def test_proxy_response_ok_flag() -> None:
    assert ProxyResponse(status=200).ok
    assert not ProxyResponse(error="timed out").ok


class TestResult:
    def test_ok(self) -> None:
        result: Result[int, ValueError] = Result.ok(3)

        assert result.is_ok()
        assert result.unwrap() == 3
        assert result.unwrap_or(0) == 3
        assert repr(result) == "Result.ok(3)"

    def test_err(self) -> None:
        result: Result[int, ValueError] = Result.err(ValueError("nope"))

        assert result.is_err()
        assert result.unwrap_or(0) == 0
        with pytest.raises(ValueError, match="nope"):
            result.unwrap()

    def test_unwrap_err_on_ok_raises(self) -> None:
        with pytest.raises(ValueError, match="unwrap_err"):
            Result.ok(1).unwrap_err()

    def test_requires_exactly_one_side(self) -> None:
        with pytest.raises(ValueError):
            Result()
        with pytest.raises(ValueError):
            Result(value=1, error=ValueError())
