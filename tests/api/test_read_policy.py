import pytest

from telemetry_server.api import routes
from telemetry_server.core.exceptions import StoreError
from telemetry_server.schemas import TelemetryEvent


class FailingStore:
    def __getattr__(self, name):
        def _fail(*args, **kwargs):
            raise StoreError(f"{name} unavailable")

        return _fail


def test_read_or_default_returns_value_on_success():
    assert routes.read_or_default(lambda: 5, 0, label="count") == 5


def test_read_or_default_substitutes_default_on_store_error():
    def failing():
        raise StoreError("database is locked")

    assert routes.read_or_default(failing, [], label="recent") == []


def test_read_or_default_does_not_hide_programming_errors():
    def broken():
        raise KeyError("oops")

    with pytest.raises(KeyError):
        routes.read_or_default(broken, 0, label="broken")


def test_get_metrics_with_failing_store_returns_zero_snapshot():
    result = routes.get_metrics(FailingStore())

    assert result.total_deployments == 0
    assert result.unique_instances == 0
    assert result.architecture_breakdown == []
    assert result.version_breakdown == []
    assert result.avg_startup_time_ms == 0.0


def test_collect_with_failing_store_embeds_error_text():
    event = TelemetryEvent(
        image_version="v1",
        architecture="x86_64",
        os="Linux",
        container_runtime="podman",
        startup_time_ms=10,
        db_type="postgres",
    )

    response = routes.collect_telemetry(event, FailingStore())

    assert response.status_code == 500
    assert b"Failed to collect telemetry: insert unavailable" in response.body
