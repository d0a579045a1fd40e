"""Unit tests for the callback URL liveness probe."""

import httpx
from structlog.testing import capture_logs

from gitlab_ci_bridge.common.config import LISTENING_SENTINEL
from gitlab_ci_bridge.lifecycle.prober import LivenessProber

from fakes import CALLBACK_URL


def _prober(handler, metrics=None):
    return LivenessProber(CALLBACK_URL, metrics=metrics, transport=httpx.MockTransport(handler))


def _warnings(logs):
    return [entry for entry in logs if entry["log_level"] == "warning"]


def test_sentinel_body_is_success(metrics):
    prober = _prober(lambda request: httpx.Response(200, text=LISTENING_SENTINEL), metrics)

    with capture_logs() as logs:
        assert prober.probe() is True

    assert _warnings(logs) == []
    assert metrics.registry.get_sample_value("gitlab_bridge_liveness_probes_total", {"result": "ok"}) == 1.0


def test_bad_status_warns_with_url(metrics):
    prober = _prober(lambda request: httpx.Response(503, text="unavailable"), metrics)

    with capture_logs() as logs:
        assert prober.probe() is False

    warnings = _warnings(logs)
    assert len(warnings) == 1
    assert CALLBACK_URL in warnings[0]["event"]
    assert "must be accessible by GitLab" in warnings[0]["event"]
    assert warnings[0]["status_code"] == 503
    assert metrics.registry.get_sample_value(
        "gitlab_bridge_liveness_probes_total", {"result": "bad_status"}
    ) == 1.0


def test_wrong_body_warns():
    prober = _prober(lambda request: httpx.Response(200, text="Welcome to nginx!"))

    with capture_logs() as logs:
        assert prober.probe() is False

    assert len(_warnings(logs)) == 1


def test_unreachable_endpoint_warns(metrics):
    def handler(request):
        raise httpx.ConnectError("connection refused", request=request)

    with capture_logs() as logs:
        assert _prober(handler, metrics).probe() is False

    assert CALLBACK_URL in _warnings(logs)[0]["event"]
    assert metrics.registry.get_sample_value(
        "gitlab_bridge_liveness_probes_total", {"result": "unreachable"}
    ) == 1.0


def test_probe_is_a_single_get():
    requests = []

    def handler(request):
        requests.append(request)
        return httpx.Response(500)

    _prober(handler).probe()

    assert [(r.method, str(r.url)) for r in requests] == [("GET", CALLBACK_URL)]


def test_unexpected_error_is_reported_not_raised(metrics):
    def handler(request):
        raise RuntimeError("socket exploded")

    with capture_logs() as logs:
        assert _prober(handler, metrics).probe() is False

    assert _warnings(logs)[0]["error_type"] == "RuntimeError"
    assert metrics.registry.get_sample_value(
        "gitlab_bridge_liveness_probes_total", {"result": "unreachable"}
    ) == 1.0


def test_invalid_url_is_reported_not_raised():
    prober = LivenessProber("http://", transport=httpx.MockTransport(lambda request: httpx.Response(200)))

    with capture_logs() as logs:
        assert prober.probe() is False

    assert len(_warnings(logs)) == 1
