"""
Tests for the WMAdmin admin server routes.
"""

import json
from unittest.mock import MagicMock, patch

import pytest

from wmadmin.config import WMAdminConfig
from wmadmin.core.errors import ConfigurationError, TransportError, UpstreamTimeout
from wmadmin.core.forwarder import AdminForwarder, ProxyResponse
from wmadmin.server.app import (
    HOP_BY_HOP_HEADERS,
    build_supervisor,
    create_app,
    serve,
    wait_for_admin_api,
)


@pytest.fixture
def config():
    cfg = WMAdminConfig()
    cfg.wiremock.embedded.enabled = False
    return cfg


@pytest.fixture
def forwarder():
    fwd = MagicMock(spec=AdminForwarder)
    fwd.base_url = "http://wm:8080"
    fwd.forward.return_value = ProxyResponse(200, [("Content-Type", "application/json")], b"{}")
    return fwd


@pytest.fixture
def client(config, forwarder):
    return create_app(config, forwarder=forwarder).test_client()


# ── Route table ──────────────────────────────────────────────────────────────


class TestRoutes:
    @pytest.mark.parametrize("method,url,upstream", [
        ("GET", "/api/requests", "/__admin/requests"),
        ("DELETE", "/api/requests", "/__admin/requests"),
        ("GET", "/api/mappings", "/__admin/mappings"),
        ("POST", "/api/mappings/save", "/__admin/mappings/save"),
    ])
    def test_bodyless_routes(self, client, forwarder, method, url, upstream):
        resp = client.open(url, method=method)
        assert resp.status_code == 200
        forwarder.forward.assert_called_once_with(method, upstream, None)

    def test_find_requests_forwards_body(self, client, forwarder):
        body = b'{"method":"GET","url":"/x"}'
        client.post("/api/requests/find", data=body, content_type="application/json")
        forwarder.forward.assert_called_once_with("POST", "/__admin/requests/find", body)

    def test_create_mapping_forwards_body(self, client, forwarder):
        body = b'{"request":{"method":"GET"},"response":{"status":200}}'
        client.post("/api/mappings", data=body, content_type="application/json")
        forwarder.forward.assert_called_once_with("POST", "/__admin/mappings", body)

    def test_update_mapping(self, client, forwarder):
        client.put("/api/mappings/abc-123", data=b"{}", content_type="application/json")
        forwarder.forward.assert_called_once_with("PUT", "/__admin/mappings/{id}", b"{}", "abc-123")

    def test_delete_mapping(self, client, forwarder):
        client.delete("/api/mappings/abc-123")
        forwarder.forward.assert_called_once_with("DELETE", "/__admin/mappings/{id}", None, "abc-123")

    def test_empty_body_forwarded_as_none(self, client, forwarder):
        client.post("/api/mappings")
        forwarder.forward.assert_called_once_with("POST", "/__admin/mappings", None)

    def test_unknown_method(self, client):
        assert client.patch("/api/mappings").status_code == 405

    def test_custom_prefix(self, config, forwarder):
        config.server.api_prefix = "/admin/"
        client = create_app(config, forwarder=forwarder).test_client()
        assert client.get("/admin/mappings").status_code == 200
        assert client.get("/api/mappings").status_code == 404


# ── Relaying ─────────────────────────────────────────────────────────────────


class TestRelay:
    def test_status_and_body_untouched(self, client, forwarder):
        forwarder.forward.return_value = ProxyResponse(
            404, [("Content-Type", "application/json")], b'{"error":"nope"}'
        )
        resp = client.delete("/api/mappings/missing")
        assert resp.status_code == 404
        assert resp.data == b'{"error":"nope"}'
        assert resp.headers["Content-Type"] == "application/json"

    def test_binary_body(self, client, forwarder):
        forwarder.forward.return_value = ProxyResponse(200, [("Content-Type", "image/png")], b"\xff\x00\x10")
        resp = client.get("/api/requests")
        assert resp.data == b"\xff\x00\x10"

    def test_no_content_type_injected(self, client, forwarder):
        forwarder.forward.return_value = ProxyResponse(200, [], b"raw")
        resp = client.get("/api/requests")
        assert "Content-Type" not in resp.headers
        assert resp.data == b"raw"

    def test_duplicate_headers_kept(self, client, forwarder):
        forwarder.forward.return_value = ProxyResponse(
            200, [("Set-Cookie", "a=1"), ("Set-Cookie", "b=2"), ("X-Trace", "t")], b""
        )
        resp = client.get("/api/mappings")
        assert resp.headers.getlist("Set-Cookie") == ["a=1", "b=2"]
        assert resp.headers["X-Trace"] == "t"

    def test_hop_by_hop_headers_dropped(self, client, forwarder):
        forwarder.forward.return_value = ProxyResponse(
            200, [("Connection", "keep-alive"), ("Transfer-Encoding", "chunked"), ("X-Ok", "1")], b"x"
        )
        resp = client.get("/api/mappings")
        assert "Transfer-Encoding" not in resp.headers
        assert resp.headers["X-Ok"] == "1"
        assert "transfer-encoding" in HOP_BY_HOP_HEADERS

    def test_upstream_5xx_not_rewritten(self, client, forwarder):
        forwarder.forward.return_value = ProxyResponse(500, [], b"engine error")
        resp = client.post("/api/mappings/save")
        assert resp.status_code == 500
        assert resp.data == b"engine error"


# ── Transport failures ───────────────────────────────────────────────────────


class TestTransportFailures:
    def test_unreachable_is_502(self, client, forwarder):
        forwarder.forward.side_effect = TransportError("Connection refused", "GET", "http://wm:8080")
        resp = client.get("/api/mappings")
        assert resp.status_code == 502
        data = resp.get_json()
        assert data["ok"] is False
        assert "refused" in data["error"]

    def test_timeout_is_504(self, client, forwarder):
        forwarder.forward.side_effect = UpstreamTimeout("timed out", "GET", "http://wm:8080")
        resp = client.get("/api/requests")
        assert resp.status_code == 504
        assert resp.get_json()["ok"] is False


# ── Engine status ────────────────────────────────────────────────────────────


class TestEngineStatus:
    def test_without_supervisor(self, client):
        data = client.get("/api/engine/status").get_json()
        assert data["embedded"] is False
        assert data["engine"] is None
        assert data["admin_base_url"] == "http://wm:8080"

    def test_with_supervisor(self, config, forwarder):
        supervisor = MagicMock()
        supervisor.to_dict.return_value = {"running": True, "state": "running"}
        client = create_app(config, supervisor=supervisor, forwarder=forwarder).test_client()
        data = client.get("/api/engine/status").get_json()
        assert data["embedded"] is True
        assert data["engine"]["state"] == "running"


# ── End to end against a live stub ───────────────────────────────────────────


class TestEndToEnd:
    def test_delete_missing_mapping_passes_404(self, config, admin_stub):
        config.wiremock.base_url = admin_stub.base_url
        client = create_app(config).test_client()
        resp = client.delete("/api/mappings/does-not-exist")
        assert resp.status_code == 404
        assert json.loads(resp.data) == {"error": "not found"}
        assert admin_stub.calls[-1].path == "/__admin/mappings/does-not-exist"

    def test_binary_roundtrip(self, config, admin_stub):
        admin_stub.add("GET", "/__admin/requests", headers=[("X-Bin", "1")], body=b"\xff\x00\x10")
        config.wiremock.base_url = admin_stub.base_url
        resp = create_app(config).test_client().get("/api/requests")
        assert resp.status_code == 200
        assert resp.data == b"\xff\x00\x10"
        assert resp.headers["X-Bin"] == "1"
        assert "Content-Type" not in resp.headers

    def test_engine_not_asked_for_compression(self, config, admin_stub):
        admin_stub.add("GET", "/__admin/mappings", headers=[("Content-Type", "application/json")], body=b"{}")
        config.wiremock.base_url = admin_stub.base_url
        resp = create_app(config).test_client().get("/api/mappings")
        assert resp.data == b"{}"
        assert "Content-Encoding" not in resp.headers
        assert admin_stub.calls[-1].headers["Accept-Encoding"] == "identity"

    def test_create_mapping_body_reaches_engine(self, config, admin_stub):
        admin_stub.add("POST", "/__admin/mappings", status=201, body=b'{"id":"1"}')
        config.wiremock.base_url = admin_stub.base_url
        body = b'{"request":{"url":"/x"}}'
        resp = create_app(config).test_client().post("/api/mappings", data=body, content_type="application/json")
        assert resp.status_code == 201
        assert admin_stub.calls[-1].body == body
        assert admin_stub.calls[-1].headers["Content-Type"] == "application/json"


# ── Factory & launch ─────────────────────────────────────────────────────────


class TestLaunch:
    def test_build_supervisor_disabled(self, config):
        assert build_supervisor(config) is None

    def test_build_supervisor_enabled(self, config, tmp_path):
        config.wiremock.embedded.enabled = True
        config.wiremock.embedded.jar = "/opt/wm.jar"
        config.wiremock.embedded.options = {"port": "8181", "root-dir": str(tmp_path)}
        sup = build_supervisor(config)
        assert sup is not None
        assert sup.options.get("port") == "8181"
        assert sup.entry_point.jar == "/opt/wm.jar"

    def test_wait_for_admin_api_ready(self, forwarder):
        assert wait_for_admin_api(forwarder, timeout=1.0) is True

    def test_wait_for_admin_api_gives_up_when_worker_dies(self, forwarder):
        forwarder.forward.side_effect = TransportError("refused")
        supervisor = MagicMock(is_running=False)
        assert wait_for_admin_api(forwarder, timeout=5.0, supervisor=supervisor) is False

    def test_wait_for_admin_api_times_out(self, forwarder):
        forwarder.forward.side_effect = TransportError("refused")
        assert wait_for_admin_api(forwarder, timeout=0.3) is False

    def test_serve_starts_engine_before_and_stops_after(self, config):
        config.wiremock.embedded.enabled = True
        config.server.admin_wait = 0.1
        supervisor = MagicMock(is_running=True)
        order = []
        supervisor.start.side_effect = lambda: order.append("start")
        supervisor.stop.side_effect = lambda: order.append("stop")

        with patch("wmadmin.server.app.build_supervisor", return_value=supervisor), \
             patch("wmadmin.server.app.wait_for_admin_api", return_value=True), \
             patch("flask.Flask.run", side_effect=lambda **kw: order.append("run")):
            serve(config)

        assert order == ["start", "run", "stop"]

    def test_serve_aborts_on_configuration_error(self, config):
        supervisor = MagicMock()
        supervisor.start.side_effect = ConfigurationError("bad port")

        with patch("wmadmin.server.app.build_supervisor", return_value=supervisor), \
             patch("flask.Flask.run") as run:
            with pytest.raises(ConfigurationError):
                serve(config)

        run.assert_not_called()
        supervisor.stop.assert_called_once()
