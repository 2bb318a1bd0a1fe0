"""
WMAdmin Admin Server
====================
Flask front end over the WireMock Admin API. Every route maps one public
admin endpoint onto one forwarder call and relays status, headers and body
bytes back untouched.
"""

from __future__ import annotations

import logging
import time
from typing import Any, List, Optional, Tuple

from flask import Blueprint, Flask, Response, current_app, jsonify, request

from wmadmin import __version__
from wmadmin.config import WMAdminConfig
from wmadmin.core.engine import WireMockRunner
from wmadmin.core.errors import TransportError, UpstreamTimeout
from wmadmin.core.forwarder import AdminForwarder, ProxyResponse
from wmadmin.core.lifecycle import EmbeddedEngineSupervisor

logger = logging.getLogger(__name__)

WM_ADMIN_REQUESTS = "/__admin/requests"
WM_ADMIN_REQUESTS_FIND = "/__admin/requests/find"
WM_ADMIN_MAPPINGS = "/__admin/mappings"
WM_ADMIN_MAPPINGS_ID = "/__admin/mappings/{id}"
WM_ADMIN_MAPPINGS_SAVE = "/__admin/mappings/save"

# Framing is owned by the local server, not by the upstream connection.
HOP_BY_HOP_HEADERS = frozenset({
    "connection",
    "keep-alive",
    "proxy-authenticate",
    "proxy-authorization",
    "te",
    "trailer",
    "transfer-encoding",
    "upgrade",
})

EXTENSION_KEY = "wmadmin"


class RawResponse(Response):
    """Response that never invents a Content-Type the upstream did not send."""
    default_mimetype = None


api = Blueprint("api", __name__)


# ── Helpers ──────────────────────────────────────────────────────────────────

def _forwarder() -> AdminForwarder:
    return current_app.extensions[EXTENSION_KEY]["forwarder"]


def _supervisor() -> Optional[EmbeddedEngineSupervisor]:
    return current_app.extensions[EXTENSION_KEY]["supervisor"]


def _relay(upstream: ProxyResponse) -> Response:
    headers: List[Tuple[str, str]] = [
        (k, v) for k, v in upstream.headers if k.lower() not in HOP_BY_HOP_HEADERS
    ]
    return RawResponse(response=upstream.body, status=upstream.status_code, headers=headers)


def _inbound_body() -> Optional[bytes]:
    data = request.get_data(cache=False)
    return data or None


def proxy(method: str, path: str, body: Optional[bytes] = None, *path_variables: Any):
    """Forward one call and convert transport failures into 502/504."""
    try:
        upstream = _forwarder().forward(method, path, body, *path_variables)
    except UpstreamTimeout as e:
        logger.warning(f"Admin API timeout: {method} {path}: {e}")
        return jsonify({"ok": False, "error": str(e)}), 504
    except TransportError as e:
        logger.warning(f"Admin API unreachable: {method} {path}: {e}")
        return jsonify({"ok": False, "error": str(e)}), 502
    return _relay(upstream)


# ── Routes: Request Journal ──────────────────────────────────────────────────

@api.route("/requests", methods=["GET"])
def get_requests():
    """Request journal (``GET /__admin/requests``)."""
    return proxy("GET", WM_ADMIN_REQUESTS)


@api.route("/requests/find", methods=["POST"])
def find_requests():
    """Search the journal with WireMock criteria JSON."""
    return proxy("POST", WM_ADMIN_REQUESTS_FIND, _inbound_body())


@api.route("/requests", methods=["DELETE"])
def reset_requests():
    """Clear the request journal."""
    return proxy("DELETE", WM_ADMIN_REQUESTS)


# ── Routes: Mappings ─────────────────────────────────────────────────────────

@api.route("/mappings", methods=["GET"])
def get_mappings():
    return proxy("GET", WM_ADMIN_MAPPINGS)


@api.route("/mappings", methods=["POST"])
def create_mapping():
    return proxy("POST", WM_ADMIN_MAPPINGS, _inbound_body())


@api.route("/mappings/save", methods=["POST"])
def save_mappings():
    """Persist in-memory mappings to the engine's root-dir."""
    return proxy("POST", WM_ADMIN_MAPPINGS_SAVE)


@api.route("/mappings/<mapping_id>", methods=["PUT"])
def update_mapping(mapping_id: str):
    """Replace a mapping by id (full definition)."""
    return proxy("PUT", WM_ADMIN_MAPPINGS_ID, _inbound_body(), mapping_id)


@api.route("/mappings/<mapping_id>", methods=["DELETE"])
def delete_mapping(mapping_id: str):
    return proxy("DELETE", WM_ADMIN_MAPPINGS_ID, None, mapping_id)


# ── Routes: Engine ───────────────────────────────────────────────────────────

@api.route("/engine/status", methods=["GET"])
def engine_status():
    """Embedded engine state and the admin API this server talks to."""
    supervisor = _supervisor()
    return jsonify({
        "version": __version__,
        "admin_base_url": _forwarder().base_url,
        "embedded": supervisor is not None,
        "engine": supervisor.to_dict() if supervisor else None,
    })


# ── App Factory ──────────────────────────────────────────────────────────────

def build_supervisor(config: WMAdminConfig) -> Optional[EmbeddedEngineSupervisor]:
    """Supervisor for the embedded engine, or None when it is disabled."""
    embedded = config.wiremock.embedded
    if not embedded.enabled:
        return None
    runner = WireMockRunner(jar=embedded.jar, java=embedded.java, jvm_args=embedded.jvm_args)
    return EmbeddedEngineSupervisor(embedded.launch_options(), runner)


def build_forwarder(config: WMAdminConfig) -> AdminForwarder:
    return AdminForwarder(
        base_url=config.wiremock.base_url,
        timeout=config.wiremock.timeout,
        max_response_bytes=config.wiremock.max_response_bytes,
    )


def create_app(
    config: WMAdminConfig,
    supervisor: Optional[EmbeddedEngineSupervisor] = None,
    forwarder: Optional[AdminForwarder] = None,
) -> Flask:
    """Build the Flask app. Collaborators default to ones built from config."""
    app = Flask(__name__)
    app.extensions[EXTENSION_KEY] = {
        "config": config,
        "supervisor": supervisor,
        "forwarder": forwarder or build_forwarder(config),
    }
    prefix = config.server.api_prefix.rstrip("/") or None
    app.register_blueprint(api, url_prefix=prefix)
    return app


# ── Launch ───────────────────────────────────────────────────────────────────

def wait_for_admin_api(
    forwarder: AdminForwarder,
    timeout: float,
    supervisor: Optional[EmbeddedEngineSupervisor] = None,
) -> bool:
    """Poll the admin API until it answers, the worker dies, or time runs out."""
    deadline = time.time() + timeout
    while time.time() < deadline:
        try:
            forwarder.forward("GET", WM_ADMIN_MAPPINGS)
            return True
        except TransportError:
            pass
        if supervisor is not None and not supervisor.is_running:
            return False
        time.sleep(0.25)
    return False


def serve(config: WMAdminConfig) -> None:
    """
    Start the embedded engine first, serve the admin API, and stop the
    engine last. Configuration and provisioning errors abort startup.
    """
    supervisor = build_supervisor(config)
    forwarder = build_forwarder(config)
    app = create_app(config, supervisor=supervisor, forwarder=forwarder)

    try:
        if supervisor is not None:
            supervisor.start()
            if wait_for_admin_api(forwarder, config.server.admin_wait, supervisor):
                logger.info(f"WireMock Admin API ready at {forwarder.base_url}")
            else:
                logger.warning(
                    f"WireMock Admin API not reachable at {forwarder.base_url} "
                    f"after {config.server.admin_wait:.0f}s (state={supervisor.state.value})"
                )

        logger.info(
            f"Admin server listening on http://{config.server.host}:{config.server.port}"
            f"{config.server.api_prefix}"
        )
        app.run(
            host=config.server.host,
            port=config.server.port,
            debug=False,
            threaded=True,
            use_reloader=False,
        )
    finally:
        if supervisor is not None:
            supervisor.stop()
        forwarder.close()
