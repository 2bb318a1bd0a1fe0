"""
WMAdmin Core Module
"""

from wmadmin.core.errors import (
    ConfigurationError,
    ProvisioningError,
    ResponseTooLarge,
    TransportError,
    UpstreamTimeout,
    WMAdminError,
    WorkerRuntimeError,
)
from wmadmin.core.forwarder import AdminForwarder, ProxyResponse
from wmadmin.core.lifecycle import EmbeddedEngineSupervisor, EngineState, LaunchOptions

__all__ = [
    "AdminForwarder",
    "ConfigurationError",
    "EmbeddedEngineSupervisor",
    "EngineState",
    "LaunchOptions",
    "ProvisioningError",
    "ProxyResponse",
    "ResponseTooLarge",
    "TransportError",
    "UpstreamTimeout",
    "WMAdminError",
    "WorkerRuntimeError",
]
