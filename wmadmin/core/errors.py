"""
WMAdmin Errors
==============
Failure taxonomy shared by the supervisor, the engine runner and the forwarder.

  • ConfigurationError  – bad launch options, raised synchronously by start()
  • ProvisioningError   – root-dir layout could not be created
  • WorkerRuntimeError  – the background engine died; logged, never re-raised
  • TransportError      – a forward never got an upstream response
"""

from __future__ import annotations

from typing import Optional


class WMAdminError(Exception):
    """Base class for all WMAdmin errors."""


class ConfigurationError(WMAdminError, ValueError):
    """Invalid embedded-engine launch options."""


class ProvisioningError(WMAdminError):
    """The engine's on-disk directory layout could not be created."""

    def __init__(self, message: str, path: str):
        super().__init__(f"{message}: {path}")
        self.path = path


class WorkerRuntimeError(WMAdminError):
    """The embedded engine failed after it was launched."""

    def __init__(self, message: str, return_code: Optional[int] = None):
        super().__init__(message)
        self.return_code = return_code


class TransportError(WMAdminError):
    """The admin API could not be reached (connection refused, reset, ...)."""

    def __init__(self, message: str, method: str = "", url: str = ""):
        super().__init__(message)
        self.method = method
        self.url = url


class UpstreamTimeout(TransportError):
    """The admin API did not answer within the configured timeout."""


class ResponseTooLarge(TransportError):
    """The admin API response exceeded the in-memory size ceiling."""
