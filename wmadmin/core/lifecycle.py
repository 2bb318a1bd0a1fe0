"""
WMAdmin Embedded Engine Supervisor
==================================
Runs the WireMock standalone engine as a background worker inside the
admin process so the Admin API is reachable as soon as the server is up.

Lifecycle:
  • start()  – validate options, provision root-dir, launch a daemon worker
  • stop()   – request cancellation, wait briefly, never raise
  • is_running – lock-guarded flag, at most one live worker at any time

The engine itself is a black box: any callable taking the ``--key=value``
argument list and a cancellation ``threading.Event`` can be supervised.
"""

from __future__ import annotations

import logging
import os
import re
import threading
from dataclasses import dataclass
from enum import Enum
from pathlib import Path
from typing import Any, Callable, Dict, Iterator, List, Mapping, Optional, Tuple

from wmadmin.core.errors import ConfigurationError, ProvisioningError

logger = logging.getLogger(__name__)

DIR_MAPPINGS = "mappings"
DIR_FILES = "__files"

OPT_PORT = "port"
OPT_ROOT_DIR = "root-dir"

PORT_MIN = 1
PORT_MAX = 65535

STOP_TIMEOUT = 2.0

_DIGITS = re.compile(r"[0-9]+")

EngineEntryPoint = Callable[[List[str], threading.Event], None]


# ── Enums ────────────────────────────────────────────────────────────────────

class EngineState(str, Enum):
    STOPPED = "stopped"
    STARTING = "starting"
    RUNNING = "running"
    STOPPED_WITH_ERROR = "stopped_with_error"


# ── Data Models ──────────────────────────────────────────────────────────────

def _stringify(value: Any) -> Optional[str]:
    if value is None:
        return None
    if isinstance(value, bool):
        return "true" if value else "false"
    return str(value)


@dataclass(frozen=True)
class LaunchOptions:
    """Ordered, immutable option set handed to the engine as ``--key=value``."""
    pairs: Tuple[Tuple[str, Optional[str]], ...] = ()

    @classmethod
    def from_mapping(cls, options: Optional[Mapping[str, Any]]) -> "LaunchOptions":
        if not options:
            return cls()
        return cls(tuple((str(k), _stringify(v)) for k, v in options.items()))

    def get(self, key: str, default: Optional[str] = None) -> Optional[str]:
        for k, v in self.pairs:
            if k == key:
                return v
        return default

    def items(self) -> Iterator[Tuple[str, Optional[str]]]:
        return iter(self.pairs)

    def to_dict(self) -> Dict[str, Optional[str]]:
        return dict(self.pairs)

    def __contains__(self, key: object) -> bool:
        return any(k == key for k, _ in self.pairs)

    def __len__(self) -> int:
        return len(self.pairs)

    @property
    def port(self) -> int:
        return validate_port(self.get(OPT_PORT))

    @property
    def root_dir(self) -> str:
        return self.get(OPT_ROOT_DIR) or ""


@dataclass(frozen=True)
class DirectoryLayout:
    """The engine's root-dir and the two sub-directories it expects."""
    root: Path
    mappings: Path
    files: Path

    @classmethod
    def resolve(cls, root_dir: str) -> "DirectoryLayout":
        root = Path(os.path.abspath(root_dir))
        return cls(root=root, mappings=root / DIR_MAPPINGS, files=root / DIR_FILES)

    def provision(self) -> None:
        """Create root, mappings and __files. Existing directories are fine."""
        try:
            for d in (self.root, self.mappings, self.files):
                d.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise ProvisioningError(
                "Failed to create WireMock root-dir structure", str(self.root)
            ) from e

    def to_dict(self) -> Dict[str, str]:
        return {
            "root": str(self.root),
            "mappings": str(self.mappings),
            "files": str(self.files),
        }


# ── Validation & Argument Building ───────────────────────────────────────────

def validate_port(raw: Optional[str]) -> int:
    """Parse a port option: ASCII digits only, in range, no padding or signs."""
    text = None if raw is None else str(raw)
    port = int(text) if text is not None and _DIGITS.fullmatch(text) else None
    if port is None or not PORT_MIN <= port <= PORT_MAX:
        raise ConfigurationError(
            f"wiremock.embedded.port must be in range {PORT_MIN}..{PORT_MAX}, got: {raw}"
        )
    return port


def validate_options(options: LaunchOptions) -> None:
    """Check the options the supervisor depends on."""
    root_dir = options.get(OPT_ROOT_DIR)
    if root_dir is None or not root_dir.strip():
        raise ConfigurationError("wiremock.embedded.root-dir must not be blank")
    validate_port(options.get(OPT_PORT))


def build_args(options: LaunchOptions) -> List[str]:
    """Translate options into ``--key=value`` tokens, skipping null values."""
    return [f"--{k}={v}" for k, v in options.items() if v is not None]


# ── Supervisor ───────────────────────────────────────────────────────────────

class EmbeddedEngineSupervisor:
    """
    Owns the embedded engine worker: one daemon thread per successful start,
    never more than one alive. Launch failures surface from ``start()``;
    failures after launch are logged and reset the state for a later retry.
    """

    THREAD_NAME = "wiremock-standalone"

    def __init__(
        self,
        options: LaunchOptions,
        entry_point: EngineEntryPoint,
        stop_timeout: float = STOP_TIMEOUT,
    ):
        self.options = options
        self.entry_point = entry_point
        self.stop_timeout = stop_timeout
        self._lock = threading.Lock()
        self._running = False
        self._generation = 0
        self._state = EngineState.STOPPED
        self._thread: Optional[threading.Thread] = None
        self._stop_event: Optional[threading.Event] = None
        self._layout: Optional[DirectoryLayout] = None
        self._args: List[str] = []
        self._last_error: str = ""

    # ── Lifecycle ────────────────────────────────────────────────────────

    def start(self) -> None:
        """Start the engine worker. A no-op while already running."""
        with self._lock:
            if self._running:
                return
            self._running = True
            self._state = EngineState.STARTING
            self._generation += 1
            generation = self._generation

        try:
            validate_options(self.options)

            layout = DirectoryLayout.resolve(self.options.root_dir)
            layout.provision()

            args = build_args(self.options)

            stop_event = threading.Event()
            thread = threading.Thread(
                target=self._run_worker,
                args=(args, stop_event),
                name=self.THREAD_NAME,
                daemon=True,
            )
            with self._lock:
                if self._generation != generation:
                    # stop() arrived while validating or provisioning.
                    logger.info("Embedded WireMock start cancelled by stop()")
                    return
                self._layout = layout
                self._args = args
                self._stop_event = stop_event
                self._thread = thread
                self._last_error = ""
                self._state = EngineState.RUNNING
                thread.start()
        except Exception:
            with self._lock:
                if self._generation == generation:
                    self._running = False
                    self._state = EngineState.STOPPED
            raise

        logger.info(
            f"Embedded WireMock launched (port={self.options.get(OPT_PORT)}, "
            f"root-dir={layout.root})"
        )

    def stop(self) -> None:
        """Request the worker to stop and wait up to ``stop_timeout`` seconds."""
        with self._lock:
            self._running = False
            self._state = EngineState.STOPPED
            self._generation += 1
            thread = self._thread
            stop_event = self._stop_event

        if thread is None:
            return

        try:
            if stop_event is not None:
                stop_event.set()
            if thread is not threading.current_thread():
                thread.join(self.stop_timeout)
            if thread.is_alive():
                logger.warning(
                    f"WireMock worker still alive {self.stop_timeout:.1f}s after stop request"
                )
            else:
                logger.info("Embedded WireMock stopped")
        except Exception as e:
            logger.debug(f"Error while stopping WireMock worker: {e}")

    @property
    def is_running(self) -> bool:
        return self._running

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def layout(self) -> Optional[DirectoryLayout]:
        return self._layout

    @property
    def args(self) -> List[str]:
        return list(self._args)

    def to_dict(self) -> Dict[str, Any]:
        thread = self._thread
        return {
            "running": self._running,
            "state": self._state.value,
            "worker_alive": bool(thread and thread.is_alive()),
            "port": self.options.get(OPT_PORT),
            "layout": self._layout.to_dict() if self._layout else None,
            "args": list(self._args),
            "last_error": self._last_error,
        }

    # ── Worker ───────────────────────────────────────────────────────────

    def _run_worker(self, args: List[str], stop_event: threading.Event) -> None:
        """Thread body: run the engine and record how it ended."""
        error: Optional[BaseException] = None
        try:
            self.entry_point(args, stop_event)
        except Exception as e:
            error = e
            logger.exception(f"Embedded WireMock crashed: {e}")
        finally:
            with self._lock:
                # A newer start() may already own the supervisor.
                if self._thread is threading.current_thread():
                    self._running = False
                    if error is not None:
                        self._state = EngineState.STOPPED_WITH_ERROR
                        self._last_error = str(error)
                    else:
                        self._state = EngineState.STOPPED
