from __future__ import annotations

import threading
from typing import Optional

from grantflow.config import Settings, get_settings, reset_settings_cache
from grantflow.logging import get_logger
from grantflow.service.handlers import OrchestratorHandlers
from grantflow.service.orchestrator import Orchestrator
from grantflow.storage.memory import MemoryHandlers

logger = get_logger(__name__)


class Runtime:
    """Holds the handler set and orchestrator shared by the FastAPI app."""

    def __init__(
        self,
        settings: Optional[Settings] = None,
        handlers: Optional[OrchestratorHandlers] = None,
    ):
        self.settings = settings or get_settings()
        self.handlers = handlers or MemoryHandlers(token_bytes=self.settings.token_bytes)
        self.orchestrator = Orchestrator(
            self.handlers, self.settings.orchestrator_options()
        )
        logger.info(
            "runtime_initialized",
            handlers=type(self.handlers).__name__,
            access_token_lifetime=self.settings.access_token_lifetime,
            issue_refresh_token=self.settings.issue_refresh_token,
            refresh_token_lifetime=self.settings.refresh_token_lifetime,
            test_mode=self.settings.test_mode,
        )


runtime: Optional[Runtime] = None
_runtime_lock = threading.Lock()


def get_runtime() -> Runtime:
    """Get or create the Runtime singleton in a thread-safe manner.

    Uses double-checked locking:
    - First check without lock (fast path for existing runtime)
    - Second check with lock to prevent race condition during creation
    """
    global runtime
    if runtime is not None:
        return runtime
    with _runtime_lock:
        if runtime is None:
            runtime = Runtime()
        return runtime


def set_runtime(new_runtime: Runtime) -> Runtime:
    """Install a runtime built around integrator-supplied handlers."""
    global runtime
    with _runtime_lock:
        runtime = new_runtime
        return runtime


def reset_runtime_for_tests() -> Runtime:
    """Reinitialize the runtime singleton for isolated test runs."""
    global runtime

    with _runtime_lock:
        reset_settings_cache()
        settings = get_settings()
        if not settings.test_mode:
            raise RuntimeError("runtime reset is only allowed in TEST_MODE")
        runtime = Runtime(settings)
        return runtime
