"""
Compilation backend contract and process-wide initialization

The bundler talks to its backend through two small protocols:

    ResolverPlugin   - supplied by the bundler, answers on_resolve/on_load
    CompilerBackend  - walks the module graph through the plugin and emits
                       script/style output, or raises BuildFailure

The backend is heavyweight to initialize, so it is created lazily, shared
by every build, and initialized at most once via ensure_initialized().
"""

import asyncio
from typing import Optional, Protocol

from livepreview.core.exceptions import BackendInitError
from livepreview.core.logging_config import logger
from livepreview.services.bundler.models import BuildOutput, LoadResult, Resolution


class ResolverPlugin(Protocol):
    """Virtual filesystem hooks handed to the backend for one build"""

    def on_resolve(self, path: str, importer: str, resolve_dir: str) -> Resolution:
        ...

    def on_load(self, path: str, namespace: str) -> LoadResult:
        ...


class CompilerBackend(Protocol):
    name: str

    async def initialize(self) -> None:
        ...

    async def build(self, entry_point: str, plugin: ResolverPlugin) -> BuildOutput:
        ...


# ---------------------------------------------------------------------------
# Singleton initialization
# ---------------------------------------------------------------------------

_backend: Optional[CompilerBackend] = None
_init_future: Optional["asyncio.Future[None]"] = None
_initialized = False


def get_backend() -> CompilerBackend:
    """Return the shared backend, creating the default one on first use"""
    global _backend
    if _backend is None:
        from livepreview.services.bundler.linker import VirtualLinker
        _backend = VirtualLinker()
    return _backend


def set_backend(backend: Optional[CompilerBackend]) -> None:
    """Swap the shared backend (None restores the default on next use)"""
    global _backend, _init_future, _initialized
    _backend = backend
    _init_future = None
    _initialized = False


def is_initialized() -> bool:
    return _initialized


def _is_already_initialized(err: BaseException) -> bool:
    return "already initialized" in str(err).lower()


async def ensure_initialized() -> CompilerBackend:
    """
    Initialize the shared backend at most once.

    Concurrent callers await the same memoized future. A backend that
    reports it is already initialized counts as success; any other failure
    clears the memo so the next build can try again.
    """
    global _init_future, _initialized

    backend = get_backend()
    if _initialized:
        return backend

    if _init_future is None:
        _init_future = asyncio.ensure_future(backend.initialize())
        logger.info(f"[Bundler] Initializing compilation backend: {backend.name}")

    future = _init_future
    try:
        # shield: a cancelled caller must not cancel init for everyone else
        await asyncio.shield(future)
    except Exception as e:
        if _is_already_initialized(e):
            _initialized = True
            return backend
        if _init_future is future:
            _init_future = None
        logger.log_error_with_context(e, context="backend initialization")
        raise BackendInitError(f"Failed to initialize {backend.name}: {e}") from e

    _initialized = True
    return backend
