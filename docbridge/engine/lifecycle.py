"""Engine lifecycle: load the bootstrap once, bring the runtime up once.

The manager moves through ``Uninitialized -> Loading -> Ready`` and back to
``Uninitialized`` only through :meth:`EngineManager.destroy`. Concurrent
callers of :meth:`EngineManager.initialize` share a single in-flight task.
"""

from __future__ import annotations

import asyncio
from dataclasses import dataclass
from functools import partial

from docbridge.config.constants import DEFAULT_INIT_TIMEOUT, WORKING_DIRS
from docbridge.engine.base import EngineHandle, EngineLoader, EngineModule, VirtualFileSystem
from docbridge.exceptions import EngineNotFoundError, InitializationTimeoutError, ScriptLoadError
from docbridge.utils.logging import get_logger

log = get_logger(__name__)


@dataclass(frozen=True)
class Uninitialized:
    """No engine and no load in progress."""


@dataclass(frozen=True)
class Loading:
    """Initialization in flight; every caller awaits ``task``."""

    task: asyncio.Task[EngineHandle]


@dataclass(frozen=True)
class Ready:
    """Engine runtime is up and the working namespace exists."""

    handle: EngineHandle


EngineState = Uninitialized | Loading | Ready


class EngineManager:
    """Owns the conversion engine and hands out the ready handle.

    Features:
    - Idempotent bootstrap loading (retried on a later call after failure)
    - De-duplicated initialization shared by concurrent callers
    - Readiness timeout guarded against late runtime notifications
    - Explicit teardown with :meth:`destroy`
    """

    def __init__(
        self,
        loader: EngineLoader,
        init_timeout: float = DEFAULT_INIT_TIMEOUT,
    ) -> None:
        """Initialize the manager.

        Args:
            loader: Loader for the engine bootstrap
            init_timeout: Seconds to wait for the runtime-ready notification
        """
        self.loader = loader
        self.init_timeout = init_timeout
        self._state: EngineState = Uninitialized()
        self._script_loaded = False

    @property
    def state(self) -> EngineState:
        return self._state

    @property
    def is_ready(self) -> bool:
        return isinstance(self._state, Ready)

    async def ensure_script_loaded(self) -> None:
        """Load the engine bootstrap if it has not been loaded yet.

        Raises:
            ScriptLoadError: If the bootstrap cannot be fetched or executed
        """
        if self._script_loaded:
            return

        try:
            await self.loader.load()
        except ScriptLoadError:
            log.error("Failed to load engine script", script=self.loader.script)
            raise
        except Exception as e:
            log.error("Failed to load engine script", script=self.loader.script, error=str(e))
            raise ScriptLoadError(self.loader.script, cause=e) from e

        self._script_loaded = True
        log.info("Engine script loaded", script=self.loader.script)

    async def initialize(self) -> EngineHandle:
        """Get the ready engine, bringing it up if needed.

        Returns:
            The ready engine handle

        Raises:
            ScriptLoadError: Bootstrap unavailable
            EngineNotFoundError: Bootstrap ran but exposed no engine
            InitializationTimeoutError: Runtime never reported readiness
        """
        state = self._state
        if isinstance(state, Ready):
            return state.handle

        if not isinstance(state, Loading):
            state = Loading(asyncio.create_task(self._do_initialize()))
            self._state = state
            state.task.add_done_callback(partial(self._settle, state))

        # Shielded so a cancelled caller does not abort the shared load
        return await asyncio.shield(state.task)

    def _settle(self, loading: Loading, task: asyncio.Task[EngineHandle]) -> None:
        current = self._state is loading

        if task.cancelled():
            if current:
                self._state = Uninitialized()
            return

        error = task.exception()
        if error is not None:
            if current:
                self._state = Uninitialized()
            log.warning("Engine initialization failed", error=str(error))
            return

        handle = task.result()
        if current:
            self._state = Ready(handle)
        else:
            # destroy() ran while this load was in flight
            log.debug("Discarding engine initialized after teardown")
            handle.close()

    async def _do_initialize(self) -> EngineHandle:
        await self.ensure_script_loaded()

        module = self.loader.get_module()
        if module is None:
            raise EngineNotFoundError()

        try:
            await self._wait_for_runtime(module)
            handle = EngineHandle(module)
            self._create_working_directories(handle.fs)
        except BaseException:
            module.close()
            raise

        log.info("Engine initialized", script=self.loader.script)
        return handle

    async def _wait_for_runtime(self, module: EngineModule) -> None:
        loop = asyncio.get_running_loop()
        ready: asyncio.Future[None] = loop.create_future()

        def resolve() -> None:
            # One-shot: a notification after timeout or a second one is ignored
            if not ready.done():
                ready.set_result(None)

        def notify() -> None:
            if not loop.is_closed():
                loop.call_soon_threadsafe(resolve)

        module.on_runtime_initialized(notify)

        try:
            await asyncio.wait_for(ready, timeout=self.init_timeout)
        except TimeoutError as e:
            log.error("Engine runtime not ready in time", timeout=self.init_timeout)
            raise InitializationTimeoutError(self.init_timeout) from e

    def _create_working_directories(self, fs: VirtualFileSystem) -> None:
        for directory in WORKING_DIRS:
            try:
                fs.mkdir(directory)
            except FileExistsError:
                log.warning("Working directory may already exist", directory=directory)

    def destroy(self) -> None:
        """Drop the engine and forget any in-flight initialization.

        A later :meth:`initialize` rebuilds the engine in a fresh namespace.
        """
        state = self._state
        self._state = Uninitialized()

        if isinstance(state, Ready):
            state.handle.close()

        log.info("Engine destroyed")
