"""Staging and running conversion tasks on the engine."""

import anyio

from docbridge.config.constants import DESCRIPTOR_PATH
from docbridge.core.task import ConversionTask
from docbridge.engine.base import EngineHandle
from docbridge.exceptions import ConversionFailedError
from docbridge.utils.logging import get_logger

log = get_logger(__name__)


async def stage_task(
    handle: EngineHandle, task: ConversionTask, path: str = DESCRIPTOR_PATH
) -> str:
    """Write the task descriptor into the engine namespace.

    Returns:
        Virtual path of the staged descriptor
    """
    await anyio.to_thread.run_sync(handle.fs.write, path, task.to_xml())
    return path


async def execute_task(handle: EngineHandle, descriptor_path: str = DESCRIPTOR_PATH) -> None:
    """Invoke the engine entry point on a staged descriptor.

    The entry point blocks, so it runs in a worker thread. On success the
    output file exists at the task's destination path.

    Raises:
        ConversionFailedError: If the engine returns a non-zero status
    """
    code = await anyio.to_thread.run_sync(handle.call_main, descriptor_path)
    if code == 0:
        return

    try:
        raw = await anyio.to_thread.run_sync(handle.fs.read, descriptor_path)
        descriptor = raw.decode("utf-8", errors="replace")
        log.error("Conversion failed", code=code, descriptor=descriptor)
    except Exception as e:
        log.error("Conversion failed", code=code)
        log.debug("Could not read descriptor for diagnostics", error=str(e))

    raise ConversionFailedError(code)


async def run_task(handle: EngineHandle, task: ConversionTask) -> bytes:
    """Stage, execute and read back one task."""
    descriptor_path = await stage_task(handle, task)
    await execute_task(handle, descriptor_path)
    return await anyio.to_thread.run_sync(handle.fs.read, task.dest_path)
