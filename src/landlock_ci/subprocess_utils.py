"""Subprocess output utilities.

- drain_subprocess_output: concurrent stdout/stderr draining (prevents 64KB pipe deadlock)
  Lines longer than the stream limit are discarded with a warning.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING

from landlock_ci._logging import get_logger

if TYPE_CHECKING:
    from collections.abc import Callable

    from landlock_ci.platform_utils import ProcessWrapper

logger = get_logger(__name__)


async def drain_subprocess_output(
    process: ProcessWrapper,
    *,
    process_name: str,
    stdout_handler: Callable[[str], None] | None = None,
    stderr_handler: Callable[[str], None] | None = None,
) -> None:
    """Drain subprocess stdout/stderr concurrently to prevent 64KB pipe deadlock.

    cargo and test scripts write heavily to both streams; reading them one
    after the other lets the unread pipe fill and block the child.

    Args:
        process: ProcessWrapper instance with stdout/stderr pipes
        process_name: Process identifier for logging (e.g. phase name)
        stdout_handler: Optional callback for stdout lines (default: info log)
        stderr_handler: Optional callback for stderr lines (default: info log)
    """

    if stdout_handler is None:

        def default_stdout_handler(line: str) -> None:
            logger.info(f"[{process_name} stdout] {line}", extra={"phase": process_name, "output": line})

        stdout_handler = default_stdout_handler

    if stderr_handler is None:

        def default_stderr_handler(line: str) -> None:
            logger.info(f"[{process_name} stderr] {line}", extra={"phase": process_name, "output": line})

        stderr_handler = default_stderr_handler

    async def read_stream(stream: asyncio.StreamReader, handler: Callable[[str], None]) -> None:
        oversized = False
        while True:
            try:
                raw = await stream.readuntil(b"\n")
            except asyncio.IncompleteReadError as e:
                raw = e.partial  # EOF, last line without newline
                if not raw:
                    return
            except asyncio.LimitOverrunError as e:
                # Line exceeds the stream limit: drop what is buffered, skip to its newline
                if not oversized:
                    logger.warning(
                        f"[{process_name}] output line exceeds stream limit, discarded",
                        extra={"phase": process_name, "consumed": e.consumed},
                    )
                oversized = True
                await stream.read(e.consumed)
                continue

            if oversized:
                oversized = False  # tail of the discarded line
            else:
                decoded = raw.decode(errors="replace").rstrip()
                if decoded:
                    handler(decoded)

    async with asyncio.TaskGroup() as tg:
        if process.stdout:
            tg.create_task(read_stream(process.stdout, stdout_handler))
        if process.stderr:
            tg.create_task(read_stream(process.stderr, stderr_handler))
