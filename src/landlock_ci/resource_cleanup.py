"""Resource cleanup utilities for the pipeline.

Cleanup operations log errors but don't fail. Used by TestRunner for
timed-out phases and by Pipeline for stale result logs.
"""

from pathlib import Path

import aiofiles.os

from landlock_ci._logging import get_logger
from landlock_ci.platform_utils import ProcessWrapper

logger = get_logger(__name__)


async def cleanup_process(
    proc: ProcessWrapper | None,
    name: str,
    term_timeout: float = 5.0,
    kill_timeout: float = 2.0,
) -> bool:
    """Force cleanup of a phase subprocess tree (SIGTERM → SIGKILL).

    Args:
        proc: ProcessWrapper to stop (None safe - returns immediately)
        name: Phase name for logging
        term_timeout: Seconds to wait after SIGTERM before SIGKILL
        kill_timeout: Seconds to wait after SIGKILL before giving up

    Returns:
        True if the process exited, False if issues occurred
    """
    if proc is None:
        return True

    try:
        if proc.returncode is not None:
            logger.debug(f"{name} already terminated", extra={"phase": name, "returncode": proc.returncode})
            return True

        logger.debug(f"Sending SIGTERM to {name}", extra={"phase": name})
        await proc.terminate()

        try:
            await proc.wait_with_timeout(timeout=term_timeout)
            logger.debug(
                f"{name} stopped gracefully (SIGTERM)",
                extra={"phase": name, "returncode": proc.returncode},
            )
            return True
        except TimeoutError:
            logger.warning(
                f"{name} didn't respond to SIGTERM, force killing",
                extra={"phase": name, "term_timeout": term_timeout},
            )

        await proc.kill()

        try:
            await proc.wait_with_timeout(timeout=kill_timeout)
            logger.warning(
                f"{name} force killed (SIGKILL)",
                extra={"phase": name, "returncode": proc.returncode},
            )
            return True
        except TimeoutError:
            logger.error(
                f"{name} didn't respond to SIGKILL within timeout",
                extra={"phase": name, "kill_timeout": kill_timeout, "pid": proc.pid},
            )
            return False

    except ProcessLookupError:
        # Exited between the returncode check and the signal
        logger.debug(f"{name} already dead (ProcessLookupError)", extra={"phase": name})
        return True

    except OSError as e:
        logger.error(
            f"{name} cleanup error",
            extra={"phase": name, "error": str(e), "error_type": type(e).__name__},
            exc_info=True,
        )
        return False


async def cleanup_file(
    file_path: Path | None,
    description: str = "file",
) -> bool:
    """Delete file.

    Silently succeeds if file doesn't exist.

    Args:
        file_path: Path to file (None safe - returns immediately)
        description: File description for logging

    Returns:
        True if file is gone afterwards, False if removal failed
    """
    if file_path is None:
        return True

    try:
        await aiofiles.os.remove(file_path)
        logger.debug(f"Removed {description}", extra={"path": str(file_path)})
        return True

    except FileNotFoundError:
        return True

    except OSError as e:
        logger.error(
            f"Failed to remove {description}",
            extra={"path": str(file_path), "error": str(e), "error_type": type(e).__name__},
        )
        return False
