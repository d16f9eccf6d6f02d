"""Result log retention.

The log is kept as a pipeline output even when the run fails, so a failed
job can be audited afterwards. A missing log is not an error here: the
verdict gate already reports it.
"""

import asyncio
import shutil
from pathlib import Path

import aiofiles.os

from landlock_ci._logging import get_logger

logger = get_logger(__name__)


async def retain_artifact(log_path: Path, artifact_dir: Path | None) -> Path | None:
    """Copy the result log into artifact_dir.

    Never raises: copy failures are logged and reported as None.

    Args:
        log_path: Result log to keep
        artifact_dir: Destination directory (None disables retention)

    Returns:
        Path of the retained copy, or None if nothing was retained
    """
    if artifact_dir is None:
        return None

    if not await aiofiles.os.path.isfile(log_path):
        logger.info("No result log to retain", extra={"path": str(log_path)})
        return None

    destination = artifact_dir / log_path.name
    if destination.resolve() == log_path.resolve():
        return destination

    try:
        await aiofiles.os.makedirs(artifact_dir, exist_ok=True)
        await asyncio.to_thread(shutil.copy2, log_path, destination)
    except OSError as e:
        logger.error(
            "Failed to retain result log",
            extra={"path": str(log_path), "artifact_dir": str(artifact_dir), "error": str(e)},
        )
        return None

    logger.info("Result log retained", extra={"path": str(log_path), "artifact": str(destination)})
    return destination
