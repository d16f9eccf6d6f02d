"""Kernel capability probe for Landlock support.

Landlock landed in Linux 5.13. On older kernels the sandboxing features
exercised by the integration suite are absent or partial, so failures of
that phase are expected there. The probe only produces advisory output;
it never decides which tests run.

The host release is read once per process and cached. Tests reset the
cache with ``probe_cache.reset()``.
"""

import asyncio
import platform
import re

import aiofiles
import aiofiles.os

from landlock_ci import constants
from landlock_ci._logging import get_logger
from landlock_ci.exceptions import MalformedVersionString
from landlock_ci.models import CapabilityTier, KernelCapability, KernelVersion
from landlock_ci.platform_utils import HostOS, detect_host_os

logger = get_logger(__name__)

__all__ = [
    "DEFAULT_MINIMUM",
    "classify",
    "parse_kernel_version",
    "probe_cache",
    "probe_kernel_capability",
    "read_kernel_release",
]

DEFAULT_MINIMUM = KernelVersion(major=constants.MIN_LANDLOCK_KERNEL[0], minor=constants.MIN_LANDLOCK_KERNEL[1])

# "5.15.0-91-generic", "6.8-rc1", "4.19.0+" -> leading major.minor digits only
_VERSION_RE = re.compile(r"^(\d+)\.(\d+)")


class _ProbeCache:
    """Container for the cached host kernel release.

    The lock prevents concurrent callers from each reading procfs; the
    pipeline itself is sequential but library callers may not be.
    """

    __slots__ = ("_lock", "release")

    def __init__(self) -> None:
        self.release: str | None = None
        self._lock: asyncio.Lock | None = None

    def get_lock(self) -> asyncio.Lock:
        """Get or create the lock lazily so it binds to the running event loop."""
        if self._lock is None:
            self._lock = asyncio.Lock()
        return self._lock

    def reset(self) -> None:
        """Forget the cached release."""
        self.release = None
        self._lock = None


probe_cache = _ProbeCache()


def parse_kernel_version(release: str) -> KernelVersion:
    """Parse the leading ``major.minor`` pair of a kernel release string.

    Anything after the minor number is ignored ("5.15.0-generic" -> 5.15).

    Raises:
        MalformedVersionString: release does not begin with two dot-separated integers
    """
    match = _VERSION_RE.match(release.strip())
    if match is None:
        raise MalformedVersionString(release)
    return KernelVersion(major=int(match.group(1)), minor=int(match.group(2)))


def classify(version: KernelVersion, minimum: KernelVersion = DEFAULT_MINIMUM) -> CapabilityTier:
    """DEGRADED below the minimum version, FULL otherwise."""
    if version < minimum:
        return CapabilityTier.DEGRADED
    return CapabilityTier.FULL


async def read_kernel_release() -> str:
    """Read the running kernel's release string (cached).

    Prefers /proc/sys/kernel/osrelease and falls back to platform.release()
    when procfs is unavailable (non-Linux hosts, restricted containers).
    """
    if probe_cache.release is not None:
        return probe_cache.release

    async with probe_cache.get_lock():
        if probe_cache.release is not None:
            return probe_cache.release

        release: str | None = None
        if await aiofiles.os.path.exists(constants.KERNEL_OSRELEASE_PATH):
            try:
                async with aiofiles.open(constants.KERNEL_OSRELEASE_PATH) as f:
                    release = (await f.read()).strip() or None
            except OSError as e:
                logger.warning(
                    "Failed to read kernel release from procfs",
                    extra={"path": constants.KERNEL_OSRELEASE_PATH, "error": str(e)},
                )

        if release is None:
            release = platform.release()

        probe_cache.release = release
        logger.debug("Kernel release probed", extra={"release": release})
        return release


async def probe_kernel_capability(
    release: str | None = None,
    minimum: KernelVersion = DEFAULT_MINIMUM,
) -> KernelCapability:
    """Classify kernel Landlock support. Never raises for bad input.

    Args:
        release: Release string to classify. None probes the running host.
        minimum: First version with full support.

    Returns:
        KernelCapability with tier FULL, DEGRADED, or UNKNOWN and an
        advisory message for the latter two.
    """
    from_host = release is None
    if release is None:
        release = await read_kernel_release()

    if from_host and detect_host_os() != HostOS.LINUX:
        logger.info("Landlock is Linux-only; host kernel tier unknown", extra={"release": release})
        return KernelCapability(
            release=release,
            tier=CapabilityTier.UNKNOWN,
            minimum=minimum,
            advisory=constants.UNKNOWN_ADVISORY.format(release=release),
        )

    try:
        version = parse_kernel_version(release)
    except MalformedVersionString as e:
        logger.warning("Unparseable kernel release, treating tier as unknown", extra=e.context)
        return KernelCapability(
            release=release,
            tier=CapabilityTier.UNKNOWN,
            minimum=minimum,
            advisory=constants.UNKNOWN_ADVISORY.format(release=release),
        )

    tier = classify(version, minimum)
    advisory = None
    if tier is CapabilityTier.DEGRADED:
        advisory = constants.DEGRADED_ADVISORY.format(minimum=minimum)

    logger.info(
        "Kernel capability probed",
        extra={"release": release, "version": str(version), "tier": tier.value},
    )
    return KernelCapability(release=release, version=version, tier=tier, minimum=minimum, advisory=advisory)
