"""API version compatibility checks.

The server advertises its version in the ``X-API-Version`` response
header. On the first response a client receives, it compares that version
with the range this SDK supports:

- older than ``min_version`` -- :class:`~refyne.exceptions.UnsupportedAPIVersionError`
  is raised and the triggering call fails;
- a newer major than ``max_known_version`` -- a warning is logged and the
  call proceeds.

Versions are ordered by ``major.minor.patch``. A pre-release suffix is
parsed but ignored when comparing, and unparseable strings compare as
``0.0.0``.
"""

from __future__ import annotations

import re
import threading
from typing import Callable, NamedTuple

from refyne import MAX_KNOWN_API_VERSION, MIN_API_VERSION, __version__
from refyne.exceptions import UnsupportedAPIVersionError
from refyne.logger import Logger

API_VERSION_HEADER = "X-API-Version"

_VERSION_RE = re.compile(r"^(\d+)\.(\d+)\.(\d+)(?:-(.+))?$")


class Version(NamedTuple):
    major: int
    minor: int
    patch: int
    prerelease: str = ""


def parse_version(version: str) -> Version:
    """Parse a semantic version string.

    Example::

        >>> parse_version("1.2.3-beta.1")
        Version(major=1, minor=2, patch=3, prerelease='beta.1')
        >>> parse_version("invalid")
        Version(major=0, minor=0, patch=0, prerelease='')
    """
    match = _VERSION_RE.match(version.strip())
    if match is None:
        return Version(0, 0, 0)
    major, minor, patch, prerelease = match.groups()
    return Version(int(major), int(minor), int(patch), prerelease or "")


def compare_versions(a: str, b: str) -> int:
    """Return -1, 0 or 1 as *a* is older than, equal to, or newer than *b*."""
    left = parse_version(a)[:3]
    right = parse_version(b)[:3]
    if left < right:
        return -1
    if left > right:
        return 1
    return 0


def check_api_version_compatibility(
    api_version: str,
    logger: Logger,
    min_version: str = MIN_API_VERSION,
    max_known_version: str = MAX_KNOWN_API_VERSION,
) -> None:
    """Validate a server API version against the supported range.

    Args:
        api_version: Value of the server's ``X-API-Version`` header.
        logger: Receives the newer-major warning.
        min_version: Oldest supported version.
        max_known_version: Newest version the SDK was built against.

    Raises:
        UnsupportedAPIVersionError: If *api_version* is below *min_version*.
    """
    if compare_versions(api_version, min_version) < 0:
        raise UnsupportedAPIVersionError(api_version, min_version, max_known_version)

    if parse_version(api_version).major > parse_version(max_known_version).major:
        logger.warning(
            f"API version {api_version} is newer than this SDK was built for "
            f"({max_known_version}). There may be breaking changes. "
            "Consider upgrading the SDK.",
            {
                "api_version": api_version,
                "sdk_version": __version__,
                "max_known_version": max_known_version,
            },
        )


class VersionCheckState:
    """One-shot gate for the per-client version check.

    :meth:`run_once` holds a lock across the whole check, so when several
    first calls race, exactly one runs *check* and the others wait and then
    skip it. The gate only closes when *check* returns normally; if it
    raises, the next call runs it again.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self._checked = False

    @property
    def checked(self) -> bool:
        with self._lock:
            return self._checked

    def run_once(self, check: Callable[[], None]) -> None:
        if self._checked:
            return
        with self._lock:
            if self._checked:
                return
            check()
            self._checked = True
