"""Projection of the manifest onto ``shared_preload_libraries``."""

import enum

from aza_build.manifest import Manifest
from aza_build.manifest import ManifestEntry
from aza_build.safety import validate_library_name


@enum.unique
class PreloadMode(enum.StrEnum):
    #: libraries preloaded by the entrypoint of the production image
    DEFAULT = "default"

    #: libraries preloaded when running the comprehensive test suite
    COMPREHENSIVE = "comprehensive"


def is_preloaded(entry: ManifestEntry, mode: PreloadMode = PreloadMode.DEFAULT) -> bool:
    runtime = entry.runtime
    if runtime is None or runtime.shared_preload is not True:
        return False
    if not entry.is_enabled():
        return False
    if mode == PreloadMode.COMPREHENSIVE:
        return (
            runtime.default_enable is True
            or runtime.preload_in_comprehensive_test is True
        )
    return runtime.default_enable is True


def preload_libraries(
    manifest: Manifest, mode: PreloadMode = PreloadMode.DEFAULT
) -> list[str]:
    """Return the deduplicated library names to preload in ``mode``.

    The names are sorted by code point (so ``Z`` sorts before ``a``), which is
    also the order in which PostgreSQL receives them. A name that is not a
    plain library name raises
    :py:class:`~aza_build.errors.UnsafeCharactersError`.

    """
    return sorted(
        {
            validate_library_name(e.preload_name, f"preload library of {e.name}")
            for e in manifest
            if is_preloaded(e, mode)
        }
    )


def shared_preload_libraries(
    manifest: Manifest, mode: PreloadMode = PreloadMode.DEFAULT
) -> str:
    """The value of ``shared_preload_libraries`` in ``mode``, e.g.
    ``auto_explain,pg_cron,pg_stat_statements``.

    """
    return ",".join(preload_libraries(manifest, mode))
