"""Split the manifest into the inputs of the source build stages."""

import json
from dataclasses import dataclass

from aza_build.manifest import BuildKind
from aza_build.manifest import Manifest
from aza_build.manifest import ManifestEntry

#: build systems driven by :file:`build-extensions.sh` through PGXS
PGXS_BUILD_KINDS = frozenset(
    (
        BuildKind.PGXS,
        BuildKind.AUTOTOOLS,
        BuildKind.CMAKE,
        BuildKind.MESON,
        BuildKind.MAKE,
        BuildKind.TIMESCALEDB,
    )
)

#: build systems that need the Rust toolchain
CARGO_BUILD_KINDS = frozenset((BuildKind.CARGO_PGRX,))


@dataclass(frozen=True)
class ManifestPartition:
    pgxs: Manifest
    cargo: Manifest


def _has_build_kind(entry: ManifestEntry, kinds: frozenset[BuildKind]) -> bool:
    return entry.build is not None and entry.build.type in kinds


def partition_manifest(manifest: Manifest) -> ManifestPartition:
    """Split ``manifest`` into the PGXS and the Cargo family.

    Entries without a build specification (or built by a script) end up in
    neither manifest. Both keep the order and the full content of the entries.

    """
    return ManifestPartition(
        pgxs=Manifest(
            entries=[e for e in manifest if _has_build_kind(e, PGXS_BUILD_KINDS)]
        ),
        cargo=Manifest(
            entries=[e for e in manifest if _has_build_kind(e, CARGO_BUILD_KINDS)]
        ),
    )


def render_sub_manifest(manifest: Manifest) -> str:
    return json.dumps(manifest.to_dict(), indent=2) + "\n"
