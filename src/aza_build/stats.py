"""Summary of the manifest as written to :file:`version-info.txt`,
:file:`version-info.json` and :file:`IMAGE-CONTENTS.txt`.

The numbers are derived from the manifest directly and not from the output of
:py:mod:`aza_build.preload` or :py:mod:`aza_build.install`, so that the test
harness of the image can use them to cross-check the generated build files.

"""

import datetime
import json
from dataclasses import dataclass
from dataclasses import field
from typing import Any

from aza_build.defaults import ExtensionDefaults
from aza_build.defaults import extract_semantic_version
from aza_build.manifest import EntryKind
from aza_build.manifest import Manifest
from aza_build.manifest import ManifestEntry
from aza_build.pgdg import PGDG_MAPPINGS
from aza_build.pgdg import PgdgMapping
from aza_build.pgdg import mapping_for
from aza_build.templates import IMAGE_CONTENTS_TEMPLATE
from aza_build.templates import VERSION_INFO_TXT_TEMPLATE

BUILD_TYPE = "single-node"

NO_DISABLED_REASON = "No reason provided"


@dataclass(frozen=True)
class KindStats:
    kind: EntryKind
    total: int = 0
    enabled: int = 0
    disabled: int = 0


@dataclass(frozen=True)
class DisabledEntry:
    name: str
    reason: str


@dataclass(frozen=True)
class ManifestStats:
    pg_version: str
    pg_major: str
    total: int
    enabled: int
    disabled: int

    #: number of libraries in the default ``shared_preload_libraries``
    preloaded: int

    #: number of PGDG packages installed by the production image
    pgdg: int

    kinds: list[KindStats] = field(default_factory=list)
    preloaded_modules: list[str] = field(default_factory=list)
    disabled_entries: list[DisabledEntry] = field(default_factory=list)
    build_type: str = BUILD_TYPE


def compute_stats(
    manifest: Manifest,
    defaults: ExtensionDefaults,
    mappings: tuple[PgdgMapping, ...] = PGDG_MAPPINGS,
) -> ManifestStats:
    enabled = [e for e in manifest if e.is_enabled()]
    disabled = [e for e in manifest if not e.is_enabled()]

    preloaded_modules = sorted(
        {
            e.preload_name
            for e in enabled
            if e.runtime is not None
            and e.runtime.shared_preload is True
            and e.runtime.default_enable is True
        }
    )

    pgdg = 0
    for mapping in mappings:
        entry = manifest.get(mapping.manifest_name)
        if entry is not None and entry.is_pgdg and entry.is_enabled():
            pgdg += 1

    kinds = [
        KindStats(
            kind=kind,
            total=sum(1 for e in manifest if e.kind == kind),
            enabled=sum(1 for e in enabled if e.kind == kind),
            disabled=sum(1 for e in disabled if e.kind == kind),
        )
        for kind in EntryKind
    ]

    return ManifestStats(
        pg_version=defaults.pg_version,
        pg_major=defaults.pg_major,
        total=len(manifest),
        enabled=len(enabled),
        disabled=len(disabled),
        preloaded=len(preloaded_modules),
        pgdg=pgdg,
        kinds=kinds,
        preloaded_modules=preloaded_modules,
        disabled_entries=[
            DisabledEntry(e.name, e.disabled_reason or NO_DISABLED_REASON)
            for e in disabled
        ],
    )


def version_info_dict(
    stats: ManifestStats, generated_at: datetime.datetime
) -> dict[str, Any]:
    return {
        "generatedAt": generated_at.isoformat(),
        "postgres_version": stats.pg_version,
        "build_type": stats.build_type,
        "extensions": {
            "total": stats.total,
            "enabled": stats.enabled,
            "disabled": stats.disabled,
            "preloaded": stats.preloaded,
            "pgdg": stats.pgdg,
        },
        "kinds": {
            str(k.kind): {"total": k.total, "enabled": k.enabled, "disabled": k.disabled}
            for k in stats.kinds
        },
        "preloaded_modules": stats.preloaded_modules,
        "disabled_extensions": [
            {"name": d.name, "reason": d.reason} for d in stats.disabled_entries
        ],
    }


def render_version_info_json(
    stats: ManifestStats, generated_at: datetime.datetime
) -> str:
    return json.dumps(version_info_dict(stats, generated_at), indent=2) + "\n"


def render_version_info_txt(stats: ManifestStats) -> str:
    return VERSION_INFO_TXT_TEMPLATE.render(stats=stats) + "\n"


def display_version(
    entry: ManifestEntry,
    defaults: ExtensionDefaults,
    mappings: tuple[PgdgMapping, ...] = PGDG_MAPPINGS,
) -> str:
    """Human readable version of ``entry``.

    PGDG packages report the upstream part of their pinned package version,
    entries built from a tag report the tag without a leading ``v`` and without
    a package scope, everything else is ``builtin``.

    """
    mapping = mapping_for(entry.name, mappings)
    if entry.is_pgdg and mapping and mapping.version_key in defaults.pgdg_versions:
        return extract_semantic_version(defaults.pgdg_versions[mapping.version_key])
    if entry.source and entry.source.tag:
        tag = entry.source.tag.removeprefix("v")
        return tag.rsplit("@", 1)[-1]
    return "builtin"


def render_image_contents(
    manifest: Manifest,
    defaults: ExtensionDefaults,
    mappings: tuple[PgdgMapping, ...] = PGDG_MAPPINGS,
) -> str:
    enabled = [e for e in manifest if e.is_enabled()]

    def _row(entry: ManifestEntry, builtin_label: str) -> dict[str, str]:
        version = display_version(entry, defaults, mappings)
        return {
            "name": entry.name,
            "version": f"v{version}" if version != "builtin" else builtin_label,
            "category": entry.category or "",
        }

    extensions = sorted(
        (
            e
            for e in enabled
            if e.kind == EntryKind.EXTENSION
            or (
                e.kind == EntryKind.BUILTIN
                and not (e.runtime and e.runtime.preload_only)
            )
        ),
        key=lambda e: e.name.lower(),
    )
    tools = sorted(
        (e for e in enabled if e.kind == EntryKind.TOOL), key=lambda e: e.name.lower()
    )

    stats = compute_stats(manifest, defaults, mappings)
    return (
        IMAGE_CONTENTS_TEMPLATE.render(
            pg_version=defaults.pg_version,
            extensions=[_row(e, "builtin") for e in extensions],
            tools=[_row(e, "") for e in tools],
            preloaded=stats.preloaded_modules,
        )
        + "\n"
    )
