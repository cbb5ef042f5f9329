"""Cross-check of the manifest, the PGDG mapping table and the defaults.

This is not part of a generation run: it is run separately (``aza-generate
validate``) and fails with its own exit code so that a broken mapping can be
told apart from a broken generator.

"""

import enum
from dataclasses import dataclass

from aza_build.defaults import ExtensionDefaults
from aza_build.errors import MappingIntegrityError
from aza_build.manifest import Manifest
from aza_build.pgdg import PGDG_MAPPINGS
from aza_build.pgdg import PgdgMapping
from aza_build.safety import is_safe_shell_token


@enum.unique
class IssueKind(enum.StrEnum):
    MISSING_PGDG_MAPPING = "missing_pgdg_mapping"
    ORPHAN_PGDG_MAPPING = "orphan_pgdg_mapping"
    MISSING_PGDG_VERSION = "missing_pgdg_version"
    UNSAFE_PGDG_VERSION = "unsafe_pgdg_version"
    MISSING_COMPREHENSIVE_TEST_DOC = "missing_comprehensive_test_doc"
    UNKNOWN_DEPENDENCY = "unknown_dependency"


@dataclass(frozen=True)
class IntegrityIssue:
    kind: IssueKind

    #: the manifest entry (or mapping) the issue is about
    name: str

    message: str

    def __str__(self) -> str:
        return f"[{self.kind}] {self.name}: {self.message}"


def find_integrity_issues(
    manifest: Manifest,
    defaults: ExtensionDefaults,
    mappings: tuple[PgdgMapping, ...] = PGDG_MAPPINGS,
) -> list[IntegrityIssue]:
    issues: list[IntegrityIssue] = []
    mapped = {m.manifest_name for m in mappings}

    for entry in manifest:
        if entry.is_pgdg and entry.is_enabled() and entry.name not in mapped:
            issues.append(
                IntegrityIssue(
                    IssueKind.MISSING_PGDG_MAPPING,
                    entry.name,
                    "enabled PGDG entry has no package mapping",
                )
            )

        if entry.enabled is False and entry.enabled_in_comprehensive_test is None:
            issues.append(
                IntegrityIssue(
                    IssueKind.MISSING_COMPREHENSIVE_TEST_DOC,
                    entry.name,
                    "disabled entry must set enabledInComprehensiveTest",
                )
            )

        for dep in entry.dependencies or []:
            if manifest.get(dep) is None:
                issues.append(
                    IntegrityIssue(
                        IssueKind.UNKNOWN_DEPENDENCY,
                        entry.name,
                        f"depends on '{dep}' which is not in the manifest",
                    )
                )

    for mapping in mappings:
        entry = manifest.get(mapping.manifest_name)
        if entry is None or not entry.is_pgdg:
            issues.append(
                IntegrityIssue(
                    IssueKind.ORPHAN_PGDG_MAPPING,
                    mapping.manifest_name,
                    f"mapping to {mapping.package_name} has no PGDG manifest entry",
                )
            )

        version = defaults.pgdg_versions.get(mapping.version_key)
        if version is None:
            issues.append(
                IntegrityIssue(
                    IssueKind.MISSING_PGDG_VERSION,
                    mapping.manifest_name,
                    f"no pinned version for key '{mapping.version_key}'",
                )
            )
        elif not is_safe_shell_token(version):
            issues.append(
                IntegrityIssue(
                    IssueKind.UNSAFE_PGDG_VERSION,
                    mapping.manifest_name,
                    f"pinned version {version!r} contains unsafe characters",
                )
            )

    return issues


def check_integrity(
    manifest: Manifest,
    defaults: ExtensionDefaults,
    mappings: tuple[PgdgMapping, ...] = PGDG_MAPPINGS,
) -> None:
    """Raise :py:class:`~aza_build.errors.MappingIntegrityError` listing every
    issue found by :py:func:`find_integrity_issues`.

    """
    if issues := find_integrity_issues(manifest, defaults, mappings):
        raise MappingIntegrityError(issues)
