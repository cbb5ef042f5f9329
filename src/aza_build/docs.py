"""Documentation derived from the manifest."""

import itertools
import re

from aza_build.defaults import ExtensionDefaults
from aza_build.errors import GenerationError
from aza_build.manifest import EntryKind
from aza_build.manifest import Manifest
from aza_build.manifest import ManifestEntry
from aza_build.manifest import SourceKind
from aza_build.safety import validate_shell_token
from aza_build.stats import display_version
from aza_build.templates import EXTENSIONS_MD_SKELETON
from aza_build.templates import EXTENSIONS_TABLE_END
from aza_build.templates import EXTENSIONS_TABLE_START
from aza_build.templates import EXTENSIONS_TABLE_TEMPLATE

_GITHUB_RE = re.compile(r"^https://github\.com/(?P<slug>[^/]+/[^/]+?)(?:\.git)?/?$")

UNCATEGORIZED = "uncategorized"


def _escape_cell(text: str) -> str:
    return text.replace("|", "\\|").replace("\n", " ")


def _version_cell(entry: ManifestEntry, defaults: ExtensionDefaults) -> str:
    version = display_version(entry, defaults)
    src = entry.source
    match = _GITHUB_RE.match(src.repository) if src and src.repository else None
    if src is None or match is None:
        return version

    base = f"https://github.com/{match.group('slug')}"
    if src.type == SourceKind.GIT and src.tag:
        return f"[{version}]({base}/releases/tag/{src.tag})"
    if src.type == SourceKind.GIT_REF and src.ref:
        return f"[{src.ref[:7]}]({base}/commit/{src.ref})"
    return version


def _documentation_cell(entry: ManifestEntry) -> str:
    src = entry.source
    if src and src.repository and (match := _GITHUB_RE.match(src.repository)):
        return f"[{match.group('slug')}](https://github.com/{match.group('slug')})"
    return ""


def _notes_cell(entry: ManifestEntry) -> str:
    notes: list[str] = []
    if not entry.is_enabled():
        notes.append(f"Disabled: {entry.disabled_reason or 'no reason provided'}")
    if entry.description:
        notes.append(entry.description)
    if entry.runtime and entry.runtime.notes:
        notes.extend(entry.runtime.notes)
    return _escape_cell(" ".join(notes))


def render_extensions_table(manifest: Manifest, defaults: ExtensionDefaults) -> str:
    """Markdown tables of all non-builtin entries, one per category."""
    entries = sorted(
        (e for e in manifest if e.kind != EntryKind.BUILTIN),
        key=lambda e: (e.category or UNCATEGORIZED, e.name),
    )
    groups = [
        {
            "category": category,
            "rows": [
                {
                    "name": f"`{e.name}`",
                    "version": _version_cell(e, defaults),
                    "default_enabled": (
                        "Yes"
                        if e.is_enabled()
                        and e.runtime is not None
                        and e.runtime.default_enable is True
                        else "No"
                    ),
                    "shared_preload": (
                        "Yes"
                        if e.runtime is not None and e.runtime.shared_preload is True
                        else "No"
                    ),
                    "documentation": _documentation_cell(e),
                    "notes": _notes_cell(e),
                }
                for e in group
            ],
        }
        for category, group in itertools.groupby(
            entries, key=lambda e: e.category or UNCATEGORIZED
        )
    ]
    return EXTENSIONS_TABLE_TEMPLATE.render(groups=groups).rstrip("\n") + "\n"


def update_extensions_doc(
    document: str | None, manifest: Manifest, defaults: ExtensionDefaults
) -> str:
    """Replace the generated section of :file:`docs/EXTENSIONS.md`.

    Everything outside of the ``extensions-table`` markers is kept. A missing
    document is created from a skeleton, a document without the markers is
    rejected.

    """
    if document is None:
        document = EXTENSIONS_MD_SKELETON

    start = document.find(EXTENSIONS_TABLE_START)
    end = document.find(EXTENSIONS_TABLE_END)
    if start == -1 or end == -1 or end < start:
        raise GenerationError(
            f"The extensions document lacks the markers {EXTENSIONS_TABLE_START} and {EXTENSIONS_TABLE_END}"
        )

    return (
        document[: start + len(EXTENSIONS_TABLE_START)]
        + "\n\n"
        + render_extensions_table(manifest, defaults)
        + "\n"
        + document[end:]
    )


def build_packages(manifest: Manifest) -> list[str]:
    """All apt packages needed to compile the manifest's entries.

    The list is fed to :command:`apt-get install` in the builder stage, so every
    package name is checked with :py:func:`~aza_build.safety.validate_shell_token`.

    """
    return sorted(
        {
            validate_shell_token(pkg, f"apt package of {e.name}")
            for e in manifest
            if e.apt_packages
            for pkg in e.apt_packages
        }
    )


def render_build_packages(manifest: Manifest) -> str:
    packages = build_packages(manifest)
    return "\n".join(packages) + "\n" if packages else ""

