"""Model of the extensions manifest (:file:`extensions.manifest.json`).

The manifest is the single source of truth of the image: every extension,
tool, builtin module and server module is one :py:class:`ManifestEntry`. The
loader only type-checks the document, optional fields that are absent stay
``None`` so that every consumer applies its own interpretation of "unset".

"""

import enum
import json
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from typing import Any

from aza_build.errors import ManifestNotFoundError
from aza_build.errors import ManifestParseError
from aza_build.logger import LOGGER


@enum.unique
class EntryKind(enum.StrEnum):
    """The kind of a manifest entry."""

    EXTENSION = "extension"
    TOOL = "tool"
    BUILTIN = "builtin"
    MODULE = "module"


@enum.unique
class BuildKind(enum.StrEnum):
    """Build systems used to compile an entry from source."""

    PGXS = "pgxs"
    AUTOTOOLS = "autotools"
    CMAKE = "cmake"
    MESON = "meson"
    MAKE = "make"
    TIMESCALEDB = "timescaledb"
    CARGO_PGRX = "cargo-pgrx"
    SCRIPT = "script"


@enum.unique
class SourceKind(enum.StrEnum):
    BUILTIN = "builtin"
    GIT = "git"
    GIT_REF = "git-ref"


def _expect(
    data: dict[str, Any], key: str, types: type | tuple[type, ...], where: str
) -> Any:
    value = data.get(key)
    if value is None:
        return None
    # bool is a subclass of int, keep them apart
    if isinstance(value, bool) and bool not in (
        types if isinstance(types, tuple) else (types,)
    ):
        raise ManifestParseError(f"{where}: '{key}' must not be a boolean")
    if not isinstance(value, types):
        raise ManifestParseError(
            f"{where}: '{key}' has type {type(value).__name__}, expected "
            + (
                " or ".join(t.__name__ for t in types)
                if isinstance(types, tuple)
                else types.__name__
            )
        )
    return value


def _expect_str_list(data: dict[str, Any], key: str, where: str) -> list[str] | None:
    value = _expect(data, key, list, where)
    if value is not None and not all(isinstance(v, str) for v in value):
        raise ManifestParseError(f"{where}: '{key}' must be a list of strings")
    return value


def _expect_enum(data: dict[str, Any], key: str, enum_t: type, where: str) -> Any:
    value = _expect(data, key, str, where)
    if value is None:
        return None
    try:
        return enum_t(value)
    except ValueError as val_err:
        raise ManifestParseError(
            f"{where}: invalid {key} '{value}', expected one of "
            + ", ".join(str(v) for v in enum_t)
        ) from val_err


@dataclass(frozen=True)
class SourceSpec:
    """Provenance of an entry, not interpreted by the generators."""

    type: SourceKind

    #: git repository url (``git`` and ``git-ref`` sources)
    repository: str | None = None

    #: release tag (``git`` sources)
    tag: str | None = None

    #: pinned git ref (``git-ref`` sources)
    ref: str | None = None

    #: commit the tag or ref resolved to, see :py:mod:`aza_build.sources`
    commit: str | None = None

    @staticmethod
    def from_dict(data: dict[str, Any], where: str) -> "SourceSpec":
        kind = _expect_enum(data, "type", SourceKind, where)
        if kind is None:
            raise ManifestParseError(f"{where}: source is missing 'type'")
        return SourceSpec(
            type=kind,
            repository=_expect(data, "repository", str, where),
            tag=_expect(data, "tag", str, where),
            ref=_expect(data, "ref", str, where),
            commit=_expect(data, "commit", str, where),
        )


@dataclass(frozen=True)
class BuildSpec:
    type: BuildKind
    subdir: str | None = None
    features: list[str] | None = None
    no_default_features: bool | None = None
    script: str | None = None

    #: sed expressions applied to the sources before building
    patches: list[str] | None = None

    @staticmethod
    def from_dict(data: dict[str, Any], where: str) -> "BuildSpec":
        kind = _expect_enum(data, "type", BuildKind, where)
        if kind is None:
            raise ManifestParseError(f"{where}: build is missing 'type'")
        return BuildSpec(
            type=kind,
            subdir=_expect(data, "subdir", str, where),
            features=_expect_str_list(data, "features", where),
            no_default_features=_expect(data, "noDefaultFeatures", bool, where),
            script=_expect(data, "script", str, where),
            patches=_expect_str_list(data, "patches", where),
        )


@dataclass(frozen=True)
class RuntimeSpec:
    """Runtime flags of an entry.

    All flags are tri-state: ``None`` means the manifest did not set them.

    """

    #: the library must be listed in ``shared_preload_libraries``
    shared_preload: bool | None = None

    #: preloaded (and created) in the default configuration
    default_enable: bool | None = None

    #: has no control file and cannot be used with ``CREATE EXTENSION``
    preload_only: bool | None = None

    #: preloaded in the comprehensive test configuration only
    preload_in_comprehensive_test: bool | None = None

    #: name of the shared library if it differs from the entry's name
    preload_library_name: str | None = None

    notes: list[str] | None = None

    @staticmethod
    def from_dict(data: dict[str, Any], where: str) -> "RuntimeSpec":
        return RuntimeSpec(
            shared_preload=_expect(data, "sharedPreload", bool, where),
            default_enable=_expect(data, "defaultEnable", bool, where),
            preload_only=_expect(data, "preloadOnly", bool, where),
            preload_in_comprehensive_test=_expect(
                data, "preloadInComprehensiveTest", bool, where
            ),
            preload_library_name=_expect(data, "preloadLibraryName", str, where),
            notes=_expect_str_list(data, "notes", where),
        )


@dataclass(frozen=True)
class ManifestEntry:
    """A single extension, tool, builtin or module of the image."""

    #: unique identifier, used as the join key by every generator
    name: str

    kind: EntryKind

    #: ``None`` (absent) and ``True`` both mean enabled, use
    #: :py:meth:`is_enabled` instead of reading this directly
    enabled: bool | None = None

    #: installed in the regression image even though it is disabled
    enabled_in_comprehensive_test: bool | None = None

    #: only ``pgdg`` has a meaning to the generators
    install_via: str | None = None

    build: BuildSpec | None = None
    runtime: RuntimeSpec | None = None
    source: SourceSpec | None = None

    display_name: str | None = None
    category: str | None = None
    description: str | None = None
    disabled_reason: str | None = None
    dependencies: list[str] | None = None
    apt_packages: list[str] | None = None

    #: the entry exactly as it appeared in the manifest
    raw: dict[str, Any] = field(default_factory=dict, compare=False, repr=False)

    def is_enabled(self) -> bool:
        """Whether the entry is enabled: an absent ``enabled`` means yes."""
        return self.enabled is not False

    @property
    def is_pgdg(self) -> bool:
        return self.install_via == "pgdg"

    @property
    def preload_name(self) -> str:
        """Name of the shared library as it goes into
        ``shared_preload_libraries``.

        """
        if self.runtime and self.runtime.preload_library_name:
            return self.runtime.preload_library_name
        return self.name

    @staticmethod
    def from_dict(data: Any, index: int = 0) -> "ManifestEntry":
        if not isinstance(data, dict):
            raise ManifestParseError(
                f"entries[{index}]: expected an object, got {type(data).__name__}"
            )
        name = data.get("name")
        if not isinstance(name, str) or not name:
            raise ManifestParseError(f"entries[{index}]: missing or empty 'name'")
        where = f"entry '{name}'"

        kind = _expect_enum(data, "kind", EntryKind, where)
        if kind is None:
            raise ManifestParseError(f"{where}: missing 'kind'")

        build = _expect(data, "build", dict, where)
        runtime = _expect(data, "runtime", dict, where)
        source = _expect(data, "source", dict, where)

        return ManifestEntry(
            name=name,
            kind=kind,
            enabled=_expect(data, "enabled", bool, where),
            enabled_in_comprehensive_test=_expect(
                data, "enabledInComprehensiveTest", bool, where
            ),
            install_via=_expect(data, "install_via", str, where),
            build=(
                BuildSpec.from_dict(build, f"{where} build")
                if build is not None
                else None
            ),
            runtime=(
                RuntimeSpec.from_dict(runtime, f"{where} runtime")
                if runtime is not None
                else None
            ),
            source=(
                SourceSpec.from_dict(source, f"{where} source")
                if source is not None
                else None
            ),
            display_name=_expect(data, "displayName", str, where),
            category=_expect(data, "category", str, where),
            description=_expect(data, "description", str, where),
            disabled_reason=_expect(data, "disabledReason", str, where),
            dependencies=_expect_str_list(data, "dependencies", where),
            apt_packages=_expect_str_list(data, "aptPackages", where),
            raw=data,
        )

    def to_dict(self) -> dict[str, Any]:
        """The full content of the entry, including keys the model ignores."""
        return dict(self.raw)


@dataclass(frozen=True)
class Manifest:
    entries: list[ManifestEntry] = field(default_factory=list)

    #: timestamp of the last source resolution, carried through verbatim
    generated_at: str | None = None

    def __post_init__(self) -> None:
        seen: set[str] = set()
        for entry in self.entries:
            if entry.name in seen:
                raise ManifestParseError(f"Duplicate manifest entry '{entry.name}'")
            seen.add(entry.name)

    def __iter__(self):
        return iter(self.entries)

    def __len__(self) -> int:
        return len(self.entries)

    def get(self, name: str) -> ManifestEntry | None:
        for entry in self.entries:
            if entry.name == name:
                return entry
        return None

    @property
    def names(self) -> list[str]:
        return [e.name for e in self.entries]

    @staticmethod
    def from_dict(data: Any) -> "Manifest":
        if not isinstance(data, dict):
            raise ManifestParseError("The manifest must be a JSON object")
        entries = data.get("entries")
        if not isinstance(entries, list):
            raise ManifestParseError("The manifest has no 'entries' list")
        generated_at = data.get("generatedAt")
        if generated_at is not None and not isinstance(generated_at, str):
            raise ManifestParseError("'generatedAt' must be a string")
        return Manifest(
            entries=[ManifestEntry.from_dict(e, i) for i, e in enumerate(entries)],
            generated_at=generated_at,
        )

    def to_dict(self) -> dict[str, Any]:
        res: dict[str, Any] = {}
        if self.generated_at is not None:
            res["generatedAt"] = self.generated_at
        res["entries"] = [e.to_dict() for e in self.entries]
        return res


def load_manifest(path: str | Path) -> Manifest:
    """Load and type-check the manifest stored at ``path``.

    Raises:
        ManifestNotFoundError: when ``path`` does not exist
        ManifestParseError: when the file is not a valid manifest

    """
    path = Path(path)
    if not path.is_file():
        raise ManifestNotFoundError(path)

    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except UnicodeDecodeError as decode_err:
        raise ManifestParseError(
            f"{path}: not valid UTF-8: {decode_err}"
        ) from decode_err
    except json.JSONDecodeError as json_err:
        raise ManifestParseError(f"{path}: invalid JSON: {json_err}") from json_err

    manifest = Manifest.from_dict(data)
    LOGGER.debug("Loaded %d manifest entries from %s", len(manifest), path)
    return manifest
