"""Pinned versions the generated image is built from.

The values are stored in :file:`extension_defaults.json` next to this module
and loaded once by :py:func:`load_defaults`. The resulting
:py:class:`ExtensionDefaults` is passed to every generator explicitly.

"""

import enum
import json
import re
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path

from packaging import version

from aza_build.errors import DefaultsError
from aza_build.pgdg import PGDG_MAPPINGS
from aza_build.pgdg import PgdgMapping
from aza_build.safety import validate_shell_token

#: path to the default extension versions shipped with the package
EXTENSION_DEFAULTS_JSON_PATH = Path(__file__).parent / "extension_defaults.json"

_PG_VERSION_RE = re.compile(r"^\d+\.\d+$")
_BASE_IMAGE_SHA_RE = re.compile(r"^sha256:[a-f0-9]{64}$")
_SEMVER_PREFIX_RE = re.compile(r"^([\d.]+)")


@enum.unique
class ExportFormat(enum.StrEnum):
    JSON = "json"
    SHELL = "shell"
    DOCKERFILE = "dockerfile"


@dataclass(frozen=True)
class ExtensionDefaults:
    #: PostgreSQL version in the form ``MAJOR.MINOR``
    pg_version: str

    #: digest of the upstream postgres base image
    base_image_sha: str

    #: version key to Debian package version (``X.Y.Z-N.pgdgMM+B``)
    pgdg_versions: dict[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        if not _PG_VERSION_RE.match(self.pg_version):
            raise DefaultsError(
                f"Invalid PostgreSQL version '{self.pg_version}', expected MAJOR.MINOR"
            )
        if not _BASE_IMAGE_SHA_RE.match(self.base_image_sha):
            raise DefaultsError(
                f"Invalid base image digest '{self.base_image_sha}', expected sha256:<64 hex digits>"
            )

    @property
    def pg_major(self) -> str:
        """The major version of PostgreSQL, e.g. ``18`` for ``18.1``."""
        return str(version.parse(self.pg_version).major)

    def pgdg_version(self, version_key: str) -> str:
        """Return the pinned package version for ``version_key``."""
        try:
            return self.pgdg_versions[version_key]
        except KeyError as key_err:
            raise DefaultsError(
                f"No PGDG version defined for version key '{version_key}'"
            ) from key_err

    @staticmethod
    def from_dict(data: object) -> "ExtensionDefaults":
        if not isinstance(data, dict):
            raise DefaultsError("The extension defaults must be a JSON object")
        pg_version = data.get("pgVersion")
        base_image_sha = data.get("baseImageSha")
        pgdg_versions = data.get("pgdgVersions", {})
        if not isinstance(pg_version, str) or not isinstance(base_image_sha, str):
            raise DefaultsError(
                "The extension defaults need the string values 'pgVersion' and 'baseImageSha'"
            )
        if not isinstance(pgdg_versions, dict) or not all(
            isinstance(k, str) and isinstance(v, str) for k, v in pgdg_versions.items()
        ):
            raise DefaultsError("'pgdgVersions' must map strings to strings")
        return ExtensionDefaults(
            pg_version=pg_version,
            base_image_sha=base_image_sha,
            pgdg_versions=dict(pgdg_versions),
        )

    def to_dict(self) -> dict[str, object]:
        return {
            "pgVersion": self.pg_version,
            "baseImageSha": self.base_image_sha,
            "pgdgVersions": dict(self.pgdg_versions),
        }


def load_defaults(path: str | Path = EXTENSION_DEFAULTS_JSON_PATH) -> ExtensionDefaults:
    path = Path(path)
    try:
        data = json.loads(path.read_text(encoding="utf-8"))
    except FileNotFoundError as fnf_err:
        raise DefaultsError(f"Extension defaults not found: {path}") from fnf_err
    except UnicodeDecodeError as decode_err:
        raise DefaultsError(f"{path}: not valid UTF-8: {decode_err}") from decode_err
    except json.JSONDecodeError as json_err:
        raise DefaultsError(f"{path}: invalid JSON: {json_err}") from json_err
    return ExtensionDefaults.from_dict(data)


def extract_semantic_version(full_version: str) -> str:
    """Strip the Debian revision from a package version.

    >>> extract_semantic_version("1.6.7-2.pgdg13+1")
    '1.6.7'

    Versions without a numeric prefix are returned unchanged.

    """
    if match := _SEMVER_PREFIX_RE.match(full_version):
        return match.group(1)
    return full_version


def version_arg_name(
    version_key: str, mappings: tuple[PgdgMapping, ...] = PGDG_MAPPINGS
) -> str:
    """Name of the build argument carrying the version of ``version_key``.

    Keys with a PGDG mapping use the mapping's argument name, all others are
    converted from camel case, e.g. ``plpgsqlCheck`` -> ``PLPGSQL_CHECK_VERSION``.

    """
    for mapping in mappings:
        if mapping.version_key == version_key:
            return mapping.arg_name
    return re.sub(r"(?<!^)(?=[A-Z])", "_", version_key).upper() + "_VERSION"


def _version_args(
    defaults: ExtensionDefaults, mappings: tuple[PgdgMapping, ...]
) -> list[tuple[str, str]]:
    return [
        (
            validate_shell_token(version_arg_name(k, mappings), f"argument name of {k}"),
            validate_shell_token(v, f"version of {k}"),
        )
        for k, v in defaults.pgdg_versions.items()
    ]


def format_defaults(
    defaults: ExtensionDefaults,
    fmt: ExportFormat = ExportFormat.JSON,
    mappings: tuple[PgdgMapping, ...] = PGDG_MAPPINGS,
) -> str:
    """Render the defaults for consumption by shell scripts or Dockerfiles.

    Every exported name and version is checked with
    :py:func:`~aza_build.safety.validate_shell_token`.

    """
    match fmt:
        case ExportFormat.JSON:
            return json.dumps(defaults.to_dict(), indent=2) + "\n"
        case ExportFormat.SHELL:
            lines = [
                f'PG_VERSION="{defaults.pg_version}"',
                f'PG_BASE_IMAGE_SHA="{defaults.base_image_sha}"',
            ] + [f'{name}="{v}"' for name, v in _version_args(defaults, mappings)]
        case ExportFormat.DOCKERFILE:
            lines = [
                f"ARG PG_VERSION={defaults.pg_version}",
                f"ARG PG_BASE_IMAGE_SHA={defaults.base_image_sha}",
            ] + [f"ARG {name}={v}" for name, v in _version_args(defaults, mappings)]
        case _:
            raise ValueError(f"Unknown export format: {fmt}")

    return "\n".join(lines) + "\n"
