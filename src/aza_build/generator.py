"""Generate the build files of the aza-pg image from the extensions manifest.

All artifacts are first rendered in memory by :py:func:`render_artifacts` and
then written by :py:func:`write_artifacts`. :py:func:`verify_artifacts`
renders them into a temporary directory and compares them with the checked-in
files to detect drift.

"""

import asyncio
import datetime
import difflib
import json
import os
import re
import sys
from dataclasses import dataclass
from dataclasses import field
from pathlib import Path
from pathlib import PurePosixPath

import aiofiles.tempfile

from aza_build.defaults import EXTENSION_DEFAULTS_JSON_PATH
from aza_build.defaults import ExportFormat
from aza_build.defaults import ExtensionDefaults
from aza_build.defaults import format_defaults
from aza_build.defaults import load_defaults
from aza_build.docs import render_build_packages
from aza_build.docs import update_extensions_doc
from aza_build.errors import GenerationError
from aza_build.errors import MappingIntegrityError
from aza_build.errors import TemplateNotFoundError
from aza_build.install import InstallMode
from aza_build.install import generate_pgdg_install
from aza_build.install import generate_version_arg_redeclare
from aza_build.install import generate_version_args
from aza_build.integrity import check_integrity
from aza_build.logger import LOGGER
from aza_build.logger import set_verbosity
from aza_build.manifest import Manifest
from aza_build.manifest import load_manifest
from aza_build.partition import partition_manifest
from aza_build.partition import render_sub_manifest
from aza_build.preload import PreloadMode
from aza_build.preload import shared_preload_libraries
from aza_build.replacement import GENERATED_AT_PREFIX
from aza_build.replacement import generation_header
from aza_build.replacement import prepend_header
from aza_build.replacement import render_placeholders
from aza_build.sources import resolve_sources
from aza_build.stats import compute_stats
from aza_build.stats import render_image_contents
from aza_build.stats import render_version_info_json
from aza_build.stats import render_version_info_txt
from aza_build.util import read_file
from aza_build.util import write_to_file

EXIT_OK = 0
EXIT_FAILURE = 1
EXIT_DRIFT = 2
EXIT_INTEGRITY = 3

#: environment variable overriding the default repository root
ROOT_ENV_VAR = "AZA_PG_ROOT"

_DOCKER_DIR = PurePosixPath("docker/postgres")

MANIFEST_PATH = _DOCKER_DIR / "extensions.manifest.json"
DOCKERFILE_TEMPLATE_PATH = _DOCKER_DIR / "Dockerfile.template"
DOCKERFILE_PATH = _DOCKER_DIR / "Dockerfile"
ENTRYPOINT_TEMPLATE_PATH = _DOCKER_DIR / "docker-auto-config-entrypoint.sh.template"
ENTRYPOINT_PATH = _DOCKER_DIR / "docker-auto-config-entrypoint.sh"
PGXS_MANIFEST_PATH = _DOCKER_DIR / "extensions.pgxs.manifest.json"
CARGO_MANIFEST_PATH = _DOCKER_DIR / "extensions.cargo.manifest.json"
IMAGE_CONTENTS_PATH = _DOCKER_DIR / "IMAGE-CONTENTS.txt"
VERSION_INFO_TXT_PATH = _DOCKER_DIR / "version-info.txt"
VERSION_INFO_JSON_PATH = _DOCKER_DIR / "version-info.json"
BUILD_PACKAGES_PATH = _DOCKER_DIR / "extensions.build-packages.txt"
EXTENSIONS_DOC_PATH = PurePosixPath("docs/EXTENSIONS.md")

GENERATOR_NAME = "aza_build.generator"

_GENERATED_AT_LINE_RE = re.compile(
    "^" + re.escape(GENERATED_AT_PREFIX) + ".*$", re.MULTILINE
)
_GENERATED_AT_JSON_RE = re.compile(r'"generatedAt": "[^"]*"')


@dataclass(frozen=True)
class GeneratorConfig:
    """Locations of the inputs of a generation run."""

    #: root of the aza-pg repository
    root: Path

    defaults_path: Path = EXTENSION_DEFAULTS_JSON_PATH

    def path(self, relative: PurePosixPath) -> Path:
        return self.root / relative

    @property
    def manifest_path(self) -> Path:
        return self.path(MANIFEST_PATH)

    @staticmethod
    def from_env(root: str | Path | None = None) -> "GeneratorConfig":
        return GeneratorConfig(
            root=Path(root or os.getenv(ROOT_ENV_VAR) or Path.cwd()).resolve()
        )


@dataclass
class DriftReport:
    #: relative path of every drifted artifact to its unified diff
    diffs: dict[PurePosixPath, str] = field(default_factory=dict)

    @property
    def has_drift(self) -> bool:
        return bool(self.diffs)


def _utcnow() -> datetime.datetime:
    return datetime.datetime.now(tz=datetime.timezone.utc).replace(microsecond=0)


def _read_text(path: Path) -> str:
    try:
        return path.read_text(encoding="utf-8")
    except UnicodeDecodeError as decode_err:
        raise GenerationError(f"{path}: not valid UTF-8: {decode_err}") from decode_err


def _read_template(config: GeneratorConfig, relative: PurePosixPath) -> str:
    path = config.path(relative)
    if not path.is_file():
        raise TemplateNotFoundError(path)
    return _read_text(path)


def _header(
    generated_at: datetime.datetime, template: PurePosixPath | None = None
) -> str:
    return generation_header(
        generated_at,
        generator=GENERATOR_NAME,
        template=str(template) if template else None,
        manifest=str(MANIFEST_PATH),
    )


def render_artifacts(
    config: GeneratorConfig,
    manifest: Manifest,
    defaults: ExtensionDefaults,
    generated_at: datetime.datetime,
) -> dict[PurePosixPath, str]:
    """Render every generated artifact, keyed by its path relative to the
    repository root.

    """
    dockerfile = render_placeholders(
        _read_template(config, DOCKERFILE_TEMPLATE_PATH),
        {
            "PG_VERSION": defaults.pg_version,
            "PG_MAJOR": defaults.pg_major,
            "PG_BASE_IMAGE_SHA": defaults.base_image_sha,
            "PGDG_VERSION_ARGS": generate_version_args(defaults),
            "PGDG_VERSION_ARG_REDECLARE": generate_version_arg_redeclare(),
            "PGDG_PACKAGES_INSTALL": generate_pgdg_install(
                manifest, defaults, InstallMode.DEFAULT
            ),
            "PGDG_PACKAGES_INSTALL_REGRESSION": generate_pgdg_install(
                manifest, defaults, InstallMode.REGRESSION
            ),
        },
        source=str(DOCKERFILE_TEMPLATE_PATH),
    )

    entrypoint = render_placeholders(
        _read_template(config, ENTRYPOINT_TEMPLATE_PATH),
        {
            "DEFAULT_SHARED_PRELOAD_LIBRARIES": shared_preload_libraries(
                manifest, PreloadMode.DEFAULT
            ),
            "REGRESSION_SHARED_PRELOAD_LIBRARIES": shared_preload_libraries(
                manifest, PreloadMode.COMPREHENSIVE
            ),
        },
        source=str(ENTRYPOINT_TEMPLATE_PATH),
    )

    partition = partition_manifest(manifest)
    stats = compute_stats(manifest, defaults)
    doc_path = config.path(EXTENSIONS_DOC_PATH)
    document = _read_text(doc_path) if doc_path.is_file() else None

    return {
        DOCKERFILE_PATH: prepend_header(
            dockerfile, _header(generated_at, DOCKERFILE_TEMPLATE_PATH)
        ),
        ENTRYPOINT_PATH: prepend_header(
            entrypoint, _header(generated_at, ENTRYPOINT_TEMPLATE_PATH)
        ),
        PGXS_MANIFEST_PATH: render_sub_manifest(partition.pgxs),
        CARGO_MANIFEST_PATH: render_sub_manifest(partition.cargo),
        IMAGE_CONTENTS_PATH: prepend_header(
            render_image_contents(manifest, defaults), _header(generated_at)
        ),
        VERSION_INFO_TXT_PATH: prepend_header(
            render_version_info_txt(stats), _header(generated_at)
        ),
        VERSION_INFO_JSON_PATH: render_version_info_json(stats, generated_at),
        BUILD_PACKAGES_PATH: prepend_header(
            render_build_packages(manifest), _header(generated_at)
        ),
        EXTENSIONS_DOC_PATH: update_extensions_doc(document, manifest, defaults),
    }


async def write_artifacts(
    root: Path, artifacts: dict[PurePosixPath, str]
) -> list[Path]:
    paths = [root / relative for relative in artifacts]
    await asyncio.gather(
        *(write_to_file(p, contents) for p, contents in zip(paths, artifacts.values()))
    )
    for p in paths:
        LOGGER.info("Wrote %s", p)
    return paths


def generate(
    config: GeneratorConfig,
    defaults: ExtensionDefaults | None = None,
    generated_at: datetime.datetime | None = None,
) -> list[Path]:
    """Load the manifest, render all artifacts and write them below
    :py:attr:`GeneratorConfig.root`.

    """
    manifest = load_manifest(config.manifest_path)
    defaults = defaults or load_defaults(config.defaults_path)
    artifacts = render_artifacts(
        config, manifest, defaults, generated_at or _utcnow()
    )
    return asyncio.run(write_artifacts(config.root, artifacts))


def normalize_generated(text: str) -> str:
    """Blank out the provenance timestamps of an artifact."""
    text = _GENERATED_AT_LINE_RE.sub(GENERATED_AT_PREFIX + "<timestamp>", text)
    return _GENERATED_AT_JSON_RE.sub('"generatedAt": "<timestamp>"', text)


def _json_equal(expected: str, actual: str) -> bool:
    try:
        lhs, rhs = json.loads(expected), json.loads(actual)
    except json.JSONDecodeError:
        return False
    if isinstance(lhs, dict) and isinstance(rhs, dict):
        lhs.pop("generatedAt", None)
        rhs.pop("generatedAt", None)
    return lhs == rhs


def _diff(
    relative: PurePosixPath, checked_in: str | None, regenerated: str
) -> str | None:
    if checked_in is None:
        return f"{relative}: missing, expected a generated file\n"

    if normalize_generated(checked_in) == normalize_generated(regenerated):
        return None
    if relative.suffix == ".json" and _json_equal(checked_in, regenerated):
        return None

    return "".join(
        difflib.unified_diff(
            normalize_generated(checked_in).splitlines(keepends=True),
            normalize_generated(regenerated).splitlines(keepends=True),
            fromfile=f"a/{relative}",
            tofile=f"b/{relative}",
        )
    )


async def verify_artifacts(
    config: GeneratorConfig, defaults: ExtensionDefaults | None = None
) -> DriftReport:
    """Regenerate all artifacts into a temporary directory and compare them
    with the files below :py:attr:`GeneratorConfig.root`, ignoring the
    provenance timestamps.

    """
    manifest = load_manifest(config.manifest_path)
    defaults = defaults or load_defaults(config.defaults_path)
    artifacts = render_artifacts(config, manifest, defaults, _utcnow())

    report = DriftReport()
    async with aiofiles.tempfile.TemporaryDirectory() as tmp_dir:
        await write_artifacts(Path(tmp_dir), artifacts)
        for relative in artifacts:
            regenerated = await read_file(Path(tmp_dir) / relative)
            if regenerated is None:
                raise GenerationError(f"Could not regenerate {relative}")
            checked_in = await read_file(config.path(relative))
            if diff := _diff(relative, checked_in, regenerated):
                LOGGER.debug("%s drifted", relative)
                report.diffs[relative] = diff

    return report


def main(argv: list[str] | None = None) -> None:
    import argparse

    parser = argparse.ArgumentParser(
        "aza-generate",
        description="Generate the build files of the aza-pg image from the extensions manifest",
    )
    parser.add_argument(
        "--root",
        type=str,
        default=None,
        help=f"Root of the aza-pg repository (default: ${ROOT_ENV_VAR} or the current directory)",
    )
    parser.add_argument(
        "--defaults",
        type=str,
        default=None,
        help="JSON file with the pinned PostgreSQL and PGDG versions",
    )
    parser.add_argument(
        "--verbose",
        "-v",
        action="count",
        default=0,
        help="Set the verbosity of the logger to stderr",
    )

    subparsers = parser.add_subparsers(dest="action", required=True)
    subparsers.add_parser("generate", help="Regenerate all artifacts")
    subparsers.add_parser(
        "verify",
        help="Check that the checked-in artifacts match the manifest",
    )
    subparsers.add_parser(
        "validate",
        help="Cross-check the manifest, the PGDG mapping table and the defaults",
    )
    defaults_parser = subparsers.add_parser(
        "defaults", help="Print the pinned versions"
    )
    defaults_parser.add_argument(
        "--format",
        type=str,
        default=str(ExportFormat.JSON),
        choices=[str(f) for f in ExportFormat],
    )
    subparsers.add_parser(
        "resolve-sources",
        help="Pin every git tag of the manifest to its commit",
    )

    args = parser.parse_args(argv)

    set_verbosity(args.verbose)

    config = GeneratorConfig.from_env(args.root)
    if args.defaults:
        config = GeneratorConfig(root=config.root, defaults_path=Path(args.defaults))

    try:
        sys.exit(_run(args.action, config, args))
    except MappingIntegrityError as integrity_err:
        for issue in integrity_err.issues:
            LOGGER.error("%s", issue)
        sys.exit(EXIT_INTEGRITY)
    except GenerationError as gen_err:
        LOGGER.error("%s", gen_err)
        sys.exit(EXIT_FAILURE)


def _run(action: str, config: GeneratorConfig, args) -> int:
    match action:
        case "generate":
            generate(config)
        case "verify":
            report = asyncio.run(verify_artifacts(config))
            if report.has_drift:
                for diff in report.diffs.values():
                    print(diff)
                LOGGER.error(
                    "Generated files are out of date: %s. Run 'aza-generate generate' and commit the result.",
                    ", ".join(str(p) for p in report.diffs),
                )
                return EXIT_DRIFT
        case "validate":
            check_integrity(
                load_manifest(config.manifest_path), load_defaults(config.defaults_path)
            )
        case "defaults":
            print(
                format_defaults(
                    load_defaults(config.defaults_path), ExportFormat(args.format)
                ),
                end="",
            )
        case "resolve-sources":
            manifest = resolve_sources(load_manifest(config.manifest_path), _utcnow())
            asyncio.run(
                write_to_file(
                    config.manifest_path, json.dumps(manifest.to_dict(), indent=2) + "\n"
                )
            )
        case _:
            raise ValueError(f"Unknown action {action}")
    return EXIT_OK


if __name__ == "__main__":
    main()
