"""Generation of the Dockerfile instructions installing the PGDG packages."""

import enum
from dataclasses import dataclass

from aza_build.defaults import ExtensionDefaults
from aza_build.logger import LOGGER
from aza_build.manifest import Manifest
from aza_build.manifest import ManifestEntry
from aza_build.pgdg import PGDG_MAPPINGS
from aza_build.pgdg import PgdgMapping
from aza_build.pgdg import sorted_by_tier
from aza_build.safety import validate_shell_token
from aza_build.templates import PGDG_INSTALL_EMPTY_TEMPLATE
from aza_build.templates import PGDG_INSTALL_REGRESSION_TEMPLATE
from aza_build.templates import PGDG_INSTALL_TEMPLATE
from aza_build.templates import PGDG_VERSION_ARGS_TEMPLATE


@enum.unique
class InstallMode(enum.StrEnum):
    #: enabled entries only, a missing package fails the build
    DEFAULT = "default"

    #: enabled entries and those enabled in the comprehensive test, every
    #: package is optional
    REGRESSION = "regression"


@dataclass(frozen=True)
class PgdgPackage:
    """A PGDG package selected for installation."""

    mapping: PgdgMapping

    #: full Debian package name, e.g. ``postgresql-18-pgvector``
    name: str

    version: str

    @property
    def token(self) -> str:
        """The ``name=version`` argument passed to :command:`apt-get`."""
        return f"{self.name}={self.version}"

    @property
    def library(self) -> str | None:
        return self.mapping.library


def _is_selected(entry: ManifestEntry | None, mode: InstallMode) -> bool:
    if entry is None or not entry.is_pgdg:
        return False
    if mode == InstallMode.REGRESSION:
        return entry.is_enabled() or entry.enabled_in_comprehensive_test is True
    return entry.is_enabled()


def select_pgdg_packages(
    manifest: Manifest,
    defaults: ExtensionDefaults,
    mode: InstallMode = InstallMode.DEFAULT,
    mappings: tuple[PgdgMapping, ...] = PGDG_MAPPINGS,
) -> list[PgdgPackage]:
    """Return the PGDG packages to install in ``mode``, ordered by cache tier
    (see :py:func:`~aza_build.pgdg.sorted_by_tier`).

    Every package name and version is checked with
    :py:func:`~aza_build.safety.validate_shell_token`, a rejected value aborts
    the generation.

    """
    packages: list[PgdgPackage] = []
    for mapping in sorted_by_tier(mappings):
        entry = manifest.get(mapping.manifest_name)
        if not _is_selected(entry, mode):
            LOGGER.debug(
                "Skipping PGDG package %s (%s mode)", mapping.package_name, mode
            )
            continue

        name = validate_shell_token(
            mapping.debian_package(defaults.pg_major),
            f"package name of {mapping.manifest_name}",
        )
        version = validate_shell_token(
            defaults.pgdg_version(mapping.version_key),
            f"version of {mapping.manifest_name}",
        )
        pkg = PgdgPackage(mapping=mapping, name=name, version=version)
        validate_shell_token(pkg.token, f"install token of {mapping.manifest_name}")
        if mapping.library is not None:
            validate_shell_token(mapping.library, f"library of {mapping.manifest_name}")
        packages.append(pkg)

    LOGGER.info("Selected %d PGDG package(s) in %s mode", len(packages), mode)
    return packages


def generate_pgdg_install(
    manifest: Manifest,
    defaults: ExtensionDefaults,
    mode: InstallMode = InstallMode.DEFAULT,
    mappings: tuple[PgdgMapping, ...] = PGDG_MAPPINGS,
) -> str:
    """Render the ``RUN`` instruction installing the PGDG packages.

    In the default mode all packages are installed with a single
    :command:`apt-get` invocation followed by a check that at least as many
    ``postgresql-$PG_MAJOR-*`` packages are installed as were requested. The
    regression mode installs each package on its own and only reports the
    packages that are unavailable.

    """
    packages = select_pgdg_packages(manifest, defaults, mode, mappings)
    if not packages:
        return PGDG_INSTALL_EMPTY_TEMPLATE.render(mode=mode)

    template = (
        PGDG_INSTALL_REGRESSION_TEMPLATE
        if mode == InstallMode.REGRESSION
        else PGDG_INSTALL_TEMPLATE
    )
    return template.render(packages=packages, pg_major=defaults.pg_major)


def generate_version_args(
    defaults: ExtensionDefaults,
    mappings: tuple[PgdgMapping, ...] = PGDG_MAPPINGS,
) -> str:
    """Render one ``ARG`` per mapped PGDG package documenting its pinned
    version.

    """
    args = [
        {
            "name": validate_shell_token(m.arg_name, "build argument name"),
            "version": validate_shell_token(
                defaults.pgdg_version(m.version_key), f"version of {m.manifest_name}"
            ),
        }
        for m in sorted_by_tier(mappings)
    ]
    return PGDG_VERSION_ARGS_TEMPLATE.render(args=args).rstrip("\n")


def generate_version_arg_redeclare(
    mappings: tuple[PgdgMapping, ...] = PGDG_MAPPINGS,
) -> str:
    """Re-declare the version arguments inside a build stage."""
    return "\n".join(f"ARG {m.arg_name}" for m in sorted_by_tier(mappings))
