"""Static mapping of manifest entries onto PGDG (apt.postgresql.org) packages.

The table is maintained by hand next to the manifest,
:py:func:`~aza_build.integrity.check_integrity` verifies that both agree.

"""

import enum
from dataclasses import dataclass


@enum.unique
class CacheTier(enum.StrEnum):
    """How often the pinned version of a package changes.

    Packages are installed in tier order so that a version bump of a volatile
    package only invalidates the last build layers.

    """

    STABLE = "stable"
    MODERATE = "moderate"
    VOLATILE = "volatile"


@dataclass(frozen=True)
class PgdgMapping:
    #: ``name`` of the manifest entry
    manifest_name: str

    #: package suffix, the full package is ``postgresql-$PG_MAJOR-$package_name``
    package_name: str

    #: build argument documenting the pinned version in the Dockerfile
    arg_name: str

    #: key into :py:attr:`~aza_build.defaults.ExtensionDefaults.pgdg_versions`
    version_key: str

    tier: CacheTier

    #: shared object the package must install below
    #: :file:`/usr/lib/postgresql/$PG_MAJOR/lib`, without the ``.so`` suffix
    library: str | None = None

    def debian_package(self, pg_major: str) -> str:
        return f"postgresql-{pg_major}-{self.package_name}"


#: all PGDG packages, ordered from the most to the least stable version
PGDG_MAPPINGS: tuple[PgdgMapping, ...] = (
    PgdgMapping(
        "pg_repack", "repack", "REPACK_VERSION", "repack", CacheTier.STABLE, "pg_repack"
    ),
    PgdgMapping("hll", "hll", "HLL_VERSION", "hll", CacheTier.STABLE, "hll"),
    PgdgMapping(
        "postgis",
        "postgis-3",
        "POSTGIS_VERSION",
        "postgis",
        CacheTier.STABLE,
        "postgis-3",
    ),
    PgdgMapping(
        "vector", "pgvector", "PGVECTOR_VERSION", "pgvector", CacheTier.STABLE, "vector"
    ),
    PgdgMapping("rum", "rum", "RUM_VERSION", "rum", CacheTier.STABLE, "rum"),
    PgdgMapping(
        "hypopg", "hypopg", "HYPOPG_VERSION", "hypopg", CacheTier.STABLE, "hypopg"
    ),
    PgdgMapping("http", "http", "HTTP_VERSION", "http", CacheTier.MODERATE, "http"),
    PgdgMapping(
        "pg_cron", "cron", "PGCRON_VERSION", "pgcron", CacheTier.MODERATE, "pg_cron"
    ),
    PgdgMapping(
        "set_user",
        "set-user",
        "SET_USER_VERSION",
        "setUser",
        CacheTier.MODERATE,
        "set_user",
    ),
    # the library name carries the upstream version, e.g. libpgrouting-4.0
    PgdgMapping(
        "pgrouting", "pgrouting", "PGROUTING_VERSION", "pgrouting", CacheTier.MODERATE
    ),
    PgdgMapping(
        "pgaudit",
        "pgaudit",
        "PGAUDIT_VERSION",
        "pgaudit",
        CacheTier.VOLATILE,
        "pgaudit",
    ),
)

_TIER_ORDER = {tier: i for i, tier in enumerate(CacheTier)}


def sorted_by_tier(mappings: tuple[PgdgMapping, ...]) -> list[PgdgMapping]:
    """Order ``mappings`` stable first, keeping the order within a tier."""
    return sorted(mappings, key=lambda m: _TIER_ORDER[m.tier])


def mapping_for(
    manifest_name: str, mappings: tuple[PgdgMapping, ...] = PGDG_MAPPINGS
) -> PgdgMapping | None:
    for mapping in mappings:
        if mapping.manifest_name == manifest_name:
            return mapping
    return None
