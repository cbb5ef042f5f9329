import pytest

from aza_build.errors import UnsafeCharactersError
from aza_build.manifest import Manifest
from aza_build.preload import PreloadMode
from aza_build.preload import preload_libraries
from aza_build.preload import shared_preload_libraries

from conftest import manifest_from


def _entry(name: str, enabled: bool | None = None, **runtime) -> dict:
    res: dict = {"name": name, "kind": "extension", "runtime": runtime}
    if enabled is not None:
        res["enabled"] = enabled
    return res


@pytest.fixture
def scenario() -> list[dict]:
    return [
        _entry("pg_stat_statements", True, sharedPreload=True, defaultEnable=True),
        _entry("pg_cron", True, sharedPreload=True, defaultEnable=False),
        _entry("timescaledb", False, sharedPreload=True, defaultEnable=True),
    ]


def test_default_scenario(scenario: list[dict]) -> None:
    assert shared_preload_libraries(manifest_from(*scenario)) == "pg_stat_statements"


def test_comprehensive_scenario(scenario: list[dict]) -> None:
    scenario[1]["runtime"]["preloadInComprehensiveTest"] = True
    manifest = manifest_from(*scenario)

    assert (
        shared_preload_libraries(manifest, PreloadMode.COMPREHENSIVE)
        == "pg_cron,pg_stat_statements"
    )
    assert shared_preload_libraries(manifest) == "pg_stat_statements"


@pytest.mark.parametrize("mode", list(PreloadMode))
def test_empty_manifest(mode: PreloadMode) -> None:
    assert shared_preload_libraries(Manifest(), mode) == ""
    assert preload_libraries(Manifest(), mode) == []


@pytest.mark.parametrize(
    "entry,default,comprehensive",
    [
        (_entry("a", sharedPreload=True, defaultEnable=True), True, True),
        (_entry("a", None, sharedPreload=True, defaultEnable=True), True, True),
        (_entry("a", sharedPreload=True), False, False),
        (_entry("a", sharedPreload=False, defaultEnable=True), False, False),
        (_entry("a", defaultEnable=True), False, False),
        (
            _entry("a", sharedPreload=True, defaultEnable=False, preloadInComprehensiveTest=True),
            False,
            True,
        ),
        (
            _entry("a", False, sharedPreload=True, defaultEnable=True, preloadInComprehensiveTest=True),
            False,
            False,
        ),
        ({"name": "a", "kind": "extension"}, False, False),
    ],
)
def test_filter_predicate(entry: dict, default: bool, comprehensive: bool) -> None:
    manifest = manifest_from(entry)
    assert (preload_libraries(manifest, PreloadMode.DEFAULT) == ["a"]) is default
    assert (
        preload_libraries(manifest, PreloadMode.COMPREHENSIVE) == ["a"]
    ) is comprehensive


def test_preload_library_name_override() -> None:
    manifest = manifest_from(
        _entry(
            "pg_partman",
            sharedPreload=True,
            defaultEnable=True,
            preloadLibraryName="pg_partman_bgw",
        ),
        _entry("pg_cron", sharedPreload=True, defaultEnable=True, preloadLibraryName=""),
    )
    assert shared_preload_libraries(manifest) == "pg_cron,pg_partman_bgw"


def test_sorted_and_deduplicated() -> None:
    manifest = manifest_from(
        _entry("pgaudit", sharedPreload=True, defaultEnable=True),
        _entry("auto_explain", sharedPreload=True, defaultEnable=True),
        _entry("pg_cron", sharedPreload=True, defaultEnable=True),
        _entry("cron_alias", sharedPreload=True, defaultEnable=True, preloadLibraryName="pg_cron"),
        _entry("Zeta", sharedPreload=True, defaultEnable=True),
    )
    libraries = preload_libraries(manifest)

    # code point order: upper case sorts first, "_" before lower case letters
    assert libraries == ["Zeta", "auto_explain", "pg_cron", "pgaudit"]
    assert len(libraries) == len(set(libraries))
    assert shared_preload_libraries(manifest) == "Zeta,auto_explain,pg_cron,pgaudit"


def test_disabled_entries_never_preloaded() -> None:
    manifest = manifest_from(
        _entry("supautils", False, sharedPreload=True, defaultEnable=True),
        _entry(
            "pg_stat_monitor",
            False,
            sharedPreload=True,
            defaultEnable=False,
            preloadInComprehensiveTest=True,
        ),
    )
    for mode in PreloadMode:
        assert preload_libraries(manifest, mode) == []


@pytest.mark.parametrize(
    "runtime",
    [
        {"preloadLibraryName": 'x"; rm -rf / #$(id)'},
        {"preloadLibraryName": "pg_cron,pgaudit"},
        {"preloadLibraryName": "lib-with-dash"},
    ],
)
def test_unsafe_library_names_abort(runtime: dict) -> None:
    manifest = manifest_from(
        _entry("pg_cron", sharedPreload=True, defaultEnable=True, **runtime)
    )
    with pytest.raises(UnsafeCharactersError, match="preload library of pg_cron"):
        shared_preload_libraries(manifest)


def test_unsafe_entry_name_aborts_when_preloaded() -> None:
    manifest = manifest_from(
        _entry("evil$(id)", sharedPreload=False, preloadInComprehensiveTest=True)
    )
    # not preloaded in any mode, so never validated
    assert shared_preload_libraries(manifest, PreloadMode.COMPREHENSIVE) == ""

    manifest = manifest_from(_entry("evil$(id)", sharedPreload=True, defaultEnable=True))
    with pytest.raises(UnsafeCharactersError):
        shared_preload_libraries(manifest)
