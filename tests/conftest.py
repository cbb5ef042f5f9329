import datetime
import json
import shutil
from pathlib import Path
from typing import Any

import pytest

from aza_build.defaults import ExtensionDefaults
from aza_build.generator import DOCKERFILE_TEMPLATE_PATH
from aza_build.generator import ENTRYPOINT_TEMPLATE_PATH
from aza_build.generator import EXTENSIONS_DOC_PATH
from aza_build.generator import GeneratorConfig
from aza_build.generator import MANIFEST_PATH
from aza_build.logger import LOGGER
from aza_build.manifest import Manifest

REPO_ROOT = Path(__file__).parent.parent

BASE_IMAGE_SHA = "sha256:" + "0123456789abcdef" * 4

GENERATED_AT = datetime.datetime(2025, 11, 20, 12, 0, tzinfo=datetime.timezone.utc)


@pytest.fixture(autouse=True)
def _restore_log_level():
    """The CLI changes the level of the shared logger, undo it after every test."""
    level = LOGGER.level
    yield
    LOGGER.setLevel(level)


def manifest_from(*entries: dict[str, Any]) -> Manifest:
    return Manifest.from_dict({"entries": list(entries)})


def pgdg_entry(name: str, **kwargs: Any) -> dict[str, Any]:
    return {"name": name, "kind": "extension", "install_via": "pgdg", **kwargs}


@pytest.fixture
def defaults() -> ExtensionDefaults:
    return ExtensionDefaults(
        pg_version="18.1",
        base_image_sha=BASE_IMAGE_SHA,
        pgdg_versions={
            "repack": "1.5.3-1.pgdg13+1",
            "hll": "2.19-1.pgdg13+1",
            "postgis": "3.6.1+dfsg-1.pgdg13+1",
            "pgvector": "0.8.1-2.pgdg13+1",
            "rum": "1.3.15-1.pgdg13+1",
            "hypopg": "1.4.2-2.pgdg13+1",
            "http": "1.7.0-3.pgdg13+1",
            "pgcron": "1.6.7-2.pgdg13+1",
            "setUser": "4.2.0-1.pgdg13+1",
            "pgrouting": "4.0.0-1.pgdg12+1",
            "pgaudit": "18.0-2.pgdg13+1",
        },
    )


@pytest.fixture
def small_manifest() -> Manifest:
    return manifest_from(
        {
            "name": "pg_stat_statements",
            "kind": "builtin",
            "category": "observability",
            "source": {"type": "builtin"},
            "runtime": {"sharedPreload": True, "defaultEnable": True},
        },
        pgdg_entry(
            "pg_cron",
            category="operations",
            source={
                "type": "git",
                "repository": "https://github.com/citusdata/pg_cron.git",
                "tag": "v1.6.7",
            },
            build={"type": "pgxs"},
            runtime={"sharedPreload": True, "defaultEnable": True},
        ),
        pgdg_entry(
            "vector",
            category="ai",
            build={"type": "pgxs"},
            runtime={"sharedPreload": False, "defaultEnable": True},
        ),
        pgdg_entry("pgaudit", enabled=False, enabledInComprehensiveTest=True),
        {
            "name": "wrappers",
            "kind": "extension",
            "category": "integration",
            "source": {
                "type": "git-ref",
                "repository": "https://github.com/supabase/wrappers.git",
                "ref": "fc63ad1fee7fcf94a84b7f5dfc6a1aa2124c7712",
            },
            "build": {"type": "cargo-pgrx", "features": ["pg18"]},
            "aptPackages": ["clang", "llvm"],
        },
        {
            "name": "pgbadger",
            "kind": "tool",
            "build": {"type": "make"},
            "aptPackages": ["perl", "clang"],
        },
    )


@pytest.fixture
def repo_root(tmp_path: Path, small_manifest: Manifest) -> Path:
    """A minimal aza-pg checkout with the real templates and a small manifest."""
    for relative in (DOCKERFILE_TEMPLATE_PATH, ENTRYPOINT_TEMPLATE_PATH, EXTENSIONS_DOC_PATH):
        (tmp_path / relative).parent.mkdir(parents=True, exist_ok=True)
        shutil.copy(REPO_ROOT / relative, tmp_path / relative)

    (tmp_path / MANIFEST_PATH).write_text(json.dumps(small_manifest.to_dict()))
    return tmp_path


@pytest.fixture
def config(repo_root: Path) -> GeneratorConfig:
    return GeneratorConfig(root=repo_root)
