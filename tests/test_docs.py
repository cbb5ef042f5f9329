import pytest

from aza_build.defaults import ExtensionDefaults
from aza_build.docs import build_packages
from aza_build.docs import render_build_packages
from aza_build.docs import render_extensions_table
from aza_build.docs import update_extensions_doc
from aza_build.errors import GenerationError
from aza_build.errors import UnsafeCharactersError
from aza_build.manifest import Manifest
from aza_build.templates import EXTENSIONS_TABLE_END
from aza_build.templates import EXTENSIONS_TABLE_START

from conftest import manifest_from

_HEADER = "| Extension | Version | Enabled by Default | Shared Preload | Documentation | Notes |"


def test_extensions_table(small_manifest: Manifest, defaults: ExtensionDefaults) -> None:
    table = render_extensions_table(small_manifest, defaults)

    # builtins are not documented, categories are sorted
    assert "pg_stat_statements" not in table
    headings = [line for line in table.splitlines() if line.startswith("### ")]
    assert headings == ["### ai", "### integration", "### operations", "### uncategorized"]
    assert table.count(_HEADER) == 4

    assert (
        "| `pg_cron` | [1.6.7](https://github.com/citusdata/pg_cron/releases/tag/v1.6.7) "
        "| Yes | Yes | [citusdata/pg_cron](https://github.com/citusdata/pg_cron) |  |"
    ) in table
    assert (
        "| `wrappers` | [fc63ad1](https://github.com/supabase/wrappers/commit/fc63ad1fee7fcf94a84b7f5dfc6a1aa2124c7712) "
        "| No | No | [supabase/wrappers](https://github.com/supabase/wrappers) |  |"
    ) in table
    assert "| `pgaudit` | 18.0 | No | No |  | Disabled: no reason provided |" in table


def test_notes_are_escaped(defaults: ExtensionDefaults) -> None:
    manifest = manifest_from(
        {
            "name": "x",
            "kind": "tool",
            "description": "a | b",
            "runtime": {"notes": ["line one\nline two"]},
        }
    )
    assert "| a \\| b line one line two |" in render_extensions_table(manifest, defaults)


def test_update_extensions_doc(small_manifest: Manifest, defaults: ExtensionDefaults) -> None:
    document = f"""# Extensions

Intro.

{EXTENSIONS_TABLE_START}
stale content
{EXTENSIONS_TABLE_END}

Footer.
"""
    updated = update_extensions_doc(document, small_manifest, defaults)

    assert updated.startswith("# Extensions\n\nIntro.\n\n" + EXTENSIONS_TABLE_START + "\n\n### ai")
    assert updated.endswith(EXTENSIONS_TABLE_END + "\n\nFooter.\n")
    assert "stale content" not in updated
    # rendering again is stable
    assert update_extensions_doc(updated, small_manifest, defaults) == updated


def test_missing_document_uses_skeleton(small_manifest: Manifest, defaults: ExtensionDefaults) -> None:
    updated = update_extensions_doc(None, small_manifest, defaults)
    assert updated.startswith("# Extensions\n")
    assert "### operations" in updated


@pytest.mark.parametrize(
    "document",
    [
        "# Extensions\n",
        f"{EXTENSIONS_TABLE_START}\n",
        f"{EXTENSIONS_TABLE_END}\n{EXTENSIONS_TABLE_START}\n",
    ],
)
def test_markers_are_required(document: str, small_manifest: Manifest, defaults: ExtensionDefaults) -> None:
    with pytest.raises(GenerationError, match="markers"):
        update_extensions_doc(document, small_manifest, defaults)


def test_build_packages(small_manifest: Manifest) -> None:
    assert build_packages(small_manifest) == ["clang", "llvm", "perl"]
    assert render_build_packages(small_manifest) == "clang\nllvm\nperl\n"
    assert render_build_packages(Manifest()) == ""


@pytest.mark.parametrize("package", ["clang;reboot", "llvm $(id)", "perl`id`"])
def test_unsafe_build_packages_abort(package: str) -> None:
    manifest = manifest_from(
        {"name": "pgbadger", "kind": "tool", "aptPackages": ["perl", package]}
    )
    with pytest.raises(UnsafeCharactersError, match="apt package of pgbadger"):
        build_packages(manifest)
