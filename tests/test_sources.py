from unittest.mock import Mock

import git
import pytest

from aza_build.errors import GenerationError
from aza_build.manifest import Manifest
from aza_build.sources import resolve_sources
from aza_build.sources import resolve_tag_commit

from conftest import GENERATED_AT
from conftest import manifest_from

_TAG_SHA = "1111111111111111111111111111111111111111"
_PEELED_SHA = "2222222222222222222222222222222222222222"


@pytest.mark.parametrize(
    "output,expected",
    [
        # annotated tag: the peeled commit wins regardless of the line order
        (f"{_TAG_SHA}\trefs/tags/v1.6.7\n{_PEELED_SHA}\trefs/tags/v1.6.7^{{}}\n", _PEELED_SHA),
        (f"{_PEELED_SHA}\trefs/tags/v1.6.7^{{}}\n{_TAG_SHA}\trefs/tags/v1.6.7\n", _PEELED_SHA),
        # lightweight tag
        (f"{_TAG_SHA}\trefs/tags/v1.6.7\n", _TAG_SHA),
    ],
)
def test_resolve_tag_commit(output: str, expected: str) -> None:
    git_cmd = Mock()
    git_cmd.ls_remote.return_value = output

    assert resolve_tag_commit("https://github.com/citusdata/pg_cron.git", "v1.6.7", git_cmd) == expected
    git_cmd.ls_remote.assert_called_once_with(
        "https://github.com/citusdata/pg_cron.git",
        "refs/tags/v1.6.7^{}",
        "refs/tags/v1.6.7",
    )


def test_unknown_tag() -> None:
    git_cmd = Mock()
    git_cmd.ls_remote.return_value = ""
    with pytest.raises(GenerationError, match="Tag v9 not found"):
        resolve_tag_commit("https://example.com/repo.git", "v9", git_cmd)


def test_git_failure() -> None:
    git_cmd = Mock()
    git_cmd.ls_remote.side_effect = git.GitCommandError(["git", "ls-remote"], 128)
    with pytest.raises(GenerationError, match="Could not query tag v1"):
        resolve_tag_commit("https://example.com/repo.git", "v1", git_cmd)


def test_resolve_sources(small_manifest: Manifest) -> None:
    git_cmd = Mock()
    git_cmd.ls_remote.return_value = f"{_PEELED_SHA}\trefs/tags/v1.6.7^{{}}\n"

    resolved = resolve_sources(small_manifest, GENERATED_AT, git_cmd)

    assert resolved.generated_at == "2025-11-20T12:00:00+00:00"
    assert resolved.names == sorted(small_manifest.names)
    assert resolved.get("pg_cron").source.commit == _PEELED_SHA
    assert (
        resolved.get("wrappers").source.commit
        == "fc63ad1fee7fcf94a84b7f5dfc6a1aa2124c7712"
    )
    assert resolved.get("pg_stat_statements").source.commit is None
    git_cmd.ls_remote.assert_called_once()

    # the input is left untouched
    assert small_manifest.get("pg_cron").source.commit is None
    assert "commit" not in small_manifest.get("pg_cron").to_dict()["source"]


def test_resolve_sources_without_git_sources() -> None:
    git_cmd = Mock()
    manifest = manifest_from({"name": "plpgsql", "kind": "builtin", "source": {"type": "builtin"}})
    assert resolve_sources(manifest, GENERATED_AT, git_cmd).names == ["plpgsql"]
    git_cmd.ls_remote.assert_not_called()
