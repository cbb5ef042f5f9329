"""Pin the git sources of the manifest to commits."""

import copy
import datetime

import git

from aza_build.errors import GenerationError
from aza_build.logger import LOGGER
from aza_build.manifest import Manifest
from aza_build.manifest import SourceKind


def resolve_tag_commit(repository: str, tag: str, git_cmd: git.cmd.Git) -> str:
    """Return the commit that ``tag`` in ``repository`` points to.

    Annotated tags are reported twice by :command:`git ls-remote`, once as the
    tag object and once peeled (``^{}``) to the commit. The peeled line wins.

    """
    try:
        output: str = git_cmd.ls_remote(
            repository, f"refs/tags/{tag}^{{}}", f"refs/tags/{tag}"
        )
    except git.GitCommandError as exc:
        raise GenerationError(
            f"Could not query tag {tag} of {repository}: {exc}"
        ) from exc

    refs: dict[str, str] = {}
    for line in output.splitlines():
        if not line.strip():
            continue
        sha, _, ref = line.partition("\t")
        refs[ref.strip()] = sha.strip()

    if commit := refs.get(f"refs/tags/{tag}^{{}}") or refs.get(f"refs/tags/{tag}"):
        return commit
    raise GenerationError(f"Tag {tag} not found in {repository}")


def resolve_sources(
    manifest: Manifest,
    generated_at: datetime.datetime,
    git_cmd: git.cmd.Git | None = None,
) -> Manifest:
    """Return a copy of ``manifest`` with the ``commit`` of every git source
    set, sorted by entry name.

    ``git`` sources are resolved on the remote, ``git-ref`` sources already
    are pinned and use their ``ref`` as commit.

    """
    git_cmd = git_cmd or git.cmd.Git()
    entries = []
    for entry in sorted(manifest, key=lambda e: e.name):
        raw = copy.deepcopy(entry.to_dict())
        src = entry.source
        if src is not None and src.type == SourceKind.GIT and src.repository and src.tag:
            LOGGER.info("Resolving %s of %s", src.tag, entry.name)
            raw["source"]["commit"] = resolve_tag_commit(
                src.repository, src.tag, git_cmd
            )
        elif src is not None and src.type == SourceKind.GIT_REF and src.ref:
            raw["source"]["commit"] = src.ref
        entries.append(raw)

    return Manifest.from_dict(
        {"generatedAt": generated_at.isoformat(), "entries": entries}
    )
