"""Exceptions raised while generating the build artifacts.

Every error that aborts a generation run derives from
:py:class:`GenerationError`, so that the command line entry point can report
it and exit with a non-zero status. Drift between checked-in and regenerated
artifacts is not an error, see :py:class:`~aza_build.generator.DriftReport`.

"""

from pathlib import Path
from typing import TYPE_CHECKING
from typing import Iterable

if TYPE_CHECKING:
    from aza_build.integrity import IntegrityIssue


class GenerationError(Exception):
    """Base class of all fatal generation errors."""


class ManifestNotFoundError(GenerationError, FileNotFoundError):
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(f"Extensions manifest not found: {self.path}")


class TemplateNotFoundError(GenerationError, FileNotFoundError):
    def __init__(self, path: str | Path) -> None:
        self.path = Path(path)
        super().__init__(f"Template not found: {self.path}")


class ManifestParseError(GenerationError, ValueError):
    """The manifest is not valid JSON or does not have the expected shape."""


class DefaultsError(GenerationError, ValueError):
    """The extension defaults are malformed or lack a required value."""


class UnsafeCharactersError(GenerationError, ValueError):
    """A string destined for a shell command contains forbidden characters."""

    def __init__(self, token: str, context: str, offending: Iterable[str]) -> None:
        self.token = token
        self.context = context
        self.offending = sorted(set(offending))
        chars = " ".join(repr(c) for c in self.offending) or "<empty>"
        super().__init__(
            f"Unsafe characters in {context}: {token!r} (offending: {chars})"
        )


class UnresolvedPlaceholderError(GenerationError, ValueError):
    def __init__(self, names: Iterable[str], source: str = "template") -> None:
        self.names = sorted(set(names))
        self.source = source
        super().__init__(
            f"Unresolved placeholders in {source}: "
            + ", ".join("{{" + n + "}}" for n in self.names)
        )


class MappingIntegrityError(GenerationError):
    """The manifest and the static PGDG mapping table disagree."""

    def __init__(self, issues: list["IntegrityIssue"]) -> None:
        self.issues = issues
        super().__init__(
            f"{len(issues)} manifest integrity issue(s): "
            + "; ".join(str(i) for i in issues)
        )
