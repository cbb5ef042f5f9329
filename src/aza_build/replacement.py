"""Substitution of ``{{NAME}}`` placeholders in the repository templates.

The Dockerfile and entrypoint templates are not jinja templates: they are
shell-like text containing literal ``{{NAME}}`` tokens that are replaced by
the output of the generators.

"""

import datetime
import re

from aza_build.errors import UnresolvedPlaceholderError
from aza_build.logger import LOGGER

#: a placeholder as it appears in a template
PLACEHOLDER_RE = re.compile(r"\{\{([A-Z0-9_]+)\}\}")

#: anything that still looks like a placeholder after rendering
LEFTOVER_RE = re.compile(r"\{\{\s*([^{}]*?)\s*\}\}")

GENERATED_AT_PREFIX = "# Generated at: "


def placeholders_in(template_text: str) -> set[str]:
    return set(PLACEHOLDER_RE.findall(template_text))


def render_placeholders(
    template_text: str, placeholders: dict[str, str], source: str = "template"
) -> str:
    """Replace every ``{{NAME}}`` in ``template_text`` with
    ``placeholders[NAME]``.

    All tokens are replaced in a single pass, so the result does not depend on
    the order of ``placeholders`` and replacement values are never scanned for
    further tokens.

    Raises:
        UnresolvedPlaceholderError: when the template uses a placeholder
            without a value or when a ``{{...}}`` token remains afterwards

    """
    missing = placeholders_in(template_text) - placeholders.keys()
    if missing:
        raise UnresolvedPlaceholderError(missing, source)

    unused = placeholders.keys() - placeholders_in(template_text)
    for name in sorted(unused):
        LOGGER.warning("Placeholder {{%s}} is not used in %s", name, source)

    rendered = PLACEHOLDER_RE.sub(lambda m: placeholders[m.group(1)], template_text)

    if leftover := LEFTOVER_RE.findall(rendered):
        raise UnresolvedPlaceholderError(leftover, source)
    return rendered


def generation_header(
    generated_at: datetime.datetime,
    generator: str,
    template: str | None = None,
    manifest: str | None = None,
    regenerate: str = "aza-generate generate",
) -> str:
    """Provenance banner put at the top of every generated text artifact."""
    lines = [
        "# AUTO-GENERATED FILE - DO NOT EDIT",
        GENERATED_AT_PREFIX + generated_at.isoformat(),
        f"# Generator: {generator}",
    ]
    if template:
        lines.append(f"# Template: {template}")
    if manifest:
        lines.append(f"# Manifest: {manifest}")
    lines.append(f"# To regenerate: {regenerate}")
    return "\n".join(lines) + "\n"


def prepend_header(text: str, header: str) -> str:
    """Put ``header`` at the top of ``text``, below a shebang line if present."""
    if text.startswith("#!"):
        shebang, _, rest = text.partition("\n")
        return f"{shebang}\n{header}{rest}"
    return header + text
