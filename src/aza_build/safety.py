"""Guard for strings that end up on a generated shell command line."""

import re

from aza_build.errors import UnsafeCharactersError

#: characters allowed in package names and versions, matched against the whole token
SAFE_TOKEN_RE = re.compile(r"[A-Za-z0-9\-_=.+:]+")

_UNSAFE_CHAR_RE = re.compile(r"[^A-Za-z0-9\-_=.+:]")

#: shared library names as they appear in ``shared_preload_libraries``
LIBRARY_NAME_RE = re.compile(r"[A-Za-z0-9_]+")

_UNSAFE_LIBRARY_CHAR_RE = re.compile(r"[^A-Za-z0-9_]")


def _validate(
    token: str, context: str, allowed: re.Pattern, forbidden: re.Pattern
) -> str:
    if not isinstance(token, str) or not allowed.fullmatch(token):
        raise UnsafeCharactersError(
            str(token),
            context,
            forbidden.findall(token) if isinstance(token, str) else [],
        )
    return token


def validate_shell_token(token: str, context: str) -> str:
    """Return ``token`` unchanged if it only consists of allowed characters.

    The token is never sanitized: anything outside of the allow list raises
    :py:class:`~aza_build.errors.UnsafeCharactersError`, which aborts the
    whole generation run.

    """
    return _validate(token, context, SAFE_TOKEN_RE, _UNSAFE_CHAR_RE)


def validate_library_name(name: str, context: str) -> str:
    """Like :py:func:`validate_shell_token`, for the names of shared libraries
    (letters, digits and ``_`` only).

    """
    return _validate(name, context, LIBRARY_NAME_RE, _UNSAFE_LIBRARY_CHAR_RE)


def is_safe_shell_token(token: str) -> bool:
    return isinstance(token, str) and bool(SAFE_TOKEN_RE.fullmatch(token))
