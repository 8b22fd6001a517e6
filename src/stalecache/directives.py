"""Cache-Control header interpretation and the cacheability rule.

:func:`parse_cache_control` turns a raw ``Cache-Control`` value into a
``dict`` of directive names to values, and :func:`is_cachable` decides
whether a response carrying those directives may be stored for a given
policy directive (``max-age`` for the body cache, ``stale-if-error`` for
the fallback cache).

Parsing fails closed: a recognised numeric directive with a malformed
value is dropped rather than guessed at, so a response with
``max-age=soon`` is simply not stored.
"""

from __future__ import annotations

import re
from typing import Any, Mapping, Optional

MAX_AGE = "max-age"
STALE_IF_ERROR = "stale-if-error"
STALE_WHILE_REVALIDATE = "stale-while-revalidate"
NO_STORE = "no-store"
PRIVATE = "private"

CACHE_CONTROL = "cache-control"

NUMERIC_DIRECTIVES = frozenset({MAX_AGE, STALE_IF_ERROR, STALE_WHILE_REVALIDATE})
FLAG_DIRECTIVES = frozenset({NO_STORE, PRIVATE})

# comma-separated parts, commas inside quoted strings do not split
_PART_RE = re.compile(r'(?:[^,"]|"(?:[^"\\]|\\.)*")+')
# token ( "=" ( token / quoted-string ) )?, RFC 9111 section 5.2
_DIRECTIVE_RE = re.compile(
    r"""\s*([!#$%&'*+.^_`|~0-9A-Za-z-]+)"""
    r"""(?:\s*=\s*(?:"((?:[^"\\]|\\.)*)"|([^\s"]*)))?\s*"""
)
_SECONDS_RE = re.compile(r"[0-9]+")


def parse_cache_control(header: Optional[str]) -> dict[str, Any]:
    """Parse a ``Cache-Control`` header value into a directive mapping.

    Args:
        header: The raw header value, or ``None`` when absent.

    Returns:
        Lower-cased directive names mapped to their values. Numeric
        directives become ``int`` seconds, ``no-store`` and ``private``
        become ``True``, other valueless directives ``True`` and valued
        ones their unquoted string. Always a ``dict``, empty for a missing
        or blank header.
    """
    directives: dict[str, Any] = {}
    if not header:
        return directives

    for part in _PART_RE.findall(header):
        match = _DIRECTIVE_RE.fullmatch(part)
        if match is None:
            continue
        name = match.group(1).lower()
        if name in directives:
            continue
        quoted, token = match.group(2), match.group(3)
        value = re.sub(r"\\(.)", r"\1", quoted) if quoted is not None else token

        if name in NUMERIC_DIRECTIVES:
            if value is None or not _SECONDS_RE.fullmatch(value):
                continue
            directives[name] = int(value)
        elif name in FLAG_DIRECTIVES or not value:
            directives[name] = True
        else:
            directives[name] = value

    return directives


def is_cachable(
    directives: Mapping[str, Any],
    directive: str,
    default_ttl: Optional[int] = None,
) -> bool:
    """Decide whether a response may be stored under *directive*.

    A response is cachable when it has at least one directive, is neither
    ``no-store`` nor ``private``, and either carries a positive value for
    *directive* or a positive *default_ttl* is configured. ``max-age=0``
    is present but not positive, so on its own it is never cachable.

    Args:
        directives: Output of :func:`parse_cache_control`.
        directive: The policy directive, e.g. :data:`MAX_AGE`.
        default_ttl: Fallback TTL in seconds.

    Returns:
        ``True`` if the response may be stored.
    """
    if not directives:
        return False
    if directives.get(NO_STORE) or directives.get(PRIVATE):
        return False
    return bool(directives.get(directive) or default_ttl)
