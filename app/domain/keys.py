"""
Composite practice-name keys for aspect rows.

Aspect ratings share the ``ratings`` table with practice rollups. An aspect row
stores ``"<prefix>:<aspect name>"`` in ``practice_name`` while the rollup keeps
the bare practice name. Everything that builds or parses those strings goes
through this module so a later ``aspect_name`` column only has to change here.
"""

from __future__ import annotations

SEPARATOR = ":"
LIKE_ESCAPE = "\\"


def aspect_practice_name(prefix: str, aspect_name: str) -> str:
    """Build the stored practice name for an aspect row."""
    if not prefix or SEPARATOR in prefix:
        raise ValueError(f"Invalid aspect prefix: {prefix!r}")
    if not aspect_name or SEPARATOR in aspect_name:
        raise ValueError(f"Invalid aspect name: {aspect_name!r}")
    return f"{prefix}{SEPARATOR}{aspect_name}"


def split_practice_name(practice_name: str) -> tuple[str, str | None]:
    """
    Split a stored practice name into ``(prefix, aspect)``.

    Rollup rows have no separator and return ``(practice_name, None)``.
    """
    prefix, sep, aspect = practice_name.partition(SEPARATOR)
    if not sep:
        return practice_name, None
    return prefix, aspect


def strip_prefix(practice_name: str, prefix: str) -> str | None:
    """Return the aspect name if ``practice_name`` belongs to ``prefix``."""
    head = f"{prefix}{SEPARATOR}"
    if not practice_name.startswith(head):
        return None
    return practice_name[len(head) :] or None


def like_pattern(prefix: str) -> str:
    """LIKE pattern matching every aspect row under ``prefix``."""
    escaped = (
        prefix.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", f"{LIKE_ESCAPE}%")
        .replace("_", f"{LIKE_ESCAPE}_")
    )
    return f"{escaped}{SEPARATOR}%"
