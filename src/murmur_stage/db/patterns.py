# src/murmur_stage/db/patterns.py
"""Helpers for building SQL ``LIKE`` patterns from user input."""

LIKE_ESCAPE = "\\"


def contains_pattern(term: str) -> str:
    """Return a ``LIKE`` pattern matching ``term`` literally anywhere.

    Use together with ``escape=LIKE_ESCAPE``.
    """
    escaped = (
        term.replace(LIKE_ESCAPE, LIKE_ESCAPE * 2)
        .replace("%", LIKE_ESCAPE + "%")
        .replace("_", LIKE_ESCAPE + "_")
    )
    return f"%{escaped}%"
