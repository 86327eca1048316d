from dataclasses import fields
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from cryptotracker.models import Statistics


def is_valid(stats: "Statistics | None") -> bool:
    """Decides whether a statistics record may be displayed or indexed.

    A record is valid only if all six of its fields are non-empty strings.
    Absent records are never valid.

    Args:
        stats: The record to check, or None.

    Returns:
        True if the record is complete.
    """
    if stats is None:
        return False
    return all(
        isinstance(value, str) and value != ""
        for value in (getattr(stats, f.name) for f in fields(stats))
    )
