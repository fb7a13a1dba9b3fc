from __future__ import annotations
from typing import Iterable, List

from .types import OptionId


def _canonical(ids: Iterable[OptionId]) -> List[str]:
    # str keys let int ids from storage compare equal to ids echoed back as strings
    return sorted(str(i) for i in ids)


def has_changes(
    original: Iterable[OptionId],
    updated: Iterable[OptionId],
    original_name: str,
    updated_name: str,
) -> bool:
    """False only when both the selected ids (order ignored) and the name match."""

    if original_name != updated_name:
        return True
    return _canonical(original) != _canonical(updated)


__all__ = ["has_changes"]
