from __future__ import annotations

import logging
import warnings
from typing import Dict, Iterable, Iterator, List, Optional, Tuple

from .catalog import CriteriaCatalog, SelectionModeRegistry
from .errors import StaleReferenceWarning
from .types import CriterionId, Multiple, OptionId, ResponseEntry, Single

log = logging.getLogger(__name__)


class ResponseSet:
    """Answers for one assessment, keyed by criterion id.

    A criterion is answered iff it has an entry. Deselecting the last option of
    a multiple-select criterion removes the entry instead of leaving an empty
    selection behind.
    """

    def __init__(self, entries: Optional[Dict[CriterionId, ResponseEntry]] = None):
        self._entries: Dict[CriterionId, ResponseEntry] = {}
        for cid, entry in (entries or {}).items():
            if entry.option_ids():
                self._entries[cid] = entry

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, criterion_id: object) -> bool:
        return criterion_id in self._entries

    def __iter__(self) -> Iterator[CriterionId]:
        return iter(self._entries)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ResponseSet):
            return NotImplemented
        return self._entries == other._entries

    def __repr__(self) -> str:
        return f"ResponseSet({self._entries!r})"

    def items(self) -> Iterable[Tuple[CriterionId, ResponseEntry]]:
        return self._entries.items()

    def get(self, criterion_id: CriterionId) -> Optional[ResponseEntry]:
        return self._entries.get(criterion_id)

    def is_answered(self, criterion_id: CriterionId) -> bool:
        return criterion_id in self._entries

    def answered_count(self) -> int:
        return len(self._entries)

    def copy(self) -> "ResponseSet":
        return ResponseSet(dict(self._entries))

    def select(self, criterion_id: CriterionId, option_id: OptionId) -> None:
        self._entries[criterion_id] = Single(option_id)

    def toggle(self, criterion_id: CriterionId, option_id: OptionId) -> bool:
        """Flip membership of ``option_id``; returns True when it ends up selected."""

        current = self._entries.get(criterion_id)
        selected: Tuple[OptionId, ...] = current.option_ids() if isinstance(current, Multiple) else ()
        if option_id in selected:
            remaining = tuple(o for o in selected if o != option_id)
            if remaining:
                self._entries[criterion_id] = Multiple(remaining)
            else:
                self._entries.pop(criterion_id, None)
            return False
        self._entries[criterion_id] = Multiple(selected + (option_id,))
        return True

    def clear(self, criterion_id: CriterionId) -> None:
        self._entries.pop(criterion_id, None)

    def option_ids(self) -> List[OptionId]:
        """Flat list of every selected option id, in criterion insertion order."""

        out: List[OptionId] = []
        for entry in self._entries.values():
            out.extend(entry.option_ids())
        return out

    @classmethod
    def from_option_ids(
        cls,
        option_ids: Iterable[OptionId],
        catalog: CriteriaCatalog,
        modes: SelectionModeRegistry,
    ) -> "ResponseSet":
        """Rebuild per-criterion entries from a stored flat id list.

        Ids unknown to ``catalog`` are skipped with a StaleReferenceWarning.
        For single-select criteria the last stored id wins.
        """

        rs = cls()
        for oid in option_ids:
            cid = catalog.owner_of(oid)
            if cid is None:
                log.warning("stale option id %r dropped while seeding responses", oid)
                warnings.warn(StaleReferenceWarning(oid), stacklevel=2)
                continue
            if modes.is_multiple(cid):
                current = rs._entries.get(cid)
                selected = current.option_ids() if isinstance(current, Multiple) else ()
                if oid not in selected:
                    rs._entries[cid] = Multiple(selected + (oid,))
            else:
                if cid in rs._entries:
                    log.warning("criterion %r is single-select but has several stored options; keeping %r", cid, oid)
                rs._entries[cid] = Single(oid)
        return rs


__all__ = ["ResponseSet"]
