from __future__ import annotations

import logging
import warnings
from typing import Callable, Optional

from .catalog import CriteriaCatalog
from .errors import StaleReferenceWarning
from .responses import ResponseSet
from .types import CriterionId, OptionId

log = logging.getLogger(__name__)

StaleHook = Callable[[OptionId, Optional[CriterionId]], None]


def score(responses: ResponseSet, catalog: CriteriaCatalog, on_stale: Optional[StaleHook] = None) -> int:
    """
    Sum the points of every selected option.

    Single entries contribute one id, multiple entries all of theirs. Ids that
    are no longer in ``catalog`` are skipped: the skip is logged, raised as a
    StaleReferenceWarning and passed to ``on_stale`` when given.
    """
    total = 0
    for cid, entry in responses.items():
        for oid in entry.option_ids():
            pts = catalog.points_of(oid)
            if pts is None:
                log.warning("stale option id %r in criterion %r skipped during scoring", oid, cid)
                warnings.warn(StaleReferenceWarning(oid, cid), stacklevel=2)
                if on_stale is not None:
                    on_stale(oid, cid)
                continue
            total += pts
    return total


__all__ = ["score"]
