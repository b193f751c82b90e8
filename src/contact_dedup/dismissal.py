from __future__ import annotations

import logging
import os
from itertools import combinations
from typing import Iterable, List, Optional, Set

import yaml  # type: ignore[import-untyped]

from .models import DuplicateGroup

logger = logging.getLogger(__name__)

PAIR_SEPARATOR = "|"


def pair_key(left: str, right: str) -> str:
    first, second = sorted((left, right))
    return f"{first}{PAIR_SEPARATOR}{second}"


def group_pair_keys(group: DuplicateGroup) -> List[str]:
    """Pair keys over the external identities of a group's members."""
    keys = sorted({record.external_key for record in group.records if record.external_key})
    return [pair_key(left, right) for left, right in combinations(keys, 2)]


class DismissalRegistry:
    """Remembers groups the user marked as "not duplicates".

    Identity is the external key of each record, never the in-memory record
    id, so dismissals survive a reload of the sources.
    """

    def __init__(self, pairs: Optional[Iterable[str]] = None):
        self._pairs: Set[str] = set(pairs or [])

    def __len__(self) -> int:
        return len(self._pairs)

    @property
    def pairs(self) -> List[str]:
        return sorted(self._pairs)

    def dismiss(self, group: DuplicateGroup) -> bool:
        keys = group_pair_keys(group)
        if not keys:
            logger.warning(
                "Cannot dismiss group %s: fewer than two records carry an external id",
                ", ".join(group.record_ids),
            )
            return False
        self._pairs.update(keys)
        return True

    def is_dismissed(self, group: DuplicateGroup) -> bool:
        keys = group_pair_keys(group)
        return any(key in self._pairs for key in keys)

    def filter(self, groups: Iterable[DuplicateGroup]) -> List[DuplicateGroup]:
        return [group for group in groups if not self.is_dismissed(group)]

    def clear(self) -> None:
        self._pairs.clear()

    @classmethod
    def load(cls, path: Optional[str]) -> "DismissalRegistry":
        if not path or not os.path.exists(path):
            return cls()
        with open(path, "r", encoding="utf-8") as handle:
            data = yaml.safe_load(handle) or []
        if not isinstance(data, list):
            raise ValueError(f"dismissed groups file must hold a list of pairs: {path}")
        return cls(str(item) for item in data if item)

    def save(self, path: str) -> None:
        with open(path, "w", encoding="utf-8") as handle:
            yaml.safe_dump(self.pairs, handle, default_flow_style=False)


__all__ = ["DismissalRegistry", "group_pair_keys", "pair_key"]
