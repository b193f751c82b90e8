from __future__ import annotations

from collections import defaultdict
from dataclasses import dataclass, field
from typing import Dict, Iterable, List, Sequence, Set

from .normalization import NormalizedView, split_email
from .similarity import phonetic_code


def email_index_keys(view: NormalizedView) -> List[str]:
    keys: List[str] = []
    for email in sorted(view.emails):
        local, domain = split_email(email)
        if not domain:
            continue
        if local:
            keys.append(local)
        keys.append(f"@{domain}")
    return keys


def name_phonetic_key(view: NormalizedView) -> str:
    if not view.has_full_name:
        return ""
    first = phonetic_code(view.first_name)
    last = phonetic_code(view.last_name)
    if not first or not last:
        return ""
    return f"{first}{last}"


@dataclass
class CandidateIndex:
    """Inverted indexes from blocking keys to record positions for one pass."""

    phone_suffixes: Dict[str, List[int]] = field(default_factory=lambda: defaultdict(list))
    emails: Dict[str, List[int]] = field(default_factory=lambda: defaultdict(list))
    name_prefixes: Dict[str, List[int]] = field(default_factory=lambda: defaultdict(list))
    name_phonetics: Dict[str, List[int]] = field(default_factory=lambda: defaultdict(list))

    @classmethod
    def build(cls, views: Sequence[NormalizedView]) -> "CandidateIndex":
        index = cls()
        for position, view in enumerate(views):
            index.add(position, view)
        return index

    def add(self, position: int, view: NormalizedView) -> None:
        for suffix in view.phone_suffixes:
            self.phone_suffixes[suffix].append(position)
        for key in email_index_keys(view):
            self.emails[key].append(position)
        if view.name_key:
            self.name_prefixes[view.name_key].append(position)
        phonetic = name_phonetic_key(view)
        if phonetic:
            self.name_phonetics[phonetic].append(position)

    def _collect(self, hits: Set[int], index: Dict[str, List[int]], keys: Iterable[str]) -> None:
        for key in keys:
            if key in index:
                hits.update(index[key])

    def candidates(self, position: int, view: NormalizedView) -> List[int]:
        # "@domain" keys are indexed but not queried; a shared provider is not a signal
        hits: Set[int] = set()
        self._collect(hits, self.phone_suffixes, view.phone_suffixes)
        self._collect(hits, self.emails, view.email_local_parts)
        if view.name_key:
            self._collect(hits, self.name_prefixes, [view.name_key])
        phonetic = name_phonetic_key(view)
        if phonetic:
            self._collect(hits, self.name_phonetics, [phonetic])
        hits.discard(position)
        return sorted(hits)


__all__ = ["CandidateIndex", "email_index_keys", "name_phonetic_key"]
