"""
Weighted Maps

Counting containers used throughout the language models: a flat map from
keys to accumulated weights, and a two-level map holding one weighted map per
conditioning context.
"""

import logging
from typing import Dict, Hashable, Iterator, List, Optional, Tuple

logger = logging.getLogger(__name__)


class WeightedMap:
    """
    A map from keys to real-valued weights.

    Keys that were never stored weigh 0. Storing a weight of 0 still makes
    the key a member of the map, which is how explicit zero counts are told
    apart from absent ones.
    """

    def __init__(self, entries: Optional[Dict[Hashable, float]] = None):
        self._entries: Dict[Hashable, float] = {}
        self._cached_total = 0.0
        self._dirty = False
        if entries:
            for key, weight in entries.items():
                self._store(key, weight)

    def _store(self, key: Hashable, weight: float) -> None:
        self._entries[key] = weight
        self._dirty = True

    def get(self, key: Hashable) -> float:
        return self._entries.get(key, 0.0)

    def set(self, key: Hashable, weight: float) -> None:
        self._store(key, float(weight))

    def increment(self, key: Hashable, delta: float = 1.0) -> None:
        self._store(key, self.get(key) + delta)

    def remove(self, key: Hashable) -> float:
        """Drop a key, returning its weight (0 if it was absent)."""
        if key not in self._entries:
            return 0.0
        self._dirty = True
        return self._entries.pop(key)

    def total(self) -> float:
        """Sum of all weights, recomputed only after a mutation."""
        if self._dirty:
            self._cached_total = sum(self._entries.values())
            self._dirty = False
        return self._cached_total

    def normalize(self) -> None:
        """
        Divide every weight by the total, in place.

        An empty map, or one whose weights sum to zero, is left unchanged.
        """
        total = self.total()
        if total == 0:
            logger.debug("normalize() skipped on a map with zero total")
            return
        for key in list(self._entries):
            self._store(key, self._entries[key] / total)

    def scale(self, factor: float) -> None:
        for key in list(self._entries):
            self._store(key, self._entries[key] * factor)

    def arg_max(self) -> Optional[Hashable]:
        """Key with the largest weight; the first one seen wins ties."""
        best_key = None
        best_weight = float('-inf')
        for key, weight in self._entries.items():
            if best_key is None or weight > best_weight:
                best_key = key
                best_weight = weight
        return best_key

    def most_common(self, n: Optional[int] = None) -> List[Tuple[Hashable, float]]:
        ranked = sorted(self._entries.items(), key=lambda x: x[1], reverse=True)
        return ranked if n is None else ranked[:n]

    def keys(self):
        return self._entries.keys()

    def items(self):
        return self._entries.items()

    def is_empty(self) -> bool:
        return not self._entries

    def copy(self) -> 'WeightedMap':
        return WeightedMap(dict(self._entries))

    def as_dict(self) -> Dict[Hashable, float]:
        return dict(self._entries)

    def __contains__(self, key: Hashable) -> bool:
        return key in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._entries)

    def __repr__(self) -> str:
        shown = ", ".join(f"{k!r}: {v:.4g}" for k, v in self.most_common(10))
        more = ", ..." if len(self) > 10 else ""
        return f"WeightedMap({{{shown}{more}}})"


class NestedWeightedMap:
    """
    Two-level weighted map: outer key -> WeightedMap over inner keys.

    Used for conditional counts such as previous word -> next word. Reads
    never allocate; ``ensure`` is the only operation that installs a new
    sub-map.
    """

    def __init__(self):
        self._maps: Dict[Hashable, WeightedMap] = {}

    def get(self, outer: Hashable, inner: Hashable) -> float:
        submap = self._maps.get(outer)
        if submap is None:
            return 0.0
        return submap.get(inner)

    def peek(self, outer: Hashable) -> Optional[WeightedMap]:
        """Return the sub-map for ``outer`` if it exists, else None."""
        return self._maps.get(outer)

    def ensure(self, outer: Hashable) -> WeightedMap:
        """Return the live sub-map for ``outer``, creating it if needed."""
        submap = self._maps.get(outer)
        if submap is None:
            submap = WeightedMap()
            self._maps[outer] = submap
        return submap

    def set(self, outer: Hashable, inner: Hashable, weight: float) -> None:
        self.ensure(outer).set(inner, weight)

    def increment(self, outer: Hashable, inner: Hashable, delta: float = 1.0) -> None:
        self.ensure(outer).increment(inner, delta)

    def total(self) -> float:
        # Sub-maps cache their own totals.
        return sum(submap.total() for submap in self._maps.values())

    def total_entry_count(self) -> int:
        """Number of (outer, inner) pairs, regardless of their weights."""
        return sum(len(submap) for submap in self._maps.values())

    def keys(self):
        return self._maps.keys()

    def items(self):
        return self._maps.items()

    def entries(self) -> Iterator[Tuple[Hashable, Hashable, float]]:
        for outer, submap in self._maps.items():
            for inner, weight in submap.items():
                yield outer, inner, weight

    def copy(self) -> 'NestedWeightedMap':
        duplicate = NestedWeightedMap()
        for outer, submap in self._maps.items():
            duplicate._maps[outer] = submap.copy()
        return duplicate

    def as_dict(self) -> Dict[Hashable, Dict[Hashable, float]]:
        return {outer: submap.as_dict() for outer, submap in self._maps.items()}

    @classmethod
    def from_dict(cls, entries: Dict[Hashable, Dict[Hashable, float]]) -> 'NestedWeightedMap':
        nested = cls()
        for outer, inner in entries.items():
            nested._maps[outer] = WeightedMap(inner)
        return nested

    def __contains__(self, outer: Hashable) -> bool:
        return outer in self._maps

    def __len__(self) -> int:
        return len(self._maps)

    def __iter__(self) -> Iterator[Hashable]:
        return iter(self._maps)

    def __repr__(self) -> str:
        return f"NestedWeightedMap({len(self)} contexts, {self.total_entry_count()} entries)"
