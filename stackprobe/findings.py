"""Immutable scan results and the rules for combining them."""

from __future__ import annotations

import math
from dataclasses import dataclass, field
from types import MappingProxyType
from typing import Dict, Iterable, Iterator, Mapping, Optional, Tuple, TypeVar

from .catalog import UNKNOWN, Category
from .manifests import Dependency, Script

_T = TypeVar("_T")


@dataclass(frozen=True)
class CategoryFinding:
    """Winning technology of one category with its confidence and evidence.

    ``version`` is the constraint declared by the manifest dependency that
    identified the technology, when one did.
    """

    technology: str = UNKNOWN
    confidence: float = 0.0
    evidence: Tuple[str, ...] = ()
    version: Optional[str] = None

    def __post_init__(self) -> None:
        confidence = float(self.confidence)
        if math.isnan(confidence):
            confidence = 0.0
        object.__setattr__(self, "confidence", min(max(confidence, 0.0), 1.0))
        object.__setattr__(self, "evidence", tuple(self.evidence))

    @property
    def is_unknown(self) -> bool:
        return self.technology == UNKNOWN


@dataclass(frozen=True)
class StructureFinding:
    """Expected layers of a detected technology found, or not, below one root."""

    technology: str
    root: str
    present: Tuple[str, ...] = ()
    missing: Tuple[str, ...] = ()
    patterns: Tuple[str, ...] = ()

    def __post_init__(self) -> None:
        for name in ("present", "missing", "patterns"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @property
    def completeness(self) -> float:
        expected = len(self.present) + len(self.missing)
        return len(self.present) / expected if expected else 0.0


@dataclass(frozen=True)
class Findings:
    """Categorized result of scanning one or more project roots.

    Every ``Category`` is always present; categories without evidence hold an
    unknown finding with zero confidence. ``categories`` is a read-only view.
    """

    categories: Mapping[Category, CategoryFinding] = field(default_factory=dict)
    dependencies: Tuple[Dependency, ...] = ()
    key_files: Tuple[str, ...] = ()
    structure: Tuple[StructureFinding, ...] = ()
    scripts: Tuple[Script, ...] = ()

    def __post_init__(self) -> None:
        complete = {category: self.categories.get(category, CategoryFinding()) for category in Category}
        object.__setattr__(self, "categories", MappingProxyType(complete))
        for name in ("dependencies", "key_files", "structure", "scripts"):
            object.__setattr__(self, name, tuple(getattr(self, name)))

    @classmethod
    def empty(cls) -> "Findings":
        return cls()

    def __getitem__(self, category: Category) -> CategoryFinding:
        return self.categories[Category(category)]

    def __iter__(self) -> Iterator[Tuple[Category, CategoryFinding]]:
        return iter(self.categories.items())

    def get(self, category: Category) -> CategoryFinding:
        return self[category]

    def technology(self, category: Category) -> str:
        return self[category].technology

    def confidence(self, category: Category) -> float:
        return self[category].confidence

    def structure_of(self, technology: str) -> Tuple[StructureFinding, ...]:
        return tuple(item for item in self.structure if item.technology == technology)

    def is_empty(self) -> bool:
        """True when no category identified anything."""
        return all(finding.is_unknown for finding in self.categories.values())

    def merge(self, other: "Findings") -> "Findings":
        return merge(self, other)


def merge(primary: Findings, secondary: Findings) -> Findings:
    """Combine findings of two independently scanned roots.

    Per category the side with the higher confidence wins and ``primary``
    wins exact ties. Dependencies, key files, structure reports and scripts
    are concatenated; an entry identical in every field, which can only come
    from the same root, is not repeated.
    """
    categories: Dict[Category, CategoryFinding] = {}
    for category in Category:
        left = primary[category]
        right = secondary[category]
        categories[category] = right if right.confidence > left.confidence else left

    return Findings(
        categories=categories,
        dependencies=_concat_unique(primary.dependencies, secondary.dependencies),
        key_files=_concat_unique(primary.key_files, secondary.key_files),
        structure=_concat_unique(primary.structure, secondary.structure),
        scripts=_concat_unique(primary.scripts, secondary.scripts),
    )


def _concat_unique(first: Iterable[_T], second: Iterable[_T]) -> Tuple[_T, ...]:
    combined = list(first)
    seen = set(combined)
    for item in second:
        if item not in seen:
            combined.append(item)
            seen.add(item)
    return tuple(combined)


__all__ = ["CategoryFinding", "Findings", "StructureFinding", "merge"]
