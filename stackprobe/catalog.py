"""Declarative indicator catalog: evidence rules, weights and categories."""

from __future__ import annotations

import enum
import functools
import math
import re
from dataclasses import dataclass, field
from importlib import resources
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Iterator, List, Mapping, Optional, Tuple, Union

import yaml

from .errors import CatalogError

UNKNOWN = "unknown"


class Category(str, enum.Enum):
    """Fixed set of categories a scan reports on."""

    BACKEND_FRAMEWORK = "backend-framework"
    FRONTEND_FRAMEWORK = "frontend-framework"
    BUILD_TOOL = "build-tool"
    DATABASE = "database"
    ARCHITECTURE_PATTERN = "architecture-pattern"
    API_STYLE = "api-style"


@dataclass(frozen=True)
class PathExists:
    path: str

    def describe(self) -> str:
        return f"path {self.path}"


@dataclass(frozen=True)
class ContentMatches:
    path: str
    pattern: str

    def __post_init__(self) -> None:
        try:
            re.compile(self.pattern)
        except re.error as exc:
            raise CatalogError(f"Invalid pattern {self.pattern!r} for {self.path}: {exc}") from exc

    def describe(self) -> str:
        return f"{self.path} matches /{self.pattern}/"


@dataclass(frozen=True)
class DependencyPresent:
    name: str

    def describe(self) -> str:
        return f"dependency {self.name}"


@dataclass(frozen=True)
class SettingEquals:
    """A key=value settings file declares ``key`` with ``value`` (case-insensitive)."""

    path: str
    key: str
    value: str

    def describe(self) -> str:
        return f"{self.path} sets {self.key}={self.value}"


@dataclass(frozen=True)
class SeparatedSubtrees:
    """At least ``minimum`` top-level subdirectories carry their own manifest."""

    minimum: int = 2

    def describe(self) -> str:
        return f"{self.minimum}+ subtrees with their own manifest"


Rule = Union[PathExists, ContentMatches, DependencyPresent, SettingEquals, SeparatedSubtrees]


@dataclass(frozen=True)
class Indicator:
    """Links one evidence rule to a technology within a category."""

    category: Category
    technology: str
    rule: Rule
    weight: float

    def __post_init__(self) -> None:
        if not math.isfinite(self.weight) or self.weight < 0:
            raise CatalogError(
                f"Indicator for {self.technology} ({self.category.value}) needs a finite, non-negative weight"
            )
        if not self.technology:
            raise CatalogError("Indicator technology must not be empty")

    def describe(self) -> str:
        return f"{self.technology}: {self.rule.describe()} (+{self.weight:g})"


@dataclass(frozen=True)
class Layer:
    """An expected part of a technology's project layout.

    The layer is present when any of ``paths`` exists below the root. A
    present layer with a ``pattern`` reports that architectural pattern.
    """

    name: str
    paths: Tuple[str, ...]
    pattern: Optional[str] = None

    def __post_init__(self) -> None:
        object.__setattr__(self, "paths", tuple(self.paths))
        if not self.name or not self.paths:
            raise CatalogError("Layer needs a name and at least one path")


@dataclass(frozen=True)
class IndicatorCatalog:
    """Ordered, immutable collection of indicators.

    Declaration order is only used to break ties between technologies with
    equal accumulated weight. ``fallbacks`` optionally names the label a
    category reports when a project was recognized but none of that
    category's indicators matched. ``layers`` lists, per technology, the
    layout a complete project of that technology is expected to have.
    """

    indicators: Tuple[Indicator, ...] = ()
    fallbacks: Mapping[Category, str] = field(default_factory=dict)
    layers: Mapping[str, Tuple[Layer, ...]] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "indicators", tuple(self.indicators))
        object.__setattr__(self, "fallbacks", MappingProxyType(dict(self.fallbacks)))
        object.__setattr__(
            self,
            "layers",
            MappingProxyType({technology: tuple(items) for technology, items in self.layers.items()}),
        )

    def __iter__(self) -> Iterator[Indicator]:
        return iter(self.indicators)

    def __len__(self) -> int:
        return len(self.indicators)

    def for_category(self, category: Category) -> List[Indicator]:
        return [indicator for indicator in self.indicators if indicator.category == category]

    def total_weight(self, category: Category) -> float:
        return sum(indicator.weight for indicator in self.for_category(category))

    def technologies(self, category: Category) -> List[str]:
        """Technologies of ``category`` in first-declared order.

        Only rows with a positive weight establish the order, so zero-weight
        rows cannot influence tie-breaks; technologies declared exclusively
        with zero weight come last.
        """
        indicators = self.for_category(category)
        seen: Dict[str, None] = {}
        for indicator in indicators:
            if indicator.weight > 0:
                seen.setdefault(indicator.technology, None)
        for indicator in indicators:
            seen.setdefault(indicator.technology, None)
        return list(seen)

    def fallback(self, category: Category) -> Optional[str]:
        return self.fallbacks.get(category)

    def layers_for(self, technology: str) -> Tuple[Layer, ...]:
        return self.layers.get(technology, ())

    def extended(self, other: "IndicatorCatalog") -> "IndicatorCatalog":
        """Return a new catalog with ``other``'s rows appended.

        Fallbacks and layer lists declared by ``other`` replace this
        catalog's entries for the same category or technology.
        """
        fallbacks = dict(self.fallbacks)
        fallbacks.update(other.fallbacks)
        layers = dict(self.layers)
        layers.update(other.layers)
        return IndicatorCatalog(self.indicators + other.indicators, fallbacks, layers)


def load_catalog(path: Path) -> IndicatorCatalog:
    """Load a catalog from a YAML file."""
    try:
        text = Path(path).read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise CatalogError(f"Failed to read catalog {path}: {exc}") from exc
    return parse_catalog(text, source=str(path))


def parse_catalog(text: str, source: str = "<catalog>") -> IndicatorCatalog:
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise CatalogError(f"Failed to parse catalog {source}: {exc}") from exc
    if data is None:
        return IndicatorCatalog()
    if not isinstance(data, dict):
        raise CatalogError(f"Catalog {source} must contain a mapping at the root")

    rows = data.get("indicators") or []
    if not isinstance(rows, list):
        raise CatalogError(f"Catalog {source}: 'indicators' must be a list")
    indicators = [_build_indicator(row, index, source) for index, row in enumerate(rows)]

    fallbacks_data = data.get("fallbacks") or {}
    if not isinstance(fallbacks_data, dict):
        raise CatalogError(f"Catalog {source}: 'fallbacks' must be a mapping")
    fallbacks = {
        _parse_category(key, source): str(label) for key, label in fallbacks_data.items()
    }

    layers_data = data.get("layers") or {}
    if not isinstance(layers_data, dict):
        raise CatalogError(f"Catalog {source}: 'layers' must be a mapping of technology to layers")
    layers = {
        str(technology): _build_layers(items, f"Catalog {source}, layers of {technology}")
        for technology, items in layers_data.items()
    }
    return IndicatorCatalog(tuple(indicators), fallbacks, layers)


@functools.lru_cache(maxsize=1)
def default_catalog() -> IndicatorCatalog:
    """Return the packaged catalog, loaded once per process."""
    text = resources.files("stackprobe").joinpath("data/indicators.yml").read_text(encoding="utf-8")
    return parse_catalog(text, source="stackprobe/data/indicators.yml")


def _build_indicator(row: Any, index: int, source: str) -> Indicator:
    where = f"Catalog {source}, indicator #{index}"
    if not isinstance(row, dict):
        raise CatalogError(f"{where} must be a mapping")
    for key in ("category", "technology"):
        if not row.get(key):
            raise CatalogError(f"{where} is missing '{key}'")

    weight = row.get("weight", 1)
    if isinstance(weight, bool) or not isinstance(weight, (int, float)):
        raise CatalogError(f"{where} has a non-numeric weight")

    return Indicator(
        category=_parse_category(row["category"], source),
        technology=str(row["technology"]),
        rule=_build_rule(row, where),
        weight=float(weight),
    )


def _build_layers(items: Any, where: str) -> Tuple[Layer, ...]:
    if not isinstance(items, list):
        raise CatalogError(f"{where} must be a list")
    layers: List[Layer] = []
    for item in items:
        if not isinstance(item, dict) or not item.get("name") or "path" not in item:
            raise CatalogError(f"{where}: every layer needs a name and a path")
        paths = item["path"]
        if isinstance(paths, str):
            paths = [paths]
        if not isinstance(paths, list) or not all(isinstance(path, str) for path in paths):
            raise CatalogError(f"{where}: 'path' of {item['name']} must be a string or a list of strings")
        pattern = item.get("pattern")
        layers.append(Layer(str(item["name"]), tuple(paths), str(pattern) if pattern else None))
    return tuple(layers)


_RULE_KEYS = ("dependency", "setting", "separated", "path")


def _build_rule(row: Mapping[str, Any], where: str) -> Rule:
    declared = [key for key in _RULE_KEYS if key in row]
    if len(declared) > 1:
        raise CatalogError(f"{where} declares more than one evidence rule: {', '.join(declared)}")
    if "pattern" in row and "path" not in row:
        raise CatalogError(f"{where}: 'pattern' needs a 'path' to match against")
    if "dependency" in row:
        return DependencyPresent(str(row["dependency"]))
    if "setting" in row:
        setting = row["setting"]
        if not isinstance(setting, dict) or not {"path", "key", "value"} <= setting.keys():
            raise CatalogError(f"{where}: 'setting' needs path, key and value")
        return SettingEquals(str(setting["path"]), str(setting["key"]), str(setting["value"]))
    if "separated" in row:
        minimum = row["separated"]
        if isinstance(minimum, bool) or not isinstance(minimum, int) or minimum < 1:
            raise CatalogError(f"{where}: 'separated' must be a positive integer")
        return SeparatedSubtrees(minimum)
    if "path" in row and "pattern" in row:
        return ContentMatches(str(row["path"]), str(row["pattern"]))
    if "path" in row:
        return PathExists(str(row["path"]))
    raise CatalogError(f"{where} declares no evidence rule")


def _parse_category(value: Any, source: str) -> Category:
    try:
        return Category(str(value))
    except ValueError as exc:
        raise CatalogError(f"Catalog {source}: unknown category {value!r}") from exc


__all__ = [
    "Category",
    "ContentMatches",
    "DependencyPresent",
    "Indicator",
    "IndicatorCatalog",
    "Layer",
    "PathExists",
    "Rule",
    "SeparatedSubtrees",
    "SettingEquals",
    "UNKNOWN",
    "default_catalog",
    "load_catalog",
    "parse_catalog",
]
