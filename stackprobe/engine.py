"""Detection engine: evaluates catalog indicators against a project tree."""

from __future__ import annotations

import re
from dataclasses import dataclass, field, replace
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Sequence

from .catalog import (
    Category,
    ContentMatches,
    DependencyPresent,
    Indicator,
    IndicatorCatalog,
    PathExists,
    SeparatedSubtrees,
    SettingEquals,
    UNKNOWN,
    default_catalog,
    load_catalog,
)
from .config import ProbeConfig, load_config
from .errors import ProbeError, RootNotFound
from .findings import CategoryFinding, Findings, StructureFinding, merge
from .logging import ScanLogger, get_logger
from .manifests import MANIFEST_FILES, Dependency, ManifestParser, ParsedManifest, Script, parse_settings
from .probe import FileSystemProbe

_LOGGER = get_logger("engine")


@dataclass
class ScoreBoard:
    """Accumulated weight per category and technology for one scan."""

    scores: Dict[Category, Dict[str, float]] = field(default_factory=dict)
    evidence: Dict[Category, Dict[str, List[str]]] = field(default_factory=dict)

    def add(self, indicator: Indicator) -> None:
        technologies = self.scores.setdefault(indicator.category, {})
        technologies[indicator.technology] = technologies.get(indicator.technology, 0.0) + indicator.weight
        matched = self.evidence.setdefault(indicator.category, {})
        matched.setdefault(indicator.technology, []).append(indicator.rule.describe())

    def weight(self, category: Category, technology: str) -> float:
        return self.scores.get(category, {}).get(technology, 0.0)

    def merge(self, other: "ScoreBoard") -> "ScoreBoard":
        """Return a new board summing both; the result does not depend on order."""
        combined = ScoreBoard()
        for board in (self, other):
            for category, technologies in board.scores.items():
                target = combined.scores.setdefault(category, {})
                for technology, weight in technologies.items():
                    target[technology] = target.get(technology, 0.0) + weight
            for category, matched in board.evidence.items():
                target_evidence = combined.evidence.setdefault(category, {})
                for technology, items in matched.items():
                    target_evidence.setdefault(technology, []).extend(items)
        for matched in combined.evidence.values():
            for items in matched.values():
                items.sort()
        return combined


@dataclass
class _ScanContext:
    """Per-root evidence sources, read lazily and at most once."""

    probe: FileSystemProbe
    parser: ManifestParser
    max_depth: int
    logger: ScanLogger
    _manifests: Optional[List[ParsedManifest]] = None
    _texts: Dict[str, Optional[str]] = field(default_factory=dict)

    @property
    def manifests(self) -> List[ParsedManifest]:
        if self._manifests is None:
            self._manifests = self.parser.load_manifests(self.probe)
        return self._manifests

    @property
    def dependencies(self) -> List[Dependency]:
        return [dependency for manifest in self.manifests for dependency in manifest.dependencies]

    @property
    def scripts(self) -> List[Script]:
        return [script for manifest in self.manifests for script in manifest.declared_scripts()]

    def text(self, path: str) -> Optional[str]:
        if path not in self._texts:
            try:
                self._texts[path] = self.probe.read_file(path)
            except ProbeError as exc:
                self.logger.debug("Treating %s as absent: %s", path, exc)
                self._texts[path] = None
        return self._texts[path]


class DetectionEngine:
    """Scores a project root against an indicator catalog."""

    def __init__(
        self,
        catalog: IndicatorCatalog | None = None,
        *,
        config: ProbeConfig | None = None,
        parser: ManifestParser | None = None,
    ) -> None:
        self.catalog = catalog if catalog is not None else default_catalog()
        self.config = config
        self.parser = parser or ManifestParser()
        self.logger = _LOGGER

    def scan(self, root_paths: Sequence[str | Path]) -> Findings:
        """Scan each root and merge the results, earlier roots taking precedence."""
        findings: Optional[Findings] = None
        for root in root_paths:
            try:
                result = self.scan_root(root)
            except RootNotFound as exc:
                self.logger.warning("%s; it contributes no evidence", exc)
                result = Findings.empty()
            findings = result if findings is None else merge(findings, result)
        return findings if findings is not None else Findings.empty()

    def scan_root(self, root: str | Path) -> Findings:
        """Scan a single root; raises ``RootNotFound`` when it does not exist."""
        config = self.config or ProbeConfig(root=Path(root))
        probe = FileSystemProbe(
            root,
            max_file_bytes=config.max_file_bytes,
            exclude_dirs=config.exclude_paths,
            key_files=config.key_files,
        )
        if not probe.root_exists():
            raise RootNotFound(str(root))

        self.logger.info("Scanning %s", probe.root)
        scan_logger = ScanLogger(self.logger, probe.root)
        context = _ScanContext(
            probe=probe, parser=self.parser, max_depth=config.max_depth, logger=scan_logger
        )

        board = ScoreBoard()
        for category in Category:
            board = board.merge(self._score_category(category, context))

        categories: Dict[Category, CategoryFinding] = {}
        for category, finding in self._resolve(board).items():
            version = self._version_of(category, finding, context)
            categories[category] = finding if version is None else replace(finding, version=version)

        findings = Findings(
            categories=categories,
            dependencies=context.dependencies,
            key_files=[(probe.root / entry.path).as_posix() for entry in probe.key_files(config.max_depth)],
            structure=self._structure(categories, context),
            scripts=context.scripts,
        )
        self.logger.info(
            "Finished %s: %s",
            probe.root,
            ", ".join(f"{category.value}={finding.technology}" for category, finding in findings),
        )
        return findings

    def _score_category(self, category: Category, context: _ScanContext) -> ScoreBoard:
        board = ScoreBoard()
        logger = context.logger.for_category(category.value)
        for indicator in self.catalog.for_category(category):
            if self._evaluate(indicator, context):
                logger.debug("Matched %s", indicator.describe())
                board.add(indicator)
        return board

    def _version_of(
        self, category: Category, finding: CategoryFinding, context: _ScanContext
    ) -> Optional[str]:
        """Version declared for the first matching dependency rule of the winner."""
        if finding.is_unknown:
            return None
        for indicator in self.catalog.for_category(category):
            if indicator.technology != finding.technology or indicator.weight <= 0:
                continue
            if not isinstance(indicator.rule, DependencyPresent):
                continue
            for dependency in context.dependencies:
                if dependency.name == indicator.rule.name:
                    return dependency.version
        return None

    def _structure(
        self, categories: Dict[Category, CategoryFinding], context: _ScanContext
    ) -> List[StructureFinding]:
        """Check the expected layers of every detected technology that declares some."""
        reports: List[StructureFinding] = []
        checked = set()
        for category, finding in categories.items():
            layers = self.catalog.layers_for(finding.technology)
            if finding.confidence <= 0 or not layers or finding.technology in checked:
                continue
            checked.add(finding.technology)
            present: List[str] = []
            missing: List[str] = []
            patterns: List[str] = []
            for layer in layers:
                if any(context.probe.path_exists(path) for path in layer.paths):
                    present.append(layer.name)
                    if layer.pattern:
                        patterns.append(layer.pattern)
                else:
                    missing.append(layer.name)
            context.logger.for_category(category.value).debug(
                "%s layers present: %d of %d", finding.technology, len(present), len(layers)
            )
            reports.append(
                StructureFinding(
                    technology=finding.technology,
                    root=context.probe.root.as_posix(),
                    present=tuple(present),
                    missing=tuple(missing),
                    patterns=tuple(patterns),
                )
            )
        return reports

    def _resolve(self, board: ScoreBoard) -> Dict[Category, CategoryFinding]:
        recognized = any(
            weight > 0 for technologies in board.scores.values() for weight in technologies.values()
        )
        resolved: Dict[Category, CategoryFinding] = {}
        for category in Category:
            resolved[category] = self._resolve_category(category, board, recognized)
        return resolved

    def _resolve_category(
        self, category: Category, board: ScoreBoard, recognized: bool
    ) -> CategoryFinding:
        winner: Optional[str] = None
        best = 0.0
        # Strict comparison in declaration order keeps the earliest technology on ties.
        for technology in self.catalog.technologies(category):
            weight = board.weight(category, technology)
            if weight > best:
                winner, best = technology, weight

        if winner is None:
            fallback = self.catalog.fallback(category)
            if recognized and fallback:
                return CategoryFinding(technology=fallback, confidence=0.0)
            return CategoryFinding(technology=UNKNOWN, confidence=0.0)

        total = self.catalog.total_weight(category)
        return CategoryFinding(
            technology=winner,
            confidence=min(best / total, 1.0),
            evidence=tuple(board.evidence.get(category, {}).get(winner, ())),
        )

    def _evaluate(self, indicator: Indicator, context: _ScanContext) -> bool:
        rule = indicator.rule
        if isinstance(rule, PathExists):
            return context.probe.path_exists(rule.path)
        if isinstance(rule, ContentMatches):
            text = context.text(rule.path)
            return text is not None and re.search(rule.pattern, text) is not None
        if isinstance(rule, DependencyPresent):
            return any(dependency.name == rule.name for dependency in context.dependencies)
        if isinstance(rule, SettingEquals):
            text = context.text(rule.path)
            if text is None:
                return False
            value = parse_settings(text).get(rule.key)
            return value is not None and value.lower() == rule.value.lower()
        if isinstance(rule, SeparatedSubtrees):
            return _count_separate_subtrees(context.probe, context.max_depth) >= rule.minimum
        raise TypeError(f"Unsupported evidence rule: {rule!r}")


def _count_separate_subtrees(probe: FileSystemProbe, max_depth: int) -> int:
    """Count top-level subdirectories that contain a manifest of their own."""
    roots = set()
    for entry in probe.list_directory(".", max_depth):
        if entry.is_dir or entry.name not in MANIFEST_FILES or entry.depth < 2:
            continue
        roots.add(entry.path.split("/", 1)[0])
    return len(roots)


def scan(
    root_paths: Iterable[str | Path],
    catalog: IndicatorCatalog | None = None,
    *,
    config: ProbeConfig | None = None,
) -> Findings:
    """Scan ``root_paths`` against ``catalog`` (the built-in one by default)."""
    return DetectionEngine(catalog, config=config).scan(list(root_paths))


def build_engine(root: str | Path, catalog_path: str | Path | None = None) -> DetectionEngine:
    """Create an engine honoring ``.stackprobe.yml`` at ``root`` and extra catalogs.

    Only a directory root is searched for a config file; any other root
    gets the defaults and is left for the scan to report as missing.
    """
    root = Path(root)
    config = load_config(root) if root.is_dir() else ProbeConfig(root=root)
    catalog = default_catalog()
    for extra in (config.catalog, Path(catalog_path) if catalog_path else None):
        if extra is not None:
            catalog = catalog.extended(load_catalog(extra))
    return DetectionEngine(catalog, config=config)


__all__ = ["DetectionEngine", "ScoreBoard", "build_engine", "scan"]
