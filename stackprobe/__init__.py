"""Infer the technology stack and layout of a project tree."""

from .catalog import Category, IndicatorCatalog, default_catalog, load_catalog
from .engine import DetectionEngine, scan
from .findings import CategoryFinding, Findings, StructureFinding, merge

__all__ = [
    "Category",
    "CategoryFinding",
    "DetectionEngine",
    "Findings",
    "IndicatorCatalog",
    "StructureFinding",
    "default_catalog",
    "load_catalog",
    "merge",
    "scan",
]
