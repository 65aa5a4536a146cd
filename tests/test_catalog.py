"""Tests for the indicator catalog and its YAML loader."""

from __future__ import annotations

from pathlib import Path

import pytest

from stackprobe.catalog import (
    Category,
    ContentMatches,
    DependencyPresent,
    Indicator,
    IndicatorCatalog,
    Layer,
    PathExists,
    SeparatedSubtrees,
    SettingEquals,
    default_catalog,
    load_catalog,
    parse_catalog,
)
from stackprobe.errors import CatalogError


def test_parse_catalog_builds_each_rule_type() -> None:
    catalog = parse_catalog(
        """
fallbacks:
  architecture-pattern: monolithic-undetermined
indicators:
  - {category: backend-framework, technology: Laravel, dependency: laravel/framework, weight: 5}
  - {category: backend-framework, technology: Laravel, path: artisan, weight: 2}
  - {category: api-style, technology: REST, path: routes/api.php, pattern: "Route::apiResource"}
  - category: database
    technology: MySQL
    setting: {path: .env, key: DB_CONNECTION, value: mysql}
    weight: 3
  - {category: architecture-pattern, technology: separated, separated: 2, weight: 1}
"""
    )

    rules = [indicator.rule for indicator in catalog]
    assert rules == [
        DependencyPresent("laravel/framework"),
        PathExists("artisan"),
        ContentMatches("routes/api.php", "Route::apiResource"),
        SettingEquals(".env", "DB_CONNECTION", "mysql"),
        SeparatedSubtrees(2),
    ]
    assert catalog.indicators[2].weight == 1.0
    assert catalog.fallback(Category.ARCHITECTURE_PATTERN) == "monolithic-undetermined"
    assert catalog.fallback(Category.DATABASE) is None


def test_totals_and_technologies_follow_declaration_order() -> None:
    catalog = IndicatorCatalog(
        (
            Indicator(Category.FRONTEND_FRAMEWORK, "Vue.js", DependencyPresent("vue"), 5),
            Indicator(Category.FRONTEND_FRAMEWORK, "React", DependencyPresent("react"), 5),
            Indicator(Category.FRONTEND_FRAMEWORK, "Vue.js", PathExists("src/App.vue"), 1),
            Indicator(Category.BUILD_TOOL, "Vite", DependencyPresent("vite"), 3),
        )
    )

    assert catalog.technologies(Category.FRONTEND_FRAMEWORK) == ["Vue.js", "React"]
    assert catalog.total_weight(Category.FRONTEND_FRAMEWORK) == 11
    assert catalog.total_weight(Category.DATABASE) == 0
    assert len(catalog.for_category(Category.BUILD_TOOL)) == 1


def test_extended_appends_rows_without_mutating() -> None:
    base = IndicatorCatalog((Indicator(Category.BUILD_TOOL, "Vite", DependencyPresent("vite"), 3),))
    extra = IndicatorCatalog((Indicator(Category.BUILD_TOOL, "esbuild", DependencyPresent("esbuild"), 3),))

    combined = base.extended(extra)

    assert len(base) == 1
    assert combined.technologies(Category.BUILD_TOOL) == ["Vite", "esbuild"]


@pytest.mark.parametrize("weight", [-1, float("inf"), float("nan")])
def test_negative_and_non_finite_weights_are_rejected(weight: float) -> None:
    with pytest.raises(CatalogError):
        Indicator(Category.DATABASE, "MySQL", DependencyPresent("mysql2"), weight)


@pytest.mark.parametrize(
    "text",
    [
        "- just a list",
        "indicators: {category: database}",
        "indicators:\n  - {technology: MySQL, dependency: mysql2}",
        "indicators:\n  - {category: nosql, technology: MySQL, dependency: mysql2}",
        "indicators:\n  - {category: database, technology: MySQL}",
        "indicators:\n  - {category: database, technology: MySQL, dependency: mysql2, weight: high}",
        "indicators:\n  - {category: database, technology: MySQL, dependency: mysql2, weight: -2}",
        "indicators:\n  - {category: database, technology: MySQL, dependency: mysql2, weight: .inf}",
        "indicators:\n  - {category: database, technology: MySQL, dependency: mysql2, weight: .nan}",
        "indicators:\n  - {category: database, technology: MySQL, dependency: mysql2, path: .env}",
        "indicators:\n  - {category: database, technology: MySQL, separated: 2, setting: {path: .env, key: A, value: b}}",
        "indicators:\n  - {category: database, technology: MySQL, pattern: mysql}",
        "layers: [Laravel]",
        "layers:\n  Laravel: {name: Models}",
        "layers:\n  Laravel:\n    - {name: Models}",
        "layers:\n  Laravel:\n    - {name: Models, path: [app/Models, 3]}",
        "indicators:\n  - {category: database, technology: MySQL, path: a.txt, pattern: '('}",
        "indicators:\n  - {category: database, technology: MySQL, setting: {path: .env}}",
        "indicators:\n  - {category: architecture-pattern, technology: split, separated: 0}",
        "indicators: [\n",
    ],
)
def test_invalid_catalogs_raise_catalog_error(text: str) -> None:
    with pytest.raises(CatalogError):
        parse_catalog(text)


def test_load_catalog_reads_file(tmp_path: Path) -> None:
    path = tmp_path / "extra.yml"
    path.write_text(
        "indicators:\n  - {category: database, technology: Redis, dependency: predis/predis, weight: 2}\n",
        encoding="utf-8",
    )

    catalog = load_catalog(path)

    assert catalog.technologies(Category.DATABASE) == ["Redis"]
    with pytest.raises(CatalogError):
        load_catalog(tmp_path / "missing.yml")


def test_default_catalog_is_loaded_once_and_covers_every_category() -> None:
    catalog = default_catalog()

    assert default_catalog() is catalog
    for category in Category:
        assert catalog.total_weight(category) > 0
    assert catalog.technologies(Category.ARCHITECTURE_PATTERN) == ["separated"]
    assert all(indicator.weight >= 0 for indicator in catalog)


def test_parse_catalog_reads_layers_with_shared_anchors() -> None:
    catalog = parse_catalog(
        """
layers:
  Laravel:
    - {name: Services, path: app/Services, pattern: Service Layer}
    - {name: Tests, path: tests}
  Vue.js: &spa
    - {name: Components, path: [src/components, components], pattern: Component-Based}
  React: *spa
"""
    )

    assert catalog.layers_for("Laravel") == (
        Layer("Services", ("app/Services",), "Service Layer"),
        Layer("Tests", ("tests",)),
    )
    assert catalog.layers_for("React") == catalog.layers_for("Vue.js")
    assert catalog.layers_for("Symfony") == ()


def test_extended_replaces_layers_of_the_same_technology() -> None:
    base = IndicatorCatalog(layers={"Laravel": (Layer("Tests", ("tests",)),)})
    extra = IndicatorCatalog(layers={"Laravel": (Layer("Models", ("app/Models",)),)})

    assert base.extended(extra).layers_for("Laravel") == (Layer("Models", ("app/Models",)),)
    assert base.layers_for("Laravel") == (Layer("Tests", ("tests",)),)


def test_catalog_mappings_are_read_only() -> None:
    catalog = default_catalog()

    with pytest.raises(TypeError):
        catalog.fallbacks[Category.DATABASE] = "MySQL"  # type: ignore[index]
    with pytest.raises(TypeError):
        catalog.layers["Laravel"] = ()  # type: ignore[index]
    assert catalog.fallback(Category.DATABASE) is None


def test_default_catalog_declares_expected_layers() -> None:
    catalog = default_catalog()

    laravel = {layer.name: layer for layer in catalog.layers_for("Laravel")}
    assert laravel["Services"].pattern == "Service Layer"
    assert laravel["Repositories"].pattern == "Repository"
    assert "Controllers" in laravel and "Migrations" in laravel
    assert catalog.layers_for("React") == catalog.layers_for("Vue.js") == catalog.layers_for("Angular")
    patterns = {layer.pattern for layer in catalog.layers_for("Vue.js")}
    assert {"Component-Based", "Single Page Application", "State Management", "API Integration"} <= patterns
