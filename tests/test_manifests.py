"""Tests for manifest and settings parsing."""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from stackprobe.errors import ManifestParseError
from stackprobe.manifests import (
    Dependency,
    DependencyOrigin,
    ManifestParser,
    Script,
    parse_composer_manifest,
    parse_json_manifest,
    parse_settings,
)
from stackprobe.probe import FileSystemProbe


def test_parse_json_manifest_normalizes_sections() -> None:
    manifest = parse_json_manifest(
        json.dumps(
            {
                "name": "frontend",
                "dependencies": {"vue": "^3.4.0", "axios": "^1.6.0"},
                "devDependencies": {"vite": "^5.0.0"},
                "scripts": {"dev": "vite", "build": "vite build"},
            }
        ),
        source="frontend/package.json",
    )

    assert manifest.dependencies == (
        Dependency("vue", "^3.4.0", DependencyOrigin.RUNTIME_PRIMARY, "frontend/package.json"),
        Dependency("axios", "^1.6.0", DependencyOrigin.RUNTIME_PRIMARY, "frontend/package.json"),
        Dependency("vite", "^5.0.0", DependencyOrigin.DEV_PRIMARY, "frontend/package.json"),
    )
    assert manifest.scripts == {"dev": "vite", "build": "vite build"}


def test_parse_composer_manifest_normalizes_sections() -> None:
    manifest = parse_composer_manifest(
        """
        {
            "require": {"php": "^8.1", "laravel/framework": "^10.0"},
            "require-dev": {"phpunit/phpunit": "^10.1"}
        }
        """
    )

    names = [(dep.name, dep.version, dep.origin) for dep in manifest.dependencies]
    assert names == [
        ("php", "^8.1", DependencyOrigin.RUNTIME_SECONDARY),
        ("laravel/framework", "^10.0", DependencyOrigin.RUNTIME_SECONDARY),
        ("phpunit/phpunit", "^10.1", DependencyOrigin.DEV_SECONDARY),
    ]
    assert manifest.scripts == {}


def test_parsers_accept_missing_and_empty_sections() -> None:
    assert parse_json_manifest("{}").dependencies == ()
    assert parse_composer_manifest('{"require": {}, "require-dev": []}').dependencies == ()


def test_dependency_names_are_kept_verbatim() -> None:
    manifest = parse_json_manifest('{"dependencies": {"@Angular/Core": "17.0.0"}}')

    assert manifest.dependencies[0].name == "@Angular/Core"


@pytest.mark.parametrize(
    "text",
    [
        "{not json",
        "[]",
        '{"dependencies": ["vue"]}',
        '{"dependencies": {"vue": 3}}',
    ],
)
def test_malformed_manifests_raise_parse_error(text: str) -> None:
    with pytest.raises(ManifestParseError) as excinfo:
        parse_json_manifest(text, source="package.json")
    assert excinfo.value.source == "package.json"


def test_manifest_parser_skips_malformed_manifest(tmp_path: Path, caplog) -> None:
    (tmp_path / "package.json").write_text("{ broken", encoding="utf-8")
    (tmp_path / "composer.json").write_text(
        '{"require": {"laravel/framework": "^10.0"}}', encoding="utf-8"
    )

    with caplog.at_level(logging.WARNING, logger="stackprobe"):
        dependencies = ManifestParser().load(FileSystemProbe(tmp_path))

    assert [dep.name for dep in dependencies] == ["laravel/framework"]
    assert dependencies[0].source.endswith("composer.json")
    assert "package.json" in caplog.text


def test_malformed_scripts_do_not_discard_dependencies() -> None:
    manifest = parse_json_manifest(
        '{"dependencies": {"vue": "^3.4.0"}, "scripts": {"dev": "vite", "hooks": ["lint"]}}',
        source="web/package.json",
    )
    listed = parse_json_manifest('{"dependencies": {"vue": "^3.4.0"}, "scripts": "vite"}')

    assert [dep.name for dep in manifest.dependencies] == ["vue"]
    assert manifest.scripts == {"dev": "vite"}
    assert manifest.declared_scripts() == (Script("dev", "vite", "web/package.json"),)
    assert [dep.name for dep in listed.dependencies] == ["vue"]
    assert listed.scripts == {}


def test_manifest_parser_warns_about_unreadable_manifest(tmp_path: Path, caplog) -> None:
    (tmp_path / "package.json").write_bytes(b"\xff\xfe{}")
    (tmp_path / "composer.json").write_text('{"require": {"php": "^8.1"}}', encoding="utf-8")

    with caplog.at_level(logging.WARNING, logger="stackprobe"):
        dependencies = ManifestParser().load(FileSystemProbe(tmp_path))

    assert [dep.name for dep in dependencies] == ["php"]
    [record] = caplog.records
    assert record.levelno == logging.WARNING
    assert "package.json" in record.getMessage()


def test_manifest_parser_without_manifests_returns_nothing(tmp_path: Path) -> None:
    assert ManifestParser().load(FileSystemProbe(tmp_path)) == []
    assert ManifestParser().load(FileSystemProbe(tmp_path / "missing")) == []


def test_parse_settings_handles_comments_quotes_and_first_equals() -> None:
    settings = parse_settings(
        "\n".join(
            [
                "# database",
                "",
                'DB_CONNECTION="mysql"',
                "DB_HOST=127.0.0.1",
                "APP_NAME='Beton Ko'",
                "DB_URL=mysql://user:pw@host/db?ssl=true",
                "NOT_A_SETTING",
                "EMPTY=",
            ]
        )
    )

    assert settings == {
        "DB_CONNECTION": "mysql",
        "DB_HOST": "127.0.0.1",
        "APP_NAME": "Beton Ko",
        "DB_URL": "mysql://user:pw@host/db?ssl=true",
        "EMPTY": "",
    }
