"""Dependency manifest and settings-file parsing."""

from __future__ import annotations

import enum
import json
from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Tuple

from .errors import ManifestParseError, NotFound, ReadError
from .logging import get_logger
from .probe import FileSystemProbe

PRIMARY_MANIFEST = "package.json"
SECONDARY_MANIFEST = "composer.json"
MANIFEST_FILES = (PRIMARY_MANIFEST, SECONDARY_MANIFEST)

_LOGGER = get_logger("manifests")


class DependencyOrigin(str, enum.Enum):
    """Which manifest section a dependency was declared in."""

    RUNTIME_PRIMARY = "runtime-primary"
    DEV_PRIMARY = "dev-primary"
    RUNTIME_SECONDARY = "runtime-secondary"
    DEV_SECONDARY = "dev-secondary"


@dataclass(frozen=True)
class Dependency:
    """A normalized dependency entry; ``name`` is kept verbatim."""

    name: str
    version: str
    origin: DependencyOrigin
    source: str = ""


@dataclass(frozen=True)
class Script:
    """A named command declared by a manifest."""

    name: str
    command: str
    source: str = ""


@dataclass(frozen=True)
class ParsedManifest:
    """Dependencies and scripts extracted from a single manifest."""

    source: str
    dependencies: Tuple[Dependency, ...] = ()
    scripts: Mapping[str, str] = field(default_factory=dict)

    def declared_scripts(self) -> Tuple[Script, ...]:
        return tuple(Script(name, command, self.source) for name, command in self.scripts.items())


_PRIMARY_SECTIONS = (
    ("dependencies", DependencyOrigin.RUNTIME_PRIMARY),
    ("devDependencies", DependencyOrigin.DEV_PRIMARY),
)

_SECONDARY_SECTIONS = (
    ("require", DependencyOrigin.RUNTIME_SECONDARY),
    ("require-dev", DependencyOrigin.DEV_SECONDARY),
)


def parse_json_manifest(text: str, source: str = PRIMARY_MANIFEST) -> ParsedManifest:
    """Parse a package.json style manifest (dependencies/devDependencies/scripts)."""
    data = _load_object(text, source)
    dependencies: List[Dependency] = []
    for key, origin in _PRIMARY_SECTIONS:
        dependencies.extend(_extract_section(data, key, origin, source))
    scripts = _script_mapping(data, source)
    return ParsedManifest(source=source, dependencies=tuple(dependencies), scripts=scripts)


def parse_composer_manifest(text: str, source: str = SECONDARY_MANIFEST) -> ParsedManifest:
    """Parse a composer.json style manifest (require/require-dev)."""
    data = _load_object(text, source)
    dependencies: List[Dependency] = []
    for key, origin in _SECONDARY_SECTIONS:
        dependencies.extend(_extract_section(data, key, origin, source))
    return ParsedManifest(source=source, dependencies=tuple(dependencies))


_PARSERS = {
    PRIMARY_MANIFEST: parse_json_manifest,
    SECONDARY_MANIFEST: parse_composer_manifest,
}


class ManifestParser:
    """Reads the conventional manifests at a probe root into one dependency list."""

    def __init__(self) -> None:
        self.logger = _LOGGER

    def load(self, probe: FileSystemProbe) -> List[Dependency]:
        dependencies: List[Dependency] = []
        for manifest in self.load_manifests(probe):
            dependencies.extend(manifest.dependencies)
        return dependencies

    def load_manifests(self, probe: FileSystemProbe) -> List[ParsedManifest]:
        """Return every root manifest that could be read and parsed."""
        manifests: List[ParsedManifest] = []
        for filename, parser in _PARSERS.items():
            try:
                text = probe.read_file(filename)
            except NotFound:
                continue
            except ReadError as exc:
                self.logger.warning("Skipping unreadable manifest %s: %s", filename, exc)
                continue

            source = (probe.root / filename).as_posix()
            try:
                manifests.append(parser(text, source))
            except ManifestParseError as exc:
                self.logger.warning("%s; its dependencies are ignored", exc)
        return manifests


def parse_settings(text: str) -> Dict[str, str]:
    """Parse key=value settings such as an environment template.

    Blank lines and ``#`` comments are skipped, each line is split on the
    first ``=`` and matching surrounding quotes are removed from values.
    """
    settings: Dict[str, str] = {}
    for raw_line in text.splitlines():
        line = raw_line.strip()
        if not line or line.startswith("#") or "=" not in line:
            continue
        key, value = line.split("=", 1)
        key = key.strip()
        if not key:
            continue
        settings[key] = _strip_quotes(value.strip())
    return settings


def _strip_quotes(value: str) -> str:
    if len(value) >= 2 and value[0] == value[-1] and value[0] in {'"', "'"}:
        return value[1:-1]
    return value


def _load_object(text: str, source: str) -> Dict[str, Any]:
    try:
        data = json.loads(text)
    except json.JSONDecodeError as exc:
        raise ManifestParseError(source, f"invalid JSON ({exc.msg} at line {exc.lineno})") from exc
    if not isinstance(data, dict):
        raise ManifestParseError(source, "manifest root must be an object")
    return data


def _string_mapping(data: Mapping[str, Any], key: str, source: str) -> Dict[str, str]:
    section = data.get(key)
    # composer writes empty sections as [] rather than {}
    if section is None or section == []:
        return {}
    if not isinstance(section, dict):
        raise ManifestParseError(source, f"'{key}' must be an object")
    result: Dict[str, str] = {}
    for name, value in section.items():
        if not isinstance(value, str):
            raise ManifestParseError(source, f"'{key}.{name}' must be a string")
        result[name] = value
    return result


def _script_mapping(data: Mapping[str, Any], source: str) -> Dict[str, str]:
    """Return the string-valued scripts; anything else there is not dependency data."""
    section = data.get("scripts")
    if not isinstance(section, dict):
        if section not in (None, []):
            _LOGGER.debug("Ignoring non-object scripts section in %s", source)
        return {}
    return {name: command for name, command in section.items() if isinstance(command, str)}


def _extract_section(
    data: Mapping[str, Any], key: str, origin: DependencyOrigin, source: str
) -> List[Dependency]:
    return [
        Dependency(name=name, version=version, origin=origin, source=source)
        for name, version in _string_mapping(data, key, source).items()
    ]


__all__ = [
    "Dependency",
    "DependencyOrigin",
    "MANIFEST_FILES",
    "ManifestParser",
    "ParsedManifest",
    "Script",
    "parse_composer_manifest",
    "parse_json_manifest",
    "parse_settings",
]
