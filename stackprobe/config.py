"""Configuration loading for stackprobe (.stackprobe.yml)."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, List, Optional, Sequence

import yaml

from .errors import ConfigError

CONFIG_FILENAME = ".stackprobe.yml"

DEFAULT_MAX_DEPTH = 3
DEFAULT_MAX_FILE_BYTES = 1024 * 1024


@dataclass
class ProbeConfig:
    """Represents the settings defined in .stackprobe.yml."""

    root: Path
    max_depth: int = DEFAULT_MAX_DEPTH
    max_file_bytes: int = DEFAULT_MAX_FILE_BYTES
    exclude_paths: List[str] = field(default_factory=list)
    key_files: List[str] = field(default_factory=list)
    catalog: Optional[Path] = None


def load_config(config_path: Path) -> ProbeConfig:
    """Load configuration from disk, returning defaults when the file is absent."""
    config_file = _resolve_config_path(config_path)
    root = config_file.parent.resolve()

    if not config_file.exists():
        return ProbeConfig(root=root)

    data = _read_config(config_file)
    if not isinstance(data, dict):
        raise ConfigError(f"{CONFIG_FILENAME} must contain a mapping at the root")

    max_depth = _as_int(data.get("max_depth"))
    if max_depth is not None and max_depth < 0:
        raise ConfigError("max_depth must be zero or a positive integer")

    max_file_bytes = _as_int(data.get("max_file_bytes"))
    if max_file_bytes is not None and max_file_bytes <= 0:
        raise ConfigError("max_file_bytes must be a positive integer")

    catalog_str = _as_str(data.get("catalog"))
    catalog = root / catalog_str if catalog_str else None

    return ProbeConfig(
        root=root,
        max_depth=DEFAULT_MAX_DEPTH if max_depth is None else max_depth,
        max_file_bytes=max_file_bytes or DEFAULT_MAX_FILE_BYTES,
        exclude_paths=_as_str_list(data.get("exclude_paths")),
        key_files=_as_str_list(data.get("key_files")),
        catalog=catalog,
    )


def _resolve_config_path(config_path: Path) -> Path:
    config_path = config_path.expanduser()
    if config_path.is_dir():
        return (config_path / CONFIG_FILENAME).resolve()
    return config_path.resolve()


def _read_config(path: Path) -> Dict[str, Any]:
    try:
        text = path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        raise ConfigError(f"Failed to read {path.name}: {exc}") from exc
    if not text.strip():
        return {}

    try:
        loaded = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise ConfigError(f"Failed to parse {path.name}: {exc}") from exc
    return loaded if loaded is not None else {}


def _as_str(value: Any) -> Optional[str]:
    return str(value) if isinstance(value, (str, int, float)) and not isinstance(value, bool) else None


def _as_int(value: Any) -> Optional[int]:
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        try:
            return int(value)
        except ValueError:
            return None
    return None


def _as_str_list(value: Any) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [value]
    if isinstance(value, Sequence):
        return [str(item) for item in value if isinstance(item, (str, int, float))]
    return []


__all__ = ["CONFIG_FILENAME", "ProbeConfig", "load_config"]
