"""Tool configuration loaded from ``dtsbundle.toml``."""

from __future__ import annotations

import logging
import os
from dataclasses import dataclass, fields
from pathlib import Path
from typing import Any, Dict, Optional, Tuple

import toml

from .errors import ConfigResolutionError

logger = logging.getLogger(__name__)

CONFIG_FILE_NAME = "dtsbundle.toml"
CONFIG_ENV_VAR = "DTSBUNDLE_CONFIG"


@dataclass(frozen=True)
class BundleSettings:
    # Name the bundle is published under; prefixes every module specifier.
    package_name: str = "ace-code"
    # Namespace whose qualified references get import aliases.
    namespace: str = "Ace"
    # Module specifier of the package's root declaration file.
    root_declaration: str = "ace"
    alias_import_path: str = "../ace"
    source_dir: str = "src"
    filtered_module_suffixes: Tuple[str, ...] = ("/config", "textarea")
    export_bag_name: str = "_exports"
    heritage_diagnostic_codes: Tuple[int, ...] = (2507, 1174)
    type_parameter_placeholder: str = "T"
    master_declaration: str = "ace.d.ts"
    bundle_declaration: str = "types/index.d.ts"
    tsconfig: str = "tsconfig.json"
    tsc: str = "tsc"

    @classmethod
    def from_mapping(cls, data: Dict[str, Any]) -> "BundleSettings":
        known = {f.name: f for f in fields(cls)}
        unknown = sorted(set(data) - set(known))
        if unknown:
            raise ConfigResolutionError(f"Unknown configuration keys: {', '.join(unknown)}")
        values: Dict[str, Any] = {}
        for key, value in data.items():
            default = known[key].default
            if isinstance(default, tuple):
                if not isinstance(value, (list, tuple)):
                    raise ConfigResolutionError(f"'{key}' must be a list")
                value = tuple(value)
            elif not isinstance(value, type(default)):
                raise ConfigResolutionError(
                    f"'{key}' must be {type(default).__name__}, got {type(value).__name__}"
                )
            values[key] = value
        return cls(**values)


def config_path_for(project_dir: Path) -> Path:
    """Return the config file to use for *project_dir*.

    ``DTSBUNDLE_CONFIG`` wins over the project-local ``dtsbundle.toml``.
    """
    override = os.environ.get(CONFIG_ENV_VAR)
    if override:
        return Path(override).expanduser()
    return project_dir / CONFIG_FILE_NAME


def load_settings(project_dir: Optional[Path] = None, config_file: Optional[Path] = None) -> BundleSettings:
    """Load settings from TOML, falling back to defaults when no file exists.

    Settings live at the top level of the file or under a ``[dtsbundle]``
    table. A file that exists but cannot be parsed is fatal.
    """
    path = config_file or config_path_for(project_dir or Path.cwd())
    if not path.exists():
        if config_file is not None:
            raise ConfigResolutionError(f"Config file not found: {path}")
        logger.debug("No config at %s, using defaults", path)
        return BundleSettings()

    try:
        with open(path, "r", encoding="utf-8") as f:
            data = toml.load(f)
    except (OSError, toml.TomlDecodeError) as exc:
        raise ConfigResolutionError(f"Could not read {path}: {exc}") from exc

    section = data.get("dtsbundle", data)
    logger.debug("Loaded settings from %s", path)
    return BundleSettings.from_mapping(section)
