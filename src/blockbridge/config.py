"""
Parser Configuration

Settings come from three layers, later ones winning:

    1. DEFAULT_CONFIG below
    2. a YAML file (explicit path, or the first of CONFIG_SEARCH_PATHS that exists)
    3. BLOCKBRIDGE_* environment variables

No configuration file is required.
"""

import logging
import os
from pathlib import Path
from typing import Any, Dict, Optional

import yaml

logger = logging.getLogger(__name__)


CONFIG_SEARCH_PATHS = [
    Path.home() / ".blockbridge" / "config.yaml",
    Path.cwd() / "blockbridge.yaml",
]

DEFAULT_CONFIG = {
    "max_declarations": 100,      # top-level declarations kept per file
    "max_nesting_depth": 64,      # nested bodies decomposed before giving up
    "excerpt_limit": 500,         # source characters kept in a fallback block
    "default_filename": "imported.rs",
    "log_level": "WARNING",
}

ENV_OVERRIDES = {
    "BLOCKBRIDGE_MAX_DECLARATIONS": "max_declarations",
    "BLOCKBRIDGE_MAX_NESTING": "max_nesting_depth",
    "BLOCKBRIDGE_EXCERPT_LIMIT": "excerpt_limit",
    "BLOCKBRIDGE_LOG_LEVEL": "log_level",
}


class ParserConfig:
    """Configuration for parse sessions."""

    def __init__(
        self,
        config_path: Optional[Path] = None,
        overrides: Optional[Dict[str, Any]] = None,
        search: bool = True,
    ):
        self._values: Dict[str, Any] = dict(DEFAULT_CONFIG)
        self._source: Optional[Path] = None

        if config_path is not None or search:
            self._read_yaml(config_path)
        for env_var, key in ENV_OVERRIDES.items():
            if env_var in os.environ:
                self._values[key] = os.environ[env_var]
        if overrides:
            self._values.update(overrides)

    def _read_yaml(self, explicit_path: Optional[Path]) -> None:
        candidates = [Path(explicit_path)] if explicit_path else CONFIG_SEARCH_PATHS
        for path in candidates:
            if not path.exists():
                continue
            try:
                with open(path, 'r', encoding='utf-8') as f:
                    loaded = yaml.safe_load(f) or {}
                if not isinstance(loaded, dict):
                    raise ValueError("top level must be a mapping")
            except (OSError, ValueError, yaml.YAMLError) as e:
                logger.warning("Ignoring config file %s: %s", path, e)
                continue
            self._values.update(loaded)
            self._source = path
            logger.debug("Loaded config from %s", path)
            return

    def _int(self, key: str) -> int:
        value = self._values.get(key, DEFAULT_CONFIG[key])
        try:
            return max(1, int(value))
        except (TypeError, ValueError):
            logger.warning("Invalid value for %s: %r, using default", key, value)
            return DEFAULT_CONFIG[key]

    @property
    def config_path(self) -> Optional[Path]:
        """The YAML file that was loaded, if any."""
        return self._source

    @property
    def max_declarations(self) -> int:
        return self._int("max_declarations")

    @property
    def max_nesting_depth(self) -> int:
        """How deep the statement decomposer descends into nested bodies."""
        return self._int("max_nesting_depth")

    @property
    def excerpt_limit(self) -> int:
        return self._int("excerpt_limit")

    @property
    def default_filename(self) -> str:
        """Filename written into the file container when none is given."""
        return str(self._values.get("default_filename") or DEFAULT_CONFIG["default_filename"])

    @property
    def log_level(self) -> str:
        return str(self._values.get("log_level") or DEFAULT_CONFIG["log_level"]).upper()

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {key: getattr(self, key) for key in DEFAULT_CONFIG}
        data["config_file"] = str(self._source) if self._source else None
        return data


_config: Optional[ParserConfig] = None


def get_config(config_path: Optional[Path] = None) -> ParserConfig:
    """Shared configuration. Passing a path reloads it."""
    global _config
    if _config is None or config_path is not None:
        _config = ParserConfig(config_path)
    return _config


_HEADER = """# blockbridge configuration
#
# Environment variables take precedence over this file:
#   {env}
"""


def write_default_config(path: Optional[Path] = None) -> Path:
    """Write DEFAULT_CONFIG as YAML and return the path written."""
    path = Path(path) if path else CONFIG_SEARCH_PATHS[0]
    path.parent.mkdir(parents=True, exist_ok=True)
    header = _HEADER.format(env="\n#   ".join(
        f"{var} -> {key}" for var, key in ENV_OVERRIDES.items()
    ))
    with open(path, 'w', encoding='utf-8') as f:
        f.write(header + "\n")
        yaml.safe_dump(DEFAULT_CONFIG, f, default_flow_style=False, sort_keys=False)
    return path
