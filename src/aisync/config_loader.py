"""
Configuration file loader for aisync.

Provides convention-based config file discovery, YAML ``!include``
support, env var interpolation, and starter-config bootstrapping.  JSON
files (``aisync.config.json``) are read with ``json``; anything else is
parsed as YAML.

Usage:
    from aisync.config_loader import load_config

    config = load_config()  # first discovered file
    config = load_config("path/to/aisync.config.json")
"""

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

from .config_schema import SyncConfig, build_config
from .errors import ConfigError

logger = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# 1. Env var interpolation
# ---------------------------------------------------------------------------

# Matches ${VAR} and ${VAR:-default}
_ENV_VAR_PATTERN = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


def interpolate_env_vars(value: str) -> str:
    """Replace ``${VAR}`` and ``${VAR:-default}`` patterns with env values.

    * ``${VAR}`` is replaced with ``os.environ.get(VAR, "")``.
    * ``${VAR:-default}`` uses *default* when VAR is unset or empty.
    * Literal ``${`` with no closing ``}`` is left untouched.
    """

    def _replace(match: re.Match) -> str:
        var_name = match.group(1)
        default = match.group(2)  # None when no :- clause
        env_val = os.environ.get(var_name)
        if env_val is not None and env_val != "":
            return env_val
        if default is not None:
            return default
        return ""

    return _ENV_VAR_PATTERN.sub(_replace, value)


def _interpolate_recursive(obj: Any) -> Any:
    """Walk a nested dict/list and interpolate env vars in all strings."""
    if isinstance(obj, str):
        return interpolate_env_vars(obj)
    if isinstance(obj, dict):
        return {k: _interpolate_recursive(v) for k, v in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return obj


# ---------------------------------------------------------------------------
# 2. YAML !include support (dedicated SafeLoader subclass)
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """YAML SafeLoader subclass with ``!include`` support.

    Uses a dedicated subclass so the global ``yaml.SafeLoader`` is never
    modified.  Tracks an *include stack* per-load to detect circular includes.
    """


def _include_constructor(
    loader: ConfigLoader, node: yaml.ScalarNode
) -> Any:
    """Handle ``!include path/to/file.yml`` directives.

    Typical use is sharing one target list between several projects'
    config files.
    """
    include_path_str: str = loader.construct_scalar(node)

    if os.path.isabs(include_path_str):
        include_path = Path(include_path_str)
    else:
        parent_dir = Path(loader.name).resolve().parent
        include_path = parent_dir / include_path_str

    include_path = include_path.resolve()

    include_stack: list[Path] = getattr(loader, "_include_stack", [])
    if include_path in include_stack:
        chain = (
            " -> ".join(str(p) for p in include_stack)
            + f" -> {include_path}"
        )
        raise ConfigError(f"Circular include detected: {chain}")

    if not include_path.exists():
        source_file = Path(loader.name).resolve()
        raise ConfigError(
            f"Include file not found: {include_path} (referenced from {source_file})"
        )

    new_stack = include_stack + [include_path]
    return _load_yaml_with_includes(
        include_path, _include_stack=new_stack
    )


ConfigLoader.add_constructor("!include", _include_constructor)


def _load_yaml_with_includes(
    path: Path,
    *,
    _include_stack: list[Path] | None = None,
) -> Any:
    """Load a YAML file using the ``ConfigLoader`` (with ``!include``)."""
    path = path.resolve()
    if _include_stack is None:
        _include_stack = [path]

    with open(path, "r", encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader._include_stack = _include_stack  # type: ignore[attr-defined]
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# 3. Convention-based file discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Return existing config file paths in precedence order (highest first).

    Search order:
        1. ``AISYNC_CONFIG`` env var (explicit single path)
        2. ``aisync.config.json`` in CWD
        3. ``aisync.config.yml`` in CWD
        4. ``.aisync/config.yml`` in CWD
        5. ``~/.config/aisync/config.yml`` (XDG global)

    Only paths that exist on disk are returned.
    """
    candidates: list[Path] = []

    env_path = os.environ.get("AISYNC_CONFIG")
    if env_path:
        candidates.append(Path(env_path).expanduser().resolve())

    cwd = Path.cwd()
    candidates.append(cwd / "aisync.config.json")
    candidates.append(cwd / "aisync.config.yml")
    candidates.append(cwd / ".aisync" / "config.yml")

    candidates.append(Path.home() / ".config" / "aisync" / "config.yml")

    return [p for p in candidates if p.exists()]


# ---------------------------------------------------------------------------
# 4. Loading
# ---------------------------------------------------------------------------


def load_raw_config(path: Path) -> dict[str, Any]:
    """Parse one config file into a dict with env vars interpolated.

    Args:
        path: JSON or YAML config file.

    Returns:
        The parsed mapping (empty dict for an empty YAML file).

    Raises:
        ConfigError: If the file is missing, unparsable, or its root is
            not a mapping.
    """
    if not path.exists():
        raise ConfigError(f"Configuration file not found: {path.resolve()}")

    logger.debug("Loading config: %s", path)
    try:
        if path.suffix.lower() == ".json":
            with open(path, encoding="utf-8") as fh:
                data = json.load(fh)
        else:
            data = _load_yaml_with_includes(path)
    except (json.JSONDecodeError, yaml.YAMLError) as exc:
        raise ConfigError(f"Failed to parse {path}: {exc}") from exc

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigError(
            f"Config file {path} has non-dict root ({type(data).__name__})"
        )

    return _interpolate_recursive(data)


def load_config(path: str | Path | None = None) -> SyncConfig:
    """Load and validate the sync configuration.

    Args:
        path: Explicit config file.  When ``None`` the highest-precedence
            discovered file is used.

    Returns:
        Validated ``SyncConfig``.

    Raises:
        ConfigError: If no config file is found or it is invalid.
    """
    if path is None:
        existing = discover_config_files()
        if not existing:
            raise ConfigError(
                "No configuration file found. Run 'aisync init' or pass --config."
            )
        config_path = existing[0]
    else:
        config_path = Path(path)

    return build_config(load_raw_config(config_path))


# ---------------------------------------------------------------------------
# 5. Config bootstrapping
# ---------------------------------------------------------------------------

_STARTER_CONFIG = """\
# aisync configuration
#
# Each source file is copied to every enabled target.  Within a target,
# the first mapping whose "source" matches the file name wins ("*" is a
# wildcard).  Relative destinations are resolved against the target path.
#
# mode: "incremental" only rewrites sources that changed since the last
# pass in this process; "full" clears mapped destinations and rewrites
# everything.

sources:
  - ./global_rules.md
  - ./global_mcp.json

mode: incremental

targets:
  - name: kiro
    type: kiro
    path: .
    mapping:
      - source: global_rules.md
        destination: .kiro/steering/rules.md
      - source: global_mcp.json
        destination: .kiro/settings/mcp.json

  - name: cursor
    type: cursor
    path: .
    enabled: false
    mapping:
      - source: global_rules.md
        destination: .cursor/rules/global_rules.md
        transform:
          - type: replace
            pattern: Kiro
            replacement: Cursor
      - source: global_mcp.json
        destination: .cursor/mcp.json

# watch:
#   enabled: false
#   interval: 1000   # ms between polls
#   debounce: 300    # ms to wait after a change before syncing
#
# logging:
#   level: INFO
#   file: null
"""


def ensure_config(target: Path | None = None) -> Path:
    """Ensure a config file exists, writing a starter file if needed.

    Args:
        target: Explicit path to create.  If ``None``, an existing
            discovered config is returned untouched, otherwise
            ``CWD / aisync.config.yml`` is created.

    Returns:
        Path to the config file (existing or newly created).
    """
    if target is None:
        existing = discover_config_files()
        if existing:
            logger.debug("Config file already exists: %s", existing[0])
            return existing[0]
        target = Path.cwd() / "aisync.config.yml"
    elif target.exists():
        logger.debug("Config file already exists: %s", target)
        return target

    target.parent.mkdir(parents=True, exist_ok=True)
    if target.suffix.lower() == ".json":
        # JSON has no comments; keep only the data
        content = json.dumps(yaml.safe_load(_STARTER_CONFIG), indent=2)
        target.write_text(content + "\n", encoding="utf-8")
    else:
        target.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", target)

    return target
