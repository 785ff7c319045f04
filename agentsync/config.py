"""
Configuration loading for agentsync.

Reads the JSON config file, validates it against the bundled schema and
turns it into an immutable Configuration: ordered targets plus the write
options that govern overwrites and backups.
"""

import json
import os
import re
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from .config_schema import validate_config
from .errors import ConfigError


DEFAULT_CONFIG_DIR = "~/.agentsync"
DEFAULT_CONFIG_FILENAME = "agentsync.config.json"
DEFAULT_CONFIG_PATH = f"{DEFAULT_CONFIG_DIR}/{DEFAULT_CONFIG_FILENAME}"
DEFAULT_TEMPLATE_PATH = f"{DEFAULT_CONFIG_DIR}/AGENTS_TEMPLATE.md"
DEFAULT_BACKUP_SUFFIX = ".bak"

_BRACED_ENV_RE = re.compile(r"\$\{([A-Za-z0-9_]+)\}")
_BARE_ENV_RE = re.compile(r"\$([A-Za-z0-9_]+)")


@dataclass(frozen=True)
class Target:
    """One destination file and the identity/variables used to render it."""

    agent_name: str
    raw_path: str
    enabled: bool = True
    variables: Dict[str, str] = field(default_factory=dict)


@dataclass(frozen=True)
class SyncOptions:
    """Write policy shared by every target."""

    overwrite: bool = True
    backup: bool = True
    backup_suffix: str = DEFAULT_BACKUP_SUFFIX


@dataclass(frozen=True)
class Configuration:
    """Validated configuration for a single run."""

    config_path: str
    targets: Tuple[Target, ...]
    options: SyncOptions = field(default_factory=SyncOptions)
    template_path: Optional[str] = None

    @property
    def base_dir(self) -> str:
        """Directory relative paths in the config are resolved against."""
        return os.path.dirname(self.config_path)

    @property
    def enabled_targets(self) -> List[Target]:
        return [t for t in self.targets if t.enabled]


def expand_tilde(path: str) -> str:
    """Expand a leading ``~`` or ``~/`` to the home directory."""
    if path == "~":
        return os.path.expanduser("~")
    if path.startswith("~/"):
        return os.path.join(os.path.expanduser("~"), path[2:])
    return path


def expand_env(path: str) -> str:
    """
    Expand ``$VAR`` and ``${VAR}`` references from the environment.

    References to unset variables are left exactly as written.
    """
    path = _BRACED_ENV_RE.sub(lambda m: os.environ.get(m.group(1), m.group(0)), path)
    return _BARE_ENV_RE.sub(lambda m: os.environ.get(m.group(1), m.group(0)), path)


def resolve_path(raw_path: str, base_dir: str) -> str:
    """
    Resolve a user-supplied path to an absolute one.

    Args:
        raw_path: Path as written by the user, may contain ``~`` or env vars
        base_dir: Directory relative paths are anchored to

    Returns:
        Absolute, normalised path
    """
    expanded = expand_env(expand_tilde(raw_path))
    if os.path.isabs(expanded):
        return os.path.normpath(expanded)
    return os.path.normpath(os.path.join(os.path.abspath(base_dir), expanded))


def coerce_scalar(value: Any) -> str:
    """Render a JSON scalar the way it is spelled in JSON."""
    if value is None:
        return "null"
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, float) and value.is_integer() and abs(value) < 1e21:
        return str(int(value))
    if isinstance(value, (int, float, str)):
        return str(value)
    raise ConfigError("variables values must be JSON scalars (string/number/boolean/null)")


def coerce_variables(variables: Any, index: int) -> Dict[str, str]:
    """
    Convert a target's ``variables`` mapping to string values.

    Args:
        variables: Raw ``variables`` value from the config, or None
        index: Position of the target, for error messages

    Returns:
        Dict of variable name to string value
    """
    if variables is None:
        return {}
    if not isinstance(variables, dict):
        raise ConfigError(f"targets[{index}].variables must be an object")
    return {str(name): coerce_scalar(value) for name, value in variables.items()}


def _build_target(entry: Any, index: int) -> Target:
    if not isinstance(entry, dict):
        raise ConfigError(f"targets[{index}] must be an object")

    agent = entry.get("agent")
    raw_path = entry.get("path")
    enabled = entry.get("enabled", True)

    if not isinstance(agent, str) or not agent:
        raise ConfigError(f"targets[{index}].agent must be a non-empty string")
    if not isinstance(raw_path, str) or not raw_path:
        raise ConfigError(f"targets[{index}].path must be a non-empty string")
    if not isinstance(enabled, bool):
        raise ConfigError(f"targets[{index}].enabled must be boolean when present")

    return Target(
        agent_name=agent,
        raw_path=raw_path,
        enabled=enabled,
        variables=coerce_variables(entry.get("variables"), index),
    )


def _build_options(raw: Any) -> SyncOptions:
    if raw is None:
        return SyncOptions()
    if not isinstance(raw, dict):
        raise ConfigError("Config field `options` must be an object")

    suffix = raw.get("backup_suffix", DEFAULT_BACKUP_SUFFIX)
    if not isinstance(suffix, str) or not suffix:
        raise ConfigError("options.backup_suffix must be a non-empty string")

    return SyncOptions(
        overwrite=raw.get("overwrite", True),
        backup=raw.get("backup", True),
        backup_suffix=suffix,
    )


def _reject_constant(name: str) -> Any:
    raise ValueError(f"invalid JSON value {name}")


def load_config(config_path: str) -> Configuration:
    """
    Load and validate a configuration file.

    Args:
        config_path: Path to the config file (``~`` and env vars allowed,
            relative paths are taken from the current directory)

    Returns:
        The validated Configuration
    """
    absolute_path = resolve_path(config_path, os.getcwd())
    try:
        with open(absolute_path, "r", encoding="utf-8") as f:
            data = json.load(f, parse_constant=_reject_constant)
    except (OSError, ValueError) as e:
        raise ConfigError(f"Failed to read config {absolute_path}: {e}") from e

    validate_config(data)

    template_path = data.get("template_path")
    if template_path is not None and not isinstance(template_path, str):
        raise ConfigError("Config field `template_path` must be a string when present")
    if "targets" not in data:
        raise ConfigError("Config field `targets` is required")
    if not isinstance(data["targets"], list):
        raise ConfigError("Config field `targets` must be an array")

    targets = tuple(_build_target(entry, i) for i, entry in enumerate(data["targets"]))

    return Configuration(
        config_path=absolute_path,
        targets=targets,
        options=_build_options(data.get("options")),
        template_path=template_path,
    )


def find_default_config() -> str:
    """
    Locate the config file when none was given on the command line.

    The user-level file wins over one in the current directory.

    Returns:
        Absolute path of the first candidate that exists
    """
    home_candidate = resolve_path(DEFAULT_CONFIG_PATH, os.getcwd())
    if os.path.exists(home_candidate):
        return home_candidate

    cwd_candidate = os.path.join(os.getcwd(), DEFAULT_CONFIG_FILENAME)
    if os.path.exists(cwd_candidate):
        return cwd_candidate

    raise ConfigError(
        f"Config not found: tried {home_candidate} and {cwd_candidate} (use --config to specify)"
    )


def load_config_with_default_fallback(config_path: Optional[str] = None) -> Configuration:
    """Load ``config_path`` if given, else the first default location found."""
    if config_path is not None:
        return load_config(config_path)
    return load_config(find_default_config())


def resolve_template_path(config: Configuration, override: Optional[str] = None) -> str:
    """
    Work out which template file this run renders.

    A command-line override is taken relative to the current directory;
    ``template_path`` from the config relative to the config's directory.
    """
    if override:
        return resolve_path(override, os.getcwd())
    return resolve_path(config.template_path or DEFAULT_TEMPLATE_PATH, config.base_dir)
