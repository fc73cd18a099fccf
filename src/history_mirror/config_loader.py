"""
Config file discovery and loading for history-mirror.

A run reads at most four YAML files, from an explicit path down to a
per-user default.  Higher-precedence files replace whole top-level sections
(``standard``, ``mirror``, ``allow_list`` ...) of lower ones, so a project
file that names its own ``allow_list`` never inherits folders from the
global file.  Files may pull sections from other files with ``!include``
and reference the environment as ``${VAR}`` or ``${VAR:-default}``, which
is how CI jobs point the same config at different checkouts.

Usage:
    from history_mirror.config_loader import load_hierarchical_config

    config = load_hierarchical_config()
"""

import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "HISTORY_MIRROR_CONFIG"
PROJECT_CONFIG_DIR = ".history_mirror"
_PROJECT_FILES = ("config.yml", "config.yaml")
_USER_CONFIG = Path(".config") / "history_mirror" / "config.yml"

_ENV_REF = re.compile(r"\$\{([^}:]+?)(?::-(.*?))?\}")


# ---------------------------------------------------------------------------
# Environment references
# ---------------------------------------------------------------------------


def interpolate_env_vars(value: str) -> str:
    """Expand ``${VAR}`` and ``${VAR:-default}`` in *value*.

    An unset or empty variable expands to its default, or to ``""`` when
    there is none.  An unterminated ``${`` is kept as written.
    """
    return _ENV_REF.sub(
        lambda m: os.environ.get(m.group(1)) or (m.group(2) or ""), value
    )


def _interpolate_recursive(obj: Any) -> Any:
    if isinstance(obj, dict):
        return {key: _interpolate_recursive(val) for key, val in obj.items()}
    if isinstance(obj, list):
        return [_interpolate_recursive(item) for item in obj]
    return interpolate_env_vars(obj) if isinstance(obj, str) else obj


# ---------------------------------------------------------------------------
# !include
# ---------------------------------------------------------------------------


class ConfigLoader(yaml.SafeLoader):
    """SafeLoader that understands ``!include <path>``.

    ``chain`` holds the files currently being loaded, outermost first.  It
    is set per instance; ``yaml.SafeLoader`` itself stays untouched.
    """

    chain: tuple[Path, ...] = ()


def _include(loader: ConfigLoader, node: yaml.ScalarNode) -> Any:
    including = loader.chain[-1]
    target = Path(loader.construct_scalar(node))
    if not target.is_absolute():
        target = including.parent / target
    target = target.resolve()

    if target in loader.chain:
        cycle = " -> ".join(str(p) for p in (*loader.chain, target))
        raise ValueError(f"Circular include detected: {cycle}")
    if not target.is_file():
        raise FileNotFoundError(
            f"Include file not found: {target} (referenced from {including})"
        )
    return _load_yaml_with_includes(target, _chain=loader.chain)


ConfigLoader.add_constructor("!include", _include)


def _load_yaml_with_includes(path: Path, *, _chain: tuple[Path, ...] = ()) -> Any:
    """Parse one YAML file, following its ``!include`` directives."""
    path = path.resolve()
    with open(path, encoding="utf-8") as fh:
        loader = ConfigLoader(fh)
        loader.chain = (*_chain, path)
        try:
            return loader.get_single_data()
        finally:
            loader.dispose()


# ---------------------------------------------------------------------------
# Discovery
# ---------------------------------------------------------------------------


def discover_config_files() -> list[Path]:
    """Existing config files, highest precedence first.

    1. the file named by ``HISTORY_MIRROR_CONFIG``
    2. ``./.history_mirror/config.yml``, then ``config.yaml``
    3. ``~/.config/history_mirror/config.yml``
    """
    candidates = [Path.cwd() / PROJECT_CONFIG_DIR / name for name in _PROJECT_FILES]
    candidates.append(Path.home() / _USER_CONFIG)
    explicit = os.environ.get(CONFIG_ENV_VAR)
    if explicit:
        candidates.insert(0, Path(explicit).expanduser().resolve())
    return [path for path in candidates if path.exists()]


_STARTER_CONFIG = """\
# history-mirror configuration
#
# Repository paths can also be set via environment variables:
#   HISTORY_MIRROR_STANDARD_PATH, HISTORY_MIRROR_MIRROR_PATH
#
# standard:
#   path: ../standard
#   depth_limit: 1000
#   include_remote_branches: false
#   remote: origin
#
# mirror:
#   path: ../mirror
#   depth_limit: 1000
#   remote: origin
#   push: true
#
# allow_list:
#   component: my-component
#   folders:
#     - buildSrc
#     - common
#   files:
#     - build.gradle
#
# conflicts:
#   strategy: standard-wins   # or: fail
#
# logging:
#   level: INFO
#   file: null
#   format: text
"""


def resolve_config_path() -> Path:
    """The config file a run would read first.

    Falls back to the project-level ``config.yml`` path when no file
    exists yet.  Nothing is created.
    """
    found = discover_config_files()
    return found[0] if found else Path.cwd() / PROJECT_CONFIG_DIR / _PROJECT_FILES[0]


def ensure_config(target: Path | None = None) -> tuple[Path, bool]:
    """Write the commented starter config unless a config already exists.

    Args:
        target: File to create.  Defaults to ``resolve_config_path()``.

    Returns:
        ``(path, created)``.
    """
    path = target or resolve_config_path()
    if path.exists():
        logger.debug("Config file already exists: %s", path)
        return path, False

    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(_STARTER_CONFIG, encoding="utf-8")
    logger.info("Created starter config: %s", path)
    return path, True


# ---------------------------------------------------------------------------
# Merge
# ---------------------------------------------------------------------------


def load_hierarchical_config() -> dict[str, Any]:
    """Merge every discovered config file into one raw dict.

    Environment references are expanded after merging, so a global file
    can refer to variables a project never sets.  Returns ``{}`` when no
    file exists.
    """
    merged: dict[str, Any] = {}
    for path in reversed(discover_config_files()):
        logger.debug("Loading config: %s", path)
        data = _load_yaml_with_includes(path)
        if isinstance(data, dict):
            merged.update(data)
        elif data is not None:
            logger.warning(
                "Ignoring config file %s: top level is a %s, not a mapping",
                path,
                type(data).__name__,
            )
    return _interpolate_recursive(merged)
