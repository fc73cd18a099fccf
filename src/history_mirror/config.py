"""Run settings for history-mirror.

Reads settings from CLI args, environment variables, .env files, and YAML
config file fallbacks.

Precedence (highest to lowest):
    CLI args > Environment variables > .env file > YAML config > Built-in defaults

Environment variables:
    HISTORY_MIRROR_STANDARD_PATH: Standard repository working tree (required)
    HISTORY_MIRROR_MIRROR_PATH: Mirror repository working tree (required)
    HISTORY_MIRROR_STANDARD_DEPTH: Standard history depth limit (optional, default: 1000)
    HISTORY_MIRROR_MIRROR_DEPTH: Mirror history depth limit (optional, default: 1000)
    HISTORY_MIRROR_REMOTE: Mirror remote to push to (optional, default: origin)
    HISTORY_MIRROR_STANDARD_REMOTE: Standard remote whose tracking branches are
        read when include_remote_branches is on (optional, default: origin)
    HISTORY_MIRROR_PUSH: Push after mirroring (optional, default: true)
"""

import logging
import os
from dataclasses import dataclass, field

from history_mirror.replay.resolver import CONFLICT_STRATEGIES
from history_mirror.validators import validate_allow_path

logger = logging.getLogger(__name__)

DEFAULT_DEPTH_LIMIT = 1000


@dataclass
class MirrorSettings:
    standard_path: str
    mirror_path: str
    component: str | None = None
    folders: list[str] = field(default_factory=list)
    files: list[str] = field(default_factory=list)
    standard_depth_limit: int = DEFAULT_DEPTH_LIMIT
    mirror_depth_limit: int = DEFAULT_DEPTH_LIMIT
    conflict_strategy: str = "standard-wins"
    remote: str = "origin"
    push: bool = True
    include_remote_branches: bool = False
    standard_remote: str = "origin"
    debug: bool = False


def validate_settings(settings: MirrorSettings) -> None:
    """Validate settings and raise ValueError if invalid.

    Args:
        settings: MirrorSettings instance to validate.

    Raises:
        ValueError: If a repository path is empty, a depth limit is below 1,
            the allow-list is empty or escapes the repository, or the
            conflict strategy is unknown.
    """
    settings.standard_path = settings.standard_path.strip()
    settings.mirror_path = settings.mirror_path.strip()

    if not settings.standard_path:
        raise ValueError(
            "Standard repository path cannot be empty. "
            "Set HISTORY_MIRROR_STANDARD_PATH environment variable."
        )
    if not settings.mirror_path:
        raise ValueError(
            "Mirror repository path cannot be empty. "
            "Set HISTORY_MIRROR_MIRROR_PATH environment variable."
        )

    for name in ("standard_depth_limit", "mirror_depth_limit"):
        if getattr(settings, name) < 1:
            raise ValueError(
                f"Invalid {name} '{getattr(settings, name)}': must be at least 1"
            )

    if not settings.component and not settings.folders and not settings.files:
        raise ValueError(
            "Allow-list is empty: pass --component, --folder or --file, "
            "or add an 'allow_list' section to config.yml."
        )
    for kind, entries in (
        ("folder", [settings.component, *settings.folders]),
        ("file", settings.files),
    ):
        for entry in entries:
            if entry is None:
                continue
            is_valid, error = validate_allow_path(entry, kind)
            if not is_valid:
                raise ValueError(error)

    if settings.conflict_strategy not in CONFLICT_STRATEGIES:
        raise ValueError(
            f"Unknown conflict strategy '{settings.conflict_strategy}'. "
            f"Valid strategies: {list(CONFLICT_STRATEGIES)}"
        )

    if os.path.realpath(settings.standard_path) == os.path.realpath(
        settings.mirror_path
    ):
        raise ValueError(
            "Standard and mirror repository paths must be different: "
            f"'{settings.standard_path}'"
        )


def _get_bool_env(key: str) -> bool | None:
    """Return True/False from env var, or None if unset."""
    val = os.getenv(key)
    if val is None:
        return None
    return val.lower() in ("true", "1", "yes", "on")


def _get_depth(env_key: str, cli_value: int | None, fallback) -> int:
    """Depth limit with precedence CLI > env > YAML > default."""
    if cli_value is not None:
        return cli_value
    raw = os.getenv(env_key)
    if raw is not None:
        try:
            return int(raw)
        except ValueError:
            raise ValueError(
                f"Invalid {env_key} '{raw}': must be a positive number"
            ) from None
    if fallback is not None:
        return int(fallback)
    return DEFAULT_DEPTH_LIMIT


def load_settings(
    standard_path: str | None = None,
    mirror_path: str | None = None,
    component: str | None = None,
    folders: list[str] | None = None,
    files: list[str] | None = None,
    standard_depth_limit: int | None = None,
    mirror_depth_limit: int | None = None,
    conflict_strategy: str | None = None,
    no_push: bool = False,
    debug: bool = False,
    yaml_fallbacks: dict | None = None,
) -> MirrorSettings:
    """Load settings with unified precedence.

    Resolution order for each field (highest to lowest):
        CLI arg > env var / .env > yaml_fallbacks > built-in default

    Allow-list entries given on the command line replace the YAML lists
    rather than extending them.  The caller is responsible for calling
    ``load_dotenv()`` before this function.

    Args:
        standard_path: Override standard repository path.
        mirror_path: Override mirror repository path.
        component: Override component folder.
        folders: Override extra allow-listed folders.
        files: Override extra allow-listed files.
        standard_depth_limit: Override standard depth limit.
        mirror_depth_limit: Override mirror depth limit.
        conflict_strategy: Override conflict strategy.
        no_push: Disable pushing (CLI flag).
        debug: Enable debug logging (CLI flag).
        yaml_fallbacks: Dict from ``to_yaml_fallbacks()``.  Used as
            fallback when CLI arg and env var are both unset.

    Returns:
        Validated MirrorSettings instance.

    Raises:
        ValueError: If a repository path is missing after checking all
            sources, or validation fails.
    """
    fb = {k: v for k, v in (yaml_fallbacks or {}).items() if v is not None}

    # --- String fields: CLI > env > YAML > error ---

    final_standard = (
        standard_path
        or os.getenv("HISTORY_MIRROR_STANDARD_PATH")
        or fb.get("standard_path")
    )
    if not final_standard:
        raise ValueError(
            "Standard repository path not found. Set HISTORY_MIRROR_STANDARD_PATH "
            "environment variable, pass --standard CLI argument, or add "
            "'standard.path' to config.yml."
        )

    final_mirror = (
        mirror_path
        or os.getenv("HISTORY_MIRROR_MIRROR_PATH")
        or fb.get("mirror_path")
    )
    if not final_mirror:
        raise ValueError(
            "Mirror repository path not found. Set HISTORY_MIRROR_MIRROR_PATH "
            "environment variable, pass --mirror CLI argument, or add "
            "'mirror.path' to config.yml."
        )

    final_remote = os.getenv("HISTORY_MIRROR_REMOTE") or fb.get("remote", "origin")
    final_standard_remote = os.getenv("HISTORY_MIRROR_STANDARD_REMOTE") or fb.get(
        "standard_remote", "origin"
    )

    # --- Numeric fields: CLI > env > YAML > default ---

    final_standard_depth = _get_depth(
        "HISTORY_MIRROR_STANDARD_DEPTH",
        standard_depth_limit,
        fb.get("standard_depth_limit"),
    )
    final_mirror_depth = _get_depth(
        "HISTORY_MIRROR_MIRROR_DEPTH",
        mirror_depth_limit,
        fb.get("mirror_depth_limit"),
    )

    # --- Boolean fields: CLI > env > YAML > default ---

    if no_push:
        final_push = False
    else:
        env_push = _get_bool_env("HISTORY_MIRROR_PUSH")
        if env_push is not None:
            final_push = env_push
        else:
            final_push = bool(fb.get("push", True))

    settings = MirrorSettings(
        standard_path=final_standard,
        mirror_path=final_mirror,
        component=component or fb.get("component"),
        folders=list(folders) if folders else list(fb.get("folders", [])),
        files=list(files) if files else list(fb.get("files", [])),
        standard_depth_limit=final_standard_depth,
        mirror_depth_limit=final_mirror_depth,
        conflict_strategy=conflict_strategy
        or fb.get("conflict_strategy", "standard-wins"),
        remote=final_remote,
        push=final_push,
        include_remote_branches=bool(fb.get("include_remote_branches", False)),
        standard_remote=final_standard_remote,
        debug=debug,
    )

    validate_settings(settings)

    return settings
