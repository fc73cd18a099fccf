"""Unified configuration schema for history_mirror.

Defines Pydantic models for the YAML config structure, with one section
per concern.  ``build_config`` validates the raw dict returned by
``load_hierarchical_config()``; ``to_yaml_fallbacks`` flattens it into the
keyword fallbacks consumed by ``load_settings()``.

Usage:
    from history_mirror.config_loader import load_hierarchical_config
    from history_mirror.config_schema import build_config, to_yaml_fallbacks

    unified = build_config(load_hierarchical_config())
    settings = load_settings(yaml_fallbacks=to_yaml_fallbacks(unified))
"""

from __future__ import annotations

import logging

from pydantic import BaseModel, Field

logger = logging.getLogger(__name__)


# ---------------------------------------------------------------------------
# Section models
# ---------------------------------------------------------------------------


class StandardConfig(BaseModel):
    """The full-history source repository.

    All fields are optional to support zero-config: env vars and CLI args
    can supply them at runtime instead.
    """

    path: str | None = Field(default=None, description="Working tree path")
    depth_limit: int = Field(
        default=1000,
        ge=1,
        description="Generations of history to collect from the root commit",
    )
    include_remote_branches: bool = Field(
        default=False,
        description="Treat remote-tracking branches as branches (CI checkouts)",
    )
    remote: str = Field(
        default="origin",
        description="Remote whose tracking branches are read",
    )

    model_config = {"frozen": True}


class MirrorConfig(BaseModel):
    """The repository receiving the filtered history."""

    path: str | None = Field(default=None, description="Working tree path")
    depth_limit: int = Field(
        default=1000,
        ge=1,
        description="Generations of mirror history scanned for markers",
    )
    remote: str = Field(default="origin", description="Remote to push to")
    push: bool = Field(default=True, description="Push all branches after a run")

    model_config = {"frozen": True}


class AllowListConfig(BaseModel):
    """Paths that are mirrored.

    Attributes:
        component: Folder of the component being mirrored.
        folders: Additional folders mirrored with everything below them.
        files: Individual files mirrored by exact path.
    """

    component: str | None = Field(default=None, description="Component folder")
    folders: list[str] = Field(default_factory=list)
    files: list[str] = Field(default_factory=list)

    model_config = {"frozen": True}


class ConflictsConfig(BaseModel):
    """Conflict policy for replayed merges."""

    strategy: str = Field(
        default="standard-wins",
        description="standard-wins or fail",
    )

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
        format: ``text`` or ``json``.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")
    format: str = Field(default="text", description="text or json")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level unified config
# ---------------------------------------------------------------------------


class UnifiedConfig(BaseModel):
    """Top-level unified configuration.

    Every section has defaults, so ``UnifiedConfig()`` (zero-config) is
    always valid.
    """

    standard: StandardConfig = Field(default_factory=StandardConfig)
    mirror: MirrorConfig = Field(default_factory=MirrorConfig)
    allow_list: AllowListConfig = Field(default_factory=AllowListConfig)
    conflicts: ConflictsConfig = Field(default_factory=ConflictsConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> UnifiedConfig:
    """Construct a ``UnifiedConfig`` from the raw dict returned by
    ``load_hierarchical_config()``.

    Missing sections get defaults; ``None`` sections (an empty YAML key)
    are treated as missing.

    Raises:
        pydantic.ValidationError: If a value has the wrong type or range.
    """
    if not raw_data:
        return UnifiedConfig()

    cleaned = {k: v for k, v in raw_data.items() if v is not None}
    return UnifiedConfig(**cleaned)


# ---------------------------------------------------------------------------
# Adapter: UnifiedConfig -> load_settings() fallbacks
# ---------------------------------------------------------------------------


def to_yaml_fallbacks(unified: UnifiedConfig) -> dict:
    """Flatten *unified* into the ``yaml_fallbacks`` dict of ``load_settings``.

    Keys are the ``MirrorSettings`` field names.
    """
    return {
        "standard_path": unified.standard.path,
        "mirror_path": unified.mirror.path,
        "standard_depth_limit": unified.standard.depth_limit,
        "mirror_depth_limit": unified.mirror.depth_limit,
        "include_remote_branches": unified.standard.include_remote_branches,
        "standard_remote": unified.standard.remote,
        "remote": unified.mirror.remote,
        "push": unified.mirror.push,
        "component": unified.allow_list.component,
        "folders": list(unified.allow_list.folders),
        "files": list(unified.allow_list.files),
        "conflict_strategy": unified.conflicts.strategy,
    }
