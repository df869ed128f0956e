"""Configuration schema for aisync.

Defines the Pydantic models for the sync configuration: sources, targets
with their ordered file mappings and transform rules, the sync mode, and
the watch/logging sections.  ``build_config`` turns the raw dict produced
by ``aisync.config_loader`` into a validated ``SyncConfig``.

Usage:
    from aisync.config_loader import load_raw_config
    from aisync.config_schema import build_config

    config = build_config(load_raw_config(path))
"""

from __future__ import annotations

import logging
import re
from enum import Enum
from typing import Annotated, Literal, Union

from pydantic import AliasChoices, BaseModel, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .errors import ConfigError

logger = logging.getLogger(__name__)

_DOLLAR_GROUP = re.compile(r"\$(?:(\$)|(&)|(\d{1,2})|<(\w+)>)")


def _python_group(match: re.Match) -> str:
    dollar, whole, number, name = match.groups()
    if dollar:
        return "$"
    if whole:
        return r"\g<0>"
    return rf"\g<{number or name}>"


class SyncMode(str, Enum):
    """How a sync pass decides what to write."""

    FULL = "full"
    INCREMENTAL = "incremental"


# ---------------------------------------------------------------------------
# Transform rules (closed tagged union on ``type``)
# ---------------------------------------------------------------------------


class ReplaceRule(BaseModel):
    """Replace every match of a regular expression.

    ``replacement`` uses Python ``re.sub`` syntax (``\\1`` or ``\\g<name>``
    for groups).  The JavaScript forms ``$1``, ``$<name>``, ``$&`` and
    ``$$`` are accepted too and rewritten to their Python equivalents when
    the config is parsed.
    """

    type: Literal["replace"] = "replace"
    pattern: str
    replacement: str = ""

    model_config = {"frozen": True}

    @field_validator("pattern")
    @classmethod
    def _pattern_compiles(cls, value: str) -> str:
        if not value:
            raise ValueError("pattern cannot be empty")
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regular expression: {exc}") from exc
        return value

    @field_validator("replacement")
    @classmethod
    def _translate_dollar_groups(cls, value: str) -> str:
        return _DOLLAR_GROUP.sub(_python_group, value)


class PrependRule(BaseModel):
    """Insert text before the content."""

    type: Literal["prepend"] = "prepend"
    text: str = Field(
        validation_alias=AliasChoices("text", "replacement")
    )

    model_config = {"frozen": True}


class AppendRule(BaseModel):
    """Add text after the content."""

    type: Literal["append"] = "append"
    text: str = Field(
        validation_alias=AliasChoices("text", "replacement")
    )

    model_config = {"frozen": True}


TransformRule = Annotated[
    Union[ReplaceRule, PrependRule, AppendRule],
    Field(discriminator="type"),
]


# ---------------------------------------------------------------------------
# Targets
# ---------------------------------------------------------------------------


class FileMapping(BaseModel):
    """Route a source file (by filename or ``*`` glob) to a destination.

    Attributes:
        source: Exact filename, or a pattern containing ``*`` wildcards,
            matched against the source's filename only.
        destination: Destination path; relative paths are joined to the
            target's ``path``.
        transform: Rules applied to the content in declared order.
    """

    source: str
    destination: str
    transform: list[TransformRule] = Field(default_factory=list)

    model_config = {"frozen": True}


class TargetConfig(BaseModel):
    """One destination tool to sync into.

    Structural checks (non-empty name, usable mappings) are done by the
    target handlers, not here, so that a bad target fails the pre-flight
    gate with a readable message instead of failing config parsing.
    """

    name: str
    type: str
    path: str | None = Field(
        default=None, description="Base directory for relative destinations"
    )
    mapping: list[FileMapping] = Field(default_factory=list)
    enabled: bool = True

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Ambient sections
# ---------------------------------------------------------------------------


class WatchConfig(BaseModel):
    """Polling watch settings (milliseconds)."""

    enabled: bool = False
    interval: int = Field(default=1000, ge=100)
    debounce: int = Field(default=300, ge=0)

    model_config = {"frozen": True}


class LoggingConfig(BaseModel):
    """Logging configuration.

    Attributes:
        level: Log level name (DEBUG, INFO, WARNING, ERROR, CRITICAL).
        file: Optional log file path.
    """

    level: str = Field(default="INFO", description="Log level")
    file: str | None = Field(default=None, description="Log file path")

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Top-level config
# ---------------------------------------------------------------------------


class SyncConfig(BaseModel):
    """Top-level sync configuration consumed by ``SyncEngine``."""

    sources: list[str] = Field(default_factory=list)
    targets: list[TargetConfig] = Field(default_factory=list)
    mode: SyncMode = SyncMode.INCREMENTAL
    strict_paths: bool = Field(
        default=False,
        description="Require destinations under each known tool's own tree",
    )
    pair_timeout: float | None = Field(
        default=None,
        gt=0,
        description="Seconds allowed for one source/target write",
    )
    watch: WatchConfig = Field(default_factory=WatchConfig)
    logging: LoggingConfig = Field(default_factory=LoggingConfig)

    model_config = {"frozen": True}


# ---------------------------------------------------------------------------
# Factory function
# ---------------------------------------------------------------------------


def build_config(raw_data: dict) -> SyncConfig:
    """Construct a ``SyncConfig`` from a raw configuration dict.

    Args:
        raw_data: Parsed configuration file content.

    Returns:
        Validated ``SyncConfig`` instance.

    Raises:
        ConfigError: If the data does not match the schema or declares
            no targets.
    """
    try:
        config = SyncConfig.model_validate(raw_data or {})
    except PydanticValidationError as exc:
        problems = [
            f"{'.'.join(str(p) for p in err['loc'])}: {err['msg']}"
            for err in exc.errors()
        ]
        raise ConfigError(
            "Configuration validation failed:\n" + "\n".join(problems)
        ) from exc

    if not config.targets:
        raise ConfigError(
            "Configuration validation failed:\ntargets: cannot be empty"
        )
    if not config.sources:
        logger.warning("Configuration declares no sources")

    return config
