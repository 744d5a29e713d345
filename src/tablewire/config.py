"""TOML-based configuration for the catalog wire layer.

Provides ``load_config`` / ``discover_config`` for loading ``tablewire.toml``
into frozen dataclasses for codec and scan-planning settings.

Example file::

    [codec]
    body_format = "json"

    [planning]
    sync_timeout = 0.05
    retention_seconds = 300
    plan_id_prefix = "plan-"
"""

from __future__ import annotations

import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from tablewire.errors import ConfigurationError
from tablewire.wire import BodyFormat, check_body_format

__all__ = [
    "CONFIG_FILE_NAME",
    "CodecConfig",
    "PlanningConfig",
    "WireConfig",
    "discover_config",
    "load_config",
]

CONFIG_FILE_NAME = "tablewire.toml"


@dataclass(frozen=True)
class CodecConfig:
    """Codec registry settings.

    Parameters
    ----------
    body_format : BodyFormat
        Byte encoding used by ``CodecRegistry.serialize``: ``"json"`` or
        ``"msgpack"``.

    Examples
    --------
    >>> CodecConfig(body_format="msgpack")
    CodecConfig(body_format='msgpack')
    """

    body_format: BodyFormat = "json"

    def __post_init__(self) -> None:
        check_body_format(self.body_format)


@dataclass(frozen=True)
class PlanningConfig:
    """Scan plan service tuning.

    Parameters
    ----------
    sync_timeout : float
        Seconds a plan request waits for the planner before deferring the
        answer behind a plan id. ``0`` always defers.
    retention_seconds : float
        Seconds a terminal plan stays pollable before it is purged.
    plan_id_prefix : str
        Prefix of generated plan ids.

    Examples
    --------
    >>> PlanningConfig(sync_timeout=0.5)
    PlanningConfig(sync_timeout=0.5, retention_seconds=300.0, plan_id_prefix='plan-')
    """

    sync_timeout: float = 0.05
    retention_seconds: float = 300.0
    plan_id_prefix: str = "plan-"

    def __post_init__(self) -> None:
        if self.sync_timeout < 0:
            msg = f"planning.sync_timeout must be >= 0, got {self.sync_timeout}"
            raise ConfigurationError(msg)
        if self.retention_seconds < 0:
            msg = f"planning.retention_seconds must be >= 0, got {self.retention_seconds}"
            raise ConfigurationError(msg)


@dataclass(frozen=True)
class WireConfig:
    """Top-level configuration container.

    Typically created via ``load_config()`` but can be constructed manually.

    Examples
    --------
    >>> WireConfig().codec.body_format
    'json'
    """

    codec: CodecConfig = field(default_factory=CodecConfig)
    planning: PlanningConfig = field(default_factory=PlanningConfig)


def discover_config(start: Path | None = None) -> Path | None:
    """Find the nearest ``tablewire.toml`` at or above *start*.

    The search begins in *start* (the working directory when omitted) and
    ends at the filesystem root.

    Examples
    --------
    >>> discover_config(Path("/srv/catalog/jobs"))  # doctest: +SKIP
    PosixPath('/srv/catalog/tablewire.toml')
    """
    directory = (start or Path.cwd()).resolve()
    for candidate_dir in (directory, *directory.parents):
        candidate = candidate_dir / CONFIG_FILE_NAME
        if candidate.is_file():
            return candidate
    return None


def _section[T](cls: type[T], raw: dict[str, Any], name: str) -> T:
    try:
        return cls(**raw.get(name, {}))
    except TypeError as exc:
        msg = f"Invalid [{name}] section: {exc}"
        raise ConfigurationError(msg) from exc


def load_config(path: Path | None = None) -> WireConfig:
    """Read the ``[codec]`` and ``[planning]`` settings.

    Without *path* the file found by ``discover_config`` is read, and all
    settings keep their defaults when there is none. An explicit *path*
    must name an existing file.

    Raises
    ------
    FileNotFoundError
        If *path* is given and is not a file.
    ConfigurationError
        If a section has unknown keys or out-of-range values.
    """
    if path is None:
        path = discover_config()
        if path is None:
            return WireConfig()
    elif not path.is_file():
        msg = f"No tablewire config at {path}"
        raise FileNotFoundError(msg)

    raw = tomllib.loads(path.read_text(encoding="utf-8"))
    return WireConfig(
        codec=_section(CodecConfig, raw, "codec"),
        planning=_section(PlanningConfig, raw, "planning"),
    )
